"""
Identity Application DTOs
=========================

Request/response models for the auth and user endpoints.
"""

import re
from datetime import datetime
from typing import Optional

from pydantic import Field, field_validator

from src.config import VALID_ROLES
from src.shared.api.schemas import CamelModel

_EMAIL = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _normalize_email(v: str) -> str:
    v = v.strip().lower()
    if not _EMAIL.match(v):
        raise ValueError("Invalid email address")
    return v


# ========== Request DTOs ==========

class SignupRequest(CamelModel):
    """
    Self-service registration.

    Any `role` in the body is ignored; new accounts are always employees.
    """
    name: str = Field(..., min_length=1, max_length=200)
    email: str = Field(..., max_length=320)
    password: str = Field(..., min_length=6, max_length=128)
    department: Optional[str] = Field(None, max_length=200)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return _normalize_email(v)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name is required")
        return v


class LoginRequest(CamelModel):
    """Email/password login."""
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return v.strip().lower()


class RoleUpdateRequest(CamelModel):
    """Administrative role change."""
    role: str

    @field_validator("role")
    @classmethod
    def validate_role(cls, v: str) -> str:
        if v not in VALID_ROLES:
            raise ValueError(f"role must be one of {VALID_ROLES}")
        return v


# ========== Response DTOs ==========

class UserResponse(CamelModel):
    """Public view of a user (never includes the password hash)."""
    id: str
    name: str
    email: str
    role: str
    department: Optional[str] = None
    created_at: datetime

    @classmethod
    def from_domain(cls, user) -> "UserResponse":
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            role=user.role,
            department=user.department,
            created_at=user.created_at
        )


class AuthResponse(CamelModel):
    """Token plus the user it was issued for."""
    message: str
    token: str
    user: UserResponse
