"""
Routing Application DTOs
========================
"""

from datetime import datetime
from typing import Optional

from pydantic import Field, field_validator

from src.config import ROUTING_CATEGORIES
from src.shared.api.schemas import CamelModel


def _check_category(v: str) -> str:
    if v not in ROUTING_CATEGORIES:
        raise ValueError(f"category must be one of {ROUTING_CATEGORIES}")
    return v


def _check_team(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("assignedTeam is required")
    return v


class RoutingRuleCreateRequest(CamelModel):
    """New routing rule. Category and team are required."""
    category: str
    assigned_team: str = Field(..., max_length=200)
    assigned_to: Optional[str] = None
    priority: Optional[int] = Field(default=0, ge=0)
    active: bool = True

    @field_validator("category")
    @classmethod
    def validate_category(cls, v: str) -> str:
        return _check_category(v)

    @field_validator("assigned_team")
    @classmethod
    def validate_team(cls, v: str) -> str:
        return _check_team(v)


class RoutingRuleUpdateRequest(CamelModel):
    """Partial update; only fields present in the body change."""
    category: Optional[str] = None
    assigned_team: Optional[str] = Field(None, max_length=200)
    assigned_to: Optional[str] = None
    priority: Optional[int] = Field(None, ge=0)
    active: Optional[bool] = None

    @field_validator("category")
    @classmethod
    def validate_category(cls, v: Optional[str]) -> Optional[str]:
        return _check_category(v) if v is not None else v

    @field_validator("assigned_team")
    @classmethod
    def validate_team(cls, v: Optional[str]) -> Optional[str]:
        return _check_team(v) if v is not None else v


class RoutingRuleResponse(CamelModel):
    id: str
    category: str
    assigned_team: str
    assigned_to: Optional[str] = None
    priority: Optional[int] = None
    active: bool
    created_at: datetime
    updated_at: Optional[datetime] = None

    @classmethod
    def from_domain(cls, rule) -> "RoutingRuleResponse":
        return cls(
            id=rule.id,
            category=rule.category,
            assigned_team=rule.assigned_team,
            assigned_to=rule.assigned_to,
            priority=rule.priority,
            active=rule.active,
            created_at=rule.created_at,
            updated_at=rule.updated_at
        )


class RoutingRuleMutationResponse(CamelModel):
    message: str
    rule: RoutingRuleResponse
