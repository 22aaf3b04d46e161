"""
Identity Domain Entities
========================

Pure Python domain entities for users and authenticated callers.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from src.config import Role, PRIVILEGED_ROLES, VALID_ROLES


@dataclass
class User:
    """
    A registered user.

    The role only changes through the administrative role update path.
    """
    id: str
    name: str
    email: str
    role: str
    password_hash: str
    created_at: datetime
    department: Optional[str] = None

    def __post_init__(self):
        if self.role not in VALID_ROLES:
            raise ValueError(f"Unknown role: {self.role}")

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    @property
    def is_privileged(self) -> bool:
        """Responders and admins."""
        return self.role in PRIVILEGED_ROLES


@dataclass(frozen=True)
class Principal:
    """
    The authenticated caller, as decoded from a verified bearer token.

    Name and email are the values at token issue time.
    """
    user_id: str
    role: str
    name: str
    email: str

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    @property
    def is_privileged(self) -> bool:
        return self.role in PRIVILEGED_ROLES
