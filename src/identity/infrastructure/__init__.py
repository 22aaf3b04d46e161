"""
Identity Infrastructure Layer
=============================

Contains:
- Models: SQLAlchemy ORM models
- Repositories: Data access implementations
- Security: bcrypt hashing and JWT tokens
"""

from src.identity.infrastructure.models import UserModel
from src.identity.infrastructure.repositories import SQLAlchemyUserRepository, parse_uuid
from src.identity.infrastructure.security import CredentialService

__all__ = [
    "UserModel",
    "SQLAlchemyUserRepository",
    "parse_uuid",
    "CredentialService",
]
