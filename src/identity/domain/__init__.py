"""
Identity Domain Layer
=====================

Contains:
- Entities: User, Principal (the authenticated caller)
"""

from src.identity.domain.entities import User, Principal

__all__ = [
    "User",
    "Principal",
]
