"""
Identity Interfaces Layer
=========================

API controllers and auth dependencies for the identity module.
"""

from src.identity.interfaces.controllers import auth_router, users_router
from src.identity.interfaces.dependencies import (
    get_current_user,
    get_credential_service,
    require_roles,
    require_admin,
    require_privileged,
)

__all__ = [
    "auth_router",
    "users_router",
    "get_current_user",
    "get_credential_service",
    "require_roles",
    "require_admin",
    "require_privileged",
]
