"""
Identity Application Layer
==========================

Contains:
- Services: AuthService, UserService
- DTOs: request/response models for the auth and user endpoints
"""

from src.identity.application.dto import (
    SignupRequest,
    LoginRequest,
    RoleUpdateRequest,
    UserResponse,
    AuthResponse,
)
from src.identity.application.services import (
    AuthService,
    UserService,
    IUserRepository,
    ICredentialService,
)

__all__ = [
    # DTOs
    "SignupRequest",
    "LoginRequest",
    "RoleUpdateRequest",
    "UserResponse",
    "AuthResponse",
    # Services
    "AuthService",
    "UserService",
    # Interfaces
    "IUserRepository",
    "ICredentialService",
]
