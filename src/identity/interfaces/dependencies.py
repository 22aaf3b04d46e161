"""FastAPI dependency providers for authentication and role checks."""

from typing import Callable, Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from src.config import Role, PRIVILEGED_ROLES
from src.core import ForbiddenException, UnauthorizedException
from src.identity.domain import Principal
from src.identity.infrastructure import CredentialService
from src.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

security_scheme = HTTPBearer(auto_error=False)

_credential_service: CredentialService | None = None


def get_credential_service() -> CredentialService:
    """Get the credential service singleton."""
    global _credential_service
    if _credential_service is None:
        _credential_service = CredentialService()
    return _credential_service


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_scheme),
    credential_service: CredentialService = Depends(get_credential_service),
) -> Principal:
    """Resolve the bearer token into the calling user."""
    if credentials is None or not credentials.credentials:
        raise UnauthorizedException("Not authenticated")

    principal = credential_service.decode_principal(credentials.credentials)
    if principal is None:
        raise UnauthorizedException("Invalid or expired token")

    return principal


def require_roles(*roles: str) -> Callable:
    """Dependency factory: the caller must hold one of `roles`."""

    async def checker(user: Principal = Depends(get_current_user)) -> Principal:
        if user.role not in roles:
            logger.info(
                "Role check failed",
                extra={"user_id": user.user_id, "role": user.role, "required": list(roles)}
            )
            raise ForbiddenException("Forbidden: insufficient role")
        return user

    return checker


require_admin = require_roles(Role.ADMIN)
require_privileged = require_roles(*PRIVILEGED_ROLES)
