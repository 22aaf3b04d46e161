"""Security utilities: password hashing and JWT token management."""

from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
from jwt.exceptions import PyJWTError

from src.config import Settings, settings
from src.identity.application import ICredentialService
from src.identity.domain import Principal, User


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against a bcrypt hash."""
    try:
        return bcrypt.checkpw(
            plain_password.encode("utf-8"), hashed_password.encode("utf-8")
        )
    except ValueError:
        # Stored value is not a bcrypt hash
        return False


def create_access_token(
    data: dict,
    secret_key: str,
    algorithm: str = "HS256",
    expires_minutes: int = 60,
) -> str:
    """Create a JWT access token."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, secret_key, algorithm=algorithm)


def decode_access_token(
    token: str,
    secret_key: str,
    algorithm: str = "HS256",
) -> dict | None:
    """Decode and validate a JWT token. Returns None on failure."""
    try:
        return jwt.decode(token, secret_key, algorithms=[algorithm])
    except PyJWTError:
        return None


class CredentialService(ICredentialService):
    """bcrypt password hashes and HS256 bearer tokens."""

    def __init__(self, config: Optional[Settings] = None):
        self._config = config or settings

    def hash_password(self, password: str) -> str:
        return hash_password(password)

    def verify_password(self, password: str, password_hash: str) -> bool:
        return verify_password(password, password_hash)

    def issue_token(self, user: User) -> str:
        return create_access_token(
            {"sub": user.id, "role": user.role, "name": user.name, "email": user.email},
            secret_key=self._config.jwt_secret,
            algorithm=self._config.jwt_algorithm,
            expires_minutes=self._config.jwt_expires_minutes,
        )

    def decode_principal(self, token: str) -> Optional[Principal]:
        """Verified caller for a token, or None if it is invalid or expired."""
        payload = decode_access_token(
            token, self._config.jwt_secret, self._config.jwt_algorithm
        )
        if payload is None or not payload.get("sub") or not payload.get("role"):
            return None
        return Principal(
            user_id=str(payload["sub"]),
            role=str(payload["role"]),
            name=str(payload.get("name") or ""),
            email=str(payload.get("email") or ""),
        )
