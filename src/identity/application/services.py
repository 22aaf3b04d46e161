"""
Identity Application Services
=============================

Signup, login and user administration.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from src.config import Role, PRIVILEGED_ROLES
from src.core import (
    ResourceNotFoundException,
    UnauthorizedException,
    ValidationException,
)
from src.identity.domain import User
from src.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


# ========== Interfaces ==========

class IUserRepository(ABC):
    """Interface for user data access."""

    @abstractmethod
    async def get_by_id(self, user_id: str) -> Optional[User]:
        """Get user by ID."""

    @abstractmethod
    async def get_by_email(self, email: str) -> Optional[User]:
        """Get user by (lowercased) email."""

    @abstractmethod
    async def create(
        self,
        name: str,
        email: str,
        password_hash: str,
        role: str,
        department: Optional[str] = None
    ) -> User:
        """Create a new user."""

    @abstractmethod
    async def list_all(self) -> List[User]:
        """All users, newest first."""

    @abstractmethod
    async def list_by_roles(self, roles: List[str]) -> List[User]:
        """Users holding any of the given roles."""

    @abstractmethod
    async def update_role(self, user_id: str, role: str) -> Optional[User]:
        """Change a user's role."""


class ICredentialService(ABC):
    """Interface for password hashing and token issuing."""

    @abstractmethod
    def hash_password(self, password: str) -> str:
        """Hash a plaintext password."""

    @abstractmethod
    def verify_password(self, password: str, password_hash: str) -> bool:
        """Check a plaintext password against a stored hash."""

    @abstractmethod
    def issue_token(self, user: User) -> str:
        """Issue a signed bearer token for the user."""


# ========== Application Services ==========

class AuthService:
    """
    Registration and login.
    """

    def __init__(self, repository: IUserRepository, credentials: ICredentialService):
        self._repository = repository
        self._credentials = credentials

    async def signup(
        self,
        name: str,
        email: str,
        password: str,
        department: Optional[str] = None
    ) -> tuple[User, str]:
        """
        Register a new employee account and log it in.

        Raises:
            ValidationException: If the email is already registered
        """
        if await self._repository.get_by_email(email) is not None:
            raise ValidationException("User already exists")

        user = await self._repository.create(
            name=name,
            email=email,
            password_hash=self._credentials.hash_password(password),
            role=Role.EMPLOYEE,
            department=department
        )

        logger.info("User registered", extra={"user_id": user.id})
        return user, self._credentials.issue_token(user)

    async def login(self, email: str, password: str) -> tuple[User, str]:
        """
        Authenticate with email and password.

        Raises:
            UnauthorizedException: Unknown email or wrong password
        """
        user = await self._repository.get_by_email(email)
        if user is None or not self._credentials.verify_password(password, user.password_hash):
            logger.info("Login failed", extra={"reason": "invalid_credentials"})
            raise UnauthorizedException("Invalid email or password")

        logger.info("User logged in", extra={"user_id": user.id})
        return user, self._credentials.issue_token(user)

    async def get_profile(self, user_id: str) -> User:
        user = await self._repository.get_by_id(user_id)
        if user is None:
            raise ResourceNotFoundException("User", user_id)
        return user


class UserService:
    """
    User listing and role administration.
    """

    def __init__(self, repository: IUserRepository):
        self._repository = repository

    async def list_users(self) -> List[User]:
        return await self._repository.list_all()

    async def list_responders(self) -> List[User]:
        """Users who can be assigned incidents (responders and admins)."""
        return await self._repository.list_by_roles(list(PRIVILEGED_ROLES))

    async def change_role(self, user_id: str, role: str) -> User:
        user = await self._repository.update_role(user_id, role)
        if user is None:
            raise ResourceNotFoundException("User", user_id)

        logger.info("User role changed", extra={"user_id": user_id, "role": role})
        return user
