"""
Identity Infrastructure Repositories
====================================

SQLAlchemy implementation of the user repository.
"""

from typing import List, Optional
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.identity.application import IUserRepository
from src.identity.domain import User
from src.identity.infrastructure.models import UserModel
from src.infrastructure.database import as_utc, utcnow


def parse_uuid(value: str) -> Optional[UUID]:
    """Parse an API identifier; None when it is not a UUID."""
    try:
        return UUID(str(value))
    except ValueError:
        return None


def to_domain(model: UserModel) -> User:
    return User(
        id=str(model.id),
        name=model.name,
        email=model.email,
        role=model.role,
        password_hash=model.password_hash,
        department=model.department,
        created_at=as_utc(model.created_at)
    )


class SQLAlchemyUserRepository(IUserRepository):
    """SQLAlchemy implementation for users."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def _get_model(self, user_id: str) -> Optional[UserModel]:
        user_uuid = parse_uuid(user_id)
        if user_uuid is None:
            return None
        return await self._session.get(UserModel, user_uuid)

    async def get_by_id(self, user_id: str) -> Optional[User]:
        model = await self._get_model(user_id)
        return to_domain(model) if model else None

    async def get_by_email(self, email: str) -> Optional[User]:
        stmt = select(UserModel).where(UserModel.email == email.strip().lower())
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return to_domain(model) if model else None

    async def create(
        self,
        name: str,
        email: str,
        password_hash: str,
        role: str,
        department: Optional[str] = None
    ) -> User:
        model = UserModel(
            id=uuid4(),
            name=name,
            email=email.strip().lower(),
            password_hash=password_hash,
            role=role,
            department=department,
            created_at=utcnow()
        )

        self._session.add(model)
        await self._session.flush()

        return to_domain(model)

    async def list_all(self) -> List[User]:
        stmt = select(UserModel).order_by(UserModel.created_at.desc())
        result = await self._session.execute(stmt)
        return [to_domain(m) for m in result.scalars().all()]

    async def list_by_roles(self, roles: List[str]) -> List[User]:
        stmt = (
            select(UserModel)
            .where(UserModel.role.in_(roles))
            .order_by(UserModel.name)
        )
        result = await self._session.execute(stmt)
        return [to_domain(m) for m in result.scalars().all()]

    async def update_role(self, user_id: str, role: str) -> Optional[User]:
        model = await self._get_model(user_id)
        if model is None:
            return None

        model.role = role
        await self._session.flush()

        return to_domain(model)
