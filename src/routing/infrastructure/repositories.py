"""
Routing Infrastructure Repositories
===================================
"""

from typing import List, Optional
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core import ValidationException
from src.identity.infrastructure import parse_uuid
from src.infrastructure.database import as_utc, utcnow
from src.routing.application import IRoutingRuleRepository
from src.routing.domain import RoutingRule
from src.routing.infrastructure.models import RoutingRuleModel


def to_domain(model: RoutingRuleModel) -> RoutingRule:
    return RoutingRule(
        id=str(model.id),
        category=model.category,
        assigned_team=model.assigned_team,
        assigned_to=str(model.assigned_to) if model.assigned_to else None,
        priority=model.priority,
        active=model.active,
        created_at=as_utc(model.created_at),
        updated_at=as_utc(model.updated_at)
    )


def _user_ref(value: Optional[str]):
    if not value:
        return None
    user_uuid = parse_uuid(value)
    if user_uuid is None:
        raise ValidationException(f"Invalid user id: {value}")
    return user_uuid


class SQLAlchemyRoutingRuleRepository(IRoutingRuleRepository):
    """SQLAlchemy implementation for routing rules."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def _get_model(self, rule_id: str) -> Optional[RoutingRuleModel]:
        rule_uuid = parse_uuid(rule_id)
        if rule_uuid is None:
            return None
        return await self._session.get(RoutingRuleModel, rule_uuid)

    async def get_by_id(self, rule_id: str) -> Optional[RoutingRule]:
        model = await self._get_model(rule_id)
        return to_domain(model) if model else None

    async def list_all(self) -> List[RoutingRule]:
        result = await self._session.execute(select(RoutingRuleModel))
        return [to_domain(m) for m in result.scalars().all()]

    async def list_for_category(self, category: str) -> List[RoutingRule]:
        stmt = select(RoutingRuleModel).where(
            RoutingRuleModel.category == category,
            RoutingRuleModel.active.is_(True)
        )
        result = await self._session.execute(stmt)
        return [to_domain(m) for m in result.scalars().all()]

    async def create(
        self,
        category: str,
        assigned_team: str,
        assigned_to: Optional[str],
        priority: Optional[int],
        active: bool
    ) -> RoutingRule:
        model = RoutingRuleModel(
            id=uuid4(),
            category=category,
            assigned_team=assigned_team,
            assigned_to=_user_ref(assigned_to),
            priority=priority,
            active=active,
            created_at=utcnow()
        )

        self._session.add(model)
        await self._session.flush()

        return to_domain(model)

    async def update(self, rule_id: str, changes: dict) -> Optional[RoutingRule]:
        model = await self._get_model(rule_id)
        if model is None:
            return None

        for key in ("category", "assigned_team", "active"):
            if changes.get(key) is not None:
                setattr(model, key, changes[key])
        if "priority" in changes:
            model.priority = changes["priority"]
        if "assigned_to" in changes:
            model.assigned_to = _user_ref(changes["assigned_to"])
        model.updated_at = utcnow()

        await self._session.flush()
        return to_domain(model)

    async def delete(self, rule_id: str) -> bool:
        model = await self._get_model(rule_id)
        if model is None:
            return False

        await self._session.delete(model)
        await self._session.flush()
        return True
