"""
Routing Application Services
============================

Routing rule administration and creation-time resolution.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from src.core import ResourceNotFoundException
from src.identity.application import IUserRepository
from src.routing.domain import RoutingDecision, RoutingResolver, RoutingRule
from src.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class IRoutingRuleRepository(ABC):
    """Interface for routing rule data access."""

    @abstractmethod
    async def get_by_id(self, rule_id: str) -> Optional[RoutingRule]:
        """Get rule by ID."""

    @abstractmethod
    async def list_all(self) -> List[RoutingRule]:
        """Every rule, active or not."""

    @abstractmethod
    async def list_for_category(self, category: str) -> List[RoutingRule]:
        """Active rules for a category (unordered)."""

    @abstractmethod
    async def create(
        self,
        category: str,
        assigned_team: str,
        assigned_to: Optional[str],
        priority: Optional[int],
        active: bool
    ) -> RoutingRule:
        """Create a rule."""

    @abstractmethod
    async def update(self, rule_id: str, changes: dict) -> Optional[RoutingRule]:
        """Apply field changes to a rule."""

    @abstractmethod
    async def delete(self, rule_id: str) -> bool:
        """Delete a rule. Returns False if it did not exist."""


class RoutingRuleService:
    """
    CRUD for routing rules. Role enforcement happens at the API boundary.
    """

    def __init__(self, repository: IRoutingRuleRepository, users: IUserRepository):
        self._repository = repository
        self._users = users

    async def _check_assignee(self, user_id: Optional[str]) -> None:
        if user_id and await self._users.get_by_id(user_id) is None:
            raise ResourceNotFoundException("User", user_id)

    async def list_rules(self) -> List[RoutingRule]:
        """All rules in evaluation order."""
        return RoutingResolver.order(await self._repository.list_all())

    async def create_rule(
        self,
        category: str,
        assigned_team: str,
        assigned_to: Optional[str] = None,
        priority: Optional[int] = 0,
        active: bool = True
    ) -> RoutingRule:
        await self._check_assignee(assigned_to)
        rule = await self._repository.create(
            category=category,
            assigned_team=assigned_team,
            assigned_to=assigned_to,
            priority=priority,
            active=active
        )
        logger.info(
            "Routing rule created",
            extra={"rule_id": rule.id, "category": category, "team": assigned_team}
        )
        return rule

    async def update_rule(self, rule_id: str, changes: dict) -> RoutingRule:
        if changes.get("assigned_to"):
            await self._check_assignee(changes["assigned_to"])

        rule = await self._repository.update(rule_id, changes)
        if rule is None:
            raise ResourceNotFoundException("Routing rule", rule_id)

        logger.info("Routing rule updated", extra={"rule_id": rule_id, "fields": sorted(changes)})
        return rule

    async def delete_rule(self, rule_id: str) -> None:
        if not await self._repository.delete(rule_id):
            raise ResourceNotFoundException("Routing rule", rule_id)
        logger.info("Routing rule deleted", extra={"rule_id": rule_id})


class RoutingService:
    """
    Resolves the team/assignee for a new incident.
    """

    def __init__(self, repository: IRoutingRuleRepository, users: IUserRepository):
        self._repository = repository
        self._users = users

    async def resolve(self, category: str) -> Optional[RoutingDecision]:
        rule = RoutingResolver.select(
            await self._repository.list_for_category(category), category
        )
        if rule is None:
            return None

        assignee_name = None
        assigned_to = rule.assigned_to
        if assigned_to:
            assignee = await self._users.get_by_id(assigned_to)
            if assignee is None:
                # Rule points at a user that no longer exists
                assigned_to = None
            else:
                assignee_name = assignee.name

        return RoutingDecision(
            rule_id=rule.id,
            assigned_team=rule.assigned_team,
            assigned_to=assigned_to,
            assignee_name=assignee_name
        )
