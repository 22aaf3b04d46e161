"""
Routing Domain Entities
=======================

Routing rules and the resolver that picks one for a category.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional

# Rules without a priority sort after every numbered rule
UNSET_PRIORITY = 999


@dataclass
class RoutingRule:
    """
    Maps an incident category to a team and, optionally, a specific user.

    Lower priority values are evaluated first.
    """
    id: str
    category: str
    assigned_team: str
    created_at: datetime
    assigned_to: Optional[str] = None
    priority: Optional[int] = 0
    active: bool = True
    updated_at: Optional[datetime] = None

    @property
    def effective_priority(self) -> int:
        return UNSET_PRIORITY if self.priority is None else self.priority

    def matches(self, category: str) -> bool:
        return self.active and self.category == category


@dataclass(frozen=True)
class RoutingDecision:
    """Outcome of routing a new incident."""
    rule_id: str
    assigned_team: str
    assigned_to: Optional[str] = None
    assignee_name: Optional[str] = None


class RoutingResolver:
    """
    Selects the rule that routes an incident.

    Active rules for the category are ordered by ascending priority, then by
    creation time; the first one wins.
    """

    @staticmethod
    def order(rules: Iterable[RoutingRule]) -> List[RoutingRule]:
        return sorted(rules, key=lambda r: (r.effective_priority, r.created_at))

    @classmethod
    def select(cls, rules: Iterable[RoutingRule], category: str) -> Optional[RoutingRule]:
        candidates = cls.order(r for r in rules if r.matches(category))
        return candidates[0] if candidates else None
