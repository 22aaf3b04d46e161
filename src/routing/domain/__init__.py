"""
Routing Domain Layer
====================

Contains:
- Entities: RoutingRule, RoutingDecision
- Domain Services: RoutingResolver
"""

from src.routing.domain.entities import (
    RoutingRule,
    RoutingDecision,
    RoutingResolver,
    UNSET_PRIORITY,
)

__all__ = [
    "RoutingRule",
    "RoutingDecision",
    "RoutingResolver",
    "UNSET_PRIORITY",
]
