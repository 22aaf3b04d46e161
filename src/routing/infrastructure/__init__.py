"""
Routing Infrastructure Layer
============================
"""

from src.routing.infrastructure.models import RoutingRuleModel
from src.routing.infrastructure.repositories import SQLAlchemyRoutingRuleRepository

__all__ = [
    "RoutingRuleModel",
    "SQLAlchemyRoutingRuleRepository",
]
