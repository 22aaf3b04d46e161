"""
Routing Application Layer
=========================
"""

from src.routing.application.dto import (
    RoutingRuleCreateRequest,
    RoutingRuleUpdateRequest,
    RoutingRuleResponse,
    RoutingRuleMutationResponse,
)
from src.routing.application.services import (
    RoutingRuleService,
    RoutingService,
    IRoutingRuleRepository,
)

__all__ = [
    "RoutingRuleCreateRequest",
    "RoutingRuleUpdateRequest",
    "RoutingRuleResponse",
    "RoutingRuleMutationResponse",
    "RoutingRuleService",
    "RoutingService",
    "IRoutingRuleRepository",
]
