"""
Routing Controllers (API Routes)
================================

Any authenticated user may read rules; only admins may change them.
"""

from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.identity.domain import Principal
from src.identity.infrastructure import SQLAlchemyUserRepository
from src.identity.interfaces import get_current_user, require_admin
from src.infrastructure.database import get_session
from src.routing.application import (
    RoutingRuleService,
    RoutingRuleCreateRequest,
    RoutingRuleUpdateRequest,
    RoutingRuleResponse,
    RoutingRuleMutationResponse,
)
from src.routing.infrastructure import SQLAlchemyRoutingRuleRepository
from src.shared.api.schemas import MessageResponse

router = APIRouter(prefix="/routing-rules", tags=["Routing Rules"])


def get_routing_rule_service(db: AsyncSession = Depends(get_session)) -> RoutingRuleService:
    return RoutingRuleService(
        SQLAlchemyRoutingRuleRepository(db),
        SQLAlchemyUserRepository(db)
    )


@router.get(
    "",
    response_model=List[RoutingRuleResponse],
    summary="List routing rules in evaluation order"
)
async def list_rules(
    _: Principal = Depends(get_current_user),
    service: RoutingRuleService = Depends(get_routing_rule_service),
):
    return [RoutingRuleResponse.from_domain(r) for r in await service.list_rules()]


@router.post(
    "",
    response_model=RoutingRuleMutationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a routing rule (admin only)"
)
async def create_rule(
    payload: RoutingRuleCreateRequest,
    _: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
    service: RoutingRuleService = Depends(get_routing_rule_service),
):
    rule = await service.create_rule(
        category=payload.category,
        assigned_team=payload.assigned_team,
        assigned_to=payload.assigned_to,
        priority=payload.priority,
        active=payload.active
    )
    await db.commit()
    return RoutingRuleMutationResponse(
        message="Routing rule created",
        rule=RoutingRuleResponse.from_domain(rule)
    )


@router.patch(
    "/{rule_id}",
    response_model=RoutingRuleMutationResponse,
    summary="Update a routing rule (admin only)"
)
async def update_rule(
    rule_id: str,
    payload: RoutingRuleUpdateRequest,
    _: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
    service: RoutingRuleService = Depends(get_routing_rule_service),
):
    rule = await service.update_rule(rule_id, payload.model_dump(exclude_unset=True))
    await db.commit()
    return RoutingRuleMutationResponse(
        message="Routing rule updated",
        rule=RoutingRuleResponse.from_domain(rule)
    )


@router.delete(
    "/{rule_id}",
    response_model=MessageResponse,
    summary="Delete a routing rule (admin only)"
)
async def delete_rule(
    rule_id: str,
    _: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
    service: RoutingRuleService = Depends(get_routing_rule_service),
):
    await service.delete_rule(rule_id)
    await db.commit()
    return MessageResponse(message="Routing rule deleted")


routing_router = router
