"""
Incidents Controllers (API Routes)
==================================

FastAPI routes for the incident lifecycle.

Mutations commit before publishing realtime events, so clients never
hear about changes that were rolled back.
"""

from typing import List, Optional, Union

from fastapi import APIRouter, Depends, File, Query, Request, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import settings
from src.identity.domain import Principal
from src.identity.infrastructure import SQLAlchemyUserRepository
from src.identity.interfaces import get_current_user, require_privileged
from src.incidents.application import (
    ActivityResponse,
    AIInsightsSummary,
    AssignRequest,
    AttachmentUploadResponse,
    CommentRequest,
    CreateIncidentRequest,
    CreateIncidentResponse,
    IncidentNotifier,
    IncidentResponse,
    IncidentService,
    MetricsResponse,
    StatusUpdateRequest,
)
from src.incidents.infrastructure import LocalAttachmentStorage, SQLAlchemyIncidentRepository
from src.infrastructure.database import get_session
from src.routing.application import RoutingService
from src.routing.infrastructure import SQLAlchemyRoutingRuleRepository
from src.shared.api.schemas import MessageResponse
from src.shared.infrastructure.logging import get_logger
from src.triage.application import TriagePipeline
from src.triage.interfaces import get_triage_pipeline

logger = get_logger(__name__)
router = APIRouter(prefix="/incidents", tags=["Incidents"])


def _incident_or_ack(incident, user: Principal, message: str) -> Union[IncidentResponse, MessageResponse]:
    """
    Responders may contribute to incidents they cannot read; they only get
    an acknowledgement back, never the incident body.
    """
    if incident.can_read(user):
        return IncidentResponse.from_domain(incident, user)
    return MessageResponse(message=message)


# ========== Dependencies ==========

def get_incident_service(
    db: AsyncSession = Depends(get_session),
    pipeline: TriagePipeline = Depends(get_triage_pipeline),
) -> IncidentService:
    users = SQLAlchemyUserRepository(db)
    return IncidentService(
        repository=SQLAlchemyIncidentRepository(db),
        users=users,
        routing=RoutingService(SQLAlchemyRoutingRuleRepository(db), users),
        pipeline=pipeline,
        storage=LocalAttachmentStorage(settings.upload_dir),
        config=settings
    )


def get_notifier(request: Request) -> IncidentNotifier:
    return IncidentNotifier(getattr(request.app.state, "realtime", None))


# ========== Collection routes ==========

@router.post(
    "",
    response_model=CreateIncidentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Report an incident"
)
async def create_incident(
    payload: CreateIncidentRequest,
    user: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    service: IncidentService = Depends(get_incident_service),
    notifier: IncidentNotifier = Depends(get_notifier),
):
    created = await service.create_incident(
        reporter=user,
        title=payload.title,
        description=payload.description,
        category=payload.category,
        severity=payload.severity
    )
    await db.commit()
    await notifier.incident_created(created.incident)

    return CreateIncidentResponse(
        incident=IncidentResponse.from_domain(created.incident, user),
        ai_insights=AIInsightsSummary.from_domain(created.insights, created.incident)
    )


@router.get(
    "",
    response_model=List[IncidentResponse],
    summary="List incidents visible to the caller"
)
async def list_incidents(
    status_filter: Optional[str] = Query(None, alias="status"),
    category: Optional[str] = Query(None),
    user: Principal = Depends(get_current_user),
    service: IncidentService = Depends(get_incident_service),
):
    incidents = await service.list_incidents(user, status=status_filter, category=category)
    return [IncidentResponse.from_domain(i, user) for i in incidents]


@router.get(
    "/my-incidents",
    response_model=List[IncidentResponse],
    summary="Incidents reported by the caller"
)
async def my_incidents(
    user: Principal = Depends(get_current_user),
    service: IncidentService = Depends(get_incident_service),
):
    return [IncidentResponse.from_domain(i, user) for i in await service.list_reported(user)]


@router.get(
    "/assigned",
    response_model=List[IncidentResponse],
    summary="Incidents assigned to the caller"
)
async def assigned_incidents(
    user: Principal = Depends(get_current_user),
    service: IncidentService = Depends(get_incident_service),
):
    return [IncidentResponse.from_domain(i, user) for i in await service.list_assigned(user)]


@router.get(
    "/metrics",
    response_model=MetricsResponse,
    summary="Volume, MTTR, status/severity counts, forecast and anomaly rate"
)
async def get_metrics(
    _: Principal = Depends(get_current_user),
    service: IncidentService = Depends(get_incident_service),
):
    return MetricsResponse.from_domain(await service.metrics())


# ========== Item routes ==========

@router.get(
    "/{incident_id}",
    response_model=IncidentResponse,
    summary="Get one incident (admin, reporter or assignee)"
)
async def get_incident(
    incident_id: str,
    user: Principal = Depends(get_current_user),
    service: IncidentService = Depends(get_incident_service),
):
    return IncidentResponse.from_domain(await service.get_incident(user, incident_id), user)


@router.get(
    "/{incident_id}/activity",
    response_model=List[ActivityResponse],
    summary="Activity log of an incident"
)
async def get_activity(
    incident_id: str,
    user: Principal = Depends(get_current_user),
    service: IncidentService = Depends(get_incident_service),
):
    return [ActivityResponse.from_domain(a) for a in await service.get_activity(user, incident_id)]


@router.patch(
    "/{incident_id}/status",
    response_model=Union[IncidentResponse, MessageResponse],
    summary="Move an incident along the status workflow (responder/admin)"
)
async def update_status(
    incident_id: str,
    payload: StatusUpdateRequest,
    user: Principal = Depends(require_privileged),
    db: AsyncSession = Depends(get_session),
    service: IncidentService = Depends(get_incident_service),
    notifier: IncidentNotifier = Depends(get_notifier),
):
    incident, changed = await service.change_status(user, incident_id, payload.status, payload.note)
    if changed:
        await db.commit()
        await notifier.incident_updated(incident)
    return _incident_or_ack(incident, user, f"Status is {incident.status}")


@router.post(
    "/{incident_id}/comments",
    response_model=Union[IncidentResponse, MessageResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Add a comment"
)
async def add_comment(
    incident_id: str,
    payload: CommentRequest,
    user: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    service: IncidentService = Depends(get_incident_service),
    notifier: IncidentNotifier = Depends(get_notifier),
):
    incident, comment = await service.add_comment(user, incident_id, payload.text, payload.is_internal)
    await db.commit()
    await notifier.comment_added(incident, comment)
    return _incident_or_ack(incident, user, "Comment added")


@router.post(
    "/{incident_id}/attachments",
    response_model=AttachmentUploadResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload an attachment (multipart field 'file')"
)
async def upload_attachment(
    incident_id: str,
    file: Optional[UploadFile] = File(None),
    user: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    service: IncidentService = Depends(get_incident_service),
    notifier: IncidentNotifier = Depends(get_notifier),
):
    filename = file.filename if file is not None else None
    content = await file.read() if file is not None else b""

    incident, attachment = await service.add_attachment(user, incident_id, filename, content)
    await db.commit()
    await notifier.incident_updated(incident)
    return AttachmentUploadResponse(url=attachment.url, filename=attachment.filename)


@router.post(
    "/{incident_id}/watch",
    response_model=Union[IncidentResponse, MessageResponse],
    summary="Watch an incident (idempotent)"
)
async def watch_incident(
    incident_id: str,
    user: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    service: IncidentService = Depends(get_incident_service),
):
    incident = await service.watch(user, incident_id)
    await db.commit()
    return _incident_or_ack(incident, user, "Watching incident")


@router.patch(
    "/{incident_id}/assign",
    response_model=Union[IncidentResponse, MessageResponse],
    summary="Assign an incident (responder/admin)"
)
async def assign_incident(
    incident_id: str,
    payload: AssignRequest,
    user: Principal = Depends(require_privileged),
    db: AsyncSession = Depends(get_session),
    service: IncidentService = Depends(get_incident_service),
    notifier: IncidentNotifier = Depends(get_notifier),
):
    incident = await service.assign(user, incident_id, payload.assignee_id)
    await db.commit()
    await notifier.incident_assigned(incident)
    return _incident_or_ack(incident, user, "Incident assigned")


incidents_router = router
