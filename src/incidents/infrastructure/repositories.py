"""
Incidents Infrastructure Repositories
=====================================

SQLAlchemy implementation of the incident repository.

Loaded ORM rows stay attached to the session so that `save` only appends
new child rows, and the version counter guards the incident row.
"""

from datetime import datetime
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from src.config import IncidentStatus
from src.core import ConflictException, ResourceNotFoundException
from src.identity.infrastructure import parse_uuid
from src.incidents.application import IIncidentRepository
from src.incidents.domain import (
    AITriage,
    ActivityEntry,
    Attachment,
    Comment,
    Incident,
    StatusChange,
)
from src.incidents.infrastructure.models import (
    ActivityModel,
    AttachmentModel,
    CommentModel,
    IncidentModel,
    StatusHistoryModel,
    WatcherModel,
)
from src.infrastructure.database import as_utc
from src.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


def _ref(value: Optional[UUID]) -> Optional[str]:
    return str(value) if value else None


def _uuid(value: Optional[str]) -> Optional[UUID]:
    return parse_uuid(value) if value else None


def to_domain(model: IncidentModel) -> Incident:
    ai_triage = None
    if model.triaged_at is not None:
        ai_triage = AITriage(
            predicted_category=model.predicted_category,
            predicted_severity=model.predicted_severity,
            category_confidence=model.category_confidence,
            severity_confidence=model.severity_confidence,
            triage_confidence=model.triage_confidence,
            assigned_team=model.ai_team,
            ai_powered=model.ai_powered,
            triaged_at=as_utc(model.triaged_at)
        )

    return Incident(
        id=str(model.id),
        title=model.title,
        description=model.description,
        category=model.category,
        severity=model.severity,
        status=model.status,
        reported_by=str(model.reported_by),
        reporter_name=model.reporter_name,
        assigned_to=_ref(model.assigned_to),
        assignee_name=model.assignee_name,
        assigned_team=model.assigned_team,
        resolution=model.resolution,
        created_at=as_utc(model.created_at),
        updated_at=as_utc(model.updated_at),
        status_history=[
            StatusChange(
                id=h.id,
                from_status=h.from_status,
                to_status=h.to_status,
                changed_by=_ref(h.changed_by),
                changed_by_name=h.changed_by_name,
                note=h.note,
                changed_at=as_utc(h.changed_at)
            )
            for h in model.status_history
        ],
        comments=[
            Comment(
                id=c.id,
                text=c.text,
                author_id=_ref(c.author_id),
                author_name=c.author_name,
                is_internal=c.is_internal,
                created_at=as_utc(c.created_at)
            )
            for c in model.comments
        ],
        attachments=[
            Attachment(
                id=a.id,
                url=a.url,
                filename=a.filename,
                uploaded_by=_ref(a.uploaded_by),
                uploaded_at=as_utc(a.uploaded_at)
            )
            for a in model.attachments
        ],
        activity=[
            ActivityEntry(
                id=a.id,
                type=a.type,
                message=a.message,
                by=_ref(a.by),
                by_name=a.by_name,
                meta=dict(a.meta or {}),
                created_at=as_utc(a.created_at)
            )
            for a in model.activity
        ],
        watchers=[str(w.user_id) for w in model.watchers],
        embedding=model.embedding,
        ai_triage=ai_triage,
        suggested_solutions=list(model.suggested_solutions or []),
        anomaly_score=model.anomaly_score or 0.0,
        anomaly_flags=list(model.anomaly_flags or []),
        is_anomalous=model.is_anomalous
    )


class SQLAlchemyIncidentRepository(IIncidentRepository):
    """SQLAlchemy implementation for incidents."""

    def __init__(self, session: AsyncSession):
        self._session = session
        self._models: Dict[str, IncidentModel] = {}

    async def _get_model(self, incident_id: str) -> Optional[IncidentModel]:
        if incident_id in self._models:
            return self._models[incident_id]

        incident_uuid = parse_uuid(incident_id)
        if incident_uuid is None:
            return None

        model = await self._session.get(IncidentModel, incident_uuid)
        if model is not None:
            self._models[incident_id] = model
        return model

    async def get(self, incident_id: str) -> Optional[Incident]:
        model = await self._get_model(incident_id)
        return to_domain(model) if model else None

    def _apply(self, model: IncidentModel, incident: Incident) -> list:
        """
        Copy aggregate state onto the row and append new child rows.

        Returns:
            (domain child, child row) pairs whose ids are known after flush
        """
        model.title = incident.title
        model.description = incident.description
        model.category = incident.category
        model.severity = incident.severity
        model.status = incident.status
        model.reporter_name = incident.reporter_name
        model.assigned_to = _uuid(incident.assigned_to)
        model.assignee_name = incident.assignee_name
        model.assigned_team = incident.assigned_team
        model.resolution = incident.resolution
        model.updated_at = incident.updated_at
        model.suggested_solutions = list(incident.suggested_solutions)
        model.anomaly_score = incident.anomaly_score
        model.anomaly_flags = list(incident.anomaly_flags)
        model.is_anomalous = incident.is_anomalous
        if incident.embedding is not None:
            model.embedding = incident.embedding

        ai = incident.ai_triage
        if ai is not None:
            model.predicted_category = ai.predicted_category
            model.predicted_severity = ai.predicted_severity
            model.category_confidence = ai.category_confidence
            model.severity_confidence = ai.severity_confidence
            model.triage_confidence = ai.triage_confidence
            model.ai_team = ai.assigned_team
            model.ai_powered = ai.ai_powered
            model.triaged_at = ai.triaged_at

        pending = []
        for h in incident.status_history:
            if h.id is None:
                row = StatusHistoryModel(
                    from_status=h.from_status,
                    to_status=h.to_status,
                    changed_by=_uuid(h.changed_by),
                    changed_by_name=h.changed_by_name,
                    note=h.note,
                    changed_at=h.changed_at
                )
                model.status_history.append(row)
                pending.append((h, row))
        for c in incident.comments:
            if c.id is None:
                row = CommentModel(
                    text=c.text,
                    author_id=_uuid(c.author_id),
                    author_name=c.author_name,
                    is_internal=c.is_internal,
                    created_at=c.created_at
                )
                model.comments.append(row)
                pending.append((c, row))
        for a in incident.attachments:
            if a.id is None:
                row = AttachmentModel(
                    url=a.url,
                    filename=a.filename,
                    uploaded_by=_uuid(a.uploaded_by),
                    uploaded_at=a.uploaded_at
                )
                model.attachments.append(row)
                pending.append((a, row))
        for a in incident.activity:
            if a.id is None:
                row = ActivityModel(
                    type=a.type,
                    message=a.message,
                    by=_uuid(a.by),
                    by_name=a.by_name,
                    meta=dict(a.meta),
                    created_at=a.created_at
                )
                model.activity.append(row)
                pending.append((a, row))

        watching = {str(w.user_id) for w in model.watchers}
        for user_id in incident.watchers:
            if user_id not in watching:
                model.watchers.append(WatcherModel(user_id=_uuid(user_id)))
                watching.add(user_id)

        return pending

    async def _flush(self, incident_id: str) -> None:
        try:
            await self._session.flush()
        except StaleDataError:
            logger.warning("Concurrent incident update rejected", extra={"incident_id": incident_id})
            raise ConflictException(
                "Incident was modified by another request, please retry",
                details={"incident_id": incident_id}
            )

    async def add(self, incident: Incident) -> None:
        model = IncidentModel(
            id=UUID(incident.id),
            reported_by=UUID(incident.reported_by),
            created_at=incident.created_at,
            status_history=[],
            comments=[],
            attachments=[],
            activity=[],
            watchers=[]
        )
        pending = self._apply(model, incident)
        self._session.add(model)
        await self._flush(incident.id)

        self._models[incident.id] = model
        for child, row in pending:
            child.id = row.id

    async def save(self, incident: Incident) -> None:
        model = await self._get_model(incident.id)
        if model is None:
            raise ResourceNotFoundException("Incident", incident.id)

        pending = self._apply(model, incident)
        await self._flush(incident.id)

        for child, row in pending:
            child.id = row.id

    async def list(
        self,
        status: Optional[str] = None,
        category: Optional[str] = None,
        reported_by: Optional[str] = None,
        assigned_to: Optional[str] = None,
        involving: Optional[str] = None
    ) -> List[Incident]:
        stmt = select(IncidentModel).order_by(IncidentModel.created_at.desc())

        if status:
            stmt = stmt.where(IncidentModel.status == status)
        if category:
            stmt = stmt.where(IncidentModel.category == category)
        if reported_by:
            stmt = stmt.where(IncidentModel.reported_by == _uuid(reported_by))
        if assigned_to:
            stmt = stmt.where(IncidentModel.assigned_to == _uuid(assigned_to))
        if involving:
            user_uuid = _uuid(involving)
            stmt = stmt.where(
                or_(IncidentModel.reported_by == user_uuid, IncidentModel.assigned_to == user_uuid)
            )

        result = await self._session.execute(stmt)
        return [to_domain(m) for m in result.scalars().all()]

    async def count_by(self, column: str) -> Dict[str, int]:
        field = {"status": IncidentModel.status, "severity": IncidentModel.severity}[column]
        stmt = select(field, func.count()).group_by(field).order_by(field)
        result = await self._session.execute(stmt)
        return {value: count for value, count in result.all()}

    async def created_since(self, since: datetime) -> List[datetime]:
        stmt = select(IncidentModel.created_at).where(IncidentModel.created_at >= since)
        result = await self._session.execute(stmt)
        return [as_utc(value) for value in result.scalars().all()]

    async def resolution_times(self) -> List[Tuple[datetime, datetime]]:
        stmt = (
            select(IncidentModel.created_at, func.min(StatusHistoryModel.changed_at))
            .join(StatusHistoryModel, StatusHistoryModel.incident_id == IncidentModel.id)
            .where(
                IncidentModel.status == IncidentStatus.RESOLVED,
                StatusHistoryModel.to_status == IncidentStatus.RESOLVED
            )
            .group_by(IncidentModel.id, IncidentModel.created_at)
        )
        result = await self._session.execute(stmt)
        return [(as_utc(created), as_utc(resolved)) for created, resolved in result.all()]

    async def anomaly_counts(self) -> Tuple[int, int]:
        total = await self._session.scalar(select(func.count()).select_from(IncidentModel))
        anomalous = await self._session.scalar(
            select(func.count())
            .select_from(IncidentModel)
            .where(IncidentModel.is_anomalous.is_(True))
        )
        return anomalous or 0, total or 0
