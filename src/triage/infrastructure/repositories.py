"""
Triage Infrastructure Repositories
====================================

SQLAlchemy implementations of the corpus and responder lookups used by the
triage pipeline.

The corpus reads plain columns rather than ORM entities, so it never
touches incident rows the incident repository has loaded in the same
session.
"""

from collections import Counter
from datetime import datetime
from typing import List, Optional

from sqlalchemy import and_, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import ACTIVE_STATUSES, IncidentStatus, Role
from src.identity.infrastructure import UserModel, parse_uuid
from src.incidents.infrastructure.models import IncidentModel
from src.infrastructure.database import as_utc
from src.triage.application import IIncidentCorpus, IResponderDirectory
from src.triage.domain import CorpusIncident

_CORPUS_COLUMNS = (
    IncidentModel.id,
    IncidentModel.title,
    IncidentModel.description,
    IncidentModel.status,
    IncidentModel.severity,
    IncidentModel.category,
    IncidentModel.reported_by,
    IncidentModel.reporter_name,
    IncidentModel.assigned_to,
    IncidentModel.embedding,
    IncidentModel.resolution,
    IncidentModel.suggested_solutions,
    IncidentModel.created_at,
    IncidentModel.updated_at,
)


def _to_corpus(row) -> CorpusIncident:
    solutions = [
        s["solution"] for s in (row.suggested_solutions or [])
        if isinstance(s, dict) and s.get("solution")
    ]
    return CorpusIncident(
        id=str(row.id),
        title=row.title,
        description=row.description,
        status=row.status,
        severity=row.severity,
        category=row.category,
        reported_by=str(row.reported_by),
        reporter_name=row.reporter_name,
        assigned_to=str(row.assigned_to) if row.assigned_to else None,
        embedding=row.embedding or None,
        resolution=row.resolution,
        solutions=solutions,
        created_at=as_utc(row.created_at),
        updated_at=as_utc(row.updated_at)
    )


class SQLAlchemyIncidentCorpus(IIncidentCorpus):
    """Incident corpus backed by the incidents table."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def _fetch(self, stmt) -> List[CorpusIncident]:
        result = await self._session.execute(stmt)
        return [_to_corpus(row) for row in result.all()]

    async def get(self, incident_id: str) -> Optional[CorpusIncident]:
        incident_uuid = parse_uuid(incident_id)
        if incident_uuid is None:
            return None
        rows = await self._fetch(select(*_CORPUS_COLUMNS).where(IncidentModel.id == incident_uuid))
        return rows[0] if rows else None

    async def list_active(self) -> List[CorpusIncident]:
        stmt = (
            select(*_CORPUS_COLUMNS)
            .where(IncidentModel.status.in_(ACTIVE_STATUSES))
            .order_by(IncidentModel.created_at.desc())
        )
        return await self._fetch(stmt)

    async def list_resolved(self, category: Optional[str], limit: int) -> List[CorpusIncident]:
        stmt = select(*_CORPUS_COLUMNS).where(IncidentModel.status == IncidentStatus.RESOLVED)
        if category:
            stmt = stmt.where(IncidentModel.category == category)
        stmt = stmt.order_by(IncidentModel.updated_at.desc()).limit(limit)
        return await self._fetch(stmt)

    async def list_created_since(self, since: datetime) -> List[CorpusIncident]:
        stmt = (
            select(*_CORPUS_COLUMNS)
            .where(IncidentModel.created_at >= since)
            .order_by(IncidentModel.created_at)
        )
        return await self._fetch(stmt)

    async def daily_counts_since(self, since: datetime) -> List[int]:
        result = await self._session.execute(
            select(IncidentModel.created_at).where(IncidentModel.created_at >= since)
        )
        per_day = Counter(as_utc(value).date() for value in result.scalars().all())
        return [per_day[day] for day in sorted(per_day)]

    async def save_embedding(self, incident_id: str, embedding: List[float]) -> None:
        incident_uuid = parse_uuid(incident_id)
        if incident_uuid is None:
            return
        # Bypasses the version counter; an embedding never conflicts with edits
        stmt = (
            update(IncidentModel)
            .where(IncidentModel.id == incident_uuid)
            .values(embedding=embedding)
            .execution_options(synchronize_session=False)
        )
        await self._session.execute(stmt)


class SQLAlchemyResponderDirectory(IResponderDirectory):
    """Responders ranked by their count of open or investigating incidents."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def _least_loaded(self, department: Optional[str]) -> Optional[str]:
        load = func.count(IncidentModel.id)
        stmt = (
            select(UserModel.id, load)
            .outerjoin(
                IncidentModel,
                and_(
                    IncidentModel.assigned_to == UserModel.id,
                    IncidentModel.status.in_(ACTIVE_STATUSES)
                )
            )
            .where(UserModel.role == Role.RESPONDER)
            .group_by(UserModel.id, UserModel.created_at)
            .order_by(load, UserModel.created_at)
            .limit(1)
        )
        if department is not None:
            stmt = stmt.where(UserModel.department == department)

        row = (await self._session.execute(stmt)).first()
        return str(row[0]) if row else None

    async def least_loaded_in_department(self, department: str) -> Optional[str]:
        return await self._least_loaded(department)

    async def least_loaded(self) -> Optional[str]:
        return await self._least_loaded(None)
