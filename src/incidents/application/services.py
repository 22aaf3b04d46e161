"""
Incidents Application Services
==============================

Incident lifecycle: creation through the triage pipeline and routing,
status workflow, comments, attachments, watchers, assignment and metrics.

Role checks that depend only on the caller's role happen at the API
boundary; checks that depend on the incident happen here.
"""

import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple
from uuid import uuid4

from src.config import IncidentCategory, Settings, Severity, settings as default_settings
from src.core import (
    ForbiddenException,
    ResourceNotFoundException,
    ValidationException,
)
from src.identity.application import IUserRepository
from src.identity.domain import Principal
from src.incidents.domain import (
    ActivityEntry,
    AITriage,
    Attachment,
    Comment,
    Incident,
)
from src.routing.application import RoutingService
from src.shared.infrastructure.logging import get_logger
from src.triage.application import TriagePipeline
from src.triage.domain import (
    TriageInsights,
    VolumeForecast,
    forecast_volume,
    round_half_up,
)

logger = get_logger(__name__)


# ========== Interfaces ==========

class IIncidentRepository(ABC):
    """Interface for incident persistence."""

    @abstractmethod
    async def get(self, incident_id: str) -> Optional[Incident]:
        """Get incident by ID."""

    @abstractmethod
    async def add(self, incident: Incident) -> None:
        """Persist a new incident."""

    @abstractmethod
    async def save(self, incident: Incident) -> None:
        """
        Persist changes to a loaded incident.

        Raises:
            ConflictException: Incident changed since it was loaded
        """

    @abstractmethod
    async def list(
        self,
        status: Optional[str] = None,
        category: Optional[str] = None,
        reported_by: Optional[str] = None,
        assigned_to: Optional[str] = None,
        involving: Optional[str] = None
    ) -> List[Incident]:
        """Newest first. `involving` matches reporter or assignee."""

    @abstractmethod
    async def count_by(self, column: str) -> Dict[str, int]:
        """Counts grouped by 'status' or 'severity'."""

    @abstractmethod
    async def created_since(self, since: datetime) -> List[datetime]:
        """Creation timestamps at or after `since`."""

    @abstractmethod
    async def resolution_times(self) -> List[Tuple[datetime, datetime]]:
        """(created_at, resolved_at) for Resolved incidents."""

    @abstractmethod
    async def anomaly_counts(self) -> Tuple[int, int]:
        """(anomalous, total)."""


class IAttachmentStorage(ABC):
    """Interface for attachment file storage."""

    @abstractmethod
    async def save(self, filename: str, content: bytes) -> str:
        """
        Store a file.

        Returns:
            Public URL of the stored file

        Raises:
            UploadException: Write failed
        """


# ========== Results ==========

@dataclass
class IncidentMetrics:
    volume: List[Tuple[str, int]]
    mttr_ms: int
    by_status: Dict[str, int]
    by_severity: Dict[str, int]
    forecast: VolumeForecast
    anomaly_count: int
    anomaly_percentage: float
    total: int = 0


@dataclass
class CreatedIncident:
    incident: Incident
    insights: Optional[TriageInsights] = None


# ========== Application Services ==========

def _stored_solutions(insights: TriageInsights) -> List[dict]:
    """Solutions kept on the incident, at most 5."""
    stored = [
        {
            "sourceIncidentId": m.source_incident_id,
            "sourceTitle": m.source_title,
            "solution": m.resolution or "See incident details",
            "steps": list(m.solutions),
            "similarity": m.similarity,
            "resolution": m.resolution,
        }
        for m in insights.solutions.matches
    ]
    stored.extend(
        {
            "sourceTitle": "Suggested Solution",
            "solution": text,
            "steps": [],
            "similarity": 0,
        }
        for text in insights.solutions.generated
    )
    return stored[:5]


class IncidentService:
    """
    Service for the incident lifecycle.

    Coordinates the triage pipeline, routing and persistence.
    """

    def __init__(
        self,
        repository: IIncidentRepository,
        users: IUserRepository,
        routing: RoutingService,
        pipeline: Optional[TriagePipeline] = None,
        storage: Optional[IAttachmentStorage] = None,
        config: Optional[Settings] = None
    ):
        self._repository = repository
        self._users = users
        self._routing = routing
        self._pipeline = pipeline
        self._storage = storage
        self._config = config or default_settings

    async def _load(self, incident_id: str) -> Incident:
        incident = await self._repository.get(incident_id)
        if incident is None:
            raise ResourceNotFoundException("Incident", incident_id)
        return incident

    async def _load_for_contribution(self, incident_id: str, principal: Principal) -> Incident:
        incident = await self._load(incident_id)
        if not incident.can_contribute(principal):
            raise ForbiddenException("Forbidden")
        return incident

    # ---------- creation ----------

    async def _analyze(
        self,
        title: str,
        description: str,
        category: Optional[str],
        severity: Optional[str]
    ) -> Optional[TriageInsights]:
        if self._pipeline is None:
            return None
        try:
            return await self._pipeline.analyze_new_incident(title, description, category, severity)
        except Exception as e:
            logger.warning(
                "Triage pipeline failed, creating incident without AI data",
                extra={"error": str(e)}
            )
            return None

    async def create_incident(
        self,
        reporter: Principal,
        title: str,
        description: str,
        category: Optional[str] = None,
        severity: Optional[str] = None
    ) -> CreatedIncident:
        """
        Create an incident.

        Caller-supplied category and severity win; predictions fill the
        gaps. A matching routing rule sets team and assignee; otherwise a
        live-model triage may supply the team.
        """
        insights = await self._analyze(title, description, category, severity)

        if insights is not None:
            final_category, final_severity = insights.category, insights.severity
        else:
            final_category = category or IncidentCategory.IT
            final_severity = severity or Severity.LOW

        incident = Incident.open(
            incident_id=str(uuid4()),
            title=title,
            description=description,
            category=final_category,
            severity=final_severity,
            reporter=reporter
        )

        decision = await self._routing.resolve(final_category)
        if decision is not None:
            incident.route(decision.assigned_team, decision.assigned_to, decision.assignee_name)
        elif insights is not None and insights.triage.ai_powered:
            incident.route(insights.triage.assigned_team)

        if insights is not None:
            triage = insights.triage
            incident.embedding = insights.embedding
            incident.ai_triage = AITriage(
                predicted_category=triage.predicted_category,
                predicted_severity=triage.predicted_severity,
                category_confidence=triage.category_confidence,
                severity_confidence=triage.severity_confidence,
                triage_confidence=triage.confidence,
                assigned_team=triage.assigned_team,
                ai_powered=triage.ai_powered,
                triaged_at=incident.created_at
            )
            incident.suggested_solutions = _stored_solutions(insights)
            incident.anomaly_score = insights.anomaly.score
            incident.anomaly_flags = list(insights.anomaly.flags)
            incident.is_anomalous = insights.anomaly.is_anomaly

        await self._repository.add(incident)

        logger.info(
            "Incident created",
            extra={
                "incident_id": incident.id,
                "category": incident.category,
                "severity": incident.severity,
                "assigned_team": incident.assigned_team,
                "routed": decision is not None
            }
        )
        return CreatedIncident(incident=incident, insights=insights)

    # ---------- reads ----------

    async def list_incidents(
        self,
        principal: Principal,
        status: Optional[str] = None,
        category: Optional[str] = None
    ) -> List[Incident]:
        """Admins see all; everyone else sees what they reported or are assigned."""
        if principal.is_admin:
            incidents = await self._repository.list(status=status, category=category)
        elif principal.is_privileged:
            incidents = await self._repository.list(
                status=status, category=category, involving=principal.user_id
            )
        else:
            incidents = await self._repository.list(
                status=status, category=category, reported_by=principal.user_id
            )
        return [i.visible_to(principal) for i in incidents]

    async def list_reported(self, principal: Principal) -> List[Incident]:
        incidents = await self._repository.list(reported_by=principal.user_id)
        return [i.visible_to(principal) for i in incidents]

    async def list_assigned(self, principal: Principal) -> List[Incident]:
        incidents = await self._repository.list(assigned_to=principal.user_id)
        return [i.visible_to(principal) for i in incidents]

    async def get_incident(self, principal: Principal, incident_id: str) -> Incident:
        """
        Raises:
            ResourceNotFoundException: Unknown incident
            ForbiddenException: Caller is not admin, reporter or assignee
        """
        incident = await self._load(incident_id)
        if not incident.can_read(principal):
            raise ForbiddenException("Forbidden")
        return incident.visible_to(principal)

    async def get_activity(self, principal: Principal, incident_id: str) -> List[ActivityEntry]:
        return (await self.get_incident(principal, incident_id)).activity

    # ---------- mutations ----------

    async def change_status(
        self,
        actor: Principal,
        incident_id: str,
        new_status: str,
        note: Optional[str] = None
    ) -> Tuple[Incident, bool]:
        """
        Returns:
            (incident, changed). A same-status request changes nothing.
        """
        incident = await self._load(incident_id)
        previous = incident.status

        changed = incident.change_status(new_status, actor, note)
        if changed:
            await self._repository.save(incident)
            logger.info(
                "Incident status changed",
                extra={
                    "incident_id": incident_id,
                    "from_status": previous,
                    "to_status": new_status,
                    "actor": actor.user_id
                }
            )
        return incident, changed

    async def add_comment(
        self,
        author: Principal,
        incident_id: str,
        text: str,
        is_internal: bool = False
    ) -> Tuple[Incident, Comment]:
        if is_internal and not author.is_privileged:
            raise ForbiddenException("Only responders and admins can post internal comments")

        incident = await self._load_for_contribution(incident_id, author)
        comment = incident.add_comment(text, author, is_internal)
        await self._repository.save(incident)

        logger.info(
            "Comment added",
            extra={"incident_id": incident_id, "author": author.user_id, "internal": is_internal}
        )
        return incident, comment

    async def add_attachment(
        self,
        uploader: Principal,
        incident_id: str,
        filename: Optional[str],
        content: bytes
    ) -> Tuple[Incident, Attachment]:
        """
        Raises:
            ValidationException: No file, empty file or file too large
            UploadException: Storage write failed
        """
        if self._storage is None:
            raise ValidationException("Attachments are not enabled")
        if not filename or not content:
            raise ValidationException("No file uploaded")
        if len(content) > self._config.max_upload_bytes:
            raise ValidationException(
                f"File too large (max {self._config.max_upload_bytes} bytes)"
            )

        incident = await self._load_for_contribution(incident_id, uploader)
        original_name = os.path.basename(filename)
        url = await self._storage.save(original_name, content)

        attachment = incident.add_attachment(url, original_name, uploader)
        await self._repository.save(incident)

        logger.info(
            "Attachment uploaded",
            extra={"incident_id": incident_id, "filename": original_name, "size": len(content)}
        )
        return incident, attachment

    async def watch(self, user: Principal, incident_id: str) -> Incident:
        incident = await self._load_for_contribution(incident_id, user)
        if incident.watch(user):
            await self._repository.save(incident)
        return incident

    async def assign(self, actor: Principal, incident_id: str, assignee_id: str) -> Incident:
        """
        Raises:
            ResourceNotFoundException: Unknown incident or assignee
        """
        incident = await self._load(incident_id)
        assignee = await self._users.get_by_id(assignee_id)
        if assignee is None:
            raise ResourceNotFoundException("User", assignee_id)

        incident.assign(assignee.id, assignee.name, actor)
        await self._repository.save(incident)

        logger.info(
            "Incident assigned",
            extra={"incident_id": incident_id, "assignee": assignee.id, "actor": actor.user_id}
        )
        return incident

    # ---------- metrics ----------

    async def metrics(self) -> IncidentMetrics:
        """Dashboard aggregates over every incident."""
        today = datetime.now(timezone.utc).date()

        # Last 7 calendar days including today, oldest first
        days = [today - timedelta(days=offset) for offset in range(6, -1, -1)]
        since = datetime.combine(days[0], datetime.min.time(), tzinfo=timezone.utc)
        buckets: Dict[str, int] = {day.isoformat(): 0 for day in days}
        for created in await self._repository.created_since(since):
            key = created.astimezone(timezone.utc).date().isoformat()
            if key in buckets:
                buckets[key] += 1

        durations = [
            (resolved - created).total_seconds() * 1000
            for created, resolved in await self._repository.resolution_times()
        ]
        mttr_ms = round_half_up(sum(durations) / len(durations)) if durations else 0

        if self._pipeline is not None:
            forecast = await self._pipeline.forecast(days=7)
        else:
            forecast = forecast_volume([], days=7)

        anomalous, total = await self._repository.anomaly_counts()

        return IncidentMetrics(
            volume=list(buckets.items()),
            mttr_ms=mttr_ms,
            by_status=await self._repository.count_by("status"),
            by_severity=await self._repository.count_by("severity"),
            forecast=forecast,
            anomaly_count=anomalous,
            anomaly_percentage=round_half_up(anomalous / (total or 1) * 10000) / 100,
            total=total
        )
