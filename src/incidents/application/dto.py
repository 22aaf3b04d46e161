"""
Incidents Application DTOs
==========================

Request/response models for the incident endpoints.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, Field, field_validator

from src.config import INCIDENT_CATEGORIES, SEVERITY_LEVELS, VALID_STATUSES
from src.identity.domain import Principal
from src.incidents.application.services import IncidentMetrics
from src.incidents.domain import ActivityEntry, Attachment, Comment, Incident, StatusChange
from src.shared.api.schemas import CamelModel
from src.triage.application.dto import (
    AnomalyResponse,
    DuplicateWarningResponse,
    ForecastResponse,
    SolutionMatchResponse,
    TriageDataResponse,
)
from src.triage.domain import TriageInsights


# ========== Request DTOs ==========

class CreateIncidentRequest(CamelModel):
    """Category and severity are predicted when omitted."""
    title: str = Field(..., min_length=1, max_length=300)
    description: str = Field(..., min_length=1, max_length=10000)
    category: Optional[str] = None
    severity: Optional[str] = None

    @field_validator("title", "description")
    @classmethod
    def strip_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator("category")
    @classmethod
    def validate_category(cls, v: Optional[str]) -> Optional[str]:
        if v and v not in INCIDENT_CATEGORIES:
            raise ValueError(f"Invalid category. Must be one of: {INCIDENT_CATEGORIES}")
        return v or None

    @field_validator("severity")
    @classmethod
    def validate_severity(cls, v: Optional[str]) -> Optional[str]:
        if v and v not in SEVERITY_LEVELS:
            raise ValueError(f"Invalid severity. Must be one of: {SEVERITY_LEVELS}")
        return v or None


class StatusUpdateRequest(CamelModel):
    status: str
    note: Optional[str] = Field(None, max_length=5000)

    @field_validator("status")
    @classmethod
    def validate_status(cls, v: str) -> str:
        if v not in VALID_STATUSES:
            raise ValueError(f"Invalid status. Must be one of: {VALID_STATUSES}")
        return v


class CommentRequest(CamelModel):
    text: str = Field(
        ...,
        max_length=5000,
        validation_alias=AliasChoices("text", "content")
    )
    is_internal: bool = Field(
        False,
        validation_alias=AliasChoices("isInternal", "is_internal")
    )

    @field_validator("text")
    @classmethod
    def strip_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Comment text required")
        return v


class AssignRequest(CamelModel):
    assignee_id: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("assigneeId", "assignedTo", "assignee_id")
    )


# ========== Response DTOs ==========

class StatusChangeResponse(CamelModel):
    from_status: Optional[str]
    to_status: str
    changed_by: Optional[str] = None
    changed_by_name: Optional[str] = None
    note: Optional[str] = None
    changed_at: datetime

    @classmethod
    def from_domain(cls, change: StatusChange) -> "StatusChangeResponse":
        return cls(
            from_status=change.from_status,
            to_status=change.to_status,
            changed_by=change.changed_by,
            changed_by_name=change.changed_by_name,
            note=change.note,
            changed_at=change.changed_at
        )


class CommentResponse(CamelModel):
    id: Optional[int] = None
    text: str
    author: Optional[str] = None
    author_name: Optional[str] = None
    is_internal: bool
    created_at: datetime

    @classmethod
    def from_domain(cls, comment: Comment) -> "CommentResponse":
        return cls(
            id=comment.id,
            text=comment.text,
            author=comment.author_id,
            author_name=comment.author_name,
            is_internal=comment.is_internal,
            created_at=comment.created_at
        )


class AttachmentResponse(CamelModel):
    id: Optional[int] = None
    url: str
    filename: str
    uploaded_by: Optional[str] = None
    uploaded_at: datetime

    @classmethod
    def from_domain(cls, attachment: Attachment) -> "AttachmentResponse":
        return cls(
            id=attachment.id,
            url=attachment.url,
            filename=attachment.filename,
            uploaded_by=attachment.uploaded_by,
            uploaded_at=attachment.uploaded_at
        )


class ActivityResponse(CamelModel):
    id: Optional[int] = None
    type: str
    message: str
    by: Optional[str] = None
    by_name: Optional[str] = None
    meta: Dict[str, Any] = {}
    at: datetime

    @classmethod
    def from_domain(cls, entry: ActivityEntry) -> "ActivityResponse":
        return cls(
            id=entry.id,
            type=entry.type,
            message=entry.message,
            by=entry.by,
            by_name=entry.by_name,
            meta=entry.meta,
            at=entry.created_at
        )


class IncidentResponse(CamelModel):
    """Incident as returned by the API. The embedding is never exposed."""
    id: str
    title: str
    description: str
    category: str
    severity: str
    status: str
    reported_by: str
    reporter_name: Optional[str] = None
    assigned_to: Optional[str] = None
    assignee_name: Optional[str] = None
    assigned_team: Optional[str] = None
    resolution: Optional[str] = None
    status_history: List[StatusChangeResponse]
    comments: List[CommentResponse]
    attachments: List[AttachmentResponse]
    activity: List[ActivityResponse]
    watchers: List[str]
    ai_triage_data: Optional[TriageDataResponse] = None
    suggested_solutions: List[Dict[str, Any]] = []
    anomaly_score: float = 0.0
    anomaly_flags: List[str] = []
    is_anomalous: bool = False
    created_at: datetime
    updated_at: Optional[datetime] = None

    @classmethod
    def from_domain(cls, incident: Incident, viewer: Optional[Principal] = None) -> "IncidentResponse":
        """Internal comments are dropped unless the viewer is privileged."""
        if viewer is not None:
            incident = incident.visible_to(viewer)

        ai = incident.ai_triage
        return cls(
            id=incident.id,
            title=incident.title,
            description=incident.description,
            category=incident.category,
            severity=incident.severity,
            status=incident.status,
            reported_by=incident.reported_by,
            reporter_name=incident.reporter_name,
            assigned_to=incident.assigned_to,
            assignee_name=incident.assignee_name,
            assigned_team=incident.assigned_team,
            resolution=incident.resolution,
            status_history=[StatusChangeResponse.from_domain(h) for h in incident.status_history],
            comments=[CommentResponse.from_domain(c) for c in incident.comments],
            attachments=[AttachmentResponse.from_domain(a) for a in incident.attachments],
            activity=[ActivityResponse.from_domain(a) for a in incident.activity],
            watchers=list(incident.watchers),
            ai_triage_data=TriageDataResponse(
                predicted_category=ai.predicted_category,
                predicted_severity=ai.predicted_severity,
                category_confidence=ai.category_confidence,
                severity_confidence=ai.severity_confidence,
                triage_confidence=ai.triage_confidence,
                assigned_team=ai.assigned_team,
                ai_powered=ai.ai_powered,
                timestamp=ai.triaged_at
            ) if ai else None,
            suggested_solutions=incident.suggested_solutions,
            anomaly_score=incident.anomaly_score,
            anomaly_flags=incident.anomaly_flags,
            is_anomalous=incident.is_anomalous,
            created_at=incident.created_at,
            updated_at=incident.updated_at
        )


class AIInsightsSummary(CamelModel):
    """AI block returned with a newly created incident."""
    triage: TriageDataResponse
    duplicate_warning: Optional[DuplicateWarningResponse] = None
    suggested_solutions: List[SolutionMatchResponse] = []
    ai_generated_solutions: List[str] = []
    anomaly: Optional[AnomalyResponse] = None

    @classmethod
    def from_domain(cls, insights: Optional[TriageInsights], incident: Incident) -> "AIInsightsSummary":
        if insights is None:
            return cls(triage=TriageDataResponse(ai_powered=False))

        triage = insights.triage
        return cls(
            triage=TriageDataResponse(
                predicted_category=triage.predicted_category,
                predicted_severity=triage.predicted_severity,
                category_confidence=triage.category_confidence,
                severity_confidence=triage.severity_confidence,
                triage_confidence=triage.confidence,
                assigned_team=triage.assigned_team,
                ai_powered=triage.ai_powered,
                timestamp=incident.created_at
            ),
            duplicate_warning=DuplicateWarningResponse.from_domain(insights.duplicates),
            suggested_solutions=[
                SolutionMatchResponse.from_domain(m) for m in insights.solutions.matches[:3]
            ],
            ai_generated_solutions=list(insights.solutions.generated),
            anomaly=AnomalyResponse.from_domain(insights.anomaly) if insights.anomaly.is_anomaly else None
        )


class CreateIncidentResponse(CamelModel):
    incident: IncidentResponse
    ai_insights: AIInsightsSummary


class AttachmentUploadResponse(CamelModel):
    url: str
    filename: str


# ========== Metrics ==========

class VolumePoint(CamelModel):
    date: str
    count: int


class StatusCount(CamelModel):
    status: str
    count: int


class SeverityCount(CamelModel):
    severity: str
    count: int


class AnomalySummary(CamelModel):
    count: int
    percentage: float


class MetricsResponse(CamelModel):
    volume: List[VolumePoint]
    mttr: int
    by_status: List[StatusCount]
    by_severity: List[SeverityCount]
    forecast: ForecastResponse
    anomalies: AnomalySummary
    total: int

    @classmethod
    def from_domain(cls, metrics: IncidentMetrics) -> "MetricsResponse":
        return cls(
            volume=[VolumePoint(date=d, count=c) for d, c in metrics.volume],
            mttr=metrics.mttr_ms,
            by_status=[StatusCount(status=s, count=c) for s, c in metrics.by_status.items()],
            by_severity=[SeverityCount(severity=s, count=c) for s, c in metrics.by_severity.items()],
            forecast=ForecastResponse.from_domain(metrics.forecast),
            anomalies=AnomalySummary(
                count=metrics.anomaly_count,
                percentage=metrics.anomaly_percentage
            ),
            total=metrics.total
        )
