"""
Incidents Application Layer
===========================

Contains:
- Services: IncidentService (lifecycle, metrics)
- Notifications: realtime publishing after commit
- DTOs: request/response models for the incident endpoints
"""

from src.incidents.application.services import (
    IncidentService,
    IncidentMetrics,
    CreatedIncident,
    IIncidentRepository,
    IAttachmentStorage,
)
from src.incidents.application.dto import (
    CreateIncidentRequest,
    StatusUpdateRequest,
    CommentRequest,
    AssignRequest,
    IncidentResponse,
    ActivityResponse,
    CommentResponse,
    AIInsightsSummary,
    CreateIncidentResponse,
    AttachmentUploadResponse,
    MetricsResponse,
)
from src.incidents.application.notifications import IncidentNotifier

__all__ = [
    # Services
    "IncidentService",
    "IncidentMetrics",
    "CreatedIncident",
    "IIncidentRepository",
    "IAttachmentStorage",
    "IncidentNotifier",
    # DTOs
    "CreateIncidentRequest",
    "StatusUpdateRequest",
    "CommentRequest",
    "AssignRequest",
    "IncidentResponse",
    "ActivityResponse",
    "CommentResponse",
    "AIInsightsSummary",
    "CreateIncidentResponse",
    "AttachmentUploadResponse",
    "MetricsResponse",
]
