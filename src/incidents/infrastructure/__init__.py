"""
Incidents Infrastructure Layer
==============================

Contains:
- Models: SQLAlchemy ORM models
- Repositories: incident persistence
- Storage: local attachment storage
"""

from src.incidents.infrastructure.models import (
    IncidentModel,
    StatusHistoryModel,
    CommentModel,
    AttachmentModel,
    ActivityModel,
    WatcherModel,
)
from src.incidents.infrastructure.repositories import SQLAlchemyIncidentRepository
from src.incidents.infrastructure.storage import LocalAttachmentStorage

__all__ = [
    "IncidentModel",
    "StatusHistoryModel",
    "CommentModel",
    "AttachmentModel",
    "ActivityModel",
    "WatcherModel",
    "SQLAlchemyIncidentRepository",
    "LocalAttachmentStorage",
]
