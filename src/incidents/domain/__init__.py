"""
Incidents Domain Layer
======================

Contains:
- Entities: Incident aggregate and its child records
- WorkflowPolicy: the status state machine
"""

from src.incidents.domain.entities import (
    Incident,
    StatusChange,
    Comment,
    Attachment,
    ActivityEntry,
    AITriage,
    WorkflowPolicy,
)

__all__ = [
    "Incident",
    "StatusChange",
    "Comment",
    "Attachment",
    "ActivityEntry",
    "AITriage",
    "WorkflowPolicy",
]
