"""
Triage Infrastructure Layer
============================

Infrastructure implementations for the triage pipeline.

Contains:
- Repositories: incident corpus and responder directory over SQLAlchemy
"""

from src.triage.infrastructure.repositories import (
    SQLAlchemyIncidentCorpus,
    SQLAlchemyResponderDirectory,
)

__all__ = [
    "SQLAlchemyIncidentCorpus",
    "SQLAlchemyResponderDirectory",
]
