"""
Triage Interfaces Layer
========================

Interface adapters (controllers) for the AI triage pipeline.

Contains:
- Controllers: FastAPI route handlers
- Dependencies: per-request pipeline wiring
"""

from src.triage.interfaces.controllers import triage_router
from src.triage.interfaces.dependencies import get_embedding_cache, get_triage_pipeline

__all__ = ["triage_router", "get_embedding_cache", "get_triage_pipeline"]
