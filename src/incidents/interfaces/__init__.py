"""
Incidents Interfaces Layer
==========================

Contains:
- Controllers: FastAPI route handlers for the incident lifecycle
"""

from src.incidents.interfaces.controllers import incidents_router, get_incident_service

__all__ = ["incidents_router", "get_incident_service"]
