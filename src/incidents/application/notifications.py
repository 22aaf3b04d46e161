"""
Incident Notifications
======================

Publishes incident events on the realtime channel after a commit.

Employees receive payloads with internal comments removed, and never
receive internal comment events. Publishing failures are logged and never
propagate to the request.
"""

from typing import Optional

from src.config import RealtimeEvent, Role
from src.identity.domain import Principal
from src.incidents.application.dto import CommentResponse, IncidentResponse
from src.incidents.domain import Comment, Incident
from src.infrastructure.realtime import ConnectionManager
from src.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

# Any non-privileged viewer sees the same redacted incident
_EMPLOYEE_VIEW = Principal(user_id="", role=Role.EMPLOYEE, name="", email="")


def _payloads(incident: Incident):
    full = IncidentResponse.from_domain(incident).model_dump(by_alias=True, mode="json")
    redacted = IncidentResponse.from_domain(incident, _EMPLOYEE_VIEW).model_dump(
        by_alias=True, mode="json"
    )
    return full, redacted


class IncidentNotifier:
    """Thin publisher over the connection manager."""

    def __init__(self, manager: Optional[ConnectionManager]):
        self._manager = manager

    async def _publish(self, event: str, incident: Incident) -> None:
        if self._manager is None:
            return
        try:
            full, redacted = _payloads(incident)
            await self._manager.broadcast(event, full, employee_data=redacted)
        except Exception as e:
            logger.warning(
                "Realtime publish failed",
                extra={"event": event, "incident_id": incident.id, "error": str(e)}
            )

    async def incident_created(self, incident: Incident) -> None:
        await self._publish(RealtimeEvent.INCIDENT_CREATED, incident)

    async def incident_updated(self, incident: Incident) -> None:
        await self._publish(RealtimeEvent.INCIDENT_UPDATED, incident)

    async def incident_assigned(self, incident: Incident) -> None:
        await self._publish(RealtimeEvent.INCIDENT_ASSIGNED, incident)

    async def comment_added(self, incident: Incident, comment: Comment) -> None:
        if self._manager is None:
            return
        try:
            data = {
                "incidentId": incident.id,
                "comment": CommentResponse.from_domain(comment).model_dump(by_alias=True, mode="json"),
            }
            await self._manager.broadcast(
                RealtimeEvent.COMMENT_ADDED,
                data,
                privileged_only=comment.is_internal
            )
        except Exception as e:
            logger.warning(
                "Realtime publish failed",
                extra={"event": RealtimeEvent.COMMENT_ADDED, "incident_id": incident.id, "error": str(e)}
            )
