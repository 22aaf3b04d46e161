"""
Realtime Notification Channel
=============================

WebSocket broadcast of incident events.

Each client gets a bounded outbound queue drained by its own writer task;
a client whose queue is full is disconnected instead of slowing down the
broadcaster. Delivery is best-effort and at-most-once.

Event envelope:
    {"event": "incident:updated", "data": {...}, "timestamp": "ISO 8601"}
"""

import asyncio
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import WebSocket

from src.config import Role
from src.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


@dataclass
class ClientConnection:
    """An accepted WebSocket and the identity it authenticated with."""
    websocket: WebSocket
    user_id: str
    role: str
    queue: asyncio.Queue
    writer: Optional[asyncio.Task] = None

    @property
    def is_privileged(self) -> bool:
        return self.role in (Role.RESPONDER, Role.ADMIN)


class ConnectionManager:
    """Manages active WebSocket connections with backpressure."""

    def __init__(self, max_connections: int = 100, queue_size: int = 50):
        self._connections: Dict[WebSocket, ClientConnection] = {}
        self._max_connections = max_connections
        self._queue_size = queue_size

    async def connect(self, websocket: WebSocket, user_id: str, role: str) -> bool:
        """Accept connection if under limit. Returns False if rejected."""
        if len(self._connections) >= self._max_connections:
            await websocket.close(code=1013)  # Try Again Later
            logger.warning(
                "Realtime connection rejected",
                extra={"reason": "max_connections", "total": len(self._connections)}
            )
            return False

        await websocket.accept()
        client = ClientConnection(
            websocket=websocket,
            user_id=user_id,
            role=role,
            queue=asyncio.Queue(maxsize=self._queue_size)
        )
        client.writer = asyncio.create_task(self._writer(client))
        self._connections[websocket] = client

        logger.info(
            "Realtime client connected",
            extra={"user_id": user_id, "role": role, "total": len(self._connections)}
        )
        return True

    async def disconnect(self, websocket: WebSocket) -> None:
        """Remove connection and cancel its writer task."""
        client = self._connections.pop(websocket, None)
        if client is None:
            return

        if client.writer and not client.writer.done():
            client.writer.cancel()
        try:
            await websocket.close()
        except Exception as e:
            logger.debug("Realtime close failed", extra={"error": str(e)})

        logger.info(
            "Realtime client disconnected",
            extra={"user_id": client.user_id, "total": len(self._connections)}
        )

    async def broadcast(
        self,
        event: str,
        data: Any,
        employee_data: Any = None,
        privileged_only: bool = False
    ) -> int:
        """
        Enqueue an event for every connected client.

        Args:
            event: Event name
            data: Payload for responders and admins
            employee_data: Payload for employees (defaults to `data`)
            privileged_only: Skip employee connections entirely

        Returns:
            Number of clients the event was queued for
        """
        timestamp = datetime.now(timezone.utc).isoformat()
        full_text = json.dumps({"event": event, "data": data, "timestamp": timestamp}, default=str)
        employee_text = full_text
        if employee_data is not None:
            employee_text = json.dumps(
                {"event": event, "data": employee_data, "timestamp": timestamp},
                default=str
            )

        delivered = 0
        disconnected = []
        for ws, client in list(self._connections.items()):
            if client.is_privileged:
                text = full_text
            elif privileged_only:
                continue
            else:
                text = employee_text

            try:
                client.queue.put_nowait(text)
                delivered += 1
            except asyncio.QueueFull:
                # Client can't keep up
                disconnected.append(ws)
                logger.warning(
                    "Realtime backpressure disconnect",
                    extra={"user_id": client.user_id}
                )

        for ws in disconnected:
            await self.disconnect(ws)

        logger.debug("Realtime event queued", extra={"event": event, "clients": delivered})
        return delivered

    async def close_all(self) -> None:
        """Close all connections gracefully."""
        for ws in list(self._connections.keys()):
            await self.disconnect(ws)

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    async def _writer(self, client: ClientConnection) -> None:
        """Per-connection writer coroutine that drains the queue."""
        try:
            while True:
                message = await client.queue.get()
                await client.websocket.send_text(message)
        except asyncio.CancelledError:
            return
        except Exception as e:
            logger.debug("Realtime writer stopped", extra={"error": str(e)})
            self._connections.pop(client.websocket, None)


__all__ = ["ClientConnection", "ConnectionManager"]
