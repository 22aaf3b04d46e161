"""
Realtime WebSocket Endpoint
===========================

Clients connect to /ws/events?token=<bearer token> and receive incident
events. Anything the client sends is ignored.
"""

from typing import Optional

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from src.identity.interfaces import get_credential_service
from src.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()

# Application-defined close code: authentication failed
WS_CLOSE_UNAUTHORIZED = 4001


@router.websocket("/ws/events")
async def event_stream(websocket: WebSocket, token: Optional[str] = Query(None)):
    principal = get_credential_service().decode_principal(token) if token else None
    if principal is None:
        logger.info("Realtime connection rejected", extra={"reason": "unauthorized"})
        await websocket.close(code=WS_CLOSE_UNAUTHORIZED)
        return

    manager = websocket.app.state.realtime
    if not await manager.connect(websocket, principal.user_id, principal.role):
        return

    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        await manager.disconnect(websocket)


realtime_router = router
