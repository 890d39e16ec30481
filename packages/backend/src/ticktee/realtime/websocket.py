"""WebSocket endpoint — one long-lived connection per browser tab.

Clients connect to /ws?token=JWT. In development an anonymous connection
is accepted (broadcasts and getProducts work; account-scoped requests
answer with an error frame). Elsewhere a missing or invalid token is
rejected with close code 4001.

Frames from the client are handled one at a time, in arrival order.
Binary frames are logged and dropped; the connection stays open.
"""

from typing import Optional

import structlog
from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from ticktee.auth.jwt import TokenError, account_id_from_token
from ticktee.config import settings
from ticktee.realtime.connections import WebSocketConnection
from ticktee.realtime.gateway import Gateway

logger = structlog.get_logger()
router = APIRouter()


@router.websocket(settings.ws_path)
async def realtime_websocket(websocket: WebSocket):
    token = websocket.query_params.get("token")
    account_id: Optional[int] = None

    if token:
        try:
            account_id = account_id_from_token(token)
        except TokenError:
            await websocket.close(code=4001, reason="Invalid or expired token")
            return
    elif settings.environment != "development":
        await websocket.close(code=4001, reason="Authentication required")
        return

    await websocket.accept()

    gateway: Gateway = websocket.app.state.gateway
    connection_id = await gateway.connect(
        WebSocketConnection(websocket, account_id=account_id)
    )
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            raw = message.get("text")
            if raw is None:
                # Binary frames are not part of the protocol.
                logger.warning("ws.binary_frame_dropped", connection_id=connection_id)
                continue
            await gateway.handle_inbound(connection_id, raw)
    except WebSocketDisconnect:
        pass
    finally:
        gateway.disconnect(connection_id)
