"""Realtime chat endpoint: /ws/chat?token=<access token>.

The token is resolved to an identity once, at the handshake. Failed auth
closes the socket with 4401. Frames are handled by the ChatProtocol on
app.state; on disconnect the session leaves every room and presence.
"""
import json
import logging

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from src.hs_chat.realtime.hub import ConnectionHub
from src.hs_chat.realtime.protocol import ChatProtocol
from src.hs_common.database import session_scope
from src.hs_common.errors import InvalidCredentialsError, InvalidPayloadError, MissingIdentityError
from src.hs_common.response import ws_error_frame
from src.hs_gateway.auth.dependencies import resolve_identity

logger = logging.getLogger("hs.realtime")

router = APIRouter(tags=["realtime"])

WS_CLOSE_UNAUTHORIZED = 4401
WS_CLOSE_UNAVAILABLE = 1013


@router.websocket("/ws/chat")
async def chat_socket(websocket: WebSocket, token: str | None = Query(default=None)) -> None:
    hub: ConnectionHub | None = getattr(websocket.app.state, "hub", None)
    protocol: ChatProtocol | None = getattr(websocket.app.state, "chat_protocol", None)

    await websocket.accept()
    if hub is None or protocol is None:
        await websocket.close(code=WS_CLOSE_UNAVAILABLE)
        return

    try:
        if not token:
            raise InvalidCredentialsError()
        async with session_scope() as db:
            identity = await resolve_identity(token, db)
    except (InvalidCredentialsError, MissingIdentityError) as e:
        logger.info("Rejected realtime handshake: %s", e.message)
        await websocket.send_json(ws_error_frame(e))
        await websocket.close(code=WS_CLOSE_UNAUTHORIZED)
        return

    session = await hub.connect(websocket, identity)
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                frame = json.loads(raw)
            except ValueError:
                await websocket.send_json(ws_error_frame(InvalidPayloadError("frame is not JSON")))
                continue
            await protocol.handle_frame(session, frame)
    except WebSocketDisconnect:
        pass
    finally:
        await hub.disconnect(session.id)
