"""
WebSocket router for realtime chat.

Agents authenticate with a bearer token (?token=... or Authorization header);
visitors with ?widget_key=... and an optional ?visitor_id=....
Unauthenticated sockets are closed with code 4001 before accept.
"""

import json

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect
from sqlalchemy.orm import sessionmaker

from chatdesk.core.deps import get_presence_store, get_session_factory
from chatdesk.core.presence import PresenceStore
from chatdesk.core.websocket import manager
from chatdesk.services.chat_gateway import ChatGateway

router = APIRouter(prefix="/ws", tags=["WebSocket"])


def _header_token(websocket: WebSocket) -> str | None:
    scheme, _, token = websocket.headers.get("authorization", "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


@router.websocket("/chat")
async def websocket_chat(
    websocket: WebSocket,
    token: str | None = Query(None),
    widget_key: str | None = Query(None),
    visitor_id: str | None = Query(None),
    presence: PresenceStore = Depends(get_presence_store),
    session_factory: sessionmaker = Depends(get_session_factory),
):
    gateway = ChatGateway(session_factory, presence, manager)
    conn = await gateway.connect(
        websocket,
        token=token or _header_token(websocket),
        widget_key=widget_key,
        visitor_id=visitor_id,
    )
    if conn is None:
        return

    try:
        while True:
            try:
                raw = await websocket.receive_text()
            except WebSocketDisconnect:
                break

            # Bare heartbeat from simple clients
            if raw == "ping":
                await websocket.send_text("pong")
                continue

            try:
                frame = json.loads(raw)
            except json.JSONDecodeError:
                await websocket.send_json(
                    {"event": "ack", "id": None, "data": {"error": "Invalid JSON"}}
                )
                continue
            await websocket.send_json(await gateway.handle(conn, frame))
    finally:
        await gateway.disconnect(conn)
