"""WebSocket endpoint for real-time workspace updates.

Clients connect to ``/ws?user_id=<id>`` (the auth proxy sets the id) and
receive a ``connect`` frame.  After that the server pushes broadcasts as
they happen, and answers two client frames:

- ``{"type": "heartbeat"}`` -> a ``heartbeat`` frame.
- ``{"type": "sync_request", "workspace_id": ...}`` -> a ``full_state_sync``
  frame (or an ``error`` frame if the caller may not sync that workspace).

The caller's teammates receive ``user_online`` when the caller opens their
first connection and ``user_offline`` when the last one closes.
"""

from __future__ import annotations

from fastapi import APIRouter, FastAPI, Query, WebSocket, WebSocketDisconnect, status
from loguru import logger
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError

from builderspace.server.errors import BuilderSpaceError
from builderspace.server.managers import workspaces as workspace_manager
from builderspace.server.models.enums import ClientMessageType, MessageType
from builderspace.server.models.events import (
    ClientMessage,
    ConnectPayload,
    ErrorPayload,
    HeartbeatPayload,
    PresencePayload,
    RealtimeMessage,
)
from builderspace.server.registry import ConnectionRegistry
from builderspace.server.sync import StateSyncService

router = APIRouter(tags=["realtime"])


def _error(code: str, message: str) -> RealtimeMessage:
    return RealtimeMessage.build(MessageType.ERROR, ErrorPayload(code=code, message=message))


async def _announce_presence(app: FastAPI, user_id: str, message_type: MessageType) -> None:
    """Tell the user's teammates that the user came online or went offline."""
    session_factory = app.state.db_session_factory
    if session_factory is None:
        return
    registry: ConnectionRegistry = app.state.registry
    try:
        async with session_factory() as db:
            teammates = await workspace_manager.teammate_ids(db, user_id)
    except SQLAlchemyError:
        logger.opt(exception=True).warning("Realtime: could not resolve teammates of {}", user_id)
        return
    message = RealtimeMessage.build(message_type, PresencePayload(user_id=user_id), sender_id=user_id)
    await registry.broadcast_to_users(teammates, message)


async def _handle_frame(app: FastAPI, user_id: str, raw: str) -> RealtimeMessage | None:
    """Process one client frame and return the direct reply, if any."""
    try:
        frame = ClientMessage.model_validate_json(raw)
    except PydanticValidationError:
        return _error("invalid_message", "Unrecognised or malformed frame")

    if frame.type == ClientMessageType.HEARTBEAT:
        return RealtimeMessage.build(MessageType.HEARTBEAT, HeartbeatPayload())

    session_factory = app.state.db_session_factory
    if session_factory is None:
        return _error("unavailable", "Database not configured")

    sync: StateSyncService = app.state.sync_service
    try:
        async with session_factory() as db:
            # The snapshot is delivered through the registry to every connection of the user.
            await sync.sync_user_state(db, user_id, frame.workspace_id)
    except BuilderSpaceError as exc:
        return _error(exc.code, exc.message)
    return None


@router.websocket("/ws")
async def realtime(websocket: WebSocket, user_id: str | None = Query(None)) -> None:
    if not user_id:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    app: FastAPI = websocket.app
    registry: ConnectionRegistry = app.state.registry

    first_connection = not registry.is_user_online(user_id)
    count = registry.add_connection(user_id, websocket)
    connect = RealtimeMessage.build(MessageType.CONNECT, ConnectPayload(user_id=user_id, connections=count))
    await websocket.send_text(connect.model_dump_json())
    if first_connection:
        await _announce_presence(app, user_id, MessageType.USER_ONLINE)

    try:
        while True:
            raw = await websocket.receive_text()
            reply = await _handle_frame(app, user_id, raw)
            if reply is not None:
                await websocket.send_text(reply.model_dump_json())
    except WebSocketDisconnect:
        logger.debug("Realtime: user {} closed a connection", user_id)
    finally:
        if registry.remove_connection(user_id, websocket):
            await _announce_presence(app, user_id, MessageType.USER_OFFLINE)
