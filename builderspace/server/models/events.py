"""Real-time wire messages.

Every frame the server writes to a socket is a :class:`RealtimeMessage`.
The payload schema is fixed per message type (see ``PAYLOAD_SCHEMAS``) and
checked whenever a message is built or parsed, so a frame can never carry a
payload that does not match its ``type``.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from builderspace.server.models.api import (
    GroupMessageResponse,
    ScreeningMessageResponse,
    SharedLinkResponse,
    TaskResponse,
    TeamMemberResponse,
)
from builderspace.server.models.enums import ClientMessageType, EntityType, MessageType, UpdateAction
from builderspace.server.models.state import WorkspaceState


def _utcnow() -> datetime:
    return datetime.now(UTC)


# ---------------------------------------------------------------------------
# Payloads
# ---------------------------------------------------------------------------


class ConnectPayload(BaseModel):
    user_id: str
    connections: int


class HeartbeatPayload(BaseModel):
    pass


class ErrorPayload(BaseModel):
    code: str
    message: str


class PresencePayload(BaseModel):
    user_id: str


class LinkRemoved(BaseModel):
    link_id: str
    workspace_id: str


class TaskDeleted(BaseModel):
    task_id: str
    workspace_id: str


class MemberRemoved(BaseModel):
    user_id: str
    workspace_id: str


# (entity, action) -> (message type, schema of ``data``)
UPDATE_ROUTES: dict[tuple[EntityType, UpdateAction], tuple[MessageType, type[BaseModel]]] = {
    (EntityType.MESSAGE, UpdateAction.CREATE): (MessageType.GROUP_MESSAGE, GroupMessageResponse),
    (EntityType.LINK, UpdateAction.CREATE): (MessageType.LINK_ADDED, SharedLinkResponse),
    (EntityType.LINK, UpdateAction.DELETE): (MessageType.LINK_REMOVED, LinkRemoved),
    (EntityType.TASK, UpdateAction.CREATE): (MessageType.TASK_CREATED, TaskResponse),
    (EntityType.TASK, UpdateAction.UPDATE): (MessageType.TASK_UPDATED, TaskResponse),
    (EntityType.TASK, UpdateAction.DELETE): (MessageType.TASK_DELETED, TaskDeleted),
    (EntityType.MEMBER, UpdateAction.CREATE): (MessageType.TEAM_MEMBER_JOINED, TeamMemberResponse),
    (EntityType.MEMBER, UpdateAction.DELETE): (MessageType.TEAM_MEMBER_REMOVED, MemberRemoved),
}


class StateUpdate(BaseModel):
    """A change to one workspace entity, ready to be versioned and broadcast.

    ``data`` may be given as a model instance; it is stored as its JSON form
    and validated against the schema registered for ``(entity_type, action)``.
    """

    entity_type: EntityType
    action: UpdateAction
    data: dict[str, Any]
    timestamp: datetime = Field(default_factory=_utcnow)

    @field_validator("data", mode="before")
    @classmethod
    def _dump_model(cls, value: Any) -> Any:
        if isinstance(value, BaseModel):
            return value.model_dump(mode="json")
        return value

    @model_validator(mode="after")
    def _check_route(self) -> StateUpdate:
        route = UPDATE_ROUTES.get((self.entity_type, self.action))
        if route is None:
            msg = f"Unsupported state update: {self.entity_type}/{self.action}"
            raise ValueError(msg)
        route[1].model_validate(self.data)
        return self

    @property
    def message_type(self) -> MessageType:
        return UPDATE_ROUTES[(self.entity_type, self.action)][0]


class VersionedUpdate(StateUpdate):
    """Payload of every workspace entity message: the update plus its version."""

    version: int


PAYLOAD_SCHEMAS: dict[MessageType, type[BaseModel]] = {
    MessageType.CONNECT: ConnectPayload,
    MessageType.HEARTBEAT: HeartbeatPayload,
    MessageType.ERROR: ErrorPayload,
    MessageType.FULL_STATE_SYNC: WorkspaceState,
    MessageType.SCREENING_MESSAGE: ScreeningMessageResponse,
    MessageType.USER_ONLINE: PresencePayload,
    MessageType.USER_OFFLINE: PresencePayload,
    **{message_type: VersionedUpdate for message_type, _ in UPDATE_ROUTES.values()},
}


# ---------------------------------------------------------------------------
# Envelopes
# ---------------------------------------------------------------------------


class RealtimeMessage(BaseModel):
    """Wire-format envelope for server -> client frames."""

    type: MessageType
    payload: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=_utcnow)
    sender_id: str | None = None

    @model_validator(mode="after")
    def _check_payload(self) -> RealtimeMessage:
        PAYLOAD_SCHEMAS[self.type].model_validate(self.payload)
        return self

    @classmethod
    def build(cls, message_type: MessageType, payload: BaseModel, *, sender_id: str | None = None) -> RealtimeMessage:
        """Wrap *payload* in an envelope, checking it is the right schema for *message_type*."""
        schema = PAYLOAD_SCHEMAS[message_type]
        if not isinstance(payload, schema):
            msg = f"{message_type} expects {schema.__name__}, got {type(payload).__name__}"
            raise TypeError(msg)
        return cls(type=message_type, payload=payload.model_dump(mode="json"), sender_id=sender_id)


class ClientMessage(BaseModel):
    """Frame received from a client over the WebSocket."""

    type: ClientMessageType
    workspace_id: str | None = None

    @model_validator(mode="after")
    def _check_workspace(self) -> ClientMessage:
        if self.type == ClientMessageType.SYNC_REQUEST and not self.workspace_id:
            msg = "sync_request requires workspace_id"
            raise ValueError(msg)
        return self
