"""Data models for the BuilderSpace server."""

from builderspace.server.models.api import (
    GroupMessageResponse,
    InviteResult,
    MemberDetail,
    PostCreated,
    PostResponse,
    ScreeningChatResponse,
    ScreeningMessageResponse,
    SharedLinkResponse,
    TaskResponse,
    TeamMemberResponse,
    WorkspaceResponse,
)
from builderspace.server.models.enums import (
    ConflictStrategy,
    EntityType,
    MemberRole,
    MessageType,
    PostType,
    UpdateAction,
)
from builderspace.server.models.events import ClientMessage, RealtimeMessage, StateUpdate, VersionedUpdate
from builderspace.server.models.state import WorkspaceState

__all__ = [
    # Events
    "ClientMessage",
    # Enums
    "ConflictStrategy",
    "EntityType",
    # API schemas
    "GroupMessageResponse",
    "InviteResult",
    "MemberDetail",
    "MemberRole",
    "MessageType",
    "PostCreated",
    "PostResponse",
    "PostType",
    "RealtimeMessage",
    "ScreeningChatResponse",
    "ScreeningMessageResponse",
    "SharedLinkResponse",
    "StateUpdate",
    "TaskResponse",
    "TeamMemberResponse",
    "UpdateAction",
    "VersionedUpdate",
    "WorkspaceResponse",
    # State
    "WorkspaceState",
]
