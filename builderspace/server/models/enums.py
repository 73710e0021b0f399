"""Shared enumerations used across the server."""

from __future__ import annotations

from enum import StrEnum

# -- Posts and teams ---------------------------------------------------------


class PostType(StrEnum):
    STARTUP = "startup"
    HACKATHON = "hackathon"


class MemberRole(StrEnum):
    FOUNDER = "founder"
    MEMBER = "member"


class ApplicationStatus(StrEnum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


# -- State synchronization ---------------------------------------------------


class EntityType(StrEnum):
    """Kind of workspace entity carried by a state update."""

    MESSAGE = "message"
    LINK = "link"
    TASK = "task"
    MEMBER = "member"


class UpdateAction(StrEnum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class ConflictStrategy(StrEnum):
    """How ``handle_concurrent_operation`` reacts to a conflicting write."""

    LAST_WRITE_WINS = "last_write_wins"
    MERGE = "merge"
    REJECT = "reject"


# -- Wire messages -----------------------------------------------------------


class MessageType(StrEnum):
    """Server -> client message types sent over the WebSocket."""

    # Connection
    CONNECT = "connect"
    HEARTBEAT = "heartbeat"
    ERROR = "error"

    # Sync
    FULL_STATE_SYNC = "full_state_sync"

    # Chat
    GROUP_MESSAGE = "group_message"
    SCREENING_MESSAGE = "screening_message"

    # Workspace entities
    LINK_ADDED = "link_added"
    LINK_REMOVED = "link_removed"
    TASK_CREATED = "task_created"
    TASK_UPDATED = "task_updated"
    TASK_DELETED = "task_deleted"
    TEAM_MEMBER_JOINED = "team_member_joined"
    TEAM_MEMBER_REMOVED = "team_member_removed"

    # Presence
    USER_ONLINE = "user_online"
    USER_OFFLINE = "user_offline"


class ClientMessageType(StrEnum):
    """Client -> server frame types."""

    HEARTBEAT = "heartbeat"
    SYNC_REQUEST = "sync_request"
