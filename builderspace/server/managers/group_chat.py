"""Workspace group chat: send and read messages."""

from __future__ import annotations

from typing import TYPE_CHECKING

from loguru import logger
from sqlalchemy import func, select

from builderspace.server.db.engine import commit_or_rollback
from builderspace.server.db.tables import User, WorkspaceMessage
from builderspace.server.errors import NotFoundError
from builderspace.server.managers.workspaces import access_denied, require_member
from builderspace.server.models.api import GroupMessageResponse
from builderspace.server.models.enums import EntityType, UpdateAction
from builderspace.server.models.events import StateUpdate
from builderspace.server.sanitize import validate_message

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from builderspace.server.sync import StateSyncService

UNKNOWN_SENDER = "Unknown User"


def _view(message: WorkspaceMessage, sender_name: str | None) -> GroupMessageResponse:
    return GroupMessageResponse(
        message_id=message.message_id,
        workspace_id=message.workspace_id,
        sender_id=message.sender_id,
        sender_name=sender_name or UNKNOWN_SENDER,
        content=message.content,
        created_at=message.created_at,
    )


async def message_views(
    db: AsyncSession,
    workspace_id: str,
    *,
    newest_first: bool = False,
    limit: int | None = None,
) -> list[GroupMessageResponse]:
    """Messages of a workspace with sender names.  No membership check."""
    order = WorkspaceMessage.created_at.desc() if newest_first else WorkspaceMessage.created_at.asc()
    stmt = (
        select(WorkspaceMessage, User.name)
        .outerjoin(User, User.user_id == WorkspaceMessage.sender_id)
        .where(WorkspaceMessage.workspace_id == workspace_id)
        .order_by(order)
    )
    if limit is not None:
        stmt = stmt.limit(limit)
    result = await db.execute(stmt)
    return [_view(message, name) for message, name in result.all()]


async def send_message(
    db: AsyncSession,
    sync: StateSyncService,
    workspace_id: str,
    sender_id: str,
    content: str | None,
) -> GroupMessageResponse:
    """Store a sanitized message and broadcast it to the other members."""
    await require_member(db, workspace_id, sender_id, message=access_denied("send messages"))
    cleaned = validate_message(content)

    sender = await db.get(User, sender_id)
    if sender is None:
        msg = "Sender not found"
        raise NotFoundError(msg)

    message = WorkspaceMessage(workspace_id=workspace_id, sender_id=sender_id, content=cleaned)
    db.add(message)
    await commit_or_rollback(db)
    logger.debug("Group message {} stored in workspace {}", message.message_id, workspace_id)

    view = _view(message, sender.name)
    await sync.broadcast_update(
        db,
        workspace_id,
        StateUpdate(entity_type=EntityType.MESSAGE, action=UpdateAction.CREATE, data=view),
        exclude_user_id=sender_id,
    )
    return view


async def list_messages(db: AsyncSession, workspace_id: str, user_id: str) -> list[GroupMessageResponse]:
    """All messages, oldest first (the last entry is the most recent)."""
    await require_member(db, workspace_id, user_id, message=access_denied("view messages"))
    return await message_views(db, workspace_id)


async def latest_message(db: AsyncSession, workspace_id: str, user_id: str) -> GroupMessageResponse | None:
    await require_member(db, workspace_id, user_id, message=access_denied("view messages"))
    views = await message_views(db, workspace_id, newest_first=True, limit=1)
    return views[0] if views else None


async def message_count(db: AsyncSession, workspace_id: str, user_id: str) -> int:
    await require_member(db, workspace_id, user_id, message=access_denied("view messages"))
    result = await db.execute(
        select(func.count()).select_from(WorkspaceMessage).where(WorkspaceMessage.workspace_id == workspace_id)
    )
    return result.scalar_one()
