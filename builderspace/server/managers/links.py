"""Shared links: validated URLs pinned to a workspace."""

from __future__ import annotations

from typing import TYPE_CHECKING

from loguru import logger
from sqlalchemy import func, select

from builderspace.server.db.engine import commit_or_rollback
from builderspace.server.db.tables import SharedLink
from builderspace.server.errors import NotFoundError, UnauthorizedError, ValidationError
from builderspace.server.managers.workspaces import access_denied, require_member
from builderspace.server.models.api import LinkCreate, SharedLinkResponse
from builderspace.server.models.enums import EntityType, UpdateAction
from builderspace.server.models.events import LinkRemoved, StateUpdate
from builderspace.server.sanitize import MAX_LINK_DESCRIPTION_LENGTH, validate_optional, validate_title
from builderspace.server.url_validation import validate_url

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from builderspace.server.sync import StateSyncService


async def link_rows(db: AsyncSession, workspace_id: str, *, newest_first: bool = False) -> list[SharedLink]:
    order = SharedLink.created_at.desc() if newest_first else SharedLink.created_at.asc()
    result = await db.execute(select(SharedLink).where(SharedLink.workspace_id == workspace_id).order_by(order))
    return list(result.scalars().all())


async def add_link(
    db: AsyncSession,
    sync: StateSyncService,
    workspace_id: str,
    user_id: str,
    body: LinkCreate,
) -> SharedLink:
    """Validate and store a link, then broadcast ``link_added``."""
    await require_member(db, workspace_id, user_id, message=access_denied("add links"))

    title = validate_title(body.title)
    description = validate_optional(body.description, field="Description", max_length=MAX_LINK_DESCRIPTION_LENGTH)
    checked = validate_url(body.url)
    if not checked.is_valid or checked.sanitized_url is None:
        raise ValidationError(checked.error or "Invalid URL")
    url = checked.sanitized_url

    async def _insert() -> SharedLink:
        link = SharedLink(workspace_id=workspace_id, creator_id=user_id, title=title, url=url, description=description)
        db.add(link)
        await commit_or_rollback(db)
        return link

    link = await sync.handle_concurrent_operation(workspace_id, _insert)
    logger.debug("Link {} added to workspace {}", link.link_id, workspace_id)

    await sync.broadcast_update(
        db,
        workspace_id,
        StateUpdate(
            entity_type=EntityType.LINK,
            action=UpdateAction.CREATE,
            data=SharedLinkResponse.model_validate(link),
        ),
        exclude_user_id=user_id,
    )
    return link


async def _get_link(db: AsyncSession, workspace_id: str, link_id: str) -> SharedLink:
    link = await db.get(SharedLink, link_id)
    if link is None or link.workspace_id != workspace_id:
        msg = "Link not found"
        raise NotFoundError(msg)
    return link


async def remove_link(
    db: AsyncSession,
    sync: StateSyncService,
    workspace_id: str,
    link_id: str,
    user_id: str,
) -> None:
    """Delete a link.  Only its creator may, and only while still a member."""
    await require_member(db, workspace_id, user_id, message=access_denied("remove links"))
    link = await _get_link(db, workspace_id, link_id)
    if link.creator_id != user_id:
        msg = "Access denied: Only the link creator can remove this link"
        raise UnauthorizedError(msg)

    async def _delete() -> None:
        await db.delete(link)
        await commit_or_rollback(db)

    await sync.handle_concurrent_operation(workspace_id, _delete)
    logger.debug("Link {} removed from workspace {}", link_id, workspace_id)

    await sync.broadcast_update(
        db,
        workspace_id,
        StateUpdate(
            entity_type=EntityType.LINK,
            action=UpdateAction.DELETE,
            data=LinkRemoved(link_id=link_id, workspace_id=workspace_id),
        ),
        exclude_user_id=user_id,
    )


async def list_links(db: AsyncSession, workspace_id: str, user_id: str) -> list[SharedLink]:
    """All links of the workspace, oldest first."""
    await require_member(db, workspace_id, user_id, message=access_denied("view links"))
    return await link_rows(db, workspace_id)


async def get_link(db: AsyncSession, workspace_id: str, link_id: str, user_id: str) -> SharedLink:
    await require_member(db, workspace_id, user_id, message=access_denied("view links"))
    return await _get_link(db, workspace_id, link_id)


async def link_count(db: AsyncSession, workspace_id: str, user_id: str) -> int:
    await require_member(db, workspace_id, user_id, message=access_denied("view links"))
    result = await db.execute(
        select(func.count()).select_from(SharedLink).where(SharedLink.workspace_id == workspace_id)
    )
    return result.scalar_one()
