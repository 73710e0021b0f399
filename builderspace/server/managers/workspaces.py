"""Workspace (Builder Space) resolution, membership checks and administration.

A workspace belongs to exactly one post (startup or hackathon).  Membership
is not stored on the workspace: a user is a member of a workspace if they
hold a ``team_members`` row for the workspace's post.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from loguru import logger
from sqlalchemy import and_, delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import aliased

from builderspace.server.db.engine import commit_or_rollback
from builderspace.server.db.tables import (
    SharedLink,
    TeamMember,
    User,
    Workspace,
    WorkspaceMessage,
    WorkspaceTask,
)
from builderspace.server.errors import (
    AlreadyMemberError,
    FounderRemovalError,
    NotFoundError,
    UnauthorizedError,
)
from builderspace.server.models.api import MemberDetail, TeamMemberResponse, WorkspaceResponse, WorkspaceSummary
from builderspace.server.models.enums import EntityType, MemberRole, PostType, UpdateAction
from builderspace.server.models.events import MemberRemoved, StateUpdate

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from builderspace.server.sync import StateSyncService

NOT_A_MEMBER = "User is not a team member"


def access_denied(action: str) -> str:
    return f"Access denied: You are not authorized to {action} in this Builder Space"


# -- Lookup ------------------------------------------------------------------


async def get_workspace(db: AsyncSession, workspace_id: str) -> Workspace:
    """Get a workspace by ID.  Raises ``NotFoundError`` if missing."""
    workspace = await db.get(Workspace, workspace_id)
    if workspace is None:
        msg = "Builder Space not found"
        raise NotFoundError(msg)
    return workspace


async def get_workspace_for_post(db: AsyncSession, post_type: PostType | str, post_id: str) -> Workspace | None:
    result = await db.execute(
        select(Workspace).where(Workspace.post_type == post_type, Workspace.post_id == post_id)
    )
    return result.scalar_one_or_none()


async def ensure_workspace(
    db: AsyncSession,
    post_type: PostType | str,
    post_id: str,
    post_name: str,
) -> tuple[Workspace, bool]:
    """Return the post's workspace, creating it on first use.

    Returns ``(workspace, created)``.  Calling this repeatedly for the same
    post always yields the same workspace; if a concurrent caller wins the
    insert race, the unique constraint rejects our row and theirs is returned.
    """
    existing = await get_workspace_for_post(db, post_type, post_id)
    if existing is not None:
        return existing, False

    workspace = Workspace(
        post_type=str(post_type),
        post_id=post_id,
        name=f"{post_name} Workspace",
        description=f"Collaboration workspace for {post_name}",
    )
    db.add(workspace)
    try:
        await commit_or_rollback(db)
    except IntegrityError:
        existing = await get_workspace_for_post(db, post_type, post_id)
        if existing is None:
            raise
        logger.debug("Workspace for {}/{} created concurrently, reusing {}", post_type, post_id, existing.workspace_id)
        return existing, False

    logger.info("Created workspace {} for {}/{}", workspace.workspace_id, post_type, post_id)
    return workspace, True


# -- Membership --------------------------------------------------------------


async def get_membership(db: AsyncSession, user_id: str, post_type: PostType | str, post_id: str) -> TeamMember | None:
    result = await db.execute(
        select(TeamMember).where(
            TeamMember.user_id == user_id,
            TeamMember.post_type == post_type,
            TeamMember.post_id == post_id,
        )
    )
    return result.scalar_one_or_none()


async def is_team_member(db: AsyncSession, user_id: str, post_type: PostType | str, post_id: str) -> bool:
    return await get_membership(db, user_id, post_type, post_id) is not None


async def require_member(
    db: AsyncSession,
    workspace_id: str,
    user_id: str,
    *,
    message: str = NOT_A_MEMBER,
) -> Workspace:
    """Resolve the workspace and check *user_id* belongs to its team.

    Raises ``NotFoundError`` for an unknown workspace, then
    ``UnauthorizedError`` (with *message*) for a non-member.
    """
    workspace = await get_workspace(db, workspace_id)
    if not await is_team_member(db, user_id, workspace.post_type, workspace.post_id):
        raise UnauthorizedError(message)
    return workspace


async def require_founder(db: AsyncSession, workspace_id: str, user_id: str, *, message: str) -> Workspace:
    """Like :func:`require_member` but the caller must hold the founder role."""
    workspace = await get_workspace(db, workspace_id)
    membership = await get_membership(db, user_id, workspace.post_type, workspace.post_id)
    if membership is None or membership.role != MemberRole.FOUNDER:
        raise UnauthorizedError(message)
    return workspace


async def validate_workspace_access(db: AsyncSession, workspace_id: str, user_id: str) -> bool:
    """Non-raising membership check; unknown workspaces count as no access."""
    workspace = await db.get(Workspace, workspace_id)
    if workspace is None:
        return False
    return await is_team_member(db, user_id, workspace.post_type, workspace.post_id)


async def member_rows(db: AsyncSession, workspace: Workspace) -> list[TeamMember]:
    result = await db.execute(
        select(TeamMember)
        .where(TeamMember.post_type == workspace.post_type, TeamMember.post_id == workspace.post_id)
        .order_by(TeamMember.joined_at)
    )
    return list(result.scalars().all())


async def member_ids(db: AsyncSession, workspace_id: str) -> list[str]:
    """User ids of every team member of the workspace's post (empty if unknown)."""
    workspace = await db.get(Workspace, workspace_id)
    if workspace is None:
        return []
    return [member.user_id for member in await member_rows(db, workspace)]


async def teammate_ids(db: AsyncSession, user_id: str) -> list[str]:
    """Users sharing at least one post membership with *user_id* (excluding them)."""
    mine = (
        select(TeamMember.post_type, TeamMember.post_id).where(TeamMember.user_id == user_id).subquery()
    )
    result = await db.execute(
        select(TeamMember.user_id)
        .join(mine, and_(TeamMember.post_type == mine.c.post_type, TeamMember.post_id == mine.c.post_id))
        .where(TeamMember.user_id != user_id)
        .distinct()
    )
    return list(result.scalars().all())


# -- Queries -----------------------------------------------------------------


async def list_user_workspaces(db: AsyncSession, user_id: str) -> list[WorkspaceSummary]:
    """Workspaces the user belongs to, newest first, with member counts and the user's role."""
    counts = (
        select(TeamMember.post_type, TeamMember.post_id, func.count().label("member_count"))
        .group_by(TeamMember.post_type, TeamMember.post_id)
        .subquery()
    )
    mine = aliased(TeamMember)
    result = await db.execute(
        select(Workspace, mine.role, counts.c.member_count)
        .join(mine, and_(mine.post_type == Workspace.post_type, mine.post_id == Workspace.post_id))
        .join(counts, and_(counts.c.post_type == Workspace.post_type, counts.c.post_id == Workspace.post_id))
        .where(mine.user_id == user_id)
        .order_by(Workspace.created_at.desc())
    )
    return [
        WorkspaceSummary(
            **WorkspaceResponse.model_validate(workspace).model_dump(),
            member_count=member_count,
            role=role,
        )
        for workspace, role, member_count in result.all()
    ]


async def list_members(db: AsyncSession, workspace_id: str, viewer_id: str) -> list[MemberDetail]:
    """Team members with profile fields, oldest membership first.  Members only."""
    workspace = await require_member(db, workspace_id, viewer_id, message=access_denied("view members"))
    result = await db.execute(
        select(TeamMember, User)
        .join(User, User.user_id == TeamMember.user_id)
        .where(TeamMember.post_type == workspace.post_type, TeamMember.post_id == workspace.post_id)
        .order_by(TeamMember.joined_at)
    )
    return [
        MemberDetail(
            **TeamMemberResponse.model_validate(member).model_dump(),
            name=user.name,
            email=user.email,
            avatar_url=user.avatar_url,
            is_founder=member.role == MemberRole.FOUNDER,
        )
        for member, user in result.all()
    ]


# -- Administration (founder only) -------------------------------------------


async def add_member_by_email(
    db: AsyncSession,
    sync: StateSyncService,
    workspace_id: str,
    actor_id: str,
    email: str,
) -> TeamMember:
    """Add the user registered under *email* to the workspace's team."""
    workspace = await require_founder(
        db, workspace_id, actor_id, message="Access denied: Only the founder can invite team members"
    )

    result = await db.execute(select(User).where(func.lower(User.email) == email.strip().lower()))
    user = result.scalar_one_or_none()
    if user is None:
        msg = "User not found"
        raise NotFoundError(msg)

    if await is_team_member(db, user.user_id, workspace.post_type, workspace.post_id):
        msg = "User is already a member of this workspace"
        raise AlreadyMemberError(msg)

    member = TeamMember(
        user_id=user.user_id,
        post_type=workspace.post_type,
        post_id=workspace.post_id,
        role=MemberRole.MEMBER,
    )
    db.add(member)
    try:
        await commit_or_rollback(db)
    except IntegrityError:
        msg = "User is already a member of this workspace"
        raise AlreadyMemberError(msg) from None

    logger.info("User {} added to workspace {} by {}", user.user_id, workspace_id, actor_id)
    await sync.broadcast_update(
        db,
        workspace_id,
        StateUpdate(
            entity_type=EntityType.MEMBER,
            action=UpdateAction.CREATE,
            data=TeamMemberResponse.model_validate(member),
        ),
        exclude_user_id=actor_id,
    )
    return member


async def remove_member(
    db: AsyncSession,
    sync: StateSyncService,
    workspace_id: str,
    actor_id: str,
    user_id: str,
) -> None:
    """Remove a non-founder member.  The founder role can never be removed."""
    workspace = await require_founder(
        db, workspace_id, actor_id, message="Access denied: Only the founder can remove members"
    )

    membership = await get_membership(db, user_id, workspace.post_type, workspace.post_id)
    if membership is None:
        msg = "Member not found"
        raise NotFoundError(msg)
    if membership.role == MemberRole.FOUNDER:
        msg = "Cannot remove the founder"
        raise FounderRemovalError(msg)

    await db.delete(membership)
    await commit_or_rollback(db)

    logger.info("User {} removed from workspace {} by {}", user_id, workspace_id, actor_id)
    await sync.broadcast_update(
        db,
        workspace_id,
        StateUpdate(
            entity_type=EntityType.MEMBER,
            action=UpdateAction.DELETE,
            data=MemberRemoved(user_id=user_id, workspace_id=workspace_id),
        ),
        exclude_user_id=actor_id,
        also_notify=[user_id],
    )


async def delete_workspace(db: AsyncSession, sync: StateSyncService, workspace_id: str, actor_id: str) -> None:
    """Delete the workspace with its messages, links and tasks.  Founder only."""
    workspace = await require_founder(
        db, workspace_id, actor_id, message="Access denied: Only the founder can delete this Builder Space"
    )

    for model in (WorkspaceMessage, SharedLink, WorkspaceTask):
        await db.execute(delete(model).where(model.workspace_id == workspace_id))
    await db.delete(workspace)
    await commit_or_rollback(db)

    sync.reset_state_version(workspace_id)
    logger.info("Workspace {} deleted by {}", workspace_id, actor_id)
