"""Posts, applications and team formation.

Creating a post makes its owner the founder and creates the post's
workspace.  Inviting an accepted applicant adds them as a member and
creates the workspace if the post does not have one yet.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from loguru import logger
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from builderspace.server.db.engine import commit_or_rollback
from builderspace.server.db.tables import Application, Hackathon, Startup, TeamMember, User
from builderspace.server.errors import AlreadyMemberError, NotFoundError, UnauthorizedError, ValidationError
from builderspace.server.managers.workspaces import ensure_workspace, is_team_member
from builderspace.server.models.api import (
    InviteResult,
    PostCreate,
    PostResponse,
    TeamMemberResponse,
    WorkspaceResponse,
)
from builderspace.server.models.enums import ApplicationStatus, EntityType, MemberRole, PostType, UpdateAction
from builderspace.server.models.events import StateUpdate

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from builderspace.server.db.tables import Workspace
    from builderspace.server.sync import StateSyncService

Post = Startup | Hackathon


# -- Posts -------------------------------------------------------------------


def post_id_of(post: Post) -> str:
    return post.startup_id if isinstance(post, Startup) else post.hackathon_id


def post_owner_id(post: Post) -> str:
    """The founder of a startup or the creator of a hackathon."""
    return post.founder_id if isinstance(post, Startup) else post.creator_id


def post_view(post: Post) -> PostResponse:
    return PostResponse(
        post_type=PostType.STARTUP if isinstance(post, Startup) else PostType.HACKATHON,
        post_id=post_id_of(post),
        owner_id=post_owner_id(post),
        name=post.name,
        description=post.description,
        created_at=post.created_at,
    )


async def get_post(db: AsyncSession, post_type: PostType | str, post_id: str) -> Post:
    """Get a startup or hackathon.  Raises ``NotFoundError`` if missing."""
    post: Post | None
    if post_type == PostType.STARTUP:
        post = await db.get(Startup, post_id)
    elif post_type == PostType.HACKATHON:
        post = await db.get(Hackathon, post_id)
    else:
        msg = f"Unknown post type: {post_type}"
        raise ValidationError(msg)
    if post is None:
        msg = f"{PostType(post_type).capitalize()} not found"
        raise NotFoundError(msg)
    return post


async def create_post(
    db: AsyncSession,
    post_type: PostType,
    owner_id: str,
    body: PostCreate,
) -> tuple[Post, Workspace]:
    """Create a post, register its owner as founder and create its workspace."""
    if await db.get(User, owner_id) is None:
        msg = "User not found"
        raise NotFoundError(msg)

    post: Post
    if post_type == PostType.STARTUP:
        post = Startup(founder_id=owner_id, name=body.name, description=body.description)
    else:
        post = Hackathon(creator_id=owner_id, name=body.name, description=body.description)
    db.add(post)
    await db.flush()

    db.add(TeamMember(user_id=owner_id, post_type=post_type, post_id=post_id_of(post), role=MemberRole.FOUNDER))
    await commit_or_rollback(db)
    logger.info("{} {} created by {}", post_type, post_id_of(post), owner_id)

    workspace, _ = await ensure_workspace(db, post_type, post_id_of(post), post.name)
    return post, workspace


# -- Applications ------------------------------------------------------------


async def get_application(db: AsyncSession, application_id: str) -> Application:
    application = await db.get(Application, application_id)
    if application is None:
        msg = "Application not found"
        raise NotFoundError(msg)
    return application


async def invite_from_application(
    db: AsyncSession,
    sync: StateSyncService,
    application_id: str,
    actor_id: str,
) -> InviteResult:
    """Turn an accepted applicant into a team member of the post.

    Checks, in order: the application exists, it was accepted, the caller
    founded the post, and the applicant is not already on the team.
    """
    application = await get_application(db, application_id)
    if application.status != ApplicationStatus.ACCEPTED:
        msg = "Application must be accepted before inviting to Builder Space"
        raise ValidationError(msg)

    post = await get_post(db, application.post_type, application.post_id)
    if post_owner_id(post) != actor_id:
        msg = "Access denied: Only the founder can invite team members"
        raise UnauthorizedError(msg)

    if await is_team_member(db, application.applicant_id, application.post_type, application.post_id):
        msg = "User is already a team member"
        raise AlreadyMemberError(msg)

    member = TeamMember(
        user_id=application.applicant_id,
        post_type=application.post_type,
        post_id=application.post_id,
        role=MemberRole.MEMBER,
    )
    db.add(member)
    try:
        await commit_or_rollback(db)
    except IntegrityError:
        msg = "User is already a team member"
        raise AlreadyMemberError(msg) from None

    workspace, created = await ensure_workspace(db, application.post_type, application.post_id, post.name)
    logger.info(
        "Applicant {} joined {}/{} (workspace {}, created={})",
        application.applicant_id,
        application.post_type,
        application.post_id,
        workspace.workspace_id,
        created,
    )

    member_view = TeamMemberResponse.model_validate(member)
    await sync.broadcast_update(
        db,
        workspace.workspace_id,
        StateUpdate(entity_type=EntityType.MEMBER, action=UpdateAction.CREATE, data=member_view),
        exclude_user_id=actor_id,
    )
    return InviteResult(
        member=member_view,
        workspace=WorkspaceResponse.model_validate(workspace),
        workspace_created=created,
    )


# -- Team --------------------------------------------------------------------


async def list_team_members(
    db: AsyncSession,
    post_type: PostType | str,
    post_id: str,
    viewer_id: str,
) -> list[TeamMember]:
    """Members of a post's team, oldest first.  Visible to members only."""
    await get_post(db, post_type, post_id)
    if not await is_team_member(db, viewer_id, post_type, post_id):
        msg = "Access denied: User is not a team member"
        raise UnauthorizedError(msg)
    result = await db.execute(
        select(TeamMember)
        .where(TeamMember.post_type == post_type, TeamMember.post_id == post_id)
        .order_by(TeamMember.joined_at)
    )
    return list(result.scalars().all())
