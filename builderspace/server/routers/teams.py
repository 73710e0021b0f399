"""Team formation endpoints (RPC-style)."""

from __future__ import annotations

from fastapi import APIRouter, status

from builderspace.server.db.tables import TeamMember
from builderspace.server.deps import CurrentUser, DbSession, StateSync
from builderspace.server.managers import teams as team_manager
from builderspace.server.models.api import InviteResult, TeamMemberResponse
from builderspace.server.models.enums import PostType

router = APIRouter(prefix="/teams", tags=["teams"])


@router.post(
    "/applications/{application_id}/invite",
    response_model=InviteResult,
    status_code=status.HTTP_201_CREATED,
)
async def invite_applicant(application_id: str, db: DbSession, user_id: CurrentUser, sync: StateSync) -> InviteResult:
    """Add an accepted applicant to the team, creating the workspace if needed."""
    return await team_manager.invite_from_application(db, sync, application_id, user_id)


@router.get("/{post_type}/{post_id}/members", response_model=list[TeamMemberResponse])
async def list_team_members(post_type: PostType, post_id: str, db: DbSession, user_id: CurrentUser) -> list[TeamMember]:
    """List the team of a startup or hackathon."""
    return await team_manager.list_team_members(db, post_type, post_id, user_id)
