"""Workspace endpoints (RPC-style).

All write operations use POST; reads use GET.  Every endpoint requires the
caller to be a member of the workspace's team; administration endpoints
require the founder.
"""

from __future__ import annotations

from fastapi import APIRouter, status

from builderspace.server.db.tables import TeamMember, Workspace
from builderspace.server.deps import CurrentUser, DbSession, StateSync
from builderspace.server.managers import workspaces as workspace_manager
from builderspace.server.models.api import (
    MemberDetail,
    MemberInvite,
    TeamMemberResponse,
    WorkspaceResponse,
    WorkspaceSummary,
)
from builderspace.server.models.state import WorkspaceState

router = APIRouter(prefix="/workspaces", tags=["workspaces"])


@router.get("/list", response_model=list[WorkspaceSummary])
async def list_my_workspaces(db: DbSession, user_id: CurrentUser) -> list[WorkspaceSummary]:
    """List the caller's workspaces, newest first."""
    return await workspace_manager.list_user_workspaces(db, user_id)


@router.get("/{workspace_id}/get", response_model=WorkspaceResponse)
async def get_workspace(workspace_id: str, db: DbSession, user_id: CurrentUser) -> Workspace:
    return await workspace_manager.require_member(
        db, workspace_id, user_id, message="Access denied: User is not a team member"
    )


@router.get("/{workspace_id}/state", response_model=WorkspaceState)
async def get_state(workspace_id: str, db: DbSession, user_id: CurrentUser, sync: StateSync) -> WorkspaceState:
    """Return the full workspace snapshot without pushing it over the socket."""
    await workspace_manager.require_member(db, workspace_id, user_id)
    return await sync.get_full_state(db, workspace_id)


@router.post("/{workspace_id}/sync", response_model=WorkspaceState)
async def sync_state(workspace_id: str, db: DbSession, user_id: CurrentUser, sync: StateSync) -> WorkspaceState:
    """Push the full snapshot to the caller's open connections and return it."""
    return await sync.sync_user_state(db, user_id, workspace_id)


@router.get("/{workspace_id}/members", response_model=list[MemberDetail])
async def list_members(workspace_id: str, db: DbSession, user_id: CurrentUser) -> list[MemberDetail]:
    return await workspace_manager.list_members(db, workspace_id, user_id)


@router.post(
    "/{workspace_id}/members/invite",
    response_model=TeamMemberResponse,
    status_code=status.HTTP_201_CREATED,
)
async def invite_member(
    workspace_id: str,
    body: MemberInvite,
    db: DbSession,
    user_id: CurrentUser,
    sync: StateSync,
) -> TeamMember:
    """Add a registered user to the team by email (founder only)."""
    return await workspace_manager.add_member_by_email(db, sync, workspace_id, user_id, body.email)


@router.post("/{workspace_id}/members/{member_user_id}/remove", status_code=status.HTTP_204_NO_CONTENT)
async def remove_member(
    workspace_id: str,
    member_user_id: str,
    db: DbSession,
    user_id: CurrentUser,
    sync: StateSync,
) -> None:
    """Remove a member from the team (founder only; the founder cannot be removed)."""
    await workspace_manager.remove_member(db, sync, workspace_id, user_id, member_user_id)


@router.post("/{workspace_id}/delete", status_code=status.HTTP_204_NO_CONTENT)
async def delete_workspace(workspace_id: str, db: DbSession, user_id: CurrentUser, sync: StateSync) -> None:
    """Delete the workspace and its content (founder only)."""
    await workspace_manager.delete_workspace(db, sync, workspace_id, user_id)
