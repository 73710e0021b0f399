"""Shared link endpoints (RPC-style)."""

from __future__ import annotations

from fastapi import APIRouter, status

from builderspace.server.db.tables import SharedLink
from builderspace.server.deps import CurrentUser, DbSession, StateSync
from builderspace.server.managers import links as link_manager
from builderspace.server.models.api import CountResponse, LinkCreate, SharedLinkResponse

router = APIRouter(prefix="/workspaces/{workspace_id}/links", tags=["links"])


@router.post("/add", response_model=SharedLinkResponse, status_code=status.HTTP_201_CREATED)
async def add_link(
    workspace_id: str,
    body: LinkCreate,
    db: DbSession,
    user_id: CurrentUser,
    sync: StateSync,
) -> SharedLink:
    """Share a link with the team.  The URL is validated and normalized."""
    return await link_manager.add_link(db, sync, workspace_id, user_id, body)


@router.get("/list", response_model=list[SharedLinkResponse])
async def list_links(workspace_id: str, db: DbSession, user_id: CurrentUser) -> list[SharedLink]:
    return await link_manager.list_links(db, workspace_id, user_id)


@router.get("/count", response_model=CountResponse)
async def link_count(workspace_id: str, db: DbSession, user_id: CurrentUser) -> CountResponse:
    return CountResponse(count=await link_manager.link_count(db, workspace_id, user_id))


@router.get("/{link_id}/get", response_model=SharedLinkResponse)
async def get_link(workspace_id: str, link_id: str, db: DbSession, user_id: CurrentUser) -> SharedLink:
    return await link_manager.get_link(db, workspace_id, link_id, user_id)


@router.post("/{link_id}/remove", status_code=status.HTTP_204_NO_CONTENT)
async def remove_link(
    workspace_id: str,
    link_id: str,
    db: DbSession,
    user_id: CurrentUser,
    sync: StateSync,
) -> None:
    """Remove a link (creator only)."""
    await link_manager.remove_link(db, sync, workspace_id, link_id, user_id)
