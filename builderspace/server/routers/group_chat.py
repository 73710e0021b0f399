"""Workspace group chat endpoints (RPC-style)."""

from __future__ import annotations

from fastapi import APIRouter, status

from builderspace.server.deps import CurrentUser, DbSession, StateSync
from builderspace.server.managers import group_chat
from builderspace.server.models.api import CountResponse, GroupMessageResponse, MessageCreate

router = APIRouter(prefix="/workspaces/{workspace_id}/messages", tags=["group-chat"])


@router.post("/send", response_model=GroupMessageResponse, status_code=status.HTTP_201_CREATED)
async def send_message(
    workspace_id: str,
    body: MessageCreate,
    db: DbSession,
    user_id: CurrentUser,
    sync: StateSync,
) -> GroupMessageResponse:
    return await group_chat.send_message(db, sync, workspace_id, user_id, body.content)


@router.get("/list", response_model=list[GroupMessageResponse])
async def list_messages(workspace_id: str, db: DbSession, user_id: CurrentUser) -> list[GroupMessageResponse]:
    """All messages of the workspace, oldest first."""
    return await group_chat.list_messages(db, workspace_id, user_id)


@router.get("/latest", response_model=GroupMessageResponse | None)
async def latest_message(workspace_id: str, db: DbSession, user_id: CurrentUser) -> GroupMessageResponse | None:
    return await group_chat.latest_message(db, workspace_id, user_id)


@router.get("/count", response_model=CountResponse)
async def message_count(workspace_id: str, db: DbSession, user_id: CurrentUser) -> CountResponse:
    return CountResponse(count=await group_chat.message_count(db, workspace_id, user_id))
