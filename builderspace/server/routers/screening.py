"""Screening chat endpoints (RPC-style).

A screening chat is addressed by its application id.
"""

from __future__ import annotations

from fastapi import APIRouter, status

from builderspace.server.deps import CurrentUser, DbSession, LiveRegistry
from builderspace.server.managers import screening
from builderspace.server.models.api import (
    MessageCreate,
    ScreeningChatResponse,
    ScreeningChatSummary,
    ScreeningMessageResponse,
)

router = APIRouter(prefix="/screening-chats", tags=["screening-chats"])


@router.get("/list", response_model=list[ScreeningChatSummary])
async def list_chats(db: DbSession, user_id: CurrentUser) -> list[ScreeningChatSummary]:
    """The caller's chats over accepted applications, most recent first."""
    return await screening.list_user_chats(db, user_id)


@router.get("/{application_id}/get", response_model=ScreeningChatResponse)
async def get_chat(application_id: str, db: DbSession, user_id: CurrentUser) -> ScreeningChatResponse:
    return await screening.get_chat(db, application_id, user_id)


@router.post(
    "/{application_id}/messages/send",
    response_model=ScreeningMessageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def send_message(
    application_id: str,
    body: MessageCreate,
    db: DbSession,
    user_id: CurrentUser,
    registry: LiveRegistry,
) -> ScreeningMessageResponse:
    return await screening.send_message(db, registry, application_id, user_id, body.content)


@router.get("/{application_id}/messages/list", response_model=list[ScreeningMessageResponse])
async def list_messages(application_id: str, db: DbSession, user_id: CurrentUser) -> list[ScreeningMessageResponse]:
    return await screening.list_messages(db, application_id, user_id)
