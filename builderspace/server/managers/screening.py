"""Screening chat between a post founder and an applicant.

There is no separate chat table: each application is a chat, and its only
participants are the applicant and the founder of the post applied to.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from loguru import logger
from sqlalchemy import and_, func, or_, select

from builderspace.server.db.engine import commit_or_rollback
from builderspace.server.db.tables import Application, Hackathon, ScreeningMessage, Startup, User
from builderspace.server.errors import NotFoundError, UnauthorizedError
from builderspace.server.managers.group_chat import UNKNOWN_SENDER
from builderspace.server.managers.teams import get_post, post_owner_id
from builderspace.server.models.api import (
    Participant,
    ScreeningChatResponse,
    ScreeningChatSummary,
    ScreeningMessageResponse,
)
from builderspace.server.models.enums import ApplicationStatus, MessageType, PostType
from builderspace.server.models.events import RealtimeMessage
from builderspace.server.sanitize import validate_message

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from builderspace.server.registry import ConnectionRegistry


async def _participant(db: AsyncSession, user_id: str) -> Participant:
    user = await db.get(User, user_id)
    if user is None:
        return Participant(user_id=user_id, name=UNKNOWN_SENDER)
    return Participant(user_id=user.user_id, name=user.name, avatar_url=user.avatar_url)


async def _chat_view(db: AsyncSession, application: Application) -> ScreeningChatResponse:
    post = await get_post(db, application.post_type, application.post_id)
    return ScreeningChatResponse(
        application_id=application.application_id,
        post_type=application.post_type,
        post_id=application.post_id,
        post_name=post.name,
        status=application.status,
        founder=await _participant(db, post_owner_id(post)),
        applicant=await _participant(db, application.applicant_id),
    )


async def _resolve(db: AsyncSession, application_id: str, user_id: str, *, message: str) -> ScreeningChatResponse:
    application = await db.get(Application, application_id)
    if application is None:
        msg = "Screening chat not found"
        raise NotFoundError(msg)
    chat = await _chat_view(db, application)
    if user_id not in (chat.founder.user_id, chat.applicant.user_id):
        raise UnauthorizedError(message)
    return chat


def _message_view(message: ScreeningMessage, sender_name: str | None) -> ScreeningMessageResponse:
    return ScreeningMessageResponse(
        message_id=message.message_id,
        application_id=message.application_id,
        sender_id=message.sender_id,
        sender_name=sender_name or UNKNOWN_SENDER,
        content=message.content,
        created_at=message.created_at,
    )


async def _message_views(
    db: AsyncSession,
    application_id: str,
    *,
    newest_first: bool = False,
    limit: int | None = None,
) -> list[ScreeningMessageResponse]:
    order = ScreeningMessage.created_at.desc() if newest_first else ScreeningMessage.created_at.asc()
    stmt = (
        select(ScreeningMessage, User.name)
        .outerjoin(User, User.user_id == ScreeningMessage.sender_id)
        .where(ScreeningMessage.application_id == application_id)
        .order_by(order)
    )
    if limit is not None:
        stmt = stmt.limit(limit)
    result = await db.execute(stmt)
    return [_message_view(message, name) for message, name in result.all()]


# -- Chats -------------------------------------------------------------------


async def get_chat(db: AsyncSession, application_id: str, user_id: str) -> ScreeningChatResponse:
    """Chat details, visible to the founder and the applicant only."""
    return await _resolve(
        db, application_id, user_id, message="Access denied: You are not authorized to access this screening chat"
    )


async def list_user_chats(db: AsyncSession, user_id: str) -> list[ScreeningChatSummary]:
    """Chats over accepted applications where the user is applicant or founder, most recent first."""
    owned_startups = select(Startup.startup_id).where(Startup.founder_id == user_id)
    owned_hackathons = select(Hackathon.hackathon_id).where(Hackathon.creator_id == user_id)
    result = await db.execute(
        select(Application)
        .where(
            Application.status == ApplicationStatus.ACCEPTED,
            or_(
                Application.applicant_id == user_id,
                and_(Application.post_type == PostType.STARTUP, Application.post_id.in_(owned_startups)),
                and_(Application.post_type == PostType.HACKATHON, Application.post_id.in_(owned_hackathons)),
            ),
        )
        .order_by(Application.updated_at.desc())
    )

    summaries: list[ScreeningChatSummary] = []
    for application in result.scalars().all():
        chat = await _chat_view(db, application)
        latest = await _message_views(db, application.application_id, newest_first=True, limit=1)
        count = await db.execute(
            select(func.count())
            .select_from(ScreeningMessage)
            .where(ScreeningMessage.application_id == application.application_id)
        )
        summaries.append(
            ScreeningChatSummary(
                **chat.model_dump(),
                last_message=latest[0] if latest else None,
                message_count=count.scalar_one(),
            )
        )
    return summaries


# -- Messages ----------------------------------------------------------------


async def send_message(
    db: AsyncSession,
    registry: ConnectionRegistry,
    application_id: str,
    sender_id: str,
    content: str | None,
) -> ScreeningMessageResponse:
    """Store a sanitized message and deliver it to the other participant."""
    chat = await _resolve(
        db,
        application_id,
        sender_id,
        message="Access denied: You are not authorized to send messages in this screening chat",
    )
    cleaned = validate_message(content)

    sender = await db.get(User, sender_id)
    if sender is None:
        msg = "Sender not found"
        raise NotFoundError(msg)

    message = ScreeningMessage(application_id=application_id, sender_id=sender_id, content=cleaned)
    db.add(message)
    await commit_or_rollback(db)

    view = _message_view(message, sender.name)
    recipient = chat.applicant.user_id if sender_id == chat.founder.user_id else chat.founder.user_id
    await registry.broadcast_to_users(
        [recipient], RealtimeMessage.build(MessageType.SCREENING_MESSAGE, view, sender_id=sender_id)
    )
    logger.debug("Screening message {} on application {} sent to {}", message.message_id, application_id, recipient)
    return view


async def list_messages(db: AsyncSession, application_id: str, user_id: str) -> list[ScreeningMessageResponse]:
    """All messages of the chat, oldest first."""
    await _resolve(
        db,
        application_id,
        user_id,
        message="Access denied: You are not authorized to view messages in this screening chat",
    )
    return await _message_views(db, application_id)
