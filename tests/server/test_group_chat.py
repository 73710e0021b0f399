"""Tests for workspace group chat."""

from __future__ import annotations

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from builderspace.server.errors import NotFoundError, UnauthorizedError, ValidationError
from builderspace.server.managers import group_chat
from builderspace.server.sanitize import MAX_MESSAGE_LENGTH
from builderspace.server.sync import StateSyncService
from tests.server.conftest import FakeConnection, Team


async def test_member_message_reaches_the_team(
    db_session: AsyncSession,
    sync: StateSyncService,
    team: Team,
    online: dict[str, FakeConnection],
) -> None:
    ws = team.workspace_id
    await group_chat.send_message(db_session, sync, ws, team.founder.user_id, "Welcome aboard")
    sent = await group_chat.send_message(db_session, sync, ws, team.member.user_id, "Hello, thanks for applying!")

    assert sent.sender_name == "Bob"

    history = await group_chat.list_messages(db_session, ws, team.founder.user_id)
    assert [m.content for m in history] == ["Welcome aboard", "Hello, thanks for applying!"]
    assert history[-1].sender_name == "Bob"

    latest = await group_chat.latest_message(db_session, ws, team.founder.user_id)
    assert latest is not None
    assert latest.message_id == sent.message_id
    assert await group_chat.message_count(db_session, ws, team.member.user_id) == 2

    # Each message goes to every other member, never back to its sender or to outsiders.
    assert online["Alice"].types == ["group_message"]
    assert online["Bob"].types == ["group_message"]
    assert online["Mallory"].frames == []

    frame = online["Alice"].frames[0]
    assert frame["sender_id"] == team.member.user_id
    assert frame["payload"]["entity_type"] == "message"
    assert frame["payload"]["action"] == "create"
    assert frame["payload"]["data"]["content"] == "Hello, thanks for applying!"
    assert frame["payload"]["version"] == 2


async def test_message_is_sanitized(db_session: AsyncSession, sync: StateSyncService, team: Team) -> None:
    sent = await group_chat.send_message(
        db_session, sync, team.workspace_id, team.member.user_id, "  <script>steal()</script><b>Demo</b> at 5  "
    )
    assert sent.content == "Demo at 5"


async def test_message_length_boundary(db_session: AsyncSession, sync: StateSyncService, team: Team) -> None:
    ws, bob = team.workspace_id, team.member.user_id
    sent = await group_chat.send_message(db_session, sync, ws, bob, "m" * MAX_MESSAGE_LENGTH)
    assert len(sent.content) == MAX_MESSAGE_LENGTH

    with pytest.raises(ValidationError, match="5000 characters"):
        await group_chat.send_message(db_session, sync, ws, bob, "m" * (MAX_MESSAGE_LENGTH + 1))
    with pytest.raises(ValidationError, match="cannot be empty"):
        await group_chat.send_message(db_session, sync, ws, bob, "   ")


async def test_non_members_are_locked_out(db_session: AsyncSession, sync: StateSyncService, team: Team) -> None:
    ws, mallory = team.workspace_id, team.outsider.user_id

    with pytest.raises(UnauthorizedError, match="not authorized to send messages"):
        await group_chat.send_message(db_session, sync, ws, mallory, "let me in")
    with pytest.raises(UnauthorizedError, match="not authorized to view messages"):
        await group_chat.list_messages(db_session, ws, mallory)
    with pytest.raises(UnauthorizedError):
        await group_chat.latest_message(db_session, ws, mallory)
    with pytest.raises(UnauthorizedError):
        await group_chat.message_count(db_session, ws, mallory)


async def test_unknown_workspace(db_session: AsyncSession, sync: StateSyncService, team: Team) -> None:
    with pytest.raises(NotFoundError, match="Builder Space not found"):
        await group_chat.send_message(db_session, sync, "missing", team.member.user_id, "hi")


async def test_empty_history(db_session: AsyncSession, team: Team) -> None:
    assert await group_chat.list_messages(db_session, team.workspace_id, team.member.user_id) == []
    assert await group_chat.latest_message(db_session, team.workspace_id, team.member.user_id) is None
    assert await group_chat.message_count(db_session, team.workspace_id, team.member.user_id) == 0
