"""Unit tests for the in-process connection registry."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

from sqlalchemy.ext.asyncio import AsyncSession

from builderspace.server.models.enums import MessageType
from builderspace.server.models.events import HeartbeatPayload, PresencePayload, RealtimeMessage
from builderspace.server.registry import ConnectionRegistry
from tests.server.conftest import FakeConnection, Team


def _presence(user_id: str = "u-1") -> RealtimeMessage:
    return RealtimeMessage.build(MessageType.USER_ONLINE, PresencePayload(user_id=user_id))


class _SlowConnection(FakeConnection):
    async def send_text(self, data: str) -> None:
        await asyncio.sleep(10)


# ---------------------------------------------------------------------------
# Bookkeeping
# ---------------------------------------------------------------------------


def test_add_and_remove_connections(registry: ConnectionRegistry) -> None:
    tab1, tab2 = FakeConnection(), FakeConnection()

    assert registry.add_connection("u-1", tab1) == 1
    assert registry.add_connection("u-1", tab2) == 2
    assert registry.add_connection("u-1", tab2) == 2  # same socket twice is one connection
    assert registry.is_user_online("u-1")
    assert registry.connection_count("u-1") == 2
    assert registry.total_connections == 2

    assert registry.remove_connection("u-1", tab1) is False
    assert registry.is_user_online("u-1")
    assert registry.remove_connection("u-1", tab2) is True
    assert not registry.is_user_online("u-1")
    assert registry.online_users() == []


def test_remove_is_idempotent(registry: ConnectionRegistry) -> None:
    tab = FakeConnection()
    registry.add_connection("u-1", tab)
    registry.add_connection("u-1", FakeConnection())

    assert registry.remove_connection("u-1", FakeConnection()) is False  # unknown socket: no-op
    assert registry.connection_count("u-1") == 2
    assert registry.remove_connection("nobody", tab) is True


# ---------------------------------------------------------------------------
# Delivery
# ---------------------------------------------------------------------------


async def test_send_to_user_reaches_every_tab(registry: ConnectionRegistry) -> None:
    tab1, tab2 = FakeConnection(), FakeConnection()
    registry.add_connection("u-1", tab1)
    registry.add_connection("u-1", tab2)

    assert await registry.send_to_user("u-1", _presence()) is True
    assert tab1.types == ["user_online"]
    assert tab2.types == ["user_online"]
    assert tab1.frames[0]["payload"] == {"user_id": "u-1"}


async def test_send_to_offline_user_is_not_an_error(registry: ConnectionRegistry) -> None:
    assert await registry.send_to_user("ghost", _presence()) is False


async def test_failed_write_drops_only_that_connection(registry: ConnectionRegistry) -> None:
    healthy, broken = FakeConnection(), FakeConnection(fail=True)
    registry.add_connection("u-1", healthy)
    registry.add_connection("u-1", broken)

    assert await registry.send_to_user("u-1", _presence()) is True
    assert healthy.types == ["user_online"]
    assert registry.connection_count("u-1") == 1

    # Later messages still reach the healthy socket.
    await registry.send_to_user("u-1", RealtimeMessage.build(MessageType.HEARTBEAT, HeartbeatPayload()))
    assert healthy.types == ["user_online", "heartbeat"]


async def test_timed_out_write_drops_connection() -> None:
    registry = ConnectionRegistry(send_timeout=0.01)
    registry.add_connection("u-1", _SlowConnection())

    assert await registry.send_to_user("u-1", _presence()) is False
    assert not registry.is_user_online("u-1")


async def test_deliver_local_counts_reached_users(registry: ConnectionRegistry) -> None:
    registry.add_connection("u-1", FakeConnection())
    registry.add_connection("u-2", FakeConnection(fail=True))

    data = _presence().model_dump_json()
    assert await registry.deliver_local(["u-1", "u-2", "u-3", "u-1"], data) == 1


async def test_broadcast_prefers_backplane(registry: ConnectionRegistry) -> None:
    tab = FakeConnection()
    registry.add_connection("u-1", tab)
    backplane = AsyncMock()
    backplane.publish.return_value = True
    registry.attach_backplane(backplane)

    await registry.broadcast_to_users(["u-1", "u-1"], _presence())

    backplane.publish.assert_awaited_once()
    user_ids, _data = backplane.publish.await_args.args
    assert user_ids == ["u-1"]
    assert tab.frames == []  # the backplane listener delivers, not the publisher


async def test_broadcast_falls_back_when_publish_fails(registry: ConnectionRegistry) -> None:
    tab = FakeConnection()
    registry.add_connection("u-1", tab)
    backplane = AsyncMock()
    backplane.publish.return_value = False
    registry.attach_backplane(backplane)

    await registry.broadcast_to_users(["u-1"], _presence())
    assert tab.types == ["user_online"]


async def test_broadcast_group_message_targets_members(
    db_session: AsyncSession,
    registry: ConnectionRegistry,
    team: Team,
    online: dict[str, FakeConnection],
) -> None:
    sent = await registry.broadcast_group_message(
        db_session, team.workspace_id, _presence(team.founder.user_id), exclude_user_id=team.founder.user_id
    )

    assert sent == 1
    assert online["Bob"].types == ["user_online"]
    assert online["Alice"].frames == []
    assert online["Mallory"].frames == []


async def test_broadcast_group_message_unknown_workspace(db_session: AsyncSession, registry: ConnectionRegistry) -> None:
    assert await registry.broadcast_group_message(db_session, "missing", _presence()) == 0


async def test_broadcast_group_message_never_raises(
    db_session: AsyncSession,
    registry: ConnectionRegistry,
    team: Team,
    online: dict[str, FakeConnection],
) -> None:
    backplane = AsyncMock()
    backplane.publish.side_effect = RuntimeError("boom")
    registry.attach_backplane(backplane)

    assert await registry.broadcast_group_message(db_session, team.workspace_id, _presence()) == 2
