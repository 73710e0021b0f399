"""In-process connection registry.

Maps user ids to their live WebSocket connections (one per open tab) and
delivers real-time messages to them.  Ephemeral -- empty on process
restart; clients recover missed updates through a full-state sync.

Delivery is best-effort.  A failed or timed-out write is logged, the
connection is dropped from the registry, and the caller never sees the
error.  With a backplane attached, broadcasts are published to every
server process and each one delivers to the sockets it holds.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from typing import TYPE_CHECKING, Protocol

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from builderspace.server.managers import workspaces as workspace_manager

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from builderspace.server.backplane import RedisBackplane
    from builderspace.server.models.events import RealtimeMessage


class Connection(Protocol):
    """Anything that can carry text frames to a client (e.g. a Starlette ``WebSocket``)."""

    async def send_text(self, data: str) -> None: ...


class ConnectionRegistry:
    """Registry of live client connections, keyed by user id.

    Safe under a single event loop: every mutation happens between awaits.
    """

    def __init__(self, *, send_timeout: float = 5.0) -> None:
        self._connections: dict[str, list[Connection]] = {}
        self._send_timeout = send_timeout
        self._backplane: RedisBackplane | None = None

    # -- Mutation --------------------------------------------------------------

    def add_connection(self, user_id: str, connection: Connection) -> int:
        """Register *connection* for *user_id*.  Returns the user's connection count."""
        connections = self._connections.setdefault(user_id, [])
        if connection not in connections:
            connections.append(connection)
        logger.debug("Registry: user {} connected ({} connections)", user_id, len(connections))
        return len(connections)

    def remove_connection(self, user_id: str, connection: Connection) -> bool:
        """Deregister exactly *connection*.

        Returns ``True`` if the user has no connections left (now offline).
        Removing an unknown connection is a no-op.
        """
        connections = self._connections.get(user_id)
        if connections is None:
            return True
        if connection in connections:
            connections.remove(connection)
            logger.debug("Registry: user {} disconnected ({} connections left)", user_id, len(connections))
        if not connections:
            del self._connections[user_id]
            return True
        return False

    def attach_backplane(self, backplane: RedisBackplane | None) -> None:
        self._backplane = backplane

    # -- Query -----------------------------------------------------------------

    def is_user_online(self, user_id: str) -> bool:
        return bool(self._connections.get(user_id))

    def online_users(self) -> list[str]:
        return list(self._connections)

    def connection_count(self, user_id: str) -> int:
        return len(self._connections.get(user_id, ()))

    @property
    def total_connections(self) -> int:
        return sum(len(connections) for connections in self._connections.values())

    # -- Delivery --------------------------------------------------------------

    async def send_to_user(self, user_id: str, message: RealtimeMessage) -> bool:
        """Write *message* to every connection of *user_id* on this process.

        Returns ``True`` if at least one connection accepted the frame.  An
        offline user is not an error: the call returns ``False``.
        """
        return await self._send_serialized(user_id, message.model_dump_json())

    async def _send_serialized(self, user_id: str, data: str) -> bool:
        connections = list(self._connections.get(user_id, ()))
        if not connections:
            return False

        results = await asyncio.gather(*(self._write(user_id, connection, data) for connection in connections))
        for connection, ok in zip(connections, results, strict=True):
            if not ok:
                self.remove_connection(user_id, connection)
        return any(results)

    async def _write(self, user_id: str, connection: Connection, data: str) -> bool:
        try:
            await asyncio.wait_for(connection.send_text(data), timeout=self._send_timeout)
        except TimeoutError:
            logger.warning("Registry: send to user {} timed out after {}s, dropping connection", user_id, self._send_timeout)
            return False
        except Exception:
            logger.opt(exception=True).warning("Registry: send to user {} failed, dropping connection", user_id)
            return False
        else:
            return True

    async def deliver_local(self, user_ids: Iterable[str], data: str) -> int:
        """Deliver an already-serialized frame to local connections of *user_ids*.

        Returns how many of the users were reached.  Used directly when no
        backplane is attached, and by the backplane listener otherwise.
        """
        targets = [user_id for user_id in dict.fromkeys(user_ids) if user_id in self._connections]
        if not targets:
            return 0
        results = await asyncio.gather(*(self._send_serialized(user_id, data) for user_id in targets))
        return sum(results)

    async def broadcast_to_users(self, user_ids: Iterable[str], message: RealtimeMessage) -> None:
        """Fan *message* out to *user_ids*, across processes when a backplane is attached."""
        recipients = list(dict.fromkeys(user_ids))
        if not recipients:
            return
        data = message.model_dump_json()
        if self._backplane is not None and await self._backplane.publish(recipients, data):
            return
        await self.deliver_local(recipients, data)

    async def broadcast_group_message(
        self,
        db: AsyncSession,
        workspace_id: str,
        message: RealtimeMessage,
        exclude_user_id: str | None = None,
    ) -> int:
        """Send *message* to every team member of the workspace except *exclude_user_id*.

        Never raises: a failure to resolve members or to reach a socket is
        logged and swallowed so the caller's write still succeeds.  Returns
        the number of intended recipients.
        """
        try:
            member_ids = await workspace_manager.member_ids(db, workspace_id)
        except SQLAlchemyError:
            logger.opt(exception=True).warning("Registry: could not resolve members of workspace {}", workspace_id)
            return 0

        recipients = [user_id for user_id in member_ids if user_id != exclude_user_id]
        try:
            await self.broadcast_to_users(recipients, message)
        except Exception:
            logger.opt(exception=True).warning("Registry: broadcast to workspace {} failed", workspace_id)
        logger.debug("Registry: {} broadcast to {} members of workspace {}", message.type, len(recipients), workspace_id)
        return len(recipients)
