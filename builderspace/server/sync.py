"""Workspace state synchronization.

:class:`StateSyncService` gives a (re)connecting member a complete snapshot
of a workspace, broadcasts versioned entity updates, and wraps workspace
writes in a bounded conflict-retry loop.

Versions are per-workspace integers held in memory.  They only order updates
emitted by this process and reset when it restarts.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from datetime import UTC, datetime
from typing import TYPE_CHECKING, TypeVar

from loguru import logger
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError

from builderspace.server.errors import ConcurrentOperationError, ConflictError, TransientStorageError
from builderspace.server.managers import group_chat, links, tasks
from builderspace.server.managers import workspaces as workspace_manager
from builderspace.server.models.api import SharedLinkResponse, TaskResponse, TeamMemberResponse
from builderspace.server.models.enums import ConflictStrategy, MessageType
from builderspace.server.models.events import RealtimeMessage, StateUpdate, VersionedUpdate
from builderspace.server.models.state import WorkspaceState

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from builderspace.server.registry import ConnectionRegistry

T = TypeVar("T")

# PostgreSQL: serialization_failure, deadlock_detected, lock_not_available
_CONFLICT_SQLSTATES = frozenset({"40001", "40P01", "55P03"})
# SQLite surfaces lock contention only through the error text.
_SQLITE_CONFLICT_MARKERS = ("database is locked", "database table is locked", "busy")


def is_conflict(exc: BaseException) -> bool:
    """Return ``True`` if *exc* is a storage conflict worth retrying.

    Conflicts are constraint violations, lock contention, serialization
    failures, busy resources and per-attempt timeouts.  Domain errors raised
    by the operation itself (not found, unauthorized, validation, duplicate
    membership) are never conflicts.
    """
    if isinstance(exc, TransientStorageError | IntegrityError):
        return True
    if isinstance(exc, DBAPIError):
        if getattr(exc.orig, "sqlstate", None) in _CONFLICT_SQLSTATES:
            return True
        if isinstance(exc, OperationalError):
            text = str(exc.orig).lower()
            return any(marker in text for marker in _SQLITE_CONFLICT_MARKERS)
    return False


class StateSyncService:
    def __init__(
        self,
        registry: ConnectionRegistry,
        *,
        max_attempts: int = 3,
        base_delay: float = 0.1,
        max_delay: float = 5.0,
        operation_timeout: float | None = 10.0,
    ) -> None:
        if max_attempts < 1:
            msg = "max_attempts must be at least 1"
            raise ValueError(msg)
        self._registry = registry
        self._max_attempts = max_attempts
        self._base_delay = base_delay
        self._max_delay = max_delay
        self._operation_timeout = operation_timeout
        self._versions: dict[str, int] = {}

    @property
    def registry(self) -> ConnectionRegistry:
        return self._registry

    # -- Snapshot --------------------------------------------------------------

    async def get_full_state(self, db: AsyncSession, workspace_id: str) -> WorkspaceState:
        """Assemble every message, link, task and member of the workspace, most recent first."""
        workspace = await workspace_manager.get_workspace(db, workspace_id)
        messages = await group_chat.message_views(db, workspace_id, newest_first=True)
        link_rows = await links.link_rows(db, workspace_id, newest_first=True)
        task_rows = await tasks.task_rows(db, workspace_id, newest_first=True)
        members = await workspace_manager.member_rows(db, workspace)
        return WorkspaceState(
            workspace_id=workspace_id,
            messages=messages,
            links=[SharedLinkResponse.model_validate(row) for row in link_rows],
            tasks=[TaskResponse.model_validate(row) for row in task_rows],
            members=[TeamMemberResponse.model_validate(row) for row in reversed(members)],
            last_updated=datetime.now(UTC),
        )

    async def sync_user_state(self, db: AsyncSession, user_id: str, workspace_id: str) -> WorkspaceState:
        """Push a full snapshot to *user_id* alone.

        Raises ``NotFoundError`` for an unknown workspace and
        ``UnauthorizedError`` ("User is not a team member") for non-members.
        """
        await workspace_manager.require_member(db, workspace_id, user_id)
        state = await self.get_full_state(db, workspace_id)
        delivered = await self._registry.send_to_user(user_id, RealtimeMessage.build(MessageType.FULL_STATE_SYNC, state))
        logger.debug(
            "Sync: full state of workspace {} for user {} (delivered={}, version={})",
            workspace_id,
            user_id,
            delivered,
            self.get_state_version(workspace_id),
        )
        return state

    # -- Updates ---------------------------------------------------------------

    async def broadcast_update(
        self,
        db: AsyncSession,
        workspace_id: str,
        update: StateUpdate,
        exclude_user_id: str | None = None,
        also_notify: Iterable[str] = (),
    ) -> int:
        """Version *update* and broadcast it to the workspace's members.

        *also_notify* names users who should get the update although they are
        no longer members (a removed member learns of their own removal).
        Returns the version assigned.  Delivery failures never propagate.
        """
        version = self._bump(workspace_id)
        payload = VersionedUpdate(**update.model_dump(), version=version)
        message = RealtimeMessage.build(update.message_type, payload, sender_id=exclude_user_id)
        await self._registry.broadcast_group_message(db, workspace_id, message, exclude_user_id)
        extra = [user_id for user_id in also_notify if user_id != exclude_user_id]
        if extra:
            try:
                await self._registry.broadcast_to_users(extra, message)
            except Exception:
                logger.opt(exception=True).warning("Sync: could not notify {} of {}", extra, message.type)
        return version

    # -- Concurrency -----------------------------------------------------------

    def backoff_delay(self, attempt: int) -> float:
        """Sleep before retrying after failed *attempt* (1-based), capped at ``max_delay``."""
        return min(self._base_delay * 2 ** (attempt - 1), self._max_delay)

    async def handle_concurrent_operation(
        self,
        workspace_id: str,
        operation: Callable[[], Awaitable[T]],
        strategy: ConflictStrategy = ConflictStrategy.LAST_WRITE_WINS,
    ) -> T:
        """Run *operation*, retrying it when it fails with a storage conflict.

        Non-conflict errors propagate immediately.  On a conflict:

        - ``LAST_WRITE_WINS`` bumps the version and retries unchanged.
        - ``MERGE`` behaves exactly like ``LAST_WRITE_WINS``; no field-level
          merge is performed.
        - ``REJECT`` raises ``ConflictError`` without retrying.

        After ``max_attempts`` conflicting attempts, raises
        ``ConcurrentOperationError`` naming the attempt count and last error.
        A successful attempt also bumps the version.
        """
        last_error: BaseException | None = None
        for attempt in range(1, self._max_attempts + 1):
            try:
                result = await self._attempt(operation)
            except Exception as exc:
                if not is_conflict(exc):
                    raise
                last_error = exc
                if strategy == ConflictStrategy.REJECT:
                    msg = "Conflict detected and operation rejected"
                    raise ConflictError(msg) from exc

                self._bump(workspace_id)
                logger.debug(
                    "Sync: conflict on workspace {} (attempt {}/{}, strategy={}): {}",
                    workspace_id,
                    attempt,
                    self._max_attempts,
                    strategy,
                    exc,
                )
                if attempt < self._max_attempts:
                    await asyncio.sleep(self.backoff_delay(attempt))
            else:
                self._bump(workspace_id)
                return result

        logger.warning("Sync: giving up on workspace {} after {} attempts", workspace_id, self._max_attempts)
        raise ConcurrentOperationError(self._max_attempts, last_error) from last_error  # type: ignore[arg-type]

    async def _attempt(self, operation: Callable[[], Awaitable[T]]) -> T:
        if self._operation_timeout is None:
            return await operation()
        try:
            return await asyncio.wait_for(operation(), timeout=self._operation_timeout)
        except TimeoutError as exc:
            msg = f"Operation timed out after {self._operation_timeout}s"
            raise TransientStorageError(msg) from exc

    # -- Versions --------------------------------------------------------------

    def _bump(self, workspace_id: str) -> int:
        version = self._versions.get(workspace_id, 0) + 1
        self._versions[workspace_id] = version
        return version

    def get_state_version(self, workspace_id: str) -> int:
        return self._versions.get(workspace_id, 0)

    def reset_state_version(self, workspace_id: str) -> None:
        self._versions.pop(workspace_id, None)
