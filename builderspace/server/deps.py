"""FastAPI dependency injection.

Usage in route handlers::

    @router.post("/{workspace_id}/messages/send")
    async def send(workspace_id: str, body: MessageCreate, db: DbSession, user_id: CurrentUser, sync: StateSync):
        ...

``get_db`` raises HTTP 503 if the database was not configured
(BUILDERSPACE_DATABASE_URL unset).  ``get_current_user_id`` raises HTTP 401
when the upstream auth proxy did not supply the caller's identity.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from builderspace.server.registry import ConnectionRegistry
from builderspace.server.sync import StateSyncService

USER_ID_HEADER = "X-User-Id"


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    """Yield an async SQLAlchemy session, closing it after the request.

    Managers commit their own writes.  If a handler raises, the session is
    closed and any open transaction is rolled back by the pool.
    """
    session_factory = request.app.state.db_session_factory
    if session_factory is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database not configured (BUILDERSPACE_DATABASE_URL is unset).",
        )
    session: AsyncSession = session_factory()
    try:
        yield session
    finally:
        await session.close()


async def get_current_user_id(
    user_id: Annotated[str | None, Header(alias=USER_ID_HEADER)] = None,
) -> str:
    """Return the authenticated caller id forwarded by the auth proxy."""
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Missing {USER_ID_HEADER} header.",
        )
    return user_id


def get_registry(request: Request) -> ConnectionRegistry:
    return request.app.state.registry


def get_sync_service(request: Request) -> StateSyncService:
    return request.app.state.sync_service


# -- Annotated type aliases for concise route signatures ---------------------

DbSession = Annotated[AsyncSession, Depends(get_db)]
"""Annotated dependency: async SQLAlchemy session (auto-closed after request)."""

CurrentUser = Annotated[str, Depends(get_current_user_id)]
"""Annotated dependency: id of the authenticated caller."""

LiveRegistry = Annotated[ConnectionRegistry, Depends(get_registry)]
"""Annotated dependency: the process-wide connection registry."""

StateSync = Annotated[StateSyncService, Depends(get_sync_service)]
"""Annotated dependency: the process-wide state sync service."""
