"""Shared fixtures for server tests that run without Docker.

Each test gets a fresh in-memory SQLite database (aiosqlite, one shared
connection via ``StaticPool``) with the ORM schema created directly from
``Base.metadata``.  Sockets are replaced by :class:`FakeConnection`, which
records every frame written to it.
"""

from __future__ import annotations

import json
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from builderspace.server.app import app
from builderspace.server.db.tables import Application, Base, TeamMember, User, Workspace
from builderspace.server.deps import get_db
from builderspace.server.managers import teams as team_manager
from builderspace.server.models.api import PostCreate
from builderspace.server.models.enums import ApplicationStatus, MemberRole, PostType
from builderspace.server.registry import ConnectionRegistry
from builderspace.server.sync import StateSyncService

# ---------------------------------------------------------------------------
# Fake socket
# ---------------------------------------------------------------------------


class FakeConnection:
    """Stands in for a WebSocket: collects frames, or fails every write."""

    def __init__(self, *, fail: bool = False) -> None:
        self.frames: list[dict[str, Any]] = []
        self.fail = fail

    async def send_text(self, data: str) -> None:
        if self.fail:
            msg = "socket closed"
            raise ConnectionResetError(msg)
        self.frames.append(json.loads(data))

    @property
    def types(self) -> list[str]:
        return [frame["type"] for frame in self.frames]


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest.fixture
async def db_engine() -> AsyncIterator[AsyncEngine]:
    """In-memory SQLite engine with every table created."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db_session(db_engine: AsyncEngine) -> AsyncIterator[AsyncSession]:
    """Async session over the in-memory database; discarded with the engine."""
    async with AsyncSession(db_engine, expire_on_commit=False) as session:
        yield session


# ---------------------------------------------------------------------------
# Real-time services
# ---------------------------------------------------------------------------


@pytest.fixture
def registry() -> ConnectionRegistry:
    return ConnectionRegistry(send_timeout=1.0)


@pytest.fixture
def sync(registry: ConnectionRegistry) -> StateSyncService:
    """Sync service with zero backoff so retry tests do not sleep."""
    return StateSyncService(registry, base_delay=0, max_delay=0, operation_timeout=5.0)


# ---------------------------------------------------------------------------
# Seed data
# ---------------------------------------------------------------------------


@dataclass
class Team:
    """A startup with a founder, one member and an accepted outsider."""

    workspace: Workspace
    post_id: str
    founder: User
    member: User
    outsider: User

    @property
    def workspace_id(self) -> str:
        return self.workspace.workspace_id


async def make_user(db: AsyncSession, name: str, email: str | None = None) -> User:
    user = User(name=name, email=email or f"{name.lower()}@example.com")
    db.add(user)
    await db.commit()
    return user


async def make_application(
    db: AsyncSession,
    applicant: User,
    post_type: PostType,
    post_id: str,
    status: ApplicationStatus = ApplicationStatus.ACCEPTED,
) -> Application:
    application = Application(
        applicant_id=applicant.user_id,
        post_type=post_type,
        post_id=post_id,
        message="I'd like to join",
        status=status,
    )
    db.add(application)
    await db.commit()
    return application


async def add_team_member(db: AsyncSession, user: User, post_type: PostType, post_id: str) -> TeamMember:
    member = TeamMember(user_id=user.user_id, post_type=post_type, post_id=post_id, role=MemberRole.MEMBER)
    db.add(member)
    await db.commit()
    return member


@pytest.fixture
async def team(db_session: AsyncSession) -> Team:
    founder = await make_user(db_session, "Alice")
    member = await make_user(db_session, "Bob")
    outsider = await make_user(db_session, "Mallory")

    post, workspace = await team_manager.create_post(
        db_session, PostType.STARTUP, founder.user_id, PostCreate(name="Rocket", description="To the moon")
    )
    await add_team_member(db_session, member, PostType.STARTUP, post.startup_id)
    return Team(workspace=workspace, post_id=post.startup_id, founder=founder, member=member, outsider=outsider)


@pytest.fixture
def online(registry: ConnectionRegistry, team: Team) -> dict[str, FakeConnection]:
    """Open one fake connection for each seeded user, keyed by first name."""
    connections: dict[str, FakeConnection] = {}
    for user in (team.founder, team.member, team.outsider):
        connection = FakeConnection()
        registry.add_connection(user.user_id, connection)
        connections[user.name] = connection
    return connections


# ---------------------------------------------------------------------------
# HTTP client
# ---------------------------------------------------------------------------


@pytest.fixture
async def client(
    db_session: AsyncSession,
    registry: ConnectionRegistry,
    sync: StateSyncService,
) -> AsyncIterator[AsyncClient]:
    """Async HTTP client wired to the app with the test DB session.

    The app lifespan does NOT run under ``ASGITransport``, so state fields
    are pre-set here.
    """

    async def _override_get_db() -> AsyncIterator[AsyncSession]:
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db

    app.state.db_engine = None
    app.state.db_session_factory = None
    app.state.redis = None
    app.state.backplane = None
    app.state.registry = registry
    app.state.sync_service = sync

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


def as_user(user: User) -> dict[str, str]:
    """Request headers identifying *user* the way the auth proxy does."""
    return {"X-User-Id": user.user_id}
