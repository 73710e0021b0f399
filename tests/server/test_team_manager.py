"""Tests for team formation: inviting accepted applicants and listing teams."""

from __future__ import annotations

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from builderspace.server.db.tables import Hackathon
from builderspace.server.errors import AlreadyMemberError, NotFoundError, UnauthorizedError, ValidationError
from builderspace.server.managers import teams as team_manager
from builderspace.server.managers import workspaces as workspace_manager
from builderspace.server.models.enums import ApplicationStatus, MemberRole, PostType
from builderspace.server.sync import StateSyncService
from tests.server.conftest import FakeConnection, Team, make_application, make_user


async def test_invite_accepted_applicant(
    db_session: AsyncSession,
    sync: StateSyncService,
    team: Team,
    online: dict[str, FakeConnection],
) -> None:
    carol = await make_user(db_session, "Carol")
    application = await make_application(db_session, carol, PostType.STARTUP, team.post_id)

    result = await team_manager.invite_from_application(
        db_session, sync, application.application_id, team.founder.user_id
    )

    assert result.member.user_id == carol.user_id
    assert result.member.role == MemberRole.MEMBER
    assert result.workspace.workspace_id == team.workspace_id
    assert result.workspace_created is False
    assert await workspace_manager.validate_workspace_access(db_session, team.workspace_id, carol.user_id)

    assert online["Bob"].types == ["team_member_joined"]
    assert online["Bob"].frames[0]["payload"]["data"]["user_id"] == carol.user_id
    assert online["Alice"].frames == []


async def test_invite_creates_missing_workspace(db_session: AsyncSession, sync: StateSyncService) -> None:
    organiser = await make_user(db_session, "Olga")
    hacker = await make_user(db_session, "Hugo")
    hackathon = Hackathon(creator_id=organiser.user_id, name="Spring Jam")
    db_session.add(hackathon)
    await db_session.commit()
    application = await make_application(db_session, hacker, PostType.HACKATHON, hackathon.hackathon_id)

    result = await team_manager.invite_from_application(
        db_session, sync, application.application_id, organiser.user_id
    )

    assert result.workspace_created is True
    assert result.workspace.name == "Spring Jam Workspace"
    assert result.workspace.post_type == PostType.HACKATHON


async def test_invite_requires_accepted_application(
    db_session: AsyncSession, sync: StateSyncService, team: Team
) -> None:
    application = await make_application(
        db_session, team.outsider, PostType.STARTUP, team.post_id, status=ApplicationStatus.PENDING
    )
    with pytest.raises(ValidationError, match="must be accepted"):
        await team_manager.invite_from_application(db_session, sync, application.application_id, team.founder.user_id)


async def test_invite_requires_founder(db_session: AsyncSession, sync: StateSyncService, team: Team) -> None:
    application = await make_application(db_session, team.outsider, PostType.STARTUP, team.post_id)
    with pytest.raises(UnauthorizedError, match="Only the founder can invite team members"):
        await team_manager.invite_from_application(db_session, sync, application.application_id, team.member.user_id)


async def test_invite_existing_member(db_session: AsyncSession, sync: StateSyncService, team: Team) -> None:
    application = await make_application(db_session, team.member, PostType.STARTUP, team.post_id)
    with pytest.raises(AlreadyMemberError, match="User is already a team member"):
        await team_manager.invite_from_application(db_session, sync, application.application_id, team.founder.user_id)


async def test_invite_unknown_application(db_session: AsyncSession, sync: StateSyncService, team: Team) -> None:
    with pytest.raises(NotFoundError, match="Application not found"):
        await team_manager.invite_from_application(db_session, sync, "missing", team.founder.user_id)


async def test_list_team_members(db_session: AsyncSession, team: Team) -> None:
    members = await team_manager.list_team_members(db_session, PostType.STARTUP, team.post_id, team.member.user_id)
    assert [m.user_id for m in members] == [team.founder.user_id, team.member.user_id]

    with pytest.raises(UnauthorizedError, match="Access denied: User is not a team member"):
        await team_manager.list_team_members(db_session, PostType.STARTUP, team.post_id, team.outsider.user_id)
    with pytest.raises(NotFoundError, match="Startup not found"):
        await team_manager.list_team_members(db_session, PostType.STARTUP, "missing", team.member.user_id)
