"""HTTP API tests: routing, identity header and error mapping."""

from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from builderspace.server.app import app
from builderspace.server.managers import workspaces as workspace_manager
from builderspace.server.models.enums import PostType
from tests.server.conftest import FakeConnection, Team, as_user, make_application, make_user


async def test_missing_identity_is_401(client: AsyncClient) -> None:
    resp = await client.get("/api/workspaces/list")
    assert resp.status_code == 401


async def test_create_startup_and_list_workspaces(client: AsyncClient, db_session: AsyncSession) -> None:
    founder = await make_user(db_session, "Zoe")
    headers = as_user(founder)

    resp = await client.post("/api/posts/startups/create", json={"name": "Orbit"}, headers=headers)
    assert resp.status_code == 201
    body = resp.json()
    assert body["post"]["post_type"] == "startup"
    assert body["post"]["owner_id"] == founder.user_id
    assert body["workspace"]["name"] == "Orbit Workspace"

    resp = await client.get("/api/workspaces/list", headers=headers)
    assert resp.status_code == 200
    [summary] = resp.json()
    assert summary["workspace_id"] == body["workspace"]["workspace_id"]
    assert summary["role"] == "founder"
    assert summary["member_count"] == 1


async def test_create_post_input_validation(client: AsyncClient, db_session: AsyncSession) -> None:
    user = await make_user(db_session, "Yan")
    resp = await client.post("/api/posts/hackathons/create", json={"name": ""}, headers=as_user(user))
    assert resp.status_code == 400
    body = resp.json()
    assert body["error"]["code"] == "validation_error"
    assert body["error"]["message"].startswith("name: ")
    assert "timestamp" in body

    resp = await client.post(
        "/api/posts/hackathons/create",
        content=b"not json",
        headers={**as_user(user), "Content-Type": "application/json"},
    )
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "validation_error"


async def test_unhandled_errors_get_the_error_body(
    client: AsyncClient, team: Team, monkeypatch: pytest.MonkeyPatch
) -> None:
    async def _explode(*_args: object) -> None:
        msg = "db exploded"
        raise RuntimeError(msg)

    monkeypatch.setattr(workspace_manager, "list_user_workspaces", _explode)

    # The server error middleware re-raises after responding; keep the response.
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        resp = await ac.get("/api/workspaces/list", headers=as_user(team.member))

    assert resp.status_code == 500
    body = resp.json()
    assert body["error"] == {"code": "unexpected_error", "message": "An unexpected error occurred"}
    assert "timestamp" in body


async def test_domain_errors_are_mapped(client: AsyncClient, team: Team) -> None:
    ws = team.workspace_id

    resp = await client.get(f"/api/workspaces/{ws}/get", headers=as_user(team.outsider))
    assert resp.status_code == 403
    body = resp.json()
    assert body["error"] == {"code": "unauthorized", "message": "Access denied: User is not a team member"}
    assert "timestamp" in body

    resp = await client.get("/api/workspaces/missing/get", headers=as_user(team.member))
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "not_found"

    resp = await client.post(f"/api/workspaces/{ws}/messages/send", json={"content": "  "}, headers=as_user(team.member))
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "validation_error"

    resp = await client.post(
        f"/api/workspaces/{ws}/members/{team.founder.user_id}/remove", headers=as_user(team.founder)
    )
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "founder_removal"

    resp = await client.post(
        f"/api/workspaces/{ws}/members/invite", json={"email": "bob@example.com"}, headers=as_user(team.founder)
    )
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "already_member"


async def test_workspace_endpoints(client: AsyncClient, team: Team, online: dict[str, FakeConnection]) -> None:
    ws = team.workspace_id
    alice, bob = as_user(team.founder), as_user(team.member)

    resp = await client.get(f"/api/workspaces/{ws}/get", headers=bob)
    assert resp.status_code == 200
    assert resp.json()["name"] == "Rocket Workspace"

    resp = await client.get(f"/api/workspaces/{ws}/members", headers=bob)
    assert [m["name"] for m in resp.json()] == ["Alice", "Bob"]

    resp = await client.post(f"/api/workspaces/{ws}/sync", headers=bob)
    assert resp.status_code == 200
    assert resp.json()["workspace_id"] == ws
    assert online["Bob"].types == ["full_state_sync"]

    resp = await client.post(f"/api/workspaces/{ws}/sync", headers=as_user(team.outsider))
    assert resp.status_code == 403
    assert "not a team member" in resp.json()["error"]["message"]

    resp = await client.post(f"/api/workspaces/{ws}/members/{team.member.user_id}/remove", headers=alice)
    assert resp.status_code == 204

    resp = await client.post(f"/api/workspaces/{ws}/delete", headers=alice)
    assert resp.status_code == 204
    resp = await client.get(f"/api/workspaces/{ws}/get", headers=alice)
    assert resp.status_code == 404


async def test_chat_links_and_tasks(client: AsyncClient, team: Team) -> None:
    ws = team.workspace_id
    alice, bob = as_user(team.founder), as_user(team.member)

    resp = await client.post(f"/api/workspaces/{ws}/messages/send", json={"content": "Standup?"}, headers=bob)
    assert resp.status_code == 201
    resp = await client.get(f"/api/workspaces/{ws}/messages/latest", headers=alice)
    assert resp.json()["content"] == "Standup?"
    resp = await client.get(f"/api/workspaces/{ws}/messages/count", headers=alice)
    assert resp.json() == {"count": 1}

    resp = await client.post(
        f"/api/workspaces/{ws}/links/add", json={"title": "Figma", "url": "https://figma.com/file/abc"}, headers=bob
    )
    assert resp.status_code == 201
    link_id = resp.json()["link_id"]
    resp = await client.post(
        f"/api/workspaces/{ws}/links/add", json={"title": "Bad", "url": "https://bit.ly/xyz"}, headers=bob
    )
    assert resp.status_code == 400
    assert "URL shortener detected" in resp.json()["error"]["message"]
    resp = await client.post(f"/api/workspaces/{ws}/links/{link_id}/remove", headers=alice)
    assert resp.status_code == 403
    resp = await client.post(f"/api/workspaces/{ws}/links/{link_id}/remove", headers=bob)
    assert resp.status_code == 204

    resp = await client.post(f"/api/workspaces/{ws}/tasks/create", json={"title": "Deck"}, headers=alice)
    assert resp.status_code == 201
    task_id = resp.json()["task_id"]
    resp = await client.post(f"/api/workspaces/{ws}/tasks/{task_id}/update", json={"completed": True}, headers=bob)
    assert resp.status_code == 200
    assert resp.json()["completed_by"] == team.member.user_id
    resp = await client.get(f"/api/workspaces/{ws}/tasks/stats", headers=bob)
    assert resp.json() == {"total": 1, "completed": 1, "pending": 0}
    resp = await client.post(f"/api/workspaces/{ws}/tasks/{task_id}/delete", headers=alice)
    assert resp.status_code == 204


async def test_team_and_screening_endpoints(client: AsyncClient, db_session: AsyncSession, team: Team) -> None:
    application = await make_application(db_session, team.outsider, PostType.STARTUP, team.post_id)
    app_id = application.application_id
    alice, mallory = as_user(team.founder), as_user(team.outsider)

    resp = await client.post(f"/api/screening-chats/{app_id}/messages/send", json={"content": "Hi!"}, headers=alice)
    assert resp.status_code == 201
    resp = await client.get(f"/api/screening-chats/{app_id}/messages/list", headers=mallory)
    assert [m["content"] for m in resp.json()] == ["Hi!"]
    resp = await client.get("/api/screening-chats/list", headers=mallory)
    assert resp.json()[0]["message_count"] == 1
    resp = await client.get(f"/api/screening-chats/{app_id}/get", headers=as_user(team.member))
    assert resp.status_code == 403

    resp = await client.post(f"/api/teams/applications/{app_id}/invite", headers=alice)
    assert resp.status_code == 201
    assert resp.json()["workspace_created"] is False

    resp = await client.get(f"/api/teams/startup/{team.post_id}/members", headers=mallory)
    assert resp.status_code == 200
    assert len(resp.json()) == 3
