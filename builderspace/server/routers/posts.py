"""Post creation endpoints (RPC-style).

Creating a startup or hackathon also creates its team (the caller as
founder) and its workspace.
"""

from __future__ import annotations

from fastapi import APIRouter, status

from builderspace.server.deps import CurrentUser, DbSession
from builderspace.server.managers import teams as team_manager
from builderspace.server.models.api import PostCreate, PostCreated, WorkspaceResponse
from builderspace.server.models.enums import PostType

router = APIRouter(prefix="/posts", tags=["posts"])


@router.post("/startups/create", response_model=PostCreated, status_code=status.HTTP_201_CREATED)
async def create_startup(body: PostCreate, db: DbSession, user_id: CurrentUser) -> PostCreated:
    """Create a startup owned by the caller."""
    post, workspace = await team_manager.create_post(db, PostType.STARTUP, user_id, body)
    return PostCreated(post=team_manager.post_view(post), workspace=WorkspaceResponse.model_validate(workspace))


@router.post("/hackathons/create", response_model=PostCreated, status_code=status.HTTP_201_CREATED)
async def create_hackathon(body: PostCreate, db: DbSession, user_id: CurrentUser) -> PostCreated:
    """Create a hackathon owned by the caller."""
    post, workspace = await team_manager.create_post(db, PostType.HACKATHON, user_id, body)
    return PostCreated(post=team_manager.post_view(post), workspace=WorkspaceResponse.model_validate(workspace))
