"""API request / response schemas.

- **Create** schemas validate the shape of user input.  Content rules
  (trimming, markup stripping, length limits) are enforced by the managers
  so that WebSocket and HTTP callers share them.
- **Update** schemas allow partial updates via ``exclude_unset``.
- **Response** schemas serialize ORM rows via ``from_attributes``.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from builderspace.server.models.enums import ApplicationStatus, MemberRole, PostType

# ---------------------------------------------------------------------------
# Posts
# ---------------------------------------------------------------------------


class PostCreate(BaseModel):
    """Input for creating a startup or hackathon."""

    name: str = Field(min_length=1, max_length=200)
    description: str | None = None


class PostResponse(BaseModel):
    post_type: PostType
    post_id: str
    owner_id: str
    name: str
    description: str | None = None
    created_at: datetime


# ---------------------------------------------------------------------------
# Workspace
# ---------------------------------------------------------------------------


class WorkspaceResponse(BaseModel):
    """Serialized workspace returned to clients."""

    model_config = ConfigDict(from_attributes=True)

    workspace_id: str
    post_type: PostType
    post_id: str
    name: str
    description: str | None = None
    created_at: datetime
    updated_at: datetime


class WorkspaceSummary(WorkspaceResponse):
    """Workspace entry in the caller's workspace list."""

    member_count: int
    role: MemberRole


class MemberInvite(BaseModel):
    email: str = Field(min_length=3, max_length=320)


class TeamMemberResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    member_id: str
    user_id: str
    post_type: PostType
    post_id: str
    role: MemberRole
    joined_at: datetime


class MemberDetail(TeamMemberResponse):
    """Team member enriched with user profile fields."""

    name: str
    email: str
    avatar_url: str | None = None
    is_founder: bool


class PostCreated(BaseModel):
    """A new post together with the workspace created alongside it."""

    post: PostResponse
    workspace: WorkspaceResponse


class InviteResult(BaseModel):
    """Outcome of inviting an accepted applicant to the team."""

    member: TeamMemberResponse
    workspace: WorkspaceResponse
    workspace_created: bool


# ---------------------------------------------------------------------------
# Group chat
# ---------------------------------------------------------------------------


class MessageCreate(BaseModel):
    content: str


class GroupMessageResponse(BaseModel):
    message_id: str
    workspace_id: str
    sender_id: str
    sender_name: str
    content: str
    created_at: datetime


class CountResponse(BaseModel):
    count: int


# ---------------------------------------------------------------------------
# Shared links
# ---------------------------------------------------------------------------


class LinkCreate(BaseModel):
    title: str
    url: str
    description: str | None = None


class SharedLinkResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    link_id: str
    workspace_id: str
    creator_id: str
    title: str
    url: str
    description: str | None = None
    created_at: datetime
    updated_at: datetime


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------


class TaskCreate(BaseModel):
    title: str
    description: str | None = None


class TaskUpdate(BaseModel):
    """Partial task update -- only fields explicitly set are applied."""

    title: str | None = None
    description: str | None = None
    completed: bool | None = None


class TaskResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    task_id: str
    workspace_id: str
    creator_id: str
    title: str
    description: str | None = None
    completed: bool
    completed_by: str | None = None
    completed_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class TaskStats(BaseModel):
    total: int
    completed: int
    pending: int


# ---------------------------------------------------------------------------
# Screening chat
# ---------------------------------------------------------------------------


class Participant(BaseModel):
    user_id: str
    name: str
    avatar_url: str | None = None


class ScreeningMessageResponse(BaseModel):
    message_id: str
    application_id: str
    sender_id: str
    sender_name: str
    content: str
    created_at: datetime


class ScreeningChatResponse(BaseModel):
    """A screening chat is the conversation attached to one application."""

    application_id: str
    post_type: PostType
    post_id: str
    post_name: str
    status: ApplicationStatus
    founder: Participant
    applicant: Participant


class ScreeningChatSummary(ScreeningChatResponse):
    last_message: ScreeningMessageResponse | None = None
    message_count: int

