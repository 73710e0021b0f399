"""Workspace state snapshot returned by a full-state sync."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from builderspace.server.models.api import (
    GroupMessageResponse,
    SharedLinkResponse,
    TaskResponse,
    TeamMemberResponse,
)


class WorkspaceState(BaseModel):
    """Everything a (re)connecting member needs to rebuild a workspace view.

    Collections are most recent first.  ``last_updated`` is the time the
    snapshot was assembled, not the time of the last write.
    """

    workspace_id: str
    messages: list[GroupMessageResponse]
    links: list[SharedLinkResponse]
    tasks: list[TaskResponse]
    members: list[TeamMemberResponse]
    last_updated: datetime
