"""Workspace task endpoints (RPC-style)."""

from __future__ import annotations

from fastapi import APIRouter, status

from builderspace.server.db.tables import WorkspaceTask
from builderspace.server.deps import CurrentUser, DbSession, StateSync
from builderspace.server.managers import tasks as task_manager
from builderspace.server.models.api import TaskCreate, TaskResponse, TaskStats, TaskUpdate

router = APIRouter(prefix="/workspaces/{workspace_id}/tasks", tags=["tasks"])


@router.post("/create", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
async def create_task(
    workspace_id: str,
    body: TaskCreate,
    db: DbSession,
    user_id: CurrentUser,
    sync: StateSync,
) -> WorkspaceTask:
    return await task_manager.create_task(db, sync, workspace_id, user_id, body)


@router.get("/list", response_model=list[TaskResponse])
async def list_tasks(workspace_id: str, db: DbSession, user_id: CurrentUser) -> list[WorkspaceTask]:
    """All tasks of the workspace, newest first."""
    return await task_manager.list_tasks(db, workspace_id, user_id)


@router.get("/stats", response_model=TaskStats)
async def task_stats(workspace_id: str, db: DbSession, user_id: CurrentUser) -> TaskStats:
    return await task_manager.task_stats(db, workspace_id, user_id)


@router.get("/{task_id}/get", response_model=TaskResponse)
async def get_task(workspace_id: str, task_id: str, db: DbSession, user_id: CurrentUser) -> WorkspaceTask:
    return await task_manager.get_task(db, workspace_id, task_id, user_id)


@router.post("/{task_id}/update", response_model=TaskResponse)
async def update_task(
    workspace_id: str,
    task_id: str,
    body: TaskUpdate,
    db: DbSession,
    user_id: CurrentUser,
    sync: StateSync,
) -> WorkspaceTask:
    """Partially update a task; ``completed`` toggles completion."""
    return await task_manager.update_task(db, sync, workspace_id, task_id, user_id, body)


@router.post("/{task_id}/delete", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task(
    workspace_id: str,
    task_id: str,
    db: DbSession,
    user_id: CurrentUser,
    sync: StateSync,
) -> None:
    """Delete a task (creator only)."""
    await task_manager.delete_task(db, sync, workspace_id, task_id, user_id)
