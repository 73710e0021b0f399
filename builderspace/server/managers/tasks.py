"""Workspace tasks.

Any member may create tasks, edit them and toggle completion; only the
creator may delete one.  Completing a task records who completed it and
when; reopening clears both.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from loguru import logger
from sqlalchemy import func, select

from builderspace.server.db.engine import commit_or_rollback
from builderspace.server.db.tables import WorkspaceTask
from builderspace.server.errors import NotFoundError, UnauthorizedError
from builderspace.server.managers.workspaces import access_denied, require_member
from builderspace.server.models.api import TaskCreate, TaskResponse, TaskStats, TaskUpdate
from builderspace.server.models.enums import EntityType, UpdateAction
from builderspace.server.models.events import StateUpdate, TaskDeleted
from builderspace.server.sanitize import MAX_TASK_DESCRIPTION_LENGTH, validate_optional, validate_title

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from builderspace.server.sync import StateSyncService


async def task_rows(db: AsyncSession, workspace_id: str, *, newest_first: bool = True) -> list[WorkspaceTask]:
    order = WorkspaceTask.created_at.desc() if newest_first else WorkspaceTask.created_at.asc()
    result = await db.execute(
        select(WorkspaceTask).where(WorkspaceTask.workspace_id == workspace_id).order_by(order)
    )
    return list(result.scalars().all())


async def _get_task(db: AsyncSession, workspace_id: str, task_id: str) -> WorkspaceTask:
    task = await db.get(WorkspaceTask, task_id)
    if task is None or task.workspace_id != workspace_id:
        msg = "Task not found"
        raise NotFoundError(msg)
    return task


async def _broadcast(
    db: AsyncSession,
    sync: StateSyncService,
    task: WorkspaceTask,
    action: UpdateAction,
    actor_id: str,
) -> None:
    data = (
        TaskDeleted(task_id=task.task_id, workspace_id=task.workspace_id)
        if action == UpdateAction.DELETE
        else TaskResponse.model_validate(task)
    )
    await sync.broadcast_update(
        db,
        task.workspace_id,
        StateUpdate(entity_type=EntityType.TASK, action=action, data=data),
        exclude_user_id=actor_id,
    )


async def create_task(
    db: AsyncSession,
    sync: StateSyncService,
    workspace_id: str,
    user_id: str,
    body: TaskCreate,
) -> WorkspaceTask:
    await require_member(db, workspace_id, user_id, message=access_denied("create tasks"))
    title = validate_title(body.title)
    description = validate_optional(body.description, field="Description", max_length=MAX_TASK_DESCRIPTION_LENGTH)

    async def _insert() -> WorkspaceTask:
        task = WorkspaceTask(workspace_id=workspace_id, creator_id=user_id, title=title, description=description)
        db.add(task)
        await commit_or_rollback(db)
        return task

    task = await sync.handle_concurrent_operation(workspace_id, _insert)
    logger.debug("Task {} created in workspace {}", task.task_id, workspace_id)
    await _broadcast(db, sync, task, UpdateAction.CREATE, user_id)
    return task


async def update_task(
    db: AsyncSession,
    sync: StateSyncService,
    workspace_id: str,
    task_id: str,
    user_id: str,
    body: TaskUpdate,
) -> WorkspaceTask:
    """Apply a partial update.  Fields not set on *body* are left alone."""
    await require_member(db, workspace_id, user_id, message=access_denied("update tasks"))
    task = await _get_task(db, workspace_id, task_id)

    changes = body.model_dump(exclude_unset=True)
    if "title" in changes:
        changes["title"] = validate_title(changes["title"])
    if "description" in changes:
        changes["description"] = validate_optional(
            changes["description"], field="Description", max_length=MAX_TASK_DESCRIPTION_LENGTH
        )
    if changes.get("completed") is None:
        changes.pop("completed", None)
    if not changes:
        return task

    async def _apply() -> WorkspaceTask:
        for key, value in changes.items():
            setattr(task, key, value)
        if "completed" in changes:
            task.completed_by = user_id if task.completed else None
            task.completed_at = datetime.now(UTC) if task.completed else None
        await commit_or_rollback(db)
        return task

    await sync.handle_concurrent_operation(workspace_id, _apply)
    logger.debug("Task {} updated in workspace {} ({})", task_id, workspace_id, ", ".join(changes))
    await _broadcast(db, sync, task, UpdateAction.UPDATE, user_id)
    return task


async def delete_task(
    db: AsyncSession,
    sync: StateSyncService,
    workspace_id: str,
    task_id: str,
    user_id: str,
) -> None:
    await require_member(db, workspace_id, user_id, message="Access denied: You are not a team member")
    task = await _get_task(db, workspace_id, task_id)
    if task.creator_id != user_id:
        msg = "Access denied: Only the task creator can delete this task"
        raise UnauthorizedError(msg)

    async def _delete() -> None:
        await db.delete(task)
        await commit_or_rollback(db)

    await sync.handle_concurrent_operation(workspace_id, _delete)
    logger.debug("Task {} deleted from workspace {}", task_id, workspace_id)
    await _broadcast(db, sync, task, UpdateAction.DELETE, user_id)


async def list_tasks(db: AsyncSession, workspace_id: str, user_id: str) -> list[WorkspaceTask]:
    """All tasks of the workspace, newest first."""
    await require_member(db, workspace_id, user_id, message=access_denied("view tasks"))
    return await task_rows(db, workspace_id)


async def get_task(db: AsyncSession, workspace_id: str, task_id: str, user_id: str) -> WorkspaceTask:
    await require_member(db, workspace_id, user_id, message=access_denied("view tasks"))
    return await _get_task(db, workspace_id, task_id)


async def task_stats(db: AsyncSession, workspace_id: str, user_id: str) -> TaskStats:
    await require_member(db, workspace_id, user_id, message=access_denied("view tasks"))
    result = await db.execute(
        select(WorkspaceTask.completed, func.count())
        .where(WorkspaceTask.workspace_id == workspace_id)
        .group_by(WorkspaceTask.completed)
    )
    counts = {bool(completed): count for completed, count in result.all()}
    completed = counts.get(True, 0)
    pending = counts.get(False, 0)
    return TaskStats(total=completed + pending, completed=completed, pending=pending)
