"""Task manager - CRUD and status transitions over stored tasks.

Every status change goes through the transition table.  The ``started``
timestamp is written the first time a task enters ``in_progress`` and the
``completed`` timestamp the first time it enters ``completed`` or
``failed``; neither is ever cleared or overwritten.  The same holds for
``result`` and ``error``: the first recorded outcome is kept.  A task runs
for one agent at a time; ``start_task`` refuses a task that is already in
progress or owned by someone else.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable

from attocrew.errors import (
    InvalidTaskTransitionError,
    TaskDeletionError,
    TaskNotFoundError,
    TaskOwnershipError,
)
from attocrew.events.bus import EventBroadcaster
from attocrew.persistence.store import CrewStore, TaskRecord
from attocrew.tasks.state_machine import (
    ASSIGNABLE_STATUSES,
    TERMINAL_STATUSES,
    TaskStatus,
    check_transition,
)
from attocrew.types.events import EventType

logger = logging.getLogger(__name__)


class TaskManager:
    """Creates, transitions and queries tasks."""

    def __init__(
        self,
        store: CrewStore,
        *,
        broadcaster: EventBroadcaster | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._broadcaster = broadcaster
        self._clock = clock
        self._start_lock = asyncio.Lock()

    # --- Create / read ---

    async def create_task(
        self,
        project_id: int,
        title: str,
        description: str = "",
        *,
        priority: int = 0,
        created_by: int | None = None,
    ) -> TaskRecord:
        """Create a task.  New tasks are always ``pending``."""
        task = await self._store.insert_task(
            project_id, title, description,
            priority=priority, created_by=created_by, created_at=self._clock(),
        )
        self._emit(EventType.TASK_CREATED, task)
        return task

    async def get_task(self, task_id: int) -> TaskRecord | None:
        return await self._store.get_task(task_id)

    async def require_task(self, task_id: int) -> TaskRecord:
        task = await self._store.get_task(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    # --- Transitions ---

    async def assign_task_to_agent(self, task_id: int, agent_id: int) -> TaskRecord:
        """Assign a task that has not started yet."""
        task = await self.require_task(task_id)
        if TaskStatus(task.status) not in ASSIGNABLE_STATUSES:
            raise InvalidTaskTransitionError(task_id, task.status, TaskStatus.ASSIGNED)
        await self._store.update_task(task_id, agent_id=agent_id, status=str(TaskStatus.ASSIGNED))
        return await self._refresh_and_emit(task_id)

    async def update_status(
        self,
        task_id: int,
        status: TaskStatus | str,
        *,
        result: str | None = None,
        error: str | None = None,
    ) -> TaskRecord:
        """Move a task to *status*, stamping first-time timestamps."""
        new_status = TaskStatus(status)
        task = await self.require_task(task_id)
        check_transition(task_id, task.status, new_status)

        fields: dict[str, Any] = {"status": str(new_status)}
        now = self._clock()
        if new_status == TaskStatus.IN_PROGRESS and task.started_at is None:
            fields["started_at"] = now
        if new_status in TERMINAL_STATUSES and task.completed_at is None:
            fields["completed_at"] = now
        # First recorded outcome wins, like completed_at
        if result is not None and task.result is None:
            fields["result"] = result
        if error is not None and task.error is None:
            fields["error"] = error

        await self._store.update_task(task_id, **fields)
        return await self._refresh_and_emit(task_id)

    async def start_task(self, task_id: int, agent_id: int) -> TaskRecord:
        """Mark a task in progress for *agent_id*, claiming it if unowned.

        Raises:
            InvalidTaskTransitionError: the task is already in progress or
                cannot move to ``in_progress`` from its status.
            TaskOwnershipError: the task is assigned to another agent.
        """
        async with self._start_lock:
            task = await self.require_task(task_id)
            if task.agent_id is not None and task.agent_id != agent_id:
                raise TaskOwnershipError(task_id, task.agent_id, agent_id)
            if task.status == TaskStatus.IN_PROGRESS:
                raise InvalidTaskTransitionError(task_id, task.status, TaskStatus.IN_PROGRESS)
            check_transition(task_id, task.status, TaskStatus.IN_PROGRESS)
            if task.agent_id is None:
                logger.debug("Agent %s claimed unowned task %s", agent_id, task_id)
                await self._store.update_task(task_id, agent_id=agent_id)
            return await self.update_status(task_id, TaskStatus.IN_PROGRESS)

    async def complete_task(self, task_id: int, result: str) -> TaskRecord:
        return await self.update_status(task_id, TaskStatus.COMPLETED, result=result)

    async def fail_task(self, task_id: int, error: str) -> TaskRecord:
        return await self.update_status(task_id, TaskStatus.FAILED, error=error)

    async def reassign_task(self, task_id: int, agent_id: int) -> TaskRecord:
        """Hand a task to another agent regardless of its status."""
        await self.require_task(task_id)
        await self._store.update_task(task_id, agent_id=agent_id, status=str(TaskStatus.ASSIGNED))
        return await self._refresh_and_emit(task_id)

    async def update_priority(self, task_id: int, priority: int) -> TaskRecord:
        await self.require_task(task_id)
        await self._store.update_task(task_id, priority=priority)
        return await self._refresh_and_emit(task_id)

    async def delete_task(self, task_id: int) -> None:
        """Delete a task.  Refused while it is in progress."""
        task = await self.require_task(task_id)
        if task.status == TaskStatus.IN_PROGRESS:
            raise TaskDeletionError(task_id, task.status)
        await self._store.delete_task(task_id)
        self._emit(EventType.TASK_DELETED, task)

    # --- Queries ---

    async def list_project_tasks(
        self,
        project_id: int,
        *,
        status: TaskStatus | str | None = None,
        agent_id: int | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[TaskRecord]:
        """Tasks ordered by priority (highest first), then creation order."""
        return await self._store.list_tasks(
            project_id=project_id,
            status=str(status) if status is not None else None,
            agent_id=agent_id,
            limit=limit,
            offset=offset,
        )

    async def list_agent_tasks(
        self,
        agent_id: int,
        *,
        status: TaskStatus | str | None = None,
    ) -> list[TaskRecord]:
        return await self._store.list_tasks(
            agent_id=agent_id, status=str(status) if status is not None else None,
        )

    async def tasks_created_by(self, agent_id: int) -> list[TaskRecord]:
        return await self._store.list_tasks(created_by=agent_id)

    async def next_pending_task(self, project_id: int) -> TaskRecord | None:
        """Highest-priority, oldest pending task.  Nothing pulls from this automatically."""
        tasks = await self._store.list_tasks(
            project_id=project_id, status=str(TaskStatus.PENDING), limit=1,
        )
        return tasks[0] if tasks else None

    async def project_task_stats(self, project_id: int) -> dict[str, int]:
        counts = await self._store.task_status_counts(project_id=project_id)
        stats = {str(s): counts.get(str(s), 0) for s in TaskStatus}
        stats["total"] = sum(counts.values())
        return stats

    async def is_task_complete(self, task_id: int) -> bool:
        task = await self.require_task(task_id)
        return task.status == TaskStatus.COMPLETED

    # --- Internal ---

    async def _refresh_and_emit(self, task_id: int) -> TaskRecord:
        task = await self.require_task(task_id)
        self._emit(EventType.TASK_UPDATED, task)
        return task

    def _emit(self, event_type: EventType, task: TaskRecord) -> None:
        if self._broadcaster is not None:
            self._broadcaster.emit(
                event_type,
                task.project_id,
                agent_id=task.agent_id,
                task_id=task.id,
                status=task.status,
                title=task.title,
                priority=task.priority,
            )
