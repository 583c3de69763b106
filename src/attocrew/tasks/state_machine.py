"""Task state machine - transition table for delegated work.

pending -> assigned -> in_progress -> {completed | failed}, with
``blocked`` reachable from every non-terminal state and left only by an
explicit move back to pending or assigned.  Re-entering the current
status is allowed so status writes stay idempotent.  Reassignment
bypasses the table (see ``TaskManager.reassign_task``).
"""

from __future__ import annotations

from enum import StrEnum

from attocrew.errors import InvalidTaskTransitionError


class TaskStatus(StrEnum):
    """Lifecycle states for a task."""

    PENDING = "pending"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    BLOCKED = "blocked"


TERMINAL_STATUSES: frozenset[TaskStatus] = frozenset({TaskStatus.COMPLETED, TaskStatus.FAILED})

# Statuses from which assign_task_to_agent is legal (before work starts).
ASSIGNABLE_STATUSES: frozenset[TaskStatus] = frozenset({TaskStatus.PENDING, TaskStatus.ASSIGNED})

# Valid transitions: (from_status, to_status)
VALID_TRANSITIONS: set[tuple[TaskStatus, TaskStatus]] = {
    (TaskStatus.PENDING, TaskStatus.ASSIGNED),
    (TaskStatus.PENDING, TaskStatus.IN_PROGRESS),
    (TaskStatus.PENDING, TaskStatus.FAILED),
    (TaskStatus.PENDING, TaskStatus.BLOCKED),
    (TaskStatus.ASSIGNED, TaskStatus.ASSIGNED),
    (TaskStatus.ASSIGNED, TaskStatus.PENDING),
    (TaskStatus.ASSIGNED, TaskStatus.IN_PROGRESS),
    (TaskStatus.ASSIGNED, TaskStatus.FAILED),
    (TaskStatus.ASSIGNED, TaskStatus.BLOCKED),
    (TaskStatus.IN_PROGRESS, TaskStatus.IN_PROGRESS),
    (TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED),
    (TaskStatus.IN_PROGRESS, TaskStatus.FAILED),
    (TaskStatus.IN_PROGRESS, TaskStatus.BLOCKED),
    (TaskStatus.BLOCKED, TaskStatus.BLOCKED),
    (TaskStatus.BLOCKED, TaskStatus.PENDING),
    (TaskStatus.BLOCKED, TaskStatus.ASSIGNED),
    # Terminal statuses may only be re-stated or corrected
    (TaskStatus.COMPLETED, TaskStatus.COMPLETED),
    (TaskStatus.COMPLETED, TaskStatus.FAILED),
    (TaskStatus.FAILED, TaskStatus.FAILED),
    (TaskStatus.FAILED, TaskStatus.COMPLETED),
}


def can_transition(from_status: TaskStatus | str, to_status: TaskStatus | str) -> bool:
    """Check if a transition is valid without performing it."""
    return (TaskStatus(from_status), TaskStatus(to_status)) in VALID_TRANSITIONS


def check_transition(task_id: int, from_status: TaskStatus | str, to_status: TaskStatus | str) -> None:
    """Raise InvalidTaskTransitionError if the transition is not allowed."""
    if not can_transition(from_status, to_status):
        raise InvalidTaskTransitionError(task_id, str(from_status), str(to_status))


def is_terminal(status: TaskStatus | str) -> bool:
    return TaskStatus(status) in TERMINAL_STATUSES
