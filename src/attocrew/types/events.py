"""Crew event types published to observers."""

from __future__ import annotations

import time
from dataclasses import asdict, dataclass, field
from enum import StrEnum
from typing import Any


class EventType(StrEnum):
    """Types of crew events.

    Organized into categories:
    - Agent: agent.status, agent.message, group.message
    - Task: task.created, task.updated, task.deleted
    - Lock: file.lock
    - Run: run.start, run.iteration, run.complete, run.error
    - Tool: tool.start, tool.complete, tool.error
    """

    # --- Agent ---
    AGENT_STATUS = "agent.status"
    AGENT_MESSAGE = "agent.message"
    GROUP_MESSAGE = "group.message"

    # --- Task ---
    TASK_CREATED = "task.created"
    TASK_UPDATED = "task.updated"
    TASK_DELETED = "task.deleted"

    # --- Lock ---
    FILE_LOCK = "file.lock"

    # --- Run ---
    RUN_START = "run.start"
    RUN_ITERATION = "run.iteration"
    RUN_COMPLETE = "run.complete"
    RUN_ERROR = "run.error"

    # --- Tool ---
    TOOL_START = "tool.start"
    TOOL_COMPLETE = "tool.complete"
    TOOL_ERROR = "tool.error"


@dataclass(slots=True)
class CrewEvent:
    """A single event fanned out to subscribers."""

    type: EventType
    project_id: int | None = None
    agent_id: int | None = None
    task_id: int | None = None
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["type"] = str(self.type)
        return payload
