"""Attocrew error hierarchy."""

from __future__ import annotations

from enum import StrEnum
from typing import Any


class ErrorCategory(StrEnum):
    """Category of error for classification and handling."""

    PROVIDER = "provider"
    LOOP = "loop"
    TOOL = "tool"
    LOCK = "lock"
    TASK = "task"
    MESSAGING = "messaging"
    TEAM = "team"
    CONCURRENCY = "concurrency"
    NOT_FOUND = "not_found"
    CONFIGURATION = "configuration"
    INTERNAL = "internal"


class AgentError(Exception):
    """Base error for all attocrew exceptions."""

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory = ErrorCategory.INTERNAL,
        retryable: bool = False,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.category = category
        self.retryable = retryable
        self.details: dict[str, Any] = details or {}

    def __repr__(self) -> str:
        return f"{type(self).__name__}({str(self)!r}, category={self.category!r})"


# --- Run-fatal ---


class ProviderError(AgentError):
    """Error from the reasoning service (transport, auth, malformed reply)."""

    def __init__(
        self,
        message: str,
        *,
        provider: str | None = None,
        status_code: int | None = None,
        retryable: bool = True,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, category=ErrorCategory.PROVIDER, retryable=retryable, **kwargs)
        self.provider = provider
        self.status_code = status_code


class LoopExhaustedError(AgentError):
    """The reasoning loop hit its iteration cap without a final answer.

    Never retried automatically: the task is likely unbounded.
    """

    def __init__(self, max_iterations: int) -> None:
        super().__init__(
            f"Reasoning loop exhausted after {max_iterations} iterations",
            category=ErrorCategory.LOOP,
            retryable=False,
            details={"max_iterations": max_iterations},
        )
        self.max_iterations = max_iterations


# --- Caller-rejected ---


class AlreadyRunningError(AgentError):
    """A run is already in flight for this agent."""

    def __init__(self, agent_id: int | str, message: str | None = None) -> None:
        super().__init__(
            message or f"Agent {agent_id} is already running",
            category=ErrorCategory.CONCURRENCY,
            details={"agent_id": agent_id},
        )
        self.agent_id = agent_id


class NotFoundError(AgentError):
    """A referenced record does not exist."""

    kind = "record"

    def __init__(self, key: Any) -> None:
        super().__init__(
            f"{self.kind.capitalize()} not found: {key}",
            category=ErrorCategory.NOT_FOUND,
            details={"key": key},
        )
        self.key = key


class TaskNotFoundError(NotFoundError):
    kind = "task"


class AgentNotFoundError(NotFoundError):
    kind = "agent"


class ProjectNotFoundError(NotFoundError):
    kind = "project"


class RoleNotFoundError(NotFoundError):
    kind = "role"


class InvalidTaskTransitionError(AgentError):
    """Task status change not permitted from the current status."""

    def __init__(self, task_id: int, from_status: str, to_status: str) -> None:
        super().__init__(
            f"Invalid transition for task {task_id}: {from_status} -> {to_status}",
            category=ErrorCategory.TASK,
            details={"task_id": task_id, "from": from_status, "to": to_status},
        )
        self.task_id = task_id
        self.from_status = from_status
        self.to_status = to_status


class TaskOwnershipError(AgentError):
    """Task belongs to a different agent than the one trying to start it."""

    def __init__(self, task_id: int, owner_id: int, agent_id: int) -> None:
        super().__init__(
            f"Task {task_id} is owned by agent {owner_id}, not agent {agent_id}",
            category=ErrorCategory.TASK,
            details={"task_id": task_id, "owner_id": owner_id, "agent_id": agent_id},
        )
        self.task_id = task_id
        self.owner_id = owner_id
        self.agent_id = agent_id


class TaskDeletionError(AgentError):
    """Task cannot be deleted in its current status."""

    def __init__(self, task_id: int, status: str) -> None:
        super().__init__(
            f"Cannot delete task {task_id} while {status}",
            category=ErrorCategory.TASK,
            details={"task_id": task_id, "status": status},
        )


class TeamError(AgentError):
    """Rejected change to agents or roles (in use, predefined, duplicate)."""

    def __init__(self, message: str, **kwargs: Any) -> None:
        super().__init__(message, category=ErrorCategory.TEAM, **kwargs)


class SelfMessageError(AgentError):
    """An agent tried to send a message to itself."""

    def __init__(self, agent_id: int) -> None:
        super().__init__(
            "Cannot send message to self",
            category=ErrorCategory.MESSAGING,
            details={"agent_id": agent_id},
        )


class InvalidMessageTypeError(AgentError):
    """Message type is not one of the supported kinds."""

    def __init__(self, message_type: str, allowed: tuple[str, ...]) -> None:
        super().__init__(
            f"Invalid message type: {message_type}. Must be one of: {', '.join(allowed)}",
            category=ErrorCategory.MESSAGING,
            details={"message_type": message_type},
        )


class ConfigurationError(AgentError):
    """Invalid or missing configuration."""

    def __init__(self, message: str) -> None:
        super().__init__(message, category=ErrorCategory.CONFIGURATION, retryable=False)


# --- Reported back to the reasoner ---


class ToolError(AgentError):
    """Error during tool execution."""

    def __init__(
        self,
        message: str,
        *,
        tool_name: str | None = None,
        retryable: bool = False,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, category=ErrorCategory.TOOL, retryable=retryable, **kwargs)
        self.tool_name = tool_name


class UnknownActionError(ToolError):
    """No tool or delegation handler is registered under this name."""

    def __init__(self, tool_name: str) -> None:
        super().__init__(f"Unknown action: {tool_name}", tool_name=tool_name)


class ToolTimeoutError(ToolError):
    """Tool execution timed out."""

    def __init__(self, tool_name: str, timeout: float) -> None:
        super().__init__(
            f"Tool '{tool_name}' timed out after {timeout}s",
            tool_name=tool_name,
            retryable=True,
        )
        self.timeout = timeout


class LockError(AgentError):
    """Base for file lock failures."""

    def __init__(self, message: str, **kwargs: Any) -> None:
        super().__init__(message, category=ErrorCategory.LOCK, **kwargs)


class LockConflictError(LockError):
    """Another holder owns a conflicting lock on the path."""

    def __init__(self, file_path: str, holder_id: int, lock_type: str) -> None:
        super().__init__(
            f"File {file_path} is locked ({lock_type}) by agent {holder_id}",
            retryable=True,
            details={"file_path": file_path, "holder_id": holder_id, "lock_type": lock_type},
        )
        self.file_path = file_path
        self.holder_id = holder_id
        self.lock_type = lock_type


class LockNotHeldError(LockError):
    """The caller does not hold the lock it tried to modify."""

    def __init__(self, file_path: str, holder_id: int) -> None:
        super().__init__(
            f"Lock on {file_path} is not held by agent {holder_id}",
            details={"file_path": file_path, "holder_id": holder_id},
        )
