"""Task lifecycle."""

from attocrew.tasks.manager import TaskManager
from attocrew.tasks.state_machine import TaskStatus

__all__ = ["TaskManager", "TaskStatus"]
