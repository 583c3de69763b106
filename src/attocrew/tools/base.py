"""Tool base types and abstractions."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel

from attocrew.types.messages import ToolDefinition


class ToolParam(BaseModel):
    """Pydantic model for tool parameter validation."""

    model_config = {"extra": "forbid", "populate_by_name": True}


@dataclass(slots=True)
class WorkspaceContext:
    """Who is invoking a tool, and against which workspace."""

    project_id: int
    agent_id: int
    working_dir: str = ""
    task_id: int | None = None


ToolHandler = Callable[[dict[str, Any], WorkspaceContext], Awaitable[Any]]


@dataclass(slots=True)
class ToolSpec:
    """Specification for a tool."""

    name: str
    description: str
    parameters: dict[str, Any]

    def to_definition(self) -> ToolDefinition:
        """Convert to ToolDefinition for the reasoning service."""
        return ToolDefinition(
            name=self.name,
            description=self.description,
            parameters=self.parameters,
        )


@dataclass
class Tool:
    """A registered tool with its handler.

    Handlers return an ``ActionResult``, a plain string (taken as a
    successful summary), a dict (successful, kept as result data) or
    ``None``.  Ordinary failures are raised as ``AgentError`` subclasses.
    """

    spec: ToolSpec
    execute: ToolHandler
    tags: list[str] = field(default_factory=list)

    @property
    def name(self) -> str:
        return self.spec.name

    def to_definition(self) -> ToolDefinition:
        return self.spec.to_definition()
