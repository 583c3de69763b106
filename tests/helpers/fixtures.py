"""Shared test doubles and seed data."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from attocrew.persistence.store import AgentRecord, ProjectRecord
from attocrew.runtime import CrewRuntime
from attocrew.tools.base import Tool, ToolSpec, WorkspaceContext
from attocrew.types.messages import ToolCall


class FakeClock:
    """Manually advanced replacement for ``time.time``."""

    def __init__(self, start: float = 1_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@dataclass
class Team:
    project: ProjectRecord
    coordinator: AgentRecord
    backend: AgentRecord
    frontend: AgentRecord


async def seed_team(crew: CrewRuntime, base_dir: str = "/work/demo") -> Team:
    """One project with a coordinator, a backend and a frontend agent."""
    project = await crew.store.create_project("demo", base_dir)
    return Team(
        project=project,
        coordinator=await crew.agents.create_agent(project.id, "Cora", "coordinator"),
        backend=await crew.agents.create_agent(project.id, "Bea", "backend"),
        frontend=await crew.agents.create_agent(project.id, "Finn", "frontend"),
    )


def make_tool(name: str, fn: Any, description: str = "") -> Tool:
    return Tool(
        spec=ToolSpec(name=name, description=description or name, parameters={"type": "object"}),
        execute=fn,
    )


def call(name: str, call_id: str = "call_1", **arguments: Any) -> ToolCall:
    return ToolCall(id=call_id, name=name, arguments=arguments)


async def echo(args: dict[str, Any], ctx: WorkspaceContext) -> str:
    return f"echo: {args.get('msg', '')}"


async def explode(args: dict[str, Any], ctx: WorkspaceContext) -> str:
    raise RuntimeError("tool crashed")
