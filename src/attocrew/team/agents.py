"""Agent records: identity, role, persisted status and current task."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from attocrew.errors import AgentNotFoundError, RoleNotFoundError, TeamError
from attocrew.events.bus import EventBroadcaster
from attocrew.persistence.store import AgentRecord, CrewStore
from attocrew.team.roles import RoleManager
from attocrew.types.events import EventType


class AgentStatus(StrEnum):
    """Persisted agent status shown to observers."""

    IDLE = "idle"
    WORKING = "working"
    WAITING = "waiting"
    PAUSED = "paused"


class AgentManager:
    """CRUD over agent records plus prompt resolution and stats."""

    def __init__(
        self,
        store: CrewStore,
        roles: RoleManager,
        *,
        broadcaster: EventBroadcaster | None = None,
    ) -> None:
        self._store = store
        self._roles = roles
        self._broadcaster = broadcaster

    async def create_agent(
        self,
        project_id: int,
        name: str,
        role: str,
        custom_prompt: str | None = None,
    ) -> AgentRecord:
        if not name or not role:
            raise TeamError("name and role are required")
        if not await self._roles.role_exists(role):
            raise RoleNotFoundError(role)
        agent = await self._store.insert_agent(project_id, name, role, custom_prompt)
        self._emit_status(agent)
        return agent

    async def get_agent(self, agent_id: int) -> AgentRecord | None:
        return await self._store.get_agent(agent_id)

    async def require_agent(self, agent_id: int) -> AgentRecord:
        agent = await self._store.get_agent(agent_id)
        if agent is None:
            raise AgentNotFoundError(agent_id)
        return agent

    async def list_project_agents(
        self,
        project_id: int,
        *,
        status: AgentStatus | str | None = None,
    ) -> list[AgentRecord]:
        return await self._store.list_agents(
            project_id, status=str(status) if status is not None else None,
        )

    async def get_agent_by_role(self, project_id: int, role: str) -> AgentRecord | None:
        """First agent in the project with *role*, by creation order."""
        return await self._store.first_agent_with_role(project_id, role)

    async def update_status(self, agent_id: int, status: AgentStatus | str) -> AgentRecord:
        try:
            new_status = AgentStatus(status)
        except ValueError:
            allowed = ", ".join(s.value for s in AgentStatus)
            raise TeamError(f"Invalid status. Must be one of: {allowed}") from None
        await self.require_agent(agent_id)
        await self._store.update_agent(agent_id, status=str(new_status))
        agent = await self.require_agent(agent_id)
        self._emit_status(agent)
        return agent

    async def set_current_task(self, agent_id: int, task_id: int) -> None:
        await self._store.update_agent(agent_id, current_task_id=task_id)

    async def clear_current_task(self, agent_id: int) -> None:
        await self._store.update_agent(agent_id, current_task_id=None)

    async def rename(self, agent_id: int, name: str) -> AgentRecord:
        if not name or not name.strip():
            raise TeamError("Agent name cannot be empty")
        await self.require_agent(agent_id)
        await self._store.update_agent(agent_id, name=name.strip())
        return await self.require_agent(agent_id)

    async def delete_agent(self, agent_id: int) -> None:
        agent = await self.require_agent(agent_id)
        if agent.current_task_id is not None:
            raise TeamError(
                "Cannot delete agent while it has an assigned task. "
                "Complete or reassign the task first."
            )
        await self._store.delete_agent(agent_id)

    async def get_effective_prompt(self, agent_id: int) -> str:
        """The agent's custom prompt, or its role's default."""
        agent = await self.require_agent(agent_id)
        if agent.custom_prompt:
            return agent.custom_prompt
        return await self._roles.get_system_prompt(agent.role)

    async def get_agent_stats(self, agent_id: int) -> dict[str, Any]:
        await self.require_agent(agent_id)
        tasks = await self._store.task_status_counts(agent_id=agent_id)
        return {
            "tasks": tasks,
            "tasks_total": sum(tasks.values()),
            "tool_executions": await self._store.count_tool_executions(agent_id),
            "history_messages": len(await self._store.load_history(agent_id)),
        }

    def _emit_status(self, agent: AgentRecord) -> None:
        if self._broadcaster is not None:
            self._broadcaster.emit(
                EventType.AGENT_STATUS,
                agent.project_id,
                agent_id=agent.id,
                task_id=agent.current_task_id,
                status=agent.status,
                role=agent.role,
                name=agent.name,
            )
