"""Tests for agent records, status and prompts."""

from __future__ import annotations

import pytest

from attocrew.errors import AgentNotFoundError, RoleNotFoundError, TeamError
from attocrew.runtime import CrewRuntime
from attocrew.team.agents import AgentStatus
from attocrew.types.events import EventType
from tests.helpers.fixtures import seed_team


class TestAgentManager:
    @pytest.mark.asyncio
    async def test_create_requires_known_role(self, crew: CrewRuntime) -> None:
        project = await crew.store.create_project("demo")
        with pytest.raises(RoleNotFoundError):
            await crew.agents.create_agent(project.id, "Ghost", "astronaut")

    @pytest.mark.asyncio
    async def test_new_agent_is_idle(self, crew: CrewRuntime) -> None:
        team = await seed_team(crew)
        assert team.backend.status == AgentStatus.IDLE
        agents = await crew.agents.list_project_agents(team.project.id)
        assert [a.name for a in agents] == ["Cora", "Bea", "Finn"]

    @pytest.mark.asyncio
    async def test_first_agent_by_role(self, crew: CrewRuntime) -> None:
        team = await seed_team(crew)
        await crew.agents.create_agent(team.project.id, "Bob", "backend")
        found = await crew.agents.get_agent_by_role(team.project.id, "backend")
        assert found is not None and found.id == team.backend.id
        assert await crew.agents.get_agent_by_role(team.project.id, "tester") is None

    @pytest.mark.asyncio
    async def test_update_status(self, crew: CrewRuntime) -> None:
        team = await seed_team(crew)
        agent = await crew.agents.update_status(team.backend.id, AgentStatus.WORKING)
        assert agent.status == "working"
        event = crew.broadcaster.recent(1, event_type=EventType.AGENT_STATUS)[0]
        assert event.agent_id == team.backend.id
        assert event.data["status"] == "working"
        working = await crew.agents.list_project_agents(team.project.id, status="working")
        assert [a.id for a in working] == [team.backend.id]

    @pytest.mark.asyncio
    async def test_invalid_status(self, crew: CrewRuntime) -> None:
        team = await seed_team(crew)
        with pytest.raises(TeamError, match="Invalid status"):
            await crew.agents.update_status(team.backend.id, "sleeping")

    @pytest.mark.asyncio
    async def test_effective_prompt(self, crew: CrewRuntime) -> None:
        project = await crew.store.create_project("demo")
        plain = await crew.agents.create_agent(project.id, "Plain", "devops")
        custom = await crew.agents.create_agent(project.id, "Custom", "devops", "Only use Terraform.")
        assert await crew.agents.get_effective_prompt(plain.id) == await crew.roles.get_system_prompt("devops")
        assert await crew.agents.get_effective_prompt(custom.id) == "Only use Terraform."

    @pytest.mark.asyncio
    async def test_rename(self, crew: CrewRuntime) -> None:
        team = await seed_team(crew)
        renamed = await crew.agents.rename(team.frontend.id, "  Fiona ")
        assert renamed.name == "Fiona"
        with pytest.raises(TeamError):
            await crew.agents.rename(team.frontend.id, "   ")

    @pytest.mark.asyncio
    async def test_delete_refused_with_current_task(self, crew: CrewRuntime) -> None:
        team = await seed_team(crew)
        task = await crew.tasks.create_task(team.project.id, "Work")
        await crew.agents.set_current_task(team.backend.id, task.id)
        with pytest.raises(TeamError):
            await crew.agents.delete_agent(team.backend.id)
        await crew.agents.clear_current_task(team.backend.id)
        await crew.agents.delete_agent(team.backend.id)
        with pytest.raises(AgentNotFoundError):
            await crew.agents.require_agent(team.backend.id)

    @pytest.mark.asyncio
    async def test_stats(self, crew: CrewRuntime) -> None:
        team = await seed_team(crew)
        task = await crew.tasks.create_task(team.project.id, "Work")
        await crew.tasks.assign_task_to_agent(task.id, team.backend.id)
        await crew.store.record_tool_execution(
            team.backend.id, "lock_file", {"path": "a"}, {"success": True}, success=True,
        )
        stats = await crew.agents.get_agent_stats(team.backend.id)
        assert stats["tasks"] == {"assigned": 1}
        assert stats["tasks_total"] == 1
        assert stats["tool_executions"] == 1
        assert stats["history_messages"] == 0
