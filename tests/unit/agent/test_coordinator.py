"""Tests for the coordinator's delegation actions."""

from __future__ import annotations

import asyncio

import pytest

from attocrew.agent.coordinator import DELEGATION_ACTIONS, CoordinatorInstance
from attocrew.errors import SelfMessageError
from attocrew.runtime import CrewRuntime
from attocrew.tasks.state_machine import TaskStatus
from attocrew.team.agents import AgentStatus
from tests.helpers.fixtures import Team, call, seed_team


async def _coordinator(crew: CrewRuntime) -> tuple[Team, CoordinatorInstance]:
    team = await seed_team(crew)
    instance = await crew.pool.get_or_create(team.coordinator.id)
    assert isinstance(instance, CoordinatorInstance)
    return team, instance


class TestSetup:
    @pytest.mark.asyncio
    async def test_only_coordinator_role_delegates(self, crew: CrewRuntime) -> None:
        team, coordinator = await _coordinator(crew)
        worker = await crew.pool.get_or_create(team.backend.id)
        assert not isinstance(worker, CoordinatorInstance)
        names = [d.name for d in coordinator.dispatcher.get_definitions()]
        assert names[:4] == list(DELEGATION_ACTIONS)
        assert "lock_file" in names
        assert not worker.dispatcher.handles("assign_task")


class TestMixedBatch:
    @pytest.mark.asyncio
    async def test_delegation_and_tool_actions_in_one_batch(self, crew: CrewRuntime) -> None:
        team, coordinator = await _coordinator(crew)
        results = await coordinator.dispatcher.dispatch(
            [
                call("assign_task", "d1", role="backend", title="Add endpoint"),
                call("lock_file", "t1", path="docs/plan.md"),
                call("get_agent_status", "d2", agent_id=team.backend.id),
            ],
            coordinator.context(),
        )

        assert [(r.call_id, r.name, r.success) for r in results] == [
            ("d1", "assign_task", True),
            ("t1", "lock_file", True),
            ("d2", "get_agent_status", True),
        ]
        task = await crew.tasks.require_task(results[0].data["task_id"])
        assert task.agent_id == team.backend.id
        held = await crew.locks.check(team.project.id, "docs/plan.md")
        assert held is not None
        assert held.holder_id == team.coordinator.id
        executions = await crew.store.list_tool_executions(team.coordinator.id)
        assert [e.tool_name for e in executions] == ["assign_task", "lock_file", "get_agent_status"]


class TestAssignTask:
    @pytest.mark.asyncio
    async def test_assigns_first_agent_with_role(self, crew: CrewRuntime) -> None:
        team, coordinator = await _coordinator(crew)
        result = await coordinator.assign_task(
            {"role": "backend", "title": "Add endpoint", "description": "GET /health", "priority": 4},
            coordinator.context(),
        )
        assert result.success
        task = await crew.tasks.require_task(result.data["task_id"])
        assert task.status == TaskStatus.ASSIGNED
        assert task.agent_id == team.backend.id
        assert task.created_by == team.coordinator.id
        assert task.priority == 4

    @pytest.mark.asyncio
    async def test_accepts_camel_case_arguments(self, crew: CrewRuntime) -> None:
        _, coordinator = await _coordinator(crew)
        result = await coordinator.assign_task(
            {"agentRole": "frontend", "taskTitle": "Navbar", "taskDescription": "Responsive"},
            coordinator.context(),
        )
        assert result.success

    @pytest.mark.asyncio
    async def test_missing_role_leaves_task_pending(self, crew: CrewRuntime) -> None:
        team, coordinator = await _coordinator(crew)
        result = await coordinator.assign_task(
            {"role": "tester", "title": "Write e2e tests", "description": "Cover login"},
            coordinator.context(),
        )
        assert not result.success
        assert result.data["status"] == "pending"
        task = await crew.tasks.require_task(result.data["task_id"])
        assert task.status == TaskStatus.PENDING
        assert task.agent_id is None

    @pytest.mark.asyncio
    async def test_invalid_arguments_fail_through_dispatch(self, crew: CrewRuntime) -> None:
        _, coordinator = await _coordinator(crew)
        results = await coordinator.dispatcher.dispatch(
            [call("assign_task", role="backend")], coordinator.context(),
        )
        assert not results[0].success
        assert "Invalid arguments" in (results[0].error or "")


class TestMessaging:
    @pytest.mark.asyncio
    async def test_send_message(self, crew: CrewRuntime) -> None:
        team, coordinator = await _coordinator(crew)
        result = await coordinator.send_agent_message(
            {"targetAgentId": team.frontend.id, "message": "Use the new API", "messageType": "message"},
            coordinator.context(),
        )
        assert result.success
        inbox = await crew.comms.inbox(team.frontend.id)
        assert inbox[0].from_agent_id == team.coordinator.id

    @pytest.mark.asyncio
    async def test_self_message_rejected(self, crew: CrewRuntime) -> None:
        team, coordinator = await _coordinator(crew)
        with pytest.raises(SelfMessageError):
            await coordinator.send_agent_message(
                {"target_agent_id": team.coordinator.id, "message": "note to self"},
                coordinator.context(),
            )
        results = await coordinator.dispatcher.dispatch(
            [call("send_agent_message", target_agent_id=team.coordinator.id, message="hi")],
            coordinator.context(),
        )
        assert not results[0].success


class TestAgentStatus:
    @pytest.mark.asyncio
    async def test_single_agent(self, crew: CrewRuntime) -> None:
        team, coordinator = await _coordinator(crew)
        result = await coordinator.get_agent_status({"agentId": team.backend.id}, coordinator.context())
        assert result.success
        assert result.data["agent"]["role"] == "backend"
        assert result.data["agent"]["tasks_completed"] == 0

    @pytest.mark.asyncio
    async def test_all_agents(self, crew: CrewRuntime) -> None:
        _, coordinator = await _coordinator(crew)
        result = await coordinator.get_agent_status({}, coordinator.context())
        assert len(result.data["agents"]) == 3

    @pytest.mark.asyncio
    async def test_agent_outside_project(self, crew: CrewRuntime) -> None:
        _, coordinator = await _coordinator(crew)
        other = await crew.store.create_project("other")
        stranger = await crew.agents.create_agent(other.id, "Sam", "devops")
        result = await coordinator.get_agent_status({"agent_id": stranger.id}, coordinator.context())
        assert not result.success


class TestWaitForTask:
    @pytest.mark.asyncio
    async def test_already_completed(self, crew: CrewRuntime) -> None:
        team, coordinator = await _coordinator(crew)
        task = await crew.tasks.create_task(team.project.id, "Done")
        await crew.tasks.start_task(task.id, team.backend.id)
        await crew.tasks.complete_task(task.id, "all green")

        result = await coordinator.wait_for_task({"taskId": task.id}, coordinator.context())
        assert result.success
        assert result.data["result"] == "all green"
        agent = await crew.agents.require_agent(team.coordinator.id)
        assert agent.status == AgentStatus.WORKING

    @pytest.mark.asyncio
    async def test_failed_task(self, crew: CrewRuntime) -> None:
        team, coordinator = await _coordinator(crew)
        task = await crew.tasks.create_task(team.project.id, "Doomed")
        await crew.tasks.fail_task(task.id, "compile error")
        result = await coordinator.wait_for_task({"task_id": task.id}, coordinator.context())
        assert not result.success
        assert result.error == "compile error"

    @pytest.mark.asyncio
    async def test_completes_while_waiting(self, crew: CrewRuntime) -> None:
        team, coordinator = await _coordinator(crew)
        task = await crew.tasks.create_task(team.project.id, "Later")
        await crew.tasks.start_task(task.id, team.backend.id)
        statuses: list[str] = []

        async def finish_later() -> None:
            await asyncio.sleep(0.05)
            statuses.append((await crew.agents.require_agent(team.coordinator.id)).status)
            await crew.tasks.complete_task(task.id, "done")

        finisher = asyncio.create_task(finish_later())
        result = await coordinator.wait_for_task(
            {"task_id": task.id, "timeout_ms": 5000}, coordinator.context(),
        )
        await finisher
        assert result.success
        assert statuses == ["waiting"]

    @pytest.mark.asyncio
    async def test_timeout(self, crew: CrewRuntime) -> None:
        team, coordinator = await _coordinator(crew)
        task = await crew.tasks.create_task(team.project.id, "Never")
        result = await coordinator.wait_for_task(
            {"task_id": task.id, "timeout_ms": 30}, coordinator.context(),
        )
        assert not result.success
        assert result.data == {"task_id": task.id, "status": "pending", "timeout": True}

    @pytest.mark.asyncio
    async def test_unknown_task(self, crew: CrewRuntime) -> None:
        _, coordinator = await _coordinator(crew)
        result = await coordinator.wait_for_task({"task_id": 404, "timeout_ms": 10}, coordinator.context())
        assert not result.success
