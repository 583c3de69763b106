"""Coordinator instance - an agent that can delegate.

Adds four delegation actions on top of the ordinary tools:

- ``assign_task``: create a task and give it to the first agent with a role
- ``send_agent_message``: direct message to another agent
- ``get_agent_status``: status of one agent or the whole project
- ``wait_for_task``: poll a task until it finishes or the wait times out

They are dispatched ahead of the tool registry.  A batch may mix them
with ordinary tool calls.
"""

from __future__ import annotations

import asyncio
from typing import Any

from pydantic import AliasChoices, Field

from attocrew.agent.instance import AgentInstance
from attocrew.persistence.store import AgentRecord
from attocrew.tasks.manager import TaskManager
from attocrew.tasks.state_machine import TaskStatus
from attocrew.team.agents import AgentManager, AgentStatus
from attocrew.team.messages import MESSAGE_TYPES, CommunicationManager
from attocrew.tools.base import Tool, ToolParam, ToolSpec, WorkspaceContext
from attocrew.types.messages import ActionResult

DEFAULT_POLL_INTERVAL = 1.0
DEFAULT_WAIT_TIMEOUT_MS = 60_000

DELEGATION_ACTIONS = ("assign_task", "send_agent_message", "get_agent_status", "wait_for_task")


class AssignTaskArgs(ToolParam):
    role: str = Field(min_length=1, validation_alias=AliasChoices("role", "agentRole", "agent_role"))
    title: str = Field(min_length=1, validation_alias=AliasChoices("title", "taskTitle", "task_title"))
    description: str = Field(
        min_length=1,
        validation_alias=AliasChoices("description", "taskDescription", "task_description"),
    )
    priority: int = 0


class SendMessageArgs(ToolParam):
    target_agent_id: int = Field(validation_alias=AliasChoices("target_agent_id", "targetAgentId"))
    message: str = Field(min_length=1)
    message_type: str = Field(
        default="message", validation_alias=AliasChoices("message_type", "messageType"),
    )
    related_task_id: int | None = Field(
        default=None, validation_alias=AliasChoices("related_task_id", "relatedTaskId"),
    )


class AgentStatusArgs(ToolParam):
    agent_id: int | None = Field(default=None, validation_alias=AliasChoices("agent_id", "agentId"))


class WaitForTaskArgs(ToolParam):
    task_id: int = Field(validation_alias=AliasChoices("task_id", "taskId"))
    timeout_ms: int | None = Field(
        default=None, ge=0, validation_alias=AliasChoices("timeout_ms", "timeoutMs"),
    )


class CoordinatorInstance(AgentInstance):
    """Agent instance whose dispatcher also understands delegation actions."""

    is_coordinator = True

    def __init__(
        self,
        agent_id: int,
        project_id: int,
        role: str,
        system_prompt: str,
        *,
        tasks: TaskManager,
        agents: AgentManager,
        comms: CommunicationManager,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        wait_timeout_ms: int = DEFAULT_WAIT_TIMEOUT_MS,
        **kwargs: Any,
    ) -> None:
        super().__init__(agent_id, project_id, role, system_prompt, **kwargs)
        self._tasks = tasks
        self._agents = agents
        self._comms = comms
        self._poll_interval = poll_interval
        self._wait_timeout_ms = wait_timeout_ms
        for tool in self._delegation_tools():
            self.dispatcher.add_override(tool)

    # ------------------------------------------------------------------
    # Delegation actions
    # ------------------------------------------------------------------

    async def assign_task(self, args: dict[str, Any], ctx: WorkspaceContext) -> ActionResult:
        params = AssignTaskArgs.model_validate(args)
        task = await self._tasks.create_task(
            ctx.project_id,
            params.title,
            params.description,
            priority=params.priority,
            created_by=self.agent_id,
        )
        target = await self._agents.get_agent_by_role(ctx.project_id, params.role)
        if target is None:
            return ActionResult(
                call_id="",
                name="assign_task",
                success=False,
                summary=f"No agent found with role '{params.role}'",
                details=f"Task created (ID: {task.id}) but not assigned. Check the available roles.",
                error=f"No agent with role '{params.role}' in this project",
                data={"task_id": task.id, "status": str(TaskStatus.PENDING)},
            )
        task = await self._tasks.assign_task_to_agent(task.id, target.id)
        return ActionResult(
            call_id="",
            name="assign_task",
            success=True,
            summary=f"Task assigned to {target.name} ({params.role})",
            details=f'Task ID: {task.id}, Title: "{task.title}", Priority: {task.priority}',
            data={
                "task_id": task.id,
                "agent_id": target.id,
                "agent_name": target.name,
                "status": task.status,
            },
        )

    async def send_agent_message(self, args: dict[str, Any], ctx: WorkspaceContext) -> ActionResult:
        params = SendMessageArgs.model_validate(args)
        record = await self._comms.send_agent_message(
            self.agent_id,
            params.target_agent_id,
            params.message,
            params.message_type,
            params.related_task_id,
        )
        return ActionResult(
            call_id="",
            name="send_agent_message",
            success=True,
            summary=f"Message sent to agent {params.target_agent_id}",
            details=f"Message type: {record.message_type}, ID: {record.id}",
            data={"message_id": record.id, "to_agent_id": record.to_agent_id},
        )

    async def get_agent_status(self, args: dict[str, Any], ctx: WorkspaceContext) -> ActionResult:
        params = AgentStatusArgs.model_validate(args)
        if params.agent_id is not None:
            agent = await self._agents.get_agent(params.agent_id)
            if agent is None or agent.project_id != ctx.project_id:
                return ActionResult.failure(
                    "", "get_agent_status", f"Agent {params.agent_id} not found in this project",
                )
            snapshot = await self._snapshot(agent)
            return ActionResult(
                call_id="",
                name="get_agent_status",
                success=True,
                summary=f"{agent.name} ({agent.role}): {agent.status}",
                details=(
                    f"Current task: {agent.current_task_id or 'None'}, "
                    f"Tasks completed: {snapshot['tasks_completed']}"
                ),
                data={"agent": snapshot},
            )

        agents = await self._agents.list_project_agents(ctx.project_id)
        snapshots = [await self._snapshot(a) for a in agents]
        return ActionResult(
            call_id="",
            name="get_agent_status",
            success=True,
            summary=f"{len(agents)} agent(s) in project",
            details=", ".join(f"{s['name']} ({s['role']}): {s['status']}" for s in snapshots),
            data={"agents": snapshots},
        )

    async def wait_for_task(self, args: dict[str, Any], ctx: WorkspaceContext) -> ActionResult:
        """Block this coordinator's run until the task finishes or time runs out."""
        params = WaitForTaskArgs.model_validate(args)
        timeout_ms = params.timeout_ms if params.timeout_ms is not None else self._wait_timeout_ms
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout_ms / 1000

        await self._agents.update_status(self.agent_id, AgentStatus.WAITING)
        try:
            while True:
                task = await self._tasks.get_task(params.task_id)
                if task is None:
                    return ActionResult.failure(
                        "", "wait_for_task", f"Task {params.task_id} not found",
                    )
                if task.status == TaskStatus.COMPLETED:
                    return ActionResult(
                        call_id="",
                        name="wait_for_task",
                        success=True,
                        summary=f"Task {task.id} completed successfully",
                        details=task.result or "No result provided",
                        data={"task_id": task.id, "status": task.status, "result": task.result},
                    )
                if task.status == TaskStatus.FAILED:
                    return ActionResult(
                        call_id="",
                        name="wait_for_task",
                        success=False,
                        summary=f"Task {task.id} failed",
                        details=task.error or "No error message provided",
                        error=task.error or "Task failed",
                        data={"task_id": task.id, "status": task.status, "error": task.error},
                    )
                remaining = deadline - loop.time()
                if remaining <= 0:
                    return ActionResult(
                        call_id="",
                        name="wait_for_task",
                        success=False,
                        summary=f"Timeout waiting for task {task.id}",
                        details=f"Task did not complete within {timeout_ms}ms",
                        error="timeout",
                        data={"task_id": task.id, "status": task.status, "timeout": True},
                    )
                await asyncio.sleep(min(self._poll_interval, remaining))
        finally:
            await self._agents.update_status(self.agent_id, AgentStatus.WORKING)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _snapshot(self, agent: AgentRecord) -> dict[str, Any]:
        stats = await self._agents.get_agent_stats(agent.id)
        return {
            "id": agent.id,
            "name": agent.name,
            "role": agent.role,
            "status": agent.status,
            "current_task_id": agent.current_task_id,
            "tasks_completed": stats["tasks"].get(str(TaskStatus.COMPLETED), 0),
        }

    def _delegation_tools(self) -> list[Tool]:
        return [
            Tool(
                spec=ToolSpec(
                    name="assign_task",
                    description=(
                        "Create a task and assign it to the first agent with the given role. "
                        "If no agent has the role, the task stays pending and its id is returned."
                    ),
                    parameters={
                        "type": "object",
                        "properties": {
                            "role": {"type": "string", "description": "Role of the agent to assign (e.g. backend, tester)"},
                            "title": {"type": "string", "description": "Short task title"},
                            "description": {"type": "string", "description": "What needs to be done"},
                            "priority": {"type": "integer", "description": "Higher is more urgent (default 0)"},
                        },
                        "required": ["role", "title", "description"],
                    },
                ),
                execute=self.assign_task,
                tags=["delegation"],
            ),
            Tool(
                spec=ToolSpec(
                    name="send_agent_message",
                    description="Send a message to another agent in the project",
                    parameters={
                        "type": "object",
                        "properties": {
                            "target_agent_id": {"type": "integer", "description": "Recipient agent id"},
                            "message": {"type": "string", "description": "Message text"},
                            "message_type": {
                                "type": "string",
                                "enum": list(MESSAGE_TYPES),
                                "description": "Kind of message (default: message)",
                            },
                            "related_task_id": {"type": "integer", "description": "Optional related task id"},
                        },
                        "required": ["target_agent_id", "message"],
                    },
                ),
                execute=self.send_agent_message,
                tags=["delegation"],
            ),
            Tool(
                spec=ToolSpec(
                    name="get_agent_status",
                    description="Get the status of one agent, or of every agent in the project when no id is given",
                    parameters={
                        "type": "object",
                        "properties": {
                            "agent_id": {"type": "integer", "description": "Agent id (omit for all agents)"},
                        },
                    },
                ),
                execute=self.get_agent_status,
                tags=["delegation"],
            ),
            Tool(
                spec=ToolSpec(
                    name="wait_for_task",
                    description="Wait until a task completes or fails, or until the timeout elapses",
                    parameters={
                        "type": "object",
                        "properties": {
                            "task_id": {"type": "integer", "description": "Task to wait for"},
                            "timeout_ms": {"type": "integer", "description": "Maximum wait in milliseconds (default 60000)"},
                        },
                        "required": ["task_id"],
                    },
                ),
                execute=self.wait_for_task,
                tags=["delegation"],
            ),
        ]
