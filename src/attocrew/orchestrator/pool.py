"""Agent pool - keyed cache of live agent instances.

The pool is the only place that sets or clears an instance's running
flag.  The id -> instance map and every check-then-set of the flag are
serialized by one ``asyncio.Lock``, so two concurrent ``execute`` calls
for the same agent cannot both get past the ``AlreadyRunningError``
check.

Run cleanup (locks released, history saved, status reset, flag
cleared) happens on every exit path of ``execute`` once the task has
started.  A task that cannot be started leaves the agent untouched.
The flag is cleared last so a new run never starts while the previous
run's locks are still being released.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from attocrew.agent.coordinator import CoordinatorInstance
from attocrew.agent.instance import AgentInstance
from attocrew.config import CrewConfig
from attocrew.core.loop import LoopResult
from attocrew.errors import AlreadyRunningError
from attocrew.events.bus import EventBroadcaster
from attocrew.persistence.store import AgentRecord, CrewStore
from attocrew.providers.base import ReasoningService
from attocrew.tasks.manager import TaskManager
from attocrew.tasks.state_machine import TaskStatus
from attocrew.team.agents import AgentManager, AgentStatus
from attocrew.team.messages import CommunicationManager
from attocrew.team.roles import COORDINATOR_ROLE
from attocrew.tools.base import WorkspaceContext
from attocrew.tools.registry import ToolRegistry
from attocrew.types.events import EventType
from attocrew.types.messages import ActionResult, ChatOptions, ToolCall
from attocrew.workspace.locks import LockRegistry

logger = logging.getLogger(__name__)


def _describe_error(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__


class AgentPool:
    """Creates, runs and releases agent instances."""

    def __init__(
        self,
        store: CrewStore,
        *,
        provider: ReasoningService,
        registry: ToolRegistry,
        locks: LockRegistry,
        tasks: TaskManager,
        agents: AgentManager,
        comms: CommunicationManager,
        broadcaster: EventBroadcaster | None = None,
        config: CrewConfig | None = None,
    ) -> None:
        self._store = store
        self._provider = provider
        self._registry = registry
        self._locks = locks
        self._tasks = tasks
        self._agents = agents
        self._comms = comms
        self._broadcaster = broadcaster
        self._config = config or CrewConfig()
        self._instances: dict[int, AgentInstance] = {}
        self._project_index: dict[int, set[int]] = {}
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Instances
    # ------------------------------------------------------------------

    async def get_or_create(self, agent_id: int) -> AgentInstance:
        """Return the pooled instance, loading it from the store on first use."""
        async with self._lock:
            return await self._get_or_create_locked(agent_id)

    async def _get_or_create_locked(self, agent_id: int) -> AgentInstance:
        instance = self._instances.get(agent_id)
        if instance is not None:
            return instance

        agent = await self._agents.require_agent(agent_id)
        prompt = await self._agents.get_effective_prompt(agent_id)
        project = await self._store.get_project(agent.project_id)
        instance = self._build_instance(agent, prompt, project.base_dir if project else "")
        instance.load_history(await self._store.load_history(agent_id))
        instance.paused = agent.status == AgentStatus.PAUSED

        self._instances[agent_id] = instance
        self._project_index.setdefault(agent.project_id, set()).add(agent_id)
        logger.debug("Loaded agent %s (%s) with %d history entries", agent_id, agent.role, len(instance.history))
        return instance

    def _build_instance(self, agent: AgentRecord, prompt: str, working_dir: str) -> AgentInstance:
        cfg = self._config
        common: dict[str, Any] = {
            "provider": self._provider,
            "registry": self._registry,
            "working_dir": working_dir,
            "broadcaster": self._broadcaster,
            "recorder": self._record_execution,
            "max_iterations": cfg.max_iterations,
            "tool_timeout": cfg.tool_timeout,
            "chat_options": ChatOptions(model=cfg.model, temperature=cfg.temperature),
        }
        if agent.role == COORDINATOR_ROLE:
            return CoordinatorInstance(
                agent.id, agent.project_id, agent.role, prompt,
                tasks=self._tasks,
                agents=self._agents,
                comms=self._comms,
                poll_interval=cfg.wait_poll_interval,
                wait_timeout_ms=int(cfg.wait_timeout * 1000),
                **common,
            )
        return AgentInstance(agent.id, agent.project_id, agent.role, prompt, **common)

    def get(self, agent_id: int) -> AgentInstance | None:
        return self._instances.get(agent_id)

    def is_running(self, agent_id: int) -> bool:
        instance = self._instances.get(agent_id)
        return instance is not None and instance.running

    def project_instances(self, project_id: int) -> list[AgentInstance]:
        return [self._instances[a] for a in sorted(self._project_index.get(project_id, ()))]

    def active_sessions(self) -> list[dict[str, Any]]:
        return [
            {
                "agent_id": inst.agent_id,
                "project_id": inst.project_id,
                "role": inst.role,
                "running": inst.running,
                "paused": inst.paused,
                "history_length": len(inst.history),
            }
            for inst in self._instances.values()
        ]

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def execute(self, agent_id: int, prompt: str, *, task_id: int | None = None) -> LoopResult:
        """Run one prompt through an agent's reasoning loop.

        Raises:
            AlreadyRunningError: a run for this agent is already in flight.
            InvalidTaskTransitionError, TaskOwnershipError, TaskNotFoundError:
                the task cannot be started by this agent; nothing is changed.
            LoopExhaustedError, ProviderError: the run failed; the task
                is marked failed and cleanup has already happened.
        """
        async with self._lock:
            instance = await self._get_or_create_locked(agent_id)
            if instance.running:
                raise AlreadyRunningError(agent_id)
            instance.running = True

        # A rejected start has changed nothing yet, so only the flag is undone
        if task_id is not None:
            try:
                await self._tasks.start_task(task_id, agent_id)
            except BaseException:
                async with self._lock:
                    instance.running = False
                raise

        try:
            if task_id is not None:
                await self._agents.set_current_task(agent_id, task_id)
            await self._agents.update_status(agent_id, AgentStatus.WORKING)
        except BaseException as exc:
            await self._finish_run(instance, task_id)
            if task_id is not None:
                await self._settle_task(task_id, TaskStatus.FAILED, error=_describe_error(exc))
            raise

        self._emit(EventType.RUN_START, instance, task_id, prompt=prompt[:200])
        logger.info("Agent %s started run (task=%s)", agent_id, task_id)

        try:
            result = await instance.run(prompt, task_id=task_id)
        except BaseException as exc:
            await self._finish_run(instance, task_id)
            if task_id is not None:
                await self._settle_task(task_id, TaskStatus.FAILED, error=_describe_error(exc))
            self._emit(EventType.RUN_ERROR, instance, task_id, error=_describe_error(exc))
            logger.warning("Agent %s run failed: %s", agent_id, _describe_error(exc))
            raise

        await self._finish_run(instance, task_id)
        if task_id is not None:
            await self._settle_task(task_id, TaskStatus.COMPLETED, result=result.final_text)
        self._emit(
            EventType.RUN_COMPLETE, instance, task_id,
            iterations=result.iterations, actions=len(result.action_log),
        )
        logger.info("Agent %s finished run in %d iteration(s)", agent_id, result.iterations)
        return result

    async def _finish_run(self, instance: AgentInstance, task_id: int | None) -> None:
        """Cleanup after a run.  Never raises; each step logs its own failure."""
        agent_id = instance.agent_id
        try:
            await self._locks.release_all_for_agent(agent_id)
        except Exception:
            logger.exception("Failed to release locks for agent %s", agent_id)
        try:
            await self._store.save_history(agent_id, instance.export_history(), task_id=task_id)
        except Exception:
            logger.exception("Failed to save history for agent %s", agent_id)
        try:
            if task_id is not None:
                await self._agents.clear_current_task(agent_id)
            await self._agents.update_status(
                agent_id, AgentStatus.PAUSED if instance.paused else AgentStatus.IDLE,
            )
        except Exception:
            logger.exception("Failed to reset status for agent %s", agent_id)
        async with self._lock:
            instance.running = False

    async def _settle_task(
        self,
        task_id: int,
        status: TaskStatus,
        *,
        result: str | None = None,
        error: str | None = None,
    ) -> None:
        try:
            await self._tasks.update_status(task_id, status, result=result, error=error)
        except Exception:
            logger.exception("Failed to mark task %s %s", task_id, status)

    async def _record_execution(
        self,
        ctx: WorkspaceContext,
        tc: ToolCall,
        result: ActionResult,
        duration_ms: int,
    ) -> None:
        await self._store.record_tool_execution(
            ctx.agent_id,
            tc.name,
            tc.arguments,
            result.to_payload(),
            success=result.success,
            duration_ms=duration_ms,
            task_id=ctx.task_id,
        )

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------

    async def pause(self, agent_id: int) -> None:
        """Set the advisory pause flag.  An in-flight run is not interrupted."""
        instance = await self.get_or_create(agent_id)
        instance.pause()
        if not instance.running:
            await self._agents.update_status(agent_id, AgentStatus.PAUSED)

    async def resume(self, agent_id: int) -> None:
        instance = await self.get_or_create(agent_id)
        instance.resume()
        await self._agents.update_status(
            agent_id, AgentStatus.WORKING if instance.running else AgentStatus.IDLE,
        )

    async def save_history(self, agent_id: int, *, task_id: int | None = None) -> bool:
        instance = self._instances.get(agent_id)
        if instance is None:
            return False
        await self._store.save_history(agent_id, instance.export_history(), task_id=task_id)
        return True

    async def clear_history(self, agent_id: int) -> None:
        async with self._lock:
            instance = await self._get_or_create_locked(agent_id)
            if instance.running:
                raise AlreadyRunningError(agent_id, f"Cannot clear history of agent {agent_id} while it is running")
            instance.clear_history()
            await self._store.save_history(agent_id, [])

    # ------------------------------------------------------------------
    # Release
    # ------------------------------------------------------------------

    async def release(self, agent_id: int) -> bool:
        """Flush history, drop locks and evict.  Not pooled is a no-op."""
        async with self._lock:
            return await self._release_locked(agent_id)

    async def _release_locked(self, agent_id: int) -> bool:
        instance = self._instances.get(agent_id)
        if instance is None:
            return False
        if instance.running:
            raise AlreadyRunningError(agent_id, f"Cannot release agent {agent_id} while it is running")
        await self._store.save_history(agent_id, instance.export_history())
        await self._locks.release_all_for_agent(agent_id)
        del self._instances[agent_id]
        members = self._project_index.get(instance.project_id)
        if members is not None:
            members.discard(agent_id)
            if not members:
                del self._project_index[instance.project_id]
        logger.debug("Released agent %s", agent_id)
        return True

    async def release_project(self, project_id: int) -> int:
        """Release every pooled agent of a project, then all its locks."""
        async with self._lock:
            members = sorted(self._project_index.get(project_id, ()))
            running = [a for a in members if self._instances[a].running]
            if running:
                raise AlreadyRunningError(
                    running[0], f"Cannot release project {project_id}: agent {running[0]} is running",
                )
            for agent_id in members:
                await self._release_locked(agent_id)
        await self._locks.release_all_for_project(project_id)
        return len(members)

    async def release_all(self) -> int:
        """Best-effort release of every pooled instance (shutdown)."""
        released = 0
        for agent_id in list(self._instances):
            try:
                if await self.release(agent_id):
                    released += 1
            except Exception:
                logger.exception("Failed to release agent %s", agent_id)
        return released

    def _emit(self, event_type: EventType, instance: AgentInstance, task_id: int | None, **data: object) -> None:
        if self._broadcaster is not None:
            self._broadcaster.emit(
                event_type, instance.project_id, agent_id=instance.agent_id, task_id=task_id, **data,
            )
