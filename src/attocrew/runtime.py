"""Crew runtime - wires every component and owns their lifecycle.

Usage:
    async with open_runtime(load_config()) as crew:
        project = await crew.store.create_project("demo", "/work/demo")
        backend = await crew.agents.create_agent(project.id, "Bea", "backend")
        task = await crew.tasks.create_task(project.id, "Add endpoint", priority=5)
        await crew.tasks.assign_task_to_agent(task.id, backend.id)
        result = await crew.pool.execute(backend.id, "Add the /health endpoint", task_id=task.id)
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Callable

from attocrew.config import CrewConfig, load_config
from attocrew.events.bus import EventBroadcaster
from attocrew.orchestrator.pool import AgentPool
from attocrew.persistence.store import CrewStore
from attocrew.providers.base import ReasoningService
from attocrew.providers.responses import ResponsesProvider
from attocrew.tasks.manager import TaskManager
from attocrew.team.agents import AgentManager
from attocrew.team.messages import CommunicationManager
from attocrew.team.roles import RoleManager
from attocrew.tools.base import Tool
from attocrew.tools.locks import create_lock_tools
from attocrew.tools.registry import ToolRegistry
from attocrew.utilities.logger import crew_logger, setup_logging
from attocrew.workspace.locks import LockRegistry

logger = logging.getLogger(__name__)


@dataclass
class CrewRuntime:
    """Handles to every wired component."""

    config: CrewConfig
    store: CrewStore
    broadcaster: EventBroadcaster
    roles: RoleManager
    agents: AgentManager
    comms: CommunicationManager
    tasks: TaskManager
    locks: LockRegistry
    registry: ToolRegistry
    provider: ReasoningService
    pool: AgentPool

    async def close(self) -> None:
        """Release pooled agents, stop the sweeper, close provider and store."""
        try:
            await self.pool.release_all()
        finally:
            await self.locks.stop()
            await self.provider.close()
            await self.store.close()


def build_provider(config: CrewConfig) -> ReasoningService:
    """Reasoning service adapter for the configured endpoint."""
    return ResponsesProvider(
        api_key=config.api_key,
        model=config.model,
        api_url=config.api_url,
        timeout=config.request_timeout,
        temperature=config.temperature,
    )


async def create_runtime(
    config: CrewConfig | None = None,
    *,
    provider: ReasoningService | None = None,
    tools: list[Tool] | None = None,
    clock: Callable[[], float] = time.time,
    start_sweeper: bool = True,
) -> CrewRuntime:
    """Open the store, seed roles and wire the components.

    Call ``CrewRuntime.close`` when done, or use ``open_runtime``.
    """
    config = config or load_config()
    if config.configure_logging:
        setup_logging(debug=config.debug, json_output=config.json_logs)

    store = CrewStore(config.db_path)
    await store.initialize()
    broadcaster = EventBroadcaster(config.event_log_path)

    roles = RoleManager(store)
    await roles.seed_predefined()
    agents = AgentManager(store, roles, broadcaster=broadcaster)
    comms = CommunicationManager(store, broadcaster=broadcaster)
    tasks = TaskManager(store, broadcaster=broadcaster, clock=clock)
    locks = LockRegistry(
        store,
        broadcaster=broadcaster,
        default_ttl=config.lock_ttl,
        sweep_interval=config.lock_sweep_interval,
        stale_age=config.stale_lock_age,
        clock=clock,
    )

    registry = ToolRegistry(default_timeout=config.tool_timeout)
    registry.register_all(create_lock_tools(locks))
    registry.register_all(tools or [])

    provider = provider or build_provider(config)
    pool = AgentPool(
        store,
        provider=provider,
        registry=registry,
        locks=locks,
        tasks=tasks,
        agents=agents,
        comms=comms,
        broadcaster=broadcaster,
        config=config,
    )
    if start_sweeper:
        locks.start()

    crew_logger(db=config.db_path, provider=provider.name).info(
        "runtime.opened", tools=registry.list_tools(),
    )
    return CrewRuntime(
        config=config,
        store=store,
        broadcaster=broadcaster,
        roles=roles,
        agents=agents,
        comms=comms,
        tasks=tasks,
        locks=locks,
        registry=registry,
        provider=provider,
        pool=pool,
    )


@asynccontextmanager
async def open_runtime(
    config: CrewConfig | None = None,
    *,
    provider: ReasoningService | None = None,
    tools: list[Tool] | None = None,
    clock: Callable[[], float] = time.time,
    start_sweeper: bool = True,
) -> AsyncIterator[CrewRuntime]:
    """Async context manager around ``create_runtime`` / ``CrewRuntime.close``."""
    runtime = await create_runtime(
        config, provider=provider, tools=tools, clock=clock, start_sweeper=start_sweeper,
    )
    try:
        yield runtime
    finally:
        await runtime.close()
        logger.debug("Runtime closed")
