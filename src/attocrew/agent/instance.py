"""Agent instance - one logical agent's live state.

Owns the conversation history, the running and paused flags, and a
reasoning loop wired to its own dispatcher.  The running flag is only
set and cleared by ``AgentPool`` under its lock.
"""

from __future__ import annotations

from typing import Any

from attocrew.core.dispatch import ActionDispatcher, ExecutionRecorder
from attocrew.core.loop import DEFAULT_MAX_ITERATIONS, LoopResult, ReasoningLoop
from attocrew.events.bus import EventBroadcaster
from attocrew.providers.base import ReasoningService
from attocrew.tools.base import WorkspaceContext
from attocrew.tools.registry import ToolRegistry
from attocrew.types.messages import ChatOptions, Message


class AgentInstance:
    """A pooled agent with history and run flags."""

    is_coordinator = False

    def __init__(
        self,
        agent_id: int,
        project_id: int,
        role: str,
        system_prompt: str,
        *,
        provider: ReasoningService,
        registry: ToolRegistry,
        working_dir: str = "",
        broadcaster: EventBroadcaster | None = None,
        recorder: ExecutionRecorder | None = None,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        tool_timeout: float | None = None,
        chat_options: ChatOptions | None = None,
    ) -> None:
        self.agent_id = agent_id
        self.project_id = project_id
        self.role = role
        self.system_prompt = system_prompt
        self.working_dir = working_dir
        self.history: list[Message] = []
        self.running = False
        self.paused = False
        self.dispatcher = ActionDispatcher(
            registry, broadcaster=broadcaster, recorder=recorder, tool_timeout=tool_timeout,
        )
        self.loop = ReasoningLoop(
            provider,
            self.dispatcher,
            max_iterations=max_iterations,
            options=chat_options,
            broadcaster=broadcaster,
        )

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(agent_id={self.agent_id}, role={self.role!r}, "
            f"running={self.running}, paused={self.paused})"
        )

    def context(self, task_id: int | None = None) -> WorkspaceContext:
        return WorkspaceContext(
            project_id=self.project_id,
            agent_id=self.agent_id,
            working_dir=self.working_dir,
            task_id=task_id,
        )

    async def run(self, prompt: str, *, task_id: int | None = None) -> LoopResult:
        """Drive the reasoning loop once over this agent's history."""
        return await self.loop.run(
            self.history, prompt, self.context(task_id), system_prompt=self.system_prompt,
        )

    # --- History ---

    def load_history(self, messages: list[dict[str, Any]]) -> None:
        """Replace the history wholesale with stored messages."""
        self.history = [Message.from_dict(m) for m in messages]

    def export_history(self) -> list[dict[str, Any]]:
        return [m.to_dict() for m in self.history]

    def clear_history(self) -> None:
        self.history = []

    # --- Advisory flags ---

    def pause(self) -> None:
        self.paused = True

    def resume(self) -> None:
        self.paused = False
