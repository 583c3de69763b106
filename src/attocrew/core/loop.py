"""Reasoning loop - the bounded think/act/observe cycle for one run.

One ``run`` call:

1. appends the prompt as a user turn and sends the conversation;
2. appends every reply as an assistant turn, even when it has no text;
3. stops when a reply requests no actions;
4. otherwise dispatches the actions, feeds the batch of results back
   keyed by call id, and inspects the reply to that feedback next.

After ``max_iterations`` replies that all requested actions the run
fails with ``LoopExhaustedError``.  On any failure the history is cut
back to its length before the prompt so a retry starts clean.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from attocrew.core.dispatch import ActionDispatcher
from attocrew.errors import LoopExhaustedError
from attocrew.events.bus import EventBroadcaster
from attocrew.providers.base import ReasoningService
from attocrew.tools.base import WorkspaceContext
from attocrew.types.events import EventType
from attocrew.types.messages import ActionResult, ChatOptions, Message, Role

logger = logging.getLogger(__name__)

DEFAULT_MAX_ITERATIONS = 10


@dataclass(slots=True)
class LoopResult:
    """Result of one reasoning-loop run."""

    final_text: str
    action_log: list[ActionResult] = field(default_factory=list)
    iterations: int = 0


class ReasoningLoop:
    """Drives one agent's reasoning service against its action dispatcher."""

    def __init__(
        self,
        provider: ReasoningService,
        dispatcher: ActionDispatcher,
        *,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        options: ChatOptions | None = None,
        broadcaster: EventBroadcaster | None = None,
    ) -> None:
        if max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")
        self._provider = provider
        self._dispatcher = dispatcher
        self._max_iterations = max_iterations
        self._options = options or ChatOptions()
        self._broadcaster = broadcaster

    @property
    def max_iterations(self) -> int:
        return self._max_iterations

    def _chat_options(self, system_prompt: str | None) -> ChatOptions:
        return ChatOptions(
            model=self._options.model,
            max_tokens=self._options.max_tokens,
            temperature=self._options.temperature,
            tools=self._dispatcher.get_definitions() or None,
            system=system_prompt if system_prompt is not None else self._options.system,
        )

    async def run(
        self,
        history: list[Message],
        prompt: str,
        ctx: WorkspaceContext,
        *,
        system_prompt: str | None = None,
    ) -> LoopResult:
        """Run the loop, mutating *history* in place.

        Raises:
            LoopExhaustedError: the iteration cap was reached.
            ProviderError: the reasoning service call failed.
        """
        checkpoint = len(history)
        history.append(Message(role=Role.USER, content=prompt))
        options = self._chat_options(system_prompt)
        action_log: list[ActionResult] = []

        try:
            response = await self._provider.chat(list(history), options)

            for iteration in range(1, self._max_iterations + 1):
                self._emit(EventType.RUN_ITERATION, ctx, iteration=iteration)
                history.append(Message(
                    role=Role.ASSISTANT,
                    content=response.content or "",
                    tool_calls=response.tool_calls,
                ))

                if not response.has_tool_calls:
                    return LoopResult(
                        final_text=response.content or "",
                        action_log=action_log,
                        iterations=iteration,
                    )

                results = await self._dispatcher.dispatch(response.tool_calls or [], ctx)
                action_log.extend(results)

                if iteration < self._max_iterations:
                    response = await self._provider.submit_tool_results(response, results, options)

            raise LoopExhaustedError(self._max_iterations)
        except BaseException:
            del history[checkpoint:]
            logger.debug("Run failed, history rolled back to %d entries", checkpoint)
            raise

    def _emit(self, event_type: EventType, ctx: WorkspaceContext, **data: object) -> None:
        if self._broadcaster is not None:
            self._broadcaster.emit(
                event_type, ctx.project_id, agent_id=ctx.agent_id, task_id=ctx.task_id, **data,
            )
