"""Action dispatch - routes requested actions to their handlers.

Actions in one batch run sequentially, in the order requested.  Names
registered as overrides (the coordinator's delegation actions) are
handled first; everything else goes to the tool registry.

Error isolation:
- malformed arguments, ``AgentError`` and validation errors become a
  failed ``ActionResult`` for that action only;
- any other exception is a defect and aborts the run.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable

from pydantic import ValidationError

from attocrew.errors import AgentError
from attocrew.events.bus import EventBroadcaster
from attocrew.tools.base import Tool, WorkspaceContext
from attocrew.tools.registry import ToolRegistry, to_action_result
from attocrew.types.events import EventType
from attocrew.types.messages import ActionResult, ToolCall, ToolDefinition

logger = logging.getLogger(__name__)

# Called once per dispatched action with (context, call, result, duration_ms).
ExecutionRecorder = Callable[[WorkspaceContext, ToolCall, ActionResult, int], Awaitable[None]]


class ActionDispatcher:
    """Dispatches a batch of tool calls and captures structured results."""

    def __init__(
        self,
        registry: ToolRegistry,
        *,
        broadcaster: EventBroadcaster | None = None,
        recorder: ExecutionRecorder | None = None,
        tool_timeout: float | None = None,
    ) -> None:
        self._registry = registry
        self._overrides: dict[str, Tool] = {}
        self._broadcaster = broadcaster
        self._recorder = recorder
        self._tool_timeout = tool_timeout

    def add_override(self, tool: Tool) -> None:
        """Handle *tool*'s name here instead of in the registry."""
        self._overrides[tool.name] = tool

    def handles(self, name: str) -> bool:
        return name in self._overrides or self._registry.has(name)

    def get_definitions(self) -> list[ToolDefinition]:
        """Action schema advertised to the reasoning service."""
        definitions = [t.to_definition() for t in self._overrides.values()]
        definitions.extend(
            d for d in self._registry.get_definitions() if d.name not in self._overrides
        )
        return definitions

    async def dispatch(self, calls: list[ToolCall], ctx: WorkspaceContext) -> list[ActionResult]:
        """Run every call in order and return one result per call."""
        results: list[ActionResult] = []
        for tc in calls:
            results.append(await self.dispatch_one(tc, ctx))
        return results

    async def dispatch_one(self, tc: ToolCall, ctx: WorkspaceContext) -> ActionResult:
        self._emit(EventType.TOOL_START, ctx, tool=tc.name, call_id=tc.id, args=tc.arguments)
        start = time.monotonic()

        if tc.parse_error:
            result = ActionResult.failure(
                tc.id, tc.name, tc.parse_error, data={"raw_arguments": tc.raw_arguments},
            )
        else:
            try:
                override = self._overrides.get(tc.name)
                if override is not None:
                    raw = await override.execute(tc.arguments, ctx)
                    result = to_action_result(tc.id, tc.name, raw)
                else:
                    result = await self._registry.invoke(
                        tc.name, tc.arguments, ctx, call_id=tc.id, timeout=self._tool_timeout,
                    )
            except AgentError as e:
                result = ActionResult.failure(tc.id, tc.name, str(e), data=dict(e.details))
            except ValidationError as e:
                result = ActionResult.failure(tc.id, tc.name, f"Invalid arguments: {e}")

        duration_ms = int((time.monotonic() - start) * 1000)
        self._emit(
            EventType.TOOL_COMPLETE if result.success else EventType.TOOL_ERROR,
            ctx,
            tool=tc.name,
            call_id=tc.id,
            success=result.success,
            summary=result.summary,
            error=result.error,
            duration_ms=duration_ms,
        )

        if self._recorder is not None:
            try:
                await self._recorder(ctx, tc, result, duration_ms)
            except Exception as e:
                logger.warning("Failed to record execution of %s: %s", tc.name, e)
        return result

    def _emit(self, event_type: EventType, ctx: WorkspaceContext, **data: object) -> None:
        if self._broadcaster is not None:
            self._broadcaster.emit(
                event_type, ctx.project_id, agent_id=ctx.agent_id, task_id=ctx.task_id, **data,
            )
