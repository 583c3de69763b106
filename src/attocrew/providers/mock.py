"""Mock reasoning service for testing."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from attocrew.types.messages import (
    ActionResult,
    ChatOptions,
    ChatResponse,
    Message,
    StopReason,
    TokenUsage,
    ToolCall,
)


@dataclass
class MockProvider:
    """Scripted reasoning service.

    Replies come from ``response_fn`` when set, otherwise from
    ``responses`` in order, then ``default_response``.  Initial calls and
    tool-result feedback calls draw from the same script.
    """

    responses: list[ChatResponse] = field(default_factory=list)
    response_fn: Callable[[list[Message], ChatOptions | None], Awaitable[ChatResponse]] | None = None
    default_response: ChatResponse = field(
        default_factory=lambda: ChatResponse(
            content="Mock response",
            stop_reason=StopReason.END_TURN,
            usage=TokenUsage(input_tokens=10, output_tokens=5, total_tokens=15),
        )
    )
    call_history: list[tuple[list[Message], ChatOptions | None]] = field(default_factory=list)
    feedback_history: list[list[ActionResult]] = field(default_factory=list)
    _response_index: int = field(default=0, init=False)

    @property
    def name(self) -> str:
        return "mock"

    @property
    def call_count(self) -> int:
        """Total service calls, initial and feedback."""
        return len(self.call_history) + len(self.feedback_history)

    async def chat(
        self,
        messages: list[Message],
        options: ChatOptions | None = None,
    ) -> ChatResponse:
        self.call_history.append((list(messages), options))
        return await self._next(messages, options)

    async def submit_tool_results(
        self,
        previous: ChatResponse,
        results: list[ActionResult],
        options: ChatOptions | None = None,
    ) -> ChatResponse:
        self.feedback_history.append(list(results))
        return await self._next([], options)

    async def _next(self, messages: list[Message], options: ChatOptions | None) -> ChatResponse:
        if self.response_fn is not None:
            return await self.response_fn(messages, options)
        if self._response_index < len(self.responses):
            resp = self.responses[self._response_index]
            self._response_index += 1
            return resp
        return self.default_response

    def add_response(
        self,
        content: str = "",
        tool_calls: list[ToolCall] | None = None,
        stop_reason: StopReason = StopReason.END_TURN,
    ) -> MockProvider:
        self.responses.append(
            ChatResponse(
                content=content,
                tool_calls=tool_calls,
                id=f"resp_{len(self.responses) + 1}",
                stop_reason=stop_reason,
                usage=TokenUsage(input_tokens=10, output_tokens=5, total_tokens=15),
            )
        )
        return self

    def add_tool_response(self, tool_calls: list[ToolCall], content: str = "") -> MockProvider:
        return self.add_response(content=content, tool_calls=tool_calls, stop_reason=StopReason.TOOL_USE)

    def reset(self) -> None:
        self.call_history.clear()
        self.feedback_history.clear()
        self._response_index = 0

    async def close(self) -> None:
        """No-op for mock provider."""
