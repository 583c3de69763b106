"""Reasoning-service protocol.

A provider turns conversation state into a parsed ``ChatResponse`` and
accepts a batch of action results keyed by call id as the next turn.
Transport failures surface as ``ProviderError``.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from attocrew.types.messages import ActionResult, ChatOptions, ChatResponse, Message


@runtime_checkable
class ReasoningService(Protocol):
    """Interface every reasoning-service adapter implements."""

    @property
    def name(self) -> str: ...

    async def chat(
        self,
        messages: list[Message],
        options: ChatOptions | None = None,
    ) -> ChatResponse:
        """Send the full conversation and return the parsed reply."""
        ...

    async def submit_tool_results(
        self,
        previous: ChatResponse,
        results: list[ActionResult],
        options: ChatOptions | None = None,
    ) -> ChatResponse:
        """Feed action results for *previous* back and return the next reply."""
        ...

    async def close(self) -> None: ...
