"""Tests for the action dispatcher."""

from __future__ import annotations

from typing import Any

import pytest

from attocrew.core.dispatch import ActionDispatcher
from attocrew.events.bus import EventBroadcaster
from attocrew.tools.base import WorkspaceContext
from attocrew.tools.registry import ToolRegistry
from attocrew.types.events import EventType
from attocrew.types.messages import ActionResult, ToolCall
from tests.helpers.fixtures import call, echo, explode, make_tool

CTX = WorkspaceContext(project_id=1, agent_id=2, task_id=3)


def _make_dispatcher(**kwargs: Any) -> ActionDispatcher:
    registry = ToolRegistry()
    registry.register_all([make_tool("echo", echo), make_tool("explode", explode)])
    return ActionDispatcher(registry, **kwargs)


class TestDispatch:
    @pytest.mark.asyncio
    async def test_results_in_request_order(self) -> None:
        dispatcher = _make_dispatcher()
        results = await dispatcher.dispatch(
            [call("echo", "c1", msg="one"), call("echo", "c2", msg="two")], CTX,
        )
        assert [r.call_id for r in results] == ["c1", "c2"]
        assert [r.summary for r in results] == ["echo: one", "echo: two"]

    @pytest.mark.asyncio
    async def test_unknown_action_is_failed_result(self) -> None:
        results = await _make_dispatcher().dispatch([call("nope")], CTX)
        assert not results[0].success
        assert "nope" in (results[0].error or "")

    @pytest.mark.asyncio
    async def test_parse_error_is_failed_result(self) -> None:
        bad = ToolCall(
            id="c1", name="echo", arguments={},
            parse_error="Invalid JSON arguments", raw_arguments="{oops",
        )
        results = await _make_dispatcher().dispatch([bad], CTX)
        assert not results[0].success
        assert results[0].data == {"raw_arguments": "{oops"}

    @pytest.mark.asyncio
    async def test_defect_propagates(self) -> None:
        with pytest.raises(RuntimeError):
            await _make_dispatcher().dispatch([call("echo"), call("explode", "c2")], CTX)

    @pytest.mark.asyncio
    async def test_override_takes_precedence(self) -> None:
        async def custom(args: dict[str, Any], ctx: WorkspaceContext) -> str:
            return "overridden"

        dispatcher = _make_dispatcher()
        dispatcher.add_override(make_tool("echo", custom, "Custom echo"))
        results = await dispatcher.dispatch([call("echo")], CTX)
        assert results[0].summary == "overridden"
        definitions = dispatcher.get_definitions()
        assert [d.name for d in definitions] == ["echo", "explode"]
        assert definitions[0].description == "Custom echo"

    @pytest.mark.asyncio
    async def test_emits_tool_events(self) -> None:
        bus = EventBroadcaster()
        dispatcher = _make_dispatcher(broadcaster=bus)
        await dispatcher.dispatch([call("echo"), call("nope", "c2")], CTX)
        types = [e.type for e in bus.history]
        assert types == [
            EventType.TOOL_START, EventType.TOOL_COMPLETE,
            EventType.TOOL_START, EventType.TOOL_ERROR,
        ]
        assert all(e.task_id == 3 for e in bus.history)

    @pytest.mark.asyncio
    async def test_recorder_sees_every_action(self) -> None:
        recorded: list[tuple[str, bool]] = []

        async def recorder(ctx: WorkspaceContext, tc: ToolCall, result: ActionResult, ms: int) -> None:
            recorded.append((tc.name, result.success))

        dispatcher = _make_dispatcher(recorder=recorder)
        await dispatcher.dispatch([call("echo"), call("nope", "c2")], CTX)
        assert recorded == [("echo", True), ("nope", False)]

    @pytest.mark.asyncio
    async def test_recorder_failure_is_tolerated(self) -> None:
        async def recorder(ctx: WorkspaceContext, tc: ToolCall, result: ActionResult, ms: int) -> None:
            raise OSError("disk full")

        results = await _make_dispatcher(recorder=recorder).dispatch([call("echo")], CTX)
        assert results[0].success
