"""Tool registry for managing and invoking tools."""

from __future__ import annotations

import asyncio
import importlib
import inspect
from typing import Any

from pydantic import ValidationError

from attocrew.errors import AgentError, ConfigurationError, ToolTimeoutError, UnknownActionError
from attocrew.tools.base import Tool, ToolHandler, ToolSpec, WorkspaceContext
from attocrew.types.messages import ActionResult, ToolDefinition

MAX_SUMMARY_CHARS = 200


def resolve_handler(ref: str) -> ToolHandler:
    """Resolve a ``"package.module:function"`` reference to a coroutine function."""
    module_name, sep, attr = ref.partition(":")
    if not sep or not module_name or not attr:
        raise ConfigurationError(f"Invalid handler reference '{ref}', expected 'module:function'")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigurationError(f"Cannot import handler module '{module_name}': {e}") from e
    handler = getattr(module, attr, None)
    if handler is None:
        raise ConfigurationError(f"Module '{module_name}' has no attribute '{attr}'")
    if not inspect.iscoroutinefunction(handler):
        raise ConfigurationError(f"Handler '{ref}' must be an async function")
    return handler


def to_action_result(call_id: str, name: str, raw: Any) -> ActionResult:
    """Normalize a handler return value into an ``ActionResult``."""
    if isinstance(raw, ActionResult):
        raw.call_id = call_id
        raw.name = name
        return raw
    if isinstance(raw, dict):
        return ActionResult(
            call_id=call_id, name=name, success=True,
            summary=str(raw.get("summary", f"{name} completed")), data=raw,
        )
    if raw is None:
        return ActionResult(call_id=call_id, name=name, success=True, summary=f"{name} completed")
    text = str(raw)
    first_line = text.splitlines()[0] if text else f"{name} completed"
    summary = first_line[:MAX_SUMMARY_CHARS]
    return ActionResult(
        call_id=call_id, name=name, success=True,
        summary=summary, details=text if text != summary else None,
    )


class ToolRegistry:
    """Registry for tool management and invocation.

    ``invoke`` never raises for ordinary tool failures: ``AgentError``,
    argument validation errors and timeouts come back as failed results.
    Unknown tool names raise ``UnknownActionError``; any other exception
    is a defect in the tool and propagates.
    """

    def __init__(self, *, default_timeout: float = 120.0) -> None:
        self._tools: dict[str, Tool] = {}
        self._default_timeout = default_timeout

    @property
    def tool_count(self) -> int:
        return len(self._tools)

    def register(self, tool: Tool) -> None:
        self._tools[tool.name] = tool

    def register_all(self, tools: list[Tool]) -> None:
        for tool in tools:
            self.register(tool)

    def register_ref(self, spec: ToolSpec, ref: str, *, tags: list[str] | None = None) -> Tool:
        """Register a tool whose handler is given as ``"module:function"``.

        The reference is resolved now, so a bad reference fails at startup
        rather than on first use.
        """
        tool = Tool(spec=spec, execute=resolve_handler(ref), tags=tags or [])
        self.register(tool)
        return tool

    def unregister(self, name: str) -> bool:
        return self._tools.pop(name, None) is not None

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def has(self, name: str) -> bool:
        return name in self._tools

    def list_tools(self) -> list[str]:
        return list(self._tools.keys())

    def get_definitions(self) -> list[ToolDefinition]:
        return [tool.to_definition() for tool in self._tools.values()]

    async def invoke(
        self,
        tool_name: str,
        args: dict[str, Any],
        ctx: WorkspaceContext,
        *,
        call_id: str = "",
        timeout: float | None = None,
    ) -> ActionResult:
        tool = self._tools.get(tool_name)
        if tool is None:
            raise UnknownActionError(tool_name)

        effective_timeout = timeout or self._default_timeout
        try:
            raw = await asyncio.wait_for(tool.execute(args, ctx), timeout=effective_timeout)
        except asyncio.TimeoutError:
            err = ToolTimeoutError(tool_name, effective_timeout)
            return ActionResult.failure(call_id, tool_name, str(err), data={"timeout": True})
        except AgentError as e:
            return ActionResult.failure(call_id, tool_name, str(e), data=dict(e.details))
        except ValidationError as e:
            return ActionResult.failure(call_id, tool_name, f"Invalid arguments: {e}")
        return to_action_result(call_id, tool_name, raw)
