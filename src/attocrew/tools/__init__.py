"""Tool invoker: registry, tool types and built-in lock tools."""

from attocrew.tools.base import Tool, ToolParam, ToolSpec, WorkspaceContext
from attocrew.tools.registry import ToolRegistry

__all__ = [
    "Tool",
    "ToolParam",
    "ToolRegistry",
    "ToolSpec",
    "WorkspaceContext",
]
