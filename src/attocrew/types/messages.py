"""Core message types for reasoning-service communication."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class Role(StrEnum):
    """Message role in a conversation."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class StopReason(StrEnum):
    """Why the reasoning service stopped generating."""

    END_TURN = "end_turn"
    TOOL_USE = "tool_use"
    MAX_TOKENS = "max_tokens"


@dataclass
class ToolCall:
    """An action requested by the reasoning service."""

    id: str
    name: str
    arguments: dict[str, Any]
    parse_error: str | None = None
    raw_arguments: str | None = None


@dataclass
class ActionResult:
    """Structured outcome of one dispatched action.

    ``summary`` is the short human-readable line, ``details`` the optional
    long form. ``data`` carries machine-readable extras (task ids, lock
    holders, timeout flags) for the reasoner.
    """

    call_id: str
    name: str
    success: bool
    summary: str = ""
    details: str | None = None
    warning: str | None = None
    error: str | None = None
    data: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def failure(
        cls,
        call_id: str,
        name: str,
        error: str,
        *,
        data: dict[str, Any] | None = None,
    ) -> ActionResult:
        return cls(
            call_id=call_id,
            name=name,
            success=False,
            summary=f"{name} failed",
            error=error,
            data=data or {},
        )

    def to_payload(self) -> dict[str, Any]:
        """Serialize for feedback to the reasoning service."""
        payload: dict[str, Any] = {"success": self.success, "summary": self.summary}
        if self.details is not None:
            payload["details"] = self.details
        if self.warning is not None:
            payload["warning"] = self.warning
        if self.error is not None:
            payload["error"] = self.error
        if self.data:
            payload["data"] = self.data
        return payload


@dataclass
class ToolDefinition:
    """Schema definition for a tool."""

    name: str
    description: str
    parameters: dict[str, Any]

    def to_schema(self) -> dict[str, Any]:
        """Convert to the function-tool schema format."""
        return {
            "type": "function",
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters,
        }


@dataclass
class TokenUsage:
    """Token consumption metrics."""

    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0


@dataclass
class Message:
    """A conversation message."""

    role: Role
    content: str
    tool_calls: list[ToolCall] | None = None
    tool_call_id: str | None = None
    metadata: dict[str, Any] | None = None

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"role": str(self.role), "content": self.content}
        if self.tool_calls:
            data["tool_calls"] = [
                {"id": tc.id, "name": tc.name, "arguments": tc.arguments}
                for tc in self.tool_calls
            ]
        if self.tool_call_id:
            data["tool_call_id"] = self.tool_call_id
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Message:
        tool_calls = [
            ToolCall(id=tc["id"], name=tc["name"], arguments=tc.get("arguments", {}))
            for tc in data.get("tool_calls") or []
        ]
        return cls(
            role=Role(data["role"]),
            content=data.get("content") or "",
            tool_calls=tool_calls or None,
            tool_call_id=data.get("tool_call_id"),
        )


@dataclass
class ChatOptions:
    """Options for a reasoning-service request."""

    model: str | None = None
    max_tokens: int | None = None
    temperature: float | None = None
    tools: list[ToolDefinition] | None = None
    system: str | None = None


@dataclass
class ChatResponse:
    """Parsed reasoning-service response."""

    content: str
    tool_calls: list[ToolCall] | None = None
    id: str | None = None
    stop_reason: StopReason | None = None
    usage: TokenUsage | None = None
    model: str | None = None

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)
