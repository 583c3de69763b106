"""Tests for the responses-API reasoning service."""

from __future__ import annotations

import json
from typing import Any

import httpx
import pytest

from attocrew.errors import ProviderError
from attocrew.providers.base import ReasoningService
from attocrew.providers.responses import ResponsesProvider, parse_arguments
from attocrew.types.messages import (
    ActionResult,
    ChatOptions,
    ChatResponse,
    Message,
    Role,
    StopReason,
    ToolDefinition,
)

API_URL = "https://llm.test/v1/responses"


def _make_provider(
    handler: Any,
    requests: list[dict[str, Any]] | None = None,
) -> ResponsesProvider:
    def record(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(json.loads(request.content))
        return handler(request)

    return ResponsesProvider(
        api_key="test-key",
        model="test-model",
        api_url=API_URL,
        transport=httpx.MockTransport(record),
    )


def _reply(payload: dict[str, Any], status: int = 200) -> Any:
    return lambda request: httpx.Response(status, json=payload)


TEXT_REPLY = {
    "id": "resp_1",
    "model": "test-model",
    "output": [
        {"type": "message", "role": "assistant", "content": [{"type": "output_text", "text": "Hello"}]},
    ],
    "usage": {"input_tokens": 12, "output_tokens": 3, "total_tokens": 15},
}

TOOL_REPLY = {
    "id": "resp_2",
    "output": [
        {"type": "function_call", "call_id": "call_a", "name": "lock_file", "arguments": '{"path": "a.py"}'},
        {"type": "function_call", "call_id": "call_b", "name": "lock_file", "arguments": "{not json"},
    ],
}


class TestParseArguments:
    def test_json_object(self) -> None:
        assert parse_arguments('{"a": 1}') == ({"a": 1}, None)

    def test_empty(self) -> None:
        assert parse_arguments("") == ({}, None)

    def test_invalid_json(self) -> None:
        args, error = parse_arguments("{oops")
        assert args == {}
        assert error is not None

    def test_non_object(self) -> None:
        args, error = parse_arguments("[1, 2]")
        assert args == {}
        assert "JSON object" in (error or "")


class TestResponsesProvider:
    def test_requires_api_key(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("LLM_PROVIDER_KEY", raising=False)
        with pytest.raises(ProviderError):
            ResponsesProvider(api_key=None)

    @pytest.mark.asyncio
    async def test_satisfies_protocol(self) -> None:
        provider = _make_provider(_reply(TEXT_REPLY))
        assert isinstance(provider, ReasoningService)
        await provider.close()

    @pytest.mark.asyncio
    async def test_text_reply(self) -> None:
        requests: list[dict[str, Any]] = []
        provider = _make_provider(_reply(TEXT_REPLY), requests)
        tools = [ToolDefinition(name="lock_file", description="Lock", parameters={"type": "object"})]
        response = await provider.chat(
            [
                Message(role=Role.USER, content="hi"),
                Message(role=Role.TOOL, content="ignored", tool_call_id="x"),
            ],
            ChatOptions(system="Be brief", tools=tools),
        )
        await provider.close()

        assert response.content == "Hello"
        assert response.id == "resp_1"
        assert response.stop_reason == StopReason.END_TURN
        assert response.usage is not None and response.usage.total_tokens == 15
        body = requests[0]
        assert body["model"] == "test-model"
        assert body["input"] == [
            {"role": "system", "content": "Be brief"},
            {"role": "user", "content": "hi"},
        ]
        assert body["tools"][0] == {
            "type": "function", "name": "lock_file", "description": "Lock",
            "parameters": {"type": "object"},
        }

    @pytest.mark.asyncio
    async def test_function_calls(self) -> None:
        provider = _make_provider(_reply(TOOL_REPLY))
        response = await provider.chat([Message(role=Role.USER, content="go")])
        await provider.close()

        assert response.stop_reason == StopReason.TOOL_USE
        good, bad = response.tool_calls or []
        assert good.id == "call_a"
        assert good.arguments == {"path": "a.py"}
        assert good.parse_error is None
        assert bad.parse_error is not None
        assert bad.raw_arguments == "{not json"

    @pytest.mark.asyncio
    async def test_submit_tool_results(self) -> None:
        requests: list[dict[str, Any]] = []
        provider = _make_provider(_reply(TEXT_REPLY), requests)
        results = [ActionResult(call_id="call_a", name="lock_file", success=True, summary="locked")]
        await provider.submit_tool_results(ChatResponse(content="", id="resp_2"), results)
        await provider.close()

        body = requests[0]
        assert body["previous_response_id"] == "resp_2"
        item = body["input"][0]
        assert item["type"] == "function_call_output"
        assert item["call_id"] == "call_a"
        assert json.loads(item["output"]) == {"success": True, "summary": "locked"}

    @pytest.mark.asyncio
    async def test_submit_requires_previous_id(self) -> None:
        provider = _make_provider(_reply(TEXT_REPLY))
        with pytest.raises(ProviderError):
            await provider.submit_tool_results(ChatResponse(content=""), [])
        await provider.close()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(("status", "retryable"), [(429, True), (503, True), (401, False)])
    async def test_http_errors(self, status: int, retryable: bool) -> None:
        provider = _make_provider(_reply({"error": "nope"}, status))
        with pytest.raises(ProviderError) as exc_info:
            await provider.chat([Message(role=Role.USER, content="hi")])
        await provider.close()
        assert exc_info.value.status_code == status
        assert exc_info.value.retryable is retryable

    @pytest.mark.asyncio
    async def test_transport_error(self) -> None:
        def fail(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused")

        provider = _make_provider(fail)
        with pytest.raises(ProviderError, match="connection refused"):
            await provider.chat([Message(role=Role.USER, content="hi")])
        await provider.close()

    @pytest.mark.asyncio
    async def test_invalid_json_body(self) -> None:
        provider = _make_provider(lambda request: httpx.Response(200, content=b"<html>"))
        with pytest.raises(ProviderError, match="invalid JSON"):
            await provider.chat([Message(role=Role.USER, content="hi")])
        await provider.close()
