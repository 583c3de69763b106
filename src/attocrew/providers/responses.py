"""Responses-API provider using httpx.

Talks to a ``/v1/responses`` style endpoint: the conversation goes out
as ``input``; replies come back as ``output`` items of type ``message``
(with ``output_text`` parts) and ``function_call``.  Action results are
fed back as ``function_call_output`` items chained to the previous
response with ``previous_response_id``.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any

import httpx

from attocrew.errors import ProviderError
from attocrew.types.messages import (
    ActionResult,
    ChatOptions,
    ChatResponse,
    Message,
    Role,
    StopReason,
    TokenUsage,
    ToolCall,
    ToolDefinition,
)

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.openai.com/v1/responses"
DEFAULT_MODEL = "gpt-4o"
RETRYABLE_STATUS = (429, 500, 502, 503)


def _describe_request_error(e: httpx.RequestError) -> str:
    """Build a descriptive error message for httpx request errors.

    httpx.ReadTimeout and similar errors often have empty str(e),
    so we fall back to the exception type name and include the
    chained cause when available.
    """
    msg = str(e)
    if not msg:
        msg = type(e).__name__
    if e.__cause__ and str(e.__cause__):
        msg = f"{msg} (caused by {type(e.__cause__).__name__}: {e.__cause__})"
    return msg


def parse_arguments(raw: Any) -> tuple[dict[str, Any], str | None]:
    """Decode a function-call argument payload.

    Returns the arguments and a parse error message; a payload that is
    not a JSON object yields ``({}, error)`` instead of raising.
    """
    if isinstance(raw, dict):
        return raw, None
    if raw is None or raw == "":
        return {}, None
    try:
        value = json.loads(raw)
    except (json.JSONDecodeError, TypeError) as e:
        return {}, f"Could not parse arguments as JSON: {e}"
    if not isinstance(value, dict):
        return {}, f"Arguments must be a JSON object, got {type(value).__name__}"
    return value, None


class ResponsesProvider:
    """Reasoning service over a responses-style HTTP API."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str = DEFAULT_MODEL,
        api_url: str = DEFAULT_API_URL,
        timeout: float = 120.0,
        temperature: float | None = 0.7,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key or os.environ.get("LLM_PROVIDER_KEY", "")
        if not self._api_key:
            raise ProviderError("LLM_PROVIDER_KEY not set", provider="responses", retryable=False)
        self._model = model
        self._api_url = api_url
        self._timeout = timeout
        self._temperature = temperature
        self._transport = transport
        self._client = self._create_client()

    def _create_client(self) -> httpx.AsyncClient:
        """Create a fresh httpx client."""
        return httpx.AsyncClient(
            timeout=httpx.Timeout(self._timeout),
            headers={"Authorization": f"Bearer {self._api_key}", "Content-Type": "application/json"},
            transport=self._transport,
        )

    def _ensure_client(self) -> httpx.AsyncClient:
        """Return the client, recreating it if closed."""
        if self._client.is_closed:
            self._client = self._create_client()
        return self._client

    @property
    def name(self) -> str:
        return "responses"

    async def chat(
        self,
        messages: list[Message],
        options: ChatOptions | None = None,
    ) -> ChatResponse:
        body = self._base_body(options)
        items: list[dict[str, Any]] = []
        if options and options.system:
            items.append({"role": "system", "content": options.system})
        items.extend(self._format_messages(messages))
        body["input"] = items
        return await self._post(body)

    async def submit_tool_results(
        self,
        previous: ChatResponse,
        results: list[ActionResult],
        options: ChatOptions | None = None,
    ) -> ChatResponse:
        if not previous.id:
            raise ProviderError(
                "Cannot submit tool results: previous response has no id",
                provider=self.name, retryable=False,
            )
        body = self._base_body(options)
        body["previous_response_id"] = previous.id
        body["input"] = [
            {
                "type": "function_call_output",
                "call_id": r.call_id,
                "output": json.dumps(r.to_payload(), default=str),
            }
            for r in results
        ]
        return await self._post(body)

    def _base_body(self, options: ChatOptions | None) -> dict[str, Any]:
        body: dict[str, Any] = {"model": (options and options.model) or self._model, "store": True}
        temperature = options.temperature if options and options.temperature is not None else self._temperature
        if temperature is not None:
            body["temperature"] = temperature
        if options and options.max_tokens:
            body["max_output_tokens"] = options.max_tokens
        if options and options.tools:
            body["tools"] = [self._format_tool(t) for t in options.tools]
        return body

    async def _post(self, body: dict[str, Any]) -> ChatResponse:
        client = self._ensure_client()
        try:
            response = await client.post(self._api_url, json=body)
            response.raise_for_status()
            return self._parse_response(response.json(), body["model"])
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.warning("Reasoning service returned %s", status)
            raise ProviderError(
                f"Responses API error {status}: {e.response.text[:500]}",
                provider=self.name, status_code=status, retryable=status in RETRYABLE_STATUS,
            ) from e
        except httpx.RequestError as e:
            logger.warning("Reasoning service request failed: %s", _describe_request_error(e))
            raise ProviderError(
                f"Responses API request error: {_describe_request_error(e)}",
                provider=self.name, retryable=True,
            ) from e
        except ValueError as e:
            raise ProviderError(
                f"Responses API returned invalid JSON: {e}", provider=self.name, retryable=False,
            ) from e

    def _format_messages(self, messages: list[Message]) -> list[dict[str, Any]]:
        result: list[dict[str, Any]] = []
        for msg in messages:
            if msg.role == Role.TOOL:
                continue
            result.append({"role": str(msg.role), "content": msg.content})
        return result

    def _format_tool(self, tool: ToolDefinition) -> dict[str, Any]:
        return tool.to_schema()

    def _parse_response(self, data: dict[str, Any], model: str) -> ChatResponse:
        text_parts: list[str] = []
        tool_calls: list[ToolCall] = []
        for item in data.get("output") or []:
            item_type = item.get("type")
            if item_type == "message" and item.get("role", "assistant") == "assistant":
                for part in item.get("content") or []:
                    if part.get("type") == "output_text":
                        text_parts.append(part.get("text", ""))
            elif item_type == "function_call":
                raw = item.get("arguments")
                args, error = parse_arguments(raw)
                tool_calls.append(ToolCall(
                    id=item.get("call_id") or item.get("id", ""),
                    name=item.get("name", ""),
                    arguments=args,
                    parse_error=error,
                    raw_arguments=raw if isinstance(raw, str) else None,
                ))

        usage_data = data.get("usage") or {}
        usage = TokenUsage(
            input_tokens=usage_data.get("input_tokens", 0),
            output_tokens=usage_data.get("output_tokens", 0),
            total_tokens=usage_data.get("total_tokens", 0),
        )
        return ChatResponse(
            content="".join(text_parts),
            tool_calls=tool_calls or None,
            id=data.get("id"),
            stop_reason=StopReason.TOOL_USE if tool_calls else StopReason.END_TURN,
            usage=usage,
            model=data.get("model", model),
        )

    async def close(self) -> None:
        await self._client.aclose()
