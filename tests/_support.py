"""Shared fixtures for the test suite: canned SSE bodies and a mock transport."""

from __future__ import annotations

import json
from collections.abc import AsyncIterator, Callable
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx

from aura_llm.config import AuraSettings
from aura_llm.types import StreamEvent

PDT = timezone(timedelta(hours=-7), "PDT")
FIXED_NOW = datetime(2026, 10, 17, 15, 0, 0, tzinfo=PDT)


def fixed_now() -> datetime:
    return FIXED_NOW


def make_settings(**overrides: Any) -> AuraSettings:
    values: dict[str, Any] = {"openai_api_key": "sk-test", "gemini_api_key": "gemini-test"}
    values.update(overrides)
    return AuraSettings(_env_file=None, **values)


def sse_line(payload: Any) -> str:
    data = payload if isinstance(payload, str) else json.dumps(payload)
    return f"data: {data}\n\n"


def openai_chunk(
    content: str | None = None,
    *,
    tool_calls: list[dict[str, Any]] | None = None,
    finish_reason: str | None = None,
) -> dict[str, Any]:
    delta: dict[str, Any] = {}
    if content is not None:
        delta["content"] = content
    if tool_calls is not None:
        delta["tool_calls"] = tool_calls
    return {
        "id": "chatcmpl-1",
        "object": "chat.completion.chunk",
        "choices": [{"index": 0, "delta": delta, "finish_reason": finish_reason}],
    }


def tool_call_delta(
    index: int,
    *,
    id: str | None = None,
    name: str | None = None,
    arguments: str | None = None,
) -> dict[str, Any]:
    function: dict[str, Any] = {}
    if name is not None:
        function["name"] = name
    if arguments is not None:
        function["arguments"] = arguments
    delta: dict[str, Any] = {"index": index, "function": function}
    if id is not None:
        delta["id"] = id
        delta["type"] = "function"
    return delta


class ChunkedBody:
    """Async response body that records how many chunks were pulled.

    With ``error`` set, the body raises it once every chunk has been sent.
    """

    def __init__(self, chunks: list[str], error: Exception | None = None) -> None:
        self.chunks = chunks
        self.error = error
        self.sent = 0

    async def __aiter__(self) -> AsyncIterator[bytes]:
        for chunk in self.chunks:
            self.sent += 1
            yield chunk.encode("utf-8")
        if self.error is not None:
            raise self.error


class RecordingTransport(httpx.MockTransport):
    """Mock transport that keeps every request it served."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self.requests: list[httpx.Request] = []

        def _handle(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(_handle)

    def last_json(self) -> dict[str, Any]:
        return json.loads(self.requests[-1].content)


def streaming_transport(
    chunks: list[str],
    status_code: int = 200,
    *,
    error: Exception | None = None,
) -> tuple[RecordingTransport, ChunkedBody]:
    body = ChunkedBody(chunks, error)
    transport = RecordingTransport(
        lambda request: httpx.Response(
            status_code,
            headers={"Content-Type": "text/event-stream"},
            content=body,
        )
    )
    return transport, body


async def collect_events(stream: AsyncIterator[StreamEvent]) -> list[StreamEvent]:
    events: list[StreamEvent] = []
    async for event in stream:
        events.append(event)
    return events
