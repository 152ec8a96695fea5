"""Provider-agnostic base interfaces and helpers."""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Callable, Sequence
from datetime import datetime
from typing import Any

import httpx

from aura_llm.aggregator import aggregate
from aura_llm.config import AuraSettings
from aura_llm.errors import AuthError, NetworkError, ProtocolError, RateLimitedError
from aura_llm.tools import TOOL_CATALOG, ToolExecutor
from aura_llm.translation import build_directive, split_system
from aura_llm.types import ChunkDelta, ConversationMessage, StreamEvent, ToolDef


class BaseProvider(ABC):
    """Abstract base class for provider adapters.

    Subclasses turn the conversation into a request body and decode their
    provider's framing into ``ChunkDelta`` records; ``send`` folds those through
    the aggregator and the tool executor.
    """

    name: str

    def __init__(
        self,
        *,
        api_key: str,
        base_url: str,
        model: str,
        max_tokens: int = 4096,
        temperature: float | None = None,
        timeout_s: float = 60.0,
        tools: Sequence[ToolDef] = TOOL_CATALOG,
        transport: httpx.AsyncBaseTransport | None = None,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._tools = tuple(tools)
        self._now = now or (lambda: datetime.now().astimezone())
        self._client = httpx.AsyncClient(base_url=base_url, timeout=timeout_s, transport=transport)

    @classmethod
    @abstractmethod
    def from_settings(
        cls,
        settings: AuraSettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> BaseProvider:
        """Build the adapter from application settings."""
        raise NotImplementedError

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    @abstractmethod
    def iter_chunks(self, messages: Sequence[ConversationMessage]) -> AsyncIterator[ChunkDelta]:
        """Open the stream and yield decoded chunks until it ends."""
        raise NotImplementedError

    def send(
        self,
        messages: Sequence[ConversationMessage],
        executor: ToolExecutor,
    ) -> AsyncIterator[StreamEvent]:
        """Stream text and tool-result events; raises ``StreamError`` subclasses."""
        return aggregate(self.iter_chunks(messages), executor)

    def _directive_and_turns(
        self, messages: Sequence[ConversationMessage]
    ) -> tuple[str, list[ConversationMessage]]:
        system_texts, turns = split_system(messages)
        return build_directive(self._now(), system_texts), turns

    async def _stream_lines(
        self,
        path: str,
        payload: dict[str, Any],
        *,
        headers: dict[str, str] | None = None,
        params: dict[str, str] | None = None,
    ) -> AsyncIterator[str]:
        """POST ``payload`` and yield non-empty, stripped response lines.

        The status is checked before any line is read. Closing the iterator
        closes the HTTP response.
        """
        try:
            async with self._client.stream(
                "POST",
                path,
                headers=headers,
                params=params,
                json=payload,
            ) as response:
                if response.status_code != 200:
                    body = await response.aread()
                    raise_for_stream_status(response.status_code, body, response.reason_phrase)

                async for line in response.aiter_lines():
                    line = line.strip()
                    if line:
                        yield line
        except httpx.RequestError as exc:
            raise NetworkError(exc) from exc


def raise_for_stream_status(status_code: int, body: bytes, reason: str = "") -> None:
    """Map a non-200 status to the error taxonomy."""
    if status_code == 200:
        return
    if status_code in (401, 403):
        raise AuthError()
    if status_code == 429:
        raise RateLimitedError()
    raise ProtocolError(error_message_from_body(body) or reason or "HTTP error", status_code=status_code)


def error_message_from_body(body: bytes) -> str:
    """Best-effort extraction of ``error.message`` from a JSON error body."""
    text = body.decode("utf-8", errors="replace").strip()
    if not text:
        return ""
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        return text
    # Gemini sometimes wraps the error object in a one-element list.
    if isinstance(data, list) and data:
        data = data[0]
    if isinstance(data, dict):
        message = inline_error_message(data)
        if message:
            return message
    return text


def inline_error_message(envelope: dict[str, Any]) -> str | None:
    """Return the message of an ``{"error": ...}`` envelope, if there is one."""
    error = envelope.get("error")
    if error is None:
        return None
    if isinstance(error, dict):
        return str(error.get("message") or error.get("status") or error)
    return str(error)
