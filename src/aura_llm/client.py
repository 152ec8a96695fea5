"""Async stream controller: the single entry point for completions."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Iterable, Sequence
from contextlib import aclosing

import httpx

from aura_llm.config import AuraSettings, get_settings, has_credential
from aura_llm.errors import NoCredentialError, StreamError, UnsupportedProviderError
from aura_llm.providers.base import BaseProvider
from aura_llm.providers.gemini import GeminiProvider
from aura_llm.providers.openai import OpenAIProvider
from aura_llm.tools import ToolExecutor
from aura_llm.types import ConversationMessage, ProviderName, StreamEvent


class StreamController:
    """Turns a conversation into one ordered, cancellable sequence of events.

    Every call to ``open`` builds its own adapter (and HTTP connection) and its
    own aggregator; only the settings and the tool catalog are shared. Running
    two streams at once from the same caller is the caller's concern.
    """

    _logger = logging.getLogger(__name__)

    def __init__(
        self,
        settings: AuraSettings | None = None,
        *,
        executor: ToolExecutor,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._executor = executor
        self._transport = transport

    def get_provider(self, name: ProviderName) -> BaseProvider:
        """Build the adapter for ``name``."""
        match name:
            case "openai":
                return OpenAIProvider.from_settings(self._settings, transport=self._transport)
            case "gemini":
                return GeminiProvider.from_settings(self._settings, transport=self._transport)
            case _:
                raise UnsupportedProviderError(name)

    def open(
        self,
        messages: Sequence[ConversationMessage],
        provider: ProviderName = "openai",
    ) -> AsyncIterator[StreamEvent]:
        """Stream events for a conversation.

        The sequence always ends with exactly one ``end`` or ``failure`` event.
        Closing it early (``aclose``) closes the HTTP response and skips any tool
        call that has not run yet.
        """
        if provider not in ("openai", "gemini"):
            raise UnsupportedProviderError(provider)
        return self._run(list(messages), provider)

    async def _run(
        self,
        messages: list[ConversationMessage],
        provider: ProviderName,
    ) -> AsyncIterator[StreamEvent]:
        if not has_credential(self._settings.credential_for(provider)):
            error = NoCredentialError()
            self._logger.warning("Not contacting %s: %s", provider, error)
            yield StreamEvent.failure(error.kind, str(error))
            return

        adapter = self.get_provider(provider)
        try:
            async with aclosing(adapter.send(messages, self._executor)) as events:
                async for event in events:
                    yield event
        except StreamError as exc:
            self._logger.warning("%s stream failed: %s", adapter.name, exc)
            yield StreamEvent.failure(exc.kind, str(exc))
            return
        finally:
            await adapter.aclose()

        yield StreamEvent.end()


async def collect_text(events: AsyncIterator[StreamEvent]) -> tuple[str, StreamEvent | None]:
    """Fold text and tool results into one display string, as the chat view does."""
    parts: list[str] = []
    terminal: StreamEvent | None = None
    async for event in events:
        if event.type == "text_delta":
            parts.append(event.text or "")
        elif event.type == "tool_result":
            parts.append(_separated(parts, event.text or ""))
        else:
            terminal = event
            break
    return "".join(parts), terminal


def _separated(parts: Iterable[str], text: str) -> str:
    # Tool confirmations start on their own line when text precedes them.
    return f"\n\n{text}" if any(parts) else text
