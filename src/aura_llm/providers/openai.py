"""OpenAI provider implementation."""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator, Sequence
from contextlib import aclosing
from typing import Any

import httpx
from pydantic import BaseModel, StrictInt, StrictStr, ValidationError

from aura_llm.config import AuraSettings
from aura_llm.providers.base import BaseProvider, inline_error_message
from aura_llm.translation import openai_role, prompt_text
from aura_llm.types import ChunkDelta, ConversationMessage, ToolCallDelta, ToolDef

_DEFAULT_BASE_URL = "https://api.openai.com"
_CHAT_PATH = "/v1/chat/completions"
_DONE_SENTINEL = "[DONE]"


class _FunctionDelta(BaseModel):
    name: StrictStr | None = None
    arguments: StrictStr | None = None


class _ToolCallChunk(BaseModel):
    index: StrictInt | None = None
    id: StrictStr | None = None
    function: _FunctionDelta | None = None


class _ChoiceDelta(BaseModel):
    content: StrictStr | None = None
    tool_calls: list[_ToolCallChunk] | None = None


class _Choice(BaseModel):
    delta: _ChoiceDelta | None = None
    finish_reason: StrictStr | None = None


class _CompletionChunk(BaseModel):
    """Wire shape of one streamed ``chat.completion.chunk``."""

    choices: list[_Choice] | None = None


class OpenAIProvider(BaseProvider):
    """Streaming adapter for the OpenAI Chat Completions API."""

    name = "openai"
    _logger = logging.getLogger(__name__)

    def __init__(self, *, api_key: str, base_url: str | None = None, model: str = "gpt-4o", **kwargs: Any) -> None:
        super().__init__(api_key=api_key, base_url=base_url or _DEFAULT_BASE_URL, model=model, **kwargs)
        self._headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    @classmethod
    def from_settings(
        cls,
        settings: AuraSettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> OpenAIProvider:
        return cls(
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
            model=settings.openai_model,
            max_tokens=settings.max_tokens,
            timeout_s=settings.timeout_s,
            transport=transport,
        )

    async def iter_chunks(self, messages: Sequence[ConversationMessage]) -> AsyncIterator[ChunkDelta]:
        payload = self._build_payload(messages)

        async with aclosing(self._stream_lines(_CHAT_PATH, payload, headers=self._headers)) as lines:
            async for line in lines:
                # OpenAI streaming uses SSE. We only care about "data:" lines.
                if not line.startswith("data:"):
                    continue

                data_str = line[len("data:") :].strip()
                if data_str == _DONE_SENTINEL:
                    return

                try:
                    event = json.loads(data_str)
                except json.JSONDecodeError:
                    self._logger.debug("Skipping non-JSON streaming chunk: %s", data_str)
                    continue
                if not isinstance(event, dict):
                    self._logger.debug("Skipping non-object streaming chunk: %s", data_str)
                    continue

                try:
                    chunk = self._decode_chunk(event)
                except ValidationError:
                    self._logger.debug("Skipping malformed streaming chunk: %s", data_str)
                    continue
                if chunk is not None:
                    yield chunk

    def _build_payload(self, messages: Sequence[ConversationMessage]) -> dict[str, Any]:
        directive, turns = self._directive_and_turns(messages)

        payload: dict[str, Any] = {
            "model": self._model,
            "messages": [{"role": "system", "content": directive}]
            + [self._serialize_message(m) for m in turns],
            "max_tokens": self._max_tokens,
            "stream": True,
        }
        if self._temperature is not None:
            payload["temperature"] = self._temperature

        if self._tools:
            payload.update(self._serialize_tools(self._tools))

        return payload

    @staticmethod
    def _serialize_message(message: ConversationMessage) -> dict[str, Any]:
        role = openai_role(message.role)
        if not message.images:
            return {"role": role, "content": message.text}

        # Images go before the text part.
        content: list[dict[str, Any]] = [
            {
                "type": "image_url",
                "image_url": {"url": f"data:{image.mime_type};base64,{image.to_base64()}"},
            }
            for image in message.images
        ]
        text = prompt_text(message)
        if text:
            content.append({"type": "text", "text": text})
        return {"role": role, "content": content}

    @staticmethod
    def _serialize_tools(tools: Sequence[ToolDef]) -> dict[str, Any]:
        tool_payload = [
            {
                "type": "function",
                "function": {
                    "name": t.name,
                    "description": t.description or "",
                    "parameters": t.json_schema,
                },
            }
            for t in tools
        ]
        return {"tools": tool_payload, "tool_choice": "auto"}

    @staticmethod
    def _decode_chunk(event: dict[str, Any]) -> ChunkDelta | None:
        """Normalize a ``chat.completion.chunk`` (delta.content, delta.tool_calls, finish_reason).

        Raises ``ValidationError`` when the chunk does not have the expected shape.
        """
        error = inline_error_message(event)
        if error is not None:
            return ChunkDelta(error=error)

        wire = _CompletionChunk.model_validate(event)
        if not wire.choices:
            return None
        choice = wire.choices[0]
        delta = choice.delta or _ChoiceDelta()

        tool_calls = tuple(
            ToolCallDelta(
                index=tc.index if tc.index is not None else position,
                id=tc.id or None,
                name=(tc.function.name or None) if tc.function else None,
                arguments=tc.function.arguments if tc.function else None,
            )
            for position, tc in enumerate(delta.tool_calls or [])
        )

        text = delta.content or None
        finish_reason = choice.finish_reason
        if text is None and not tool_calls and finish_reason is None:
            return None
        return ChunkDelta(
            text=text,
            tool_calls=tool_calls,
            finish_reason=finish_reason.lower() if finish_reason is not None else None,
        )
