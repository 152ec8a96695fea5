"""Gemini provider implementation."""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator, Iterator, Sequence
from contextlib import aclosing
from dataclasses import dataclass
from typing import Any

import httpx
from pydantic import BaseModel, Field, StrictBool, StrictStr, ValidationError

from aura_llm.config import AuraSettings
from aura_llm.providers.base import BaseProvider, inline_error_message
from aura_llm.translation import gemini_role, prompt_text
from aura_llm.types import ChunkDelta, ConversationMessage, ToolCallDelta, ToolDef

_DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com"
_STREAM_PATH = "/v1beta/models/{model}:streamGenerateContent"

_FILTERED_REASONS = frozenset({"SAFETY", "RECITATION", "BLOCKLIST", "PROHIBITED_CONTENT", "SPII"})


class _FunctionCall(BaseModel):
    id: StrictStr | None = None
    name: StrictStr | None = None
    args: dict[str, Any] | None = None


class _Part(BaseModel):
    text: StrictStr | None = None
    thought: StrictBool | None = None
    function_call: _FunctionCall | None = Field(default=None, alias="functionCall")


class _Content(BaseModel):
    parts: list[_Part] | None = None


class _Candidate(BaseModel):
    content: _Content | None = None
    finish_reason: StrictStr | None = Field(default=None, alias="finishReason")


class _PromptFeedback(BaseModel):
    block_reason: StrictStr | None = Field(default=None, alias="blockReason")


class _GenerateContentChunk(BaseModel):
    """Wire shape of one streamed ``GenerateContentResponse``."""

    candidates: list[_Candidate] | None = None
    prompt_feedback: _PromptFeedback | None = Field(default=None, alias="promptFeedback")


@dataclass
class _StreamState:
    """Per-stream bookkeeping; Gemini does not number its function calls."""

    calls_seen: int = 0


class GeminiProvider(BaseProvider):
    """Streaming adapter for the Gemini ``streamGenerateContent`` endpoint."""

    name = "gemini"
    _logger = logging.getLogger(__name__)

    def __init__(
        self,
        *,
        api_key: str,
        base_url: str | None = None,
        model: str = "gemini-2.0-flash",
        temperature: float | None = 0.7,
        **kwargs: Any,
    ) -> None:
        super().__init__(
            api_key=api_key,
            base_url=base_url or _DEFAULT_BASE_URL,
            model=model,
            temperature=temperature,
            **kwargs,
        )
        self._headers = {
            "x-goog-api-key": api_key,
            "Content-Type": "application/json",
        }

    @classmethod
    def from_settings(
        cls,
        settings: AuraSettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> GeminiProvider:
        return cls(
            api_key=settings.gemini_api_key,
            base_url=settings.gemini_base_url,
            model=settings.gemini_model,
            max_tokens=settings.max_tokens,
            temperature=settings.temperature,
            timeout_s=settings.timeout_s,
            transport=transport,
        )

    async def iter_chunks(self, messages: Sequence[ConversationMessage]) -> AsyncIterator[ChunkDelta]:
        payload = self._build_payload(messages)
        path = _STREAM_PATH.format(model=self._model)
        params = {"alt": "sse"}
        state = _StreamState()

        async with aclosing(self._stream_lines(path, payload, headers=self._headers, params=params)) as lines:
            async for line in lines:
                if line.startswith("data:"):
                    data_str = line[len("data:") :].strip()
                elif line.startswith(("{", "[")):
                    # Line-delimited JSON envelopes (no SSE framing).
                    data_str = line
                else:
                    continue
                if not data_str:
                    continue

                try:
                    decoded = json.loads(data_str)
                except json.JSONDecodeError:
                    self._logger.debug("Skipping non-JSON streaming chunk: %s", data_str)
                    continue

                for envelope in _envelopes(decoded):
                    try:
                        chunk = self._decode_envelope(envelope, state)
                    except ValidationError:
                        self._logger.debug("Skipping malformed streaming envelope: %s", envelope)
                        continue
                    if chunk is not None:
                        yield chunk

    def _build_payload(self, messages: Sequence[ConversationMessage]) -> dict[str, Any]:
        directive, turns = self._directive_and_turns(messages)

        # Gemini has no system role; the directive leads as a user turn.
        contents: list[dict[str, Any]] = [{"role": "user", "parts": [{"text": directive}]}]
        contents.extend(self._serialize_message(m) for m in turns)

        generation_config: dict[str, Any] = {"maxOutputTokens": self._max_tokens}
        if self._temperature is not None:
            generation_config["temperature"] = self._temperature

        payload: dict[str, Any] = {
            "contents": contents,
            "generationConfig": generation_config,
        }
        if self._tools:
            payload["tools"] = self._serialize_tools(self._tools)
        return payload

    @staticmethod
    def _serialize_message(message: ConversationMessage) -> dict[str, Any]:
        # Images go before the text part.
        parts: list[dict[str, Any]] = [
            {"inline_data": {"mime_type": image.mime_type, "data": image.to_base64()}}
            for image in message.images
        ]
        text = prompt_text(message)
        if text is not None:
            parts.append({"text": text})
        elif not parts:
            parts.append({"text": ""})
        return {"role": gemini_role(message.role), "parts": parts}

    @staticmethod
    def _serialize_tools(tools: Sequence[ToolDef]) -> list[dict[str, Any]]:
        declarations = [
            {
                "name": t.name,
                "description": t.description or "",
                "parameters": t.json_schema,
            }
            for t in tools
        ]
        return [{"functionDeclarations": declarations}]

    def _decode_envelope(self, envelope: dict[str, Any], state: _StreamState) -> ChunkDelta | None:
        """Normalize one response envelope.

        Raises ``ValidationError`` when the envelope does not have the expected shape.
        """
        error = inline_error_message(envelope)
        if error is not None:
            return ChunkDelta(error=error)

        wire = _GenerateContentChunk.model_validate(envelope)
        if wire.prompt_feedback is not None and wire.prompt_feedback.block_reason:
            return ChunkDelta(error=f"Content blocked: {wire.prompt_feedback.block_reason}")

        if not wire.candidates:
            return None
        candidate = wire.candidates[0]

        texts: list[str] = []
        tool_calls: list[ToolCallDelta] = []
        parts = candidate.content.parts if candidate.content is not None else None
        for part in parts or []:
            if part.text and not part.thought:
                texts.append(part.text)

            call = part.function_call
            if call is not None:
                index = state.calls_seen
                state.calls_seen += 1
                tool_calls.append(
                    ToolCallDelta(
                        index=index,
                        id=call.id or f"call_{index}",
                        name=call.name or None,
                        # Gemini sends arguments whole, as an object.
                        arguments=json.dumps(call.args or {}),
                    )
                )

        finish_reason = self._normalize_finish_reason(candidate.finish_reason, state)
        if not texts and not tool_calls and finish_reason is None:
            return None
        return ChunkDelta(
            text="".join(texts) or None,
            tool_calls=tuple(tool_calls),
            finish_reason=finish_reason,
        )

    @staticmethod
    def _normalize_finish_reason(reason: str | None, state: _StreamState) -> str | None:
        if not reason or reason == "FINISH_REASON_UNSPECIFIED":
            return None
        if reason == "STOP":
            return "tool_calls" if state.calls_seen else "stop"
        if reason == "MAX_TOKENS":
            return "length"
        if reason in _FILTERED_REASONS:
            return "content_filter"
        return reason.lower()


def _envelopes(decoded: Any) -> Iterator[dict[str, Any]]:
    if isinstance(decoded, dict):
        yield decoded
    elif isinstance(decoded, list):
        for item in decoded:
            if isinstance(item, dict):
                yield item
