"""Provider-agnostic conversation, event and tool models."""

from __future__ import annotations

import base64
from dataclasses import dataclass
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

Role = Literal["system", "user", "assistant"]
ProviderName = Literal["openai", "gemini"]
ErrorKind = Literal["auth_error", "rate_limited", "network_error", "protocol_error"]
EventType = Literal["text_delta", "tool_result", "end", "failure"]


class ImageBlob(BaseModel):
    """Binary image payload attached to a message."""

    model_config = ConfigDict(frozen=True)

    data: bytes
    mime_type: str = "image/png"

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")


class ConversationMessage(BaseModel):
    """Single conversation turn; immutable once built."""

    model_config = ConfigDict(frozen=True)

    role: Role
    text: str = ""
    images: list[ImageBlob] = Field(default_factory=list)


class ToolDef(BaseModel):
    """JSON-schema tool definition advertised to the provider."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str | None = None
    json_schema: dict[str, Any] = Field(default_factory=dict)


class StreamEvent(BaseModel):
    """Events emitted by the stream controller, in delivery order."""

    type: EventType
    text: str | None = None
    error: ErrorKind | None = None
    detail: str | None = None

    @classmethod
    def text_delta(cls, text: str) -> StreamEvent:
        return cls(type="text_delta", text=text)

    @classmethod
    def tool_result(cls, text: str) -> StreamEvent:
        return cls(type="tool_result", text=text)

    @classmethod
    def end(cls) -> StreamEvent:
        return cls(type="end")

    @classmethod
    def failure(cls, kind: ErrorKind, detail: str) -> StreamEvent:
        return cls(type="failure", error=kind, detail=detail)

    @property
    def is_terminal(self) -> bool:
        return self.type in ("end", "failure")


@dataclass(frozen=True)
class ToolCallDelta:
    """Fragment of a tool call at a provider-assigned position index."""

    index: int
    id: str | None = None
    name: str | None = None
    arguments: str | None = None


@dataclass(frozen=True)
class ChunkDelta:
    """One decoded provider chunk, normalized across providers."""

    text: str | None = None
    tool_calls: tuple[ToolCallDelta, ...] = ()
    # lowercase OpenAI vocabulary: stop, tool_calls, length, content_filter, ...
    finish_reason: str | None = None
    error: str | None = None
