"""Streaming chat-completion client with tool execution."""

from aura_llm.client import StreamController, collect_text
from aura_llm.types import ConversationMessage, ImageBlob, StreamEvent

__all__ = [
    "StreamController",
    "collect_text",
    "ConversationMessage",
    "ImageBlob",
    "StreamEvent",
]
