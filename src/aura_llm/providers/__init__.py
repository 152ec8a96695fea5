"""Provider definitions for aura_llm."""

from .base import BaseProvider
from .gemini import GeminiProvider
from .openai import OpenAIProvider

__all__ = [
    "BaseProvider",
    "OpenAIProvider",
    "GeminiProvider",
]
