"""Helpers shared by the provider adapters when building request bodies."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime

from aura_llm.types import ConversationMessage, Role


def split_system(
    messages: Sequence[ConversationMessage],
) -> tuple[list[str], list[ConversationMessage]]:
    """Separate system texts from the turns that are forwarded to a provider."""
    system_texts: list[str] = []
    rest: list[ConversationMessage] = []
    for m in messages:
        if m.role == "system":
            if m.text:
                system_texts.append(m.text)
        else:
            rest.append(m)
    return system_texts, rest


def build_directive(now: datetime, extra: Iterable[str] = ()) -> str:
    """Leading instruction that lets the model resolve relative times."""
    offset = now.strftime("%z")
    if offset:
        offset = f"UTC{offset[:3]}:{offset[3:]}"
    zone = ", ".join(part for part in (now.tzname(), offset) if part) or "local time"

    lines = [
        f"The current date and time is {now:%A, %B} {now.day}, {now.year} "
        f"{now:%H:%M} ({zone}).",
        f"Current time in ISO 8601: {now.isoformat(timespec='seconds')}.",
        "When calling a tool with a date or time, resolve relative expressions "
        "such as 'in 10 minutes' or 'tomorrow at 5pm' against the current time "
        "and pass an absolute ISO 8601 timestamp including the UTC offset.",
    ]
    lines.extend(extra)
    return "\n".join(lines)


def default_image_prompt(count: int) -> str:
    if count == 1:
        return "What's in this image?"
    return f"What's in these {count} images?"


def prompt_text(message: ConversationMessage) -> str | None:
    """Text part for a message, substituting a default prompt for image-only turns."""
    if message.text:
        return message.text
    if message.images:
        return default_image_prompt(len(message.images))
    return None


def openai_role(role: Role) -> str:
    return "assistant" if role == "assistant" else "user"


def gemini_role(role: Role) -> str:
    # Gemini names the assistant role "model".
    return "model" if role == "assistant" else "user"
