"""Package specific exception hierarchy."""

from __future__ import annotations

from typing import ClassVar

from aura_llm.types import ErrorKind


class AuraLLMError(Exception):
    """Base exception for aura_llm package."""


class StreamError(AuraLLMError):
    """An error that terminates a completion stream."""

    kind: ClassVar[ErrorKind] = "protocol_error"


class AuthError(StreamError):
    """Raised when the provider rejects the credential (401/403)."""

    kind: ClassVar[ErrorKind] = "auth_error"

    def __init__(self, message: str = "Invalid API key.") -> None:
        super().__init__(message)


class NoCredentialError(AuthError):
    """Raised before any network call when no credential is configured."""

    def __init__(self) -> None:
        super().__init__("no credential configured")


class RateLimitedError(StreamError):
    """Raised on HTTP 429."""

    kind: ClassVar[ErrorKind] = "rate_limited"

    def __init__(self, message: str = "Rate limit exceeded. Please try again later.") -> None:
        super().__init__(message)


class NetworkError(StreamError):
    """Transport-level failure while connecting or reading the stream."""

    kind: ClassVar[ErrorKind] = "network_error"

    def __init__(self, cause: Exception) -> None:
        super().__init__(f"Network error: {cause}")
        self.cause = cause


class ProtocolError(StreamError):
    """Non-200 status, malformed response or an inline provider error."""

    kind: ClassVar[ErrorKind] = "protocol_error"

    def __init__(self, message: str, status_code: int | None = None) -> None:
        suffix = f" (status {status_code})" if status_code is not None else ""
        super().__init__(f"API error: {message}{suffix}")
        self.message = message
        self.status_code = status_code


class UnsupportedProviderError(AuraLLMError):
    """Raised when a provider name is not one of the known adapters."""

    def __init__(self, provider: str) -> None:
        super().__init__(f"Provider '{provider}' is not available.")


class ToolParseError(AuraLLMError):
    """Tool-call arguments were not valid JSON or did not match the schema."""

    def __init__(self, tool: str, reason: str) -> None:
        super().__init__(f"{tool}: {reason}")
        self.tool = tool


class ToolExecutionError(AuraLLMError):
    """A tool's external-system call failed; the message is shown to the user."""
