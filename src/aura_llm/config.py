"""
Configuration loaded from the environment (AURA_*) and an optional .env file.
"""
from __future__ import annotations

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from aura_llm.types import ProviderName

_PLACEHOLDER_MARKER = "YOUR_"


class AuraSettings(BaseSettings):
    openai_api_key: str = ""
    openai_base_url: str = "https://api.openai.com"
    openai_model: str = "gpt-4o"

    gemini_api_key: str = ""
    gemini_base_url: str = "https://generativelanguage.googleapis.com"
    gemini_model: str = "gemini-2.0-flash"

    max_tokens: int = 4096
    temperature: float = 0.7
    timeout_s: float = 60.0

    model_config = SettingsConfigDict(env_prefix="AURA_", env_file=".env", extra="ignore")

    def credential_for(self, provider: ProviderName) -> str:
        if provider == "gemini":
            return self.gemini_api_key
        return self.openai_api_key


def has_credential(api_key: str) -> bool:
    """False for empty keys and for unfilled placeholders such as YOUR_API_KEY."""
    return bool(api_key.strip()) and _PLACEHOLDER_MARKER not in api_key


# ── Singleton loader ─────────────────────────────────────────────────────────

_settings: Optional[AuraSettings] = None


def get_settings() -> AuraSettings:
    global _settings
    if _settings is None:
        _settings = AuraSettings()
    return _settings
