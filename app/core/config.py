"""Unified application configuration."""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

CONFIG_PATH = Path(__file__).resolve().parents[2] / "config.json"


class Settings(BaseSettings):
    """Global application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="allow",
    )

    # HTTP server
    host: str = "127.0.0.1"
    port: int = 5000
    cors_origins: list[str] = ["*"]

    # Logs
    log_rotate_mb: int = 5
    log_retention_days: int = 7

    # Chat completion (OpenAI-compatible endpoint, Groq by default)
    chat_system_prompt: str = (
        "You are a helpful medical front desk assistant. Be professional, concise, and friendly. "
        "Your primary goal is to help patients with their medical queries and tasks."
    )
    chat_models: list[str] = ["llama3-8b-8192", "mixtral-8x7b-32768", "gemma-7b-it"]
    chat_api_base_url: str = "https://api.groq.com/openai/v1"
    chat_endpoint: str = "/chat/completions"
    groq_api_key: str | None = None
    chat_max_tokens: int = 500
    chat_temperature: float = 0.7
    chat_history_max_messages: int = 20
    chat_candidate_timeout_sec: float = 30.0

    # Augmented search (Perplexity)
    perplexity_api_key: str | None = None
    perplexity_base_url: str = "https://api.perplexity.ai"
    perplexity_model: str = "llama-3.1-sonar-small-128k-online"
    perplexity_timeout_sec: float = 20.0

    # Web search (DuckDuckGo, opt-in)
    duckduckgo_enabled: bool = False
    duckduckgo_max_results: int = 5
    duckduckgo_region: str = "us-en"
    duckduckgo_safe_search: str = "moderate"

    # Remote speech synthesis, only reported by the health endpoint
    elevenlabs_api_key: str | None = None

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            cls.json_config_settings_source,
            file_secret_settings,
        )

    @staticmethod
    def json_config_settings_source() -> dict[str, object]:
        """Load config.json from the repository root when present."""
        if CONFIG_PATH.is_file():
            try:
                return json.loads(CONFIG_PATH.read_text(encoding="utf-8"))
            except ValueError:
                return {}
        return {}

    def capability_flags(self) -> dict[str, bool]:
        """Which external providers have credentials configured."""
        return {
            "groq": bool(self.groq_api_key),
            "perplexity": bool(self.perplexity_api_key),
            "elevenlabs": bool(self.elevenlabs_api_key),
        }


@lru_cache()
def get_settings() -> Settings:
    """Return a cached Settings instance."""
    return Settings()
