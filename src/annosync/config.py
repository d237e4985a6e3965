"""Centralised configuration using pydantic-settings.

All environment variables are read through the Settings class.
Consumers call ``get_settings()`` to obtain a cached, validated instance.
Tests construct ``Settings(_env_file=None, ...)`` directly for isolation.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# src/annosync/config.py  ->  parent x3  ->  project root
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


# ---------------------------------------------------------------------------
# Sub-models (one per configuration domain)
# ---------------------------------------------------------------------------
class SyncConfig(BaseModel):
    """Timing and fallback knobs for the reconciliation loop."""

    debounce_seconds: float = Field(default=0.3, ge=0)
    removal_grace_seconds: float = Field(default=0.5, ge=0)
    modification_timeout_seconds: float = Field(default=0.5, gt=0)
    fallback_label: str = "claim"


class LabelsConfig(BaseModel):
    """Where the label catalog comes from.

    ``catalog_path`` points at a JSON list of label configs; ``None``
    selects the built-in catalog.
    """

    catalog_path: Path | None = None


class LlmConfig(BaseModel):
    """Claude API configuration for the labeling backend."""

    api_key: SecretStr = SecretStr("")
    model: str = "claude-sonnet-4-20250514"
    max_tokens: int = 4096
    temperature: float = Field(default=0.3, ge=0, le=1)


class DatabaseConfig(BaseModel):
    """Database connection configuration."""

    url: str | None = None
    echo: bool = False


class AppConfig(BaseModel):
    """Application runtime configuration."""

    log_dir: Path = Path("logs")


# ---------------------------------------------------------------------------
# Main Settings class
# ---------------------------------------------------------------------------
class Settings(BaseSettings):
    """Root settings object.

    Environment variables use ``__`` as the nesting delimiter, so
    ``SYNC__DEBOUNCE_SECONDS=1`` sets ``settings.sync.debounce_seconds``.
    """

    model_config = SettingsConfigDict(
        env_file=_PROJECT_ROOT / ".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    sync: SyncConfig = SyncConfig()
    labels: LabelsConfig = LabelsConfig()
    llm: LlmConfig = LlmConfig()
    database: DatabaseConfig = DatabaseConfig()
    app: AppConfig = AppConfig()


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance.

    Call ``get_settings.cache_clear()`` in tests to reset.
    """
    settings = Settings()

    env_file = settings.model_config.get("env_file")
    if env_file is not None and Path(str(env_file)).is_file():
        logger.info("Settings loaded .env from: %s", env_file)
    else:
        logger.info("Settings: no .env file found, using env vars and defaults")

    return settings
