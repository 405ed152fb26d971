# src/cantorx/config/settings.py
"""
Settings - Pydantic-based Configuration Management

Provides centralized configuration management using Pydantic Settings.
Values come from environment variables or an optional ``.env`` file.
There is no cache or bus URL: the hot cache and the update bus live in
process (see cantorx.adapters.cache), tuned by CACHE_TTL_SECONDS and
SUBSCRIBER_QUEUE_SIZE.

Files that USE this module:
- cantorx.app (loads settings for wiring and server ports)
- cantorx.adapters.crawlers.* (timeout and User-Agent for scraping)
- cantorx.application.* (harvest cadence, cache TTL, timeouts)

Files that this module USES:
- cantorx.shared.validators (currency code validation)
- cantorx.domain.models (default currency list)
"""

from __future__ import annotations  # Enable postponed evaluation of annotations

from pathlib import Path  # Object-oriented filesystem paths
from typing import Optional  # Type hints for optional values

from pydantic import Field, field_validator, model_validator  # Data validation and field configuration
from pydantic_settings import BaseSettings, SettingsConfigDict  # Settings management with Pydantic

from cantorx.domain.models import DEFAULT_CURRENCIES
from cantorx.shared.validators import is_currency_code

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # --- Storage ---
    database_url: str = Field(default="sqlite:///./data/cantorx.db", alias="DATABASE_URL")
    sources_file: Optional[Path] = Field(default=None, alias="SOURCES_FILE")

    # --- Persistent stream (optional) ---
    stream_dir: Optional[Path] = Field(default=None, alias="STREAM_DIR")
    stream_retention_hours: int = Field(default=24, alias="STREAM_RETENTION_HOURS", ge=1, le=168)

    # --- Listeners ---
    rest_host: str = Field(default="0.0.0.0", alias="REST_HOST")
    rest_port: int = Field(default=8080, alias="REST_PORT", ge=1, le=65535)
    rpc_host: str = Field(default="0.0.0.0", alias="RPC_HOST")
    rpc_port: int = Field(default=8081, alias="RPC_PORT", ge=1, le=65535)

    # --- Scraping ---
    scrape_timeout_seconds: int = Field(default=15, alias="SCRAPE_TIMEOUT_SECONDS", ge=1, le=120)
    user_agent: str = Field(default=DEFAULT_USER_AGENT, alias="SCRAPER_USER_AGENT", min_length=1)

    # --- Hot cache / bus ---
    cache_ttl_seconds: int = Field(default=60, alias="CACHE_TTL_SECONDS", ge=1, le=3600)
    subscriber_queue_size: int = Field(default=256, alias="SUBSCRIBER_QUEUE_SIZE", ge=1)

    # --- Harvesting ---
    harvester_enabled: bool = Field(default=True, alias="HARVESTER_ENABLED")
    harvest_interval_minutes: int = Field(default=15, alias="HARVEST_INTERVAL_MINUTES", ge=1, le=1440)
    politeness_delay_ms: int = Field(default=500, alias="POLITENESS_DELAY_MS", ge=0, le=60000)
    max_parallel_sources: int = Field(default=4, alias="MAX_PARALLEL_SOURCES", ge=1, le=64)
    currencies_csv: str = Field(default=",".join(DEFAULT_CURRENCIES), alias="CURRENCIES")
    expensive_task_seconds: float = Field(default=2.0, alias="EXPENSIVE_TASK_SECONDS", gt=0)
    expensive_task_window: int = Field(default=10, alias="EXPENSIVE_TASK_WINDOW", ge=1)

    # --- History ---
    history_retention_days: int = Field(default=30, alias="HISTORY_RETENTION_DAYS", ge=7)
    lookup_timeout_seconds: float = Field(default=2.0, alias="LOOKUP_TIMEOUT_SECONDS", gt=0)
    archive_timeout_seconds: float = Field(default=5.0, alias="ARCHIVE_TIMEOUT_SECONDS", gt=0)

    # --- Logging (for server deployment) ---
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_file: Optional[str] = Field(default=None, alias="LOG_FILE")
    log_dir: Optional[str] = Field(default=None, alias="LOG_DIR")
    log_stdout: bool = Field(default=True, alias="CANTORX_LOG_STDOUT")
    log_max_bytes: int = Field(default=10 * 1024 * 1024, alias="LOG_MAX_BYTES")  # 10MB
    log_backup_count: int = Field(default=5, alias="LOG_BACKUP_COUNT")

    @property
    def currencies(self) -> tuple[str, ...]:
        """Currencies harvested every cycle, in configured order."""
        return tuple(c.strip().upper() for c in self.currencies_csv.split(",") if c.strip())

    @property
    def harvest_interval_seconds(self) -> float:
        return self.harvest_interval_minutes * 60.0

    @property
    def politeness_delay_seconds(self) -> float:
        return self.politeness_delay_ms / 1000.0

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("DATABASE_URL must not be empty")
        return v

    @field_validator("currencies_csv")
    @classmethod
    def validate_currencies(cls, v: str) -> str:
        """Validate the comma separated currency list."""
        codes = [c.strip().upper() for c in v.split(",") if c.strip()]
        if not codes:
            raise ValueError("CURRENCIES must list at least one currency")
        bad = [c for c in codes if not is_currency_code(c)]
        if bad:
            raise ValueError(f"Invalid currency codes in CURRENCIES: {', '.join(bad)}")
        return ",".join(codes)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError("LOG_LEVEL must be one of DEBUG, INFO, WARNING, ERROR, CRITICAL")
        return level

    @model_validator(mode="after")
    def validate_ports(self) -> "Settings":
        if self.rest_port == self.rpc_port:
            raise ValueError("REST_PORT and RPC_PORT must differ")
        return self


# Global settings instance
settings = Settings()


# ============================================================================
# Deployment Instructions
# ============================================================================
#
# 1. Run the service (REST on :8080, RPC on :8081):
#    DATABASE_URL=postgresql+psycopg://user:pass@db/cantorx \
#    SOURCES_FILE=./sources.json python -m cantorx
#
# 2. Enable the replayable per-currency stream:
#    STREAM_DIR=./data/stream python -m cantorx
#
# 3. Serve reads only, without harvesting:
#    HARVESTER_ENABLED=false python -m cantorx
#
# ============================================================================
