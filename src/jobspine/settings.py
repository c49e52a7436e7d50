"""
Centralized settings for jobspine.

:class:`JobSpineSettings` replaces the scattered engine properties file
with one validated, cached source of truth.  Every field can be set via a
``JOBSPINE_*`` environment variable or a ``.env`` file, e.g.::

    JOBSPINE_STORE_URL=postgresql+psycopg://scheduler@db/jobs
    JOBSPINE_THREAD_POOL_SIZE=4
    JOBSPINE_SCHEDULE_OVERRIDES='{"job3.cron": "0 0/2 * * * ?"}'

Requires ``pydantic-settings``.
"""

from __future__ import annotations

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .scheduling.resolver import (
    ChainedConfigSource,
    ConfigSource,
    EnvironmentConfigSource,
    MappingConfigSource,
)

MEMORY_STORE_URL = "memory://"


class JobSpineSettings(BaseSettings):
    """Scheduler adapter configuration."""

    model_config = SettingsConfigDict(
        env_prefix="JOBSPINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Switch ───────────────────────────────────────────────────
    enabled: bool = Field(default=True, description="Start the scheduler at bootstrap")

    # ── Durable store ────────────────────────────────────────────
    store_url: str = Field(
        default="sqlite:///data/jobspine.db",
        description=f"SQLAlchemy URL of the job store, or {MEMORY_STORE_URL!r}",
    )
    store_table: str = Field(default="jobspine_jobs")

    # ── Engine ───────────────────────────────────────────────────
    engine_name: str = Field(default="jobspine", description="Routes fires to this process's dispatcher")
    thread_pool_size: int = Field(default=10, ge=1)
    misfire_grace_seconds: int = Field(default=60, ge=1)
    timezone: str = Field(default="UTC")
    start_paused: bool = Field(default=False)

    # ── Declarations ─────────────────────────────────────────────
    job_modules: list[str] = Field(default_factory=list)
    schedule_overrides: dict[str, str] = Field(default_factory=dict)

    # ── Logging ──────────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="console")

    @field_validator("log_format")
    @classmethod
    def _check_log_format(cls, value: str) -> str:
        if value not in ("console", "json"):
            raise ValueError(f"log_format must be 'console' or 'json', got {value!r}")
        return value

    @property
    def uses_memory_store(self) -> bool:
        return self.store_url == MEMORY_STORE_URL

    def config_source(self) -> ConfigSource:
        """Property source for ``${...}`` placeholders: overrides, then environment."""
        return ChainedConfigSource(
            MappingConfigSource(self.schedule_overrides),
            EnvironmentConfigSource(),
        )


_settings_cache: dict[str, JobSpineSettings] = {}


def get_settings(*, _force_reload: bool = False) -> JobSpineSettings:
    """Load, validate, and cache a :class:`JobSpineSettings` instance."""
    if not _force_reload and "default" in _settings_cache:
        return _settings_cache["default"]
    settings = JobSpineSettings()
    _settings_cache["default"] = settings
    return settings


def clear_settings_cache() -> None:
    """Clear the settings cache (primarily for testing)."""
    _settings_cache.clear()
