"""Service configuration loaded from BUILDERSPACE_* environment variables."""

from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class BuilderSpaceSettings(BaseSettings):
    """BuilderSpace server settings.

    All fields are read from environment variables with the ``BUILDERSPACE_``
    prefix.  For example, ``BUILDERSPACE_LOG_LEVEL=DEBUG`` maps to
    ``log_level``.
    """

    model_config = SettingsConfigDict(
        env_prefix="BUILDERSPACE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # -- Logging ---------------------------------------------------------------
    log_level: str = "INFO"
    log_json: bool = False
    """Emit one JSON object per log line instead of the coloured console format."""

    # -- Infrastructure --------------------------------------------------------
    database_url: str | None = None
    """PostgreSQL connection string (``postgresql+psycopg://``).  Required for full operation."""

    redis_url: str | None = None
    """Redis connection string.  Enables cross-process broadcast fan-out when set."""

    broadcast_channel: str = "builderspace:broadcast"
    """Pub/sub channel used by the Redis backplane."""

    # -- Real-time -------------------------------------------------------------
    retry_max_attempts: int = 3
    """Upper bound on attempts for conflicting workspace writes."""

    retry_base_delay: float = 0.1
    """Backoff before the second attempt, in seconds; doubles per attempt."""

    retry_max_delay: float = 5.0
    """Cap on a single backoff sleep, in seconds."""

    operation_timeout: float = 10.0
    """Seconds a single write attempt may take before it counts as transient."""

    send_timeout: float = 5.0
    """Seconds a single socket write may take before the connection is dropped."""

    # -- Server ----------------------------------------------------------------
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 8000


def get_settings() -> BuilderSpaceSettings:
    """Return a cached settings instance.

    Reads from environment variables and ``.env`` on first call, then returns
    the same object.  Call ``_get_settings_cached.cache_clear()`` in tests to
    force a re-read after overriding env vars.
    """
    return _get_settings_cached()


def _get_settings_cached() -> BuilderSpaceSettings:
    """Inner function wrapped by lru_cache (allows type-safe cache_clear)."""
    return BuilderSpaceSettings()


# Apply lru_cache at runtime so the function is only called once.
from functools import lru_cache  # noqa: E402

_get_settings_cached = lru_cache(maxsize=1)(_get_settings_cached)
