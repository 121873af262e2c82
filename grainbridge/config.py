"""
Grainbridge Configuration

Environment-based configuration for the control-plane server.
"""
import logging
from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _app_version_from_package() -> str:
    """Read version from the installed distribution metadata."""
    try:
        from importlib.metadata import version
        return version("grainbridge")
    except Exception:
        return "0.0.0-dev"


# Wire-contract version reported by GET /v1/state.
SCHEMA_VERSION = "0.1.0"

# Fallback tempo when the audio engine is absent or reports nonsense.
DEFAULT_TEMPO: float = 120.0


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    app_name: str = "grainbridge"
    app_version: str = _app_version_from_package()
    debug: bool = False

    # Server Configuration (localhost only)
    host: str = "127.0.0.1"
    port: int = 4850
    max_request_bytes: int = 1_048_576
    events_path: str = "/v1/events"
    # Event subscribers whose unsent output passes this are disconnected
    subscriber_buffer_limit_bytes: int = 4_194_304

    # Lifetimes (seconds)
    session_ttl_seconds: float = 3600.0
    validation_ttl_seconds: float = 300.0
    confirmation_ttl_seconds: float = 120.0

    # Event log ceiling; oldest entries are trimmed past this count
    event_log_capacity: int = 2000

    # Deferred work at or below this delay runs on the next loop turn
    inline_dispatch_threshold_ms: float = 5.0

    # GET /v1/history paging
    history_default_limit: int = 100
    history_max_limit: int = 500

    # Used when the audio engine does not report one
    sample_rate: float = 48_000.0

    # `python -m grainbridge` wires in-memory instrument collaborators
    simulate: bool = True

    model_config = SettingsConfigDict(
        env_prefix="GRAINBRIDGE_",
        env_file=".env",
        extra="ignore",
    )

    @field_validator("port")
    @classmethod
    def _port_in_range(cls, value: int) -> int:
        if not 0 <= value <= 65535:
            raise ValueError("port must be within 0..65535")
        return value

    @field_validator(
        "session_ttl_seconds",
        "validation_ttl_seconds",
        "confirmation_ttl_seconds",
        "sample_rate",
    )
    @classmethod
    def _positive(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("must be greater than zero")
        return value

    @field_validator(
        "event_log_capacity",
        "history_default_limit",
        "history_max_limit",
        "subscriber_buffer_limit_bytes",
    )
    @classmethod
    def _at_least_one(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be at least 1")
        return value


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    s = Settings()
    if s.host not in ("127.0.0.1", "localhost", "::1"):
        logging.getLogger(__name__).warning(
            f"GRAINBRIDGE_HOST={s.host} exposes the control plane beyond localhost"
        )
    return s


settings = get_settings()
