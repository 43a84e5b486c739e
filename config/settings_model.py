from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _package_version() -> str:
    from networkd_exporter import __version__
    return __version__


class Settings(BaseSettings):
    """
    Exporter configuration settings using Pydantic Settings.
    Reads from environment variables (and .env) with type safety and validation.
    """

    # ─────────────────────────────────────────────────────────────────────────────
    # Version
    # ─────────────────────────────────────────────────────────────────────────────
    # Taken from the installed package metadata (pyproject.toml)
    VERSION: str = Field(default_factory=_package_version)

    # ─────────────────────────────────────────────────────────────────────────────
    # Metrics endpoint
    # ─────────────────────────────────────────────────────────────────────────────
    # SECURITY: defaults to localhost. Non-localhost bindings require
    # METRICS_AUTH_USER/METRICS_AUTH_PASS or METRICS_ALLOW_NO_AUTH=1.
    METRICS_ADDR: str = "127.0.0.1"
    METRICS_PORT: int = Field(default=9558, ge=1, le=65535)
    METRICS_PATH: str = Field(default="/metrics", description="HTTP path serving metrics")
    ENABLE_PROCESS_METRICS: bool = True

    # ─────────────────────────────────────────────────────────────────────────────
    # networkd collection
    # ─────────────────────────────────────────────────────────────────────────────
    DBUS_TIMEOUT_SECONDS: float = Field(default=5.0, gt=0, description="Timeout for each D-Bus call")
    ENABLE_LINK_STATE_METRICS: bool = False

    # ─────────────────────────────────────────────────────────────────────────────
    # Logging
    # ─────────────────────────────────────────────────────────────────────────────
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = ""  # empty: log to stderr
    LOG_TRUNCATE_ON_START: bool = False

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )

    @field_validator("METRICS_PATH")
    @classmethod
    def _path_starts_with_slash(cls, value: str) -> str:
        if not value.startswith("/"):
            raise ValueError("METRICS_PATH must start with '/'")
        return value

    @field_validator("LOG_LEVEL")
    @classmethod
    def _known_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"unknown log level: {value}")
        return level
