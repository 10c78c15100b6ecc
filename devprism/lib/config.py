"""Tool settings using pydantic-settings."""

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    dev-prism settings loaded from environment variables and .env file.

    Every field can be overridden with a ``DEV_PRISM_`` prefixed variable,
    e.g. ``DEV_PRISM_REGISTRY_PATH=/tmp/sessions.db``.
    """

    model_config = SettingsConfigDict(
        env_prefix="DEV_PRISM_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Storage settings
    home: Path = Field(
        default=Path.home() / ".dev-prism",
        description="Directory holding the session registry and log files",
    )
    registry_path: Path | None = Field(
        default=None,
        description="Session registry database file (defaults to <home>/sessions.db)",
    )
    busy_timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        description="How long a command waits on a locked registry before failing",
    )

    # Logging settings
    log_level: str = Field(default="WARNING", description="Logging level")
    log_to_file: bool = Field(
        default=False,
        description="Also write JSON log lines to <home>/logs",
    )

    # Port probing settings
    port_probe_host: str = Field(
        default="127.0.0.1",
        description="Host the free-port prober binds to",
    )
    port_probe_attempts: int = Field(
        default=50,
        ge=1,
        description="Maximum OS probes per requested port",
    )

    @property
    def resolved_registry_path(self) -> Path:
        """Registry file path with the home-directory default applied."""
        if self.registry_path is not None:
            return self.registry_path.expanduser()
        return self.home.expanduser() / "sessions.db"

    @property
    def log_dir(self) -> Path:
        return self.home.expanduser() / "logs"


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings.

    Returns:
        Settings instance (cached for the lifetime of the process)

    Example:
        >>> settings = get_settings()
        >>> settings.resolved_registry_path.name
        'sessions.db'
    """
    return Settings()


__all__ = ["Settings", "get_settings"]
