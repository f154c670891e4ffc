"""Application configuration from environment variables."""

import logging
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# =============================================================================
# Settings
# =============================================================================


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(
        env_prefix="VARSPEED_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application settings
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Logging level")
    roster_file: Path = Field(
        default=Path("input.txt"), description="Roster file read by the CLI"
    )

    # Election settings
    max_rounds: int = Field(
        default=1_000_000,
        ge=1,
        description="Refuse rosters whose round bound exceeds this",
    )
    barrier_timeout: float | None = Field(
        default=30.0,
        description="Seconds a process may wait at the round barrier",
    )
    # Rounds cost about one barrier crossing of every thread, so rings near
    # max_rounds need a larger run_timeout, or none
    run_timeout: float | None = Field(
        default=300.0,
        description="Seconds a caller waits for a run",
    )
    history_limit: int = Field(
        default=100, ge=1, description="Completed runs kept in memory"
    )

    @field_validator("roster_file", mode="before")
    @classmethod
    def ensure_path(cls, v: str | Path) -> Path:
        """Convert string to Path."""
        return Path(v) if isinstance(v, str) else v

    @field_validator("barrier_timeout", "run_timeout", mode="before")
    @classmethod
    def disable_timeout(cls, v: float | str | None) -> float | None:
        """Treat 0, negative values and 'none' as no timeout."""
        if v is None:
            return None
        if isinstance(v, str) and v.strip().lower() in ("", "none", "off"):
            return None
        if float(v) <= 0:
            return None
        return float(v)

    @property
    def log_level_value(self) -> int:
        """Numeric logging level, falling back to INFO."""
        level = logging.getLevelName(self.log_level.upper())
        return level if isinstance(level, int) else logging.INFO


# =============================================================================
# Singleton
# =============================================================================


_settings: Settings | None = None


def get_settings() -> Settings:
    """Get cached settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset settings (for testing)."""
    global _settings
    _settings = None
