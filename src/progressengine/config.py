"""Runtime settings loaded from environment variables with .env support."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Engine settings; every field can be overridden with PROGRESSENGINE_<NAME>."""

    model_config = SettingsConfigDict(
        env_prefix="PROGRESSENGINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Storage
    data_dir: Path = Path(".progressengine")
    db_filename: str = "progress.db"
    save_debounce_seconds: float = 0.2
    skip_save: bool = False  # preview/demo runs keep state in memory only

    # Logging
    log_level: str = "INFO"
    log_format: Literal["text", "json"] = "text"

    @property
    def db_path(self) -> Path:
        """Full path of the SQLite database file."""
        return self.data_dir / self.db_filename


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
