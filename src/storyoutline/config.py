"""Application configuration.

Configuration is loaded from environment variables. For local development, you can provide a
`.env` file and set `STORYOUTLINE_ENV_FILE` to point to it.
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Storyoutline settings.

    All fields are environment-configurable. Prefix is `STORYOUTLINE_`.
    """

    model_config = SettingsConfigDict(
        env_prefix="STORYOUTLINE_",
        env_file=None,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Core
    log_level: str = Field(default="INFO")
    log_to_file: bool = Field(default=False)

    # Storage
    storage_dir: Path = Field(default=Path("memory-storage"))
    outline_file: str = Field(default="outline-v2.json")
    nested_outline_file: str = Field(default="outline.yaml")

    # Queries
    default_window_size: int = Field(default=2, ge=0, le=100)
    diagnostics_limit: int = Field(default=100, ge=1, le=10000)

    @property
    def outline_path(self) -> Path:
        """Path of the flat JSON outline document."""

        return self.storage_dir / self.outline_file

    @property
    def nested_outline_path(self) -> Path:
        """Path of the nested YAML outline used as migration source."""

        return self.storage_dir / self.nested_outline_file

    @property
    def log_dir(self) -> Path | None:
        return self.storage_dir if self.log_to_file else None


def load_settings() -> Settings:
    """Load settings from env.

    Returns:
        Settings: Parsed settings.
    """

    env_file_override = os.getenv("STORYOUTLINE_ENV_FILE")
    if env_file_override:
        env_path = Path(env_file_override)
        return Settings(_env_file=env_path)

    default_env = Path.cwd() / ".env"
    if default_env.exists():
        return Settings(_env_file=default_env)

    return Settings()
