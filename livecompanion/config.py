# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Application configuration loaded from the environment."""

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime settings.

    Every field can be overridden with a ``LIVECOMPANION_`` prefixed
    environment variable (e.g. ``LIVECOMPANION_DATABASE_URL``) or a ``.env``
    file in the working directory.
    """

    model_config = SettingsConfigDict(
        env_prefix="LIVECOMPANION_",
        env_file=".env",
        extra="ignore",
    )

    database_url: str = "sqlite:///./livecompanion.db"

    # Extensions
    extensions_dir: Path = Path("./extensions")
    state_file: Path | None = None
    extension_route_prefix: str = "/ext"
    reload_warning_threshold: int = 10
    reload_min_interval: float = 0.0
    extension_data_dir: Path = Path("./user_data/extensions")

    # Automation
    history_size: int = Field(default=100, ge=1)
    flow_files_dir: Path = Path("./user_data/flow_logs")
    webhook_allowed_domains: list[str] = Field(
        default_factory=lambda: [
            "webhook.site",
            "discord.com",
            "zapier.com",
            "ifttt.com",
            "make.com",
            "integromat.com",
        ]
    )
    webhook_timeout: float = 5.0

    # Logging
    log_level: str = "INFO"
    log_file: Path | None = None
    log_buffer_size: int = Field(default=500, ge=1)

    @property
    def resolved_state_file(self) -> Path:
        """Path of the extension state file (defaults into extensions_dir)."""
        return self.state_file or self.extensions_dir / "extensions_state.json"


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings()
