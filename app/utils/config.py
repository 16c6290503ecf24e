"""
Configuration management for the Detection Archive.

Uses pydantic-settings to load configuration from environment variables
and .env files. Per-trigger archive settings live in a JSON triggers file.
"""

import json
from functools import lru_cache
from pathlib import Path
from typing import List

from pydantic import ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from app.models.schemas import TriggerConfig


class TriggerConfigError(Exception):
    """Raised when the triggers file cannot be loaded."""


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # API Configuration
    api_port: int = 8000
    log_level: str = "INFO"
    api_title: str = "Detection Archive"
    api_version: str = "1.0.0"

    # Storage Configuration
    storage_root: Path = Path("/var/lib/watchman/archive-store")
    watch_dirs: str = "/aiinput"
    triggers_file: Path = Path("config/triggers.json")

    # Archive Configuration
    archive_interval: float = 6.0  # seconds between passes
    archive_retry_budget: int = 3
    longest_event_duration: int = 15  # seconds
    event_lead_in: int = 3  # seconds
    event_postfixes: str = "_att"
    image_extensions: str = ".jpg,.jpeg,.png"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    def get_watch_dirs(self) -> list[Path]:
        """Parse watch directories into list of Paths."""
        return [
            Path(p.strip()).expanduser()
            for p in self.watch_dirs.split(',')
            if p.strip()
        ]

    def get_event_postfixes(self) -> list[str]:
        """Parse postfix markers into list."""
        return [p.strip() for p in self.event_postfixes.split(',') if p.strip()]

    def get_image_extensions(self) -> set[str]:
        """Parse image extensions into a lowercase set."""
        return {e.strip().lower() for e in self.image_extensions.split(',') if e.strip()}


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def load_triggers(path: Path) -> List[TriggerConfig]:
    """
    Load trigger definitions from a JSON file.

    Args:
        path: Path to a JSON file holding a list of trigger objects

    Returns:
        List of validated triggers

    Raises:
        TriggerConfigError: If the file is missing or invalid
    """
    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise TriggerConfigError(f"Triggers file not found: {path}") from e
    except json.JSONDecodeError as e:
        raise TriggerConfigError(f"Triggers file {path} is not valid JSON: {e}") from e

    if isinstance(raw, dict):
        raw = raw.get("triggers", [])

    if not isinstance(raw, list):
        raise TriggerConfigError(f"Triggers file {path} must contain a list of triggers")

    try:
        return [TriggerConfig.model_validate(item) for item in raw]
    except ValidationError as e:
        raise TriggerConfigError(f"Invalid trigger in {path}: {e}") from e
