import logging
from pathlib import Path
from typing import List, Optional

from pydantic import Field, HttpUrl
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """Application settings loaded from environment variables or .env file."""

    # Leaderboard Source
    leaderboard_url: HttpUrl = Field(
        "https://brihackathon.id/dashboard",
        description="Page holding one leaderboard table per contest.",
    )
    session_cookie: Optional[str] = Field(
        None, description="PHPSESSID cookie value sent with the leaderboard fetch."
    )
    contests: List[str] = Field(
        default_factory=lambda: ["People Analytics", "Cash Ratio Optimization"],
        description="Tracked contest names, as they appear above each table.",
    )

    # Discord Delivery
    discord_bot_token: Optional[str] = Field(
        None, description="Bot token used to deliver notifications."
    )
    operator_id: Optional[str] = Field(
        None, description="Discord user id receiving operator error reports."
    )

    # Polling
    poll_interval_seconds: float = Field(60, gt=0)
    fetch_timeout_seconds: float = Field(
        30,
        gt=0,
        description="Upper bound for one whole fetch, retries included.",
    )

    # Persistence
    data_dir: Path = Field(Path("data"), description="Directory for state files.")
    snapshot_file: str = "snapshot.json"
    subscribers_file: str = "subscribers.json"

    # Diff / Rendering
    top_n: int = Field(10, ge=1, description="Size of the aggregate top view.")
    neighbor_window: int = Field(
        2, ge=0, description="Ranks shown above/below a tracked team."
    )
    report_team_disappearance: bool = Field(
        False,
        description="Emit an event when a tracked team vanishes from a contest.",
    )

    console_commands: bool = Field(
        False, description="Read bot commands from stdin (local testing)."
    )

    # Logging Configuration
    log_level: str = Field(
        "INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)."
    )

    # Pydantic Settings Configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    @property
    def snapshot_path(self) -> Path:
        return self.data_dir / self.snapshot_file

    @property
    def subscribers_path(self) -> Path:
        return self.data_dir / self.subscribers_file


def load_settings() -> AppSettings:
    """Loads and validates application settings."""
    try:
        settings = AppSettings()
        log_level_upper = settings.log_level.upper()
        # Validate log_level even if loaded from .env
        if log_level_upper not in ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
            logging.warning(
                f"Invalid LOG_LEVEL '{settings.log_level}' found in .env or default. Using INFO."
            )
            settings.log_level = "INFO"
        else:
            settings.log_level = log_level_upper
        return settings
    except Exception as e:
        logging.exception(f"Error loading application settings: {e}")
        raise SystemExit("Failed to load application settings. Exiting.")


settings: AppSettings = load_settings()
