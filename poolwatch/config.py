"""Application configuration using Pydantic settings."""

from datetime import date, datetime
from functools import lru_cache
from pathlib import Path
from typing import Optional
from zoneinfo import ZoneInfo

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="POOLWATCH_",
        extra="ignore",
    )

    # Schedule database
    db_path: Path = Path("./data/poolwatch.db")

    # App
    debug: bool = False
    log_level: str = "INFO"

    # Run-date convention of the stored schedule (MM/DD/YYYY)
    timezone: str = "America/New_York"
    race_date_format: str = "%m/%d/%Y"

    # Wagering site
    listing_url: str = "https://www.twinspires.com/bet/todays-races/time"

    # Browser session
    headless: bool = True
    chromium_executable: Optional[str] = None
    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
    )
    proxy_server: Optional[str] = None
    proxy_username: Optional[str] = None
    proxy_password: Optional[str] = None

    # Timeouts (milliseconds)
    listing_timeout_ms: int = 45000
    race_navigation_timeout_ms: int = 60000
    selector_timeout_ms: int = 10000
    mtp_timeout_ms: int = 5000
    pools_timeout_ms: int = 5000

    # Pacing (seconds)
    pools_settle_seconds: float = 2.0
    inter_race_delay: float = 2.0
    listing_attempts: int = 3
    retry_base_delay: float = 5.0
    run_timeout: float = 300.0

    # Diagnostics
    capture_screenshots: bool = False
    debug_dir: Path = Path("./data/debug")

    @property
    def database_url(self) -> str:
        """SQLite database URL for SQLAlchemy."""
        return f"sqlite+aiosqlite:///{self.db_path}"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Export for convenience
settings = get_settings()


def local_now() -> datetime:
    """Current time in the configured racing timezone."""
    return datetime.now(ZoneInfo(settings.timezone))


def local_today() -> date:
    """Today's date in the configured racing timezone."""
    return local_now().date()


def format_race_date(day: date) -> str:
    """Format a date the way the schedule store keeps race dates."""
    return day.strftime(settings.race_date_format)
