"""Environment-driven configuration for DevWatch."""

import os
from dataclasses import dataclass, field

from devwatch.models import ALL_CATEGORIES, Category

DEFAULT_DB_PATH = "devwatch.db"
CHECKPOINT_DB_PATH = "devwatch_checkpoints.db"
DEFAULT_API_BASE = "https://api.github.com"
DEFAULT_CHECK_INTERVAL = 15  # minutes
MIN_CHECK_INTERVAL = 5
MAX_CHECK_INTERVAL = 1440
DEFAULT_MAX_ACTIVITIES = 100
DEFAULT_LOOKBACK_HOURS = 24
DEFAULT_REQUEST_TIMEOUT = 10.0  # seconds
DEFAULT_AGENT_MODEL = "claude-sonnet-4-5-20250929"


def _env_int(key: str, default: int) -> int:
    value = os.environ.get(key)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError as e:
        raise ValueError(f"Environment variable {key} must be an integer.") from e


def _env_float(key: str, default: float) -> float:
    value = os.environ.get(key)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError as e:
        raise ValueError(f"Environment variable {key} must be a number.") from e


def _env_categories(key: str) -> tuple[Category, ...]:
    value = os.environ.get(key)
    if not value:
        return ALL_CATEGORIES
    try:
        return tuple(Category(part.strip()) for part in value.split(",") if part.strip())
    except ValueError as e:
        raise ValueError(
            f"Environment variable {key} must list categories from: pr, issue, release."
        ) from e


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the synchronization pipeline."""

    db_path: str = DEFAULT_DB_PATH
    checkpoint_path: str = CHECKPOINT_DB_PATH
    api_base: str = DEFAULT_API_BASE
    check_interval_minutes: int = DEFAULT_CHECK_INTERVAL
    max_activities: int = DEFAULT_MAX_ACTIVITIES
    lookback_hours: int = DEFAULT_LOOKBACK_HOURS
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    categories: tuple[Category, ...] = field(default=ALL_CATEGORIES)
    headless: bool = False
    agent_model: str = DEFAULT_AGENT_MODEL

    @property
    def check_interval_seconds(self) -> int:
        return self.check_interval_minutes * 60

    @classmethod
    def from_environment(cls) -> "Settings":
        """Load settings from ``DEVWATCH_*`` environment variables."""
        interval = _env_int("DEVWATCH_CHECK_INTERVAL", DEFAULT_CHECK_INTERVAL)
        max_activities = _env_int("DEVWATCH_MAX_ACTIVITIES", DEFAULT_MAX_ACTIVITIES)
        if max_activities < 1:
            raise ValueError("Environment variable DEVWATCH_MAX_ACTIVITIES must be positive.")

        return cls(
            db_path=os.environ.get("DEVWATCH_DB_PATH", DEFAULT_DB_PATH),
            checkpoint_path=os.environ.get("DEVWATCH_CHECKPOINT_PATH", CHECKPOINT_DB_PATH),
            api_base=os.environ.get("DEVWATCH_API_BASE", DEFAULT_API_BASE),
            check_interval_minutes=min(max(interval, MIN_CHECK_INTERVAL), MAX_CHECK_INTERVAL),
            max_activities=max_activities,
            lookback_hours=_env_int("DEVWATCH_LOOKBACK_HOURS", DEFAULT_LOOKBACK_HOURS),
            request_timeout=_env_float("DEVWATCH_REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT),
            categories=_env_categories("DEVWATCH_CATEGORIES"),
            headless=os.environ.get("DEVWATCH_HEADLESS", "").lower() in ("1", "true", "yes"),
            agent_model=os.environ.get("DEVWATCH_AGENT_MODEL", DEFAULT_AGENT_MODEL),
        )
