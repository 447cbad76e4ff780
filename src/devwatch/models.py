"""Data models for DevWatch."""

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

RATE_LIMIT_WARNING_THRESHOLD = 1000


class Category(str, Enum):
    """Kind of upstream activity. The value is the word used in summaries."""

    PULL_REQUEST = "pr"
    ISSUE = "issue"
    RELEASE = "release"


ALL_CATEGORIES = (Category.PULL_REQUEST, Category.ISSUE, Category.RELEASE)


@dataclass(frozen=True)
class WatchedRepository:
    """A repository the user follows, identified by ``owner/name``.

    Display metadata is optional and does not take part in equality.
    """

    full_name: str
    owner: str
    name: str
    description: str | None = field(default=None, compare=False)
    language: str | None = field(default=None, compare=False)
    stars: int | None = field(default=None, compare=False)

    @classmethod
    def from_raw(cls, value: "str | dict | WatchedRepository") -> "WatchedRepository":
        """Normalize a legacy string or a structured entry.

        Raises:
            ValueError: If the value is not a valid ``owner/name`` identity.
        """
        if isinstance(value, WatchedRepository):
            return value
        metadata = {}
        if isinstance(value, str):
            full_name = value.strip()
        elif isinstance(value, dict):
            full_name = (value.get("fullName") or value.get("full_name") or "").strip()
            metadata = {
                "description": value.get("description"),
                "language": value.get("language"),
                "stars": value.get("stars"),
            }
        else:
            raise ValueError(f"Unsupported repository entry: {value!r}")

        parts = full_name.split("/")
        if len(parts) != 2 or not all(parts):
            raise ValueError(f"Invalid repository identity: {full_name!r}")
        return cls(full_name=full_name, owner=parts[0], name=parts[1], **metadata)

    def __str__(self) -> str:
        return self.full_name


@dataclass(frozen=True)
class Activity:
    """A single entry of the activity feed."""

    id: str
    category: Category
    repository: str
    title: str
    url: str
    created_at: datetime
    author: str = "Unknown"
    author_avatar_url: str = ""


@dataclass(frozen=True)
class Mute:
    """Indefinite exclusion of a repository."""

    repository: str


@dataclass(frozen=True)
class Snooze:
    """Exclusion of a repository until ``expires_at``."""

    repository: str
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now


@dataclass(frozen=True)
class RateLimitSnapshot:
    """Last observed upstream rate-limit telemetry."""

    remaining: int
    limit: int
    reset_at_ms: int

    @property
    def reset_at(self) -> datetime:
        return datetime.fromtimestamp(self.reset_at_ms / 1000, tz=timezone.utc)

    @property
    def is_low(self) -> bool:
        return self.remaining <= RATE_LIMIT_WARNING_THRESHOLD

    def describe(self, now: datetime) -> str:
        """Render the snapshot for a status line."""
        text = f"{self.remaining}/{self.limit} API calls remaining"
        minutes = math.ceil((self.reset_at - now).total_seconds() / 60)
        if minutes > 0:
            text += f" (resets in {minutes}m)"
        return text


@dataclass(frozen=True)
class LastError:
    """Most recent repository-scoped failure, kept for display."""

    kind: str
    message: str
    repository: str | None
    timestamp: datetime
    status: int | None = None

    def is_recent(self, now: datetime, window_seconds: float = 60.0) -> bool:
        return (now - self.timestamp).total_seconds() <= window_seconds


@dataclass
class NotificationSettings:
    """Global notification switch plus per-category toggles."""

    enabled: bool = True
    categories: dict[Category, bool] = field(
        default_factory=lambda: {c: True for c in ALL_CATEGORIES}
    )

    def allows(self, category: Category) -> bool:
        return self.categories.get(category, True)
