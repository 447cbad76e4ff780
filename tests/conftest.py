"""Shared test fixtures for DevWatch tests."""

import os
import tempfile
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from devwatch.config import Settings
from devwatch.github_api import GitHubClient
from devwatch.models import Activity, Category
from devwatch.storage import MemoryKeyValueStore, Storage

T0 = datetime(2026, 2, 13, 10, 0, 0, tzinfo=timezone.utc)

RATE_LIMIT_HEADERS = {
    "X-RateLimit-Remaining": "4999",
    "X-RateLimit-Limit": "5000",
    "X-RateLimit-Reset": "1770980400",
}


def _iso(dt: datetime) -> str:
    return dt.strftime("%Y-%m-%dT%H:%M:%SZ")


class FakeClock:
    """Settable clock for deterministic timestamps."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class CollectingNotifier:
    """Notifier that records everything it is asked to show."""

    def __init__(self):
        self.notifications = []

    def notify(self, notification) -> None:
        self.notifications.append(notification)


@pytest.fixture
def tmp_db_path():
    """Provide a temporary SQLite database path."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        path = f.name
    yield path
    for suffix in ("", "-wal", "-shm"):
        try:
            os.unlink(path + suffix)
        except OSError:
            pass


@pytest.fixture
def clock():
    return FakeClock(T0)


@pytest.fixture
def notifier():
    return CollectingNotifier()


@pytest.fixture
def storage():
    """Storage over a fresh in-memory engine."""
    return Storage(MemoryKeyValueStore())


@pytest.fixture
def settings():
    return Settings(max_activities=100, lookback_hours=24)


@pytest.fixture
def make_activity():
    """Factory for Activity records with sensible defaults."""

    def _make(
        number: int,
        repo: str = "octo/widgets",
        category: Category = Category.PULL_REQUEST,
        created_at: datetime | None = None,
        title: str | None = None,
    ) -> Activity:
        return Activity(
            id=f"{category.value}-{repo}-{number}",
            category=category,
            repository=repo,
            title=title or f"Item {number}",
            url=f"https://github.com/{repo}/{number}",
            created_at=created_at or T0,
            author="octocat",
            author_avatar_url="https://avatars.example/octocat",
        )

    return _make


@pytest.fixture
def pr_item():
    """Sample GitHub pull request payload."""

    def _make(number: int, created_at: datetime, title: str = "Add feature") -> dict:
        return {
            "id": 1000 + number,
            "number": number,
            "title": title,
            "html_url": f"https://github.com/octo/widgets/pull/{number}",
            "created_at": _iso(created_at),
            "user": {"login": "octocat", "avatar_url": "https://avatars.example/octocat"},
        }

    return _make


@pytest.fixture
def issue_item():
    """Sample GitHub issue payload, optionally carrying the pull request marker."""

    def _make(number: int, created_at: datetime, is_pull_request: bool = False) -> dict:
        item = {
            "id": 2000 + number,
            "number": number,
            "title": f"Bug {number}",
            "html_url": f"https://github.com/octo/widgets/issues/{number}",
            "created_at": _iso(created_at),
            "user": {"login": "hubot", "avatar_url": "https://avatars.example/hubot"},
        }
        if is_pull_request:
            item["pull_request"] = {"url": f"https://api.github.com/repos/octo/widgets/pulls/{number}"}
        return item

    return _make


@pytest.fixture
def release_item():
    """Sample GitHub release payload."""

    def _make(release_id: int, published_at: datetime | None, name: str | None = "v1.0.0") -> dict:
        return {
            "id": release_id,
            "name": name,
            "tag_name": "v1.0.0-tag",
            "html_url": f"https://github.com/octo/widgets/releases/{release_id}",
            "published_at": _iso(published_at) if published_at else None,
            "author": {"login": "releasebot", "avatar_url": ""},
        }

    return _make


@pytest.fixture
def make_github():
    """Build a GitHubClient whose requests are answered from a route table.

    Routes map a URL path to ``payload`` or ``(status, payload[, headers])``.
    Unknown paths answer 200 with an empty list. Every request is recorded.
    """

    def _make(routes: dict) -> GitHubClient:
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            route = routes.get(request.url.path, [])
            if isinstance(route, Exception):
                raise route
            if isinstance(route, tuple):
                status, payload, *rest = route
                headers = rest[0] if rest else RATE_LIMIT_HEADERS
            else:
                status, payload, headers = 200, route, RATE_LIMIT_HEADERS
            return httpx.Response(status, json=payload, headers=headers)

        client = GitHubClient(transport=httpx.MockTransport(handler))
        client.requests = requests
        return client

    return _make
