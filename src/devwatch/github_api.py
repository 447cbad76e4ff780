"""GitHub REST API access: per-repository activity fetch and normalization."""

import asyncio
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Iterable, Mapping

import httpx

from devwatch.errors import (
    CredentialInvalidError,
    FetchError,
    NotFoundError,
    QuotaExhaustedError,
    TransportError,
)
from devwatch.models import Activity, Category, RateLimitSnapshot, WatchedRepository

logger = logging.getLogger(__name__)

RATE_LIMIT_REMAINING = "X-RateLimit-Remaining"
RATE_LIMIT_LIMIT = "X-RateLimit-Limit"
RATE_LIMIT_RESET = "X-RateLimit-Reset"

_CATEGORY_ENDPOINTS = {
    Category.PULL_REQUEST: ("pulls", {"state": "open", "sort": "created", "direction": "desc"}),
    Category.ISSUE: ("issues", {"state": "open", "sort": "created", "direction": "desc"}),
    Category.RELEASE: ("releases", None),
}


@dataclass
class FetchResult:
    """Outcome of fetching one repository. ``error`` is set when it contributed nothing."""

    repository: str
    activities: list[Activity] = field(default_factory=list)
    error: FetchError | None = None


def parse_rate_limit(headers: Mapping[str, str]) -> RateLimitSnapshot | None:
    """Read rate-limit telemetry from response headers, if all three are present."""
    try:
        return RateLimitSnapshot(
            remaining=int(headers[RATE_LIMIT_REMAINING]),
            limit=int(headers[RATE_LIMIT_LIMIT]),
            reset_at_ms=int(headers[RATE_LIMIT_RESET]) * 1000,
        )
    except (KeyError, ValueError):
        return None


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse a GitHub ISO 8601 timestamp such as ``2024-05-01T12:00:00Z``."""
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.warning("Unparseable timestamp from GitHub: %r", value)
        return None


def map_activity(item: dict, category: Category, repository: str) -> Activity | None:
    """Normalize one API item into an Activity, or None if it lacks identity or a date."""
    upstream_id = item.get("number")
    if upstream_id is None:
        upstream_id = item.get("id")
    if upstream_id is None:
        return None

    if category is Category.RELEASE:
        created_at = parse_timestamp(item.get("published_at"))
        title = item.get("name") or item.get("tag_name") or "Untitled Release"
        user = item.get("author") or {}
    else:
        created_at = parse_timestamp(item.get("created_at"))
        title = item.get("title") or "Untitled"
        user = item.get("user") or {}

    if created_at is None:
        return None

    return Activity(
        id=f"{category.value}-{repository}-{upstream_id}",
        category=category,
        repository=repository,
        title=title,
        url=item.get("html_url") or "",
        created_at=created_at,
        author=user.get("login") or "Unknown",
        author_avatar_url=user.get("avatar_url") or "",
    )


class GitHubClient:
    """Thin async client over the three list endpoints DevWatch reads.

    ``rate_limit`` always holds the most recent telemetry seen on any response.
    """

    def __init__(
        self,
        base_url: str = "https://api.github.com",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.rate_limit: RateLimitSnapshot | None = None
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            headers={"Accept": "application/vnd.github.v3+json"},
            transport=transport,
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> "GitHubClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def fetch_repository_activity(
        self,
        repo: WatchedRepository,
        token: str,
        watermark: datetime,
        categories: Iterable[Category],
    ) -> FetchResult:
        """Fetch new activity for one repository. Never raises FetchError.

        Categories are requested concurrently and all of them settle before the
        outcome is decided. If any of them fails the repository contributes no
        activities and the failure is returned in ``error``.
        """
        outcomes = await asyncio.gather(
            *(
                self._fetch_category(repo.full_name, token, watermark, category)
                for category in categories
            ),
            return_exceptions=True,
        )

        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                if isinstance(outcome, FetchError):
                    error = outcome
                elif isinstance(outcome, Exception):
                    error = TransportError(f"Unexpected error: {outcome}", repo.full_name)
                else:
                    raise outcome
                logger.warning("Repository '%s' failed: %s", repo.full_name, error)
                return FetchResult(repository=repo.full_name, error=error)

        activities = [a for batch in outcomes for a in batch]
        if activities:
            logger.info("Repository '%s': %d new activities", repo.full_name, len(activities))
        return FetchResult(repository=repo.full_name, activities=activities)

    async def get_repository(
        self, repo: WatchedRepository, token: str | None = None
    ) -> WatchedRepository:
        """Confirm that a repository exists and is reachable, and read its display metadata.

        Raises:
            FetchError: If the repository cannot be read with this credential.
        """
        data = await self._request(f"/repos/{repo.full_name}", token, None, repo.full_name)
        if not isinstance(data, dict):
            raise TransportError(f"Unexpected response shape for {repo.full_name}", repo.full_name)
        return replace(
            repo,
            description=data.get("description"),
            language=data.get("language"),
            stars=data.get("stargazers_count"),
        )

    async def _fetch_category(
        self, repository: str, token: str, watermark: datetime, category: Category
    ) -> list[Activity]:
        endpoint, params = _CATEGORY_ENDPOINTS[category]
        path = f"/repos/{repository}/{endpoint}"
        items = await self._request(path, token, params, repository)
        if not isinstance(items, list):
            raise TransportError(f"Unexpected response shape from {path}", repository)

        activities = []
        for item in items:
            # The issues endpoint also lists pull requests
            if category is Category.ISSUE and item.get("pull_request"):
                continue
            activity = map_activity(item, category, repository)
            if activity is not None and activity.created_at > watermark:
                activities.append(activity)
        return activities

    async def _request(
        self, path: str, token: str | None, params: dict | None, repository: str
    ) -> Any:
        logger.debug("GET %s", path)
        headers = {"Authorization": f"token {token}"} if token else None
        try:
            response = await self._client.get(path, params=params, headers=headers)
        except httpx.HTTPError as e:
            raise TransportError(
                f"Request to {path} failed: {e.__class__.__name__}: {e}", repository
            ) from e

        snapshot = parse_rate_limit(response.headers)
        if snapshot is not None:
            self.rate_limit = snapshot

        _raise_for_status(response, repository)

        try:
            return response.json()
        except ValueError as e:
            raise TransportError(f"Invalid JSON from {path}", repository, response.status_code) from e


def _raise_for_status(response: httpx.Response, repository: str) -> None:
    """Map an error response onto the fetch error taxonomy."""
    status = response.status_code
    if status < 400:
        return

    if status == 401:
        raise CredentialInvalidError("Invalid GitHub token", repository, status)
    if status == 403 and response.headers.get(RATE_LIMIT_REMAINING) == "0":
        raise QuotaExhaustedError("Rate limit exceeded", repository, status)
    if status == 404:
        raise NotFoundError(f"Repository {repository} not found", repository, status)
    raise TransportError(f"HTTP {status}: {response.reason_phrase}", repository, status)
