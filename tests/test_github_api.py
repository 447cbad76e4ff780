"""Tests for the GitHub repository fetcher."""

import asyncio
from datetime import timedelta

import httpx
import pytest

from conftest import T0

from devwatch.errors import (
    CredentialInvalidError,
    NotFoundError,
    QuotaExhaustedError,
    TransportError,
)
from devwatch.github_api import map_activity, parse_rate_limit, parse_timestamp
from devwatch.models import ALL_CATEGORIES, Category, WatchedRepository

REPO = WatchedRepository.from_raw("octo/widgets")
PULLS = "/repos/octo/widgets/pulls"
ISSUES = "/repos/octo/widgets/issues"
RELEASES = "/repos/octo/widgets/releases"


def _fetch(client, categories=ALL_CATEGORIES, watermark=T0):
    async def run():
        async with client:
            return await client.fetch_repository_activity(REPO, "ghp_token", watermark, categories)

    return asyncio.run(run())


class TestParsing:
    def test_parse_timestamp_handles_z_suffix(self):
        assert parse_timestamp("2026-02-13T10:00:00Z") == T0

    def test_parse_timestamp_rejects_garbage(self):
        assert parse_timestamp("yesterday") is None
        assert parse_timestamp(None) is None

    def test_rate_limit_reset_is_converted_to_milliseconds(self):
        snapshot = parse_rate_limit({
            "X-RateLimit-Remaining": "12",
            "X-RateLimit-Limit": "5000",
            "X-RateLimit-Reset": "1700000000",
        })
        assert snapshot.remaining == 12
        assert snapshot.limit == 5000
        assert snapshot.reset_at_ms == 1700000000000

    def test_rate_limit_requires_all_headers(self):
        assert parse_rate_limit({"X-RateLimit-Remaining": "12"}) is None

    def test_map_pull_request(self, pr_item):
        activity = map_activity(pr_item(7, T0), Category.PULL_REQUEST, "octo/widgets")
        assert activity.id == "pr-octo/widgets-7"
        assert activity.title == "Add feature"
        assert activity.author == "octocat"
        assert activity.url == "https://github.com/octo/widgets/pull/7"

    def test_map_release_falls_back_to_tag_name(self, release_item):
        activity = map_activity(release_item(55, T0, name=None), Category.RELEASE, "octo/widgets")
        assert activity.id == "release-octo/widgets-55"
        assert activity.title == "v1.0.0-tag"
        assert activity.author == "releasebot"

    def test_map_draft_release_without_date_is_skipped(self, release_item):
        assert map_activity(release_item(56, None), Category.RELEASE, "octo/widgets") is None

    def test_map_missing_user_defaults_to_unknown(self):
        item = {"number": 3, "title": "", "created_at": "2026-02-13T10:00:00Z", "user": None}
        activity = map_activity(item, Category.ISSUE, "octo/widgets")
        assert activity.author == "Unknown"
        assert activity.title == "Untitled"
        assert activity.url == ""


class TestFetch:
    def test_only_items_created_after_watermark(self, make_github, pr_item):
        client = make_github({
            PULLS: [
                pr_item(3, T0 + timedelta(seconds=1)),
                pr_item(2, T0),
                pr_item(1, T0 - timedelta(hours=1)),
            ]
        })

        result = _fetch(client)

        assert result.error is None
        assert [a.id for a in result.activities] == ["pr-octo/widgets-3"]

    def test_issue_with_pull_request_marker_is_dropped(self, make_github, issue_item):
        client = make_github({
            ISSUES: [
                issue_item(10, T0 + timedelta(minutes=5), is_pull_request=True),
                issue_item(11, T0 + timedelta(minutes=4)),
            ]
        })

        result = _fetch(client, categories=[Category.ISSUE])

        assert [a.id for a in result.activities] == ["issue-octo/widgets-11"]

    def test_all_three_categories_are_requested(self, make_github, pr_item, issue_item, release_item):
        later = T0 + timedelta(minutes=1)
        client = make_github({
            PULLS: [pr_item(1, later)],
            ISSUES: [issue_item(2, later)],
            RELEASES: [release_item(3, later)],
        })

        result = _fetch(client)

        assert {a.category for a in result.activities} == set(ALL_CATEGORIES)
        paths = sorted(r.url.path for r in client.requests)
        assert paths == [ISSUES, PULLS, RELEASES]

    def test_requests_carry_token_and_sort_params(self, make_github):
        client = make_github({})

        _fetch(client, categories=[Category.PULL_REQUEST])

        request = client.requests[0]
        assert request.headers["Authorization"] == "token ghp_token"
        assert request.headers["Accept"] == "application/vnd.github.v3+json"
        assert request.url.params["state"] == "open"
        assert request.url.params["sort"] == "created"
        assert request.url.params["direction"] == "desc"

    def test_disabled_categories_are_not_requested(self, make_github):
        client = make_github({})

        _fetch(client, categories=[Category.RELEASE])

        assert [r.url.path for r in client.requests] == [RELEASES]

    def test_rate_limit_snapshot_is_tracked(self, make_github):
        client = make_github({})

        _fetch(client, categories=[Category.PULL_REQUEST])

        assert client.rate_limit.remaining == 4999
        assert client.rate_limit.reset_at_ms == 1770980400000


class TestFetchErrors:
    def test_401_is_credential_invalid(self, make_github):
        result = _fetch(make_github({PULLS: (401, {"message": "Bad credentials"})}))
        assert isinstance(result.error, CredentialInvalidError)
        assert result.error.repository == "octo/widgets"
        assert result.activities == []

    def test_403_with_zero_remaining_is_quota_exhausted(self, make_github):
        headers = {
            "X-RateLimit-Remaining": "0",
            "X-RateLimit-Limit": "5000",
            "X-RateLimit-Reset": "1770980400",
        }
        client = make_github({PULLS: (403, {"message": "rate limited"}, headers)})

        result = _fetch(client)

        assert isinstance(result.error, QuotaExhaustedError)
        assert client.rate_limit.remaining == 0

    def test_403_with_quota_left_is_transport(self, make_github):
        result = _fetch(make_github({PULLS: (403, {"message": "forbidden"})}))
        assert isinstance(result.error, TransportError)
        assert result.error.status == 403

    def test_404_is_not_found(self, make_github):
        result = _fetch(make_github({ISSUES: (404, {"message": "Not Found"})}))
        assert isinstance(result.error, NotFoundError)

    def test_500_is_transport(self, make_github):
        result = _fetch(make_github({RELEASES: (502, {"message": "Bad gateway"})}))
        assert isinstance(result.error, TransportError)
        assert result.error.status == 502

    def test_timeout_is_transport(self, make_github):
        result = _fetch(make_github({PULLS: httpx.ReadTimeout("timed out")}))
        assert isinstance(result.error, TransportError)

    def test_failing_category_discards_whole_repository(self, make_github, pr_item):
        client = make_github({
            PULLS: [pr_item(1, T0 + timedelta(minutes=1))],
            ISSUES: (500, {"message": "boom"}),
        })

        result = _fetch(client)

        assert result.activities == []
        assert isinstance(result.error, TransportError)

    def test_malformed_payload_is_contained(self, make_github):
        result = _fetch(make_github({PULLS: [42]}), categories=[Category.PULL_REQUEST])
        assert isinstance(result.error, TransportError)
        assert result.activities == []

    def test_non_list_payload_is_transport(self, make_github):
        result = _fetch(make_github({PULLS: {"message": "odd"}}), categories=[Category.PULL_REQUEST])
        assert isinstance(result.error, TransportError)


class TestGetRepository:
    def _lookup(self, client, token="ghp_token"):
        async def run():
            async with client:
                return await client.get_repository(REPO, token)

        return asyncio.run(run())

    def test_reads_display_metadata(self, make_github):
        client = make_github({"/repos/octo/widgets": {
            "full_name": "octo/widgets",
            "description": "Widgets for everyone",
            "language": "Python",
            "stargazers_count": 42,
        }})

        repo = self._lookup(client)

        assert repo == REPO
        assert (repo.description, repo.language, repo.stars) == ("Widgets for everyone", "Python", 42)
        assert client.rate_limit.remaining == 4999

    def test_without_token_sends_no_authorization(self, make_github):
        client = make_github({"/repos/octo/widgets": {"full_name": "octo/widgets"}})

        self._lookup(client, token=None)

        assert "Authorization" not in client.requests[0].headers

    def test_missing_repository_is_not_found(self, make_github):
        client = make_github({"/repos/octo/widgets": (404, {"message": "Not Found"})})
        with pytest.raises(NotFoundError):
            self._lookup(client)

    def test_bad_token_is_credential_invalid(self, make_github):
        client = make_github({"/repos/octo/widgets": (401, {"message": "Bad credentials"})})
        with pytest.raises(CredentialInvalidError):
            self._lookup(client)
