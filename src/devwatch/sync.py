"""One synchronization pass over all watched repositories."""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable

from devwatch.activity_store import merge
from devwatch.config import Settings
from devwatch.errors import FetchError, StorageError
from devwatch.exclusions import resolve_exclusions
from devwatch.github_api import GitHubClient
from devwatch.models import Activity, LastError
from devwatch.notifications import Notification, Notifier, dispatch
from devwatch.read_state import unread_count
from devwatch.storage import Storage

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SyncContext:
    """Everything a pass needs, owned by the Scheduler and passed explicitly."""

    storage: Storage
    github: GitHubClient
    notifier: Notifier
    settings: Settings = field(default_factory=Settings)
    clock: Callable[[], datetime] = utcnow


@dataclass
class SyncResult:
    """Summary of one pass."""

    new_activities: list[Activity] = field(default_factory=list)
    notifications: list[Notification] = field(default_factory=list)
    errors: list[FetchError] = field(default_factory=list)
    unread_count: int = 0
    skipped: bool = False


async def run_sync_pass(ctx: SyncContext) -> SyncResult:
    """Fetch, merge, notify and recount, then advance the watermark.

    Per-repository failures are recorded as the last error and do not stop the
    pass. Once fetching has started the watermark is advanced even if a later
    step fails.
    """
    storage = ctx.storage
    credential = await storage.get_credential()
    repos = await storage.get_watched_repositories()
    if not credential or not repos:
        logger.info("Nothing to check (credential set: %s, repositories: %d)",
                    bool(credential), len(repos))
        return SyncResult(skipped=True)

    try:
        now = ctx.clock()
        exclusions = await resolve_exclusions(storage, now)
        watermark = await storage.get_watermark() or (
            now - timedelta(hours=ctx.settings.lookback_hours)
        )

        targets = [r for r in repos if r.full_name not in exclusions.excluded]
        results = await asyncio.gather(*(
            ctx.github.fetch_repository_activity(
                repo, credential, watermark, ctx.settings.categories
            )
            for repo in targets
        ))

        incoming = [a for r in results for a in r.activities]
        errors = [r.error for r in results if r.error is not None]
        if errors:
            last = errors[-1]
            await storage.set_last_error(LastError(
                kind=last.kind,
                message=last.message,
                repository=last.repository,
                timestamp=ctx.clock(),
                status=last.status,
            ))
        if ctx.github.rate_limit is not None:
            await storage.set_rate_limit(ctx.github.rate_limit)

        merged = merge(
            await storage.get_activity_store(),
            incoming,
            exclusions.excluded,
            ctx.settings.max_activities,
        )
        await storage.set_activity_store(merged.store)

        notifications = []
        if merged.accepted:
            notifications = dispatch(
                merged.accepted, await storage.get_notification_settings(), ctx.notifier
            )

        unread = unread_count(merged.store, await storage.get_read_state())
    finally:
        try:
            await storage.set_watermark(ctx.clock())
        except StorageError as e:
            logger.error("Could not advance watermark: %s", e)

    logger.info(
        "Checked %d repositories (%d excluded): %d new, %d failed, %d unread",
        len(targets), len(repos) - len(targets), len(merged.accepted), len(errors), unread,
    )
    return SyncResult(
        new_activities=merged.accepted,
        notifications=notifications,
        errors=errors,
        unread_count=unread,
    )
