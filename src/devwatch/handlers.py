"""Message-handler surface for UI collaborators.

Every action is available both as an async method and through
``MessageHandler.handle({"action": ..., ...})``.
"""

import logging
import math
from datetime import timedelta
from typing import Any

from devwatch.errors import DevwatchError, FetchError, describe_error
from devwatch.models import Mute, Snooze, WatchedRepository
from devwatch.read_state import (
    badge_text,
    mark_all_read,
    mark_read,
    mark_unread,
    unread_count,
)
from devwatch.scheduler import Scheduler
from devwatch.storage import activity_to_dict

logger = logging.getLogger(__name__)

LAST_ERROR_WINDOW_SECONDS = 60


class MessageHandler:
    """Read-state mutations, on-demand sync and status for the front end."""

    def __init__(self, scheduler: Scheduler):
        self.scheduler = scheduler
        self.storage = scheduler.ctx.storage
        self.clock = scheduler.ctx.clock

    # --- Sync ---

    async def check_now(self) -> dict:
        """Run a pass, or wait for the one in progress to finish."""
        ran = await self.scheduler.trigger()
        if not ran:
            await self.scheduler.wait_until_idle()
        result = self.scheduler.last_result
        return {
            "success": True,
            "ran": ran,
            "new_activities": len(result.new_activities) if result else 0,
        }

    # --- Read state ---

    async def get_unread_count(self) -> int:
        store = await self.storage.get_activity_store()
        return unread_count(store, await self.storage.get_read_state())

    async def mark_read(self, activity_id: str) -> dict:
        read_ids = await self.storage.get_read_state()
        updated = mark_read(read_ids, activity_id)
        if updated != read_ids:
            await self.storage.set_read_state(updated)
        return {"success": True, "unread_count": await self.get_unread_count()}

    async def mark_unread(self, activity_id: str) -> dict:
        read_ids = await self.storage.get_read_state()
        updated = mark_unread(read_ids, activity_id)
        if updated != read_ids:
            await self.storage.set_read_state(updated)
        return {"success": True, "unread_count": await self.get_unread_count()}

    async def mark_all_read(self) -> dict:
        store = await self.storage.get_activity_store()
        await self.storage.set_read_state(mark_all_read(a.id for a in store))
        return {"success": True, "unread_count": 0}

    # --- Snapshots ---

    async def get_activities(self, unread_only: bool = False, limit: int | None = None) -> list[dict]:
        """Snapshot of the activity store, newest first."""
        store = await self.storage.get_activity_store()
        read_ids = await self.storage.get_read_state()
        items = [
            {**activity_to_dict(a), "read": a.id in read_ids}
            for a in store
            if not (unread_only and a.id in read_ids)
        ]
        return items[:limit] if limit else items

    async def get_status(self) -> dict:
        now = self.clock()
        count = await self.get_unread_count()
        status: dict[str, Any] = {
            "state": self.scheduler.state.value,
            "unread_count": count,
            "badge": badge_text(count),
            "rate_limit": None,
            "last_error": None,
        }

        rate_limit = await self.storage.get_rate_limit()
        if rate_limit:
            status["rate_limit"] = {
                "remaining": rate_limit.remaining,
                "limit": rate_limit.limit,
                "reset": rate_limit.reset_at_ms,
                "low": rate_limit.is_low,
                "summary": rate_limit.describe(now),
            }

        last_error = await self.storage.get_last_error()
        if last_error and last_error.is_recent(now, LAST_ERROR_WINDOW_SECONDS):
            status["last_error"] = {
                "kind": last_error.kind,
                "message": last_error.message,
                "repo": last_error.repository,
                "explanation": describe_error(last_error.kind),
            }
        return status

    # --- Watch list and exclusions ---

    async def watch_repository(self, repo: str) -> dict:
        """Add a repository after confirming that GitHub can serve it."""
        watched = WatchedRepository.from_raw(repo)
        repos = await self.storage.get_watched_repositories()
        if any(r.full_name == watched.full_name for r in repos):
            return {"success": False, "error": f"Already watching {watched}"}

        try:
            watched = await self.scheduler.ctx.github.get_repository(
                watched, await self.storage.get_credential()
            )
        except FetchError as e:
            logger.warning("Cannot watch '%s': %s", watched, e)
            return {"success": False, "error": str(e), "explanation": describe_error(e.kind)}

        await self.storage.set_watched_repositories(repos + [watched])
        return {
            "success": True,
            "repo": watched.full_name,
            "description": watched.description,
            "language": watched.language,
            "stars": watched.stars,
        }

    async def unwatch_repository(self, repo: str) -> dict:
        repos = await self.storage.get_watched_repositories()
        remaining = [r for r in repos if r.full_name != repo]
        if len(remaining) == len(repos):
            return {"success": False, "error": f"Not watching {repo}"}
        await self.storage.set_watched_repositories(remaining)
        return {"success": True, "repo": repo}

    async def mute_repository(self, repo: str) -> dict:
        mutes, _ = await self.storage.get_exclusions()
        if all(m.repository != repo for m in mutes):
            await self.storage.set_mutes(mutes + [Mute(repository=repo)])
        return {"success": True, "repo": repo}

    async def unmute_repository(self, repo: str) -> dict:
        mutes, _ = await self.storage.get_exclusions()
        await self.storage.set_mutes([m for m in mutes if m.repository != repo])
        return {"success": True, "repo": repo}

    async def snooze_repository(self, repo: str, hours: float) -> dict:
        if not math.isfinite(hours) or hours <= 0:
            return {"success": False, "error": "Snooze duration must be a positive number of hours"}
        try:
            expires_at = self.clock() + timedelta(hours=hours)
        except OverflowError:
            return {"success": False, "error": f"Snooze duration of {hours} hours is too long"}
        _, snoozes = await self.storage.get_exclusions()
        snoozes = [s for s in snoozes if s.repository != repo]
        await self.storage.set_snoozes(snoozes + [Snooze(repository=repo, expires_at=expires_at)])
        return {"success": True, "repo": repo, "expires_at": expires_at.isoformat()}

    # --- Dispatch ---

    async def handle(self, message: dict) -> dict:
        """Route a ``{"action": ...}`` message to the matching method."""
        action = message.get("action")
        try:
            if action == "checkNow":
                return await self.check_now()
            if action == "getUnreadCount":
                return {"success": True, "unread_count": await self.get_unread_count()}
            if action == "getActivities":
                return {
                    "success": True,
                    "activities": await self.get_activities(
                        message.get("unread_only", False), message.get("limit")
                    ),
                }
            if action == "getStatus":
                return {"success": True, **await self.get_status()}
            if action == "markAsRead":
                return await self.mark_read(message["id"])
            if action == "markAsUnread":
                return await self.mark_unread(message["id"])
            if action == "markAllAsRead":
                return await self.mark_all_read()
            if action == "watchRepository":
                return await self.watch_repository(message["repo"])
            if action == "unwatchRepository":
                return await self.unwatch_repository(message["repo"])
            if action == "muteRepository":
                return await self.mute_repository(message["repo"])
            if action == "unmuteRepository":
                return await self.unmute_repository(message["repo"])
            if action == "snoozeRepository":
                return await self.snooze_repository(message["repo"], float(message["hours"]))
        except KeyError as e:
            return {"success": False, "error": f"Missing field {e} for action '{action}'"}
        except (ValueError, DevwatchError) as e:
            logger.warning("Action '%s' failed: %s", action, e)
            return {"success": False, "error": str(e)}

        return {"success": False, "error": f"Unknown action '{action}'"}
