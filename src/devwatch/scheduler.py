"""Recurring synchronization with an Idle/Syncing gate."""

import asyncio
import logging
from enum import Enum

from devwatch.read_state import badge_text
from devwatch.sync import SyncContext, SyncResult, run_sync_pass

logger = logging.getLogger(__name__)


class SchedulerState(str, Enum):
    IDLE = "idle"
    SYNCING = "syncing"


class Scheduler:
    """Runs at most one pass at a time; triggers while syncing are dropped."""

    def __init__(self, ctx: SyncContext):
        self.ctx = ctx
        self.state = SchedulerState.IDLE
        self.last_result: SyncResult | None = None
        self._idle = asyncio.Event()
        self._idle.set()

    async def trigger(self) -> bool:
        """Run a pass now unless one is in progress. Returns True if a pass ran."""
        if self.state is SchedulerState.SYNCING:
            logger.debug("Sync already in progress; trigger coalesced")
            return False

        self.state = SchedulerState.SYNCING
        self._idle.clear()
        try:
            self.last_result = await run_sync_pass(self.ctx)
            if not self.last_result.skipped:
                logger.info("Badge: '%s'", badge_text(self.last_result.unread_count))
        except Exception as e:
            self.last_result = None
            logger.error("Sync pass failed: %s", e)
        finally:
            self.state = SchedulerState.IDLE
            self._idle.set()
        return True

    async def wait_until_idle(self) -> None:
        """Return once no pass is in progress."""
        await self._idle.wait()

    async def run_forever(self) -> None:
        """Run a pass every check interval, indefinitely."""
        interval = self.ctx.settings.check_interval_seconds
        logger.info("Scheduler started (interval: %ds)", interval)

        while True:
            await self.trigger()
            await asyncio.sleep(interval)
