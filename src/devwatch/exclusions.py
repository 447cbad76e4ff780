"""Mute and snooze resolution."""

import logging
from dataclasses import dataclass
from datetime import datetime

from devwatch.errors import StorageError
from devwatch.models import Mute, Snooze
from devwatch.storage import Storage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Exclusions:
    """Result of resolving mutes and snoozes at a point in time."""

    active_snoozes: list[Snooze]
    excluded: frozenset[str]
    pruned: bool


def resolve(mutes: list[Mute], snoozes: list[Snooze], now: datetime) -> Exclusions:
    """Drop expired snoozes and return the union of muted and snoozed repositories."""
    active = [s for s in snoozes if not s.is_expired(now)]
    excluded = frozenset(m.repository for m in mutes) | {s.repository for s in active}
    return Exclusions(
        active_snoozes=active,
        excluded=excluded,
        pruned=len(active) < len(snoozes),
    )


async def resolve_exclusions(storage: Storage, now: datetime) -> Exclusions:
    """Resolve exclusions from storage, persisting the snooze list if it shrank.

    A failed write-back is logged and the in-memory result is still returned.
    """
    mutes, snoozes = await storage.get_exclusions()
    result = resolve(mutes, snoozes, now)

    if result.pruned:
        try:
            await storage.set_snoozes(result.active_snoozes)
            logger.info(
                "Removed %d expired snooze(s)", len(snoozes) - len(result.active_snoozes)
            )
        except StorageError as e:
            logger.warning("Could not persist pruned snoozes: %s", e)

    return result
