"""Bounded, deduplicated, newest-first activity store."""

from dataclasses import dataclass
from typing import Collection

from devwatch.models import Activity


@dataclass(frozen=True)
class MergeResult:
    """Updated store plus the incoming activities that were actually accepted."""

    store: list[Activity]
    accepted: list[Activity]


def merge(
    existing: list[Activity],
    incoming: list[Activity],
    excluded: Collection[str],
    max_size: int,
) -> MergeResult:
    """Prepend new activities to the store.

    The incoming batch is collapsed to its first copy of each id, stripped of
    excluded repositories and capped at ``max_size`` before it is compared with
    the store, so every accepted activity is also in the returned store.
    Activities already stored are kept unchanged. Activities of excluded
    repositories are dropped from both sides. The result is truncated from the
    tail to ``max_size``.
    """
    batch = []
    batch_ids = set()
    for activity in incoming:
        if activity.id in batch_ids or activity.repository in excluded:
            continue
        batch_ids.add(activity.id)
        batch.append(activity)
    del batch[max_size:]

    stored = {a.id for a in existing}
    accepted = [a for a in batch if a.id not in stored]
    kept = [a for a in existing if a.repository not in excluded]
    store = (accepted + kept)[:max_size]
    return MergeResult(store=store, accepted=accepted)
