"""Read-state tracking and unread badge."""

from typing import Iterable

from devwatch.models import Activity

BADGE_MAX_COUNT = 99


def mark_read(read_ids: set[str], activity_id: str) -> set[str]:
    return read_ids | {activity_id}


def mark_unread(read_ids: set[str], activity_id: str) -> set[str]:
    return read_ids - {activity_id}


def mark_all_read(all_ids: Iterable[str]) -> set[str]:
    """Replace the read set with exactly ``all_ids``."""
    return set(all_ids)


def unread_count(store: list[Activity], read_ids: set[str]) -> int:
    return sum(1 for a in store if a.id not in read_ids)


def badge_text(count: int) -> str:
    """Badge label: empty when nothing is unread, capped at ``99+``."""
    if count <= 0:
        return ""
    if count > BADGE_MAX_COUNT:
        return f"{BADGE_MAX_COUNT}+"
    return str(count)
