"""Grouped per-repository notifications for newly accepted activity."""

import logging
from collections import Counter
from dataclasses import dataclass
from typing import Protocol

from devwatch.models import Activity, NotificationSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Notification:
    """One summarized notification for a repository."""

    repository: str
    title: str
    message: str
    url: str


class Notifier(Protocol):
    """Anything that can show a notification to the user."""

    def notify(self, notification: Notification) -> None:
        ...


class LogNotifier:
    """Emit notifications through logging."""

    def notify(self, notification: Notification) -> None:
        logger.info("%s: %s (%s)", notification.title, notification.message, notification.url)


class ConsoleNotifier:
    """Print notifications for the interactive front end."""

    def notify(self, notification: Notification) -> None:
        print(f"\n[{notification.title}] {notification.message} -> {notification.url}\n")


def summarize(activities: list[Activity]) -> str:
    """Render ``"<n> new <category>[s]"`` per category, in encounter order."""
    counts = Counter(a.category for a in activities)
    return ", ".join(
        f"{count} new {category.value}{'s' if count > 1 else ''}"
        for category, count in counts.items()
    )


def build_notifications(
    activities: list[Activity], settings: NotificationSettings
) -> list[Notification]:
    """Group activities by repository into notifications, honoring the toggles."""
    if not settings.enabled:
        return []

    groups: dict[str, list[Activity]] = {}
    for activity in activities:
        if settings.allows(activity.category):
            groups.setdefault(activity.repository, []).append(activity)

    return [
        Notification(
            repository=repository,
            title=repository,
            message=summarize(group),
            url=group[0].url,
        )
        for repository, group in groups.items()
    ]


def dispatch(
    activities: list[Activity], settings: NotificationSettings, notifier: Notifier
) -> list[Notification]:
    """Emit one notification per repository for a batch of new activities.

    Returns the notifications that were delivered.
    """
    delivered = []
    for notification in build_notifications(activities, settings):
        try:
            notifier.notify(notification)
        except Exception as e:
            logger.warning("Notification for '%s' failed: %s", notification.repository, e)
            continue
        delivered.append(notification)
    return delivered
