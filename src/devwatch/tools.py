"""Agent tool implementations for DevWatch."""

import json
from collections.abc import Callable, Coroutine
from typing import Any

from langchain_core.tools import BaseTool, tool

from devwatch.handlers import MessageHandler

Runner = Callable[[Coroutine[Any, Any, Any]], Any]


def build_tools(handler: MessageHandler, run: Runner) -> list[BaseTool]:
    """Wrap the message handler as LangChain tools.

    Args:
        handler: The handler whose actions the tools expose.
        run: Executes a coroutine to completion from the calling thread and
            returns its result.
    """

    @tool
    def check_now() -> str:
        """Check all watched GitHub repositories for new activity right now."""
        return json.dumps(run(handler.check_now()))

    @tool
    def get_activities(unread_only: bool = False, limit: int = 20) -> str:
        """Get recent pull requests, issues and releases from watched repositories.

        Args:
            unread_only: If true, only return unread activity.
            limit: Maximum number of activities to return (default 20).
        """
        activities = run(handler.get_activities(unread_only=unread_only, limit=limit))
        return json.dumps({"activities": activities, "total": len(activities)})

    @tool
    def get_status() -> str:
        """Get the unread count, API rate limit and the most recent error, if any."""
        return json.dumps(run(handler.get_status()))

    @tool
    def mark_as_read(activity_ids: list[str] | None = None, all_items: bool = False) -> str:
        """Mark activities as read, or everything when all_items is true.

        Args:
            activity_ids: Optional list of activity IDs to mark as read.
            all_items: If true, mark every stored activity as read.
        """
        if all_items:
            return json.dumps(run(handler.mark_all_read()))
        if not activity_ids:
            return json.dumps({
                "success": False,
                "error": "Provide activity_ids or set all_items",
            })
        result: dict = {}
        for activity_id in activity_ids:
            result = run(handler.mark_read(activity_id))
        return json.dumps(result)

    @tool
    def mark_as_unread(activity_ids: list[str]) -> str:
        """Mark one or more activities as unread.

        Args:
            activity_ids: List of activity IDs to mark as unread.
        """
        result: dict = {"success": True}
        for activity_id in activity_ids:
            result = run(handler.mark_unread(activity_id))
        return json.dumps(result)

    @tool
    def watch_repository(repo: str) -> str:
        """Start watching a GitHub repository.

        Args:
            repo: Repository in owner/name form, e.g. "python/cpython".
        """
        return json.dumps(run(handler.handle({"action": "watchRepository", "repo": repo})))

    @tool
    def unwatch_repository(repo: str) -> str:
        """Stop watching a GitHub repository.

        Args:
            repo: Repository in owner/name form.
        """
        return json.dumps(run(handler.unwatch_repository(repo)))

    @tool
    def mute_repository(repo: str, unmute: bool = False) -> str:
        """Mute a repository indefinitely, or unmute it.

        Args:
            repo: Repository in owner/name form.
            unmute: If true, remove the mute instead.
        """
        if unmute:
            return json.dumps(run(handler.unmute_repository(repo)))
        return json.dumps(run(handler.mute_repository(repo)))

    @tool
    def snooze_repository(repo: str, hours: float) -> str:
        """Hide a repository's activity for a number of hours.

        Args:
            repo: Repository in owner/name form.
            hours: How long to snooze, in hours.
        """
        return json.dumps(run(handler.snooze_repository(repo, hours)))

    return [
        check_now,
        get_activities,
        get_status,
        mark_as_read,
        mark_as_unread,
        watch_repository,
        unwatch_repository,
        mute_repository,
        snooze_repository,
    ]
