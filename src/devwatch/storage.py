"""Key-value persistence for DevWatch.

All pipeline state lives behind a uniform asynchronous key-value interface
(``get(keys) -> dict``, ``set(mapping)``). Values are JSON-compatible. The
``Storage`` class layers typed accessors on top of whichever engine is used.
"""

import asyncio
import json
import logging
import sqlite3
import threading
from datetime import datetime, timezone
from typing import Any, Iterable, Protocol

from devwatch.errors import StorageError
from devwatch.models import (
    Activity,
    Category,
    LastError,
    Mute,
    NotificationSettings,
    RateLimitSnapshot,
    Snooze,
    WatchedRepository,
)

logger = logging.getLogger(__name__)

CREDENTIAL_KEY = "github_token"
WATCHED_REPOS_KEY = "watched_repos"
MUTED_REPOS_KEY = "muted_repos"
SNOOZED_REPOS_KEY = "snoozed_repos"
WATERMARK_KEY = "last_check"
ACTIVITIES_KEY = "activities"
READ_ITEMS_KEY = "read_items"
RATE_LIMIT_KEY = "rate_limit"
LAST_ERROR_KEY = "last_error"
NOTIFICATION_SETTINGS_KEY = "notification_settings"

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS kv (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL DEFAULT (datetime('now'))
);
"""


class KeyValueStore(Protocol):
    """Asynchronous key-value engine."""

    async def get(self, keys: Iterable[str]) -> dict[str, Any]:
        """Return the stored values for ``keys``; missing keys are omitted."""
        ...

    async def set(self, values: dict[str, Any]) -> None:
        """Store every key in ``values``."""
        ...


class MemoryKeyValueStore:
    """In-process engine, used by tests and as a throwaway store."""

    def __init__(self, initial: dict[str, Any] | None = None):
        self._data: dict[str, str] = {}
        if initial:
            self._data.update({k: json.dumps(v) for k, v in initial.items()})

    async def get(self, keys: Iterable[str]) -> dict[str, Any]:
        return {k: json.loads(self._data[k]) for k in keys if k in self._data}

    async def set(self, values: dict[str, Any]) -> None:
        try:
            self._data.update({k: json.dumps(v) for k, v in values.items()})
        except (TypeError, ValueError) as e:
            raise StorageError(f"Value is not serializable: {e}") from e


class SqliteKeyValueStore:
    """SQLite-backed engine. Blocking calls run in a worker thread."""

    def __init__(self, db_path: str):
        self.db_path = db_path
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.Lock()

    def connect(self) -> None:
        """Open database connection and initialize schema."""
        try:
            self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.row_factory = sqlite3.Row
            self._conn.executescript(SCHEMA_SQL)
            self._conn.commit()
        except sqlite3.Error as e:
            raise StorageError(f"Could not open {self.db_path}: {e}") from e

    def close(self) -> None:
        """Close database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self._conn

    async def get(self, keys: Iterable[str]) -> dict[str, Any]:
        return await asyncio.to_thread(self._get_sync, list(keys))

    async def set(self, values: dict[str, Any]) -> None:
        await asyncio.to_thread(self._set_sync, dict(values))

    def _get_sync(self, keys: list[str]) -> dict[str, Any]:
        if not keys:
            return {}
        placeholders = ",".join("?" for _ in keys)
        try:
            with self._lock:
                rows = self.conn.execute(
                    f"SELECT key, value FROM kv WHERE key IN ({placeholders})", keys
                ).fetchall()
            return {r["key"]: json.loads(r["value"]) for r in rows}
        except (sqlite3.Error, ValueError) as e:
            raise StorageError(f"Failed to read {keys}: {e}") from e

    def _set_sync(self, values: dict[str, Any]) -> None:
        try:
            encoded = [(k, json.dumps(v)) for k, v in values.items()]
            with self._lock:
                self.conn.executemany(
                    """INSERT INTO kv (key, value, updated_at) VALUES (?, ?, datetime('now'))
                       ON CONFLICT(key) DO UPDATE SET
                           value = excluded.value, updated_at = excluded.updated_at""",
                    encoded,
                )
                self.conn.commit()
        except (sqlite3.Error, TypeError, ValueError) as e:
            raise StorageError(f"Failed to write {list(values)}: {e}") from e


class Storage:
    """Typed accessors for every persisted field of the pipeline."""

    def __init__(self, kv: KeyValueStore):
        self.kv = kv

    async def _get(self, key: str, default: Any = None) -> Any:
        values = await self.kv.get([key])
        return values.get(key, default)

    # --- Credential and watch list ---

    async def get_credential(self) -> str | None:
        return await self._get(CREDENTIAL_KEY) or None

    async def set_credential(self, token: str | None) -> None:
        await self.kv.set({CREDENTIAL_KEY: token or ""})

    async def get_watched_repositories(self) -> list[WatchedRepository]:
        """Return the watch list normalized and deduplicated, in stored order."""
        repos: list[WatchedRepository] = []
        seen: set[str] = set()
        for raw in await self._get(WATCHED_REPOS_KEY, []):
            try:
                repo = WatchedRepository.from_raw(raw)
            except ValueError as e:
                logger.warning("Skipping watched repository entry: %s", e)
                continue
            if repo.full_name in seen:
                continue
            seen.add(repo.full_name)
            repos.append(repo)
        return repos

    async def set_watched_repositories(self, repos: list[WatchedRepository]) -> None:
        await self.kv.set({
            WATCHED_REPOS_KEY: [_repo_to_dict(r) for r in repos]
        })

    # --- Exclusions ---

    async def get_exclusions(self) -> tuple[list[Mute], list[Snooze]]:
        values = await self.kv.get([MUTED_REPOS_KEY, SNOOZED_REPOS_KEY])
        mutes = [Mute(repository=r) for r in values.get(MUTED_REPOS_KEY, [])]
        snoozes = [
            Snooze(repository=s["repo"], expires_at=_ms_to_dt(s["expiresAt"]))
            for s in values.get(SNOOZED_REPOS_KEY, [])
        ]
        return mutes, snoozes

    async def set_mutes(self, mutes: list[Mute]) -> None:
        await self.kv.set({MUTED_REPOS_KEY: [m.repository for m in mutes]})

    async def set_snoozes(self, snoozes: list[Snooze]) -> None:
        await self.kv.set({
            SNOOZED_REPOS_KEY: [
                {"repo": s.repository, "expiresAt": _dt_to_ms(s.expires_at)} for s in snoozes
            ]
        })

    # --- Watermark ---

    async def get_watermark(self) -> datetime | None:
        return _str_to_dt(await self._get(WATERMARK_KEY))

    async def set_watermark(self, watermark: datetime) -> None:
        await self.kv.set({WATERMARK_KEY: _dt_to_str(watermark)})

    # --- Activity store and read state ---

    async def get_activity_store(self) -> list[Activity]:
        return [_dict_to_activity(d) for d in await self._get(ACTIVITIES_KEY, [])]

    async def set_activity_store(self, activities: list[Activity]) -> None:
        await self.kv.set({ACTIVITIES_KEY: [activity_to_dict(a) for a in activities]})

    async def get_read_state(self) -> set[str]:
        return set(await self._get(READ_ITEMS_KEY, []))

    async def set_read_state(self, read_ids: set[str]) -> None:
        await self.kv.set({READ_ITEMS_KEY: sorted(read_ids)})

    # --- Status ---

    async def get_rate_limit(self) -> RateLimitSnapshot | None:
        data = await self._get(RATE_LIMIT_KEY)
        if not data:
            return None
        return RateLimitSnapshot(
            remaining=data["remaining"], limit=data["limit"], reset_at_ms=data["reset"]
        )

    async def set_rate_limit(self, snapshot: RateLimitSnapshot) -> None:
        await self.kv.set({
            RATE_LIMIT_KEY: {
                "remaining": snapshot.remaining,
                "limit": snapshot.limit,
                "reset": snapshot.reset_at_ms,
            }
        })

    async def get_last_error(self) -> LastError | None:
        data = await self._get(LAST_ERROR_KEY)
        if not data:
            return None
        return LastError(
            kind=data["kind"],
            message=data["message"],
            repository=data.get("repo"),
            timestamp=_ms_to_dt(data["timestamp"]),
            status=data.get("status"),
        )

    async def set_last_error(self, error: LastError) -> None:
        await self.kv.set({
            LAST_ERROR_KEY: {
                "kind": error.kind,
                "message": error.message,
                "repo": error.repository,
                "timestamp": _dt_to_ms(error.timestamp),
                "status": error.status,
            }
        })

    async def get_notification_settings(self) -> NotificationSettings:
        data = await self._get(NOTIFICATION_SETTINGS_KEY) or {}
        settings = NotificationSettings(enabled=data.get("enabled", True))
        for name, enabled in data.get("categories", {}).items():
            try:
                settings.categories[Category(name)] = bool(enabled)
            except ValueError:
                logger.warning("Ignoring unknown notification category '%s'", name)
        return settings

    async def set_notification_settings(self, settings: NotificationSettings) -> None:
        await self.kv.set({
            NOTIFICATION_SETTINGS_KEY: {
                "enabled": settings.enabled,
                "categories": {c.value: on for c, on in settings.categories.items()},
            }
        })


# --- Helper functions ---


def _dt_to_str(dt: datetime | None) -> str | None:
    """Convert datetime to ISO string for storage."""
    return dt.isoformat() if dt else None


def _str_to_dt(s: str | None) -> datetime | None:
    """Convert stored ISO string back to an aware datetime."""
    if not s:
        return None
    dt = datetime.fromisoformat(s)
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def _dt_to_ms(dt: datetime) -> int:
    return int(dt.timestamp() * 1000)


def _ms_to_dt(ms: int) -> datetime:
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)


def _repo_to_dict(repo: WatchedRepository) -> dict:
    entry = {"fullName": repo.full_name, "owner": repo.owner, "name": repo.name}
    for key in ("description", "language", "stars"):
        value = getattr(repo, key)
        if value is not None:
            entry[key] = value
    return entry


def activity_to_dict(activity: Activity) -> dict:
    return {
        "id": activity.id,
        "type": activity.category.value,
        "repo": activity.repository,
        "title": activity.title,
        "url": activity.url,
        "createdAt": _dt_to_str(activity.created_at),
        "author": activity.author,
        "authorAvatar": activity.author_avatar_url,
    }


def _dict_to_activity(data: dict) -> Activity:
    return Activity(
        id=data["id"],
        category=Category(data["type"]),
        repository=data["repo"],
        title=data["title"],
        url=data["url"],
        created_at=_str_to_dt(data["createdAt"]),
        author=data.get("author", "Unknown"),
        author_avatar_url=data.get("authorAvatar", ""),
    )
