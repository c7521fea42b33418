"""Security layer — Audit entry persistence.

The store is append-only from the AuditLog's point of view: entries are
written once and never updated.  ``clear()`` is the only destructive
operation and is gated by the AuditLog, not here.

``list()`` always returns entries newest first.

Schema::

    CREATE TABLE activity_log (
        seq            INTEGER PRIMARY KEY AUTOINCREMENT,
        id             TEXT NOT NULL UNIQUE,
        user_id        TEXT NOT NULL,
        user_name      TEXT NOT NULL,
        user_role      TEXT NOT NULL,
        action         TEXT NOT NULL,
        resource       TEXT NOT NULL,
        resource_id    TEXT,
        resource_name  TEXT,
        details        TEXT,
        timestamp      TEXT NOT NULL
    );

Usage::

    store = SQLiteAuditStore(Path("~/.newsdesk/audit.db"))
    await store.init()
    await store.append(entry)
    entries = await store.list()
    await store.close()
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path

import aiosqlite

from newsdesk.exceptions import StoreError
from newsdesk.logging import get_logger
from newsdesk.models import ActivityLogEntry, AuditAction, AuditResource

log = get_logger(__name__)

_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS activity_log (
    seq            INTEGER PRIMARY KEY AUTOINCREMENT,
    id             TEXT NOT NULL UNIQUE,
    user_id        TEXT NOT NULL,
    user_name      TEXT NOT NULL,
    user_role      TEXT NOT NULL,
    action         TEXT NOT NULL,
    resource       TEXT NOT NULL,
    resource_id    TEXT,
    resource_name  TEXT,
    details        TEXT,
    timestamp      TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_activity_user ON activity_log (user_id);
"""

_COLUMNS = (
    "id, user_id, user_name, user_role, action, resource, "
    "resource_id, resource_name, details, timestamp"
)


class AuditStore(ABC):
    """Abstract audit entry backend."""

    async def init(self) -> None:
        """Prepare the backend.  No-op by default."""

    async def close(self) -> None:
        """Release backend resources.  No-op by default."""

    @abstractmethod
    async def append(self, entry: ActivityLogEntry) -> None: ...

    @abstractmethod
    async def list(self) -> list[ActivityLogEntry]:
        """Return every entry, newest first."""

    @abstractmethod
    async def clear(self) -> int:
        """Delete every entry.  Returns the number removed."""


class MemoryAuditStore(AuditStore):
    def __init__(self) -> None:
        self._entries: list[ActivityLogEntry] = []
        self._lock = asyncio.Lock()

    async def append(self, entry: ActivityLogEntry) -> None:
        async with self._lock:
            self._entries.insert(0, entry)

    async def list(self) -> list[ActivityLogEntry]:
        async with self._lock:
            return list(self._entries)

    async def clear(self) -> int:
        async with self._lock:
            count = len(self._entries)
            self._entries.clear()
            return count


class SQLiteAuditStore(AuditStore):
    """Async SQLite audit backend.  Writes are serialised on one connection."""

    def __init__(self, db_path: Path | str) -> None:
        self._db_path = Path(db_path).expanduser()
        self._conn: aiosqlite.Connection | None = None
        self._lock = asyncio.Lock()

    async def init(self) -> None:
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = await aiosqlite.connect(str(self._db_path))
            await self._conn.executescript(_SCHEMA_SQL)
            await self._conn.commit()
        except (aiosqlite.Error, OSError) as exc:
            raise StoreError(
                f"Cannot open audit store: {exc}", context={"path": str(self._db_path)}
            ) from exc
        log.debug("audit_store_init", path=str(self._db_path))

    async def close(self) -> None:
        if self._conn:
            await self._conn.close()
            self._conn = None

    async def append(self, entry: ActivityLogEntry) -> None:
        conn = self._require_conn()
        async with self._lock:
            try:
                await conn.execute(
                    f"INSERT INTO activity_log ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    (
                        entry.id,
                        entry.user_id,
                        entry.user_name,
                        entry.user_role,
                        entry.action.value,
                        entry.resource.value,
                        entry.resource_id,
                        entry.resource_name,
                        entry.details,
                        entry.timestamp.isoformat(),
                    ),
                )
                await conn.commit()
            except aiosqlite.Error as exc:
                raise StoreError(
                    f"Audit append failed: {exc}", context={"entry_id": entry.id}
                ) from exc

    async def list(self) -> list[ActivityLogEntry]:
        conn = self._require_conn()
        try:
            async with conn.execute(
                f"SELECT {_COLUMNS} FROM activity_log ORDER BY seq DESC"
            ) as cursor:
                rows = await cursor.fetchall()
        except aiosqlite.Error as exc:
            raise StoreError(f"Audit read failed: {exc}") from exc
        return [self._row_to_entry(row) for row in rows]

    async def clear(self) -> int:
        conn = self._require_conn()
        async with self._lock:
            try:
                cursor = await conn.execute("DELETE FROM activity_log")
                await conn.commit()
            except aiosqlite.Error as exc:
                raise StoreError(f"Audit clear failed: {exc}") from exc
            return cursor.rowcount

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _require_conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise StoreError("Audit store is not initialised; call init() first")
        return self._conn

    @staticmethod
    def _row_to_entry(row: tuple) -> ActivityLogEntry:
        return ActivityLogEntry(
            id=row[0],
            user_id=row[1],
            user_name=row[2],
            user_role=row[3],
            action=AuditAction(row[4]),
            resource=AuditResource(row[5]),
            resource_id=row[6],
            resource_name=row[7],
            details=row[8],
            timestamp=datetime.fromisoformat(row[9]),
        )
