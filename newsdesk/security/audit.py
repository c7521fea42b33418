"""Security layer — Activity audit log.

Records every privileged action as an immutable :class:`ActivityLogEntry`.
The actor is always taken from the SessionManager at call time; callers
cannot supply or spoof an identity.  Entries without a session are
attributed to ``unknown / Unknown User / unknown``.

Recording never raises: a failing store is reported on the structlog channel
(``audit_write_failed``) and the caller's operation continues.  Reading,
clearing and exporting go through the same store.

Usage::

    audit = AuditLog(sessions, MemoryAuditStore(), PermissionModel())
    await audit.record(AuditAction.APPROVE, AuditResource.ARTICLE,
                       resource_id=article.id, resource_name=article.title)
    entries = await audit.query(text="budget", action=AuditAction.APPROVE)
    csv_text = audit.export_csv(entries)
"""

from __future__ import annotations

import csv
import io
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TypeVar

from newsdesk.exceptions import ValidationError
from newsdesk.logging import get_logger
from newsdesk.models import ActivityLogEntry, AuditAction, AuditResource
from newsdesk.security.audit_store import AuditStore
from newsdesk.security.permissions import Capability, PermissionModel
from newsdesk.security.session import SessionManager

log = get_logger(__name__)

E = TypeVar("E", bound=Enum)

UNKNOWN_USER_ID = "unknown"
UNKNOWN_USER_NAME = "Unknown User"
UNKNOWN_ROLE = "unknown"

CSV_HEADER = ("Timestamp", "User", "Role", "Action", "Resource", "Resource Name", "Details")
CSV_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


@dataclass(frozen=True)
class AuditStats:
    total: int
    today: int
    by_action: Counter[AuditAction] = field(default_factory=Counter)


def local_midnight(now: datetime | None = None) -> datetime:
    """Start of the current day in the local timezone, as an aware datetime."""
    now = (now or datetime.now()).astimezone()
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


class AuditLog:
    """Append-only log of privileged actions."""

    def __init__(
        self,
        sessions: SessionManager,
        store: AuditStore,
        permissions: PermissionModel,
    ) -> None:
        self._sessions = sessions
        self._store = store
        self._permissions = permissions

    @property
    def store(self) -> AuditStore:
        return self._store

    async def record(
        self,
        action: AuditAction,
        resource: AuditResource,
        *,
        resource_id: str | None = None,
        resource_name: str | None = None,
        details: str | None = None,
    ) -> ActivityLogEntry | None:
        """Append one entry attributed to the current session.

        Returns the written entry, or None when the store failed.
        """
        user = self._sessions.current_user
        entry = ActivityLogEntry(
            user_id=user.id if user else UNKNOWN_USER_ID,
            user_name=user.name if user else UNKNOWN_USER_NAME,
            user_role=user.role.value if user else UNKNOWN_ROLE,
            action=action,
            resource=resource,
            resource_id=resource_id,
            resource_name=resource_name,
            details=details,
        )
        try:
            await self._store.append(entry)
        except Exception as exc:
            log.error(
                "audit_write_failed",
                action=action.value,
                resource=resource.value,
                resource_id=resource_id,
                error=str(exc),
            )
            return None
        log.debug("audit_recorded", entry_id=entry.id, action=action.value)
        return entry

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    async def query(
        self,
        text: str | None = None,
        action: AuditAction | str | None = None,
        resource: AuditResource | str | None = None,
        user_name: str | None = None,
        user_id: str | None = None,
        limit: int | None = None,
    ) -> list[ActivityLogEntry]:
        """Filter entries (newest first).  Every supplied filter must match."""
        return filter_entries(
            await self._store.list(),
            text=text,
            action=action,
            resource=resource,
            user_name=user_name,
            user_id=user_id,
            limit=limit,
        )

    async def recent(self, limit: int = 50) -> list[ActivityLogEntry]:
        return await self.query(limit=limit)

    async def stats(self, now: datetime | None = None) -> AuditStats:
        return compute_stats(await self._store.list(), now)

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    async def clear(self) -> int:
        """Delete every entry.  Requires ``manage_settings``.

        Not recorded in the log itself.
        """
        user = await self._sessions.require_user("clear_audit_log")
        self._permissions.require(user.role, Capability.MANAGE_SETTINGS, action="clear_audit_log")
        removed = await self._store.clear()
        log.warning("audit_log_cleared", user_id=user.id, removed=removed)
        return removed

    @staticmethod
    def export_csv(entries: Iterable[ActivityLogEntry]) -> str:
        """Render *entries* as CSV with every field quoted."""
        buffer = io.StringIO()
        writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
        writer.writerow(CSV_HEADER)
        for entry in entries:
            writer.writerow(
                (
                    entry.timestamp.astimezone().strftime(CSV_TIMESTAMP_FORMAT),
                    entry.user_name,
                    entry.user_role,
                    entry.action_label,
                    entry.resource_label,
                    entry.resource_name or "",
                    entry.details or "",
                )
            )
        return buffer.getvalue()


def filter_entries(
    entries: Iterable[ActivityLogEntry],
    text: str | None = None,
    action: AuditAction | str | None = None,
    resource: AuditResource | str | None = None,
    user_name: str | None = None,
    user_id: str | None = None,
    limit: int | None = None,
) -> list[ActivityLogEntry]:
    """Raises :class:`ValidationError` for an unknown action or resource value."""
    action = _coerce_filter(AuditAction, action, "action")
    resource = _coerce_filter(AuditResource, resource, "resource")
    needle = text.strip().lower() if text else ""
    results: list[ActivityLogEntry] = []
    for entry in entries:
        if action is not None and entry.action != action:
            continue
        if resource is not None and entry.resource != resource:
            continue
        if user_name is not None and entry.user_name != user_name:
            continue
        if user_id is not None and entry.user_id != user_id:
            continue
        if needle and not _matches_text(entry, needle):
            continue
        results.append(entry)
        if limit is not None and len(results) >= limit:
            break
    return results


def compute_stats(entries: Iterable[ActivityLogEntry], now: datetime | None = None) -> AuditStats:
    entries = list(entries)
    midnight = local_midnight(now)
    return AuditStats(
        total=len(entries),
        today=sum(1 for e in entries if e.timestamp >= midnight),
        by_action=Counter(e.action for e in entries),
    )


def _coerce_filter(enum_cls: type[E], value: E | str | None, name: str) -> E | None:
    if value is None:
        return None
    try:
        return enum_cls(value)
    except ValueError as exc:
        raise ValidationError(name, f"Unknown {name} filter: {value!r}") from exc


def _matches_text(entry: ActivityLogEntry, needle: str) -> bool:
    haystack = (
        entry.user_name,
        entry.resource_name or "",
        entry.details or "",
        entry.action_label,
        entry.resource_label,
    )
    return any(needle in value.lower() for value in haystack)
