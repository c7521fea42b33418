"""Editorial layer — Article persistence.

The repository is the single source of truth for articles.  The workflow
engine re-loads an article on every operation; it never trusts a copy held
by a caller.

Change notification is publish-on-write: after every successful ``save`` or
``delete`` each subscribed listener receives an :class:`ArticleChange`.
Listeners may be plain callables or coroutine functions.  A failing listener
is logged and never affects the write or the other listeners.

Backends:
  - InMemoryArticleRepository → dict, default and tests
  - SQLiteArticleRepository   → aiosqlite, survives restarts

Usage::

    repo = SQLiteArticleRepository(Path("~/.newsdesk/articles.db"))
    await repo.init()
    unsubscribe = repo.subscribe(lambda change: print(change.kind, change.article_id))
    await repo.save(article)
    drafts = await repo.list(status=ArticleStatus.DRAFT)
    await repo.close()
"""

from __future__ import annotations

import asyncio
import inspect
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Union

import aiosqlite

from newsdesk.exceptions import ArticleNotFoundError, StoreError
from newsdesk.logging import get_logger
from newsdesk.models import Article, ArticleStatus

log = get_logger(__name__)


class ChangeKind(str, Enum):
    SAVED = "saved"
    DELETED = "deleted"


@dataclass(frozen=True)
class ArticleChange:
    kind: ChangeKind
    article_id: str
    # None for deletions.
    article: Article | None = None


ChangeListener = Callable[[ArticleChange], Union[None, Awaitable[None]]]


class ArticleRepository(ABC):
    """Abstract article store with change notification."""

    def __init__(self) -> None:
        self._listeners: list[ChangeListener] = []

    async def init(self) -> None:
        """Prepare the backend.  No-op by default."""

    async def close(self) -> None:
        """Release backend resources.  No-op by default."""

    @abstractmethod
    async def load(self, article_id: str) -> Article:
        """Return the stored article.  Raises :class:`ArticleNotFoundError`."""

    @abstractmethod
    async def list(
        self,
        status: ArticleStatus | None = None,
        author_id: str | None = None,
    ) -> list[Article]:
        """Return matching articles, most recently updated first."""

    async def save(self, article: Article) -> None:
        await self._write(article)
        await self._notify(ArticleChange(ChangeKind.SAVED, article.id, article))

    async def delete(self, article_id: str) -> None:
        await self._remove(article_id)
        await self._notify(ArticleChange(ChangeKind.DELETED, article_id))

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        """Register *listener*; returns a callable that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    @abstractmethod
    async def _write(self, article: Article) -> None: ...

    @abstractmethod
    async def _remove(self, article_id: str) -> None:
        """Delete the article.  Raises :class:`ArticleNotFoundError`."""

    async def _notify(self, change: ArticleChange) -> None:
        for listener in list(self._listeners):
            try:
                result = listener(change)
                if inspect.isawaitable(result):
                    await result
            except Exception as exc:
                log.error(
                    "article_listener_failed",
                    article_id=change.article_id,
                    kind=change.kind.value,
                    error=str(exc),
                )


def _filter_sorted(
    articles: list[Article],
    status: ArticleStatus | None,
    author_id: str | None,
) -> list[Article]:
    matched = [
        a
        for a in articles
        if (status is None or a.status is status)
        and (author_id is None or a.author_id == author_id)
    ]
    return sorted(matched, key=lambda a: a.updated_at, reverse=True)


# ---------------------------------------------------------------------------
# In-memory backend
# ---------------------------------------------------------------------------


class InMemoryArticleRepository(ArticleRepository):
    def __init__(self) -> None:
        super().__init__()
        self._articles: dict[str, Article] = {}
        self._lock = asyncio.Lock()

    async def load(self, article_id: str) -> Article:
        try:
            return self._articles[article_id]
        except KeyError:
            raise ArticleNotFoundError(article_id) from None

    async def list(
        self,
        status: ArticleStatus | None = None,
        author_id: str | None = None,
    ) -> list[Article]:
        return _filter_sorted(list(self._articles.values()), status, author_id)

    async def _write(self, article: Article) -> None:
        async with self._lock:
            self._articles[article.id] = article

    async def _remove(self, article_id: str) -> None:
        async with self._lock:
            if self._articles.pop(article_id, None) is None:
                raise ArticleNotFoundError(article_id)


# ---------------------------------------------------------------------------
# SQLite backend
# ---------------------------------------------------------------------------

_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS articles (
    id            TEXT PRIMARY KEY,
    status        TEXT NOT NULL,
    author_id     TEXT NOT NULL,
    updated_at    TEXT NOT NULL,
    data          TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_articles_status ON articles (status);
CREATE INDEX IF NOT EXISTS idx_articles_author ON articles (author_id);
"""


class SQLiteArticleRepository(ArticleRepository):
    """Articles stored as JSON documents with indexed status / author columns."""

    def __init__(self, db_path: Path | str) -> None:
        super().__init__()
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
                f"Cannot open article store: {exc}", context={"path": str(self._db_path)}
            ) from exc
        log.debug("article_store_init", path=str(self._db_path))

    async def close(self) -> None:
        if self._conn:
            await self._conn.close()
            self._conn = None

    async def load(self, article_id: str) -> Article:
        conn = self._require_conn()
        try:
            async with conn.execute(
                "SELECT data FROM articles WHERE id=?", (article_id,)
            ) as cursor:
                row = await cursor.fetchone()
        except aiosqlite.Error as exc:
            raise StoreError(f"Article read failed: {exc}", context={"article_id": article_id}) from exc
        if row is None:
            raise ArticleNotFoundError(article_id)
        return Article.model_validate_json(row[0])

    async def list(
        self,
        status: ArticleStatus | None = None,
        author_id: str | None = None,
    ) -> list[Article]:
        conn = self._require_conn()
        clauses: list[str] = []
        params: list[str] = []
        if status is not None:
            clauses.append("status=?")
            params.append(status.value)
        if author_id is not None:
            clauses.append("author_id=?")
            params.append(author_id)
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        try:
            async with conn.execute(
                f"SELECT data FROM articles{where} ORDER BY updated_at DESC", params
            ) as cursor:
                rows = await cursor.fetchall()
        except aiosqlite.Error as exc:
            raise StoreError(f"Article list failed: {exc}") from exc
        return [Article.model_validate_json(row[0]) for row in rows]

    async def _write(self, article: Article) -> None:
        conn = self._require_conn()
        async with self._lock:
            try:
                await conn.execute(
                    """INSERT OR REPLACE INTO articles (id, status, author_id, updated_at, data)
                       VALUES (?, ?, ?, ?, ?)""",
                    (
                        article.id,
                        article.status.value,
                        article.author_id,
                        _sortable(article.updated_at),
                        article.model_dump_json(),
                    ),
                )
                await conn.commit()
            except aiosqlite.Error as exc:
                raise StoreError(
                    f"Article write failed: {exc}", context={"article_id": article.id}
                ) from exc

    async def _remove(self, article_id: str) -> None:
        conn = self._require_conn()
        async with self._lock:
            try:
                cursor = await conn.execute("DELETE FROM articles WHERE id=?", (article_id,))
                await conn.commit()
            except aiosqlite.Error as exc:
                raise StoreError(
                    f"Article delete failed: {exc}", context={"article_id": article_id}
                ) from exc
        if cursor.rowcount == 0:
            raise ArticleNotFoundError(article_id)

    def _require_conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise StoreError("Article store is not initialised; call init() first")
        return self._conn


def _sortable(value: datetime) -> str:
    # UTC ISO strings sort lexically in time order.
    return value.astimezone(timezone.utc).isoformat()
