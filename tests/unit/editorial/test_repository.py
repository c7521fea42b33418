"""Unit tests -- article repositories and change notification."""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path

import pytest

from newsdesk.editorial.repository import (
    ArticleChange,
    ArticleRepository,
    ChangeKind,
    InMemoryArticleRepository,
    SQLiteArticleRepository,
)
from newsdesk.exceptions import ArticleNotFoundError, StoreError
from newsdesk.models import Article, ArticleStatus, utcnow


def _article(title: str = "Story", **fields: object) -> Article:
    return Article(title=title, author_id=str(fields.pop("author_id", "u1")), **fields)


@pytest.fixture(params=["memory", "sqlite"])
async def repo(request: pytest.FixtureRequest, tmp_path: Path):
    if request.param == "memory":
        yield InMemoryArticleRepository()
        return
    store = SQLiteArticleRepository(tmp_path / "articles.db")
    await store.init()
    yield store
    await store.close()


@pytest.mark.unit
class TestArticleRepository:

    async def test_save_and_load(self, repo: ArticleRepository) -> None:
        article = _article(tags=("a", "b"), is_breaking=True)
        await repo.save(article)
        assert await repo.load(article.id) == article

    async def test_save_replaces(self, repo: ArticleRepository) -> None:
        article = _article()
        await repo.save(article)
        await repo.save(article.model_copy(update={"title": "Renamed"}))
        assert (await repo.load(article.id)).title == "Renamed"
        assert len(await repo.list()) == 1

    async def test_load_missing_raises(self, repo: ArticleRepository) -> None:
        with pytest.raises(ArticleNotFoundError):
            await repo.load("missing")

    async def test_delete(self, repo: ArticleRepository) -> None:
        article = _article()
        await repo.save(article)
        await repo.delete(article.id)
        with pytest.raises(ArticleNotFoundError):
            await repo.load(article.id)

    async def test_delete_missing_raises(self, repo: ArticleRepository) -> None:
        with pytest.raises(ArticleNotFoundError):
            await repo.delete("missing")

    async def test_list_filters_and_orders(self, repo: ArticleRepository) -> None:
        now = utcnow()
        old = _article("old", updated_at=now - timedelta(hours=2))
        new = _article("new", updated_at=now)
        other = _article("other", author_id="u2", status=ArticleStatus.PUBLISHED)
        for a in (old, new, other):
            await repo.save(a)

        drafts = await repo.list(status=ArticleStatus.DRAFT)
        assert [a.title for a in drafts] == ["new", "old"]
        assert [a.title for a in await repo.list(author_id="u2")] == ["other"]
        assert await repo.list(status=ArticleStatus.PUBLISHED, author_id="u1") == []


@pytest.mark.unit
class TestChangeNotification:

    async def test_listeners_receive_saves_and_deletes(self) -> None:
        repo = InMemoryArticleRepository()
        changes: list[ArticleChange] = []
        repo.subscribe(changes.append)

        article = _article()
        await repo.save(article)
        await repo.delete(article.id)

        assert [c.kind for c in changes] == [ChangeKind.SAVED, ChangeKind.DELETED]
        assert changes[0].article == article
        assert changes[1].article is None

    async def test_async_listener_is_awaited(self) -> None:
        repo = InMemoryArticleRepository()
        seen: list[str] = []

        async def listener(change: ArticleChange) -> None:
            seen.append(change.article_id)

        repo.subscribe(listener)
        article = _article()
        await repo.save(article)
        assert seen == [article.id]

    async def test_unsubscribe(self) -> None:
        repo = InMemoryArticleRepository()
        changes: list[ArticleChange] = []
        unsubscribe = repo.subscribe(changes.append)
        unsubscribe()
        unsubscribe()
        await repo.save(_article())
        assert changes == []

    async def test_failing_listener_does_not_break_write(self) -> None:
        repo = InMemoryArticleRepository()
        changes: list[ArticleChange] = []

        def broken(change: ArticleChange) -> None:
            raise RuntimeError("boom")

        repo.subscribe(broken)
        repo.subscribe(changes.append)
        article = _article()
        await repo.save(article)
        assert await repo.load(article.id) == article
        assert len(changes) == 1

    async def test_failed_delete_does_not_notify(self) -> None:
        repo = InMemoryArticleRepository()
        changes: list[ArticleChange] = []
        repo.subscribe(changes.append)
        with pytest.raises(ArticleNotFoundError):
            await repo.delete("missing")
        assert changes == []


@pytest.mark.unit
class TestSQLiteArticleRepository:

    async def test_use_before_init_raises_store_error(self, tmp_path: Path) -> None:
        repo = SQLiteArticleRepository(tmp_path / "articles.db")
        with pytest.raises(StoreError):
            await repo.load("a1")

    async def test_articles_survive_reopen(self, tmp_path: Path) -> None:
        db_path = tmp_path / "articles.db"
        first = SQLiteArticleRepository(db_path)
        await first.init()
        article = _article("Persisted", status=ArticleStatus.SCHEDULED, published_at=utcnow())
        await first.save(article)
        await first.close()

        second = SQLiteArticleRepository(db_path)
        await second.init()
        try:
            assert await second.load(article.id) == article
        finally:
            await second.close()
