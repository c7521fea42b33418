"""Shared pytest fixtures for the newsdesk test suite."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from pathlib import Path

import pytest

from newsdesk.config import Settings, override_settings
from newsdesk.editorial.repository import InMemoryArticleRepository
from newsdesk.editorial.workflow import WorkflowEngine
from newsdesk.models import Article, ArticleStatus, Role, User
from newsdesk.security.accounts import UserAdministration
from newsdesk.security.audit import AuditLog
from newsdesk.security.audit_store import MemoryAuditStore
from newsdesk.security.identity import InMemoryIdentityProvider
from newsdesk.security.permissions import PermissionModel
from newsdesk.security.rate_limiter import LoginRateLimiter
from newsdesk.security.session import SessionManager

PASSWORD = "correct-horse"


def email_for(role: Role) -> str:
    return f"{role.value}@example.com"


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    settings = Settings(
        auth={"session_file": str(tmp_path / "session.json")},
        storage={
            "backend": "memory",
            "articles_db_path": str(tmp_path / "articles.db"),
            "audit_db_path": str(tmp_path / "audit.db"),
        },
        logging={"level": "debug", "format": "console"},
    )
    override_settings(settings)
    return settings


# ---------------------------------------------------------------------------
# Security
# ---------------------------------------------------------------------------


@pytest.fixture
def permissions() -> PermissionModel:
    return PermissionModel()


@pytest.fixture
def limiter() -> LoginRateLimiter:
    return LoginRateLimiter()


@pytest.fixture
async def identity() -> InMemoryIdentityProvider:
    """Provider seeded with one active user per role (cheap hashes for speed)."""
    provider = InMemoryIdentityProvider(rounds=4)
    for role in Role:
        await provider.add_user(
            name=f"{role.value.title()} User",
            email=email_for(role),
            secret=PASSWORD,
            role=role,
        )
    return provider


@pytest.fixture
def sessions(identity: InMemoryIdentityProvider, limiter: LoginRateLimiter) -> SessionManager:
    return SessionManager(identity, limiter, auth_timeout=2.0)


@pytest.fixture
def audit_store() -> MemoryAuditStore:
    return MemoryAuditStore()


@pytest.fixture
def audit(
    sessions: SessionManager,
    audit_store: MemoryAuditStore,
    permissions: PermissionModel,
) -> AuditLog:
    return AuditLog(sessions, audit_store, permissions)


@pytest.fixture
def accounts(
    permissions: PermissionModel,
    sessions: SessionManager,
    identity: InMemoryIdentityProvider,
    audit: AuditLog,
) -> UserAdministration:
    return UserAdministration(permissions, sessions, identity, audit)


@pytest.fixture
def login_as(sessions: SessionManager) -> Callable[[Role], Awaitable[User]]:
    """Log in as the seeded user for a role, ending any previous session."""

    async def _login(role: Role) -> User:
        sessions.logout()
        return await sessions.login(email_for(role), PASSWORD)

    return _login


# ---------------------------------------------------------------------------
# Editorial
# ---------------------------------------------------------------------------


@pytest.fixture
def repository() -> InMemoryArticleRepository:
    return InMemoryArticleRepository()


@pytest.fixture
def workflow(
    permissions: PermissionModel,
    sessions: SessionManager,
    repository: InMemoryArticleRepository,
    audit: AuditLog,
) -> WorkflowEngine:
    return WorkflowEngine(permissions, sessions, repository, audit)


@pytest.fixture
def seed_article(
    identity: InMemoryIdentityProvider,
    repository: InMemoryArticleRepository,
) -> Callable[..., Awaitable[Article]]:
    """Store an article directly, bypassing the workflow and the audit log."""

    async def _seed(
        status: ArticleStatus = ArticleStatus.DRAFT,
        owner: Role = Role.AUTHOR,
        **fields: object,
    ) -> Article:
        owner_user = next(u for u in await identity.list_users() if u.role is owner)
        article = Article(
            title=str(fields.pop("title", "City council approves budget")),
            author_id=owner_user.id,
            submitted_by=owner_user.id,
            status=status,
            **fields,
        )
        await repository.save(article)
        return article

    return _seed
