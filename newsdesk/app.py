"""Newsdesk — Application facade.

Wires every component from a :class:`Settings` instance and exposes them as
attributes.  Login and logout go through the facade so that both are
recorded in the audit log with resource ``session``.

Usage::

    desk = Newsdesk.from_settings(Settings.load(), identity=provider)
    await desk.start()
    await desk.login("ed@example.com", "secret", remember=True)
    article = await desk.workflow.create(title="Council meeting")
    await desk.logout()
    await desk.close()
"""

from __future__ import annotations

from dataclasses import dataclass

from newsdesk.config import Settings
from newsdesk.editorial.repository import (
    ArticleRepository,
    InMemoryArticleRepository,
    SQLiteArticleRepository,
)
from newsdesk.editorial.workflow import WorkflowEngine
from newsdesk.logging import get_logger
from newsdesk.models import AuditAction, AuditResource, User
from newsdesk.security.accounts import UserAdministration
from newsdesk.security.audit import AuditLog
from newsdesk.security.audit_store import AuditStore, MemoryAuditStore, SQLiteAuditStore
from newsdesk.security.identity import IdentityProvider
from newsdesk.security.permissions import PermissionModel
from newsdesk.security.rate_limiter import LoginRateLimiter
from newsdesk.security.session import FileSessionStore, SessionManager

log = get_logger(__name__)


@dataclass
class Newsdesk:
    """Aggregate of all core components, sharing one SessionManager."""

    permissions: PermissionModel
    rate_limiter: LoginRateLimiter
    sessions: SessionManager
    audit: AuditLog
    repository: ArticleRepository
    workflow: WorkflowEngine
    accounts: UserAdministration

    @classmethod
    def from_settings(cls, settings: Settings, identity: IdentityProvider) -> "Newsdesk":
        permissions = PermissionModel()
        rate_limiter = LoginRateLimiter(
            max_attempts=settings.rate_limit.max_attempts,
            window_ms=settings.rate_limit.window_ms,
            lockout_ms=settings.rate_limit.lockout_ms,
        )
        sessions = SessionManager(
            identity,
            rate_limiter,
            durable_store=FileSessionStore(settings.auth.session_file),
            auth_timeout=settings.auth.timeout_seconds,
        )

        audit_store: AuditStore
        repository: ArticleRepository
        if settings.storage.backend == "sqlite":
            audit_store = SQLiteAuditStore(settings.storage.audit_db_path)
            repository = SQLiteArticleRepository(settings.storage.articles_db_path)
        else:
            audit_store = MemoryAuditStore()
            repository = InMemoryArticleRepository()

        audit = AuditLog(sessions, audit_store, permissions)
        return cls(
            permissions=permissions,
            rate_limiter=rate_limiter,
            sessions=sessions,
            audit=audit,
            repository=repository,
            workflow=WorkflowEngine(permissions, sessions, repository, audit),
            accounts=UserAdministration(permissions, sessions, identity, audit),
        )

    async def start(self) -> User | None:
        """Open the stores and resume a remembered session if one exists."""
        await self.audit.store.init()
        await self.repository.init()
        user = await self.sessions.restore()
        log.info("newsdesk_started", restored_user=user.id if user else None)
        return user

    async def close(self) -> None:
        await self.repository.close()
        await self.audit.store.close()

    async def login(self, identity: str, secret: str, remember: bool = False) -> User:
        """Authenticate via the SessionManager and audit the sign-in."""
        user = await self.sessions.login(identity, secret, remember=remember)
        await self.audit.record(
            AuditAction.LOGIN,
            AuditResource.SESSION,
            resource_id=user.id,
            resource_name=user.email,
        )
        return user

    async def logout(self) -> None:
        user = self.sessions.current_user
        if user is not None:
            # Recorded before the session ends so the entry carries the actor.
            await self.audit.record(
                AuditAction.LOGOUT,
                AuditResource.SESSION,
                resource_id=user.id,
                resource_name=user.email,
            )
        self.sessions.logout()
