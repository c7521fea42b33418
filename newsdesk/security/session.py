"""Security layer — Session management.

The SessionManager is the only place that knows *who is acting*.  It is
constructed once and handed to every component that needs the actor
(WorkflowEngine, AuditLog, UserAdministration); there is no ambient global
session.

Login flow:
    1. Lock check            → RateLimitedError, provider never contacted
                               (steps 1-3 run one at a time per identity)
    2. identity.authenticate → InvalidCredentialsError counts as a failure;
                               timeouts and provider faults do not
    3. record success        → limiter key cleared
    4. status check          → AccountNotActiveError subclasses, no session
    5. persist session       → durable store if remember=True, else runtime

Two session stores are kept:
  - runtime store  lives as long as the process (MemorySessionStore)
  - durable store  survives restarts ("remember me", FileSessionStore)
"""

from __future__ import annotations

import asyncio
import json
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from newsdesk.exceptions import (
    AccountNotActiveError,
    AccountRejectedError,
    AccountSuspendedError,
    AuthError,
    AuthTimeoutError,
    IdentityProviderError,
    InvalidCredentialsError,
    NotAuthenticatedError,
    PendingApprovalError,
    RateLimitedError,
)
from newsdesk.logging import bind_actor_context, clear_actor_context, get_logger
from newsdesk.models import User, UserStatus, new_id, utcnow
from newsdesk.security.identity import IdentityProvider
from newsdesk.security.rate_limiter import LoginRateLimiter, normalize_identity

log = get_logger(__name__)

_STATUS_ERRORS: dict[UserStatus, type[AccountNotActiveError]] = {
    UserStatus.PENDING: PendingApprovalError,
    UserStatus.REJECTED: AccountRejectedError,
    UserStatus.SUSPENDED: AccountSuspendedError,
}


# ---------------------------------------------------------------------------
# Session stores
# ---------------------------------------------------------------------------


class SessionStore(ABC):
    """Holds at most one serialised session."""

    @abstractmethod
    def load(self) -> dict[str, Any] | None: ...

    @abstractmethod
    def save(self, data: dict[str, Any]) -> None: ...

    @abstractmethod
    def clear(self) -> None: ...


class MemorySessionStore(SessionStore):
    def __init__(self) -> None:
        self._data: dict[str, Any] | None = None

    def load(self) -> dict[str, Any] | None:
        return dict(self._data) if self._data is not None else None

    def save(self, data: dict[str, Any]) -> None:
        self._data = dict(data)

    def clear(self) -> None:
        self._data = None


class FileSessionStore(SessionStore):
    """JSON file on disk.  A corrupt file is treated as no session."""

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path).expanduser()

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> dict[str, Any] | None:
        if not self._path.exists():
            return None
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            log.warning("session_file_unreadable", path=str(self._path), error=str(exc))
            return None
        return data if isinstance(data, dict) else None

    def save(self, data: dict[str, Any]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(data), encoding="utf-8")

    def clear(self) -> None:
        self._path.unlink(missing_ok=True)


# ---------------------------------------------------------------------------
# Session manager
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Session:
    session_id: str
    user: User
    remember: bool
    created_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "user": self.user.model_dump(mode="json"),
            "remember": self.remember,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Session":
        return cls(
            session_id=str(data["session_id"]),
            user=User.model_validate(data["user"]),
            remember=bool(data.get("remember", False)),
            created_at=datetime.fromisoformat(data["created_at"]),
        )


@dataclass
class _KeyLock:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


@dataclass(frozen=True)
class LoginResult:
    """Outcome of :meth:`SessionManager.try_login`."""

    ok: bool
    user: User | None = None
    error: AuthError | None = None


class SessionManager:
    """Authenticates users and holds the current session.

    Args:
        identity:      The identity provider consulted for credentials and
                       authoritative user records.
        rate_limiter:  Failed-login lockout, keyed by normalised identity.
        durable_store: Where remembered sessions go.  Defaults to memory.
        runtime_store: Where non-remembered sessions go.
        auth_timeout:  Seconds to wait for ``identity.authenticate``.
    """

    def __init__(
        self,
        identity: IdentityProvider,
        rate_limiter: LoginRateLimiter,
        *,
        durable_store: SessionStore | None = None,
        runtime_store: SessionStore | None = None,
        auth_timeout: float = 10.0,
    ) -> None:
        self._identity = identity
        self._limiter = rate_limiter
        self._durable = durable_store or MemorySessionStore()
        self._runtime = runtime_store or MemorySessionStore()
        self._auth_timeout = auth_timeout
        self._session: Session | None = None
        self._login_locks: dict[str, _KeyLock] = {}

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def current_user(self) -> User | None:
        return self._session.user if self._session else None

    @property
    def current_session(self) -> Session | None:
        return self._session

    @property
    def is_authenticated(self) -> bool:
        return self._session is not None

    @property
    def rate_limiter(self) -> LoginRateLimiter:
        return self._limiter

    # ------------------------------------------------------------------
    # Login / logout
    # ------------------------------------------------------------------

    async def login(self, identity: str, secret: str, remember: bool = False) -> User:
        """Authenticate and establish a session.

        Raises:
            RateLimitedError:      The identity is locked out.
            InvalidCredentialsError: The provider rejected the credentials.
            AccountNotActiveError: Credentials valid but status is not active.
            AuthTimeoutError:      The provider did not answer in time.
            IdentityProviderError: The provider failed.
        """
        key = normalize_identity(identity)
        async with self._serialised(key):
            user = await self._authenticate(key, secret)

        if not user.is_active:
            self._terminate()
            error_cls = _STATUS_ERRORS.get(user.status, AccountNotActiveError)
            log.info("login_refused_inactive", user_id=user.id, status=user.status.value)
            raise error_cls(user.id)

        session = Session(
            session_id=new_id(),
            user=user,
            remember=remember,
            created_at=utcnow(),
        )
        self._persist(session)
        self._session = session
        bind_actor_context(session_id=session.session_id, user_id=user.id)
        log.info(
            "login_succeeded",
            user_id=user.id,
            role=user.role.value,
            remember=remember,
        )
        return user

    async def try_login(self, identity: str, secret: str, remember: bool = False) -> LoginResult:
        """Like :meth:`login` but returns a :class:`LoginResult` instead of raising."""
        try:
            user = await self.login(identity, secret, remember=remember)
        except AuthError as exc:
            return LoginResult(ok=False, error=exc)
        return LoginResult(ok=True, user=user)

    def logout(self) -> None:
        """End the session.  Both stores are cleared even if no session is held."""
        user = self.current_user
        self._terminate()
        if user is not None:
            log.info("logout", user_id=user.id)

    # ------------------------------------------------------------------
    # Status checks
    # ------------------------------------------------------------------

    async def check_status(self) -> User | None:
        """Re-read the current user from the provider.

        Returns the refreshed user, or None if the session was terminated
        (user deleted or no longer active).
        """
        if self._session is None:
            return None
        fresh = await self._identity.get_user(self._session.user.id)
        if fresh is None or not fresh.is_active:
            log.warning(
                "session_terminated",
                user_id=self._session.user.id,
                status=fresh.status.value if fresh else "missing",
            )
            self._terminate()
            return None
        if fresh != self._session.user:
            self._session = Session(
                session_id=self._session.session_id,
                user=fresh,
                remember=self._session.remember,
                created_at=self._session.created_at,
            )
            self._persist(self._session)
        return fresh

    async def require_user(self, action: str = "") -> User:
        """Return the refreshed acting user or raise :class:`NotAuthenticatedError`."""
        user = await self.check_status()
        if user is None:
            raise NotAuthenticatedError(action or "operation")
        return user

    async def restore(self) -> User | None:
        """Resume a persisted session (durable first, then runtime)."""
        for store in (self._durable, self._runtime):
            data = store.load()
            if data is None:
                continue
            try:
                session = Session.from_dict(data)
            except (KeyError, TypeError, ValueError) as exc:
                log.warning("session_restore_failed", error=str(exc))
                store.clear()
                continue
            self._session = session
            user = await self.check_status()
            if user is not None:
                bind_actor_context(session_id=session.session_id, user_id=user.id)
                log.info("session_restored", user_id=user.id, remember=session.remember)
            return user
        return None

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _authenticate(self, key: str, secret: str) -> User:
        """Lock check, provider call and attempt bookkeeping.  Caller holds the key's lock."""
        remaining = self._limiter.remaining_lockout_ms(key)
        if remaining > 0:
            log.warning("login_rate_limited", identity=key, remaining_ms=remaining)
            raise RateLimitedError(key, remaining)

        try:
            user = await asyncio.wait_for(
                self._identity.authenticate(key, secret),
                timeout=self._auth_timeout,
            )
        except InvalidCredentialsError:
            self._limiter.record_attempt(key, success=False)
            log.info(
                "login_failed",
                identity=key,
                attempts_remaining=self._limiter.attempts_remaining(key),
            )
            raise
        except asyncio.TimeoutError as exc:
            log.warning("login_timeout", identity=key, timeout_seconds=self._auth_timeout)
            raise AuthTimeoutError(key, self._auth_timeout) from exc
        except Exception as exc:
            log.error("identity_provider_failed", identity=key, error=str(exc))
            raise IdentityProviderError(key, exc) from exc

        self._limiter.record_attempt(key, success=True)
        return user

    @asynccontextmanager
    async def _serialised(self, key: str) -> AsyncIterator[None]:
        """One login per identity at a time; the entry is dropped once nobody waits."""
        entry = self._login_locks.setdefault(key, _KeyLock())
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                del self._login_locks[key]

    def _persist(self, session: Session) -> None:
        if session.remember:
            self._durable.save(session.to_dict())
            self._runtime.clear()
        else:
            self._runtime.save(session.to_dict())
            self._durable.clear()

    def _terminate(self) -> None:
        self._session = None
        self._durable.clear()
        self._runtime.clear()
        clear_actor_context()
