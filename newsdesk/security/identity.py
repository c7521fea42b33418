"""Security layer — Identity provider boundary.

The core never stores or checks credentials itself; it asks an
:class:`IdentityProvider`.  The provider must return the *authoritative*
user record, including ``status``, so that the session manager can refuse
sessions to accounts that are not active.

Swap the backend by injecting a different implementation:
  - InMemoryIdentityProvider → default, bcrypt-hashed credentials in a dict
  - any hosted auth service  → subclass IdentityProvider and wrap its SDK

Rejected sign-ups are *flagged*, not deleted: the record stays with status
``rejected`` (so it can no longer log in) until the same e-mail registers
again, at which point the flagged record is replaced by a fresh pending one.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass

import bcrypt

from newsdesk.exceptions import InvalidCredentialsError, UserNotFoundError, ValidationError
from newsdesk.logging import get_logger
from newsdesk.models import Role, User, UserStatus, new_id, utcnow
from newsdesk.security.rate_limiter import normalize_identity

log = get_logger(__name__)

_BCRYPT_ROUNDS = 12
_BCRYPT_MAX_BYTES = 72


class IdentityProvider(ABC):
    """Abstract identity collaborator.  Implementations must be safe for concurrent async use."""

    @abstractmethod
    async def authenticate(self, identity: str, secret: str) -> User:
        """Return the user for valid credentials.

        Raises :class:`InvalidCredentialsError` when the credentials are
        explicitly rejected.  Any other exception is treated as a provider
        failure, not as a failed attempt.
        """

    @abstractmethod
    async def get_user(self, user_id: str) -> User | None:
        """Return the current record for *user_id*, or None if it no longer exists."""

    @abstractmethod
    async def list_users(self) -> list[User]:
        """Return every known user."""

    @abstractmethod
    async def update_user(self, user: User) -> None:
        """Persist a changed user record (status / role)."""


# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------


def hash_secret(secret: str, rounds: int = _BCRYPT_ROUNDS) -> str:
    """Hash *secret* with bcrypt.  Blocking: call through ``asyncio.to_thread``."""
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(secret.encode("utf-8"), salt).decode("utf-8")


def verify_secret(secret: str, secret_hash: str) -> bool:
    """Check *secret* against a bcrypt hash.  A malformed hash never matches."""
    try:
        return bcrypt.checkpw(secret.encode("utf-8"), secret_hash.encode("utf-8"))
    except ValueError:
        log.warning("malformed_secret_hash")
        return False


# ---------------------------------------------------------------------------
# In-memory implementation
# ---------------------------------------------------------------------------


@dataclass
class _Account:
    user: User
    secret_hash: str


class InMemoryIdentityProvider(IdentityProvider):
    """Dictionary-backed provider, keyed by normalised e-mail.

    Usage::

        provider = InMemoryIdentityProvider()
        user = await provider.register("Ada", "ada@example.com", "s3cret")   # pending
        await provider.add_user("Root", "root@example.com", "pw", role=Role.ADMIN,
                                status=UserStatus.ACTIVE)
    """

    def __init__(self, rounds: int = _BCRYPT_ROUNDS) -> None:
        self._accounts: dict[str, _Account] = {}
        self._rounds = rounds
        self._lock = asyncio.Lock()

    async def register(
        self,
        name: str,
        email: str,
        secret: str,
        role: Role = Role.AUTHOR,
    ) -> User:
        """Sign up a new account; it starts in ``pending`` until an admin approves it."""
        key = normalize_identity(email)
        secret_hash = await self._hash(secret)
        async with self._lock:
            existing = self._accounts.get(key)
            if existing is not None:
                if existing.user.status is UserStatus.PENDING:
                    raise ValidationError(
                        "email",
                        "You already have a pending request. Please wait for admin approval.",
                    )
                if existing.user.status is not UserStatus.REJECTED:
                    raise ValidationError(
                        "email", "This account already exists. Please go to login."
                    )
                log.info("rejected_account_resubmitted", email=key, user_id=existing.user.id)

            user = User(
                id=new_id(),
                name=name,
                email=key,
                role=role,
                status=UserStatus.PENDING,
                created_at=utcnow(),
            )
            self._accounts[key] = _Account(user=user, secret_hash=secret_hash)
        log.info("account_registered", user_id=user.id, email=key)
        return user

    async def add_user(
        self,
        name: str,
        email: str,
        secret: str,
        role: Role = Role.AUTHOR,
        status: UserStatus = UserStatus.ACTIVE,
    ) -> User:
        """Insert an account directly (seeding, tests, migrations)."""
        key = normalize_identity(email)
        user = User(name=name, email=key, role=role, status=status)
        secret_hash = await self._hash(secret)
        async with self._lock:
            self._accounts[key] = _Account(user=user, secret_hash=secret_hash)
        return user

    async def authenticate(self, identity: str, secret: str) -> User:
        key = normalize_identity(identity)
        account = self._accounts.get(key)
        if account is None or not await asyncio.to_thread(
            verify_secret, secret, account.secret_hash
        ):
            raise InvalidCredentialsError(key)
        return account.user

    async def get_user(self, user_id: str) -> User | None:
        for account in self._accounts.values():
            if account.user.id == user_id:
                return account.user
        return None

    async def list_users(self) -> list[User]:
        return sorted(
            (a.user for a in self._accounts.values()),
            key=lambda u: u.created_at,
        )

    async def update_user(self, user: User) -> None:
        async with self._lock:
            for account in self._accounts.values():
                if account.user.id == user.id:
                    account.user = user
                    return
        raise UserNotFoundError(user.id)

    async def _hash(self, secret: str) -> str:
        # bcrypt rejects secrets longer than 72 bytes.
        if len(secret.encode("utf-8")) > _BCRYPT_MAX_BYTES:
            raise ValidationError("secret", f"Password must be at most {_BCRYPT_MAX_BYTES} bytes")
        return await asyncio.to_thread(hash_secret, secret, self._rounds)
