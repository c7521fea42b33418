"""Security layer — Permissions, login lockout, sessions, audit trail, user administration."""

from newsdesk.security.accounts import UserAdministration
from newsdesk.security.audit import AuditLog, AuditStats
from newsdesk.security.audit_store import AuditStore, MemoryAuditStore, SQLiteAuditStore
from newsdesk.security.identity import IdentityProvider, InMemoryIdentityProvider
from newsdesk.security.permissions import (
    PATH_CAPABILITIES,
    ROLE_CAPABILITIES,
    Capability,
    PermissionModel,
)
from newsdesk.security.rate_limiter import LoginRateLimiter
from newsdesk.security.session import (
    FileSessionStore,
    LoginResult,
    MemorySessionStore,
    SessionManager,
    SessionStore,
)

__all__ = [
    "AuditLog",
    "AuditStats",
    "AuditStore",
    "Capability",
    "FileSessionStore",
    "IdentityProvider",
    "InMemoryIdentityProvider",
    "LoginRateLimiter",
    "LoginResult",
    "MemoryAuditStore",
    "MemorySessionStore",
    "PATH_CAPABILITIES",
    "PermissionModel",
    "ROLE_CAPABILITIES",
    "SQLiteAuditStore",
    "SessionManager",
    "SessionStore",
    "UserAdministration",
]
