"""Newsdesk — Exception hierarchy.

All exceptions raised by the core inherit from NewsdeskError so that callers
can catch the full family with a single except clause when needed, or branch
on the specific kind.

Hierarchy:
    NewsdeskError
    ├── AuthError
    │   ├── RateLimitedError
    │   ├── InvalidCredentialsError
    │   ├── AccountNotActiveError
    │   │   ├── PendingApprovalError
    │   │   ├── AccountRejectedError
    │   │   └── AccountSuspendedError
    │   ├── AuthTimeoutError
    │   └── IdentityProviderError
    ├── WorkflowError
    │   ├── PermissionDeniedError
    │   │   └── NotAuthenticatedError
    │   ├── InvalidTransitionError
    │   ├── ValidationError
    │   ├── ArticleNotFoundError
    │   └── UserNotFoundError
    └── StoreError
"""

from __future__ import annotations

import math
from typing import Any


class NewsdeskError(Exception):
    """Base exception for all Newsdesk errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context: dict[str, Any] = context or {}

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, context={self.context})"


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------


class AuthError(NewsdeskError):
    """Base for all authentication failures."""


class RateLimitedError(AuthError):
    """Too many failed attempts for this identity; retry after the lockout."""

    def __init__(self, identity: str, remaining_ms: int) -> None:
        minutes = max(1, math.ceil(remaining_ms / 60_000))
        super().__init__(
            f"Too many failed attempts. Please try again in {minutes} minute"
            + ("" if minutes == 1 else "s"),
            context={"identity": identity, "remaining_ms": remaining_ms},
        )
        self.identity = identity
        self.remaining_ms = remaining_ms


class InvalidCredentialsError(AuthError):
    """The identity provider explicitly rejected the credentials."""

    def __init__(self, identity: str) -> None:
        super().__init__(
            "Invalid email or password",
            context={"identity": identity},
        )
        self.identity = identity


class AccountNotActiveError(AuthError):
    """Credentials were valid but the account may not hold a session."""

    status: str = "inactive"
    reason: str = "This account is not active"

    def __init__(self, user_id: str) -> None:
        super().__init__(
            self.reason,
            context={"user_id": user_id, "status": self.status},
        )
        self.user_id = user_id


class PendingApprovalError(AccountNotActiveError):
    status = "pending"
    reason = "Your account is pending administrator approval"


class AccountRejectedError(AccountNotActiveError):
    status = "rejected"
    reason = "Your account request was rejected"


class AccountSuspendedError(AccountNotActiveError):
    status = "suspended"
    reason = "Your account has been suspended"


class AuthTimeoutError(AuthError):
    """The identity provider did not answer in time."""

    def __init__(self, identity: str, timeout_seconds: float) -> None:
        super().__init__(
            f"Authentication timed out after {timeout_seconds:g}s",
            context={"identity": identity, "timeout_seconds": timeout_seconds},
        )
        self.identity = identity
        self.timeout_seconds = timeout_seconds


class IdentityProviderError(AuthError):
    """The identity provider failed for a reason other than rejecting credentials."""

    def __init__(self, identity: str, cause: Exception) -> None:
        super().__init__(
            f"Identity provider error: {cause}",
            context={"identity": identity, "cause": str(cause)},
        )
        self.identity = identity
        self.cause = cause


# ---------------------------------------------------------------------------
# Workflow / privileged operations
# ---------------------------------------------------------------------------


class WorkflowError(NewsdeskError):
    """A privileged operation was refused; nothing was mutated or logged."""


class PermissionDeniedError(WorkflowError):
    """The acting role lacks the capability (or ownership) the operation needs."""

    def __init__(self, action: str, capability: str, role: str | None) -> None:
        super().__init__(
            f"Permission denied: '{action}' requires '{capability}'"
            f" (role: {role or 'none'})",
            context={"action": action, "capability": capability, "role": role},
        )
        self.action = action
        self.capability = capability
        self.role = role


class NotAuthenticatedError(PermissionDeniedError):
    """No active session is available for the operation."""

    def __init__(self, action: str) -> None:
        super().__init__(action=action, capability="authenticated session", role=None)


class InvalidTransitionError(WorkflowError):
    """The requested workflow move is not legal from the current state."""

    def __init__(
        self,
        action: str,
        from_status: str,
        article_id: str = "",
        subject: str = "an article",
    ) -> None:
        super().__init__(
            f"Cannot {action.replace('_', ' ')} {subject} in status '{from_status}'",
            context={
                "action": action,
                "from_status": from_status,
                "article_id": article_id,
            },
        )
        self.action = action
        self.from_status = from_status
        self.article_id = article_id


class ValidationError(WorkflowError):
    """A required input is missing or malformed."""

    def __init__(self, field: str, reason: str) -> None:
        super().__init__(reason, context={"field": field, "reason": reason})
        self.field = field
        self.reason = reason


class ArticleNotFoundError(WorkflowError):
    def __init__(self, article_id: str) -> None:
        super().__init__(
            f"Article '{article_id}' does not exist",
            context={"article_id": article_id},
        )
        self.article_id = article_id


class UserNotFoundError(WorkflowError):
    def __init__(self, user_id: str) -> None:
        super().__init__(
            f"User '{user_id}' does not exist",
            context={"user_id": user_id},
        )
        self.user_id = user_id


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------


class StoreError(NewsdeskError):
    """A persistence backend operation failed."""
