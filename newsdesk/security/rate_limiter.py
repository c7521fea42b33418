"""Security layer — Login lockout with a sliding window.

In-memory limiter keyed by identity (normalised e-mail).  Failed-attempt
timestamps older than the window are pruned on every check, so two attempts
exactly ``window_ms`` apart never count together.  When the number of
failures inside the window reaches ``max_attempts`` the identity is locked
for ``lockout_ms``; a successful authentication clears the key.

Usage::

    limiter = LoginRateLimiter(max_attempts=5, window_ms=15 * 60_000, lockout_ms=30 * 60_000)
    if limiter.is_locked("user@example.com"):
        ...
    limiter.record_attempt("user@example.com", success=False)
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field

from newsdesk.logging import get_logger

log = get_logger(__name__)


@dataclass
class RateLimitState:
    attempts: list[float] = field(default_factory=list)
    lockout_until: float | None = None


def normalize_identity(identity: str) -> str:
    return identity.strip().lower()


class LoginRateLimiter:
    """Sliding-window failed-login counter with temporary lockout.

    Never raises.  All public methods hold a lock for their whole
    read-prune-update sequence, so concurrent callers in one process cannot
    slip more than ``max_attempts`` failures past the threshold.
    """

    def __init__(
        self,
        max_attempts: int = 5,
        window_ms: int = 15 * 60_000,
        lockout_ms: int = 30 * 60_000,
    ) -> None:
        self.max_attempts = max_attempts
        self.window_ms = window_ms
        self.lockout_ms = lockout_ms
        self._states: dict[str, RateLimitState] = {}
        self._lock = threading.Lock()
        self._last_sweep = 0.0

    def is_locked(self, key: str) -> bool:
        """Return True while *key* is inside an active lockout."""
        with self._lock:
            now = self._sweep(time.time())
            return self._remaining(normalize_identity(key), now) > 0

    def remaining_lockout_ms(self, key: str) -> int:
        """Milliseconds until *key* may try again (0 when not locked)."""
        with self._lock:
            now = self._sweep(time.time())
            return self._remaining(normalize_identity(key), now)

    def attempts_remaining(self, key: str) -> int:
        """Failures still allowed inside the current window before lockout."""
        with self._lock:
            key = normalize_identity(key)
            now = self._sweep(time.time())
            if self._remaining(key, now) > 0:
                return 0
            state = self._states.get(key)
            used = len(state.attempts) if state else 0
            return max(0, self.max_attempts - used)

    def record_attempt(self, key: str, success: bool) -> None:
        """Record the outcome of an authentication attempt for *key*."""
        with self._lock:
            key = normalize_identity(key)
            now = self._sweep(time.time())

            if success:
                if self._states.pop(key, None) is not None:
                    log.debug("login_attempts_cleared", identity=key)
                return

            # The lock check always comes first: a failure reported while
            # locked is not counted.
            if self._remaining(key, now) > 0:
                log.warning("login_attempt_while_locked", identity=key)
                return

            state = self._states.setdefault(key, RateLimitState())
            state.attempts.append(now)
            if len(state.attempts) >= self.max_attempts:
                state.lockout_until = now + self.lockout_ms / 1000.0
                log.warning(
                    "login_lockout_started",
                    identity=key,
                    attempts=len(state.attempts),
                    lockout_ms=self.lockout_ms,
                )

    def reset(self, key: str | None = None) -> None:
        """Reset limiter state.

        If *key* is provided, only that identity is reset.
        Otherwise all identities are cleared.
        """
        with self._lock:
            if key is None:
                self._states.clear()
            else:
                self._states.pop(normalize_identity(key), None)

    # ------------------------------------------------------------------
    # Internal (caller holds self._lock)
    # ------------------------------------------------------------------

    def _sweep(self, now: float) -> float:
        """Drop every key whose window and lockout have both lapsed, at most once per window."""
        if now - self._last_sweep >= self.window_ms / 1000.0:
            for key in list(self._states):
                self._remaining(key, now)
            self._last_sweep = now
        return now

    def _remaining(self, key: str, now: float) -> int:
        """Prune *key* and return the remaining lockout in milliseconds."""
        state = self._states.get(key)
        if state is None:
            return 0

        if state.lockout_until is not None:
            if now < state.lockout_until:
                return max(1, int(round((state.lockout_until - now) * 1000)))
            # Lockout over: the next attempt starts from a clean slate.
            log.info("login_lockout_expired", identity=key)
            del self._states[key]
            return 0

        cutoff = now - self.window_ms / 1000.0
        state.attempts = [t for t in state.attempts if t > cutoff]
        if not state.attempts:
            del self._states[key]
        return 0
