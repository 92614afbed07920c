# cms_Server_API/app/core/RateLimiting/Rate_Limit.py
# Description: Per-client sliding-window limiter for admin login attempts
#
# Imports
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional
#
# 3rd-party Libraries
from loguru import logger
#
# Local Imports
#
#######################################################################################################################
#
# Functions:

# --- defaults ------------------------------------------------------------- #
WINDOW_SECONDS = 600           # attempts counted per window
MAX_ATTEMPTS   = 5             # failures before the client is blocked
BLOCK_SECONDS  = 1800          # block duration
BACKOFF_BASE_SECONDS = 0.35
BACKOFF_STEP_SECONDS = 0.25
BACKOFF_CAP_SECONDS  = 2.0


@dataclass
class LoginAttemptEntry:
    count: int
    first_at: float
    blocked_until: Optional[float] = None


@dataclass
class RateLimitStatus:
    allowed: bool
    retry_after_seconds: float = 0.0


class LoginRateLimiter:
    """
    Counts failed logins per client identifier, in process memory only.

    A restart forgets everything. Entries disappear on a successful login (`clear`)
    or are reset once their window has elapsed.
    """

    def __init__(self, window_seconds: float = WINDOW_SECONDS, max_attempts: int = MAX_ATTEMPTS,
                 block_seconds: float = BLOCK_SECONDS, clock: Callable[[], float] = time.monotonic):
        self.window_seconds = window_seconds
        self.max_attempts = max_attempts
        self.block_seconds = block_seconds
        self._clock = clock
        self._attempts: Dict[str, LoginAttemptEntry] = {}

    def check(self, client_id: str) -> RateLimitStatus:
        now = self._clock()
        entry = self._attempts.get(client_id)
        if entry is None:
            return RateLimitStatus(allowed=True)

        if entry.blocked_until is not None:
            if entry.blocked_until > now:
                return RateLimitStatus(allowed=False, retry_after_seconds=entry.blocked_until - now)
            # Block served; start over.
            del self._attempts[client_id]
            return RateLimitStatus(allowed=True)

        if now - entry.first_at > self.window_seconds:
            del self._attempts[client_id]
            return RateLimitStatus(allowed=True)

        if entry.count >= self.max_attempts:
            return RateLimitStatus(allowed=False, retry_after_seconds=self.block_seconds)
        return RateLimitStatus(allowed=True)

    def record_failure(self, client_id: str) -> LoginAttemptEntry:
        now = self._clock()
        entry = self._attempts.get(client_id)
        if entry is None or now - entry.first_at > self.window_seconds:
            entry = LoginAttemptEntry(count=0, first_at=now)
            self._attempts[client_id] = entry

        entry.count += 1
        if entry.count >= self.max_attempts:
            entry.blocked_until = now + self.block_seconds
            logger.warning(f"[RateLimit] Login blocked for client {client_id} after {entry.count} failures")
        return entry

    def clear(self, client_id: str) -> None:
        self._attempts.pop(client_id, None)

    def entry(self, client_id: str) -> Optional[LoginAttemptEntry]:
        return self._attempts.get(client_id)


def backoff_seconds(attempt_count: int) -> float:
    """Delay applied before answering a failed login; grows with the attempt count."""
    return max(0.0, BACKOFF_BASE_SECONDS + min(attempt_count * BACKOFF_STEP_SECONDS, BACKOFF_CAP_SECONDS))

#
# End of Rate_Limit.py
#######################################################################################################################
