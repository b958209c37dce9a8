"""
Fixed-window in-memory admission limiter keyed by API key.

Each credential gets its own window, created lazily on its first
request. The window admits ``max_requests`` requests and then denies
until it expires, reporting the remaining time as a retry hint.

Usage (in the request pipeline)::

    limiter = AdmissionLimiter(window_seconds=30, max_requests=1)
    limiter.check(api_key)   # raises RateLimitExceededError when denied

The limiter is best-effort abuse mitigation: state lives in process
memory and is lost on restart.
"""
import asyncio
import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from ..shared.exceptions import RateLimitExceededError

logger = logging.getLogger(__name__)

# Bucket for requests without a credential. Header values cannot contain
# NUL, so no real key can share this bucket.
ANONYMOUS_KEY = "\x00anonymous"


def rate_limit_key(credential: Optional[str]) -> str:
    """Maps a credential to its limiter bucket"""
    return credential if credential else ANONYMOUS_KEY


@dataclass(frozen=True)
class Admission:
    """Outcome of one admission check"""
    allowed: bool
    remaining: int
    retry_after: float = 0.0


class _KeyWindow:
    """Fixed-window counter for a single credential."""

    __slots__ = ("count", "expires_at")

    def __init__(self, expires_at: float) -> None:
        self.count = 0
        self.expires_at = expires_at


class AdmissionLimiter:
    """Per-credential fixed-window limiter.

    Args:
        window_seconds:  Window length in seconds.  Default: 30.
        max_requests:    Requests admitted per window.  Default: 1.
        clock:           Monotonic time source in seconds; tests pass a
                         synthetic clock.
    """

    def __init__(
        self,
        window_seconds: float = 30,
        max_requests: int = 1,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")
        if max_requests < 1:
            raise ValueError("max_requests must be >= 1")

        self.window_seconds = window_seconds
        self.max_requests = max_requests
        self._clock = clock
        self._windows: Dict[str, _KeyWindow] = {}
        # Check-then-increment runs under this lock and never awaits
        self._lock = threading.Lock()
        self._cleanup_task: Optional[asyncio.Task] = None

    def __len__(self) -> int:
        return len(self._windows)

    def __contains__(self, credential: Optional[str]) -> bool:
        return rate_limit_key(credential) in self._windows

    def admit(self, credential: Optional[str]) -> Admission:
        """Counts one request for ``credential`` if its window has room"""
        key = rate_limit_key(credential)

        with self._lock:
            now = self._clock()
            window = self._windows.get(key)

            if window is None or now >= window.expires_at:
                window = _KeyWindow(expires_at=now + self.window_seconds)
                self._windows[key] = window

            if window.count >= self.max_requests:
                return Admission(
                    allowed=False,
                    remaining=0,
                    retry_after=window.expires_at - now,
                )

            window.count += 1
            return Admission(
                allowed=True,
                remaining=self.max_requests - window.count,
            )

    def check(self, credential: Optional[str]) -> Admission:
        """
        Admits the request or raises.

        Raises:
            RateLimitExceededError: window exhausted; carries ``retry_after``
        """
        admission = self.admit(credential)
        if not admission.allowed:
            raise RateLimitExceededError(
                retry_after=admission.retry_after,
                limit=self.max_requests,
                window_seconds=self.window_seconds,
            )
        return admission

    def purge_expired(self) -> int:
        """Drops windows that have expired, returns how many were removed"""
        with self._lock:
            now = self._clock()
            expired = [key for key, window in self._windows.items() if now >= window.expires_at]
            for key in expired:
                del self._windows[key]

        if expired:
            logger.debug(f"Purged {len(expired)} expired rate limit windows")
        return len(expired)

    async def _cleanup_loop(self, interval_seconds: float) -> None:
        while True:
            await asyncio.sleep(interval_seconds)
            self.purge_expired()

    async def start_cleanup_task(self, interval_seconds: float = 60) -> None:
        """Starts periodic purging of expired windows"""
        if self._cleanup_task is None or self._cleanup_task.done():
            self._cleanup_task = asyncio.create_task(self._cleanup_loop(interval_seconds))
            logger.info(f"Rate limit cleanup task started (every {interval_seconds}s)")

    async def stop_cleanup_task(self) -> None:
        task, self._cleanup_task = self._cleanup_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Rate limit cleanup task stopped")
