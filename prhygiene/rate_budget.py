"""Request quota and concurrency bookkeeping shared by every worker thread."""

import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Iterator, Mapping, Optional

from .errors import AnalysisAborted, QuotaExhausted

# Static quota estimates used until GitHub reports the real values
AUTHENTICATED_REQUESTS_PER_HOUR = 5000
ANONYMOUS_REQUESTS_PER_HOUR = 60
QUOTA_WINDOW_SECONDS = 3600

DEFAULT_MAX_CONCURRENT_REQUESTS = 30
DEFAULT_MAX_WAIT_SECONDS = 900


@dataclass(frozen=True)
class RateLimitInfo:
    """GitHub API rate limit information extracted from response headers."""
    limit: int
    remaining: int
    reset_timestamp: float
    used: int = 0

    @property
    def is_exceeded(self) -> bool:
        return self.remaining == 0

    @classmethod
    def from_headers(cls, headers: Mapping[str, str]) -> Optional['RateLimitInfo']:
        """Parse the X-RateLimit-* headers of a response.

        Args:
            headers: Response headers (case-insensitive mapping from requests)

        Returns:
            RateLimitInfo if the headers are present and well-formed, None otherwise
        """
        if not headers or 'X-RateLimit-Remaining' not in headers:
            return None

        try:
            return cls(
                limit=int(headers.get('X-RateLimit-Limit', 0)),
                remaining=int(headers['X-RateLimit-Remaining']),
                reset_timestamp=float(headers.get('X-RateLimit-Reset', 0)),
                used=int(headers.get('X-RateLimit-Used', 0)),
            )
        except (ValueError, TypeError) as e:
            logging.debug(f"Could not parse rate limit headers: {e}")
            return None


@dataclass(frozen=True)
class Permit:
    """Proof that a caller holds one in-flight request slot."""
    id: int
    acquired_at: float


class RateBudgetGuard:
    """Gates every outgoing request on the remaining quota and a concurrency ceiling.

    The concurrency ceiling is a bounded semaphore; the quota counters are
    guarded by a single condition variable and are the only state shared
    between worker threads.
    """

    def __init__(
        self,
        requests_per_window: int = AUTHENTICATED_REQUESTS_PER_HOUR,
        max_concurrent_requests: int = DEFAULT_MAX_CONCURRENT_REQUESTS,
        max_wait_seconds: float = DEFAULT_MAX_WAIT_SECONDS,
        window_seconds: float = QUOTA_WINDOW_SECONDS,
        clock: Callable[[], float] = time.time
    ):
        """Initialize the guard.

        Args:
            requests_per_window: Quota estimate used until headers report the real one
            max_concurrent_requests: Ceiling of requests in flight at the same time
            max_wait_seconds: Longest acceptable wait for a quota reset
            window_seconds: Length of the quota window
            clock: Wall-clock source in epoch seconds (reset headers are epoch based)
        """
        self.max_concurrent_requests = max_concurrent_requests
        self.max_wait_seconds = max_wait_seconds
        self.window_seconds = window_seconds
        self._clock = clock

        self._slots = threading.BoundedSemaphore(max_concurrent_requests)
        self._condition = threading.Condition()
        self._limit = requests_per_window
        self._remaining = requests_per_window
        self._reset_at = clock() + window_seconds
        self._paused_until = 0.0
        self._issued = 0
        self._cancelled = False

    @property
    def remaining(self) -> int:
        with self._condition:
            return self._remaining

    @property
    def reset_at(self) -> float:
        with self._condition:
            return self._reset_at

    def acquire(self) -> Permit:
        """Block until a request may be issued.

        Returns:
            A permit that must be handed back through release()

        Raises:
            QuotaExhausted: If the quota reset is further away than max_wait_seconds
            AnalysisAborted: If the guard was cancelled
        """
        self._slots.acquire()
        try:
            with self._condition:
                while True:
                    if self._cancelled:
                        raise AnalysisAborted("Analysis aborted; no further requests are issued")
                    now = self._clock()
                    wait = self._required_wait(now)
                    if wait <= 0:
                        break
                    if wait > self.max_wait_seconds:
                        raise QuotaExhausted(
                            f"Request quota exhausted; reset is {wait:.0f}s away "
                            f"(limit for waiting is {self.max_wait_seconds:.0f}s)"
                        )
                    logging.warning(f"Request quota exhausted, waiting {wait:.1f}s for reset")
                    self._condition.wait(timeout=wait)

                self._remaining -= 1
                self._issued += 1
                return Permit(id=self._issued, acquired_at=now)
        except BaseException:
            self._slots.release()
            raise

    def release(self, permit: Permit):
        """Return the in-flight slot held by permit."""
        self._slots.release()
        logging.debug(f"Released request permit #{permit.id}")

    @contextmanager
    def slot(self) -> Iterator[Permit]:
        """Hold a request slot for the duration of the with-block."""
        permit = self.acquire()
        try:
            yield permit
        finally:
            self.release(permit)

    def cancel(self):
        """Fail every waiting and future acquisition with AnalysisAborted."""
        with self._condition:
            self._cancelled = True
            self._condition.notify_all()

    def update(self, info: Optional[RateLimitInfo]):
        """Refresh the quota window from headers returned by GitHub."""
        if info is None:
            return

        with self._condition:
            if info.reset_timestamp and info.reset_timestamp != self._reset_at:
                # New window reported by the server
                self._reset_at = info.reset_timestamp
                self._remaining = info.remaining
            else:
                # Same window: requests still in flight are not yet reflected by the server
                self._remaining = min(self._remaining, info.remaining)
            if info.limit:
                self._limit = info.limit
            self._condition.notify_all()

    def pause_until(self, reset_at: float):
        """Suspend every acquisition until reset_at (epoch seconds)."""
        with self._condition:
            self._paused_until = max(self._paused_until, reset_at)
            self._remaining = 0
            self._reset_at = reset_at
            self._condition.notify_all()
        logging.warning(f"Rate limited by GitHub, pausing requests for {max(0.0, reset_at - self._clock()):.0f}s")

    def _required_wait(self, now: float) -> float:
        """Seconds the caller must wait before issuing a request (caller holds the lock)."""
        if now < self._paused_until:
            return self._paused_until - now

        if now >= self._reset_at:
            # Window rolled over without a header telling us so
            self._remaining = self._limit
            self._reset_at = now + self.window_seconds

        if self._remaining <= 0:
            return self._reset_at - now

        return 0.0
