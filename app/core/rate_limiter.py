"""In-memory per-pair rate limiter for direct messages."""

import logging
import math
import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Dict, Optional, Tuple

logger = logging.getLogger(__name__)

PairKey = Tuple[str, str]


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of a limiter check.

    ``stamp`` is set only when ``acquire`` recorded a slot; pass it back to
    ``release`` if the send it guarded did not persist.
    """

    allowed: bool
    reason: Optional[str] = None
    retry_after: Optional[int] = None
    stamp: Optional[float] = None


class PairRateLimiter:
    """Sliding-window throttle keyed by the ordered (sender, receiver) pair.

    Two windows are enforced: a short one against rapid-fire bursts and a
    long one against sustained flooding. A -> B and B -> A have separate
    budgets, so a capped sender never blocks the other side.
    """

    def __init__(
        self,
        short_limit: int = 5,
        short_window_seconds: float = 10,
        long_limit: int = 60,
        long_window_seconds: float = 3600,
        reset_on_reply: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize rate limiter.

        Args:
            short_limit: Messages allowed per pair inside the short window
            short_window_seconds: Length of the short window
            long_limit: Messages allowed per pair inside the long window
            long_window_seconds: Length of the long window
            reset_on_reply: Clear the long-window history toward a user once they reply
            clock: Monotonic time source in seconds
        """
        self.short_limit = short_limit
        self.short_window_seconds = short_window_seconds
        self.long_limit = long_limit
        self.long_window_seconds = long_window_seconds
        self.reset_on_reply = reset_on_reply
        self._clock = clock
        self._short: Dict[PairKey, Deque[float]] = {}
        self._long: Dict[PairKey, Deque[float]] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _prune(entries: Deque[float], cutoff: float) -> None:
        while entries and entries[0] <= cutoff:
            entries.popleft()

    def _retry_after(self, entries: Deque[float], window: float, now: float) -> int:
        if not entries:
            return 0
        return max(1, math.ceil(entries[0] + window - now))

    def _windows(self, key: PairKey, now: float) -> Tuple[Deque[float], Deque[float]]:
        # Caller holds the lock. Pairs with nothing left in either window are forgotten.
        short = self._short.get(key, deque())
        long = self._long.get(key, deque())
        self._prune(short, now - self.short_window_seconds)
        self._prune(long, now - self.long_window_seconds)
        if not short and not long:
            self._forget(key)
        return short, long

    def _forget(self, key: PairKey) -> None:
        self._short.pop(key, None)
        self._long.pop(key, None)

    @property
    def tracked_pairs(self) -> int:
        """Number of ordered pairs currently holding window history."""
        with self._lock:
            return len(self._short.keys() | self._long.keys())

    def _evaluate(self, key: PairKey, now: float) -> RateLimitDecision:
        # Caller holds the lock.
        short, long = self._windows(key, now)

        if len(short) >= self.short_limit:
            wait = self._retry_after(short, self.short_window_seconds, now)
            return RateLimitDecision(
                allowed=False,
                reason=f"You are sending messages too quickly. Please wait {wait} seconds.",
                retry_after=wait,
            )
        if len(long) >= self.long_limit:
            wait = self._retry_after(long, self.long_window_seconds, now)
            return RateLimitDecision(
                allowed=False,
                reason=(
                    f"You have sent {self.long_limit} messages to this user without a reply. "
                    "Please wait for a reply or try again later."
                ),
                retry_after=wait,
            )
        return RateLimitDecision(allowed=True)

    def check_limit(self, sender_id: str, receiver_id: str) -> RateLimitDecision:
        """Report whether sender may message receiver now, without using a slot."""
        with self._lock:
            return self._evaluate((sender_id, receiver_id), self._clock())

    def acquire(self, sender_id: str, receiver_id: str) -> RateLimitDecision:
        """Atomically check and, when allowed, record one send for the pair."""
        key = (sender_id, receiver_id)
        with self._lock:
            now = self._clock()
            decision = self._evaluate(key, now)
            if not decision.allowed:
                logger.info(f"[RATE] {sender_id} -> {receiver_id} rejected: retry_after={decision.retry_after}s")
                return decision
            self._short.setdefault(key, deque()).append(now)
            self._long.setdefault(key, deque()).append(now)
            return RateLimitDecision(allowed=True, stamp=now)

    def release(self, sender_id: str, receiver_id: str, stamp: Optional[float]) -> None:
        """Give back a slot recorded by ``acquire`` for a send that failed."""
        if stamp is None:
            return
        key = (sender_id, receiver_id)
        with self._lock:
            for window in (self._short.get(key), self._long.get(key)):
                if window is not None and stamp in window:
                    window.remove(stamp)
            if not self._short.get(key) and not self._long.get(key):
                self._forget(key)

    def record_reply(self, replier_id: str, original_sender_id: str) -> None:
        """A reply from replier lifts the long-window cap original_sender had toward them."""
        if not self.reset_on_reply:
            return
        key = (original_sender_id, replier_id)
        with self._lock:
            long = self._long.get(key)
            if long:
                long.clear()
            if not self._short.get(key) and not self._long.get(key):
                self._forget(key)


# Singleton instance - will be initialized with settings
rate_limiter: Optional[PairRateLimiter] = None


def get_rate_limiter() -> PairRateLimiter:
    """Get or create rate limiter instance with settings."""
    global rate_limiter
    if rate_limiter is None:
        from app.config import settings
        rate_limiter = PairRateLimiter(
            short_limit=settings.MESSAGE_RATE_SHORT_LIMIT,
            short_window_seconds=settings.MESSAGE_RATE_SHORT_WINDOW_SECONDS,
            long_limit=settings.MESSAGE_RATE_LONG_LIMIT,
            long_window_seconds=settings.MESSAGE_RATE_LONG_WINDOW_SECONDS,
            reset_on_reply=settings.MESSAGE_RATE_RESET_ON_REPLY,
        )
    return rate_limiter


def set_rate_limiter(limiter: Optional[PairRateLimiter]) -> None:
    """Replace the process-wide limiter (tests and custom deployments)."""
    global rate_limiter
    rate_limiter = limiter
