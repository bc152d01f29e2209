import threading
import time
from typing import Callable, Optional

from cachetools import TTLCache

from unspin.models.extraction import DomainPolicy

Clock = Callable[[], float]


class DomainPolicyStore:
    """Owns every per-origin ``DomainPolicy``.

    Entries live in a TTL cache so idle origins are evicted; any access
    refreshes the entry's lifetime. The map itself is guarded by one lock,
    each policy carries its own locks for read-modify-write sequences.
    """

    def __init__(
        self,
        ttl_seconds: float,
        max_entries: int = 1024,
        clock: Clock = time.monotonic,
    ) -> None:
        self._policies: TTLCache[str, DomainPolicy] = TTLCache(
            maxsize=max_entries, ttl=ttl_seconds, timer=clock
        )
        self._lock = threading.Lock()

    def get(self, origin: str) -> DomainPolicy:
        with self._lock:
            policy = self._policies.get(origin)
            if policy is None:
                policy = DomainPolicy(origin=origin)
            self._policies[origin] = policy
            return policy

    def peek(self, origin: str) -> Optional[DomainPolicy]:
        with self._lock:
            return self._policies.get(origin)

    def sweep(self) -> int:
        """Drop expired origins, returning how many were evicted."""
        with self._lock:
            return len(self._policies.expire())

    def clear(self) -> None:
        with self._lock:
            self._policies.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._policies)


class DomainRateLimiter:
    """Fixed-window request counter keyed by origin."""

    def __init__(
        self,
        store: DomainPolicyStore,
        max_requests: int,
        window_seconds: float,
        clock: Clock = time.monotonic,
    ) -> None:
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._store = store
        self._clock = clock

    def try_acquire(self, origin: str) -> bool:
        """Count one request against ``origin``; False when the window is full."""
        if self.max_requests <= 0:
            return True

        policy = self._store.get(origin)
        now = self._clock()
        with policy.lock:
            if (
                policy.request_count == 0
                or now - policy.window_started_at >= self.window_seconds
            ):
                policy.window_started_at = now
                policy.request_count = 0

            if policy.request_count >= self.max_requests:
                return False

            policy.request_count += 1
            return True

    def retry_after(self, origin: str) -> float:
        """Seconds until ``origin`` gets a fresh window (0 when not throttled)."""
        policy = self._store.peek(origin)
        if policy is None or self.max_requests <= 0:
            return 0.0
        with policy.lock:
            if policy.request_count < self.max_requests:
                return 0.0
            remaining = self.window_seconds - (self._clock() - policy.window_started_at)
        return max(remaining, 0.0)
