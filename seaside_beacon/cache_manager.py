"""
Cache Store for Seaside Beacon

In-memory Last Known Good (LKG) storage, one store per provider endpoint.
Keeps serving SOME data when an upstream is down.

Per key, two independent records:
- CacheEntry:   last successful payload + fetch time (replaced whole, never patched)
- FailureEntry: time of the last exhausted retry chain (short TTL, negative cache)

States:
- EMPTY:         nothing cached, eligible for fetch
- FRESH:         entry younger than the store TTL
- STALE:         entry past TTL, retained until overwritten
- FAILED_RECENT: failure recorded within the failure TTL
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Hashable, Optional

logger = logging.getLogger(__name__)

# Suppresses upstream hammering after exhausted retries
DEFAULT_FAILURE_TTL_SECONDS = 90.0


class KeyState(Enum):
    """Lifecycle state of one cache key."""
    EMPTY = "EMPTY"
    FETCHING = "FETCHING"
    FRESH = "FRESH"
    STALE = "STALE"
    FAILED_RECENT = "FAILED_RECENT"


@dataclass(frozen=True)
class CacheEntry:
    """Cached payload with its fetch time (clock seconds)."""
    payload: Any
    fetched_at: float


@dataclass(frozen=True)
class FailureEntry:
    """Negative cache record."""
    failed_at: float


class CacheStore:
    """
    Positive + negative cache for a single provider endpoint.

    The TTL is fixed per store and should match how often the upstream
    actually publishes new data. The clock is injectable so tests can
    move time without sleeping.
    """

    def __init__(
        self,
        name: str,
        ttl_seconds: float,
        failure_ttl_seconds: float = DEFAULT_FAILURE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self.ttl_seconds = ttl_seconds
        self.failure_ttl_seconds = failure_ttl_seconds
        self._clock = clock
        self._entries: Dict[Hashable, CacheEntry] = {}
        self._failures: Dict[Hashable, FailureEntry] = {}

    def now(self) -> float:
        return self._clock()

    def age_seconds(self, entry: CacheEntry) -> float:
        return self._clock() - entry.fetched_at

    def is_fresh(self, entry: CacheEntry) -> bool:
        return self.age_seconds(entry) < self.ttl_seconds

    def get_fresh(self, key: Hashable) -> Optional[CacheEntry]:
        """Entry for key if still within TTL, else None."""
        entry = self._entries.get(key)
        if entry is not None and self.is_fresh(entry):
            return entry
        return None

    def get_any(self, key: Hashable) -> Optional[CacheEntry]:
        """Entry for key regardless of age (stale fallback)."""
        return self._entries.get(key)

    def put(self, key: Hashable, payload: Any) -> CacheEntry:
        """Store a successful payload and clear any failure record."""
        entry = CacheEntry(payload=payload, fetched_at=self._clock())
        self._entries[key] = entry
        if self._failures.pop(key, None) is not None:
            logger.debug(f"[CacheStore:{self.name}] Failure cleared for {key}")
        return entry

    def record_failure(self, key: Hashable) -> FailureEntry:
        failure = FailureEntry(failed_at=self._clock())
        self._failures[key] = failure
        logger.debug(
            f"[CacheStore:{self.name}] Failure recorded for {key} "
            f"(suppressing retries for {self.failure_ttl_seconds:.0f}s)"
        )
        return failure

    def recent_failure(self, key: Hashable) -> Optional[FailureEntry]:
        """Failure record for key if still within the failure TTL."""
        failure = self._failures.get(key)
        if failure is None:
            return None
        if self._clock() - failure.failed_at < self.failure_ttl_seconds:
            return failure
        # Expired: back to EMPTY-equivalent for retry purposes
        del self._failures[key]
        return None

    def state(self, key: Hashable) -> KeyState:
        if self.recent_failure(key) is not None:
            return KeyState.FAILED_RECENT
        entry = self._entries.get(key)
        if entry is None:
            return KeyState.EMPTY
        return KeyState.FRESH if self.is_fresh(entry) else KeyState.STALE

    def invalidate(self, key: Hashable) -> None:
        self._entries.pop(key, None)
        self._failures.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()
        self._failures.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        return key in self._entries
