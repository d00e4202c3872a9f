"""
Time-boxed cache of domain verification results.

Entries are keyed by normalized domain. Freshness is decided lazily on read:
an entry is fresh while ``now - timestamp < ttl``. Stale entries are not
swept; they stay stored until overwritten, evicted by the size bound, or
explicitly cleared.
"""

import time
from collections import OrderedDict
from typing import Callable, Optional

from .models import CacheEntry, CacheStats, VerificationResult


DEFAULT_TTL_SECONDS = 300.0
DEFAULT_MAX_ENTRIES = 10_000


class VerificationCache:
    """
    In-memory verification cache with a TTL and a size bound.

    Not thread-safe; intended to be shared by coroutines on a single event
    loop. When the bound is reached, the least recently written entry is
    evicted.
    """

    def __init__(
        self,
        ttl: float = DEFAULT_TTL_SECONDS,
        max_entries: Optional[int] = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize the cache.

        Args:
            ttl: Freshness window in seconds
            max_entries: Maximum number of stored entries, or None for unbounded
            clock: Monotonic time source (injectable for tests)
        """
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        if max_entries is not None and max_entries < 1:
            raise ValueError("max_entries must be at least 1")

        self._ttl = ttl
        self._max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()

    @property
    def ttl(self) -> float:
        """Freshness window in seconds."""
        return self._ttl

    @property
    def max_entries(self) -> Optional[int]:
        return self._max_entries

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, domain: str) -> bool:
        return self._key(domain) in self._entries

    def get(self, domain: str) -> Optional[CacheEntry]:
        """
        Return the fresh entry for a domain.

        Args:
            domain: Normalized domain

        Returns:
            The entry if present and fresh, None otherwise. A stale entry is
            left in place.
        """
        entry = self._entries.get(self._key(domain))
        if entry is None or not self.is_fresh(entry):
            return None
        return entry

    def set(self, domain: str, result: VerificationResult) -> CacheEntry:
        """Store a result for a domain, stamped with the current clock reading."""
        key = self._key(domain)
        entry = CacheEntry(result=result, timestamp=self._clock())

        self._entries.pop(key, None)
        self._entries[key] = entry

        if self._max_entries is not None:
            while len(self._entries) > self._max_entries:
                self._entries.popitem(last=False)

        return entry

    def delete(self, domain: str) -> bool:
        """Remove one domain; returns True if an entry existed."""
        return self._entries.pop(self._key(domain), None) is not None

    def clear(self, domain: Optional[str] = None) -> None:
        """Remove a single domain's entry, or every entry when domain is None."""
        if domain:
            self.delete(domain)
        else:
            self._entries.clear()

    def is_fresh(self, entry: CacheEntry) -> bool:
        return self._clock() - entry.timestamp < self._ttl

    def stats(self) -> CacheStats:
        """
        Classify every stored entry as valid or expired.

        Computing stats never evicts anything.
        """
        now = self._clock()
        valid = sum(1 for entry in self._entries.values() if now - entry.timestamp < self._ttl)

        return CacheStats(
            total_entries=len(self._entries),
            valid_entries=valid,
            expired_entries=len(self._entries) - valid,
            ttl=self._ttl,
            max_entries=self._max_entries,
        )

    @staticmethod
    def _key(domain: str) -> str:
        return domain.strip().lower()
