"""
Recommendation Cache

Per-instance memo of generated recommendations keyed by (user, limit), with a
fixed time-to-live and early invalidation driven by bus events.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

from ..core.models import CacheEntry, RecommendationResult


DEFAULT_TTL_SECONDS = 300
DEFAULT_MAX_ENTRIES = 10000

Generator = Callable[[str, int], Awaitable[RecommendationResult]]


@dataclass
class CacheStats:
    """Cache performance statistics"""
    hits: int = 0
    misses: int = 0
    total_requests: int = 0
    invalidations: int = 0
    evictions: int = 0

    @property
    def hit_rate(self) -> float:
        return self.hits / max(1, self.total_requests)


class RecommendationCache:
    """
    TTL cache in front of the recommendation generator

    Entries are inserted whole and never mutated; a refresh replaces the
    entry. Model updates do not invalidate anything, so entries computed under
    a previous model are served until they expire or their user is
    invalidated.
    """

    def __init__(
        self,
        generator: Generator,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Optional[Callable[[], float]] = None,
        max_entries: int = DEFAULT_MAX_ENTRIES
    ):
        """
        Args:
            generator: Coroutine function ``(user_id, limit) -> RecommendationResult``
            ttl_seconds: Entry lifetime from insertion
            clock: Time source, epoch seconds
            max_entries: Size bound; the oldest entries are evicted past it
        """
        self.generator = generator
        self.ttl_seconds = ttl_seconds
        self.clock = clock or time.time
        self.max_entries = max_entries

        self.entries: Dict[Tuple[str, int], CacheEntry] = {}
        self._last_sweep: Optional[float] = None
        self.stats = CacheStats()
        self.logger = logging.getLogger(__name__)

    def _is_fresh(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.inserted_at < self.ttl_seconds

    def get(self, user_id: str, limit: int) -> Optional[RecommendationResult]:
        """Return the cached result if present and unexpired"""
        key = (user_id, limit)
        entry = self.entries.get(key)
        if entry is None:
            return None
        if not self._is_fresh(entry, self.clock()):
            del self.entries[key]
            return None
        return entry.result

    async def get_or_generate(
        self,
        user_id: str,
        limit: int = 10,
        force_refresh: bool = False
    ) -> RecommendationResult:
        """
        Serve from cache, or generate and store

        Args:
            user_id: User identifier
            limit: Number of recommendations
            force_refresh: Bypass any cached entry

        Returns:
            Recommendation result; failed results are returned but not cached
        """
        self.stats.total_requests += 1

        if not force_refresh:
            cached = self.get(user_id, limit)
            if cached is not None:
                self.stats.hits += 1
                self.logger.debug(f"Returning cached recommendations for user {user_id}")
                return cached

        self.stats.misses += 1
        result = await self.generator(user_id, limit)

        if result.success:
            key = (user_id, limit)
            now = self.clock()
            self._evict_if_needed(now)
            self.entries[key] = CacheEntry(key=key, result=result, inserted_at=now)

        return result

    def _evict_if_needed(self, now: float):
        """Sweep expired entries once per TTL period, then drop the oldest 10% if still full"""
        if self._last_sweep is None:
            self._last_sweep = now
        elif now - self._last_sweep >= self.ttl_seconds:
            self._last_sweep = now
            self._purge_expired(now)

        if len(self.entries) >= self.max_entries:
            oldest = sorted(self.entries.items(), key=lambda item: item[1].inserted_at)
            num_to_remove = max(1, len(oldest) // 10)
            for key, _ in oldest[:num_to_remove]:
                del self.entries[key]
            self.stats.evictions += num_to_remove

    def invalidate_user(self, user_id: str, before: Optional[float] = None) -> int:
        """
        Drop a user's entries for every limit

        Args:
            user_id: User whose entries to drop
            before: When given, only entries inserted before this time are dropped

        Returns:
            Number of entries removed
        """
        keys_to_delete = [
            key for key, entry in self.entries.items()
            if key[0] == user_id and (before is None or entry.inserted_at < before)
        ]

        for key in keys_to_delete:
            del self.entries[key]

        self.stats.invalidations += len(keys_to_delete)
        self.logger.debug(f"Invalidated {len(keys_to_delete)} cache entries for user {user_id}")
        return len(keys_to_delete)

    def purge_expired(self) -> int:
        return self._purge_expired(self.clock())

    def _purge_expired(self, now: float) -> int:
        expired = [key for key, entry in self.entries.items() if not self._is_fresh(entry, now)]
        for key in expired:
            del self.entries[key]
        self.stats.evictions += len(expired)
        return len(expired)

    def clear(self):
        self.entries.clear()

    def get_stats(self) -> Dict[str, Any]:
        """Get cache performance statistics"""
        return {
            "hit_rate": self.stats.hit_rate,
            "total_requests": self.stats.total_requests,
            "hits": self.stats.hits,
            "misses": self.stats.misses,
            "invalidations": self.stats.invalidations,
            "evictions": self.stats.evictions,
            "size": len(self.entries),
            "ttl_seconds": self.ttl_seconds
        }
