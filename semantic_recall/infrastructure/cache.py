from __future__ import annotations

import hashlib
import threading
import time
from typing import Callable, Dict, Optional

from ..domain.models import CacheEntry
from .logging import get_logger

logger = get_logger("semantic_recall.cache")

DEFAULT_TTL_SECONDS = 24 * 60 * 60
DEFAULT_MAX_ENTRIES = 1000
DEFAULT_EVICT_COUNT = 500
DEFAULT_PROVIDER_KEY = "default"
_BYTES_PER_FLOAT = 8


def normalize_text(text: str) -> str:
    return " ".join(str(text).split())


def cache_key(text: str, provider: Optional[str] = None) -> str:
    """Key for (requested provider or "default", normalized text)."""
    raw = f"{provider or DEFAULT_PROVIDER_KEY}:{normalize_text(text)}"
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


class EmbeddingCache:
    """Thread-safe in-memory embedding cache with TTL expiry and a size ceiling.

    Two independent eviction triggers run after every insert:
    - expiry: entries older than ``ttl_seconds`` are removed;
    - capacity: when more than ``max_entries`` remain, the ``evict_count``
      oldest entries (by creation time) are removed regardless of expiry.

    Expired entries are never returned, even before a sweep removes them.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        evict_count: int = DEFAULT_EVICT_COUNT,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.ttl_seconds = float(ttl_seconds)
        self.max_entries = int(max_entries)
        self.evict_count = int(evict_count)
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def now(self) -> float:
        return self._clock()

    def _is_live(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.created_at < self.ttl_seconds

    def get(self, key: str) -> Optional[CacheEntry]:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or not self._is_live(entry, now):
                self._misses += 1
                return None
            self._hits += 1
            return entry

    def contains_valid(self, key: str) -> bool:
        """Like get() but without touching hit/miss counters."""
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            return entry is not None and self._is_live(entry, now)

    def put(self, key: str, entry: CacheEntry) -> None:
        with self._lock:
            # Re-insert so a rewritten key moves to the end of insertion order.
            self._entries.pop(key, None)
            self._entries[key] = entry
        self.evict_expired()
        self.evict_oldest_if_oversized()

    def evict_expired(self) -> int:
        now = self._clock()
        with self._lock:
            stale = [k for k, e in self._entries.items() if not self._is_live(e, now)]
            for k in stale:
                del self._entries[k]
        if stale:
            logger.debug("Cache expiry sweep | removed=%d", len(stale))
        return len(stale)

    def evict_oldest_if_oversized(self, max_size: Optional[int] = None) -> int:
        ceiling = self.max_entries if max_size is None else int(max_size)
        with self._lock:
            if len(self._entries) <= ceiling:
                return 0
            # sorted() is stable, so equal timestamps keep insertion order
            oldest = sorted(self._entries.items(), key=lambda kv: kv[1].created_at)[: self.evict_count]
            for k, _ in oldest:
                del self._entries[k]
            remaining = len(self._entries)
        logger.info("Cache capacity sweep | removed=%d | remaining=%d", len(oldest), remaining)
        return len(oldest)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def entries(self) -> Dict[str, CacheEntry]:
        with self._lock:
            return dict(self._entries)

    def statistics(self) -> Dict[str, object]:
        now = self._clock()
        with self._lock:
            entries = list(self._entries.values())
            lookups = self._hits + self._misses
            hit_rate = self._hits / lookups if lookups else 0.0
        breakdown: Dict[str, int] = {}
        floats = 0
        valid = 0
        for e in entries:
            if self._is_live(e, now):
                valid += 1
            breakdown[e.provider] = breakdown.get(e.provider, 0) + 1
            floats += len(e.vector)
        return {
            "total_entries": len(entries),
            "valid_entries": valid,
            "hit_rate": hit_rate,
            "memory_usage": f"{floats * _BYTES_PER_FLOAT / 1024 / 1024:.2f} MB",
            "provider_breakdown": breakdown,
        }
