"""
Mission Cache

In-memory, content-addressable store mapping normalized mission text to the
event sequence recorded for it.

Eviction is strict insertion order (FIFO): once the store is full, inserting
a new key drops the oldest inserted entry. Hit counters are informational
and never influence eviction. Overwriting an existing key keeps its original
insertion position.

All operations are synchronous, so interleaved coroutines on one event loop
cannot observe a half-applied update.
"""

import hashlib
import re
import time
from dataclasses import dataclass
from typing import Any, Callable

import structlog

logger = structlog.get_logger()

DEFAULT_MAX_ENTRIES = 100
DEFAULT_TTL_SECONDS = 60 * 60 * 24

_WHITESPACE = re.compile(r"\s+")


def normalize_mission(mission: str) -> str:
    """Lowercase, trim and collapse internal whitespace."""
    return _WHITESPACE.sub(" ", mission.lower().strip())


@dataclass
class CacheEntry:
    key: str
    response: Any
    stored_at: float
    hits: int = 0


@dataclass
class CacheStats:
    size: int
    valid_entries: int
    total_hits: int
    max_entries: int
    ttl_seconds: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "size": self.size,
            "validEntries": self.valid_entries,
            "totalHits": self.total_hits,
            "maxSize": self.max_entries,
            "ttl": self.ttl_seconds,
        }


class MissionCache:
    """FIFO-evicting mission cache with per-entry time-to-live."""

    def __init__(
        self,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self.logger = logger.bind(component="mission_cache")

    def key(self, mission: str) -> str:
        """SHA-256 hex digest of the normalized mission text."""
        return hashlib.sha256(normalize_mission(mission).encode("utf-8")).hexdigest()

    def get(self, mission: str) -> Any | None:
        """Return the stored response, or None if absent or expired (expired entries are dropped)."""
        key = self.key(mission)
        entry = self._entries.get(key)
        if entry is None:
            return None

        if self._is_expired(entry):
            del self._entries[key]
            self.logger.debug("cache.expired", key=key[:12])
            return None

        entry.hits += 1
        return entry.response

    def set(self, mission: str, response: Any) -> None:
        key = self.key(mission)
        if key not in self._entries and len(self._entries) >= self.max_entries:
            oldest_key = next(iter(self._entries))
            del self._entries[oldest_key]
            self.logger.debug("cache.evicted", key=oldest_key[:12])

        self._entries[key] = CacheEntry(key=key, response=response, stored_at=self._clock())

    def invalidate(self, mission: str) -> bool:
        """Drop the entry for a mission. Returns True if one existed."""
        return self._entries.pop(self.key(mission), None) is not None

    def clear(self) -> None:
        self._entries.clear()

    def clean_expired(self) -> int:
        """Remove every expired entry and return how many were removed."""
        expired = [key for key, entry in self._entries.items() if self._is_expired(entry)]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def stats(self) -> CacheStats:
        valid = [entry for entry in self._entries.values() if not self._is_expired(entry)]
        return CacheStats(
            size=len(self._entries),
            valid_entries=len(valid),
            total_hits=sum(entry.hits for entry in valid),
            max_entries=self.max_entries,
            ttl_seconds=self.ttl_seconds,
        )

    def __contains__(self, mission: str) -> bool:
        return self.key(mission) in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def _is_expired(self, entry: CacheEntry) -> bool:
        return self._clock() - entry.stored_at > self.ttl_seconds
