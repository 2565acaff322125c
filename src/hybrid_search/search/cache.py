"""Bounded TTL cache for search responses and suggestion lists."""

import time
from collections import OrderedDict
from typing import Any, Dict, FrozenSet, Iterable, Optional, Tuple

from ..config.logging import get_logger

# Tag for entries not scoped to specific entity types
ALL_TYPES = "*"


class ResultCache:
    """LRU cache with per-entry expiry and tag-based invalidation.

    Entries are tagged with the entity types they cover so a write to one
    entity type drops only the affected entries; untyped entries carry
    ``ALL_TYPES`` and are dropped by any write.
    """

    def __init__(self, max_entries: int = 1000, ttl_seconds: int = 300, name: str = "results"):
        """Initialize result cache.

        Args:
            max_entries: Maximum number of cached entries
            ttl_seconds: Time to live for cached entries
            name: Cache name used in logs
        """
        self.max_entries = max_entries
        self.ttl = ttl_seconds
        self.name = name
        self._entries: "OrderedDict[str, Tuple[float, FrozenSet[str], Any]]" = OrderedDict()
        self.hits = 0
        self.misses = 0
        self.logger = get_logger(__name__, cache=name)

    def get(self, key: str) -> Optional[Any]:
        """Return a cached value, or None when missing or expired."""
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            return None

        stored_at, _, value = entry
        if time.monotonic() - stored_at > self.ttl:
            del self._entries[key]
            self.misses += 1
            return None

        self._entries.move_to_end(key)
        self.hits += 1
        self.logger.debug("Cache hit", key=key[:8])
        return value

    def set(self, key: str, value: Any, tags: Optional[Iterable[str]] = None) -> None:
        tag_set = frozenset(tags) if tags else frozenset([ALL_TYPES])
        self._entries[key] = (time.monotonic(), tag_set, value)
        self._entries.move_to_end(key)

        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def invalidate(self, entity_type: str) -> int:
        """Drop entries covering ``entity_type`` and all untyped entries."""
        stale = [
            key
            for key, (_, tags, _) in self._entries.items()
            if entity_type in tags or ALL_TYPES in tags
        ]
        for key in stale:
            del self._entries[key]

        if stale:
            self.logger.debug(
                "Cache invalidated", entity_type=entity_type, removed=len(stale)
            )
        return len(stale)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def get_stats(self) -> Dict[str, Any]:
        total = self.hits + self.misses
        return {
            "name": self.name,
            "entries": len(self._entries),
            "max_entries": self.max_entries,
            "ttl_seconds": self.ttl,
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": self.hits / total if total else 0.0,
        }
