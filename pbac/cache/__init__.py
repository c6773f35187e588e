"""Decision cache.

Keys cover principal identity, the principal's resolved targets, action,
resolved resource identity and the request context, so a membership change
yields a new key. Writers (rule index, type registry) invalidate the cache
synchronously through change listeners. Every invalidation bumps a
generation counter; a decision computed under an older generation is never
stored.
"""

from __future__ import annotations

import hashlib
import json
import threading
import time
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, Field


def canonical(value: Any) -> Any:
    """JSON-safe, order-independent form of a key component.

    Mapping keys are compared by their repr, so mixed key types never
    have to be ordered against each other.
    """
    if isinstance(value, Mapping):
        items = [[repr(k), canonical(v)] for k, v in value.items()]
        return sorted(items, key=lambda item: item[0])
    if isinstance(value, (list, tuple)):
        return [canonical(v) for v in value]
    if isinstance(value, (set, frozenset)):
        return sorted((canonical(v) for v in value), key=repr)
    return repr(value)


class CacheEntry(BaseModel):
    """A cached decision."""

    key: str
    value: Any
    principal: tuple[str, str]
    created_at: float = Field(default_factory=time.time)
    expires_at: float | None = None
    hit_count: int = 0


class CacheStats(BaseModel):
    """Cache statistics."""

    total_entries: int = 0
    total_hits: int = 0
    total_misses: int = 0
    hit_rate: float = 0.0
    invalidations: int = 0


class DecisionCache:
    """In-memory TTL cache of access decisions."""

    def __init__(
        self,
        ttl_seconds: int = 60 * 60 * 24,
        max_entries: int = 10000,
        key_prefix: str = "pbac:",
    ):
        self.ttl = ttl_seconds
        self.max_entries = max_entries
        self.key_prefix = key_prefix
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._invalidations = 0
        self._generation = 0

    def make_key(
        self,
        principal_type: str,
        principal_id: Any,
        action: str,
        resource_type: str | None,
        resource_id: Any,
        context: Mapping[str, Any],
        targets: Mapping[str, Any] | None = None,
    ) -> str:
        key_str = json.dumps(
            canonical(
                [principal_type, principal_id, action, resource_type, resource_id, context, targets or {}]
            )
        )
        return self.key_prefix + hashlib.sha256(key_str.encode()).hexdigest()[:32]

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            if entry.expires_at is not None and entry.expires_at < time.time():
                del self._entries[key]
                self._misses += 1
                return None
            entry.hit_count += 1
            self._hits += 1
            return entry.value

    @property
    def generation(self) -> int:
        """Incremented by every invalidation."""
        return self._generation

    def set(
        self,
        key: str,
        value: Any,
        principal_type: str,
        principal_id: Any,
        generation: int | None = None,
    ) -> bool:
        """Store a decision. Returns False if an invalidation happened since `generation`."""
        expires_at = time.time() + self.ttl if self.ttl > 0 else None
        with self._lock:
            if generation is not None and generation != self._generation:
                return False
            self._evict_if_needed()
            self._entries[key] = CacheEntry(
                key=key,
                value=value,
                principal=(principal_type, str(principal_id)),
                expires_at=expires_at,
            )
        return True

    def _evict_if_needed(self) -> None:
        if len(self._entries) < self.max_entries:
            return
        now = time.time()
        expired = [k for k, v in self._entries.items() if v.expires_at and v.expires_at < now]
        for key in expired:
            del self._entries[key]
        if len(self._entries) >= self.max_entries:
            oldest = min(self._entries.values(), key=lambda e: e.created_at)
            del self._entries[oldest.key]

    def invalidate_all(self) -> None:
        with self._lock:
            self._entries.clear()
            self._invalidations += 1
            self._generation += 1

    def invalidate_principal(self, principal_type: str, principal_id: Any) -> int:
        """Drop every decision for one principal. Returns the number removed."""
        principal = (principal_type, str(principal_id))
        with self._lock:
            stale = [k for k, v in self._entries.items() if v.principal == principal]
            for key in stale:
                del self._entries[key]
            self._invalidations += 1
            self._generation += 1
        return len(stale)

    def get_stats(self) -> CacheStats:
        with self._lock:
            total = self._hits + self._misses
            return CacheStats(
                total_entries=len(self._entries),
                total_hits=self._hits,
                total_misses=self._misses,
                hit_rate=self._hits / total if total else 0.0,
                invalidations=self._invalidations,
            )

    def __len__(self) -> int:
        return len(self._entries)


__all__ = ["CacheEntry", "CacheStats", "DecisionCache"]
