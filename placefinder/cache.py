"""In-memory result cache keyed by filter fingerprints."""
from __future__ import annotations

import copy
import hashlib
import json
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from . import config
from .geo import location_bucket
from .models import FilterSpec, Location

logger = logging.getLogger(__name__)

_UNSET = object()


def make_fingerprint(spec: FilterSpec, location_grid: Any = _UNSET) -> str:
    """Deterministic key over every filterable field plus a coarse location bucket.

    Pass location_grid=None to leave location out of the key entirely.
    """
    grid = config.CACHE_LOCATION_GRID_DEG if location_grid is _UNSET else location_grid
    payload: Dict[str, Any] = dict(spec.filterable_fields())
    if grid is not None:
        center = spec.user_location or Location(*config.DEFAULT_CENTER)
        bucket = location_bucket(center, grid)
        payload["locationBucket"] = list(bucket) if bucket is not None else None
    raw = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


@dataclass
class CacheEntry:
    value: Any
    created_at: float
    ttl: float


class ResultCache:
    def __init__(
        self,
        max_entries: int = 1000,
        default_ttl: float = 600.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self.max_entries = int(max_entries)
        self.default_ttl = float(default_ttl)
        self.clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    @classmethod
    def from_config(cls) -> "ResultCache":
        return cls(max_entries=config.CACHE_MAX_ENTRIES, default_ttl=config.CACHE_TTL_SECONDS)

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                logger.debug("Cache miss %s", key[:12])
                return None
            if self.clock() - entry.created_at > entry.ttl:
                del self._entries[key]
                self._misses += 1
                logger.debug("Cache entry %s expired", key[:12])
                return None
            self._hits += 1
            logger.debug("Cache hit %s", key[:12])
            return copy.deepcopy(entry.value)

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        entry = CacheEntry(
            value=copy.deepcopy(value),
            created_at=self.clock(),
            ttl=self.default_ttl if ttl is None else float(ttl),
        )
        with self._lock:
            if key not in self._entries and len(self._entries) >= self.max_entries:
                oldest = min(self._entries, key=lambda k: self._entries[k].created_at)
                del self._entries[oldest]
                logger.debug("Cache full, evicted %s", oldest[:12])
            self._entries[key] = entry

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            total = self._hits + self._misses
            return {
                "hits": self._hits,
                "misses": self._misses,
                "total_requests": total,
                "hit_rate": (self._hits / total) if total else 0.0,
                "size": len(self._entries),
            }

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
