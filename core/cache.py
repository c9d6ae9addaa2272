"""
TTL/LRU Cache - bounded in-memory key/value store.

Features:
- Absolute expiry per entry (set time + ttl)
- Least-recently-used eviction when the store is full
- Periodic sweep of expired entries on the running event loop
- Injectable clock so tests can advance time deterministically

The cache is only touched from the event loop thread, so it needs no lock.
Every mutation (including the recency bump on get) completes without
suspending, which keeps recency ordering consistent across interleaved tasks.
"""

import asyncio
import hashlib
import json
import logging
import math
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Dict, Hashable, Optional

log = logging.getLogger(__name__)


# TTL values in seconds
CACHE_TTL = {
    "SHORT": 5 * 60,
    "MEDIUM": 30 * 60,
    "LONG": 24 * 60 * 60,
    "PERMANENT": math.inf,  # Until manually cleared
}


@dataclass
class CacheEntry:
    """A stored value with its timestamps."""
    value: Any
    created_at: float
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class TTLCache:
    """
    Bounded key/value cache with TTL expiry and LRU eviction.

    Usage:
        cache = TTLCache(max_size=1000)
        cache.set("key", value, ttl=60)
        cache.get("key")  # -> value, or None once expired
    """

    DEFAULT_MAX_SIZE = 1000
    DEFAULT_TTL = CACHE_TTL["SHORT"]

    def __init__(
        self,
        max_size: int = DEFAULT_MAX_SIZE,
        default_ttl: float = DEFAULT_TTL,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.max_size = max_size
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: "OrderedDict[Hashable, CacheEntry]" = OrderedDict()
        self._hits = 0
        self._misses = 0
        self._cleanup_task: Optional[asyncio.Task] = None

    def set(self, key: Hashable, value: Any, ttl: Optional[float] = None):
        """Store value at the most-recently-used position."""
        ttl = self.default_ttl if ttl is None else ttl
        if ttl <= 0:
            raise ValueError("ttl must be positive")

        now = self._clock()
        if key in self._entries:
            # Replacing an existing key never displaces another one
            del self._entries[key]
        elif len(self._entries) >= self.max_size:
            evicted, _ = self._entries.popitem(last=False)
            log.debug(f"Cache full, evicted LRU key: {evicted}")

        self._entries[key] = CacheEntry(value=value, created_at=now, expires_at=now + ttl)

    def get(self, key: Hashable, default: Any = None) -> Any:
        """Return the value and refresh its recency, or default on a miss."""
        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
            return default

        if entry.is_expired(self._clock()):
            del self._entries[key]
            self._misses += 1
            return default

        self._entries.move_to_end(key)
        self._hits += 1
        return entry.value

    def has(self, key: Hashable) -> bool:
        """True if key holds an unexpired value. Expired entries are dropped."""
        entry = self._entries.get(key)
        if entry is None:
            return False
        if entry.is_expired(self._clock()):
            del self._entries[key]
            return False
        return True

    def delete(self, key: Hashable) -> bool:
        return self._entries.pop(key, None) is not None

    def clear(self):
        self._entries.clear()

    def size(self) -> int:
        return len(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        return self.has(key)

    def keys(self):
        """Keys in recency order, least-recently-used first."""
        return list(self._entries.keys())

    def cleanup(self) -> int:
        """Remove every expired entry. Returns the number removed."""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def get_stats(self) -> Dict[str, Any]:
        now = self._clock()
        expired = sum(1 for entry in self._entries.values() if entry.is_expired(now))
        lookups = self._hits + self._misses
        return {
            "total_items": len(self._entries),
            "active_items": len(self._entries) - expired,
            "expired_items": expired,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": self._hits / lookups if lookups else 0.0,
            "max_size": self.max_size,
        }

    # ───────────────────────────────────────────────────────────────────────
    # Background sweep
    # ───────────────────────────────────────────────────────────────────────
    @property
    def cleanup_running(self) -> bool:
        return self._cleanup_task is not None and not self._cleanup_task.done()

    def start_cleanup(self, interval: float = 60.0):
        """
        Start the periodic sweep on the running event loop.

        Must be called from inside a coroutine. Restarts the sweep if one is
        already running.
        """
        self.stop_cleanup()
        self._cleanup_task = asyncio.get_running_loop().create_task(self._sweep(interval))

    def stop_cleanup(self):
        if self._cleanup_task is not None:
            self._cleanup_task.cancel()
            self._cleanup_task = None

    async def _sweep(self, interval: float):
        while True:
            await asyncio.sleep(interval)
            removed = self.cleanup()
            if removed:
                log.info(f"Cache cleanup: removed {removed} expired items")


# ═══════════════════════════════════════════════════════════════════════════
# KEY HELPERS
# ═══════════════════════════════════════════════════════════════════════════
def _encode(text: str) -> str:
    return hashlib.md5(text.encode("utf-8")).hexdigest()


def generate_cache_key(service: str, method: str, params: Any = None) -> str:
    """Key for a service call with arbitrary parameters."""
    if isinstance(params, (dict, list)):
        param_string = json.dumps(params, sort_keys=True, default=str)
    else:
        param_string = "" if params is None else str(params)
    return f"{service}_{method}_{_encode(param_string)}"


def generate_location_cache_key(lat: float, lon: float, radius: float = 0) -> str:
    """Key for a coordinate lookup, rounded to 4 decimals (~11m)."""
    return f"location_{round(lat, 4)}_{round(lon, 4)}_{radius}"


def generate_address_cache_key(address: str) -> str:
    """Key for an address lookup, case and whitespace insensitive."""
    collapsed = " ".join(address.lower().split())
    return f"address_{_encode(collapsed)}"
