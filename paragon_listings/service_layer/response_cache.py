# paragon_listings/service_layer/response_cache.py
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from ..adapters.kv_store import KeyValueStore

log = logging.getLogger(__name__)

Compute = Callable[[], Awaitable[Any]]


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    errors: int = 0

    def snapshot(self) -> dict[str, int]:
        return {"hits": self.hits, "misses": self.misses, "errors": self.errors}


class ResponseCache:
    """
    Read-through JSON cache in front of the query service.
    Entries are computed whole and overwritten, never updated in place.
    A broken cache never fails a request; it just stops caching.
    """

    def __init__(self, store: KeyValueStore, *, ttl_s: int = 300, enabled: bool = True) -> None:
        self.store = store
        self.ttl_s = ttl_s
        self.enabled = enabled
        self.stats = CacheStats()

    async def _read(self, key: str) -> tuple[bool, Any]:
        try:
            raw = await self.store.get(key)
        except Exception as e:
            self.stats.errors += 1
            log.warning("cache read failed for %s: %s", key, e)
            return False, None
        if raw is None:
            return False, None
        try:
            return True, json.loads(raw)
        except ValueError:
            self.stats.errors += 1
            log.warning("corrupt cache entry for %s; recomputing", key)
            return False, None

    async def _write(self, key: str, value: Any) -> None:
        try:
            await self.store.set(key, json.dumps(value, default=str), ttl_s=self.ttl_s)
        except Exception as e:
            self.stats.errors += 1
            log.warning("cache write failed for %s: %s", key, e)

    async def get_or_compute(self, key: str, compute: Compute) -> Any:
        if not self.enabled:
            return await compute()

        hit, value = await self._read(key)
        if hit:
            self.stats.hits += 1
            log.debug("cache hit %s", key)
            return value

        self.stats.misses += 1
        value = await compute()
        await self._write(key, value)
        return value
