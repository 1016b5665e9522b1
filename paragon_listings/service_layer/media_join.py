# paragon_listings/service_layer/media_join.py
from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Any

from ..adapters.clients.odata import ODataClient
from ..adapters.clients.odata_filters import (
    media_base_url_length,
    media_url,
    partition_ids_into_filter_batches,
)
from ..adapters.clients.paragon_config import ParagonConfig
from ..domain.media import prepare_media
from ..errors import AuthError, FeedError

log = logging.getLogger(__name__)


@dataclass
class MediaJoinStats:
    batches: int = 0
    failed_batches: int = 0
    media_items: int = 0

    def snapshot(self) -> dict[str, int]:
        return {
            "batches": self.batches,
            "failed_batches": self.failed_batches,
            "media_items": self.media_items,
        }


class MediaJoiner:
    """Attach Media (joined on ResourceRecordKey -> ListingKey) to fetched properties."""

    def __init__(self, client: ODataClient, cfg: ParagonConfig) -> None:
        self.client = client
        self.cfg = cfg
        self.last_stats = MediaJoinStats()

    def build_batches(self, listing_keys: list[str]) -> list[str]:
        return partition_ids_into_filter_batches(
            listing_keys,
            base_url_length=media_base_url_length(self.client.base_url),
            max_url_length=self.cfg.max_url_length,
        )

    async def _fetch_batch(self, filter_expr: str, sem: asyncio.Semaphore, stats: MediaJoinStats) -> list[dict[str, Any]]:
        url = media_url(self.client.base_url, top=self.cfg.max_page_size, filter_expr=filter_expr)
        async with sem:
            try:
                env = await self.client.get_following_pagination(url)
            except (FeedError, AuthError) as e:
                stats.failed_batches += 1
                log.warning("media batch failed (%s, status=%s): %s", type(e).__name__, e.status, e)
                return []
        return env.value

    async def attach_media(self, properties: list[dict[str, Any]], limit: int = 0) -> list[dict[str, Any]]:
        """
        Every input property comes back once, same order, with a `Media` list
        (deduped by MediaKey, ascending Order, missing Order last).
        A failed batch only empties the media of the properties it covered.
        """
        stats = MediaJoinStats()
        self.last_stats = stats
        if not properties:
            return properties

        listing_keys: list[str] = []
        seen: set[str] = set()
        for p in properties:
            key = p.get("ListingKey")
            if not key:
                log.warning("property missing ListingKey (ListingId=%s); no media", p.get("ListingId"))
                continue
            key = str(key)
            if key not in seen:
                seen.add(key)
                listing_keys.append(key)

        by_listing: dict[str, list[dict[str, Any]]] = defaultdict(list)
        if listing_keys:
            batches = self.build_batches(listing_keys)
            stats.batches = len(batches)
            sem = asyncio.Semaphore(max(1, self.cfg.max_concurrent_queries))
            results = await asyncio.gather(*(self._fetch_batch(b, sem, stats) for b in batches))

            # batch completion order doesn't matter: we key by listing, then sort by Order
            for items in results:
                for m in items:
                    owner = m.get("ResourceRecordKey")
                    if owner is None:
                        continue
                    by_listing[str(owner)].append(m)
                    stats.media_items += 1

        for p in properties:
            key = p.get("ListingKey")
            p["Media"] = prepare_media(by_listing.get(str(key), []), limit) if key else []

        log.info(
            "media join: %d properties, %d batches (%d failed), %d items",
            len(properties),
            stats.batches,
            stats.failed_batches,
            stats.media_items,
        )
        return properties
