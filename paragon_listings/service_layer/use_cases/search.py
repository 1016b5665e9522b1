# paragon_listings/service_layer/use_cases/search.py
from __future__ import annotations

import logging
from typing import Any, Mapping

from ...domain.search import apply_filters, cache_key, parse_filters, parse_search_mode
from ..properties import PropertyQueryService
from ..response_cache import ResponseCache

log = logging.getLogger(__name__)


async def run_search(
    service: PropertyQueryService,
    params: Mapping[str, Any],
    *,
    cache: ResponseCache | None = None,
    include_media: bool = True,
) -> list[dict[str, Any]]:
    """
    Inbound query params -> one search mode -> (cached) feed result -> in-memory filters.
    The cache holds the unfiltered result, so price/room/type filters reuse it.
    """
    mode = parse_search_mode(params)
    filters = parse_filters(params)

    async def _compute() -> list[dict[str, Any]]:
        return await service.search(mode, include_media=include_media)

    if cache is not None:
        properties = await cache.get_or_compute(cache_key(mode, include_media=include_media), _compute)
    else:
        properties = await _compute()

    out = apply_filters(properties, filters)
    log.info("search %s: %d fetched, %d after filters", type(mode).__name__, len(properties), len(out))
    return out
