# paragon_listings/domain/media.py
from __future__ import annotations

from typing import Any

from .parsing import to_float


def dedupe_media(items: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Keep the first item seen for each MediaKey. Items without a MediaKey are kept as-is."""
    seen: set[str] = set()
    out: list[dict[str, Any]] = []
    for m in items:
        key = m.get("MediaKey")
        if key is None:
            out.append(m)
            continue
        k = str(key)
        if k in seen:
            continue
        seen.add(k)
        out.append(m)
    return out


def _order_sort_key(m: dict[str, Any]) -> tuple[int, float]:
    order = to_float(m.get("Order"))
    if order is None:
        return (1, 0.0)
    return (0, order)


def sort_media(items: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Ascending by Order; missing/null Order after every ordered item. Stable."""
    return sorted(items, key=_order_sort_key)


def prepare_media(items: list[dict[str, Any]], limit: int = 0) -> list[dict[str, Any]]:
    out = sort_media(dedupe_media(items))
    if limit > 0:
        return out[:limit]
    return out
