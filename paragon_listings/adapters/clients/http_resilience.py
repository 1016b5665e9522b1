# paragon_listings/adapters/clients/http_resilience.py
from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

log = logging.getLogger(__name__)

RETRYABLE_STATUSES = frozenset({429, 500, 502, 503, 504})


def _retry_after_s(resp: httpx.Response) -> float | None:
    ra = resp.headers.get("Retry-After")
    if not ra:
        return None
    try:
        return float(ra)
    except ValueError:
        return None


async def resilient_request(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    headers: dict[str, str] | None = None,
    params: dict[str, Any] | None = None,
    data: Any | None = None,
    timeout_s: float = 20.0,
    max_retries: int = 0,
    backoff_base_s: float = 0.25,
) -> httpx.Response:
    """
    One outbound call with a hard timeout and bounded retries.

    Retries timeouts, network errors and 429/5xx with exponential backoff.
    Any other status is returned as-is; callers decide what a non-2xx means.
    When retries run out on a retryable status, that last response is returned.
    When they run out on a transport error, the error is raised.
    """
    timeout = httpx.Timeout(float(timeout_s))

    for attempt in range(max_retries + 1):
        last = attempt >= max_retries
        try:
            resp = await client.request(method, url, headers=headers, params=params, data=data, timeout=timeout)
        except (httpx.TimeoutException, httpx.NetworkError) as e:
            if last:
                raise
            wait = min(5.0, backoff_base_s * (2**attempt))
            log.warning("http %s %s failed (%s); retry %d in %.2fs", method, url, type(e).__name__, attempt + 1, wait)
            await asyncio.sleep(wait)
            continue

        if resp.status_code in RETRYABLE_STATUSES and not last:
            wait = min(5.0, backoff_base_s * (2**attempt))
            ra = _retry_after_s(resp)
            if ra is not None:
                wait = max(wait, min(ra, 30.0))
            log.warning("http %s %s -> %d; retry %d in %.2fs", method, url, resp.status_code, attempt + 1, wait)
            await asyncio.sleep(wait)
            continue

        return resp

    raise AssertionError("unreachable")  # pragma: no cover
