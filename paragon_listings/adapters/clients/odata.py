# paragon_listings/adapters/clients/odata.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from ...domain.parsing import to_int
from ...errors import FeedError, RunawayPaginationError
from .http_resilience import resilient_request
from .paragon_config import ParagonConfig
from .token_manager import TokenManager

log = logging.getLogger(__name__)


@dataclass
class ODataEnvelope:
    context: str = ""
    value: list[dict[str, Any]] = field(default_factory=list)
    next_link: str | None = None
    count: int | None = None

    @classmethod
    def from_payload(cls, payload: Any, *, url: str = "") -> "ODataEnvelope":
        if not isinstance(payload, dict) or not isinstance(payload.get("value"), list):
            raise FeedError("feed response is not an OData collection", url=url, parse_error=True)

        return cls(
            context=str(payload.get("@odata.context") or ""),
            value=[x for x in payload["value"] if isinstance(x, dict)],
            next_link=payload.get("@odata.nextLink") or None,
            count=to_int(payload.get("@odata.count")),
        )

    def to_payload(self) -> dict[str, Any]:
        out: dict[str, Any] = {"@odata.context": self.context}
        if self.next_link:
            out["@odata.nextLink"] = self.next_link
        if self.count is not None:
            out["@odata.count"] = self.count
        out["value"] = self.value
        return out


class ODataClient:
    """Authenticated GETs against the Paragon OData endpoint."""

    def __init__(self, cfg: ParagonConfig, tokens: TokenManager, http: httpx.AsyncClient) -> None:
        self.cfg = cfg
        self.tokens = tokens
        self.http = http

    @property
    def base_url(self) -> str:
        return self.cfg.base_url.rstrip("/")

    async def _headers(self) -> dict[str, str]:
        token = await self.tokens.get_valid_token()
        return {"Authorization": f"Bearer {token}", "Accept": "application/json"}

    async def _send(self, url: str) -> httpx.Response:
        try:
            return await resilient_request(
                self.http,
                "GET",
                url,
                headers=await self._headers(),
                timeout_s=self.cfg.timeout_s,
                max_retries=self.cfg.max_retries,
                backoff_base_s=self.cfg.backoff_base_s,
            )
        except httpx.HTTPError as e:
            raise FeedError(f"feed request failed: {type(e).__name__}", url=url) from e

    async def get(self, url: str) -> ODataEnvelope:
        resp = await self._send(url)

        if resp.status_code == 401:
            # token revoked or expired early; refresh once
            log.info("feed answered 401; refreshing token")
            await self.tokens.invalidate()
            resp = await self._send(url)

        if not resp.is_success:
            body = resp.text[:2000]
            log.error("feed GET %s -> HTTP %d", url, resp.status_code)
            raise FeedError(
                f"feed returned HTTP {resp.status_code}",
                url=url,
                status=resp.status_code,
                body=body,
            )

        try:
            payload = resp.json()
        except ValueError as e:
            log.error("feed GET %s returned invalid JSON", url)
            raise FeedError(
                "feed response is invalid JSON",
                url=url,
                status=resp.status_code,
                body=resp.text[:2000],
                parse_error=True,
            ) from e

        return ODataEnvelope.from_payload(payload, url=url)

    async def get_following_pagination(self, url: str) -> ODataEnvelope:
        """
        GET url, then follow @odata.nextLink verbatim until absent.
        Page N items precede page N+1 items; the merged envelope has no next_link.
        """
        first = await self.get(url)
        merged = ODataEnvelope(context=first.context, value=list(first.value), count=first.count)

        pages = 1
        next_link = first.next_link
        while next_link:
            if pages >= self.cfg.max_pages:
                raise RunawayPaginationError(
                    f"pagination exceeded {self.cfg.max_pages} pages",
                    url=next_link,
                )
            page = await self.get(next_link)
            merged.value.extend(page.value)
            next_link = page.next_link
            pages += 1

        if merged.count is not None and merged.count != len(merged.value):
            log.warning(
                "feed count mismatch for %s: declared=%d fetched=%d",
                url,
                merged.count,
                len(merged.value),
            )
        return merged
