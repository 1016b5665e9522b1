# paragon_listings/adapters/clients/geocoding.py
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

import httpx

from ...config import settings
from ...domain.geo import property_point
from ...domain.parsing import clean_str, get_first
from ...errors import EnrichmentError
from .http_resilience import resilient_request

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class GeoPoint:
    lat: float
    lng: float
    formatted_address: str | None = None
    components: dict[str, str] = field(default_factory=dict)

    @property
    def street_number(self) -> str | None:
        return self.components.get("street_number")

    @property
    def route(self) -> str | None:
        return self.components.get("route")

    @property
    def postal_code(self) -> str | None:
        return self.components.get("postal_code")


class Geocoder(Protocol):
    async def geocode(self, address: str) -> GeoPoint | None:
        ...


def _components(result: dict[str, Any]) -> dict[str, str]:
    out: dict[str, str] = {}
    for c in result.get("address_components") or []:
        name = c.get("long_name")
        if not name:
            continue
        for t in c.get("types") or []:
            out.setdefault(str(t), str(name))
    return out


class GoogleGeocoder:
    """Google Geocoding JSON API. Limited to US addresses."""

    def __init__(
        self,
        api_key: str,
        http: httpx.AsyncClient,
        *,
        base_url: str = "https://maps.googleapis.com/maps/api/geocode/json",
        timeout_s: float = 5.0,
    ) -> None:
        self.api_key = api_key
        self.http = http
        self.base_url = base_url
        self.timeout_s = timeout_s

    @classmethod
    def from_settings(cls, http: httpx.AsyncClient) -> "GoogleGeocoder | None":
        if not settings.GEOCODER_API_KEY:
            return None
        return cls(
            settings.GEOCODER_API_KEY,
            http,
            base_url=settings.GEOCODER_BASE_URL,
            timeout_s=settings.GEOCODER_TIMEOUT_S,
        )

    async def geocode(self, address: str) -> GeoPoint | None:
        params = {"address": address, "key": self.api_key, "components": "country:US"}
        try:
            resp = await resilient_request(self.http, "GET", self.base_url, params=params, timeout_s=self.timeout_s)
        except httpx.HTTPError as e:
            raise EnrichmentError(f"geocoder unreachable: {type(e).__name__}") from e

        if not resp.is_success:
            raise EnrichmentError(f"geocoder returned HTTP {resp.status_code}")
        try:
            data = resp.json()
        except ValueError as e:
            raise EnrichmentError("geocoder returned invalid JSON") from e

        status = data.get("status") if isinstance(data, dict) else None
        if status == "ZERO_RESULTS":
            return None
        if status != "OK":
            raise EnrichmentError(f"geocoder status {status}: {data.get('error_message') if isinstance(data, dict) else ''}")

        results = data.get("results") or []
        if not results:
            return None
        first = results[0]
        loc = (first.get("geometry") or {}).get("location") or {}
        try:
            lat, lng = float(loc["lat"]), float(loc["lng"])
        except (KeyError, TypeError, ValueError) as e:
            raise EnrichmentError("geocoder result missing location") from e
        return GeoPoint(lat=lat, lng=lng, formatted_address=first.get("formatted_address"), components=_components(first))


def format_property_address(prop: dict[str, Any]) -> str:
    street = " ".join(
        s
        for s in (
            clean_str(prop.get("StreetNumber")),
            clean_str(prop.get("StreetDirPrefix")),
            clean_str(prop.get("StreetName")),
            clean_str(prop.get("StreetSuffix")),
        )
        if s
    )
    locality = " ".join(
        s
        for s in (
            clean_str(get_first(prop, "PostalCity", "City")),
            clean_str(prop.get("StateOrProvince")),
            clean_str(prop.get("PostalCode")),
        )
        if s
    )
    return ", ".join(s for s in (street, locality) if s)


@dataclass(frozen=True)
class GeocodeOutcome:
    listing_key: str | None
    status: str  # skipped | geocoded | not_found | failed
    reason: str | None = None

    @property
    def ok(self) -> bool:
        return self.status in ("skipped", "geocoded")


async def geocode_properties(
    properties: list[dict[str, Any]],
    geocoder: Geocoder | None,
    *,
    concurrency: int = 5,
) -> list[GeocodeOutcome]:
    """
    Fill Latitude/Longitude in place for properties missing them.
    One outcome per input property, same order. Never raises for a single failure.
    """
    sem = asyncio.Semaphore(max(1, concurrency))

    async def _one(prop: dict[str, Any]) -> GeocodeOutcome:
        key = prop.get("ListingKey")
        if property_point(prop) is not None:
            return GeocodeOutcome(key, "skipped", "has coordinates")
        if geocoder is None:
            return GeocodeOutcome(key, "failed", "geocoder not configured")

        address = format_property_address(prop)
        if not address:
            return GeocodeOutcome(key, "failed", "no address fields")

        async with sem:
            try:
                point = await geocoder.geocode(address)
            except EnrichmentError as e:
                log.warning("geocoding failed for %s (%s): %s", key, address, e)
                return GeocodeOutcome(key, "failed", str(e))

        if point is None:
            log.info("no geocoding result for %s (%s)", key, address)
            return GeocodeOutcome(key, "not_found", address)

        prop["Latitude"] = point.lat
        prop["Longitude"] = point.lng
        return GeocodeOutcome(key, "geocoded")

    return list(await asyncio.gather(*(_one(p) for p in properties)))
