# paragon_listings/service_layer/properties.py
from __future__ import annotations

import asyncio
import logging
from typing import Any

from ..adapters.clients.geocoding import GeocodeOutcome, Geocoder, geocode_properties
from ..adapters.clients.odata import ODataClient, ODataEnvelope
from ..adapters.clients.odata_filters import PropertyCriteria, build_property_filter, property_url
from ..adapters.clients.paragon_config import ParagonConfig
from ..domain.geo import bounding_box, within_radius
from ..domain.parsing import clean_str
from ..domain.search import (
    AllListings,
    ByAddress,
    ByCity,
    ByCounty,
    ById,
    ByStreet,
    ByZip,
    SearchFilters,
    SearchMode,
    apply_filters,
)
from ..errors import EnrichmentError, ValidationError
from .media_join import MediaJoiner

log = logging.getLogger(__name__)


_DIRECTIONALS = {"n", "s", "e", "w", "ne", "nw", "se", "sw", "north", "south", "east", "west"}


def _require(value: Any, name: str) -> str:
    s = clean_str(value)
    if not s:
        raise ValidationError(f"{name} is required")
    return s


def street_core_name(route: str) -> str:
    """
    Geocoder route -> the part RESO keeps in StreetName.
    "South Brooks Street" -> "Brooks" (StreetDirPrefix / StreetSuffix are separate fields).
    """
    tokens = route.split()
    while len(tokens) > 1 and tokens[0].lower().rstrip(".") in _DIRECTIONALS:
        tokens = tokens[1:]
    if len(tokens) > 1:
        tokens = tokens[:-1]
    return " ".join(tokens)


class PropertyQueryService:
    """Public listing queries: Property fetch -> optional media join -> optional geocoding."""

    def __init__(
        self,
        client: ODataClient,
        media: MediaJoiner,
        cfg: ParagonConfig,
        geocoder: Geocoder | None = None,
        *,
        geocode_concurrency: int = 5,
    ) -> None:
        self.client = client
        self.media = media
        self.cfg = cfg
        self.geocoder = geocoder
        self.geocode_concurrency = geocode_concurrency
        self.last_geocode_outcomes: list[GeocodeOutcome] = []

    # -----------------------------
    # Fetch helpers
    # -----------------------------
    def _criteria(self, **kw: Any) -> PropertyCriteria:
        return PropertyCriteria(allowed_zip_codes=tuple(self.cfg.zip_codes), **kw)

    async def _fetch(self, criteria: PropertyCriteria, *, top: int | None = None) -> ODataEnvelope:
        """
        top given -> one page of at most `top`.
        top None  -> page-size pages, following next links to the end.
        """
        filter_expr = build_property_filter(criteria)
        if top is not None:
            return await self.client.get(property_url(self.client.base_url, filter_expr, top=top))
        url = property_url(self.client.base_url, filter_expr, top=self.cfg.max_page_size)
        return await self.client.get_following_pagination(url)

    async def _search(self, criteria: PropertyCriteria, include_media: bool) -> ODataEnvelope:
        top = self.cfg.limited_top if self.cfg.limited_mode else None
        env = await self._fetch(criteria, top=top)
        env.next_link = None
        if top is not None:
            env.count = len(env.value)
        if include_media and env.value:
            env.value = await self.media.attach_media(env.value, self.cfg.media_limit)
        return env

    async def enrich_coordinates(self, properties: list[dict[str, Any]]) -> list[GeocodeOutcome]:
        outcomes = await geocode_properties(properties, self.geocoder, concurrency=self.geocode_concurrency)
        self.last_geocode_outcomes = outcomes
        failed = [o for o in outcomes if not o.ok]
        if failed:
            log.warning("geocoding left %d of %d properties without coordinates", len(failed), len(outcomes))
        return outcomes

    # -----------------------------
    # Public operations
    # -----------------------------
    async def get_all_properties(self, limit: int | None = None) -> list[dict[str, Any]]:
        if limit is not None and limit <= 0:
            raise ValidationError("limit must be positive")
        env = await self._fetch(self._criteria(), top=limit)
        log.info("get_all_properties: %d properties (limit=%s)", len(env.value), limit)
        return env.value

    async def get_all_properties_with_media(self, limit: int | None = None, media_limit: int | None = None) -> list[dict[str, Any]]:
        properties = await self.get_all_properties(limit)
        per_property = self.cfg.media_limit if media_limit is None else media_limit
        # media join and geocoding touch disjoint keys, so run them together
        await asyncio.gather(
            self.media.attach_media(properties, per_property),
            self.enrich_coordinates(properties),
        )
        return properties

    async def get_property_by_id(self, listing_id: str, include_media: bool = True) -> dict[str, Any] | None:
        listing_id = _require(listing_id, "listing id")
        criteria = PropertyCriteria(listing_id=listing_id, active_only=False)
        env = await self.client.get(property_url(self.client.base_url, build_property_filter(criteria), count=False))
        if not env.value:
            log.info("no property with ListingId=%s", listing_id)
            return None
        prop = env.value[0]
        if include_media:
            await self.media.attach_media([prop], self.cfg.media_limit)
        return prop

    async def search_by_zip_code(self, zip_code: str, include_media: bool = True) -> ODataEnvelope:
        return await self._search(self._criteria(postal_code=_require(zip_code, "zipCode")), include_media)

    async def search_by_city(self, city: str, include_media: bool = True) -> ODataEnvelope:
        return await self._search(self._criteria(city=_require(city, "city")), include_media)

    async def search_by_county(self, county: str, include_media: bool = True) -> ODataEnvelope:
        return await self._search(self._criteria(county=_require(county, "county")), include_media)

    async def search_by_street_name(self, street_name: str, include_media: bool = True) -> ODataEnvelope:
        return await self._search(self._criteria(street_name=_require(street_name, "streetName")), include_media)

    async def search_by_address(
        self,
        address: str,
        radius_miles: float = 0.0,
        filters: SearchFilters | None = None,
        include_media: bool = True,
    ) -> ODataEnvelope:
        """
        radius 0: exact match on the geocoded street number + street name (+ postal code).
        radius > 0: bounding-box prefilter at the feed, then haversine distance <= radius.
        """
        address = _require(address, "address")
        if radius_miles is None or radius_miles < 0:
            raise ValidationError("radius must be >= 0")
        if self.geocoder is None:
            raise ValidationError("address search needs a configured geocoder")

        try:
            point = await self.geocoder.geocode(address)
        except EnrichmentError as e:
            log.warning("could not geocode search address %r: %s", address, e)
            point = None
        if point is None:
            log.info("address not found by geocoder: %s", address)
            return ODataEnvelope(context="address", value=[], count=0)

        if radius_miles == 0:
            if not (point.street_number and point.route):
                log.info("geocoded address lacks street number/route: %s", address)
                return ODataEnvelope(context="address", value=[], count=0)
            criteria = self._criteria(
                street_number=point.street_number,
                street_name=street_core_name(point.route),
                postal_code=point.postal_code,
            )
            env = await self._fetch(criteria)
        else:
            criteria = self._criteria(box=bounding_box(point.lat, point.lng, radius_miles))
            env = await self._fetch(criteria)
            env.value = [p for p in env.value if within_radius(p, point.lat, point.lng, radius_miles)]

        env.value = apply_filters(env.value, filters)
        env.count = len(env.value)
        env.next_link = None
        if include_media and env.value:
            env.value = await self.media.attach_media(env.value, self.cfg.media_limit)
        return env

    async def search(self, mode: SearchMode, include_media: bool = True) -> list[dict[str, Any]]:
        """Dispatch one search mode; always a list of properties."""
        if isinstance(mode, ByZip):
            return (await self.search_by_zip_code(mode.zip_code, include_media)).value
        if isinstance(mode, ByCity):
            return (await self.search_by_city(mode.city, include_media)).value
        if isinstance(mode, ByCounty):
            return (await self.search_by_county(mode.county, include_media)).value
        if isinstance(mode, ByStreet):
            return (await self.search_by_street_name(mode.street_name, include_media)).value
        if isinstance(mode, ByAddress):
            return (await self.search_by_address(mode.address, mode.radius_miles, None, include_media)).value
        if isinstance(mode, ById):
            prop = await self.get_property_by_id(mode.listing_id, include_media)
            return [prop] if prop is not None else []
        if isinstance(mode, AllListings):
            if include_media:
                return await self.get_all_properties_with_media(mode.limit)
            return await self.get_all_properties(mode.limit)
        raise ValidationError(f"Unsupported search mode: {type(mode).__name__}")
