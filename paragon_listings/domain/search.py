# paragon_listings/domain/search.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Union

from ..errors import ValidationError
from .parsing import clean_str, to_float


# -----------------------------
# Search modes (one location selector per call)
# -----------------------------
@dataclass(frozen=True)
class ByZip:
    zip_code: str


@dataclass(frozen=True)
class ByCity:
    city: str


@dataclass(frozen=True)
class ByCounty:
    county: str


@dataclass(frozen=True)
class ByStreet:
    street_name: str


@dataclass(frozen=True)
class ByAddress:
    address: str
    radius_miles: float = 0.0


@dataclass(frozen=True)
class ById:
    listing_id: str


@dataclass(frozen=True)
class AllListings:
    limit: int | None = None


SearchMode = Union[ByZip, ByCity, ByCounty, ByStreet, ByAddress, ById, AllListings]


@dataclass(frozen=True)
class SearchFilters:
    """In-memory post-fetch predicates (not expressible at the feed level)."""
    min_price: float | None = None
    max_price: float | None = None
    min_rooms: float | None = None
    max_rooms: float | None = None
    property_types: tuple[str, ...] = field(default_factory=tuple)

    def is_empty(self) -> bool:
        return (
            self.min_price is None
            and self.max_price is None
            and self.min_rooms is None
            and self.max_rooms is None
            and not self.property_types
        )


def _number_param(params: Mapping[str, Any], name: str) -> float | None:
    raw = params.get(name)
    if clean_str(raw) is None:
        return None
    val = to_float(raw)
    if val is None:
        raise ValidationError(f"{name} must be numeric, got {raw!r}")
    if val < 0:
        raise ValidationError(f"{name} must be non-negative")
    return val


def parse_search_mode(params: Mapping[str, Any]) -> SearchMode:
    """
    Resolve the location selector from inbound query params.
    Priority: zipCode, streetName, propertyId, city, county, address.
    No selector -> full feed.
    """
    zip_code = clean_str(params.get("zipCode"))
    if zip_code:
        return ByZip(zip_code)

    street = clean_str(params.get("streetName"))
    if street:
        return ByStreet(street)

    listing_id = clean_str(params.get("propertyId"))
    if listing_id:
        return ById(listing_id)

    city = clean_str(params.get("city"))
    if city:
        return ByCity(city)

    county = clean_str(params.get("county"))
    if county:
        return ByCounty(county)

    address = clean_str(params.get("address"))
    if address:
        radius = _number_param(params, "radius")
        return ByAddress(address, radius or 0.0)

    return AllListings()


def parse_filters(params: Mapping[str, Any]) -> SearchFilters:
    raw_types = params.get("propertyType") or ()
    if isinstance(raw_types, str):
        raw_types = (raw_types,)
    types = tuple(t for t in (clean_str(x) for x in raw_types) if t)

    filters = SearchFilters(
        min_price=_number_param(params, "minPrice"),
        max_price=_number_param(params, "maxPrice"),
        min_rooms=_number_param(params, "minRooms"),
        max_rooms=_number_param(params, "maxRooms"),
        property_types=types,
    )
    if filters.min_price is not None and filters.max_price is not None and filters.min_price > filters.max_price:
        raise ValidationError("minPrice must not exceed maxPrice")
    if filters.min_rooms is not None and filters.max_rooms is not None and filters.min_rooms > filters.max_rooms:
        raise ValidationError("minRooms must not exceed maxRooms")
    return filters


def room_count(prop: dict[str, Any]) -> float:
    """
    "Rooms" as the search filters define it: BedroomsTotal + BathroomsFull + BathroomsHalf.
    Missing parts count as zero.
    """
    total = 0.0
    for k in ("BedroomsTotal", "BathroomsFull", "BathroomsHalf"):
        v = to_float(prop.get(k))
        if v is not None:
            total += v
    return total


def matches_filters(prop: dict[str, Any], filters: SearchFilters) -> bool:
    if filters.min_price is not None or filters.max_price is not None:
        price = to_float(prop.get("ListPrice"))
        if price is None:
            return False
        if filters.min_price is not None and price < filters.min_price:
            return False
        if filters.max_price is not None and price > filters.max_price:
            return False

    if filters.min_rooms is not None or filters.max_rooms is not None:
        rooms = room_count(prop)
        if filters.min_rooms is not None and rooms < filters.min_rooms:
            return False
        if filters.max_rooms is not None and rooms > filters.max_rooms:
            return False

    if filters.property_types:
        wanted = {t.lower() for t in filters.property_types}
        have = {
            str(v).lower()
            for v in (prop.get("PropertyType"), prop.get("PropertySubType"))
            if v is not None
        }
        if not (wanted & have):
            return False

    return True


def apply_filters(properties: list[dict[str, Any]], filters: SearchFilters | None) -> list[dict[str, Any]]:
    if filters is None or filters.is_empty():
        return list(properties)
    return [p for p in properties if matches_filters(p, filters)]


def cache_key(mode: SearchMode, *, include_media: bool = True) -> str:
    """Normalized signature, e.g. listings::zip::53703::media=1"""
    if isinstance(mode, ByZip):
        part = f"zip::{mode.zip_code}"
    elif isinstance(mode, ByStreet):
        part = f"street::{mode.street_name.lower()}"
    elif isinstance(mode, ById):
        part = f"id::{mode.listing_id}"
    elif isinstance(mode, ByCity):
        part = f"city::{mode.city.lower()}"
    elif isinstance(mode, ByCounty):
        part = f"county::{mode.county.lower()}"
    elif isinstance(mode, ByAddress):
        part = f"address::{' '.join(mode.address.lower().split())}::r={mode.radius_miles:g}"
    elif isinstance(mode, AllListings):
        part = "all" if mode.limit is None else f"all::top={mode.limit}"
    else:
        raise ValidationError(f"Unsupported search mode: {type(mode).__name__}")
    return f"listings::{part}::media={int(include_media)}"
