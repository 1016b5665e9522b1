# paragon_listings/adapters/clients/odata_filters.py
"""
OData $filter and URL construction for the two resources we read
(Property and Media).

All URLs are built here with one percent-encoding rule, so
`encoded_length()` is exactly what a filter adds to a URL.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Sequence
from urllib.parse import quote

from ...domain.geo import BoundingBox

# kept literal in query strings; everything else is percent-encoded
_QUERY_SAFE = "$'(),:"

MEDIA_SELECT = "MediaKey,MediaURL,Order,ResourceRecordKey,ModificationTimestamp"

ACTIVE_PREDICATE = "StandardStatus eq 'Active'"
NOT_LEASE_PREDICATE = "(LeaseConsideredYN eq false or LeaseConsideredYN eq null)"

# worst-case $top/$skip used when measuring the fixed part of a media URL
_MEASURE_NUMBER = 9999999


def encode_component(text: str) -> str:
    return quote(str(text), safe=_QUERY_SAFE)


def encoded_length(text: str) -> int:
    return len(encode_component(text))


def quote_odata(value: str) -> str:
    """OData string literal body: single quotes are doubled."""
    return str(value).replace("'", "''")


def build_query_url(base_url: str, resource: str, params: Sequence[tuple[str, object]]) -> str:
    query = "&".join(f"{encode_component(k)}={encode_component(str(v))}" for k, v in params)
    return f"{base_url.rstrip('/')}/{resource}?{query}"


@dataclass(frozen=True)
class PropertyCriteria:
    postal_code: str | None = None
    city: str | None = None
    county: str | None = None
    street_name: str | None = None
    street_number: str | None = None
    listing_id: str | None = None
    box: BoundingBox | None = None

    allowed_zip_codes: tuple[str, ...] = field(default_factory=tuple)
    active_only: bool = True
    exclude_lease: bool = True


def build_bounding_box_filter(box: BoundingBox) -> str:
    return (
        f"Latitude ge {box.min_lat:.6f} and Latitude le {box.max_lat:.6f}"
        f" and Longitude ge {box.min_lng:.6f} and Longitude le {box.max_lng:.6f}"
    )


def build_property_filter(criteria: PropertyCriteria) -> str:
    parts: list[str] = []

    if criteria.active_only:
        parts.append(ACTIVE_PREDICATE)
    if criteria.exclude_lease:
        parts.append(NOT_LEASE_PREDICATE)

    if criteria.listing_id:
        parts.append(f"ListingId eq '{quote_odata(criteria.listing_id)}'")
    if criteria.postal_code:
        parts.append(f"PostalCode eq '{quote_odata(criteria.postal_code)}'")
    if criteria.city:
        parts.append(f"contains(City, '{quote_odata(criteria.city)}')")
    if criteria.county:
        parts.append(f"contains(CountyOrParish, '{quote_odata(criteria.county)}')")
    if criteria.street_number:
        parts.append(f"StreetNumber eq '{quote_odata(criteria.street_number)}'")
    if criteria.street_name:
        parts.append(f"contains(StreetName, '{quote_odata(criteria.street_name)}')")
    if criteria.box is not None:
        parts.append(build_bounding_box_filter(criteria.box))

    if criteria.allowed_zip_codes:
        zips = " or ".join(f"PostalCode eq '{quote_odata(z)}'" for z in criteria.allowed_zip_codes)
        parts.append(f"({zips})")

    return " and ".join(parts)


def property_url(
    base_url: str,
    filter_expr: str,
    *,
    top: int | None = None,
    skip: int | None = None,
    count: bool = True,
) -> str:
    params: list[tuple[str, object]] = []
    if count:
        params.append(("$count", "true"))
    if filter_expr:
        params.append(("$filter", filter_expr))
    if top:
        params.append(("$top", int(top)))
    if skip:
        params.append(("$skip", int(skip)))
    return build_query_url(base_url, "Property", params)


def media_url(base_url: str, *, top: int | None = None, skip: int | None = None, filter_expr: str | None = None) -> str:
    params: list[tuple[str, object]] = [("$select", MEDIA_SELECT), ("$count", "true")]
    if top:
        params.append(("$top", int(top)))
    if skip:
        params.append(("$skip", int(skip)))
    # $filter stays last so the URL length is (fixed part) + encoded filter
    if filter_expr is not None:
        params.append(("$filter", filter_expr))
    return build_query_url(base_url, "Media", params)


def media_base_url_length(base_url: str) -> int:
    """Length of a media URL with an empty $filter and worst-case paging numbers."""
    return len(media_url(base_url, top=_MEASURE_NUMBER, skip=_MEASURE_NUMBER, filter_expr=""))


def _media_key_clause(listing_key: str) -> str:
    return f"ResourceRecordKey eq '{quote_odata(listing_key)}'"


_OR = " or "


def partition_ids_into_filter_batches(
    ids: Iterable[str],
    base_url_length: int,
    max_url_length: int = 2048,
) -> list[str]:
    """
    Greedy sequential packing of `ResourceRecordKey eq '<id>'` clauses into
    or-joined filters so that base_url_length + encoded filter <= max_url_length.

    Input order is kept, every id lands in exactly one batch, and an id whose
    clause alone is too long still gets a batch of its own.
    """
    batches: list[str] = []
    acc: list[str] = []
    acc_len = 0
    sep_len = encoded_length(_OR)

    for listing_key in ids:
        clause = _media_key_clause(listing_key)
        clause_len = encoded_length(clause)

        if not acc:
            acc, acc_len = [clause], clause_len
            continue

        if base_url_length + acc_len + sep_len + clause_len <= max_url_length:
            acc.append(clause)
            acc_len += sep_len + clause_len
        else:
            batches.append(_OR.join(acc))
            acc, acc_len = [clause], clause_len

    if acc:
        batches.append(_OR.join(acc))
    return batches
