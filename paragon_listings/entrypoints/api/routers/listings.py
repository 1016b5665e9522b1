# paragon_listings/entrypoints/api/routers/listings.py
from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query

from ....service_layer.properties import PropertyQueryService
from ....service_layer.response_cache import ResponseCache
from ....service_layer.use_cases.search import run_search
from ..deps import get_cache, get_service

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["listings"])


@router.get("/listings")
async def search_listings(
    zipCode: str | None = Query(None),
    streetName: str | None = Query(None),
    city: str | None = Query(None),
    county: str | None = Query(None),
    propertyId: str | None = Query(None),
    address: str | None = Query(None),
    radius: str | None = Query(None, description="Miles around the geocoded address"),
    minPrice: str | None = Query(None),
    maxPrice: str | None = Query(None),
    minRooms: str | None = Query(None, description="Rooms = beds + full baths + half baths"),
    maxRooms: str | None = Query(None),
    propertyType: list[str] | None = Query(None),
    includeMedia: bool = Query(True),
    service: PropertyQueryService = Depends(get_service),
    cache: ResponseCache | None = Depends(get_cache),
) -> list[dict[str, Any]]:
    params = {
        "zipCode": zipCode,
        "streetName": streetName,
        "city": city,
        "county": county,
        "propertyId": propertyId,
        "address": address,
        "radius": radius,
        "minPrice": minPrice,
        "maxPrice": maxPrice,
        "minRooms": minRooms,
        "maxRooms": maxRooms,
        "propertyType": propertyType or [],
    }
    log.info("listings query: %s", {k: v for k, v in params.items() if v})
    return await run_search(service, params, cache=cache, include_media=includeMedia)


@router.get("/listings/{listing_id}")
async def get_listing(
    listing_id: str,
    includeMedia: bool = Query(True),
    service: PropertyQueryService = Depends(get_service),
) -> dict[str, Any]:
    prop = await service.get_property_by_id(listing_id, include_media=includeMedia)
    if prop is None:
        raise HTTPException(status_code=404, detail="Property not found")
    return prop
