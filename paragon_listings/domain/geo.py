# paragon_listings/domain/geo.py
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

from .parsing import to_float

EARTH_R_MI = 3958.8

# statute miles per degree of latitude
_MI_PER_DEG_LAT = 2.0 * math.pi * EARTH_R_MI / 360.0


@dataclass(frozen=True)
class BoundingBox:
    min_lat: float
    max_lat: float
    min_lng: float
    max_lng: float


def haversine_miles(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in miles."""
    p1, p2 = math.radians(lat1), math.radians(lat2)
    dlat = p2 - p1
    dlon = math.radians(lon2 - lon1)
    a = math.sin(dlat / 2.0) ** 2 + math.cos(p1) * math.cos(p2) * math.sin(dlon / 2.0) ** 2
    return 2.0 * EARTH_R_MI * math.asin(min(1.0, math.sqrt(a)))


def bounding_box(lat: float, lng: float, radius_miles: float) -> BoundingBox:
    """
    Lat/lng rectangle that contains every point within radius_miles of (lat, lng).
    Used as a coarse feed-side prefilter; exact distance is checked afterwards.
    """
    dlat = radius_miles / _MI_PER_DEG_LAT
    cos_lat = math.cos(math.radians(lat))
    if cos_lat < 1e-6:
        dlng = 180.0
    else:
        dlng = min(180.0, radius_miles / (_MI_PER_DEG_LAT * cos_lat))
    return BoundingBox(
        min_lat=max(-90.0, lat - dlat),
        max_lat=min(90.0, lat + dlat),
        min_lng=max(-180.0, lng - dlng),
        max_lng=min(180.0, lng + dlng),
    )


def property_point(prop: dict[str, Any]) -> tuple[float, float] | None:
    lat = to_float(prop.get("Latitude"))
    lng = to_float(prop.get("Longitude"))
    if lat is None or lng is None:
        return None
    return lat, lng


def within_radius(prop: dict[str, Any], lat: float, lng: float, radius_miles: float) -> bool:
    pt = property_point(prop)
    if pt is None:
        return False
    return haversine_miles(lat, lng, pt[0], pt[1]) <= radius_miles
