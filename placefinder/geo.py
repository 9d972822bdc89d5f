"""Geospatial helpers."""
from __future__ import annotations

import math
from typing import Optional, Tuple

from .models import Location


def haversine_m(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    r = 6371000.0
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lng2 - lng1)

    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return r * c


def distance_between(a: Optional[Location], b: Optional[Location]) -> Optional[float]:
    if a is None or b is None:
        return None
    return haversine_m(a.lat, a.lng, b.lat, b.lng)


def location_bucket(location: Optional[Location], grid_deg: Optional[float]) -> Optional[Tuple[float, float]]:
    """Snap a location to the south-west corner of its grid cell."""
    if location is None or not grid_deg:
        return None
    lat = math.floor(location.lat / grid_deg) * grid_deg
    lng = math.floor(location.lng / grid_deg) * grid_deg
    return (round(lat, 6), round(lng, 6))
