"""Geospatial helper functions."""

from __future__ import annotations

import math
from typing import Optional

EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Compute distance between two coordinates using the Haversine formula."""

    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def is_valid_latitude(value: Optional[float]) -> bool:
    return value is not None and math.isfinite(value) and -90.0 <= value <= 90.0


def is_valid_longitude(value: Optional[float]) -> bool:
    return value is not None and math.isfinite(value) and -180.0 <= value <= 180.0


def within_radius(
    lat: float,
    lon: float,
    center_lat: float,
    center_lon: float,
    radius_km: float,
) -> bool:
    """Return True if the point lies inside the circle, boundary included."""

    return haversine_km(lat, lon, center_lat, center_lon) <= radius_km
