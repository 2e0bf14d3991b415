# File: civictrack/services/geo.py
"""Distance math for "issues near me" queries.

Candidates are first narrowed with a latitude/longitude box (cheap, done in
SQL), then checked exactly with the haversine formula.
"""
from dataclasses import dataclass
from math import asin, atan2, cos, degrees, radians, sin, sqrt
from typing import Optional

EARTH_RADIUS_KM = 6371.0
KM_PER_DEGREE = 111.0
# below this cos(lat) the longitude window is meaningless
MIN_COS_LAT = 1e-6


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance in kilometres between two lat/lng points."""
    phi1, phi2 = radians(lat1), radians(lat2)
    dphi = radians(lat2 - lat1)
    dlmb = radians(lng2 - lng1)
    a = sin(dphi / 2) ** 2 + cos(phi1) * cos(phi2) * sin(dlmb / 2) ** 2
    a = min(1.0, max(0.0, a))
    return 2 * EARTH_RADIUS_KM * atan2(sqrt(a), sqrt(1 - a))


@dataclass(frozen=True)
class BoundingBox:
    min_lat: float
    max_lat: float
    # None means every longitude is a candidate
    lng_ranges: Optional[tuple[tuple[float, float], ...]]

    def contains(self, lat: float, lng: float) -> bool:
        if not (self.min_lat <= lat <= self.max_lat):
            return False
        if self.lng_ranges is None:
            return True
        return any(lo <= lng <= hi for lo, hi in self.lng_ranges)


def bounding_box(lat: float, lng: float, radius_km: float) -> BoundingBox:
    lat_delta = radius_km / KM_PER_DEGREE
    min_lat = lat - lat_delta
    max_lat = lat + lat_delta

    cos_lat = cos(radians(lat))
    touches_pole = min_lat <= -90.0 or max_lat >= 90.0
    if touches_pole or cos_lat < MIN_COS_LAT:
        return BoundingBox(max(min_lat, -90.0), min(max_lat, 90.0), None)

    # widest longitude offset of any point within the radius on a sphere
    s = sin(radius_km / EARTH_RADIUS_KM) / cos_lat
    if s >= 1.0:
        return BoundingBox(min_lat, max_lat, None)
    lng_delta = degrees(asin(s))

    lo, hi = lng - lng_delta, lng + lng_delta
    if lo < -180.0:
        ranges = ((-180.0, hi), (lo + 360.0, 180.0))
    elif hi > 180.0:
        ranges = ((lo, 180.0), (-180.0, hi - 360.0))
    else:
        ranges = ((lo, hi),)
    return BoundingBox(min_lat, max_lat, ranges)
