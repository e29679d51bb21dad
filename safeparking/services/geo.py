from __future__ import annotations

import math
from typing import Any, Optional

from safeparking.models import Coordinate

EARTH_RADIUS_KM = 6371.0


def _to_rad(deg: float) -> float:
    return deg * math.pi / 180


def distance_km(a: Coordinate, b: Coordinate) -> float:
    """Great-circle (haversine) distance in kilometers. Inputs are assumed valid."""
    dlat = _to_rad(b.lat - a.lat)
    dlng = _to_rad(b.lng - a.lng)
    h = math.sin(dlat / 2) ** 2 + math.cos(_to_rad(a.lat)) * math.cos(_to_rad(b.lat)) * math.sin(dlng / 2) ** 2
    # rounding can push h past 1 for near-antipodal points
    h = min(1.0, max(0.0, h))
    return 2 * EARTH_RADIUS_KM * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def to_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(str(value).strip()) if isinstance(value, str) else float(value)
    except (TypeError, ValueError):
        return None


def parse_coordinate(lat: Any, lng: Any) -> Optional[Coordinate]:
    """Best-effort coordinate parsing: None unless both parts are finite and in range."""
    flat = to_float(lat)
    flng = to_float(lng)
    if flat is None or flng is None:
        return None
    if not (math.isfinite(flat) and math.isfinite(flng)):
        return None
    if not (-90.0 <= flat <= 90.0 and -180.0 <= flng <= 180.0):
        return None
    return Coordinate(lat=flat, lng=flng)
