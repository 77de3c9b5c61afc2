"""Great-circle helpers shared by every component.

Pure functions, no failure modes beyond malformed coordinates: NaN in gives
NaN out, callers must guard.
"""
from __future__ import annotations

import math
from typing import Callable, Iterable, Optional, Tuple, TypeVar

from .models import Position
from .unit_helpers import METERS_PER_NM

# IUGG mean Earth radius
EARTH_RADIUS_M = 6371008.8

T = TypeVar("T")


def distance_meters(a: Position, b: Position) -> float:
    """Haversine distance between two positions, in meters."""
    lat1 = math.radians(a.latitude)
    lat2 = math.radians(b.latitude)
    dlat = lat2 - lat1
    dlon = math.radians(b.longitude - a.longitude)
    h = math.sin(dlat / 2.0) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2.0) ** 2
    # clamp: rounding can push h a hair above 1 for antipodal points
    h = min(1.0, h)
    return 2.0 * EARTH_RADIUS_M * math.asin(math.sqrt(h))


def distance_nm(a: Position, b: Position) -> float:
    return distance_meters(a, b) / METERS_PER_NM


def nearest(
    position: Position, items: Iterable[T], key: Callable[[T], Position]
) -> Tuple[Optional[T], float]:
    """Return (closest item, distance in meters); (None, inf) for an empty iterable."""
    best: Optional[T] = None
    best_distance = math.inf
    for item in items:
        d = distance_meters(position, key(item))
        if d < best_distance:
            best = item
            best_distance = d
    return best, best_distance
