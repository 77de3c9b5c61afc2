"""Unit conversion helper utilities shared across the integration.

All functions attempt to coerce to float and return None on failure.
Canonical units used by the integration:
- distance: meters (m); nautical miles (nm) only at the config/cache boundary
- tide heights: meters (m)
- time: aware UTC datetimes
"""
from typing import Any, Optional
import logging

_LOGGER = logging.getLogger(__name__)

METERS_PER_NM = 1852.0
METERS_PER_KM = 1000.0


def _to_float(v: Any) -> Optional[float]:
    try:
        if v is None:
            return None
        return float(v)
    except (TypeError, ValueError):
        return None


def km_to_m(v: Any) -> Optional[float]:
    """Convert kilometers to meters."""
    f = _to_float(v)
    if f is None:
        return None
    return f * METERS_PER_KM


def to_float_strict(value: Any, name: str) -> float:
    """Convert value to float strictly; raise ValueError if missing/invalid."""
    if value is None:
        raise ValueError(f"Missing numeric value for '{name}' (strict)")
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Unable to convert '{name}' to float: {value!r}") from exc
