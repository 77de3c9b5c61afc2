"""Tide state derivation from a held forecast.

Pure functions; the coordinator owns the timer and the last-sent fingerprint.
"""
from __future__ import annotations

import logging
import math
from datetime import datetime
from typing import Optional, Sequence, Tuple

from .exceptions import TideDataError
from .models import ExtremeType, Forecast, TideExtreme, TideState

_LOGGER = logging.getLogger(__name__)


def next_extremes(
    extremes: Sequence[TideExtreme], now: datetime
) -> Tuple[Optional[TideExtreme], Optional[TideExtreme]]:
    """Return (next_high, next_low) among the first two extremes at or after now."""
    upcoming = [e for e in sorted(extremes, key=lambda e: e.time) if e.time >= now][:2]
    next_high = next((e for e in upcoming if e.type is ExtremeType.HIGH), None)
    next_low = next((e for e in upcoming if e.type is ExtremeType.LOW), None)
    return next_high, next_low


def approximate_tide_height_at(extremes: Sequence[TideExtreme], now: datetime) -> float:
    """
    Half-cosine interpolation between the bracketing extremes, rounded to mm.

    Raises TideDataError when no extreme lies at/before or at/after now
    (forecast horizon exhausted).
    """
    ordered = sorted(extremes, key=lambda e: e.time)
    prev = None
    for e in ordered:
        if e.time <= now:
            prev = e
        else:
            break
    nxt = next((e for e in ordered if e.time >= now), None)
    if prev is None or nxt is None:
        raise TideDataError(f"No extreme bracketing {now.isoformat()}; forecast horizon exhausted")

    span = (nxt.time - prev.time).total_seconds()
    if span <= 0:
        return round(prev.value, 3)

    progress = (now - prev.time).total_seconds() / span
    ease = (1.0 - math.cos(progress * math.pi)) / 2.0
    return round(prev.value + (nxt.value - prev.value) * ease, 3)


def build_tide_state(forecast: Forecast, now: datetime) -> TideState:
    """Compute the publishable state; an exhausted horizon leaves height_now unset."""
    next_high, next_low = next_extremes(forecast.extremes, now)
    try:
        height_now: Optional[float] = approximate_tide_height_at(forecast.extremes, now)
    except TideDataError as exc:
        _LOGGER.warning("Cannot interpolate tide height for %s: %s", forecast.station.name, exc)
        height_now = None
    return TideState(
        timestamp=now,
        station_name=forecast.station.name,
        height_now=height_now,
        next_high=next_high,
        next_low=next_low,
    )
