"""Datum normalization between MSL and MLLW reference planes.

The engine works in MLLW (chart datum). Offsets follow MLLW + offset = MSL,
so moving a height from MSL into the MLLW plane adds the offset.
"""
from __future__ import annotations

import logging
from typing import Optional

from .const import DEFAULT_DATUM_SAFETY_MARGIN
from .models import Datum, DatumInfo, ExtremeType, Forecast, TideExtreme

_LOGGER = logging.getLogger(__name__)

CANONICAL_DATUM = Datum.MLLW

__all__ = ["CANONICAL_DATUM", "Datum", "estimate_offset", "normalize", "to_canonical"]


def estimate_offset(forecast: Forecast, safety_margin: float = DEFAULT_DATUM_SAFETY_MARGIN) -> float:
    """
    Infer the MLLW -> MSL offset from the observed lows.

    A negative lowest Low means the data still sits around mean sea level;
    shift it so the lowest water lands just above zero. Otherwise assume the
    data is already in a chart-datum convention and return 0.
    """
    lows = [e.value for e in forecast.extremes if e.type is ExtremeType.LOW]
    if not lows:
        return 0.0
    lowest = min(lows)
    if lowest < 0:
        return abs(lowest) + safety_margin
    return 0.0


def normalize(
    forecast: Forecast,
    source: Datum,
    target: Datum,
    known_offset: Optional[float] = None,
    *,
    safety_margin: float = DEFAULT_DATUM_SAFETY_MARGIN,
) -> Forecast:
    """Return a new forecast whose extremes are expressed in ``target``."""
    if source == target:
        return forecast.with_extremes(forecast.extremes, forecast.datum)

    if known_offset is not None:
        offset = float(known_offset)
    else:
        offset = estimate_offset(forecast, safety_margin)
        _LOGGER.debug("Estimated datum offset %.3f m for %s", offset, forecast.station.name)

    sign = 1.0 if (source, target) == (Datum.MSL, Datum.MLLW) else -1.0
    shifted = [
        TideExtreme(time=e.time, value=e.value + sign * offset, type=e.type)
        for e in forecast.extremes
    ]
    return forecast.with_extremes(shifted, DatumInfo(target, offset))


def to_canonical(forecast: Forecast, safety_margin: float = DEFAULT_DATUM_SAFETY_MARGIN) -> Forecast:
    """Normalize a provider forecast into the canonical plane using its own datum tag.

    Untagged data is taken as chart datum.
    """
    tag = forecast.datum
    if tag is None:
        return forecast.with_extremes(forecast.extremes, DatumInfo(CANONICAL_DATUM))
    return normalize(forecast, tag.source, CANONICAL_DATUM, tag.offset, safety_margin=safety_margin)
