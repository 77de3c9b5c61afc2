"""Hysteresis-based station selection.

A candidate forecast replaces the held one only when its station is closer to
the vessel by more than the configured margin. This keeps the published
station from flapping between two near-equidistant stations.
"""
from __future__ import annotations

import logging
from typing import NamedTuple, Optional

from .geo import distance_meters
from .models import Forecast, Position, StationInfo

_LOGGER = logging.getLogger(__name__)


class Selection(NamedTuple):
    forecast: Forecast
    preferred_station: StationInfo
    switched: bool


def select(
    candidate: Forecast,
    preferred: Optional[StationInfo],
    vessel_position: Position,
    threshold_m: float,
    held: Optional[Forecast] = None,
) -> Selection:
    """Decide between the candidate forecast and the currently held one.

    Switching requires d_candidate < d_preferred - threshold_m (strict).
    """
    if preferred is None or threshold_m <= 0 or held is None:
        return Selection(candidate, candidate.station, True)

    d_preferred = distance_meters(vessel_position, preferred.position)
    d_candidate = distance_meters(vessel_position, candidate.station.position)

    if d_candidate < d_preferred - threshold_m:
        _LOGGER.debug(
            "Switching station %s -> %s (%.0f m vs %.0f m, margin %.0f m)",
            preferred.name,
            candidate.station.name,
            d_candidate,
            d_preferred,
            threshold_m,
        )
        return Selection(candidate, candidate.station, True)

    _LOGGER.debug(
        "Keeping station %s (%.0f m); candidate %s at %.0f m not better by %.0f m",
        preferred.name,
        d_preferred,
        candidate.station.name,
        d_candidate,
        threshold_m,
    )
    return Selection(held, preferred, False)
