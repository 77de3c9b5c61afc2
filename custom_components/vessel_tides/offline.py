"""Offline tide provider backed by the cached harmonic database."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional

from .const import FORECAST_DAYS, OFFLINE_STATION_SUFFIX, SOURCE_OFFLINE
from .exceptions import TideDataError
from .geo import nearest
from .harmonic_predictor import predict_extremes
from .harmonics_cache import HarmonicsCache
from .models import Datum, DatumInfo, ExtremeType, Forecast, Position, StationInfo, TideExtreme
from .providers import TideProvider

_LOGGER = logging.getLogger(__name__)


class OfflineProvider(TideProvider):
    """
    Harmonic prediction for the nearest cached station.

    Reads only the last persisted database; never triggers a download.
    Heights are MSL-relative and tagged with the station's MLLW offset.
    """

    id = SOURCE_OFFLINE
    title = "Offline (Harmonic Prediction)"

    def __init__(self, hass, harmonics_cache: HarmonicsCache) -> None:
        super().__init__(hass)
        self.harmonics_cache = harmonics_cache

    async def fetch(self, position: Position, date: Optional[datetime] = None) -> Forecast:
        database = await self.harmonics_cache.async_load_database()
        if database is None or not database.stations:
            raise TideDataError("No harmonic stations available in database")

        station, distance_m = nearest(position, database.stations, lambda s: s.position)
        _LOGGER.debug("Selected offline station %s at %.1f km", station.name, distance_m / 1000.0)

        start = self.window_start(date)
        end = start + timedelta(days=FORECAST_DAYS + 1)
        predicted = await self.hass.async_add_executor_job(
            predict_extremes, station.constituents, start, end, station.position.latitude
        )
        extremes = tuple(
            TideExtreme(
                time=p.time,
                value=round(p.level, 3),
                type=ExtremeType.HIGH if p.is_high else ExtremeType.LOW,
            )
            for p in predicted
        )
        return Forecast(
            station=StationInfo(f"{station.name}{OFFLINE_STATION_SUFFIX}", station.position),
            extremes=extremes,
            datum=DatumInfo(Datum.MSL, station.datum_offset),
        )
