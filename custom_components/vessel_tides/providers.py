"""
Online tide providers.

Each provider exposes ``async fetch(position, date=None) -> Forecast`` and
tags the forecast with its native datum. Any HTTP, timeout or payload failure
is raised as TideProviderError; the coordinator turns that into a fallback.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

import aiohttp
import async_timeout

from homeassistant.helpers.aiohttp_client import async_get_clientsession
from homeassistant.helpers.storage import Store
from homeassistant.util import dt as dt_util

from .const import (
    FORECAST_DAYS,
    FORECAST_LOOKBACK,
    NOAA_APPLICATION,
    NOAA_DATAGETTER,
    NOAA_MDAPI_BASE,
    PROVIDER_TIMEOUT,
    SOURCE_NOAA,
    SOURCE_STORMGLASS,
    SOURCE_WORLDTIDES,
    STORE_KEY_NOAA_STATIONS,
    STORE_VERSION,
    STORMGLASS_BASE,
    WORLDTIDES_BASE,
)
from .exceptions import TideProviderError
from .geo import nearest
from .models import (
    Datum,
    DatumInfo,
    ExtremeType,
    Forecast,
    Position,
    StationInfo,
    TideExtreme,
    parse_time,
)
from .unit_helpers import to_float_strict

_LOGGER = logging.getLogger(__name__)


class TideProvider:
    """Base class for a forecast source."""

    id: str = ""
    title: str = ""

    def __init__(self, hass, session: Optional[aiohttp.ClientSession] = None) -> None:
        self.hass = hass
        self._session = session

    @property
    def session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = async_get_clientsession(self.hass)
        return self._session

    @staticmethod
    def window_start(date: Optional[datetime]) -> datetime:
        return date or (dt_util.utcnow() - FORECAST_LOOKBACK)

    async def _get_json(self, url: str, params: Dict[str, Any], headers: Optional[Dict[str, str]] = None) -> Any:
        try:
            async with async_timeout.timeout(PROVIDER_TIMEOUT):
                async with self.session.get(url, params=params, headers=headers) as resp:
                    resp.raise_for_status()
                    return await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise TideProviderError(f"{self.title} request failed: {exc}") from exc

    async def fetch(self, position: Position, date: Optional[datetime] = None) -> Forecast:
        raise NotImplementedError


class NoaaProvider(TideProvider):
    """NOAA CO-OPS predictions (US waters), MLLW hi/lo."""

    id = SOURCE_NOAA
    title = "NOAA"

    def __init__(self, hass, session: Optional[aiohttp.ClientSession] = None) -> None:
        super().__init__(hass, session)
        self._store: Store = Store(hass, STORE_VERSION, STORE_KEY_NOAA_STATIONS)
        self._stations: Optional[List[Dict[str, Any]]] = None

    async def async_load_stations(self) -> List[Dict[str, Any]]:
        """Station list from the Store, downloading it once when absent."""
        if self._stations is not None:
            return self._stations
        cached = await self._store.async_load()
        if cached and isinstance(cached.get("stations"), list):
            _LOGGER.debug("NOAA: loaded %d cached tide stations", len(cached["stations"]))
            self._stations = cached["stations"]
            return self._stations

        _LOGGER.debug("NOAA: downloading tide station list")
        data = await self._get_json(f"{NOAA_MDAPI_BASE}/stations.json", {"type": "tidepredictions"})
        if not isinstance(data, dict) or not isinstance(data.get("stations"), list):
            raise TideProviderError("NOAA station list has unexpected shape (strict)")
        stations = [
            {"id": str(s["id"]), "name": s.get("name") or str(s["id"]), "lat": s["lat"], "lng": s["lng"]}
            for s in data["stations"]
            if s.get("id") is not None and s.get("lat") is not None and s.get("lng") is not None
        ]
        await self._store.async_save({"stations": stations})
        self._stations = stations
        return stations

    async def fetch(self, position: Position, date: Optional[datetime] = None) -> Forecast:
        stations = await self.async_load_stations()
        station, _ = nearest(position, stations, lambda s: Position(float(s["lat"]), float(s["lng"])))
        if station is None:
            raise TideProviderError("NOAA station list is empty")

        start = self.window_start(date)
        end = start + timedelta(days=FORECAST_DAYS)
        params = {
            "product": "predictions",
            "application": NOAA_APPLICATION,
            "begin_date": start.strftime("%Y%m%d"),
            "end_date": end.strftime("%Y%m%d"),
            "datum": "MLLW",
            "station": station["id"],
            "time_zone": "gmt",
            "units": "metric",
            "interval": "hilo",
            "format": "json",
        }
        _LOGGER.debug("Fetching NOAA predictions for station %s", station["id"])
        body = await self._get_json(NOAA_DATAGETTER, params)
        if not isinstance(body, dict):
            raise TideProviderError("NOAA returned unexpected payload (strict)")
        err = body.get("error")
        if err:
            message = err.get("message", err) if isinstance(err, dict) else err
            raise TideProviderError(f"NOAA error: {message}")

        try:
            extremes = [
                TideExtreme(
                    time=parse_time(p["t"].replace(" ", "T") + "Z"),
                    value=to_float_strict(p["v"], "v"),
                    type=ExtremeType.HIGH if p["type"] in ("H", "HH") else ExtremeType.LOW,
                )
                for p in body.get("predictions") or []
            ]
        except (KeyError, ValueError, AttributeError) as exc:
            raise TideProviderError(f"NOAA prediction payload invalid: {exc}") from exc

        return Forecast(
            station=StationInfo(station["name"], Position(float(station["lat"]), float(station["lng"]))),
            extremes=tuple(extremes),
            datum=DatumInfo(Datum.MLLW),
        )


class WorldTidesProvider(TideProvider):
    """worldtides.info v3 extremes referenced to chart datum."""

    id = SOURCE_WORLDTIDES
    title = "WorldTides"

    def __init__(self, hass, api_key: str, session: Optional[aiohttp.ClientSession] = None) -> None:
        super().__init__(hass, session)
        if not api_key:
            raise ValueError("WorldTides requires an API key (strict)")
        self._api_key = api_key

    async def fetch(self, position: Position, date: Optional[datetime] = None) -> Forecast:
        start = self.window_start(date)
        params = {
            "date": start.strftime("%Y-%m-%d"),
            "datum": "CD",
            "days": str(FORECAST_DAYS),
            "extremes": "true",
            "key": self._api_key,
            "lat": str(position.latitude),
            "lon": str(position.longitude),
        }
        data = await self._get_json(WORLDTIDES_BASE, params)
        if not isinstance(data, dict) or data.get("status") != 200:
            err = data.get("error") if isinstance(data, dict) else None
            raise TideProviderError(f"WorldTides error: {err or 'unexpected payload'}")

        try:
            station_name = data.get("station") or "WorldTides"
            if data.get("atlas"):
                station_name = f"{station_name} ({data['atlas']})"
            extremes = [
                TideExtreme(
                    time=parse_time(int(e["dt"])),
                    value=to_float_strict(e["height"], "height"),
                    type=ExtremeType(e["type"]),
                )
                for e in data.get("extremes") or []
            ]
            station_pos = Position(
                to_float_strict(data.get("responseLat"), "responseLat"),
                to_float_strict(data.get("responseLon"), "responseLon"),
            )
        except (KeyError, ValueError) as exc:
            raise TideProviderError(f"WorldTides payload invalid: {exc}") from exc

        return Forecast(
            station=StationInfo(station_name, station_pos),
            extremes=tuple(extremes),
            datum=DatumInfo(Datum.MLLW),
        )


class StormGlassProvider(TideProvider):
    """StormGlass tide extremes; heights are MSL-relative with no published offset."""

    id = SOURCE_STORMGLASS
    title = "StormGlass"

    def __init__(self, hass, api_key: str, session: Optional[aiohttp.ClientSession] = None) -> None:
        super().__init__(hass, session)
        if not api_key:
            raise ValueError("StormGlass requires an API key (strict)")
        self._api_key = api_key

    async def fetch(self, position: Position, date: Optional[datetime] = None) -> Forecast:
        start = self.window_start(date)
        end = start + timedelta(days=FORECAST_DAYS)
        params = {
            "start": start.strftime("%Y-%m-%d"),
            "end": end.strftime("%Y-%m-%d"),
            "lat": str(position.latitude),
            "lng": str(position.longitude),
        }
        data = await self._get_json(STORMGLASS_BASE, params, headers={"Authorization": self._api_key})
        try:
            meta = data["meta"]["station"]
            extremes = [
                TideExtreme(
                    time=parse_time(e["time"]),
                    value=to_float_strict(e["height"], "height"),
                    type=ExtremeType.HIGH if e["type"] == "high" else ExtremeType.LOW,
                )
                for e in data.get("data") or []
            ]
            station = StationInfo(
                str(meta.get("name") or "StormGlass"),
                Position(to_float_strict(meta.get("lat"), "lat"), to_float_strict(meta.get("lng"), "lng")),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise TideProviderError(f"StormGlass payload invalid: {exc}") from exc

        return Forecast(station=station, extremes=tuple(extremes), datum=DatumInfo(Datum.MSL))
