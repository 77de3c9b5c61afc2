"""
NOAA CO-OPS metadata API client for harmonic constituents.

- Used only by the harmonics cache; never on the forecast path.
- Every request is bounded by CATALOG_TIMEOUT.
- Station list and constituent failures raise HarmonicsCatalogError; a missing
  datum set is not an error and yields an offset of 0.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

import aiohttp
import async_timeout

from homeassistant.helpers.aiohttp_client import async_get_clientsession

from .const import CATALOG_TIMEOUT, NOAA_MDAPI_BASE
from .exceptions import HarmonicsCatalogError

_LOGGER = logging.getLogger(__name__)


class NoaaCatalog:
    """Thin async wrapper over the mdapi station endpoints."""

    def __init__(self, hass, session: Optional[aiohttp.ClientSession] = None, base_url: str = NOAA_MDAPI_BASE) -> None:
        self.hass = hass
        self._session = session
        self._base_url = base_url.rstrip("/")

    @property
    def session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = async_get_clientsession(self.hass)
        return self._session

    async def _get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = f"{self._base_url}/{path}"
        try:
            async with async_timeout.timeout(CATALOG_TIMEOUT):
                async with self.session.get(url, params=params) as resp:
                    resp.raise_for_status()
                    data = await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise HarmonicsCatalogError(f"NOAA catalog request failed for {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise HarmonicsCatalogError(f"NOAA catalog returned unexpected payload for {path} (strict)")
        return data

    async def async_list_stations(self, kind: str = "harcon") -> List[Dict[str, Any]]:
        """Return raw station metadata dicts (id, name, lat, lng, state, timezone...)."""
        data = await self._get_json("stations.json", {"type": kind})
        stations = data.get("stations")
        if not isinstance(stations, list):
            raise HarmonicsCatalogError("NOAA station list missing 'stations' array (strict)")
        _LOGGER.debug("NOAA catalog listed %d %s stations", len(stations), kind)
        return stations

    async def async_get_constituents(self, station_id: str) -> List[Dict[str, Any]]:
        """Return the raw HarmonicConstituents array (name, amplitude, phase_GMT) in metric units."""
        data = await self._get_json(f"stations/{station_id}/harcon.json", {"units": "metric"})
        constituents = data.get("HarmonicConstituents")
        if not isinstance(constituents, list):
            raise HarmonicsCatalogError(f"Station {station_id} has no HarmonicConstituents (strict)")
        return constituents

    async def async_get_datum_offset(self, station_id: str) -> float:
        """MSL - MLLW in meters; 0 when the station publishes no usable datums."""
        try:
            data = await self._get_json(f"stations/{station_id}/datums.json", {"units": "metric"})
        except HarmonicsCatalogError as exc:
            _LOGGER.debug("Could not fetch datums for station %s: %s", station_id, exc)
            return 0.0

        values: Dict[str, float] = {}
        for datum in data.get("datums") or []:
            try:
                values[str(datum.get("name"))] = float(datum.get("value"))
            except (TypeError, ValueError):
                continue
        if "MSL" in values and "MLLW" in values:
            return values["MSL"] - values["MLLW"]
        return 0.0
