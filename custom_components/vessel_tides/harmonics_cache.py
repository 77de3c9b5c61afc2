"""
Harmonics cache lifecycle manager.

Owns the regional harmonic database persisted in three HA Stores (primary,
backup, metadata sidecar). Decides when the cache is stale or too sparse for
the vessel's position, downloads a fresh region from the NOAA catalog with
radius expansion, and replaces it atomically.

Refreshes run as background tasks started by the coordinator; the forecast
path only ever calls async_load_database().
"""
from __future__ import annotations

import asyncio
import dataclasses
import logging
from datetime import datetime
from typing import Any, Dict, List, NamedTuple, Optional

from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers.storage import Store
from homeassistant.util import dt as dt_util

from .const import (
    DEFAULT_HARMONICS_EXPAND_RADIUS,
    DEFAULT_HARMONICS_MAX_RADIUS_NM,
    DEFAULT_HARMONICS_MIN_STATIONS,
    DEFAULT_HARMONICS_RADIUS_NM,
    DEFAULT_HARMONICS_REQUEST_DELAY,
    DEFAULT_HARMONICS_UPDATE_FREQUENCY,
    HARMONICS_MAX_CENTER_DISTANCE_NM,
    HARMONICS_RADIUS_STEP_NM,
    PRIMARY_CONSTITUENTS,
    STORE_KEY_HARMONICS,
    STORE_KEY_HARMONICS_BACKUP,
    STORE_KEY_HARMONICS_METADATA,
    STORE_VERSION,
    UPDATE_FREQUENCY_DAYS,
)
from .exceptions import HarmonicsCatalogError
from .geo import distance_nm
from .models import (
    CacheMetadata,
    HarmonicConstituent,
    HarmonicsDatabase,
    HarmonicStation,
    Position,
)
from .noaa_catalog import NoaaCatalog
from .unit_helpers import to_float_strict

_LOGGER = logging.getLogger(__name__)

SOURCE_NAME = "NOAA Center for Operational Oceanographic Products and Services"
SOURCE_URL = "https://tidesandcurrents.noaa.gov/"


@dataclasses.dataclass(frozen=True)
class HarmonicsCacheConfig:
    auto_download_radius: float = DEFAULT_HARMONICS_RADIUS_NM
    update_frequency: str = DEFAULT_HARMONICS_UPDATE_FREQUENCY
    min_stations: int = DEFAULT_HARMONICS_MIN_STATIONS
    expand_radius_if_needed: bool = DEFAULT_HARMONICS_EXPAND_RADIUS
    max_radius: float = DEFAULT_HARMONICS_MAX_RADIUS_NM
    request_delay: float = DEFAULT_HARMONICS_REQUEST_DELAY

    def __post_init__(self) -> None:
        if self.update_frequency not in UPDATE_FREQUENCY_DAYS:
            raise ValueError(f"Unknown harmonics update frequency '{self.update_frequency}' (strict)")
        if self.min_stations < 1:
            raise ValueError("min_stations must be >= 1 (strict)")
        if self.max_radius < self.auto_download_radius:
            raise ValueError("max_radius must be >= auto_download_radius (strict)")


class UpdateCheck(NamedTuple):
    update: bool
    reason: str


def convert_station(
    meta: Dict[str, Any], constituents: List[Dict[str, Any]], datum_offset: float
) -> Optional[HarmonicStation]:
    """Build a HarmonicStation from raw catalog payloads; None unless all primary constituents are present."""
    picked: Dict[str, HarmonicConstituent] = {}
    for raw in constituents:
        name = raw.get("name")
        if name not in PRIMARY_CONSTITUENTS:
            continue
        picked[name] = HarmonicConstituent(
            name=name,
            amplitude=to_float_strict(raw.get("amplitude"), f"{name}.amplitude"),
            phase=to_float_strict(raw.get("phase_GMT"), f"{name}.phase_GMT"),
        )
    if len(picked) < len(PRIMARY_CONSTITUENTS):
        return None

    return HarmonicStation(
        id=str(meta["id"]),
        name=str(meta.get("name") or meta["id"]),
        position=Position(
            to_float_strict(meta.get("lat"), "lat"),
            to_float_strict(meta.get("lng", meta.get("lon")), "lng"),
        ),
        timezone=str(meta.get("timezone") or "UTC"),
        country=str(meta.get("state") or meta.get("region") or "Unknown"),
        datum_offset=float(datum_offset),
        constituents=tuple(picked[n] for n in sorted(picked)),
    )


class HarmonicsCache:
    """Persisted regional harmonic database with staleness policy."""

    def __init__(self, hass, catalog: Optional[NoaaCatalog] = None, config: Optional[HarmonicsCacheConfig] = None) -> None:
        self.hass = hass
        self.catalog = catalog or NoaaCatalog(hass)
        self.config = config or HarmonicsCacheConfig()
        self._store: Store = Store(hass, STORE_VERSION, STORE_KEY_HARMONICS)
        self._backup_store: Store = Store(hass, STORE_VERSION, STORE_KEY_HARMONICS_BACKUP)
        self._metadata_store: Store = Store(hass, STORE_VERSION, STORE_KEY_HARMONICS_METADATA)
        self._updating = False

    @property
    def is_updating(self) -> bool:
        return self._updating

    # -----------------------
    # Read accessors
    # -----------------------
    async def async_load_database(self) -> Optional[HarmonicsDatabase]:
        raw = await self._store.async_load()
        if not raw:
            return None
        try:
            database = HarmonicsDatabase.from_dict(raw)
        except (KeyError, TypeError, ValueError):
            _LOGGER.exception("Stored harmonics database is unreadable")
            return None
        _LOGGER.debug("Loaded %d harmonic stations from cache", len(database.stations))
        return database

    async def async_load_metadata(self) -> Optional[CacheMetadata]:
        raw = await self._metadata_store.async_load()
        if not raw:
            return None
        try:
            return CacheMetadata.from_dict(raw)
        except (KeyError, TypeError, ValueError):
            _LOGGER.exception("Stored harmonics metadata is unreadable")
            return None

    # -----------------------
    # Policy
    # -----------------------
    async def async_should_update(self, position: Position, now: Optional[datetime] = None) -> UpdateCheck:
        metadata = await self.async_load_metadata()
        if metadata is None:
            return UpdateCheck(True, "No cache exists")

        now = now or dt_util.utcnow()
        max_days = UPDATE_FREQUENCY_DAYS[self.config.update_frequency]
        if max_days is not None:
            age_days = (now - metadata.last_update).total_seconds() / 86400.0
            if age_days > max_days:
                return UpdateCheck(True, f"Cache expired ({int(age_days)} days old)")

        moved = distance_nm(position, metadata.center)
        if moved > HARMONICS_MAX_CENTER_DISTANCE_NM:
            return UpdateCheck(True, f"Vessel moved {moved:.0f} nm from cache center")

        database = await self.async_load_database()
        if database is not None:
            radius = self.config.auto_download_radius
            nearby = sum(1 for s in database.stations if distance_nm(position, s.position) <= radius)
            if nearby < self.config.min_stations:
                return UpdateCheck(
                    True,
                    f"Only {nearby} stations within {radius:g}nm (need {self.config.min_stations})",
                )

        return UpdateCheck(False, "Cache is current")

    # -----------------------
    # Download
    # -----------------------
    async def async_download_region(self, center: Position, radius_nm: float) -> Optional[HarmonicsDatabase]:
        """Fetch and convert every usable station within radius_nm; None when nothing converts."""
        try:
            catalog = await self.catalog.async_list_stations("harcon")
        except HarmonicsCatalogError as exc:
            _LOGGER.warning("Harmonics download at %gnm failed: %s", radius_nm, exc)
            return None

        nearby = []
        for meta in catalog:
            try:
                pos = Position(float(meta["lat"]), float(meta["lng"]))
            except (KeyError, TypeError, ValueError):
                continue
            if distance_nm(center, pos) <= radius_nm:
                nearby.append(meta)

        _LOGGER.debug("Found %d catalog stations within %gnm", len(nearby), radius_nm)
        if not nearby:
            return None

        stations: List[HarmonicStation] = []
        for index, meta in enumerate(nearby, start=1):
            station_id = str(meta.get("id"))
            try:
                constituents = await self.catalog.async_get_constituents(station_id)
                offset = await self.catalog.async_get_datum_offset(station_id)
                converted = convert_station(meta, constituents, offset)
            except (HarmonicsCatalogError, KeyError, ValueError) as exc:
                _LOGGER.warning("Skipping harmonic station %s (%s): %s", meta.get("name"), station_id, exc)
            else:
                if converted is None:
                    _LOGGER.debug("Station %s lacks primary constituents; discarded", station_id)
                else:
                    stations.append(converted)
                    _LOGGER.debug("Downloaded %s (%d/%d)", converted.name, index, len(nearby))
            if self.config.request_delay > 0:
                await asyncio.sleep(self.config.request_delay)

        if not stations:
            return None

        now = dt_util.utcnow()
        stations.sort(key=lambda s: s.position.latitude, reverse=True)
        return HarmonicsDatabase(
            version=f"noaa-{now.date().isoformat()}",
            info=(
                f"NOAA CO-OPS harmonic constituents within {radius_nm:g}nm of "
                f"{center.latitude:.4f}, {center.longitude:.4f}"
            ),
            source=SOURCE_NAME,
            url=SOURCE_URL,
            extracted_at=now,
            center=center,
            radius_nm=float(radius_nm),
            stations=tuple(stations),
        )

    async def async_update_if_needed(self, position: Position) -> Optional[HarmonicsDatabase]:
        """Refresh the cache when policy demands; always returns the best database available."""
        check = await self.async_should_update(position)
        if not check.update:
            _LOGGER.debug("Harmonics cache up to date: %s", check.reason)
            return await self.async_load_database()

        if self._updating:
            _LOGGER.debug("Harmonics refresh already running; serving cached database")
            return await self.async_load_database()

        _LOGGER.info("Updating harmonics cache: %s", check.reason)
        self._updating = True
        try:
            radius = self.config.auto_download_radius
            database = await self.async_download_region(position, radius)
            while (
                self.config.expand_radius_if_needed
                and (database is None or len(database.stations) < self.config.min_stations)
                and radius < self.config.max_radius
            ):
                radius = min(radius + HARMONICS_RADIUS_STEP_NM, self.config.max_radius)
                _LOGGER.debug(
                    "Only %d stations found, expanding radius to %gnm",
                    len(database.stations) if database else 0,
                    radius,
                )
                database = await self.async_download_region(position, radius)
        finally:
            self._updating = False

        if database is not None and await self.async_save(database):
            return database
        return await self.async_load_database()

    # -----------------------
    # Persistence
    # -----------------------
    async def async_save(self, database: HarmonicsDatabase) -> bool:
        """Backup current primary, write new primary, then metadata. Returns False on any write failure."""
        metadata = CacheMetadata(
            last_update=dt_util.utcnow(),
            center=database.center,
            radius_nm=database.radius_nm,
            station_count=len(database.stations),
            source_version=database.version,
        )
        try:
            current = await self._store.async_load()
            if current:
                await self._backup_store.async_save(current)
            await self._store.async_save(database.as_dict())
            await self._metadata_store.async_save(metadata.as_dict())
        except (OSError, HomeAssistantError):
            _LOGGER.exception("Failed to save harmonics cache; previous data kept")
            return False
        _LOGGER.info("Saved %d harmonic stations to cache (%s)", len(database.stations), database.version)
        return True
