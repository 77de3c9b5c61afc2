# Tide coordinator: online -> offline fallback, datum normalization, hysteresis station selection and tide state emission

from __future__ import annotations

import asyncio
import dataclasses
from datetime import date as date_cls, datetime
import logging
from typing import Any, Dict, Optional

import async_timeout

from homeassistant.core import HassJob, HomeAssistant, callback
from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers.dispatcher import async_dispatcher_send
from homeassistant.helpers.event import async_call_later
from homeassistant.helpers.update_coordinator import DataUpdateCoordinator, UpdateFailed
from homeassistant.util import dt as dt_util

from .const import (
    DEFAULT_DATUM_SAFETY_MARGIN,
    DEFAULT_ENABLE_OFFLINE_FALLBACK,
    DEFAULT_OFFLINE_MODE,
    DEFAULT_SHOW_OFFLINE_WARNING,
    DEFAULT_STATION_SWITCH_THRESHOLD_KM,
    DOMAIN,
    OFFLINE_MODE_ALWAYS,
    OFFLINE_WARNING_TEXT,
    POSITION_MAX_RETRIES,
    POSITION_RETRY_DELAY,
    SIGNAL_HEIGHT_NOW,
    UPDATE_ATTEMPT_TIMEOUT,
)
from .datum import to_canonical
from .exceptions import TideDataError, TideError
from .harmonics_cache import HarmonicsCache
from .models import (
    DataSource,
    Forecast,
    HeldForecastState,
    Position,
    TideFingerprint,
    TideState,
    iso_z,
    parse_time,
)
from .position import PositionSource
from .providers import TideProvider
from .station_selector import select
from .tide_state import build_tide_state
from .unit_helpers import km_to_m

_LOGGER = logging.getLogger(__name__)


def _describe_failure(exc: Exception) -> str:
    if isinstance(exc, asyncio.TimeoutError):
        return f"timed out after {UPDATE_ATTEMPT_TIMEOUT}s"
    return str(exc)


class TideCoordinator(DataUpdateCoordinator[HeldForecastState]):
    def __init__(
        self,
        hass: HomeAssistant,
        config_entry,
        *,
        provider: Optional[TideProvider],
        offline_provider: Optional[TideProvider],
        position_source: PositionSource,
        harmonics_cache: Optional[HarmonicsCache] = None,
        station_switch_threshold_km: float = DEFAULT_STATION_SWITCH_THRESHOLD_KM,
        enable_offline_fallback: bool = DEFAULT_ENABLE_OFFLINE_FALLBACK,
        offline_mode: str = DEFAULT_OFFLINE_MODE,
        show_offline_warning: bool = DEFAULT_SHOW_OFFLINE_WARNING,
        safety_margin: float = DEFAULT_DATUM_SAFETY_MARGIN,
    ):
        """
        - provider: the configured online source; may be None only in "always" offline mode.
        - offline_provider: harmonic predictor source, used as fallback or as primary in "always" mode.
        - Forecast refreshes are requested explicitly (position updates), never on a coordinator interval.
        """
        super().__init__(
            hass,
            _LOGGER,
            config_entry=config_entry,
            name=DOMAIN,
            update_interval=None,
            always_update=False,
        )
        if provider is None and offline_mode != OFFLINE_MODE_ALWAYS:
            raise ValueError("An online provider is required unless offline_mode is 'always' (strict)")
        if offline_mode == OFFLINE_MODE_ALWAYS and offline_provider is None:
            raise ValueError("offline_mode 'always' requires an offline provider (strict)")

        self.provider = provider
        self.offline_provider = offline_provider
        self.position_source = position_source
        self.harmonics_cache = harmonics_cache
        self.threshold_m = km_to_m(station_switch_threshold_km) or 0.0
        self.enable_offline_fallback = bool(enable_offline_fallback)
        self.offline_mode = offline_mode
        self.show_offline_warning = bool(show_offline_warning)
        self.safety_margin = float(safety_margin)

        self.entry_key = config_entry.entry_id if config_entry is not None else DOMAIN
        self.data = HeldForecastState()
        self.position: Optional[Position] = None
        self.tide_state: Optional[TideState] = None
        self.height_now: Optional[float] = None

        self._last_sent: Optional[TideFingerprint] = None
        self._position_retries = 0
        self._retry_unsub = None
        self._harmonics_task: Optional[asyncio.Task] = None

    # -----------------------
    # Derived status
    # -----------------------
    @property
    def data_source(self) -> Optional[DataSource]:
        """Source of the forecast being served; 'cached' after a failed cycle."""
        held = self.data
        if held is None or held.forecast is None:
            return None
        if not self.last_update_success:
            return DataSource.CACHED
        return held.data_source

    @property
    def status(self) -> str:
        if not self.last_update_success and self.last_exception is not None:
            return str(self.last_exception)
        return self.data.status if self.data else ""

    def _primary_provider(self) -> TideProvider:
        if self.offline_mode == OFFLINE_MODE_ALWAYS:
            return self.offline_provider
        return self.provider

    # -----------------------
    # Position
    # -----------------------
    async def async_update_position(self) -> None:
        """Read live (or last persisted) position, kick background harmonics refresh, request a forecast."""
        position = await self.position_source.async_get()
        self.position = position
        if position is None:
            if self._position_retries < POSITION_MAX_RETRIES and self._retry_unsub is None:
                self._position_retries += 1
                _LOGGER.debug(
                    "Position not available, will retry (%d/%d)", self._position_retries, POSITION_MAX_RETRIES
                )
                self._retry_unsub = async_call_later(
                    self.hass, POSITION_RETRY_DELAY, HassJob(self._async_retry_position, cancel_on_shutdown=True)
                )
            return

        self._position_retries = 0
        await self.position_source.async_save(position)
        self.async_start_harmonics_refresh()
        await self.async_request_refresh()

    async def _async_retry_position(self, _now: datetime) -> None:
        self._retry_unsub = None
        await self.async_update_position()

    @callback
    def async_start_harmonics_refresh(self) -> None:
        """Start a background cache refresh unless one is already running."""
        if self.harmonics_cache is None or self.position is None:
            return
        if self.harmonics_cache.is_updating or (self._harmonics_task is not None and not self._harmonics_task.done()):
            return
        self._harmonics_task = self.hass.async_create_background_task(
            self._async_refresh_harmonics(self.position), name=f"{DOMAIN} harmonics refresh"
        )

    async def _async_refresh_harmonics(self, position: Position) -> None:
        _LOGGER.debug("Checking if harmonics cache needs update")
        try:
            await self.harmonics_cache.async_update_if_needed(position)
        except Exception:
            _LOGGER.exception("Harmonics cache update failed")

    # -----------------------
    # Forecast cycle
    # -----------------------
    async def _async_update_data(self) -> HeldForecastState:
        """One forecast cycle. Never clears the held forecast; total failure raises UpdateFailed."""
        held = self.data or HeldForecastState()
        position = self.position
        if position is None:
            _LOGGER.debug("No position available, cannot fetch tide data")
            return held

        errors = []
        new_state: Optional[HeldForecastState] = None
        if self.offline_mode != OFFLINE_MODE_ALWAYS:
            try:
                async with async_timeout.timeout(UPDATE_ATTEMPT_TIMEOUT):
                    new_state = await self._async_update_online(position, held)
            except (TideError, asyncio.TimeoutError) as exc:
                reason = _describe_failure(exc)
                _LOGGER.debug("Online provider %s failed: %s", self.provider.title, reason)
                errors.append(f"{self.provider.title}: {reason}")

        use_offline = self.offline_mode == OFFLINE_MODE_ALWAYS or self.enable_offline_fallback
        if new_state is None and use_offline and self.offline_provider is not None:
            try:
                async with async_timeout.timeout(UPDATE_ATTEMPT_TIMEOUT):
                    new_state = await self._async_update_offline(position, held)
            except (TideError, asyncio.TimeoutError) as exc:
                reason = _describe_failure(exc)
                _LOGGER.debug("Offline prediction failed: %s", reason)
                errors.append(f"offline: {reason}")

        if new_state is None:
            raise UpdateFailed("Tide forecast unavailable (" + "; ".join(errors) + ")")

        self._evaluate_tides(new_state.forecast, dt_util.utcnow())
        return new_state

    async def _async_fetch_canonical(self, provider: TideProvider, position: Position, when: Optional[datetime] = None) -> Forecast:
        forecast = to_canonical(await provider.fetch(position, when), self.safety_margin)
        if not forecast.extremes:
            raise TideDataError(f"{provider.title} returned no tide extremes")
        return forecast

    async def _async_update_online(self, position: Position, held: HeldForecastState) -> HeldForecastState:
        candidate = await self._async_fetch_canonical(self.provider, position)

        # an offline forecast is never kept in preference to online data
        current = held.forecast if held.data_source is DataSource.ONLINE else None
        selection = select(candidate, held.preferred_station, position, self.threshold_m, current)
        if selection.switched and selection.preferred_station != held.preferred_station:
            self._last_sent = None

        now = dt_util.utcnow()
        _LOGGER.debug("Data source: online, station: %s", selection.preferred_station.name)
        return dataclasses.replace(
            held,
            forecast=selection.forecast,
            preferred_station=selection.preferred_station,
            last_successful_fetch=now,
            data_source=DataSource.ONLINE,
            offline_warning=False,
            status=f"Updated from {self.provider.title} at {iso_z(now)}",
        )

    async def _async_update_offline(self, position: Position, held: HeldForecastState) -> HeldForecastState:
        forecast = await self._async_fetch_canonical(self.offline_provider, position)
        self._last_sent = None

        warning = f" - {OFFLINE_WARNING_TEXT}" if self.show_offline_warning else ""
        now = dt_util.utcnow()
        _LOGGER.info("Using offline harmonic prediction from %s", forecast.station.name)
        return dataclasses.replace(
            held,
            forecast=forecast,
            preferred_station=forecast.station,
            data_source=DataSource.OFFLINE,
            offline_warning=self.show_offline_warning,
            status=f"Offline mode{warning} at {iso_z(now)}",
        )

    # -----------------------
    # Tide state emitter
    # -----------------------
    @callback
    def _evaluate_tides(self, forecast: Optional[Forecast], now: datetime) -> Optional[TideState]:
        """Refresh height_now; return the new state only when the fingerprint changed."""
        if forecast is None:
            return None
        state = build_tide_state(forecast, now)
        self.height_now = state.height_now
        async_dispatcher_send(self.hass, SIGNAL_HEIGHT_NOW.format(self.entry_key), state.height_now)

        if state.fingerprint == self._last_sent:
            _LOGGER.debug("Tide state unchanged, skipping publish")
            return None
        self.tide_state = state
        self._last_sent = state.fingerprint
        return state

    async def async_update_tides(self, now: Optional[datetime] = None) -> Optional[TideState]:
        """Timer entry point; notifies entity listeners only on a fingerprint change."""
        held = self.data
        if held is None or held.forecast is None:
            return None
        state = self._evaluate_tides(held.forecast, now or dt_util.utcnow())
        if state is not None:
            _LOGGER.debug("Publishing tide state: %s", state.as_dict())
            self.async_update_listeners()
        return state

    # -----------------------
    # Resource query
    # -----------------------
    async def async_list_resources(self, query: Optional[Dict[str, Any]] = None) -> Forecast:
        """Held forecast, or a fresh fetch when nothing is held yet."""
        held = self.data
        if held is not None and held.forecast is not None:
            return held.forecast
        if self.position is None:
            raise HomeAssistantError("No position available")

        when = None
        raw_date = (query or {}).get("date")
        if isinstance(raw_date, datetime):
            when = dt_util.as_utc(raw_date)
        elif isinstance(raw_date, date_cls):
            when = dt_util.start_of_local_day(raw_date)
        elif raw_date:
            try:
                when = parse_time(raw_date)
            except ValueError as exc:
                raise HomeAssistantError(f"Invalid date {raw_date!r}") from exc

        provider = self._primary_provider()
        try:
            return await self._async_fetch_canonical(provider, self.position, when)
        except TideError as exc:
            raise HomeAssistantError(f"Tide forecast unavailable: {exc}") from exc

    async def async_shutdown(self) -> None:
        if self._retry_unsub is not None:
            self._retry_unsub()
            self._retry_unsub = None
        if self._harmonics_task is not None and not self._harmonics_task.done():
            self._harmonics_task.cancel()
        await super().async_shutdown()
