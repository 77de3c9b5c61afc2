"""
Vessel Tides - integration entry points (strict).

Required values (name, source, period and the source's API key) must be
present in the config entry `data`; options override the tunables. Missing
or invalid values fail setup loudly (ValueError).
"""
import logging
from datetime import timedelta

import voluptuous as vol

from homeassistant.core import HassJob, ServiceCall, ServiceResponse, SupportsResponse
from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers import aiohttp_client
import homeassistant.helpers.config_validation as cv
from homeassistant.helpers.event import async_call_later, async_track_time_interval

from .const import (
    ATTR_DATE,
    ATTR_ENTRY_ID,
    CONF_ENABLE_OFFLINE_FALLBACK,
    CONF_HARMONICS_EXPAND_RADIUS,
    CONF_HARMONICS_MAX_RADIUS,
    CONF_HARMONICS_MIN_STATIONS,
    CONF_HARMONICS_RADIUS,
    CONF_HARMONICS_UPDATE_FREQUENCY,
    CONF_OFFLINE_MODE,
    CONF_PERIOD,
    CONF_POSITION_ENTITY,
    CONF_SHOW_OFFLINE_WARNING,
    CONF_SOURCE,
    CONF_STATION_SWITCH_THRESHOLD,
    CONF_STORMGLASS_API_KEY,
    CONF_WORLDTIDES_API_KEY,
    DEFAULT_ENABLE_OFFLINE_FALLBACK,
    DEFAULT_HARMONICS_EXPAND_RADIUS,
    DEFAULT_HARMONICS_MAX_RADIUS_NM,
    DEFAULT_HARMONICS_MIN_STATIONS,
    DEFAULT_HARMONICS_RADIUS_NM,
    DEFAULT_HARMONICS_UPDATE_FREQUENCY,
    DEFAULT_OFFLINE_MODE,
    DEFAULT_PERIOD_MINUTES,
    DEFAULT_SHOW_OFFLINE_WARNING,
    DEFAULT_STATION_SWITCH_THRESHOLD_KM,
    DOMAIN,
    OFFLINE_MODE_ALWAYS,
    OFFLINE_MODE_AUTO,
    SERVICE_GET_FORECAST,
    SOURCE_NOAA,
    SOURCE_OFFLINE,
    SOURCE_STORMGLASS,
    SOURCE_WORLDTIDES,
    SOURCES,
    STARTUP_DELAY,
    TIDE_STATE_INTERVAL,
)

_LOGGER = logging.getLogger(__name__)

PLATFORMS = ["sensor"]

GET_FORECAST_SCHEMA = vol.Schema(
    {
        vol.Optional(ATTR_ENTRY_ID): cv.string,
        vol.Optional(ATTR_DATE): cv.date,
    }
)


def build_provider(hass, source, config):
    """Return the online tide provider for `source` (strict)."""
    from .providers import NoaaProvider, StormGlassProvider, WorldTidesProvider

    session = aiohttp_client.async_get_clientsession(hass)
    if source == SOURCE_NOAA:
        return NoaaProvider(hass, session)
    if source == SOURCE_WORLDTIDES:
        key = config.get(CONF_WORLDTIDES_API_KEY)
        if not key:
            raise ValueError("Entry data missing 'worldtides_api_key' (strict)")
        return WorldTidesProvider(hass, key, session)
    if source == SOURCE_STORMGLASS:
        key = config.get(CONF_STORMGLASS_API_KEY)
        if not key:
            raise ValueError("Entry data missing 'stormglass_api_key' (strict)")
        return StormGlassProvider(hass, key, session)
    raise ValueError(f"Unsupported entry.data['source']: {source!r} (strict)")


async def async_setup_entry(hass, entry):
    """Set up integration from a config entry (strict)."""
    _LOGGER.debug("Starting async_setup_entry for entry %s", entry.entry_id)

    from .coordinator import TideCoordinator
    from .harmonics_cache import HarmonicsCache, HarmonicsCacheConfig
    from .noaa_catalog import NoaaCatalog
    from .offline import OfflineProvider
    from .position import PositionSource

    config = {**entry.data, **entry.options}

    source = config.get(CONF_SOURCE)
    if source not in SOURCES:
        _LOGGER.error("Config entry %s has unsupported source=%r (strict)", entry.entry_id, source)
        raise ValueError(f"Unsupported entry.data['source']: {source!r} (strict)")

    offline_mode = OFFLINE_MODE_ALWAYS if source == SOURCE_OFFLINE else config.get(CONF_OFFLINE_MODE, DEFAULT_OFFLINE_MODE)
    if offline_mode not in (OFFLINE_MODE_AUTO, OFFLINE_MODE_ALWAYS):
        raise ValueError(f"Invalid offline_mode: {offline_mode!r} (strict)")

    try:
        period_minutes = float(config.get(CONF_PERIOD, DEFAULT_PERIOD_MINUTES))
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid entry.data['period']: {config.get(CONF_PERIOD)!r} (strict)") from exc
    if period_minutes <= 0:
        raise ValueError("Entry data 'period' must be positive (strict)")

    session = aiohttp_client.async_get_clientsession(hass)
    harmonics_cache = HarmonicsCache(
        hass,
        NoaaCatalog(hass, session),
        HarmonicsCacheConfig(
            auto_download_radius=float(config.get(CONF_HARMONICS_RADIUS, DEFAULT_HARMONICS_RADIUS_NM)),
            update_frequency=config.get(CONF_HARMONICS_UPDATE_FREQUENCY, DEFAULT_HARMONICS_UPDATE_FREQUENCY),
            min_stations=int(config.get(CONF_HARMONICS_MIN_STATIONS, DEFAULT_HARMONICS_MIN_STATIONS)),
            expand_radius_if_needed=bool(config.get(CONF_HARMONICS_EXPAND_RADIUS, DEFAULT_HARMONICS_EXPAND_RADIUS)),
            max_radius=float(config.get(CONF_HARMONICS_MAX_RADIUS, DEFAULT_HARMONICS_MAX_RADIUS_NM)),
        ),
    )
    offline_provider = OfflineProvider(hass, harmonics_cache)
    provider = None if source == SOURCE_OFFLINE else build_provider(hass, source, config)

    coord = TideCoordinator(
        hass,
        entry,
        provider=provider,
        offline_provider=offline_provider,
        position_source=PositionSource(hass, config.get(CONF_POSITION_ENTITY)),
        harmonics_cache=harmonics_cache,
        station_switch_threshold_km=float(
            config.get(CONF_STATION_SWITCH_THRESHOLD, DEFAULT_STATION_SWITCH_THRESHOLD_KM)
        ),
        enable_offline_fallback=config.get(CONF_ENABLE_OFFLINE_FALLBACK, DEFAULT_ENABLE_OFFLINE_FALLBACK),
        offline_mode=offline_mode,
        show_offline_warning=config.get(CONF_SHOW_OFFLINE_WARNING, DEFAULT_SHOW_OFFLINE_WARNING),
    )
    _LOGGER.debug("TideCoordinator created for entry %s (source=%s, offline_mode=%s)", entry.entry_id, source, offline_mode)

    hass.data.setdefault(DOMAIN, {})[entry.entry_id] = coord

    await hass.config_entries.async_forward_entry_setups(entry, PLATFORMS)

    async def _async_poll_position(_now):
        await coord.async_update_position()

    entry.async_on_unload(
        async_call_later(hass, STARTUP_DELAY, HassJob(_async_poll_position, cancel_on_shutdown=True))
    )
    entry.async_on_unload(
        async_track_time_interval(
            hass, _async_poll_position, timedelta(minutes=period_minutes), cancel_on_shutdown=True
        )
    )
    entry.async_on_unload(
        async_track_time_interval(hass, coord.async_update_tides, TIDE_STATE_INTERVAL, cancel_on_shutdown=True)
    )
    entry.async_on_unload(entry.add_update_listener(_async_reload_entry))

    _async_register_services(hass)

    _LOGGER.debug("async_setup_entry completed for entry %s", entry.entry_id)
    return True


async def _async_reload_entry(hass, entry):
    await hass.config_entries.async_reload(entry.entry_id)


def _async_register_services(hass) -> None:
    if hass.services.has_service(DOMAIN, SERVICE_GET_FORECAST):
        return

    async def _async_handle_get_forecast(call: ServiceCall) -> ServiceResponse:
        """Return the held (or freshly fetched) forecast for one entry."""
        coordinators = hass.data.get(DOMAIN, {})
        entry_id = call.data.get(ATTR_ENTRY_ID)
        if entry_id is None:
            if len(coordinators) != 1:
                raise HomeAssistantError("entry_id is required when more than one entry is configured")
            coord = next(iter(coordinators.values()))
        else:
            coord = coordinators.get(entry_id)
            if coord is None:
                raise HomeAssistantError(f"Unknown entry_id {entry_id!r}")

        forecast = await coord.async_list_resources({ATTR_DATE: call.data.get(ATTR_DATE)})
        return {"forecast": forecast.as_dict()}

    hass.services.async_register(
        DOMAIN,
        SERVICE_GET_FORECAST,
        _async_handle_get_forecast,
        schema=GET_FORECAST_SCHEMA,
        supports_response=SupportsResponse.ONLY,
    )


async def async_unload_entry(hass, entry):
    """Unload a config entry."""
    _LOGGER.debug("Starting async_unload_entry for entry %s", entry.entry_id)
    unload_ok = await hass.config_entries.async_unload_platforms(entry, PLATFORMS)

    coord = hass.data.get(DOMAIN, {}).pop(entry.entry_id, None)
    if coord is not None:
        await coord.async_shutdown()
    if not hass.data.get(DOMAIN):
        hass.services.async_remove(DOMAIN, SERVICE_GET_FORECAST)

    _LOGGER.debug("async_unload_entry finished for entry %s, unload_ok=%s", entry.entry_id, unload_ok)
    return unload_ok
