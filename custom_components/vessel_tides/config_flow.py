"""Config flow for Vessel Tides"""

from __future__ import annotations

import logging
from typing import Any

import voluptuous as vol
from homeassistant import config_entries
from homeassistant.core import callback
from homeassistant.data_entry_flow import FlowResult
from homeassistant.helpers import selector

from .const import (
    CONF_ENABLE_OFFLINE_FALLBACK,
    CONF_HARMONICS_EXPAND_RADIUS,
    CONF_HARMONICS_MAX_RADIUS,
    CONF_HARMONICS_MIN_STATIONS,
    CONF_HARMONICS_RADIUS,
    CONF_HARMONICS_UPDATE_FREQUENCY,
    CONF_NAME,
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
    DEFAULT_NAME,
    DEFAULT_OFFLINE_MODE,
    DEFAULT_PERIOD_MINUTES,
    DEFAULT_SHOW_OFFLINE_WARNING,
    DEFAULT_STATION_SWITCH_THRESHOLD_KM,
    DOMAIN,
    OFFLINE_MODE_ALWAYS,
    OFFLINE_MODE_AUTO,
    SOURCE_NOAA,
    SOURCE_OFFLINE,
    SOURCE_STORMGLASS,
    SOURCE_WORLDTIDES,
    UPDATE_FREQUENCY_DAYS,
)

_LOGGER = logging.getLogger(__name__)

SOURCE_OPTIONS = [
    {"value": SOURCE_NOAA, "label": "NOAA (US only)"},
    {"value": SOURCE_WORLDTIDES, "label": "worldtides.info"},
    {"value": SOURCE_STORMGLASS, "label": "StormGlass.io"},
    {"value": SOURCE_OFFLINE, "label": "Offline (harmonic prediction)"},
]


def _forecast_schema(defaults: dict[str, Any]) -> dict:
    return {
        vol.Required(CONF_PERIOD, default=defaults.get(CONF_PERIOD, DEFAULT_PERIOD_MINUTES)): selector.NumberSelector(
            selector.NumberSelectorConfig(min=1, max=1440, step=1, unit_of_measurement="min", mode="box")
        ),
        vol.Required(
            CONF_STATION_SWITCH_THRESHOLD,
            default=defaults.get(CONF_STATION_SWITCH_THRESHOLD, DEFAULT_STATION_SWITCH_THRESHOLD_KM),
        ): selector.NumberSelector(
            selector.NumberSelectorConfig(min=0, max=200, step=0.5, unit_of_measurement="km", mode="box")
        ),
    }


def _offline_schema(defaults: dict[str, Any]) -> dict:
    return {
        vol.Required(
            CONF_ENABLE_OFFLINE_FALLBACK,
            default=defaults.get(CONF_ENABLE_OFFLINE_FALLBACK, DEFAULT_ENABLE_OFFLINE_FALLBACK),
        ): selector.BooleanSelector(),
        vol.Required(CONF_OFFLINE_MODE, default=defaults.get(CONF_OFFLINE_MODE, DEFAULT_OFFLINE_MODE)): selector.SelectSelector(
            selector.SelectSelectorConfig(
                options=[
                    {"value": OFFLINE_MODE_AUTO, "label": "Auto (fallback)"},
                    {"value": OFFLINE_MODE_ALWAYS, "label": "Always offline"},
                ],
                mode="list",
            )
        ),
        vol.Required(
            CONF_SHOW_OFFLINE_WARNING,
            default=defaults.get(CONF_SHOW_OFFLINE_WARNING, DEFAULT_SHOW_OFFLINE_WARNING),
        ): selector.BooleanSelector(),
        vol.Required(
            CONF_HARMONICS_RADIUS, default=defaults.get(CONF_HARMONICS_RADIUS, DEFAULT_HARMONICS_RADIUS_NM)
        ): selector.NumberSelector(
            selector.NumberSelectorConfig(min=50, max=2000, step=50, unit_of_measurement="nm", mode="box")
        ),
        vol.Required(
            CONF_HARMONICS_UPDATE_FREQUENCY,
            default=defaults.get(CONF_HARMONICS_UPDATE_FREQUENCY, DEFAULT_HARMONICS_UPDATE_FREQUENCY),
        ): selector.SelectSelector(
            selector.SelectSelectorConfig(options=list(UPDATE_FREQUENCY_DAYS), mode="dropdown")
        ),
        vol.Required(
            CONF_HARMONICS_MIN_STATIONS,
            default=defaults.get(CONF_HARMONICS_MIN_STATIONS, DEFAULT_HARMONICS_MIN_STATIONS),
        ): selector.NumberSelector(selector.NumberSelectorConfig(min=1, max=50, step=1, mode="box")),
        vol.Required(
            CONF_HARMONICS_EXPAND_RADIUS,
            default=defaults.get(CONF_HARMONICS_EXPAND_RADIUS, DEFAULT_HARMONICS_EXPAND_RADIUS),
        ): selector.BooleanSelector(),
        vol.Required(
            CONF_HARMONICS_MAX_RADIUS,
            default=defaults.get(CONF_HARMONICS_MAX_RADIUS, DEFAULT_HARMONICS_MAX_RADIUS_NM),
        ): selector.NumberSelector(
            selector.NumberSelectorConfig(min=50, max=3000, step=50, unit_of_measurement="nm", mode="box")
        ),
    }


def validate_offline_input(user_input: dict[str, Any]) -> dict[str, str]:
    """Return form errors for the offline/harmonics step."""
    errors: dict[str, str] = {}
    if float(user_input[CONF_HARMONICS_MAX_RADIUS]) < float(user_input[CONF_HARMONICS_RADIUS]):
        errors[CONF_HARMONICS_MAX_RADIUS] = "max_radius_too_small"
    return errors


class VesselTidesConfigFlow(config_entries.ConfigFlow, domain=DOMAIN):
    """Handle a config flow for Vessel Tides."""

    VERSION = 1

    def __init__(self) -> None:
        self.tide_config: dict[str, Any] = {}

    async def async_step_user(self, user_input: dict[str, Any] | None = None) -> FlowResult:
        """Name, position entity, data source and forecast cadence."""
        errors: dict[str, str] = {}
        if user_input is not None:
            submitted_title = str(user_input.get(CONF_NAME, "")).strip()
            if not submitted_title:
                errors[CONF_NAME] = "name_required"
            elif any(e.title == submitted_title for e in self.hass.config_entries.async_entries(DOMAIN)):
                _LOGGER.debug("Attempt to create entry with duplicate title '%s' rejected", submitted_title)
                errors["base"] = "title_exists"

            if not errors:
                self.tide_config.update(user_input)
                self.tide_config[CONF_NAME] = submitted_title
                if user_input[CONF_SOURCE] in (SOURCE_WORLDTIDES, SOURCE_STORMGLASS):
                    return await self.async_step_credentials()
                return await self.async_step_offline()

        defaults = user_input or {}
        return self.async_show_form(
            step_id="user",
            data_schema=vol.Schema(
                {
                    vol.Required(CONF_NAME, default=defaults.get(CONF_NAME, DEFAULT_NAME)): str,
                    vol.Optional(CONF_POSITION_ENTITY): selector.EntitySelector(
                        selector.EntitySelectorConfig(domain=["device_tracker", "sensor"])
                    ),
                    vol.Required(CONF_SOURCE, default=defaults.get(CONF_SOURCE, SOURCE_NOAA)): selector.SelectSelector(
                        selector.SelectSelectorConfig(options=SOURCE_OPTIONS, mode="dropdown")
                    ),
                    **_forecast_schema(defaults),
                }
            ),
            errors=errors,
        )

    async def async_step_credentials(self, user_input: dict[str, Any] | None = None) -> FlowResult:
        """API key for the selected commercial provider."""
        source = self.tide_config[CONF_SOURCE]
        key_field = CONF_WORLDTIDES_API_KEY if source == SOURCE_WORLDTIDES else CONF_STORMGLASS_API_KEY
        errors: dict[str, str] = {}
        if user_input is not None:
            key = str(user_input.get(key_field, "")).strip()
            if not key:
                errors[key_field] = "api_key_required"
            else:
                self.tide_config[key_field] = key
                return await self.async_step_offline()

        return self.async_show_form(
            step_id="credentials",
            data_schema=vol.Schema(
                {
                    vol.Required(key_field): selector.TextSelector(
                        selector.TextSelectorConfig(type=selector.TextSelectorType.PASSWORD)
                    )
                }
            ),
            errors=errors,
        )

    async def async_step_offline(self, user_input: dict[str, Any] | None = None) -> FlowResult:
        """Offline fallback and harmonics cache settings."""
        errors: dict[str, str] = {}
        if user_input is not None:
            errors = validate_offline_input(user_input)
            if not errors:
                final_config = {**self.tide_config, **user_input}
                if final_config[CONF_SOURCE] == SOURCE_OFFLINE:
                    final_config[CONF_OFFLINE_MODE] = OFFLINE_MODE_ALWAYS
                return self.async_create_entry(title=final_config[CONF_NAME], data=final_config)

        return self.async_show_form(
            step_id="offline",
            data_schema=vol.Schema(_offline_schema(user_input or {})),
            errors=errors,
        )

    # Options flow (simple)
    @staticmethod
    @callback
    def async_get_options_flow(config_entry: config_entries.ConfigEntry) -> config_entries.OptionsFlow:
        return OptionsFlowHandler(config_entry)


class OptionsFlowHandler(config_entries.OptionsFlow):
    """Adjust cadence, hysteresis and offline behaviour after setup."""

    def __init__(self, config_entry: config_entries.ConfigEntry) -> None:
        self._config_entry = config_entry

    async def async_step_init(self, user_input: dict[str, Any] | None = None) -> FlowResult:
        errors: dict[str, str] = {}
        if user_input is not None:
            errors = validate_offline_input(user_input)
            if not errors:
                return self.async_create_entry(title="", data=user_input)

        current = {**self._config_entry.data, **self._config_entry.options}
        return self.async_show_form(
            step_id="init",
            data_schema=vol.Schema({**_forecast_schema(current), **_offline_schema(current)}),
            errors=errors,
        )
