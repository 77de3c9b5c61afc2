"""
Vessel Tides sensors.

Entities read the coordinator's published tide_state (updated only when the
next-extreme fingerprint changes) and the held forecast state. The height
sensor is driven by the per-minute dispatcher signal instead, so it stays live
without republishing the rest.

Entities stay available as long as a forecast is held, even after a failed
cycle: a stale forecast is served rather than none.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from homeassistant.components.sensor import (
    SensorDeviceClass,
    SensorEntity,
    SensorEntityDescription,
    SensorStateClass,
)
from homeassistant.config_entries import ConfigEntry
from homeassistant.const import UnitOfLength
from homeassistant.core import HomeAssistant, callback
from homeassistant.helpers.dispatcher import async_dispatcher_connect
from homeassistant.helpers.update_coordinator import CoordinatorEntity

from .const import CONF_NAME, DEFAULT_NAME, DOMAIN, OFFLINE_WARNING_TEXT, SIGNAL_HEIGHT_NOW
from .coordinator import TideCoordinator
from .models import iso_z

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, kw_only=True)
class TideSensorDescription(SensorEntityDescription):
    value_fn: Callable[[TideCoordinator], Any]


def _extreme_attr(kind: str, attr: str) -> Callable[[TideCoordinator], Any]:
    def _get(coordinator: TideCoordinator) -> Any:
        state = coordinator.tide_state
        extreme = getattr(state, kind, None) if state else None
        return getattr(extreme, attr) if extreme else None

    return _get


def _station_name(coordinator: TideCoordinator) -> Optional[str]:
    if coordinator.tide_state is not None:
        return coordinator.tide_state.station_name
    held = coordinator.data
    return held.forecast.station.name if held and held.forecast else None


def _data_source(coordinator: TideCoordinator) -> Optional[str]:
    source = coordinator.data_source
    return source.value if source else None


SENSORS = (
    TideSensorDescription(key="station_name", name="Station name", value_fn=_station_name),
    TideSensorDescription(
        key="height_now",
        name="Tide height",
        device_class=SensorDeviceClass.DISTANCE,
        state_class=SensorStateClass.MEASUREMENT,
        native_unit_of_measurement=UnitOfLength.METERS,
        suggested_display_precision=2,
        value_fn=lambda c: c.height_now,
    ),
    TideSensorDescription(
        key="next_high_time",
        name="Next high tide",
        device_class=SensorDeviceClass.TIMESTAMP,
        value_fn=_extreme_attr("next_high", "time"),
    ),
    TideSensorDescription(
        key="next_high_height",
        name="Next high tide height",
        device_class=SensorDeviceClass.DISTANCE,
        native_unit_of_measurement=UnitOfLength.METERS,
        suggested_display_precision=2,
        value_fn=_extreme_attr("next_high", "value"),
    ),
    TideSensorDescription(
        key="next_low_time",
        name="Next low tide",
        device_class=SensorDeviceClass.TIMESTAMP,
        value_fn=_extreme_attr("next_low", "time"),
    ),
    TideSensorDescription(
        key="next_low_height",
        name="Next low tide height",
        device_class=SensorDeviceClass.DISTANCE,
        native_unit_of_measurement=UnitOfLength.METERS,
        suggested_display_precision=2,
        value_fn=_extreme_attr("next_low", "value"),
    ),
    TideSensorDescription(
        key="data_source",
        name="Data source",
        device_class=SensorDeviceClass.ENUM,
        options=["online", "offline", "cached"],
        value_fn=_data_source,
    ),
)


class TideSensor(CoordinatorEntity[TideCoordinator], SensorEntity):
    """One published tide value."""

    entity_description: TideSensorDescription
    _attr_has_entity_name = True

    def __init__(self, coordinator: TideCoordinator, description: TideSensorDescription, name: str) -> None:
        super().__init__(coordinator)
        self.entity_description = description
        self._attr_unique_id = f"{coordinator.entry_key}_{description.key}"
        self._attr_device_info = {
            "identifiers": {(DOMAIN, coordinator.entry_key)},
            "name": name,
        }

    @property
    def available(self) -> bool:
        held = self.coordinator.data
        return bool(held and held.forecast)

    @property
    def native_value(self) -> Any:
        return self.entity_description.value_fn(self.coordinator)

    @property
    def extra_state_attributes(self) -> Optional[Dict[str, Any]]:
        if self.entity_description.key != "station_name":
            return None
        held = self.coordinator.data
        attrs: Dict[str, Any] = {
            "status": self.coordinator.status,
            "data_source": _data_source(self.coordinator),
            "last_successful_fetch": iso_z(held.last_successful_fetch) if held else None,
        }
        if held and held.preferred_station:
            attrs["station_latitude"] = held.preferred_station.position.latitude
            attrs["station_longitude"] = held.preferred_station.position.longitude
        if held and held.offline_warning:
            attrs["warning"] = OFFLINE_WARNING_TEXT
        return attrs


class TideHeightSensor(TideSensor):
    """Interpolated current height, refreshed on every emitter tick."""

    async def async_added_to_hass(self) -> None:
        await super().async_added_to_hass()
        self.async_on_remove(
            async_dispatcher_connect(
                self.hass, SIGNAL_HEIGHT_NOW.format(self.coordinator.entry_key), self._handle_height
            )
        )

    @callback
    def _handle_height(self, _height: Optional[float]) -> None:
        self.async_write_ha_state()


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry, async_add_entities) -> None:
    coordinator: Optional[TideCoordinator] = hass.data.get(DOMAIN, {}).get(entry.entry_id)
    if coordinator is None:
        raise RuntimeError("Coordinator not found in hass.data for this config entry (strict)")

    name = entry.data.get(CONF_NAME) or DEFAULT_NAME
    entities = [
        TideHeightSensor(coordinator, description, name)
        if description.key == "height_now"
        else TideSensor(coordinator, description, name)
        for description in SENSORS
    ]
    async_add_entities(entities)
