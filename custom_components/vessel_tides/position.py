"""Vessel position source: live entity attributes with a one-slot persisted fallback."""
from __future__ import annotations

import logging
from typing import Optional

from homeassistant.const import ATTR_LATITUDE, ATTR_LONGITUDE, STATE_UNAVAILABLE, STATE_UNKNOWN
from homeassistant.core import HomeAssistant
from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers.storage import Store

from .const import STORE_KEY_POSITION, STORE_VERSION
from .models import Position

_LOGGER = logging.getLogger(__name__)


class PositionSource:
    """
    Reads the vessel position from an entity's latitude/longitude attributes
    (device_tracker, GNSS sensor). With no entity configured the HA home
    location is used.
    """

    def __init__(self, hass: HomeAssistant, entity_id: Optional[str] = None) -> None:
        self.hass = hass
        self.entity_id = entity_id
        self._store: Store = Store(hass, STORE_VERSION, STORE_KEY_POSITION)

    def get_live(self) -> Optional[Position]:
        if not self.entity_id:
            lat = self.hass.config.latitude
            lon = self.hass.config.longitude
            if lat is None or lon is None:
                return None
            return Position(float(lat), float(lon))

        state = self.hass.states.get(self.entity_id)
        if state is None or state.state in (STATE_UNAVAILABLE, STATE_UNKNOWN):
            return None
        lat = state.attributes.get(ATTR_LATITUDE)
        lon = state.attributes.get(ATTR_LONGITUDE)
        try:
            return Position(float(lat), float(lon))
        except (TypeError, ValueError):
            _LOGGER.debug("Entity %s has no usable latitude/longitude attributes", self.entity_id)
            return None

    async def async_load_cached(self) -> Optional[Position]:
        raw = await self._store.async_load()
        if not raw:
            return None
        try:
            return Position.from_dict(raw)
        except (TypeError, ValueError):
            _LOGGER.warning("Discarding unreadable persisted position: %r", raw)
            return None

    async def async_get(self) -> Optional[Position]:
        """Live position if available, otherwise the last persisted one."""
        return self.get_live() or await self.async_load_cached()

    async def async_save(self, position: Position) -> None:
        try:
            await self._store.async_save(position.as_dict())
        except (OSError, HomeAssistantError):
            _LOGGER.exception("Failed to persist last known position")
