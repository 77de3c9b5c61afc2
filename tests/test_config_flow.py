from unittest.mock import patch

from homeassistant import config_entries
from homeassistant.data_entry_flow import FlowResultType
from pytest_homeassistant_custom_component.common import MockConfigEntry

from custom_components.vessel_tides.const import DOMAIN

OFFLINE_INPUT = {
    "enable_offline_fallback": True,
    "offline_mode": "auto",
    "show_offline_warning": True,
    "harmonics_radius": 500,
    "harmonics_update_frequency": "quarterly",
    "harmonics_min_stations": 2,
    "harmonics_expand_radius": True,
    "harmonics_max_radius": 1000,
}


async def _start(hass):
    return await hass.config_entries.flow.async_init(DOMAIN, context={"source": config_entries.SOURCE_USER})


async def test_noaa_flow_creates_entry(integration_hass):
    hass = integration_hass
    result = await _start(hass)
    assert result["type"] is FlowResultType.FORM
    assert result["step_id"] == "user"

    result = await hass.config_entries.flow.async_configure(
        result["flow_id"], {"name": "Boat", "source": "noaa", "period": 30, "station_switch_threshold": 10}
    )
    assert result["step_id"] == "offline"

    with patch("custom_components.vessel_tides.async_setup_entry", return_value=True):
        result = await hass.config_entries.flow.async_configure(result["flow_id"], OFFLINE_INPUT)
        await hass.async_block_till_done()

    assert result["type"] is FlowResultType.CREATE_ENTRY
    assert result["title"] == "Boat"
    assert result["data"]["source"] == "noaa"
    assert result["data"]["harmonics_max_radius"] == 1000


async def test_worldtides_flow_asks_for_key(integration_hass):
    hass = integration_hass
    result = await _start(hass)
    result = await hass.config_entries.flow.async_configure(
        result["flow_id"], {"name": "Boat", "source": "worldtides", "period": 60, "station_switch_threshold": 10}
    )
    assert result["step_id"] == "credentials"

    result = await hass.config_entries.flow.async_configure(result["flow_id"], {"worldtides_api_key": "  "})
    assert result["errors"] == {"worldtides_api_key": "api_key_required"}

    result = await hass.config_entries.flow.async_configure(result["flow_id"], {"worldtides_api_key": "abc"})
    assert result["step_id"] == "offline"

    with patch("custom_components.vessel_tides.async_setup_entry", return_value=True):
        result = await hass.config_entries.flow.async_configure(result["flow_id"], OFFLINE_INPUT)
        await hass.async_block_till_done()
    assert result["data"]["worldtides_api_key"] == "abc"


async def test_offline_source_forces_always_mode(integration_hass):
    hass = integration_hass
    result = await _start(hass)
    result = await hass.config_entries.flow.async_configure(
        result["flow_id"], {"name": "Boat", "source": "offline", "period": 60, "station_switch_threshold": 10}
    )
    with patch("custom_components.vessel_tides.async_setup_entry", return_value=True):
        result = await hass.config_entries.flow.async_configure(result["flow_id"], OFFLINE_INPUT)
        await hass.async_block_till_done()
    assert result["data"]["offline_mode"] == "always"


async def test_duplicate_title_rejected(integration_hass):
    hass = integration_hass
    MockConfigEntry(domain=DOMAIN, title="Boat", data={"name": "Boat", "source": "noaa"}).add_to_hass(hass)
    result = await _start(hass)
    result = await hass.config_entries.flow.async_configure(
        result["flow_id"], {"name": "Boat", "source": "noaa", "period": 60, "station_switch_threshold": 10}
    )
    assert result["type"] is FlowResultType.FORM
    assert result["errors"] == {"base": "title_exists"}


async def test_max_radius_below_radius_rejected(integration_hass):
    hass = integration_hass
    result = await _start(hass)
    result = await hass.config_entries.flow.async_configure(
        result["flow_id"], {"name": "Boat", "source": "noaa", "period": 60, "station_switch_threshold": 10}
    )
    result = await hass.config_entries.flow.async_configure(
        result["flow_id"], {**OFFLINE_INPUT, "harmonics_radius": 800, "harmonics_max_radius": 600}
    )
    assert result["errors"] == {"harmonics_max_radius": "max_radius_too_small"}
