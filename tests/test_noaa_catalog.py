import pytest

from custom_components.vessel_tides.const import NOAA_MDAPI_BASE
from custom_components.vessel_tides.exceptions import HarmonicsCatalogError
from custom_components.vessel_tides.noaa_catalog import NoaaCatalog
from custom_components.vessel_tides.unit_helpers import km_to_m, to_float_strict


async def test_list_stations(hass, aioclient_mock):
    aioclient_mock.get(
        f"{NOAA_MDAPI_BASE}/stations.json",
        json={"stations": [{"id": "9414290", "name": "San Francisco", "lat": 37.8, "lng": -122.46}]},
    )
    stations = await NoaaCatalog(hass).async_list_stations()
    assert stations[0]["id"] == "9414290"
    assert aioclient_mock.mock_calls[-1][1].query["type"] == "harcon"


async def test_missing_constituents_raise(hass, aioclient_mock):
    aioclient_mock.get(f"{NOAA_MDAPI_BASE}/stations/1/harcon.json", json={"units": "metric"})
    with pytest.raises(HarmonicsCatalogError):
        await NoaaCatalog(hass).async_get_constituents("1")


async def test_datum_offset_is_msl_minus_mllw(hass, aioclient_mock):
    aioclient_mock.get(
        f"{NOAA_MDAPI_BASE}/stations/1/datums.json",
        json={"datums": [{"name": "MLLW", "value": 1.2}, {"name": "MSL", "value": 2.15}, {"name": "X", "value": None}]},
    )
    assert await NoaaCatalog(hass).async_get_datum_offset("1") == pytest.approx(0.95)


async def test_datum_offset_defaults_to_zero(hass, aioclient_mock):
    aioclient_mock.get(f"{NOAA_MDAPI_BASE}/stations/1/datums.json", status=404)
    assert await NoaaCatalog(hass).async_get_datum_offset("1") == 0.0


def test_unit_helpers():
    assert km_to_m(10) == 10000.0
    assert km_to_m("bad") is None
    assert to_float_strict("1.5", "x") == 1.5
    with pytest.raises(ValueError):
        to_float_strict(None, "x")
