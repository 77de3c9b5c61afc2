import pytest

from homeassistant.util import dt as dt_util

from custom_components.vessel_tides.const import NOAA_DATAGETTER, NOAA_MDAPI_BASE, STORMGLASS_BASE, WORLDTIDES_BASE
from custom_components.vessel_tides.exceptions import TideDataError, TideProviderError
from custom_components.vessel_tides.models import (
    Datum,
    DatumInfo,
    ExtremeType,
    HarmonicsDatabase,
    HarmonicStation,
    Position,
)
from custom_components.vessel_tides.offline import OfflineProvider
from custom_components.vessel_tides.providers import NoaaProvider, StormGlassProvider, WorldTidesProvider

from .common import primary_constituents

VESSEL = Position(37.80, -122.46)

NOAA_STATIONS = {
    "stations": [
        {"id": "9414290", "name": "San Francisco", "lat": 37.8063, "lng": -122.4659},
        {"id": "8518750", "name": "The Battery", "lat": 40.7006, "lng": -74.0142},
    ]
}

NOAA_PREDICTIONS = {
    "predictions": [
        {"t": "2025-06-01 04:12", "v": "1.702", "type": "H"},
        {"t": "2025-06-01 00:30", "v": "-0.112", "type": "L"},
        {"t": "2025-06-01 10:40", "v": "0.501", "type": "L"},
    ]
}


async def test_noaa_picks_nearest_station(hass, aioclient_mock):
    aioclient_mock.get(f"{NOAA_MDAPI_BASE}/stations.json", json=NOAA_STATIONS)
    aioclient_mock.get(NOAA_DATAGETTER, json=NOAA_PREDICTIONS)

    forecast = await NoaaProvider(hass).fetch(VESSEL)

    assert forecast.station.name == "San Francisco"
    assert forecast.datum == DatumInfo(Datum.MLLW)
    # sorted by time on construction
    assert [e.type for e in forecast.extremes] == [ExtremeType.LOW, ExtremeType.HIGH, ExtremeType.LOW]
    assert forecast.extremes[0].value == pytest.approx(-0.112)
    assert forecast.extremes[1].time.hour == 4

    params = aioclient_mock.mock_calls[-1][1].query
    assert params["station"] == "9414290"
    assert params["datum"] == "MLLW"
    assert params["interval"] == "hilo"


async def test_noaa_station_list_downloaded_once(hass, aioclient_mock):
    aioclient_mock.get(f"{NOAA_MDAPI_BASE}/stations.json", json=NOAA_STATIONS)
    aioclient_mock.get(NOAA_DATAGETTER, json=NOAA_PREDICTIONS)
    provider = NoaaProvider(hass)
    await provider.fetch(VESSEL)
    await provider.fetch(VESSEL)
    station_calls = [c for c in aioclient_mock.mock_calls if str(c[1]).startswith(NOAA_MDAPI_BASE)]
    assert len(station_calls) == 1


async def test_noaa_error_payload(hass, aioclient_mock):
    aioclient_mock.get(f"{NOAA_MDAPI_BASE}/stations.json", json=NOAA_STATIONS)
    aioclient_mock.get(NOAA_DATAGETTER, json={"error": {"message": "No Predictions data was found"}})
    with pytest.raises(TideProviderError, match="No Predictions"):
        await NoaaProvider(hass).fetch(VESSEL)


async def test_noaa_http_failure(hass, aioclient_mock):
    aioclient_mock.get(f"{NOAA_MDAPI_BASE}/stations.json", status=503)
    with pytest.raises(TideProviderError):
        await NoaaProvider(hass).fetch(VESSEL)


async def test_worldtides(hass, aioclient_mock):
    aioclient_mock.get(
        WORLDTIDES_BASE,
        json={
            "status": 200,
            "responseLat": 37.8,
            "responseLon": -122.5,
            "station": "San Francisco",
            "extremes": [
                {"dt": 1748736000, "height": 1.8, "type": "High"},
                {"dt": 1748758320, "height": 0.1, "type": "Low"},
            ],
        },
    )
    forecast = await WorldTidesProvider(hass, "secret").fetch(VESSEL)
    assert forecast.station.name == "San Francisco"
    assert forecast.datum == DatumInfo(Datum.MLLW)
    assert [e.type for e in forecast.extremes] == [ExtremeType.HIGH, ExtremeType.LOW]
    assert aioclient_mock.mock_calls[-1][1].query["datum"] == "CD"


async def test_worldtides_error_status(hass, aioclient_mock):
    aioclient_mock.get(WORLDTIDES_BASE, json={"status": 400, "error": "Invalid key"})
    with pytest.raises(TideProviderError, match="Invalid key"):
        await WorldTidesProvider(hass, "bad").fetch(VESSEL)


async def test_worldtides_requires_key(hass):
    with pytest.raises(ValueError):
        WorldTidesProvider(hass, "")


async def test_stormglass_is_msl(hass, aioclient_mock):
    aioclient_mock.get(
        STORMGLASS_BASE,
        json={
            "data": [
                {"time": "2025-06-01T03:00:00+00:00", "height": 0.9, "type": "high"},
                {"time": "2025-06-01T09:10:00+00:00", "height": -0.8, "type": "low"},
            ],
            "meta": {"station": {"name": "san francisco", "lat": 37.8, "lng": -122.47}},
        },
    )
    forecast = await StormGlassProvider(hass, "secret").fetch(VESSEL)
    assert forecast.datum == DatumInfo(Datum.MSL)
    assert forecast.extremes[1].type is ExtremeType.LOW
    assert aioclient_mock.mock_calls[-1][3]["Authorization"] == "secret"


async def test_stormglass_malformed_payload(hass, aioclient_mock):
    aioclient_mock.get(STORMGLASS_BASE, json={"errors": {"key": "API key is invalid"}})
    with pytest.raises(TideProviderError):
        await StormGlassProvider(hass, "secret").fetch(VESSEL)


class FakeHarmonicsCache:
    def __init__(self, database):
        self.database = database

    async def async_load_database(self):
        return self.database


def _database(*stations):
    return HarmonicsDatabase(
        version="noaa-2025-06-01",
        center=VESSEL,
        radius_nm=500.0,
        stations=tuple(stations),
        extracted_at=dt_util.utcnow(),
    )


def _station(name, lat, lon):
    return HarmonicStation(
        id=name.lower(),
        name=name,
        position=Position(lat, lon),
        timezone="UTC",
        country="CA",
        datum_offset=0.97,
        constituents=tuple(primary_constituents()),
    )


async def test_offline_uses_nearest_cached_station(hass):
    database = _database(_station("Far", 34.0, -118.5), _station("San Francisco", 37.81, -122.47))
    provider = OfflineProvider(hass, FakeHarmonicsCache(database))
    forecast = await provider.fetch(VESSEL)
    assert forecast.station.name == "San Francisco (Offline)"
    assert forecast.datum == DatumInfo(Datum.MSL, 0.97)
    assert len(forecast.extremes) >= 20


async def test_offline_without_database(hass):
    with pytest.raises(TideDataError, match="No harmonic stations"):
        await OfflineProvider(hass, FakeHarmonicsCache(None)).fetch(VESSEL)
    with pytest.raises(TideDataError):
        await OfflineProvider(hass, FakeHarmonicsCache(_database())).fetch(VESSEL)