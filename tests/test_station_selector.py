import math
from datetime import datetime, timezone

from custom_components.vessel_tides.geo import EARTH_RADIUS_M, distance_meters
from custom_components.vessel_tides.models import Position, StationInfo
from custom_components.vessel_tides.station_selector import select

from .common import HOME, make_forecast

T0 = datetime(2025, 6, 1, tzinfo=timezone.utc)
METERS_PER_DEGREE = math.radians(1.0) * EARTH_RADIUS_M


def _east(meters):
    return Position(0.0, meters / METERS_PER_DEGREE)


def _forecast(name, meters):
    return make_forecast(name, _east(meters), T0, [0.2, 1.8])


def test_helper_geometry():
    assert abs(distance_meters(HOME, _east(1000)) - 1000) < 0.01


def test_first_candidate_adopted():
    cand = _forecast("A", 1000)
    sel = select(cand, None, HOME, 100.0)
    assert sel.switched
    assert sel.forecast is cand
    assert sel.preferred_station == cand.station


def test_marginally_closer_station_is_not_adopted():
    held = _forecast("A", 1000)
    cand = _forecast("B", 995)
    sel = select(cand, held.station, HOME, 100.0, held)
    assert not sel.switched
    assert sel.forecast is held
    assert sel.preferred_station.name == "A"


def test_clearly_closer_station_is_adopted():
    held = _forecast("A", 1000)
    cand = _forecast("B", 800)
    sel = select(cand, held.station, HOME, 100.0, held)
    assert sel.switched
    assert sel.preferred_station.name == "B"


def test_switch_boundary_is_strict():
    held = _forecast("A", 1000)
    cand = _forecast("B", 899.0)
    assert select(cand, held.station, HOME, 100.0, held).switched
    cand = _forecast("B", 901.0)
    assert not select(cand, held.station, HOME, 100.0, held).switched


def test_zero_threshold_always_adopts():
    held = _forecast("A", 1000)
    cand = _forecast("B", 2000)
    sel = select(cand, held.station, HOME, 0.0, held)
    assert sel.switched
    assert sel.forecast is cand


def test_missing_held_forecast_adopts():
    preferred = StationInfo("A", _east(10))
    cand = _forecast("B", 5000)
    assert select(cand, preferred, HOME, 100.0, None).switched
