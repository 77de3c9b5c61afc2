from datetime import datetime, timedelta, timezone

import pytest

from custom_components.vessel_tides.exceptions import TideDataError
from custom_components.vessel_tides.models import ExtremeType, Position
from custom_components.vessel_tides.tide_state import (
    approximate_tide_height_at,
    build_tide_state,
    next_extremes,
)

from .common import make_forecast

T0 = datetime(2025, 6, 1, tzinfo=timezone.utc)


def _fc():
    # Low 0.0 at T0, High 2.0 at T0+6h, Low 0.0 at T0+12h
    return make_forecast("Harbor", Position(50.0, -1.0), T0, [0.0, 2.0, 0.0])


def test_interpolation_midpoint_and_endpoints():
    ext = _fc().extremes
    assert approximate_tide_height_at(ext, T0 + timedelta(hours=3)) == pytest.approx(1.0)
    assert approximate_tide_height_at(ext, T0) == pytest.approx(0.0)
    assert approximate_tide_height_at(ext, T0 + timedelta(hours=6)) == pytest.approx(2.0)


def test_interpolation_is_monotonic_between_extremes():
    ext = _fc().extremes
    heights = [approximate_tide_height_at(ext, T0 + timedelta(minutes=30 * i)) for i in range(13)]
    assert heights == sorted(heights)


def test_interpolation_outside_horizon_raises():
    ext = _fc().extremes
    with pytest.raises(TideDataError):
        approximate_tide_height_at(ext, T0 + timedelta(hours=13))
    with pytest.raises(TideDataError):
        approximate_tide_height_at(ext, T0 - timedelta(minutes=1))


def test_next_extremes_uses_first_two_upcoming():
    ext = _fc().extremes
    high, low = next_extremes(ext, T0 + timedelta(hours=1))
    assert high.type is ExtremeType.HIGH and high.time == T0 + timedelta(hours=6)
    assert low.time == T0 + timedelta(hours=12)


def test_next_extremes_near_end_of_horizon():
    high, low = next_extremes(_fc().extremes, T0 + timedelta(hours=7))
    assert high is None
    assert low.time == T0 + timedelta(hours=12)


def test_build_tide_state_past_horizon_has_no_height():
    state = build_tide_state(_fc(), T0 + timedelta(days=1))
    assert state.height_now is None
    assert state.next_high is None and state.next_low is None
    assert state.station_name == "Harbor"


def test_fingerprint_ignores_height():
    fc = _fc()
    a = build_tide_state(fc, T0 + timedelta(hours=1))
    b = build_tide_state(fc, T0 + timedelta(hours=2))
    assert a.height_now != b.height_now
    assert a.fingerprint == b.fingerprint
