from datetime import datetime, timezone

import pytest

from custom_components.vessel_tides.datum import Datum, estimate_offset, normalize, to_canonical
from custom_components.vessel_tides.models import DatumInfo, Position

from .common import make_forecast

T0 = datetime(2025, 6, 1, tzinfo=timezone.utc)


def _msl_forecast(lowest=-0.5):
    return make_forecast("Harbor", Position(50.0, -1.0), T0, [lowest, 1.2, -0.3, 1.1], datum=DatumInfo(Datum.MSL))


def test_estimate_offset_from_negative_low():
    assert estimate_offset(_msl_forecast(-0.5), 0.2) == pytest.approx(0.7)


def test_estimate_offset_zero_when_lows_positive():
    fc = make_forecast("Harbor", Position(50.0, -1.0), T0, [0.3, 2.0, 0.4])
    assert estimate_offset(fc, 0.2) == 0.0


def test_same_datum_is_identity():
    fc = _msl_forecast()
    out = normalize(fc, Datum.MSL, Datum.MSL)
    assert out == fc
    assert out is not fc


def test_msl_to_mllw_and_back_round_trips():
    fc = _msl_forecast()
    mllw = normalize(fc, Datum.MSL, Datum.MLLW, known_offset=1.5)
    assert [e.value for e in mllw.extremes] == pytest.approx([1.0, 2.7, 1.2, 2.6])
    assert mllw.datum == DatumInfo(Datum.MLLW, 1.5)

    back = normalize(mllw, Datum.MLLW, Datum.MSL, known_offset=1.5)
    assert [e.value for e in back.extremes] == pytest.approx([e.value for e in fc.extremes])


def test_estimated_offset_keeps_lowest_water_above_chart_datum():
    mllw = normalize(_msl_forecast(-0.5), Datum.MSL, Datum.MLLW, safety_margin=0.2)
    assert min(e.value for e in mllw.extremes) == pytest.approx(0.2)
    assert mllw.datum.offset == pytest.approx(0.7)


def test_to_canonical_tags_untagged_forecast_as_chart_datum():
    fc = make_forecast("Harbor", Position(50.0, -1.0), T0, [0.3, 2.0])
    out = to_canonical(fc)
    assert out.datum == DatumInfo(Datum.MLLW)
    assert [e.value for e in out.extremes] == [0.3, 2.0]
    assert to_canonical(out) == out


def test_to_canonical_uses_station_offset():
    fc = make_forecast("Harbor", Position(50.0, -1.0), T0, [-1.0, 1.0], datum=DatumInfo(Datum.MSL, 1.25))
    out = to_canonical(fc)
    assert [e.value for e in out.extremes] == pytest.approx([0.25, 2.25])
