"""Shared builders for the test suite."""
from datetime import timedelta

from custom_components.vessel_tides.const import PRIMARY_CONSTITUENTS
from custom_components.vessel_tides.models import (
    ExtremeType,
    Forecast,
    HarmonicConstituent,
    Position,
    StationInfo,
    TideExtreme,
)

HOME = Position(0.0, 0.0)


def make_forecast(name, position, start, values, step=timedelta(hours=6), datum=None):
    """Alternating Low/High extremes from `start`, one every `step`."""
    extremes = [
        TideExtreme(
            time=start + i * step,
            value=value,
            type=ExtremeType.LOW if i % 2 == 0 else ExtremeType.HIGH,
        )
        for i, value in enumerate(values)
    ]
    return Forecast(station=StationInfo(name, position), extremes=tuple(extremes), datum=datum)


def primary_constituents(m2=1.0):
    amplitudes = {"M2": m2, "S2": 0.3, "N2": 0.2, "K2": 0.08, "K1": 0.35, "O1": 0.25, "P1": 0.11, "Q1": 0.05}
    return [HarmonicConstituent(name, amplitudes[name], 10.0 * i) for i, name in enumerate(PRIMARY_CONSTITUENTS)]
