"""
Harmonic tide synthesis over the eight primary constituents.

h(t) = sum F * H * cos(2*pi*(V(t) + U) - G)

- F, U, V: nodal amplitude factor, nodal phase correction and equilibrium
  argument from UTide (harmonics.FUV), evaluated once at the middle of the
  window. V is advanced linearly at each constituent's frequency, which is
  how UTide itself reconstructs with linearized Greenwich arguments.
- G: Greenwich phase lag as published by NOAA (phase_GMT).

Heights are relative to mean sea level, in meters. This is a navigation-grade
approximation, not a reference implementation of NOAA's predictor.

Everything here is blocking (UTide import and numpy work); call it through
hass.async_add_executor_job.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, List, NamedTuple, Optional, Sequence

import numpy as np

from .models import HarmonicConstituent

_LOGGER = logging.getLogger(__name__)

# UTide counts time in days on the python/matplotlib ordinal scale
# (0001-01-01 is day 1); 1970-01-01 is day 719163.
_DATENUM_UNIX_EPOCH = 719163.0
_SECONDS_PER_DAY = 86400.0

# [NodsatLint, NodsatNone, GwchLint, GwchNone]: nodal factors at the
# reference time, linearized Greenwich arguments.
UTIDE_FLAGS = [True, False, True, False]

GRID_SECONDS_DEFAULT = 300  # 5 minutes
BISECT_TOL_SEC = 1.0
EPS_ROOT = 1e-12


class PredictedExtreme(NamedTuple):
    time: datetime
    level: float
    is_high: bool


def to_datenum(epoch: float) -> float:
    """Unix seconds -> UTide day number."""
    return epoch / _SECONDS_PER_DAY + _DATENUM_UNIX_EPOCH


def _load_utide():
    try:
        import utide  # type: ignore
        from utide import harmonics  # type: ignore
    except ImportError as exc:
        raise RuntimeError(
            "UTide is required for offline harmonic prediction but is not available (strict)"
        ) from exc
    return utide.constit_index_dict, harmonics


class HarmonicModel:
    """Evaluates level and first derivative for one station's constituents."""

    def __init__(
        self,
        constituents: Sequence[HarmonicConstituent],
        reference_epoch: float,
        latitude: float = 0.0,
    ) -> None:
        constit_index, harmonics = _load_utide()
        usable = [c for c in constituents if c.name in constit_index]
        if not usable:
            raise ValueError("No supported constituents supplied (strict)")
        skipped = [c.name for c in constituents if c.name not in constit_index]
        if skipped:
            _LOGGER.debug("Ignoring constituents unknown to UTide: %s", ", ".join(skipped))

        lind = np.atleast_1d([int(constit_index[c.name]) for c in usable]).astype(int)
        tref = to_datenum(reference_epoch)
        # second sample one hour later yields each frequency in cycles per hour
        t_arr = np.array([tref, tref + 1.0 / 24.0])
        F, U, V = harmonics.FUV(t_arr, tref, lind, float(latitude), UTIDE_FLAGS)
        nc = len(lind)
        F = np.asarray(F).reshape((-1, nc))
        U = np.asarray(U).reshape((-1, nc))
        V = np.asarray(V).reshape((-1, nc))

        self.names = [c.name for c in usable]
        self.reference_epoch = float(reference_epoch)
        self.nodal_f = F[0]
        self.nodal_u = U[0]  # cycles
        self.freq = np.mod(V[-1] - V[0], 1.0)  # cycles per hour
        self._amp = self.nodal_f * np.array([c.amplitude for c in usable], dtype=float)
        # cycles at the reference epoch
        self._phase0 = V[0] + U[0] - np.array([c.phase for c in usable], dtype=float) / 360.0
        # rad/s
        self._omega = 2.0 * np.pi * self.freq / 3600.0

    def speed(self, name: str) -> float:
        """Angular speed in degrees per hour."""
        return float(self.freq[self.names.index(name)] * 360.0)

    def _arguments(self, epoch: np.ndarray) -> np.ndarray:
        dt = np.asarray(epoch, dtype=float) - self.reference_epoch
        return 2.0 * np.pi * np.mod(self._phase0[:, None], 1.0) + self._omega[:, None] * dt[None, :]

    def level(self, epoch: np.ndarray) -> np.ndarray:
        return self._amp @ np.cos(self._arguments(epoch))

    def derivative(self, epoch: np.ndarray) -> np.ndarray:
        """dh/dt in meters per second."""
        return -(self._amp * self._omega) @ np.sin(self._arguments(epoch))


def _find_root_bisection(f: Callable[[float], float], a: float, b: float, maxiter: int = 60) -> Optional[float]:
    fa = f(a)
    fb = f(b)
    if abs(fa) < EPS_ROOT:
        return a
    if abs(fb) < EPS_ROOT:
        return b
    if fa * fb > 0:
        return None
    lo, hi = a, b
    for _ in range(maxiter):
        mid = 0.5 * (lo + hi)
        fm = f(mid)
        if abs(fm) < EPS_ROOT or (hi - lo) < BISECT_TOL_SEC:
            return mid
        if fa * fm <= 0:
            hi = mid
        else:
            lo = mid
            fa = fm
    return 0.5 * (lo + hi)


def predict_levels(
    constituents: Sequence[HarmonicConstituent], times: Sequence[datetime], latitude: float = 0.0
) -> List[float]:
    """MSL-relative heights at the given instants."""
    if not times:
        return []
    epochs = np.array([t.timestamp() for t in times], dtype=float)
    model = HarmonicModel(constituents, float(np.median(epochs)), latitude)
    return [float(v) for v in model.level(epochs)]


def predict_extremes(
    constituents: Sequence[HarmonicConstituent],
    start: datetime,
    end: datetime,
    latitude: float = 0.0,
    step_seconds: int = GRID_SECONDS_DEFAULT,
) -> List[PredictedExtreme]:
    """
    Highs and lows between start and end.

    Scans the analytic derivative on a uniform grid, brackets sign changes
    and refines each root by bisection. A + to - change is a high.
    """
    t0 = start.timestamp()
    t1 = end.timestamp()
    if t1 <= t0:
        return []

    model = HarmonicModel(constituents, 0.5 * (t0 + t1), latitude)
    grid = np.arange(t0, t1 + 0.5 * step_seconds, float(step_seconds))
    d_grid = model.derivative(grid)

    def _derivative_at(epoch: float) -> float:
        return float(model.derivative(np.array([epoch]))[0])

    out: List[PredictedExtreme] = []
    for idx in np.where(d_grid[:-1] * d_grid[1:] < 0)[0]:
        a = float(grid[idx])
        b = float(grid[idx + 1])
        root = _find_root_bisection(_derivative_at, a, b)
        if root is None:
            continue
        level = float(model.level(np.array([root]))[0])
        out.append(
            PredictedExtreme(
                time=datetime.fromtimestamp(round(root), tz=timezone.utc),
                level=level,
                is_high=bool(d_grid[idx] > 0),
            )
        )
    return out
