# src/injengine/curves.py
from __future__ import annotations

import numpy as np

from . import config
from .helpers import validate_positive
from .solvers import simulate_regimen
from .types import PkCurve, PkParameters


def steady_state_mask(t: np.ndarray, start_day: float | None = None, end_day: float | None = None) -> np.ndarray:
    """
    Boolean mask of samples inside the steady-state window.
    If the series ends before the window starts, fall back to all samples.
    """
    start_day = config.STEADY_STATE_START_DAY if start_day is None else start_day
    end_day = config.STEADY_STATE_END_DAY if end_day is None else end_day
    mask = (t >= start_day - 1e-9) & (t <= end_day + 1e-9)
    if not np.any(mask):
        return np.ones_like(t, dtype=bool)
    return mask


def normalize_to_peak(t: np.ndarray, C: np.ndarray) -> np.ndarray:
    """
    Express C as a percentage of its own steady-state peak, taken from day 28 to the
    end of the series. A zero peak gives an all-zero series instead of NaN/inf.
    """
    if C.size == 0:
        return np.zeros_like(C)
    peak = float(np.max(C[steady_state_mask(t, end_day=float(t[-1]))]))
    if peak <= 0.0:
        return np.zeros_like(C)
    return 100.0 * C / peak


def simulate_concentration(pk_params: PkParameters, dose: float, frequency,
                           horizon_days: float = config.CURVE_HORIZON_DAYS, with_band: bool = False,
                           points_per_day: int = config.CURVE_POINTS_PER_DAY) -> PkCurve:
    """
    Peak-normalised concentration curve for a regular regimen.

    The base trajectory is always computed; with_band adds the min- and max-parameter
    trajectories. Each one is normalised to its own steady-state peak, so the band
    shows shape uncertainty rather than absolute level.
    """
    validate_positive("horizon_days", horizon_days)

    t, C = simulate_regimen(pk_params.variant("base"), dose, frequency, 0.0, horizon_days, points_per_day)
    percent = normalize_to_peak(t, C)
    if not with_band:
        return PkCurve(day=t, percent=percent)

    _, C_min = simulate_regimen(pk_params.variant("min"), dose, frequency, 0.0, horizon_days, points_per_day)
    _, C_max = simulate_regimen(pk_params.variant("max"), dose, frequency, 0.0, horizon_days, points_per_day)
    return PkCurve(
        day=t,
        percent=percent,
        percent_min=normalize_to_peak(t, C_min),
        percent_max=normalize_to_peak(t, C_max),
    )
