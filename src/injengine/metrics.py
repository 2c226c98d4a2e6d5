# src/injengine/metrics.py
import numpy as np

from . import config
from .solvers import simulate_regimen
from .types import MetricRange, PkParameters, PkVariant, StabilityMetrics, StabilityReport


def peak(C: np.ndarray) -> float:
    """Highest concentration in the window."""
    return float(np.max(C))

def trough(C: np.ndarray) -> float:
    """Lowest concentration in the window."""
    return float(np.min(C))

def fluctuation_percent(C: np.ndarray) -> float:
    """
    Peak-to-trough swing as a share of the peak: 100 * (Cmax - Cmin) / Cmax.
    Returns 0 for an all-zero window.
    """
    cmax_val = peak(C)
    if cmax_val <= 0.0:
        return 0.0
    return 100.0 * (cmax_val - trough(C)) / cmax_val

def trough_percent(C: np.ndarray) -> float:
    """Trough as a percentage of the peak (0 for an all-zero window)."""
    cmax_val = peak(C)
    if cmax_val <= 0.0:
        return 0.0
    return 100.0 * trough(C) / cmax_val


def steady_state_metrics(C: np.ndarray) -> StabilityMetrics:
    """Metrics of a concentration series already restricted to the steady-state window."""
    fluct = fluctuation_percent(C)
    return StabilityMetrics(
        peak=peak(C),
        trough=trough(C),
        fluctuation=fluct,
        stability=100.0 - fluct,
        trough_percent=trough_percent(C),
    )


def analyze_variant(variant: PkVariant, dose: float, frequency) -> StabilityMetrics:
    """Scan the steady-state window at fine resolution for one parameter set."""
    _, C = simulate_regimen(
        variant, dose, frequency,
        config.STEADY_STATE_START_DAY, config.STEADY_STATE_END_DAY,
        config.STABILITY_POINTS_PER_DAY,
    )
    return steady_state_metrics(C)


def _envelope(base: float, a: float, b: float) -> MetricRange:
    return MetricRange(min=min(a, b), base=base, max=max(a, b))


def analyze_stability(pk_params: PkParameters, dose: float, frequency) -> StabilityReport:
    """
    Stability, fluctuation and trough% for the base, min and max parameter sets.

    base is the base-parameter value; min/max are the envelope over the min- and
    max-parameter runs, not a paired trajectory.
    """
    base = analyze_variant(pk_params.variant("base"), dose, frequency)
    lo = analyze_variant(pk_params.variant("min"), dose, frequency)
    hi = analyze_variant(pk_params.variant("max"), dose, frequency)

    return StabilityReport(
        stability=_envelope(base.stability, lo.stability, hi.stability),
        fluctuation=_envelope(base.fluctuation, lo.fluctuation, hi.fluctuation),
        trough_percent=_envelope(base.trough_percent, lo.trough_percent, hi.trough_percent),
    )
