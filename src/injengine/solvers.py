# src/injengine/solvers.py
import numpy as np
from scipy.integrate import solve_ivp

from . import config
from .catalog import frequency_info
from .helpers import validate_non_negative, validate_positive
from .models.one_compartment import depot_response, one_compartment_depot, rate_constants
from .types import PkVariant


def contribution_horizon(half_life: float) -> float:
    """Days after which a single dose is dropped from the sum."""
    return max(config.CONTRIBUTION_HALF_LIVES * half_life, config.CONTRIBUTION_FLOOR_DAYS)


def time_grid(start_day: float, end_day: float, points_per_day: int) -> np.ndarray:
    """Sample times i / points_per_day covering [start_day, end_day] inclusive."""
    first = int(round(start_day * points_per_day))
    last = int(round(end_day * points_per_day))
    return np.arange(first, last + 1, dtype=float) / points_per_day


def superpose(t, dose_times, amounts, variant: PkVariant) -> np.ndarray:
    """
    Total concentration at times t from doses given at dose_times.

    Linear kinetics, so each dose adds its own single-dose response; a dose only
    counts while 0 <= t - t_n < contribution_horizon(half_life).
    """
    t = np.atleast_1d(np.asarray(t, dtype=float))
    dose_times = np.atleast_1d(np.asarray(dose_times, dtype=float))
    amounts = np.broadcast_to(np.asarray(amounts, dtype=float), dose_times.shape)
    if dose_times.size == 0:
        return np.zeros_like(t)

    elapsed = t[:, None] - dose_times[None, :]
    active = (elapsed >= 0.0) & (elapsed < contribution_horizon(variant.half_life))
    unit = depot_response(elapsed, 1.0, variant.half_life, variant.time_to_peak, variant.bioavailability)
    return np.sum(np.where(active, unit * amounts[None, :], 0.0), axis=1)


def regimen_concentration(t, dose: float, variant: PkVariant, interval_days: float) -> np.ndarray:
    """
    Concentration for a perfectly regular schedule: dose at n * interval_days, n = 0..floor(t/I).
    """
    validate_non_negative("dose", dose)
    validate_positive("interval_days", interval_days)
    t = np.atleast_1d(np.asarray(t, dtype=float))
    n_doses = int(np.floor(float(np.max(t)) / interval_days)) + 1 if t.size else 0
    dose_times = np.arange(max(n_doses, 0), dtype=float) * interval_days
    return superpose(t, dose_times, dose, variant)


def simulate_regimen(variant: PkVariant, dose: float, frequency, start_day: float, end_day: float,
                     points_per_day: int):
    """
    Simulate a regular regimen for one parameter set.

    Returns:
      t : array of time points (days)
      C : array of concentrations (relative units)
    """
    interval = frequency_info(frequency).interval_days
    t = time_grid(start_day, end_day, points_per_day)
    return t, regimen_concentration(t, dose, variant, interval)


def simulate_depot_ode(variant: PkVariant, dose: float, interval_days: float,
                       t_end_days: float, dt_days: float = 0.25):
    """
    Reference solution of the same model by numerical integration.

    Doses enter the depot as instantaneous state jumps at n * interval_days and the
    depot/central ODE is integrated between them. No contribution horizon is applied,
    so this is the exact model the closed form approximates.

    Returns:
      t : array of time points (days)
      C : array of concentrations (relative units)
    """
    validate_non_negative("dose", dose)
    validate_positive("interval_days", interval_days)
    validate_positive("t_end_days", t_end_days)
    ka, ke = rate_constants(variant.half_life, variant.time_to_peak)
    amount = dose * variant.bioavailability

    t_grid = np.arange(0.0, t_end_days + dt_days / 2, dt_days)
    dose_times = np.arange(0.0, t_end_days - 1e-9, interval_days)
    boundaries = sorted(set(dose_times.tolist()) | {float(t_end_days)})

    def rhs(t, y):
        return one_compartment_depot(t, y, ka, ke)

    y0 = [0.0, 0.0]
    t_out: list[float] = []
    Ac_out: list[float] = []

    for idx, start in enumerate(boundaries[:-1]):
        end = boundaries[idx + 1]
        if np.any(np.isclose(dose_times, start)):
            y0 = [y0[0] + amount, y0[1]]

        # Samples for this segment (end excluded except for the final one), plus end itself
        # so the state can be carried into the next segment.
        last = idx == len(boundaries) - 2
        upper = (t_grid <= end) if last else (t_grid < end)
        samples = t_grid[(t_grid >= start) & upper]
        t_eval_seg = np.unique(np.append(samples, end))

        sol_seg = solve_ivp(rhs, t_span=(start, end), y0=y0, method="LSODA",
                            t_eval=t_eval_seg, rtol=1e-8, atol=1e-10)
        keep = (sol_seg.t <= end) if last else (sol_seg.t < end)
        t_out.extend(sol_seg.t[keep].tolist())
        Ac_out.extend(sol_seg.y[1][keep].tolist())
        y0 = [float(sol_seg.y[0, -1]), float(sol_seg.y[1, -1])]

    t_arr = np.asarray(t_out, dtype=float)
    C = np.maximum(np.asarray(Ac_out, dtype=float), 0.0)
    return t_arr, C
