# src/injengine/models/one_compartment.py
import numpy as np

LN2 = np.log(2.0)


def rate_constants(half_life: float, time_to_peak: float) -> tuple[float, float]:
    """
    Absorption and elimination rate constants (1/day).

    ka is taken as ln2 / (tmax / 3): the depot empties with a half-life of a
    third of the time-to-peak. ke follows from the elimination half-life.
    """
    ka = LN2 / (time_to_peak / 3.0)
    ke = LN2 / half_life
    return float(ka), float(ke)


def depot_response(t, dose: float, half_life: float, time_to_peak: float, bioavailability: float):
    """
    Concentration after a single depot injection given at t=0 (Bateman function).

      C(t) = max(0, D*F * ka/(ka-ke) * (exp(-ke*t) - exp(-ka*t)))

    Concentrations are relative (unit volume); only ratios are reported downstream.
    t may be a scalar or an array of elapsed days; negative elapsed times give 0.
    """
    t = np.asarray(t, dtype=float)
    ka, ke = rate_constants(half_life, time_to_peak)
    amount = dose * bioavailability
    if np.isclose(ka, ke):
        # ka == ke limit of the Bateman function
        c = amount * ka * t * np.exp(-ke * t)
    else:
        c = amount * (ka / (ka - ke)) * (np.exp(-ke * t) - np.exp(-ka * t))
    c = np.where(t >= 0.0, c, 0.0)
    return np.maximum(c, 0.0)


def one_compartment_depot(t, y, ka, ke):
    """
    One-compartment model with a first-order absorption depot.
    Two states:
      y[0] = drug in the injection depot
      y[1] = drug in the central compartment (unit volume)

    Doses are applied by the caller as jumps into y[0].
    """
    A_depot, A_c = y

    dA_depot_dt = -ka * A_depot
    dA_c_dt = ka * A_depot - ke * A_c

    return [dA_depot_dt, dA_c_dt]
