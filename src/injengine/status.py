# src/injengine/status.py
from __future__ import annotations

from datetime import datetime
from typing import Iterable, Mapping, Optional

import numpy as np

from . import config
from .catalog import frequency_info, get_compound
from .dosing import injection_dose, units_to_dose
from .helpers import hours_between, round_half_up
from .parameters import resolve_pk_parameters
from .solvers import regimen_concentration, superpose
from .types import InjectionRecord, InjectionStatus, LiveStatus, ProtocolVersion, PkVariant


def timed_injections(records) -> list[InjectionRecord]:
    """Injections that were given at a known time, oldest first."""
    if isinstance(records, Mapping):
        records = records.values()
    timed = [r for r in records if r.status is InjectionStatus.DONE and r.timestamp is not None]
    return sorted(timed, key=lambda r: r.timestamp)


def steady_state_peak(variant: PkVariant, dose: float, interval_days: float,
                      step_days: float = config.LIVE_STATUS_PEAK_STEP_DAYS) -> float:
    """Peak of a perfectly regular schedule, scanned over the steady-state window."""
    start, end = config.STEADY_STATE_START_DAY, config.STEADY_STATE_END_DAY
    n_steps = int(round((end - start) / step_days))
    t = start + step_days * np.arange(n_steps + 1)
    return float(np.max(regimen_concentration(t, dose, variant, interval_days)))


def estimate_live_status(now: datetime, records: Iterable[InjectionRecord] | Mapping,
                         active_version: ProtocolVersion,
                         max_doses: Optional[int] = None) -> Optional[LiveStatus]:
    """
    Where the user is right now, from the injections actually logged.

    now            : the current moment; the engine never reads the clock itself
    records        : injection records (a date-keyed mapping is accepted too)
    active_version : protocol version in force, for PK parameters and nominal dose
    max_doses      : only sum the most recent N injections (config.LIVE_STATUS_RECENT_DOSES is typical)

    The current concentration sums every logged dose with the base parameters; it is
    reported as a percentage of the theoretical steady-state peak of the nominal
    schedule (no missed doses), capped at config.LIVE_STATUS_PERCENT_CAP.
    Returns None when nothing with a time of day has been logged yet.
    """
    timed = timed_injections(records)
    if not timed:
        return None

    dose = injection_dose(active_version)
    compound = get_compound(active_version.compound)
    pk = resolve_pk_parameters(
        active_version.compound,
        active_version.injection_method,
        active_version.oil_type,
        active_version.injection_site,
        dose.actual_ml,
    )
    variant = pk.variant("base")

    first, last = timed[0], timed[-1]
    contributing = timed[-max_doses:] if max_doses else timed
    dose_times = [hours_between(first.timestamp, r.timestamp) / 24.0 for r in contributing]
    amounts = [
        units_to_dose(r.dose_units, compound.concentration) if r.dose_units is not None else dose.actual_dose
        for r in contributing
    ]
    now_day = hours_between(first.timestamp, now) / 24.0
    current = float(superpose([now_day], dose_times, amounts, variant)[0])

    peak = steady_state_peak(variant, dose.actual_dose, frequency_info(active_version.frequency).interval_days)
    current_percent = round_half_up(100.0 * current / peak) if peak > 0 else 0

    hours_since_last = hours_between(last.timestamp, now)
    hours_to_next_peak = max(0.0, variant.time_to_peak * 24.0 - hours_since_last)

    return LiveStatus(
        current_percent=min(current_percent, config.LIVE_STATUS_PERCENT_CAP),
        hours_since_last=round_half_up(hours_since_last * 10) / 10,
        days_on_protocol=round_half_up(now_day),
        hours_to_next_peak=round_half_up(hours_to_next_peak * 10) / 10,
        total_injections=len(timed),
        last_injection=last,
        current_concentration=current,
        steady_state_peak=peak,
    )
