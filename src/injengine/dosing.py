# src/injengine/dosing.py
from __future__ import annotations

import logging
import math
from typing import Optional

from . import config
from .catalog import frequency_info, get_compound
from .helpers import (
    round_half_up, validate_non_negative, validate_positive, validate_positive_int,
)
from .timeline import injection_index, is_injection_day
from .types import InjectionDose, ProtocolVersion, RotationPlan

logger = logging.getLogger(__name__)


def units_to_ml(units: float) -> float:
    return units / config.DEVICE_UNITS_PER_ML

def ml_to_units(ml: float) -> float:
    return ml * config.DEVICE_UNITS_PER_ML

def units_to_dose(units: float, concentration: float) -> float:
    """Amount of compound (mg or IU) drawn up to `units` on a U-100 syringe."""
    return units_to_ml(units) * concentration


def round_to_graduation(units_raw: float, graduation: float) -> float:
    """Nearest amount the syringe can actually measure (halves round up)."""
    validate_positive("graduation", graduation)
    return round_half_up(units_raw / graduation) * graduation


def injection_dose(version: ProtocolVersion) -> InjectionDose:
    """
    Per-injection amounts for a protocol version with flat rounding.

    Example: 250 mg/week, 2x per week, 250 mg/mL
      -> 125 mg per injection -> 0.5 mL -> 50 units
    """
    validate_non_negative("weekly_dose", version.weekly_dose)
    compound = get_compound(version.compound)
    info = frequency_info(version.frequency)

    dose_per_injection = version.weekly_dose / info.per_week
    ml_raw = dose_per_injection / compound.concentration
    units_raw = ml_to_units(ml_raw)
    units_rounded = round_to_graduation(units_raw, version.graduation)
    actual_ml = units_to_ml(units_rounded)
    actual_dose = actual_ml * compound.concentration
    delta_pct = (actual_dose - dose_per_injection) / dose_per_injection if dose_per_injection > 0 else 0.0

    return InjectionDose(
        dose_per_injection=dose_per_injection,
        ml_raw=ml_raw,
        units_raw=units_raw,
        units_rounded=units_rounded,
        actual_ml=actual_ml,
        actual_dose=actual_dose,
        delta_pct=delta_pct,
    )


def optimize_rotation(units_raw: float, graduation: float, injections_per_period: int,
                      target_per_period: float, compound_concentration: float) -> Optional[RotationPlan]:
    """
    Alternate two adjacent measurable amounts so a period's total tracks the target.

    lower = floor(units_raw / g) * g and higher = lower + g. Every split of the
    period's N injections between them is tried (N is at most 14) and the one with
    the smallest |total - target| wins; on ties the split with fewer higher doses.

    Returns None when rotation is not possible or not useful: lower <= 0, higher
    beyond the syringe, or the best split uses only one of the two amounts.
    Callers then dose the flat rounded amount every time.
    """
    validate_non_negative("units_raw", units_raw)
    validate_positive("graduation", graduation)
    validate_positive_int("injections_per_period", injections_per_period)
    validate_non_negative("target_per_period", target_per_period)
    validate_positive("compound_concentration", compound_concentration)

    # 1e-9 keeps values like 13.999999999999998 on the right side of the floor
    lower = math.floor(units_raw / graduation + 1e-9) * graduation
    higher = lower + graduation
    if lower <= 0 or higher > config.DEVICE_MAX_UNITS:
        logger.debug(f"No rotation for {units_raw:.2f} units at {graduation}U graduation: outside device range")
        return None

    lower_dose = units_to_dose(lower, compound_concentration)
    higher_dose = units_to_dose(higher, compound_concentration)

    best = None
    best_deviation = math.inf
    for higher_count in range(injections_per_period + 1):
        lower_count = injections_per_period - higher_count
        total = lower_count * lower_dose + higher_count * higher_dose
        deviation = abs(total - target_per_period)
        if deviation < best_deviation:
            best_deviation = deviation
            best = (lower_count, higher_count, total)

    lower_count, higher_count, total = best
    if lower_count == 0 or higher_count == 0:
        return None

    delta = total - target_per_period
    return RotationPlan(
        lower_units=lower,
        higher_units=higher,
        lower_count=lower_count,
        higher_count=higher_count,
        total_dose=total,
        delta=delta,
        delta_pct=delta / target_per_period if target_per_period > 0 else 0.0,
    )


def rotation_for_version(version: ProtocolVersion) -> Optional[RotationPlan]:
    """
    Rotation plan for a protocol version.
    The period is one week, or two for EOD and 1x2W so it holds whole injections.
    """
    info = frequency_info(version.frequency)
    dose = injection_dose(version)
    return optimize_rotation(
        units_raw=dose.units_raw,
        graduation=version.graduation,
        injections_per_period=info.injections_per_period,
        target_per_period=version.weekly_dose * info.period_weeks,
        compound_concentration=get_compound(version.compound).concentration,
    )


def rotation_schedule(plan: RotationPlan, injections_per_period: int | None = None) -> list[float]:
    """
    Order the plan's doses across a period, spreading the higher ones evenly.

    Position i gets the higher amount iff the higher doses used so far are fewer
    than round((i + 1) * higher_count / N).
    e.g. 2 higher out of 7 -> [L, H, L, L, L, H, L]
    """
    n = plan.injections_per_period if injections_per_period is None else injections_per_period
    validate_positive_int("injections_per_period", n)
    schedule: list[float] = []
    higher_used = 0
    for i in range(n):
        expected_higher = round_half_up((i + 1) * plan.higher_count / n)
        if higher_used < expected_higher:
            schedule.append(plan.higher_units)
            higher_used += 1
        else:
            schedule.append(plan.lower_units)
    return schedule


def dose_for_date(day, version: ProtocolVersion, rotation_plan: Optional[RotationPlan]) -> Optional[float]:
    """
    Syringe units to draw on a date under a version.

    None on non-injection days; the flat rounded amount when there is no rotation;
    otherwise the rotation slot the date falls on.
    """
    if not is_injection_day(day, version):
        return None
    if rotation_plan is None:
        return injection_dose(version).units_rounded
    schedule = rotation_schedule(rotation_plan)
    return schedule[injection_index(day, version) % len(schedule)]
