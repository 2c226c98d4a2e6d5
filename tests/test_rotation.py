from datetime import date, timedelta

import pytest

from injengine.dosing import (
    dose_for_date, injection_dose, optimize_rotation, rotation_for_version, rotation_schedule,
    round_to_graduation, units_to_dose,
)
from injengine.types import ProtocolVersion

MONDAY = date(2024, 1, 1)


def make_version(weekly_dose=250.0, frequency="2xW", graduation=1, compound="test_e_250", start=MONDAY):
    return ProtocolVersion(compound=compound, weekly_dose=weekly_dose, frequency=frequency,
                           graduation=graduation, start_date=start)


def test_units_for_twice_weekly_250():
    """250 mg/week at 250 mg/mL, twice a week -> 125 mg -> 0.5 mL -> 50 units."""
    dose = injection_dose(make_version())
    assert dose.dose_per_injection == pytest.approx(125.0)
    assert dose.ml_raw == pytest.approx(0.5)
    assert dose.units_raw == pytest.approx(50.0)
    assert dose.units_rounded == 50
    assert dose.actual_dose == pytest.approx(125.0)
    assert dose.delta_pct == pytest.approx(0.0)


def test_rounding_to_graduation_rounds_halves_up():
    assert round_to_graduation(53.0, 2) == 54
    assert round_to_graduation(52.9, 2) == 52
    assert round_to_graduation(28.57, 2) == 28
    assert round_to_graduation(28.5, 1) == 29
    with pytest.raises(ValueError):
        round_to_graduation(10.0, 0)


def test_adjacent_levels_for_53_units():
    """
    g = 2, unitsRaw = 53 -> lower 52, higher 54. With a 250 mg weekly target the
    closest split is two lower doses (260 mg), which is flat dosing: no rotation.
    """
    doses = {u: units_to_dose(u, 250.0) for u in (52, 54)}
    deviations = {hc: abs((2 - hc) * doses[52] + hc * doses[54] - 250.0) for hc in range(3)}
    assert min(deviations, key=deviations.get) == 0
    assert optimize_rotation(53.0, 2, 2, 250.0, 250.0) is None

    plan = optimize_rotation(53.0, 2, 2, 265.0, 250.0)
    assert (plan.lower_units, plan.higher_units) == (52, 54)
    assert (plan.lower_count, plan.higher_count) == (1, 1)
    assert plan.total_dose == pytest.approx(265.0)
    assert plan.deviation == pytest.approx(0.0, abs=1e-9)


def test_rotation_conservation_and_optimality():
    """
    Every returned plan uses both levels, its counts add up to N, and no other
    split of the same two levels is strictly closer to the target.
    """
    found = 0
    for concentration in (100.0, 200.0, 250.0, 1000.0):
        for graduation in (1, 2):
            for n in (1, 2, 3, 7, 14):
                for target in (50.0, 100.0, 175.0, 250.0, 333.0, 500.0):
                    units_raw = target / n / concentration * 100
                    plan = optimize_rotation(units_raw, graduation, n, target, concentration)
                    if plan is None:
                        continue
                    found += 1
                    assert plan.lower_count + plan.higher_count == n
                    assert plan.lower_count > 0 and plan.higher_count > 0
                    assert plan.higher_units - plan.lower_units == graduation
                    assert 1 <= plan.lower_units and plan.higher_units <= 100
                    lower_dose = units_to_dose(plan.lower_units, concentration)
                    higher_dose = units_to_dose(plan.higher_units, concentration)
                    for hc in range(n + 1):
                        other = abs((n - hc) * lower_dose + hc * higher_dose - target)
                        assert other >= plan.deviation - 1e-9
    assert found > 0


def test_rotation_infeasible_outside_device_range():
    # lower would be 0
    assert optimize_rotation(1.0, 2, 7, 10.0, 250.0) is None
    # higher would exceed 100 units
    assert optimize_rotation(100.4, 1, 2, 502.0, 250.0) is None
    # top of the syringe is still fine
    plan = optimize_rotation(99.5, 1, 2, 498.75, 250.0)
    assert plan is not None and plan.higher_units == 100


def test_single_injection_period_never_rotates():
    assert optimize_rotation(33.3, 1, 1, 83.25, 250.0) is None
    assert rotation_for_version(make_version(weekly_dose=50.0, frequency="1x2W")) is None


def test_invalid_rotation_inputs():
    with pytest.raises(ValueError):
        optimize_rotation(50.0, 0, 2, 250.0, 250.0)
    with pytest.raises(ValueError):
        optimize_rotation(50.0, 1, 0, 250.0, 250.0)


def test_every_other_day_rotation_spans_two_weeks():
    """
    250 mg/week EOD at 250 mg/mL: 28.57 units raw, 28 or 30 on a 2-unit syringe.
    Over 14 days (7 injections, 500 mg) five 28s and two 30s hit the target exactly.
    """
    version = make_version(frequency="EOD", graduation=2)
    dose = injection_dose(version)
    assert dose.units_raw == pytest.approx(28.5714, rel=1e-4)
    assert dose.units_rounded == 28

    plan = rotation_for_version(version)
    assert (plan.lower_units, plan.higher_units) == (28, 30)
    assert (plan.lower_count, plan.higher_count) == (5, 2)
    assert plan.total_dose == pytest.approx(500.0)
    assert plan.delta_pct == pytest.approx(0.0, abs=1e-9)


@pytest.mark.parametrize("higher, n, expected", [
    (2, 7, "LHLLLHL"),
    (3, 7, "LHLHLHL"),
    (1, 2, "HL"),
    (2, 3, "HLH"),
    (5, 7, "HLHHHLH"),
])
def test_schedule_spreads_higher_doses(higher, n, expected):
    from injengine.types import RotationPlan
    plan = RotationPlan(lower_units=10, higher_units=11, lower_count=n - higher, higher_count=higher,
                        total_dose=0.0, delta=0.0, delta_pct=0.0)
    schedule = rotation_schedule(plan)
    assert "".join("H" if u == 11 else "L" for u in schedule) == expected
    assert schedule.count(11) == higher


def test_dose_for_date_every_other_day():
    version = make_version(frequency="EOD", graduation=2)
    plan = rotation_for_version(version)
    doses = [dose_for_date(MONDAY + timedelta(days=d), version, plan) for d in range(16)]
    assert doses[1::2] == [None] * 8
    assert doses[0::2] == [28, 30, 28, 28, 28, 30, 28, 28]


def test_dose_for_date_three_times_weekly():
    """200 mg/week 3x: 26.67 units raw -> 26/27 on a 1-unit syringe, two 27s per week."""
    version = make_version(weekly_dose=200.0, frequency="3xW")
    plan = rotation_for_version(version)
    assert (plan.lower_count, plan.higher_count) == (1, 2)
    week = [dose_for_date(MONDAY + timedelta(days=d), version, plan) for d in range(7)]
    assert week == [27, None, 26, None, 27, None, None]


def test_dose_for_date_without_rotation_is_flat():
    version = make_version()
    assert rotation_for_version(version) is None
    assert dose_for_date(MONDAY, version, None) == 50
    assert dose_for_date(MONDAY + timedelta(days=3), version, None) == 50
    assert dose_for_date(MONDAY + timedelta(days=1), version, None) is None
