from dataclasses import replace
from datetime import date, datetime, time, timedelta

import pytest

from injengine.timeline import (
    append_version, backfill_missed, detect_protocol_changes, has_missed_injection, injection_index,
    is_injection_day, next_injection_date, resolve_protocol_version, revise_protocol, start_protocol,
)
from injengine.types import InjectionRecord, InjectionStatus, ProtocolVersion

MONDAY = date(2024, 1, 1)


def day(n):
    return MONDAY + timedelta(days=n)


def make_version(frequency="2xW", weekly_dose=250.0, start=MONDAY, effective_from=None, **fields):
    return ProtocolVersion(compound="test_e_250", weekly_dose=weekly_dose, frequency=frequency, graduation=1,
                           start_date=start, effective_from=effective_from, **fields)


# --------------------------
# Version resolution
# --------------------------
def test_resolve_latest_version_in_force():
    v1 = make_version()
    v2 = make_version(weekly_dose=300.0, effective_from=date(2024, 2, 1))
    versions = [v1, v2]

    assert resolve_protocol_version(date(2024, 1, 31), versions) is v1
    assert resolve_protocol_version(date(2024, 2, 1), versions) is v2
    assert resolve_protocol_version(datetime(2024, 3, 1, 9, 30), versions) is v2
    # input order does not matter
    assert resolve_protocol_version(date(2024, 2, 1), [v2, v1]) is v2


def test_resolve_before_first_version_uses_earliest():
    v1 = make_version()
    v2 = make_version(weekly_dose=300.0, effective_from=date(2024, 2, 1))
    assert resolve_protocol_version(date(2023, 12, 1), [v2, v1]) is v1


def test_resolve_is_monotone():
    """The weekly dose in force only ever moves forward through the log."""
    versions = [
        make_version(weekly_dose=100.0),
        make_version(weekly_dose=200.0, effective_from=day(10)),
        make_version(weekly_dose=300.0, effective_from=day(20)),
    ]
    doses = [resolve_protocol_version(day(n), versions).weekly_dose for n in range(30)]
    assert doses == sorted(doses)
    assert doses[9] == 100.0 and doses[10] == 200.0 and doses[20] == 300.0


def test_same_effective_date_later_version_wins():
    first = make_version(weekly_dose=200.0, effective_from=day(7))
    second = make_version(weekly_dose=220.0, effective_from=day(7))
    assert resolve_protocol_version(day(7), [make_version(), first, second]) is second


def test_resolve_requires_versions():
    with pytest.raises(ValueError):
        resolve_protocol_version(MONDAY, [])


# --------------------------
# Injection calendar
# --------------------------
@pytest.mark.parametrize("frequency, offsets, expected", [
    ("ED", [-3, 0, 1, 5], [True, True, True, True]),
    ("EOD", [-2, -1, 0, 1, 2, 13, 14], [True, False, True, False, True, False, True]),
    ("1xW", [-7, 0, 3, 7, 14], [True, True, False, True, True]),
    ("1x2W", [-14, 0, 7, 14, 28], [True, True, False, True, True]),
    ("2xW", [0, 1, 2, 3, 4, 7, 10], [True, False, False, True, False, True, True]),
    ("3xW", [0, 1, 2, 3, 4, 5, 6], [True, False, True, False, True, False, False]),
])
def test_injection_days(frequency, offsets, expected):
    version = make_version(frequency=frequency)
    assert [is_injection_day(day(n), version) for n in offsets] == expected


def test_weekday_schedules_ignore_start_weekday():
    """2x per week is always Monday/Thursday, whatever day the protocol started."""
    version = make_version(start=date(2024, 1, 3))
    assert is_injection_day(date(2024, 1, 4), version)
    assert not is_injection_day(date(2024, 1, 3), version)


def test_injection_index_every_other_day():
    version = make_version(frequency="EOD")
    assert [injection_index(day(n), version) for n in range(0, 16, 2)] == [0, 1, 2, 3, 4, 5, 6, 0]


def test_injection_index_weekday_slots():
    twice = make_version(frequency="2xW")
    assert [injection_index(day(n), twice) for n in (0, 3, 7, 10)] == [0, 1, 0, 1]
    thrice = make_version(frequency="3xW")
    assert [injection_index(day(n), thrice) for n in (0, 2, 4, 7, 9, 11)] == [0, 1, 2, 0, 1, 2]


@pytest.mark.parametrize("frequency, today, expected", [
    ("2xW", 0, 3),
    ("2xW", 3, 7),
    ("2xW", 5, 7),
    ("ED", 4, 5),
    ("EOD", 0, 2),
    ("3xW", 4, 7),
    ("1x2W", 0, 14),
])
def test_next_injection_date(frequency, today, expected):
    assert next_injection_date(day(today), make_version(frequency=frequency)) == day(expected)


# --------------------------
# Version log
# --------------------------
def test_start_protocol_creates_single_version():
    versions = start_protocol("test_e_250", 250.0, "2xW", 1, MONDAY, injection_method="subq")
    assert len(versions) == 1
    first = versions[0]
    assert first.effective_from == MONDAY
    assert first.note is None
    assert first.injection_method.value == "subq"


def test_revise_takes_effect_at_next_injection():
    versions = start_protocol("test_e_250", 250.0, "2xW", 1, MONDAY)
    revised = revise_protocol(versions, today=day(10), note="bloodwork", weekly_dose=300.0)

    assert len(versions) == 1
    assert len(revised) == 2
    latest = revised[-1]
    assert latest.weekly_dose == 300.0
    assert latest.effective_from == day(14)
    assert latest.note == "bloodwork"
    assert latest.start_date == MONDAY
    assert resolve_protocol_version(day(13), revised).weekly_dose == 250.0
    assert resolve_protocol_version(day(14), revised).weekly_dose == 300.0


def test_revise_starts_on_the_current_schedule():
    """Switching 2x per week to daily on a Thursday takes effect at the next planned Monday."""
    versions = start_protocol("test_e_250", 250.0, "2xW", 1, MONDAY)
    revised = revise_protocol(versions, today=day(10), note="split doses", frequency="ED")
    assert revised[-1].frequency.value == "ED"
    assert revised[-1].effective_from == day(14)

    daily = start_protocol("test_e_250", 250.0, "ED", 1, MONDAY)
    assert revise_protocol(daily, today=day(10), note="fewer shots", frequency="2xW")[-1].effective_from == day(11)

    explicit = revise_protocol(versions, today=day(10), note="later", effective_from=day(21))
    assert explicit[-1].effective_from == day(21)


def test_revise_empty_history_rejected():
    with pytest.raises(ValueError):
        revise_protocol([], today=MONDAY, note="x")


def test_append_version_keeps_input():
    versions = start_protocol("test_e_250", 250.0, "2xW", 1, MONDAY)
    extra = make_version(weekly_dose=200.0, effective_from=day(7))
    log = append_version(versions, extra)
    assert len(versions) == 1
    assert log == (versions[0], extra)


def test_detect_protocol_changes():
    old = make_version()
    new = replace(old, weekly_dose=300.0, frequency="EOD", oil_type="mct")
    changes = detect_protocol_changes(old, new)
    assert [c.field for c in changes] == ["Weekly dose", "Frequency", "Oil"]
    assert (changes[0].old, changes[0].new) == ("250 mg", "300 mg")
    assert (changes[1].old, changes[1].new) == ("2x per week (Mon/Thu)", "Every other day")
    assert (changes[2].old, changes[2].new) == ("Unknown", "MCT")


def test_no_changes_without_previous_version():
    assert detect_protocol_changes(None, make_version()) == []
    assert detect_protocol_changes(make_version(), make_version()) == []


# --------------------------
# Missed injections
# --------------------------
def done(d):
    return InjectionRecord.done(d, time(8, 0), 50)


def test_backfill_before_cutoff_skips_today():
    versions = [make_version()]
    records = {day(7): done(day(7))}
    updated, marked = backfill_missed(datetime.combine(day(10), time(21, 0)), records, versions)

    assert marked == [day(3)]
    assert updated[day(3)].status is InjectionStatus.MISSED
    assert updated[day(7)] is records[day(7)]
    assert day(10) not in updated
    # input mapping is left untouched
    assert list(records) == [day(7)]


def test_backfill_after_cutoff_includes_today():
    versions = [make_version()]
    records = {day(7): done(day(7))}
    _, marked = backfill_missed(datetime.combine(day(10), time(22, 30)), records, versions)
    assert marked == [day(10), day(3)]


def test_backfill_never_marks_days_before_start():
    versions = [make_version(start=day(7))]
    _, marked = backfill_missed(datetime.combine(day(10), time(23, 0)), {}, versions)
    assert marked == [day(10), day(7)]


def test_backfill_without_versions():
    updated, marked = backfill_missed(datetime(2024, 1, 10, 23, 0), {}, [])
    assert updated == {} and marked == []


def test_has_missed_injection():
    versions = [make_version()]
    logged = {day(3): done(day(3)), day(7): done(day(7))}
    assert not has_missed_injection(day(10), logged, versions)

    assert has_missed_injection(day(10), {day(7): done(day(7))}, versions)

    # a day already recorded as missed is not "unlogged"
    acknowledged = {day(3): InjectionRecord.missed(day(3), "travel"), day(7): done(day(7))}
    assert not has_missed_injection(day(10), acknowledged, versions)
    # today itself is not considered
    assert not has_missed_injection(day(3), {day(0): done(day(0))}, versions)


def test_backfill_follows_each_days_version():
    """
    2x per week until day 7, every other day from day 8: each day in the lookback
    is judged by the version governing it.
    """
    versions = [make_version(), make_version(frequency="EOD", effective_from=day(8))]
    _, marked = backfill_missed(datetime.combine(day(10), time(21, 0)), {}, versions)
    assert marked == [day(8), day(7), day(3)]

    logged = {day(3): done(day(3)), day(7): done(day(7))}
    assert has_missed_injection(day(10), logged, versions)
    logged[day(8)] = done(day(8))
    assert not has_missed_injection(day(10), logged, versions)
