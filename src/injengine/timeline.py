# src/injengine/timeline.py
"""
Protocol history and the injection calendar.

Versions form an append-only log ordered by effective-from. Every calendar
question (which version governs a date, is it an injection day, which slot of
the rotation it is) is answered from that log and the version's start date.
"""
from __future__ import annotations

import logging
from bisect import bisect_right
from dataclasses import replace
from datetime import date, datetime, timedelta
from typing import Mapping, Optional, Sequence

from . import config
from .catalog import frequency_info, get_compound
from .helpers import as_date, days_between
from .types import InjectionRecord, ProtocolChange, ProtocolVersion

logger = logging.getLogger(__name__)


def sort_versions(versions: Sequence[ProtocolVersion]) -> list[ProtocolVersion]:
    """Ascending by effective-from; among equal dates, the later-appended version sorts last."""
    indexed = sorted(enumerate(versions), key=lambda iv: (iv[1].effective_from, iv[0]))
    return [v for _, v in indexed]


def resolve_protocol_version(day, versions: Sequence[ProtocolVersion]) -> ProtocolVersion:
    """
    The version governing a date: the latest one whose effective-from <= date.

    A date before every version falls back to the earliest version, so the first
    protocol also answers for days before it existed.
    """
    if not versions:
        raise ValueError("versions must contain at least one ProtocolVersion.")
    day = as_date(day)
    ordered = sort_versions(versions)
    for version in reversed(ordered):
        if version.effective_from <= day:
            return version
    return ordered[0]


def is_injection_day(day, version: ProtocolVersion) -> bool:
    """
    ED: every day. EOD / weekly / biweekly: every step_days from the start date
    (in both directions). 2x and 3x per week: fixed weekdays.
    """
    day = as_date(day)
    info = frequency_info(version.frequency)
    if info.weekdays is not None:
        return day.weekday() in info.weekdays
    return abs(days_between(version.start_date, day)) % info.step_days == 0


def injection_index(day, version: ProtocolVersion) -> int:
    """Position of a date inside the rotation cycle, 0..N-1."""
    day = as_date(day)
    info = frequency_info(version.frequency)
    days_since_start = days_between(version.start_date, day)
    if info.weekdays is not None:
        slots = len(info.weekdays)
        week_number = days_since_start // 7
        # Off-schedule weekdays map to the most recent slot.
        slot = (bisect_right(info.weekdays, day.weekday()) - 1) % slots
        return (week_number * slots + slot) % slots
    return (days_since_start // info.step_days) % info.injections_per_period


def next_injection_date(today, version: ProtocolVersion,
                        horizon_days: int = config.NEXT_INJECTION_SEARCH_DAYS) -> date:
    """First injection day strictly after today; tomorrow if none is found in the horizon."""
    today = as_date(today)
    for i in range(1, horizon_days + 1):
        candidate = today + timedelta(days=i)
        if is_injection_day(candidate, version):
            return candidate
    return today + timedelta(days=1)


# --------------------------
# Version log
# --------------------------
def start_protocol(compound: str, weekly_dose: float, frequency, graduation: int, start_date: date,
                   created_at: Optional[datetime] = None, **fields) -> tuple[ProtocolVersion, ...]:
    """First setup: a single version effective from the start date."""
    first = ProtocolVersion(
        compound=compound, weekly_dose=weekly_dose, frequency=frequency, graduation=graduation,
        start_date=start_date, effective_from=start_date, created_at=created_at, note=None, **fields,
    )
    return (first,)


def append_version(versions: Sequence[ProtocolVersion], version: ProtocolVersion) -> tuple[ProtocolVersion, ...]:
    """Return a new log with version added; the input is never modified."""
    return tuple(sort_versions(list(versions) + [version]))


def revise_protocol(versions: Sequence[ProtocolVersion], today, note: str,
                    effective_from: Optional[date] = None, created_at: Optional[datetime] = None,
                    **changes) -> tuple[ProtocolVersion, ...]:
    """
    Confirm a change to the current protocol.

    The new version copies the latest one with `changes` applied. Unless an explicit
    effective_from is given it takes effect at the next injection day of the schedule
    currently in force, so a frequency change starts on an already planned injection.
    """
    if not versions:
        raise ValueError("Cannot revise an empty protocol history; use start_protocol().")
    current = sort_versions(versions)[-1]
    draft = replace(current, **changes)
    if effective_from is None:
        effective_from = next_injection_date(today, current)
    revised = replace(draft, effective_from=effective_from, note=note, created_at=created_at)
    return append_version(versions, revised)


def _describe(field_name: str, version: ProtocolVersion) -> str:
    value = getattr(version, field_name)
    if field_name == "compound":
        return get_compound(value).name
    if field_name == "weekly_dose":
        return f"{value:g} {get_compound(version.compound).unit}"
    if field_name == "frequency":
        return frequency_info(value).name
    if field_name == "graduation":
        return f"{value}U"
    if field_name == "oil_type":
        return value.label or "Unknown"
    if field_name == "injection_method":
        return value.label
    if field_name == "injection_site":
        return value.value
    return str(value)


_TRACKED_FIELDS = (
    ("compound", "Compound"),
    ("weekly_dose", "Weekly dose"),
    ("frequency", "Frequency"),
    ("graduation", "Graduation"),
    ("start_date", "Start date"),
    ("source", "Source"),
    ("oil_type", "Oil"),
    ("injection_method", "Method"),
    ("injection_site", "Site"),
)


def detect_protocol_changes(old: Optional[ProtocolVersion], new: ProtocolVersion) -> list[ProtocolChange]:
    """Fields the user changed, formatted for a confirmation dialog. No old version -> no changes."""
    if old is None:
        return []
    changes = []
    for attr, label in _TRACKED_FIELDS:
        if getattr(old, attr) != getattr(new, attr):
            changes.append(ProtocolChange(field=label, old=_describe(attr, old), new=_describe(attr, new)))
    return changes


# --------------------------
# Missed injections
# --------------------------
def earliest_start(versions: Sequence[ProtocolVersion]) -> date:
    return min(v.start_date for v in versions)


def backfill_missed(now: datetime, records: Mapping[date, InjectionRecord], versions: Sequence[ProtocolVersion],
                    cutoff_hour: int = config.AUTO_MISS_CUTOFF_HOUR,
                    lookback_days: int = config.AUTO_MISS_LOOKBACK_DAYS):
    """
    Mark unlogged injection days of the last `lookback_days` days as missed.

    Today is only considered once the local time reaches cutoff_hour. Days before
    the earliest protocol start are never marked.

    Returns:
      updated : new mapping date -> InjectionRecord (input left untouched)
      marked  : dates that were added as missed, newest first
    """
    updated = dict(records)
    marked: list[date] = []
    if not versions:
        return updated, marked

    today = now.date()
    first_offset = 0 if now.hour >= cutoff_hour else 1
    first_day = earliest_start(versions)
    for i in range(first_offset, lookback_days + 1):
        day = today - timedelta(days=i)
        if day in updated or day < first_day:
            continue
        if not is_injection_day(day, resolve_protocol_version(day, versions)):
            continue
        updated[day] = InjectionRecord.missed(day)
        marked.append(day)

    if marked:
        logger.debug(f"Marked {len(marked)} unlogged injection day(s) as missed")
    return updated, marked


def has_missed_injection(today, records: Mapping[date, InjectionRecord], versions: Sequence[ProtocolVersion],
                         lookback_days: int = config.AUTO_MISS_LOOKBACK_DAYS) -> bool:
    """Whether a scheduled day in the previous lookback_days (today excluded) has no record at all."""
    if not versions:
        return False
    today = as_date(today)
    first_day = earliest_start(versions)
    for i in range(1, lookback_days + 1):
        day = today - timedelta(days=i)
        if day < first_day:
            continue
        if is_injection_day(day, resolve_protocol_version(day, versions)) and day not in records:
            return True
    return False
