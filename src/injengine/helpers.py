import math
from datetime import date, datetime


def round_half_up(x: float) -> int:
    """Round .5 away from zero for positives (Python's round() is banker's rounding)."""
    return int(math.floor(x + 0.5))


def as_date(value) -> date:
    """Calendar day of a date or datetime."""
    if isinstance(value, datetime):
        return value.date()
    return value


def days_between(start, end) -> int:
    """Whole calendar days from start to end (negative when end precedes start)."""
    return (as_date(end) - as_date(start)).days


def hours_between(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / 3600.0


# --------------------------
# Small input validators
# --------------------------
def validate_positive(name: str, x: float) -> None:
    if not (x > 0):
        raise ValueError(f"{name} must be > 0 (got {x}).")

def validate_non_negative(name: str, x: float) -> None:
    if not (x >= 0):
        raise ValueError(f"{name} must be >= 0 (got {x}).")

def validate_positive_int(name: str, x: int) -> None:
    if not (isinstance(x, int) and not isinstance(x, bool) and x > 0):
        raise ValueError(f"{name} must be a positive integer (got {x}).")
