# src/injengine/types.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time
from enum import Enum
from numbers import Real
from typing import Optional

import numpy as np

logger = logging.getLogger(__name__)

# We keep *all* PK time in DAYS internally. Hours only appear in live status output.


class Ester(str, Enum):
    """Ester class of a compound; decides the baseline absorption/elimination ranges."""
    PROPIONATE = "propionate"
    ENANTHATE = "enanthate"
    CYPIONATE = "cypionate"
    UNDECANOATE = "undecanoate"
    HCG = "hcg"

    @classmethod
    def from_compound_id(cls, compound_id: str) -> "Ester":
        """
        Derive the ester from a compound id by substring match.
        Legacy ids such as 'test_c_e_200' must be migrated first (catalog.migrate_compound_id).
        """
        cid = (compound_id or "").lower()
        if "test_p" in cid or "prop" in cid:
            return cls.PROPIONATE
        if "test_c" in cid or "cyp" in cid:
            return cls.CYPIONATE
        if "test_u" in cid or "undec" in cid:
            return cls.UNDECANOATE
        if "test_e" in cid or "enan" in cid:
            return cls.ENANTHATE
        if "hcg" in cid:
            return cls.HCG
        logger.warning(f"Unrecognised compound '{compound_id}', assuming enanthate kinetics")
        return cls.ENANTHATE


class InjectionMethod(str, Enum):
    IM = "im"
    SUBQ = "subq"

    @property
    def label(self) -> str:
        return "SubQ" if self is InjectionMethod.SUBQ else "IM"

    @classmethod
    def parse(cls, value) -> "InjectionMethod":
        if isinstance(value, cls):
            return value
        key = str(value or "").strip().lower().replace("-", "").replace(" ", "")
        if key in ("subq", "sc", "subcutaneous", "sq"):
            return cls.SUBQ
        if key not in ("im", "intramuscular"):
            logger.warning(f"Unknown injection method '{value}', falling back to IM")
        return cls.IM


class OilType(str, Enum):
    MCT = "mct"
    GRAPE_SEED = "grape_seed"
    SESAME = "sesame"
    CASTOR = "castor"
    OTHER = "other"
    UNKNOWN = "unknown"

    @property
    def label(self) -> Optional[str]:
        """Display label, or None when the carrier oil is not known."""
        if self is OilType.UNKNOWN:
            return None
        return self.value.upper().replace("_", " ")

    @classmethod
    def parse(cls, value) -> "OilType":
        if isinstance(value, cls):
            return value
        if value is None or value == "":
            return cls.UNKNOWN
        key = str(value).strip().lower().replace("-", "_").replace(" ", "_")
        try:
            return cls(key)
        except ValueError:
            logger.warning(f"Unknown oil type '{value}', treating it as unknown")
            return cls.UNKNOWN


class InjectionSite(str, Enum):
    GLUTE = "glute"
    DELTOID = "delt"
    QUAD = "quad"
    ABDOMEN = "abdomen"

    @classmethod
    def parse(cls, value) -> "InjectionSite":
        if isinstance(value, cls):
            return value
        key = str(value or "").strip().lower()
        aliases = {"deltoid": "delt", "glutes": "glute", "gluteus": "glute", "thigh": "quad", "belly": "abdomen"}
        key = aliases.get(key, key)
        try:
            return cls(key)
        except ValueError:
            logger.warning(f"Unknown injection site '{value}', falling back to deltoid")
            return cls.DELTOID


class Frequency(str, Enum):
    """Injection frequency ids (see catalog.FREQUENCIES for their schedule rules)."""
    ED = "ED"
    EOD = "EOD"
    THREE_WEEKLY = "3xW"
    TWICE_WEEKLY = "2xW"
    WEEKLY = "1xW"
    BIWEEKLY = "1x2W"

    @classmethod
    def parse(cls, value) -> "Frequency":
        """
        Accepts a member, its id (any case) or a common spelling such as '2x/week'.
        A number is read as injections per week and matched to the nearest frequency.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, Real) and not isinstance(value, bool):
            return min(cls, key=lambda member: abs(_PER_WEEK[member] - float(value)))
        key = str(value or "").strip().lower().replace("×", "x").replace(" ", "")
        for member in cls:
            if member.value.lower() == key:
                return member
        aliases = {
            "daily": cls.ED, "everyday": cls.ED,
            "everyotherday": cls.EOD,
            "3x/week": cls.THREE_WEEKLY, "3xweek": cls.THREE_WEEKLY,
            "2x/week": cls.TWICE_WEEKLY, "2xweek": cls.TWICE_WEEKLY,
            "1x/week": cls.WEEKLY, "weekly": cls.WEEKLY,
            "1x/2weeks": cls.BIWEEKLY, "biweekly": cls.BIWEEKLY, "1x2weeks": cls.BIWEEKLY,
        }
        if key in aliases:
            return aliases[key]
        logger.warning(f"Unknown frequency '{value}', falling back to {cls.TWICE_WEEKLY.value}")
        return cls.TWICE_WEEKLY


_PER_WEEK = {
    Frequency.ED: 7.0,
    Frequency.EOD: 3.5,
    Frequency.THREE_WEEKLY: 3.0,
    Frequency.TWICE_WEEKLY: 2.0,
    Frequency.WEEKLY: 1.0,
    Frequency.BIWEEKLY: 0.5,
}


class InjectionStatus(str, Enum):
    DONE = "done"
    MISSED = "missed"


@dataclass(frozen=True)
class Compound:
    """
    A product the user injects.

    id            : catalogue id (e.g., "test_e_250"); the ester is derived from it
    name          : full display name
    short_name    : compact display name
    concentration : amount per mL (mg/mL, or IU/mL for HCG)
    unit          : "mg" or "IU"
    """
    id: str
    name: str
    short_name: str
    concentration: float
    unit: str = "mg"

    @property
    def ester(self) -> Ester:
        return Ester.from_compound_id(self.id)


@dataclass(frozen=True)
class FrequencyInfo:
    """
    Schedule rules for one frequency.

    per_week      : injections per week (EOD is 3.5)
    interval_days : nominal spacing used by the simulator
    period_days   : rotation period; 14 where a single week would not hold whole injections
    weekdays      : fixed weekdays (Monday=0) or None for start-date-relative schedules
    step_days     : spacing from the start date when weekdays is None
    """
    frequency: Frequency
    name: str
    per_week: float
    interval_days: float
    period_days: int
    weekdays: Optional[tuple[int, ...]] = None
    step_days: Optional[int] = None

    @property
    def injections_per_period(self) -> int:
        return int(round(self.per_week * self.period_days / 7))

    @property
    def period_weeks(self) -> float:
        return self.period_days / 7


@dataclass(frozen=True)
class PkRange:
    """A {min, base, max} triple in days."""
    min: float
    base: float
    max: float

    def scaled(self, factor: float) -> "PkRange":
        return PkRange(self.min * factor, self.base * factor, self.max * factor)


@dataclass(frozen=True)
class PkVariant:
    """One parameter set of the band (min, base or max); what the simulator consumes."""
    half_life: float
    time_to_peak: float
    bioavailability: float


@dataclass(frozen=True)
class PkModifiers:
    """Resolved modifier labels, kept for display."""
    method: str
    oil: Optional[str]
    site: str


@dataclass(frozen=True)
class PkParameters:
    """
    Resolved PK parameters for one compound/method/oil/site/volume combination.
    Recomputed per query; never cached or mutated.
    """
    half_life: PkRange
    time_to_peak: PkRange
    bioavailability: float
    modifiers: PkModifiers

    def variant(self, name: str = "base") -> PkVariant:
        if name not in ("min", "base", "max"):
            raise ValueError(f"variant must be 'min', 'base' or 'max' (got {name!r}).")
        return PkVariant(
            half_life=getattr(self.half_life, name),
            time_to_peak=getattr(self.time_to_peak, name),
            bioavailability=self.bioavailability,
        )


@dataclass(frozen=True)
class ProtocolVersion:
    """
    One revision of a user's protocol. Versions are appended, never edited.

    compound         : compound id (see catalog.COMPOUNDS)
    weekly_dose      : amount per week, in the compound's unit
    frequency        : injection frequency
    graduation       : smallest measurable syringe increment (device units, 1 or 2)
    start_date       : day the protocol (and its schedule) starts
    effective_from   : first day this revision governs
    injection_method : IM or SubQ
    oil_type         : carrier oil
    injection_site   : default injection site
    source           : pharmacy / ugl / unknown
    note             : free-text reason for the change (None for the first version)
    created_at       : when the revision was confirmed, if known
    """
    compound: str
    weekly_dose: float
    frequency: Frequency
    graduation: int
    start_date: date
    effective_from: Optional[date] = None
    injection_method: InjectionMethod = InjectionMethod.IM
    oil_type: OilType = OilType.UNKNOWN
    injection_site: InjectionSite = InjectionSite.DELTOID
    source: str = "unknown"
    note: Optional[str] = None
    created_at: Optional[datetime] = None

    def __post_init__(self):
        # Normalise enumerated fields so callers may pass plain strings.
        object.__setattr__(self, "frequency", Frequency.parse(self.frequency))
        object.__setattr__(self, "injection_method", InjectionMethod.parse(self.injection_method))
        object.__setattr__(self, "oil_type", OilType.parse(self.oil_type))
        object.__setattr__(self, "injection_site", InjectionSite.parse(self.injection_site))
        if self.effective_from is None:
            object.__setattr__(self, "effective_from", self.start_date)


@dataclass(frozen=True)
class InjectionRecord:
    """
    What happened on one calendar day. At most one record per day.

    day         : calendar date the record belongs to
    status      : done or missed
    time_of_day : time the injection was given (done only)
    dose_units  : dose actually drawn, in device units
    location    : injection site used
    side        : "left" / "right"
    note        : free text
    miss_reason : why the injection was skipped (missed only)
    """
    day: date
    status: InjectionStatus = InjectionStatus.DONE
    time_of_day: Optional[time] = None
    dose_units: Optional[float] = None
    location: Optional[InjectionSite] = None
    side: Optional[str] = None
    note: Optional[str] = None
    miss_reason: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "status", InjectionStatus(self.status))
        if self.location is not None:
            object.__setattr__(self, "location", InjectionSite.parse(self.location))

    @classmethod
    def done(cls, day: date, at: time, dose_units: Optional[float] = None, **extra) -> "InjectionRecord":
        return cls(day=day, status=InjectionStatus.DONE, time_of_day=at, dose_units=dose_units, **extra)

    @classmethod
    def missed(cls, day: date, miss_reason: Optional[str] = None, note: Optional[str] = None) -> "InjectionRecord":
        return cls(day=day, status=InjectionStatus.MISSED, miss_reason=miss_reason, note=note)

    @property
    def timestamp(self) -> Optional[datetime]:
        if self.time_of_day is None:
            return None
        return datetime.combine(self.day, self.time_of_day)


@dataclass(frozen=True)
class InjectionDose:
    """Per-injection quantities derived from a protocol version (flat rounding)."""
    dose_per_injection: float
    ml_raw: float
    units_raw: float
    units_rounded: float
    actual_ml: float
    actual_dose: float
    delta_pct: float


@dataclass(frozen=True)
class RotationPlan:
    """
    Two adjacent syringe amounts alternated across one period.

    delta     : total_dose - target (signed)
    delta_pct : delta relative to the target (0 when the target is 0)
    """
    lower_units: float
    higher_units: float
    lower_count: int
    higher_count: int
    total_dose: float
    delta: float
    delta_pct: float

    @property
    def deviation(self) -> float:
        return abs(self.delta)

    @property
    def injections_per_period(self) -> int:
        return self.lower_count + self.higher_count


@dataclass(frozen=True)
class MetricRange:
    min: float
    base: float
    max: float


@dataclass(frozen=True)
class StabilityMetrics:
    """Steady-state metrics of a single trajectory (percentages are 0-100)."""
    peak: float
    trough: float
    fluctuation: float
    stability: float
    trough_percent: float


@dataclass(frozen=True)
class StabilityReport:
    stability: MetricRange
    fluctuation: MetricRange
    trough_percent: MetricRange


@dataclass(frozen=True, eq=False)
class PkCurve:
    """
    Peak-normalised concentration curve.

    day         : sample times (days)
    percent     : base trajectory, % of its own steady-state peak
    percent_min : min-parameter trajectory (band only)
    percent_max : max-parameter trajectory (band only)
    """
    day: np.ndarray
    percent: np.ndarray
    percent_min: Optional[np.ndarray] = None
    percent_max: Optional[np.ndarray] = None

    @property
    def has_band(self) -> bool:
        return self.percent_min is not None and self.percent_max is not None

    def to_records(self) -> list[dict]:
        """Plain [{day, percent, percentMin?, percentMax?}] rows for chart collaborators."""
        rows = []
        for i, d in enumerate(self.day):
            row = {"day": float(d), "percent": float(self.percent[i])}
            if self.has_band:
                row["percentMin"] = float(self.percent_min[i])
                row["percentMax"] = float(self.percent_max[i])
            rows.append(row)
        return rows


@dataclass(frozen=True)
class LiveStatus:
    current_percent: int
    hours_since_last: float
    days_on_protocol: int
    hours_to_next_peak: float
    total_injections: int
    last_injection: InjectionRecord
    current_concentration: float = 0.0
    steady_state_peak: float = 0.0


@dataclass(frozen=True)
class ProtocolChange:
    """One field that differs between two protocol revisions."""
    field: str
    old: object
    new: object

    def describe(self) -> str:
        return f"{self.field}: {self.old} → {self.new}"


@dataclass(frozen=True)
class ProtocolSummary:
    """Everything the protocol screen shows for one version."""
    version: ProtocolVersion
    compound: Compound
    dose: InjectionDose
    pk: PkParameters
    rotation: Optional[RotationPlan]
    stability: StabilityReport
    curve: PkCurve = field(repr=False)
