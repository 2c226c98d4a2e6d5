# src/injengine/catalog.py
"""
Fixed lookup tables: compounds, frequencies and the PK modifier tables.

The PK ranges are literature-style typical values, not fitted parameters.
"""
from __future__ import annotations

import logging

from .types import (
    Compound, Ester, Frequency, FrequencyInfo, InjectionMethod, InjectionSite, OilType, PkRange,
)

logger = logging.getLogger(__name__)


COMPOUNDS: tuple[Compound, ...] = (
    Compound("test_c_200", "Testosterone Cypionate 200mg/mL", "Test Cypionate 200", 200.0, "mg"),
    Compound("test_e_200", "Testosterone Enanthate 200mg/mL", "Test Enanthate 200", 200.0, "mg"),
    Compound("test_e_250", "Testosterone Enanthate 250mg/mL", "Test Enanthate 250", 250.0, "mg"),
    Compound("test_c_250", "Testosterone Cypionate 250mg/mL", "Test Cypionate 250", 250.0, "mg"),
    Compound("test_p_100", "Testosterone Propionate 100mg/mL", "Test Propionate 100", 100.0, "mg"),
    Compound("test_u_250", "Testosterone Undecanoate 250mg/mL", "Test Undecanoate 250", 250.0, "mg"),
    Compound("hcg", "HCG 5000IU / 5mL", "HCG", 1000.0, "IU"),
)

# Ids written by older releases, mapped to their current catalogue entry.
LEGACY_COMPOUND_IDS = {
    "test_c_e_200": "test_e_200",
    "test_c_e_250": "test_e_250",
}

FREQUENCIES: dict[Frequency, FrequencyInfo] = {
    Frequency.ED: FrequencyInfo(Frequency.ED, "Every day", 7.0, 1.0, 7, step_days=1),
    Frequency.EOD: FrequencyInfo(Frequency.EOD, "Every other day", 3.5, 2.0, 14, step_days=2),
    Frequency.THREE_WEEKLY: FrequencyInfo(Frequency.THREE_WEEKLY, "3x per week (Mon/Wed/Fri)", 3.0, 7.0 / 3.0, 7,
                                          weekdays=(0, 2, 4)),
    Frequency.TWICE_WEEKLY: FrequencyInfo(Frequency.TWICE_WEEKLY, "2x per week (Mon/Thu)", 2.0, 3.5, 7,
                                          weekdays=(0, 3)),
    Frequency.WEEKLY: FrequencyInfo(Frequency.WEEKLY, "1x per week", 1.0, 7.0, 7, step_days=7),
    Frequency.BIWEEKLY: FrequencyInfo(Frequency.BIWEEKLY, "1x per 2 weeks", 0.5, 14.0, 14, step_days=14),
}

# Half-life / time-to-peak ranges in days, before modifiers.
ESTER_PARAMS: dict[Ester, tuple[PkRange, PkRange]] = {
    Ester.PROPIONATE: (PkRange(0.8, 1.0, 1.2), PkRange(0.5, 0.75, 1.0)),
    Ester.ENANTHATE: (PkRange(4.0, 4.5, 5.0), PkRange(1.0, 1.5, 2.0)),
    Ester.CYPIONATE: (PkRange(5.0, 5.5, 6.0), PkRange(1.5, 2.0, 2.5)),
    Ester.UNDECANOATE: (PkRange(18.0, 21.0, 24.0), PkRange(5.0, 7.0, 9.0)),
    Ester.HCG: (PkRange(1.0, 1.5, 2.0), PkRange(0.5, 1.0, 1.5)),
}

# (absorption multiplier, bioavailability)
METHOD_MODIFIERS: dict[InjectionMethod, tuple[float, float]] = {
    InjectionMethod.IM: (1.0, 0.70),
    InjectionMethod.SUBQ: (1.12, 0.82),
}

OIL_MODIFIERS: dict[OilType, float] = {
    OilType.MCT: 0.95,
    OilType.GRAPE_SEED: 1.0,
    OilType.SESAME: 1.05,
    OilType.CASTOR: 1.10,
    OilType.OTHER: 1.0,
    OilType.UNKNOWN: 1.0,
}

SITE_MODIFIERS: dict[InjectionSite, float] = {
    InjectionSite.GLUTE: 1.08,
    InjectionSite.DELTOID: 1.0,
    InjectionSite.QUAD: 1.02,
    InjectionSite.ABDOMEN: 1.12,
}


def migrate_compound_id(compound_id: str) -> str:
    return LEGACY_COMPOUND_IDS.get(compound_id, compound_id)


def get_compound(compound_id: str) -> Compound:
    """
    Look up a compound by id (legacy ids are migrated first).
    Unknown ids resolve to the first catalogue entry.
    """
    cid = migrate_compound_id(compound_id)
    for compound in COMPOUNDS:
        if compound.id == cid:
            return compound
    logger.warning(f"Unknown compound '{compound_id}', using {COMPOUNDS[0].id}")
    return COMPOUNDS[0]


def resolve_frequency(value) -> Frequency:
    """
    Map any frequency-like input to a Frequency.
    A number is read as injections per week and matched to the nearest known frequency.
    """
    return Frequency.parse(value)


def frequency_info(value) -> FrequencyInfo:
    return FREQUENCIES[resolve_frequency(value)]
