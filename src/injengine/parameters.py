# src/injengine/parameters.py
from __future__ import annotations

from .catalog import ESTER_PARAMS, METHOD_MODIFIERS, OIL_MODIFIERS, SITE_MODIFIERS, migrate_compound_id
from .types import Ester, InjectionMethod, InjectionSite, OilType, PkModifiers, PkParameters


def volume_modifier(volume_ml: float) -> float:
    """Small depots absorb a bit faster, large ones a bit slower."""
    if volume_ml < 0.3:
        return 0.95
    if volume_ml > 0.5:
        return 1.08
    return 1.0


def resolve_pk_parameters(compound_id: str, method, oil_type, site, volume_ml: float) -> PkParameters:
    """
    Resolve half-life / time-to-peak ranges and bioavailability for one injection setup.

    compound_id : catalogue id, legacy ids migrated first; the ester is read from it (unknown -> enanthate)
    method      : IM or SubQ (unknown -> IM)
    oil_type    : carrier oil (unknown -> neutral)
    site        : injection site (unknown -> deltoid, neutral)
    volume_ml   : injected volume per shot

    Every modifier scales half-life and time-to-peak alike:
      totalMod = method absorption * oil * site * volume
    Bioavailability comes from the method alone.
    """
    ester = Ester.from_compound_id(migrate_compound_id(compound_id))
    method = InjectionMethod.parse(method)
    oil = OilType.parse(oil_type)
    site = InjectionSite.parse(site)

    half_life, time_to_peak = ESTER_PARAMS[ester]
    absorption, bioavailability = METHOD_MODIFIERS[method]
    total_mod = absorption * OIL_MODIFIERS[oil] * SITE_MODIFIERS[site] * volume_modifier(volume_ml)

    return PkParameters(
        half_life=half_life.scaled(total_mod),
        time_to_peak=time_to_peak.scaled(total_mod),
        bioavailability=bioavailability,
        modifiers=PkModifiers(method=method.label, oil=oil.label, site=site.value),
    )
