# src/injengine/simulate.py
from . import config
from .catalog import get_compound
from .curves import simulate_concentration
from .dosing import injection_dose, rotation_for_version
from .metrics import analyze_stability
from .parameters import resolve_pk_parameters
from .types import ProtocolSummary, ProtocolVersion


def summarize_protocol(version: ProtocolVersion, horizon_days: float = config.CURVE_HORIZON_DAYS) -> ProtocolSummary:
    """
    High-level wrapper: everything derived from one protocol version.

    PK parameters are resolved for the volume actually drawn (the rounded dose),
    and the curve and stability figures use that actual dose.
    """
    dose = injection_dose(version)
    pk = resolve_pk_parameters(
        version.compound,
        version.injection_method,
        version.oil_type,
        version.injection_site,
        dose.actual_ml,
    )
    return ProtocolSummary(
        version=version,
        compound=get_compound(version.compound),
        dose=dose,
        pk=pk,
        rotation=rotation_for_version(version),
        stability=analyze_stability(pk, dose.actual_dose, version.frequency),
        curve=simulate_concentration(pk, dose.actual_dose, version.frequency, horizon_days, with_band=True),
    )
