"""Calculation standard profiles and default-value tables.

Built-in profiles for IEEE (C37.010 / IEEE 141), ANSI (C37) and IEC 60909-0.

Each profile specifies:
- Whether the IEC voltage factor c is applied to the prefault voltage
- Peak-current method (first-cycle asymmetry multiplier or IEC kappa)
- Ratio approximations for unbalanced fault types

The unbalanced-fault ratios are documented approximations of the
three-phase current, not a sequence-network solution. They are kept as
named, overridable values. The default X/R ratios and fault-level bands
below are industry heuristics (IEEE 141 / IEEE 399) and are always logged
as assumptions when used.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any


# ======================================================================
# Voltage levels
# ======================================================================

LV_MAX_V = 1_000.0
MV_MAX_V = 35_000.0
HV_MAX_V = 230_000.0


def voltage_level(voltage_v: float) -> str:
    """Classify a line voltage as LV, MV, HV or EHV."""
    if voltage_v <= LV_MAX_V:
        return "LV"
    if voltage_v <= MV_MAX_V:
        return "MV"
    if voltage_v <= HV_MAX_V:
        return "HV"
    return "EHV"


# ======================================================================
# Profile building blocks
# ======================================================================


@dataclass(frozen=True)
class FaultTypeRatios:
    """Unbalanced fault currents as fractions of the three-phase current."""
    line_to_ground: float = 0.80
    line_to_line: float = 0.87          # ~ sqrt(3)/2
    double_line_to_ground: float = 0.95


@dataclass(frozen=True)
class VoltageFactors:
    """IEC 60909-0 Table 1 voltage factors."""
    lv_max: float = 1.05
    lv_min: float = 0.95
    mv_hv_max: float = 1.10
    mv_hv_min: float = 1.00

    def factor(self, voltage_v: float, study_case: str = "max") -> float:
        level = voltage_level(voltage_v)
        if level == "LV":
            return self.lv_max if study_case == "max" else self.lv_min
        if level in ("MV", "HV"):
            return self.mv_hv_max if study_case == "max" else self.mv_hv_min
        return 1.0


@dataclass(frozen=True)
class StandardProfile:
    """Short-circuit calculation profile.

    Attributes:
        name: profile key ("IEEE", "ANSI", "IEC")
        reference: standard document reference
        apply_voltage_factor: multiply the prefault voltage by IEC c
        peak_method: "asymmetry" (sqrt(2) x multiplier) or "kappa" (IEC)
        fault_ratios: unbalanced fault approximations
        voltage_factors: c table (only used when apply_voltage_factor)
        interrupting_cycles: breaker interrupting time, reported with the
            interrupting duty
        interrupting_duty: report the C37 interrupting current (IEEE, ANSI)
    """
    name: str
    reference: str
    apply_voltage_factor: bool = False
    peak_method: str = "asymmetry"
    fault_ratios: FaultTypeRatios = field(default_factory=FaultTypeRatios)
    voltage_factors: VoltageFactors = field(default_factory=VoltageFactors)
    interrupting_cycles: float = 5.0
    interrupting_duty: bool = True

    def voltage_factor(self, voltage_v: float, study_case: str = "max") -> float:
        if not self.apply_voltage_factor:
            return 1.0
        return self.voltage_factors.factor(voltage_v, study_case)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "reference": self.reference,
            "apply_voltage_factor": self.apply_voltage_factor,
            "peak_method": self.peak_method,
            "fault_ratios": {
                "line_to_ground": self.fault_ratios.line_to_ground,
                "line_to_line": self.fault_ratios.line_to_line,
                "double_line_to_ground": self.fault_ratios.double_line_to_ground,
            },
            "interrupting_cycles": self.interrupting_cycles,
            "interrupting_duty": self.interrupting_duty,
        }


IEEE_PROFILE = StandardProfile(
    name="IEEE",
    reference="IEEE C37.010 / IEEE 141",
)

ANSI_PROFILE = StandardProfile(
    name="ANSI",
    reference="ANSI C37.010 / C37.13",
    interrupting_cycles=3.0,
)

IEC_PROFILE = StandardProfile(
    name="IEC",
    reference="IEC 60909-0",
    apply_voltage_factor=True,
    peak_method="kappa",
    interrupting_duty=False,
)

PROFILES: dict[str, StandardProfile] = {
    "IEEE": IEEE_PROFILE,
    "ANSI": ANSI_PROFILE,
    "IEC": IEC_PROFILE,
}


def get_profile(name: str) -> StandardProfile:
    """Get a standard profile by key (case-insensitive)."""
    key = name.upper()
    if key not in PROFILES:
        available = ", ".join(PROFILES.keys())
        raise KeyError(f"Unknown standard '{name}'. Available: {available}")
    return PROFILES[key]


def list_profiles() -> list[dict[str, Any]]:
    return [p.to_dict() for p in PROFILES.values()]


def with_fault_ratios(profile: StandardProfile, **ratios: float) -> StandardProfile:
    """Copy of a profile with some unbalanced-fault ratios overridden."""
    return replace(profile, fault_ratios=replace(profile.fault_ratios, **ratios))


# C37 interrupting-duty multipliers by fault location
C37_INTERRUPTING_MULTIPLIERS: dict[str, float] = {
    "local": 1.0,
    "remote": 1.5,
    "near_generator": 1.2,
}

# IEC and IEEE results differing by more than these are flagged in the comparison
COMPARISON_SYMMETRICAL_TOLERANCE_PCT = 10.0
COMPARISON_PEAK_TOLERANCE_PCT = 15.0


# ======================================================================
# Default X/R ratios (IEEE 141 typical values)
# ======================================================================

UTILITY_DEFAULT_XR = 10.0
GENERATOR_DEFAULT_XR = 30.0
GENERATOR_DEFAULT_XD_PCT = 15.0

TRANSFORMER_XR_SMALL = 20.0   # below 1 MVA
# (inclusive upper bound in MVA, X/R) for 1 MVA and above; last band open-ended
TRANSFORMER_XR_BANDS: list[tuple[float, float]] = [
    (2.5, 14.3),
    (5.0, 10.0),
    (10.0, 6.67),
    (float("inf"), 5.0),
]


def default_transformer_xr(rating_mva: float) -> float:
    """Typical X/R for a transformer of the given rating."""
    if rating_mva < 1.0:
        return TRANSFORMER_XR_SMALL
    for upper, xr in TRANSFORMER_XR_BANDS:
        if rating_mva <= upper:
            return xr
    return TRANSFORMER_XR_BANDS[-1][1]


@dataclass(frozen=True)
class MotorDefaults:
    """Locked-rotor and decay defaults for one motor type."""
    locked_rotor_multiplier: float
    x_r_ratio: float
    interrupting_decay: float
    sustained_multiplier: float


MOTOR_DEFAULTS: dict[str, MotorDefaults] = {
    "induction": MotorDefaults(
        locked_rotor_multiplier=6.0, x_r_ratio=15.0,
        interrupting_decay=0.75, sustained_multiplier=4.0,
    ),
    "synchronous": MotorDefaults(
        locked_rotor_multiplier=5.5, x_r_ratio=20.0,
        interrupting_decay=0.85, sustained_multiplier=5.0,
    ),
}

MOTOR_DEFAULT_EFFICIENCY = 0.90
MOTOR_DEFAULT_POWER_FACTOR = 0.85
WATTS_PER_HP = 746.0

CABLE_DEFAULT_TEMPERATURE_C = 75.0


# ======================================================================
# Plausibility bands
# ======================================================================

# Maximum credible bolted fault current per voltage level (kA)
FAULT_LEVEL_MAX_KA: dict[str, float] = {"LV": 200.0, "MV": 100.0, "HV": 63.0, "EHV": 63.0}
FAULT_LEVEL_MIN_KA = 0.1
FAULT_CURRENT_UNIT_LIMIT_KA = 1000.0   # above this, value is probably in A
UTILITY_MAX_MVA = 10_000.0
XR_TYPICAL_RANGE = (0.1, 100.0)
TRANSFORMER_Z_PCT_RANGE = (2.0, 15.0)
MV_TRANSFORMER_MIN_Z_PCT = 4.0
LV_CABLE_X_RANGE = (0.01, 0.2)         # ohm/km
MIN_PLAUSIBLE_VOLTAGE_V = 100.0        # below this, value is probably in kV
MAX_PLAUSIBLE_VOLTAGE_V = 800_000.0

# Result consistency checks
PEAK_RATIO_LIMITS = (1.4, 3.0)         # peak / symmetrical current
PEAK_RATIO_TOLERANCE = 0.15            # relative deviation from the method's own ratio
IMPEDANCE_LIMITS_OHM = (0.0001, 1000.0)
SMALL_TRANSFORMER_MVA = 1.0
SMALL_TRANSFORMER_MAX_Z_PCT = 8.0
LARGE_TRANSFORMER_MVA = 10.0
LARGE_TRANSFORMER_MIN_Z_PCT = 5.0
TRANSFORMER_RATIO_LIMITS = (0.1, 1000.0)
TRANSFORMER_Z_TOLERANCE = 0.05


# ======================================================================
# Transformer ratings (IEEE C57.12.00 / C57.109 typical values)
# ======================================================================

TRANSFORMER_WITHSTAND_MULTIPLE = 25.0     # × rated current, symmetrical
TRANSFORMER_WITHSTAND_PEAK_FACTOR = 2.5
TRANSFORMER_WITHSTAND_DURATION_S = 2.0
TRANSFORMER_INRUSH_MULTIPLE = 10.0
TRANSFORMER_INRUSH_DURATION_S = 0.1
TRANSFORMER_DEFAULT_TAP_STEP_PCT = 2.5


@dataclass(frozen=True)
class ConnectionType:
    """Winding connection and its effect on fault behaviour."""
    name: str
    description: str
    phase_shift_deg: float
    passes_zero_sequence: bool
    typical_use: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "phase_shift_deg": self.phase_shift_deg,
            "passes_zero_sequence": self.passes_zero_sequence,
            "typical_use": self.typical_use,
        }


TRANSFORMER_CONNECTIONS: dict[str, ConnectionType] = {
    c.name: c for c in (
        ConnectionType("Dyn11", "Delta-Wye grounded", 30.0, False, "distribution, provides a ground source"),
        ConnectionType("Yyn0", "Wye-Wye grounded", 0.0, True, "transmission"),
        ConnectionType("Dd0", "Delta-Delta", 0.0, False, "industrial"),
        ConnectionType("Yd11", "Wye-Delta", 30.0, False, "step-down"),
    )
}
