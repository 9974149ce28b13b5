"""Input validation and plausibility checks.

Two tiers:
- ``validate_study`` is blocking. It collects every violation (non-positive
  ratings, out-of-domain factors, unknown enum values, missing source) and
  raises a single ValidationError.
- ``check_plausibility`` is advisory. It appends warnings to the ledger for
  values that are legal but suspicious, most often a unit slip such as A
  entered as kA or kV entered as V. ``verify_transformer_model`` does the
  same for a resolved transformer.
"""

from __future__ import annotations

import math
from typing import Any, Sequence

from engine.network.components import (
    ArcFlashSettings,
    Cable,
    Component,
    ElectrodeConfig,
    FaultLocation,
    Generator,
    Motor,
    MotorType,
    Standard,
    StudyCase,
    StudySettings,
    Transformer,
    UtilitySource,
)
from engine.network.errors import ValidationError
from engine.network.ledger import AssumptionLedger
from engine.network.standards import (
    FAULT_CURRENT_UNIT_LIMIT_KA,
    FAULT_LEVEL_MAX_KA,
    LARGE_TRANSFORMER_MIN_Z_PCT,
    LARGE_TRANSFORMER_MVA,
    LV_CABLE_X_RANGE,
    LV_MAX_V,
    MAX_PLAUSIBLE_VOLTAGE_V,
    MIN_PLAUSIBLE_VOLTAGE_V,
    MV_TRANSFORMER_MIN_Z_PCT,
    SMALL_TRANSFORMER_MAX_Z_PCT,
    SMALL_TRANSFORMER_MVA,
    TRANSFORMER_CONNECTIONS,
    TRANSFORMER_RATIO_LIMITS,
    TRANSFORMER_Z_PCT_RANGE,
    TRANSFORMER_Z_TOLERANCE,
    UTILITY_MAX_MVA,
    XR_TYPICAL_RANGE,
    voltage_level,
)
from engine.network.transformer_model import TransformerModel

# Fields that must be strictly positive whenever present
_POSITIVE_FIELDS = (
    "voltage_v",
    "secondary_voltage_v",
    "primary_voltage_v",
    "rating",
    "impedance_pct",
    "fault_current_ka",
    "short_circuit_mva",
    "length_m",
    "rating_kva",
    "subtransient_reactance_pct",
    "rated_power_hp",
    "rated_power_kw",
    "locked_rotor_multiplier",
    "sustained_multiplier",
    "x_r_ratio",
    "tap_step_pct",
)

# Fields that must lie in (0, 1]
_FRACTION_FIELDS = ("efficiency", "power_factor", "interrupting_decay")

SOURCE_KINDS = (UtilitySource, Generator)


def _check_number(label: str, field_name: str, value: float, violations: list[str]) -> bool:
    if not math.isfinite(value):
        violations.append(f"{label}: '{field_name}' must be finite")
        return False
    return True


def _validate_component(comp: Component, violations: list[str]) -> None:
    label = f"{comp.kind} '{comp.name}'"

    for field_name in _POSITIVE_FIELDS:
        value = getattr(comp, field_name, None)
        if value is None or not _check_number(label, field_name, value, violations):
            continue
        if value <= 0:
            violations.append(f"{label}: '{field_name}' must be positive (got {value:g})")

    for field_name in _FRACTION_FIELDS:
        value = getattr(comp, field_name, None)
        if value is None or not _check_number(label, field_name, value, violations):
            continue
        if not 0 < value <= 1:
            violations.append(f"{label}: '{field_name}' must be in (0, 1] (got {value:g})")

    if isinstance(comp, Cable):
        for field_name in ("r_ohm_per_km", "x_ohm_per_km"):
            value = getattr(comp, field_name)
            if _check_number(label, field_name, value, violations) and value < 0:
                violations.append(f"{label}: '{field_name}' must not be negative (got {value:g})")
        if comp.r_ohm_per_km == 0 and comp.x_ohm_per_km == 0:
            violations.append(f"{label}: cable impedance must not be zero")
        if comp.temperature_c is not None and comp.temperature_c <= -234.5:
            violations.append(f"{label}: 'temperature_c' must be above -234.5 °C")

    if isinstance(comp, Transformer):
        if comp.rating_unit is not None and comp.rating_unit.strip().upper() not in ("KVA", "MVA"):
            violations.append(
                f"{label}: 'rating_unit' must be 'kVA' or 'MVA' (got {comp.rating_unit!r})"
            )
        if comp.connection is not None and comp.connection not in TRANSFORMER_CONNECTIONS:
            violations.append(
                f"{label}: 'connection' must be one of {list(TRANSFORMER_CONNECTIONS)} "
                f"(got {comp.connection!r})"
            )
        if comp.tap_position is not None:
            _check_number(label, "tap_position", comp.tap_position, violations)

    if isinstance(comp, Motor) and comp.motor_type is not None:
        allowed = [m.value for m in MotorType]
        if comp.motor_type.lower() not in allowed:
            violations.append(
                f"{label}: 'motor_type' must be one of {allowed} (got {comp.motor_type!r})"
            )


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_settings(settings: StudySettings) -> list[str]:
    """Return every blocking problem in the study settings."""
    violations: list[str] = []
    v = settings.nominal_voltage_v
    if not _is_number(v) or not v > 0:
        violations.append(f"settings: 'nominal_voltage_v' must be positive (got {v!r})")
    f = settings.frequency_hz
    if not _is_number(f) or not f > 0:
        violations.append(f"settings: 'frequency_hz' must be positive (got {f!r})")

    if settings.standard not in [s.value for s in Standard]:
        violations.append(
            f"settings: unknown standard {settings.standard!r} "
            f"(expected one of {[s.value for s in Standard]})"
        )
    if settings.study_case not in [c.value for c in StudyCase]:
        violations.append(
            f"settings: unknown study case {settings.study_case!r} "
            f"(expected one of {[c.value for c in StudyCase]})"
        )
    if settings.fault_location not in [loc.value for loc in FaultLocation]:
        violations.append(
            f"settings: unknown fault location {settings.fault_location!r} "
            f"(expected one of {[loc.value for loc in FaultLocation]})"
        )

    af = settings.arc_flash
    if af is None:
        return violations
    if not isinstance(af, ArcFlashSettings):
        violations.append(f"settings: 'arc_flash' must be a mapping (got {type(af).__name__})")
        return violations
    for field_name in ("working_distance_mm", "arc_duration_s", "equipment_gap_mm"):
        value = getattr(af, field_name)
        if value is None:
            continue
        if not _is_number(value):
            violations.append(f"settings.arc_flash: '{field_name}' must be a number (got {value!r})")
        elif not value > 0:
            violations.append(f"settings.arc_flash: '{field_name}' must be positive (got {value!r})")
    if af.electrode_config not in [e.value for e in ElectrodeConfig]:
        violations.append(
            f"settings.arc_flash: unknown electrode configuration {af.electrode_config!r} "
            f"(expected one of {[e.value for e in ElectrodeConfig]})"
        )
    if af.grounded is not None and not isinstance(af.grounded, bool):
        violations.append(f"settings.arc_flash: 'grounded' must be true or false (got {af.grounded!r})")
    return violations


def validate_components(components: Sequence[Component]) -> list[str]:
    """Return every blocking problem in a parsed component list."""
    violations: list[str] = []
    if not components:
        violations.append("component list is empty")
    for comp in components:
        _validate_component(comp, violations)

    if components and not any(isinstance(c, SOURCE_KINDS) for c in components):
        violations.append("no source component: at least one utility or generator is required")
    return violations


def validate_study(components: Sequence[Component], settings: StudySettings) -> None:
    """Raise ValidationError listing every blocking problem in the study input."""
    violations = validate_settings(settings) + validate_components(components)
    if violations:
        raise ValidationError(violations)


# ======================================================================
# Plausibility warnings
# ======================================================================


def _check_voltage(label: str, name: str, voltage_v: float | None, ledger: AssumptionLedger) -> None:
    if voltage_v is None:
        return
    if voltage_v < MIN_PLAUSIBLE_VOLTAGE_V:
        ledger.warn(
            label, name,
            f"Voltage {voltage_v:g} V is below {MIN_PLAUSIBLE_VOLTAGE_V:g} V; "
            "was it entered in kV?",
        )
    elif voltage_v > MAX_PLAUSIBLE_VOLTAGE_V:
        ledger.warn(
            label, name,
            f"Voltage {voltage_v:g} V is above {MAX_PLAUSIBLE_VOLTAGE_V:g} V; check units",
        )


def check_plausibility(
    components: Sequence[Component],
    settings: StudySettings,
    ledger: AssumptionLedger,
) -> None:
    """Append a warning for every suspicious-but-legal input value."""
    _check_voltage("settings", "system", settings.nominal_voltage_v, ledger)
    if settings.frequency_hz not in (50, 60):
        ledger.warn(
            "settings", "system",
            f"Frequency {settings.frequency_hz:g} Hz is neither 50 nor 60 Hz",
        )

    for comp in components:
        for field_name in ("voltage_v", "primary_voltage_v", "secondary_voltage_v"):
            _check_voltage(comp.kind, comp.name, getattr(comp, field_name, None), ledger)

        xr = getattr(comp, "x_r_ratio", None)
        if xr is not None and not XR_TYPICAL_RANGE[0] <= xr <= XR_TYPICAL_RANGE[1]:
            ledger.warn(
                comp.kind, comp.name,
                f"X/R {xr:g} is outside the typical range "
                f"{XR_TYPICAL_RANGE[0]:g}-{XR_TYPICAL_RANGE[1]:g}",
            )

        if isinstance(comp, UtilitySource):
            _check_utility(comp, settings, ledger)
        elif isinstance(comp, Transformer):
            _check_transformer(comp, ledger)


def _check_utility(source: UtilitySource, settings: StudySettings, ledger: AssumptionLedger) -> None:
    v = source.voltage_v or settings.nominal_voltage_v
    level = voltage_level(v)

    if source.fault_current_ka is not None:
        i_ka = source.fault_current_ka
        if i_ka > FAULT_CURRENT_UNIT_LIMIT_KA:
            ledger.warn(
                "utility", source.name,
                f"Fault current {i_ka:g} kA exceeds {FAULT_CURRENT_UNIT_LIMIT_KA:g} kA; "
                "was it entered in A instead of kA?",
            )
        elif i_ka > FAULT_LEVEL_MAX_KA[level]:
            ledger.warn(
                "utility", source.name,
                f"Fault current {i_ka:g} kA is above the {FAULT_LEVEL_MAX_KA[level]:g} kA "
                f"typical maximum for {level} systems",
            )

    mva = source.short_circuit_mva
    if mva is None and source.fault_current_ka is not None:
        mva = math.sqrt(3) * v * source.fault_current_ka / 1000.0
    if mva is not None and mva > UTILITY_MAX_MVA:
        ledger.warn(
            "utility", source.name,
            f"Short-circuit power {mva:,.0f} MVA exceeds {UTILITY_MAX_MVA:,.0f} MVA; check units",
        )


def _check_transformer(tx: Transformer, ledger: AssumptionLedger) -> None:
    z_lo, z_hi = TRANSFORMER_Z_PCT_RANGE
    if not z_lo <= tx.impedance_pct <= z_hi:
        ledger.warn(
            "transformer", tx.name,
            f"Impedance {tx.impedance_pct:g}% is outside the typical {z_lo:g}-{z_hi:g}% range",
        )
    elif tx.secondary_voltage_v > LV_MAX_V and tx.impedance_pct < MV_TRANSFORMER_MIN_Z_PCT:
        ledger.warn(
            "transformer", tx.name,
            f"Impedance {tx.impedance_pct:g}% is low for a medium-voltage transformer "
            f"(typically at least {MV_TRANSFORMER_MIN_Z_PCT:g}%)",
        )


def check_cable_reactance(cable: Cable, voltage_v: float, ledger: AssumptionLedger) -> None:
    """Warn when an LV cable reactance is outside the published band.

    Called once the cable voltage is resolved against its bus.
    """
    if voltage_v > LV_MAX_V:
        return
    x_lo, x_hi = LV_CABLE_X_RANGE
    if not x_lo <= cable.x_ohm_per_km <= x_hi:
        ledger.warn(
            "cable", cable.name,
            f"Reactance {cable.x_ohm_per_km:g} ohm/km is outside the typical "
            f"{x_lo:g}-{x_hi:g} ohm/km range for LV cable",
        )


def verify_transformer_model(tx: Transformer, model: TransformerModel, ledger: AssumptionLedger) -> None:
    """Warn when a resolved transformer is inconsistent with typical designs.

    Checks %Z against the unit size, the primary/secondary ratio and that the
    ohmic impedance matches V²/S × %Z for the resolved rating.
    """
    if model.rating_mva < SMALL_TRANSFORMER_MVA and model.impedance_pct > SMALL_TRANSFORMER_MAX_Z_PCT:
        ledger.warn(
            "transformer", tx.name,
            f"Impedance {model.impedance_pct:g}% is high for a {model.rating_mva * 1000:g} kVA unit "
            f"(typically at most {SMALL_TRANSFORMER_MAX_Z_PCT:g}%)",
        )
    elif model.rating_mva > LARGE_TRANSFORMER_MVA and model.impedance_pct < LARGE_TRANSFORMER_MIN_Z_PCT:
        ledger.warn(
            "transformer", tx.name,
            f"Impedance {model.impedance_pct:g}% is low for a {model.rating_mva:g} MVA unit "
            f"(typically at least {LARGE_TRANSFORMER_MIN_Z_PCT:g}%)",
        )

    if model.primary_voltage_v is not None:
        ratio = model.primary_voltage_v / model.secondary_voltage_v
        lo, hi = TRANSFORMER_RATIO_LIMITS
        if not lo <= ratio <= hi:
            ledger.warn(
                "transformer", tx.name,
                f"Voltage ratio {ratio:g} is outside {lo:g}-{hi:g}; check the winding voltages",
            )

    expected = model.secondary_voltage_v ** 2 / (model.rating_mva * 1e6) * model.impedance_pct / 100.0
    if expected > 0 and abs(model.impedance.z - expected) / expected > TRANSFORMER_Z_TOLERANCE:
        ledger.warn(
            "transformer", tx.name,
            f"Impedance {model.impedance.z:.6g} ohm differs from the expected {expected:.6g} ohm "
            f"by more than {TRANSFORMER_Z_TOLERANCE:.0%}",
        )
