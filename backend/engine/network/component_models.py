"""Native-voltage impedance models for sources, cables and motors.

Utility (IEEE 399 §4):
  Z = V² / S_sc                 from short-circuit power
  Z = V / (√3 × I_sc)           from fault current (I_sc converted kA → A)

Cable (linear copper temperature correction, T0 = 234.5 °C):
  R(T) = R20 × (234.5 + T) / (234.5 + 20), R and X scaled by length_m / 1000

Motor, locked rotor (IEEE 141 ch. 4):
  FLA = P / (√3 × V × η × pf),  LRA = FLA × k_LR,  Z = V / (√3 × LRA)

Generator:
  Z = X"d% / 100 × V² / S_rated
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

from engine.network.components import Cable, Generator, Motor, MotorType, UtilitySource
from engine.network.impedance import Impedance, guarded_divide, ka_to_amps, split_by_xr
from engine.network.ledger import AssumptionLedger
from engine.network.standards import (
    CABLE_DEFAULT_TEMPERATURE_C,
    GENERATOR_DEFAULT_XD_PCT,
    GENERATOR_DEFAULT_XR,
    MOTOR_DEFAULT_EFFICIENCY,
    MOTOR_DEFAULT_POWER_FACTOR,
    MOTOR_DEFAULTS,
    UTILITY_DEFAULT_XR,
    WATTS_PER_HP,
)

COPPER_T0_C = 234.5
REFERENCE_TEMPERATURE_C = 20.0
SQRT3 = math.sqrt(3)


def _component_voltage(
    comp_voltage: float | None,
    bus_voltage_v: float,
    category: str,
    name: str,
    ledger: AssumptionLedger,
) -> float:
    if comp_voltage is not None:
        return comp_voltage
    ledger.assume(
        category, name,
        f"Voltage not given; using connection bus voltage {bus_voltage_v:g} V",
    )
    return bus_voltage_v


# ======================================================================
# Utility
# ======================================================================


def utility_impedance(
    source: UtilitySource,
    bus_voltage_v: float,
    ledger: AssumptionLedger,
) -> Impedance:
    """Utility Thevenin impedance at the utility voltage."""
    v = _component_voltage(source.voltage_v, bus_voltage_v, "utility", source.name, ledger)

    if source.x_r_ratio is not None:
        x_r = source.x_r_ratio
    else:
        x_r = UTILITY_DEFAULT_XR
        ledger.assume("utility", source.name, f"X/R not given; using typical {x_r:g}")

    if source.short_circuit_mva is not None:
        z_ohm = guarded_divide(
            v ** 2, source.short_circuit_mva * 1e6, 0.0, ledger,
            category="utility", subject=source.name, what="source impedance",
        )
        if source.fault_current_ka is not None:
            z_from_current = guarded_divide(
                v, SQRT3 * ka_to_amps(source.fault_current_ka), 0.0, ledger,
                category="utility", subject=source.name, what="source impedance",
            )
            if z_ohm > 0 and abs(z_from_current - z_ohm) / z_ohm > 0.05:
                ledger.warn(
                    "utility", source.name,
                    f"Fault current {source.fault_current_ka:g} kA and short-circuit power "
                    f"{source.short_circuit_mva:g} MVA disagree by more than 5%; "
                    "using short-circuit power",
                )
    else:
        z_ohm = guarded_divide(
            v, SQRT3 * ka_to_amps(source.fault_current_ka or 0.0), 0.0, ledger,
            category="utility", subject=source.name, what="source impedance",
        )

    if 4_000 <= v <= 35_000 and z_ohm < 1e-6:
        ledger.warn(
            "utility", source.name,
            f"Source impedance {z_ohm:.3g} ohm is implausibly small at {v:g} V",
        )

    return split_by_xr(z_ohm, x_r, v)


# ======================================================================
# Cable
# ======================================================================


def temperature_correction(temperature_c: float) -> float:
    """Copper resistance ratio R(T) / R(20 °C)."""
    return (COPPER_T0_C + temperature_c) / (COPPER_T0_C + REFERENCE_TEMPERATURE_C)


def cable_impedance(
    cable: Cable,
    bus_voltage_v: float,
    ledger: AssumptionLedger,
) -> Impedance:
    """Cable series impedance at the cable voltage."""
    v = _component_voltage(cable.voltage_v, bus_voltage_v, "cable", cable.name, ledger)

    if cable.temperature_c is not None:
        temp = cable.temperature_c
    else:
        temp = CABLE_DEFAULT_TEMPERATURE_C
        ledger.assume(
            "cable", cable.name,
            f"Operating temperature not given; correcting resistance to {temp:g} °C",
        )

    length_km = cable.length_m / 1000.0
    r = cable.r_ohm_per_km * temperature_correction(temp) * length_km
    x = cable.x_ohm_per_km * length_km
    return Impedance(r, x, v)


# ======================================================================
# Motor
# ======================================================================


@dataclass(frozen=True)
class MotorModel:
    """Locked-rotor model of a motor at its own terminal voltage."""
    name: str
    motor_type: str
    rated_power_w: float
    voltage_v: float
    efficiency: float
    power_factor: float
    fla: float          # A
    lra: float          # A
    x_r_ratio: float
    interrupting_decay: float
    sustained_multiplier: float
    impedance: Impedance

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "motor_type": self.motor_type,
            "rated_power_w": self.rated_power_w,
            "voltage_v": self.voltage_v,
            "efficiency": self.efficiency,
            "power_factor": self.power_factor,
            "fla_a": round(self.fla, 2),
            "lra_a": round(self.lra, 2),
            "x_r_ratio": self.x_r_ratio,
            "impedance": self.impedance.to_dict(),
        }


def motor_rated_power_w(motor: Motor) -> float:
    if motor.rated_power_kw is not None:
        return motor.rated_power_kw * 1000.0
    return (motor.rated_power_hp or 0.0) * WATTS_PER_HP


def build_motor_model(
    motor: Motor,
    bus_voltage_v: float,
    ledger: AssumptionLedger,
) -> MotorModel:
    """Full-load, locked-rotor current and locked-rotor impedance of a motor."""
    name = motor.name
    v = _component_voltage(motor.voltage_v, bus_voltage_v, "motor", name, ledger)

    if motor.motor_type is not None:
        motor_type = MotorType(motor.motor_type.lower()).value
    else:
        motor_type = MotorType.INDUCTION.value
        ledger.assume("motor", name, "Motor type not given; assuming induction")
    defaults = MOTOR_DEFAULTS[motor_type]

    def _pick(value: float | None, default: float, label: str) -> float:
        if value is not None:
            return value
        ledger.assume("motor", name, f"{label} not given; using {default:g}")
        return default

    eff = _pick(motor.efficiency, MOTOR_DEFAULT_EFFICIENCY, "Efficiency")
    pf = _pick(motor.power_factor, MOTOR_DEFAULT_POWER_FACTOR, "Power factor")
    k_lr = _pick(
        motor.locked_rotor_multiplier, defaults.locked_rotor_multiplier,
        f"Locked-rotor multiplier ({motor_type})",
    )
    x_r = _pick(motor.x_r_ratio, defaults.x_r_ratio, f"Locked-rotor X/R ({motor_type})")
    decay = _pick(
        motor.interrupting_decay, defaults.interrupting_decay,
        f"Interrupting decay factor ({motor_type})",
    )
    sustained = _pick(
        motor.sustained_multiplier, defaults.sustained_multiplier,
        f"Sustained current multiplier ({motor_type})",
    )

    p_w = motor_rated_power_w(motor)
    fla = guarded_divide(
        p_w, SQRT3 * v * eff * pf, 0.0, ledger,
        category="motor", subject=name, what="full-load current",
    )
    lra = fla * k_lr
    z_ohm = guarded_divide(
        v, SQRT3 * lra, 0.0, ledger,
        category="motor", subject=name, what="locked-rotor impedance",
    )

    return MotorModel(
        name=name,
        motor_type=motor_type,
        rated_power_w=p_w,
        voltage_v=v,
        efficiency=eff,
        power_factor=pf,
        fla=fla,
        lra=lra,
        x_r_ratio=x_r,
        interrupting_decay=decay,
        sustained_multiplier=sustained,
        impedance=split_by_xr(z_ohm, x_r, v),
    )


# ======================================================================
# Generator
# ======================================================================


def generator_impedance(
    gen: Generator,
    bus_voltage_v: float,
    ledger: AssumptionLedger,
) -> Impedance:
    """Subtransient impedance of a local generator at its terminal voltage."""
    v = _component_voltage(gen.voltage_v, bus_voltage_v, "generator", gen.name, ledger)

    if gen.subtransient_reactance_pct is not None:
        xd_pct = gen.subtransient_reactance_pct
    else:
        xd_pct = GENERATOR_DEFAULT_XD_PCT
        ledger.assume(
            "generator", gen.name,
            f"Subtransient reactance not given; using typical {xd_pct:g}%",
        )
    if gen.x_r_ratio is not None:
        x_r = gen.x_r_ratio
    else:
        x_r = GENERATOR_DEFAULT_XR
        ledger.assume("generator", gen.name, f"X/R not given; using typical {x_r:g}")

    z_ohm = xd_pct / 100.0 * guarded_divide(
        v ** 2, gen.rating_kva * 1000.0, 0.0, ledger,
        category="generator", subject=gen.name, what="base impedance",
    )
    return split_by_xr(z_ohm, x_r, v)
