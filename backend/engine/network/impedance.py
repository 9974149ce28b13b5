"""Ohmic impedance values and voltage-level referral per IEEE 399 (Brown Book).

An impedance is only meaningful at the voltage where it was computed, so
every Impedance carries that voltage. Moving it across a transformer
boundary rescales by the square of the voltage ratio:

  Z_to = Z_from × (V_to / V_from)²
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from engine.network.ledger import AssumptionLedger

R_EPSILON = 1e-6       # ohm; floor for R in X/R and time-constant divisions
DENOM_EPSILON = 1e-12


@dataclass(frozen=True)
class Impedance:
    """Series R + jX in ohms, valid at voltage_v (line-to-line volts)."""
    r: float
    x: float
    voltage_v: float

    @property
    def z(self) -> float:
        return math.hypot(self.r, self.x)

    @property
    def x_over_r(self) -> float:
        return self.x / max(self.r, R_EPSILON)

    @property
    def r_is_floored(self) -> bool:
        return self.r < R_EPSILON

    def __add__(self, other: Impedance) -> Impedance:
        if not math.isclose(self.voltage_v, other.voltage_v):
            raise ValueError(
                f"Cannot add impedances at {self.voltage_v} V and {other.voltage_v} V; refer first"
            )
        return Impedance(self.r + other.r, self.x + other.x, self.voltage_v)

    def referred_to(self, voltage_v: float) -> Impedance:
        return refer_impedance(self, self.voltage_v, voltage_v)

    def to_dict(self) -> dict[str, float]:
        return {
            "r_ohm": self.r,
            "x_ohm": self.x,
            "z_ohm": self.z,
            "x_over_r": self.x_over_r,
            "voltage_v": self.voltage_v,
        }


def zero_impedance(voltage_v: float) -> Impedance:
    return Impedance(0.0, 0.0, voltage_v)


def refer_impedance(z: Impedance, v_from: float, v_to: float) -> Impedance:
    """Refer an impedance from v_from to v_to: Z × (v_to / v_from)².

    Equal voltages return the input unchanged.
    """
    if v_from == v_to:
        return z
    if v_from <= 0 or v_to <= 0:
        raise ValueError(f"Referral voltages must be positive (got {v_from} V -> {v_to} V)")
    factor = (v_to / v_from) ** 2
    return Impedance(z.r * factor, z.x * factor, v_to)


def split_by_xr(z_ohm: float, x_r_ratio: float, voltage_v: float) -> Impedance:
    """Split |Z| into R and X using the X/R ratio.

    X = |Z|·(X/R)/√(1+(X/R)²), R = X/(X/R). A non-positive ratio is treated
    as purely resistive.
    """
    if x_r_ratio <= 0:
        return Impedance(z_ohm, 0.0, voltage_v)
    x = z_ohm * x_r_ratio / math.sqrt(1.0 + x_r_ratio ** 2)
    r = x / x_r_ratio
    return Impedance(r, x, voltage_v)


def ka_to_amps(current_ka: float) -> float:
    """Convert kiloamperes to amperes."""
    return current_ka * 1000.0


def amps_to_ka(current_a: float) -> float:
    return current_a / 1000.0


def guarded_divide(
    numerator: float,
    denominator: float,
    fallback: float,
    ledger: AssumptionLedger | None = None,
    *,
    category: str = "calculation",
    subject: str = "",
    what: str = "value",
) -> float:
    """numerator / denominator, or a bounded fallback when the denominator is ~0.

    The fallback is recorded as a warning so a non-finite value never
    propagates silently.
    """
    if not math.isfinite(denominator) or abs(denominator) < DENOM_EPSILON:
        if ledger is not None:
            ledger.warn(
                category, subject,
                f"Zero denominator computing {what}; using fallback {fallback:g}",
            )
        return fallback
    result = numerator / denominator
    if not math.isfinite(result):
        if ledger is not None:
            ledger.warn(
                category, subject,
                f"Non-finite {what}; using fallback {fallback:g}",
            )
        return fallback
    return result


def parallel(a: Impedance, b: Impedance) -> Impedance:
    """Parallel combination Z1·Z2 / (Z1 + Z2) of two impedances at the same voltage."""
    if not math.isclose(a.voltage_v, b.voltage_v):
        raise ValueError(
            f"Cannot combine impedances at {a.voltage_v} V and {b.voltage_v} V; refer first"
        )
    z1 = complex(a.r, a.x)
    z2 = complex(b.r, b.x)
    total = z1 + z2
    if abs(total) < DENOM_EPSILON:
        return zero_impedance(a.voltage_v)
    z = z1 * z2 / total
    return Impedance(z.real, z.imag, a.voltage_v)
