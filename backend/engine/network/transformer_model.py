"""Transformer impedance model.

Nameplate impedance is converted to ohms on the secondary side:

  Z_base = V_sec² / S_rated(VA)
  Z      = Z_base × %Z / 100

The rating unit (kVA or MVA) is taken from ``rating_unit`` when given,
otherwise inferred from the secondary voltage (≤ 1 kV: kVA, above: MVA).
Inferred units and default X/R ratios are recorded as assumptions.

Alongside the impedance the model reports ratings that do not change the
fault calculation itself:

  withstand  I_sym  = 25 × I_rated for 2 s, peak = 2.5 × I_sym
  inrush     I      = 10 × I_rated for 0.1 s, peak = √2 × I
  tap        ΔV     = V_sec × step% / 100 × position
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

from engine.network.components import Transformer
from engine.network.impedance import Impedance, guarded_divide, split_by_xr
from engine.network.ledger import AssumptionLedger
from engine.network.standards import (
    LV_MAX_V,
    TRANSFORMER_CONNECTIONS,
    TRANSFORMER_DEFAULT_TAP_STEP_PCT,
    TRANSFORMER_INRUSH_DURATION_S,
    TRANSFORMER_INRUSH_MULTIPLE,
    TRANSFORMER_WITHSTAND_DURATION_S,
    TRANSFORMER_WITHSTAND_MULTIPLE,
    TRANSFORMER_WITHSTAND_PEAK_FACTOR,
    ConnectionType,
    default_transformer_xr,
)


@dataclass(frozen=True)
class TapSetting:
    """Off-load tap position and the secondary voltage it gives."""
    position: float
    step_pct: float
    nominal_voltage_v: float

    @property
    def voltage_change_v(self) -> float:
        return self.nominal_voltage_v * self.step_pct / 100.0 * self.position

    @property
    def secondary_voltage_v(self) -> float:
        return self.nominal_voltage_v + self.voltage_change_v

    @property
    def percent_change(self) -> float:
        return self.step_pct * self.position

    def to_dict(self) -> dict[str, Any]:
        return {
            "position": self.position,
            "step_pct": self.step_pct,
            "voltage_change_v": round(self.voltage_change_v, 3),
            "secondary_voltage_v": round(self.secondary_voltage_v, 3),
            "percent_change": round(self.percent_change, 4),
        }


@dataclass(frozen=True)
class TransformerModel:
    """Resolved transformer data and its secondary-side impedance."""
    name: str
    rating_mva: float
    secondary_voltage_v: float
    primary_voltage_v: float | None
    impedance_pct: float
    x_r_ratio: float
    impedance: Impedance
    connection: ConnectionType | None = None
    tap: TapSetting | None = None

    @property
    def rated_secondary_current_a(self) -> float:
        return self.rating_mva * 1e6 / (math.sqrt(3) * self.secondary_voltage_v)

    @property
    def infinite_bus_fault_ka(self) -> float:
        """Secondary fault current with an infinite source behind the transformer."""
        return self.rated_secondary_current_a / (self.impedance_pct / 100.0) / 1000.0

    @property
    def withstand_a(self) -> float:
        """Symmetrical short-circuit current the windings must withstand."""
        return TRANSFORMER_WITHSTAND_MULTIPLE * self.rated_secondary_current_a

    @property
    def withstand_peak_a(self) -> float:
        return TRANSFORMER_WITHSTAND_PEAK_FACTOR * self.withstand_a

    @property
    def inrush_a(self) -> float:
        return TRANSFORMER_INRUSH_MULTIPLE * self.rated_secondary_current_a

    @property
    def inrush_peak_a(self) -> float:
        return math.sqrt(2) * self.inrush_a

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "rating_mva": self.rating_mva,
            "secondary_voltage_v": self.secondary_voltage_v,
            "primary_voltage_v": self.primary_voltage_v,
            "impedance_pct": self.impedance_pct,
            "x_r_ratio": self.x_r_ratio,
            "rated_secondary_current_a": round(self.rated_secondary_current_a, 1),
            "infinite_bus_fault_ka": round(self.infinite_bus_fault_ka, 3),
            "impedance": self.impedance.to_dict(),
            "connection": self.connection.to_dict() if self.connection else None,
            "tap": self.tap.to_dict() if self.tap else None,
            "withstand": {
                "symmetrical_a": round(self.withstand_a, 1),
                "peak_a": round(self.withstand_peak_a, 1),
                "duration_s": TRANSFORMER_WITHSTAND_DURATION_S,
            },
            "inrush": {
                "current_a": round(self.inrush_a, 1),
                "peak_a": round(self.inrush_peak_a, 1),
                "duration_s": TRANSFORMER_INRUSH_DURATION_S,
            },
        }


def resolve_rating_mva(tx: Transformer, ledger: AssumptionLedger) -> float:
    """Return the transformer rating in MVA."""
    unit = (tx.rating_unit or "").strip().upper()
    if unit == "KVA":
        return tx.rating / 1000.0
    if unit == "MVA":
        return tx.rating

    if tx.secondary_voltage_v <= LV_MAX_V:
        ledger.assume(
            "transformer", tx.name,
            f"Rating unit not given; {tx.rating:g} taken as kVA "
            f"(secondary {tx.secondary_voltage_v:g} V is low voltage)",
        )
        return tx.rating / 1000.0
    ledger.assume(
        "transformer", tx.name,
        f"Rating unit not given; {tx.rating:g} taken as MVA "
        f"(secondary {tx.secondary_voltage_v:g} V is above 1 kV)",
    )
    return tx.rating


def resolve_tap(tx: Transformer, ledger: AssumptionLedger) -> TapSetting | None:
    """Tap setting when a position is given; None for the nominal tap."""
    if tx.tap_position is None:
        return None
    step = tx.tap_step_pct
    if step is None:
        step = TRANSFORMER_DEFAULT_TAP_STEP_PCT
        ledger.assume(
            "transformer", tx.name,
            f"Tap step not given; using typical {step:g}% per position",
        )
    tap = TapSetting(position=tx.tap_position, step_pct=step, nominal_voltage_v=tx.secondary_voltage_v)
    if tap.position != 0:
        ledger.assume(
            "transformer", tx.name,
            f"Tap {tap.position:+g} gives {tap.secondary_voltage_v:g} V "
            f"({tap.percent_change:+g}%); fault currents use the nominal "
            f"{tx.secondary_voltage_v:g} V",
        )
    return tap


def build_transformer_model(tx: Transformer, ledger: AssumptionLedger) -> TransformerModel:
    """Resolve a transformer's rating and X/R and compute its impedance."""
    rating_mva = resolve_rating_mva(tx, ledger)

    if tx.x_r_ratio is not None:
        x_r = tx.x_r_ratio
    else:
        x_r = default_transformer_xr(rating_mva)
        ledger.assume(
            "transformer", tx.name,
            f"X/R not given; using typical {x_r:g} for a {rating_mva:g} MVA unit (IEEE 141)",
        )

    v_sec = tx.secondary_voltage_v
    z_base = guarded_divide(
        v_sec ** 2, rating_mva * 1e6, 0.0, ledger,
        category="transformer", subject=tx.name, what="base impedance",
    )
    z_ohm = z_base * tx.impedance_pct / 100.0

    return TransformerModel(
        name=tx.name,
        rating_mva=rating_mva,
        secondary_voltage_v=v_sec,
        primary_voltage_v=tx.primary_voltage_v,
        impedance_pct=tx.impedance_pct,
        x_r_ratio=x_r,
        impedance=split_by_xr(z_ohm, x_r, v_sec),
        connection=TRANSFORMER_CONNECTIONS.get(tx.connection) if tx.connection else None,
        tap=resolve_tap(tx, ledger),
    )


def transformer_impedance(tx: Transformer, ledger: AssumptionLedger) -> Impedance:
    """Secondary-side ohmic impedance of a transformer."""
    return build_transformer_model(tx, ledger).impedance
