"""Motor fault-current contribution per IEEE 141 / IEEE C37.010.

Each motor is an independent current source in parallel with the network
at its bus. Its contribution is never folded into the Thevenin impedance;
bus totals are plain sums of the per-motor timelines:

  first cycle   = LRA
  interrupting  = LRA × decay      (≈0.75 induction, ≈0.85 synchronous)
  sustained     = FLA × multiplier (≈4 induction, ≈5 synchronous)

A motor rated at a voltage other than its bus voltage is evaluated through
its locked-rotor impedance referred to the bus voltage.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Sequence

from engine.network.impedance import Impedance, guarded_divide
from engine.network.ledger import RunState
from engine.network.short_circuit import FaultResult, ShortCircuitResult
from engine.network.topology import MotorAttachment, Topology

SQRT3 = math.sqrt(3)


@dataclass(frozen=True)
class MotorContribution:
    """One motor's fault-current timeline at its bus (currents in A)."""
    name: str
    bus_id: int
    motor_type: str
    rated_power_w: float
    voltage_v: float
    fla_a: float
    lra_a: float
    impedance: Impedance     # referred to the bus voltage
    first_cycle_a: float
    interrupting_a: float
    sustained_a: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "bus_id": self.bus_id,
            "motor_type": self.motor_type,
            "rated_power_w": self.rated_power_w,
            "voltage_v": self.voltage_v,
            "fla_a": round(self.fla_a, 2),
            "lra_a": round(self.lra_a, 2),
            "impedance": self.impedance.to_dict(),
            "timeline": {
                "first_cycle_ka": round(self.first_cycle_a / 1000.0, 4),
                "interrupting_ka": round(self.interrupting_a / 1000.0, 4),
                "sustained_ka": round(self.sustained_a / 1000.0, 4),
            },
        }


@dataclass(frozen=True)
class BusMotorContribution:
    """Summed motor contribution at one bus next to its bolted fault current."""
    bus_id: int
    bus_name: str
    motors: tuple[str, ...]
    bolted_a: float
    first_cycle_a: float
    interrupting_a: float
    sustained_a: float

    @property
    def three_phase_with_motors_a(self) -> float:
        return self.bolted_a + self.first_cycle_a

    @property
    def interrupting_with_motors_a(self) -> float:
        return self.bolted_a + self.interrupting_a

    @property
    def sustained_with_motors_a(self) -> float:
        return self.bolted_a + self.sustained_a

    @property
    def contribution_pct(self) -> float:
        if self.bolted_a <= 0:
            return 0.0
        return self.first_cycle_a / self.bolted_a * 100.0

    def fault_fields(self) -> dict[str, Any]:
        """With-motors fields merged into the bus short-circuit record."""
        return {
            "motor_first_cycle_ka": round(self.first_cycle_a / 1000.0, 3),
            "motor_interrupting_ka": round(self.interrupting_a / 1000.0, 3),
            "motor_sustained_ka": round(self.sustained_a / 1000.0, 3),
            "three_phase_with_motors_ka": round(self.three_phase_with_motors_a / 1000.0, 3),
            "interrupting_with_motors_ka": round(self.interrupting_with_motors_a / 1000.0, 3),
            "sustained_with_motors_ka": round(self.sustained_with_motors_a / 1000.0, 3),
            "motor_contribution_pct": round(self.contribution_pct, 1),
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "bus_id": self.bus_id,
            "bus_name": self.bus_name,
            "motors": list(self.motors),
            "bolted_ka": round(self.bolted_a / 1000.0, 3),
            **self.fault_fields(),
        }


def motor_contribution_at_bus(
    attachment: MotorAttachment,
    bus_voltage_v: float,
    state: RunState,
) -> MotorContribution:
    """Timeline of one motor's contribution, evaluated at its bus voltage."""
    model = attachment.model
    z_bus = model.impedance.referred_to(bus_voltage_v)

    if model.voltage_v == bus_voltage_v:
        first_cycle = model.lra
    else:
        first_cycle = guarded_divide(
            bus_voltage_v, SQRT3 * z_bus.z, 0.0, state.ledger,
            category="motor", subject=model.name, what="referred locked-rotor current",
        )
        state.ledger.assume(
            "motor", model.name,
            f"Rated {model.voltage_v:g} V on a {bus_voltage_v:g} V bus; "
            "contribution evaluated through the referred locked-rotor impedance",
        )

    # Same current ratio applies to the sustained (FLA-based) point
    scale = first_cycle / model.lra if model.lra > 0 else 0.0

    return MotorContribution(
        name=model.name,
        bus_id=attachment.bus_id,
        motor_type=model.motor_type,
        rated_power_w=model.rated_power_w,
        voltage_v=model.voltage_v,
        fla_a=model.fla,
        lra_a=model.lra,
        impedance=z_bus,
        first_cycle_a=first_cycle,
        interrupting_a=first_cycle * model.interrupting_decay,
        sustained_a=model.fla * model.sustained_multiplier * scale,
    )


def calculate_motor_contributions(topology: Topology, state: RunState) -> list[MotorContribution]:
    """Per-motor contribution timelines for every motor in the topology."""
    return [
        motor_contribution_at_bus(m, topology.bus(m.bus_id).voltage_v, state)
        for m in topology.motors
    ]


def combine_at_bus(
    bus_id: int,
    bus_name: str,
    bolted_a: float,
    contributions: Sequence[MotorContribution],
) -> BusMotorContribution:
    """Superpose motor timelines at a bus by simple addition."""
    return BusMotorContribution(
        bus_id=bus_id,
        bus_name=bus_name,
        motors=tuple(c.name for c in contributions),
        bolted_a=bolted_a,
        first_cycle_a=sum(c.first_cycle_a for c in contributions),
        interrupting_a=sum(c.interrupting_a for c in contributions),
        sustained_a=sum(c.sustained_a for c in contributions),
    )


def integrate_motor_contributions(
    short_circuit: ShortCircuitResult,
    contributions: Sequence[MotorContribution],
    state: RunState,
) -> dict[int, BusMotorContribution]:
    """Bus-level with-motors totals, only for buses that have motors."""
    by_bus: dict[int, list[MotorContribution]] = {}
    for c in contributions:
        by_bus.setdefault(c.bus_id, []).append(c)

    totals: dict[int, BusMotorContribution] = {}
    for bus_id, motor_list in by_bus.items():
        fault: FaultResult = short_circuit.bus_results[bus_id]
        totals[bus_id] = combine_at_bus(bus_id, fault.bus_name, fault.three_phase_a, motor_list)

    state.log.step(
        "motor_contribution",
        f"{len(contributions)} motor(s) contributing at {len(totals)} bus(es)",
        motors=len(contributions),
        buses=len(totals),
    )
    return totals
