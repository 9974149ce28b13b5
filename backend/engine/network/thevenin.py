"""Thevenin equivalent per bus for a radial network.

For a faulted bus k, the equivalent impedance is the sum of every shunt
and series element between the source bus and k, each first referred to
V_k:

  Z_th(k) = Σ shunt(b)·(V_k/V_b)² over buses b on the path
          + Σ Z_edge·(V_k/V_edge)² over edges on the path
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from engine.network.impedance import R_EPSILON, Impedance, zero_impedance
from engine.network.ledger import RunState
from engine.network.topology import Topology


@dataclass(frozen=True)
class TheveninRecord:
    """Thevenin equivalent at a single bus."""
    bus_id: int
    bus_name: str
    voltage_v: float
    impedance: Impedance

    @property
    def r(self) -> float:
        return self.impedance.r

    @property
    def x(self) -> float:
        return self.impedance.x

    @property
    def z(self) -> float:
        return self.impedance.z

    @property
    def x_over_r(self) -> float:
        return self.impedance.x_over_r

    def to_dict(self) -> dict[str, Any]:
        return {
            "bus_id": self.bus_id,
            "bus_name": self.bus_name,
            "voltage_v": self.voltage_v,
            "r_ohm": round(self.r, 6),
            "x_ohm": round(self.x, 6),
            "z_ohm": round(self.z, 6),
            "x_over_r": round(self.x_over_r, 3),
        }


def thevenin_at(topology: Topology, bus_id: int) -> Impedance:
    """Equivalent source impedance seen from bus_id, referred to its voltage."""
    bus = topology.bus(bus_id)
    v = bus.voltage_v
    total = zero_impedance(v)
    for upstream in topology.buses_on_path(bus_id):
        total = total + upstream.shunt.referred_to(v)
    for edge in topology.path_to(bus_id):
        total = total + edge.impedance.referred_to(v)
    return total


def aggregate_thevenin(topology: Topology, state: RunState) -> dict[int, TheveninRecord]:
    """Thevenin record for every bus, keyed by bus id."""
    records: dict[int, TheveninRecord] = {}
    for bus in topology.buses:
        z = thevenin_at(topology, bus.id)
        if z.r_is_floored:
            state.ledger.warn(
                "thevenin", bus.name,
                f"Equivalent resistance {z.r:.3g} ohm is below {R_EPSILON:g} ohm; "
                "X/R and time constant use the floor value",
            )
        records[bus.id] = TheveninRecord(
            bus_id=bus.id,
            bus_name=bus.name,
            voltage_v=bus.voltage_v,
            impedance=z,
        )

    state.log.step(
        "thevenin",
        f"Computed Thevenin equivalents for {len(records)} bus(es)",
        buses=len(records),
    )
    return records
