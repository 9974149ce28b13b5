"""Radial bus topology built from an ordered component list.

The builder walks the components keeping a "current bus" pointer that
starts at a source bus at the system voltage:

- utility / generator: shunt impedance on the current bus
- cable: shunt impedance on the current bus, or an edge to ``to_bus``
  (created at the bus voltage if absent) which becomes the current bus;
  a cable rated for another voltage is a topology error
- transformer: new bus at the secondary voltage, joined by an edge that
  carries the transformer impedance; becomes the current bus
- motor: attached to the current bus; no effect on impedance

An explicit ``from_bus`` overrides the pointer for that component.
Shunt impedances are stored referred to their bus voltage. Edge impedances
stay at their native voltage until the Thevenin aggregation refers them.
"""

from __future__ import annotations

import math
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Sequence

from engine.network.component_models import (
    MotorModel,
    build_motor_model,
    cable_impedance,
    generator_impedance,
    utility_impedance,
)
from engine.network.components import (
    Cable,
    Component,
    Generator,
    Motor,
    StudySettings,
    Transformer,
    UtilitySource,
)
from engine.network.errors import TopologyError
from engine.network.impedance import Impedance, parallel, zero_impedance
from engine.network.ledger import RunState
from engine.network.transformer_model import TransformerModel, build_transformer_model
from engine.network.validation import check_cable_reactance, verify_transformer_model

SOURCE_BUS_NAME = "Source"
SOURCE_ELEMENT_KINDS = ("utility", "generator")


class BusRole(str, Enum):
    SOURCE = "source"
    LOAD = "load"          # no downstream edges
    JUNCTION = "junction"  # feeds at least one downstream bus


@dataclass(frozen=True)
class ShuntElement:
    """A non-voltage-changing component attached directly to a bus."""
    component: str
    kind: str
    impedance: Impedance   # native voltage


@dataclass(frozen=True)
class Bus:
    """Single bus definition."""
    id: int
    name: str
    voltage_v: float
    role: BusRole
    shunt: Impedance                   # equivalent of shunt elements at bus voltage
    shunt_elements: tuple[ShuntElement, ...] = ()
    components: tuple[str, ...] = ()
    adjacent: tuple[int, ...] = ()

    @property
    def has_source(self) -> bool:
        return any(e.kind in SOURCE_ELEMENT_KINDS for e in self.shunt_elements)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "voltage_v": self.voltage_v,
            "role": self.role.value,
            "shunt_impedance": self.shunt.to_dict(),
            "components": list(self.components),
            "adjacent": list(self.adjacent),
        }


@dataclass(frozen=True)
class Edge:
    """Directed series element between two buses (transformer or cable)."""
    index: int
    name: str
    kind: str
    from_bus: int
    to_bus: int
    impedance: Impedance   # native voltage

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "name": self.name,
            "kind": self.kind,
            "from_bus": self.from_bus,
            "to_bus": self.to_bus,
            "impedance": self.impedance.to_dict(),
        }


@dataclass(frozen=True)
class MotorAttachment:
    bus_id: int
    model: MotorModel


@dataclass(frozen=True)
class Topology:
    """Immutable bus graph with a single source bus."""
    buses: tuple[Bus, ...]
    edges: tuple[Edge, ...]
    motors: tuple[MotorAttachment, ...]
    transformers: tuple[TransformerModel, ...]
    source_bus_id: int
    _parent_edge: dict[int, int | None] = field(default_factory=dict, repr=False)

    @property
    def n_bus(self) -> int:
        return len(self.buses)

    def bus(self, bus_id: int) -> Bus:
        for b in self.buses:
            if b.id == bus_id:
                return b
        raise KeyError(f"Bus {bus_id} not found")

    def bus_by_name(self, name: str) -> Bus:
        for b in self.buses:
            if b.name == name:
                return b
        raise KeyError(f"Bus '{name}' not found")

    def path_to(self, bus_id: int) -> list[Edge]:
        """Edges from the source bus down to bus_id, in order."""
        path: list[Edge] = []
        current = bus_id
        while (edge_idx := self._parent_edge.get(current)) is not None:
            edge = self.edges[edge_idx]
            path.append(edge)
            current = edge.from_bus
        path.reverse()
        return path

    def buses_on_path(self, bus_id: int) -> list[Bus]:
        """Buses from the source down to bus_id, inclusive."""
        ids = [self.source_bus_id] + [e.to_bus for e in self.path_to(bus_id)]
        return [self.bus(i) for i in ids]

    def motors_at(self, bus_id: int) -> list[MotorAttachment]:
        return [m for m in self.motors if m.bus_id == bus_id]

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_bus_id": self.source_bus_id,
            "buses": [b.to_dict() for b in self.buses],
            "edges": [e.to_dict() for e in self.edges],
            "transformers": [t.to_dict() for t in self.transformers],
        }


@dataclass
class _BusDraft:
    id: int
    name: str
    voltage_v: float
    shunt_elements: list[ShuntElement] = field(default_factory=list)
    components: list[str] = field(default_factory=list)
    adjacent: list[int] = field(default_factory=list)


class _Builder:
    """Mutable working state for one build_topology call."""

    def __init__(self, settings: StudySettings, state: RunState):
        self.state = state
        self.ledger = state.ledger
        self.buses: list[_BusDraft] = []
        self.by_name: dict[str, _BusDraft] = {}
        self.edges: list[Edge] = []
        self.motors: list[MotorAttachment] = []
        self.transformers: list[TransformerModel] = []
        self.problems: list[str] = []
        self.source = self.add_bus(SOURCE_BUS_NAME, settings.nominal_voltage_v)
        self.current = self.source

    def add_bus(self, name: str, voltage_v: float) -> _BusDraft:
        bus = _BusDraft(id=len(self.buses) + 1, name=name, voltage_v=voltage_v)
        self.buses.append(bus)
        self.by_name[name] = bus
        return bus

    def origin_for(self, comp: Component) -> _BusDraft | None:
        if comp.from_bus is None:
            return self.current
        bus = self.by_name.get(comp.from_bus)
        if bus is None:
            self.problems.append(
                f"{comp.kind} '{comp.name}': from_bus '{comp.from_bus}' does not exist"
            )
        return bus

    def target_bus(self, comp: Component, name: str, voltage_v: float) -> _BusDraft | None:
        bus = self.by_name.get(name)
        if bus is None:
            return self.add_bus(name, voltage_v)
        if not math.isclose(bus.voltage_v, voltage_v, rel_tol=1e-6):
            self.problems.append(
                f"{comp.kind} '{comp.name}': to_bus '{name}' is at {bus.voltage_v:g} V "
                f"but the {comp.kind} delivers {voltage_v:g} V"
            )
            return None
        return bus

    def add_shunt(self, bus: _BusDraft, comp: Component, z: Impedance) -> None:
        bus.shunt_elements.append(ShuntElement(comp.name, comp.kind, z))
        bus.components.append(comp.name)

    def add_edge(self, comp: Component, origin: _BusDraft, target: _BusDraft, z: Impedance) -> None:
        if origin is target:
            self.problems.append(f"{comp.kind} '{comp.name}': connects bus '{origin.name}' to itself")
            return
        self.edges.append(Edge(
            index=len(self.edges),
            name=comp.name,
            kind=comp.kind,
            from_bus=origin.id,
            to_bus=target.id,
            impedance=z,
        ))
        origin.components.append(comp.name)
        target.components.append(comp.name)
        if target.id not in origin.adjacent:
            origin.adjacent.append(target.id)
        if origin.id not in target.adjacent:
            target.adjacent.append(origin.id)
        self.current = target

    def place(self, comp: Component) -> None:
        origin = self.origin_for(comp)
        if origin is None:
            return

        if isinstance(comp, UtilitySource):
            self.add_shunt(origin, comp, utility_impedance(comp, origin.voltage_v, self.ledger))
        elif isinstance(comp, Generator):
            self.add_shunt(origin, comp, generator_impedance(comp, origin.voltage_v, self.ledger))
        elif isinstance(comp, Motor):
            model = build_motor_model(comp, origin.voltage_v, self.ledger)
            self.motors.append(MotorAttachment(origin.id, model))
            origin.components.append(comp.name)
        elif isinstance(comp, Cable):
            if comp.voltage_v is not None and not math.isclose(
                comp.voltage_v, origin.voltage_v, rel_tol=0.01
            ):
                self.problems.append(
                    f"cable '{comp.name}': rated {comp.voltage_v:g} V but connected to "
                    f"bus '{origin.name}' at {origin.voltage_v:g} V; a voltage change "
                    "needs a transformer"
                )
                return
            z = cable_impedance(comp, origin.voltage_v, self.ledger)
            check_cable_reactance(comp, z.voltage_v, self.ledger)
            if comp.to_bus is None:
                self.add_shunt(origin, comp, z)
                return
            target = self.target_bus(comp, comp.to_bus, z.voltage_v)
            if target is not None:
                self.add_edge(comp, origin, target, z)
        elif isinstance(comp, Transformer):
            model = build_transformer_model(comp, self.ledger)
            verify_transformer_model(comp, model, self.ledger)
            self.transformers.append(model)
            if comp.primary_voltage_v is not None and not math.isclose(
                comp.primary_voltage_v, origin.voltage_v, rel_tol=0.01
            ):
                self.ledger.warn(
                    "topology", comp.name,
                    f"Primary voltage {comp.primary_voltage_v:g} V differs from the "
                    f"{origin.voltage_v:g} V bus it is connected to",
                )
            target = self.target_bus(comp, comp.to_bus or comp.name, model.secondary_voltage_v)
            if target is not None:
                self.add_edge(comp, origin, target, model.impedance)

    def freeze(self) -> Topology:
        parent_edge = self._walk_from_source()

        unreachable = [b.name for b in self.buses if b.id not in parent_edge]
        if unreachable:
            self.problems.append(
                "bus(es) not reachable from the source bus: " + ", ".join(unreachable)
            )

        if not any(
            e.kind in SOURCE_ELEMENT_KINDS for b in self.buses for e in b.shunt_elements
        ):
            self.problems.append("no source bus: no utility or generator is attached to any bus")

        if self.problems:
            raise TopologyError(self.problems)

        if len(self.buses) > 1:
            for b in self.buses:
                if not b.adjacent:
                    self.ledger.warn("topology", b.name, "Bus has no connections to other buses")

        downstream = {e.from_bus for e in self.edges}
        buses = []
        for b in self.buses:
            if b is self.source:
                role = BusRole.SOURCE
            elif b.id in downstream:
                role = BusRole.JUNCTION
            else:
                role = BusRole.LOAD
            buses.append(Bus(
                id=b.id,
                name=b.name,
                voltage_v=b.voltage_v,
                role=role,
                shunt=_bus_shunt(b),
                shunt_elements=tuple(b.shunt_elements),
                components=tuple(b.components),
                adjacent=tuple(b.adjacent),
            ))

        return Topology(
            buses=tuple(buses),
            edges=tuple(self.edges),
            motors=tuple(self.motors),
            transformers=tuple(self.transformers),
            source_bus_id=self.source.id,
            _parent_edge=parent_edge,
        )

    def _walk_from_source(self) -> dict[int, int | None]:
        """Breadth-first walk along directed edges; first path found wins."""
        parent: dict[int, int | None] = {self.source.id: None}
        outgoing: dict[int, list[Edge]] = {}
        for e in self.edges:
            outgoing.setdefault(e.from_bus, []).append(e)

        queue = deque([self.source.id])
        while queue:
            bus_id = queue.popleft()
            for e in outgoing.get(bus_id, []):
                if e.to_bus in parent:
                    name = next(b.name for b in self.buses if b.id == e.to_bus)
                    self.ledger.warn(
                        "topology", name,
                        f"Bus is fed by more than one path; '{e.name}' is ignored "
                        "for Thevenin aggregation (radial networks only)",
                    )
                    continue
                parent[e.to_bus] = e.index
                queue.append(e.to_bus)
        return parent


def _bus_shunt(bus: _BusDraft) -> Impedance:
    """Equivalent shunt impedance of a bus at its own voltage.

    Source elements (utility, generator) on the same bus feed the fault in
    parallel; the remaining shunt elements are added in series with them.
    """
    sources: Impedance | None = None
    series = zero_impedance(bus.voltage_v)
    for element in bus.shunt_elements:
        z = element.impedance.referred_to(bus.voltage_v)
        if element.kind in SOURCE_ELEMENT_KINDS:
            sources = z if sources is None else parallel(sources, z)
        else:
            series = series + z
    return series if sources is None else series + sources


def build_topology(
    components: Sequence[Component],
    settings: StudySettings,
    state: RunState,
) -> Topology:
    """Build the bus graph for a parsed, validated component list.

    Raises TopologyError listing every unresolved reference or
    disconnected bus.
    """
    builder = _Builder(settings, state)
    for comp in components:
        builder.place(comp)
    topology = builder.freeze()
    state.log.step(
        "topology",
        f"Built {topology.n_bus} bus(es) and {len(topology.edges)} edge(s)",
        buses=topology.n_bus,
        edges=len(topology.edges),
        motors=len(topology.motors),
    )
    return topology
