"""Tests for engine.network.topology and engine.network.thevenin."""

from __future__ import annotations

import pytest

from engine.network.components import StudySettings, parse_components
from engine.network.errors import TopologyError
from engine.network.impedance import Impedance, parallel
from engine.network.ledger import RunState
from engine.network.thevenin import aggregate_thevenin, thevenin_at
from engine.network.topology import SOURCE_BUS_NAME, BusRole, build_topology


def _build(components: list[dict], voltage_v: float = 13_200.0):
    settings = StudySettings(nominal_voltage_v=voltage_v)
    state = RunState(settings=settings)
    return build_topology(parse_components(components), settings, state), state


# ======================================================================
# Topology builder
# ======================================================================


class TestBuildTopology:
    def test_industrial_layout(self, industrial_components):
        topo, _ = _build(industrial_components)
        assert [b.name for b in topo.buses] == [SOURCE_BUS_NAME, "MCC-1", "Panel-A"]
        assert [b.voltage_v for b in topo.buses] == [13_200.0, 480.0, 480.0]
        assert [b.role for b in topo.buses] == [BusRole.SOURCE, BusRole.JUNCTION, BusRole.LOAD]
        assert [(e.kind, e.from_bus, e.to_bus) for e in topo.edges] == [
            ("transformer", 1, 2),
            ("cable", 2, 3),
        ]

    def test_motor_attached_to_named_bus(self, industrial_components):
        topo, _ = _build(industrial_components)
        mcc = topo.bus_by_name("MCC-1")
        assert [m.model.name for m in topo.motors_at(mcc.id)] == ["Pump-1"]
        assert "Pump-1" in mcc.components

    def test_source_bus_has_source(self, industrial_components):
        topo, _ = _build(industrial_components)
        source = topo.bus(topo.source_bus_id)
        assert source.has_source
        assert not topo.bus_by_name("Panel-A").has_source

    def test_path_to(self, industrial_components):
        topo, _ = _build(industrial_components)
        panel = topo.bus_by_name("Panel-A")
        assert [e.name for e in topo.path_to(panel.id)] == ["TX-1", "Feeder-1"]
        assert [b.name for b in topo.buses_on_path(panel.id)] == ["Source", "MCC-1", "Panel-A"]
        assert topo.path_to(topo.source_bus_id) == []

    def test_current_bus_pointer(self):
        """Components without from_bus attach to the most recent downstream bus."""
        topo, _ = _build([
            {"kind": "utility", "fault_current_ka": 20.0, "x_r_ratio": 10.0},
            {"kind": "transformer", "secondary_voltage_v": 480.0, "rating": 1000.0,
             "rating_unit": "kVA", "impedance_pct": 5.75, "x_r_ratio": 5.0, "name": "TX"},
            {"kind": "motor", "rated_power_hp": 50.0, "name": "M1"},
        ])
        tx_bus = topo.bus_by_name("TX")
        assert tx_bus.voltage_v == 480.0
        assert topo.motors[0].bus_id == tx_bus.id

    def test_cable_without_to_bus_is_shunt(self):
        topo, _ = _build([
            {"kind": "utility", "short_circuit_mva": 100.0, "x_r_ratio": 10.0},
            {"kind": "cable", "length_m": 500.0, "r_ohm_per_km": 0.1, "x_ohm_per_km": 0.1,
             "temperature_c": 20.0, "name": "Tie"},
        ])
        assert topo.n_bus == 1
        assert topo.edges == ()
        source = topo.bus(topo.source_bus_id)
        assert [e.kind for e in source.shunt_elements] == ["utility", "cable"]

    def test_parallel_sources_on_one_bus(self):
        topo, _ = _build([
            {"kind": "utility", "fault_current_ka": 30.0, "voltage_v": 480.0, "x_r_ratio": 10.0},
            {"kind": "generator", "rating_kva": 1000.0, "subtransient_reactance_pct": 15.0,
             "voltage_v": 480.0, "x_r_ratio": 30.0},
        ], voltage_v=480.0)
        source = topo.bus(topo.source_bus_id)
        u, g = (e.impedance for e in source.shunt_elements)
        expected = parallel(u, g)
        assert source.shunt.r == pytest.approx(expected.r)
        assert source.shunt.x == pytest.approx(expected.x)
        assert source.shunt.z < min(u.z, g.z)

    def test_to_dict(self, industrial_components):
        topo, _ = _build(industrial_components)
        data = topo.to_dict()
        assert data["source_bus_id"] == 1
        assert len(data["buses"]) == 3
        assert data["edges"][0]["kind"] == "transformer"
        assert data["transformers"][0]["rating_mva"] == pytest.approx(1.5)

    def test_build_logged(self, industrial_components):
        _, state = _build(industrial_components)
        (step,) = [s for s in state.log.steps if s.step == "topology"]
        assert step.data == {"buses": 3, "edges": 2, "motors": 1}


class TestTopologyErrors:
    def test_unresolved_from_bus(self, utility_100mva):
        with pytest.raises(TopologyError) as exc_info:
            _build([
                utility_100mva,
                {"kind": "motor", "rated_power_hp": 50.0, "name": "M1", "from_bus": "MCC-9"},
            ])
        assert "from_bus 'MCC-9' does not exist" in exc_info.value.problems[0]

    def test_to_bus_voltage_mismatch(self, utility_100mva, service_transformer):
        with pytest.raises(TopologyError, match="is at 480 V"):
            _build([
                utility_100mva,
                service_transformer,
                {"kind": "cable", "length_m": 100.0, "r_ohm_per_km": 0.1, "x_ohm_per_km": 0.1,
                 "voltage_v": 13_200.0, "from_bus": "Source", "to_bus": "MCC-1"},
            ])

    def test_cable_rated_for_other_voltage(self, utility_100mva):
        """A 480 V cable on the 13.2 kV source bus cannot create a 480 V bus."""
        with pytest.raises(TopologyError, match="needs a transformer") as exc_info:
            _build([
                utility_100mva,
                {"kind": "cable", "length_m": 30.0, "r_ohm_per_km": 0.1, "x_ohm_per_km": 0.08,
                 "voltage_v": 480.0, "name": "LV-Run", "to_bus": "X"},
            ])
        assert "'LV-Run'" in exc_info.value.problems[0]

    def test_cable_within_voltage_tolerance(self, utility_100mva):
        topo, _ = _build([
            utility_100mva,
            {"kind": "cable", "length_m": 30.0, "r_ohm_per_km": 0.1, "x_ohm_per_km": 0.1,
             "temperature_c": 20.0, "voltage_v": 13_100.0, "to_bus": "Ring"},
        ])
        assert topo.bus_by_name("Ring").voltage_v == pytest.approx(13_100.0)

    def test_self_loop(self, utility_100mva):
        with pytest.raises(TopologyError, match="to itself"):
            _build([
                utility_100mva,
                {"kind": "cable", "length_m": 10.0, "r_ohm_per_km": 0.1, "x_ohm_per_km": 0.1,
                 "from_bus": "Source", "to_bus": "Source"},
            ])

    def test_all_problems_reported(self, utility_100mva):
        with pytest.raises(TopologyError) as exc_info:
            _build([
                utility_100mva,
                {"kind": "motor", "rated_power_hp": 50.0, "from_bus": "Nowhere"},
                {"kind": "cable", "length_m": 10.0, "r_ohm_per_km": 0.1, "x_ohm_per_km": 0.1,
                 "from_bus": "Elsewhere", "to_bus": "Panel"},
            ])
        assert len(exc_info.value.problems) == 2

    def test_no_source_bus(self):
        with pytest.raises(TopologyError, match="no source bus"):
            _build([
                {"kind": "generator", "rating_kva": 500.0, "from_bus": "Missing"},
            ])


class TestMeshedNetwork:
    def test_second_path_ignored_with_warning(self, utility_100mva, service_transformer):
        cable = {"kind": "cable", "r_ohm_per_km": 0.1, "x_ohm_per_km": 0.08, "temperature_c": 75.0}
        topo, state = _build([
            utility_100mva,
            service_transformer,
            {**cable, "name": "C-A", "length_m": 50.0, "from_bus": "MCC-1", "to_bus": "Panel-A"},
            {**cable, "name": "C-B", "length_m": 40.0, "from_bus": "MCC-1", "to_bus": "Panel-B"},
            {**cable, "name": "C-AB", "length_m": 20.0, "from_bus": "Panel-B", "to_bus": "Panel-A"},
        ])
        panel_a = topo.bus_by_name("Panel-A")
        assert [e.name for e in topo.path_to(panel_a.id)] == ["TX-1", "C-A"]
        assert any(
            w.subject == "Panel-A" and "more than one path" in w.message
            for w in state.ledger.warnings
        )


# ======================================================================
# Thevenin aggregation
# ======================================================================


class TestThevenin:
    def test_source_bus_is_utility_impedance(self, industrial_components):
        topo, state = _build(industrial_components)
        records = aggregate_thevenin(topo, state)
        src = records[topo.source_bus_id]
        assert src.z == pytest.approx(1.7424, rel=1e-3)
        assert src.x_over_r == pytest.approx(10.0)

    def test_downstream_refers_to_bus_voltage(self, industrial_components):
        topo, state = _build(industrial_components)
        mcc = topo.bus_by_name("MCC-1")
        utility = topo.bus(topo.source_bus_id).shunt.referred_to(480.0)
        tx = topo.edges[0].impedance
        z = thevenin_at(topo, mcc.id)
        assert z.voltage_v == 480.0
        assert z.r == pytest.approx(utility.r + tx.r)
        assert z.x == pytest.approx(utility.x + tx.x)

    def test_impedance_grows_downstream(self, industrial_components):
        topo, state = _build(industrial_components)
        records = aggregate_thevenin(topo, state)
        mcc = records[topo.bus_by_name("MCC-1").id]
        panel = records[topo.bus_by_name("Panel-A").id]
        assert panel.z > mcc.z
        assert panel.r - mcc.r == pytest.approx(topo.edges[1].impedance.r)

    def test_record_per_bus(self, industrial_components):
        topo, state = _build(industrial_components)
        records = aggregate_thevenin(topo, state)
        assert sorted(records) == [1, 2, 3]
        assert set(records[2].to_dict()) == {
            "bus_id", "bus_name", "voltage_v", "r_ohm", "x_ohm", "z_ohm", "x_over_r",
        }

    def test_floored_resistance_warns(self):
        topo, state = _build([
            {"kind": "utility", "fault_current_ka": 30.0, "voltage_v": 480.0, "x_r_ratio": 1e9},
        ], voltage_v=480.0)
        aggregate_thevenin(topo, state)
        assert any(w.category == "thevenin" for w in state.ledger.warnings)

    def test_shunt_impedance_type(self, industrial_components):
        topo, _ = _build(industrial_components)
        assert isinstance(topo.bus(1).shunt, Impedance)
