"""End-to-end tests for engine.network.fault_runner."""

from __future__ import annotations

import json

import pytest

from engine.network.errors import TopologyError, ValidationError
from engine.network.fault_runner import FaultStudyResult, run_fault_study


class _ListSink:
    """Collects saved results in memory."""

    def __init__(self):
        self.saved: list[FaultStudyResult] = []

    def save(self, result: FaultStudyResult) -> str:
        self.saved.append(result)
        return f"study-{len(self.saved)}"


# ======================================================================
# Complete runs
# ======================================================================


class TestRunFaultStudy:
    def test_result_sections(self, industrial_components, arc_flash_settings_dict):
        result = run_fault_study(industrial_components, arc_flash_settings_dict)
        data = result.to_dict()
        assert set(data) == {
            "timestamp", "input", "assumptions", "calculation_log", "topology",
            "thevenin", "short_circuit", "standards_comparison", "motor_contribution",
            "arc_flash", "summary",
        }
        assert len(data["input"]["components"]) == 4
        assert data["input"]["settings"]["arc_flash"]["working_distance_mm"] == 455.0

    def test_result_is_json_serializable(self, industrial_components, arc_flash_settings_dict):
        result = run_fault_study(industrial_components, arc_flash_settings_dict)
        json.dumps(result.to_dict())

    def test_pipeline_steps_in_order(self, industrial_components, arc_flash_settings_dict):
        result = run_fault_study(industrial_components, arc_flash_settings_dict)
        steps = [s["step"] for s in result.to_dict()["calculation_log"]]
        assert steps == [
            "validation", "topology", "thevenin", "short_circuit",
            "standards_comparison", "motor_contribution", "arc_flash", "complete",
        ]

    def test_motor_fields_only_where_motors(self, industrial_components, arc_flash_settings_dict):
        result = run_fault_study(industrial_components, arc_flash_settings_dict)
        records = {r["bus_name"]: r for r in result.to_dict()["short_circuit"]}
        assert "three_phase_with_motors_ka" in records["MCC-1"]
        assert "three_phase_with_motors_ka" not in records["Panel-A"]
        assert "three_phase_with_motors_ka" not in records["Source"]

    def test_arc_flash_uses_motor_current(self, industrial_components, arc_flash_settings_dict):
        result = run_fault_study(industrial_components, arc_flash_settings_dict)
        mcc = result.topology.bus_by_name("MCC-1").id
        assert result.arc_flash[mcc].bolted_current_ka == pytest.approx(
            result.motor_totals[mcc].three_phase_with_motors_a / 1000.0
        )

    def test_every_bus_has_arc_flash_record(self, industrial_components, arc_flash_settings_dict):
        result = run_fault_study(industrial_components, arc_flash_settings_dict)
        assert set(result.arc_flash) == {b.id for b in result.topology.buses}
        assert all(r.evaluated for r in result.arc_flash.values())

    def test_without_arc_flash_settings(self, industrial_components):
        result = run_fault_study(industrial_components, {"nominal_voltage_v": 13_200.0})
        assert not any(r.evaluated for r in result.arc_flash.values())
        summary = result.summary()
        assert summary["max_incident_energy_cal_cm2"] is None
        assert summary["evaluated_arc_flash_count"] == 0

    def test_summary(self, industrial_components, arc_flash_settings_dict):
        result = run_fault_study(industrial_components, arc_flash_settings_dict)
        summary = result.summary()
        assert summary["bus_count"] == 3
        assert summary["standard"] == "IEEE"
        assert summary["max_fault_ka"] >= summary["min_fault_ka"] > 0
        assert summary["max_fault_ka"] == pytest.approx(
            max(r.three_phase_ka for r in result.short_circuit.bus_results.values()), abs=1e-3
        )

    def test_source_bus_current(self, industrial_components, arc_flash_settings_dict):
        result = run_fault_study(industrial_components, arc_flash_settings_dict)
        source = result.short_circuit.bus_results[result.topology.source_bus_id]
        assert source.three_phase_ka == pytest.approx(4.374, rel=1e-3)

    def test_defaults_land_in_ledger(self, utility_100mva):
        result = run_fault_study(
            [
                utility_100mva,
                {"kind": "transformer", "secondary_voltage_v": 480.0, "rating": 1000.0,
                 "impedance_pct": 5.75},
                {"kind": "motor", "rated_power_hp": 50.0},
            ],
            {"nominal_voltage_v": 13_200.0},
        )
        categories = {e["category"] for e in result.to_dict()["assumptions"] if e["kind"] == "assumption"}
        assert {"transformer", "motor"} <= categories

    def test_runs_are_independent(self, industrial_components, arc_flash_settings_dict):
        first = run_fault_study(industrial_components, arc_flash_settings_dict)
        second = run_fault_study(industrial_components, arc_flash_settings_dict)
        assert first.state is not second.state
        assert len(first.state.ledger) == len(second.state.ledger)


# ======================================================================
# Result sink
# ======================================================================


class TestResultSink:
    def test_sink_receives_result(self, industrial_components, arc_flash_settings_dict):
        sink = _ListSink()
        result = run_fault_study(industrial_components, arc_flash_settings_dict, sink=sink)
        assert sink.saved == [result]

    def test_sink_not_called_on_validation_error(self, arc_flash_settings_dict):
        sink = _ListSink()
        with pytest.raises(ValidationError):
            run_fault_study(
                [{"kind": "utility", "fault_current_ka": -1.0}],
                arc_flash_settings_dict,
                sink=sink,
            )
        assert sink.saved == []

    def test_sink_not_called_on_topology_error(self, utility_100mva, arc_flash_settings_dict):
        sink = _ListSink()
        with pytest.raises(TopologyError):
            run_fault_study(
                [utility_100mva, {"kind": "motor", "rated_power_hp": 5.0, "from_bus": "Nope"}],
                arc_flash_settings_dict,
                sink=sink,
            )
        assert sink.saved == []


# ======================================================================
# Input violations
# ======================================================================


class TestInputViolations:
    def test_settings_and_component_violations_reported_together(self, utility_100mva):
        with pytest.raises(ValidationError) as exc_info:
            run_fault_study(
                [utility_100mva, {"kind": "cable", "length_m": 50.0, "name": "C1"}],
                {"nominal_voltage_v": -1.0, "standard": "XYZ"},
            )
        text = " | ".join(exc_info.value.violations)
        assert "'nominal_voltage_v' must be positive" in text
        assert "unknown standard 'XYZ'" in text
        assert "missing required field 'r_ohm_per_km'" in text
        assert "missing required field 'x_ohm_per_km'" in text
        assert exc_info.value.violations[0].startswith("settings")

    def test_component_values_checked_alongside_bad_settings(self):
        with pytest.raises(ValidationError) as exc_info:
            run_fault_study(
                [{"kind": "utility", "fault_current_ka": -2.0}],
                {"nominal_voltage_v": 480.0, "study_case": "typical"},
            )
        assert len(exc_info.value.violations) == 2

    def test_settings_structure_errors_merge_with_component_errors(self):
        with pytest.raises(ValidationError) as exc_info:
            run_fault_study(
                [{"kind": "flux_capacitor"}],
                {"nominal_voltage_v": 480.0, "arc_flash": 5},
            )
        violations = exc_info.value.violations
        assert "'arc_flash' must be a mapping" in violations[0]
        assert "unknown kind 'flux_capacitor'" in violations[1]

    def test_string_working_distance_rejected(self, industrial_components):
        with pytest.raises(ValidationError, match="'working_distance_mm' must be a number"):
            run_fault_study(
                industrial_components,
                {"nominal_voltage_v": 13_200.0,
                 "arc_flash": {"working_distance_mm": "455", "arc_duration_s": 0.1}},
            )

    def test_settings_not_a_mapping(self, industrial_components):
        with pytest.raises(ValidationError, match="settings: expected a mapping"):
            run_fault_study(industrial_components, None)


# ======================================================================
# Interrupting duty, standards comparison and transformer withstand
# ======================================================================


def _stiff_transformer_study(impedance_pct: float) -> list[dict]:
    return [
        {"kind": "utility", "short_circuit_mva": 5_000.0, "x_r_ratio": 15.0, "name": "Grid"},
        {"kind": "transformer", "secondary_voltage_v": 480.0, "primary_voltage_v": 13_200.0,
         "rating": 1000.0, "rating_unit": "kVA", "impedance_pct": impedance_pct,
         "x_r_ratio": 6.0, "name": "TX-1"},
    ]


class TestStudyExtensions:
    def test_interrupting_duty_in_records(self, industrial_components, arc_flash_settings_dict):
        settings = {**arc_flash_settings_dict, "fault_location": "local"}
        records = run_fault_study(industrial_components, settings).to_dict()["short_circuit"]
        assert all(r["interrupting_multiplier"] == 1.0 for r in records)
        assert all(r["interrupting_ka"] == pytest.approx(r["three_phase_ka"], abs=1e-3) for r in records)

    def test_comparison_per_bus(self, industrial_components, arc_flash_settings_dict):
        result = run_fault_study(industrial_components, arc_flash_settings_dict)
        assert set(result.standards_comparison) == {b.id for b in result.topology.buses}
        source = result.standards_comparison[result.topology.source_bus_id]
        assert source.symmetrical_diff_pct == pytest.approx(100.0 * 0.1 / 1.1)

    def test_withstand_exceeded(self):
        result = run_fault_study(_stiff_transformer_study(2.5), {"nominal_voltage_v": 13_200.0})
        messages = [w.message for w in result.state.ledger.warnings if w.subject == "TX-1"]
        assert any("short-circuit withstand" in m for m in messages)

    def test_withstand_respected(self):
        result = run_fault_study(_stiff_transformer_study(5.75), {"nominal_voltage_v": 13_200.0})
        assert not any("withstand" in w.message for w in result.state.ledger.warnings)

    def test_transformer_ratings_in_topology(self, industrial_components, arc_flash_settings_dict):
        data = run_fault_study(industrial_components, arc_flash_settings_dict).to_dict()
        (tx,) = data["topology"]["transformers"]
        assert tx["withstand"]["symmetrical_a"] == pytest.approx(25.0 * tx["rated_secondary_current_a"], rel=1e-3)
        assert tx["inrush"]["current_a"] == pytest.approx(10.0 * tx["rated_secondary_current_a"], rel=1e-3)
