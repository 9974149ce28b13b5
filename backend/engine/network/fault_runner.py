"""Fault study pipeline.

Runs validation, topology, Thevenin aggregation, short circuit, the
IEC/IEEE comparison, motor contribution and arc flash in order on a fresh
RunState, and returns one immutable result record. Blocking errors
propagate before anything is handed to the result sink; the sink only ever
sees complete results.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Protocol, Sequence

from engine.network.arc_flash import ArcFlashResult, calculate_arc_flash
from engine.network.components import (
    Component,
    StudySettings,
    component_to_dict,
    parse_components,
)
from engine.network.errors import ValidationError
from engine.network.ledger import RunState
from engine.network.motor_contribution import (
    BusMotorContribution,
    MotorContribution,
    calculate_motor_contributions,
    integrate_motor_contributions,
)
from engine.network.short_circuit import (
    ShortCircuitResult,
    StandardComparison,
    calculate_short_circuit,
    calculate_standards_comparison,
    verify_transformer_withstand,
)
from engine.network.thevenin import TheveninRecord, aggregate_thevenin
from engine.network.topology import Topology, build_topology
from engine.network.validation import (
    check_plausibility,
    validate_components,
    validate_settings,
)

logger = logging.getLogger(__name__)


class ResultSink(Protocol):
    """Destination for completed study results (storage is the caller's concern)."""

    def save(self, result: FaultStudyResult) -> str:
        """Store a result and return its identifier."""
        ...


@dataclass(frozen=True)
class FaultStudyResult:
    """Complete, read-only output of one fault study run."""
    timestamp: str
    components: tuple[Component, ...]
    settings: StudySettings
    state: RunState
    topology: Topology
    thevenin: dict[int, TheveninRecord]
    short_circuit: ShortCircuitResult
    standards_comparison: dict[int, StandardComparison]
    motor_contributions: tuple[MotorContribution, ...]
    motor_totals: dict[int, BusMotorContribution]
    arc_flash: dict[int, ArcFlashResult]

    @property
    def max_fault_ka(self) -> float:
        return self.short_circuit.max_fault_ka

    @property
    def min_fault_ka(self) -> float:
        return self.short_circuit.min_fault_ka

    @property
    def max_incident_energy_cal_cm2(self) -> float | None:
        energies = [
            r.incident_energy_cal_cm2 for r in self.arc_flash.values() if r.evaluated
        ]
        return max(energies) if energies else None

    def summary(self) -> dict[str, Any]:
        max_e = self.max_incident_energy_cal_cm2
        return {
            "bus_count": self.topology.n_bus,
            "standard": self.short_circuit.profile.name,
            "max_fault_ka": round(self.max_fault_ka, 3),
            "min_fault_ka": round(self.min_fault_ka, 3),
            "max_incident_energy_cal_cm2": round(max_e, 3) if max_e is not None else None,
            "evaluated_arc_flash_count": sum(1 for r in self.arc_flash.values() if r.evaluated),
            "warning_count": len(self.state.ledger.warnings),
        }

    def short_circuit_records(self) -> list[dict[str, Any]]:
        """Per-bus fault records, with motor fields only where motors contribute."""
        records = []
        for bus_id, fault in self.short_circuit.bus_results.items():
            record = fault.to_dict()
            if bus_id in self.motor_totals:
                record.update(self.motor_totals[bus_id].fault_fields())
            records.append(record)
        return records

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "input": {
                "components": [component_to_dict(c) for c in self.components],
                "settings": self.settings.to_dict(),
            },
            "assumptions": self.state.ledger.to_list(),
            "calculation_log": self.state.log.to_list(),
            "topology": self.topology.to_dict(),
            "thevenin": [r.to_dict() for r in self.thevenin.values()],
            "short_circuit": self.short_circuit_records(),
            "standards_comparison": [c.to_dict() for c in self.standards_comparison.values()],
            "motor_contribution": {
                "motors": [m.to_dict() for m in self.motor_contributions],
                "buses": [t.to_dict() for t in self.motor_totals.values()],
            },
            "arc_flash": [r.to_dict() for r in self.arc_flash.values()],
            "summary": self.summary(),
        }


def run_fault_study(
    components: Sequence[dict[str, Any] | Component],
    settings: StudySettings | dict[str, Any],
    sink: ResultSink | None = None,
) -> FaultStudyResult:
    """Run a complete fault study.

    Args:
        components: ordered component dicts (or parsed component records)
        settings: StudySettings or a dict accepted by StudySettings.from_dict
        sink: optional destination, called once with the finished result

    Raises:
        ValidationError: malformed or out-of-domain input
        TopologyError: unresolved bus references or no source bus
    """
    violations: list[str] = []
    if isinstance(settings, dict):
        try:
            settings = StudySettings.from_dict(settings)
        except ValidationError as exc:
            violations.extend(exc.violations)
    elif not isinstance(settings, StudySettings):
        violations.append(f"settings: expected a mapping, got {type(settings).__name__}")
    if isinstance(settings, StudySettings):
        violations.extend(validate_settings(settings))

    parsed: list[Component] = []
    try:
        parsed = parse_components(list(components))
    except ValidationError as exc:
        violations.extend(exc.violations)
    else:
        violations.extend(validate_components(parsed))
    if violations:
        raise ValidationError(violations)

    state = RunState(settings=settings)
    state.log.step("validation", f"Validated {len(parsed)} component(s)", components=len(parsed))

    check_plausibility(parsed, settings, state.ledger)

    topology = build_topology(parsed, settings, state)
    thevenin = aggregate_thevenin(topology, state)
    short_circuit = calculate_short_circuit(thevenin, settings, state)
    verify_transformer_withstand(topology, short_circuit, state.ledger)
    standards_comparison = calculate_standards_comparison(thevenin, settings, state)
    contributions = calculate_motor_contributions(topology, state)
    motor_totals = integrate_motor_contributions(short_circuit, contributions, state)
    arc_flash = calculate_arc_flash(short_circuit, motor_totals, settings.arc_flash, state)

    result = FaultStudyResult(
        timestamp=datetime.now(timezone.utc).isoformat(),
        components=tuple(parsed),
        settings=settings,
        state=state,
        topology=topology,
        thevenin=thevenin,
        short_circuit=short_circuit,
        standards_comparison=standards_comparison,
        motor_contributions=tuple(contributions),
        motor_totals=motor_totals,
        arc_flash=arc_flash,
    )
    state.log.step(
        "complete",
        f"Fault study complete: max {result.max_fault_ka:.2f} kA, "
        f"{len(state.ledger.warnings)} warning(s)",
    )

    if sink is not None:
        result_id = sink.save(result)
        logger.info("Fault study stored as %s", result_id)
    return result
