"""Three-phase and derived short-circuit currents per bus.

IEEE / ANSI (C37.010, IEEE 141):
  I_sym  = V / (√3 × |Z_th|)
  m      = √(1 + 2·e^(−4π/(X/R))), clamped to [1, √3]
  I_asym = m × I_sym
  I_peak = √2 × m × I_sym

IEC 60909-0:
  I"k    = c × V / (√3 × |Z_th|), c from the voltage band and study case
  κ      = 1.02 + 0.98·e^(−3/(X/R))
  i_p    = κ × √2 × I"k

Unbalanced faults are fixed fractions of I_sym (see standards.FaultTypeRatios).
This is an approximation, not a sequence-network solution.

Also reported: fault MVA = √3·V·I_sym/1e6 and DC time constant τ = X/(2πfR).

IEEE and ANSI also report the interrupting duty I_int = I_sym × the C37
multiplier for the fault location (local 1.0, remote 1.5, near generator
1.2). Every bus can be compared between IEC and IEEE, and results are
checked for a plausible peak ratio and Thevenin impedance.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

import numpy as np

from engine.network.components import StudySettings
from engine.network.impedance import R_EPSILON, guarded_divide
from engine.network.ledger import AssumptionLedger, RunState
from engine.network.standards import (
    C37_INTERRUPTING_MULTIPLIERS,
    COMPARISON_PEAK_TOLERANCE_PCT,
    COMPARISON_SYMMETRICAL_TOLERANCE_PCT,
    FAULT_LEVEL_MAX_KA,
    FAULT_LEVEL_MIN_KA,
    IEC_PROFILE,
    IEEE_PROFILE,
    IMPEDANCE_LIMITS_OHM,
    PEAK_RATIO_LIMITS,
    PEAK_RATIO_TOLERANCE,
    TRANSFORMER_WITHSTAND_MULTIPLE,
    XR_TYPICAL_RANGE,
    StandardProfile,
    get_profile,
    voltage_level,
)
from engine.network.thevenin import TheveninRecord
from engine.network.topology import Topology

SQRT2 = math.sqrt(2)
SQRT3 = math.sqrt(3)


def asymmetry_multiplier(x_over_r):
    """First-cycle RMS asymmetry multiplier; accepts a scalar or an array.

    Non-positive X/R gives 1.0. The result is monotonically increasing in
    X/R and bounded by [1, √3].
    """
    xr = np.asarray(x_over_r, dtype=np.float64)
    positive = xr > 0
    safe_xr = np.where(positive, xr, 1.0)
    m = np.sqrt(1.0 + 2.0 * np.exp(-4.0 * np.pi / safe_xr))
    m = np.clip(np.where(positive, m, 1.0), 1.0, SQRT3)
    return float(m) if m.ndim == 0 else m


def iec_kappa(x_over_r):
    """IEC 60909-0 peak factor κ = 1.02 + 0.98·e^(−3/(X/R))."""
    xr = np.asarray(x_over_r, dtype=np.float64)
    positive = xr > 0
    safe_xr = np.where(positive, xr, 1.0)
    kappa = np.where(positive, 1.02 + 0.98 * np.exp(-3.0 / safe_xr), 1.02)
    return float(kappa) if kappa.ndim == 0 else kappa


@dataclass(frozen=True)
class FaultResult:
    """Short-circuit result at a single bus (currents in A)."""
    bus_id: int
    bus_name: str
    voltage_v: float
    standard: str
    voltage_factor: float
    three_phase_a: float
    line_to_ground_a: float
    line_to_line_a: float
    double_line_to_ground_a: float
    asymmetrical_a: float
    peak_a: float
    fault_mva: float
    tau_s: float
    asymmetry_multiplier: float
    x_over_r: float
    kappa: float | None = None
    interrupting_multiplier: float | None = None
    interrupting_a: float | None = None
    interrupting_time_s: float | None = None

    @property
    def three_phase_ka(self) -> float:
        return self.three_phase_a / 1000.0

    @property
    def line_to_ground_ka(self) -> float:
        return self.line_to_ground_a / 1000.0

    @property
    def line_to_line_ka(self) -> float:
        return self.line_to_line_a / 1000.0

    @property
    def double_line_to_ground_ka(self) -> float:
        return self.double_line_to_ground_a / 1000.0

    @property
    def asymmetrical_ka(self) -> float:
        return self.asymmetrical_a / 1000.0

    @property
    def peak_ka(self) -> float:
        return self.peak_a / 1000.0

    @property
    def interrupting_ka(self) -> float | None:
        return self.interrupting_a / 1000.0 if self.interrupting_a is not None else None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "bus_id": self.bus_id,
            "bus_name": self.bus_name,
            "voltage_v": self.voltage_v,
            "standard": self.standard,
            "voltage_factor": self.voltage_factor,
            "three_phase_a": round(self.three_phase_a, 1),
            "three_phase_ka": round(self.three_phase_ka, 3),
            "line_to_ground_a": round(self.line_to_ground_a, 1),
            "line_to_ground_ka": round(self.line_to_ground_ka, 3),
            "line_to_line_a": round(self.line_to_line_a, 1),
            "line_to_line_ka": round(self.line_to_line_ka, 3),
            "double_line_to_ground_a": round(self.double_line_to_ground_a, 1),
            "double_line_to_ground_ka": round(self.double_line_to_ground_ka, 3),
            "asymmetrical_a": round(self.asymmetrical_a, 1),
            "asymmetrical_ka": round(self.asymmetrical_ka, 3),
            "peak_a": round(self.peak_a, 1),
            "peak_ka": round(self.peak_ka, 3),
            "fault_mva": round(self.fault_mva, 3),
            "tau_s": round(self.tau_s, 6),
            "asymmetry_multiplier": round(self.asymmetry_multiplier, 4),
            "x_over_r": round(self.x_over_r, 3),
        }
        if self.kappa is not None:
            out["kappa"] = round(self.kappa, 4)
        if self.interrupting_a is not None:
            out["interrupting_a"] = round(self.interrupting_a, 1)
            out["interrupting_ka"] = round(self.interrupting_ka, 3)
            out["interrupting_multiplier"] = self.interrupting_multiplier
            out["interrupting_time_s"] = round(self.interrupting_time_s, 6)
        return out


@dataclass(frozen=True)
class ShortCircuitResult:
    """Short circuit results for all buses."""
    bus_results: dict[int, FaultResult]
    profile: StandardProfile

    @property
    def max_fault_ka(self) -> float:
        return max((r.three_phase_ka for r in self.bus_results.values()), default=0.0)

    @property
    def min_fault_ka(self) -> float:
        return min((r.three_phase_ka for r in self.bus_results.values()), default=0.0)


def fault_at_bus(
    record: TheveninRecord,
    profile: StandardProfile,
    study_case: str = "max",
    frequency_hz: float = 60.0,
    ledger: AssumptionLedger | None = None,
    fault_location: str = "remote",
) -> FaultResult:
    """Compute every fault quantity at one bus from its Thevenin equivalent.

    Profiles with interrupting duty also get I_int = I_sym × the C37
    multiplier for ``fault_location``, at the profile's interrupting time.
    """
    v = record.voltage_v
    z = record.z
    c = profile.voltage_factor(v, study_case)

    i_sym = guarded_divide(
        c * v, SQRT3 * z, 0.0, ledger,
        category="short_circuit", subject=record.bus_name, what="symmetrical fault current",
    )

    xr = record.x_over_r
    m = asymmetry_multiplier(xr)
    kappa = None
    if profile.peak_method == "kappa":
        kappa = iec_kappa(xr)
        peak = kappa * SQRT2 * i_sym
    else:
        peak = SQRT2 * m * i_sym

    ratios = profile.fault_ratios
    tau = record.x / (2.0 * math.pi * frequency_hz * max(record.r, R_EPSILON))

    multiplier = interrupting = interrupting_time = None
    if profile.interrupting_duty:
        multiplier = C37_INTERRUPTING_MULTIPLIERS[fault_location]
        interrupting = i_sym * multiplier
        interrupting_time = profile.interrupting_cycles / frequency_hz

    return FaultResult(
        bus_id=record.bus_id,
        bus_name=record.bus_name,
        voltage_v=v,
        standard=profile.name,
        voltage_factor=c,
        three_phase_a=i_sym,
        line_to_ground_a=i_sym * ratios.line_to_ground,
        line_to_line_a=i_sym * ratios.line_to_line,
        double_line_to_ground_a=i_sym * ratios.double_line_to_ground,
        asymmetrical_a=i_sym * m,
        peak_a=peak,
        fault_mva=SQRT3 * v * i_sym / 1e6,
        tau_s=tau,
        asymmetry_multiplier=m,
        x_over_r=xr,
        kappa=kappa,
        interrupting_multiplier=multiplier,
        interrupting_a=interrupting,
        interrupting_time_s=interrupting_time,
    )


def verify_fault_result(result: FaultResult, ledger: AssumptionLedger) -> None:
    """Warn when a computed fault level or X/R falls outside typical bands."""
    level = voltage_level(result.voltage_v)
    i_ka = result.three_phase_ka
    if i_ka > FAULT_LEVEL_MAX_KA[level]:
        ledger.warn(
            "short_circuit", result.bus_name,
            f"Fault current {i_ka:.2f} kA exceeds the {FAULT_LEVEL_MAX_KA[level]:g} kA "
            f"typical maximum for {level}; check source and impedance units",
        )
    elif i_ka < FAULT_LEVEL_MIN_KA:
        ledger.warn(
            "short_circuit", result.bus_name,
            f"Fault current {i_ka:.3f} kA is below {FAULT_LEVEL_MIN_KA:g} kA; "
            "check source and impedance units",
        )

    lo, hi = XR_TYPICAL_RANGE
    if not lo <= result.x_over_r <= hi:
        ledger.warn(
            "short_circuit", result.bus_name,
            f"X/R {result.x_over_r:.2f} is outside the typical range {lo:g}-{hi:g}",
        )


def verify_peak_ratio(result: FaultResult, ledger: AssumptionLedger) -> None:
    """Warn when peak / symmetrical current is implausible for the profile's method."""
    if result.three_phase_a <= 0:
        return
    ratio = result.peak_a / result.three_phase_a
    lo, hi = PEAK_RATIO_LIMITS
    if not lo <= ratio <= hi:
        ledger.warn(
            "short_circuit", result.bus_name,
            f"Peak to symmetrical ratio {ratio:.3f} is outside the valid range {lo:g}-{hi:g}",
        )
        return

    if result.kappa is not None:
        expected = SQRT2 * iec_kappa(result.x_over_r)
    else:
        expected = SQRT2 * asymmetry_multiplier(result.x_over_r)
    deviation = abs(ratio - expected) / expected
    if deviation > PEAK_RATIO_TOLERANCE:
        ledger.warn(
            "short_circuit", result.bus_name,
            f"Peak to symmetrical ratio {ratio:.3f} deviates {deviation:.0%} from the "
            f"{expected:.3f} expected at X/R {result.x_over_r:.2f}",
        )


def verify_impedance(record: TheveninRecord, ledger: AssumptionLedger) -> None:
    """Warn on negative components or an implausible Thevenin impedance magnitude."""
    if record.r < 0 or record.x < 0:
        ledger.warn(
            "thevenin", record.bus_name,
            f"Negative impedance component (R {record.r:.6g} ohm, X {record.x:.6g} ohm)",
        )
    lo, hi = IMPEDANCE_LIMITS_OHM
    if record.z > 0 and not lo <= record.z <= hi:
        ledger.warn(
            "thevenin", record.bus_name,
            f"Impedance {record.z:.6g} ohm is outside {lo:g}-{hi:g} ohm; check units",
        )


def calculate_short_circuit(
    thevenin: dict[int, TheveninRecord],
    settings: StudySettings,
    state: RunState,
) -> ShortCircuitResult:
    """Calculate short-circuit currents at all buses.

    Args:
        thevenin: Thevenin record per bus id
        settings: study settings (standard, study case, frequency)
        state: run state receiving warnings and log steps
    """
    profile = get_profile(settings.standard)
    bus_results: dict[int, FaultResult] = {}

    for bus_id, record in thevenin.items():
        result = fault_at_bus(
            record, profile,
            study_case=settings.study_case,
            frequency_hz=settings.frequency_hz,
            ledger=state.ledger,
            fault_location=settings.fault_location,
        )
        verify_impedance(record, state.ledger)
        verify_fault_result(result, state.ledger)
        verify_peak_ratio(result, state.ledger)
        bus_results[bus_id] = result

    sc = ShortCircuitResult(bus_results=bus_results, profile=profile)
    state.log.step(
        "short_circuit",
        f"{profile.name} short-circuit currents at {len(bus_results)} bus(es); "
        f"max {sc.max_fault_ka:.2f} kA",
        standard=profile.name,
        study_case=settings.study_case,
    )
    return sc


# ======================================================================
# IEC / IEEE comparison
# ======================================================================


@dataclass(frozen=True)
class StandardComparison:
    """IEC 60909 and IEEE results for the same bus side by side."""
    bus_id: int
    bus_name: str
    iec_three_phase_a: float
    ieee_three_phase_a: float
    iec_peak_a: float
    ieee_peak_a: float
    symmetrical_diff_pct: float
    peak_diff_pct: float
    acceptable: bool
    notes: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "bus_id": self.bus_id,
            "bus_name": self.bus_name,
            "iec_three_phase_ka": round(self.iec_three_phase_a / 1000.0, 3),
            "ieee_three_phase_ka": round(self.ieee_three_phase_a / 1000.0, 3),
            "iec_peak_ka": round(self.iec_peak_a / 1000.0, 3),
            "ieee_peak_ka": round(self.ieee_peak_a / 1000.0, 3),
            "symmetrical_diff_pct": round(self.symmetrical_diff_pct, 2),
            "peak_diff_pct": round(self.peak_diff_pct, 2),
            "acceptable": self.acceptable,
            "notes": list(self.notes),
        }


def _percent_diff(reference: float, other: float) -> float:
    return abs(reference - other) / reference * 100.0 if reference > 0 else 0.0


def compare_standards(
    record: TheveninRecord,
    study_case: str = "max",
    frequency_hz: float = 60.0,
) -> StandardComparison:
    """Compare IEC and IEEE currents at one bus, relative to IEC.

    Symmetrical currents differing by more than 10% make the comparison
    unacceptable; peak currents differing by more than 15% add a note.
    """
    iec = fault_at_bus(record, IEC_PROFILE, study_case=study_case, frequency_hz=frequency_hz)
    ieee = fault_at_bus(record, IEEE_PROFILE, study_case=study_case, frequency_hz=frequency_hz)

    sym_diff = _percent_diff(iec.three_phase_a, ieee.three_phase_a)
    peak_diff = _percent_diff(iec.peak_a, ieee.peak_a)
    notes = []
    if sym_diff > COMPARISON_SYMMETRICAL_TOLERANCE_PCT:
        notes.append(f"Symmetrical current differs by {sym_diff:.1f}% between standards")
    if peak_diff > COMPARISON_PEAK_TOLERANCE_PCT:
        notes.append(f"Peak current differs by {peak_diff:.1f}% between standards")

    return StandardComparison(
        bus_id=record.bus_id,
        bus_name=record.bus_name,
        iec_three_phase_a=iec.three_phase_a,
        ieee_three_phase_a=ieee.three_phase_a,
        iec_peak_a=iec.peak_a,
        ieee_peak_a=ieee.peak_a,
        symmetrical_diff_pct=sym_diff,
        peak_diff_pct=peak_diff,
        acceptable=sym_diff <= COMPARISON_SYMMETRICAL_TOLERANCE_PCT,
        notes=tuple(notes),
    )


def calculate_standards_comparison(
    thevenin: dict[int, TheveninRecord],
    settings: StudySettings,
    state: RunState,
) -> dict[int, StandardComparison]:
    """IEC vs IEEE comparison at every bus."""
    comparison = {
        bus_id: compare_standards(record, settings.study_case, settings.frequency_hz)
        for bus_id, record in thevenin.items()
    }
    flagged = sum(1 for c in comparison.values() if not c.acceptable)
    state.log.step(
        "standards_comparison",
        f"Compared IEC and IEEE at {len(comparison)} bus(es); {flagged} outside tolerance",
        flagged=flagged,
    )
    return comparison


# ======================================================================
# Transformer through-fault withstand
# ======================================================================


def verify_transformer_withstand(
    topology: Topology,
    short_circuit: ShortCircuitResult,
    ledger: AssumptionLedger,
) -> None:
    """Warn when a transformer's secondary fault current exceeds its withstand rating."""
    tx_edges = [e for e in topology.edges if e.kind == "transformer"]
    for model, edge in zip(topology.transformers, tx_edges):
        fault = short_circuit.bus_results.get(edge.to_bus)
        if fault is None:
            continue
        if fault.three_phase_a > model.withstand_a:
            ledger.warn(
                "transformer", model.name,
                f"Secondary fault current {fault.three_phase_ka:.2f} kA exceeds the "
                f"{model.withstand_a / 1000.0:.2f} kA short-circuit withstand "
                f"({TRANSFORMER_WITHSTAND_MULTIPLE:g} x rated current)",
            )
