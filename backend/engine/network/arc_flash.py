"""Arc-flash incident energy and boundary (IEEE 1584 empirical model).

Arcing current (Ibf, Ia in kA, V in kV, G gap in mm):
  V < 1 kV:  lg Ia = K + 0.662 lg Ibf + 0.0966 V + 0.000526 G
                     + 0.5588 V lg Ibf − 0.00304 G lg Ibf
             K = −0.097 enclosed, −0.153 open air
  V ≥ 1 kV:  lg Ia = 0.00402 + 0.983 lg Ibf

Normalized incident energy (0.2 s, 610 mm):
  lg En = K1 + K2 + 1.081 lg Ia + 0.0011 G
  K1 = −0.555 enclosed, −0.792 open air; K2 = −0.113 grounded, 0 ungrounded

Incident energy at working distance D (mm) and arc duration t (s):
  E [J/cm²] = 4.184 × Cf × En × (t / 0.2) × (610 / D)^x
  Cf = 1.5 at ≤ 1 kV, 1.0 above; x = distance exponent per configuration

Arc-flash boundary (E = 1.2 cal/cm²):
  D_B = D × (E_cal / 1.2)^(1/x)

The model is applied only between 208 V and 15 kV with a positive working
distance, arc duration and bolted current; any other bus gets an explicit
unevaluated record.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import numpy as np

from engine.network.components import ArcFlashSettings, ElectrodeConfig
from engine.network.errors import ArcFlashNotApplicable
from engine.network.ledger import AssumptionLedger, RunState
from engine.network.motor_contribution import BusMotorContribution
from engine.network.ppe import ARC_FLASH_THRESHOLD_CAL_CM2, PPESelection, select_ppe, shock_boundaries
from engine.network.short_circuit import ShortCircuitResult

J_PER_CAL = 4.184
MIN_VOLTAGE_V = 208.0
MAX_VOLTAGE_V = 15_000.0
LV_LIMIT_V = 1_000.0

# (upper voltage V, default gap mm)
DEFAULT_GAPS_MM: list[tuple[float, float]] = [
    (1_000.0, 32.0),
    (5_000.0, 104.0),
    (float("inf"), 152.0),
]

# Distance exponent x by (enclosed, low voltage)
DISTANCE_EXPONENTS: dict[tuple[bool, bool], float] = {
    (True, True): 1.473,
    (True, False): 0.973,
    (False, True): 2.0,
    (False, False): 2.0,
}


def to_cal_per_cm2(energy_j_cm2: float) -> float:
    return energy_j_cm2 / J_PER_CAL


def to_j_per_cm2(energy_cal_cm2: float) -> float:
    return energy_cal_cm2 * J_PER_CAL


def default_gap_mm(voltage_v: float) -> float:
    for upper, gap in DEFAULT_GAPS_MM:
        if voltage_v <= upper:
            return gap
    return DEFAULT_GAPS_MM[-1][1]


def distance_exponent(config: ElectrodeConfig, voltage_v: float) -> float:
    return DISTANCE_EXPONENTS[(config.enclosed, voltage_v <= LV_LIMIT_V)]


def arcing_current_ka(
    bolted_ka: float,
    voltage_v: float,
    gap_mm: float,
    config: ElectrodeConfig,
) -> float:
    """Arcing current in kA from the bolted fault current in kA."""
    lg_ibf = np.log10(bolted_ka)
    v_kv = voltage_v / 1000.0
    if voltage_v < LV_LIMIT_V:
        k = -0.097 if config.enclosed else -0.153
        lg_ia = (
            k
            + 0.662 * lg_ibf
            + 0.0966 * v_kv
            + 0.000526 * gap_mm
            + 0.5588 * v_kv * lg_ibf
            - 0.00304 * gap_mm * lg_ibf
        )
    else:
        lg_ia = 0.00402 + 0.983 * lg_ibf
    return float(np.power(10.0, lg_ia))


def incident_energy_j_cm2(
    arcing_ka: float,
    voltage_v: float,
    gap_mm: float,
    working_distance_mm: float,
    arc_duration_s: float,
    config: ElectrodeConfig,
    grounded: bool,
) -> float:
    """Incident energy in J/cm² at the working distance."""
    k1 = -0.555 if config.enclosed else -0.792
    k2 = -0.113 if grounded else 0.0
    lg_en = k1 + k2 + 1.081 * np.log10(arcing_ka) + 0.0011 * gap_mm
    en = np.power(10.0, lg_en)

    cf = 1.5 if voltage_v <= LV_LIMIT_V else 1.0
    x = distance_exponent(config, voltage_v)
    energy = J_PER_CAL * cf * en * (arc_duration_s / 0.2) * np.power(610.0 / working_distance_mm, x)
    return float(energy)


def arc_flash_boundary_mm(
    incident_energy_cal_cm2: float,
    working_distance_mm: float,
    exponent: float,
) -> float:
    """Distance at which incident energy falls to 1.2 cal/cm²."""
    ratio = incident_energy_cal_cm2 / ARC_FLASH_THRESHOLD_CAL_CM2
    return float(working_distance_mm * np.power(ratio, 1.0 / exponent))


@dataclass(frozen=True)
class ArcFlashResult:
    """Arc-flash result at one bus; numeric fields are None when not evaluated."""
    bus_id: int
    bus_name: str
    voltage_v: float
    evaluated: bool
    missing_fields: tuple[str, ...] = ()
    reasons: tuple[str, ...] = ()
    bolted_current_ka: float | None = None
    arcing_current_ka: float | None = None
    incident_energy_j_cm2: float | None = None
    incident_energy_cal_cm2: float | None = None
    arc_flash_boundary_mm: float | None = None
    ppe: PPESelection | None = None
    parameters: dict[str, Any] = field(default_factory=dict)

    @property
    def ppe_category(self) -> int | None:
        return self.ppe.category if self.ppe else None

    def to_dict(self) -> dict[str, Any]:
        if not self.evaluated:
            return {
                "bus_id": self.bus_id,
                "bus_name": self.bus_name,
                "voltage_v": self.voltage_v,
                "evaluated": False,
                "missing_fields": list(self.missing_fields),
                "reasons": list(self.reasons),
            }
        return {
            "bus_id": self.bus_id,
            "bus_name": self.bus_name,
            "voltage_v": self.voltage_v,
            "evaluated": True,
            "bolted_current_ka": round(self.bolted_current_ka, 3),
            "arcing_current_ka": round(self.arcing_current_ka, 3),
            "incident_energy_j_cm2": round(self.incident_energy_j_cm2, 3),
            "incident_energy_cal_cm2": round(self.incident_energy_cal_cm2, 3),
            "arc_flash_boundary_mm": round(self.arc_flash_boundary_mm, 1),
            "ppe_category": self.ppe_category,
            "exceeds_category_4": self.ppe.exceeds_category_4,
            "ppe": self.ppe.to_dict(),
            "shock_boundaries_mm": shock_boundaries(self.voltage_v),
            "parameters": dict(self.parameters),
        }


def check_applicability(
    bus_name: str,
    voltage_v: float,
    bolted_ka: float,
    settings: ArcFlashSettings | None,
) -> None:
    """Raise ArcFlashNotApplicable listing every failed precondition."""
    missing: list[str] = []
    if not MIN_VOLTAGE_V <= voltage_v <= MAX_VOLTAGE_V:
        missing.append("voltage_v")
    if settings is None or settings.working_distance_mm is None or settings.working_distance_mm <= 0:
        missing.append("working_distance_mm")
    if settings is None or settings.arc_duration_s is None or settings.arc_duration_s <= 0:
        missing.append("arc_duration_s")
    if not bolted_ka > 0:
        missing.append("bolted_fault_current")
    if missing:
        raise ArcFlashNotApplicable(bus_name, missing)


def _reasons(exc: ArcFlashNotApplicable, voltage_v: float) -> tuple[str, ...]:
    text = {
        "voltage_v": (
            f"bus voltage {voltage_v:g} V is outside the "
            f"{MIN_VOLTAGE_V:g}-{MAX_VOLTAGE_V:g} V model range"
        ),
        "working_distance_mm": "working distance not configured or not positive",
        "arc_duration_s": "arc duration not configured or not positive",
        "bolted_fault_current": "bolted fault current is not positive",
    }
    return tuple(text[f] for f in exc.missing_fields)


def evaluate_arc_flash(
    bus_id: int,
    bus_name: str,
    voltage_v: float,
    bolted_ka: float,
    settings: ArcFlashSettings | None,
    ledger: AssumptionLedger,
) -> ArcFlashResult:
    """Arc-flash result for one bus, or an unevaluated record when not applicable."""
    try:
        check_applicability(bus_name, voltage_v, bolted_ka, settings)
    except ArcFlashNotApplicable as exc:
        return ArcFlashResult(
            bus_id=bus_id,
            bus_name=bus_name,
            voltage_v=voltage_v,
            evaluated=False,
            missing_fields=tuple(exc.missing_fields),
            reasons=_reasons(exc, voltage_v),
        )

    config = ElectrodeConfig(settings.electrode_config)

    if settings.equipment_gap_mm is not None:
        gap = settings.equipment_gap_mm
    else:
        gap = default_gap_mm(voltage_v)
        ledger.assume(
            "arc_flash", bus_name,
            f"Equipment gap not given; using typical {gap:g} mm for {voltage_v:g} V",
        )

    if settings.grounded is not None:
        grounded = settings.grounded
    else:
        grounded = True
        ledger.assume("arc_flash", bus_name, "System grounding not given; assuming grounded")

    d = settings.working_distance_mm
    t = settings.arc_duration_s
    x = distance_exponent(config, voltage_v)

    i_arc = arcing_current_ka(bolted_ka, voltage_v, gap, config)
    e_j = incident_energy_j_cm2(i_arc, voltage_v, gap, d, t, config, grounded)
    e_cal = to_cal_per_cm2(e_j)
    boundary = arc_flash_boundary_mm(e_cal, d, x)
    ppe = select_ppe(e_cal)

    if ppe.exceeds_category_4:
        ledger.warn(
            "arc_flash", bus_name,
            f"Incident energy {e_cal:.1f} cal/cm² exceeds the 40 cal/cm² limit of PPE "
            "category 4; no PPE category is adequate",
        )

    return ArcFlashResult(
        bus_id=bus_id,
        bus_name=bus_name,
        voltage_v=voltage_v,
        evaluated=True,
        bolted_current_ka=bolted_ka,
        arcing_current_ka=i_arc,
        incident_energy_j_cm2=e_j,
        incident_energy_cal_cm2=e_cal,
        arc_flash_boundary_mm=boundary,
        ppe=ppe,
        parameters={
            "electrode_config": config.value,
            "equipment_gap_mm": gap,
            "grounded": grounded,
            "working_distance_mm": d,
            "arc_duration_s": t,
            "distance_exponent": x,
        },
    )


def calculate_arc_flash(
    short_circuit: ShortCircuitResult,
    motor_totals: dict[int, BusMotorContribution],
    settings: ArcFlashSettings | None,
    state: RunState,
) -> dict[int, ArcFlashResult]:
    """Arc-flash result per bus.

    The bolted current is the with-motors first-cycle current where motors
    contribute, otherwise the bolted three-phase current.
    """
    results: dict[int, ArcFlashResult] = {}
    for bus_id, fault in short_circuit.bus_results.items():
        motors = motor_totals.get(bus_id)
        bolted_a = motors.three_phase_with_motors_a if motors else fault.three_phase_a
        results[bus_id] = evaluate_arc_flash(
            bus_id, fault.bus_name, fault.voltage_v, bolted_a / 1000.0, settings, state.ledger,
        )

    evaluated = sum(1 for r in results.values() if r.evaluated)
    state.log.step(
        "arc_flash",
        f"Arc flash evaluated at {evaluated} of {len(results)} bus(es)",
        evaluated=evaluated,
        skipped=len(results) - evaluated,
    )
    return results
