"""Component records and study settings.

A study is an ordered list of components (utility, transformer, cable,
motor, generator) plus system-level settings. Components are immutable and
form a closed set keyed on ``kind``; ``parse_components`` rejects unknown
kinds, unknown fields, missing required fields and non-numeric ratings up
front, reporting every violation at once.

Units are carried in field names: voltages in volts (line-to-line), fault
current in kA, short-circuit power in MVA, lengths in metres, per-length
impedance in ohm/km.
"""

from __future__ import annotations

from dataclasses import MISSING, dataclass, fields, replace
from enum import Enum
from typing import Any, ClassVar, Union

from engine.network.errors import ValidationError


class Standard(str, Enum):
    IEEE = "IEEE"
    ANSI = "ANSI"
    IEC = "IEC"


class StudyCase(str, Enum):
    MAX = "max"
    MIN = "min"


class FaultLocation(str, Enum):
    """Where a fault sits relative to its sources (C37 interrupting multiplier)."""
    LOCAL = "local"
    REMOTE = "remote"
    NEAR_GENERATOR = "near_generator"


class MotorType(str, Enum):
    INDUCTION = "induction"
    SYNCHRONOUS = "synchronous"


class ElectrodeConfig(str, Enum):
    """IEEE 1584 electrode configurations."""
    VCB = "VCB"     # vertical conductors in a box
    VCBB = "VCBB"   # vertical conductors terminated in an insulating barrier, in a box
    HCB = "HCB"     # horizontal conductors in a box
    VOA = "VOA"     # vertical conductors in open air
    HOA = "HOA"     # horizontal conductors in open air

    @property
    def enclosed(self) -> bool:
        return self in (ElectrodeConfig.VCB, ElectrodeConfig.VCBB, ElectrodeConfig.HCB)


# Fields holding text; every other component field is numeric
_TEXT_FIELDS = frozenset(
    {"kind", "name", "from_bus", "to_bus", "rating_unit", "motor_type", "connection"}
)


@dataclass(frozen=True)
class UtilitySource:
    """Utility infeed, given by fault current or short-circuit power."""
    kind: ClassVar[str] = "utility"
    one_of: ClassVar[tuple[str, ...]] = ("fault_current_ka", "short_circuit_mva")

    name: str = ""
    fault_current_ka: float | None = None
    short_circuit_mva: float | None = None
    voltage_v: float | None = None
    x_r_ratio: float | None = None
    from_bus: str | None = None


@dataclass(frozen=True)
class Transformer:
    """Two-winding transformer; its impedance is native to the secondary side."""
    kind: ClassVar[str] = "transformer"
    one_of: ClassVar[tuple[str, ...]] = ()

    secondary_voltage_v: float
    rating: float
    impedance_pct: float
    name: str = ""
    primary_voltage_v: float | None = None
    rating_unit: str | None = None   # "kVA" or "MVA"
    connection: str | None = None    # "Dyn11", "Yyn0", "Dd0" or "Yd11"
    tap_position: float | None = None
    tap_step_pct: float | None = None
    x_r_ratio: float | None = None
    from_bus: str | None = None
    to_bus: str | None = None


@dataclass(frozen=True)
class Cable:
    kind: ClassVar[str] = "cable"
    one_of: ClassVar[tuple[str, ...]] = ()

    length_m: float
    r_ohm_per_km: float
    x_ohm_per_km: float
    name: str = ""
    voltage_v: float | None = None
    temperature_c: float | None = None
    from_bus: str | None = None
    to_bus: str | None = None


@dataclass(frozen=True)
class Motor:
    """Motor load; contributes fault current as a parallel source."""
    kind: ClassVar[str] = "motor"
    one_of: ClassVar[tuple[str, ...]] = ("rated_power_hp", "rated_power_kw")

    name: str = ""
    rated_power_hp: float | None = None
    rated_power_kw: float | None = None
    voltage_v: float | None = None
    efficiency: float | None = None
    power_factor: float | None = None
    motor_type: str | None = None
    locked_rotor_multiplier: float | None = None
    x_r_ratio: float | None = None
    interrupting_decay: float | None = None
    sustained_multiplier: float | None = None
    from_bus: str | None = None


@dataclass(frozen=True)
class Generator:
    """Local synchronous generator, modelled by its subtransient reactance."""
    kind: ClassVar[str] = "generator"
    one_of: ClassVar[tuple[str, ...]] = ()

    rating_kva: float
    name: str = ""
    subtransient_reactance_pct: float | None = None
    voltage_v: float | None = None
    x_r_ratio: float | None = None
    from_bus: str | None = None


Component = Union[UtilitySource, Transformer, Cable, Motor, Generator]

COMPONENT_TYPES: dict[str, type] = {
    cls.kind: cls for cls in (UtilitySource, Transformer, Cable, Motor, Generator)
}


def _is_required(f) -> bool:
    return f.default is MISSING and f.default_factory is MISSING


def _parse_one(position: int, raw: Any, violations: list[str]) -> Component | None:
    label = f"component {position}"
    if not isinstance(raw, dict):
        violations.append(f"{label}: expected a mapping, got {type(raw).__name__}")
        return None

    kind = raw.get("kind")
    cls = COMPONENT_TYPES.get(kind) if isinstance(kind, str) else None
    if cls is None:
        violations.append(
            f"{label}: unknown kind {kind!r} (expected one of {sorted(COMPONENT_TYPES)})"
        )
        return None

    known = {f.name: f for f in fields(cls)}
    errors_before = len(violations)
    values: dict[str, Any] = {}

    for key, value in raw.items():
        if key == "kind":
            continue
        if key not in known:
            violations.append(f"{label} ({kind}): unknown field '{key}'")
            continue
        if value is None:
            continue
        if key in _TEXT_FIELDS:
            if not isinstance(value, str):
                violations.append(f"{label} ({kind}): '{key}' must be a string")
                continue
            values[key] = value
        else:
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                violations.append(f"{label} ({kind}): '{key}' must be a number")
                continue
            values[key] = float(value)

    for name, f in known.items():
        if _is_required(f) and name not in values and raw.get(name) is None:
            violations.append(f"{label} ({kind}): missing required field '{name}'")

    if cls.one_of and not any(k in values for k in cls.one_of):
        violations.append(
            f"{label} ({kind}): one of {', '.join(cls.one_of)} is required"
        )

    if len(violations) > errors_before:
        return None

    if not values.get("name"):
        values["name"] = f"{kind.capitalize()} {position}"
    return cls(**values)


def parse_components(raw_components: list[Any]) -> list[Component]:
    """Parse component dicts into typed records.

    Already-typed records pass through unchanged. Raises ValidationError
    listing every structural problem across the whole list.
    """
    violations: list[str] = []
    parsed: list[Component] = []

    if not raw_components:
        raise ValidationError(["component list is empty"])

    for i, raw in enumerate(raw_components, start=1):
        if isinstance(raw, tuple(COMPONENT_TYPES.values())):
            if not raw.name:
                raw = replace(raw, name=f"{raw.kind.capitalize()} {i}")
            parsed.append(raw)
            continue
        comp = _parse_one(i, raw, violations)
        if comp is not None:
            parsed.append(comp)

    if violations:
        raise ValidationError(violations)
    return parsed


def component_to_dict(comp: Component) -> dict[str, Any]:
    """Echo a component as a dict, omitting unset optional fields."""
    out: dict[str, Any] = {"kind": comp.kind}
    for f in fields(comp):
        value = getattr(comp, f.name)
        if value is not None:
            out[f.name] = value
    return out


# ======================================================================
# Study settings
# ======================================================================


@dataclass(frozen=True)
class ArcFlashSettings:
    """Arc-flash inputs shared by every bus in the study."""
    working_distance_mm: float | None = None
    arc_duration_s: float | None = None
    electrode_config: str = ElectrodeConfig.VCB.value
    equipment_gap_mm: float | None = None
    grounded: bool | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "working_distance_mm": self.working_distance_mm,
            "arc_duration_s": self.arc_duration_s,
            "electrode_config": self.electrode_config,
            "equipment_gap_mm": self.equipment_gap_mm,
            "grounded": self.grounded,
        }


@dataclass(frozen=True)
class StudySettings:
    """System-level settings for a fault study.

    Attributes:
        nominal_voltage_v: source bus voltage (line-to-line, volts)
        frequency_hz: system frequency, used for the DC time constant
        standard: "IEEE", "ANSI" or "IEC"
        study_case: "max" or "min" (selects IEC cmax / cmin)
        fault_location: "local", "remote" or "near_generator"; selects the
            C37 interrupting multiplier for IEEE and ANSI studies
        arc_flash: optional arc-flash inputs; without them no bus is evaluated
    """
    nominal_voltage_v: float
    frequency_hz: float = 60.0
    standard: str = Standard.IEEE.value
    study_case: str = StudyCase.MAX.value
    fault_location: str = FaultLocation.REMOTE.value
    arc_flash: ArcFlashSettings | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StudySettings:
        if not isinstance(data, dict):
            raise ValidationError([f"settings: expected a mapping, got {type(data).__name__}"])
        if data.get("nominal_voltage_v") is None:
            raise ValidationError(["settings: missing required field 'nominal_voltage_v'"])
        af = data.get("arc_flash")
        if isinstance(af, dict):
            unknown = sorted(set(af) - {f.name for f in fields(ArcFlashSettings)})
            if unknown:
                raise ValidationError(
                    [f"settings.arc_flash: unknown field '{k}'" for k in unknown]
                )
            af = ArcFlashSettings(**af)
        elif af is not None and not isinstance(af, ArcFlashSettings):
            raise ValidationError(
                [f"settings: 'arc_flash' must be a mapping (got {type(af).__name__})"]
            )
        return cls(
            nominal_voltage_v=data["nominal_voltage_v"],
            frequency_hz=data.get("frequency_hz", 60.0),
            standard=str(data.get("standard", Standard.IEEE.value)).upper(),
            study_case=str(data.get("study_case", StudyCase.MAX.value)).lower(),
            fault_location=str(data.get("fault_location", FaultLocation.REMOTE.value)).lower(),
            arc_flash=af,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "nominal_voltage_v": self.nominal_voltage_v,
            "frequency_hz": self.frequency_hz,
            "standard": self.standard,
            "study_case": self.study_case,
            "fault_location": self.fault_location,
            "arc_flash": self.arc_flash.to_dict() if self.arc_flash else None,
        }
