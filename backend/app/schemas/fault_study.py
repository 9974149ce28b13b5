from typing import Any

from pydantic import BaseModel, Field


class ArcFlashParams(BaseModel):
    working_distance_mm: float | None = Field(default=None, gt=0)
    arc_duration_s: float | None = Field(default=None, gt=0)
    electrode_config: str = Field(default="VCB", pattern="^(VCB|VCBB|HCB|VOA|HOA)$")
    equipment_gap_mm: float | None = Field(default=None, gt=0)
    grounded: bool | None = None


class StudySettingsIn(BaseModel):
    nominal_voltage_v: float = Field(gt=0)
    frequency_hz: float | None = Field(default=None, gt=0)
    standard: str | None = Field(default=None, pattern="^(IEEE|ANSI|IEC)$")
    study_case: str = Field(default="max", pattern="^(max|min)$")
    fault_location: str = Field(default="remote", pattern="^(local|remote|near_generator)$")
    arc_flash: ArcFlashParams | None = None


class FaultStudyRequest(BaseModel):
    # Component shape is validated by the engine so every violation is reported together
    components: list[dict[str, Any]]
    settings: StudySettingsIn


class StudySummary(BaseModel):
    bus_count: int
    standard: str
    max_fault_ka: float
    min_fault_ka: float
    max_incident_energy_cal_cm2: float | None = None
    evaluated_arc_flash_count: int
    warning_count: int


class FaultStudyResponse(BaseModel):
    id: str
    summary: StudySummary
    result: dict[str, Any]


class FaultStudyListItem(BaseModel):
    id: str
    timestamp: str
    summary: StudySummary
