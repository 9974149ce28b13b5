"""NFPA 70E PPE categories and shock approach boundaries.

Categories are selected by incident energy with upper-inclusive
breakpoints (cal/cm²):

  ≤ 1.2 → 0,  ≤ 4 → 1,  ≤ 8 → 2,  ≤ 25 → 3,  ≤ 40 → 4

Above 40 cal/cm² no PPE category is adequate. The selection still reports
category 4 but flags ``exceeds_category_4`` so callers never mistake it for
a rated result.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

ARC_FLASH_THRESHOLD_CAL_CM2 = 1.2
CATEGORY_4_LIMIT_CAL_CM2 = 40.0


@dataclass(frozen=True)
class PPECategory:
    category: int
    max_energy_cal_cm2: float
    min_arc_rating_cal_cm2: float
    description: str
    equipment: tuple[str, ...] = field(default_factory=tuple)


PPE_CATEGORIES: tuple[PPECategory, ...] = (
    PPECategory(
        0, 1.2, 0.0,
        "Non-melting or untreated natural fiber clothing",
        ("Safety glasses", "Hearing protection"),
    ),
    PPECategory(
        1, 4.0, 4.0,
        "Arc-rated shirt and pants or arc-rated coverall",
        ("Arc-rated shirt", "Arc-rated pants", "Safety glasses",
         "Hearing protection", "Leather gloves"),
    ),
    PPECategory(
        2, 8.0, 8.0,
        "Arc-rated shirt, pants and arc-rated hood",
        ("Arc-rated shirt", "Arc-rated pants", "Arc-rated hood", "Safety glasses",
         "Hearing protection", "Leather gloves", "Arc-rated gloves"),
    ),
    PPECategory(
        3, 25.0, 25.0,
        "Arc-rated shirt, pants and arc flash suit",
        ("Arc-rated shirt", "Arc-rated pants", "Arc flash suit", "Arc-rated hood",
         "Safety glasses", "Hearing protection", "Leather gloves", "Arc-rated gloves"),
    ),
    PPECategory(
        4, 40.0, 40.0,
        "Arc-rated shirt, pants and multi-layer arc flash suit",
        ("Arc-rated shirt", "Arc-rated pants", "Multi-layer arc flash suit",
         "Arc-rated hood", "Safety glasses", "Hearing protection",
         "Leather gloves", "Arc-rated gloves"),
    ),
)


@dataclass(frozen=True)
class PPESelection:
    category: int
    incident_energy_cal_cm2: float
    min_arc_rating_cal_cm2: float
    description: str
    equipment: tuple[str, ...]
    exceeds_category_4: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category,
            "incident_energy_cal_cm2": round(self.incident_energy_cal_cm2, 3),
            "min_arc_rating_cal_cm2": self.min_arc_rating_cal_cm2,
            "description": self.description,
            "equipment": list(self.equipment),
            "exceeds_category_4": self.exceeds_category_4,
        }


def select_ppe(incident_energy_cal_cm2: float) -> PPESelection:
    """Pick the PPE category for an incident energy (cal/cm²)."""
    for cat in PPE_CATEGORIES:
        if incident_energy_cal_cm2 <= cat.max_energy_cal_cm2:
            return PPESelection(
                category=cat.category,
                incident_energy_cal_cm2=incident_energy_cal_cm2,
                min_arc_rating_cal_cm2=cat.min_arc_rating_cal_cm2,
                description=cat.description,
                equipment=cat.equipment,
            )

    top = PPE_CATEGORIES[-1]
    return PPESelection(
        category=top.category,
        incident_energy_cal_cm2=incident_energy_cal_cm2,
        min_arc_rating_cal_cm2=top.min_arc_rating_cal_cm2,
        description=(
            f"Incident energy exceeds {CATEGORY_4_LIMIT_CAL_CM2:g} cal/cm²; no PPE category "
            "is adequate. De-energize or reduce the hazard before work."
        ),
        equipment=top.equipment,
        exceeds_category_4=True,
    )


# (max voltage V, limited approach mm, restricted approach mm); NFPA 70E Table 130.4(E)(a)
SHOCK_BOUNDARIES_MM: list[tuple[float, float, float]] = [
    (50.0, 0.0, 0.0),
    (750.0, 3050.0, 305.0),
    (15_000.0, 3050.0, 610.0),
    (36_000.0, 3050.0, 910.0),
    (72_500.0, 3660.0, 1070.0),
    (121_000.0, 4270.0, 1220.0),
    (float("inf"), 4570.0, 1520.0),
]


def shock_boundaries(voltage_v: float) -> dict[str, float]:
    """Limited and restricted approach boundaries (mm) for a line voltage."""
    for max_v, limited, restricted in SHOCK_BOUNDARIES_MM:
        if voltage_v <= max_v:
            return {"limited_mm": limited, "restricted_mm": restricted}
    _, limited, restricted = SHOCK_BOUNDARIES_MM[-1]
    return {"limited_mm": limited, "restricted_mm": restricted}
