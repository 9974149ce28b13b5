"""Shared test fixtures for FaultFlow engine and API tests."""

from __future__ import annotations

import pytest

from engine.network.components import StudySettings
from engine.network.ledger import RunState


# ======================================================================
# Settings fixtures
# ======================================================================

@pytest.fixture
def mv_settings() -> StudySettings:
    """13.2 kV IEEE study with no arc-flash inputs."""
    return StudySettings(nominal_voltage_v=13_200.0)


@pytest.fixture
def arc_flash_settings_dict() -> dict:
    """Settings dict for a 13.2 kV study evaluated at 455 mm for 0.1 s."""
    return {
        "nominal_voltage_v": 13_200.0,
        "frequency_hz": 60.0,
        "standard": "IEEE",
        "study_case": "max",
        "arc_flash": {
            "working_distance_mm": 455.0,
            "arc_duration_s": 0.1,
            "electrode_config": "VCB",
        },
    }


@pytest.fixture
def run_state(mv_settings) -> RunState:
    return RunState(settings=mv_settings)


# ======================================================================
# Component fixtures
# ======================================================================

@pytest.fixture
def utility_100mva() -> dict:
    """100 MVA utility infeed at 13.2 kV."""
    return {
        "kind": "utility",
        "name": "Utility",
        "short_circuit_mva": 100.0,
        "voltage_v": 13_200.0,
        "x_r_ratio": 10.0,
    }


@pytest.fixture
def service_transformer() -> dict:
    """1500 kVA 13.2 kV / 480 V unit substation transformer."""
    return {
        "kind": "transformer",
        "name": "TX-1",
        "primary_voltage_v": 13_200.0,
        "secondary_voltage_v": 480.0,
        "rating": 1500.0,
        "rating_unit": "kVA",
        "impedance_pct": 5.75,
        "x_r_ratio": 6.0,
        "to_bus": "MCC-1",
    }


@pytest.fixture
def feeder_cable() -> dict:
    """60 m LV feeder from the MCC to a distribution panel."""
    return {
        "kind": "cable",
        "name": "Feeder-1",
        "length_m": 60.0,
        "r_ohm_per_km": 0.0754,
        "x_ohm_per_km": 0.0820,
        "temperature_c": 75.0,
        "from_bus": "MCC-1",
        "to_bus": "Panel-A",
    }


@pytest.fixture
def pump_motor() -> dict:
    """100 hp induction pump motor at 480 V."""
    return {
        "kind": "motor",
        "name": "Pump-1",
        "rated_power_hp": 100.0,
        "voltage_v": 480.0,
        "efficiency": 0.93,
        "power_factor": 0.87,
        "motor_type": "induction",
        "from_bus": "MCC-1",
    }


@pytest.fixture
def industrial_components(
    utility_100mva,
    service_transformer,
    pump_motor,
    feeder_cable,
) -> list[dict]:
    """Utility -> transformer -> MCC with one motor -> cable to a panel."""
    return [utility_100mva, service_transformer, pump_motor, feeder_cable]
