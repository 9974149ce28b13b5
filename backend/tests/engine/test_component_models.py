"""Tests for native-voltage impedance models: utility, transformer, cable, motor, generator."""

from __future__ import annotations

import math
from dataclasses import replace

import pytest

from engine.network.component_models import (
    build_motor_model,
    cable_impedance,
    generator_impedance,
    temperature_correction,
    utility_impedance,
)
from engine.network.components import Cable, Generator, Motor, Transformer, UtilitySource
from engine.network.impedance import split_by_xr
from engine.network.ledger import AssumptionLedger
from engine.network.standards import default_transformer_xr
from engine.network.transformer_model import (
    build_transformer_model,
    resolve_rating_mva,
    transformer_impedance,
)
from engine.network.validation import verify_transformer_model


@pytest.fixture
def ledger() -> AssumptionLedger:
    return AssumptionLedger()


# ======================================================================
# Utility
# ======================================================================


class TestUtility:
    def test_from_short_circuit_mva(self, ledger):
        """100 MVA at 13.2 kV -> Z = 13200² / 100e6 = 1.7424 ohm."""
        src = UtilitySource(name="U", short_circuit_mva=100.0, voltage_v=13_200.0, x_r_ratio=10.0)
        z = utility_impedance(src, 13_200.0, ledger)
        assert z.z == pytest.approx(1.7424, rel=1e-3)
        assert z.x_over_r == pytest.approx(10.0)
        assert z.voltage_v == 13_200.0

    def test_from_fault_current_converts_ka(self, ledger):
        """25 kA at 480 V -> Z = 480 / (√3 × 25000)."""
        src = UtilitySource(name="U", fault_current_ka=25.0, voltage_v=480.0, x_r_ratio=8.0)
        z = utility_impedance(src, 480.0, ledger)
        assert z.z == pytest.approx(480.0 / (math.sqrt(3) * 25_000.0))

    def test_defaults_recorded(self, ledger):
        src = UtilitySource(name="U", fault_current_ka=25.0)
        z = utility_impedance(src, 4_160.0, ledger)
        assert z.voltage_v == 4_160.0
        messages = [e.message for e in ledger.assumptions]
        assert any("bus voltage 4160 V" in m for m in messages)
        assert any("X/R not given" in m for m in messages)

    def test_inconsistent_mva_and_current_warns(self, ledger):
        src = UtilitySource(
            name="U", short_circuit_mva=100.0, fault_current_ka=10.0,
            voltage_v=13_200.0, x_r_ratio=10.0,
        )
        z = utility_impedance(src, 13_200.0, ledger)
        assert z.z == pytest.approx(1.7424, rel=1e-3)
        assert any("disagree" in w.message for w in ledger.warnings)


# ======================================================================
# Transformer
# ======================================================================


class TestTransformer:
    def test_explicit_kva(self, ledger):
        tx = Transformer(secondary_voltage_v=480.0, rating=1500.0, rating_unit="kVA",
                         impedance_pct=5.75, x_r_ratio=6.0, name="T")
        model = build_transformer_model(tx, ledger)
        z_base = 480.0 ** 2 / 1.5e6
        assert model.rating_mva == pytest.approx(1.5)
        assert model.impedance.z == pytest.approx(z_base * 0.0575)
        assert ledger.assumptions == []

    def test_infinite_bus_fault(self, ledger):
        tx = Transformer(secondary_voltage_v=480.0, rating=1.5, rating_unit="MVA",
                         impedance_pct=5.75, x_r_ratio=6.0, name="T")
        model = build_transformer_model(tx, ledger)
        assert model.rated_secondary_current_a == pytest.approx(1804.2, rel=1e-3)
        assert model.infinite_bus_fault_ka == pytest.approx(31.38, rel=1e-3)

    def test_lv_rating_inferred_as_kva(self, ledger):
        tx = Transformer(secondary_voltage_v=480.0, rating=1000.0, impedance_pct=5.75, name="T")
        assert resolve_rating_mva(tx, ledger) == pytest.approx(1.0)
        assert "taken as kVA" in ledger.assumptions[0].message

    def test_mv_rating_inferred_as_mva(self, ledger):
        tx = Transformer(secondary_voltage_v=13_800.0, rating=20.0, impedance_pct=8.0, name="T")
        assert resolve_rating_mva(tx, ledger) == pytest.approx(20.0)
        assert "taken as MVA" in ledger.assumptions[0].message

    def test_default_xr_recorded(self, ledger):
        tx = Transformer(secondary_voltage_v=480.0, rating=750.0, rating_unit="kVA",
                         impedance_pct=5.0, name="T")
        model = build_transformer_model(tx, ledger)
        assert model.x_r_ratio == 20.0
        assert any("X/R not given" in e.message for e in ledger.assumptions)

    @pytest.mark.parametrize("rating_mva, expected", [
        (0.5, 20.0),
        (1.0, 14.3),
        (2.5, 14.3),
        (3.75, 10.0),
        (7.5, 6.67),
        (50.0, 5.0),
    ])
    def test_default_xr_bands(self, rating_mva, expected):
        assert default_transformer_xr(rating_mva) == expected

    def test_impedance_shortcut(self, ledger):
        tx = Transformer(secondary_voltage_v=480.0, rating=1500.0, rating_unit="kVA",
                         impedance_pct=5.75, x_r_ratio=6.0, name="T")
        assert transformer_impedance(tx, ledger) == build_transformer_model(tx, AssumptionLedger()).impedance



class TestTransformerRatings:
    """Withstand, inrush, tap and connection data reported with the model."""

    @pytest.fixture
    def model(self, ledger):
        tx = Transformer(secondary_voltage_v=480.0, rating=1.5, rating_unit="MVA",
                         impedance_pct=5.75, x_r_ratio=6.0, name="T")
        return build_transformer_model(tx, ledger)

    def test_withstand(self, model):
        assert model.withstand_a == pytest.approx(25.0 * model.rated_secondary_current_a)
        assert model.withstand_a == pytest.approx(45_105, rel=1e-3)
        assert model.withstand_peak_a == pytest.approx(2.5 * model.withstand_a)

    def test_inrush(self, model):
        assert model.inrush_a == pytest.approx(18_042, rel=1e-3)
        assert model.inrush_peak_a == pytest.approx(math.sqrt(2) * model.inrush_a)

    def test_ratings_in_dict(self, model):
        data = model.to_dict()
        assert data["withstand"]["duration_s"] == 2.0
        assert data["inrush"]["duration_s"] == 0.1
        assert data["connection"] is None
        assert data["tap"] is None

    def test_tap_raises_secondary_voltage(self, ledger):
        tx = Transformer(secondary_voltage_v=480.0, rating=1500.0, rating_unit="kVA",
                         impedance_pct=5.75, x_r_ratio=6.0, tap_position=2.0, tap_step_pct=2.5,
                         name="T")
        model = build_transformer_model(tx, ledger)
        assert model.tap.voltage_change_v == pytest.approx(24.0)
        assert model.tap.secondary_voltage_v == pytest.approx(504.0)
        assert model.tap.percent_change == pytest.approx(5.0)
        assert model.secondary_voltage_v == 480.0
        assert "Tap +2 gives 504 V" in ledger.assumptions[0].message

    def test_tap_step_defaulted(self, ledger):
        tx = Transformer(secondary_voltage_v=480.0, rating=1500.0, rating_unit="kVA",
                         impedance_pct=5.75, x_r_ratio=6.0, tap_position=-1.0, name="T")
        model = build_transformer_model(tx, ledger)
        assert model.tap.step_pct == 2.5
        assert model.tap.secondary_voltage_v == pytest.approx(468.0)
        assert "Tap step not given" in ledger.assumptions[0].message

    def test_nominal_tap_not_recorded(self, ledger):
        tx = Transformer(secondary_voltage_v=480.0, rating=1500.0, rating_unit="kVA",
                         impedance_pct=5.75, x_r_ratio=6.0, tap_position=0.0, tap_step_pct=1.25,
                         name="T")
        model = build_transformer_model(tx, ledger)
        assert model.tap.secondary_voltage_v == 480.0
        assert ledger.assumptions == []

    @pytest.mark.parametrize("connection, shift, passes", [
        ("Dyn11", 30.0, False),
        ("Yyn0", 0.0, True),
        ("Dd0", 0.0, False),
        ("Yd11", 30.0, False),
    ])
    def test_connection(self, ledger, connection, shift, passes):
        tx = Transformer(secondary_voltage_v=480.0, rating=1500.0, rating_unit="kVA",
                         impedance_pct=5.75, x_r_ratio=6.0, connection=connection, name="T")
        model = build_transformer_model(tx, ledger)
        assert model.connection.phase_shift_deg == shift
        assert model.connection.passes_zero_sequence is passes
        assert model.to_dict()["connection"]["name"] == connection


class TestTransformerChecks:
    def test_typical_unit_quiet(self, ledger):
        tx = Transformer(secondary_voltage_v=480.0, rating=1500.0, rating_unit="kVA",
                         impedance_pct=5.75, x_r_ratio=6.0, primary_voltage_v=13_200.0, name="T")
        verify_transformer_model(tx, build_transformer_model(tx, ledger), ledger)
        assert ledger.warnings == []

    def test_small_unit_high_impedance(self, ledger):
        tx = Transformer(secondary_voltage_v=480.0, rating=500.0, rating_unit="kVA",
                         impedance_pct=9.0, x_r_ratio=5.0, name="T")
        verify_transformer_model(tx, build_transformer_model(tx, ledger), ledger)
        assert "high for a 500 kVA unit" in ledger.warnings[0].message

    def test_large_unit_low_impedance(self, ledger):
        tx = Transformer(secondary_voltage_v=13_800.0, rating=20.0, rating_unit="MVA",
                         impedance_pct=4.0, x_r_ratio=20.0, name="T")
        verify_transformer_model(tx, build_transformer_model(tx, ledger), ledger)
        assert "low for a 20 MVA unit" in ledger.warnings[0].message

    def test_voltage_ratio_out_of_range(self, ledger):
        tx = Transformer(secondary_voltage_v=240.0, rating=1000.0, rating_unit="kVA",
                         impedance_pct=5.75, x_r_ratio=6.0, primary_voltage_v=500_000.0, name="T")
        verify_transformer_model(tx, build_transformer_model(tx, ledger), ledger)
        assert any("Voltage ratio" in w.message for w in ledger.warnings)

    def test_impedance_inconsistent_with_rating(self, ledger):
        tx = Transformer(secondary_voltage_v=480.0, rating=1500.0, rating_unit="kVA",
                         impedance_pct=5.75, x_r_ratio=6.0, name="T")
        model = build_transformer_model(tx, ledger)
        doubled = replace(model, impedance=split_by_xr(2.0 * model.impedance.z, 6.0, 480.0))
        verify_transformer_model(tx, doubled, ledger)
        assert "differs from the expected" in ledger.warnings[0].message


# ======================================================================
# Cable
# ======================================================================


class TestCable:
    def test_temperature_correction_reference(self):
        assert temperature_correction(20.0) == pytest.approx(1.0)
        assert temperature_correction(75.0) == pytest.approx(309.5 / 254.5)

    def test_length_scaling(self, ledger):
        cable = Cable(length_m=250.0, r_ohm_per_km=0.2, x_ohm_per_km=0.08,
                      temperature_c=20.0, voltage_v=480.0, name="C")
        z = cable_impedance(cable, 480.0, ledger)
        assert z.r == pytest.approx(0.05)
        assert z.x == pytest.approx(0.02)
        assert ledger.assumptions == []

    def test_default_temperature_recorded(self, ledger):
        cable = Cable(length_m=100.0, r_ohm_per_km=0.1, x_ohm_per_km=0.08, name="C")
        z = cable_impedance(cable, 480.0, ledger)
        assert z.r == pytest.approx(0.01 * 309.5 / 254.5)
        assert len(ledger.assumptions) == 2


# ======================================================================
# Motor
# ======================================================================


class TestMotor:
    def test_fla_lra(self, ledger):
        motor = Motor(name="M", rated_power_kw=100.0, voltage_v=480.0, efficiency=0.9,
                      power_factor=0.85, motor_type="induction", locked_rotor_multiplier=6.0)
        model = build_motor_model(motor, 480.0, ledger)
        fla = 100_000.0 / (math.sqrt(3) * 480.0 * 0.9 * 0.85)
        assert model.fla == pytest.approx(fla)
        assert model.lra == pytest.approx(6.0 * fla)
        assert model.impedance.z == pytest.approx(480.0 / (math.sqrt(3) * 6.0 * fla))

    def test_horsepower_converted(self, ledger):
        motor = Motor(name="M", rated_power_hp=100.0, voltage_v=480.0)
        assert build_motor_model(motor, 480.0, ledger).rated_power_w == pytest.approx(74_600.0)

    def test_every_default_recorded(self, ledger):
        motor = Motor(name="M", rated_power_hp=50.0)
        model = build_motor_model(motor, 480.0, ledger)
        assert model.motor_type == "induction"
        assert model.interrupting_decay == 0.75
        # voltage, type, efficiency, pf, LR multiplier, X/R, decay, sustained
        assert len(ledger.assumptions) == 8

    def test_synchronous_defaults(self, ledger):
        motor = Motor(name="M", rated_power_kw=500.0, voltage_v=4_160.0, motor_type="Synchronous")
        model = build_motor_model(motor, 4_160.0, ledger)
        assert model.motor_type == "synchronous"
        assert model.interrupting_decay == 0.85
        assert model.sustained_multiplier == 5.0


# ======================================================================
# Generator
# ======================================================================


class TestGenerator:
    def test_subtransient_impedance(self, ledger):
        gen = Generator(name="G", rating_kva=2_000.0, subtransient_reactance_pct=12.0,
                        voltage_v=480.0, x_r_ratio=25.0)
        z = generator_impedance(gen, 480.0, ledger)
        assert z.z == pytest.approx(0.12 * 480.0 ** 2 / 2_000_000.0)
        assert ledger.assumptions == []

    def test_default_reactance_recorded(self, ledger):
        gen = Generator(name="G", rating_kva=1_000.0, voltage_v=480.0)
        z = generator_impedance(gen, 480.0, ledger)
        assert z.z == pytest.approx(0.15 * 480.0 ** 2 / 1_000_000.0)
        assert z.x_over_r == pytest.approx(30.0)
        assert len(ledger.assumptions) == 2
