"""Tests for the BeamNG and Assetto Corsa translators."""

from dataclasses import replace
import json

import pytest

from enginecrane.config import TuningConfig
from enginecrane.errors import WarningKind
from enginecrane.model.drivetrain import Clutch, TractionLayout
from enginecrane.translators import (
    AssettoCorsaTranslator,
    BeamNGTranslator,
    available_targets,
    get_translator,
)
from enginecrane.translators import derivations
from enginecrane.translators.ini import format_number, inline_lut, parse_ini, write_lut
from enginecrane.translators.jbeam import write_jbeam


def ac_sections(bundle, name):
    return parse_ini(bundle.file(name).text)


def slow_shifting(unit):
    """Heavy flywheel and a weak clutch: the derived shift time is ~5 s."""
    engine = replace(unit.engine, inertia=1.0)
    drivetrain = replace(unit.drivetrain, clutch=Clutch(100.0))
    return unit.with_engine(engine).with_drivetrain(drivetrain)


class TestRegistry:
    """Test target lookup."""

    def test_available_targets(self):
        """Test both simulators are registered."""
        assert available_targets() == ["assetto_corsa", "beamng"]
        assert isinstance(get_translator("beamng"), BeamNGTranslator)

    def test_unknown_target(self):
        """Test an unknown target names the available ones."""
        with pytest.raises(KeyError, match="assetto_corsa"):
            get_translator("rfactor")


class TestDerivations:
    """Test the documented default formulas."""

    def test_upshift_time(self, minimal_unit):
        """Test shift time grows with the rev drop the clutch has to absorb."""
        t_up = derivations.upshift_time(minimal_unit.engine, minimal_unit.drivetrain)
        assert t_up == pytest.approx(0.05 + 0.15 * 628.3185 * 0.4 / 225.0, rel=1e-5)
        assert derivations.downshift_time(t_up) == pytest.approx(1.4 * t_up)

    def test_zero_clutch_never_finishes(self, minimal_unit):
        """Test a clutch without capacity gives an unbounded time."""
        drivetrain = replace(minimal_unit.drivetrain, clutch=Clutch(0.0))
        assert derivations.upshift_time(minimal_unit.engine, drivetrain) == float("inf")

    def test_auto_shift_points(self, minimal_unit):
        """Test shift points sit below redline."""
        up, down = derivations.auto_shift_points(minimal_unit.engine)
        assert up == pytest.approx(5700.0)
        assert down == pytest.approx(5700.0)

    def test_boost_free_torque(self, minimal_unit, turbo_unit):
        """Test boost is divided out only for turbocharged engines."""
        curve = minimal_unit.engine.torque_curve
        plain = derivations.boost_free_torque(minimal_unit.engine, curve.speeds, curve.torques)
        assert plain.tolist() == [200.0, 350.0]
        turbo = derivations.boost_free_torque(turbo_unit.engine, curve.speeds, curve.torques)
        assert turbo.tolist() == pytest.approx([200.0 / 1.2, 350.0 / 1.7])

    def test_display_max_boost(self):
        """Test the gauge maximum rounds up to 0.1 bar."""
        assert derivations.display_max_boost(0.8) == 0.8
        assert derivations.display_max_boost(0.81) == 0.9


class TestWriters:
    """Test text formatting helpers."""

    def test_format_number(self):
        """Test fixed decimals without negative zero."""
        assert format_number(3.9, 2) == "3.90"
        assert format_number(-0.001, 2) == "0.00"
        assert format_number(2.6, 0) == "3"

    def test_luts(self):
        """Test lookup table layouts."""
        assert write_lut([(1000.0, 120.04), (1500.5, 130.0)]) == "1000|120.0\n1500.5|130.0\n"
        assert inline_lut([(2000.0, 0.2), (4000.0, 0.8)]) == "(2000=0.20|4000=0.80)"

    def test_jbeam_tables_one_row_per_line(self):
        """Test numeric tables are written row by row."""
        text = write_jbeam({"part": {"mainEngine": {"torque": [["rpm", "torque"], [0, 10], [1000, 20]]}}})
        assert '\t\t\t\t["rpm", "torque"],\n' in text
        assert json.loads(text)["part"]["mainEngine"]["torque"][2] == [1000, 20]


class TestAssettoCorsaTranslator:
    """Test the Assetto Corsa output files."""

    def test_minimal_rwd(self, minimal_unit):
        """Test the two-point RWD engine."""
        bundle = AssettoCorsaTranslator().translate(minimal_unit)

        assert bundle.target == "assetto_corsa"
        assert bundle.names() == ["engine.ini", "power.lut", "drivetrain.ini", "ui_car.json"]
        assert bundle.file("power.lut").text == "2000|170.0\n6000|297.5\n"

        drivetrain = ac_sections(bundle, "drivetrain.ini")
        assert drivetrain["HEADER"]["VERSION"] == "3"
        assert drivetrain["TRACTION"]["TYPE"] == "RWD"
        assert drivetrain["GEARS"]["COUNT"] == "5"
        assert drivetrain["GEARS"]["GEAR_R"] == "-3.200"
        assert drivetrain["GEARS"]["GEAR_1"] == "3.500"
        assert drivetrain["GEARS"]["FINAL"] == "3.90"
        assert drivetrain["DIFFERENTIAL"]["POWER"] == "0.10"
        assert drivetrain["DIFFERENTIAL"]["COAST"] == "0.60"
        assert drivetrain["CLUTCH"]["MAX_TORQUE"] == "450"
        assert drivetrain["GEARBOX"]["CHANGE_UP_TIME"] == "218"

        engine = ac_sections(bundle, "engine.ini")
        assert engine["ENGINE_DATA"]["LIMITER"] == "6000"
        assert engine["ENGINE_DATA"]["MINIMUM"] == "2000"
        assert "TURBO_0" not in engine

    def test_missing_friction_is_defaulted(self, minimal_unit):
        """Test coast torque without friction data is a DEFAULTED warning."""
        bundle = AssettoCorsaTranslator().translate(minimal_unit)
        warnings = bundle.warnings_for("COAST_REF", "TORQUE")
        assert [w.kind for w in warnings] == [WarningKind.DEFAULTED]
        assert bundle.warnings_for("GEARBOX") == []

    def test_output_is_deterministic(self, minimal_unit):
        """Test equal input gives byte-identical files."""
        first = AssettoCorsaTranslator().translate(minimal_unit)
        second = AssettoCorsaTranslator().translate(minimal_unit)
        assert first.files == second.files

    def test_shift_time_clamped(self, minimal_unit):
        """Test an implausibly slow shift is clamped with a warning."""
        bundle = AssettoCorsaTranslator().translate(slow_shifting(minimal_unit))
        gearbox = ac_sections(bundle, "drivetrain.ini")["GEARBOX"]
        assert gearbox["CHANGE_UP_TIME"] == "500"
        warnings = bundle.warnings_for("GEARBOX", "CHANGE_UP_TIME")
        assert len(warnings) == 1
        assert warnings[0].kind is WarningKind.CLAMPED
        assert "clamped to 500" in warnings[0].message

    def test_curve_resampling(self, minimal_unit):
        """Test the lookup table follows the requested resolution."""
        bundle = AssettoCorsaTranslator().translate(minimal_unit, TuningConfig(torque_curve_points=50))
        lines = bundle.file("power.lut").text.splitlines()
        assert len(lines) == 50
        assert lines[0] == "2000|170.0"
        assert lines[-1] == "6000|297.5"

    def test_curve_points_clamped(self, minimal_unit):
        """Test out-of-range resolutions are clamped."""
        bundle = AssettoCorsaTranslator().translate(minimal_unit, TuningConfig(torque_curve_points=500))
        assert len(bundle.file("power.lut").text.splitlines()) == 200
        assert len(bundle.warnings_for("tuning", "torque_curve_points")) == 1

    def test_turbo_files(self, turbo_unit):
        """Test turbo engines get stage sections and a boost controller."""
        bundle = AssettoCorsaTranslator().translate(turbo_unit)
        assert bundle.names() == ["engine.ini", "power.lut", "ctrl_turbo0.ini", "drivetrain.ini", "ui_car.json"]
        # boost is removed from the table, the game applies it again
        assert bundle.file("power.lut").text == "2000|141.7\n6000|175.0\n"

        turbo = ac_sections(bundle, "engine.ini")["TURBO_0"]
        assert turbo["MAX_BOOST"] == "0.80"
        assert turbo["DISPLAY_MAX_BOOST"] == "0.8"
        assert turbo["REFERENCE_RPM"] == "4000"
        controller = ac_sections(bundle, "ctrl_turbo0.ini")["CONTROLLER_0"]
        assert controller["LUT"] == "(2000=0.20|4000=0.80|6000=0.70)"

    def test_fuel_consumption(self, fuel_unit):
        """Test engines with fuel economy get both fuel models."""
        bundle = AssettoCorsaTranslator().translate(fuel_unit)
        assert bundle.names() == ["engine.ini", "power.lut", "drivetrain.ini", "car.ini", "ui_car.json"]

        engine = ac_sections(bundle, "engine.ini")
        # 250 g/kWh x 41.9 kW and x 219.9 kW
        assert engine["FUEL_CONSUMPTION"]["MAX_FUEL_FLOW_LUT"] == "(2000=10|6000=55)"
        assert engine["FUEL_CONSUMPTION"]["MAX_FUEL_FLOW"] == "55"
        assert engine["FUEL_CONSUMPTION"]["LOG_FUEL_FLOW"] == "0"
        assert engine["ENGINE_DATA"]["IDLE_CUTOFF"] == "1000"
        assert engine["ENGINE_DATA"]["IDLE_THROTTLE"] == "0.030"
        assert engine["ENGINE_DATA"]["MECHANICAL_EFFICIENCY"] == "0.850"

        # 219.9 kW x 250 g/kWh / 750 g/l / 3600 s x 1000 / 6000 rpm
        assert ac_sections(bundle, "car.ini")["FUEL"]["CONSUMPTION"] == "0.0034"

    def test_no_fuel_sections_without_fuel_data(self, minimal_unit):
        """Test fuel output needs fuel economy in the unit."""
        bundle = AssettoCorsaTranslator().translate(minimal_unit)
        assert "car.ini" not in bundle.names()
        engine = ac_sections(bundle, "engine.ini")
        assert "FUEL_CONSUMPTION" not in engine
        assert "IDLE_CUTOFF" not in engine["ENGINE_DATA"]

    def test_ui_data(self, minimal_unit):
        """Test the UI curves and specs."""
        bundle = AssettoCorsaTranslator().translate(minimal_unit)
        ui = json.loads(bundle.file("ui_car.json").text)
        assert ui["name"] == "Test Inline Four"
        assert ui["torqueCurve"] == [["2000", "200"], ["6000", "350"]]
        assert ui["powerCurve"] == [["2000", "56"], ["6000", "295"]]
        assert ui["specs"]["bhp"] == "295bhp"
        assert ui["specs"]["torque"] == "350Nm"
        assert ui["specs"]["weight"] == "---"
        assert ui["specs"]["pwratio"] == "---"
        assert ui["specs"]["topspeed"] == "---"

    def test_ui_data_with_car_mass(self, minimal_unit):
        """Test a known car mass fills the weight specs."""
        bundle = AssettoCorsaTranslator().translate(minimal_unit, TuningConfig(car_mass=1200))
        specs = json.loads(bundle.file("ui_car.json").text)["specs"]
        assert specs["weight"] == "1200kg"
        assert specs["pwratio"] == "4.07kg/hp"

    def test_ui_data_shows_boosted_torque(self, turbo_unit):
        """Test the UI shows the real torque, not the unboosted table."""
        ui = json.loads(AssettoCorsaTranslator().translate(turbo_unit).file("ui_car.json").text)
        assert ui["torqueCurve"] == [["2000", "200"], ["6000", "350"]]

    def test_awd_ramp_coupling(self, awd_unit):
        """Test a ramp-torque centre coupling uses AWD2 and defaults its capacity."""
        bundle = AssettoCorsaTranslator().translate(awd_unit)
        drivetrain = ac_sections(bundle, "drivetrain.ini")
        assert drivetrain["TRACTION"]["TYPE"] == "AWD2"
        assert drivetrain["AWD2"]["CENTRE_RAMP_TORQUE"] == "300"
        assert drivetrain["AWD2"]["CENTRE_MAX_TORQUE"] == "2389"
        warnings = bundle.warnings_for("AWD2", "CENTRE_MAX_TORQUE")
        assert [w.kind for w in warnings] == [WarningKind.DEFAULTED]

    def test_awd_efficiency(self, awd_unit):
        """Test AWD layouts lose more torque to the drivetrain."""
        bundle = AssettoCorsaTranslator().translate(awd_unit)
        assert bundle.file("power.lut").text == "2000|150.0\n6000|262.5\n"

    def test_layout_override_to_fwd(self, minimal_unit):
        """Test the preferred layout replaces the unit's layout."""
        bundle = AssettoCorsaTranslator().translate(
            minimal_unit, TuningConfig(preferred_traction_layout="FWD")
        )
        assert ac_sections(bundle, "drivetrain.ini")["TRACTION"]["TYPE"] == "FWD"
        assert bundle.file("power.lut").text == "2000|180.0\n6000|315.0\n"
        assert minimal_unit.drivetrain.layout is TractionLayout.RWD

    def test_layout_override_to_awd(self, minimal_unit):
        """Test forcing AWD without split data defaults a split."""
        bundle = AssettoCorsaTranslator().translate(
            minimal_unit, TuningConfig(preferred_traction_layout=TractionLayout.AWD)
        )
        drivetrain = ac_sections(bundle, "drivetrain.ini")
        assert drivetrain["TRACTION"]["TYPE"] == "AWD"
        assert drivetrain["AWD"]["FRONT_SHARE"] == "40"
        assert bundle.warnings_for("drivetrain", "awd")[0].kind is WarningKind.DEFAULTED
        assert bundle.warnings_for("AWD", "CENTRE_DIFF_PRELOAD")[0].kind is WarningKind.DEFAULTED

    def test_derived_autoclutch(self, minimal_unit):
        """Test the derived profile follows the downshift time."""
        drivetrain = ac_sections(AssettoCorsaTranslator().translate(minimal_unit), "drivetrain.ini")
        assert drivetrain["AUTOCLUTCH"]["DOWNSHIFT_PROFILE"] == "DOWNSHIFT_PROFILE"
        assert drivetrain["DOWNSHIFT_PROFILE"]["POINT_1"] == drivetrain["GEARBOX"]["CHANGE_DN_TIME"]

    def test_autoclutch_presets(self, minimal_unit):
        """Test named autoclutch profiles."""
        translator = AssettoCorsaTranslator()
        street = ac_sections(
            translator.translate(minimal_unit, TuningConfig(autoclutch_profile="street")), "drivetrain.ini"
        )
        assert street["DOWNSHIFT_PROFILE"]["POINT_0"] == "50"
        assert street["AUTOCLUTCH"]["FORCED_ON"] == "1"

        none = ac_sections(
            translator.translate(minimal_unit, TuningConfig(autoclutch_profile="none")), "drivetrain.ini"
        )
        assert none["AUTOCLUTCH"]["DOWNSHIFT_PROFILE"] == "NONE"
        assert none["AUTOCLUTCH"]["USE_ON_CHANGES"] == "0"
        assert "DOWNSHIFT_PROFILE" not in none


class TestBeamNGTranslator:
    """Test the BeamNG jbeam output."""

    def parts(self, bundle):
        assert len(bundle.files) == 1
        return json.loads(bundle.files[0].text)

    def test_minimal_rwd(self, minimal_unit):
        """Test engine and drivetrain parts for the two-point engine."""
        bundle = BeamNGTranslator().translate(minimal_unit)
        assert bundle.names() == ["test_inline_four_engine.jbeam"]
        parts = self.parts(bundle)

        engine = parts["test_inline_four_engine"]["mainEngine"]
        assert engine["torque"] == [["rpm", "torque"], [2000.0, 200.0], [6000.0, 350.0]]
        assert engine["idleRPM"] == 900
        assert engine["maxRPM"] == 6000
        assert engine["maxTorqueRating"] == 450

        drivetrain = parts["test_inline_four_drivetrain"]
        assert drivetrain["gearbox"]["gearRatios"] == [-3.2, 0, 3.5, 2.1, 1.4, 1.0, 0.8]
        assert drivetrain["differential_R"]["finalDrive"] == 3.9
        assert drivetrain["differential_R"]["diffType"] == "lsd"
        assert "differential_F" not in drivetrain
        assert "differential_center" not in drivetrain

    def test_engine_brake_defaulted(self, minimal_unit):
        """Test engine braking without friction data is reported."""
        bundle = BeamNGTranslator().translate(minimal_unit)
        warnings = bundle.warnings_for("mainEngine", "engineBrakeTorque")
        assert [w.kind for w in warnings] == [WarningKind.DEFAULTED]

    def test_awd_centre_preload_defaulted(self, awd_unit):
        """Test a missing centre preload is derived and reported."""
        bundle = BeamNGTranslator().translate(awd_unit)
        drivetrain = self.parts(bundle)["test_inline_four_drivetrain"]

        centre = drivetrain["differential_center"]
        assert centre["diffTorqueSplit"] == 0.65
        # 0.05 x 350 N·m x 3.5 x 3.9
        assert centre["lsdPreload"] == pytest.approx(238.875, abs=0.1)
        assert centre["viscousTorque"] == 300.0
        assert "differential_F" in drivetrain
        assert "differential_R" in drivetrain

        warnings = bundle.warnings_for("differential_center", "lsdPreload")
        assert len(warnings) == 1
        assert warnings[0].kind is WarningKind.DEFAULTED

    def test_shift_time_clamped(self, minimal_unit):
        """Test the shift time is clamped to the legal range."""
        bundle = BeamNGTranslator().translate(slow_shifting(minimal_unit))
        gearbox = self.parts(bundle)["test_inline_four_drivetrain"]["gearbox"]
        assert gearbox["shiftTime"] == 0.5
        assert bundle.warnings_for("gearbox", "shiftTime")[0].kind is WarningKind.CLAMPED

    def test_turbocharger(self, turbo_unit):
        """Test the boost curve is written in psi."""
        bundle = BeamNGTranslator().translate(turbo_unit)
        turbo = self.parts(bundle)["test_inline_four_engine"]["turbocharger"]
        assert turbo["pressurePSI"][0] == ["rpm", "psi"]
        assert turbo["pressurePSI"][2] == [4000.0, pytest.approx(11.6, abs=0.01)]
        assert turbo["wastegateStart"] == pytest.approx(11.6, abs=0.01)

    def test_turbo_torque_is_unboosted(self, turbo_unit):
        """Test boost is divided out of mainEngine torque like in power.lut."""
        bundle = BeamNGTranslator().translate(turbo_unit)
        engine = self.parts(bundle)["test_inline_four_engine"]["mainEngine"]
        # 200 / 1.2 and 350 / 1.7
        assert engine["torque"] == [["rpm", "torque"], [2000.0, 166.7], [6000.0, 205.9]]

    def test_targets_agree_on_turbo_torque(self, turbo_unit):
        """Test both targets start from the same unboosted crank torque."""
        jbeam = self.parts(BeamNGTranslator().translate(turbo_unit))
        crank = [row[1] for row in jbeam["test_inline_four_engine"]["mainEngine"]["torque"][1:]]
        lut = AssettoCorsaTranslator().translate(turbo_unit).file("power.lut").text
        wheel = [float(line.split("|")[1]) for line in lut.splitlines()]
        efficiency = derivations.drivetrain_efficiency(TractionLayout.RWD)
        assert wheel == pytest.approx([t * efficiency for t in crank], abs=0.1)

    def test_unit_is_not_modified(self, minimal_unit):
        """Test translation leaves its input untouched."""
        fingerprint = minimal_unit.fingerprint
        BeamNGTranslator().translate(minimal_unit, TuningConfig(torque_curve_points=20))
        AssettoCorsaTranslator().translate(minimal_unit, TuningConfig(preferred_traction_layout="AWD"))
        assert minimal_unit.fingerprint == fingerprint
        assert len(minimal_unit.engine.torque_curve) == 2


class TestTuningConfig:
    """Test tuning option parsing."""

    def test_defaults(self):
        """Test the default profile and resolution."""
        tuning = TuningConfig()
        assert tuning.torque_curve_points is None
        assert tuning.autoclutch.name == "derived"

    def test_unknown_profile(self):
        """Test unknown autoclutch profiles are rejected."""
        with pytest.raises(ValueError):
            TuningConfig(autoclutch_profile="drift")

    def test_car_mass(self):
        """Test the car mass must be positive."""
        assert TuningConfig(car_mass=1200).car_mass == 1200.0
        with pytest.raises(ValueError):
            TuningConfig(car_mass=0)

    def test_from_toml(self):
        """Test options are read from the [tuning] table."""
        tuning = TuningConfig.from_toml(
            '[tuning]\ntorque_curve_points = 40\npreferred_traction_layout = "awd"\n'
            'autoclutch_profile = "Race"\nshiny = true\n'
        )
        assert tuning.torque_curve_points == 40
        assert tuning.preferred_traction_layout is TractionLayout.AWD
        assert tuning.autoclutch_profile == "race"
