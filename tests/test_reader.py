"""Tests for the Automation export reader."""

import io
import zipfile

import pytest

from enginecrane.automation.blocks import parse_blocks, parse_curve_table
from enginecrane.automation.bundle import MemoryBundle, ZipBundle
from enginecrane.automation.reader import AutomationReader
from enginecrane.errors import BundleNotFound, SourceFormatError, WarningKind
from enginecrane.model.drivetrain import TractionLayout

from conftest import CREATED_AT, CURVE_CSV, ENGINE_TXT


def read(members, clock=None):
    return AutomationReader(clock=clock).read(MemoryBundle(members))


class TestBlockParsing:
    """Test the key=value and table parsers."""

    def test_keys_are_case_insensitive(self):
        """Test keys are lower-cased and comments skipped."""
        blocks, warnings = parse_blocks("; comment\n[Variant]\nMax_RPM = 7000\n", "engine.txt")
        assert blocks["variant"].entries == {"max_rpm": "7000"}
        assert warnings == []

    def test_duplicate_key_keeps_last(self):
        """Test a repeated key is reported and the last value wins."""
        blocks, warnings = parse_blocks("[Variant]\nweight = 1\nweight = 2\n", "engine.txt")
        assert blocks["variant"].entries["weight"] == "2"
        assert [(w.field, w.kind) for w in warnings] == [("weight", WarningKind.ADJUSTED)]

    def test_entry_outside_block(self):
        """Test entries need a block header."""
        with pytest.raises(SourceFormatError):
            parse_blocks("weight = 1\n", "engine.txt")

    def test_curve_table_columns(self):
        """Test known columns parse and unknown ones are listed."""
        columns, ignored = parse_curve_table("RPM,Torque,afr\n1000,100,12.5\n2000,150,12.9\n")
        assert columns["rpm"].tolist() == [1000.0, 2000.0]
        assert columns["torque"].tolist() == [100.0, 150.0]
        assert ignored == ["afr"]

    def test_curve_table_non_numeric(self):
        """Test a bad cell names the column."""
        with pytest.raises(SourceFormatError) as exc:
            parse_curve_table("rpm,torque\n1000,100\n2000,lots\n")
        assert exc.value.field == "torque"

    @pytest.mark.parametrize("cell", ["nan", "inf", "-inf"])
    def test_curve_table_non_finite(self, cell):
        """Test NaN and infinite cells are rejected like text."""
        with pytest.raises(SourceFormatError) as exc:
            parse_curve_table(f"rpm,torque\n1000,{cell}\n6000,150\n")
        assert exc.value.field == "torque"


class TestAutomationReader:
    """Test reading complete bundles."""

    def test_metric_bundle(self, metric_bundle, fixed_clock):
        """Test a complete metric export."""
        result = AutomationReader(clock=fixed_clock).read(metric_bundle)
        unit = result.unit
        engine = unit.engine

        assert result.warnings == ()
        assert engine.name == "Crane I4 Sport"
        assert engine.displacement == 1998.0
        assert engine.idle_speed == 900.0
        assert engine.redline == 7000.0
        assert engine.mass == 140.0
        assert engine.inertia == 0.18
        assert engine.torque_curve.torque_at(5000.0) == 240.0
        assert engine.turbo is None
        assert engine.description.cylinders == 4
        assert engine.description.aspiration == "Aspiration_Natural"

        drivetrain = unit.drivetrain
        assert drivetrain.layout is TractionLayout.RWD
        assert drivetrain.gearbox.forward_ratios == (3.5, 2.1, 1.4, 1.0, 0.8)
        assert drivetrain.gearbox.final_drive == 3.9
        assert drivetrain.clutch.max_torque == 400.0
        assert drivetrain.differential.coast_lock == 0.6
        assert drivetrain.differential.preload == 20.0

        assert unit.provenance.created_at == CREATED_AT
        assert unit.provenance.original_id == "var-1"
        assert unit.provenance.source_version == "4.2.11"

    def test_defaulted_fields_are_listed(self, metric_bundle):
        """Test absent keys are reported as defaulted, not as warnings."""
        result = AutomationReader().read(metric_bundle)
        assert "Variant.aspiration" in result.defaulted
        assert "Variant.capacity" not in result.defaulted

    def test_reading_is_deterministic(self, metric_bundle, fixed_clock):
        """Test the same bundle gives the same unit."""
        first = AutomationReader(clock=fixed_clock).read(metric_bundle).unit
        second = AutomationReader(clock=fixed_clock).read(metric_bundle).unit
        assert first == second
        assert first.fingerprint == second.fingerprint

    def test_unknown_key_is_one_warning(self):
        """Test a newer export with one extra key still reads."""
        result = read({
            "engine.txt": "[Variant]\ncapacity=1998\nsome_unknown=3\n",
            "curve.csv": CURVE_CSV,
        })
        assert len(result.warnings) == 1
        warning = result.warnings[0]
        assert warning.kind is WarningKind.IGNORED
        assert warning.location == "Variant.some_unknown"
        assert result.unit.engine.displacement == 1998.0
        # missing idle/redline fall back to the curve range
        assert result.unit.engine.idle_speed == 1000.0
        assert result.unit.engine.redline == 7000.0

    def test_unknown_block_is_one_warning(self):
        """Test an unrecognized block is ignored as a whole."""
        result = read({
            "engine.txt": "[Variant]\ncapacity=1998\n[Exhaust]\nheaders=1\nmuffler=2\n",
            "curve.csv": CURVE_CSV,
        })
        assert [w.location for w in result.warnings] == ["Exhaust.*"]

    def test_newer_format_version_warns(self):
        """Test a newer export format is read best-effort."""
        result = read({"engine.txt": "[Export]\nformat_version = 3\n", "curve.csv": CURVE_CSV})
        assert [w.location for w in result.warnings] == ["Export.format_version"]

    def test_non_numeric_value(self):
        """Test a non-numeric field names its block and key."""
        with pytest.raises(SourceFormatError) as exc:
            read({
                "engine.txt": ENGINE_TXT.replace("idle_speed = 900", "idle_speed = fast"),
                "curve.csv": CURVE_CSV,
            })
        assert exc.value.block == "Variant"
        assert exc.value.field == "idle_speed"

    def test_non_finite_torque(self):
        """Test a NaN torque sample names the torque column."""
        with pytest.raises(SourceFormatError) as exc:
            read({"engine.txt": ENGINE_TXT, "curve.csv": "rpm,torque\n1000,nan\n6000,150\n"})
        assert exc.value.block == "curve.csv"
        assert exc.value.field == "torque"

    def test_non_finite_boost(self):
        """Test a NaN boost sample is a source error, not a model error."""
        with pytest.raises(SourceFormatError) as exc:
            read({
                "engine.txt": ENGINE_TXT,
                "curve.csv": "rpm,torque,boost\n1000,100,0.2\n6000,150,nan\n",
            })
        assert exc.value.field == "boost"

    def test_power_mismatch_is_returned(self):
        """Test a power column that disagrees with torque is an ADJUSTED warning."""
        result = read({
            "engine.txt": ENGINE_TXT,
            "curve.csv": "rpm,torque,power\n1000,150,15.71\n7000,200,999.0\n",
        })
        assert [(w.location, w.kind) for w in result.warnings] == [
            ("curve.csv.power", WarningKind.ADJUSTED),
        ]
        assert result.unit.engine.torque_curve.torque_at(7000.0) == 200.0

    def test_missing_curve(self):
        """Test a bundle without a torque table fails."""
        with pytest.raises(SourceFormatError) as exc:
            read({"engine.txt": ENGINE_TXT})
        assert exc.value.block == "curve.csv"
        assert exc.value.field == "torque"

    def test_unknown_units(self):
        """Test only metric and imperial exports are accepted."""
        with pytest.raises(SourceFormatError):
            read({"engine.txt": "[Export]\nunits = furlongs\n", "curve.csv": CURVE_CSV})

    def test_imperial_export(self):
        """Test imperial values are converted to canonical units."""
        result = read({
            "engine.txt": "[Export]\nunits = imperial\n[Variant]\ncapacity = 122\nweight = 300\n",
            "curve.csv": "rpm,torque\n1000,100\n6000,150\n",
        })
        engine = result.unit.engine
        assert engine.displacement == pytest.approx(1999.22, abs=0.01)
        assert engine.mass == pytest.approx(136.078, abs=0.001)
        assert engine.torque_curve.torque_at(1000.0) == pytest.approx(135.582, abs=0.001)

    def test_capacity_from_bore_and_stroke(self):
        """Test capacity is derived when only the family geometry is given."""
        result = read({
            "engine.txt": "[Family]\ncylinders = 4\nbore = 86\nstroke = 86\n",
            "curve.csv": CURVE_CSV,
        })
        assert result.unit.engine.displacement == pytest.approx(1998.3, abs=0.1)
        assert "Variant.capacity" in result.defaulted

    def test_turbo_from_boost_column(self):
        """Test a positive boost column makes the engine turbocharged."""
        result = read({
            "engine.txt": "[Variant]\ncapacity = 1998\n",
            "curve.csv": "rpm,torque,boost\n1000,150,0.0\n3000,220,0.6\n5000,240,0.9\n7000,200,0.8\n",
        })
        engine = result.unit.engine
        assert engine.is_turbocharged
        assert engine.turbo.max_boost == pytest.approx(0.9)
        assert engine.turbo.stages[0].reference_rpm == 5000.0
        assert engine.description.aspiration == "Aspiration_Turbo"

    def test_turbo_block_without_boost(self):
        """Test a turbo block needs max_boost when there is no boost column."""
        with pytest.raises(SourceFormatError) as exc:
            read({"engine.txt": "[Turbo]\nlag_up = 0.9\n", "curve.csv": CURVE_CSV})
        assert exc.value.field == "max_boost"

    def test_fuel_economy_from_variant(self):
        """Test the econ key gives an average fuel consumption."""
        result = read({
            "engine.txt": ENGINE_TXT.replace("build_year = 2004", "build_year = 2004\necon = 260"),
            "curve.csv": CURVE_CSV,
        })
        fuel = result.unit.engine.fuel
        assert fuel.bsfc == 260.0
        assert fuel.bsfc_curve is None
        assert result.warnings == ()

    def test_fuel_economy_from_column(self):
        """Test an econ column gives a per-rpm curve and its mean."""
        result = read({
            "engine.txt": ENGINE_TXT,
            "curve.csv": "rpm,torque,econ\n1000,150,300\n7000,200,260\n",
        })
        fuel = result.unit.engine.fuel
        assert fuel.bsfc == pytest.approx(280.0)
        assert fuel.bsfc_at(4000.0) == pytest.approx(280.0)

    def test_no_fuel_economy(self, metric_bundle):
        """Test exports without econ data have no fuel economy."""
        assert AutomationReader().read(metric_bundle).unit.engine.fuel is None

    def test_bad_econ_column(self):
        """Test a zero consumption sample names the econ column."""
        with pytest.raises(SourceFormatError) as exc:
            read({"engine.txt": ENGINE_TXT, "curve.csv": "rpm,torque,econ\n1000,150,0\n7000,200,260\n"})
        assert exc.value.field == "econ"

    def test_awd_drivetrain(self):
        """Test an AWD export builds a split with an unset centre preload."""
        result = read({
            "engine.txt": "[Drivetrain]\nlayout = awd\nfront_share = 0.35\ncentre_ramp_torque = 250\n",
            "curve.csv": CURVE_CSV,
        })
        drivetrain = result.unit.drivetrain
        assert drivetrain.layout is TractionLayout.AWD
        assert drivetrain.awd.front_share == 0.35
        assert drivetrain.awd.centre.preload is None
        assert drivetrain.awd.centre.uses_ramp

    def test_gear_numbering_gap(self):
        """Test forward gears must be numbered contiguously."""
        with pytest.raises(SourceFormatError) as exc:
            read({"engine.txt": "[Drivetrain]\ngear_1 = 3.0\ngear_3 = 1.0\n", "curve.csv": CURVE_CSV})
        assert exc.value.field == "gear_1"

    def test_default_clutch_from_peak_torque(self):
        """Test clutch capacity defaults above peak torque."""
        result = read({"engine.txt": "[Variant]\ncapacity = 1998\n", "curve.csv": CURVE_CSV})
        assert result.unit.drivetrain.clutch.max_torque == pytest.approx(300.0)


class TestBundles:
    """Test the in-memory byte sources."""

    def test_missing_member(self):
        """Test reading an absent member raises BundleNotFound."""
        with pytest.raises(BundleNotFound):
            MemoryBundle({}).read("engine.txt")

    def test_zip_bundle_matches_memory_bundle(self, metric_bundle, fixed_clock):
        """Test a zipped export reads to the same unit."""
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w") as zf:
            zf.writestr("export/engine.txt", ENGINE_TXT)
            zf.writestr("export/curve.csv", CURVE_CSV)
        bundle = ZipBundle(buffer.getvalue())

        assert bundle.names() == ["curve.csv", "engine.txt"]
        zipped = AutomationReader(clock=fixed_clock).read(bundle).unit
        plain = AutomationReader(clock=fixed_clock).read(metric_bundle).unit
        assert zipped == plain

    def test_zip_bundle_rejects_garbage(self):
        """Test non-zip bytes are a source format error."""
        with pytest.raises(SourceFormatError):
            ZipBundle(b"not a zip")
