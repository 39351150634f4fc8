"""Shared fixtures for the enginecrane tests."""

from dataclasses import replace
from datetime import datetime, timezone

import pytest

from enginecrane.automation.bundle import MemoryBundle
from enginecrane.model.drivetrain import (
    AwdSplit,
    CentreDifferential,
    Clutch,
    Differential,
    DrivetrainModel,
    Gearbox,
    TractionLayout,
)
from enginecrane.model.engine import EngineModel, FuelEconomy, TurboConfig, TurboStage
from enginecrane.model.unit import CanonicalEngineUnit, Provenance
from enginecrane.units.curve import BoostCurve, TorqueCurve

CREATED_AT = datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc)


def make_provenance() -> Provenance:
    return Provenance(
        source_tool="Automation",
        source_version="4.2.11",
        original_id="variant-uuid-1",
        created_at=CREATED_AT,
    )


def make_gearbox() -> Gearbox:
    return Gearbox(
        forward_ratios=(3.5, 2.1, 1.4, 1.0, 0.8),
        reverse_ratio=3.2,
        final_drive=3.9,
        gear_count=5,
    )


@pytest.fixture
def minimal_unit() -> CanonicalEngineUnit:
    """Two-point RWD engine: 2000 rpm -> 200 N·m, 6000 rpm -> 350 N·m."""
    engine = EngineModel(
        name="Test Inline Four",
        source_fingerprint="abc123",
        torque_curve=TorqueCurve([2000.0, 6000.0], [200.0, 350.0]),
        displacement=1998.0,
        idle_speed=900.0,
        redline=6000.0,
    )
    drivetrain = DrivetrainModel(
        gearbox=make_gearbox(),
        clutch=Clutch(450.0),
        differential=Differential(power_lock=0.1, coast_lock=0.6),
        layout=TractionLayout.RWD,
    )
    return CanonicalEngineUnit(engine, drivetrain, make_provenance())


@pytest.fixture
def awd_unit(minimal_unit) -> CanonicalEngineUnit:
    """AWD unit with a ramp-torque centre coupling but no centre preload."""
    split = AwdSplit(
        front_share=0.35,
        front=Differential(0.05, 0.05, 0.0),
        centre=CentreDifferential(power_lock=0.2, coast_lock=0.1, ramp_torque=300.0),
        rear=Differential(0.1, 0.6, 20.0),
    )
    drivetrain = minimal_unit.drivetrain.with_layout(TractionLayout.AWD, split)
    return minimal_unit.with_drivetrain(drivetrain)


@pytest.fixture
def turbo_unit(minimal_unit) -> CanonicalEngineUnit:
    """Minimal engine with a single turbo and a boost curve."""
    turbo = TurboConfig(
        stages=(TurboStage(max_boost=0.8, reference_rpm=4000.0),),
        boost_curve=BoostCurve([2000.0, 4000.0, 6000.0], [0.2, 0.8, 0.7]),
    )
    engine = minimal_unit.engine
    return minimal_unit.with_engine(
        EngineModel(
            name=engine.name,
            source_fingerprint=engine.source_fingerprint,
            torque_curve=engine.torque_curve,
            displacement=engine.displacement,
            idle_speed=engine.idle_speed,
            redline=engine.redline,
            turbo=turbo,
        )
    )


@pytest.fixture
def fuel_unit(minimal_unit) -> CanonicalEngineUnit:
    """Minimal engine with a flat 250 g/kWh fuel consumption."""
    engine = replace(minimal_unit.engine, fuel=FuelEconomy(bsfc=250.0))
    return minimal_unit.with_engine(engine)


ENGINE_TXT = """\
# Automation export
[Export]
format_version = 2
game_version = 4.2.11
units = metric

[Family]
uuid = fam-1
name = Crane I4
block_type = Inline
cylinders = 4
head_type = DOHC
valves = 4
bore = 86.0
stroke = 86.0

[Variant]
uuid = var-1
name = Sport
capacity = 1998
idle_speed = 900
max_rpm = 7000
weight = 140
inertia = 0.18
fuel_type = Premium
build_year = 2004

[Drivetrain]
layout = RWD
gear_1 = 3.5
gear_2 = 2.1
gear_3 = 1.4
gear_4 = 1.0
gear_5 = 0.8
gear_r = 3.2
final_drive = 3.9
clutch_max_torque = 400
diff_power = 0.1
diff_coast = 0.6
diff_preload = 20
"""

CURVE_CSV = """\
rpm,torque,power
1000,150,15.71
3000,220,69.12
5000,240,125.66
7000,200,146.61
"""


@pytest.fixture
def metric_bundle() -> MemoryBundle:
    return MemoryBundle({"engine.txt": ENGINE_TXT, "curve.csv": CURVE_CSV})


@pytest.fixture
def fixed_clock():
    return lambda: CREATED_AT
