#!/usr/bin/env python3
"""
Engine Conversion Example

This example demonstrates how to:
1. Read an Automation engine export from memory (or a folder)
2. Translate it for BeamNG and Assetto Corsa
3. Inspect the warnings raised while deriving target values
4. Package the engine as a crate and read it back

Run with: python convert_engine.py [export_folder] [output_folder]
"""

from pathlib import Path
import logging
import sys

from enginecrane import pipeline
from enginecrane.automation.bundle import MemoryBundle, MemorySink
from enginecrane.config import TuningConfig
from enginecrane.crate.codec import inspect

SAMPLE_ENGINE = """\
[Export]
format_version = 2
game_version = 4.2.11
units = metric

[Family]
name = Crane V6
block_type = V60
cylinders = 6
bore = 89.0
stroke = 80.0

[Variant]
name = GT Turbo
idle_speed = 850
max_rpm = 7200
weight = 175
inertia = 0.21
econ = 268

[Turbo]
max_boost = 0.9
lag_up = 0.97

[Drivetrain]
layout = AWD
gear_1 = 3.3
gear_2 = 2.1
gear_3 = 1.5
gear_4 = 1.15
gear_5 = 0.92
gear_6 = 0.76
gear_r = 3.1
final_drive = 3.7
front_share = 0.4
centre_ramp_torque = 300
"""

SAMPLE_CURVE = """\
rpm,torque,boost
1000,210,0.05
2000,290,0.35
3000,390,0.80
4000,430,0.90
5000,420,0.90
6000,395,0.85
7200,330,0.75
"""


class FolderSink:
    """Writes sink output below a folder."""

    def __init__(self, root: Path):
        self.root = root

    def write(self, name: str, data: bytes) -> None:
        path = self.root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)


def load_bundle(folder: Path) -> MemoryBundle:
    return MemoryBundle({p.name: p.read_bytes() for p in folder.iterdir() if p.is_file()})


def main():
    logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s: %(message)s")

    print("=" * 60)
    print("enginecrane Conversion Example")
    print("=" * 60)

    # Step 1: Read the export
    print("\n1. Reading Automation export...")
    if len(sys.argv) > 1:
        bundle = load_bundle(Path(sys.argv[1]))
    else:
        bundle = MemoryBundle({"engine.txt": SAMPLE_ENGINE, "curve.csv": SAMPLE_CURVE})
    result = pipeline.import_automation(bundle)
    unit = result.unit
    engine = unit.engine

    peak_rpm, peak_torque = engine.peak_torque()
    power_rpm, peak_kw = engine.peak_power()
    print(f"   Engine: {unit.name}")
    print(f"   Displacement: {engine.displacement:.0f} cc")
    print(f"   Peak torque: {peak_torque:.0f} N·m @ {peak_rpm:.0f} rpm")
    print(f"   Peak power: {peak_kw:.0f} kW @ {power_rpm:.0f} rpm")
    print(f"   Layout: {unit.drivetrain.layout.value}, {unit.drivetrain.gearbox.gear_count} gears")
    print(f"   Defaulted fields: {len(result.defaulted)}")
    for issue in unit.validate():
        print(f"   Advisory: {issue}")

    # Step 2: Translate for each target
    print("\n2. Translating...")
    tuning = TuningConfig(torque_curve_points=40, autoclutch_profile="street", car_mass=1450)
    out_root = Path(sys.argv[2]) if len(sys.argv) > 2 else None
    for target in ("beamng", "assetto_corsa"):
        target_bundle = pipeline.translate(unit, target, tuning)
        print(f"   {target}: {', '.join(target_bundle.names())}")

        # Step 3: Warnings
        for warning in target_bundle.warnings:
            print(f"      [{warning.kind.value}] {warning}")

        if out_root is not None:
            pipeline.write_bundle(target_bundle, FolderSink(out_root / target))

    # Step 4: Crate round trip
    print("\n3. Packaging crate engine...")
    sink = MemorySink() if out_root is None else FolderSink(out_root)
    data = pipeline.package(unit)
    name = pipeline.write_crate(unit, sink)
    summary = inspect(data)
    print(f"   Artifact: {name} ({len(data)} bytes, format v{summary.version})")
    print(f"   Fingerprint: {summary.fingerprint[:16]}...")
    print(f"   Peak power: {summary.peak_power_bhp:.0f} bhp")
    print(f"   Round trip equal: {pipeline.unpack(data) == unit}")

    print("\n" + "=" * 60)
    print("Conversion complete!")
    print("=" * 60)


if __name__ == "__main__":
    main()
