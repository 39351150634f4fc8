"""
Automation reader - export bundle to CanonicalEngineUnit.

The only place that knows Automation's units: metric or imperial exports
are converted to canonical SI-based values here. Every field has a
documented default for older export versions; unknown keys and blocks are
ignored with one warning each.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Tuple
import hashlib
import logging
import math
import re
import struct

import numpy as np

from enginecrane.automation.blocks import CURVE_FILE, Block, parse_blocks, parse_curve_table
from enginecrane.automation.bundle import SourceBundle
from enginecrane.errors import (
    BundleNotFound,
    ConversionWarning,
    EngineCraneError,
    MalformedModel,
    SourceFormatError,
    WarningKind,
)
from enginecrane.model.drivetrain import (
    AwdSplit,
    CentreDifferential,
    Clutch,
    Differential,
    DrivetrainModel,
    Gearbox,
    TractionLayout,
)
from enginecrane.model.engine import (
    EngineDescription,
    EngineDimensions,
    EngineFriction,
    EngineModel,
    FuelEconomy,
    TurboConfig,
    TurboStage,
)
from enginecrane.model.unit import CanonicalEngineUnit, Provenance
from enginecrane.units.curve import BoostCurve, BsfcCurve, TorqueCurve
from enginecrane.units.quantity import Quantity, Unit

logger = logging.getLogger(__name__)

SUPPORTED_FORMAT_VERSION = 2
BLOCK_FILE_SUFFIXES = (".txt", ".ini")

# Canonical unit paired with the unit used by imperial exports
TORQUE = (Unit.NEWTON_METRE, Unit.POUND_FOOT)
POWER = (Unit.KILOWATT, Unit.HORSEPOWER)
PRESSURE = (Unit.BAR, Unit.PSI)
LENGTH = (Unit.MILLIMETRE, Unit.INCH)
VOLUME = (Unit.CUBIC_CENTIMETRE, Unit.CUBIC_INCH)
MASS = (Unit.KILOGRAM, Unit.POUND)
INERTIA = (Unit.KILOGRAM_METRE_SQ, Unit.POUND_FOOT_SQ)

KNOWN_KEYS: Dict[str, frozenset] = {
    "export": frozenset({"format_version", "game_version", "units", "tool"}),
    "family": frozenset({
        "uuid", "name", "block_type", "cylinders", "head_type", "valves", "bore", "stroke",
    }),
    "variant": frozenset({
        "uuid", "name", "capacity", "idle_speed", "max_rpm", "weight", "inertia",
        "aspiration", "fuel_type", "build_year", "length", "width", "height",
        "friction", "dynamic_friction", "engine_brake_torque", "econ",
    }),
    "turbo": frozenset({"max_boost", "reference_rpm", "lag_up", "lag_down", "wastegate", "gamma"}),
    "drivetrain": frozenset({
        "layout", "gear_count", "gear_r", "final_drive", "clutch_max_torque",
        "diff_power", "diff_coast", "diff_preload",
        "front_share", "front_power", "front_coast", "front_preload",
        "centre_power", "centre_coast", "centre_preload", "centre_ramp_torque", "centre_max_torque",
        "rear_power", "rear_coast", "rear_preload",
    }),
}

TURBO_BLOCK = re.compile(r"^turbo(?:\.(\d+))?$")
GEAR_KEY = re.compile(r"^gear_(\d+)$")

DEFAULT_GEARS = (3.5, 2.1, 1.4, 1.0, 0.8)
DEFAULT_CAPACITY_CC = 2000.0
DEFAULT_WEIGHT_KG = 150.0
DEFAULT_INERTIA = 0.15
CLUTCH_TORQUE_MARGIN = 1.25


@dataclass(frozen=True)
class ReadResult:
    """A parsed unit plus everything non-fatal that happened on the way."""
    unit: CanonicalEngineUnit
    warnings: Tuple[ConversionWarning, ...] = ()
    defaulted: Tuple[str, ...] = ()


def bundle_fingerprint(bundle: SourceBundle) -> str:
    """SHA-256 over every member (sorted by name, length-prefixed)."""
    digest = hashlib.sha256()
    for name in sorted(bundle.names()):
        data = bundle.read(name)
        encoded = name.encode("utf-8")
        digest.update(struct.pack("<I", len(encoded)))
        digest.update(encoded)
        digest.update(struct.pack("<Q", len(data)))
        digest.update(data)
    return digest.hexdigest()


class _Fields:
    """Typed access to one block's entries with default bookkeeping."""

    def __init__(self, block_name: str, entries: Dict[str, str], imperial: bool, defaulted: List[str]):
        self.block_name = block_name
        self.entries = entries
        self.imperial = imperial
        self.defaulted = defaulted

    def has(self, key: str) -> bool:
        return key in self.entries

    def _default(self, key: str, default):
        # optional keys without a default are simply absent
        if default is not None:
            self.defaulted.append(f"{self.block_name}.{key}")
            logger.debug(f"[{self.block_name}] {key} absent, using default {default!r}")
        return default

    def number(self, key: str, default=None, units: Optional[Tuple[Unit, Unit]] = None) -> Optional[float]:
        """Float value converted to the canonical unit of ``units``."""
        if key not in self.entries:
            return self._default(key, default)
        raw = self.entries[key]
        try:
            value = float(raw)
        except ValueError:
            raise SourceFormatError(self.block_name, key, f"{raw!r} is not a number") from None
        if not math.isfinite(value):
            raise SourceFormatError(self.block_name, key, f"{raw!r} is not a finite number")
        if units is not None and self.imperial:
            canonical, imperial = units
            value = Quantity(value, imperial).magnitude(canonical)
        return value

    def integer(self, key: str, default=None) -> Optional[int]:
        value = self.number(key, default)
        if value is None:
            return None
        if not float(value).is_integer():
            raise SourceFormatError(self.block_name, key, f"{self.entries[key]!r} is not an integer")
        return int(value)

    def text(self, key: str, default=None) -> Optional[str]:
        if key not in self.entries:
            return self._default(key, default)
        return self.entries[key]


class AutomationReader:
    """Reads Automation export bundles.

    Example:
        result = AutomationReader().read(MemoryBundle({...}))
        unit = result.unit
    """

    def __init__(self, clock: Callable[[], datetime] | None = None):
        """Initialize reader.

        Args:
            clock: Returns the creation timestamp stored in provenance.
                Defaults to the current UTC time.
        """
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def read(self, bundle: SourceBundle) -> ReadResult:
        """Parse ``bundle`` into a canonical unit.

        Args:
            bundle: Export files as an in-memory SourceBundle

        Returns:
            ReadResult with the unit, warnings and defaulted field names

        Raises:
            SourceFormatError: Missing torque table or non-numeric values
            MalformedModel / InvalidQuantity: If the described engine
                violates canonical invariants
        """
        warnings: List[ConversionWarning] = []
        defaulted: List[str] = []

        blocks = self._parse_block_files(bundle, warnings)
        curve_columns = self._read_curve(bundle, warnings)

        export = blocks.get("export", Block("Export"))
        units = export.entries.get("units", "metric").strip().lower()
        if units not in ("metric", "imperial"):
            raise SourceFormatError("Export", "units", f"expected metric or imperial, got {units!r}")
        imperial = units == "imperial"

        def fields_for(key: str, name: str) -> _Fields:
            block = blocks.get(key, Block(name))
            return _Fields(block.name, block.entries, imperial, defaulted)

        export_fields = fields_for("export", "Export")
        format_version = export_fields.integer("format_version", 1)
        if format_version > SUPPORTED_FORMAT_VERSION:
            warnings.append(ConversionWarning(
                "Export", "format_version",
                f"export format v{format_version} is newer than v{SUPPORTED_FORMAT_VERSION}; "
                "unrecognized content is ignored",
                WarningKind.ADJUSTED,
            ))

        fingerprint = bundle_fingerprint(bundle)
        engine = self._build_engine(blocks, fields_for, curve_columns, fingerprint, imperial, warnings)
        drivetrain = self._build_drivetrain(fields_for("drivetrain", "Drivetrain"), engine)

        variant = blocks.get("variant", Block("Variant")).entries
        family = blocks.get("family", Block("Family")).entries
        provenance = Provenance(
            source_tool=export_fields.text("tool", "Automation"),
            source_version=export_fields.text("game_version", "0"),
            original_id=variant.get("uuid") or family.get("uuid") or fingerprint[:16],
            created_at=self._clock(),
        )
        unit = CanonicalEngineUnit(engine=engine, drivetrain=drivetrain, provenance=provenance)

        logger.info(
            f"Read Automation engine '{engine.name}' "
            f"({len(warnings)} warnings, {len(defaulted)} defaulted fields)"
        )
        return ReadResult(unit=unit, warnings=tuple(warnings), defaulted=tuple(defaulted))

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    def _parse_block_files(self, bundle: SourceBundle, warnings: List[ConversionWarning]) -> Dict[str, Block]:
        blocks: Dict[str, Block] = {}
        for name in sorted(bundle.names()):
            if not name.lower().endswith(BLOCK_FILE_SUFFIXES):
                continue
            try:
                text = bundle.read(name).decode("utf-8-sig")
            except UnicodeDecodeError as exc:
                raise SourceFormatError(name, "encoding", f"not UTF-8 text: {exc}") from exc
            blocks, file_warnings = parse_blocks(text, name, blocks)
            warnings.extend(file_warnings)

        for key, block in blocks.items():
            known = self._known_keys(key)
            if known is None:
                logger.warning(f"Ignoring unrecognized block [{block.name}]")
                warnings.append(ConversionWarning(
                    block.name, "*", "unrecognized block ignored", WarningKind.IGNORED,
                ))
                continue
            for entry in block.entries:
                if entry in known or (key == "drivetrain" and GEAR_KEY.match(entry)):
                    continue
                logger.warning(f"Ignoring unrecognized key [{block.name}] {entry}")
                warnings.append(ConversionWarning(
                    block.name, entry, "unrecognized key ignored", WarningKind.IGNORED,
                ))
        return blocks

    @staticmethod
    def _known_keys(block_key: str) -> Optional[frozenset]:
        if TURBO_BLOCK.match(block_key):
            return KNOWN_KEYS["turbo"]
        return KNOWN_KEYS.get(block_key)

    def _read_curve(self, bundle: SourceBundle, warnings: List[ConversionWarning]) -> Dict[str, np.ndarray]:
        try:
            raw = bundle.read(CURVE_FILE)
        except BundleNotFound:
            raise SourceFormatError(CURVE_FILE, "torque", "torque table missing from bundle") from None
        try:
            text = raw.decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise SourceFormatError(CURVE_FILE, "encoding", f"not UTF-8 text: {exc}") from exc

        columns, ignored = parse_curve_table(text)
        for column in ignored:
            warnings.append(ConversionWarning(
                CURVE_FILE, column, "unrecognized column ignored", WarningKind.IGNORED,
            ))
        return columns

    # ------------------------------------------------------------------
    # Engine
    # ------------------------------------------------------------------

    def _build_engine(
        self, blocks, fields_for, columns, fingerprint: str, imperial: bool, warnings: List[ConversionWarning],
    ) -> EngineModel:
        family = fields_for("family", "Family")
        variant = fields_for("variant", "Variant")

        rpm = columns["rpm"]
        torque = columns["torque"]
        if imperial:
            torque = torque * Unit.POUND_FOOT.factor
        try:
            torque_curve = TorqueCurve(rpm, torque)
        except MalformedModel as exc:
            raise SourceFormatError(CURVE_FILE, "rpm", str(exc)) from exc
        if "power" in columns:
            self._check_power_column(torque_curve, columns["power"], imperial, warnings)

        family_name = family.text("name", "")
        variant_name = variant.text("name", "")
        name = " ".join(part for part in (family_name, variant_name) if part) or "Unnamed engine"

        cylinders = family.integer("cylinders")
        bore = family.number("bore", units=LENGTH)
        stroke = family.number("stroke", units=LENGTH)
        if variant.has("capacity"):
            capacity = variant.number("capacity", units=VOLUME)
        elif bore and stroke and cylinders:
            capacity = math.pi / 4.0 * bore ** 2 * stroke * cylinders / 1000.0
            defaulted_key = "Variant.capacity"
            variant.defaulted.append(defaulted_key)
            logger.debug(f"{defaulted_key} derived from bore/stroke: {capacity:.0f} cc")
        else:
            capacity = variant.number("capacity", DEFAULT_CAPACITY_CC)

        idle = variant.number("idle_speed", torque_curve.min_speed)
        redline = variant.number("max_rpm", torque_curve.max_speed)
        mass = variant.number("weight", DEFAULT_WEIGHT_KG, units=MASS)
        inertia = variant.number("inertia", DEFAULT_INERTIA, units=INERTIA)

        turbo = self._build_turbo(blocks, fields_for, columns, torque_curve, imperial)
        aspiration = variant.text(
            "aspiration", "Aspiration_Turbo" if turbo is not None else "Aspiration_Natural"
        )

        friction = None
        if any(variant.has(k) for k in ("friction", "dynamic_friction", "engine_brake_torque")):
            friction = EngineFriction(
                static_torque=variant.number("friction", 0.0, units=TORQUE),
                dynamic_friction=variant.number("dynamic_friction", 0.0, units=TORQUE),
                engine_brake_torque=variant.number("engine_brake_torque", 0.0, units=TORQUE),
            )

        dimensions = None
        if all(variant.has(k) for k in ("length", "width", "height")):
            dimensions = EngineDimensions(
                length=variant.number("length", units=LENGTH),
                width=variant.number("width", units=LENGTH),
                height=variant.number("height", units=LENGTH),
            )

        fuel = self._build_fuel(variant, columns)

        description = EngineDescription(
            block_type=family.text("block_type"),
            cylinders=cylinders,
            head_type=family.text("head_type"),
            valves=family.integer("valves"),
            aspiration=aspiration,
            fuel_type=variant.text("fuel_type"),
            build_year=variant.integer("build_year"),
        )

        return EngineModel(
            name=name,
            source_fingerprint=fingerprint,
            torque_curve=torque_curve,
            displacement=capacity,
            idle_speed=idle,
            redline=redline,
            inertia=inertia,
            mass=mass,
            turbo=turbo,
            friction=friction,
            dimensions=dimensions,
            description=description,
            fuel=fuel,
        )

    @staticmethod
    def _build_fuel(variant, columns) -> Optional[FuelEconomy]:
        """BSFC in g/kWh from ``Variant.econ`` and/or an econ column; never unit-converted."""
        bsfc_curve = None
        if "econ" in columns:
            try:
                bsfc_curve = BsfcCurve(columns["rpm"], columns["econ"])
            except MalformedModel as exc:
                raise SourceFormatError(CURVE_FILE, "econ", str(exc)) from exc
        if variant.has("econ"):
            bsfc = variant.number("econ")
        elif bsfc_curve is not None:
            bsfc = float(np.mean(bsfc_curve.values))
        else:
            return None
        try:
            return FuelEconomy(bsfc=bsfc, bsfc_curve=bsfc_curve)
        except EngineCraneError as exc:
            raise SourceFormatError(variant.block_name, "econ", str(exc)) from exc

    @staticmethod
    def _check_power_column(
        curve: TorqueCurve, power: np.ndarray, imperial: bool, warnings: List[ConversionWarning],
    ) -> None:
        if imperial:
            power = power * Unit.HORSEPOWER.factor
        expected = curve.powers()
        mismatch = np.abs(power - expected) > 0.02 * np.maximum(np.abs(expected), 1.0)
        if np.any(mismatch):
            message = (
                f"power column disagrees with torque at "
                f"{int(np.count_nonzero(mismatch))} samples; torque is used"
            )
            logger.warning(f"{CURVE_FILE}: {message}")
            warnings.append(ConversionWarning(CURVE_FILE, "power", message, WarningKind.ADJUSTED))

    def _build_turbo(self, blocks, fields_for, columns, torque_curve: TorqueCurve, imperial: bool) -> Optional[TurboConfig]:
        boost_curve = None
        if "boost" in columns:
            boost = columns["boost"]
            if imperial:
                boost = boost * Unit.PSI.factor
            if np.any(boost > 0.0):
                boost_curve = BoostCurve(columns["rpm"], boost)

        stage_keys = sorted(
            (key for key in blocks if TURBO_BLOCK.match(key)),
            key=lambda k: int(TURBO_BLOCK.match(k).group(1) or 0),
        )
        if not stage_keys and boost_curve is None:
            return None
        if not stage_keys:
            stage_keys = ["turbo"]

        stages = []
        for key in stage_keys:
            fields = fields_for(key, blocks[key].name if key in blocks else "Turbo")
            if fields.has("max_boost"):
                max_boost = fields.number("max_boost", units=PRESSURE)
            elif boost_curve is not None:
                max_boost = fields.number("max_boost", boost_curve.peak_boost()[1])
            else:
                raise SourceFormatError(
                    fields.block_name, "max_boost", "required when the torque table has no boost column"
                )
            default_ref = (
                boost_curve.peak_boost()[0] if boost_curve is not None else torque_curve.peak_torque()[0]
            )
            stages.append(TurboStage(
                max_boost=max_boost,
                reference_rpm=fields.number("reference_rpm", default_ref),
                lag_up=fields.number("lag_up", 0.965),
                lag_down=fields.number("lag_down", 0.99),
                wastegate=fields.number("wastegate", max_boost, units=PRESSURE),
                gamma=fields.number("gamma", 2.5),
            ))
        return TurboConfig(stages=tuple(stages), boost_curve=boost_curve)

    # ------------------------------------------------------------------
    # Drivetrain
    # ------------------------------------------------------------------

    def _build_drivetrain(self, fields: _Fields, engine: EngineModel) -> DrivetrainModel:
        raw_layout = fields.text("layout", "RWD")
        try:
            layout = TractionLayout.parse(raw_layout)
        except MalformedModel:
            raise SourceFormatError(fields.block_name, "layout", f"unknown layout {raw_layout!r}") from None

        gearbox = self._build_gearbox(fields)
        _, peak_torque = engine.peak_torque()
        clutch = Clutch(fields.number(
            "clutch_max_torque", round(CLUTCH_TORQUE_MARGIN * peak_torque, 1), units=TORQUE
        ))
        diff_power = fields.number("diff_power", 0.1)
        diff_coast = fields.number("diff_coast", 0.3)
        diff_preload = fields.number("diff_preload", 0.0, units=TORQUE)
        differential = Differential(diff_power, diff_coast, diff_preload)

        awd = None
        if layout is TractionLayout.AWD:
            awd = AwdSplit(
                front_share=fields.number("front_share", 0.4),
                front=Differential(
                    fields.number("front_power", 0.05),
                    fields.number("front_coast", 0.05),
                    fields.number("front_preload", 0.0, units=TORQUE),
                ),
                centre=CentreDifferential(
                    power_lock=fields.number("centre_power", 0.2),
                    coast_lock=fields.number("centre_coast", 0.2),
                    preload=fields.number("centre_preload", units=TORQUE),
                    ramp_torque=fields.number("centre_ramp_torque", units=TORQUE),
                    max_torque=fields.number("centre_max_torque", units=TORQUE),
                ),
                rear=Differential(
                    fields.number("rear_power", diff_power),
                    fields.number("rear_coast", diff_coast),
                    fields.number("rear_preload", diff_preload, units=TORQUE),
                ),
            )

        return DrivetrainModel(
            gearbox=gearbox,
            clutch=clutch,
            differential=differential,
            layout=layout,
            awd=awd,
        )

    def _build_gearbox(self, fields: _Fields) -> Gearbox:
        gear_entries = {}
        for key in fields.entries:
            match = GEAR_KEY.match(key)
            if match:
                gear_entries[int(match.group(1))] = key

        if gear_entries:
            indices = sorted(gear_entries)
            if indices != list(range(1, len(indices) + 1)):
                raise SourceFormatError(
                    fields.block_name, "gear_1",
                    f"forward gears must be numbered 1..N, got {indices}",
                )
            ratios = tuple(fields.number(gear_entries[i]) for i in indices)
        else:
            ratios = fields._default("gear_1..gear_N", DEFAULT_GEARS)

        gear_count = fields.integer("gear_count", len(ratios))
        if not gear_entries and gear_count != len(ratios):
            raise SourceFormatError(
                fields.block_name, "gear_1",
                f"gear_count is {gear_count} but no gear ratios are given",
            )
        return Gearbox(
            forward_ratios=ratios,
            reverse_ratio=fields.number("gear_r", 3.2),
            final_drive=fields.number("final_drive", 3.9),
            gear_count=gear_count,
        )
