"""
Translator contract and shared translation state.

A translator turns one CanonicalEngineUnit into a TargetConfigBundle. It
never writes files and never fails on out-of-range output: values are
clamped to the target's legal range and the clamp is recorded as a
warning naming the section and field.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import ClassVar, List, Optional, Tuple
import logging

import numpy as np

from enginecrane.config import MAX_CURVE_POINTS, MIN_CURVE_POINTS, TuningConfig
from enginecrane.errors import ConversionWarning, WarningKind
from enginecrane.model.drivetrain import TractionLayout
from enginecrane.model.unit import CanonicalEngineUnit
from enginecrane.translators import derivations
from enginecrane.units.curve import TorqueCurve

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConfigFile:
    """One named output file."""
    name: str
    content: bytes

    @property
    def text(self) -> str:
        return self.content.decode("utf-8")


@dataclass(frozen=True)
class TargetConfigBundle:
    """Translator output: ordered files plus warnings raised deriving them."""
    target: str
    files: Tuple[ConfigFile, ...]
    warnings: Tuple[ConversionWarning, ...] = ()

    def names(self) -> List[str]:
        return [f.name for f in self.files]

    def file(self, name: str) -> ConfigFile:
        for config_file in self.files:
            if config_file.name == name:
                return config_file
        raise KeyError(name)

    def warnings_for(self, section: str, field: Optional[str] = None) -> List[ConversionWarning]:
        return [
            w for w in self.warnings
            if w.section == section and (field is None or w.field == field)
        ]


class TranslationContext:
    """Per-call state: tuning options and collected warnings."""

    def __init__(self, target: str, tuning: TuningConfig):
        self.target = target
        self.tuning = tuning
        self.warnings: List[ConversionWarning] = []

    def warn(self, section: str, field: str, message: str, kind: WarningKind) -> None:
        logger.warning(f"{self.target}: {section}.{field}: {message}")
        self.warnings.append(ConversionWarning(section, field, message, kind))

    def clamp(self, section: str, field: str, value: float, low: float, high: float) -> float:
        """Clamp ``value`` into [low, high], recording a warning when it moves."""
        clamped = float(np.clip(value, low, high))
        if clamped != value:
            self.warn(
                section, field,
                f"{value:g} outside legal range [{low:g}, {high:g}], clamped to {clamped:g}",
                WarningKind.CLAMPED,
            )
        return clamped

    def clamp_series(self, section: str, field: str, values: np.ndarray, low: float, high: float) -> np.ndarray:
        """Clamp a whole table column with at most one warning."""
        clamped = np.clip(values, low, high)
        changed = int(np.count_nonzero(clamped != values))
        if changed:
            self.warn(
                section, field,
                f"{changed} values outside legal range [{low:g}, {high:g}] clamped",
                WarningKind.CLAMPED,
            )
        return clamped

    def defaulted(self, section: str, field: str, value: float, formula: str) -> float:
        """Record that ``value`` was derived because the model lacks it."""
        self.warn(
            section, field,
            f"not present in the model, defaulted to {value:g} ({formula})",
            WarningKind.DEFAULTED,
        )
        return value

    def resampled_curve(self, curve: TorqueCurve) -> TorqueCurve:
        """Torque curve at the requested resolution (source resolution if unset)."""
        points = self.tuning.torque_curve_points
        if points is None:
            return curve
        count = int(self.clamp("tuning", "torque_curve_points", points, MIN_CURVE_POINTS, MAX_CURVE_POINTS))
        return curve.resample(count=count)


class Translator(ABC):
    """Derives one target simulator's configuration from a canonical unit."""

    target: ClassVar[str]

    def translate(self, unit: CanonicalEngineUnit, tuning: TuningConfig | None = None) -> TargetConfigBundle:
        """Translate ``unit`` for this target.

        Args:
            unit: Canonical unit; left untouched
            tuning: Target-independent tuning options

        Returns:
            Bundle of files and warnings
        """
        ctx = TranslationContext(self.target, tuning or TuningConfig())
        unit = self._apply_layout_override(unit, ctx)
        files = tuple(self._build(unit, ctx))
        logger.info(
            f"Translated '{unit.name}' for {self.target}: "
            f"{len(files)} files, {len(ctx.warnings)} warnings"
        )
        return TargetConfigBundle(target=self.target, files=files, warnings=tuple(ctx.warnings))

    @abstractmethod
    def _build(self, unit: CanonicalEngineUnit, ctx: TranslationContext) -> List[ConfigFile]:
        """Produce the target files for an already layout-resolved unit."""

    @staticmethod
    def _apply_layout_override(unit: CanonicalEngineUnit, ctx: TranslationContext) -> CanonicalEngineUnit:
        layout = ctx.tuning.preferred_traction_layout
        drivetrain = unit.drivetrain
        if layout is None or layout is drivetrain.layout:
            return unit

        awd = drivetrain.awd
        if layout is TractionLayout.AWD and awd is None:
            awd = derivations.default_awd_split(drivetrain.differential)
            ctx.warn(
                "drivetrain", "awd",
                f"layout forced to AWD without split data; defaulted to "
                f"{awd.front_share:.0%} front share",
                WarningKind.DEFAULTED,
            )
        logger.debug(f"Traction layout overridden: {drivetrain.layout.value} -> {layout.value}")
        return unit.with_drivetrain(drivetrain.with_layout(layout, awd))
