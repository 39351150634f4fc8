"""
Engine model - simulator-agnostic description of one engine.

Holds:
- Measured torque curve
- Displacement, idle and redline speeds
- Rotating inertia and mass
- Optional turbo stages with a boost-by-rpm curve
- Optional friction data and external dimensions
- Optional fuel economy (brake specific fuel consumption)
"""

from dataclasses import dataclass, field, replace
from typing import List, Optional, Tuple

from enginecrane.errors import MalformedModel, ValidationIssue
from enginecrane.model.fields import (
    coerce,
    require_non_negative,
    require_plain,
)
from enginecrane.units.curve import BoostCurve, BsfcCurve, TorqueCurve
from enginecrane.units.quantity import Unit


@dataclass(frozen=True)
class TurboStage:
    """One turbocharger stage.

    ``lag_up``/``lag_down`` are per-step spool filter coefficients in
    [0, 1) (higher = slower), pressures are gauge bar.
    """
    max_boost: float            # bar
    reference_rpm: float        # rpm at which max_boost is reached
    lag_up: float = 0.965
    lag_down: float = 0.99
    wastegate: Optional[float] = None  # bar, defaults to max_boost
    gamma: float = 2.5          # boost build-up exponent

    def __post_init__(self):
        max_boost = coerce(self, "max_boost", Unit.BAR, "turbo")
        if max_boost < 0.0:
            raise MalformedModel("turbo.max_boost", f"cannot be negative: {max_boost}")
        coerce(self, "reference_rpm", Unit.RPM, "turbo")
        for name in ("lag_up", "lag_down"):
            if coerce(self, name, Unit.FRACTION, "turbo") >= 1.0:
                raise MalformedModel(f"turbo.{name}", "lag must be below 1.0")
        if self.wastegate is None:
            object.__setattr__(self, "wastegate", max_boost)
        coerce(self, "wastegate", Unit.BAR, "turbo")
        require_plain(self, "gamma", "turbo", positive=True)


@dataclass(frozen=True)
class TurboConfig:
    """Forced induction: one or more stages plus an optional boost curve."""
    stages: Tuple[TurboStage, ...]
    boost_curve: Optional[BoostCurve] = None

    def __post_init__(self):
        stages = tuple(self.stages)
        if not stages:
            raise MalformedModel("turbo.stages", "at least one stage is required")
        if not all(isinstance(s, TurboStage) for s in stages):
            raise MalformedModel("turbo.stages", "stages must be TurboStage values")
        if self.boost_curve is not None and not isinstance(self.boost_curve, BoostCurve):
            raise MalformedModel("turbo.boost_curve", "expected a BoostCurve")
        object.__setattr__(self, "stages", stages)

    @property
    def max_boost(self) -> float:
        """Highest boost in bar over stages and curve."""
        boost = max(stage.max_boost for stage in self.stages)
        if self.boost_curve is not None:
            boost = max(boost, self.boost_curve.peak_boost()[1])
        return boost

    def boost_at(self, rpm: float) -> float:
        """Gauge boost at ``rpm``; without a curve the first stage's maximum."""
        if self.boost_curve is not None:
            return self.boost_curve.boost_at(rpm)
        return self.stages[0].max_boost


@dataclass(frozen=True)
class EngineFriction:
    """Friction losses used to build coast (engine braking) torque."""
    static_torque: float = 0.0          # N·m
    dynamic_friction: float = 0.0       # N·m per rad/s
    engine_brake_torque: float = 0.0    # N·m

    def __post_init__(self):
        coerce(self, "static_torque", Unit.NEWTON_METRE, "friction")
        coerce(self, "engine_brake_torque", Unit.NEWTON_METRE, "friction")
        require_non_negative(self, "static_torque", "friction")
        require_non_negative(self, "engine_brake_torque", "friction")
        require_plain(self, "dynamic_friction", "friction")


@dataclass(frozen=True)
class EngineDimensions:
    """External block dimensions in mm."""
    length: float
    width: float
    height: float

    def __post_init__(self):
        for name in ("length", "width", "height"):
            coerce(self, name, Unit.MILLIMETRE, "dimensions")


@dataclass(frozen=True)
class FuelEconomy:
    """Brake specific fuel consumption.

    ``bsfc`` is the export's average figure; ``bsfc_curve`` gives it per
    rpm when the export has an econ column.
    """
    bsfc: float                         # g/kWh
    bsfc_curve: Optional[BsfcCurve] = None
    fuel_density: float = 750.0         # kg/m³ (petrol)

    def __post_init__(self):
        require_plain(self, "bsfc", "fuel", positive=True)
        require_plain(self, "fuel_density", "fuel", positive=True)
        if self.bsfc_curve is not None and not isinstance(self.bsfc_curve, BsfcCurve):
            raise MalformedModel("fuel.bsfc_curve", "expected a BsfcCurve")

    def bsfc_at(self, rpm: float) -> float:
        """g/kWh at ``rpm``; the average without a curve."""
        if self.bsfc_curve is not None:
            return self.bsfc_curve.bsfc_at(rpm)
        return self.bsfc


@dataclass(frozen=True)
class EngineDescription:
    """Informational metadata carried through from the source tool."""
    block_type: Optional[str] = None
    cylinders: Optional[int] = None
    head_type: Optional[str] = None
    valves: Optional[int] = None
    aspiration: Optional[str] = None
    fuel_type: Optional[str] = None
    build_year: Optional[int] = None


@dataclass(frozen=True)
class EngineModel:
    """Canonical engine: torque curve in N·m over rpm plus its limits.

    Numeric fields accept plain numbers (canonical units: cc, rpm, kg·m²,
    kg) or a Quantity of the right dimension.
    """
    name: str
    source_fingerprint: str
    torque_curve: TorqueCurve
    displacement: float         # cc
    idle_speed: float           # rpm
    redline: float              # rpm
    inertia: float = 0.15       # kg·m²
    mass: float = 150.0         # kg
    turbo: Optional[TurboConfig] = None
    friction: Optional[EngineFriction] = None
    dimensions: Optional[EngineDimensions] = None
    fuel: Optional[FuelEconomy] = None
    description: EngineDescription = field(default_factory=EngineDescription)

    def __post_init__(self):
        if not isinstance(self.name, str) or not self.name.strip():
            raise MalformedModel("engine.name", "a non-empty name is required")
        if not isinstance(self.source_fingerprint, str):
            raise MalformedModel("engine.source_fingerprint", "expected a string")
        if not isinstance(self.torque_curve, TorqueCurve):
            raise MalformedModel("engine.torque_curve", "expected a TorqueCurve")
        if self.fuel is not None and not isinstance(self.fuel, FuelEconomy):
            raise MalformedModel("engine.fuel", "expected FuelEconomy")

        if coerce(self, "displacement", Unit.CUBIC_CENTIMETRE, "engine") <= 0.0:
            raise MalformedModel("engine.displacement", "must be positive")
        idle = coerce(self, "idle_speed", Unit.RPM, "engine")
        redline = coerce(self, "redline", Unit.RPM, "engine")
        coerce(self, "inertia", Unit.KILOGRAM_METRE_SQ, "engine")
        coerce(self, "mass", Unit.KILOGRAM, "engine")

        if redline < self.torque_curve.max_speed:
            raise MalformedModel(
                "engine.redline",
                f"{redline:.0f} rpm is below the last torque sample "
                f"({self.torque_curve.max_speed:.0f} rpm)",
            )
        if not 0.0 < idle < redline:
            raise MalformedModel(
                "engine.idle_speed",
                f"{idle:.0f} rpm must be above 0 and below redline ({redline:.0f} rpm)",
            )

    @property
    def is_turbocharged(self) -> bool:
        return self.turbo is not None

    @property
    def identity(self) -> Tuple[str, str]:
        """Stable identity: (name, source fingerprint)."""
        return self.name, self.source_fingerprint

    def peak_torque(self) -> Tuple[float, float]:
        """(rpm, N·m) of the highest sampled torque."""
        return self.torque_curve.peak_torque()

    def peak_power(self) -> Tuple[float, float]:
        """(rpm, kW) of the highest sampled power."""
        return self.torque_curve.peak_power()

    def with_torque_curve(self, curve: TorqueCurve) -> "EngineModel":
        """New engine using ``curve``; invariants are re-checked."""
        return replace(self, torque_curve=curve)

    def validate(self) -> List[ValidationIssue]:
        """Advisory checks on physically implausible but legal values."""
        issues = []
        if not 0.02 <= self.inertia <= 2.0:
            issues.append(ValidationIssue(
                "engine.inertia", f"{self.inertia:.3f} kg·m² is outside 0.02-2.0"
            ))
        if not 20.0 <= self.mass <= 1500.0:
            issues.append(ValidationIssue(
                "engine.mass", f"{self.mass:.0f} kg is outside 20-1500"
            ))
        if self.idle_speed < self.torque_curve.min_speed:
            issues.append(ValidationIssue(
                "engine.idle_speed",
                f"idle {self.idle_speed:.0f} rpm is below the first torque sample",
            ))
        if self.redline > 1.25 * self.torque_curve.max_speed:
            issues.append(ValidationIssue(
                "engine.redline",
                "redline is more than 25% above the last torque sample",
            ))
        if self.fuel is not None and not 150.0 <= self.fuel.bsfc <= 600.0:
            issues.append(ValidationIssue(
                "engine.fuel.bsfc", f"{self.fuel.bsfc:.0f} g/kWh is outside 150-600"
            ))
        if self.turbo is not None and self.turbo.max_boost > 4.0:
            issues.append(ValidationIssue(
                "engine.turbo.max_boost", f"{self.turbo.max_boost:.2f} bar is above 4 bar"
            ))
        return issues
