"""
Drivetrain model - gearbox, clutch, differentials and traction layout.

Lock values are engagement fractions in [0, 1]. Ratios are positive
magnitudes; the reverse ratio is stored positive as well and each target
format applies its own sign convention.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import List, Optional, Tuple

from enginecrane.errors import MalformedModel, ValidationIssue
from enginecrane.model.fields import coerce, coerce_optional, require_non_negative
from enginecrane.units.quantity import Unit


class TractionLayout(Enum):
    """Driven axles."""
    FWD = "FWD"
    RWD = "RWD"
    AWD = "AWD"

    @classmethod
    def parse(cls, value) -> "TractionLayout":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError as exc:
            raise MalformedModel("drivetrain.layout", f"unknown traction layout {value!r}") from exc


def _check_ratio(value, field_name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MalformedModel(field_name, f"expected a number, got {value!r}")
    value = float(value)
    if not value > 0.0 or value == float("inf"):
        raise MalformedModel(field_name, f"ratio must be non-zero and positive, got {value}")
    return value


@dataclass(frozen=True)
class Gearbox:
    """Forward ratios 1..N, one reverse ratio and the final drive."""
    forward_ratios: Tuple[float, ...]
    reverse_ratio: float
    final_drive: float
    gear_count: Optional[int] = None

    def __post_init__(self):
        ratios = tuple(
            _check_ratio(r, f"gearbox.gear_{i}")
            for i, r in enumerate(self.forward_ratios, start=1)
        )
        if not ratios:
            raise MalformedModel("gearbox.forward_ratios", "at least one forward gear is required")
        count = len(ratios) if self.gear_count is None else self.gear_count
        if isinstance(count, bool) or not isinstance(count, int) or count != len(ratios):
            raise MalformedModel(
                "gearbox.gear_count",
                f"declared {count} gears but {len(ratios)} forward ratios given",
            )
        reverse = self.reverse_ratio
        if isinstance(reverse, (int, float)) and not isinstance(reverse, bool):
            reverse = abs(reverse)
        object.__setattr__(self, "forward_ratios", ratios)
        object.__setattr__(self, "gear_count", count)
        object.__setattr__(self, "reverse_ratio", _check_ratio(reverse, "gearbox.gear_r"))
        object.__setattr__(self, "final_drive", _check_ratio(self.final_drive, "gearbox.final_drive"))

    def ratio(self, gear: int) -> float:
        """Ratio of forward gear ``gear`` (1-based)."""
        return self.forward_ratios[gear - 1]

    def overall_ratio(self, gear: int) -> float:
        """Gear ratio times final drive."""
        return self.ratio(gear) * self.final_drive

    def min_step_quotient(self) -> float:
        """Smallest quotient r(n+1)/r(n) between adjacent forward gears.

        The largest engine-speed drop across a shift is (1 - quotient)
        of the speed before the shift. A single-speed box returns 1.0.
        """
        if self.gear_count < 2:
            return 1.0
        ratios = self.forward_ratios
        return min(ratios[i + 1] / ratios[i] for i in range(len(ratios) - 1))


@dataclass(frozen=True)
class Clutch:
    """Clutch torque capacity in N·m."""
    max_torque: float

    def __post_init__(self):
        coerce(self, "max_torque", Unit.NEWTON_METRE, "clutch")
        require_non_negative(self, "max_torque", "clutch")


@dataclass(frozen=True)
class Differential:
    """Limited-slip differential with power/coast lock fractions."""
    power_lock: float
    coast_lock: float
    preload: float = 0.0    # N·m

    def __post_init__(self):
        coerce(self, "power_lock", Unit.FRACTION, "differential")
        coerce(self, "coast_lock", Unit.FRACTION, "differential")
        coerce(self, "preload", Unit.NEWTON_METRE, "differential")
        require_non_negative(self, "preload", "differential")

    @property
    def is_open(self) -> bool:
        return self.power_lock == 0.0 and self.coast_lock == 0.0

    @property
    def is_locked(self) -> bool:
        return self.power_lock == 1.0 and self.coast_lock == 1.0


@dataclass(frozen=True)
class CentreDifferential:
    """Centre coupling of an AWD layout.

    Either a lock-fraction differential (preload) or a ramp-torque
    coupling (ramp_torque / max_torque). Absent values are derived by the
    translators.
    """
    power_lock: float
    coast_lock: float
    preload: Optional[float] = None       # N·m
    ramp_torque: Optional[float] = None   # N·m
    max_torque: Optional[float] = None    # N·m

    def __post_init__(self):
        coerce(self, "power_lock", Unit.FRACTION, "centre")
        coerce(self, "coast_lock", Unit.FRACTION, "centre")
        for name in ("preload", "ramp_torque", "max_torque"):
            coerce_optional(self, name, Unit.NEWTON_METRE, "centre")
            require_non_negative(self, name, "centre")

    @property
    def uses_ramp(self) -> bool:
        return self.ramp_torque is not None


@dataclass(frozen=True)
class AwdSplit:
    """All-wheel-drive torque split and per-axle differentials."""
    front_share: float
    front: Differential
    centre: CentreDifferential
    rear: Differential

    def __post_init__(self):
        coerce(self, "front_share", Unit.FRACTION, "awd")
        for name, kind in (("front", Differential), ("centre", CentreDifferential), ("rear", Differential)):
            if not isinstance(getattr(self, name), kind):
                raise MalformedModel(f"awd.{name}", f"expected {kind.__name__}")

    @property
    def rear_share(self) -> float:
        return 1.0 - self.front_share


@dataclass(frozen=True)
class DrivetrainModel:
    """Complete drivetrain; AWD layouts must carry an AwdSplit."""
    gearbox: Gearbox
    clutch: Clutch
    differential: Differential
    layout: TractionLayout = TractionLayout.RWD
    awd: Optional[AwdSplit] = None

    def __post_init__(self):
        object.__setattr__(self, "layout", TractionLayout.parse(self.layout))
        if self.layout is TractionLayout.AWD and self.awd is None:
            raise MalformedModel("drivetrain.awd", "AWD layout requires an AWD split")
        if self.layout is not TractionLayout.AWD and self.awd is not None:
            raise MalformedModel("drivetrain.awd", f"{self.layout.value} layout cannot carry an AWD split")

    def with_layout(self, layout: TractionLayout, awd: Optional[AwdSplit] = None) -> "DrivetrainModel":
        """New drivetrain with a different traction layout."""
        return replace(self, layout=layout, awd=awd if layout is TractionLayout.AWD else None)

    def validate(self) -> List[ValidationIssue]:
        issues = []
        ratios = self.gearbox.forward_ratios
        if any(b >= a for a, b in zip(ratios, ratios[1:])):
            issues.append(ValidationIssue(
                "gearbox.forward_ratios", "forward ratios are not strictly decreasing"
            ))
        if self.gearbox.final_drive > 8.0:
            issues.append(ValidationIssue(
                "gearbox.final_drive", f"{self.gearbox.final_drive:.2f} is unusually short"
            ))
        return issues
