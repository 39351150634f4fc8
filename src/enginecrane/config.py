"""
Tuning Configuration

Per-translation options shared by every target translator.
"""

from dataclasses import dataclass, fields
from typing import Any, Dict, Mapping, Optional
import logging
import tomllib

from enginecrane.model.drivetrain import TractionLayout

logger = logging.getLogger(__name__)

MIN_CURVE_POINTS = 2
MAX_CURVE_POINTS = 200


@dataclass(frozen=True)
class AutoclutchProfile:
    """Named autoclutch preset.

    Profile times are milliseconds at which the clutch is fully open,
    starts closing and is fully closed again during a downshift.
    """
    name: str
    points: tuple = ()
    use_on_changes: bool = True
    forced_on: bool = False


AUTOCLUTCH_PRESETS: Dict[str, AutoclutchProfile] = {
    "none": AutoclutchProfile("none", (), use_on_changes=False),
    "street": AutoclutchProfile("street", (50, 170, 300), forced_on=True),
    "race": AutoclutchProfile("race", (10, 190, 250)),
    # points derived from the downshift time by the translator
    "derived": AutoclutchProfile("derived"),
}


@dataclass
class TuningConfig:
    """Target-independent tuning options for a translation."""

    # Torque curve resolution (None keeps the source resolution)
    torque_curve_points: Optional[int] = None

    # Override the unit's traction layout
    preferred_traction_layout: Optional[TractionLayout] = None

    # One of AUTOCLUTCH_PRESETS
    autoclutch_profile: str = "derived"

    # Whole-car mass in kg for the UI weight and power-to-weight specs
    car_mass: Optional[float] = None

    def __post_init__(self):
        """Validate and normalize configuration."""
        if self.preferred_traction_layout is not None:
            self.preferred_traction_layout = TractionLayout.parse(self.preferred_traction_layout)

        profile = str(self.autoclutch_profile).strip().lower()
        if profile not in AUTOCLUTCH_PRESETS:
            raise ValueError(
                f"unknown autoclutch profile {self.autoclutch_profile!r}; "
                f"expected one of {sorted(AUTOCLUTCH_PRESETS)}"
            )
        self.autoclutch_profile = profile

        if self.torque_curve_points is not None:
            if isinstance(self.torque_curve_points, bool):
                raise ValueError("torque_curve_points must be an integer")
            self.torque_curve_points = int(self.torque_curve_points)

        if self.car_mass is not None:
            if isinstance(self.car_mass, bool) or not float(self.car_mass) > 0.0:
                raise ValueError(f"car_mass must be a positive number, got {self.car_mass!r}")
            self.car_mass = float(self.car_mass)

    @property
    def autoclutch(self) -> AutoclutchProfile:
        return AUTOCLUTCH_PRESETS[self.autoclutch_profile]

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TuningConfig":
        """Build from a mapping; unknown keys are logged and ignored."""
        known = {f.name for f in fields(cls)}
        for key in data:
            if key not in known:
                logger.warning(f"Ignoring unknown tuning option '{key}'")
        return cls(**{k: v for k, v in data.items() if k in known})

    @classmethod
    def from_toml(cls, text: str) -> "TuningConfig":
        """Build from the ``[tuning]`` table of a TOML document."""
        document = tomllib.loads(text)
        return cls.from_dict(document.get("tuning", {}))
