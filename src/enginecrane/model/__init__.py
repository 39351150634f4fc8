"""
Model module - the canonical, simulator-agnostic engine description.

This module contains:
- EngineModel: torque curve, limits, turbo, friction, dimensions, fuel economy
- DrivetrainModel: gearbox, clutch, differentials, AWD split, layout
- CanonicalEngineUnit: engine + drivetrain + provenance
"""

from enginecrane.model.engine import (
    EngineModel,
    TurboStage,
    TurboConfig,
    EngineFriction,
    EngineDimensions,
    EngineDescription,
    FuelEconomy,
)
from enginecrane.model.drivetrain import (
    TractionLayout,
    Gearbox,
    Clutch,
    Differential,
    CentreDifferential,
    AwdSplit,
    DrivetrainModel,
)
from enginecrane.model.unit import Provenance, CanonicalEngineUnit

__all__ = [
    "EngineModel",
    "TurboStage",
    "TurboConfig",
    "EngineFriction",
    "EngineDimensions",
    "EngineDescription",
    "FuelEconomy",
    "TractionLayout",
    "Gearbox",
    "Clutch",
    "Differential",
    "CentreDifferential",
    "AwdSplit",
    "DrivetrainModel",
    "Provenance",
    "CanonicalEngineUnit",
]
