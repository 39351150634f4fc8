"""
enginecrane - Automation engine exports to BeamNG / Assetto Corsa configs.

This package provides:
- Typed physical quantities and resampleable torque curves
- A canonical, simulator-agnostic engine + drivetrain model
- An Automation export reader
- BeamNG and Assetto Corsa translators with clamping and warnings
- A versioned, fingerprinted crate engine container
"""

__version__ = "0.1.0"

from enginecrane.model.unit import CanonicalEngineUnit
from enginecrane.automation.reader import AutomationReader
from enginecrane.config import TuningConfig
from enginecrane.translators import get_translator
from enginecrane.crate.codec import encode, decode

__all__ = [
    "CanonicalEngineUnit",
    "AutomationReader",
    "TuningConfig",
    "get_translator",
    "encode",
    "decode",
    "__version__",
]
