"""
Units module - typed physical quantities and sampled curves.

This module contains:
- Quantity: a value tagged with a Unit, converted only explicitly
- TorqueCurve / BoostCurve / BsfcCurve: immutable rpm-indexed curves with resampling
"""

from enginecrane.units.quantity import (
    Dimension,
    Unit,
    Quantity,
    as_unit,
    power_from_torque,
    torque_from_power,
    kw_to_bhp,
)
from enginecrane.units.curve import SampledCurve, TorqueCurve, BoostCurve, BsfcCurve

__all__ = [
    "Dimension",
    "Unit",
    "Quantity",
    "as_unit",
    "power_from_torque",
    "torque_from_power",
    "kw_to_bhp",
    "SampledCurve",
    "TorqueCurve",
    "BoostCurve",
    "BsfcCurve",
]
