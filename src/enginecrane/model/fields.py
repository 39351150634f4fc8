"""Coercion helpers shared by the canonical model dataclasses."""

from typing import Optional
import math

from enginecrane.errors import InvalidQuantity, MalformedModel, UnitMismatch
from enginecrane.units.quantity import Quantity, Unit, as_unit


def coerce(obj, name: str, unit: Unit, owner: str) -> float:
    """Replace ``obj.name`` by its float value in ``unit``.

    Plain numbers are taken as already canonical. A quantity of the wrong
    dimension is a model error, an out-of-domain value stays an
    InvalidQuantity.
    """
    raw = getattr(obj, name)
    if isinstance(raw, bool) or not isinstance(raw, (int, float, Quantity)):
        raise MalformedModel(f"{owner}.{name}", f"expected a number, got {raw!r}")
    try:
        value = as_unit(raw, unit)
    except UnitMismatch as exc:
        raise MalformedModel(f"{owner}.{name}", str(exc)) from exc
    except InvalidQuantity as exc:
        raise InvalidQuantity(f"{owner}.{name}: {exc}") from exc
    object.__setattr__(obj, name, value)
    return value


def coerce_optional(obj, name: str, unit: Unit, owner: str) -> Optional[float]:
    if getattr(obj, name) is None:
        return None
    return coerce(obj, name, unit, owner)


def require_non_negative(obj, name: str, owner: str) -> None:
    """Non-negativity for quantities whose dimension allows negatives (torque)."""
    value = getattr(obj, name)
    if value is not None and value < 0.0:
        raise InvalidQuantity(f"{owner}.{name} cannot be negative: {value}")


def require_plain(obj, name: str, owner: str, positive: bool = False) -> float:
    """Validate a unitless float field that has no Unit of its own."""
    raw = getattr(obj, name)
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise MalformedModel(f"{owner}.{name}", f"expected a number, got {raw!r}")
    try:
        value = float(raw)
    except OverflowError:
        raise InvalidQuantity(f"{owner}.{name} out of range: {raw}") from None
    if not math.isfinite(value) or value < 0.0 or (positive and value == 0.0):
        raise InvalidQuantity(f"{owner}.{name} out of range: {raw}")
    object.__setattr__(obj, name, value)
    return value
