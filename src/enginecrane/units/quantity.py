"""
Physical quantities - values tagged with an explicit unit.

Provides:
- Dimension and Unit enums with conversion factors to a per-dimension base
- Quantity: immutable value + unit, validated on construction
- Pure conversion helpers used by the reader and the translators

Arithmetic between quantities is only allowed when both carry the same
unit. Everything else goes through Quantity.to().
"""

from dataclasses import dataclass
from enum import Enum
from functools import total_ordering
from typing import Union
import math

from enginecrane.errors import InvalidQuantity, UnitMismatch


# Base-unit conversion constants
RPM_TO_RAD_S = math.pi / 30.0
RAD_S_TO_RPM = 30.0 / math.pi
LB_FT_TO_NM = 1.3558179483314004
HP_TO_KW = 0.745699872
KW_TO_BHP = 1.341
PSI_TO_BAR = 0.0689475729
LB_TO_KG = 0.45359237
LB_FT2_TO_KG_M2 = 0.0421401101
INCH_TO_MM = 25.4
CUBIC_INCH_TO_CC = 16.387064


class Dimension(Enum):
    """Physical dimension of a unit."""
    TORQUE = "torque"
    POWER = "power"
    SPEED = "rotational speed"
    MASS = "mass"
    INERTIA = "moment of inertia"
    RATIO = "ratio"
    FRACTION = "fraction"
    PRESSURE = "pressure"
    LENGTH = "length"
    VOLUME = "volume"
    TIME = "time"


NON_NEGATIVE = frozenset({
    Dimension.SPEED,
    Dimension.MASS,
    Dimension.INERTIA,
    Dimension.LENGTH,
    Dimension.VOLUME,
    Dimension.TIME,
})


class Unit(Enum):
    """Supported units as (symbol, dimension, factor to the dimension base).

    Base units: N·m, kW, rpm, kg, kg·m², ratio, fraction, bar (gauge),
    mm, cc and seconds.
    """
    NEWTON_METRE = ("N·m", Dimension.TORQUE, 1.0)
    POUND_FOOT = ("lb·ft", Dimension.TORQUE, LB_FT_TO_NM)
    KILOWATT = ("kW", Dimension.POWER, 1.0)
    WATT = ("W", Dimension.POWER, 0.001)
    HORSEPOWER = ("hp", Dimension.POWER, HP_TO_KW)
    RPM = ("rpm", Dimension.SPEED, 1.0)
    RADIAN_PER_SECOND = ("rad/s", Dimension.SPEED, RAD_S_TO_RPM)
    KILOGRAM = ("kg", Dimension.MASS, 1.0)
    POUND = ("lb", Dimension.MASS, LB_TO_KG)
    KILOGRAM_METRE_SQ = ("kg·m²", Dimension.INERTIA, 1.0)
    POUND_FOOT_SQ = ("lb·ft²", Dimension.INERTIA, LB_FT2_TO_KG_M2)
    RATIO = (":1", Dimension.RATIO, 1.0)
    FRACTION = ("frac", Dimension.FRACTION, 1.0)
    PERCENT = ("%", Dimension.FRACTION, 0.01)
    BAR = ("bar", Dimension.PRESSURE, 1.0)
    KILOPASCAL = ("kPa", Dimension.PRESSURE, 0.01)
    PSI = ("psi", Dimension.PRESSURE, PSI_TO_BAR)
    MILLIMETRE = ("mm", Dimension.LENGTH, 1.0)
    INCH = ("in", Dimension.LENGTH, INCH_TO_MM)
    CUBIC_CENTIMETRE = ("cc", Dimension.VOLUME, 1.0)
    LITRE = ("L", Dimension.VOLUME, 1000.0)
    CUBIC_INCH = ("in³", Dimension.VOLUME, CUBIC_INCH_TO_CC)
    SECOND = ("s", Dimension.TIME, 1.0)
    MILLISECOND = ("ms", Dimension.TIME, 0.001)

    def __init__(self, symbol: str, dimension: Dimension, factor: float):
        self.symbol = symbol
        self.dimension = dimension
        self.factor = factor


Number = Union[int, float]


@total_ordering
@dataclass(frozen=True)
class Quantity:
    """A finite numeric value with an explicit unit.

    Construction fails with InvalidQuantity when the value is not finite,
    negative for a non-negative dimension (speed, mass, inertia, length,
    volume, time), or outside [0, 1] for a fraction.
    """
    value: float
    unit: Unit

    def __post_init__(self):
        if not isinstance(self.unit, Unit):
            raise InvalidQuantity(f"not a unit: {self.unit!r}")
        try:
            value = float(self.value)
        except (TypeError, ValueError, OverflowError) as exc:
            raise InvalidQuantity(f"not a number: {self.value!r}") from exc
        if not math.isfinite(value):
            raise InvalidQuantity(f"{value} {self.unit.symbol} is not finite")

        dimension = self.unit.dimension
        if dimension in NON_NEGATIVE and value < 0.0:
            raise InvalidQuantity(
                f"{dimension.value} cannot be negative: {value} {self.unit.symbol}"
            )
        if dimension is Dimension.FRACTION and not 0.0 <= value * self.unit.factor <= 1.0:
            raise InvalidQuantity(
                f"fraction must lie in [0, 1]: {value} {self.unit.symbol}"
            )
        object.__setattr__(self, "value", value)

    @property
    def dimension(self) -> Dimension:
        return self.unit.dimension

    def to(self, unit: Unit) -> "Quantity":
        """Convert to another unit of the same dimension.

        Args:
            unit: Target unit

        Returns:
            New quantity expressed in ``unit``

        Raises:
            UnitMismatch: If ``unit`` measures a different dimension
        """
        if unit.dimension is not self.unit.dimension:
            raise UnitMismatch(
                f"cannot convert {self.unit.symbol} ({self.unit.dimension.value}) "
                f"to {unit.symbol} ({unit.dimension.value})"
            )
        if unit is self.unit:
            return self
        return Quantity(self.value * self.unit.factor / unit.factor, unit)

    def magnitude(self, unit: Unit) -> float:
        """Plain float value of this quantity expressed in ``unit``."""
        return self.to(unit).value

    def _same_unit(self, other: "Quantity", op: str) -> None:
        if other.unit is not self.unit:
            raise UnitMismatch(
                f"cannot {op} {self.unit.symbol} and {other.unit.symbol}; convert first"
            )

    def __add__(self, other):
        if not isinstance(other, Quantity):
            return NotImplemented
        self._same_unit(other, "add")
        return Quantity(self.value + other.value, self.unit)

    def __sub__(self, other):
        if not isinstance(other, Quantity):
            return NotImplemented
        self._same_unit(other, "subtract")
        return Quantity(self.value - other.value, self.unit)

    def __mul__(self, other):
        if isinstance(other, Quantity):
            raise UnitMismatch("multiplying two quantities needs an explicit conversion helper")
        if not isinstance(other, (int, float)):
            return NotImplemented
        return Quantity(self.value * other, self.unit)

    __rmul__ = __mul__

    def __truediv__(self, other):
        if isinstance(other, Quantity):
            self._same_unit(other, "divide")
            return self.value / other.value
        if not isinstance(other, (int, float)):
            return NotImplemented
        return Quantity(self.value / other, self.unit)

    def __neg__(self):
        return Quantity(-self.value, self.unit)

    def __lt__(self, other):
        if not isinstance(other, Quantity):
            return NotImplemented
        self._same_unit(other, "compare")
        return self.value < other.value

    def __str__(self) -> str:
        return f"{self.value:g} {self.unit.symbol}"


def as_unit(value: Union[Number, Quantity], unit: Unit) -> float:
    """Express ``value`` in ``unit``.

    Plain numbers are taken to already be in ``unit`` and are validated as
    such; quantities are converted.

    Raises:
        InvalidQuantity: If the value is out of domain
        UnitMismatch: If a quantity of another dimension is given
    """
    if isinstance(value, Quantity):
        return value.magnitude(unit)
    return Quantity(value, unit).value


def power_from_torque(torque: Quantity, speed: Quantity) -> Quantity:
    """Mechanical power delivered at ``torque`` and ``speed``.

    P[kW] = T[N·m] * n[rpm] * 2π / 60000
    """
    torque_nm = torque.magnitude(Unit.NEWTON_METRE)
    speed_rpm = speed.magnitude(Unit.RPM)
    return Quantity(torque_nm * speed_rpm * RPM_TO_RAD_S / 1000.0, Unit.KILOWATT)


def torque_from_power(power: Quantity, speed: Quantity) -> Quantity:
    """Torque needed to deliver ``power`` at ``speed``.

    Raises:
        InvalidQuantity: If the speed is zero
    """
    speed_rpm = speed.magnitude(Unit.RPM)
    if speed_rpm == 0.0:
        raise InvalidQuantity("torque is undefined at zero speed")
    power_kw = power.magnitude(Unit.KILOWATT)
    return Quantity(power_kw * 1000.0 / (speed_rpm * RPM_TO_RAD_S), Unit.NEWTON_METRE)


def kw_to_bhp(kw: float) -> float:
    """Convert kilowatts to brake horsepower (game-display convention)."""
    return kw * KW_TO_BHP


def rpm_to_rad_s(rpm: float) -> float:
    return rpm * RPM_TO_RAD_S


def bar_to_psi(bar: float) -> float:
    return bar / PSI_TO_BAR
