"""
Sampled curves over engine speed.

Simulates nothing; it stores and queries:
- Torque curves (rpm -> N·m) with power derived in kW
- Boost curves (rpm -> bar gauge)
- Resampling to a target point count or fixed step without
  changing the physical curve inside the measured range
"""

from typing import List, Optional, Tuple
import logging
import numpy as np

from enginecrane.errors import MalformedModel
from enginecrane.units.quantity import RPM_TO_RAD_S

logger = logging.getLogger(__name__)

# Relative tolerance guaranteed for values at original sample speeds
RESAMPLE_TOLERANCE = 1e-6


class SampledCurve:
    """Immutable piecewise-linear curve over rotational speed (rpm).

    Speeds must be finite, non-negative and strictly increasing with at
    least two samples. Queries outside the sampled range are clamped to
    the nearest endpoint, never extrapolated.
    """

    field_name = "curve"
    value_label = "value"

    def __init__(self, speeds, values):
        speeds_arr = np.array(speeds, dtype=float)
        values_arr = np.array(values, dtype=float)

        if speeds_arr.ndim != 1 or values_arr.ndim != 1:
            raise MalformedModel(self.field_name, "samples must be one-dimensional")
        if speeds_arr.shape != values_arr.shape:
            raise MalformedModel(
                self.field_name,
                f"{len(speeds_arr)} speeds but {len(values_arr)} {self.value_label} samples",
            )
        if len(speeds_arr) < 2:
            raise MalformedModel(self.field_name, "at least 2 samples are required")
        if not (np.all(np.isfinite(speeds_arr)) and np.all(np.isfinite(values_arr))):
            raise MalformedModel(self.field_name, "samples must be finite")
        if speeds_arr[0] < 0.0:
            raise MalformedModel(self.field_name, "speeds cannot be negative")
        if not np.all(np.diff(speeds_arr) > 0.0):
            raise MalformedModel(self.field_name, "speeds must be strictly increasing")

        speeds_arr.setflags(write=False)
        values_arr.setflags(write=False)
        self._speeds = speeds_arr
        self._values = values_arr

    @property
    def speeds(self) -> np.ndarray:
        """Sample speeds in rpm (read-only)."""
        return self._speeds

    @property
    def values(self) -> np.ndarray:
        """Sample values (read-only)."""
        return self._values

    @property
    def min_speed(self) -> float:
        return float(self._speeds[0])

    @property
    def max_speed(self) -> float:
        return float(self._speeds[-1])

    def points(self) -> List[Tuple[float, float]]:
        """Samples as (rpm, value) tuples."""
        return [(float(s), float(v)) for s, v in zip(self._speeds, self._values)]

    def value_at(self, rpm):
        """Interpolate the curve at ``rpm`` (scalar or array), clamped at the ends."""
        result = np.interp(rpm, self._speeds, self._values)
        if np.ndim(result) == 0:
            return float(result)
        return result

    def resample(self, count: Optional[int] = None, step: Optional[float] = None):
        """Return a new curve of the same type with a different sample set.

        With ``count`` >= the current number of samples every original
        sample is kept and the extra samples are spread over the existing
        intervals in proportion to their width, so the result describes
        the same piecewise-linear curve. With a smaller ``count`` a uniform
        grid over the sampled range is used (lossy). With ``step`` the
        result holds a uniform grid plus every original sample.

        Args:
            count: Desired number of samples (>= 2)
            step: Fixed speed step in rpm (> 0)

        Returns:
            New curve covering exactly the original speed range
        """
        if (count is None) == (step is None):
            raise ValueError("exactly one of count or step is required")

        if step is not None:
            if not step > 0:
                raise ValueError(f"step must be positive, got {step}")
            grid = np.arange(self.min_speed, self.max_speed, step)
            new_speeds = np.unique(np.concatenate([grid, self._speeds]))
        else:
            count = int(count)
            if count < 2:
                raise ValueError(f"count must be at least 2, got {count}")
            if count >= len(self._speeds):
                new_speeds = self._refine(count)
            else:
                logger.debug(
                    f"Downsampling {type(self).__name__} from {len(self._speeds)} "
                    f"to {count} points"
                )
                new_speeds = np.linspace(self.min_speed, self.max_speed, count)

        new_values = np.interp(new_speeds, self._speeds, self._values)
        return type(self)(new_speeds, new_values)

    def _refine(self, count: int) -> np.ndarray:
        """Speeds with ``count`` samples that include every original speed."""
        widths = np.diff(self._speeds)
        extra = count - len(self._speeds)
        if extra == 0:
            return self._speeds.copy()

        # Largest-remainder allocation of extra samples per interval
        ideal = extra * widths / widths.sum()
        allocated = np.floor(ideal).astype(int)
        remaining = extra - int(allocated.sum())
        if remaining > 0:
            order = np.argsort(-(ideal - allocated), kind="stable")
            allocated[order[:remaining]] += 1

        speeds = [float(self._speeds[0])]
        for i, n_inside in enumerate(allocated):
            start, end = self._speeds[i], self._speeds[i + 1]
            fractions = np.arange(1, n_inside + 1) / (n_inside + 1)
            speeds.extend(float(s) for s in start + fractions * (end - start))
            speeds.append(float(end))
        return np.array(speeds)

    def __len__(self) -> int:
        return len(self._speeds)

    def __eq__(self, other) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return bool(
            np.array_equal(self._speeds, other._speeds)
            and np.array_equal(self._values, other._values)
        )

    def __hash__(self) -> int:
        return hash((type(self).__name__, self._speeds.tobytes(), self._values.tobytes()))

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}({len(self)} points, "
            f"{self.min_speed:.0f}-{self.max_speed:.0f} rpm)"
        )


class TorqueCurve(SampledCurve):
    """Engine torque in N·m over speed in rpm."""

    field_name = "torque_curve"
    value_label = "torque"

    @property
    def torques(self) -> np.ndarray:
        return self._values

    def torque_at(self, rpm):
        """Torque in N·m at ``rpm``."""
        return self.value_at(rpm)

    def power_at(self, rpm):
        """Power in kW at ``rpm``."""
        return self.torque_at(rpm) * np.asarray(rpm, dtype=float) * RPM_TO_RAD_S / 1000.0

    def powers(self) -> np.ndarray:
        """Power in kW at each sample speed."""
        return self._values * self._speeds * RPM_TO_RAD_S / 1000.0

    def peak_torque(self) -> Tuple[float, float]:
        """Highest sampled torque as (rpm, N·m)."""
        i = int(np.argmax(self._values))
        return float(self._speeds[i]), float(self._values[i])

    def peak_power(self) -> Tuple[float, float]:
        """Highest sampled power as (rpm, kW)."""
        powers = self.powers()
        i = int(np.argmax(powers))
        return float(self._speeds[i]), float(powers[i])


class BoostCurve(SampledCurve):
    """Turbo boost pressure in bar (gauge, may be negative) over rpm."""

    field_name = "boost_curve"
    value_label = "boost"

    @property
    def boosts(self) -> np.ndarray:
        return self._values

    def boost_at(self, rpm):
        """Gauge boost in bar at ``rpm``."""
        return self.value_at(rpm)

    def peak_boost(self) -> Tuple[float, float]:
        """Highest sampled boost as (rpm, bar)."""
        i = int(np.argmax(self._values))
        return float(self._speeds[i]), float(self._values[i])


class BsfcCurve(SampledCurve):
    """Brake specific fuel consumption in g/kWh over rpm."""

    field_name = "bsfc_curve"
    value_label = "bsfc"

    def __init__(self, speeds, values):
        super().__init__(speeds, values)
        if np.any(self._values <= 0.0):
            raise MalformedModel(self.field_name, "fuel consumption must be positive")

    def bsfc_at(self, rpm):
        """Fuel consumption in g/kWh at ``rpm``."""
        return self.value_at(rpm)
