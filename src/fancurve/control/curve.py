"""Fan curve model and interpolation."""

from typing import List, Dict, Any, Optional
from dataclasses import dataclass, field
from enum import Enum
import logging
import math

logger = logging.getLogger(__name__)

# Visualization domain, inclusive
SAMPLE_MIN_TEMP = 0
SAMPLE_MAX_TEMP = 100


class InterpolationMode(Enum):
    """How speeds between control points are derived"""
    GRADUAL = "gradual"  # Linear between points, clamped at the ends
    HARDCUT = "hardcut"  # Step at each threshold, 0 below the first

    @classmethod
    def from_value(cls, value: Any) -> "InterpolationMode":
        """Resolve a mode name, treating anything but "hardcut" as gradual."""
        if isinstance(value, cls):
            return value
        if value == cls.HARDCUT.value:
            return cls.HARDCUT
        return cls.GRADUAL


@dataclass
class CurvePoint:
    """A single temperature to fan speed mapping.

    Attributes:
        temperature: Temperature in Celsius
        speed: Fan speed percentage (0-100)
    """
    temperature: float
    speed: float

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CurvePoint":
        """Build a point from its JSON form.

        Args:
            data: Mapping with "temperature" and "fanSpeed" keys

        Returns:
            Parsed point

        Raises:
            ValueError: If a field is missing, not numeric or out of range
        """
        if not isinstance(data, dict):
            raise ValueError(f"Invalid point {data!r}, expected an object")
        try:
            temperature = data["temperature"]
            speed = data["fanSpeed"]
        except KeyError as e:
            raise ValueError(f"Point is missing field {e}")

        for name, value in (("temperature", temperature), ("fanSpeed", speed)):
            # bool is an int subclass but never a valid reading
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValueError(f"Invalid {name} {value!r}, must be a number")
            try:
                number = float(value)
            except OverflowError:
                raise ValueError(f"Invalid {name}, number too large")
            if not math.isfinite(number):
                raise ValueError(f"Invalid {name} {value!r}, must be finite")

        temperature, speed = float(temperature), float(speed)
        if not 0 <= speed <= 100:
            raise ValueError(f"Invalid speed {speed}%, must be 0-100")

        return cls(temperature=temperature, speed=speed)

    def to_dict(self) -> Dict[str, float]:
        return {"temperature": self.temperature, "fanSpeed": self.speed}


@dataclass
class CurveConfig:
    """Control points plus the interpolation mode.

    Points may be in any order. Every consumer sorts a copy before use.
    """
    points: List[CurvePoint] = field(default_factory=list)
    mode: InterpolationMode = InterpolationMode.GRADUAL

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CurveConfig":
        """Build a config from its JSON form.

        Raises:
            ValueError: If the document is not a valid curve
        """
        if not isinstance(data, dict):
            raise ValueError("Curve config must be an object")
        raw_points = data.get("points")
        if raw_points is None:
            raw_points = []
        if not isinstance(raw_points, list):
            raise ValueError("Curve config points must be a list")

        return cls(
            points=[CurvePoint.from_dict(p) for p in raw_points],
            mode=InterpolationMode.from_value(data.get("interpolationMode"))
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "points": [p.to_dict() for p in self.points],
            "interpolationMode": self.mode.value
        }


def default_config() -> CurveConfig:
    """Curve used until the user saves one"""
    return CurveConfig(
        points=[
            CurvePoint(30, 25),
            CurvePoint(60, 50),
            CurvePoint(80, 100)
        ],
        mode=InterpolationMode.GRADUAL
    )


@dataclass
class SampledCurve:
    """Curve evaluated across the visualization domain.

    Attributes:
        samples: (temperature, speed) pairs for every integer temperature
        control_points: Points of the config the samples came from
    """
    samples: List[tuple]
    control_points: List[CurvePoint]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SampledCurve":
        """Parse a stored chart. The service only writes curve.json, this is
        for inspecting it.
        """
        if not isinstance(data, dict):
            raise ValueError("Sampled curve must be an object")
        try:
            samples = [(int(s["x"]), float(s["y"])) for s in data["curveData"]]
        except (KeyError, TypeError, ValueError, OverflowError) as e:
            raise ValueError(f"Invalid curve data: {e}")
        points = [CurvePoint.from_dict(p) for p in data.get("controlPoints") or []]
        return cls(samples=samples, control_points=points)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "curveData": [{"x": x, "y": y} for x, y in self.samples],
            "controlPoints": [p.to_dict() for p in self.control_points]
        }


class FanCurve:
    """Base class for fan speed curves."""

    def __init__(self, points: List[CurvePoint]):
        """Initialize with control points.

        Args:
            points: Control points in any order. The list is copied, never
                modified.
        """
        # Stable sort, equal temperatures keep their input order
        self.points = sorted(points, key=lambda p: p.temperature)

    def get_speed(self, temperature: float) -> float:
        """Get fan speed percentage for a temperature.

        Args:
            temperature: Temperature in Celsius

        Returns:
            Fan speed percentage
        """
        raise NotImplementedError


class GradualCurve(FanCurve):
    """Linear interpolation between control points."""

    def get_speed(self, temperature: float) -> float:
        """Get interpolated fan speed for temperature.

        Below the first point and above the last one the speed is clamped to
        that point's speed. With duplicate temperatures the first bracket in
        ascending order wins.
        """
        if not self.points:
            return 0.0
        if len(self.points) == 1:
            return self.points[0].speed

        # Handle temperature outside the curve
        if temperature <= self.points[0].temperature:
            return self.points[0].speed
        if temperature >= self.points[-1].temperature:
            return self.points[-1].speed

        for p1, p2 in zip(self.points, self.points[1:]):
            if p1.temperature <= temperature <= p2.temperature:
                span = p2.temperature - p1.temperature
                if span == 0:
                    return p1.speed
                ratio = (temperature - p1.temperature) / span
                return p1.speed + ratio * (p2.speed - p1.speed)

        # Unreachable for finite input, temperature is inside the curve
        return 0.0


class HardCutCurve(FanCurve):
    """Step function between control points."""

    def get_speed(self, temperature: float) -> float:
        """Get stepped fan speed for temperature.

        Returns the speed of the last threshold at or below the temperature,
        or 0 when the temperature is below every threshold.
        """
        speed = 0.0
        for point in self.points:
            if point.temperature > temperature:
                break
            speed = point.speed
        return speed


CURVE_TYPES = {
    InterpolationMode.GRADUAL: GradualCurve,
    InterpolationMode.HARDCUT: HardCutCurve
}


def build_curve(config: CurveConfig) -> FanCurve:
    """Create the curve implementation for a config's mode"""
    mode = InterpolationMode.from_value(config.mode)
    return CURVE_TYPES[mode](config.points)


def calculate_fan_speed(temperature: float, config: CurveConfig) -> float:
    """Evaluate a curve config at a temperature.

    Args:
        temperature: Temperature in Celsius
        config: Curve to evaluate, left unmodified

    Returns:
        Fan speed percentage, 0 for an empty curve
    """
    return build_curve(config).get_speed(temperature)


def generate_curve_data(config: CurveConfig) -> SampledCurve:
    """Evaluate a curve at every integer temperature of the chart domain.

    Args:
        config: Curve to sample

    Returns:
        101 samples for 0..100 Celsius plus the config's control points
    """
    curve = build_curve(config)
    samples = [
        (temp, curve.get_speed(float(temp)))
        for temp in range(SAMPLE_MIN_TEMP, SAMPLE_MAX_TEMP + 1)
    ]
    logger.debug(f"Sampled {len(samples)} points for {len(config.points)} control points")
    return SampledCurve(samples=samples, control_points=list(config.points))


def to_actuator_speed(speed: Optional[float]) -> int:
    """Round a computed speed to the integer percentage sent to the fan.

    Halves round up, the result is clamped to 0-100.
    """
    if speed is None or not math.isfinite(speed):
        return 0
    return max(0, min(100, int(math.floor(speed + 0.5))))
