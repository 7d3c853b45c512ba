"""
Control package for fancurve

This package provides the fan curve model and interpolation, curve
persistence and the delivery loop that drives the fan.
"""

from .curve import (
    InterpolationMode,
    CurvePoint,
    CurveConfig,
    SampledCurve,
    FanCurve,
    GradualCurve,
    HardCutCurve,
    default_config,
    calculate_fan_speed,
    generate_curve_data,
    to_actuator_speed
)
from .storage import ConfigRepository, CurveRepository
from .state import CurveState
from .manager import DeliveryManager

__all__ = [
    'InterpolationMode',
    'CurvePoint',
    'CurveConfig',
    'SampledCurve',
    'FanCurve',
    'GradualCurve',
    'HardCutCurve',
    'default_config',
    'calculate_fan_speed',
    'generate_curve_data',
    'to_actuator_speed',
    'ConfigRepository',
    'CurveRepository',
    'CurveState',
    'DeliveryManager'
]
