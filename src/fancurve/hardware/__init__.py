"""
Hardware Package for fancurve

This package provides the two hardware edges of the fan controller:
reading the system temperature and delivering a speed to the fan board.

Key Components:
- CombinedTemperatureReader: BMC sensors via ipmitool with a thermal zone fallback
- SerialActuator: Speed delivery over a USB serial link
- HTTPActuator: Speed delivery as an HTTP POST

Example Usage:
    >>> from fancurve.hardware import (
    ...     CombinedTemperatureReader, IPMITemperatureReader,
    ...     ThermalZoneReader, SerialActuator
    ... )
    >>>
    >>> reader = CombinedTemperatureReader(IPMITemperatureReader(), ThermalZoneReader())
    >>> temp = reader.read_temperature()
    >>>
    >>> fan = SerialActuator()
    >>> fan.send(40)

Note:
    The IPMI reader requires ipmitool, the serial actuator read/write
    access to the device node.
"""

from .sensors import (
    TemperatureSource,
    ThermalZoneReader,
    IPMITemperatureReader,
    CombinedTemperatureReader
)
from .actuator import Actuator, SerialActuator, HTTPActuator

__all__ = [
    'TemperatureSource',
    'ThermalZoneReader',
    'IPMITemperatureReader',
    'CombinedTemperatureReader',
    'Actuator',
    'SerialActuator',
    'HTTPActuator'
]
