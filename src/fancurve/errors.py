"""Exception hierarchy shared by the fancurve packages"""


class FanCurveError(Exception):
    """Base exception for fancurve errors"""
    pass


class ConfigIOError(FanCurveError):
    """Raised when persisted state or settings cannot be read or written"""
    pass


class SensorError(FanCurveError):
    """Raised when no temperature reading is available"""
    pass


class ActuatorError(FanCurveError):
    """Base exception for fan actuator errors"""
    pass


class ActuatorConnectionError(ActuatorError):
    """Raised when the actuator cannot be reached"""
    pass


class ActuatorWriteError(ActuatorError):
    """Raised when sending a speed to the actuator fails"""
    pass
