"""
Tests for the Fan Actuator module
"""

import pytest
import requests
import serial
import termios
from unittest.mock import MagicMock, Mock, patch

from fancurve.errors import ActuatorConnectionError, ActuatorWriteError
from fancurve.hardware.actuator import HTTPActuator, SerialActuator, validate_speed


@pytest.fixture
def device_dir(tmp_path):
    """Create a fake /dev with a couple of serial devices"""
    dev = tmp_path / "dev"
    dev.mkdir()
    for name in ["tty0", "ttyUSB1", "ttyUSB0", "null"]:
        (dev / name).write_text("")
    (dev / "ttyUSB-dir").mkdir()
    return dev


@pytest.fixture
def mock_serial():
    """Patch pyserial's Serial class"""
    with patch("fancurve.hardware.actuator.serial.Serial") as mock_cls:
        port = MagicMock()
        port.is_open = True
        mock_cls.return_value = port
        yield mock_cls


def test_validate_speed():
    """Test speed validation before sending"""
    assert validate_speed(0) == 0
    assert validate_speed(100) == 100
    for bad in (-1, 101, 37.5, "50", True):
        with pytest.raises(ValueError):
            validate_speed(bad)


# Serial

def test_find_device_first_match(device_dir):
    """Test the first matching device in name order wins"""
    actuator = SerialActuator(device_dir=str(device_dir))
    assert actuator.find_device() == str(device_dir / "ttyUSB0")


def test_find_device_custom_pattern(device_dir):
    """Test a custom device name pattern"""
    (device_dir / "ttyACM0").write_text("")
    actuator = SerialActuator(device_dir=str(device_dir), device_pattern="ttyACM")
    assert actuator.find_device() == str(device_dir / "ttyACM0")


def test_find_device_none(tmp_path):
    """Test no matching device"""
    actuator = SerialActuator(device_dir=str(tmp_path))
    with pytest.raises(ActuatorConnectionError, match="No ttyUSB device"):
        actuator.find_device()

    actuator = SerialActuator(device_dir=str(tmp_path / "missing"))
    with pytest.raises(ActuatorConnectionError, match="Cannot list"):
        actuator.find_device()


def test_serial_send(device_dir, mock_serial):
    """Test the speed is written as a newline-terminated decimal"""
    actuator = SerialActuator(device_dir=str(device_dir), baud_rate=9600, timeout=0.5)
    actuator.send(42)

    mock_serial.assert_called_once_with(
        str(device_dir / "ttyUSB0"), 9600, timeout=0.5, write_timeout=0.5
    )
    mock_serial.return_value.write.assert_called_once_with(b"42\n")


def test_serial_port_reused(device_dir, mock_serial):
    """Test an open port is reused across sends"""
    actuator = SerialActuator(device_dir=str(device_dir))
    actuator.connect()
    actuator.send(10)
    actuator.send(20)
    assert mock_serial.call_count == 1
    assert mock_serial.return_value.write.call_count == 2


def test_serial_open_failure(device_dir, mock_serial):
    """Test a port that cannot be opened"""
    mock_serial.side_effect = serial.SerialException("Permission denied")
    actuator = SerialActuator(device_dir=str(device_dir))
    with pytest.raises(ActuatorConnectionError, match="Cannot open serial port"):
        actuator.connect()


def test_serial_write_failure_reconnects(device_dir, mock_serial):
    """Test a failed write drops the port so the next send reopens"""
    port = mock_serial.return_value
    port.write.side_effect = [serial.SerialTimeoutException("Write timeout"), None]
    actuator = SerialActuator(device_dir=str(device_dir))

    with pytest.raises(ActuatorWriteError, match="Serial error sending speed 30%"):
        actuator.send(30)
    port.close.assert_called_once()

    actuator.send(30)
    assert mock_serial.call_count == 2


def test_serial_flush_failure_reconnects(device_dir, mock_serial):
    """Test an unplugged device failing in flush drops the port"""
    port = mock_serial.return_value
    port.flush.side_effect = [termios.error(5, "Input/output error"), None]
    actuator = SerialActuator(device_dir=str(device_dir))

    with pytest.raises(ActuatorWriteError, match="Serial error sending speed 40%"):
        actuator.send(40)
    port.close.assert_called_once()

    actuator.send(40)
    assert mock_serial.call_count == 2


def test_serial_rejects_invalid_speed(device_dir, mock_serial):
    """Test out of range speeds never reach the wire"""
    actuator = SerialActuator(device_dir=str(device_dir))
    with pytest.raises(ValueError):
        actuator.send(150)
    mock_serial.assert_not_called()


# HTTP

@pytest.fixture
def mock_session():
    session = Mock(spec=requests.Session)
    session.post.return_value = Mock(ok=True, status_code=200)
    return session


def test_http_send(mock_session):
    """Test the speed is posted as plain text"""
    actuator = HTTPActuator("http://esp32.local/fan-speed", timeout=1.5, session=mock_session)
    actuator.send(75)
    mock_session.post.assert_called_once_with(
        "http://esp32.local/fan-speed",
        data="75",
        headers={"Content-Type": "text/plain"},
        timeout=1.5
    )


@pytest.mark.parametrize("error,expected", [
    (requests.ConnectionError("refused"), ActuatorConnectionError),
    (requests.Timeout("slow"), ActuatorConnectionError),
    (requests.RequestException("odd"), ActuatorWriteError),
])
def test_http_request_errors(mock_session, error, expected):
    """Test transport errors map to actuator errors"""
    mock_session.post.side_effect = error
    actuator = HTTPActuator("http://esp32.local/fan-speed", session=mock_session)
    with pytest.raises(expected):
        actuator.send(50)


def test_http_error_status(mock_session):
    """Test a non-2xx response is a failed write"""
    mock_session.post.return_value = Mock(ok=False, status_code=500)
    actuator = HTTPActuator("http://esp32.local/fan-speed", session=mock_session)
    with pytest.raises(ActuatorWriteError, match="HTTP 500"):
        actuator.send(50)
