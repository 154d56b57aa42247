"""
Shared pytest fixtures for DSMR Reader tests.
"""

import os
import sys
import threading
from unittest.mock import MagicMock

import pytest

# Add the source directory to the path so we can import dsmr_reader
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "rootfs", "usr", "src")))

from config import ConfigModel, MqttConfig, SerialConfig, SupervisorConfig
from errors import PublishError
from protocol import Readout, crc16

TELEGRAM_V5_LINES = [
    "/ISk5\\2MT382-1000",
    "",
    "1-3:0.2.8(50)",
    "0-0:1.0.0(101209113020W)",
    "0-0:96.1.1(4B384547303034303436333935353037)",
    "1-0:1.8.1(123456.789*kWh)",
    "1-0:1.8.2(123456.789*kWh)",
    "1-0:2.8.1(123456.789*kWh)",
    "1-0:2.8.2(123456.789*kWh)",
    "0-0:96.14.0(0002)",
    "1-0:1.7.0(01.193*kW)",
    "1-0:2.7.0(00.000*kW)",
    "0-0:96.7.21(00004)",
    "0-0:96.7.9(00002)",
    "1-0:99.97.0(2)(0-0:96.7.19)(101208152415W)(0000000240*s)(101208151004W)(0000000301*s)",
    "1-0:32.32.0(00002)",
    "1-0:32.7.0(220.1*V)",
    "1-0:31.7.0(001*A)",
    "1-0:21.7.0(01.111*kW)",
    "1-0:22.7.0(04.444*kW)",
    "0-1:24.1.0(003)",
    "0-1:24.2.1(101209112500W)(12785.123*m3)",
]


def make_telegram(lines: list[str], checksum: bool = True) -> bytes:
    """Build raw telegram bytes from object lines, appending a valid CRC trailer."""
    body = ("\r\n".join(lines) + "\r\n!").encode("ascii")
    if not checksum:
        return body + b"\r\n"
    return body + f"{crc16(body):04X}\r\n".encode("ascii")


@pytest.fixture
def telegram_v5() -> bytes:
    return make_telegram(TELEGRAM_V5_LINES)


@pytest.fixture
def app_config() -> ConfigModel:
    """Configuration with short timeouts for tests."""
    return ConfigModel(
        serial=SerialConfig(port="/dev/ttyTEST", timeout=0.1),
        mqtt=MqttConfig(host="127.0.0.1", topic_prefix="dsmr", qos=0, connect_timeout=0.5, publish_timeout=0.5),
        supervisor=SupervisorConfig(retry_delay=5.0),
    )


@pytest.fixture
def mock_mqtt_client(mocker):
    """Patch the paho client used by mqtt_handler."""
    mock_client = MagicMock()
    mocker.patch("mqtt_handler.mqtt.Client", return_value=mock_client)
    return mock_client


class FakeSource:
    """In-memory TelegramSource: yields the given readouts, then ends or raises."""

    def __init__(self, readouts=(), error: Exception | None = None, block: bool = False):
        self._readouts = list(readouts)
        self._error = error
        self._block = block
        self.opened = False
        self.closed = threading.Event()

    def open(self):
        self.opened = True

    def readouts(self):
        for data in self._readouts:
            yield data if isinstance(data, Readout) else Readout(data)
        if self._error is not None:
            raise self._error
        # Simulate a serial port that stays silent until closed
        while self._block and not self.closed.wait(0.01):
            pass

    def close(self):
        self.closed.set()


class FakePublisher:
    """Records published messages; optionally fails on the n-th publish."""

    def __init__(self, fail_on: int | None = None, connect_error: Exception | None = None):
        self.messages = []
        self.connected = False
        self.disconnected = False
        self.attempts = 0
        self._fail_on = fail_on
        self._connect_error = connect_error
        self.on_connection_lost = None

    def connect(self):
        if self._connect_error is not None:
            raise self._connect_error
        self.connected = True

    def publish(self, message):
        self.attempts += 1
        if self._fail_on is not None and self.attempts == self._fail_on:
            raise PublishError(f"publish {self.attempts} failed")
        self.messages.append(message)

    def disconnect(self):
        self.disconnected = True

