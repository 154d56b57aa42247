"""
Serial Handler Module

Contains the TelegramSource class that reads P1 telegrams from the serial port.
"""

from collections.abc import Iterator
import logging

import serial

from config import SerialConfig
from errors import ConnectionFailedError, ReadError
from protocol import Readout, TelegramFramer

logger = logging.getLogger(__name__)

# Longest line we read in one go; DSMR lines are well below this
MAX_LINE_LENGTH = 1024


class TelegramSource:
    """
    Owns the serial device for one pipeline run.

    The readout sequence is not restartable: once it ends or fails, a new
    TelegramSource must be constructed. Reconnecting is the supervisor's job.
    """

    def __init__(self, config: SerialConfig) -> None:
        self._config = config
        self._serial: serial.Serial | None = None
        self._framer = TelegramFramer()
        self._consumed = False
        self._closed = False

    @property
    def port(self) -> str:
        return self._config.port

    def open(self) -> None:
        """
        Open the serial port.

        Raises:
            ConnectionFailedError: If the device cannot be opened.
        """
        logger.debug(f"Opening serialport '{self._config.port}'")
        try:
            ser = serial.serial_for_url(
                self._config.port,
                baudrate=self._config.baudrate,
                parity=self._config.parity,
                stopbits=self._config.stopbits,
                bytesize=self._config.bytesize,
                timeout=self._config.timeout,
                do_not_open=True,
            )
            ser.open()
        except Exception as e:
            raise ConnectionFailedError(
                f"Serialport connection failed: {type(e).__name__}: '{e}'"
            ) from e
        self._serial = ser
        logger.info(f"Serialport '{self._config.port}' opened")

    def _read_line(self) -> bytes | None:
        """
        Read one line within the read timeout.

        Returns:
            bytes | None: The line, or None if the source was closed meanwhile.

        Raises:
            ReadError: On I/O failure or timeout.
        """
        try:
            datain = self._serial.readline(MAX_LINE_LENGTH)
        except Exception as e:
            if self._closed:
                return None
            raise ReadError(f"Serialport read error: {type(e).__name__}: '{e}'") from e

        if self._closed:
            return None
        if len(datain) == 0:
            raise ReadError(f"Serialport read timeout: no data within {self._config.timeout} seconds")
        if not datain.endswith(b"\n") and len(datain) < MAX_LINE_LENGTH:
            raise ReadError(f"Serialport read timeout: incomplete line {datain!r}")
        return datain

    def readouts(self) -> Iterator[Readout]:
        """
        Lazily yield one Readout per telegram.

        Raises:
            RuntimeError: If called before open() or a second time.
            ReadError: On I/O failure or timeout.
        """
        if self._serial is None:
            raise RuntimeError("TelegramSource is not open")
        if self._consumed:
            raise RuntimeError("TelegramSource readouts can only be consumed once")
        self._consumed = True
        return self._iter_readouts()

    def _iter_readouts(self) -> Iterator[Readout]:
        while not self._closed:
            line = self._read_line()
            if line is None:
                return
            readout = self._framer.push_line(line)
            if readout is not None:
                logger.debug(f"Telegram received: {len(readout.data)} bytes")
                yield readout

    def close(self) -> None:
        """Close the serial port. Safe to call more than once, never raises."""
        self._closed = True
        if self._serial is None:
            return
        try:
            self._serial.close()
        except Exception as e:
            logger.warning(f"Error closing serialport: {type(e).__name__}: '{e}'")
