"""
DSMR P1 Protocol Parser

This module frames and decodes DSMR P1 telegrams as sent by Dutch/Belgian smart meters.

Telegram Format:
    /ISk5\\2MT382-1000            <- header: '/' + meter identification

    1-3:0.2.8(50)                 <- COSEM objects: OBIS reference + values
    1-0:1.8.1(123456.789*kWh)
    1-0:1.7.0(01.193*kW)
    0-1:24.2.1(101209112500W)(12785.123*m3)
    !EF2F                         <- trailer: '!' + CRC16 (DSMR 4+ only)

The CRC is CRC-16/ARC over every byte from '/' up to and including '!'.
Older meters (DSMR 2.2/3) send a bare '!' without checksum.
"""

from dataclasses import dataclass, field
import logging
import re

from constants import TelegramMarker
from errors import DecodeError

logger = logging.getLogger(__name__)

# Largest telegram we are willing to buffer before giving up on framing
MAX_TELEGRAM_SIZE = 8192

OBJECT_PATTERN = re.compile(r"^(\d+-\d+:\d+\.\d+\.\d+)((?:\([^()]*\))+)$")
VALUE_PATTERN = re.compile(r"\(([^()]*)\)")
CHECKSUM_PATTERN = re.compile(r"^[0-9A-Fa-f]{4}$")


def crc16(data: bytes) -> int:
    """
    Compute the CRC-16/ARC checksum used by DSMR telegrams.

    Args:
        data: Telegram bytes from '/' up to and including '!'.

    Returns:
        int: The 16 bit checksum.
    """
    crc = 0
    for byte in data:
        crc ^= byte
        for _ in range(8):
            if crc & 1:
                crc = (crc >> 1) ^ 0xA001
            else:
                crc >>= 1
    return crc


@dataclass(frozen=True)
class CosemValue:
    """A single parenthesised value, e.g. '01.193*kW' -> ('01.193', 'kW')."""

    raw: str
    unit: str | None = None


@dataclass(frozen=True)
class CosemObject:
    """One data line of a telegram."""

    obis: str
    values: tuple[CosemValue, ...]

    @property
    def value(self) -> CosemValue:
        """The last value of the object, which carries the reading for multi-valued objects."""
        return self.values[-1]


def parse_object(line: str) -> CosemObject:
    """
    Parse one COSEM data line.

    Args:
        line: e.g. "1-0:1.8.1(123456.789*kWh)"

    Returns:
        CosemObject: The parsed object.

    Raises:
        DecodeError: If the line is not a well formed COSEM object.
    """
    match = OBJECT_PATTERN.match(line.strip())
    if not match:
        raise DecodeError(f"Malformed COSEM object: '{line}'")

    values = []
    for raw in VALUE_PATTERN.findall(match.group(2)):
        number, sep, unit = raw.partition("*")
        values.append(CosemValue(raw=number, unit=unit if sep else None))

    return CosemObject(obis=match.group(1), values=tuple(values))


@dataclass(frozen=True)
class Telegram:
    """A validated telegram: header identification plus raw object lines."""

    header: str
    lines: list[str] = field(default_factory=list)
    checksum: str | None = None


@dataclass(frozen=True)
class Readout:
    """Raw bytes of exactly one telegram transmission, header through trailer."""

    data: bytes

    def to_telegram(self) -> Telegram:
        """
        Validate framing and checksum and split the readout into object lines.

        Returns:
            Telegram: The decoded telegram.

        Raises:
            DecodeError: If the whole telegram cannot be decoded.
        """
        try:
            text = self.data.decode("ascii")
        except UnicodeDecodeError as e:
            raise DecodeError(f"Telegram is not ASCII: {e}") from e

        if not text.startswith(TelegramMarker.HEADER):
            raise DecodeError("Telegram does not start with a header line")

        trailer_pos = text.rfind("\n" + TelegramMarker.TRAILER)
        if trailer_pos < 0:
            raise DecodeError("Telegram has no trailer line")
        trailer_pos += 1

        checksum = text[trailer_pos + 1 :].strip()
        if checksum:
            if not CHECKSUM_PATTERN.match(checksum):
                raise DecodeError(f"Invalid checksum field '{checksum}'")
            expected = int(checksum, 16)
            actual = crc16(self.data[: trailer_pos + 1])
            if actual != expected:
                raise DecodeError(f"Checksum mismatch: telegram says {expected:04X}, computed {actual:04X}")

        body = text[:trailer_pos].splitlines()
        header = body[0][1:].strip()

        lines: list[str] = []
        for line in body[1:]:
            line = line.strip()
            if not line:
                continue
            # DSMR 2.2 puts the gas reading on its own line
            if line.startswith(TelegramMarker.CONTINUATION) and lines:
                lines[-1] += line
            else:
                lines.append(line)

        return Telegram(header=header, lines=lines, checksum=checksum or None)


class TelegramFramer:
    """
    Assemble serial lines into telegram readouts.

    Bytes before the first header line are discarded, so the framer can be
    started at any point of the serial stream.
    """

    def __init__(self, max_size: int = MAX_TELEGRAM_SIZE) -> None:
        self._max_size = max_size
        self._buffer: list[bytes] = []
        self._size = 0

    def reset(self) -> None:
        self._buffer = []
        self._size = 0

    def push_line(self, line: bytes) -> Readout | None:
        """
        Feed one line (including its line terminator).

        Returns:
            Readout | None: A complete readout when the line was a trailer, None otherwise.
        """
        if line.startswith(TelegramMarker.HEADER.encode()):
            if self._buffer:
                logger.warning("Header received mid-telegram, discarding partial telegram")
            self.reset()
        elif not self._buffer:
            logger.debug(f"Skipping data outside telegram: {line!r}")
            return None

        self._buffer.append(line)
        self._size += len(line)

        if self._size > self._max_size:
            logger.warning(f"Telegram exceeds {self._max_size} bytes, discarding")
            self.reset()
            return None

        if line.startswith(TelegramMarker.TRAILER.encode()):
            readout = Readout(b"".join(self._buffer))
            self.reset()
            return readout

        return None
