"""
Measurement Model

Turns a decoded telegram into measurements and measurements into MQTT messages.
"""

import logging
import re

from pydantic import BaseModel, ConfigDict, Field

from constants import MeasurementField
from errors import DecodeError
from protocol import CosemObject, Telegram, parse_object

logger = logging.getLogger(__name__)

# OBIS reference -> field. Source: DSMR 5.0.2 P1 companion standard, table 6.
OBIS_FIELDS: dict[str, MeasurementField] = {
    "1-0:1.8.1": MeasurementField.ENERGY_DELIVERED_TARIFF1,
    "1-0:1.8.2": MeasurementField.ENERGY_DELIVERED_TARIFF2,
    "1-0:2.8.1": MeasurementField.ENERGY_RETURNED_TARIFF1,
    "1-0:2.8.2": MeasurementField.ENERGY_RETURNED_TARIFF2,
    "0-0:96.14.0": MeasurementField.ELECTRICITY_TARIFF,
    "1-0:1.7.0": MeasurementField.POWER_DELIVERED,
    "1-0:2.7.0": MeasurementField.POWER_RETURNED,
    "0-0:96.7.21": MeasurementField.POWER_FAILURES,
    "0-0:96.7.9": MeasurementField.LONG_POWER_FAILURES,
    "1-0:32.32.0": MeasurementField.VOLTAGE_SAGS_L1,
    "1-0:52.32.0": MeasurementField.VOLTAGE_SAGS_L2,
    "1-0:72.32.0": MeasurementField.VOLTAGE_SAGS_L3,
    "1-0:32.36.0": MeasurementField.VOLTAGE_SWELLS_L1,
    "1-0:52.36.0": MeasurementField.VOLTAGE_SWELLS_L2,
    "1-0:72.36.0": MeasurementField.VOLTAGE_SWELLS_L3,
    "1-0:32.7.0": MeasurementField.VOLTAGE_L1,
    "1-0:52.7.0": MeasurementField.VOLTAGE_L2,
    "1-0:72.7.0": MeasurementField.VOLTAGE_L3,
    "1-0:31.7.0": MeasurementField.CURRENT_L1,
    "1-0:51.7.0": MeasurementField.CURRENT_L2,
    "1-0:71.7.0": MeasurementField.CURRENT_L3,
    "1-0:21.7.0": MeasurementField.POWER_DELIVERED_L1,
    "1-0:41.7.0": MeasurementField.POWER_DELIVERED_L2,
    "1-0:61.7.0": MeasurementField.POWER_DELIVERED_L3,
    "1-0:22.7.0": MeasurementField.POWER_RETURNED_L1,
    "1-0:42.7.0": MeasurementField.POWER_RETURNED_L2,
    "1-0:62.7.0": MeasurementField.POWER_RETURNED_L3,
}

# Gas is reported on whichever M-Bus channel (0-1 .. 0-4) the gas meter is attached to.
# DSMR 4+ uses 24.2.1, DSMR 2.2/3 uses 24.3.0 with the reading as the last value.
GAS_PATTERN = re.compile(r"^0-[1-4]:24\.(2\.1|3\.0)$")
NUMBER_PATTERN = re.compile(r"^-?\d+(\.\d+)?$")


def topic_for(prefix: str, field_id: str) -> str:
    return prefix + "/" + field_id


def field_for(obis: str) -> str | None:
    """Map an OBIS reference to a field identifier, None if not a measurement we publish."""
    if obis in OBIS_FIELDS:
        return OBIS_FIELDS[obis]
    if GAS_PATTERN.match(obis):
        return MeasurementField.GAS_DELIVERED
    return None


def parse_number(raw: str) -> int | float:
    """
    Parse a fixed-point telegram number, keeping integers integral.

    Raises:
        DecodeError: If the text is not a number.
    """
    if not NUMBER_PATTERN.match(raw):
        raise DecodeError(f"Cannot convert '{raw}' into a number")
    return float(raw) if "." in raw else int(raw)


class OutboundMessage(BaseModel):
    """One MQTT message, derived from exactly one measurement."""

    model_config = ConfigDict(frozen=True)

    topic: str
    payload: str
    qos: int = Field(default=0, ge=0, le=2)
    retain: bool = False


class Measurement(BaseModel):
    """A single decoded reading."""

    model_config = ConfigDict(frozen=True)

    field: str
    value: int | float
    unit: str | None = None

    @classmethod
    def from_cosem(cls, obj: CosemObject) -> "Measurement | None":
        """
        Build a measurement from a COSEM object.

        Returns:
            Measurement | None: None if the object is not a recognised measurement.

        Raises:
            DecodeError: If the object is recognised but its value is malformed.
        """
        field_id = field_for(obj.obis)
        if field_id is None:
            return None
        value = obj.value
        return cls(field=str(field_id), value=parse_number(value.raw), unit=value.unit)

    @property
    def payload(self) -> str:
        return str(self.value)

    def to_message(self, prefix: str, qos: int = 0, retain: bool = False) -> OutboundMessage:
        return OutboundMessage(topic=topic_for(prefix, self.field), payload=self.payload, qos=qos, retain=retain)


class MeasurementSet(BaseModel):
    """All measurements recovered from one telegram, in telegram order."""

    measurements: list[Measurement] = Field(default_factory=list)

    @classmethod
    def from_telegram(cls, telegram: Telegram) -> "MeasurementSet":
        """
        Extract every recognised measurement from a telegram.

        Objects that cannot be parsed are skipped; a single bad line does not
        reject the telegram.
        """
        measurements = []
        for line in telegram.lines:
            try:
                measurement = Measurement.from_cosem(parse_object(line))
            except DecodeError as e:
                logger.debug(f"Skipping object: {e}")
                continue
            if measurement is not None:
                measurements.append(measurement)
        return cls(measurements=measurements)

    def __len__(self) -> int:
        return len(self.measurements)

    def to_messages(self, prefix: str, qos: int = 0, retain: bool = False) -> list[OutboundMessage]:
        """One message per measurement, same order."""
        return [m.to_message(prefix, qos, retain) for m in self.measurements]
