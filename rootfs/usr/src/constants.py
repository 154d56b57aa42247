"""
DSMR Reader Constants

Shared constants and enums for type safety across the application.
"""

from enum import StrEnum


class ConnectionStatus(StrEnum):
    """MQTT availability payloads."""

    ONLINE = "online"
    OFFLINE = "offline"


class TelegramMarker(StrEnum):
    """Line prefixes that frame a P1 telegram."""

    HEADER = "/"
    TRAILER = "!"
    CONTINUATION = "("


class MqttTopicSuffix(StrEnum):
    """Topic suffixes that are not measurements."""

    STATUS = "status"
    ERROR = "error"


class SupervisorState(StrEnum):
    """States of the supervisor loop."""

    RUNNING = "running"
    RECOVERING = "recovering"


class MeasurementField(StrEnum):
    """Field identifiers, used verbatim as topic suffix."""

    ENERGY_DELIVERED_TARIFF1 = "energy_delivered_tariff1"
    ENERGY_DELIVERED_TARIFF2 = "energy_delivered_tariff2"
    ENERGY_RETURNED_TARIFF1 = "energy_returned_tariff1"
    ENERGY_RETURNED_TARIFF2 = "energy_returned_tariff2"
    ELECTRICITY_TARIFF = "electricity_tariff"
    POWER_DELIVERED = "power_delivered"
    POWER_RETURNED = "power_returned"
    POWER_FAILURES = "power_failures"
    LONG_POWER_FAILURES = "long_power_failures"
    VOLTAGE_SAGS_L1 = "voltage_sags_l1"
    VOLTAGE_SAGS_L2 = "voltage_sags_l2"
    VOLTAGE_SAGS_L3 = "voltage_sags_l3"
    VOLTAGE_SWELLS_L1 = "voltage_swells_l1"
    VOLTAGE_SWELLS_L2 = "voltage_swells_l2"
    VOLTAGE_SWELLS_L3 = "voltage_swells_l3"
    VOLTAGE_L1 = "voltage_l1"
    VOLTAGE_L2 = "voltage_l2"
    VOLTAGE_L3 = "voltage_l3"
    CURRENT_L1 = "current_l1"
    CURRENT_L2 = "current_l2"
    CURRENT_L3 = "current_l3"
    POWER_DELIVERED_L1 = "power_delivered_l1"
    POWER_DELIVERED_L2 = "power_delivered_l2"
    POWER_DELIVERED_L3 = "power_delivered_l3"
    POWER_RETURNED_L1 = "power_returned_l1"
    POWER_RETURNED_L2 = "power_returned_l2"
    POWER_RETURNED_L3 = "power_returned_l3"
    GAS_DELIVERED = "gas_delivered"
