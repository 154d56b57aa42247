"""
DSMR Reader Configuration

Handles configuration loading from environment variables. Every setting has a
hard-coded default used when the variable is unset.
"""

import logging
import os
from collections.abc import Mapping
from typing import Any
from urllib.parse import urlsplit

import paho.mqtt.client as mqtt
import serial
from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

# ------------------------------------------------------------------------------------
# Configuration Models
# ------------------------------------------------------------------------------------

FROZEN = ConfigDict(frozen=True)


class LogConfig(BaseModel):
    """Logging configuration."""

    model_config = FROZEN

    level: str = "INFO"


class SerialConfig(BaseModel):
    """Serial port configuration. Defaults match the DSMR 4/5 P1 port (115200 8N1), DSMR 2.2/3 uses 9600 7E1."""

    model_config = FROZEN

    port: str = "/dev/ttyUSB1"
    baudrate: int = 115200
    parity: str = serial.PARITY_NONE
    stopbits: int = serial.STOPBITS_ONE
    bytesize: int = serial.EIGHTBITS
    timeout: float = 1.0


class MqttConfig(BaseModel):
    """MQTT connection and publishing configuration."""

    model_config = FROZEN

    host: str = "10.10.10.13"
    port: int = 1883
    username: str | None = None
    password: str | None = None
    topic_prefix: str = "dsmr"
    client_id: str = "dsmr-reader"
    version: int = mqtt.MQTTv311
    keepalive: int = 30
    qos: int = Field(default=0, ge=0, le=2)
    retain: bool = False
    status: bool = True
    connect_timeout: float = 10.0
    publish_timeout: float = 10.0


class SupervisorConfig(BaseModel):
    """Recovery behaviour."""

    model_config = FROZEN

    retry_delay: float = 5.0


class ConfigModel(BaseModel):
    """Root configuration model."""

    model_config = FROZEN

    log: LogConfig = Field(default_factory=LogConfig)
    serial: SerialConfig = Field(default_factory=SerialConfig)
    mqtt: MqttConfig = Field(default_factory=MqttConfig)
    supervisor: SupervisorConfig = Field(default_factory=SupervisorConfig)


# ------------------------------------------------------------------------------------
# Environment helpers
# ------------------------------------------------------------------------------------

MQTT_VERSIONS = {"3.1": mqtt.MQTTv31, "3.1.1": mqtt.MQTTv311, "5.0": mqtt.MQTTv5}


def _get_int(environ: Mapping[str, str], key: str, default: int) -> int:
    try:
        return int(environ[key])
    except KeyError:
        return default
    except ValueError:
        logger.warning(f"Ignoring invalid {key}='{environ[key]}', using {default}")
        return default


def _get_float(environ: Mapping[str, str], key: str, default: float) -> float:
    try:
        return float(environ[key])
    except KeyError:
        return default
    except ValueError:
        logger.warning(f"Ignoring invalid {key}='{environ[key]}', using {default}")
        return default


def _get_bool(environ: Mapping[str, str], key: str, default: bool) -> bool:
    value = environ.get(key)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def parse_host(value: str, default_port: int) -> tuple[str, int]:
    """
    Accept a bare host name or a 'tcp://host:port' URL.

    Returns:
        tuple[str, int]: Host and port.
    """
    if "://" not in value:
        return value, default_port
    parts = urlsplit(value)
    return parts.hostname or value, parts.port or default_port


def _get_qos(environ: Mapping[str, str], default: int) -> int:
    qos = _get_int(environ, "MQTT_QOS", default)
    if qos not in (0, 1, 2):
        logger.warning(f"Ignoring invalid MQTT_QOS={qos}, using {default}")
        return default
    return qos


def _get_parity(environ: Mapping[str, str], default: str) -> str:
    parity = environ.get("SERIAL_PARITY", default).strip().upper()
    if parity not in serial.Serial.PARITIES:
        logger.warning(f"Ignoring invalid SERIAL_PARITY='{parity}', using {default}")
        return default
    return parity


def _get_bytesize(environ: Mapping[str, str], default: int) -> int:
    bytesize = _get_int(environ, "SERIAL_BYTESIZE", default)
    if bytesize not in serial.Serial.BYTESIZES:
        logger.warning(f"Ignoring invalid SERIAL_BYTESIZE={bytesize}, using {default}")
        return default
    return bytesize


def setup_logging(level: str) -> None:
    """Configure the root logger with a single stream handler."""
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    formatter = logging.Formatter("%(asctime)s %(levelname)s: %(message)s")

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    stream = logging.StreamHandler()
    stream.setLevel(level)
    stream.setFormatter(formatter)
    root_logger.addHandler(stream)


def read_config(environ: Mapping[str, str] | None = None, version: str = "Unknown") -> ConfigModel:
    """
    Read the configuration from the environment and set up logging.

    Args:
        environ: Mapping to read from, defaults to os.environ.
        version: The app version string for logging.

    Returns:
        ConfigModel: The immutable configuration.
    """
    if environ is None:
        environ = os.environ

    defaults = ConfigModel()

    mqtt_port = _get_int(environ, "MQTT_PORT", defaults.mqtt.port)
    mqtt_host, mqtt_port = parse_host(environ.get("MQTT_HOST", defaults.mqtt.host), mqtt_port)

    mqtt_version_str = environ.get("MQTT_PROTOCOL", "3.1.1")
    mqtt_version = MQTT_VERSIONS.get(mqtt_version_str, defaults.mqtt.version)

    model = ConfigModel(
        log=LogConfig(level=(environ.get("LOG_LEVEL") or defaults.log.level).upper()),
        serial=SerialConfig(
            port=environ.get("SERIAL_PORT", defaults.serial.port),
            baudrate=_get_int(environ, "SERIAL_BAUDRATE", defaults.serial.baudrate),
            parity=_get_parity(environ, defaults.serial.parity),
            bytesize=_get_bytesize(environ, defaults.serial.bytesize),
        ),
        mqtt=MqttConfig(
            host=mqtt_host,
            port=mqtt_port,
            username=environ.get("MQTT_USERNAME") or None,
            password=environ.get("MQTT_PASSWORD") or None,
            topic_prefix=environ.get("MQTT_TOPIC", defaults.mqtt.topic_prefix),
            client_id=environ.get("MQTT_CLIENT_ID") or defaults.mqtt.client_id,
            version=mqtt_version,
            keepalive=_get_int(environ, "MQTT_KEEPALIVE", defaults.mqtt.keepalive),
            qos=_get_qos(environ, defaults.mqtt.qos),
            retain=_get_bool(environ, "MQTT_RETAIN", defaults.mqtt.retain),
            status=_get_bool(environ, "MQTT_STATUS", defaults.mqtt.status),
        ),
        supervisor=SupervisorConfig(
            retry_delay=_get_float(environ, "RETRY_DELAY", defaults.supervisor.retry_delay),
        ),
    )

    setup_logging(model.log.level)

    logger.info(f"Start: dsmr-reader - version: {version}")

    # Debug logging with redacted password
    config_log: dict[str, Any] = model.model_dump()
    if config_log["mqtt"].get("password"):
        config_log["mqtt"]["password"] = "********"
    logger.debug(f"Config: {str(config_log)}")

    return model
