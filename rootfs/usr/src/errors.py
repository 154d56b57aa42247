"""
DSMR Reader Errors

Every failure that ends a pipeline run is one of these. The supervisor is the
only place they are caught.
"""


class DsmrReaderError(Exception):
    """Base class for all pipeline errors."""

    category = "reader"


class ConnectionFailedError(DsmrReaderError):
    """The serial device or the MQTT broker could not be connected."""

    category = "connection"


class ConnectionLostError(ConnectionFailedError):
    """The MQTT broker dropped an established connection."""

    category = "mqtt"


class ReadError(DsmrReaderError):
    """Serial I/O failure or read timeout."""

    category = "serial"


class DecodeError(DsmrReaderError, ValueError):
    """A telegram (or a single object within one) could not be decoded."""

    category = "decode"


class PublishError(DsmrReaderError):
    """The MQTT client refused or failed to deliver a message."""

    category = "mqtt"


class EndOfStreamError(DsmrReaderError):
    """The telegram sequence ended. The meter is expected to transmit forever."""

    category = "serial"
