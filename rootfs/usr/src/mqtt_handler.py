"""
MQTT Handler

Manages the MQTT connection for one pipeline run and publishes measurement messages.
"""

from collections.abc import Callable
import logging
import threading

import paho.mqtt.client as mqtt

from config import MqttConfig
from constants import ConnectionStatus, MqttTopicSuffix
from errors import ConnectionFailedError, ConnectionLostError, DsmrReaderError, PublishError
from measurement import OutboundMessage, topic_for

logger = logging.getLogger(__name__)


class MqttPublisher:
    """
    Publish outbound messages to the broker.

    paho runs its network loop on its own thread. If that loop loses the
    connection, on_connection_lost is called with a ConnectionLostError so the
    supervisor can tear the run down.
    """

    def __init__(
        self,
        config: MqttConfig,
        on_connection_lost: Callable[[DsmrReaderError], None] | None = None,
        last_error: Callable[[], str | None] | None = None,
    ) -> None:
        """
        Initialize the publisher.

        Args:
            config: MQTT configuration.
            on_connection_lost: Called from the network thread when the broker drops us.
            last_error: Returns the last reported error, published on the error topic after connecting.
        """
        self._config = config
        self._on_connection_lost = on_connection_lost
        self._last_error = last_error
        self._mqttc: mqtt.Client | None = None
        self._connected = threading.Event()
        self._connack_received = threading.Event()
        self._connack = None
        self._closing = False

    @property
    def connected(self) -> bool:
        return self._connected.is_set()

    def _topic(self, suffix: str) -> str:
        return topic_for(self._config.topic_prefix, suffix)

    def on_connect(self, mqttc, obj, flags, reason_code, properties):
        self._connack = reason_code
        if reason_code == 0:
            logger.info("MQTT successfully connected to broker")
            self._connected.set()
        else:
            logger.error(f"MQTT failed to connect to broker: {reason_code}")
        self._connack_received.set()

    def on_disconnect(self, mqttc, obj, flags, reason_code, properties):
        was_connected = self._connected.is_set()
        self._connected.clear()
        if self._closing or not was_connected:
            return
        logger.error(f"MQTT disconnected unexpectedly. Reason: {reason_code}")
        if self._on_connection_lost is not None:
            self._on_connection_lost(ConnectionLostError(f"MQTT connection lost: {reason_code}"))

    def _setup_mqtt_client(self) -> mqtt.Client:
        mqttc = mqtt.Client(
            mqtt.CallbackAPIVersion.VERSION2,
            client_id=self._config.client_id,
            protocol=self._config.version,
        )
        mqttc.on_connect = self.on_connect
        mqttc.on_disconnect = self.on_disconnect

        if self._config.username is not None:
            mqttc.username_pw_set(self._config.username, self._config.password)

        if self._config.status:
            mqttc.will_set(self._topic(MqttTopicSuffix.STATUS), ConnectionStatus.OFFLINE, retain=True)
        return mqttc

    def connect(self) -> None:
        """
        Connect to the broker and wait for CONNACK.

        Raises:
            ConnectionFailedError: If the broker cannot be reached or refuses the connection.
        """
        logger.debug(f"Connecting to MQTT Broker '{self._config.host}:{self._config.port}'")
        self._mqttc = self._setup_mqtt_client()

        try:
            self._mqttc.connect(self._config.host, self._config.port, self._config.keepalive)
            self._mqttc.loop_start()
        except Exception as e:
            self._mqttc = None
            raise ConnectionFailedError(f"MQTT connection failed: {type(e).__name__}: '{e}'") from e

        if not self._connack_received.wait(self._config.connect_timeout):
            self._abort_connect()
            raise ConnectionFailedError("Timeout waiting for MQTT CONNACK")
        if not self._connected.is_set():
            self._abort_connect()
            raise ConnectionFailedError(f"MQTT broker refused connection: {self._connack}")

        if self._config.status:
            self._publish_availability()

    def _abort_connect(self) -> None:
        self._closing = True
        try:
            self._mqttc.disconnect()
        except Exception as e:
            logger.debug(f"Error closing MQTT socket: {e}")
        try:
            self._mqttc.loop_stop()
        except Exception as e:
            logger.debug(f"Error stopping MQTT loop: {e}")
        self._mqttc = None

    def _publish_availability(self) -> None:
        self._mqttc.publish(self._topic(MqttTopicSuffix.STATUS), ConnectionStatus.ONLINE, retain=True)
        error_msg = self._last_error() if self._last_error is not None else None
        self._mqttc.publish(self._topic(MqttTopicSuffix.ERROR), error_msg or "No Error", retain=True)

    def publish(self, message: OutboundMessage) -> None:
        """
        Publish one message. With QoS 1 or 2 this waits for the broker to acknowledge it.

        Raises:
            PublishError: If the message could not be handed over or was not acknowledged.
        """
        # disconnect() may clear _mqttc from another thread
        mqttc = self._mqttc
        if mqttc is None or not self._connected.is_set():
            raise PublishError(f"MQTT not connected, cannot publish '{message.topic}'")

        info = mqttc.publish(message.topic, message.payload, qos=message.qos, retain=message.retain)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise PublishError(f"MQTT publish to '{message.topic}' failed: {mqtt.error_string(info.rc)}")

        if message.qos > 0:
            try:
                info.wait_for_publish(self._config.publish_timeout)
            except (ValueError, RuntimeError) as e:
                raise PublishError(f"MQTT publish to '{message.topic}' failed: {e}") from e
            if not info.is_published():
                raise PublishError(f"MQTT publish to '{message.topic}' was not acknowledged")

        logger.debug(f"MQTT Publish: topic='{message.topic}', value='{message.payload}'")

    def disconnect(self) -> None:
        """Disconnect from the broker. Best effort, never raises."""
        self._closing = True
        mqttc = self._mqttc
        if mqttc is None:
            return
        try:
            if self._connected.is_set() and self._config.status:
                mqttc.publish(self._topic(MqttTopicSuffix.STATUS), ConnectionStatus.OFFLINE, retain=True)
            mqttc.disconnect()
            mqttc.loop_stop()
        except Exception as e:
            logger.warning(f"Error disconnecting from MQTT broker: {type(e).__name__}: '{e}'")
        finally:
            self._connected.clear()
            self._mqttc = None
