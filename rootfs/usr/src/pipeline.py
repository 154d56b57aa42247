"""
Pipeline Runner

Drives one connection lifetime: serial readouts in, MQTT messages out.
"""

import logging
import queue
import threading
from typing import NoReturn, Protocol

from config import ConfigModel
from errors import EndOfStreamError
from measurement import MeasurementSet, OutboundMessage
from protocol import Readout

logger = logging.getLogger(__name__)


class Source(Protocol):
    def open(self) -> None: ...
    def readouts(self): ...
    def close(self) -> None: ...


class Publisher(Protocol):
    def connect(self) -> None: ...
    def publish(self, message: OutboundMessage) -> None: ...
    def disconnect(self) -> None: ...


class PipelineRunner:
    """
    Run the pipeline until something fails.

    There is no successful outcome: run() either loops forever or raises the
    first error from any stage.
    """

    def __init__(self, config: ConfigModel, source: Source, publisher: Publisher) -> None:
        self._config = config
        self._source = source
        self._publisher = publisher
        self._stopper = threading.Event()

    def stop(self) -> None:
        """Ask run() to end at the next telegram boundary."""
        self._stopper.set()

    def process(self, readout: Readout) -> int:
        """
        Decode one readout and publish its messages in order.

        Returns:
            int: Number of messages published.

        Raises:
            DecodeError: If the telegram as a whole cannot be decoded.
            PublishError: On the first message that fails; earlier messages stay delivered.
        """
        telegram = readout.to_telegram()
        measurements = MeasurementSet.from_telegram(telegram)
        messages = measurements.to_messages(
            self._config.mqtt.topic_prefix, self._config.mqtt.qos, self._config.mqtt.retain
        )
        for message in messages:
            self._publisher.publish(message)
        logger.debug(f"Telegram '{telegram.header}': published {len(messages)} messages")
        return len(messages)

    def run(self) -> NoReturn:
        self._source.open()
        self._publisher.connect()

        for readout in self._source.readouts():
            if self._stopper.is_set():
                break
            self.process(readout)

        # The meter transmits forever, so running out of telegrams is a failure
        raise EndOfStreamError("Telegram reader exhausted")


class TaskRunPipeline(threading.Thread):
    """Run a PipelineRunner on its own thread and hand its error to the supervisor."""

    def __init__(self, runner: PipelineRunner, failures: queue.Queue) -> None:
        super().__init__(name="pipeline", daemon=True)
        self._runner = runner
        self._failures = failures

    def run(self) -> None:
        try:
            self._runner.run()
        except Exception as e:
            self._failures.put(e)
