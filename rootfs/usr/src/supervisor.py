"""
Supervisor

Keeps the pipeline alive: run it, report whatever killed it, clean up, wait, repeat.
"""

from collections.abc import Callable
import logging
import queue
import threading

from config import ConfigModel
from constants import SupervisorState
from mqtt_handler import MqttPublisher
from pipeline import PipelineRunner, Publisher, Source, TaskRunPipeline
from report import Reporter
from serial_handler import TelegramSource

logger = logging.getLogger(__name__)


class Supervisor:
    """
    Forever-loop around the pipeline runner.

    Every cycle gets a fresh TelegramSource and MqttPublisher. The runner thread
    and the publisher's network thread both feed a failure queue; the first
    failure ends the cycle and the other side is torn down.
    """

    def __init__(
        self,
        config: ConfigModel,
        reporter: Reporter,
        source_factory: Callable[..., Source] = TelegramSource,
        publisher_factory: Callable[..., Publisher] = MqttPublisher,
        stopper: threading.Event | None = None,
    ) -> None:
        """
        Initialize the supervisor.

        Args:
            config: Application configuration.
            reporter: Sink for every error that ends a pipeline run.
            source_factory: Builds a TelegramSource from the serial config.
            publisher_factory: Builds a publisher from the MQTT config.
            stopper: Event to signal when the supervisor should stop.
        """
        self._config = config
        self._reporter = reporter
        self._source_factory = source_factory
        self._publisher_factory = publisher_factory
        self._stopper = stopper if stopper is not None else threading.Event()
        self._join_timeout = config.serial.timeout + config.mqtt.publish_timeout
        self.state = SupervisorState.RECOVERING
        self.cycles = 0

    def _last_error(self) -> str | None:
        return self._reporter.last_error

    def _wait_for_failure(self, failures: queue.Queue) -> BaseException | None:
        """Block until the first failure arrives, or return None if we are asked to stop."""
        while not self._stopper.is_set():
            try:
                return failures.get(timeout=1)
            except queue.Empty:
                continue
        return None

    def run_once(self) -> BaseException | None:
        """
        Run one pipeline cycle until it fails.

        Returns:
            BaseException | None: The error that ended the cycle, None if stopped.
        """
        self.cycles += 1
        failures: queue.Queue = queue.Queue()

        source = self._source_factory(self._config.serial)
        publisher = self._publisher_factory(
            self._config.mqtt, on_connection_lost=failures.put, last_error=self._last_error
        )
        runner = PipelineRunner(self._config, source, publisher)
        task = TaskRunPipeline(runner, failures)

        self.state = SupervisorState.RUNNING
        logger.info(f"Starting pipeline (cycle {self.cycles})")
        task.start()

        error = self._wait_for_failure(failures)
        if error is not None:
            self._reporter.report(error)

        # Cleanup before retrying
        runner.stop()
        source.close()
        publisher.disconnect()
        task.join(self._join_timeout)
        if task.is_alive():
            logger.warning("Pipeline thread did not stop in time, abandoning it")

        self.state = SupervisorState.RECOVERING
        return error

    def run_forever(self) -> None:
        """Run pipeline cycles until the stopper is set. Errors never escape."""
        retry_delay = self._config.supervisor.retry_delay
        while not self._stopper.is_set():
            try:
                self.run_once()
            except Exception as e:
                self.state = SupervisorState.RECOVERING
                self._reporter.report(e)

            if self._stopper.is_set():
                break
            logger.info(f"Retry in {retry_delay} seconds")
            self._stopper.wait(retry_delay)
