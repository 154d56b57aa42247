"""
Error Reporting

The supervisor hands every fatal error to a reporter. The default reporter
logs it and remembers the last one so the MQTT publisher can expose it on the
error topic after reconnecting.
"""

import logging
import threading
from typing import Protocol

from errors import DsmrReaderError

logger = logging.getLogger(__name__)


class Reporter(Protocol):
    @property
    def last_error(self) -> str | None: ...

    def report(self, error: BaseException) -> None: ...


class ErrorReporter:
    """Logs errors and keeps the last one."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._last_error: str | None = None
        self.error_count = 0

    @property
    def last_error(self) -> str | None:
        with self._lock:
            return self._last_error

    def report(self, error: BaseException) -> None:
        message = f"{type(error).__name__}: {error}"
        with self._lock:
            self._last_error = message
            self.error_count += 1

        if isinstance(error, DsmrReaderError):
            logger.error(f"[{error.category.upper()}] {error}")
        else:
            # Not one of ours, so most likely a bug: keep the traceback
            logger.error(f"Unexpected exception in pipeline: {message}", exc_info=error)
