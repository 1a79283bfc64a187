"""Logging setup with an in-memory tail for the console."""

from __future__ import annotations

import logging
import sys
from collections import deque

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
DATE_FORMAT = "%Y/%m/%d %H:%M:%S"
MAX_LOG_LINES = 500


class RingBufferHandler(logging.Handler):
    """Keep the most recent formatted records in a bounded FIFO."""

    def __init__(self, capacity: int = MAX_LOG_LINES, level: int = logging.NOTSET):
        super().__init__(level)
        self.capacity = capacity
        self._lines: deque[str] = deque(maxlen=capacity)

    def emit(self, record: logging.LogRecord) -> None:
        try:
            line = self.format(record)
        except Exception:
            self.handleError(record)
            return
        with self.lock:
            self._lines.append(line)

    def lines(self) -> list[str]:
        """Return a snapshot of the buffered lines, oldest first."""

        with self.lock:
            return list(self._lines)

    def clear(self) -> None:
        with self.lock:
            self._lines.clear()


_log_buffer = RingBufferHandler()


def get_log_buffer() -> RingBufferHandler:
    """Return the process-wide ring buffer handler."""

    return _log_buffer


def configure_logging(level: int = logging.INFO) -> None:
    """Attach a stdout sink and the ring buffer sink to the root logger.

    Safe to call more than once; handlers are only installed the first time.
    """

    root = logging.getLogger()
    root.setLevel(level)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    if not any(getattr(handler, "_newslettar_stdout", False) for handler in root.handlers):
        stream_handler = logging.StreamHandler(sys.stdout)
        stream_handler.setFormatter(formatter)
        stream_handler._newslettar_stdout = True  # type: ignore[attr-defined]
        root.addHandler(stream_handler)

    if _log_buffer not in root.handlers:
        _log_buffer.setFormatter(formatter)
        root.addHandler(_log_buffer)
