"""Progress reporting for send/receive runs.

A run writes its status text to a ``ProgressSink``.  Sinks are called on
the worker thread and must not block.  ``MultiProgress`` broadcasts to any
number of sinks; a sink that raises is logged and skipped so one broken
display never stops a run.
"""

from __future__ import annotations

import logging
import sys
import threading
from typing import Protocol, TextIO, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class ProgressSink(Protocol):
    """Receiver of progress text and completion percentage."""

    def write_message(self, text: str) -> None: ...  # pragma: no cover

    def write_warning(self, text: str) -> None: ...  # pragma: no cover

    def write_error(self, text: str) -> None: ...  # pragma: no cover

    def set_percent(self, value: int) -> None: ...  # pragma: no cover


class NullProgress:
    """Discards everything."""

    def write_message(self, text: str) -> None:
        pass

    def write_warning(self, text: str) -> None:
        pass

    def write_error(self, text: str) -> None:
        pass

    def set_percent(self, value: int) -> None:
        pass


class StringProgress:
    """Accumulates progress lines; ``text`` is the full log."""

    def __init__(self) -> None:
        self._lines: list[str] = []
        self._lock = threading.Lock()
        self.percent = 0

    def write_message(self, text: str) -> None:
        self._append(text)

    def write_warning(self, text: str) -> None:
        self._append(f"WARNING: {text}")

    def write_error(self, text: str) -> None:
        self._append(f"ERROR: {text}")

    def set_percent(self, value: int) -> None:
        self.percent = value

    @property
    def text(self) -> str:
        with self._lock:
            return "\n".join(self._lines)

    def _append(self, line: str) -> None:
        with self._lock:
            self._lines.append(line)


class ConsoleProgress:
    """Writes progress lines to a text stream (stderr by default)."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream or sys.stderr

    def write_message(self, text: str) -> None:
        print(text, file=self._stream, flush=True)

    def write_warning(self, text: str) -> None:
        print(f"Warning: {text}", file=self._stream, flush=True)

    def write_error(self, text: str) -> None:
        print(f"Error: {text}", file=self._stream, flush=True)

    def set_percent(self, value: int) -> None:
        pass


class LoggingProgress:
    """Routes progress text to a ``logging.Logger``."""

    def __init__(self, target: logging.Logger | None = None) -> None:
        self._logger = target or logger

    def write_message(self, text: str) -> None:
        self._logger.info(text)

    def write_warning(self, text: str) -> None:
        self._logger.warning(text)

    def write_error(self, text: str) -> None:
        self._logger.error(text)

    def set_percent(self, value: int) -> None:
        self._logger.debug("Progress %d%%", value)


class MultiProgress:
    """Broadcast progress to every registered sink."""

    def __init__(self, *sinks: ProgressSink) -> None:
        self._sinks: list[ProgressSink] = list(sinks)
        self._lock = threading.Lock()

    def add(self, sink: ProgressSink) -> None:
        with self._lock:
            self._sinks.append(sink)

    def remove(self, sink: ProgressSink) -> None:
        with self._lock:
            if sink in self._sinks:
                self._sinks.remove(sink)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sinks)

    def write_message(self, text: str) -> None:
        self._broadcast("write_message", text)

    def write_warning(self, text: str) -> None:
        self._broadcast("write_warning", text)

    def write_error(self, text: str) -> None:
        self._broadcast("write_error", text)

    def set_percent(self, value: int) -> None:
        self._broadcast("set_percent", value)

    def _broadcast(self, method: str, value: object) -> None:
        with self._lock:
            sinks = list(self._sinks)
        for sink in sinks:
            try:
                getattr(sink, method)(value)
            except Exception:
                logger.exception(
                    "Progress sink %r failed in %s", sink, method
                )
