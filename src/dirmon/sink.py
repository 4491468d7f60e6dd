"""Bounded event history with stream mirroring."""
from __future__ import annotations

import logging
import sys
from collections import deque
from dataclasses import dataclass
from typing import Deque, Optional, TextIO, Tuple

from .events import DomainEvent, EventKind

DEFAULT_HISTORY_SIZE = 1000


@dataclass(frozen=True)
class LogLine:
    """A rendered history entry and the kind it was rendered from."""

    text: str
    kind: Optional[EventKind] = None


class LogSink:
    """Append-only history bounded to the most recent ``capacity`` lines.

    Every line is also written to the persistent stream (flushed per line)
    when one is configured, and to stdout unless interactive mode owns the
    terminal.
    """

    def __init__(
        self,
        *,
        capacity: int = DEFAULT_HISTORY_SIZE,
        stream: Optional[TextIO] = None,
        interactive: bool = False,
        stdout: Optional[TextIO] = None,
    ):
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._history: Deque[LogLine] = deque(maxlen=capacity)
        self._stream = stream
        self._interactive = interactive
        self._stdout = stdout
        self._closed = False

    @property
    def capacity(self) -> int:
        return self._history.maxlen or 0

    @property
    def interactive(self) -> bool:
        return self._interactive

    def append(self, text: str, kind: Optional[EventKind] = None) -> None:
        self._history.append(LogLine(text=text, kind=kind))

        if self._stream is not None and not self._closed:
            self._stream.write(text + "\n")
            self._stream.flush()

        if not self._interactive:
            out = self._stdout if self._stdout is not None else sys.stdout
            out.write(text + "\n")
            out.flush()

    def append_event(self, event: DomainEvent) -> None:
        self.append(event.render(), event.kind)

    def snapshot(self) -> Tuple[LogLine, ...]:
        return tuple(self._history)

    def __len__(self) -> int:
        return len(self._history)

    def close(self) -> None:
        """Flush and release the persistent stream."""

        if self._closed:
            return
        self._closed = True
        if self._stream is not None:
            self._stream.flush()
            self._stream.close()


class SinkLogHandler(logging.Handler):
    """Routes log records into a :class:`LogSink` as history lines."""

    def __init__(self, sink: LogSink, level: int = logging.NOTSET):
        super().__init__(level)
        self._sink = sink

    def format(self, record: logging.LogRecord) -> str:
        message = record.getMessage()
        if record.levelno >= logging.WARNING:
            return f"{record.levelname.capitalize()}: {message}"
        return message

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self._sink.append(self.format(record))
        except Exception:
            self.handleError(record)
