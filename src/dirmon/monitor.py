"""Directory monitoring loop driven by inotify."""
from __future__ import annotations

import logging
import signal
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Optional, Protocol

from inotify_simple import INotify

from .config import MonitorConfig
from .decoder import EventDecoder
from .display import CursesDisplay
from .sink import LogSink, SinkLogHandler
from .watches import RecursiveWatchInstaller, WatchTable

logger = logging.getLogger(__name__)


class FacilityError(Exception):
    """Raised when the notification facility cannot be initialised."""


class MonitorInterrupted(Exception):
    """Raised from the SIGTERM handler to abort a blocking read."""


class MonitorState(str, Enum):
    """Lifecycle of a :class:`DirectoryMonitor`."""

    INITIALIZING = "initializing"
    WATCHING = "watching"
    SHUTTING_DOWN = "shutting_down"
    TERMINATED = "terminated"


class NotificationFacility(Protocol):
    def add_watch(self, path, mask: int) -> int:
        ...

    def read(self) -> Iterable[Any]:
        ...

    def close(self) -> None:
        ...


@dataclass
class MonitorStats:
    """Counters emitted by the monitor for observability."""

    batches: int = 0
    events_emitted: int = 0


def open_facility() -> INotify:
    try:
        return INotify()
    except OSError as exc:
        raise FacilityError(f"Could not initialize inotify: {exc}") from exc


class DirectoryMonitor:
    """Watches a directory tree and feeds its changes into a log sink.

    ``start`` installs the initial watches and must succeed before anything
    is logged. ``run`` then blocks on the facility until a read fails or the
    process is interrupted, and always finishes with ``shutdown``.
    """

    def __init__(
        self,
        config: MonitorConfig,
        sink: LogSink,
        *,
        facility: Optional[NotificationFacility] = None,
        display: Optional[CursesDisplay] = None,
    ):
        self._config = config
        self._sink = sink
        self._facility = facility
        self._display = display
        self._table = WatchTable()
        self._installer: Optional[RecursiveWatchInstaller] = None
        self._decoder: Optional[EventDecoder] = None
        self._stop_event = threading.Event()
        self._stats = MonitorStats()
        self._state = MonitorState.INITIALIZING
        self._log_handler: Optional[SinkLogHandler] = None
        self._saved_propagate = True
        self._previous_sigterm: Any = signal.SIG_DFL

    @property
    def state(self) -> MonitorState:
        return self._state

    @property
    def table(self) -> WatchTable:
        return self._table

    @property
    def stats(self) -> MonitorStats:
        return self._stats

    def start(self) -> None:
        """Install the initial watches and enter the watching state.

        Any failure releases what was acquired and is re-raised.
        """

        if self._state is not MonitorState.INITIALIZING:
            raise RuntimeError(f"Monitor cannot start from state {self._state.value}")

        root = self._config.root_path
        logger.debug("Starting monitor for %s", root)
        try:
            if self._facility is None:
                self._facility = open_facility()
            self._installer = RecursiveWatchInstaller(
                self._facility,
                self._table,
                follow_symlinks=self._config.follow_symlinks,
                exclude_patterns=self._config.exclude_patterns,
            )
            self._decoder = EventDecoder(self._table, self._installer)
            self._installer.install_recursive(root)
            if self._display is not None:
                self._display.open()
        except BaseException:
            self._release()
            self._state = MonitorState.TERMINATED
            raise

        self._attach_log_handler()
        self._state = MonitorState.WATCHING
        self._sink.append(f"Monitoring directory: {root}")
        self._sink.append("Press Ctrl+C to exit")
        self._render()

    def run(self) -> int:
        """Run the monitoring loop until stopped; returns an exit status."""

        self.start()
        exit_code = 0
        handler_installed = self._install_signal_handler()
        try:
            while not self._stop_event.is_set():
                try:
                    records = self._facility.read()
                except OSError as exc:
                    logger.error("Could not read inotify events: %s", exc)
                    exit_code = 1
                    break
                self.process_batch(records)
        except (KeyboardInterrupt, MonitorInterrupted):
            logger.info("Monitor interrupted by user")
        finally:
            if handler_installed:
                signal.signal(signal.SIGTERM, self._previous_sigterm)
            self.shutdown()
        return exit_code

    def stop(self) -> None:
        """Stop after the batch currently being read has been processed."""

        self._stop_event.set()

    def process_batch(self, records: Iterable[Any]) -> int:
        """Decode and log one read batch, then redraw once."""

        if self._state is not MonitorState.WATCHING:
            raise RuntimeError("Monitor is not watching")

        emitted = 0
        for record in records:
            event = self._decoder.decode(record)
            if event is None:
                continue
            self._sink.append_event(event)
            emitted += 1

        self._stats.batches += 1
        self._stats.events_emitted += emitted
        self._render()
        return emitted

    def shutdown(self) -> None:
        """Release the facility, the log stream and the display, once."""

        if self._state in (MonitorState.SHUTTING_DOWN, MonitorState.TERMINATED):
            return
        self._state = MonitorState.SHUTTING_DOWN
        watches_added = self._installer.watches_added if self._installer else 0
        logger.info(
            "Monitor stopped after %s batches, %s events, %s watches",
            self._stats.batches,
            self._stats.events_emitted,
            watches_added,
        )
        self._detach_log_handler()
        try:
            self._release()
        finally:
            self._state = MonitorState.TERMINATED

    def _release(self) -> None:
        try:
            if self._facility is not None:
                self._facility.close()
        finally:
            try:
                self._sink.close()
            finally:
                if self._display is not None:
                    self._display.close()

    def _render(self) -> None:
        if self._display is not None:
            self._display.render(self._sink.snapshot())

    def _attach_log_handler(self) -> None:
        package_logger = logging.getLogger(__package__)
        self._log_handler = SinkLogHandler(self._sink)
        package_logger.addHandler(self._log_handler)
        self._saved_propagate = package_logger.propagate
        package_logger.propagate = False

    def _detach_log_handler(self) -> None:
        if self._log_handler is None:
            return
        package_logger = logging.getLogger(__package__)
        package_logger.removeHandler(self._log_handler)
        package_logger.propagate = self._saved_propagate
        self._log_handler = None

    def _install_signal_handler(self) -> bool:
        if threading.current_thread() is not threading.main_thread():
            return False
        previous = signal.signal(signal.SIGTERM, _raise_interrupted)
        self._previous_sigterm = previous if previous is not None else signal.SIG_DFL
        return True


def _raise_interrupted(signum, frame) -> None:
    raise MonitorInterrupted(f"Received signal {signum}")
