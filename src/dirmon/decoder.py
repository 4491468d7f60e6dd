"""Turns raw inotify records into path-resolved domain events."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from inotify_simple import flags

from .events import DomainEvent, EventKind, classify_mask
from .watches import RecursiveWatchInstaller, WatchInstallError, WatchTable

logger = logging.getLogger(__name__)


def unknown_watch_path(handle: int) -> Path:
    """Placeholder directory used when a record names an unregistered watch."""

    return Path(f"<unknown watch {handle}>")


class EventDecoder:
    """Resolves records against the watch table and extends coverage.

    Records without a name describe the watched directory itself and never
    produce an event. Among those, ``IN_IGNORED`` drops the invalidated watch
    from the table and ``IN_Q_OVERFLOW`` is reported as lost events.
    """

    def __init__(self, table: WatchTable, installer: RecursiveWatchInstaller):
        self._table = table
        self._installer = installer

    def decode(self, record) -> Optional[DomainEvent]:
        mask = record.mask
        if not record.name:
            self._handle_watch_notice(record.wd, mask)
            return None

        if self._installer.is_excluded(record.name):
            return None

        directory = self._table.get(record.wd)
        if directory is None:
            directory = unknown_watch_path(record.wd)
            logger.warning("Event for unknown watch %s: %s", record.wd, record.name)

        is_directory = bool(mask & flags.ISDIR)
        kind = classify_mask(mask)
        full_path = directory / record.name

        if is_directory and kind in (EventKind.CREATED, EventKind.MOVED_TO):
            self._extend_coverage(full_path)

        return DomainEvent(kind=kind, is_directory=is_directory, full_path=full_path)

    def _extend_coverage(self, path: Path) -> None:
        try:
            self._installer.install_recursive(path)
        except WatchInstallError as exc:
            logger.warning("Error adding watch: %s", exc)

    def _handle_watch_notice(self, handle: int, mask: int) -> None:
        if mask & flags.Q_OVERFLOW:
            logger.warning("Event queue overflowed; some events were lost")
        elif mask & flags.IGNORED:
            removed = self._table.discard(handle)
            if removed is not None:
                logger.debug("Watch %s for %s was removed", handle, removed)
