"""Event models shared across monitor components."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Tuple

from inotify_simple import flags

TIMESTAMP_FORMAT = "[%Y-%m-%d %H:%M:%S]"


class EventKind(str, Enum):
    """Kinds of filesystem changes reported by the monitor."""

    CREATED = "CREATED"
    DELETED = "DELETED"
    MODIFIED = "MODIFIED"
    MOVED_FROM = "MOVED_FROM"
    MOVED_TO = "MOVED_TO"
    ATTRIBUTES_CHANGED = "ATTRIBUTES_CHANGED"
    UNKNOWN = "UNKNOWN"


# Checked in order; the first flag present in a mask decides the kind.
_KIND_PRECEDENCE: Tuple[Tuple[int, EventKind], ...] = (
    (flags.CREATE, EventKind.CREATED),
    (flags.DELETE, EventKind.DELETED),
    (flags.MODIFY, EventKind.MODIFIED),
    (flags.MOVED_FROM, EventKind.MOVED_FROM),
    (flags.MOVED_TO, EventKind.MOVED_TO),
    (flags.ATTRIB, EventKind.ATTRIBUTES_CHANGED),
)


def classify_mask(mask: int) -> EventKind:
    """Map an inotify mask to the first matching event kind."""

    for flag, kind in _KIND_PRECEDENCE:
        if mask & flag:
            return kind
    return EventKind.UNKNOWN


@dataclass(frozen=True)
class DomainEvent:
    """A single change observed in the watched directory tree."""

    kind: EventKind
    is_directory: bool
    full_path: Path
    timestamp: datetime = field(default_factory=datetime.now)

    def render(self) -> str:
        target = "directory" if self.is_directory else "file"
        stamp = self.timestamp.strftime(TIMESTAMP_FORMAT)
        return f"{stamp} {self.kind.value} {target}: {self.full_path}"
