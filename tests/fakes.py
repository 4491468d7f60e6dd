"""Scripted stand-ins for inotify, curses and log streams used by the tests."""

from __future__ import annotations

import io
import os
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from inotify_simple import Event


def record(wd: int, mask: int, name: str = "", cookie: int = 0) -> Event:
    return Event(wd=wd, mask=mask, cookie=cookie, name=name)


class FakeFacility:
    """Hands out watch handles and replays queued read batches.

    Like the kernel, watching an inode that is already watched returns its
    existing handle, so a renamed directory keeps its handle.

    Reading past the last queued batch raises ``KeyboardInterrupt`` so a
    monitor loop ends the same way it does when the operator hits Ctrl+C.
    """

    def __init__(self, refuse: Iterable[Path] = (), calls: Optional[List[str]] = None):
        self.watches: Dict[int, Path] = {}
        self.masks: Dict[Path, int] = {}
        self.refuse = {Path(path) for path in refuse}
        self.closed = 0
        self._calls = calls
        self._next_wd = 1
        self._by_inode: Dict[tuple, int] = {}
        self._batches: List[object] = []

    def add_watch(self, path, mask: int) -> int:
        path = Path(path)
        if path in self.refuse:
            raise PermissionError(13, "Permission denied", str(path))
        stat = os.stat(path)
        key = (stat.st_dev, stat.st_ino)
        wd = self._by_inode.get(key)
        if wd is None:
            wd = self._next_wd
            self._next_wd += 1
            self._by_inode[key] = wd
        self.watches[wd] = path
        self.masks[path] = mask
        return wd

    def handle_for(self, path: Path) -> int:
        for wd, watched in self.watches.items():
            if watched == Path(path):
                return wd
        raise KeyError(path)

    def queue(self, *records: Event) -> None:
        self._batches.append(list(records))

    def fail_next_read(self, error: BaseException) -> None:
        self._batches.append(error)

    def read(self) -> List[Event]:
        if not self._batches:
            raise KeyboardInterrupt
        batch = self._batches.pop(0)
        if isinstance(batch, BaseException):
            raise batch
        return batch

    def close(self) -> None:
        self.closed += 1
        if self._calls is not None:
            self._calls.append("facility")


class RecordingStream(io.StringIO):
    """StringIO that keeps its contents and counts flushes after closing."""

    def __init__(self, calls: Optional[List[str]] = None):
        super().__init__()
        self.flushes = 0
        self.close_calls = 0
        self.final = ""
        self._calls = calls

    def flush(self) -> None:
        self.flushes += 1
        super().flush()

    def close(self) -> None:
        if self.closed:
            return
        self.final = self.getvalue()
        self.close_calls += 1
        if self._calls is not None:
            self._calls.append("stream")
        super().close()

    def text(self) -> str:
        return self.final if self.closed else self.getvalue()


class FakeDisplay:
    def __init__(self, calls: Optional[List[str]] = None):
        self.frames: List[tuple] = []
        self.opened = False
        self.closed = 0
        self._calls = calls

    def open(self) -> None:
        self.opened = True

    def render(self, lines) -> None:
        self.frames.append(tuple(lines))

    def close(self) -> None:
        self.closed += 1
        if self._calls is not None:
            self._calls.append("display")


class FakeWindow:
    """Records what a frame draws, keyed by row."""

    def __init__(self, rows: int, cols: int):
        self.rows = rows
        self.cols = cols
        self.text: Dict[int, str] = {}
        self.attrs: Dict[int, int] = {}
        self.erased = 0
        self.refreshed = 0

    def erase(self) -> None:
        self.erased += 1
        self.text.clear()
        self.attrs.clear()

    def getmaxyx(self):
        return self.rows, self.cols

    def addnstr(self, y: int, x: int, text: str, n: int, attr: int = 0) -> None:
        self.addstr(y, x, text[:n], attr)

    def addstr(self, y: int, x: int, text: str, attr: int = 0) -> None:
        assert 0 <= y < self.rows, f"row {y} outside a {self.rows} row window"
        assert x + len(text) <= self.cols, f"{text!r} overflows {self.cols} columns"
        self.text[y] = text
        self.attrs[y] = attr

    def hline(self, y: int, x: int, char, n: int) -> None:
        self.text[y] = str(char) * n

    def refresh(self) -> None:
        self.refreshed += 1
