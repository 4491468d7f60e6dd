"""Curses view that follows the tail of the event history."""
from __future__ import annotations

import curses
import logging
from dataclasses import dataclass, field
from typing import Dict, Optional, Sequence

from .events import EventKind
from .sink import LogLine

logger = logging.getLogger(__name__)

TITLE = "Directory Monitor - Press Ctrl+C to exit"
ELLIPSIS = "..."

# Reserved rows: title, rule and one spare line at the bottom.
_HEADER_ROWS = 2
_RESERVED_ROWS = 3

_KIND_COLORS = {
    EventKind.CREATED: (1, curses.COLOR_GREEN),
    EventKind.DELETED: (2, curses.COLOR_RED),
    EventKind.MODIFIED: (3, curses.COLOR_YELLOW),
    EventKind.MOVED_FROM: (4, curses.COLOR_BLUE),
    EventKind.MOVED_TO: (4, curses.COLOR_BLUE),
    EventKind.ATTRIBUTES_CHANGED: (5, curses.COLOR_CYAN),
}


@dataclass
class Palette:
    """Attributes used when drawing a frame."""

    kind_attrs: Dict[EventKind, int] = field(default_factory=dict)
    title_attr: int = curses.A_BOLD
    rule_char: object = "-"

    def attr_for(self, kind: Optional[EventKind]) -> int:
        if kind is None:
            return curses.A_NORMAL
        return self.kind_attrs.get(kind, curses.A_NORMAL)

    @classmethod
    def from_terminal(cls) -> "Palette":
        """Build the palette once curses has been initialised."""

        kind_attrs: Dict[EventKind, int] = {}
        if curses.has_colors():
            curses.start_color()
            for kind, (pair, color) in _KIND_COLORS.items():
                curses.init_pair(pair, color, curses.COLOR_BLACK)
                kind_attrs[kind] = curses.color_pair(pair)
        return cls(kind_attrs=kind_attrs, rule_char=curses.ACS_HLINE)


def fit_line(text: str, width: int) -> str:
    if width <= 0:
        return ""
    if len(text) <= width:
        return text
    if width <= len(ELLIPSIS):
        return ELLIPSIS[:width]
    return text[: width - len(ELLIPSIS)] + ELLIPSIS


def displayable(text: str) -> str:
    """Replace undecodable filename bytes so curses can encode the line."""

    return text.encode("utf-8", "surrogateescape").decode("utf-8", "replace")


def visible_lines(lines: Sequence[LogLine], rows: int) -> Sequence[LogLine]:
    """Return the tail of ``lines`` that fits in a ``rows`` tall screen."""

    display_lines = max(rows - _RESERVED_ROWS, 0)
    if display_lines == 0:
        return ()
    return lines[-display_lines:]


def draw_frame(window, lines: Sequence[LogLine], palette: Palette) -> None:
    """Draw one frame of the history onto ``window`` and refresh it."""

    window.erase()
    rows, cols = window.getmaxyx()

    window.addnstr(0, 0, TITLE, cols, palette.title_attr)
    if rows > 1:
        window.hline(1, 0, palette.rule_char, cols)

    for offset, line in enumerate(visible_lines(lines, rows)):
        window.addstr(_HEADER_ROWS + offset, 0, fit_line(displayable(line.text), cols), palette.attr_for(line.kind))

    window.refresh()


class CursesDisplay:
    """Owns the terminal while interactive mode is active."""

    def __init__(self) -> None:
        self._screen = None
        self._palette = Palette()

    @property
    def is_open(self) -> bool:
        return self._screen is not None

    def open(self) -> None:
        if self._screen is not None:
            return
        screen = curses.initscr()
        curses.cbreak()
        curses.noecho()
        screen.keypad(True)
        try:
            curses.curs_set(0)
        except curses.error:
            logger.debug("Terminal does not support hiding the cursor")
        self._palette = Palette.from_terminal()
        self._screen = screen
        screen.refresh()

    def render(self, lines: Sequence[LogLine]) -> None:
        if self._screen is None:
            return
        draw_frame(self._screen, lines, self._palette)

    def close(self) -> None:
        if self._screen is None:
            return
        self._screen.keypad(False)
        curses.nocbreak()
        curses.echo()
        curses.endwin()
        self._screen = None
