"""Watch bookkeeping and recursive watch installation."""
from __future__ import annotations

import logging
import os
from fnmatch import fnmatch
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Protocol, Set, Tuple

from inotify_simple import flags

logger = logging.getLogger(__name__)

WATCH_MASK = (
    flags.CREATE
    | flags.DELETE
    | flags.MODIFY
    | flags.MOVED_FROM
    | flags.MOVED_TO
    | flags.ATTRIB
)


class WatchInstallError(Exception):
    """Raised when a directory cannot be listed or watched."""

    def __init__(self, path: Path, reason: str):
        super().__init__(f"Could not add watch for {path}: {reason}")
        self.path = path
        self.reason = reason


class WatchFacility(Protocol):
    """The part of the notification facility the installer needs."""

    def add_watch(self, path, mask: int) -> int:
        ...


class WatchTable:
    """Maps watch handles to the directories they cover."""

    def __init__(self) -> None:
        self._paths: Dict[int, Path] = {}

    def put(self, handle: int, path: Path) -> None:
        self._paths[handle] = path

    def get(self, handle: int) -> Optional[Path]:
        return self._paths.get(handle)

    def discard(self, handle: int) -> Optional[Path]:
        return self._paths.pop(handle, None)

    def paths(self) -> List[Path]:
        return list(self._paths.values())

    def __contains__(self, handle: object) -> bool:
        return handle in self._paths

    def __len__(self) -> int:
        return len(self._paths)

    def __iter__(self) -> Iterator[Tuple[int, Path]]:
        return iter(list(self._paths.items()))


class RecursiveWatchInstaller:
    """Registers a watch on every directory below a root.

    Only the root of each ``install_recursive`` call is required to succeed.
    A subdirectory that cannot be watched is logged and skipped, so the rest
    of the tree is still covered.
    """

    def __init__(
        self,
        facility: WatchFacility,
        table: WatchTable,
        *,
        follow_symlinks: bool = False,
        exclude_patterns: Optional[List[str]] = None,
    ):
        self._facility = facility
        self._table = table
        self._follow_symlinks = follow_symlinks
        self._exclude_patterns = list(exclude_patterns or [])
        self.watches_added = 0

    def is_excluded(self, name: str) -> bool:
        return any(fnmatch(name, pattern) for pattern in self._exclude_patterns)

    def install_recursive(self, root: Path) -> int:
        """Watch ``root`` and every directory below it.

        Returns the number of watches registered by this call.
        """

        visited: Set[Tuple[int, int]] = set()
        before = self.watches_added
        self._install(Path(root), visited)
        return self.watches_added - before

    def _install(self, path: Path, visited: Set[Tuple[int, int]]) -> None:
        try:
            entries = os.scandir(path)
        except OSError as exc:
            raise WatchInstallError(path, exc.strerror or str(exc)) from exc

        with entries:
            try:
                handle = self._facility.add_watch(path, WATCH_MASK)
            except OSError as exc:
                raise WatchInstallError(path, exc.strerror or str(exc)) from exc

            if handle not in self._table:
                self.watches_added += 1
            self._table.put(handle, path)
            logger.debug("Watching %s (wd=%s)", path, handle)

            if self._follow_symlinks:
                key = _inode_key(path)
                if key is not None:
                    visited.add(key)

            for entry in entries:
                if self.is_excluded(entry.name) or not self._is_directory(entry):
                    continue
                child = Path(entry.path)
                if self._follow_symlinks:
                    key = _inode_key(child)
                    if key is None or key in visited:
                        continue
                try:
                    self._install(child, visited)
                except WatchInstallError as exc:
                    logger.warning("%s", exc)

    def _is_directory(self, entry: os.DirEntry) -> bool:
        try:
            return entry.is_dir(follow_symlinks=self._follow_symlinks)
        except OSError:
            return False


def _inode_key(path: Path) -> Optional[Tuple[int, int]]:
    try:
        stat = path.stat()
    except OSError:
        return None
    return stat.st_dev, stat.st_ino
