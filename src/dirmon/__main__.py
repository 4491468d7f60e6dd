"""Command-line entry point for the directory monitor."""
from __future__ import annotations

import argparse
import curses
import dataclasses
import logging
import os
import sys
from pathlib import Path
from typing import List, NoReturn, Optional

from .config import ConfigError, MonitorConfig, load_config
from .display import CursesDisplay
from .monitor import DirectoryMonitor, FacilityError
from .sink import LogSink
from .watches import WatchInstallError


class _ArgumentParser(argparse.ArgumentParser):
    """Prints usage on stdout and exits with status 1 on bad arguments."""

    def error(self, message: str) -> NoReturn:
        self.print_usage(sys.stdout)
        sys.stderr.write(f"{self.prog}: error: {message}\n")
        raise SystemExit(1)


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="dirmon",
        usage="%(prog)s [OPTIONS] DIRECTORY",
        description="Monitor a directory and log all changes (add, remove, edit) in real-time.",
    )
    parser.add_argument("directory", nargs="?", metavar="DIRECTORY", help="Directory to monitor")
    parser.add_argument("-l", "--log-file", metavar="FILE", help="Log events to FILE")
    parser.add_argument(
        "-c",
        "--curses",
        action="store_true",
        help="Use curses UI with live file change feed",
    )
    parser.add_argument("--config", metavar="FILE", help="Optional YAML configuration file")
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
    )

    if args.directory is None:
        sys.stderr.write("Error: No directory specified.\n")
        parser.print_help(sys.stdout)
        return 1

    directory = Path(args.directory)
    if not directory.is_dir():
        sys.stderr.write(f"Error: {directory} is not a valid directory.\n")
        return 1
    root_path = Path(os.path.abspath(directory))

    try:
        config = _resolve_config(args, root_path)
    except ConfigError as exc:
        logging.error("%s", exc)
        return 2

    stream = None
    if config.log_file is not None:
        try:
            stream = open(config.log_file, "a", encoding="utf-8", errors="surrogateescape")
        except OSError as exc:
            sys.stderr.write(f"Error: Could not open log file {config.log_file}: {exc.strerror}\n")
            return 1

    _tolerate_undecodable_names(sys.stdout)
    sink = LogSink(capacity=config.history_size, stream=stream, interactive=config.use_curses)
    display = CursesDisplay() if config.use_curses else None
    monitor = DirectoryMonitor(config, sink, display=display)
    try:
        return monitor.run()
    except (FacilityError, WatchInstallError, curses.error) as exc:
        sys.stderr.write(f"Error: {exc}\n")
        return 1


def _tolerate_undecodable_names(stream) -> None:
    """Let names that are not valid UTF-8 pass through as their raw bytes."""

    reconfigure = getattr(stream, "reconfigure", None)
    if reconfigure is not None:
        reconfigure(errors="surrogateescape")


def _resolve_config(args: argparse.Namespace, root_path: Path) -> MonitorConfig:
    if args.config:
        config = load_config(Path(args.config), root_path=root_path)
    else:
        config = MonitorConfig(root_path=root_path)

    overrides = {}
    if args.log_file:
        overrides["log_file"] = Path(args.log_file)
    if args.curses:
        overrides["use_curses"] = True
    return dataclasses.replace(config, **overrides)


if __name__ == "__main__":
    raise SystemExit(main())
