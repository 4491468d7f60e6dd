"""Configuration loading utilities for the directory monitor."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional

import yaml # type: ignore

from .sink import DEFAULT_HISTORY_SIZE

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised when the configuration file is missing or invalid."""


@dataclass
class MonitorConfig:
    """Options describing how the directory monitor should behave."""

    root_path: Path
    log_file: Optional[Path] = None
    use_curses: bool = False
    history_size: int = DEFAULT_HISTORY_SIZE
    follow_symlinks: bool = False
    exclude_patterns: List[str] = field(default_factory=list)


def load_config(path: Path, *, root_path: Path) -> MonitorConfig:
    """Load and validate the YAML configuration file."""

    if not path.exists():
        raise ConfigError(f"Configuration file not found: {path}")

    try:
        data = yaml.safe_load(path.read_text())
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse YAML configuration: {exc}") from exc

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError("Configuration root must be a mapping")

    return _parse_monitor_config(data.get("monitor", {}), config_path=path, root_path=root_path)


def _parse_monitor_config(raw: Any, *, config_path: Path, root_path: Path) -> MonitorConfig:
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigError("'monitor' section must be a mapping")

    log_file: Optional[Path] = None
    log_file_raw = raw.get("log_file")
    if log_file_raw is not None:
        if not isinstance(log_file_raw, str):
            raise ConfigError("monitor.log_file must be a string")
        log_file = Path(log_file_raw)
        if not log_file.is_absolute():
            log_file = (config_path.parent / log_file).resolve()

    history_size = raw.get("history_size", DEFAULT_HISTORY_SIZE)
    if isinstance(history_size, bool) or not isinstance(history_size, int):
        raise ConfigError("monitor.history_size must be an integer")
    if history_size <= 0:
        raise ConfigError("monitor.history_size must be positive")

    use_curses = _ensure_bool(raw.get("curses", False), "monitor.curses")
    follow_symlinks = _ensure_bool(raw.get("follow_symlinks", False), "monitor.follow_symlinks")
    exclude_patterns = _ensure_str_list(raw.get("exclude_patterns", []), "monitor.exclude_patterns")

    config = MonitorConfig(
        root_path=root_path,
        log_file=log_file,
        use_curses=use_curses,
        history_size=history_size,
        follow_symlinks=follow_symlinks,
        exclude_patterns=exclude_patterns,
    )
    logger.debug("Loaded monitor configuration from %s: %s", config_path, config)
    return config


def _ensure_bool(value: Any, field_name: str) -> bool:
    if not isinstance(value, bool):
        raise ConfigError(f"{field_name} must be a boolean")
    return value


def _ensure_str_list(value: Any, field_name: str) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list):
        raise ConfigError(f"{field_name} must be a list of strings")
    items: List[str] = []
    for elem in value:
        if not isinstance(elem, str):
            raise ConfigError(f"{field_name} must contain only strings")
        items.append(elem)
    return items
