"""Logging setup for the bridge process.

Version: 0.3.0

Everything logs through stdlib loggers named after their module. Plugin
output goes to ``shellbridge.plugins.<plugin_id>`` so it can be tuned per
plugin from the ``logging.plugins`` configuration section.

Changelog:
    0.3.0: Per-plugin log levels
    0.2.0: Optional log file with reset or restart separator
    0.1.0: Initial release
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Iterable, Mapping, Optional

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

PLUGIN_LOGGER_NAMESPACE = "shellbridge.plugins"

# Server loggers follow the bridge level
SERVER_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")

# Level names accepted from the CLI and the config file
LEVEL_ALIASES = {
    "CRITIC": "CRITICAL",
    "CRITICAL": "CRITICAL",
    "ERROR": "ERROR",
    "WARN": "WARNING",
    "WARNING": "WARNING",
    "INFO": "INFO",
    "DEBUG": "DEBUG",
}

RESTART_BANNER = "\n\n{rule}\n=== SHELLBRIDGE RESTART - {timestamp} ===\n{rule}\n\n"


def normalize_log_level(level_name: str | None) -> str:
    """Map a user supplied level name to a logging level name (INFO if unknown)."""
    if not level_name:
        return "INFO"
    return LEVEL_ALIASES.get(level_name.strip().upper(), "INFO")


def plugin_logger_name(plugin_id: str) -> str:
    return f"{PLUGIN_LOGGER_NAMESPACE}.{plugin_id}"


def prepare_log_file(log_file: str | Path, reset_on_start: bool = True) -> None:
    """Truncate a previous log file, or mark the restart in it."""
    path = Path(log_file)
    path.parent.mkdir(parents=True, exist_ok=True)
    if not path.exists():
        return
    if reset_on_start:
        path.unlink()
        return
    banner = RESTART_BANNER.format(
        rule="=" * 80,
        timestamp=datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
    )
    with path.open("a", encoding="utf-8") as f:
        f.write(banner)


def apply_plugin_levels(levels: Mapping[str, str] | None) -> dict[str, str]:
    """Set the level of each ``shellbridge.plugins.<id>`` logger.

    Returns:
        The normalized level applied per plugin id.
    """
    applied: dict[str, str] = {}
    for plugin_id, level_name in (levels or {}).items():
        normalized = normalize_log_level(level_name)
        logging.getLogger(plugin_logger_name(plugin_id)).setLevel(normalized)
        applied[plugin_id] = normalized
    return applied


def _attach_file_handler(root: logging.Logger, log_file: str | Path, level: int, reset_on_start: bool) -> None:
    target = str(Path(log_file).resolve())
    for handler in root.handlers:
        if isinstance(handler, logging.FileHandler) and handler.baseFilename == target:
            return
    try:
        prepare_log_file(log_file, reset_on_start)
        handler = logging.FileHandler(log_file, encoding="utf-8")
    except OSError as e:
        logging.getLogger(__name__).warning("Cannot write log file %s: %s", log_file, e)
        return
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)


def configure_logging(
    level_name: str | None,
    extra_loggers: Iterable[str] | None = None,
    log_file: Optional[str | Path] = None,
    reset_on_start: bool = True,
    plugin_levels: Mapping[str, str] | None = None,
) -> str:
    """Configure the root logger, server loggers and plugin loggers.

    Args:
        level_name: Global level, see :data:`LEVEL_ALIASES`.
        extra_loggers: Additional logger names forced to the global level.
        log_file: Optional file receiving a copy of every record.
        reset_on_start: Truncate ``log_file`` instead of appending a banner.
        plugin_levels: Level overrides by plugin id. Handlers still filter
            at the global level, so an override can only quiet a plugin.

    Returns:
        The normalized global level name.
    """
    normalized = normalize_log_level(level_name)
    level = getattr(logging, normalized)

    logging.basicConfig(level=level, format=LOG_FORMAT)
    root = logging.getLogger()
    root.setLevel(level)
    for handler in root.handlers:
        handler.setLevel(level)

    for name in (*SERVER_LOGGERS, *(extra_loggers or ())):
        logging.getLogger(name).setLevel(level)

    if log_file:
        _attach_file_handler(root, log_file, level, reset_on_start)

    apply_plugin_levels(plugin_levels)
    return normalized
