"""Logging helpers for formsmith.

Records from the ``formsmith.*`` loggers are written with a short component
name (``domain.form_store`` rather than ``formsmith.domain.form_store``).
Individual components can be made more or less verbose through the
``component_levels`` argument or the ``FORMSMITH_LOG_LEVELS`` environment
variable, e.g. ``FORMSMITH_LOG_LEVELS="domain=DEBUG,services=WARNING"``.
"""

from __future__ import annotations

import logging
import logging.handlers
import os
from pathlib import Path
from typing import Mapping

__all__ = ["setup_logging", "get_log_path", "component_name", "parse_component_levels"]

PACKAGE_LOGGER = "formsmith"
LOG_FILENAME = "formsmith.log"
_DEFAULT_LOG_DIR = Path.home() / ".formsmith" / "logs"
_NOISY_LOGGERS: tuple[str, ...] = ("ruamel", "jsonschema")
_CONFIGURED = False
_LOG_PATH: Path | None = None
_TUNED_LOGGERS: list[str] = []

LOGGER = logging.getLogger(__name__)


class _ComponentFilter(logging.Filter):
    """Attach ``record.component`` for the formatter."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.component = component_name(record.name)
        return True


def component_name(logger_name: str) -> str:
    """Return ``logger_name`` without the package prefix."""

    if logger_name == PACKAGE_LOGGER:
        return "app"
    prefix = f"{PACKAGE_LOGGER}."
    return logger_name[len(prefix):] if logger_name.startswith(prefix) else logger_name


def parse_component_levels(spec: str | None) -> tuple[dict[str, int], list[str]]:
    """Parse ``"component=LEVEL,..."`` into levels plus the rejected entries."""

    levels: dict[str, int] = {}
    rejected: list[str] = []
    for entry in (spec or "").split(","):
        entry = entry.strip()
        if not entry:
            continue
        component, _, raw_level = entry.partition("=")
        level = _level_value(raw_level)
        if not component.strip() or level is None:
            rejected.append(entry)
            continue
        levels[component.strip()] = level
    return levels, rejected


def setup_logging(
    level: int = logging.INFO,
    *,
    log_dir: Path | str | None = None,
    console: bool = True,
    component_levels: Mapping[str, int | str] | None = None,
    max_bytes: int = 1_000_000,
    backup_count: int = 3,
    force: bool = False,
) -> Path:
    """Configure root logging with rotating file + optional console handlers.

    ``component_levels`` maps component names relative to the ``formsmith``
    package to levels. Entries from ``FORMSMITH_LOG_LEVELS`` are applied
    first, so explicit arguments win.
    """

    global _CONFIGURED, _LOG_PATH, _TUNED_LOGGERS
    if _CONFIGURED and not force and _LOG_PATH is not None:
        return _LOG_PATH

    target_dir = _resolve_log_dir(log_dir)
    target_dir.mkdir(parents=True, exist_ok=True)
    log_path = target_dir / LOG_FILENAME

    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)-8s | %(component)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    component_filter = _ComponentFilter()

    # No level on the file handler so a component can log below ``level``.
    handlers: list[logging.Handler] = []
    file_handler = logging.handlers.RotatingFileHandler(
        log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )
    handlers.append(file_handler)

    if console:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(max(level, logging.WARNING))
        handlers.append(console_handler)

    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(component_filter)

    levels, rejected = parse_component_levels(os.environ.get("FORMSMITH_LOG_LEVELS"))
    for component, value in (component_levels or {}).items():
        parsed = _level_value(value)
        if parsed is None:
            rejected.append(f"{component}={value}")
            continue
        levels[component] = parsed

    logging.basicConfig(level=level, handlers=handlers, force=True)
    logging.captureWarnings(True)
    quiet_level = logging.WARNING if level < logging.WARNING else level
    for logger_name in _NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(quiet_level)

    for logger_name in _TUNED_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.NOTSET)
    _TUNED_LOGGERS = []
    for component, value in sorted(levels.items()):
        logger_name = _qualified_name(component)
        logging.getLogger(logger_name).setLevel(value)
        _TUNED_LOGGERS.append(logger_name)
    if rejected:
        LOGGER.warning("Ignoring invalid component log levels: %s", ", ".join(rejected))

    _CONFIGURED = True
    _LOG_PATH = log_path
    return log_path


def get_log_path() -> Path | None:
    """Return the currently configured log file if available."""

    return _LOG_PATH


def _qualified_name(component: str) -> str:
    if component in ("", "app"):
        return PACKAGE_LOGGER
    if component == PACKAGE_LOGGER or component.startswith(f"{PACKAGE_LOGGER}."):
        return component
    return f"{PACKAGE_LOGGER}.{component}"


def _level_value(value: int | str) -> int | None:
    if isinstance(value, int):
        return value
    text = str(value).strip()
    if text.isdigit():
        return int(text)
    resolved = logging.getLevelName(text.upper())
    return resolved if isinstance(resolved, int) else None


def _resolve_log_dir(log_dir: Path | str | None) -> Path:
    env_override = os.environ.get("FORMSMITH_LOG_DIR")
    return Path(log_dir or env_override or _DEFAULT_LOG_DIR).expanduser()
