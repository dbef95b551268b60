"""Logging setup for the explorer.

Everything logs below the ``mfexplorer`` package logger. The process
lifecycle additionally emits ``runtime-event`` lines; those can be routed to
their own file so a session's start/stop history is readable on its own.
"""

from __future__ import annotations

import logging as py_logging
import sys
from pathlib import Path
from typing import TextIO

PACKAGE_LOGGER = "mfexplorer"
RUNTIME_LOGGER = "mfexplorer.terminal"
RUNTIME_EVENT_PREFIX = "runtime-event"
RUNTIME_LOG_NAME = "runtime.log"

LOG_LEVELS = {
    "DEBUG": py_logging.DEBUG,
    "INFO": py_logging.INFO,
    "WARN": py_logging.WARNING,
    "WARNING": py_logging.WARNING,
    "ERROR": py_logging.ERROR,
}
DEFAULT_LOG_PATH = Path("~/.config/mfexplorer/logs/mfexplorer.log")
_FALLBACK_LOG_PATH = Path(".mfexplorer/logs/mfexplorer.log")
_FORMAT = "%(asctime)s %(levelname)s %(name)s:%(lineno)d %(message)s"
_RUNTIME_FORMAT = "%(asctime)s %(message)s"


class RuntimeEventFilter(py_logging.Filter):
    """Pass only process lifecycle ``runtime-event`` records."""

    def __init__(self) -> None:
        super().__init__(RUNTIME_LOGGER)

    def filter(self, record: py_logging.LogRecord) -> bool:
        if not super().filter(record):
            return False
        return isinstance(record.msg, str) and record.msg.startswith(RUNTIME_EVENT_PREFIX)


def default_log_path() -> Path:
    try:
        resolved = DEFAULT_LOG_PATH.expanduser()
    except RuntimeError:
        resolved = (Path.cwd() / _FALLBACK_LOG_PATH).resolve()
    else:
        if not resolved.is_absolute():
            resolved = resolved.resolve()
    return resolved


def runtime_log_path(log_file: str | Path) -> Path:
    """The runtime-event log that sits next to ``log_file``."""
    return _absolute(log_file).with_name(RUNTIME_LOG_NAME)


def resolve_level(level: str) -> int:
    return LOG_LEVELS.get(level.upper(), py_logging.INFO)


def reset_logging() -> py_logging.Logger:
    """Close and detach every handler of the package logger."""
    logger = py_logging.getLogger(PACKAGE_LOGGER)
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)
    return logger


def _absolute(path: str | Path) -> Path:
    try:
        resolved = Path(path).expanduser()
    except RuntimeError:
        resolved = Path(path)
    if not resolved.is_absolute():
        resolved = resolved.resolve()
    return resolved


def _file_handler(path: str | Path, formatter: py_logging.Formatter) -> py_logging.FileHandler | None:
    log_path = _absolute(path)
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handler = py_logging.FileHandler(log_path, encoding="utf-8")
    except OSError:
        return None
    handler.setFormatter(formatter)
    return handler


def configure_logging(
    level: str = "INFO",
    stream: TextIO | None = None,
    *,
    log_file: str | Path | None = None,
    runtime_log_file: str | Path | None = None,
) -> py_logging.Logger:
    """Install stream and file handlers on the package logger.

    ``log_file`` receives every record at DEBUG. ``runtime_log_file`` receives
    only ``runtime-event`` records, whatever the console level is. A file that
    cannot be opened is skipped.
    """
    resolved = resolve_level(level)

    logger = reset_logging()
    # Runtime events are recorded at INFO even when the console is quieter.
    logger.setLevel(min(resolved, py_logging.INFO) if runtime_log_file else resolved)
    formatter = py_logging.Formatter(_FORMAT)

    handler = py_logging.StreamHandler(stream or sys.stderr)
    handler.setLevel(resolved)
    handler.setFormatter(formatter)
    logger.addHandler(handler)

    if log_file:
        file_handler = _file_handler(log_file, formatter)
        if file_handler is not None:
            file_handler.setLevel(py_logging.DEBUG)
            logger.addHandler(file_handler)

    if runtime_log_file:
        runtime_handler = _file_handler(runtime_log_file, py_logging.Formatter(_RUNTIME_FORMAT))
        if runtime_handler is not None:
            runtime_handler.setLevel(py_logging.INFO)
            runtime_handler.addFilter(RuntimeEventFilter())
            logger.addHandler(runtime_handler)

    logger.propagate = False
    return logger
