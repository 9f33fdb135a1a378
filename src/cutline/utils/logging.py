"""Logging setup shared by the CLI and embedding hosts.

Handlers installed here are tracked so that a later call can swap them
without disturbing handlers the host application attached to the root
logger itself.
"""

from __future__ import annotations

import logging
import logging.handlers
import os
from pathlib import Path

__all__ = ["get_log_path", "resolve_level", "setup_logging", "teardown_logging"]

_DEFAULT_LOG_DIR = Path.home() / ".cutline" / "logs"
_LOG_FILE_NAME = "cutline.log"
_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
_NOISY_LOGGERS: tuple[str, ...] = ("asyncio", "httpx", "httpcore", "qasync")
_INSTALLED: list[logging.Handler] = []
_LOG_PATH: Path | None = None


def setup_logging(
    level: int | str | None = None,
    *,
    log_dir: Path | str | None = None,
    console: bool = True,
    max_bytes: int = 1_000_000,
    backup_count: int = 3,
    force: bool = False,
) -> Path:
    """Attach a rotating ``cutline.log`` handler (and optionally stderr) to the root logger.

    ``level`` falls back to ``CUTLINE_LOG_LEVEL`` and then ``INFO``. Repeated
    calls return the current log path unless ``force`` is set, in which case
    the previously installed handlers are closed and replaced.
    """

    global _LOG_PATH
    if _INSTALLED and not force and _LOG_PATH is not None:
        return _LOG_PATH

    resolved = resolve_level(level if level is not None else os.environ.get("CUTLINE_LOG_LEVEL"))
    target_dir = _resolve_log_dir(log_dir)
    target_dir.mkdir(parents=True, exist_ok=True)
    log_path = target_dir / _LOG_FILE_NAME

    teardown_logging()
    formatter = logging.Formatter(fmt=_LOG_FORMAT, datefmt=_DATE_FORMAT)
    handlers: list[logging.Handler] = [
        logging.handlers.RotatingFileHandler(log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8")
    ]
    if console:
        handlers.append(logging.StreamHandler())

    root = logging.getLogger()
    for handler in handlers:
        handler.setLevel(resolved)
        handler.setFormatter(formatter)
        root.addHandler(handler)
    root.setLevel(resolved)
    _INSTALLED.extend(handlers)
    logging.captureWarnings(True)
    _tune_external_loggers(resolved)

    _LOG_PATH = log_path
    logging.getLogger(__name__).debug("Logging to %s at %s", log_path, logging.getLevelName(resolved))
    return log_path


def teardown_logging() -> None:
    """Detach and close every handler installed by :func:`setup_logging`."""

    global _LOG_PATH
    root = logging.getLogger()
    while _INSTALLED:
        handler = _INSTALLED.pop()
        root.removeHandler(handler)
        handler.close()
    _LOG_PATH = None


def get_log_path() -> Path | None:
    """Return the active log file, or ``None`` when logging is not set up."""

    return _LOG_PATH


def resolve_level(value: int | str | None) -> int:
    """Turn ``"debug"``, ``"WARNING"``, ``"10"`` or an int into a logging level."""

    if value is None or value == "":
        return logging.INFO
    if isinstance(value, int):
        return value
    text = str(value).strip()
    if text.isdigit():
        return int(text)
    level = logging.getLevelName(text.upper())
    if isinstance(level, int):
        return level
    raise ValueError(f"Unknown log level {value!r}")


def _resolve_log_dir(log_dir: Path | str | None) -> Path:
    env_override = os.environ.get("CUTLINE_LOG_DIR")
    return Path(log_dir or env_override or _DEFAULT_LOG_DIR).expanduser()


def _tune_external_loggers(root_level: int) -> None:
    # Transport chatter stays at WARNING even when the engine logs at DEBUG.
    quiet_level = max(logging.WARNING, root_level)
    for logger_name in _NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(quiet_level)
