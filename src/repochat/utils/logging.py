"""Process-wide logging for agent hosts.

Agent sessions log through module loggers only. The host process calls
:func:`setup_logging` once, usually via
:meth:`repochat.services.SessionFactory.from_store`, to route those records to
a rotating ``repochat.log`` and, optionally, the console.
"""

from __future__ import annotations

import logging
import logging.handlers
import os
from pathlib import Path

__all__ = ["setup_logging", "get_log_path", "resolve_level"]

LOG_FILE_NAME = "repochat.log"
_DEFAULT_LOG_DIR = Path.home() / ".repochat" / "logs"
_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
_TRANSPORT_LOGGERS: tuple[str, ...] = ("asyncio", "httpx", "httpcore", "openai")
_LOG_PATH: Path | None = None


def resolve_level(debug: bool = False, *, default: int = logging.INFO) -> int:
    """Return the level for the host, honouring ``REPOCHAT_LOG_LEVEL``."""

    if debug:
        return logging.DEBUG
    name = os.environ.get("REPOCHAT_LOG_LEVEL", "").strip().upper()
    level = logging.getLevelName(name) if name else default
    return level if isinstance(level, int) else default


def setup_logging(
    level: int = logging.INFO,
    *,
    log_dir: Path | str | None = None,
    console: bool = True,
    max_bytes: int = 1_000_000,
    backup_count: int = 3,
    force: bool = False,
) -> Path:
    """Route ``repochat`` records to a rotating file and optional console.

    Repeated calls return the existing log path unless *force* is set. Transport
    loggers stay at ``WARNING`` or above so debug output shows agent steps, not
    HTTP chatter.
    """

    global _LOG_PATH
    if _LOG_PATH is not None and not force:
        return _LOG_PATH

    target_dir = Path(log_dir or os.environ.get("REPOCHAT_LOG_DIR") or _DEFAULT_LOG_DIR).expanduser()
    target_dir.mkdir(parents=True, exist_ok=True)
    log_path = target_dir / LOG_FILE_NAME

    logging.basicConfig(
        level=level,
        handlers=_build_handlers(log_path, level, console=console, max_bytes=max_bytes, backup_count=backup_count),
        force=True,
    )
    logging.captureWarnings(True)
    for name in _TRANSPORT_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    _LOG_PATH = log_path
    logging.getLogger(__name__).debug("Logging to %s at %s", log_path, logging.getLevelName(level))
    return log_path


def get_log_path() -> Path | None:
    """Return the log file configured by :func:`setup_logging`, if any."""

    return _LOG_PATH


def _build_handlers(
    log_path: Path,
    level: int,
    *,
    console: bool,
    max_bytes: int,
    backup_count: int,
) -> list[logging.Handler]:
    formatter = logging.Formatter(fmt=_FORMAT, datefmt=_DATE_FORMAT)
    handlers: list[logging.Handler] = [
        logging.handlers.RotatingFileHandler(
            log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
        )
    ]
    if console:
        handlers.append(logging.StreamHandler())
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
    return handlers
