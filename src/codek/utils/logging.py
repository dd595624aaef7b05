"""Logging setup for the CodeK command line.

stdout carries the model's answer, so records go to a rotating log file and,
only when asked for, to stderr. Credentials are masked before any handler
formats a record.
"""

from __future__ import annotations

import logging
import logging.handlers
import os
import re
import sys
from pathlib import Path

__all__ = ["setup_logging", "get_log_path", "SecretRedactionFilter"]

_DEFAULT_LOG_DIR = Path.home() / ".codek" / "logs"
_LOG_DIR_ENV = "CODEK_LOG_DIR"
_LOG_FILE_NAME = "codek.log"
_FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_CONSOLE_FORMAT = "%(levelname)s %(name)s: %(message)s"
_NOISY_LOGGERS: tuple[str, ...] = ("asyncio", "httpx", "httpcore", "openai")
_SECRET_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"(Bearer\s+)[A-Za-z0-9._\-]+"),
    re.compile(r"\b(sk-)[A-Za-z0-9_\-]{8,}"),
)

_log_path: Path | None = None


class SecretRedactionFilter(logging.Filter):
    """Masks bearer tokens and ``sk-`` style API keys in log messages."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = message
        for pattern in _SECRET_PATTERNS:
            redacted = pattern.sub(r"\1***", redacted)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def setup_logging(
    level: int = logging.INFO,
    *,
    log_dir: Path | str | None = None,
    console: bool = False,
    max_bytes: int = 1_000_000,
    backup_count: int = 3,
    force: bool = False,
) -> Path:
    """Route logging to ``codek.log`` and optionally stderr.

    Args:
        level: Root level, also applied to both handlers.
        log_dir: Directory for the log file; ``CODEK_LOG_DIR`` or
            ``~/.codek/logs`` when omitted.
        console: Mirror records to stderr (the CLI's ``--verbose``).
        max_bytes: Rotation threshold of the file handler.
        backup_count: Number of rotated files kept.
        force: Reconfigure even if logging was already set up.

    Returns:
        Path of the active log file.
    """

    global _log_path
    if _log_path is not None and not force:
        return _log_path

    directory = Path(log_dir or os.environ.get(_LOG_DIR_ENV) or _DEFAULT_LOG_DIR).expanduser()
    directory.mkdir(parents=True, exist_ok=True)
    log_path = directory / _LOG_FILE_NAME

    redaction = SecretRedactionFilter()
    handlers: list[logging.Handler] = [
        _file_handler(log_path, level, max_bytes=max_bytes, backup_count=backup_count)
    ]
    if console:
        handlers.append(_console_handler(level))
    for handler in handlers:
        handler.addFilter(redaction)

    logging.basicConfig(level=level, handlers=handlers, force=True)
    logging.captureWarnings(True)

    # Third-party chatter stays at WARNING unless the root is stricter.
    quiet_level = max(level, logging.WARNING)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(quiet_level)

    _log_path = log_path
    return log_path


def get_log_path() -> Path | None:
    """Return the active log file, or ``None`` before :func:`setup_logging`."""

    return _log_path


def _file_handler(path: Path, level: int, *, max_bytes: int, backup_count: int) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    return handler


def _console_handler(level: int) -> logging.Handler:
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(_CONSOLE_FORMAT))
    return handler
