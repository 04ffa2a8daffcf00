"""
Logging setup for the devstack CLI.

``setup_logging`` is called once by main.py; every module logs through
``logging.getLogger(__name__)`` and inherits the handlers installed here.

Level precedence:
    --debug / --verbose / --quiet  >  DEVSTACK_LOG_LEVEL  >  WARNING

DEVSTACK_LOG_FILE adds a file handler (its own level via
DEVSTACK_LOG_FILE_LEVEL). Both handlers carry a SecretMaskFilter, so
a credential that slips into a message is masked before it is emitted.
"""

from __future__ import annotations

import logging
import re
import sys

MASK = "***"

_FORMATS = {
    logging.DEBUG: ("%(asctime)s %(levelname)-5s %(name)s:%(lineno)d: %(message)s", "%H:%M:%S"),
    logging.INFO: ("%(asctime)s [%(name)s] %(message)s", "%H:%M:%S"),
    logging.WARNING: ("%(levelname)s: %(message)s", None),
}
_FILE_FORMAT = ("%(asctime)s %(levelname)-5s %(name)s:%(lineno)d: %(message)s", "%Y-%m-%d %H:%M:%S")

_NOISY_LOGGERS = ("urllib3", "asyncio")

# key=value / key: value pairs whose value is a credential
_SECRET_ASSIGNMENT = re.compile(
    r"(?P<key>\b(?:DB_PASS|GH_TOKEN|GITHUB_TOKEN|password|passwd|pwd)\b\s*[=:]\s*)(?P<value>['\"]?[^\s'\"]+['\"]?)",
    re.IGNORECASE,
)
_IDENTIFIED_BY = re.compile(r"(IDENTIFIED\s+BY\s+)'[^']*'", re.IGNORECASE)
_GITHUB_TOKEN = re.compile(r"\b(?:gh[pousr]_[A-Za-z0-9]{16,}|github_pat_[A-Za-z0-9_]{20,})\b")


def mask_secrets(text: str) -> str:
    """Replace credential-looking substrings with ``***``."""
    text = _SECRET_ASSIGNMENT.sub(lambda m: m.group("key") + MASK, text)
    text = _IDENTIFIED_BY.sub(rf"\1'{MASK}'", text)
    return _GITHUB_TOKEN.sub(MASK, text)


class SecretMaskFilter(logging.Filter):
    """Rewrite each record's message with its secrets masked."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        masked = mask_secrets(message)
        if masked != message:
            record.msg = masked
            record.args = None
        return True


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
    quiet_third_party: bool = True,
) -> None:
    """Configure the root logger for the whole process.

    Args:
        level: Console level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional path of a detailed log file.
        log_file_level: Level for the file; defaults to ``level``.
        quiet_third_party: Hold noisy library loggers at WARNING unless
            the console is at DEBUG.
    """
    console_level = _parse_level(level)
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(_console_handler(console_level))

    effective = console_level
    if log_file:
        file_level = _parse_level(log_file_level) if log_file_level else console_level
        root.addHandler(_file_handler(log_file, file_level))
        effective = min(effective, file_level)
    root.setLevel(effective)

    if quiet_third_party and console_level > logging.DEBUG:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    logging.raiseExceptions = False


def _console_handler(level: int) -> logging.Handler:
    if level <= logging.DEBUG:
        fmt, datefmt = _FORMATS[logging.DEBUG]
    elif level <= logging.INFO:
        fmt, datefmt = _FORMATS[logging.INFO]
    else:
        fmt, datefmt = _FORMATS[logging.WARNING]
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt, datefmt=datefmt))
    handler.addFilter(SecretMaskFilter())
    return handler


def _file_handler(path: str, level: int) -> logging.Handler:
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(*_FILE_FORMAT))
    handler.addFilter(SecretMaskFilter())
    return handler


def _parse_level(level: str | None) -> int:
    """Level name to its numeric value; unknown names fall back to WARNING."""
    if not level:
        return logging.WARNING
    numeric = getattr(logging, level.upper(), None)
    return numeric if isinstance(numeric, int) else logging.WARNING
