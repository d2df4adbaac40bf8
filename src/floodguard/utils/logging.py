"""
Logging for FloodGuard.

Everything logs under the ``floodguard`` namespace. ``setup_logging`` attaches
a console handler (colored on a TTY) and an optional file handler, both behind
a filter that masks the OneBot and admin API tokens. The settings ``debug``
flag can switch the namespace to DEBUG at runtime through ``set_debug``.
"""

from __future__ import annotations

import logging
import re
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from floodguard.config import Config

ROOT_LOGGER = "floodguard"
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
REDACTED = "[REDACTED]"

# Chatty third-party loggers that share our handlers at WARNING
QUIET_LIBRARIES = ("werkzeug", "urllib3")

# Tokens this short would mask ordinary words
_MIN_SECRET_LENGTH = 4


class SecretFilter(logging.Filter):
    """
    Masks known secrets in log records.

    The record is rendered once (message merged with its arguments), masked,
    and stored back without arguments, so a token passed as a ``%s`` argument
    of any type is caught too.
    """

    def __init__(self, secrets: Iterable[str] | None = None) -> None:
        super().__init__()
        self._secrets: tuple[str, ...] = ()
        self._pattern: re.Pattern[str] | None = None
        self.set_secrets(secrets or ())

    @property
    def secrets(self) -> list[str]:
        return list(self._secrets)

    def set_secrets(self, secrets: Iterable[str]) -> None:
        kept = sorted({s for s in secrets if s and len(s) >= _MIN_SECRET_LENGTH}, key=len, reverse=True)
        self._secrets = tuple(kept)
        # Longest first so a token containing another is masked whole
        self._pattern = re.compile("|".join(map(re.escape, kept))) if kept else None

    def redact(self, text: str) -> str:
        if self._pattern is None:
            return text
        return self._pattern.sub(REDACTED, text)

    def filter(self, record: logging.LogRecord) -> bool:
        if self._pattern is None:
            return True
        try:
            message = record.getMessage()
        except (TypeError, ValueError):
            # Leave malformed records for the handler to report
            return True
        record.msg = self.redact(message)
        record.args = ()
        return True


class ColoredFormatter(logging.Formatter):
    """Wraps each console line in an ANSI color chosen by level."""

    LEVEL_COLORS = {
        logging.DEBUG: "36",
        logging.INFO: "32",
        logging.WARNING: "33",
        logging.ERROR: "31",
        logging.CRITICAL: "97;41",
    }

    def __init__(self, fmt: str = LOG_FORMAT, stream=None) -> None:
        super().__init__(fmt)
        stream = stream if stream is not None else sys.stderr
        self.enabled = hasattr(stream, "isatty") and stream.isatty()

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        code = self.LEVEL_COLORS.get(record.levelno)
        if not self.enabled or code is None:
            return line
        return f"\033[{code}m{line}\033[0m"


_secret_filter = SecretFilter()
_base_level: int = logging.INFO


def _attach(logger: logging.Logger, handler: logging.Handler, formatter: logging.Formatter) -> None:
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(formatter)
    handler.addFilter(_secret_filter)
    logger.addHandler(handler)


def setup_logging(config: Config) -> None:
    """
    Configure the ``floodguard`` logger from the process configuration.

    Args:
        config: Supplies ``log_level``, ``log_file`` and the secrets to mask
    """
    global _base_level

    _base_level = logging.getLevelName(config.log_level)
    if not isinstance(_base_level, int):
        _base_level = logging.INFO

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(_base_level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    _secret_filter.set_secrets(config.secrets)

    _attach(logger, logging.StreamHandler(sys.stderr), ColoredFormatter(LOG_FORMAT, sys.stderr))

    if config.log_file:
        log_path = Path(config.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        _attach(logger, logging.FileHandler(log_path, encoding="utf-8"), logging.Formatter(LOG_FORMAT))

    for name in QUIET_LIBRARIES:
        library_logger = logging.getLogger(name)
        library_logger.setLevel(logging.WARNING)
        library_logger.handlers = list(logger.handlers)

    logger.debug("Logging ready at %s", logging.getLevelName(_base_level))


def set_debug(enabled: bool) -> None:
    """Switch the namespace between DEBUG and the configured level."""
    logger = logging.getLogger(ROOT_LOGGER)
    level = logging.DEBUG if enabled else _base_level
    if logger.level == level:
        return
    logger.setLevel(level)
    logger.info("Debug logging %s", "on" if enabled else "off")


def get_logger(name: str) -> logging.Logger:
    """Logger for a module, placed under the ``floodguard`` namespace."""
    if name != ROOT_LOGGER and not name.startswith(ROOT_LOGGER + "."):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)

