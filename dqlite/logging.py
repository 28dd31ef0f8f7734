"""Logging levels and log functions used across the client."""

from __future__ import annotations

import enum
import logging as _stdlib_logging
from typing import Any, Callable

LogFunc = Callable[..., None]


class Level(enum.IntEnum):
    """Severity of a log message."""

    NONE = 0
    DEBUG = 1
    INFO = 2
    WARN = 3
    ERROR = 4

    @classmethod
    def _missing_(cls, value: object) -> "Level | None":
        if not isinstance(value, int):
            return None
        member = int.__new__(cls, value)
        member._name_ = "UNKNOWN"
        member._value_ = value
        return member

    def __str__(self) -> str:
        return _LEVEL_NAMES.get(int(self), "UNKNOWN")


_LEVEL_NAMES = {
    1: "DEBUG",
    2: "INFO",
    3: "WARN",
    4: "ERROR",
}

_STDLIB_LEVELS = {
    1: _stdlib_logging.DEBUG,
    2: _stdlib_logging.INFO,
    3: _stdlib_logging.WARNING,
    4: _stdlib_logging.ERROR,
}


def _render(level: Level, fmt: str, args: tuple[Any, ...]) -> str:
    message = fmt % args if args else fmt
    return f"{level}: {message}"


def stdout_log_func() -> LogFunc:
    """Return a log function that prints messages on standard output."""

    def log(level: Level, fmt: str, *args: Any) -> None:
        print(_render(level, fmt, args))

    return log


def logger_log_func(logger: _stdlib_logging.Logger) -> LogFunc:
    """Return a log function that forwards messages to a standard logger."""

    def log(level: Level, fmt: str, *args: Any) -> None:
        severity = _STDLIB_LEVELS.get(int(level), _stdlib_logging.INFO)
        logger.log(severity, "%s", _render(level, fmt, args))

    return log