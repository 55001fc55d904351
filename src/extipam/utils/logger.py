"""
Logging setup for extipam.

All modules obtain their logger through ``get_logger(__name__)``. The
returned object is a loguru logger bound with the module name, so the
name shows up in every record without per-module handler setup.
"""

import sys
import traceback

from loguru import logger as _logger

from extipam.models.enums import LogLevel

_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{extra[name]}</cyan> - <level>{message}</level>"
)

_LOGURU_LEVELS = {
    LogLevel.FULL: "TRACE",
    LogLevel.DEBUG: "DEBUG",
    LogLevel.INFO: "INFO",
    LogLevel.WARNING: "WARNING",
}

_logger.configure(extra={"name": "extipam"})


def configure_logging(level: LogLevel = LogLevel.INFO) -> None:
    """
    Install the single stderr sink used by the adapter.

    Args:
        level: Verbosity level. FULL also enables loguru's backtrace and
            variable inspection on logged exceptions.
    """
    _logger.remove()
    _logger.add(
        sys.stderr,
        level=_LOGURU_LEVELS.get(LogLevel(level), "INFO"),
        format=_FORMAT,
        backtrace=level == LogLevel.FULL,
        diagnose=level == LogLevel.FULL,
    )


def get_logger(name: str):
    """Get a logger bound to a module name."""
    return _logger.bind(name=name)


def format_traceback(exc: BaseException) -> str:
    """Render an exception with its traceback as a single string."""
    return "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
