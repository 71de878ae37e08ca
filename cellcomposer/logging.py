"""
Logging helpers for the cellcomposer package.

Every module logs through ``logging.getLogger(__name__)``; these helpers attach
handlers and levels to the package logger without touching the root logger.
"""

import logging
from logging import CRITICAL, DEBUG, ERROR, INFO, WARNING
from typing import Optional

__all__ = [
    "logger",
    "logdata",
    "set_log_level",
    "set_stream_handler",
    "unset_stream_handler",
    "set_file_handler",
    "DEBUG",
    "INFO",
    "WARNING",
    "ERROR",
    "CRITICAL",
]

packages = [__package__]

__fmt = "%(name)s:%(levelname)s %(message)s"
__formatter = logging.Formatter(fmt=__fmt)
__stream_handler = logging.StreamHandler()
__stream_handler.setFormatter(__formatter)


def set_file_handler(file, formatter: Optional[logging.Formatter] = None) -> logging.FileHandler:
    """Write the log of all packages to a file."""
    if formatter is None:
        formatter = __formatter
    fh = logging.FileHandler(file, mode="w")
    fh.setFormatter(formatter)
    for package in packages:
        logging.getLogger(package).addHandler(fh)
    return fh


def set_stream_handler(handler: Optional[logging.Handler] = None) -> None:
    """Attach a stream handler (stderr by default) to all packages."""
    for package in packages:
        logging.getLogger(package).addHandler(handler if handler else __stream_handler)


def unset_stream_handler() -> None:
    """Remove the default stream handler from all packages."""
    for package in packages:
        logging.getLogger(package).removeHandler(__stream_handler)


def set_log_level(level, pkg: Optional[str] = None) -> None:
    """Set the log level for the specified or all packages.

    Args:
        level: The log level to set.
        pkg: If set, apply the log level only to the specified package.
    """
    if pkg is not None:
        logging.getLogger(pkg).setLevel(level)
        return

    for package in packages:
        logging.getLogger(package).setLevel(level)


def logdata(**kwargs) -> dict:
    """Attach structured fields to a log record.

    logger.warning("message", **logdata(units="mmHg"))
    """
    if not kwargs:
        return {}
    return {"extra": {"extras": kwargs}}


logger = logging.getLogger(__package__)
