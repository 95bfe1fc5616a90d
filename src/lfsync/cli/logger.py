"""Logging helpers for the lfsync CLI."""

from __future__ import annotations

import logging
import os
import sys

import colorlog

LOG_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "bold_yellow",
    "ERROR": "bold_red",
    "CRITICAL": "bold_red,bg_white",
}

_FORMAT = "%(levelname)s <%(name)s> %(message)s"

# boto3 is very chatty at DEBUG level
_QUIET_LOGGERS = ("boto3", "botocore", "s3transfer", "urllib3")


def _use_color() -> bool:
    if os.getenv("NO_COLOR") is not None:
        return False
    return sys.stderr.isatty()


def configure_logging(verbose: bool) -> None:
    """
    Route log records to stderr. Verbose mode shows DEBUG records,
    otherwise only WARNING and above reach the user, so that the
    progress bars stay readable.
    """
    level = logging.DEBUG if verbose else logging.WARNING
    if _use_color():
        handler = logging.StreamHandler()
        handler.setFormatter(
            colorlog.ColoredFormatter(
                fmt=f"%(log_color)s{_FORMAT}%(reset)s",
                log_colors=LOG_COLORS,
            )
        )
        logging.basicConfig(level=level, handlers=[handler], force=True)
    else:
        logging.basicConfig(level=level, format=_FORMAT, force=True)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.INFO)
