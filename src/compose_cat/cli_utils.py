#!/usr/bin/env python3
"""Shared CLI helpers: version lookup and log setup."""

from __future__ import annotations

import logging
from importlib.metadata import PackageNotFoundError, version

from . import __version__

DIST_NAME = "compose-cat"
LOG_FORMAT = "[%(levelname)s] %(message)s"


def get_cli_version() -> str:
    """Installed distribution version; the build-date version in a source checkout."""
    try:
        return version(DIST_NAME)
    except PackageNotFoundError:
        return __version__


def configure_logging(log_level: str = "INFO") -> None:
    """
    Send compose_cat records to stderr at log_level.

    Unknown level names fall back to INFO.
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    logging.basicConfig(level=level, format=LOG_FORMAT, force=True)
    logging.getLogger("compose_cat").setLevel(level)
