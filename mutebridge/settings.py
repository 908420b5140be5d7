"""Logging setup and shared constants for MuteBridge."""

from __future__ import annotations

import logging

CONFIG_FILE = "mutebridge.json"
LOG_LEVEL = logging.INFO
DEBUG_LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"
LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


def configure_logging(*, verbose: bool = False, force: bool = False) -> None:
    """Initialize the root logger; *verbose* adds DEBUG output and logger names."""

    level = logging.DEBUG if verbose else LOG_LEVEL
    fmt = DEBUG_LOG_FORMAT if verbose else LOG_FORMAT
    root = logging.getLogger()
    if root.handlers and not force:
        root.setLevel(level)
        return
    logging.basicConfig(level=level, format=fmt, force=force)
