"""Logging configuration for the web app and the command line scripts."""

from __future__ import annotations

import logging

from app.core.config import LOG_LEVEL

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"

_configured = False


def setup_logging(level: str | None = None) -> None:
    """Configure the root logger once; later calls only adjust the level."""

    global _configured
    resolved = getattr(logging, (level or LOG_LEVEL).upper(), logging.INFO)
    if not _configured:
        logging.basicConfig(level=resolved, format=LOG_FORMAT)
        _configured = True
    logging.getLogger().setLevel(resolved)
