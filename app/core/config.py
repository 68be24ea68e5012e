"""Runtime settings read from the environment (and an optional ``.env``)."""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("%s=%r is not an integer; using %d", name, raw, default)
        return default


def _bool_env(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "t", "yes")


LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Batch sizes
IMPORT_PAGE_SIZE = _int_env("IMPORT_PAGE_SIZE", 1000)
LOAD_BATCH_SIZE = _int_env("LOAD_BATCH_SIZE", 1000)
BULK_LINK_PAGE_SIZE = _int_env("BULK_LINK_PAGE_SIZE", 100)
BULK_LINK_MAX_TARGETS = _int_env("BULK_LINK_MAX_TARGETS", 3)

# External datasets (URL or local path)
PROJECTOR_SOURCE = os.getenv("PROJECTOR_SOURCE", "./data/combined_floors.json")
TURAR_SOURCE = os.getenv("TURAR_SOURCE", "./data/turar_full.json")
SOURCE_TIMEOUT_SECONDS = _int_env("SOURCE_TIMEOUT_SECONDS", 30)

# Safety-net reconciliation tick for connected clients; 0 disables it
RECONCILE_INTERVAL_SECONDS = _int_env("RECONCILE_INTERVAL_SECONDS", 60)

SESSION_HTTPS_ONLY = _bool_env("SESSION_HTTPS_ONLY")

DEFAULT_ADMIN_USERNAME = os.getenv("DEFAULT_ADMIN_USERNAME", "admin")
DEFAULT_ADMIN_FULLNAME = os.getenv("DEFAULT_ADMIN_FULLNAME", "Администратор системы")
DEFAULT_ADMIN_PASSWORD = os.getenv("DEFAULT_ADMIN_PASSWORD") or ""
