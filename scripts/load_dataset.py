"""Load ``combined_floors.json`` / ``turar_full.json`` into the database.

Usage::

    python -m scripts.load_dataset projector data/combined_floors.json
    python -m scripts.load_dataset turar --batch-size 500
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Iterable

from dotenv import load_dotenv

from app.core import config
from app.core.log import setup_logging
from app.db.init import init_db
from models import SessionLocal
from utils.csv_import import KINDS
from utils.datasets import fetch_dataset, load_batch, source_for, to_records

logger = logging.getLogger(__name__)


def load(kind: str, source: str | None = None, batch_size: int | None = None) -> int:
    """Replace the ``kind`` dataset batch by batch; returns rows loaded."""

    records = to_records(kind, fetch_dataset(source or source_for(kind)))
    db = SessionLocal()
    try:
        batch = 0
        while True:
            result = load_batch(db, kind, records, batch, batch_size)
            if not result["hasMore"]:
                return result["totalLoaded"]
            batch += 1
    finally:
        db.close()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Загрузка набора данных из JSON.")
    parser.add_argument("kind", choices=KINDS)
    parser.add_argument("source", nargs="?", help="URL или путь к JSON файлу")
    parser.add_argument(
        "--batch-size", type=int, default=config.LOAD_BATCH_SIZE, help="%(default)s по умолчанию"
    )
    return parser


def main(argv: Iterable[str] | None = None) -> int:
    load_dotenv()
    setup_logging()
    args = _build_parser().parse_args(list(argv) if argv is not None else None)
    init_db()
    try:
        total = load(args.kind, args.source, args.batch_size)
    except (OSError, ValueError) as exc:
        logger.error("Loading %s failed: %s", args.kind, exc)
        return 1
    print(f"Загружено записей: {total}")
    return 0


if __name__ == "__main__":  # pragma: no cover - manual invocation
    sys.exit(main())
