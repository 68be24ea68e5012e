"""Bulk (re)loading of the two source datasets from their JSON exports."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Sequence

import httpx
from fastapi import HTTPException
from sqlalchemy.orm import Session

from app.core import config
from models import ProjectorFloor, TurarMedical
from utils.csv_import import (
    KIND_PROJECTOR,
    KIND_TURAR,
    KINDS,
    ProjectorRecord,
    TurarRecord,
    import_records,
    projector_record_from_row,
)
from utils.invalidation import LINK_KEYS, hub

logger = logging.getLogger(__name__)

MODELS = {KIND_PROJECTOR: ProjectorFloor, KIND_TURAR: TurarMedical}


def check_kind(kind: str) -> str:
    if kind not in KINDS:
        raise HTTPException(status_code=400, detail=f"Неизвестный набор данных: {kind}")
    return kind


def source_for(kind: str) -> str:
    return config.PROJECTOR_SOURCE if kind == KIND_PROJECTOR else config.TURAR_SOURCE


def fetch_dataset(source: str) -> list[dict[str, Any]]:
    """Read a JSON array from an ``http(s)://`` URL or a local file."""

    if source.startswith(("http://", "https://")):
        with httpx.Client(timeout=config.SOURCE_TIMEOUT_SECONDS) as client:
            resp = client.get(source)
            resp.raise_for_status()
            data = resp.json()
    else:
        with Path(source).open(encoding="utf-8") as fh:
            data = json.load(fh)
    if not isinstance(data, list):
        raise ValueError(f"{source}: expected a JSON array")
    return data


def _turar_record(item: dict[str, Any]) -> TurarRecord:
    raw = item.get("Кол-во")
    try:
        quantity = int(float(str(raw).replace(",", "."))) if raw not in (None, "") else 0
    except ValueError:
        quantity = 0
    return TurarRecord(
        department=str(item.get("Отделение/Блок") or "").strip(),
        room_name=str(item.get("Помещение/Кабинет") or "").strip(),
        equipment_code=str(item.get("Код оборудования") or "").strip(),
        equipment_name=str(item.get("Наименование") or "").strip(),
        quantity=quantity,
    )


def to_records(kind: str, items: Sequence[dict[str, Any]]) -> list[ProjectorRecord | TurarRecord]:
    """Convert header-keyed JSON items; items that cannot be read are skipped."""

    records: list[ProjectorRecord | TurarRecord] = []
    skipped = 0
    for index, item in enumerate(items):
        if kind == KIND_TURAR:
            records.append(_turar_record(item))
            continue
        record, error = projector_record_from_row(item, index + 1)
        if record is None:
            skipped += 1
            logger.debug("Skipping projector item: %s", error)
            continue
        records.append(record)
    if skipped:
        logger.warning("Skipped %d unreadable %s items", skipped, kind)
    return records


def truncate(db: Session, kind: str) -> int:
    deleted = db.query(MODELS[kind]).delete(synchronize_session=False)
    logger.info("Cleared %d %s rows", deleted, kind)
    return deleted


def sync_dataset(db: Session, kind: str, records: Sequence[ProjectorRecord | TurarRecord]) -> int:
    """Replace the whole dataset with ``records``."""

    check_kind(kind)
    truncate(db, kind)
    inserted = import_records(db, records, page_size=config.LOAD_BATCH_SIZE)
    logger.info("Synced %d %s records", inserted, kind)
    hub.publish(LINK_KEYS)
    return inserted


replace_dataset = sync_dataset


def sync_from_source(db: Session, kind: str, source: str | None = None) -> dict[str, Any]:
    items = fetch_dataset(source or source_for(kind))
    inserted = sync_dataset(db, kind, to_records(kind, items))
    return {"success": True, "inserted": inserted, "message": f"Загружено записей: {inserted}"}


def load_batch(
    db: Session,
    kind: str,
    records: Sequence[ProjectorRecord | TurarRecord],
    batch: int,
    batch_size: int | None = None,
) -> dict[str, Any]:
    """Insert one page of ``records``; batch 0 clears the table first.

    The caller keeps requesting ``batch + 1`` while ``hasMore`` is true.
    """

    check_kind(kind)
    if batch < 0:
        raise HTTPException(status_code=400, detail="Номер пакета не может быть отрицательным")
    size = batch_size or config.LOAD_BATCH_SIZE
    if batch == 0:
        truncate(db, kind)

    start = batch * size
    page = list(records[start : start + size])
    inserted = import_records(db, page, page_size=size) if page else 0
    if batch == 0 and not page:
        db.commit()
    total_loaded = min(start + inserted, len(records))
    has_more = start + size < len(records)
    logger.info(
        "Loaded %s batch %d: %d rows (%d/%d)", kind, batch, inserted, total_loaded, len(records)
    )
    hub.publish(LINK_KEYS)
    return {
        "success": True,
        "inserted": inserted,
        "hasMore": has_more,
        "totalLoaded": total_loaded,
        "totalAvailable": len(records),
        "batch": batch,
    }


def load_batch_from_source(
    db: Session, kind: str, batch: int, source: str | None = None
) -> dict[str, Any]:
    items = fetch_dataset(source or source_for(kind))
    return load_batch(db, kind, to_records(kind, items), batch)
