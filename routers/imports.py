import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from sqlalchemy.orm import Session

from database import get_db
from security import SessionUser, require_admin, require_editor
from utils.csv_import import KINDS, import_records, parse_csv, validate_csv
from utils.datasets import replace_dataset, to_records
from utils.invalidation import LINK_KEYS, hub

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/import", tags=["Import"])


def _check_kind(kind: str) -> str:
    if kind not in KINDS:
        raise HTTPException(status_code=404, detail="Неизвестный набор данных")
    return kind


async def _read_text(file: Optional[UploadFile], text: Optional[str]) -> str:
    if file is not None:
        if file.filename and not file.filename.lower().endswith(".csv"):
            raise HTTPException(status_code=400, detail="Пожалуйста, выберите CSV файл")
        raw = await file.read()
        try:
            return raw.decode("utf-8-sig")
        except UnicodeDecodeError:
            raise HTTPException(status_code=400, detail="Файл должен быть в кодировке UTF-8")
    if text:
        return text
    raise HTTPException(status_code=400, detail="Файл не передан")


@router.post("/{kind}/validate")
async def import_validate(
    kind: str,
    file: Optional[UploadFile] = File(None),
    text: Optional[str] = Form(None),
    db: Session = Depends(get_db),
    user: SessionUser = Depends(require_editor),
):
    """Preview an import: new and duplicate records plus row errors."""
    _check_kind(kind)
    result = validate_csv(db, kind, await _read_text(file, text))
    body = result.to_dict()
    body["message"] = (
        f"Готово к импорту: {len(result.new_records)} новых записей, "
        f"{len(result.duplicate_records)} дубликатов"
        if result.valid
        else f"Найдены ошибки: {len(result.errors)}"
    )
    return body


@router.post("/{kind}")
async def import_commit(
    kind: str,
    file: Optional[UploadFile] = File(None),
    text: Optional[str] = Form(None),
    db: Session = Depends(get_db),
    user: SessionUser = Depends(require_editor),
):
    _check_kind(kind)
    result = validate_csv(db, kind, await _read_text(file, text))
    if not result.valid:
        raise HTTPException(status_code=400, detail=result.errors)
    inserted = import_records(db, result.new_records)
    logger.info(
        "%s imported %d new %s records (%d duplicates skipped)",
        user.username,
        inserted,
        kind,
        len(result.duplicate_records),
    )
    hub.publish(LINK_KEYS)
    return {
        "success": True,
        "inserted": inserted,
        "skipped_duplicates": len(result.duplicate_records),
        "message": f"Успешно импортировано {inserted} новых записей",
    }


@router.post("/{kind}/replace")
async def import_replace(
    kind: str,
    file: Optional[UploadFile] = File(None),
    text: Optional[str] = Form(None),
    db: Session = Depends(get_db),
    user: SessionUser = Depends(require_admin),
):
    """Replace the whole dataset with the rows of the uploaded file."""
    _check_kind(kind)
    rows = parse_csv(await _read_text(file, text))
    if not rows:
        raise HTTPException(status_code=400, detail="CSV файл пуст")
    inserted = replace_dataset(db, kind, to_records(kind, rows))
    return {"success": True, "inserted": inserted}
