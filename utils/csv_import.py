"""CSV import for the projector and Turar datasets.

Column headers are only known here: each row is converted into a
:class:`ProjectorRecord` or :class:`TurarRecord` right after parsing and the
rest of the application works with the typed records.

The format is the naive comma split the spreadsheets are exported with:
surrounding whitespace and double quotes are stripped, quoting and escaping
are not supported.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Iterable, Sequence

from sqlalchemy.orm import Session

from app.core import config
from models import ProjectorFloor, TurarMedical
from utils.departments import ensure_department, normalize_name

logger = logging.getLogger(__name__)

KIND_PROJECTOR = "projector"
KIND_TURAR = "turar"
KINDS = (KIND_PROJECTOR, KIND_TURAR)

PROJECTOR_HEADERS = {
    "ЭТАЖ": "floor",
    "БЛОК": "block",
    "ОТДЕЛЕНИЕ": "department",
    "КОД ПОМЕЩЕНИЯ": "room_code",
    "НАИМЕНОВАНИЕ ПОМЕЩЕНИЯ": "room_name",
    "Площадь (м2)": "area",
    "Код оборудования": "equipment_code",
    "Наименование оборудования": "equipment_name",
    "Ед. изм.": "equipment_unit",
    "Кол-во": "equipment_quantity",
    "Примечания": "equipment_notes",
}
PROJECTOR_REQUIRED = ("ЭТАЖ", "БЛОК", "ОТДЕЛЕНИЕ", "КОД ПОМЕЩЕНИЯ", "НАИМЕНОВАНИЕ ПОМЕЩЕНИЯ")

TURAR_HEADERS = {
    "Отделение/Блок": "department",
    "Помещение/Кабинет": "room_name",
    "Код оборудования": "equipment_code",
    "Наименование": "equipment_name",
    "Кол-во": "quantity",
}
TURAR_REQUIRED = tuple(TURAR_HEADERS)


@dataclass
class ProjectorRecord:
    floor: float
    block: str
    department: str
    room_code: str
    room_name: str
    area: float | None = None
    equipment_code: str | None = None
    equipment_name: str | None = None
    equipment_unit: str | None = None
    equipment_quantity: str | None = None
    equipment_notes: str | None = None

    def __post_init__(self) -> None:
        self.department = normalize_name(self.department)
        self.room_name = normalize_name(self.room_name)

    @property
    def key(self) -> str:
        return projector_key(
            self.floor, self.block, self.department, self.room_code, self.room_name
        )

    def to_model(self) -> ProjectorFloor:
        return ProjectorFloor(**asdict(self))


@dataclass
class TurarRecord:
    department: str
    room_name: str
    equipment_code: str
    equipment_name: str
    quantity: int = 0

    def __post_init__(self) -> None:
        self.department = normalize_name(self.department)
        self.room_name = normalize_name(self.room_name)

    @property
    def key(self) -> str:
        return turar_key(
            self.department, self.room_name, self.equipment_code, self.equipment_name
        )

    def to_model(self) -> TurarMedical:
        return TurarMedical(**asdict(self))


@dataclass
class ValidationResult:
    new_records: list = field(default_factory=list)
    duplicate_records: list = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict[str, Any]:
        return {
            "valid": self.valid,
            "new_records": [asdict(r) for r in self.new_records],
            "duplicate_records": [asdict(r) for r in self.duplicate_records],
            "errors": list(self.errors),
        }


# --- Parsing -----------------------------------------------------------------------
def _clean(value: str) -> str:
    return value.strip().replace('"', "")


def parse_csv(text: str) -> list[dict[str, str]]:
    """Split CSV text into dicts keyed by the header line.

    Blank lines are ignored; rows whose field count differs from the header
    are dropped.
    """

    lines = [line for line in text.replace("\r\n", "\n").split("\n") if line.strip()]
    if len(lines) < 2:
        return []
    headers = [_clean(h) for h in lines[0].split(",")]
    rows: list[dict[str, str]] = []
    for line in lines[1:]:
        values = [_clean(v) for v in line.split(",")]
        if len(values) != len(headers):
            continue
        rows.append(dict(zip(headers, values)))
    return rows


def parse_decimal(value: Any) -> float | None:
    """Parse a number written with ``.`` or ``,`` as decimal separator.

    Returns ``None`` for blank input and raises :class:`ValueError` on garbage.
    """

    if value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value).strip()
    if not text:
        return None
    return float(text.replace(",", ".", 1))


def _optional(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _format_float(value: float) -> str:
    return repr(float(value)) if not float(value).is_integer() else str(int(value))


def projector_key(floor: Any, block: Any, department: Any, room_code: Any, room_name: Any) -> str:
    return "|".join(
        [
            _format_float(float(floor)),
            str(block or ""),
            normalize_name(department),
            str(room_code or ""),
            normalize_name(room_name),
        ]
    )


def turar_key(department: Any, room_name: Any, equipment_code: Any, equipment_name: Any) -> str:
    return "|".join(
        [
            normalize_name(department),
            normalize_name(room_name),
            str(equipment_code or ""),
            str(equipment_name or ""),
        ]
    )


# --- Validation --------------------------------------------------------------------
def _missing(rows: Sequence[dict[str, Any]], required: Iterable[str]) -> list[str]:
    first = rows[0]
    return [name for name in required if name not in first]


def _partition(result: ValidationResult, record, seen: set[str]) -> None:
    if record.key in seen:
        result.duplicate_records.append(record)
    else:
        seen.add(record.key)
        result.new_records.append(record)


def projector_record_from_row(row: dict[str, Any], line_no: int) -> tuple[ProjectorRecord | None, str | None]:
    """Build a record from a header-keyed row, or return the row's error."""

    try:
        floor = parse_decimal(row.get("ЭТАЖ"))
    except ValueError:
        floor = None
    if floor is None:
        return None, f"Строка {line_no}: ЭТАЖ должен быть числом"
    try:
        area = parse_decimal(row.get("Площадь (м2)"))
    except ValueError:
        return None, f"Строка {line_no}: Площадь должна быть числом"

    values: dict[str, Any] = {}
    for header, name in PROJECTOR_HEADERS.items():
        if name in ("floor", "area"):
            continue
        values[name] = _optional(row.get(header))
    for name in ("block", "department", "room_code", "room_name"):
        values[name] = values[name] or ""
    return ProjectorRecord(floor=floor, area=area, **values), None


def turar_record_from_row(row: dict[str, Any], line_no: int) -> tuple[TurarRecord | None, str | None]:
    raw_quantity = str(row.get("Кол-во") or "").strip()
    try:
        quantity = int(raw_quantity)
    except ValueError:
        return None, f"Строка {line_no}: Кол-во должно быть целым числом"
    return (
        TurarRecord(
            department=str(row.get("Отделение/Блок") or "").strip(),
            room_name=str(row.get("Помещение/Кабинет") or "").strip(),
            equipment_code=str(row.get("Код оборудования") or "").strip(),
            equipment_name=str(row.get("Наименование") or "").strip(),
            quantity=quantity,
        ),
        None,
    )


def _validate(rows, existing_keys, required, build) -> ValidationResult:
    result = ValidationResult()
    if not rows:
        result.errors.append("CSV файл пуст")
        return result
    missing = _missing(rows, required)
    if missing:
        result.errors.append(f"Отсутствуют обязательные поля: {', '.join(missing)}")
        return result

    seen = set(existing_keys)
    for index, row in enumerate(rows):
        # header is line 1
        record, error = build(row, index + 2)
        if error:
            result.errors.append(error)
            continue
        _partition(result, record, seen)
    return result


def validate_projector_rows(
    rows: Sequence[dict[str, Any]], existing_keys: Iterable[str] = ()
) -> ValidationResult:
    """Split parsed projector rows into new and duplicate records.

    Rows repeating an existing key, or a key seen earlier in the same file,
    are duplicates. Errors are collected for every bad row.
    """

    return _validate(rows, existing_keys, PROJECTOR_REQUIRED, projector_record_from_row)


def validate_turar_rows(
    rows: Sequence[dict[str, Any]], existing_keys: Iterable[str] = ()
) -> ValidationResult:
    return _validate(rows, existing_keys, TURAR_REQUIRED, turar_record_from_row)


def existing_projector_keys(db: Session) -> set[str]:
    rows = db.query(
        ProjectorFloor.floor,
        ProjectorFloor.block,
        ProjectorFloor.department,
        ProjectorFloor.room_code,
        ProjectorFloor.room_name,
    ).all()
    return {projector_key(*row) for row in rows}


def existing_turar_keys(db: Session) -> set[str]:
    rows = db.query(
        TurarMedical.department,
        TurarMedical.room_name,
        TurarMedical.equipment_code,
        TurarMedical.equipment_name,
    ).all()
    return {turar_key(*row) for row in rows}


def validate_csv(db: Session, kind: str, text: str) -> ValidationResult:
    rows = parse_csv(text)
    if kind == KIND_PROJECTOR:
        return validate_projector_rows(rows, existing_projector_keys(db))
    if kind == KIND_TURAR:
        return validate_turar_rows(rows, existing_turar_keys(db))
    raise ValueError(f"unknown dataset: {kind!r}")


# --- Persistence -------------------------------------------------------------------
def import_records(
    db: Session,
    records: Sequence[ProjectorRecord | TurarRecord],
    page_size: int | None = None,
) -> int:
    """Insert ``records`` in pages and commit; returns the number inserted.

    Every line is attached to its row in ``departments``, which is created
    on first sight.
    """

    page_size = page_size or config.IMPORT_PAGE_SIZE
    department_ids: dict[str, int | None] = {}

    def to_model(record):
        model = record.to_model()
        name = record.department
        if name not in department_ids:
            department_ids[name] = ensure_department(db, name).id if name else None
        model.department_id = department_ids[name]
        return model

    inserted = 0
    for start in range(0, len(records), page_size):
        page = records[start : start + page_size]
        db.add_all([to_model(record) for record in page])
        db.flush()
        inserted += len(page)
        logger.info("Imported page %d (%d/%d rows)", start // page_size + 1, inserted, len(records))
    db.commit()
    return inserted
