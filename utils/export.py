"""Excel export of the projector dataset and equipment consolidation."""

from __future__ import annotations

import re
from io import BytesIO
from typing import Any, Callable, Iterable, Sequence

from fastapi.responses import StreamingResponse
from openpyxl import Workbook
from openpyxl.utils import get_column_letter
from sqlalchemy.orm import Session

from models import ProjectorFloor, RoomConnection, TurarMedical
from utils.grouping import connections_index
from utils.rooms import PROJECTOR_ORDER

RowBuilder = Callable[[Any], Sequence[Any]]

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

SHEET_TITLE = "Данные со связями"
STATUS_LINKED = "Связано"
STATUS_NOT_LINKED = "Не связано"

CONNECTION_HEADERS = (
    "Этаж",
    "Блок",
    "Отделение",
    "Код помещения",
    "Наименование помещения",
    "Площадь (м2)",
    "Код оборудования",
    "Наименование оборудования",
    "Ед. изм.",
    "Количество",
    "Примечания",
    "Связанное отделение Турар",
    "Связанный кабинет Турар",
    "Статус связи",
)
COLUMN_WIDTHS = (8, 8, 30, 15, 30, 12, 15, 40, 10, 12, 30, 30, 30, 15)


def build_workbook(
    rows: Iterable[Any],
    headers: Sequence[str],
    row_builder: RowBuilder,
    title: str | None = None,
    widths: Sequence[int] | None = None,
) -> Workbook:
    """Create a single-sheet workbook.

    Args:
        rows: Items to export; each is passed to ``row_builder``.
        headers: Column titles written as the first row.
        row_builder: Returns the cell values of one item.
        title: Optional sheet title.
        widths: Optional column widths, in characters, by column position.
    """

    wb = Workbook()
    ws = wb.active
    if title:
        ws.title = title
    ws.append(list(headers))
    for row in rows:
        ws.append(list(row_builder(row)))
    for index, width in enumerate(widths or (), start=1):
        ws.column_dimensions[get_column_letter(index)].width = width
    return wb


def workbook_response(wb: Workbook, filename: str) -> StreamingResponse:
    stream = BytesIO()
    wb.save(stream)
    stream.seek(0)
    headers = {"Content-Disposition": f"attachment; filename={filename}"}
    return StreamingResponse(stream, media_type=XLSX_MEDIA_TYPE, headers=headers)


def build_connections_workbook(db: Session) -> tuple[Workbook, dict[str, int]]:
    """Projector lines with the Turar room each room is linked to.

    Link status comes from ``room_connections``; when a room has several
    links the most recent one is shown.
    """

    lines = db.query(ProjectorFloor).order_by(*PROJECTOR_ORDER).all()
    connections = db.query(RoomConnection).order_by(RoomConnection.id.asc()).all()
    index = connections_index(connections)

    linked_rooms: set[tuple[str, str]] = set()
    all_rooms: set[tuple[str, str]] = set()

    def row(line: ProjectorFloor) -> list[Any]:
        key = (line.department, line.room_name)
        conn = index.get(key)
        all_rooms.add(key)
        if conn is not None:
            linked_rooms.add(key)
        return [
            line.floor,
            line.block,
            line.department,
            line.room_code,
            line.room_name,
            line.area,
            line.equipment_code,
            line.equipment_name,
            line.equipment_unit,
            line.equipment_quantity,
            line.equipment_notes,
            conn.turar_department if conn else "",
            conn.turar_room if conn else "",
            STATUS_LINKED if conn else STATUS_NOT_LINKED,
        ]

    wb = build_workbook(lines, CONNECTION_HEADERS, row, SHEET_TITLE, COLUMN_WIDTHS)
    stats = {
        "total_records": len(lines),
        "total_rooms": len(all_rooms),
        "linked_rooms": len(linked_rooms),
        "connections": len(connections),
    }
    return wb, stats


_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def _parse_int(value: Any, default: int) -> int:
    """Leading-integer parse; ``default`` when there is none or it is zero."""

    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return int(value)
    match = _LEADING_INT.match(str(value or ""))
    if not match:
        return default
    return int(match.group(1)) or default


def consolidate_equipment(db: Session) -> list[dict[str, Any]]:
    """Merge the equipment of both datasets by equipment code.

    Lines without an equipment code are skipped on both sides, projector
    lines without a name as well. An unreadable quantity counts as 1 on
    the projector side and 0 on the Turar side. Sorted by total quantity,
    largest first.
    """

    merged: dict[str, dict[str, Any]] = {}

    def entry(code: str, name: str) -> dict[str, Any]:
        if code not in merged:
            merged[code] = {
                "code": code,
                "name": name,
                "turar_quantity": 0,
                "floors_quantity": 0,
                "turar_departments": [],
                "floors_departments": [],
                "turar_rooms": [],
                "floors_rooms": [],
                "sources": set(),
            }
        return merged[code]

    def add_unique(items: list, value: Any) -> None:
        if value not in items:
            items.append(value)

    for line in db.query(TurarMedical).order_by(TurarMedical.id.asc()):
        code = str(line.equipment_code or "").strip()
        if not code:
            continue
        item = entry(code, line.equipment_name or "")
        item["turar_quantity"] += line.quantity or 0
        add_unique(item["turar_departments"], line.department)
        add_unique(item["turar_rooms"], line.room_name)
        item["sources"].add("turar")

    for line in db.query(ProjectorFloor).order_by(ProjectorFloor.id.asc()):
        code = str(line.equipment_code or "").strip()
        name = line.equipment_name or ""
        if not code or not name:
            continue
        item = entry(code, name)
        item["floors_quantity"] += _parse_int(line.equipment_quantity, 1)
        add_unique(item["floors_departments"], line.department)
        add_unique(item["floors_rooms"], line.room_name)
        item["sources"].add("floors")

    result = []
    for item in merged.values():
        sources = item.pop("sources")
        item["source"] = "both" if len(sources) == 2 else next(iter(sources))
        item["total_quantity"] = item["turar_quantity"] + item["floors_quantity"]
        result.append(item)
    result.sort(key=lambda i: i["total_quantity"], reverse=True)
    return result
