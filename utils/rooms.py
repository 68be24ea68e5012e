"""Read and edit access to the two source datasets."""

from __future__ import annotations

import logging
from typing import Any, Mapping

from fastapi import HTTPException
from sqlalchemy.orm import Session

from models import ProjectorFloor, RoomConnection, TurarMedical
from utils.departments import normalize_name, stored_spellings
from utils.grouping import group_rooms
from utils.http import apply_updates, get_or_404
from utils.invalidation import PROJECTOR_EQUIPMENT, TURAR_MEDICAL, hub

logger = logging.getLogger(__name__)

PROJECTOR_EDITABLE = (
    "equipment_code",
    "equipment_name",
    "equipment_unit",
    "equipment_quantity",
    "equipment_notes",
    "equipment_status",
    "equipment_specification",
    "equipment_documents",
)
TURAR_EDITABLE = ("equipment_code", "equipment_name", "quantity")

PROJECTOR_ORDER = (
    ProjectorFloor.floor.asc(),
    ProjectorFloor.department.asc(),
    ProjectorFloor.room_name.asc(),
    ProjectorFloor.equipment_name.asc(),
    ProjectorFloor.id.asc(),
)


def _distinct_departments(db: Session, column) -> list[str]:
    names = {normalize_name(row[0]) for row in db.query(column).distinct().all()}
    names.discard("")
    return sorted(names)


def list_projector_departments(db: Session) -> list[str]:
    return _distinct_departments(db, ProjectorFloor.department)


def list_turar_departments(db: Session) -> list[str]:
    return _distinct_departments(db, TurarMedical.department)


def _attach_connections(
    rooms: list[dict[str, Any]], connections: list[RoomConnection], dept_attr: str, room_attr: str
) -> list[dict[str, Any]]:
    by_room: dict[tuple[str, str], list[dict[str, Any]]] = {}
    for conn in connections:
        key = (normalize_name(getattr(conn, dept_attr)), normalize_name(getattr(conn, room_attr)))
        by_room.setdefault(key, []).append(conn.to_dict())
    for room in rooms:
        key = (normalize_name(room["department"]), normalize_name(room["room_name"]))
        linked = by_room.get(key, [])
        room["connections"] = linked
        room["is_connected"] = bool(linked)
    return rooms


def list_projector_rooms(db: Session, department: str) -> list[dict[str, Any]]:
    """Rooms of a projector department with their equipment and links."""

    spellings = stored_spellings(db, ProjectorFloor.department, department)
    lines = (
        db.query(ProjectorFloor)
        .filter(ProjectorFloor.department.in_(spellings))
        .order_by(*PROJECTOR_ORDER)
        .all()
    )
    connections = (
        db.query(RoomConnection)
        .filter(
            RoomConnection.projector_department.in_(
                stored_spellings(db, RoomConnection.projector_department, department)
            )
        )
        .order_by(RoomConnection.id.asc())
        .all()
    )
    return _attach_connections(
        group_rooms(lines), connections, "projector_department", "projector_room"
    )


def list_turar_rooms(db: Session, department: str) -> list[dict[str, Any]]:
    spellings = stored_spellings(db, TurarMedical.department, department)
    lines = (
        db.query(TurarMedical)
        .filter(TurarMedical.department.in_(spellings))
        .order_by(TurarMedical.room_name.asc(), TurarMedical.id.asc())
        .all()
    )
    connections = (
        db.query(RoomConnection)
        .filter(
            RoomConnection.turar_department.in_(
                stored_spellings(db, RoomConnection.turar_department, department)
            )
        )
        .order_by(RoomConnection.id.asc())
        .all()
    )
    return _attach_connections(group_rooms(lines), connections, "turar_department", "turar_room")


def list_projector_lines(db: Session, offset: int = 0, limit: int = 1000) -> dict[str, Any]:
    query = db.query(ProjectorFloor)
    total = query.count()
    rows = query.order_by(*PROJECTOR_ORDER).offset(offset).limit(limit).all()
    return {
        "items": [r.to_dict() for r in rows],
        "total": total,
        "offset": offset,
        "limit": limit,
    }


def list_turar_lines(db: Session, offset: int = 0, limit: int = 1000) -> dict[str, Any]:
    query = db.query(TurarMedical)
    total = query.count()
    rows = (
        query.order_by(
            TurarMedical.department.asc(), TurarMedical.room_name.asc(), TurarMedical.id.asc()
        )
        .offset(offset)
        .limit(limit)
        .all()
    )
    return {
        "items": [r.to_dict() for r in rows],
        "total": total,
        "offset": offset,
        "limit": limit,
    }


def _matches(needle: str, *values: Any) -> bool:
    return any(needle in str(v).casefold() for v in values if v)


def search_rooms(db: Session, q: str, limit: int = 200) -> dict[str, list[dict[str, Any]]]:
    """Case-insensitive substring search over departments, rooms and equipment.

    Matching runs in Python because SQLite only folds ASCII letters.
    """

    needle = normalize_name(q).casefold()
    if not needle:
        return {"projector": [], "turar": []}

    projector_hits = []
    for line in db.query(ProjectorFloor).order_by(*PROJECTOR_ORDER):
        if _matches(needle, line.department, line.room_name, line.equipment_name):
            projector_hits.append(line)
            if len(projector_hits) >= limit:
                break
    turar_hits = []
    for line in db.query(TurarMedical).order_by(TurarMedical.id.asc()):
        if _matches(needle, line.department, line.room_name, line.equipment_name):
            turar_hits.append(line)
            if len(turar_hits) >= limit:
                break
    return {
        "projector": group_rooms(projector_hits),
        "turar": group_rooms(turar_hits),
    }


def update_projector_equipment(
    db: Session, row_id: int, payload: Mapping[str, Any]
) -> ProjectorFloor:
    line = get_or_404(db, ProjectorFloor, row_id, "Строка оборудования не найдена")
    changed = apply_updates(line, payload, PROJECTOR_EDITABLE)
    if changed:
        db.commit()
        db.refresh(line)
        logger.info("Projector line %s updated: %s", row_id, ", ".join(changed))
        hub.publish(PROJECTOR_EQUIPMENT)
    return line


def update_turar_equipment(db: Session, row_id: int, payload: Mapping[str, Any]) -> TurarMedical:
    line = get_or_404(db, TurarMedical, row_id, "Строка оборудования не найдена")
    data = dict(payload)
    if "quantity" in data:
        try:
            data["quantity"] = int(str(data["quantity"]).strip())
        except ValueError:
            raise HTTPException(status_code=400, detail="Количество должно быть целым числом")
    for name in ("equipment_code", "equipment_name"):
        if name in data and not str(data[name] or "").strip():
            raise HTTPException(status_code=400, detail="Код и наименование обязательны")
    changed = apply_updates(line, data, TURAR_EDITABLE)
    if changed:
        db.commit()
        db.refresh(line)
        logger.info("Turar line %s updated: %s", row_id, ", ".join(changed))
        hub.publish(TURAR_MEDICAL)
    return line
