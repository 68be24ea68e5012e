"""Rebuild of the per-mapping staging tables.

For every department mapping the staging tables hold a copy of the source
lines of both departments, tagged with the mapping id and the id of the
source line. Departments match exactly after whitespace is collapsed;
spelling variants resolve through ``department_aliases``.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core import config
from models import (
    DepartmentMapping,
    MappedProjectorRoom,
    MappedTurarRoom,
    ProjectorFloor,
    RoomConnection,
    TurarMedical,
)
from utils.departments import load_aliases, resolve_department
from utils.grouping import connections_index, group_rooms, turar_connections_index
from utils.http import get_or_404
from utils.invalidation import MAPPED_DEPARTMENTS, hub

logger = logging.getLogger(__name__)


class _Sources:
    """Source lines bucketed by resolved department, loaded once per rebuild."""

    def __init__(self, db: Session) -> None:
        self.aliases = load_aliases(db)
        self.projector: dict[str, list[ProjectorFloor]] = {}
        for line in db.query(ProjectorFloor).order_by(ProjectorFloor.id.asc()):
            key = resolve_department(line.department, self.aliases).casefold()
            self.projector.setdefault(key, []).append(line)
        self.turar: dict[str, list[TurarMedical]] = {}
        for line in db.query(TurarMedical).order_by(TurarMedical.id.asc()):
            key = resolve_department(line.department, self.aliases).casefold()
            self.turar.setdefault(key, []).append(line)
        connections = db.query(RoomConnection).order_by(RoomConnection.id.asc()).all()
        self.projector_links = connections_index(connections)
        self.turar_links = turar_connections_index(connections)

    def projector_lines(self, department: str) -> list[ProjectorFloor]:
        return self.projector.get(resolve_department(department, self.aliases).casefold(), [])

    def turar_lines(self, department: str) -> list[TurarMedical]:
        return self.turar.get(resolve_department(department, self.aliases).casefold(), [])


def _projector_rows(mapping: DepartmentMapping, sources: _Sources) -> list[MappedProjectorRoom]:
    rows = []
    for item in sources.projector_lines(mapping.projector_department):
        link = sources.projector_links.get((item.department, item.room_name))
        rows.append(
            MappedProjectorRoom(
                department_mapping_id=mapping.id,
                original_record_id=item.id,
                floor_number=item.floor,
                block_name=item.block,
                department_name=item.department,
                room_code=item.room_code,
                room_name=item.room_name,
                room_area=item.area,
                equipment_code=item.equipment_code,
                equipment_name=item.equipment_name,
                equipment_unit=item.equipment_unit,
                equipment_quantity=item.equipment_quantity,
                equipment_notes=item.equipment_notes,
                is_linked=link is not None,
                linked_turar_room_id=link.turar_room_id if link else None,
            )
        )
    return rows


def _turar_rows(mapping: DepartmentMapping, sources: _Sources) -> list[MappedTurarRoom]:
    rows = []
    for item in sources.turar_lines(mapping.turar_department):
        link = sources.turar_links.get((item.department, item.room_name))
        rows.append(
            MappedTurarRoom(
                department_mapping_id=mapping.id,
                original_record_id=item.id,
                department_name=item.department,
                room_name=item.room_name,
                equipment_code=item.equipment_code,
                equipment_name=item.equipment_name,
                equipment_quantity=item.quantity,
                is_linked=link is not None,
                linked_projector_room_id=link.projector_room_id if link else None,
            )
        )
    return rows


def _insert_pages(db: Session, rows: list, label: str) -> None:
    size = config.LOAD_BATCH_SIZE
    for start in range(0, len(rows), size):
        db.add_all(rows[start : start + size])
        db.flush()
        logger.debug("Inserted %s staging page %d", label, start // size + 1)


def _populate(db: Session, mapping: DepartmentMapping, sources: _Sources) -> tuple[int, int]:
    projector_rows = _projector_rows(mapping, sources)
    turar_rows = _turar_rows(mapping, sources)
    _insert_pages(db, projector_rows, "projector")
    _insert_pages(db, turar_rows, "turar")
    logger.info(
        "Mapping %s (%s / %s): %d projector, %d Turar lines",
        mapping.id,
        mapping.projector_department,
        mapping.turar_department,
        len(projector_rows),
        len(turar_rows),
    )
    return len(projector_rows), len(turar_rows)


def bulk_populate_mapped_departments(db: Session) -> dict[str, Any]:
    """Wipe both staging tables and rebuild them for every mapping."""

    mappings = (
        db.query(DepartmentMapping)
        .order_by(DepartmentMapping.created_at.asc(), DepartmentMapping.id.asc())
        .all()
    )
    logger.info("Rebuilding staging tables for %d mappings", len(mappings))

    try:
        db.query(MappedProjectorRoom).delete(synchronize_session=False)
        db.query(MappedTurarRoom).delete(synchronize_session=False)
        sources = _Sources(db)
        total_projector = total_turar = processed = 0
        for mapping in mappings:
            p, t = _populate(db, mapping, sources)
            total_projector += p
            total_turar += t
            processed += 1
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    hub.publish(MAPPED_DEPARTMENTS)
    return {
        "success": True,
        "processed_mappings": processed,
        "total_projector_records": total_projector,
        "total_turar_records": total_turar,
        "total_records": total_projector + total_turar,
    }


def populate_mapped_department(db: Session, mapping_id: int) -> dict[str, Any]:
    """Rebuild the staging rows of a single mapping."""

    mapping = get_or_404(db, DepartmentMapping, mapping_id, "Сопоставление не найдено")
    try:
        db.query(MappedProjectorRoom).filter(
            MappedProjectorRoom.department_mapping_id == mapping.id
        ).delete(synchronize_session=False)
        db.query(MappedTurarRoom).filter(
            MappedTurarRoom.department_mapping_id == mapping.id
        ).delete(synchronize_session=False)
        projector_count, turar_count = _populate(db, mapping, _Sources(db))
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    hub.publish(MAPPED_DEPARTMENTS)
    return {
        "success": True,
        "mapping_id": mapping_id,
        "projector_records": projector_count,
        "turar_records": turar_count,
    }


def _staging_dict(row: MappedProjectorRoom | MappedTurarRoom) -> dict[str, Any]:
    if isinstance(row, MappedProjectorRoom):
        return {
            "id": row.original_record_id,
            "floor": row.floor_number,
            "block": row.block_name,
            "department": row.department_name,
            "room_code": row.room_code,
            "room_name": row.room_name,
            "area": row.room_area,
            "equipment_code": row.equipment_code,
            "equipment_name": row.equipment_name,
            "equipment_unit": row.equipment_unit,
            "equipment_quantity": row.equipment_quantity,
            "equipment_notes": row.equipment_notes,
        }
    return {
        "id": row.original_record_id,
        "department": row.department_name,
        "room_name": row.room_name,
        "equipment_code": row.equipment_code,
        "equipment_name": row.equipment_name,
        "quantity": row.equipment_quantity,
    }


def mapped_rooms(db: Session, mapping_id: int) -> dict[str, Any]:
    mapping = get_or_404(db, DepartmentMapping, mapping_id, "Сопоставление не найдено")
    projector = (
        db.query(MappedProjectorRoom)
        .filter(MappedProjectorRoom.department_mapping_id == mapping.id)
        .order_by(MappedProjectorRoom.room_name.asc(), MappedProjectorRoom.id.asc())
        .all()
    )
    turar = (
        db.query(MappedTurarRoom)
        .filter(MappedTurarRoom.department_mapping_id == mapping.id)
        .order_by(MappedTurarRoom.room_name.asc(), MappedTurarRoom.id.asc())
        .all()
    )

    def rooms(rows) -> list[dict[str, Any]]:
        grouped = group_rooms([_staging_dict(r) for r in rows])
        linked = {(r.department_name, r.room_name) for r in rows if r.is_linked}
        for room in grouped:
            room["is_linked"] = (room["department"], room["room_name"]) in linked
        return grouped

    return {
        "mapping": mapping.to_dict(),
        "projector_rooms": rooms(projector),
        "turar_rooms": rooms(turar),
    }
