"""Departments, department mappings and department aliases."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models import (
    Department,
    DepartmentAlias,
    DepartmentMapping,
    MappedProjectorRoom,
    MappedTurarRoom,
    ProjectorFloor,
    RoomConnection,
    TurarMedical,
)
from utils.departments import department_id_for, load_aliases, normalize_name, same_department
from utils.http import get_or_404, require_text
from utils.invalidation import (
    DEPARTMENT_MAPPINGS,
    DEPARTMENTS,
    LINK_KEYS,
    MAPPED_DEPARTMENTS,
    hub,
)
from utils.linking import refresh_rooms

logger = logging.getLogger(__name__)


# --- Departments --------------------------------------------------------------------
def list_departments(db: Session) -> list[Department]:
    return db.query(Department).order_by(Department.name.asc()).all()


def create_department(db: Session, name: str) -> Department:
    name = normalize_name(require_text(name, "Название отделения"))
    if db.query(Department).filter(Department.name == name).first():
        raise HTTPException(status_code=400, detail="Отделение с таким названием уже существует")
    dept = Department(name=name)
    db.add(dept)
    db.commit()
    db.refresh(dept)
    hub.publish(DEPARTMENTS)
    return dept


def rename_department(db: Session, department_id: int, name: str) -> Department:
    """Rename a department; rows referencing it by id keep pointing at it."""

    dept = get_or_404(db, Department, department_id, "Отделение не найдено")
    name = normalize_name(require_text(name, "Название отделения"))
    clash = db.query(Department).filter(Department.name == name, Department.id != dept.id).first()
    if clash:
        raise HTTPException(status_code=400, detail="Отделение с таким названием уже существует")
    dept.name = name
    db.commit()
    db.refresh(dept)
    hub.publish(DEPARTMENTS)
    return dept


def delete_department(db: Session, department_id: int) -> None:
    dept = get_or_404(db, Department, department_id, "Отделение не найдено")
    db.delete(dept)
    db.commit()
    hub.publish(DEPARTMENTS)


# --- Aliases -----------------------------------------------------------------------
def list_aliases(db: Session) -> list[DepartmentAlias]:
    return db.query(DepartmentAlias).order_by(DepartmentAlias.canonical.asc()).all()


def add_alias(db: Session, alias: str, canonical: str) -> DepartmentAlias:
    alias = normalize_name(require_text(alias, "Вариант названия"))
    canonical = normalize_name(require_text(canonical, "Основное название"))
    if alias.casefold() == canonical.casefold():
        raise HTTPException(status_code=400, detail="Вариант совпадает с основным названием")
    folded = alias.casefold()
    for row in db.query(DepartmentAlias).all():
        if normalize_name(row.alias).casefold() == folded:
            raise HTTPException(status_code=400, detail="Такой вариант названия уже задан")
    row = DepartmentAlias(alias=alias, canonical=canonical)
    db.add(row)
    db.commit()
    db.refresh(row)
    hub.publish(DEPARTMENTS, MAPPED_DEPARTMENTS)
    return row


def delete_alias(db: Session, alias_id: int) -> None:
    row = get_or_404(db, DepartmentAlias, alias_id, "Вариант названия не найден")
    db.delete(row)
    db.commit()
    hub.publish(DEPARTMENTS, MAPPED_DEPARTMENTS)


# --- Mappings ----------------------------------------------------------------------
def list_mappings(db: Session) -> list[DepartmentMapping]:
    return (
        db.query(DepartmentMapping)
        .order_by(DepartmentMapping.turar_department.asc(), DepartmentMapping.id.asc())
        .all()
    )


def create_mapping(db: Session, turar_department: str, projector_department: str) -> DepartmentMapping:
    turar_department = normalize_name(require_text(turar_department, "Отделение Турар"))
    projector_department = normalize_name(
        require_text(projector_department, "Отделение проектировщиков")
    )
    exists = (
        db.query(DepartmentMapping)
        .filter(
            DepartmentMapping.turar_department == turar_department,
            DepartmentMapping.projector_department == projector_department,
        )
        .first()
    )
    if exists:
        raise HTTPException(status_code=400, detail="Такое сопоставление уже существует")

    mapping = DepartmentMapping(
        turar_department=turar_department,
        projector_department=projector_department,
        turar_department_id=department_id_for(db, turar_department),
        projector_department_id=department_id_for(db, projector_department),
    )
    db.add(mapping)
    db.commit()
    db.refresh(mapping)
    logger.info("Mapped %s -> %s", turar_department, projector_department)
    hub.publish(DEPARTMENT_MAPPINGS)
    return mapping


def delete_department_mapping(db: Session, mapping_id: int) -> dict[str, Any]:
    """Delete a mapping together with everything derived from it.

    Removes the mapping's staging rows, the room links between its two
    departments and the mirror values those links produced, then the
    mapping itself. Either everything is removed or nothing is.
    """

    mapping = get_or_404(db, DepartmentMapping, mapping_id, "Сопоставление не найдено")
    turar_department = mapping.turar_department
    projector_department = mapping.projector_department
    logger.info(
        "Deleting mapping %s (%s -> %s)", mapping_id, turar_department, projector_department
    )

    try:
        staged_projector = (
            db.query(MappedProjectorRoom)
            .filter(MappedProjectorRoom.department_mapping_id == mapping_id)
            .delete(synchronize_session=False)
        )
        staged_turar = (
            db.query(MappedTurarRoom)
            .filter(MappedTurarRoom.department_mapping_id == mapping_id)
            .delete(synchronize_session=False)
        )

        aliases = load_aliases(db)

        def in_mapping(turar_name: object, projector_name: object) -> bool:
            return same_department(turar_name, turar_department, aliases) and same_department(
                projector_name, projector_department, aliases
            )

        links = [
            c
            for c in db.query(RoomConnection).order_by(RoomConnection.id.asc())
            if in_mapping(c.turar_department, c.projector_department)
        ]
        projector_rooms = {(c.projector_department, c.projector_room) for c in links}
        turar_rooms = {(c.turar_department, c.turar_room) for c in links}
        for conn in links:
            db.delete(conn)
        db.flush()

        refresh_rooms(db, projector_rooms, turar_rooms)
        # department-level tags pointing at the unmapped Turar department
        tags = 0
        for line in (
            db.query(ProjectorFloor)
            .populate_existing()
            .filter(
                ProjectorFloor.connected_turar_department.is_not(None),
                ProjectorFloor.connected_turar_room.is_(None),
            )
        ):
            if in_mapping(line.connected_turar_department, line.department):
                line.connected_turar_department = None
                tags += 1
        for line in (
            db.query(TurarMedical)
            .populate_existing()
            .filter(
                TurarMedical.connected_projector_department.is_not(None),
                TurarMedical.connected_projector_room.is_(None),
            )
        ):
            if in_mapping(line.department, line.connected_projector_department):
                line.connected_projector_department = None
                tags += 1
        db.flush()

        db.query(DepartmentMapping).filter(DepartmentMapping.id == mapping_id).delete(
            synchronize_session=False
        )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Deleting mapping %s failed, nothing was removed", mapping_id)
        raise

    db.expire_all()
    hub.publish(DEPARTMENT_MAPPINGS, MAPPED_DEPARTMENTS, LINK_KEYS)
    return {
        "success": True,
        "deletedMappingId": mapping_id,
        "deleted_staging_projector": staged_projector,
        "deleted_staging_turar": staged_turar,
        "deleted_connections": len(links),
        "cleared_department_tags": tags,
    }
