"""Room linking between the projector and Turar datasets.

A :class:`~models.RoomConnection` row is the only source of truth for a
link. The ``connected_*`` columns on the source tables and the ``is_linked``
flags of the staging tables are derived from it and are recomputed inside
the same transaction as every insert, update or delete of a connection.
Because a room is stored as several equipment lines sharing
``(department, room_name)``, the derived columns are written to every line
of the room.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from fastapi import HTTPException
from sqlalchemy import and_, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core import config
from models import (
    MappedProjectorRoom,
    MappedTurarRoom,
    ProjectorFloor,
    RoomConnection,
    TurarMedical,
)
from utils.departments import normalize_name, stored_spellings
from utils.http import get_or_404, require_text
from utils.invalidation import LINK_KEYS, MAPPED_DEPARTMENTS, hub

logger = logging.getLogger(__name__)

UNKNOWN_ROOM = "Неизвестный кабинет"
_UNKNOWN_MARKER = "неизвестный"

SIDE_PROJECTOR = "projector"
SIDE_TURAR = "turar"
SIDES = (SIDE_PROJECTOR, SIDE_TURAR)

ConnectionKey = tuple[str, str, str, str]


@dataclass
class LinkResult:
    connection: RoomConnection
    created: bool


@dataclass
class PendingLink:
    """A link queued on the client and flushed later by :func:`commit_pending`."""

    turar_department: str
    turar_room: str
    projector_department: str
    projector_room: str

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "PendingLink":
        return cls(
            turar_department=str(data.get("turar_department") or ""),
            turar_room=str(data.get("turar_room") or ""),
            projector_department=str(data.get("projector_department") or ""),
            projector_room=str(data.get("projector_room") or ""),
        )


@dataclass
class CommitReport:
    created: list[int] = field(default_factory=list)
    skipped: list[int] = field(default_factory=list)
    failed: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "created": self.created,
            "skipped": self.skipped,
            "failed": self.failed,
            "partial": bool(self.failed) and bool(self.created or self.skipped),
        }


# --- Lookups ---------------------------------------------------------------------
def first_projector_line(db: Session, department: str, room: str) -> ProjectorFloor | None:
    """First line of the room; names match whatever whitespace they were stored with."""

    return (
        db.query(ProjectorFloor)
        .filter(
            ProjectorFloor.department.in_(
                stored_spellings(db, ProjectorFloor.department, department)
            ),
            ProjectorFloor.room_name.in_(stored_spellings(db, ProjectorFloor.room_name, room)),
        )
        .order_by(ProjectorFloor.id.asc())
        .first()
    )


def first_turar_line(db: Session, department: str, room: str) -> TurarMedical | None:
    return (
        db.query(TurarMedical)
        .filter(
            TurarMedical.department.in_(stored_spellings(db, TurarMedical.department, department)),
            TurarMedical.room_name.in_(stored_spellings(db, TurarMedical.room_name, room)),
        )
        .order_by(TurarMedical.id.asc())
        .first()
    )


def find_connection(
    db: Session,
    turar_department: str,
    turar_room: str,
    projector_department: str,
    projector_room: str,
) -> RoomConnection | None:
    return (
        db.query(RoomConnection)
        .filter(
            RoomConnection.turar_department == turar_department,
            RoomConnection.turar_room == turar_room,
            RoomConnection.projector_department == projector_department,
            RoomConnection.projector_room == projector_room,
        )
        .first()
    )


def list_connections(
    db: Session,
    *,
    turar_department: str | None = None,
    turar_room: str | None = None,
    projector_department: str | None = None,
    projector_room: str | None = None,
) -> list[RoomConnection]:
    query = db.query(RoomConnection)
    if turar_department:
        query = query.filter(RoomConnection.turar_department == turar_department)
    if turar_room:
        query = query.filter(RoomConnection.turar_room == turar_room)
    if projector_department:
        query = query.filter(RoomConnection.projector_department == projector_department)
    if projector_room:
        query = query.filter(RoomConnection.projector_room == projector_room)
    return query.order_by(
        RoomConnection.turar_department.asc(),
        RoomConnection.turar_room.asc(),
        RoomConnection.id.asc(),
    ).all()


# --- Derived columns -------------------------------------------------------------------
def refresh_projector_mirror(db: Session, department: str, room: str) -> int:
    """Point the room's ``connected_turar_*`` columns at its newest connection.

    Lines keep a department-only link (``connected_turar_room`` empty) when
    the room has no connection left, since that value is set independently
    by :func:`link_room_to_turar_department`.
    """

    latest = (
        db.query(RoomConnection)
        .filter(
            RoomConnection.projector_department == department,
            RoomConnection.projector_room == room,
        )
        .order_by(RoomConnection.id.desc())
        .first()
    )
    lines = db.query(ProjectorFloor).filter(
        ProjectorFloor.department == department, ProjectorFloor.room_name == room
    )
    if latest is not None:
        values = {
            ProjectorFloor.connected_turar_department: latest.turar_department,
            ProjectorFloor.connected_turar_room: latest.turar_room,
            ProjectorFloor.connected_turar_room_id: latest.turar_room_id,
        }
        return lines.update(values, synchronize_session=False)
    return lines.filter(
        or_(
            ProjectorFloor.connected_turar_room.is_not(None),
            ProjectorFloor.connected_turar_room_id.is_not(None),
        )
    ).update(
        {
            ProjectorFloor.connected_turar_department: None,
            ProjectorFloor.connected_turar_room: None,
            ProjectorFloor.connected_turar_room_id: None,
        },
        synchronize_session=False,
    )


def refresh_turar_mirror(db: Session, department: str, room: str) -> int:
    latest = (
        db.query(RoomConnection)
        .filter(
            RoomConnection.turar_department == department,
            RoomConnection.turar_room == room,
        )
        .order_by(RoomConnection.id.desc())
        .first()
    )
    values = {
        TurarMedical.connected_projector_department: latest.projector_department if latest else None,
        TurarMedical.connected_projector_room: latest.projector_room if latest else None,
        TurarMedical.connected_projector_room_id: latest.projector_room_id if latest else None,
    }
    return (
        db.query(TurarMedical)
        .filter(TurarMedical.department == department, TurarMedical.room_name == room)
        .update(values, synchronize_session=False)
    )


def refresh_staging_flags(
    db: Session,
    *,
    projector: tuple[str, str] | None = None,
    turar: tuple[str, str] | None = None,
) -> None:
    if projector is not None:
        department, room = projector
        latest = (
            db.query(RoomConnection)
            .filter(
                RoomConnection.projector_department == department,
                RoomConnection.projector_room == room,
            )
            .order_by(RoomConnection.id.desc())
            .first()
        )
        db.query(MappedProjectorRoom).filter(
            MappedProjectorRoom.department_name == department,
            MappedProjectorRoom.room_name == room,
        ).update(
            {
                MappedProjectorRoom.is_linked: latest is not None,
                MappedProjectorRoom.linked_turar_room_id: latest.turar_room_id if latest else None,
            },
            synchronize_session=False,
        )
    if turar is not None:
        department, room = turar
        latest = (
            db.query(RoomConnection)
            .filter(
                RoomConnection.turar_department == department,
                RoomConnection.turar_room == room,
            )
            .order_by(RoomConnection.id.desc())
            .first()
        )
        db.query(MappedTurarRoom).filter(
            MappedTurarRoom.department_name == department,
            MappedTurarRoom.room_name == room,
        ).update(
            {
                MappedTurarRoom.is_linked: latest is not None,
                MappedTurarRoom.linked_projector_room_id: (
                    latest.projector_room_id if latest else None
                ),
            },
            synchronize_session=False,
        )


def refresh_rooms(
    db: Session,
    projector_rooms: Iterable[tuple[str, str]],
    turar_rooms: Iterable[tuple[str, str]],
) -> None:
    for department, room in set(projector_rooms):
        refresh_projector_mirror(db, department, room)
        refresh_staging_flags(db, projector=(department, room))
    for department, room in set(turar_rooms):
        refresh_turar_mirror(db, department, room)
        refresh_staging_flags(db, turar=(department, room))


# --- Create / update / delete ----------------------------------------------------------------
def _resolve_lines(
    db: Session,
    turar_department: str,
    turar_room: str,
    projector_department: str,
    projector_room: str,
) -> tuple[TurarMedical, ProjectorFloor]:
    turar_line = first_turar_line(db, turar_department, turar_room)
    if turar_line is None:
        logger.warning("Turar room not found: %s / %s", turar_department, turar_room)
        raise HTTPException(
            status_code=404,
            detail=f"Помещение Турар не найдено: {turar_department} / {turar_room}",
        )
    projector_line = first_projector_line(db, projector_department, projector_room)
    if projector_line is None:
        logger.warning(
            "Projector room not found: %s / %s", projector_department, projector_room
        )
        raise HTTPException(
            status_code=404,
            detail=f"Помещение проектировщиков не найдено: {projector_department} / {projector_room}",
        )
    return turar_line, projector_line


def create_connection(
    db: Session,
    turar_department: str,
    turar_room: str,
    projector_department: str,
    projector_room: str,
    *,
    publish: bool = True,
) -> LinkResult:
    """Link a Turar room with a projector room.

    An identical link is returned unchanged (``created=False``).
    """

    turar_department = require_text(turar_department, "Отделение Турар")
    turar_room = require_text(turar_room, "Кабинет Турар")
    projector_department = require_text(projector_department, "Отделение проектировщиков")
    projector_room = require_text(projector_room, "Помещение проектировщиков")

    turar_line, projector_line = _resolve_lines(
        db, turar_department, turar_room, projector_department, projector_room
    )
    # links carry the exact names stored on the source lines
    turar_department, turar_room = turar_line.department, turar_line.room_name
    projector_department, projector_room = projector_line.department, projector_line.room_name

    existing = find_connection(
        db, turar_department, turar_room, projector_department, projector_room
    )
    if existing is not None:
        return LinkResult(existing, False)

    conn = RoomConnection(
        turar_department=turar_department,
        turar_room=turar_room,
        projector_department=projector_department,
        projector_room=projector_room,
        turar_room_id=turar_line.id,
        turar_department_id=turar_line.department_id,
        projector_room_id=projector_line.id,
        projector_department_id=projector_line.department_id,
    )
    db.add(conn)
    try:
        db.flush()
    except IntegrityError:
        # a concurrent request inserted the same link first
        db.rollback()
        existing = find_connection(
            db, turar_department, turar_room, projector_department, projector_room
        )
        if existing is None:
            raise
        return LinkResult(existing, False)

    refresh_rooms(
        db, [(projector_department, projector_room)], [(turar_department, turar_room)]
    )
    db.commit()
    db.refresh(conn)
    logger.info(
        "Linked %s / %s <-> %s / %s",
        turar_department,
        turar_room,
        projector_department,
        projector_room,
    )
    if publish:
        hub.publish(LINK_KEYS, MAPPED_DEPARTMENTS)
    return LinkResult(conn, True)


def create_connection_by_ids(
    db: Session, turar_room_id: int, projector_room_id: int
) -> LinkResult:
    message = "Не удалось найти информацию о комнатах"
    turar_line = get_or_404(db, TurarMedical, turar_room_id, message)
    projector_line = get_or_404(db, ProjectorFloor, projector_room_id, message)
    return create_connection(
        db,
        turar_line.department,
        turar_line.room_name,
        projector_line.department,
        projector_line.room_name,
    )


_EDITABLE_FIELDS = (
    "turar_department",
    "turar_room",
    "projector_department",
    "projector_room",
)


def update_connection(
    db: Session, connection_id: int, payload: Mapping[str, Any]
) -> RoomConnection:
    conn = get_or_404(db, RoomConnection, connection_id, "Связь не найдена")
    old_projector = (conn.projector_department, conn.projector_room)
    old_turar = (conn.turar_department, conn.turar_room)

    new_values = {
        name: require_text(payload.get(name, getattr(conn, name)), name)
        for name in _EDITABLE_FIELDS
    }
    if tuple(new_values[name] for name in _EDITABLE_FIELDS) == conn.key:
        return conn

    turar_line, projector_line = _resolve_lines(
        db,
        new_values["turar_department"],
        new_values["turar_room"],
        new_values["projector_department"],
        new_values["projector_room"],
    )
    new_values.update(
        turar_department=turar_line.department,
        turar_room=turar_line.room_name,
        projector_department=projector_line.department,
        projector_room=projector_line.room_name,
    )
    duplicate = find_connection(db, *(new_values[name] for name in _EDITABLE_FIELDS))
    if duplicate is not None and duplicate.id != conn.id:
        raise HTTPException(status_code=400, detail="Такая связь уже существует")

    for name, value in new_values.items():
        setattr(conn, name, value)
    conn.turar_room_id = turar_line.id
    conn.turar_department_id = turar_line.department_id
    conn.projector_room_id = projector_line.id
    conn.projector_department_id = projector_line.department_id
    db.flush()

    refresh_rooms(
        db,
        [old_projector, (conn.projector_department, conn.projector_room)],
        [old_turar, (conn.turar_department, conn.turar_room)],
    )
    db.commit()
    db.refresh(conn)
    hub.publish(LINK_KEYS, MAPPED_DEPARTMENTS)
    return conn


def delete_connection(db: Session, connection_id: int) -> dict[str, Any]:
    """Remove a link and recompute the derived columns of both rooms."""

    conn = get_or_404(db, RoomConnection, connection_id, "Связь не найдена")
    snapshot = conn.to_dict()

    db.delete(conn)
    db.flush()
    refresh_rooms(
        db,
        [(snapshot["projector_department"], snapshot["projector_room"])],
        [(snapshot["turar_department"], snapshot["turar_room"])],
    )
    db.commit()
    logger.info("Deleted room connection %s", connection_id)
    hub.publish(LINK_KEYS, MAPPED_DEPARTMENTS)
    return snapshot


# --- Candidate discovery and the pending queue ----------------------------------------------
def candidate_rooms(
    db: Session,
    source_side: str,
    source_department: str,
    source_room: str,
    target_department: str,
) -> list[str]:
    """Rooms of ``target_department`` on the other side not yet linked to the source room."""

    if source_side not in SIDES:
        raise HTTPException(status_code=400, detail="Неизвестный источник данных")

    if source_side == SIDE_PROJECTOR:
        target_rows = (
            db.query(TurarMedical.room_name)
            .filter(
                TurarMedical.department.in_(
                    stored_spellings(db, TurarMedical.department, target_department)
                )
            )
            .order_by(TurarMedical.room_name.asc())
            .distinct()
            .all()
        )
        links = db.query(RoomConnection).filter(
            RoomConnection.projector_department.in_(
                stored_spellings(db, RoomConnection.projector_department, source_department)
            ),
            RoomConnection.turar_department.in_(
                stored_spellings(db, RoomConnection.turar_department, target_department)
            ),
        )
        connected = {
            normalize_name(c.turar_room)
            for c in links
            if normalize_name(c.projector_room) == normalize_name(source_room)
        }
    else:
        target_rows = (
            db.query(ProjectorFloor.room_name)
            .filter(
                ProjectorFloor.department.in_(
                    stored_spellings(db, ProjectorFloor.department, target_department)
                )
            )
            .order_by(ProjectorFloor.room_name.asc())
            .distinct()
            .all()
        )
        links = db.query(RoomConnection).filter(
            RoomConnection.turar_department.in_(
                stored_spellings(db, RoomConnection.turar_department, source_department)
            ),
            RoomConnection.projector_department.in_(
                stored_spellings(db, RoomConnection.projector_department, target_department)
            ),
        )
        connected = {
            normalize_name(c.projector_room)
            for c in links
            if normalize_name(c.turar_room) == normalize_name(source_room)
        }
    rooms: list[str] = []
    for (name,) in target_rows:
        if name and normalize_name(name) not in connected and name not in rooms:
            rooms.append(name)
    return rooms


def commit_pending(db: Session, items: Iterable[PendingLink | Mapping[str, Any]]) -> CommitReport:
    """Submit queued links one by one.

    Links created before a failing item stay committed; the failure is
    reported per item.
    """

    report = CommitReport()
    for index, raw in enumerate(items):
        item = raw if isinstance(raw, PendingLink) else PendingLink.from_mapping(raw)
        try:
            result = create_connection(
                db,
                item.turar_department,
                item.turar_room,
                item.projector_department,
                item.projector_room,
                publish=False,
            )
        except HTTPException as exc:
            db.rollback()
            report.failed.append({"index": index, "error": exc.detail})
            continue
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("Queued link %d failed", index)
            report.failed.append({"index": index, "error": str(exc)})
            continue
        if result.created:
            report.created.append(result.connection.id)
        else:
            report.skipped.append(result.connection.id)

    if report.created:
        hub.publish(LINK_KEYS, MAPPED_DEPARTMENTS)
    return report


# --- Department-level links on projector rooms ------------------------------------------------
def link_room_to_turar_department(
    db: Session,
    projector_department: str,
    turar_department: str,
    projector_room: str | None = None,
) -> int:
    """Tag projector lines with the Turar department they belong to.

    Tags every room of the department unless ``projector_room`` is given.
    These tags feed :func:`bulk_create_connections`.
    """

    projector_department = require_text(projector_department, "Отделение проектировщиков")
    turar_department = require_text(turar_department, "Отделение Турар")
    query = db.query(ProjectorFloor).filter(
        ProjectorFloor.department.in_(
            stored_spellings(db, ProjectorFloor.department, projector_department)
        )
    )
    if projector_room:
        query = query.filter(
            ProjectorFloor.room_name.in_(
                stored_spellings(db, ProjectorFloor.room_name, projector_room)
            )
        )
    updated = query.update(
        {ProjectorFloor.connected_turar_department: turar_department},
        synchronize_session=False,
    )
    if not updated:
        raise HTTPException(status_code=404, detail="Помещения не найдены")
    db.commit()
    hub.publish(LINK_KEYS)
    return updated


def unlink_room_from_turar_department(
    db: Session, projector_department: str, projector_room: str | None = None
) -> int:
    query = db.query(ProjectorFloor).filter(
        ProjectorFloor.department.in_(
            stored_spellings(db, ProjectorFloor.department, projector_department)
        ),
        ProjectorFloor.connected_turar_room.is_(None),
    )
    if projector_room:
        query = query.filter(
            ProjectorFloor.room_name.in_(
                stored_spellings(db, ProjectorFloor.room_name, projector_room)
            )
        )
    updated = query.update(
        {ProjectorFloor.connected_turar_department: None}, synchronize_session=False
    )
    db.commit()
    hub.publish(LINK_KEYS)
    return updated


# --- Batch jobs ---------------------------------------------------------------------------
def bulk_create_connections(
    db: Session,
    *,
    max_targets: int | None = None,
    page_size: int | None = None,
) -> dict[str, int]:
    """Backfill room links from department-level tags.

    For every projector room tagged with ``connected_turar_department`` the
    first ``max_targets`` Turar rooms of that department which are not yet
    linked to it get a connection. This is a heuristic, not a matching
    algorithm.
    """

    max_targets = config.BULK_LINK_MAX_TARGETS if max_targets is None else max_targets
    page_size = page_size or config.BULK_LINK_PAGE_SIZE

    tagged = (
        db.query(ProjectorFloor)
        .filter(ProjectorFloor.connected_turar_department.is_not(None))
        .order_by(ProjectorFloor.id.asc())
        .all()
    )
    logger.info("Found %d projector lines tagged with a Turar department", len(tagged))

    groups: dict[tuple[str, str], list[ProjectorFloor]] = {}
    for line in tagged:
        groups.setdefault((line.department, line.room_name), []).append(line)

    # Turar rooms by whitespace-collapsed department, first line of each room
    turar_rooms: dict[str, dict[str, TurarMedical]] = {}
    for row in db.query(TurarMedical).order_by(TurarMedical.id.asc()).all():
        turar_rooms.setdefault(normalize_name(row.department), {}).setdefault(row.room_name, row)

    existing: set[ConnectionKey] = {
        (c.projector_department, c.projector_room, c.turar_department, c.turar_room)
        for c in db.query(RoomConnection).all()
    }

    pending: list[RoomConnection] = []
    skipped = 0
    processed = 0
    for (projector_department, projector_room), lines in groups.items():
        tag = normalize_name(lines[0].connected_turar_department)
        processed += 1
        made = 0
        for turar_room, turar_line in turar_rooms.get(tag, {}).items():
            if made >= max_targets:
                break
            turar_department = turar_line.department
            key = (projector_department, projector_room, turar_department, turar_room)
            if key in existing:
                skipped += 1
                continue
            existing.add(key)
            made += 1
            pending.append(
                RoomConnection(
                    projector_department=projector_department,
                    projector_room=projector_room,
                    turar_department=turar_department,
                    turar_room=turar_room,
                    projector_room_id=lines[0].id,
                    projector_department_id=lines[0].department_id,
                    turar_room_id=turar_line.id,
                    turar_department_id=turar_line.department_id,
                )
            )
        if processed % 100 == 0:
            logger.info(
                "Processed %d/%d rooms, prepared %d links, skipped %d",
                processed,
                len(groups),
                len(pending),
                skipped,
            )

    inserted = 0
    for start in range(0, len(pending), page_size):
        page = pending[start : start + page_size]
        db.add_all(page)
        db.flush()
        inserted += len(page)
        logger.info("Inserted link page %d (%d/%d)", start // page_size + 1, inserted, len(pending))

    refresh_rooms(
        db,
        [(c.projector_department, c.projector_room) for c in pending],
        [(c.turar_department, c.turar_room) for c in pending],
    )
    db.commit()
    if inserted:
        hub.publish(LINK_KEYS, MAPPED_DEPARTMENTS)

    return {
        "total_projector_rooms": len(groups),
        "new_connections_created": inserted,
        "existing_connections_skipped": skipped,
        "total_processed": processed,
    }


def sync_room_connection_mirrors(db: Session) -> dict[str, int]:
    """Recompute every ``connected_*`` column from ``room_connections``."""

    db.query(ProjectorFloor).filter(
        or_(
            ProjectorFloor.connected_turar_room.is_not(None),
            ProjectorFloor.connected_turar_room_id.is_not(None),
        )
    ).update(
        {
            ProjectorFloor.connected_turar_department: None,
            ProjectorFloor.connected_turar_room: None,
            ProjectorFloor.connected_turar_room_id: None,
        },
        synchronize_session=False,
    )
    db.query(TurarMedical).update(
        {
            TurarMedical.connected_projector_department: None,
            TurarMedical.connected_projector_room: None,
            TurarMedical.connected_projector_room_id: None,
        },
        synchronize_session=False,
    )

    connections = db.query(RoomConnection).order_by(RoomConnection.id.asc()).all()
    latest_projector: dict[tuple[str, str], RoomConnection] = {}
    latest_turar: dict[tuple[str, str], RoomConnection] = {}
    for conn in connections:
        latest_projector[(conn.projector_department, conn.projector_room)] = conn
        latest_turar[(conn.turar_department, conn.turar_room)] = conn

    projector_rows = 0
    for (department, room), conn in latest_projector.items():
        projector_rows += (
            db.query(ProjectorFloor)
            .filter(and_(ProjectorFloor.department == department, ProjectorFloor.room_name == room))
            .update(
                {
                    ProjectorFloor.connected_turar_department: conn.turar_department,
                    ProjectorFloor.connected_turar_room: conn.turar_room,
                    ProjectorFloor.connected_turar_room_id: conn.turar_room_id,
                },
                synchronize_session=False,
            )
        )
    turar_rows = 0
    for (department, room), conn in latest_turar.items():
        turar_rows += (
            db.query(TurarMedical)
            .filter(and_(TurarMedical.department == department, TurarMedical.room_name == room))
            .update(
                {
                    TurarMedical.connected_projector_department: conn.projector_department,
                    TurarMedical.connected_projector_room: conn.projector_room,
                    TurarMedical.connected_projector_room_id: conn.projector_room_id,
                },
                synchronize_session=False,
            )
        )
    db.commit()
    hub.publish(LINK_KEYS)
    logger.info(
        "Mirrors rebuilt from %d connections (%d projector lines, %d Turar lines)",
        len(connections),
        projector_rows,
        turar_rows,
    )
    return {
        "connections": len(connections),
        "projector_rows": projector_rows,
        "turar_rows": turar_rows,
    }


def _is_unknown(value: str | None) -> bool:
    return bool(value) and _UNKNOWN_MARKER in value.casefold()


def cleanup_unknown_rooms(db: Session) -> dict[str, int]:
    """Drop links and derived values that point at placeholder rooms."""

    # SQLite's lower() does not fold Cyrillic, so the match runs in Python
    doomed = [
        c
        for c in db.query(RoomConnection).all()
        if _is_unknown(c.turar_room) or _is_unknown(c.projector_room)
    ]
    touched_projector = [(c.projector_department, c.projector_room) for c in doomed]
    touched_turar = [(c.turar_department, c.turar_room) for c in doomed]
    for conn in doomed:
        db.delete(conn)
    db.flush()

    projector_rows = 0
    for line in db.query(ProjectorFloor).filter(
        ProjectorFloor.connected_turar_room.is_not(None)
    ):
        if _is_unknown(line.connected_turar_room):
            line.connected_turar_department = None
            line.connected_turar_room = None
            line.connected_turar_room_id = None
            projector_rows += 1
    turar_rows = 0
    for line in db.query(TurarMedical).filter(
        TurarMedical.connected_projector_room.is_not(None)
    ):
        if _is_unknown(line.connected_projector_room):
            line.connected_projector_department = None
            line.connected_projector_room = None
            line.connected_projector_room_id = None
            turar_rows += 1
    db.flush()

    refresh_rooms(db, touched_projector, touched_turar)
    db.commit()
    hub.publish(LINK_KEYS, MAPPED_DEPARTMENTS)
    logger.info(
        "Removed %d placeholder links, cleaned %d projector and %d Turar lines",
        len(doomed),
        projector_rows,
        turar_rows,
    )
    return {
        "deleted_connections": len(doomed),
        "cleaned_projector_rows": projector_rows,
        "cleaned_turar_rows": turar_rows,
    }
