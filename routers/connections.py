from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from database import get_db
from routers.connection_schemas import (
    CommitOut,
    ConnectionCreate,
    ConnectionCreateById,
    ConnectionOut,
    ConnectionResult,
    ConnectionUpdate,
    DepartmentLink,
    PendingCommit,
)
from security import SessionUser, require_editor
from utils.grouping import unique_linked_rooms
from utils.http import require_text
from utils.linking import (
    PendingLink,
    candidate_rooms,
    commit_pending,
    create_connection,
    create_connection_by_ids,
    delete_connection,
    link_room_to_turar_department,
    list_connections,
    unlink_room_from_turar_department,
    update_connection,
)

router = APIRouter(prefix="/api/room-connections", tags=["Connections"])


@router.get("", response_model=List[ConnectionOut])
def connections_list(
    turar_department: Optional[str] = None,
    turar_room: Optional[str] = None,
    projector_department: Optional[str] = None,
    projector_room: Optional[str] = None,
    db: Session = Depends(get_db),
):
    return list_connections(
        db,
        turar_department=turar_department,
        turar_room=turar_room,
        projector_department=projector_department,
        projector_room=projector_room,
    )


@router.get("/unique")
def connections_unique(
    side: str = Query(..., pattern="^(projector|turar)$"),
    department: str = Query(..., min_length=1),
    room: str = Query(..., min_length=1),
    db: Session = Depends(get_db),
):
    """One entry per linked room on the other side of ``department``/``room``."""
    if side == "projector":
        rows = list_connections(db, projector_department=department, projector_room=room)
    else:
        rows = list_connections(db, turar_department=department, turar_room=room)
    unique = unique_linked_rooms(rows, side, department, room)
    return [{"room": name, "connection": conn.to_dict()} for name, conn in unique.items()]


@router.get("/candidates", response_model=List[str])
def connection_candidates(
    source_side: str = Query(..., pattern="^(projector|turar)$"),
    source_department: str = Query(..., min_length=1),
    source_room: str = Query(..., min_length=1),
    target_department: str = Query(..., min_length=1),
    db: Session = Depends(get_db),
):
    return candidate_rooms(db, source_side, source_department, source_room, target_department)


@router.post("", response_model=ConnectionResult)
def connection_create(
    payload: ConnectionCreate,
    db: Session = Depends(get_db),
    user: SessionUser = Depends(require_editor),
):
    result = create_connection(
        db,
        payload.turar_department,
        payload.turar_room,
        payload.projector_department,
        payload.projector_room,
    )
    return {"connection": result.connection, "created": result.created}


@router.post("/by-id", response_model=ConnectionResult)
def connection_create_by_id(
    payload: ConnectionCreateById,
    db: Session = Depends(get_db),
    user: SessionUser = Depends(require_editor),
):
    result = create_connection_by_ids(db, payload.turar_room_id, payload.projector_room_id)
    return {"connection": result.connection, "created": result.created}


@router.post("/commit", response_model=CommitOut)
def connections_commit(
    payload: PendingCommit,
    db: Session = Depends(get_db),
    user: SessionUser = Depends(require_editor),
):
    items = [PendingLink(**item.model_dump()) for item in payload.items]
    return commit_pending(db, items).to_dict()


@router.patch("/{connection_id}", response_model=ConnectionOut)
def connection_update(
    connection_id: int,
    payload: ConnectionUpdate,
    db: Session = Depends(get_db),
    user: SessionUser = Depends(require_editor),
):
    return update_connection(db, connection_id, payload.model_dump(exclude_none=True))


@router.delete("/{connection_id}")
def connection_delete(
    connection_id: int,
    db: Session = Depends(get_db),
    user: SessionUser = Depends(require_editor),
):
    deleted = delete_connection(db, connection_id)
    return {"ok": True, "deleted": deleted["id"]}


@router.post("/department-link")
def department_link(
    payload: DepartmentLink,
    db: Session = Depends(get_db),
    user: SessionUser = Depends(require_editor),
):
    """Tag projector rooms with the Turar department they belong to."""
    updated = link_room_to_turar_department(
        db,
        payload.projector_department,
        require_text(payload.turar_department, "Отделение Турар"),
        payload.projector_room,
    )
    return {"ok": True, "updated": updated}


@router.post("/department-unlink")
def department_unlink(
    payload: DepartmentLink,
    db: Session = Depends(get_db),
    user: SessionUser = Depends(require_editor),
):
    updated = unlink_room_from_turar_department(
        db, payload.projector_department, payload.projector_room
    )
    return {"ok": True, "updated": updated}
