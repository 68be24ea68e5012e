from typing import Any, Dict, List

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.orm import Session

from database import get_db
from security import SessionUser, require_editor
from utils import rooms

router = APIRouter(prefix="/api", tags=["Rooms"])


@router.get("/projector/departments", response_model=List[str])
def projector_departments(db: Session = Depends(get_db)):
    return rooms.list_projector_departments(db)


@router.get("/turar/departments", response_model=List[str])
def turar_departments(db: Session = Depends(get_db)):
    return rooms.list_turar_departments(db)


@router.get("/projector/rooms")
def projector_rooms(department: str = Query(..., min_length=1), db: Session = Depends(get_db)):
    return rooms.list_projector_rooms(db, department)


@router.get("/turar/rooms")
def turar_rooms(department: str = Query(..., min_length=1), db: Session = Depends(get_db)):
    return rooms.list_turar_rooms(db, department)


@router.get("/projector/lines")
def projector_lines(
    offset: int = Query(0, ge=0),
    limit: int = Query(1000, ge=1, le=5000),
    db: Session = Depends(get_db),
):
    return rooms.list_projector_lines(db, offset, limit)


@router.get("/turar/lines")
def turar_lines(
    offset: int = Query(0, ge=0),
    limit: int = Query(1000, ge=1, le=5000),
    db: Session = Depends(get_db),
):
    return rooms.list_turar_lines(db, offset, limit)


@router.get("/search")
def search(q: str = Query("", max_length=200), db: Session = Depends(get_db)):
    return rooms.search_rooms(db, q)


@router.patch("/projector/lines/{row_id}")
def projector_line_update(
    row_id: int,
    payload: Dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
    user: SessionUser = Depends(require_editor),
):
    return rooms.update_projector_equipment(db, row_id, payload).to_dict()


@router.patch("/turar/lines/{row_id}")
def turar_line_update(
    row_id: int,
    payload: Dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
    user: SessionUser = Depends(require_editor),
):
    return rooms.update_turar_equipment(db, row_id, payload).to_dict()
