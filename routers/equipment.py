import logging
from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from database import get_db
from models import Equipment, ProjectorFloor
from routers.equipment_schemas import EquipmentCreate, EquipmentOut, EquipmentUpdate
from security import SessionUser, require_editor
from utils.http import apply_updates, get_or_404
from utils.invalidation import EQUIPMENT, hub

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/equipment", tags=["Equipment"])

ROOM_NOT_FOUND = "Помещение не найдено"
EQUIPMENT_NOT_FOUND = "Оборудование не найдено"

EDITABLE = (
    "equipment_code",
    "equipment_name",
    "model_name",
    "equipment_type",
    "brand",
    "country",
    "specification",
    "standard",
    "quantity",
    "price",
    "purchase_status",
    "notes",
)


def _clean_documents(documents) -> list[str]:
    return [d.strip() for d in documents or [] if d and d.strip()]


@router.get("", response_model=List[EquipmentOut])
def equipment_list(room_id: int = Query(...), db: Session = Depends(get_db)):
    get_or_404(db, ProjectorFloor, room_id, ROOM_NOT_FOUND)
    return (
        db.query(Equipment)
        .filter(Equipment.room_id == room_id)
        .order_by(Equipment.equipment_name.asc(), Equipment.id.asc())
        .all()
    )


@router.post("", response_model=EquipmentOut)
def equipment_create(
    payload: EquipmentCreate,
    db: Session = Depends(get_db),
    user: SessionUser = Depends(require_editor),
):
    get_or_404(db, ProjectorFloor, payload.room_id, ROOM_NOT_FOUND)
    data = payload.model_dump()
    data["documents"] = _clean_documents(data.get("documents"))
    item = Equipment(**data)
    db.add(item)
    db.commit()
    db.refresh(item)
    logger.info("Equipment %s added to room line %s by %s", item.id, item.room_id, user.username)
    hub.publish(EQUIPMENT)
    return item


@router.patch("/{equipment_id}", response_model=EquipmentOut)
def equipment_update(
    equipment_id: int,
    payload: EquipmentUpdate,
    db: Session = Depends(get_db),
    user: SessionUser = Depends(require_editor),
):
    item = get_or_404(db, Equipment, equipment_id, EQUIPMENT_NOT_FOUND)
    data = payload.model_dump(exclude_unset=True)
    changed = apply_updates(item, data, EDITABLE)
    if "documents" in data:
        item.documents = _clean_documents(data["documents"])
        changed.append("documents")
    if changed:
        db.commit()
        db.refresh(item)
        hub.publish(EQUIPMENT)
    return item


@router.delete("/{equipment_id}")
def equipment_delete(
    equipment_id: int,
    db: Session = Depends(get_db),
    user: SessionUser = Depends(require_editor),
):
    item = get_or_404(db, Equipment, equipment_id, EQUIPMENT_NOT_FOUND)
    db.delete(item)
    db.commit()
    hub.publish(EQUIPMENT)
    return {"ok": True}
