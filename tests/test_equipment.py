import pytest
from fastapi import HTTPException

import models
from routers.equipment import equipment_create, equipment_delete, equipment_list, equipment_update
from routers.equipment_schemas import EquipmentCreate, EquipmentUpdate
from routers.rooms import projector_line_update
from security import SessionUser
from utils.rooms import update_projector_equipment

EDITOR = SessionUser(1, "editor", "staff")


def test_equipment_create_list_update_delete(db_session, add_projector):
    db = db_session
    room = add_projector("Хирургия", "Операционная 1")

    item = equipment_create(
        EquipmentCreate(
            room_id=room.id,
            equipment_code="L-1",
            equipment_name="Лампа",
            quantity=2,
            documents=[" паспорт.pdf ", "", "  "],
        ),
        db=db,
        user=EDITOR,
    )

    assert item.documents == ["паспорт.pdf"]
    assert [e.id for e in equipment_list(room_id=room.id, db=db)] == [item.id]

    updated = equipment_update(
        item.id,
        EquipmentUpdate(brand="Dräger", documents=["схема.pdf", "паспорт.pdf"]),
        db=db,
        user=EDITOR,
    )
    assert updated.brand == "Dräger"
    assert updated.quantity == 2
    assert updated.documents == ["схема.pdf", "паспорт.pdf"]

    assert equipment_delete(item.id, db=db, user=EDITOR) == {"ok": True}
    assert db.query(models.Equipment).count() == 0


def test_equipment_for_missing_room_is_404(db_session):
    with pytest.raises(HTTPException) as exc:
        equipment_create(
            EquipmentCreate(room_id=42, equipment_name="Лампа"), db=db_session, user=EDITOR
        )
    assert exc.value.status_code == 404

    with pytest.raises(HTTPException) as exc:
        equipment_list(room_id=42, db=db_session)
    assert exc.value.status_code == 404


def test_missing_equipment_is_404(db_session):
    for call in (
        lambda: equipment_update(7, EquipmentUpdate(brand="X"), db=db_session, user=EDITOR),
        lambda: equipment_delete(7, db=db_session, user=EDITOR),
    ):
        with pytest.raises(HTTPException) as exc:
            call()
        assert exc.value.status_code == 404


def test_equipment_goes_away_with_its_room(db_session, add_projector):
    db = db_session
    room = add_projector("Хирургия", "Операционная 1")
    equipment_create(EquipmentCreate(room_id=room.id, equipment_name="Лампа"), db=db, user=EDITOR)

    db.delete(db.get(models.ProjectorFloor, room.id))
    db.commit()

    assert db.query(models.Equipment).count() == 0


def test_projector_line_edit_only_touches_equipment_fields(db_session, add_projector):
    db = db_session
    line = add_projector("Хирургия", "Операционная 1")

    updated = update_projector_equipment(
        db, line.id, {"equipment_status": "Закуплено", "equipment_quantity": "3", "room_name": "X"}
    )

    assert updated.equipment_status == "Закуплено"
    assert updated.equipment_quantity == "3"
    assert updated.room_name == "Операционная 1"

    payload = projector_line_update(line.id, {"equipment_notes": "у окна"}, db=db, user=EDITOR)
    assert payload["equipment_notes"] == "у окна"


def test_projector_line_edit_missing_row_is_404(db_session):
    with pytest.raises(HTTPException) as exc:
        update_projector_equipment(db_session, 99, {"equipment_name": "Стол"})
    assert exc.value.status_code == 404
