import pytest
from fastapi import HTTPException

import models
from routers.connection_schemas import ConnectionCreate, DepartmentLink, PendingCommit
from routers.connections import (
    connection_create,
    connection_delete,
    connections_commit,
    connections_unique,
    department_link,
)
from routers.rooms import projector_rooms, search, turar_line_update
from security import SessionUser
from utils.rooms import list_projector_departments

EDITOR = SessionUser(1, "editor", "staff")


def surgery_link():
    return ConnectionCreate(
        turar_department="Хирургическое отделение",
        turar_room="Опер. 1",
        projector_department="Хирургия",
        projector_room="Операционная 1",
    )


def test_create_endpoint_reports_created_flag(db_session, add_projector, add_turar):
    add_projector("Хирургия", "Операционная 1")
    add_turar("Хирургическое отделение", "Опер. 1")

    first = connection_create(surgery_link(), db=db_session, user=EDITOR)
    second = connection_create(surgery_link(), db=db_session, user=EDITOR)

    assert first["created"] is True
    assert second["created"] is False
    assert second["connection"].id == first["connection"].id


def test_room_listing_reads_connection_status(db_session, add_projector, add_turar):
    add_projector("Хирургия", "Операционная 1")
    add_projector("Хирургия", "Операционная 2")
    add_turar("Хирургическое отделение", "Опер. 1")
    created = connection_create(surgery_link(), db=db_session, user=EDITOR)

    rooms = {r["room_name"]: r for r in projector_rooms(department="Хирургия", db=db_session)}

    assert rooms["Операционная 1"]["is_connected"] is True
    assert rooms["Операционная 2"]["is_connected"] is False

    unique = connections_unique(
        side="projector", department="Хирургия", room="Операционная 1", db=db_session
    )
    assert [u["room"] for u in unique] == ["Опер. 1"]

    connection_delete(created["connection"].id, db=db_session, user=EDITOR)
    rooms = {r["room_name"]: r for r in projector_rooms(department="Хирургия", db=db_session)}
    assert rooms["Операционная 1"]["is_connected"] is False


def test_commit_endpoint_returns_report(db_session, add_projector, add_turar):
    add_projector("Хирургия", "Операционная 1")
    add_turar("Хирургическое отделение", "Опер. 1")
    broken = surgery_link().model_copy(update={"turar_room": "Опер. 9"})

    report = connections_commit(
        PendingCommit(items=[surgery_link(), broken]), db=db_session, user=EDITOR
    )

    assert len(report["created"]) == 1
    assert report["failed"][0]["index"] == 1
    assert report["partial"] is True


def test_department_link_tags_rooms(db_session, add_projector):
    add_projector("Хирургия", "Операционная 1")
    add_projector("Хирургия", "Операционная 2")

    result = department_link(
        DepartmentLink(projector_department="Хирургия", turar_department="Хирургическое отделение"),
        db=db_session,
        user=EDITOR,
    )

    assert result["updated"] == 2
    tags = {line.connected_turar_department for line in db_session.query(models.ProjectorFloor)}
    assert tags == {"Хирургическое отделение"}


def test_search_folds_cyrillic_case(db_session, add_projector, add_turar):
    add_projector("Хирургия", "Операционная 1")
    add_turar("Кардиология", "ОПЕРАЦИОННАЯ малая")

    result = search(q="операционная", db=db_session)

    assert [r["room_name"] for r in result["projector"]] == ["Операционная 1"]
    assert [r["room_name"] for r in result["turar"]] == ["ОПЕРАЦИОННАЯ малая"]


def test_turar_line_edit_validates_quantity(db_session, add_turar):
    line = add_turar("Кардиология", "Палата 1")

    with pytest.raises(HTTPException) as exc:
        turar_line_update(line.id, {"quantity": "много"}, db=db_session, user=EDITOR)
    assert exc.value.status_code == 400


def test_listed_department_returns_its_rooms(db_session, add_projector, add_turar):
    add_projector("Отделение  хирургии", "Операционная 1")
    add_turar("Хирургическое отделение", "Опер. 1")
    connection_create(
        ConnectionCreate(
            turar_department="Хирургическое отделение",
            turar_room="Опер. 1",
            projector_department="Отделение хирургии",
            projector_room="Операционная 1",
        ),
        db=db_session,
        user=EDITOR,
    )

    names = list_projector_departments(db_session)
    rooms = projector_rooms(department=names[0], db=db_session)

    assert names == ["Отделение хирургии"]
    assert [r["room_name"] for r in rooms] == ["Операционная 1"]
    assert rooms[0]["is_connected"] is True
