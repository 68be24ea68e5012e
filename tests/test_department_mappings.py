import pytest
from fastapi import HTTPException

import models
from utils.departments import normalize_name, resolve_department, same_department
from utils.linking import create_connection, link_room_to_turar_department
from utils.mappings import add_alias, create_mapping, delete_department_mapping
from utils.staging import bulk_populate_mapped_departments, mapped_rooms, populate_mapped_department


def test_normalize_and_alias_resolution():
    assert normalize_name("  Отделение\n  хирургии ") == "Отделение хирургии"
    aliases = {"хирургия": "Хирургическое отделение"}
    assert resolve_department("ХИРУРГИЯ", aliases) == "Хирургическое отделение"
    assert same_department("Хирургия", "хирургическое  отделение", aliases)
    # no substring guessing
    assert not same_department("Хирургия", "Хирургия детская")


def test_duplicate_mapping_is_rejected(db_session):
    create_mapping(db_session, "Хирургическое отделение", "Хирургия")

    with pytest.raises(HTTPException) as exc:
        create_mapping(db_session, " Хирургическое  отделение", "Хирургия ")
    assert exc.value.status_code == 400


def test_staging_uses_exact_names_and_aliases(db_session, add_projector, add_turar):
    db = db_session
    add_projector("Хирургия", "Операционная 1")
    add_projector("Хирургия детская", "Операционная 2")
    add_projector("Хир.", "Предоперационная")
    add_turar("Хирургическое отделение", "Опер. 1")
    mapping = create_mapping(db, "Хирургическое отделение", "Хирургия")

    result = bulk_populate_mapped_departments(db)

    assert result["processed_mappings"] == 1
    assert result["total_projector_records"] == 1
    assert result["total_turar_records"] == 1

    add_alias(db, "Хир.", "Хирургия")
    populated = populate_mapped_department(db, mapping.id)
    assert populated["projector_records"] == 2

    rooms = mapped_rooms(db, mapping.id)
    assert [r["room_name"] for r in rooms["projector_rooms"]] == [
        "Операционная 1",
        "Предоперационная",
    ]


def test_staging_flags_follow_links(db_session, add_projector, add_turar):
    db = db_session
    add_projector("Хирургия", "Операционная 1")
    turar = add_turar("Хирургическое отделение", "Опер. 1")
    mapping = create_mapping(db, "Хирургическое отделение", "Хирургия")
    bulk_populate_mapped_departments(db)

    create_connection(db, "Хирургическое отделение", "Опер. 1", "Хирургия", "Операционная 1")

    staged = db.query(models.MappedProjectorRoom).one()
    assert staged.is_linked
    assert staged.linked_turar_room_id == turar.id
    rooms = mapped_rooms(db, mapping.id)
    assert rooms["turar_rooms"][0]["is_linked"] is True


def test_delete_mapping_removes_derived_data(db_session, add_projector, add_turar):
    db = db_session
    projector = add_projector("Хирургия", "Операционная 1")
    add_projector("Хирургия", "Операционная 2")
    turar = add_turar("Хирургическое отделение", "Опер. 1")
    add_projector("Терапия", "Палата 1")
    add_turar("Терапевтическое", "Палата 1")
    surgery = create_mapping(db, "Хирургическое отделение", "Хирургия")
    therapy = create_mapping(db, "Терапевтическое", "Терапия")
    bulk_populate_mapped_departments(db)
    create_connection(db, "Хирургическое отделение", "Опер. 1", "Хирургия", "Операционная 1")
    create_connection(db, "Терапевтическое", "Палата 1", "Терапия", "Палата 1")
    link_room_to_turar_department(db, "Хирургия", "Хирургическое отделение", "Операционная 2")

    result = delete_department_mapping(db, surgery.id)

    assert result["success"] is True
    assert result["deletedMappingId"] == surgery.id
    assert result["deleted_connections"] == 1
    assert db.get(models.DepartmentMapping, surgery.id) is None
    assert db.query(models.MappedProjectorRoom).filter_by(department_mapping_id=surgery.id).count() == 0
    assert db.query(models.MappedTurarRoom).filter_by(department_mapping_id=surgery.id).count() == 0
    for line in db.query(models.ProjectorFloor).filter_by(department="Хирургия"):
        assert line.connected_turar_department is None
        assert line.connected_turar_room is None
    assert db.get(models.TurarMedical, turar.id).connected_projector_room is None
    assert db.get(models.ProjectorFloor, projector.id).connected_turar_room_id is None

    # the other mapping is untouched
    assert db.get(models.DepartmentMapping, therapy.id) is not None
    assert db.query(models.RoomConnection).one().projector_department == "Терапия"
    assert db.query(models.MappedProjectorRoom).filter_by(department_mapping_id=therapy.id).count() == 1


def test_delete_missing_mapping_is_404(db_session):
    with pytest.raises(HTTPException) as exc:
        delete_department_mapping(db_session, 7)
    assert exc.value.status_code == 404


def test_delete_mapping_removes_links_under_an_alias(db_session, add_projector, add_turar):
    db = db_session
    projector = add_projector("Хир.", "Операционная 1")
    add_turar("Хирургическое отделение", "Опер. 1")
    add_alias(db, "Хир.", "Хирургия")
    mapping = create_mapping(db, "Хирургическое отделение", "Хирургия")
    assert populate_mapped_department(db, mapping.id)["projector_records"] == 1
    create_connection(db, "Хирургическое отделение", "Опер. 1", "Хир.", "Операционная 1")

    result = delete_department_mapping(db, mapping.id)

    assert result["deleted_connections"] == 1
    assert db.query(models.RoomConnection).count() == 0
    assert db.get(models.ProjectorFloor, projector.id).connected_turar_room is None


def test_delete_mapping_ignores_stored_spacing(db_session, add_projector, add_turar):
    db = db_session
    add_projector("Отделение  хирургии", "Операционная 1")
    turar = add_turar("Хирургическое  отделение ", "Опер. 1")
    mapping = create_mapping(db, "Хирургическое  отделение", "Отделение  хирургии")
    create_connection(
        db, "Хирургическое  отделение ", "Опер. 1", "Отделение  хирургии", "Операционная 1"
    )

    result = delete_department_mapping(db, mapping.id)

    assert result["deleted_connections"] == 1
    assert db.query(models.RoomConnection).count() == 0
    assert db.get(models.TurarMedical, turar.id).connected_projector_room is None


def test_delete_mapping_clears_tags_written_with_other_spacing(db_session, add_projector):
    db = db_session
    line = add_projector(
        "Хирургия", "Операционная 2", connected_turar_department="Хирургическое  отделение"
    )
    mapping = create_mapping(db, "Хирургическое отделение", "Хирургия")

    result = delete_department_mapping(db, mapping.id)

    assert result["cleared_department_tags"] == 1
    assert db.get(models.ProjectorFloor, line.id).connected_turar_department is None
