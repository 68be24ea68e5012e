import pytest
from fastapi import HTTPException

import models
from routers.functions import ACTIONS, invoke_function, run_action
from security import SessionUser
from utils.linking import UNKNOWN_ROOM, create_connection

EDITOR = SessionUser(1, "editor", "staff")
ADMIN = SessionUser(2, "root", "admin")
VIEWER = SessionUser(3, "viewer", "user")


def test_unknown_action_is_400(db_session):
    with pytest.raises(HTTPException) as exc:
        run_action("drop-everything", {}, db_session, ADMIN)
    assert exc.value.status_code == 400


def test_actions_check_roles(db_session):
    with pytest.raises(HTTPException) as exc:
        run_action("cleanup-unknown-rooms", {}, db_session, VIEWER)
    assert exc.value.status_code == 403

    with pytest.raises(HTTPException) as exc:
        run_action("sync-all", {}, db_session, EDITOR)
    assert exc.value.status_code == 403


def test_cleanup_action_reports_counts(db_session, add_projector, add_turar):
    add_projector("Терапия", UNKNOWN_ROOM)
    add_turar("Терапевтическое", "Палата 1")
    create_connection(db_session, "Терапевтическое", "Палата 1", "Терапия", UNKNOWN_ROOM)

    result = run_action("cleanup-unknown-rooms", {}, db_session, EDITOR)

    assert result["success"] is True
    assert result["deleted_connections"] == 1
    assert db_session.query(models.RoomConnection).count() == 0


def test_mapping_actions_require_integer_id(db_session):
    with pytest.raises(HTTPException) as exc:
        run_action("delete-department-mapping", {"mappingId": "abc"}, db_session, ADMIN)
    assert exc.value.status_code == 400


def test_missing_dataset_file_becomes_400(db_session, tmp_path):
    with pytest.raises(HTTPException) as exc:
        invoke_function(
            "sync-projector-data",
            body={"source": str(tmp_path / "missing.json")},
            db=db_session,
            user=ADMIN,
        )
    assert exc.value.status_code == 400


def test_every_action_names_its_roles():
    for name, (handler, roles) in ACTIONS.items():
        assert callable(handler), name
        assert roles, name
