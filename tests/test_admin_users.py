import pytest
from fastapi import HTTPException

import models
from routes.admin import RoleChange, UserCreate, change_role, create_user, role_audit, user_delete
from security import SessionUser


def as_session(user):
    return SessionUser(user.id, user.username, user.role)


def test_user_deletion_permissions(db_session, make_user):
    db = db_session
    admin = make_user("admin", "admin")
    other_admin = make_user("mod", "admin")
    normal = make_user("alice")

    normal_id = normal.id
    other_admin_id = other_admin.id

    user_delete(normal_id, user=as_session(other_admin), db=db)
    assert db.get(models.User, normal_id) is None

    user_delete(other_admin_id, user=as_session(admin), db=db)
    assert db.get(models.User, other_admin_id) is None

    with pytest.raises(HTTPException) as exc:
        user_delete(admin.id, user=as_session(admin), db=db)
    assert exc.value.status_code == 403


def test_last_admin_cannot_be_deleted(db_session, make_user):
    db = db_session
    admin = make_user("admin", "admin")
    staff = make_user("staff", "staff")

    with pytest.raises(HTTPException) as exc:
        user_delete(admin.id, user=as_session(staff), db=db)
    assert exc.value.status_code == 403


def test_create_user_rejects_duplicate_username(db_session, make_user):
    make_user("alice")

    with pytest.raises(HTTPException) as exc:
        create_user(UserCreate(username=" ALICE ", password="secret1"), db=db_session)
    assert exc.value.status_code == 400


def test_create_user_rejects_unknown_role(db_session):
    with pytest.raises(HTTPException) as exc:
        create_user(UserCreate(username="bob", password="secret1", role="root"), db=db_session)
    assert exc.value.status_code == 400


def test_role_change_is_audited(db_session, make_user):
    db = db_session
    admin = make_user("admin", "admin")
    target = make_user("bob")

    result = change_role(target.id, RoleChange(role="staff"), user=as_session(admin), db=db)

    assert result["role"] == "staff"
    audit = db.query(models.RoleChangeAudit).one()
    assert (audit.changed_by, audit.target_user) == (admin.id, target.id)
    assert (audit.old_role, audit.new_role) == ("user", "staff")
    assert role_audit(db=db)[0]["target_user"] == "bob"


def test_admin_cannot_demote_self(db_session, make_user):
    db = db_session
    admin = make_user("admin", "admin")
    make_user("second", "admin")

    with pytest.raises(HTTPException) as exc:
        change_role(admin.id, RoleChange(role="user"), user=as_session(admin), db=db)
    assert exc.value.status_code == 400
    assert db.query(models.RoleChangeAudit).count() == 0


def test_last_admin_cannot_be_demoted(db_session, make_user):
    db = db_session
    admin = make_user("admin", "admin")
    # a stale session of a former admin
    caller = SessionUser(admin.id + 100, "ghost", "admin")

    with pytest.raises(HTTPException) as exc:
        change_role(admin.id, RoleChange(role="staff"), user=caller, db=db)
    assert exc.value.status_code == 400
    db.refresh(admin)
    assert admin.role == "admin"
