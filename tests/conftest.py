import os
import sys
from pathlib import Path
from types import SimpleNamespace

BASE_DIR = Path(__file__).resolve().parents[1]
if str(BASE_DIR) not in sys.path:
    sys.path.insert(0, str(BASE_DIR))

os.environ["DATABASE_URL"] = "sqlite:///:memory:"

import pytest

import models


class DummyRequest:
    def __init__(self) -> None:
        state = SimpleNamespace(session_https_only=False)
        self.app = SimpleNamespace(state=state)
        self.session: dict[str, object] = {}
        self.cookies: dict[str, str] = {}
        self.headers: dict[str, str] = {}


@pytest.fixture()
def db_session():
    models.Base.metadata.create_all(models.engine)
    db = models.SessionLocal()
    try:
        yield db
    finally:
        db.close()
        models.Base.metadata.drop_all(models.engine)


@pytest.fixture()
def dummy_request() -> DummyRequest:
    return DummyRequest()


@pytest.fixture()
def add_projector(db_session):
    """Insert one projector equipment line."""

    def _add(department, room_name, equipment_name="Стол", **extra):
        values = {
            "floor": 1.0,
            "block": "А",
            "room_code": "01.001",
            "equipment_code": "EQ-1",
            "equipment_quantity": "1",
        }
        values.update(extra)
        line = models.ProjectorFloor(
            department=department,
            room_name=room_name,
            equipment_name=equipment_name,
            **values,
        )
        db_session.add(line)
        db_session.commit()
        db_session.refresh(line)
        return line

    return _add


@pytest.fixture()
def add_turar(db_session):
    """Insert one Turar equipment line."""

    def _add(department, room_name, equipment_name="Кушетка", **extra):
        values = {"equipment_code": "T-1", "quantity": 1}
        values.update(extra)
        line = models.TurarMedical(
            department=department,
            room_name=room_name,
            equipment_name=equipment_name,
            **values,
        )
        db_session.add(line)
        db_session.commit()
        db_session.refresh(line)
        return line

    return _add


@pytest.fixture()
def make_user(db_session):
    def _make(username, role="user", password_hash="x", **extra):
        user = models.User(
            username=username, password_hash=password_hash, role=role, **extra
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make
