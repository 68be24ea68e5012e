from __future__ import annotations

import os
from datetime import datetime
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    create_engine,
    event,
    func,
)
from sqlalchemy.engine import URL, make_url
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    mapped_column,
    relationship,
    sessionmaker,
)
from sqlalchemy.pool import StaticPool

load_dotenv()


def _resolve_database_url() -> str:
    """Return the configured database URL, defaulting to a local SQLite file."""

    env_url = os.getenv("DATABASE_URL")
    if env_url:
        return env_url
    return "sqlite:///./data/medplan.db"


DATABASE_URL = _resolve_database_url()


def _is_sqlite_url(url: str | URL) -> bool:
    parsed = url if isinstance(url, URL) else make_url(url)
    return parsed.get_backend_name() == "sqlite"


def engine_kwargs_for_url(url: str | URL) -> dict[str, Any]:
    """Return keyword arguments for :func:`create_engine`.

    SQLite connections are shared between the request thread pool and
    background jobs, so the same-thread check is disabled. In-memory
    databases additionally need a :class:`StaticPool`, otherwise every
    connection would see its own empty database.
    """

    if not _is_sqlite_url(url):
        return {}
    kwargs: dict[str, Any] = {"connect_args": {"check_same_thread": False}}
    parsed = url if isinstance(url, URL) else make_url(url)
    if parsed.database in (None, "", ":memory:"):
        kwargs["poolclass"] = StaticPool
    return kwargs


database_url = make_url(DATABASE_URL)
if _is_sqlite_url(database_url):
    db_path = database_url.database
    if db_path and db_path != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

engine = create_engine(DATABASE_URL, **engine_kwargs_for_url(database_url))

if _is_sqlite_url(database_url):

    @event.listens_for(engine, "connect")
    def _enable_sqlite_foreign_keys(dbapi_connection, _record) -> None:
        # SQLite ignores ON DELETE clauses unless the pragma is set per connection
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


class Base(DeclarativeBase):
    pass


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        server_default=func.now(),
    )


# --- Users -------------------------------------------------------------------
USER_ROLES = ("admin", "staff", "user", "none")


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    username: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String(255))
    full_name: Mapped[str] = mapped_column(String(120), default="")
    email: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True)
    role: Mapped[str] = mapped_column(String(16), default="user")  # admin/staff/user/none
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @property
    def can_edit(self) -> bool:
        return self.role in ("admin", "staff")


class RoleChangeAudit(Base):
    __tablename__ = "role_change_audit"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    changed_by: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    target_user: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    old_role: Mapped[str | None] = mapped_column(String(16))
    new_role: Mapped[str | None] = mapped_column(String(16))
    changed_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


# --- Departments ---------------------------------------------------------------
class Department(TimestampMixin, Base):
    __tablename__ = "departments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(
        String(255), unique=True, nullable=False, index=True
    )


class DepartmentAlias(Base):
    """Explicit spelling variant of a department name."""

    __tablename__ = "department_aliases"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    alias: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    canonical: Mapped[str] = mapped_column(String(255), nullable=False, index=True)


class DepartmentMapping(TimestampMixin, Base):
    __tablename__ = "department_mappings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    turar_department: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    projector_department: Mapped[str] = mapped_column(
        String(255), nullable=False, index=True
    )
    turar_department_id: Mapped[int | None] = mapped_column(
        ForeignKey("departments.id", ondelete="SET NULL"), nullable=True
    )
    projector_department_id: Mapped[int | None] = mapped_column(
        ForeignKey("departments.id", ondelete="SET NULL"), nullable=True
    )

    mapped_projector_rooms: Mapped[list["MappedProjectorRoom"]] = relationship(
        "MappedProjectorRoom",
        back_populates="mapping",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    mapped_turar_rooms: Mapped[list["MappedTurarRoom"]] = relationship(
        "MappedTurarRoom",
        back_populates="mapping",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        UniqueConstraint(
            "turar_department", "projector_department", name="uq_department_mapping"
        ),
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "turar_department": self.turar_department,
            "projector_department": self.projector_department,
            "turar_department_id": self.turar_department_id,
            "projector_department_id": self.projector_department_id,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


# --- Source datasets ------------------------------------------------------------
class ProjectorFloor(TimestampMixin, Base):
    """One equipment line of a room in the architectural (projector) dataset."""

    __tablename__ = "projector_floors"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    floor: Mapped[float] = mapped_column(Float, nullable=False)
    block: Mapped[str] = mapped_column(String(100), nullable=False)
    department: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    room_code: Mapped[str] = mapped_column(String(100), nullable=False)
    room_name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    area: Mapped[float | None] = mapped_column(Float, nullable=True)
    equipment_code: Mapped[str | None] = mapped_column(String(100))
    equipment_name: Mapped[str | None] = mapped_column(String(255))
    equipment_unit: Mapped[str | None] = mapped_column(String(50))
    equipment_quantity: Mapped[str | None] = mapped_column(String(50))
    equipment_notes: Mapped[str | None] = mapped_column(Text)
    equipment_status: Mapped[str | None] = mapped_column(String(50))
    equipment_specification: Mapped[str | None] = mapped_column(Text)
    equipment_documents: Mapped[str | None] = mapped_column(Text)
    department_id: Mapped[int | None] = mapped_column(
        ForeignKey("departments.id", ondelete="SET NULL"), nullable=True
    )

    connected_turar_department: Mapped[str | None] = mapped_column(String(255))
    connected_turar_room: Mapped[str | None] = mapped_column(String(255))
    connected_turar_room_id: Mapped[int | None] = mapped_column(Integer)

    equipment: Mapped[list["Equipment"]] = relationship(
        "Equipment",
        back_populates="room",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "floor": self.floor,
            "block": self.block,
            "department": self.department,
            "room_code": self.room_code,
            "room_name": self.room_name,
            "area": self.area,
            "equipment_code": self.equipment_code,
            "equipment_name": self.equipment_name,
            "equipment_unit": self.equipment_unit,
            "equipment_quantity": self.equipment_quantity,
            "equipment_notes": self.equipment_notes,
            "equipment_status": self.equipment_status,
            "equipment_specification": self.equipment_specification,
            "equipment_documents": self.equipment_documents,
            "connected_turar_department": self.connected_turar_department,
            "connected_turar_room": self.connected_turar_room,
            "connected_turar_room_id": self.connected_turar_room_id,
        }


class TurarMedical(TimestampMixin, Base):
    """One equipment line of a room in the medical (Turar) dataset."""

    __tablename__ = "turar_medical"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    department: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    room_name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    equipment_code: Mapped[str] = mapped_column(String(100), nullable=False)
    equipment_name: Mapped[str] = mapped_column(String(255), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    department_id: Mapped[int | None] = mapped_column(
        ForeignKey("departments.id", ondelete="SET NULL"), nullable=True
    )

    connected_projector_department: Mapped[str | None] = mapped_column(String(255))
    connected_projector_room: Mapped[str | None] = mapped_column(String(255))
    connected_projector_room_id: Mapped[int | None] = mapped_column(Integer)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "department": self.department,
            "room_name": self.room_name,
            "equipment_code": self.equipment_code,
            "equipment_name": self.equipment_name,
            "quantity": self.quantity,
            "connected_projector_department": self.connected_projector_department,
            "connected_projector_room": self.connected_projector_room,
            "connected_projector_room_id": self.connected_projector_room_id,
        }


class RoomConnection(TimestampMixin, Base):
    __tablename__ = "room_connections"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    turar_department: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    turar_room: Mapped[str] = mapped_column(String(255), nullable=False)
    projector_department: Mapped[str] = mapped_column(
        String(255), nullable=False, index=True
    )
    projector_room: Mapped[str] = mapped_column(String(255), nullable=False)
    turar_department_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    turar_room_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    projector_department_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    projector_room_id: Mapped[int | None] = mapped_column(Integer, nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "turar_department",
            "turar_room",
            "projector_department",
            "projector_room",
            name="uq_room_connection",
        ),
    )

    @property
    def key(self) -> tuple[str, str, str, str]:
        return (
            self.turar_department,
            self.turar_room,
            self.projector_department,
            self.projector_room,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "turar_department": self.turar_department,
            "turar_room": self.turar_room,
            "projector_department": self.projector_department,
            "projector_room": self.projector_room,
            "turar_department_id": self.turar_department_id,
            "turar_room_id": self.turar_room_id,
            "projector_department_id": self.projector_department_id,
            "projector_room_id": self.projector_room_id,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


# --- Staging tables ----------------------------------------------------------------
class MappedProjectorRoom(TimestampMixin, Base):
    __tablename__ = "mapped_projector_rooms"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    department_mapping_id: Mapped[int] = mapped_column(
        ForeignKey("department_mappings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    original_record_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    floor_number: Mapped[float] = mapped_column(Float, nullable=False)
    block_name: Mapped[str] = mapped_column(String(100), nullable=False)
    department_name: Mapped[str] = mapped_column(String(255), nullable=False)
    room_code: Mapped[str] = mapped_column(String(100), nullable=False)
    room_name: Mapped[str] = mapped_column(String(255), nullable=False)
    room_area: Mapped[float | None] = mapped_column(Float)
    equipment_code: Mapped[str | None] = mapped_column(String(100))
    equipment_name: Mapped[str | None] = mapped_column(String(255))
    equipment_unit: Mapped[str | None] = mapped_column(String(50))
    equipment_quantity: Mapped[str | None] = mapped_column(String(50))
    equipment_notes: Mapped[str | None] = mapped_column(Text)
    is_linked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    linked_turar_room_id: Mapped[int | None] = mapped_column(Integer)

    mapping: Mapped["DepartmentMapping"] = relationship(
        "DepartmentMapping", back_populates="mapped_projector_rooms"
    )


class MappedTurarRoom(TimestampMixin, Base):
    __tablename__ = "mapped_turar_rooms"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    department_mapping_id: Mapped[int] = mapped_column(
        ForeignKey("department_mappings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    original_record_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    department_name: Mapped[str] = mapped_column(String(255), nullable=False)
    room_name: Mapped[str] = mapped_column(String(255), nullable=False)
    equipment_code: Mapped[str] = mapped_column(String(100), nullable=False)
    equipment_name: Mapped[str] = mapped_column(String(255), nullable=False)
    equipment_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_linked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    linked_projector_room_id: Mapped[int | None] = mapped_column(Integer)

    mapping: Mapped["DepartmentMapping"] = relationship(
        "DepartmentMapping", back_populates="mapped_turar_rooms"
    )


# --- Normalised equipment -------------------------------------------------------------
class Equipment(TimestampMixin, Base):
    __tablename__ = "equipment"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    room_id: Mapped[int] = mapped_column(
        ForeignKey("projector_floors.id", ondelete="CASCADE"), nullable=False, index=True
    )
    equipment_code: Mapped[str | None] = mapped_column(String(100), index=True)
    equipment_name: Mapped[str | None] = mapped_column(String(255))
    model_name: Mapped[str | None] = mapped_column(String(255))
    equipment_type: Mapped[str | None] = mapped_column(String(100))
    brand: Mapped[str | None] = mapped_column(String(150))
    country: Mapped[str | None] = mapped_column(String(100))
    specification: Mapped[str | None] = mapped_column(Text)
    documents: Mapped[list | None] = mapped_column(JSON, default=list)
    standard: Mapped[str | None] = mapped_column(String(255))
    quantity: Mapped[int | None] = mapped_column(Integer)
    price: Mapped[float | None] = mapped_column(Float)
    purchase_status: Mapped[str | None] = mapped_column(String(50))
    notes: Mapped[str | None] = mapped_column(Text)

    room: Mapped["ProjectorFloor"] = relationship(
        "ProjectorFloor", back_populates="equipment"
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "room_id": self.room_id,
            "equipment_code": self.equipment_code,
            "equipment_name": self.equipment_name,
            "model_name": self.model_name,
            "equipment_type": self.equipment_type,
            "brand": self.brand,
            "country": self.country,
            "specification": self.specification,
            "documents": list(self.documents or []),
            "standard": self.standard,
            "quantity": self.quantity,
            "price": self.price,
            "purchase_status": self.purchase_status,
            "notes": self.notes,
        }


def init_db() -> None:
    """Backwards compatible wrapper for :mod:`app.db.init`."""

    from app.db.init import init_db as _init_db

    _init_db()
