"""Database bootstrap and lightweight migration utilities."""

from __future__ import annotations

import logging

from sqlalchemy import inspect, text

logger = logging.getLogger(__name__)

# Columns added after the first deployments: table -> {column: DDL type}
_LATE_COLUMNS: dict[str, dict[str, str]] = {
    "projector_floors": {
        "equipment_status": "VARCHAR(50)",
        "equipment_specification": "TEXT",
        "equipment_documents": "TEXT",
        "department_id": "INTEGER",
        "connected_turar_department": "VARCHAR(255)",
        "connected_turar_room": "VARCHAR(255)",
        "connected_turar_room_id": "INTEGER",
    },
    "turar_medical": {
        "department_id": "INTEGER",
        "connected_projector_department": "VARCHAR(255)",
        "connected_projector_room": "VARCHAR(255)",
        "connected_projector_room_id": "INTEGER",
    },
    "room_connections": {
        "turar_department_id": "INTEGER",
        "turar_room_id": "INTEGER",
        "projector_department_id": "INTEGER",
        "projector_room_id": "INTEGER",
    },
    "mapped_projector_rooms": {
        "is_linked": "BOOLEAN NOT NULL DEFAULT 0",
        "linked_turar_room_id": "INTEGER",
    },
    "mapped_turar_rooms": {
        "is_linked": "BOOLEAN NOT NULL DEFAULT 0",
        "linked_projector_room_id": "INTEGER",
    },
    "users": {
        "full_name": "VARCHAR(120) DEFAULT ''",
        "email": "VARCHAR(255)",
        "role": "VARCHAR(16) DEFAULT 'user'",
        "created_at": "DATETIME DEFAULT CURRENT_TIMESTAMP",
    },
}


def add_missing_columns(engine) -> list[str]:
    """Add columns that older database files lack; returns ``table.column`` names."""

    insp = inspect(engine)
    tables = set(insp.get_table_names())
    added: list[str] = []
    with engine.begin() as conn:
        for table, columns in _LATE_COLUMNS.items():
            if table not in tables:
                continue
            existing = {col["name"] for col in insp.get_columns(table)}
            for name, ddl in columns.items():
                if name not in existing:
                    conn.execute(text(f"ALTER TABLE {table} ADD COLUMN {name} {ddl}"))
                    added.append(f"{table}.{name}")
    if added:
        logger.info("Added columns: %s", ", ".join(added))
    return added


def deduplicate_room_connections(conn) -> int:
    """Delete repeated link rows, keeping the oldest of each group."""

    result = conn.execute(
        text(
            """
            DELETE FROM room_connections
            WHERE id NOT IN (
                SELECT MIN(id) FROM room_connections
                GROUP BY turar_department, turar_room, projector_department, projector_room
            )
            """
        )
    )
    return result.rowcount or 0


def ensure_connection_unique_index(engine) -> int:
    """Create the link uniqueness index on databases created without it."""

    insp = inspect(engine)
    if "room_connections" not in insp.get_table_names():
        return 0
    names = {uc["name"] for uc in insp.get_unique_constraints("room_connections")}
    names |= {ix["name"] for ix in insp.get_indexes("room_connections") if ix.get("unique")}
    if "uq_room_connection" in names:
        return 0
    with engine.begin() as conn:
        removed = deduplicate_room_connections(conn)
        conn.execute(
            text(
                "CREATE UNIQUE INDEX IF NOT EXISTS uq_room_connection ON room_connections "
                "(turar_department, turar_room, projector_department, projector_room)"
            )
        )
    if removed:
        logger.warning("Removed %d duplicate room connections", removed)
    return removed


def init_db() -> None:
    """Create tables and perform lightweight migrations for SQLite."""

    from models import Base, engine

    Base.metadata.create_all(bind=engine)
    add_missing_columns(engine)
    ensure_connection_unique_index(engine)
