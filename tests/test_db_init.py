from sqlalchemy import create_engine, inspect, text

from app.db.init import add_missing_columns, ensure_connection_unique_index


def test_add_missing_columns_upgrades_old_tables(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'old.db'}")
    with engine.begin() as conn:
        conn.exec_driver_sql(
            """
            CREATE TABLE turar_medical (
                id INTEGER PRIMARY KEY,
                department VARCHAR(255),
                room_name VARCHAR(255)
            )
            """
        )

    added = add_missing_columns(engine)

    cols = {c["name"] for c in inspect(engine).get_columns("turar_medical")}
    assert "connected_projector_room" in cols
    assert "turar_medical.department_id" in added
    assert add_missing_columns(engine) == []
    engine.dispose()


def test_unique_index_removes_duplicate_links(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'links.db'}")
    with engine.begin() as conn:
        conn.exec_driver_sql(
            """
            CREATE TABLE room_connections (
                id INTEGER PRIMARY KEY,
                turar_department VARCHAR(255),
                turar_room VARCHAR(255),
                projector_department VARCHAR(255),
                projector_room VARCHAR(255)
            )
            """
        )
        for _ in range(3):
            conn.exec_driver_sql(
                "INSERT INTO room_connections "
                "(turar_department, turar_room, projector_department, projector_room) "
                "VALUES ('Т', '1', 'П', '1')"
            )

    assert ensure_connection_unique_index(engine) == 2
    assert ensure_connection_unique_index(engine) == 0
    with engine.connect() as conn:
        ids = conn.execute(text("SELECT id FROM room_connections")).scalars().all()
    assert ids == [1]
    engine.dispose()
