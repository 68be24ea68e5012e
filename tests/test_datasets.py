import json

import pytest
from fastapi import HTTPException

import models
from utils.datasets import fetch_dataset, load_batch, sync_dataset, to_records

PROJECTOR_ITEMS = [
    {
        "ЭТАЖ": 1,
        "БЛОК": "А",
        "ОТДЕЛЕНИЕ": "Хирургия",
        "КОД ПОМЕЩЕНИЯ": f"1.{n:03d}",
        "НАИМЕНОВАНИЕ ПОМЕЩЕНИЯ": f"Кабинет {n}",
        "Площадь (м2)": "12,5",
    }
    for n in range(5)
]


def test_fetch_dataset_reads_local_json(tmp_path):
    path = tmp_path / "floors.json"
    path.write_text(json.dumps(PROJECTOR_ITEMS, ensure_ascii=False), encoding="utf-8")

    assert fetch_dataset(str(path)) == PROJECTOR_ITEMS


def test_fetch_dataset_rejects_non_arrays(tmp_path):
    path = tmp_path / "bad.json"
    path.write_text('{"rows": []}', encoding="utf-8")

    with pytest.raises(ValueError):
        fetch_dataset(str(path))


def test_to_records_skips_unreadable_projector_items():
    items = PROJECTOR_ITEMS[:2] + [{"ЭТАЖ": "подвал", "ОТДЕЛЕНИЕ": "Х"}]

    records = to_records("projector", items)

    assert len(records) == 2
    assert records[0].area == 12.5


def test_to_records_turar_quantity_is_lenient():
    records = to_records(
        "turar",
        [
            {"Отделение/Блок": "Х", "Помещение/Кабинет": "1", "Код оборудования": "A",
             "Наименование": "Лампа", "Кол-во": "3"},
            {"Отделение/Блок": "Х", "Помещение/Кабинет": "1", "Код оборудования": "B",
             "Наименование": "Стол", "Кол-во": "нет"},
        ],
    )

    assert [r.quantity for r in records] == [3, 0]


def test_load_batch_pages_until_done(db_session, add_projector):
    db = db_session
    add_projector("Старое", "Кабинет")
    records = to_records("projector", PROJECTOR_ITEMS)

    first = load_batch(db, "projector", records, 0, batch_size=2)
    assert first["hasMore"] is True
    assert first["totalLoaded"] == 2
    assert first["totalAvailable"] == 5
    assert db.query(models.ProjectorFloor).count() == 2

    second = load_batch(db, "projector", records, 1, batch_size=2)
    third = load_batch(db, "projector", records, 2, batch_size=2)

    assert second["hasMore"] is True
    assert third["hasMore"] is False
    assert third["totalLoaded"] == 5
    assert db.query(models.ProjectorFloor).count() == 5


def test_load_batch_rejects_bad_input(db_session):
    with pytest.raises(HTTPException) as exc:
        load_batch(db_session, "floors", [], 0)
    assert exc.value.status_code == 400

    with pytest.raises(HTTPException):
        load_batch(db_session, "turar", [], -1)


def test_sync_dataset_replaces_rows(db_session, add_turar):
    db = db_session
    add_turar("Старое", "Кабинет")
    records = to_records(
        "turar",
        [{"Отделение/Блок": "Новое", "Помещение/Кабинет": "1", "Код оборудования": "A",
          "Наименование": "Лампа", "Кол-во": 1}],
    )

    assert sync_dataset(db, "turar", records) == 1
    assert [r.department for r in db.query(models.TurarMedical).all()] == ["Новое"]
