import models
from utils.csv_import import (
    import_records,
    parse_csv,
    parse_decimal,
    projector_key,
    validate_csv,
    validate_projector_rows,
    validate_turar_rows,
)
from utils.mappings import rename_department

PROJECTOR_HEADER = (
    "ЭТАЖ,БЛОК,ОТДЕЛЕНИЕ,КОД ПОМЕЩЕНИЯ,НАИМЕНОВАНИЕ ПОМЕЩЕНИЯ,Площадь (м2),"
    "Код оборудования,Наименование оборудования,Ед. изм.,Кол-во,Примечания"
)
TURAR_HEADER = "Отделение/Блок,Помещение/Кабинет,Код оборудования,Наименование,Кол-во"


def test_parse_csv_strips_quotes_and_skips_ragged_rows():
    rows = parse_csv('"a", b\n"1",2\n\n3\n4 , "5"\r\n')

    assert rows == [{"a": "1", "b": "2"}, {"a": "4", "b": "5"}]


def test_decimal_comma_and_point_give_the_same_key():
    assert parse_decimal("3,5") == parse_decimal("3.5") == 3.5
    assert parse_decimal(" ") is None
    assert projector_key(parse_decimal("3,5"), "А", "Д", "1", "К") == projector_key(
        3.5, "А", "Д", "1", "К"
    )
    assert projector_key(1.0, "А", "Д", "1", "К").startswith("1|")


def test_projector_example_scenario(db_session):
    db = db_session
    text = f"{PROJECTOR_HEADER}\n1,A,Хирургия,101,Операционная,25.5,,,,,\n"

    result = validate_csv(db, "projector", text)
    assert result.valid
    assert len(result.new_records) == 1
    assert result.duplicate_records == []
    assert import_records(db, result.new_records) == 1
    assert db.query(models.ProjectorFloor).one().area == 25.5

    again = validate_csv(db, "projector", text)
    assert len(again.new_records) == 0
    assert len(again.duplicate_records) == 1


def test_rows_are_split_into_disjoint_new_and_duplicate_sets():
    rows = parse_csv(
        f"{PROJECTOR_HEADER}\n"
        "1,A,Хирургия,101,Операционная,,,,,,\n"
        "1,A,Хирургия,101,Операционная,,,,,,\n"
        "2,B,Терапия,201,Палата,,,,,,\n"
        "3,C,Терапия,301,Холл,,,,,,\n"
    )
    existing = {projector_key(3, "C", "Терапия", "301", "Холл")}

    result = validate_projector_rows(rows, existing)

    new_keys = {r.key for r in result.new_records}
    dup_keys = {r.key for r in result.duplicate_records}
    assert len(result.new_records) + len(result.duplicate_records) == len(rows)
    assert len(new_keys) == len(result.new_records)
    assert new_keys == {
        projector_key(1, "A", "Хирургия", "101", "Операционная"),
        projector_key(2, "B", "Терапия", "201", "Палата"),
    }
    assert dup_keys <= new_keys | existing


def test_empty_file_is_an_error(db_session):
    result = validate_csv(db_session, "turar", TURAR_HEADER + "\n")

    assert not result.valid
    assert result.errors == ["CSV файл пуст"]


def test_missing_required_columns_are_reported():
    rows = parse_csv("ЭТАЖ,БЛОК\n1,A\n")

    result = validate_projector_rows(rows)

    assert not result.valid
    assert "ОТДЕЛЕНИЕ" in result.errors[0]
    assert result.new_records == []


def test_row_errors_name_the_line():
    rows = parse_csv(f"{PROJECTOR_HEADER}\nпервый,A,Д,1,К,,,,,,\n2,A,Д,1,К,много,,,,,\n")

    result = validate_projector_rows(rows)

    assert result.errors == [
        "Строка 2: ЭТАЖ должен быть числом",
        "Строка 3: Площадь должна быть числом",
    ]


def test_turar_quantity_must_be_an_integer():
    rows = parse_csv(f"{TURAR_HEADER}\nХирургия,Опер. 1,T-1,Лампа,2\nХирургия,Опер. 1,T-2,Стол,два\n")

    result = validate_turar_rows(rows)

    assert result.errors == ["Строка 3: Кол-во должно быть целым числом"]
    assert [r.quantity for r in result.new_records] == [2]


def test_turar_import_detects_existing_rows(db_session, add_turar):
    db = db_session
    add_turar("Хирургия", "Опер. 1", equipment_name="Лампа", equipment_code="T-1")
    text = f"{TURAR_HEADER}\nХирургия,Опер. 1,T-1,Лампа,5\nХирургия,Опер. 1,T-2,Стол,1\n"

    result = validate_csv(db, "turar", text)

    assert [r.equipment_code for r in result.new_records] == ["T-2"]
    assert [r.equipment_code for r in result.duplicate_records] == ["T-1"]
    assert result.to_dict()["valid"] is True


def test_minimal_projector_header_is_enough(db_session):
    text = "ЭТАЖ,БЛОК,ОТДЕЛЕНИЕ,КОД ПОМЕЩЕНИЯ,НАИМЕНОВАНИЕ ПОМЕЩЕНИЯ\n1,А,Хирургия,101,Операционная\n"

    result = validate_csv(db_session, "projector", text)
    assert (len(result.new_records), len(result.duplicate_records), result.errors) == (1, 0, [])
    import_records(db_session, result.new_records)

    again = validate_csv(db_session, "projector", text)
    assert (len(again.new_records), len(again.duplicate_records), again.errors) == (0, 1, [])


def test_import_attaches_lines_to_departments(db_session):
    db = db_session
    text = (
        f"{PROJECTOR_HEADER}\n"
        "1,A, Отделение  хирургии ,101,Операционная  1,,,,,,\n"
        "1,A,Отделение хирургии,102,Палата,,,,,,\n"
    )

    import_records(db, validate_csv(db, "projector", text).new_records)
    turar_text = f"{TURAR_HEADER}\nОтделение хирургии,Опер. 1,T-1,Лампа,1\n"
    import_records(db, validate_csv(db, "turar", turar_text).new_records)

    department = db.query(models.Department).one()
    assert department.name == "Отделение хирургии"
    lines = db.query(models.ProjectorFloor).order_by(models.ProjectorFloor.id).all()
    assert [line.room_name for line in lines] == ["Операционная 1", "Палата"]
    assert {line.department for line in lines} == {"Отделение хирургии"}
    assert {line.department_id for line in lines} == {department.id}
    assert db.query(models.TurarMedical).one().department_id == department.id

    rename_department(db, department.id, "Хирургия")
    assert db.get(models.ProjectorFloor, lines[0].id).department_id == department.id


def test_spacing_variants_are_duplicates(db_session, add_projector):
    add_projector("Отделение  хирургии", "Операционная 1", floor=1.0, block="A", room_code="101")
    text = f"{PROJECTOR_HEADER}\n1,A,Отделение хирургии,101,Операционная 1,,,,,,\n"

    result = validate_csv(db_session, "projector", text)

    assert (len(result.new_records), len(result.duplicate_records)) == (0, 1)
