import pytest

from utils.grouping import group_rooms, unique_linked_rooms


def link(id, turar_room, projector_room, turar_department="Т", projector_department="П"):
    return {
        "id": id,
        "turar_department": turar_department,
        "turar_room": turar_room,
        "projector_department": projector_department,
        "projector_room": projector_room,
    }


def test_unique_linked_rooms_last_link_wins():
    links = [link(1, "R1", "X"), link(2, "R1", "Y"), link(3, "R1", "X")]

    result = unique_linked_rooms(links, "turar", "Т", "R1")

    assert list(result) == ["X", "Y"]
    assert result["X"]["id"] == 3
    assert [c["id"] for c in links] == [1, 2, 3]


def test_unique_linked_rooms_is_idempotent():
    links = [link(1, "R1", "X"), link(2, "R2", "X"), link(3, "R3", "X")]

    once = unique_linked_rooms(links, "projector", "П", "X")
    twice = unique_linked_rooms(list(once.values()), "projector", "П", "X")

    assert once == twice
    assert list(once) == ["R1", "R2", "R3"]


def test_unique_linked_rooms_filters_other_rooms():
    links = [link(1, "R1", "X"), link(2, "R1", "X", projector_department="Другое")]

    assert list(unique_linked_rooms(links, "projector", "П", "X")) == ["R1"]
    assert unique_linked_rooms(links, "turar", "Т", "R9") == {}


def test_unique_linked_rooms_rejects_unknown_side():
    with pytest.raises(ValueError):
        unique_linked_rooms([], "both", "Т", "R1")


def test_group_rooms_collects_equipment_per_room():
    lines = [
        {"id": 1, "department": "П", "room_name": "X", "floor": 2.0, "equipment_name": "Стол"},
        {"id": 2, "department": "П", "room_name": "Y", "floor": 2.0, "equipment_name": None},
        {"id": 3, "department": "П", "room_name": "X", "floor": 2.0, "equipment_name": "Стул"},
    ]

    rooms = group_rooms(lines)

    assert [r["room_name"] for r in rooms] == ["X", "Y"]
    assert [e["name"] for e in rooms[0]["equipment"]] == ["Стол", "Стул"]
    assert rooms[0]["floor"] == 2.0
    assert rooms[1]["equipment"] == []
