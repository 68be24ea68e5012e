"""Pure helpers that turn equipment lines and links into display structures."""

from __future__ import annotations

from collections import OrderedDict
from typing import Any, Iterable, Sequence

SIDE_PROJECTOR = "projector"
SIDE_TURAR = "turar"


def _get(item: Any, name: str) -> Any:
    if isinstance(item, dict):
        return item.get(name)
    return getattr(item, name, None)


def unique_linked_rooms(
    connections: Sequence[Any], side: str, department: str, room: str
) -> "OrderedDict[str, Any]":
    """Collapse the links of one room to one entry per linked room name.

    ``side`` names the dataset ``department``/``room`` belong to. The result
    maps the room name on the other side to the link that represents it;
    when several links point at the same room the last one wins. The input
    is not modified.

    >>> links = [
    ...     {"turar_department": "A", "turar_room": "R1",
    ...      "projector_department": "P", "projector_room": "X", "id": 1},
    ...     {"turar_department": "A", "turar_room": "R1",
    ...      "projector_department": "P", "projector_room": "X", "id": 2},
    ... ]
    >>> unique_linked_rooms(links, "turar", "A", "R1")["X"]["id"]
    2
    """

    if side == SIDE_TURAR:
        own_dept, own_room, other_room = "turar_department", "turar_room", "projector_room"
    elif side == SIDE_PROJECTOR:
        own_dept, own_room, other_room = (
            "projector_department",
            "projector_room",
            "turar_room",
        )
    else:
        raise ValueError(f"unknown side: {side!r}")

    result: "OrderedDict[str, Any]" = OrderedDict()
    for conn in connections:
        if _get(conn, own_dept) != department or _get(conn, own_room) != room:
            continue
        # position stays where the name was first seen
        result[_get(conn, other_room)] = conn
    return result


def connections_index(connections: Iterable[Any]) -> dict[tuple[str, str], Any]:
    """Map ``(projector_department, projector_room)`` to its last link."""

    index: dict[tuple[str, str], Any] = {}
    for conn in connections:
        index[(_get(conn, "projector_department"), _get(conn, "projector_room"))] = conn
    return index


def turar_connections_index(connections: Iterable[Any]) -> dict[tuple[str, str], Any]:
    index: dict[tuple[str, str], Any] = {}
    for conn in connections:
        index[(_get(conn, "turar_department"), _get(conn, "turar_room"))] = conn
    return index


_ROOM_FIELDS = ("floor", "block", "room_code", "area")


def group_rooms(lines: Iterable[Any]) -> list[dict[str, Any]]:
    """Group equipment lines into rooms keyed by ``(department, room_name)``.

    Room-level fields come from the first line of the room; every line
    contributes its equipment entry.
    """

    rooms: "OrderedDict[tuple[str, str], dict[str, Any]]" = OrderedDict()
    for line in lines:
        row = line if isinstance(line, dict) else line.to_dict()
        key = (row.get("department"), row.get("room_name"))
        room = rooms.get(key)
        if room is None:
            room = {"department": key[0], "room_name": key[1], "equipment": []}
            for name in _ROOM_FIELDS:
                if name in row:
                    room[name] = row[name]
            rooms[key] = room
        if row.get("equipment_name") or row.get("equipment_code"):
            room["equipment"].append(
                {
                    "id": row.get("id"),
                    "code": row.get("equipment_code"),
                    "name": row.get("equipment_name"),
                    "quantity": row.get("equipment_quantity", row.get("quantity")),
                    "unit": row.get("equipment_unit"),
                    "notes": row.get("equipment_notes"),
                }
            )
    return list(rooms.values())
