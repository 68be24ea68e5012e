"""Named batch actions, invoked as ``POST /api/functions/{name}`` with a JSON body."""

import logging
from typing import Any, Callable, Dict, Optional

import httpx
from fastapi import APIRouter, Body, Depends, HTTPException
from sqlalchemy.orm import Session

from database import get_db
from security import EDITOR_ROLES, SessionUser, current_user
from utils.csv_import import KIND_PROJECTOR, KIND_TURAR
from utils.datasets import load_batch_from_source, sync_from_source
from utils.linking import (
    bulk_create_connections,
    cleanup_unknown_rooms,
    sync_room_connection_mirrors,
)
from utils.mappings import delete_department_mapping
from utils.staging import bulk_populate_mapped_departments, populate_mapped_department

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/functions", tags=["Functions"])

Action = Callable[[Session, Dict[str, Any]], Dict[str, Any]]


def _int_param(body: Dict[str, Any], *names: str) -> int:
    for name in names:
        value = body.get(name)
        if value is None:
            continue
        try:
            return int(value)
        except (TypeError, ValueError):
            break
    raise HTTPException(status_code=400, detail=f"Параметр {names[0]} обязателен")


def _sync_all(db: Session, body: Dict[str, Any]) -> Dict[str, Any]:
    projector = sync_from_source(db, KIND_PROJECTOR, body.get("projectorSource"))
    turar = sync_from_source(db, KIND_TURAR, body.get("turarSource"))
    return {
        "success": True,
        "projector": projector["inserted"],
        "turar": turar["inserted"],
        "message": "Все данные синхронизированы",
    }


def _populate_mapped(db: Session, body: Dict[str, Any]) -> Dict[str, Any]:
    if body.get("mappingId") is None:
        return bulk_populate_mapped_departments(db)
    return populate_mapped_department(db, _int_param(body, "mappingId"))


def _with_success(result: Dict[str, Any]) -> Dict[str, Any]:
    return {"success": True, **result}


ADMIN = ("admin",)

# name -> (handler, roles allowed to run it)
ACTIONS: Dict[str, tuple[Action, tuple[str, ...]]] = {
    "sync-projector-data": (
        lambda db, body: sync_from_source(db, KIND_PROJECTOR, body.get("source")),
        ADMIN,
    ),
    "sync-turar-data": (
        lambda db, body: sync_from_source(db, KIND_TURAR, body.get("source")),
        ADMIN,
    ),
    "sync-all": (_sync_all, ADMIN),
    "load-projector-batch": (
        lambda db, body: load_batch_from_source(
            db, KIND_PROJECTOR, _int_param(body, "batch"), body.get("source")
        ),
        ADMIN,
    ),
    "load-turar-batch": (
        lambda db, body: load_batch_from_source(
            db, KIND_TURAR, _int_param(body, "batch"), body.get("source")
        ),
        ADMIN,
    ),
    "bulk-create-room-connections": (
        lambda db, body: _with_success(bulk_create_connections(db)),
        EDITOR_ROLES,
    ),
    "bulk-populate-mapped-departments": (
        lambda db, body: bulk_populate_mapped_departments(db),
        EDITOR_ROLES,
    ),
    "populate-mapped-departments": (_populate_mapped, EDITOR_ROLES),
    "delete-department-mapping": (
        lambda db, body: delete_department_mapping(db, _int_param(body, "mappingId")),
        ADMIN,
    ),
    "sync-room-connections": (
        lambda db, body: _with_success(sync_room_connection_mirrors(db)),
        EDITOR_ROLES,
    ),
    "cleanup-unknown-rooms": (
        lambda db, body: _with_success(cleanup_unknown_rooms(db)),
        EDITOR_ROLES,
    ),
}


def run_action(name: str, body: Dict[str, Any], db: Session, user: SessionUser) -> Dict[str, Any]:
    entry = ACTIONS.get(name)
    if entry is None:
        raise HTTPException(status_code=400, detail=f"Неизвестное действие: {name}")
    handler, roles = entry
    if user.role not in roles:
        raise HTTPException(status_code=403, detail="Недостаточно прав")
    logger.info("Action %s started by %s", name, user.username)
    result = handler(db, body or {})
    logger.info("Action %s finished", name)
    return result


@router.post("/{name}")
def invoke_function(
    name: str,
    body: Optional[Dict[str, Any]] = Body(None),
    db: Session = Depends(get_db),
    user: SessionUser = Depends(current_user),
):
    try:
        return run_action(name, body or {}, db, user)
    except (httpx.HTTPError, OSError, ValueError) as exc:
        # unreachable source or malformed dataset file
        logger.error("Action %s failed: %s", name, exc)
        raise HTTPException(status_code=400, detail=str(exc))
