from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from database import get_db
from routers.mapping_schemas import (
    AliasIn,
    AliasOut,
    DepartmentIn,
    DepartmentOut,
    MappingIn,
    MappingOut,
)
from security import SessionUser, require_admin, require_editor
from utils import mappings
from utils.staging import mapped_rooms, populate_mapped_department

router = APIRouter(prefix="/api", tags=["Departments"])


# --- Departments ---------------------------------------------------------------
@router.get("/departments", response_model=List[DepartmentOut])
def departments_list(db: Session = Depends(get_db)):
    return mappings.list_departments(db)


@router.post("/departments", response_model=DepartmentOut)
def department_create(
    payload: DepartmentIn,
    db: Session = Depends(get_db),
    user: SessionUser = Depends(require_editor),
):
    return mappings.create_department(db, payload.name)


@router.put("/departments/{department_id}", response_model=DepartmentOut)
def department_rename(
    department_id: int,
    payload: DepartmentIn,
    db: Session = Depends(get_db),
    user: SessionUser = Depends(require_editor),
):
    return mappings.rename_department(db, department_id, payload.name)


@router.delete("/departments/{department_id}")
def department_delete(
    department_id: int,
    db: Session = Depends(get_db),
    user: SessionUser = Depends(require_admin),
):
    mappings.delete_department(db, department_id)
    return {"ok": True}


# --- Aliases -------------------------------------------------------------------
@router.get("/department-aliases", response_model=List[AliasOut])
def aliases_list(db: Session = Depends(get_db)):
    return mappings.list_aliases(db)


@router.post("/department-aliases", response_model=AliasOut)
def alias_create(
    payload: AliasIn,
    db: Session = Depends(get_db),
    user: SessionUser = Depends(require_editor),
):
    return mappings.add_alias(db, payload.alias, payload.canonical)


@router.delete("/department-aliases/{alias_id}")
def alias_delete(
    alias_id: int,
    db: Session = Depends(get_db),
    user: SessionUser = Depends(require_editor),
):
    mappings.delete_alias(db, alias_id)
    return {"ok": True}


# --- Mappings ------------------------------------------------------------------
@router.get("/department-mappings", response_model=List[MappingOut])
def mappings_list(db: Session = Depends(get_db)):
    return mappings.list_mappings(db)


@router.post("/department-mappings", response_model=MappingOut)
def mapping_create(
    payload: MappingIn,
    db: Session = Depends(get_db),
    user: SessionUser = Depends(require_editor),
):
    return mappings.create_mapping(db, payload.turar_department, payload.projector_department)


@router.delete("/department-mappings/{mapping_id}")
def mapping_delete(
    mapping_id: int,
    db: Session = Depends(get_db),
    user: SessionUser = Depends(require_admin),
):
    return mappings.delete_department_mapping(db, mapping_id)


@router.get("/department-mappings/{mapping_id}/rooms")
def mapping_rooms(mapping_id: int, db: Session = Depends(get_db)):
    return mapped_rooms(db, mapping_id)


@router.post("/department-mappings/{mapping_id}/populate")
def mapping_populate(
    mapping_id: int,
    db: Session = Depends(get_db),
    user: SessionUser = Depends(require_editor),
):
    return populate_mapped_department(db, mapping_id)
