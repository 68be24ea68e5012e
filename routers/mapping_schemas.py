from typing import Optional
from datetime import datetime
from pydantic import BaseModel


class DepartmentIn(BaseModel):
    name: str


class DepartmentOut(BaseModel):
    id: int
    name: str

    class Config:
        from_attributes = True


class AliasIn(BaseModel):
    alias: str
    canonical: str


class AliasOut(BaseModel):
    id: int
    alias: str
    canonical: str

    class Config:
        from_attributes = True


class MappingIn(BaseModel):
    turar_department: str
    projector_department: str


class MappingOut(BaseModel):
    id: int
    turar_department: str
    projector_department: str
    turar_department_id: Optional[int] = None
    projector_department_id: Optional[int] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
