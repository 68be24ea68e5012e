from typing import List, Optional
from datetime import datetime
from pydantic import BaseModel, Field


class ConnectionCreate(BaseModel):
    turar_department: str
    turar_room: str
    projector_department: str
    projector_room: str


class ConnectionCreateById(BaseModel):
    turar_room_id: int
    projector_room_id: int


class ConnectionUpdate(BaseModel):
    turar_department: Optional[str] = None
    turar_room: Optional[str] = None
    projector_department: Optional[str] = None
    projector_room: Optional[str] = None


class ConnectionOut(BaseModel):
    id: int
    turar_department: str
    turar_room: str
    projector_department: str
    projector_room: str
    turar_department_id: int | None
    turar_room_id: int | None
    projector_department_id: int | None
    projector_room_id: int | None
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class ConnectionResult(BaseModel):
    connection: ConnectionOut
    created: bool


class PendingCommit(BaseModel):
    items: List[ConnectionCreate] = Field(default_factory=list)


class FailedItem(BaseModel):
    index: int
    error: str


class CommitOut(BaseModel):
    created: List[int]
    skipped: List[int]
    failed: List[FailedItem]
    partial: bool


class DepartmentLink(BaseModel):
    projector_department: str
    turar_department: Optional[str] = None
    projector_room: Optional[str] = None
