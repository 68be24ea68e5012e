from typing import List, Optional
from pydantic import BaseModel, Field


class EquipmentBase(BaseModel):
    equipment_code: Optional[str] = None
    equipment_name: Optional[str] = None
    model_name: Optional[str] = None
    equipment_type: Optional[str] = None
    brand: Optional[str] = None
    country: Optional[str] = None
    specification: Optional[str] = None
    documents: List[str] = Field(default_factory=list)
    standard: Optional[str] = None
    quantity: Optional[int] = Field(default=None, ge=0)
    price: Optional[float] = Field(default=None, ge=0)
    purchase_status: Optional[str] = None
    notes: Optional[str] = None


class EquipmentCreate(EquipmentBase):
    room_id: int


class EquipmentUpdate(BaseModel):
    equipment_code: Optional[str] = None
    equipment_name: Optional[str] = None
    model_name: Optional[str] = None
    equipment_type: Optional[str] = None
    brand: Optional[str] = None
    country: Optional[str] = None
    specification: Optional[str] = None
    documents: Optional[List[str]] = None
    standard: Optional[str] = None
    quantity: Optional[int] = Field(default=None, ge=0)
    price: Optional[float] = Field(default=None, ge=0)
    purchase_status: Optional[str] = None
    notes: Optional[str] = None


class EquipmentOut(EquipmentBase):
    id: int
    room_id: int

    class Config:
        from_attributes = True
