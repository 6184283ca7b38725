# medcrm/schemas/ward.py

import json

from pydantic import BaseModel, Field, field_validator
from typing import List, Optional
from datetime import date, datetime

from medcrm.models.all_models import BedStatus, BedType, OccupancyStatus, Priority

# ================================
# BED SPACES
# ================================

class BedSpaceCreate(BaseModel):
    room_number: str = Field(..., min_length=1, max_length=20)
    bed_number: str = Field(..., min_length=1, max_length=20)
    department_id: Optional[int] = None
    ward: Optional[str] = Field(None, max_length=100)
    floor: Optional[int] = None
    type: BedType = BedType.GENERAL
    description: Optional[str] = None
    equipment: Optional[List[str]] = None


class BedSpaceUpdate(BaseModel):
    room_number: Optional[str] = Field(None, min_length=1, max_length=20)
    bed_number: Optional[str] = Field(None, min_length=1, max_length=20)
    department_id: Optional[int] = None
    ward: Optional[str] = Field(None, max_length=100)
    floor: Optional[int] = None
    type: Optional[BedType] = None
    status: Optional[BedStatus] = None
    description: Optional[str] = None
    equipment: Optional[List[str]] = None
    is_active: Optional[bool] = None


class BedSpaceResponse(BaseModel):
    id: int
    room_number: str
    bed_number: str
    department_id: Optional[int] = None
    ward: Optional[str] = None
    floor: Optional[int] = None
    type: BedType
    status: BedStatus
    description: Optional[str] = None
    equipment: Optional[List[str]] = None
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("equipment", mode="before")
    @classmethod
    def parse_equipment(cls, v):
        # Stored as a JSON text column
        if isinstance(v, str):
            return json.loads(v)
        return v

    class Config:
        from_attributes = True

# ================================
# OCCUPANCY
# ================================

class BedAllocation(BaseModel):
    bed_id: int
    patient_id: int
    doctor_id: Optional[int] = None
    admission_reason: str = Field(..., min_length=1)
    diagnosis: Optional[str] = None
    expected_discharge_date: Optional[date] = None
    priority: Optional[Priority] = Priority.NORMAL
    notes: Optional[str] = None


class OccupancyUpdate(BaseModel):
    doctor_id: Optional[int] = None
    admission_reason: Optional[str] = Field(None, min_length=1)
    diagnosis: Optional[str] = None
    expected_discharge_date: Optional[date] = None
    priority: Optional[Priority] = None
    notes: Optional[str] = None


class BedTransfer(BaseModel):
    new_bed_id: int
    reason: Optional[str] = None


class BedDischarge(BaseModel):
    notes: Optional[str] = None


class OccupancyResponse(BaseModel):
    id: int
    bed_id: int
    patient_id: int
    doctor_id: Optional[int] = None
    admission_date: Optional[datetime] = None
    expected_discharge_date: Optional[date] = None
    actual_discharge_date: Optional[datetime] = None
    admission_reason: str
    diagnosis: Optional[str] = None
    notes: Optional[str] = None
    priority: Optional[Priority] = Priority.NORMAL
    status: OccupancyStatus
    transferred_from: Optional[int] = None
    transferred_to: Optional[int] = None

    class Config:
        from_attributes = True
