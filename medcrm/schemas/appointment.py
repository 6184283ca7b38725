# medcrm/schemas/appointment.py

from pydantic import BaseModel, Field, field_validator
from typing import Optional
from datetime import date, datetime

from medcrm.models.all_models import AppointmentStatus
from medcrm.scheduling import is_valid_time


def _check_time(value):
    if value is not None and not is_valid_time(value):
        raise ValueError("Time must be in HH:MM format")
    return value


class AppointmentBase(BaseModel):
    patient_id: int
    doctor_id: int
    appointment_date: date
    appointment_time: str
    duration: Optional[int] = Field(30, gt=0)
    type: str = Field(..., min_length=1, max_length=50)
    reason: Optional[str] = None
    symptoms: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("appointment_time")
    @classmethod
    def validate_time(cls, v):
        return _check_time(v)


class AppointmentCreate(AppointmentBase):
    pass


class AppointmentUpdate(BaseModel):
    doctor_id: Optional[int] = None
    appointment_date: Optional[date] = None
    appointment_time: Optional[str] = None
    duration: Optional[int] = Field(None, gt=0)
    type: Optional[str] = Field(None, min_length=1, max_length=50)
    status: Optional[AppointmentStatus] = None
    reason: Optional[str] = None
    symptoms: Optional[str] = None
    notes: Optional[str] = None
    diagnosis: Optional[str] = None
    prescription: Optional[str] = None
    follow_up_required: Optional[bool] = None
    follow_up_date: Optional[date] = None

    @field_validator("appointment_time")
    @classmethod
    def validate_time(cls, v):
        return _check_time(v)


class AppointmentCancel(BaseModel):
    reason: Optional[str] = None


class AppointmentResponse(BaseModel):
    id: int
    patient_id: int
    doctor_id: int
    appointment_date: date
    appointment_time: str
    duration: Optional[int] = 30
    type: str
    status: AppointmentStatus
    reason: Optional[str] = None
    symptoms: Optional[str] = None
    notes: Optional[str] = None
    diagnosis: Optional[str] = None
    prescription: Optional[str] = None
    follow_up_required: Optional[bool] = False
    follow_up_date: Optional[date] = None
    cancelled_by: Optional[str] = None
    cancel_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
