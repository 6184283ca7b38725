# medcrm/schemas/patient.py
from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from datetime import date, datetime

from medcrm.models.all_models import Gender


class PatientBase(BaseModel):
    date_of_birth: Optional[date] = None
    gender: Optional[Gender] = None
    phone: Optional[str] = Field(None, max_length=20)
    address: Optional[str] = None
    emergency_contact: Optional[str] = None
    emergency_phone: Optional[str] = Field(None, max_length=20)
    blood_type: Optional[str] = Field(None, max_length=10)
    allergies: Optional[str] = None
    medical_history: Optional[str] = None
    insurance_provider: Optional[str] = None
    insurance_number: Optional[str] = None


class PatientCreate(PatientBase):
    name: str = Field(..., min_length=2, max_length=200)
    email: EmailStr
    password: str = Field(..., min_length=8)


class PatientUpdate(PatientBase):
    name: Optional[str] = Field(None, min_length=2, max_length=200)
    email: Optional[EmailStr] = None


class PatientResponse(PatientBase):
    id: int
    user_id: str
    health_score: Optional[int] = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AssignmentCreate(BaseModel):
    patient_id: int
    doctor_id: int
    notes: Optional[str] = None


class AssignmentResponse(BaseModel):
    id: int
    patient_id: int
    doctor_id: int
    assigned_by: str
    assigned_at: Optional[datetime] = None
    notes: Optional[str] = None
    is_active: bool = True

    class Config:
        from_attributes = True
