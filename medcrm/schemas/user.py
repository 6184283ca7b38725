# medcrm/schemas/user.py
from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from datetime import date, datetime
from decimal import Decimal

from medcrm.models.all_models import Gender, UserRole


class UserCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=200)
    email: EmailStr
    password: str = Field(..., min_length=8)
    role: UserRole

    # Patient-specific fields
    date_of_birth: Optional[date] = None
    gender: Optional[Gender] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    emergency_contact: Optional[str] = None
    emergency_phone: Optional[str] = None
    blood_type: Optional[str] = None
    allergies: Optional[str] = None
    medical_history: Optional[str] = None
    insurance_provider: Optional[str] = None
    insurance_number: Optional[str] = None

    # Doctor-specific fields
    license_number: Optional[str] = None
    specialty: Optional[str] = None
    department_id: Optional[int] = None
    years_of_experience: Optional[int] = Field(None, ge=0)
    education: Optional[str] = None
    certifications: Optional[str] = None
    consultation_fee: Optional[Decimal] = None

    # Staff-specific fields
    employee_id: Optional[str] = None
    position: Optional[str] = None
    hire_date: Optional[date] = None
    salary: Optional[Decimal] = None
    supervisor_id: Optional[str] = None


class UserUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=200)
    email: Optional[EmailStr] = None
    role: Optional[UserRole] = None


class UserBan(BaseModel):
    banned: bool
    reason: Optional[str] = None


class UserResponse(BaseModel):
    id: str
    name: str
    email: str
    role: Optional[UserRole] = None
    email_verified: bool = False
    image: Optional[str] = None
    banned: Optional[bool] = False
    ban_reason: Optional[str] = None
    last_login_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
