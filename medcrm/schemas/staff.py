# medcrm/schemas/staff.py
from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from datetime import date, datetime
from decimal import Decimal


class DoctorCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=200)
    email: EmailStr
    password: str = Field(..., min_length=8)
    license_number: str = Field(..., min_length=1, max_length=50)
    specialty: str = Field(..., min_length=1, max_length=100)
    department_id: Optional[int] = None
    years_of_experience: Optional[int] = Field(0, ge=0)
    education: Optional[str] = None
    certifications: Optional[str] = None
    consultation_fee: Optional[Decimal] = Field(None, ge=0)


class DoctorUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=200)
    email: Optional[EmailStr] = None
    license_number: Optional[str] = Field(None, min_length=1, max_length=50)
    specialty: Optional[str] = Field(None, min_length=1, max_length=100)
    department_id: Optional[int] = None
    years_of_experience: Optional[int] = Field(None, ge=0)
    education: Optional[str] = None
    certifications: Optional[str] = None
    consultation_fee: Optional[Decimal] = Field(None, ge=0)


class DoctorResponse(BaseModel):
    id: int
    user_id: str
    license_number: str
    specialty: str
    department_id: Optional[int] = None
    years_of_experience: Optional[int] = 0
    education: Optional[str] = None
    certifications: Optional[str] = None
    consultation_fee: Optional[Decimal] = None
    rating: Optional[Decimal] = None
    total_patients: Optional[int] = 0
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class StaffCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=200)
    email: EmailStr
    password: str = Field(..., min_length=8)
    employee_id: str = Field(..., min_length=1, max_length=20)
    position: str = Field(..., min_length=1, max_length=100)
    hire_date: date
    department_id: Optional[int] = None
    salary: Optional[Decimal] = Field(None, ge=0)
    supervisor_id: Optional[str] = None


class StaffUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=200)
    email: Optional[EmailStr] = None
    employee_id: Optional[str] = Field(None, min_length=1, max_length=20)
    position: Optional[str] = Field(None, min_length=1, max_length=100)
    hire_date: Optional[date] = None
    department_id: Optional[int] = None
    salary: Optional[Decimal] = Field(None, ge=0)
    supervisor_id: Optional[str] = None


class StaffResponse(BaseModel):
    id: int
    user_id: str
    employee_id: str
    position: str
    hire_date: date
    department_id: Optional[int] = None
    salary: Optional[Decimal] = None
    supervisor_id: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class DepartmentCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    description: Optional[str] = None
    head_doctor_id: Optional[str] = None


class DepartmentUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    description: Optional[str] = None
    head_doctor_id: Optional[str] = None


class DepartmentResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    head_doctor_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
