# medcrm/schemas/clinical.py

from pydantic import BaseModel, Field
from typing import Optional
from datetime import date, datetime

from medcrm.models.all_models import LabResultStatus, MedicationStatus

# ================================
# MEDICAL RECORDS
# ================================

class MedicalRecordCreate(BaseModel):
    patient_id: int
    appointment_id: Optional[int] = None
    record_type: str = Field(..., min_length=1, max_length=50)
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    diagnosis: Optional[str] = None
    treatment: Optional[str] = None
    medications: Optional[str] = None
    lab_tests: Optional[str] = None
    vital_signs: Optional[str] = None
    is_confidential: Optional[bool] = False


class MedicalRecordUpdate(BaseModel):
    record_type: Optional[str] = Field(None, min_length=1, max_length=50)
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    diagnosis: Optional[str] = None
    treatment: Optional[str] = None
    medications: Optional[str] = None
    lab_tests: Optional[str] = None
    vital_signs: Optional[str] = None
    is_confidential: Optional[bool] = None


class MedicalRecordResponse(BaseModel):
    id: int
    patient_id: int
    doctor_id: Optional[int] = None
    appointment_id: Optional[int] = None
    record_type: str
    title: str
    description: Optional[str] = None
    diagnosis: Optional[str] = None
    treatment: Optional[str] = None
    medications: Optional[str] = None
    lab_tests: Optional[str] = None
    vital_signs: Optional[str] = None
    is_confidential: Optional[bool] = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

# ================================
# MEDICATIONS
# ================================

class MedicationCreate(BaseModel):
    patient_id: int
    appointment_id: Optional[int] = None
    name: str = Field(..., min_length=1, max_length=100)
    generic_name: Optional[str] = None
    dosage: str = Field(..., min_length=1, max_length=50)
    frequency: str = Field(..., min_length=1, max_length=50)
    duration: Optional[str] = None
    instructions: Optional[str] = None
    start_date: date
    end_date: Optional[date] = None
    refills: Optional[int] = Field(0, ge=0)
    side_effects: Optional[str] = None


class MedicationUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    generic_name: Optional[str] = None
    dosage: Optional[str] = Field(None, min_length=1, max_length=50)
    frequency: Optional[str] = Field(None, min_length=1, max_length=50)
    duration: Optional[str] = None
    instructions: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    refills: Optional[int] = Field(None, ge=0)
    side_effects: Optional[str] = None
    status: Optional[MedicationStatus] = None


class MedicationDiscontinue(BaseModel):
    reason: Optional[str] = None


class MedicationResponse(BaseModel):
    id: int
    patient_id: int
    prescribed_by: int
    appointment_id: Optional[int] = None
    name: str
    generic_name: Optional[str] = None
    dosage: str
    frequency: str
    duration: Optional[str] = None
    instructions: Optional[str] = None
    start_date: date
    end_date: Optional[date] = None
    refills: Optional[int] = 0
    side_effects: Optional[str] = None
    status: MedicationStatus
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

# ================================
# LAB RESULTS
# ================================

class LabResultCreate(BaseModel):
    patient_id: int
    appointment_id: Optional[int] = None
    test_name: str = Field(..., min_length=1, max_length=100)
    test_category: str = Field(..., min_length=1, max_length=50)
    test_date: date


class LabResultUpdate(BaseModel):
    test_name: Optional[str] = Field(None, min_length=1, max_length=100)
    test_category: Optional[str] = Field(None, min_length=1, max_length=50)
    test_date: Optional[date] = None
    result_date: Optional[date] = None
    results: Optional[str] = None
    normal_range: Optional[str] = None
    interpretation: Optional[str] = None
    notes: Optional[str] = None
    status: Optional[LabResultStatus] = None


class LabResultResponse(BaseModel):
    id: int
    patient_id: int
    doctor_id: Optional[int] = None
    appointment_id: Optional[int] = None
    test_name: str
    test_category: str
    test_date: date
    result_date: Optional[date] = None
    status: LabResultStatus
    results: Optional[str] = None
    normal_range: Optional[str] = None
    interpretation: Optional[str] = None
    notes: Optional[str] = None
    reviewed_by: Optional[int] = None
    reviewed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
