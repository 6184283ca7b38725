# medcrm/routes/medical_records/router.py

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional

from medcrm.database import get_db
from medcrm.actions import medical_actions
from medcrm.schemas.clinical import MedicalRecordCreate, MedicalRecordUpdate
from medcrm.routes.utils.responses import action_response
from medcrm.utils.auth import get_session_user_id

router = APIRouter(prefix="/medical-records", tags=["medical records"])


@router.post("", status_code=status.HTTP_201_CREATED)
def create_medical_record(
    record: MedicalRecordCreate,
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(medical_actions.create_medical_record(db, user_id, record), status.HTTP_201_CREATED)

@router.get("")
def get_medical_records(
    patient_id: Optional[int] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    record_type: Optional[str] = Query(None),
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(medical_actions.get_medical_records(
        db, user_id, patient_id=patient_id, page=page, limit=limit, record_type=record_type,
    ))

@router.get("/summary/{patient_id}")
def get_patient_medical_summary(
    patient_id: int,
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(medical_actions.get_patient_medical_summary(db, user_id, patient_id))

@router.get("/{record_id}")
def get_medical_record_details(
    record_id: int,
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(medical_actions.get_medical_record_details(db, user_id, record_id))

@router.put("/{record_id}")
def update_medical_record(
    record_id: int,
    record: MedicalRecordUpdate,
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(medical_actions.update_medical_record(db, user_id, record_id, record))

@router.delete("/{record_id}")
def delete_medical_record(
    record_id: int,
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(medical_actions.delete_medical_record(db, user_id, record_id))
