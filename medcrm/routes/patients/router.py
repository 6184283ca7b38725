# medcrm/routes/patients/router.py

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional

from medcrm.database import get_db
from medcrm.actions import patient_actions
from medcrm.schemas.patient import PatientCreate, PatientUpdate
from medcrm.routes.utils.responses import action_response
from medcrm.utils.auth import get_session_user_id

router = APIRouter(prefix="/patients", tags=["patients"])


@router.post("", status_code=status.HTTP_201_CREATED)
def create_patient(
    patient: PatientCreate,
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(patient_actions.create_patient(db, user_id, patient), status.HTTP_201_CREATED)

@router.get("")
def get_patients(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = Query(None),
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(patient_actions.get_patients(db, user_id, page=page, limit=limit, search=search))

@router.get("/{patient_id}")
def get_patient_details(
    patient_id: int,
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(patient_actions.get_patient_details(db, user_id, patient_id))

@router.put("/{patient_id}")
def update_patient(
    patient_id: int,
    patient: PatientUpdate,
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(patient_actions.update_patient(db, user_id, patient_id, patient))

@router.delete("/{patient_id}")
def delete_patient(
    patient_id: int,
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(patient_actions.delete_patient(db, user_id, patient_id))
