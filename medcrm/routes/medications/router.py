# medcrm/routes/medications/router.py

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional

from medcrm.database import get_db
from medcrm.actions import medication_actions
from medcrm.schemas.clinical import MedicationCreate, MedicationDiscontinue, MedicationUpdate
from medcrm.routes.utils.responses import action_response
from medcrm.utils.auth import get_session_user_id

router = APIRouter(prefix="/medications", tags=["medications"])


@router.post("", status_code=status.HTTP_201_CREATED)
def prescribe_medication(
    medication: MedicationCreate,
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(medication_actions.prescribe_medication(db, user_id, medication), status.HTTP_201_CREATED)

@router.get("")
def get_medications(
    patient_id: Optional[int] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status_filter: Optional[str] = Query(None, alias="status"),
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(medication_actions.get_medications(
        db, user_id, patient_id=patient_id, page=page, limit=limit, status=status_filter,
    ))

@router.get("/attention")
def get_medications_requiring_attention(
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(medication_actions.get_medications_requiring_attention(db, user_id))

@router.get("/{medication_id}")
def get_medication_details(
    medication_id: int,
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(medication_actions.get_medication_details(db, user_id, medication_id))

@router.put("/{medication_id}")
def update_medication(
    medication_id: int,
    medication: MedicationUpdate,
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(medication_actions.update_medication(db, user_id, medication_id, medication))

@router.post("/{medication_id}/refill")
def refill_medication(
    medication_id: int,
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(medication_actions.refill_medication(db, user_id, medication_id))

@router.post("/{medication_id}/discontinue")
def discontinue_medication(
    medication_id: int,
    discontinue: Optional[MedicationDiscontinue] = None,
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    reason = discontinue.reason if discontinue else None
    return action_response(medication_actions.discontinue_medication(db, user_id, medication_id, reason))
