# medcrm/routes/profile/router.py

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import Optional

from medcrm.database import get_db
from medcrm.actions import patient_actions
from medcrm.schemas.patient import PatientUpdate
from medcrm.routes.utils.responses import action_response
from medcrm.utils.auth import get_session_user_id

router = APIRouter(prefix="/profile", tags=["profile"])


@router.get("")
def get_patient_profile(
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(patient_actions.get_patient_profile(db, user_id))

@router.put("")
def update_patient_profile(
    profile: PatientUpdate,
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(patient_actions.update_patient_profile(db, user_id, profile))

@router.get("/health-summary")
def get_patient_health_summary(
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(patient_actions.get_patient_health_summary(db, user_id))

@router.get("/dashboard")
def get_patient_dashboard(
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(patient_actions.get_patient_dashboard(db, user_id))
