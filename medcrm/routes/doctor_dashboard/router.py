# medcrm/routes/doctor_dashboard/router.py

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional

from medcrm.database import get_db
from medcrm.actions import doctor_dashboard_actions
from medcrm.routes.utils.responses import action_response
from medcrm.utils.auth import get_session_user_id

router = APIRouter(prefix="/doctor-dashboard", tags=["doctor-dashboard"])


@router.get("/profile")
def get_current_doctor_profile(
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(doctor_dashboard_actions.get_current_doctor_profile(db, user_id))

@router.get("/stats")
def get_doctor_dashboard_stats(
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(doctor_dashboard_actions.get_doctor_dashboard_stats(db, user_id))

@router.get("/schedule")
def get_doctor_today_schedule(
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(doctor_dashboard_actions.get_doctor_today_schedule(db, user_id))

@router.get("/activities")
def get_doctor_recent_activities(
    limit: int = Query(10, ge=1, le=50),
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(doctor_dashboard_actions.get_doctor_recent_activities(db, user_id, limit=limit))

@router.get("/patients")
def get_doctor_patients(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = Query(None),
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(doctor_dashboard_actions.get_doctor_patients(
        db, user_id, page=page, limit=limit, search=search,
    ))

@router.get("/patients/{patient_id}")
def get_doctor_patient_details(
    patient_id: int,
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(doctor_dashboard_actions.get_doctor_patient_details(db, user_id, patient_id))

@router.get("/colleagues")
def get_doctor_colleagues(
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(doctor_dashboard_actions.get_doctor_colleagues(db, user_id))
