# medcrm/routes/appointments/router.py

from fastapi import APIRouter, Body, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Any, Dict, Optional
from datetime import date

from medcrm.database import get_db
from medcrm.actions import appointment_actions
from medcrm.schemas.appointment import AppointmentCancel, AppointmentCreate
from medcrm.routes.utils.responses import action_response
from medcrm.utils.auth import get_session_user_id

router = APIRouter(prefix="/appointments", tags=["appointments"])

# ================================
# BOOKING
# ================================

@router.post("", status_code=status.HTTP_201_CREATED)
def create_appointment(
    appointment: AppointmentCreate,
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    result = appointment_actions.create_appointment(db, user_id, appointment)
    return action_response(result, status.HTTP_201_CREATED)

@router.get("/slots")
def get_available_slots(
    doctor_id: int = Query(..., ge=1),
    day: date = Query(..., alias="date"),
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(appointment_actions.get_available_slots(db, user_id, doctor_id, day))

# ================================
# QUERIES
# ================================

@router.get("")
def get_appointments(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status_filter: Optional[str] = Query(None, alias="status"),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(appointment_actions.get_appointments(
        db, user_id, page=page, limit=limit, status=status_filter,
        start_date=start_date, end_date=end_date,
    ))

@router.get("/{appointment_id}")
def get_appointment_details(
    appointment_id: int,
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(appointment_actions.get_appointment_details(db, user_id, appointment_id))

# ================================
# CHANGES
# ================================

@router.put("/{appointment_id}")
def update_appointment(
    appointment_id: int,
    # Raw body: patients are refused when they send any field beyond reason and symptoms
    data: Dict[str, Any] = Body(...),
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(appointment_actions.update_appointment(db, user_id, appointment_id, data))

@router.post("/{appointment_id}/cancel")
def cancel_appointment(
    appointment_id: int,
    cancel: Optional[AppointmentCancel] = None,
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    reason = cancel.reason if cancel else None
    return action_response(appointment_actions.cancel_appointment(db, user_id, appointment_id, reason))
