# medcrm/routes/doctors/router.py

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional

from medcrm.database import get_db
from medcrm.actions import doctor_actions
from medcrm.schemas.staff import DoctorCreate, DoctorUpdate
from medcrm.routes.utils.responses import action_response
from medcrm.utils.auth import get_session_user_id

router = APIRouter(prefix="/doctors", tags=["doctors"])


@router.post("", status_code=status.HTTP_201_CREATED)
def create_doctor(
    doctor: DoctorCreate,
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(doctor_actions.create_doctor(db, user_id, doctor), status.HTTP_201_CREATED)

@router.get("")
def get_doctors(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = Query(None),
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(doctor_actions.get_doctors(db, user_id, page=page, limit=limit, search=search))

@router.get("/available")
def get_available_doctors_for_booking(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    search: Optional[str] = Query(None),
    department_id: Optional[int] = Query(None),
    specialty: Optional[str] = Query(None),
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(doctor_actions.get_available_doctors_for_booking(
        db, user_id, page=page, limit=limit, search=search,
        department_id=department_id, specialty=specialty,
    ))

@router.get("/{doctor_id}")
def get_doctor_details(
    doctor_id: int,
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(doctor_actions.get_doctor_details(db, user_id, doctor_id))

@router.put("/{doctor_id}")
def update_doctor(
    doctor_id: int,
    doctor: DoctorUpdate,
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(doctor_actions.update_doctor(db, user_id, doctor_id, doctor))

@router.delete("/{doctor_id}")
def delete_doctor(
    doctor_id: int,
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(doctor_actions.delete_doctor(db, user_id, doctor_id))
