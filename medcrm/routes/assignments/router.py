# medcrm/routes/assignments/router.py

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional

from medcrm.database import get_db
from medcrm.actions import assignment_actions
from medcrm.schemas.patient import AssignmentCreate
from medcrm.routes.utils.responses import action_response
from medcrm.utils.auth import get_session_user_id

router = APIRouter(prefix="/assignments", tags=["assignments"])


@router.post("", status_code=status.HTTP_201_CREATED)
def assign_patient_to_doctor(
    assignment: AssignmentCreate,
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    result = assignment_actions.assign_patient_to_doctor(
        db, user_id, assignment.patient_id, assignment.doctor_id, assignment.notes,
    )
    return action_response(result, status.HTTP_201_CREATED)

@router.get("")
def get_all_patient_doctor_assignments(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(assignment_actions.get_all_patient_doctor_assignments(db, user_id, page=page, limit=limit))

@router.get("/doctors/{doctor_id}")
def get_doctor_assigned_patients(
    doctor_id: int,
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(assignment_actions.get_doctor_assigned_patients(db, user_id, doctor_id))

@router.get("/patients/{patient_id}")
def get_patient_assigned_doctors(
    patient_id: int,
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(assignment_actions.get_patient_assigned_doctors(db, user_id, patient_id))

@router.delete("/patients/{patient_id}/doctors/{doctor_id}")
def unassign_patient_from_doctor(
    patient_id: int,
    doctor_id: int,
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(assignment_actions.unassign_patient_from_doctor(db, user_id, patient_id, doctor_id))
