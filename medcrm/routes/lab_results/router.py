# medcrm/routes/lab_results/router.py

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional

from medcrm.database import get_db
from medcrm.actions import lab_actions
from medcrm.schemas.clinical import LabResultCreate, LabResultUpdate
from medcrm.routes.utils.responses import action_response
from medcrm.utils.auth import get_session_user_id

router = APIRouter(prefix="/lab-results", tags=["lab results"])


@router.post("", status_code=status.HTTP_201_CREATED)
def order_lab_test(
    lab_test: LabResultCreate,
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(lab_actions.order_lab_test(db, user_id, lab_test), status.HTTP_201_CREATED)

@router.get("")
def get_lab_results(
    patient_id: Optional[int] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status_filter: Optional[str] = Query(None, alias="status"),
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(lab_actions.get_lab_results(
        db, user_id, patient_id=patient_id, page=page, limit=limit, status=status_filter,
    ))

@router.get("/pending-count")
def get_pending_lab_results_count(
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(lab_actions.get_pending_lab_results_count(db, user_id))

@router.get("/{result_id}")
def get_lab_result_details(
    result_id: int,
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(lab_actions.get_lab_result_details(db, user_id, result_id))

@router.put("/{result_id}")
def update_lab_result(
    result_id: int,
    lab_result: LabResultUpdate,
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(lab_actions.update_lab_result(db, user_id, result_id, lab_result))
