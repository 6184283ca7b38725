# medcrm/routes/feedback/router.py

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional

from medcrm.database import get_db
from medcrm.actions import feedback_actions
from medcrm.schemas.communication import FeedbackAssign, FeedbackCreate, FeedbackUpdate
from medcrm.routes.utils.responses import action_response
from medcrm.utils.auth import get_session_user_id

router = APIRouter(prefix="/feedback", tags=["feedback"])


@router.post("", status_code=status.HTTP_201_CREATED)
def submit_feedback(
    feedback: FeedbackCreate,
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(feedback_actions.submit_feedback(db, user_id, feedback), status.HTTP_201_CREATED)

@router.get("")
def get_feedback(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status_filter: Optional[str] = Query(None, alias="status"),
    type: Optional[str] = Query(None),
    priority: Optional[str] = Query(None),
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(feedback_actions.get_feedback(
        db, user_id, page=page, limit=limit, status=status_filter, type=type, priority=priority,
    ))

@router.get("/statistics")
def get_feedback_statistics(
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(feedback_actions.get_feedback_statistics(db, user_id))

@router.get("/{feedback_id}")
def get_feedback_details(
    feedback_id: int,
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(feedback_actions.get_feedback_details(db, user_id, feedback_id))

@router.put("/{feedback_id}")
def update_feedback(
    feedback_id: int,
    feedback: FeedbackUpdate,
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(feedback_actions.update_feedback(db, user_id, feedback_id, feedback))

@router.post("/{feedback_id}/assign")
def assign_feedback(
    feedback_id: int,
    assignment: FeedbackAssign,
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(feedback_actions.assign_feedback(db, user_id, feedback_id, assignment.assigned_to))
