# medcrm/routes/notifications/router.py

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional

from medcrm.database import get_db
from medcrm.actions import notification_actions
from medcrm.schemas.communication import NotificationCreate
from medcrm.routes.utils.responses import action_response
from medcrm.utils.auth import get_session_user_id

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.post("", status_code=status.HTTP_201_CREATED)
def create_notification(
    notification: NotificationCreate,
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    result = notification_actions.create_notification(db, user_id, notification)
    return action_response(result, status.HTTP_201_CREATED)

@router.get("")
def get_notifications(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    unread_only: bool = Query(False),
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(notification_actions.get_notifications(
        db, user_id, page=page, limit=limit, unread_only=unread_only,
    ))

@router.get("/unread-count")
def get_unread_notifications_count(
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(notification_actions.get_unread_notifications_count(db, user_id))

@router.post("/{notification_id}/read")
def mark_notification_as_read(
    notification_id: int,
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(notification_actions.mark_notification_as_read(db, user_id, notification_id))
