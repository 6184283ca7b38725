# medcrm/routes/messages/router.py

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional

from medcrm.database import get_db
from medcrm.actions import message_actions
from medcrm.schemas.communication import MessageCreate
from medcrm.routes.utils.responses import action_response
from medcrm.utils.auth import get_session_user_id

router = APIRouter(prefix="/messages", tags=["messages"])


@router.post("", status_code=status.HTTP_201_CREATED)
def send_message(
    message: MessageCreate,
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(message_actions.send_message(db, user_id, message), status.HTTP_201_CREATED)

@router.get("")
def get_messages(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    folder: str = Query("all"),
    type: Optional[str] = Query(None),
    unread_only: bool = Query(False),
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(message_actions.get_messages(
        db, user_id, page=page, limit=limit, folder=folder, type=type, unread_only=unread_only,
    ))

@router.get("/unread-count")
def get_unread_messages_count(
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(message_actions.get_unread_messages_count(db, user_id))

@router.post("/read-all")
def mark_all_messages_as_read(
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(message_actions.mark_all_messages_as_read(db, user_id))

@router.post("/{message_id}/read")
def mark_message_as_read(
    message_id: int,
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(message_actions.mark_message_as_read(db, user_id, message_id))

@router.delete("/{message_id}")
def delete_message(
    message_id: int,
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(message_actions.delete_message(db, user_id, message_id))
