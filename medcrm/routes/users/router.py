# medcrm/routes/users/router.py

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional

from medcrm.database import get_db
from medcrm.actions import user_actions
from medcrm.schemas.user import UserBan, UserCreate, UserUpdate
from medcrm.routes.utils.responses import action_response
from medcrm.utils.auth import get_session_user_id

router = APIRouter(prefix="/users", tags=["users"])


@router.post("", status_code=status.HTTP_201_CREATED)
def create_user(
    user: UserCreate,
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(user_actions.create_user(db, user_id, user), status.HTTP_201_CREATED)

@router.get("")
def get_users(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = Query(None),
    role: Optional[str] = Query(None),
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(user_actions.get_users(db, user_id, page=page, limit=limit, search=search, role=role))

@router.get("/{target_user_id}")
def get_user_details(
    target_user_id: str,
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(user_actions.get_user_details(db, user_id, target_user_id))

@router.put("/{target_user_id}")
def update_user(
    target_user_id: str,
    user: UserUpdate,
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(user_actions.update_user(db, user_id, target_user_id, user))

@router.post("/{target_user_id}/ban")
def toggle_user_ban(
    target_user_id: str,
    ban: UserBan,
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(user_actions.toggle_user_ban(db, user_id, target_user_id, ban.banned, ban.reason))

@router.delete("/{target_user_id}")
def delete_user(
    target_user_id: str,
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(user_actions.delete_user(db, user_id, target_user_id))
