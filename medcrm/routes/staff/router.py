# medcrm/routes/staff/router.py

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional

from medcrm.database import get_db
from medcrm.actions import staff_actions
from medcrm.schemas.staff import StaffCreate, StaffUpdate
from medcrm.routes.utils.responses import action_response
from medcrm.utils.auth import get_session_user_id

router = APIRouter(prefix="/staff", tags=["staff"])


@router.post("", status_code=status.HTTP_201_CREATED)
def create_staff(
    member: StaffCreate,
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(staff_actions.create_staff(db, user_id, member), status.HTTP_201_CREATED)

@router.get("")
def get_staff_members(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = Query(None),
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(staff_actions.get_staff_members(db, user_id, page=page, limit=limit, search=search))

@router.get("/{staff_id}")
def get_staff_details(
    staff_id: int,
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(staff_actions.get_staff_details(db, user_id, staff_id))

@router.put("/{staff_id}")
def update_staff(
    staff_id: int,
    member: StaffUpdate,
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(staff_actions.update_staff(db, user_id, staff_id, member))

@router.delete("/{staff_id}")
def delete_staff(
    staff_id: int,
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(staff_actions.delete_staff(db, user_id, staff_id))
