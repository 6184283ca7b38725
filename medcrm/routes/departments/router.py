# medcrm/routes/departments/router.py

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional

from medcrm.database import get_db
from medcrm.actions import department_actions
from medcrm.schemas.staff import DepartmentCreate, DepartmentUpdate
from medcrm.routes.utils.responses import action_response
from medcrm.utils.auth import get_session_user_id

router = APIRouter(prefix="/departments", tags=["departments"])


@router.post("", status_code=status.HTTP_201_CREATED)
def create_department(
    department: DepartmentCreate,
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(department_actions.create_department(db, user_id, department), status.HTTP_201_CREATED)

@router.get("")
def get_departments(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = Query(None),
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(department_actions.get_departments(db, user_id, page=page, limit=limit, search=search))

@router.get("/{department_id}")
def get_department_details(
    department_id: int,
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(department_actions.get_department_details(db, user_id, department_id))

@router.put("/{department_id}")
def update_department(
    department_id: int,
    department: DepartmentUpdate,
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(department_actions.update_department(db, user_id, department_id, department))

@router.delete("/{department_id}")
def delete_department(
    department_id: int,
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(department_actions.delete_department(db, user_id, department_id))
