# medcrm/routes/reports/router.py

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional

from medcrm.database import get_db
from medcrm.actions import report_actions
from medcrm.schemas.report import DateRange
from medcrm.routes.utils.responses import action_response
from medcrm.utils.auth import get_session_user_id

router = APIRouter(prefix="/reports", tags=["reports"])


@router.post("/appointments", status_code=status.HTTP_201_CREATED)
def generate_appointment_report(
    period: DateRange,
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    result = report_actions.generate_appointment_report(db, user_id, period.start, period.end)
    return action_response(result, status.HTTP_201_CREATED)

@router.post("/patients", status_code=status.HTTP_201_CREATED)
def generate_patient_report(
    period: DateRange,
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    result = report_actions.generate_patient_report(db, user_id, period.start, period.end)
    return action_response(result, status.HTTP_201_CREATED)

@router.post("/revenue", status_code=status.HTTP_201_CREATED)
def generate_revenue_report(
    period: DateRange,
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    result = report_actions.generate_revenue_report(db, user_id, period.start, period.end)
    return action_response(result, status.HTTP_201_CREATED)

@router.get("")
def get_reports(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    type: Optional[str] = Query(None),
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(report_actions.get_reports(db, user_id, page=page, limit=limit, type=type))

@router.get("/dashboard")
def get_dashboard_statistics(
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(report_actions.get_dashboard_statistics(db, user_id))

@router.get("/departments")
def get_department_stats(
    limit: int = Query(4, ge=1, le=50),
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(report_actions.get_department_stats(db, user_id, limit=limit))

@router.get("/activities")
def get_recent_activities(
    limit: int = Query(10, ge=1, le=50),
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(report_actions.get_recent_activities(db, user_id, limit=limit))

@router.delete("/{report_id}")
def delete_report(
    report_id: int,
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(report_actions.delete_report(db, user_id, report_id))
