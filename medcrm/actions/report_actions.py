# medcrm/actions/report_actions.py
import json
from datetime import date, datetime, time, timedelta
from typing import Optional

import structlog
from sqlalchemy import case, distinct, func
from sqlalchemy.orm import Session

from medcrm.actions.base import action, commit, dump, load, paginate, success
from medcrm.cache import revalidate_path
from medcrm.errors import NotFound
from medcrm.models.all_models import (
    Appointment, AppointmentStatus, Department, Doctor, Feedback, FeedbackStatus,
    Patient, Priority, Report, User, UserRole, local_now,
)
from medcrm.policy import policy, resolve_principal
from medcrm.schemas.report import DateRange, ReportResponse

logger = structlog.get_logger(__name__)

PAGE = "/reports"
APPOINTMENT_REPORT = "appointment_stats"
PATIENT_REPORT = "patient_stats"
REVENUE_REPORT = "revenue"
TITLE_DATE = "%a %b %d %Y"


def _count_where(condition):
    return func.count(case((condition, 1)))


def appointment_statistics(db: Session, start: date, end: date) -> dict:
    """Status counts, average duration and per-department counts for appointments dated in [start, end]."""
    in_range = (
        Appointment.appointment_date >= start,
        Appointment.appointment_date <= end,
    )

    totals = db.query(
        func.count(Appointment.id).label("total"),
        func.avg(Appointment.duration).label("avg_duration"),
        *[
            _count_where(Appointment.status == status).label(status.value)
            for status in AppointmentStatus
        ],
    ).filter(*in_range).one()

    by_department = (
        db.query(Department.name, func.count(Appointment.id))
        .select_from(Appointment)
        .join(Doctor, Appointment.doctor_id == Doctor.id)
        .outerjoin(Department, Doctor.department_id == Department.id)
        .filter(*in_range)
        .group_by(Department.name)
        .order_by(Department.name)
        .all()
    )

    return {
        "total_appointments": totals.total or 0,
        "by_status": {status.value: getattr(totals, status.value) or 0 for status in AppointmentStatus},
        "avg_duration": round(float(totals.avg_duration), 2) if totals.avg_duration is not None else None,
        "by_department": [
            {"department": name or "Unassigned", "count": count}
            for name, count in by_department
        ],
    }


def _day_bounds(start: date, end: date):
    return datetime.combine(start, time.min), datetime.combine(end + timedelta(days=1), time.min)


def _money(value) -> float:
    return round(float(value or 0), 2)


def age_on(birth: date, day: date) -> int:
    return day.year - birth.year - ((day.month, day.day) < (birth.month, birth.day))


def patient_statistics(db: Session, start: date, end: date) -> dict:
    """Registrations in [start, end], age and gender mix, and patients seen per department."""
    window_start, window_end = _day_bounds(start, end)

    totals = (
        db.query(
            func.count(Patient.id).label("total"),
            _count_where((User.created_at >= window_start) & (User.created_at < window_end)).label("new"),
        )
        .select_from(Patient)
        .join(User, Patient.user_id == User.id)
        .one()
    )

    # Ages as of the period end
    births = [birth for (birth,) in db.query(Patient.date_of_birth).filter(Patient.date_of_birth.isnot(None))]
    ages = [age_on(birth, end) for birth in births]

    by_gender = (
        db.query(Patient.gender, func.count(Patient.id))
        .group_by(Patient.gender)
        .all()
    )

    by_department = (
        db.query(Department.name, func.count(distinct(Appointment.patient_id)))
        .select_from(Appointment)
        .join(Doctor, Appointment.doctor_id == Doctor.id)
        .outerjoin(Department, Doctor.department_id == Department.id)
        .filter(Appointment.appointment_date >= start, Appointment.appointment_date <= end)
        .group_by(Department.name)
        .order_by(Department.name)
        .all()
    )

    return {
        "total_patients": totals.total or 0,
        "new_patients": totals.new or 0,
        "avg_age": round(sum(ages) / len(ages), 1) if ages else None,
        "by_gender": sorted(
            ({"gender": gender.value if gender else "unspecified", "count": count} for gender, count in by_gender),
            key=lambda row: row["gender"],
        ),
        "by_department": [
            {"department": name or "Unassigned", "patient_count": count}
            for name, count in by_department
        ],
    }


def revenue_statistics(db: Session, start: date, end: date) -> dict:
    """Consultation fees earned by completed appointments dated in [start, end]."""
    fee = func.coalesce(Doctor.consultation_fee, 0)
    completed = (
        db.query(Appointment.id)
        .join(Doctor, Appointment.doctor_id == Doctor.id)
        .filter(
            Appointment.status == AppointmentStatus.COMPLETED,
            Appointment.appointment_date >= start,
            Appointment.appointment_date <= end,
        )
    )

    totals = completed.with_entities(
        func.sum(fee).label("revenue"),
        func.count(Appointment.id).label("appointments"),
        func.avg(fee).label("average"),
    ).one()

    by_department = (
        completed.outerjoin(Department, Doctor.department_id == Department.id)
        .with_entities(Department.name, func.sum(fee), func.count(Appointment.id))
        .group_by(Department.name)
        .order_by(Department.name)
        .all()
    )

    by_doctor = (
        completed.join(User, Doctor.user_id == User.id)
        .with_entities(User.name, func.sum(fee), func.count(Appointment.id))
        .group_by(Doctor.id, User.name)
        .order_by(User.name)
        .all()
    )

    return {
        "total_revenue": _money(totals.revenue),
        "total_appointments": totals.appointments or 0,
        "avg_revenue_per_appointment": _money(totals.average),
        "by_department": [
            {"department": name or "Unassigned", "revenue": _money(revenue), "appointments": count}
            for name, revenue, count in by_department
        ],
        "by_doctor": [
            {"doctor": name, "revenue": _money(revenue), "appointments": count}
            for name, revenue, count in by_doctor
        ],
    }


def _save_report(
    db: Session, principal, report_type: str, title: str, description: str, period: dict, statistics: dict,
):
    """Persist a JSON snapshot of one statistics run and return (report, data)."""
    generated_at = local_now()
    start, end = period["start"], period["end"]
    report_data = {
        "period": {"start": start.isoformat(), "end": end.isoformat()},
        "statistics": statistics,
        "generated_at": generated_at.isoformat(),
        "generated_by": principal.user_id,
    }

    report = Report(
        title=f"{title} - {start.strftime(TITLE_DATE)} to {end.strftime(TITLE_DATE)}",
        type=report_type,
        description=description,
        data=json.dumps(report_data),
        generated_by=principal.user_id,
        generated_at=generated_at,
        date_range=f"{start.isoformat()} to {end.isoformat()}",
        status="completed",
    )
    db.add(report)
    commit(db)
    db.refresh(report)

    revalidate_path(PAGE)
    logger.info("report_generated", report_id=report.id, type=report_type, by=principal.user_id)

    return report, report_data


@action
def generate_appointment_report(db: Session, user_id: Optional[str], start, end):
    principal = resolve_principal(db, user_id)
    policy.require(principal, "report", "generate")
    period = load(DateRange, {"start": start, "end": end})

    report, report_data = _save_report(
        db, principal, APPOINTMENT_REPORT,
        "Appointment Statistics Report",
        "Comprehensive appointment statistics and trends",
        period,
        appointment_statistics(db, period["start"], period["end"]),
    )

    return success(report=dump(ReportResponse, report), data=report_data)


@action
def generate_patient_report(db: Session, user_id: Optional[str], start, end):
    principal = resolve_principal(db, user_id)
    policy.require(principal, "report", "generate")
    period = load(DateRange, {"start": start, "end": end})

    report, report_data = _save_report(
        db, principal, PATIENT_REPORT,
        "Patient Statistics Report",
        "Patient demographics and registration statistics",
        period,
        patient_statistics(db, period["start"], period["end"]),
    )

    return success(report=dump(ReportResponse, report), data=report_data)


@action
def generate_revenue_report(db: Session, user_id: Optional[str], start, end):
    principal = resolve_principal(db, user_id)
    policy.require(principal, "report", "revenue")
    period = load(DateRange, {"start": start, "end": end})

    report, report_data = _save_report(
        db, principal, REVENUE_REPORT,
        "Revenue Report",
        "Financial performance and revenue analysis",
        period,
        revenue_statistics(db, period["start"], period["end"]),
    )

    return success(report=dump(ReportResponse, report), data=report_data)


@action
def get_reports(
    db: Session,
    user_id: Optional[str],
    page: int = 1,
    limit: int = 20,
    type: Optional[str] = None,
):
    principal = resolve_principal(db, user_id)
    policy.require(principal, "report", "read")

    query = db.query(Report)
    if type and type != "all":
        query = query.filter(Report.type == type)

    reports, pagination = paginate(query.order_by(Report.generated_at.desc(), Report.id.desc()), page, limit)

    return success(
        reports=[dump(ReportResponse, report) for report in reports],
        pagination=pagination,
    )


@action
def delete_report(db: Session, user_id: Optional[str], report_id: int):
    principal = resolve_principal(db, user_id)
    policy.require(principal, "report", "delete")

    report = db.query(Report).filter(Report.id == report_id).first()
    if not report:
        raise NotFound("Report not found")

    db.delete(report)
    commit(db)

    revalidate_path(PAGE)
    logger.info("report_deleted", report_id=report_id, by=principal.user_id)

    return success()


@action
def get_dashboard_statistics(db: Session, user_id: Optional[str]):
    principal = resolve_principal(db, user_id)
    policy.require(principal, "report", "dashboard")

    now = local_now()
    today = now.date()
    start_of_month = datetime(now.year, now.month, 1)

    users = db.query(
        func.count(User.id).label("total"),
        _count_where(User.role == UserRole.PATIENT).label("patients"),
        _count_where(User.role == UserRole.DOCTOR).label("doctors"),
        _count_where(User.role == UserRole.STAFF).label("staff"),
        _count_where(User.created_at >= start_of_month).label("new_this_month"),
    ).one()

    appointments = db.query(
        func.count(Appointment.id).label("total"),
        _count_where(Appointment.appointment_date == today).label("today"),
        _count_where(Appointment.status == AppointmentStatus.COMPLETED).label("completed"),
        _count_where(Appointment.status.in_((
            AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED,
        ))).label("pending"),
    ).one()

    feedback = db.query(
        func.count(Feedback.id).label("total"),
        _count_where(Feedback.status.in_((
            FeedbackStatus.OPEN, FeedbackStatus.IN_PROGRESS,
        ))).label("pending"),
        _count_where(Feedback.status.in_((
            FeedbackStatus.RESOLVED, FeedbackStatus.CLOSED,
        ))).label("resolved"),
    ).one()

    department_total = db.query(func.count(Department.id)).scalar()

    return success(statistics={
        "users": {
            "total_users": users.total or 0,
            "total_patients": users.patients or 0,
            "total_doctors": users.doctors or 0,
            "total_staff": users.staff or 0,
            "new_users_this_month": users.new_this_month or 0,
        },
        "appointments": {
            "total_appointments": appointments.total or 0,
            "today_appointments": appointments.today or 0,
            "completed_appointments": appointments.completed or 0,
            "pending_appointments": appointments.pending or 0,
        },
        "departments": {"total_departments": department_total or 0},
        "feedback": {
            "total_feedback": feedback.total or 0,
            "pending_feedback": feedback.pending or 0,
            "resolved_feedback": feedback.resolved or 0,
        },
    })


@action
def get_department_stats(db: Session, user_id: Optional[str], limit: int = 4):
    """Patients seen, appointments and satisfaction (average rating as a percentage) per department."""
    principal = resolve_principal(db, user_id)
    policy.require(principal, "report", "dashboard")

    departments = db.query(Department).order_by(Department.name).limit(limit).all()
    ids = [department.id for department in departments]

    visits = {
        department_id: (patients, appointments)
        for department_id, patients, appointments in (
            db.query(
                Doctor.department_id,
                func.count(distinct(Appointment.patient_id)),
                func.count(Appointment.id),
            )
            .join(Appointment, Appointment.doctor_id == Doctor.id)
            .filter(Doctor.department_id.in_(ids))
            .group_by(Doctor.department_id)
        )
    }
    ratings = dict(
        db.query(Feedback.department_id, func.avg(Feedback.rating))
        .filter(Feedback.department_id.in_(ids), Feedback.rating.isnot(None))
        .group_by(Feedback.department_id)
        .all()
    )

    return success(departments=[
        {
            "id": department.id,
            "name": department.name,
            "patients": visits.get(department.id, (0, 0))[0],
            "appointments": visits.get(department.id, (0, 0))[1],
            "satisfaction": round(float(ratings[department.id]) * 20) if department.id in ratings else 0,
        }
        for department in departments
    ])


def activity_entry(activity_id, kind, message, at, priority):
    return {
        "id": activity_id,
        "type": kind,
        "message": message,
        "time": at.isoformat() if at else None,
        "priority": priority,
    }


@action
def get_recent_activities(db: Session, user_id: Optional[str], limit: int = 10):
    """Latest bookings, feedback and registrations merged newest first."""
    principal = resolve_principal(db, user_id)
    policy.require(principal, "report", "dashboard")

    activities = []

    for appointment in db.query(Appointment).order_by(Appointment.created_at.desc(), Appointment.id.desc()).limit(3):
        activities.append(activity_entry(
            appointment.id, "appointment",
            f"Appointment {appointment.status.value} by patient - ID: {appointment.id}",
            appointment.created_at, "normal",
        ))

    for item in db.query(Feedback).order_by(Feedback.created_at.desc(), Feedback.id.desc()).limit(3):
        activities.append(activity_entry(
            item.id, "feedback",
            f"New feedback received: {item.subject}",
            item.created_at, "high" if item.priority == Priority.URGENT else "normal",
        ))

    for account in db.query(User).order_by(User.created_at.desc()).limit(2):
        role = account.role.value if account.role else "user"
        activities.append(activity_entry(
            account.id, "new_patient" if account.role == UserRole.PATIENT else "staff",
            f"New {role} registered: {account.name}",
            account.created_at, "low",
        ))

    activities.sort(key=lambda activity: activity["time"] or "", reverse=True)

    return success(activities=activities[:limit])
