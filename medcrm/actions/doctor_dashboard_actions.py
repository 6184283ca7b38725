# medcrm/actions/doctor_dashboard_actions.py
"""
The signed-in doctor's own workspace: profile, daily schedule, counters,
recent activity, assigned patients and department colleagues.
"""
from typing import Optional

from sqlalchemy import case, distinct, func, or_, select
from sqlalchemy.orm import Session

from medcrm.actions.base import action, dump, like, paginate, success
from medcrm.actions.lab_actions import OPEN_STATUSES
from medcrm.actions.medical_actions import doctor_has_seen, get_patient, require_doctor_profile
from medcrm.actions.message_actions import unread_for
from medcrm.actions.report_actions import activity_entry, age_on
from medcrm.errors import Forbidden
from medcrm.models.all_models import (
    Appointment, AppointmentStatus, Doctor, Feedback, LabResult, MedicalRecord, Message,
    Patient, PatientDoctorAssignment, Priority, User, local_now,
)
from medcrm.policy import policy, resolve_principal
from medcrm.schemas.appointment import AppointmentResponse
from medcrm.schemas.patient import PatientResponse
from medcrm.schemas.staff import DoctorResponse


def _current_doctor(db: Session, user_id: Optional[str]):
    principal = resolve_principal(db, user_id)
    policy.require(principal, "doctor", "dashboard")
    doctor_id = require_doctor_profile(principal)
    return principal, db.query(Doctor).filter(Doctor.id == doctor_id).one()


def _doctor_view(doctor: Doctor):
    return dump(
        DoctorResponse,
        doctor,
        name=doctor.user.name,
        email=doctor.user.email,
        department_name=doctor.department.name if doctor.department else None,
    )


@action
def get_current_doctor_profile(db: Session, user_id: Optional[str]):
    _principal, doctor = _current_doctor(db, user_id)

    return success(profile=_doctor_view(doctor))


@action
def get_doctor_dashboard_stats(db: Session, user_id: Optional[str]):
    principal, doctor = _current_doctor(db, user_id)
    today = local_now().date()

    def count_where(condition):
        return func.count(case((condition, 1)))

    appointments = db.query(
        count_where(Appointment.appointment_date == today).label("today"),
        count_where(
            (Appointment.appointment_date == today) & (Appointment.status == AppointmentStatus.COMPLETED)
        ).label("completed_today"),
        count_where(
            Appointment.status.in_((AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED))
        ).label("pending"),
        func.count(distinct(Appointment.patient_id)).label("patients"),
    ).filter(Appointment.doctor_id == doctor.id).one()

    pending_labs = db.query(func.count(LabResult.id)).filter(
        LabResult.doctor_id == doctor.id,
        LabResult.status.in_(OPEN_STATUSES),
    ).scalar()

    unread = unread_for(db.query(Message), principal.user_id)
    unread_messages = unread.with_entities(func.count(Message.id)).scalar()
    urgent_cases = unread.filter(Message.priority == Priority.URGENT).with_entities(func.count(Message.id)).scalar()

    seen_patients = select(Appointment.patient_id).where(Appointment.doctor_id == doctor.id)
    avg_rating = db.query(func.avg(Feedback.rating)).filter(
        Feedback.patient_id.in_(seen_patients),
        Feedback.rating.isnot(None),
    ).scalar()

    return success(stats={
        "today_appointments": appointments.today or 0,
        "completed_today": appointments.completed_today or 0,
        "pending_reviews": appointments.pending or 0,
        "total_patients": appointments.patients or 0,
        "urgent_cases": urgent_cases or 0,
        "patient_satisfaction": round(float(avg_rating) * 20) if avg_rating is not None else 0,
        "unread_messages": unread_messages or 0,
        "pending_lab_results": pending_labs or 0,
    })


@action
def get_doctor_today_schedule(db: Session, user_id: Optional[str]):
    _principal, doctor = _current_doctor(db, user_id)

    rows = (
        db.query(Appointment, User.name, Patient.phone)
        .join(Patient, Appointment.patient_id == Patient.id)
        .join(User, Patient.user_id == User.id)
        .filter(
            Appointment.doctor_id == doctor.id,
            Appointment.appointment_date == local_now().date(),
        )
        .order_by(Appointment.appointment_time)
        .all()
    )

    return success(schedule=[
        dump(AppointmentResponse, appointment, patient_name=name, patient_phone=phone)
        for appointment, name, phone in rows
    ])


@action
def get_doctor_recent_activities(db: Session, user_id: Optional[str], limit: int = 10):
    principal, doctor = _current_doctor(db, user_id)
    activities = []

    appointments = (
        db.query(Appointment, User.name)
        .join(Patient, Appointment.patient_id == Patient.id)
        .join(User, Patient.user_id == User.id)
        .filter(Appointment.doctor_id == doctor.id)
        .order_by(Appointment.updated_at.desc(), Appointment.id.desc())
        .limit(5)
    )
    for appointment, name in appointments:
        activities.append(activity_entry(
            appointment.id, "appointment",
            f"Appointment {appointment.status.value} with {name}",
            appointment.updated_at, "normal",
        ))

    records = (
        db.query(MedicalRecord, User.name)
        .join(Patient, MedicalRecord.patient_id == Patient.id)
        .join(User, Patient.user_id == User.id)
        .filter(MedicalRecord.doctor_id == doctor.id)
        .order_by(MedicalRecord.created_at.desc(), MedicalRecord.id.desc())
        .limit(3)
    )
    for record, name in records:
        activities.append(activity_entry(
            record.id, "medical_record", f"Medical record created for {name}", record.created_at, "normal",
        ))

    messages = (
        db.query(Message)
        .filter(Message.recipient_id == principal.user_id)
        .order_by(Message.created_at.desc(), Message.id.desc())
        .limit(2)
    )
    for message in messages:
        activities.append(activity_entry(
            message.id, "message", f"New message: {message.subject or message.message[:50]}",
            message.created_at, "high" if message.priority == Priority.URGENT else "normal",
        ))

    activities.sort(key=lambda activity: activity["time"] or "", reverse=True)

    return success(activities=activities[:limit])


@action
def get_doctor_patients(
    db: Session,
    user_id: Optional[str],
    page: int = 1,
    limit: int = 20,
    search: Optional[str] = None,
):
    """Patients actively assigned to the doctor, with visit counts for this doctor."""
    _principal, doctor = _current_doctor(db, user_id)

    visits = (
        db.query(
            Appointment.patient_id.label("patient_id"),
            func.max(Appointment.appointment_date).label("last_appointment"),
            func.count(Appointment.id).label("total_appointments"),
        )
        .filter(Appointment.doctor_id == doctor.id)
        .group_by(Appointment.patient_id)
        .subquery()
    )

    query = (
        db.query(
            Patient,
            PatientDoctorAssignment.notes,
            PatientDoctorAssignment.assigned_at,
            visits.c.last_appointment,
            visits.c.total_appointments,
        )
        .join(PatientDoctorAssignment, PatientDoctorAssignment.patient_id == Patient.id)
        .join(User, Patient.user_id == User.id)
        .outerjoin(visits, visits.c.patient_id == Patient.id)
        .filter(
            PatientDoctorAssignment.doctor_id == doctor.id,
            PatientDoctorAssignment.is_active.is_(True),
        )
    )
    if search:
        query = query.filter(or_(User.name.ilike(like(search)), Patient.phone.ilike(like(search))))

    rows, pagination = paginate(
        query.order_by(PatientDoctorAssignment.assigned_at.desc(), PatientDoctorAssignment.id.desc()), page, limit,
    )

    return success(
        patients=[
            dump(
                PatientResponse,
                patient,
                name=patient.user.name,
                email=patient.user.email,
                assignment_notes=notes,
                assigned_at=assigned_at,
                last_appointment=last_appointment,
                total_appointments=total or 0,
            )
            for patient, notes, assigned_at, last_appointment, total in rows
        ],
        pagination=pagination,
    )


@action
def get_doctor_colleagues(db: Session, user_id: Optional[str]):
    _principal, doctor = _current_doctor(db, user_id)
    if doctor.department_id is None:
        return success(colleagues=[])

    colleagues = (
        db.query(Doctor)
        .join(User, Doctor.user_id == User.id)
        .filter(Doctor.department_id == doctor.department_id, Doctor.id != doctor.id)
        .order_by(User.name)
        .all()
    )

    return success(colleagues=[_doctor_view(colleague) for colleague in colleagues])


@action
def get_doctor_patient_details(db: Session, user_id: Optional[str], patient_id: int):
    _principal, doctor = _current_doctor(db, user_id)

    patient = get_patient(db, patient_id)
    if not doctor_has_seen(db, doctor.id, patient.id):
        raise Forbidden("Access denied to patient records")

    age = age_on(patient.date_of_birth, local_now().date()) if patient.date_of_birth else None

    return success(patient=dump(
        PatientResponse,
        patient,
        name=patient.user.name,
        email=patient.user.email,
        age=age,
    ))
