# medcrm/actions/appointment_actions.py
from datetime import date
from typing import Optional, Union

import structlog
from sqlalchemy import false
from sqlalchemy.orm import Session, aliased

from medcrm.actions.base import action, as_dict, commit, dump, load, paginate, success
from medcrm.cache import revalidate_path
from medcrm.errors import Conflict, NotFound, ValidationFailed
from medcrm.lifecycle import APPOINTMENT_TRANSITIONS, ensure_transition
from medcrm.models.all_models import (
    Appointment, AppointmentStatus, Doctor, Patient, User,
)
from medcrm.policy import Ownership, Principal, Scope, policy, resolve_principal
from medcrm import scheduling
from medcrm.schemas.appointment import (
    AppointmentCreate, AppointmentResponse, AppointmentUpdate,
)

logger = structlog.get_logger(__name__)

CONFLICT_MESSAGE = "Doctor has a scheduling conflict at this time"
PAGES = ("/appointments", "/dashboard")
CLEARABLE_FIELDS = frozenset({
    "reason", "symptoms", "notes", "diagnosis", "prescription", "follow_up_date",
})


# ================================
# QUERY HELPERS
# ================================

def appointments_with_names(db: Session):
    """Appointment rows joined to the patient's and the doctor's user names.

    The users table is joined twice, once per party, under explicit labels.
    """
    patient_user = aliased(User, name="patient_user")
    doctor_user = aliased(User, name="doctor_user")

    return (
        db.query(
            Appointment,
            patient_user.name.label("patient_name"),
            doctor_user.name.label("doctor_name"),
        )
        .join(Patient, Appointment.patient_id == Patient.id)
        .join(patient_user, Patient.user_id == patient_user.id)
        .join(Doctor, Appointment.doctor_id == Doctor.id)
        .join(doctor_user, Doctor.user_id == doctor_user.id)
    )


def _serialize(row):
    return dump(
        AppointmentResponse,
        row.Appointment,
        patient_name=row.patient_name,
        doctor_name=row.doctor_name,
    )


def _ownership(appointment: Appointment) -> Ownership:
    return Ownership(patient_id=appointment.patient_id, doctor_id=appointment.doctor_id)


def _restrict_to_own(query, principal: Principal):
    if principal.patient_id is not None:
        return query.filter(Appointment.patient_id == principal.patient_id)
    if principal.doctor_id is not None:
        return query.filter(Appointment.doctor_id == principal.doctor_id)
    return query.filter(false())


def _get_appointment(db: Session, appointment_id: int) -> Appointment:
    appointment = db.query(Appointment).filter(Appointment.id == appointment_id).first()
    if not appointment:
        raise NotFound("Appointment not found")
    return appointment


def _parse_status(value) -> AppointmentStatus:
    try:
        return AppointmentStatus(value)
    except ValueError:
        raise ValidationFailed(f"Invalid appointment status: {value}")


def _parse_date(value: Union[date, str]) -> date:
    if isinstance(value, str):
        try:
            return date.fromisoformat(value)
        except ValueError:
            raise ValidationFailed("Date must be in YYYY-MM-DD format")
    return value


# ================================
# APPOINTMENT ACTIONS
# ================================

@action
def create_appointment(db: Session, user_id: Optional[str], data):
    principal = resolve_principal(db, user_id)
    fields = load(AppointmentCreate, data)

    patient = db.query(Patient).filter(Patient.id == fields["patient_id"]).first()
    if not patient:
        raise NotFound("Patient not found")

    doctor = db.query(Doctor).filter(Doctor.id == fields["doctor_id"]).first()
    if not doctor:
        raise NotFound("Doctor not found")

    policy.require(
        principal, "appointment", "create",
        Ownership(patient_id=patient.id, doctor_id=doctor.id),
    )

    if scheduling.check_conflict(db, doctor.id, fields["appointment_date"], fields["appointment_time"]):
        raise Conflict(CONFLICT_MESSAGE)

    appointment = Appointment(
        patient_id=patient.id,
        doctor_id=doctor.id,
        appointment_date=fields["appointment_date"],
        appointment_time=fields["appointment_time"],
        duration=fields.get("duration") or 30,
        type=fields["type"],
        status=AppointmentStatus.SCHEDULED,
        reason=fields.get("reason"),
        symptoms=fields.get("symptoms"),
        notes=fields.get("notes"),
    )
    db.add(appointment)
    # The partial unique index catches a booking that raced past the check above
    commit(db, CONFLICT_MESSAGE)
    db.refresh(appointment)

    revalidate_path(*PAGES)
    logger.info(
        "appointment_created",
        appointment_id=appointment.id,
        doctor_id=doctor.id,
        patient_id=patient.id,
        date=str(appointment.appointment_date),
        time=appointment.appointment_time,
        by=principal.user_id,
    )

    return success(appointment=dump(
        AppointmentResponse,
        appointment,
        patient_name=patient.user.name,
        doctor_name=doctor.user.name,
    ))


@action
def get_appointments(
    db: Session,
    user_id: Optional[str],
    page: int = 1,
    limit: int = 20,
    status: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
):
    principal = resolve_principal(db, user_id)
    scope = policy.scope(principal, "appointment", "read")

    query = appointments_with_names(db)
    if scope == Scope.OWN:
        query = _restrict_to_own(query, principal)

    if status:
        query = query.filter(Appointment.status == _parse_status(status))
    if start_date:
        query = query.filter(Appointment.appointment_date >= _parse_date(start_date))
    if end_date:
        query = query.filter(Appointment.appointment_date <= _parse_date(end_date))

    query = query.order_by(
        Appointment.appointment_date.desc(),
        Appointment.appointment_time.desc(),
    )
    rows, pagination = paginate(query, page, limit)

    return success(
        appointments=[_serialize(row) for row in rows],
        pagination=pagination,
    )


@action
def get_appointment_details(db: Session, user_id: Optional[str], appointment_id: int):
    principal = resolve_principal(db, user_id)

    row = appointments_with_names(db).filter(Appointment.id == appointment_id).first()
    if not row:
        raise NotFound("Appointment not found")

    policy.require(principal, "appointment", "read", _ownership(row.Appointment))

    return success(appointment=_serialize(row))


@action
def update_appointment(db: Session, user_id: Optional[str], appointment_id: int, data):
    """Apply a partial update to an appointment.

    Status changes follow ``APPOINTMENT_TRANSITIONS``, so moves such as
    confirmed -> scheduled are refused here; ``cancel_appointment`` is the
    way to cancel from any status. Explicit nulls clear the clinical fields.
    """
    principal = resolve_principal(db, user_id)
    requested = as_dict(data, exclude_unset=True)

    appointment = _get_appointment(db, appointment_id)
    policy.require(principal, "appointment", "update", _ownership(appointment))
    # Key presence is what counts, even when the value is unchanged or malformed
    policy.require_fields(principal, "appointment", requested.keys())

    fields = load(AppointmentUpdate, data, exclude_unset=True)
    changes = {
        field: value for field, value in fields.items()
        if value is not None or field in CLEARABLE_FIELDS
    }

    new_status = changes.get("status")
    if new_status is not None:
        ensure_transition(APPOINTMENT_TRANSITIONS, appointment.status, new_status)

    doctor_id = changes.get("doctor_id", appointment.doctor_id)
    if doctor_id != appointment.doctor_id:
        if not db.query(Doctor.id).filter(Doctor.id == doctor_id).scalar():
            raise NotFound("Doctor not found")
        policy.require(
            principal, "appointment", "update",
            Ownership(patient_id=appointment.patient_id, doctor_id=doctor_id),
        )

    if {"doctor_id", "appointment_date", "appointment_time"} & changes.keys():
        day = changes.get("appointment_date", appointment.appointment_date)
        time = changes.get("appointment_time", appointment.appointment_time)
        if scheduling.check_conflict(db, doctor_id, day, time, exclude_id=appointment.id):
            raise Conflict(CONFLICT_MESSAGE)

    for field, value in changes.items():
        setattr(appointment, field, value)

    if new_status == AppointmentStatus.CANCELLED:
        appointment.cancelled_by = principal.user_id

    commit(db, CONFLICT_MESSAGE)

    revalidate_path(*PAGES)
    logger.info(
        "appointment_updated",
        appointment_id=appointment.id,
        fields=sorted(changes),
        by=principal.user_id,
    )

    row = appointments_with_names(db).filter(Appointment.id == appointment.id).first()
    return success(appointment=_serialize(row))


@action
def cancel_appointment(db: Session, user_id: Optional[str], appointment_id: int, reason: Optional[str] = None):
    """Force an appointment to ``cancelled`` whatever its current status."""
    principal = resolve_principal(db, user_id)

    appointment = _get_appointment(db, appointment_id)
    policy.require(principal, "appointment", "cancel", _ownership(appointment))

    appointment.status = AppointmentStatus.CANCELLED
    appointment.cancelled_by = principal.user_id
    appointment.cancel_reason = reason
    commit(db)

    revalidate_path(*PAGES)
    logger.info(
        "appointment_cancelled",
        appointment_id=appointment.id,
        by=principal.user_id,
        reason=reason,
    )

    return success()


@action
def get_available_slots(db: Session, user_id: Optional[str], doctor_id: int, day: Union[date, str]):
    # Booking pages are public; a session is only checked when one is present
    if user_id is not None:
        resolve_principal(db, user_id)

    if not db.query(Doctor.id).filter(Doctor.id == doctor_id).scalar():
        raise NotFound("Doctor not found")

    return success(slots=scheduling.generate_slots(db, doctor_id, _parse_date(day)))


def check_conflict(
    db: Session,
    doctor_id: int,
    day: Union[date, str],
    time: str,
    exclude_id: Optional[int] = None,
) -> bool:
    """True when a non-cancelled appointment already holds (doctor, day, time)."""
    return scheduling.check_conflict(db, doctor_id, _parse_date(day), time, exclude_id)
