# medcrm/actions/patient_actions.py
from datetime import timedelta
from typing import Optional

import structlog
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from medcrm.actions.base import action, commit, dump, like, load, paginate, success
from medcrm.actions.message_actions import unread_for
from medcrm.actions.user_actions import PATIENT_FIELDS, create_account, update_account
from medcrm.cache import revalidate_path
from medcrm.errors import NotFound
from medcrm.models.all_models import (
    Appointment, AppointmentStatus, Doctor, LabResult, LabResultStatus, Medication,
    MedicationStatus, Message, Patient, User, UserRole, local_now,
)
from medcrm.policy import policy, resolve_principal
from medcrm.schemas.appointment import AppointmentResponse
from medcrm.schemas.patient import PatientCreate, PatientResponse, PatientUpdate

logger = structlog.get_logger(__name__)

PAGE = "/admin/patients"
PROFILE_PAGES = ("/patient/profile", "/patient")


def _serialize(patient: Patient, **extra):
    return dump(
        PatientResponse,
        patient,
        name=patient.user.name,
        email=patient.user.email,
        banned=bool(patient.user.banned),
        **extra,
    )


def _get_patient(db: Session, patient_id: int) -> Patient:
    patient = db.query(Patient).filter(Patient.id == patient_id).first()
    if not patient:
        raise NotFound("Patient not found")
    return patient


@action
def create_patient(db: Session, user_id: Optional[str], data):
    principal = resolve_principal(db, user_id)
    policy.require(principal, "patient", "manage")
    fields = load(PatientCreate, data)

    account = create_account(db, fields["name"], fields["email"], fields["password"], UserRole.PATIENT)
    patient = Patient(
        user_id=account.id,
        **{name: fields[name] for name in PATIENT_FIELDS if fields.get(name) is not None},
    )
    db.add(patient)
    commit(db, "Email already registered")
    db.refresh(patient)

    revalidate_path(PAGE)
    logger.info("patient_created", patient_id=patient.id, by=principal.user_id)

    return success(patient=_serialize(patient))


@action
def get_patients(
    db: Session,
    user_id: Optional[str],
    page: int = 1,
    limit: int = 10,
    search: Optional[str] = None,
):
    principal = resolve_principal(db, user_id)
    policy.require(principal, "patient", "read")

    query = db.query(Patient).join(User, Patient.user_id == User.id)
    if search:
        query = query.filter(or_(
            User.name.ilike(like(search)),
            User.email.ilike(like(search)),
            Patient.phone.ilike(like(search)),
        ))

    patients, pagination = paginate(query.order_by(Patient.created_at.desc()), page, limit)

    return success(
        patients=[_serialize(patient) for patient in patients],
        pagination=pagination,
    )


@action
def get_patient_details(db: Session, user_id: Optional[str], patient_id: int):
    principal = resolve_principal(db, user_id)
    policy.require(principal, "patient", "read")

    patient = _get_patient(db, patient_id)
    appointment_count = db.query(func.count(Appointment.id)).filter(
        Appointment.patient_id == patient.id
    ).scalar()

    return success(patient=_serialize(patient, appointment_count=appointment_count or 0))


@action
def update_patient(db: Session, user_id: Optional[str], patient_id: int, data):
    principal = resolve_principal(db, user_id)
    policy.require(principal, "patient", "manage")
    fields = load(PatientUpdate, data, exclude_unset=True)

    patient = _get_patient(db, patient_id)
    update_account(db, patient.user, fields)
    for field, value in fields.items():
        if field in PATIENT_FIELDS:
            setattr(patient, field, value)

    commit(db, "Email already registered")
    db.refresh(patient)

    revalidate_path(PAGE)
    logger.info("patient_updated", patient_id=patient.id, fields=sorted(fields), by=principal.user_id)

    return success(patient=_serialize(patient))


@action
def delete_patient(db: Session, user_id: Optional[str], patient_id: int):
    """Remove the patient together with the login account it belongs to."""
    principal = resolve_principal(db, user_id)
    policy.require(principal, "patient", "manage")

    patient = _get_patient(db, patient_id)
    db.delete(patient.user)
    commit(db, "Patient has related records and cannot be deleted")

    revalidate_path(PAGE)
    logger.info("patient_deleted", patient_id=patient_id, by=principal.user_id)

    return success()


# ================================
# PATIENT SELF-SERVICE
# ================================

def _own_patient(db: Session, user_id: Optional[str]):
    principal = resolve_principal(db, user_id)
    policy.require(principal, "profile", "self")
    if principal.patient_id is None:
        raise NotFound("Patient profile not found")
    return principal, _get_patient(db, principal.patient_id)


def _health_counts(db: Session, patient: Patient) -> dict:
    today = local_now().date()

    last_visit = db.query(func.max(Appointment.appointment_date)).filter(
        Appointment.patient_id == patient.id,
        Appointment.status == AppointmentStatus.COMPLETED,
    ).scalar()
    upcoming = db.query(func.count(Appointment.id)).filter(
        Appointment.patient_id == patient.id,
        Appointment.status.in_((AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED)),
        Appointment.appointment_date >= today,
    ).scalar()
    active_medications = db.query(func.count(Medication.id)).filter(
        Medication.patient_id == patient.id,
        Medication.status == MedicationStatus.ACTIVE,
    ).scalar()
    pending_results = db.query(func.count(LabResult.id)).filter(
        LabResult.patient_id == patient.id,
        LabResult.status == LabResultStatus.PENDING,
    ).scalar()
    unread_messages = unread_for(db.query(func.count(Message.id)), patient.user_id).scalar()

    return {
        "health_score": patient.health_score or 0,
        "last_visit": last_visit,
        "upcoming_appointments": upcoming or 0,
        "active_medications": active_medications or 0,
        "pending_results": pending_results or 0,
        "unread_messages": unread_messages or 0,
    }


@action
def get_patient_profile(db: Session, user_id: Optional[str]):
    _principal, patient = _own_patient(db, user_id)

    return success(profile=_serialize(patient))


@action
def update_patient_profile(db: Session, user_id: Optional[str], data):
    """Patients edit their own account and medical details; health_score stays staff-managed."""
    principal, patient = _own_patient(db, user_id)
    fields = load(PatientUpdate, data, exclude_unset=True)

    update_account(db, patient.user, fields)
    for field, value in fields.items():
        if field in PATIENT_FIELDS:
            setattr(patient, field, value)

    commit(db, "Email already registered")
    db.refresh(patient)

    revalidate_path(*PROFILE_PAGES)
    logger.info("patient_profile_updated", patient_id=patient.id, fields=sorted(fields), by=principal.user_id)

    return success(profile=_serialize(patient))


@action
def get_patient_health_summary(db: Session, user_id: Optional[str]):
    _principal, patient = _own_patient(db, user_id)

    return success(summary=_health_counts(db, patient))


@action
def get_patient_dashboard(db: Session, user_id: Optional[str]):
    """Health counts plus the next week's scheduled appointments."""
    _principal, patient = _own_patient(db, user_id)

    today = local_now().date()
    upcoming = (
        db.query(Appointment, User.name, Doctor.specialty)
        .join(Doctor, Appointment.doctor_id == Doctor.id)
        .join(User, Doctor.user_id == User.id)
        .filter(
            Appointment.patient_id == patient.id,
            Appointment.status == AppointmentStatus.SCHEDULED,
            Appointment.appointment_date >= today,
            Appointment.appointment_date <= today + timedelta(days=7),
        )
        .order_by(Appointment.appointment_date, Appointment.appointment_time)
        .limit(5)
        .all()
    )

    return success(
        stats=_health_counts(db, patient),
        upcoming_appointments=[
            dump(AppointmentResponse, appointment, doctor_name=doctor_name, doctor_specialty=specialty)
            for appointment, doctor_name, specialty in upcoming
        ],
    )
