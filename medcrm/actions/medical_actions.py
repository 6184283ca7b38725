# medcrm/actions/medical_actions.py
"""
Medical record actions, plus the row-scoping helpers shared with the
medication and lab result actions.

Patients see rows about themselves. Doctors see rows they authored, or every
row of one patient once they have had an appointment with that patient.
Staff and admins see everything; confidential medical records stay hidden
from staff.
"""
from typing import Optional

import structlog
from sqlalchemy import false, func, or_
from sqlalchemy.orm import Session

from medcrm.actions.base import action, commit, dump, load, paginate, success
from medcrm.cache import revalidate_path
from medcrm.errors import Forbidden, NotFound
from medcrm.models.all_models import (
    Appointment, MedicalRecord, Patient, UserRole,
)
from medcrm.policy import Ownership, Principal, Scope, policy, resolve_principal
from medcrm.schemas.clinical import (
    MedicalRecordCreate, MedicalRecordResponse, MedicalRecordUpdate,
)

logger = structlog.get_logger(__name__)

PAGES = ("/medical-records", "/dashboard")


# ================================
# SHARED CLINICAL HELPERS
# ================================

def require_doctor_profile(principal: Principal) -> int:
    if principal.doctor_id is None:
        raise NotFound("Doctor profile not found")
    return principal.doctor_id


def get_patient(db: Session, patient_id: int) -> Patient:
    patient = db.query(Patient).filter(Patient.id == patient_id).first()
    if not patient:
        raise NotFound("Patient not found")
    return patient


def check_appointment_link(db: Session, appointment_id: Optional[int], patient_id: int, doctor_id: int) -> None:
    """An attached appointment must be between the same patient and doctor."""
    if appointment_id is None:
        return
    found = db.query(Appointment.id).filter(
        Appointment.id == appointment_id,
        Appointment.patient_id == patient_id,
        Appointment.doctor_id == doctor_id,
    ).first()
    if not found:
        raise NotFound("Appointment not found or access denied")


def doctor_has_seen(db: Session, doctor_id: int, patient_id: int) -> bool:
    return db.query(Appointment.id).filter(
        Appointment.doctor_id == doctor_id,
        Appointment.patient_id == patient_id,
    ).first() is not None


def scope_patient_rows(
    db: Session,
    query,
    principal: Principal,
    scope: Scope,
    patient_column,
    doctor_column,
    patient_id: Optional[int] = None,
    denied: str = "Access denied to patient records",
):
    """Restrict a clinical query to the rows the principal may list."""
    if scope == Scope.ANY:
        return query.filter(patient_column == patient_id) if patient_id else query

    if principal.patient_id is not None:
        return query.filter(patient_column == principal.patient_id)

    if principal.doctor_id is not None:
        if patient_id:
            if not doctor_has_seen(db, principal.doctor_id, patient_id):
                raise Forbidden(denied)
            return query.filter(patient_column == patient_id)
        return query.filter(doctor_column == principal.doctor_id)

    return query.filter(false())


def patient_and_doctor_names(row) -> dict:
    return {
        "patient_name": row.patient.user.name if row.patient else None,
        "doctor_name": row.doctor.user.name if row.doctor else None,
    }


# ================================
# MEDICAL RECORDS
# ================================

def _serialize(record: MedicalRecord):
    return dump(MedicalRecordResponse, record, **patient_and_doctor_names(record))


def _get_record(db: Session, record_id: int) -> MedicalRecord:
    record = db.query(MedicalRecord).filter(MedicalRecord.id == record_id).first()
    if not record:
        raise NotFound("Medical record not found")
    return record


def _authored_by(record: MedicalRecord) -> Ownership:
    return Ownership(doctor_id=record.doctor_id)


@action
def create_medical_record(db: Session, user_id: Optional[str], data):
    principal = resolve_principal(db, user_id)
    policy.require(principal, "medical_record", "create")
    doctor_id = require_doctor_profile(principal)
    fields = load(MedicalRecordCreate, data)

    patient = get_patient(db, fields["patient_id"])
    check_appointment_link(db, fields.get("appointment_id"), patient.id, doctor_id)

    record = MedicalRecord(
        patient_id=patient.id,
        doctor_id=doctor_id,
        appointment_id=fields.get("appointment_id"),
        record_type=fields["record_type"],
        title=fields["title"],
        description=fields.get("description"),
        diagnosis=fields.get("diagnosis"),
        treatment=fields.get("treatment"),
        medications=fields.get("medications"),
        lab_tests=fields.get("lab_tests"),
        vital_signs=fields.get("vital_signs"),
        is_confidential=bool(fields.get("is_confidential")),
    )
    db.add(record)
    commit(db)
    db.refresh(record)

    revalidate_path(*PAGES)
    logger.info("medical_record_created", record_id=record.id, patient_id=patient.id, doctor_id=doctor_id)

    return success(record=_serialize(record))


@action
def get_medical_records(
    db: Session,
    user_id: Optional[str],
    patient_id: Optional[int] = None,
    page: int = 1,
    limit: int = 20,
    record_type: Optional[str] = None,
):
    principal = resolve_principal(db, user_id)
    scope = policy.scope(principal, "medical_record", "read")

    query = scope_patient_rows(
        db, db.query(MedicalRecord), principal, scope,
        MedicalRecord.patient_id, MedicalRecord.doctor_id, patient_id,
    )
    if principal.role == UserRole.STAFF:
        query = query.filter(or_(MedicalRecord.is_confidential.is_(None), MedicalRecord.is_confidential == false()))
    if record_type:
        query = query.filter(MedicalRecord.record_type == record_type)

    records, pagination = paginate(
        query.order_by(MedicalRecord.created_at.desc(), MedicalRecord.id.desc()), page, limit,
    )

    return success(
        records=[_serialize(record) for record in records],
        pagination=pagination,
    )


@action
def get_medical_record_details(db: Session, user_id: Optional[str], record_id: int):
    principal = resolve_principal(db, user_id)

    record = _get_record(db, record_id)
    policy.require(
        principal, "medical_record", "read",
        Ownership(patient_id=record.patient_id, doctor_id=record.doctor_id),
    )
    if record.is_confidential and principal.role == UserRole.STAFF:
        raise Forbidden("This record is confidential")

    return success(record=_serialize(record))


@action
def update_medical_record(db: Session, user_id: Optional[str], record_id: int, data):
    principal = resolve_principal(db, user_id)
    policy.scope(principal, "medical_record", "update")
    require_doctor_profile(principal)
    fields = load(MedicalRecordUpdate, data, exclude_unset=True)

    record = _get_record(db, record_id)
    policy.require(principal, "medical_record", "update", _authored_by(record))

    for field, value in fields.items():
        if value is not None:
            setattr(record, field, value)

    commit(db)
    db.refresh(record)

    revalidate_path(*PAGES)
    logger.info("medical_record_updated", record_id=record.id, fields=sorted(fields), by=principal.user_id)

    return success(record=_serialize(record))


@action
def delete_medical_record(db: Session, user_id: Optional[str], record_id: int):
    principal = resolve_principal(db, user_id)
    policy.scope(principal, "medical_record", "delete")
    require_doctor_profile(principal)

    record = _get_record(db, record_id)
    policy.require(principal, "medical_record", "delete", _authored_by(record))

    db.delete(record)
    commit(db)

    revalidate_path(*PAGES)
    logger.info("medical_record_deleted", record_id=record_id, by=principal.user_id)

    return success()


@action
def get_patient_medical_summary(db: Session, user_id: Optional[str], patient_id: int):
    """Record count, latest visit, record types and the five latest diagnoses for one patient."""
    principal = resolve_principal(db, user_id)
    policy.scope(principal, "medical_record", "summary")

    patient = get_patient(db, patient_id)
    seen_by = None
    if principal.doctor_id is not None and doctor_has_seen(db, principal.doctor_id, patient.id):
        seen_by = principal.doctor_id
    policy.require(principal, "medical_record", "summary", Ownership(patient_id=patient.id, doctor_id=seen_by))

    query = db.query(MedicalRecord).filter(MedicalRecord.patient_id == patient.id)
    if principal.role == UserRole.STAFF:
        query = query.filter(or_(MedicalRecord.is_confidential.is_(None), MedicalRecord.is_confidential == false()))

    totals = query.with_entities(
        func.count(MedicalRecord.id).label("total"),
        func.max(MedicalRecord.created_at).label("latest"),
    ).one()
    record_types = sorted(
        record_type for (record_type,) in query.with_entities(MedicalRecord.record_type).distinct()
    )
    diagnoses = (
        query.filter(MedicalRecord.diagnosis.isnot(None))
        .order_by(MedicalRecord.created_at.desc(), MedicalRecord.id.desc())
        .limit(5)
        .all()
    )

    return success(summary={
        "total_records": totals.total or 0,
        "latest_visit": totals.latest,
        "record_types": record_types,
        "recent_diagnoses": [
            {"diagnosis": record.diagnosis, "created_at": record.created_at}
            for record in diagnoses
        ],
    })
