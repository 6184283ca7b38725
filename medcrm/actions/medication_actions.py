# medcrm/actions/medication_actions.py
from datetime import timedelta
from typing import Optional

import structlog
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from medcrm.actions.base import action, commit, dump, load, paginate, success
from medcrm.actions.medical_actions import (
    check_appointment_link, get_patient, require_doctor_profile, scope_patient_rows,
)
from medcrm.cache import revalidate_path
from medcrm.errors import InvalidTransition, NotFound, ValidationFailed
from medcrm.lifecycle import MEDICATION_TRANSITIONS, ensure_transition
from medcrm.models.all_models import Medication, MedicationStatus, local_now
from medcrm.policy import Ownership, policy, resolve_principal
from medcrm.schemas.clinical import (
    MedicationCreate, MedicationDiscontinue, MedicationResponse, MedicationUpdate,
)

logger = structlog.get_logger(__name__)

PAGES = ("/medications", "/dashboard")
ATTENTION_WINDOW_DAYS = 7


def _serialize(medication: Medication):
    return dump(
        MedicationResponse,
        medication,
        patient_name=medication.patient.user.name if medication.patient else None,
        doctor_name=medication.prescriber.user.name if medication.prescriber else None,
    )


def _ownership(medication: Medication) -> Ownership:
    return Ownership(patient_id=medication.patient_id, doctor_id=medication.prescribed_by)


def _get_medication(db: Session, medication_id: int) -> Medication:
    medication = db.query(Medication).filter(Medication.id == medication_id).first()
    if not medication:
        raise NotFound("Medication not found")
    return medication


def _check_dates(start_date, end_date) -> None:
    if start_date and end_date and end_date < start_date:
        raise ValidationFailed("End date must not be before start date")


@action
def prescribe_medication(db: Session, user_id: Optional[str], data):
    principal = resolve_principal(db, user_id)
    policy.require(principal, "medication", "prescribe")
    doctor_id = require_doctor_profile(principal)
    fields = load(MedicationCreate, data)

    patient = get_patient(db, fields["patient_id"])
    check_appointment_link(db, fields.get("appointment_id"), patient.id, doctor_id)
    _check_dates(fields["start_date"], fields.get("end_date"))

    medication = Medication(
        patient_id=patient.id,
        prescribed_by=doctor_id,
        appointment_id=fields.get("appointment_id"),
        name=fields["name"],
        generic_name=fields.get("generic_name"),
        dosage=fields["dosage"],
        frequency=fields["frequency"],
        duration=fields.get("duration"),
        instructions=fields.get("instructions"),
        start_date=fields["start_date"],
        end_date=fields.get("end_date"),
        refills=fields.get("refills") or 0,
        side_effects=fields.get("side_effects"),
        status=MedicationStatus.ACTIVE,
    )
    db.add(medication)
    commit(db)
    db.refresh(medication)

    revalidate_path(*PAGES)
    logger.info("medication_prescribed", medication_id=medication.id, patient_id=patient.id, doctor_id=doctor_id)

    return success(medication=_serialize(medication))


@action
def get_medications(
    db: Session,
    user_id: Optional[str],
    patient_id: Optional[int] = None,
    page: int = 1,
    limit: int = 20,
    status: Optional[str] = None,
):
    principal = resolve_principal(db, user_id)
    scope = policy.scope(principal, "medication", "read")

    query = scope_patient_rows(
        db, db.query(Medication), principal, scope,
        Medication.patient_id, Medication.prescribed_by, patient_id,
        denied="Access denied to patient medications",
    )
    if status:
        try:
            query = query.filter(Medication.status == MedicationStatus(status))
        except ValueError:
            raise ValidationFailed(f"Invalid medication status: {status}")

    medications, pagination = paginate(query.order_by(Medication.created_at.desc(), Medication.id.desc()), page, limit)

    return success(
        medications=[_serialize(medication) for medication in medications],
        pagination=pagination,
    )


@action
def get_medication_details(db: Session, user_id: Optional[str], medication_id: int):
    principal = resolve_principal(db, user_id)

    medication = _get_medication(db, medication_id)
    policy.require(principal, "medication", "read", _ownership(medication))

    return success(medication=_serialize(medication))


@action
def get_medications_requiring_attention(db: Session, user_id: Optional[str]):
    """Active medications ending within the warning window or down to their last refill."""
    principal = resolve_principal(db, user_id)
    scope = policy.scope(principal, "medication", "read")

    warning_date = local_now().date() + timedelta(days=ATTENTION_WINDOW_DAYS)
    query = scope_patient_rows(
        db, db.query(Medication), principal, scope,
        Medication.patient_id, Medication.prescribed_by,
    ).filter(
        Medication.status == MedicationStatus.ACTIVE,
        or_(Medication.end_date <= warning_date, func.coalesce(Medication.refills, 0) <= 1),
    )
    medications = query.order_by(Medication.end_date.desc(), Medication.id.desc()).all()

    return success(
        medications=[_serialize(medication) for medication in medications],
        count=len(medications),
    )


@action
def update_medication(db: Session, user_id: Optional[str], medication_id: int, data):
    principal = resolve_principal(db, user_id)
    policy.scope(principal, "medication", "update")
    require_doctor_profile(principal)
    fields = load(MedicationUpdate, data, exclude_unset=True)

    medication = _get_medication(db, medication_id)
    policy.require(principal, "medication", "update", Ownership(doctor_id=medication.prescribed_by))

    changes = {field: value for field, value in fields.items() if value is not None}
    if "status" in changes:
        ensure_transition(MEDICATION_TRANSITIONS, medication.status, changes["status"])
    _check_dates(changes.get("start_date", medication.start_date), changes.get("end_date", medication.end_date))

    for field, value in changes.items():
        setattr(medication, field, value)

    commit(db)
    db.refresh(medication)

    revalidate_path(*PAGES)
    logger.info("medication_updated", medication_id=medication.id, fields=sorted(changes), by=principal.user_id)

    return success(medication=_serialize(medication))


@action
def refill_medication(db: Session, user_id: Optional[str], medication_id: int):
    principal = resolve_principal(db, user_id)

    medication = _get_medication(db, medication_id)
    policy.require(principal, "medication", "refill", _ownership(medication))

    if medication.status != MedicationStatus.ACTIVE:
        raise InvalidTransition("Only active medications can be refilled")
    if (medication.refills or 0) <= 0:
        raise ValidationFailed("No refills available for this medication")

    medication.refills = medication.refills - 1
    commit(db)

    revalidate_path(*PAGES)
    logger.info("medication_refilled", medication_id=medication.id, remaining=medication.refills, by=principal.user_id)

    return success(remaining_refills=medication.refills)


@action
def discontinue_medication(db: Session, user_id: Optional[str], medication_id: int, reason: Optional[str] = None):
    principal = resolve_principal(db, user_id)
    policy.scope(principal, "medication", "discontinue")
    require_doctor_profile(principal)
    fields = load(MedicationDiscontinue, {"reason": reason})

    medication = _get_medication(db, medication_id)
    policy.require(principal, "medication", "discontinue", Ownership(doctor_id=medication.prescribed_by))
    ensure_transition(MEDICATION_TRANSITIONS, medication.status, MedicationStatus.DISCONTINUED)

    medication.status = MedicationStatus.DISCONTINUED
    medication.end_date = local_now().date()
    if fields["reason"]:
        medication.instructions = f"{medication.instructions or ''}\n\nDiscontinued: {fields['reason']}"

    commit(db)
    db.refresh(medication)

    revalidate_path(*PAGES)
    logger.info("medication_discontinued", medication_id=medication.id, reason=fields["reason"], by=principal.user_id)

    return success(medication=_serialize(medication))
