# medcrm/actions/lab_actions.py
from typing import Optional

import structlog
from sqlalchemy import func
from sqlalchemy.orm import Session

from medcrm.actions.base import action, commit, dump, load, paginate, success
from medcrm.actions.medical_actions import (
    check_appointment_link, get_patient, patient_and_doctor_names,
    require_doctor_profile, scope_patient_rows,
)
from medcrm.cache import revalidate_path
from medcrm.errors import NotFound, ValidationFailed
from medcrm.lifecycle import LAB_RESULT_TRANSITIONS, ensure_transition
from medcrm.models.all_models import LabResult, LabResultStatus, local_now
from medcrm.policy import Ownership, policy, resolve_principal
from medcrm.schemas.clinical import LabResultCreate, LabResultResponse, LabResultUpdate

logger = structlog.get_logger(__name__)

PAGES = ("/lab-results",)

# Tests still waiting on a doctor: not yet run, or run but not reviewed
OPEN_STATUSES = (LabResultStatus.PENDING, LabResultStatus.COMPLETED)


def _serialize(result: LabResult):
    return dump(LabResultResponse, result, **patient_and_doctor_names(result))


def _get_result(db: Session, result_id: int) -> LabResult:
    result = db.query(LabResult).filter(LabResult.id == result_id).first()
    if not result:
        raise NotFound("Lab result not found")
    return result


@action
def order_lab_test(db: Session, user_id: Optional[str], data):
    principal = resolve_principal(db, user_id)
    policy.require(principal, "lab_result", "order")
    doctor_id = require_doctor_profile(principal)
    fields = load(LabResultCreate, data)

    patient = get_patient(db, fields["patient_id"])
    check_appointment_link(db, fields.get("appointment_id"), patient.id, doctor_id)

    result = LabResult(
        patient_id=patient.id,
        doctor_id=doctor_id,
        appointment_id=fields.get("appointment_id"),
        test_name=fields["test_name"],
        test_category=fields["test_category"],
        test_date=fields["test_date"],
        status=LabResultStatus.PENDING,
    )
    db.add(result)
    commit(db)
    db.refresh(result)

    revalidate_path(*PAGES)
    logger.info("lab_test_ordered", result_id=result.id, patient_id=patient.id, doctor_id=doctor_id)

    return success(lab_result=_serialize(result))


@action
def get_lab_results(
    db: Session,
    user_id: Optional[str],
    patient_id: Optional[int] = None,
    page: int = 1,
    limit: int = 20,
    status: Optional[str] = None,
):
    principal = resolve_principal(db, user_id)
    scope = policy.scope(principal, "lab_result", "read")

    query = scope_patient_rows(
        db, db.query(LabResult), principal, scope,
        LabResult.patient_id, LabResult.doctor_id, patient_id,
        denied="Access denied to patient lab results",
    )
    if status:
        try:
            query = query.filter(LabResult.status == LabResultStatus(status))
        except ValueError:
            raise ValidationFailed(f"Invalid lab result status: {status}")

    results, pagination = paginate(query.order_by(LabResult.test_date.desc(), LabResult.id.desc()), page, limit)

    return success(
        lab_results=[_serialize(result) for result in results],
        pagination=pagination,
    )


@action
def get_lab_result_details(db: Session, user_id: Optional[str], result_id: int):
    principal = resolve_principal(db, user_id)

    result = _get_result(db, result_id)
    policy.require(
        principal, "lab_result", "read",
        Ownership(patient_id=result.patient_id, doctor_id=result.doctor_id),
    )

    return success(lab_result=_serialize(result))


@action
def update_lab_result(db: Session, user_id: Optional[str], result_id: int, data):
    principal = resolve_principal(db, user_id)
    fields = load(LabResultUpdate, data, exclude_unset=True)

    result = _get_result(db, result_id)
    policy.require(principal, "lab_result", "update", Ownership(doctor_id=result.doctor_id))

    changes = {field: value for field, value in fields.items() if value is not None}
    new_status = changes.get("status")
    if new_status is not None:
        ensure_transition(LAB_RESULT_TRANSITIONS, result.status, new_status)

    for field, value in changes.items():
        setattr(result, field, value)

    if new_status == LabResultStatus.REVIEWED:
        # reviewed_by points at doctors; staff and admin reviews leave it empty
        result.reviewed_by = principal.doctor_id
        result.reviewed_at = local_now()
    if new_status == LabResultStatus.COMPLETED and result.result_date is None:
        result.result_date = local_now().date()

    commit(db)
    db.refresh(result)

    revalidate_path(*PAGES)
    logger.info("lab_result_updated", result_id=result.id, fields=sorted(changes), by=principal.user_id)

    return success(lab_result=_serialize(result))


@action
def get_pending_lab_results_count(db: Session, user_id: Optional[str]):
    principal = resolve_principal(db, user_id)
    policy.scope(principal, "lab_result", "pending_count")
    doctor_id = require_doctor_profile(principal)

    count = db.query(func.count(LabResult.id)).filter(
        LabResult.doctor_id == doctor_id,
        LabResult.status.in_(OPEN_STATUSES),
    ).scalar()

    return success(count=count or 0)
