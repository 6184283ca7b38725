# medcrm/actions/assignment_actions.py
"""
Standing patient-doctor assignments managed by admins.

Unassigning only deactivates the row, so the history of who looked after a
patient survives; at most one active row exists per patient-doctor pair.
"""
from typing import Optional

import structlog
from sqlalchemy.orm import Session, aliased

from medcrm.actions.base import action, commit, dump, load, paginate, success
from medcrm.actions.medical_actions import get_patient
from medcrm.cache import revalidate_path
from medcrm.errors import Conflict, NotFound
from medcrm.models.all_models import Doctor, Patient, PatientDoctorAssignment, User
from medcrm.policy import policy, resolve_principal
from medcrm.schemas.patient import AssignmentCreate, AssignmentResponse

logger = structlog.get_logger(__name__)

PAGES = ("/admin/assignments", "/admin/doctors", "/admin/patients", "/doctor/patients")
ALREADY_ASSIGNED = "Patient is already assigned to this doctor"


def _active_assignment(db: Session, patient_id: int, doctor_id: int) -> Optional[PatientDoctorAssignment]:
    return db.query(PatientDoctorAssignment).filter(
        PatientDoctorAssignment.patient_id == patient_id,
        PatientDoctorAssignment.doctor_id == doctor_id,
        PatientDoctorAssignment.is_active.is_(True),
    ).first()


def assignments_with_parties(db: Session):
    patient_user = aliased(User)
    doctor_user = aliased(User)
    return (
        db.query(
            PatientDoctorAssignment,
            patient_user.name.label("patient_name"),
            patient_user.email.label("patient_email"),
            doctor_user.name.label("doctor_name"),
            doctor_user.email.label("doctor_email"),
            Doctor.specialty.label("doctor_specialty"),
        )
        .join(Patient, PatientDoctorAssignment.patient_id == Patient.id)
        .join(patient_user, Patient.user_id == patient_user.id)
        .join(Doctor, PatientDoctorAssignment.doctor_id == Doctor.id)
        .join(doctor_user, Doctor.user_id == doctor_user.id)
        .filter(PatientDoctorAssignment.is_active.is_(True))
    )


def _serialize(row):
    return dump(
        AssignmentResponse,
        row.PatientDoctorAssignment,
        patient_name=row.patient_name,
        patient_email=row.patient_email,
        doctor_name=row.doctor_name,
        doctor_email=row.doctor_email,
        doctor_specialty=row.doctor_specialty,
    )


@action
def assign_patient_to_doctor(
    db: Session,
    user_id: Optional[str],
    patient_id: int,
    doctor_id: int,
    notes: Optional[str] = None,
):
    principal = resolve_principal(db, user_id)
    policy.require(principal, "assignment", "manage")
    fields = load(AssignmentCreate, {"patient_id": patient_id, "doctor_id": doctor_id, "notes": notes})

    get_patient(db, fields["patient_id"])
    if not db.query(Doctor.id).filter(Doctor.id == fields["doctor_id"]).first():
        raise NotFound("Doctor not found")
    if _active_assignment(db, fields["patient_id"], fields["doctor_id"]):
        raise Conflict(ALREADY_ASSIGNED)

    assignment = PatientDoctorAssignment(
        patient_id=fields["patient_id"],
        doctor_id=fields["doctor_id"],
        assigned_by=principal.user_id,
        notes=fields["notes"],
        is_active=True,
    )
    db.add(assignment)
    commit(db, ALREADY_ASSIGNED)

    revalidate_path(*PAGES)
    logger.info(
        "patient_assigned",
        assignment_id=assignment.id,
        patient_id=assignment.patient_id,
        doctor_id=assignment.doctor_id,
        by=principal.user_id,
    )

    row = assignments_with_parties(db).filter(PatientDoctorAssignment.id == assignment.id).first()
    return success(assignment=_serialize(row))


@action
def unassign_patient_from_doctor(db: Session, user_id: Optional[str], patient_id: int, doctor_id: int):
    principal = resolve_principal(db, user_id)
    policy.require(principal, "assignment", "manage")

    assignment = _active_assignment(db, patient_id, doctor_id)
    if not assignment:
        raise NotFound("Patient is not assigned to this doctor")

    assignment.is_active = False
    commit(db)

    revalidate_path(*PAGES)
    logger.info("patient_unassigned", assignment_id=assignment.id, by=principal.user_id)

    return success()


@action
def get_doctor_assigned_patients(db: Session, user_id: Optional[str], doctor_id: int):
    principal = resolve_principal(db, user_id)
    policy.require(principal, "assignment", "read")

    rows = (
        assignments_with_parties(db)
        .filter(PatientDoctorAssignment.doctor_id == doctor_id)
        .order_by(PatientDoctorAssignment.assigned_at, PatientDoctorAssignment.id)
        .all()
    )

    return success(assignments=[_serialize(row) for row in rows])


@action
def get_patient_assigned_doctors(db: Session, user_id: Optional[str], patient_id: int):
    principal = resolve_principal(db, user_id)
    policy.require(principal, "assignment", "read")

    rows = (
        assignments_with_parties(db)
        .filter(PatientDoctorAssignment.patient_id == patient_id)
        .order_by(PatientDoctorAssignment.assigned_at, PatientDoctorAssignment.id)
        .all()
    )

    return success(assignments=[_serialize(row) for row in rows])


@action
def get_all_patient_doctor_assignments(db: Session, user_id: Optional[str], page: int = 1, limit: int = 50):
    principal = resolve_principal(db, user_id)
    policy.require(principal, "assignment", "read")

    query = assignments_with_parties(db).order_by(
        PatientDoctorAssignment.assigned_at.desc(), PatientDoctorAssignment.id.desc(),
    )
    rows, pagination = paginate(query, page, limit)

    return success(
        assignments=[_serialize(row) for row in rows],
        pagination=pagination,
    )
