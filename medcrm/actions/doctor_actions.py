# medcrm/actions/doctor_actions.py
from typing import Optional

import structlog
from sqlalchemy import false, func, or_
from sqlalchemy.orm import Session

from medcrm.actions.base import action, commit, dump, like, load, paginate, success
from medcrm.actions.user_actions import (
    DOCTOR_FIELDS, create_account, ensure_unique_license, update_account,
)
from medcrm.cache import revalidate_path
from medcrm.errors import NotFound
from medcrm.models.all_models import (
    Appointment, Department, Doctor, User, UserRole,
)
from medcrm.policy import policy, resolve_principal
from medcrm.schemas.staff import DoctorCreate, DoctorResponse, DoctorUpdate

logger = structlog.get_logger(__name__)

PAGE = "/admin/doctors"


def _serialize(doctor: Doctor, **extra):
    return dump(
        DoctorResponse,
        doctor,
        name=doctor.user.name,
        email=doctor.user.email,
        banned=bool(doctor.user.banned),
        department_name=doctor.department.name if doctor.department else None,
        **extra,
    )


def _booking_view(doctor: Doctor):
    # Only what a booking page shows; no license or account data
    return {
        "id": doctor.id,
        "user_id": doctor.user_id,
        "name": doctor.user.name,
        "specialty": doctor.specialty,
        "department_id": doctor.department_id,
        "department_name": doctor.department.name if doctor.department else None,
        "years_of_experience": doctor.years_of_experience,
        "consultation_fee": doctor.consultation_fee,
        "rating": doctor.rating,
    }


def _get_doctor(db: Session, doctor_id: int) -> Doctor:
    doctor = db.query(Doctor).filter(Doctor.id == doctor_id).first()
    if not doctor:
        raise NotFound("Doctor not found")
    return doctor


def _ensure_department(db: Session, department_id: Optional[int]) -> None:
    if department_id is None:
        return
    if not db.query(Department.id).filter(Department.id == department_id).first():
        raise NotFound("Department not found")


@action
def create_doctor(db: Session, user_id: Optional[str], data):
    principal = resolve_principal(db, user_id)
    policy.require(principal, "doctor", "manage")
    fields = load(DoctorCreate, data)

    ensure_unique_license(db, fields["license_number"])
    _ensure_department(db, fields.get("department_id"))

    account = create_account(db, fields["name"], fields["email"], fields["password"], UserRole.DOCTOR)
    doctor = Doctor(
        user_id=account.id,
        **{name: fields[name] for name in DOCTOR_FIELDS if fields.get(name) is not None},
    )
    db.add(doctor)
    commit(db, "License number already exists")
    db.refresh(doctor)

    revalidate_path(PAGE)
    logger.info("doctor_created", doctor_id=doctor.id, by=principal.user_id)

    return success(doctor=_serialize(doctor))


@action
def get_doctors(
    db: Session,
    user_id: Optional[str],
    page: int = 1,
    limit: int = 10,
    search: Optional[str] = None,
):
    principal = resolve_principal(db, user_id)
    policy.require(principal, "doctor", "manage")

    query = db.query(Doctor).join(User, Doctor.user_id == User.id)
    if search:
        query = query.filter(or_(
            User.name.ilike(like(search)),
            User.email.ilike(like(search)),
            Doctor.specialty.ilike(like(search)),
            Doctor.license_number.ilike(like(search)),
        ))

    doctors, pagination = paginate(query.order_by(Doctor.created_at.desc()), page, limit)

    return success(
        doctors=[_serialize(doctor) for doctor in doctors],
        pagination=pagination,
    )


@action
def get_available_doctors_for_booking(
    db: Session,
    user_id: Optional[str],
    page: int = 1,
    limit: int = 50,
    search: Optional[str] = None,
    department_id: Optional[int] = None,
    specialty: Optional[str] = None,
):
    """Doctors a signed-in user may book with: doctor accounts that are not banned."""
    principal = resolve_principal(db, user_id)
    policy.require(principal, "doctor", "browse")

    query = db.query(Doctor).join(User, Doctor.user_id == User.id).filter(
        User.role == UserRole.DOCTOR,
        or_(User.banned.is_(None), User.banned == false()),
    )
    if search:
        query = query.filter(or_(
            User.name.ilike(like(search)),
            Doctor.specialty.ilike(like(search)),
        ))
    if department_id is not None:
        query = query.filter(Doctor.department_id == department_id)
    if specialty:
        query = query.filter(Doctor.specialty.ilike(like(specialty)))

    doctors, pagination = paginate(query.order_by(User.name), page, limit)

    return success(
        doctors=[_booking_view(doctor) for doctor in doctors],
        pagination=pagination,
    )


@action
def get_doctor_details(db: Session, user_id: Optional[str], doctor_id: int):
    principal = resolve_principal(db, user_id)
    policy.require(principal, "doctor", "manage")

    doctor = _get_doctor(db, doctor_id)
    appointment_count = db.query(func.count(Appointment.id)).filter(
        Appointment.doctor_id == doctor.id
    ).scalar()

    return success(doctor=_serialize(doctor, appointment_count=appointment_count or 0))


@action
def update_doctor(db: Session, user_id: Optional[str], doctor_id: int, data):
    principal = resolve_principal(db, user_id)
    policy.require(principal, "doctor", "manage")
    fields = load(DoctorUpdate, data, exclude_unset=True)

    doctor = _get_doctor(db, doctor_id)
    if fields.get("license_number") and fields["license_number"] != doctor.license_number:
        ensure_unique_license(db, fields["license_number"], exclude_id=doctor.id)
    if "department_id" in fields:
        _ensure_department(db, fields["department_id"])

    update_account(db, doctor.user, fields)
    for field, value in fields.items():
        if field in DOCTOR_FIELDS and (value is not None or field == "department_id"):
            setattr(doctor, field, value)

    commit(db, "License number already exists")
    db.refresh(doctor)

    revalidate_path(PAGE)
    logger.info("doctor_updated", doctor_id=doctor.id, fields=sorted(fields), by=principal.user_id)

    return success(doctor=_serialize(doctor))


@action
def delete_doctor(db: Session, user_id: Optional[str], doctor_id: int):
    principal = resolve_principal(db, user_id)
    policy.require(principal, "doctor", "manage")

    doctor = _get_doctor(db, doctor_id)
    db.delete(doctor.user)
    commit(db, "Doctor has related records and cannot be deleted")

    revalidate_path(PAGE)
    logger.info("doctor_deleted", doctor_id=doctor_id, by=principal.user_id)

    return success()
