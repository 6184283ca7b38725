# medcrm/actions/user_actions.py
from typing import Optional

import structlog
from sqlalchemy import or_
from sqlalchemy.orm import Session

from medcrm.actions.base import action, commit, dump, like, load, paginate, success
from medcrm.cache import revalidate_path
from medcrm.errors import Conflict, Forbidden, NotFound, ValidationFailed
from medcrm.models.all_models import Doctor, Patient, Staff, User, UserRole, local_now
from medcrm.policy import policy, resolve_principal
from medcrm.schemas.patient import PatientResponse
from medcrm.schemas.staff import DoctorResponse, StaffResponse
from medcrm.schemas.user import UserBan, UserCreate, UserResponse, UserUpdate
from medcrm.utils.auth import hash_password

logger = structlog.get_logger(__name__)

PATIENT_FIELDS = (
    "date_of_birth", "gender", "phone", "address", "emergency_contact",
    "emergency_phone", "blood_type", "allergies", "medical_history",
    "insurance_provider", "insurance_number",
)
DOCTOR_FIELDS = (
    "license_number", "specialty", "department_id", "years_of_experience",
    "education", "certifications", "consultation_fee",
)
STAFF_FIELDS = (
    "employee_id", "position", "department_id", "hire_date", "salary", "supervisor_id",
)


# ================================
# SHARED ACCOUNT HELPERS
# ================================

def create_account(db: Session, name: str, email: str, password: str, role: UserRole) -> User:
    """Add a users row after checking the email is free; the caller commits."""
    email = email.strip().lower()
    if db.query(User.id).filter(User.email == email).first():
        raise Conflict("Email already registered")

    account = User(
        name=name.strip(),
        email=email,
        password=hash_password(password),
        role=role,
        email_verified=False,
        banned=False,
    )
    db.add(account)
    db.flush()
    return account


def update_account(db: Session, account: User, fields: dict) -> None:
    """Apply name/email changes shared by the user, patient, doctor and staff updates."""
    email = fields.get("email")
    if email:
        email = email.strip().lower()
        taken = db.query(User.id).filter(User.email == email, User.id != account.id).first()
        if taken:
            raise Conflict("Email already registered")
        account.email = email
    if fields.get("name"):
        account.name = fields["name"].strip()


def ensure_unique_license(db: Session, license_number: str, exclude_id: Optional[int] = None) -> None:
    query = db.query(Doctor.id).filter(Doctor.license_number == license_number)
    if exclude_id is not None:
        query = query.filter(Doctor.id != exclude_id)
    if query.first():
        raise Conflict("License number already exists")


def ensure_unique_employee_id(db: Session, employee_id: str, exclude_id: Optional[int] = None) -> None:
    query = db.query(Staff.id).filter(Staff.employee_id == employee_id)
    if exclude_id is not None:
        query = query.filter(Staff.id != exclude_id)
    if query.first():
        raise Conflict("Employee ID already exists")


def _pick(fields: dict, names) -> dict:
    return {name: fields[name] for name in names if fields.get(name) is not None}


def _profile(account: User):
    if account.role == UserRole.PATIENT and account.patient_profile:
        return dump(PatientResponse, account.patient_profile)
    if account.role == UserRole.DOCTOR and account.doctor_profile:
        return dump(DoctorResponse, account.doctor_profile)
    if account.role == UserRole.STAFF and account.staff_profile:
        return dump(StaffResponse, account.staff_profile)
    return None


def _get_user(db: Session, target_id: str) -> User:
    account = db.query(User).filter(User.id == target_id).first()
    if not account:
        raise NotFound("User not found")
    return account


# ================================
# USER ACTIONS
# ================================

@action
def create_user(db: Session, user_id: Optional[str], data):
    """Create an account of any role, with its profile row when the profile fields are present."""
    principal = resolve_principal(db, user_id)
    policy.require(principal, "user", "manage")
    fields = load(UserCreate, data)
    role = UserRole(fields["role"])

    account = create_account(db, fields["name"], fields["email"], fields["password"], role)

    if role == UserRole.PATIENT:
        db.add(Patient(user_id=account.id, **_pick(fields, PATIENT_FIELDS)))
    elif role == UserRole.DOCTOR and fields.get("license_number") and fields.get("specialty"):
        ensure_unique_license(db, fields["license_number"])
        db.add(Doctor(user_id=account.id, **_pick(fields, DOCTOR_FIELDS)))
    elif role == UserRole.STAFF and fields.get("employee_id") and fields.get("position") and fields.get("hire_date"):
        ensure_unique_employee_id(db, fields["employee_id"])
        db.add(Staff(user_id=account.id, **_pick(fields, STAFF_FIELDS)))

    commit(db, "User could not be created: duplicate data")
    db.refresh(account)

    revalidate_path("/admin")
    logger.info("user_created", target=account.id, role=role.value, by=principal.user_id)

    return success(user=dump(UserResponse, account), profile=_profile(account))


@action
def get_users(
    db: Session,
    user_id: Optional[str],
    page: int = 1,
    limit: int = 20,
    search: Optional[str] = None,
    role: Optional[str] = None,
):
    principal = resolve_principal(db, user_id)
    policy.require(principal, "user", "manage")

    query = db.query(User)
    if search:
        query = query.filter(or_(User.name.ilike(like(search)), User.email.ilike(like(search))))
    if role:
        try:
            query = query.filter(User.role == UserRole(role))
        except ValueError:
            raise ValidationFailed(f"Invalid role: {role}")

    users, pagination = paginate(query.order_by(User.created_at.desc()), page, limit)

    return success(
        users=[dump(UserResponse, account) for account in users],
        pagination=pagination,
    )


@action
def get_user_details(db: Session, user_id: Optional[str], target_user_id: str):
    principal = resolve_principal(db, user_id)
    policy.require(principal, "user", "manage")

    account = _get_user(db, target_user_id)
    return success(user=dump(UserResponse, account), profile=_profile(account))


@action
def update_user(db: Session, user_id: Optional[str], target_user_id: str, data):
    principal = resolve_principal(db, user_id)
    policy.require(principal, "user", "manage")
    fields = load(UserUpdate, data, exclude_unset=True)

    account = _get_user(db, target_user_id)
    update_account(db, account, fields)
    if fields.get("role") is not None:
        account.role = UserRole(fields["role"])

    commit(db, "Email already registered")
    db.refresh(account)

    revalidate_path("/admin")
    logger.info("user_updated", target=account.id, fields=sorted(fields), by=principal.user_id)

    return success(user=dump(UserResponse, account))


@action
def toggle_user_ban(
    db: Session,
    user_id: Optional[str],
    target_user_id: str,
    banned: bool,
    reason: Optional[str] = None,
):
    principal = resolve_principal(db, user_id)
    policy.require(principal, "user", "manage")
    fields = load(UserBan, {"banned": banned, "reason": reason})

    if target_user_id == principal.user_id:
        raise Forbidden("You cannot ban your own account")

    account = _get_user(db, target_user_id)
    account.banned = fields["banned"]
    account.ban_reason = fields["reason"] if fields["banned"] else None
    account.updated_at = local_now()
    commit(db)

    revalidate_path("/admin")
    logger.info("user_ban_toggled", target=account.id, banned=account.banned, by=principal.user_id)

    return success(user=dump(UserResponse, account))


@action
def delete_user(db: Session, user_id: Optional[str], target_user_id: str):
    principal = resolve_principal(db, user_id)
    policy.require(principal, "user", "manage")

    if target_user_id == principal.user_id:
        raise Forbidden("You cannot delete your own account")

    account = _get_user(db, target_user_id)
    db.delete(account)
    commit(db, "User has related records and cannot be deleted")

    revalidate_path("/admin")
    logger.info("user_deleted", target=target_user_id, by=principal.user_id)

    return success()
