# medcrm/actions/department_actions.py
from typing import Optional

import structlog
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from medcrm.actions.base import action, commit, dump, like, load, paginate, success
from medcrm.cache import revalidate_path
from medcrm.errors import Conflict, NotFound, ValidationFailed
from medcrm.models.all_models import Department, Doctor, User, UserRole
from medcrm.policy import policy, resolve_principal
from medcrm.schemas.staff import DepartmentCreate, DepartmentResponse, DepartmentUpdate

logger = structlog.get_logger(__name__)

PAGE = "/admin/departments"
NAME_TAKEN = "Department with this name already exists"


def _doctor_counts(db: Session):
    return (
        db.query(Doctor.department_id, func.count(Doctor.id).label("doctor_count"))
        .group_by(Doctor.department_id)
        .subquery()
    )


def _serialize(department: Department, doctor_count: int = 0):
    return dump(
        DepartmentResponse,
        department,
        head_doctor_name=department.head_doctor.name if department.head_doctor else None,
        doctor_count=doctor_count or 0,
    )


def _get_department(db: Session, department_id: int) -> Department:
    department = db.query(Department).filter(Department.id == department_id).first()
    if not department:
        raise NotFound("Department not found")
    return department


def _ensure_name_free(db: Session, name: str, exclude_id: Optional[int] = None) -> None:
    query = db.query(Department.id).filter(func.lower(Department.name) == name.strip().lower())
    if exclude_id is not None:
        query = query.filter(Department.id != exclude_id)
    if query.first():
        raise Conflict(NAME_TAKEN)


def _ensure_head_doctor(db: Session, head_doctor_id: Optional[str]) -> None:
    if head_doctor_id is None:
        return
    head = db.query(User).filter(User.id == head_doctor_id).first()
    if not head:
        raise NotFound("Head doctor not found")
    if head.role != UserRole.DOCTOR:
        raise ValidationFailed("Head of department must be a doctor")


@action
def create_department(db: Session, user_id: Optional[str], data):
    principal = resolve_principal(db, user_id)
    policy.require(principal, "department", "manage")
    fields = load(DepartmentCreate, data)

    _ensure_name_free(db, fields["name"])
    _ensure_head_doctor(db, fields.get("head_doctor_id"))

    department = Department(
        name=fields["name"].strip(),
        description=fields.get("description"),
        head_doctor_id=fields.get("head_doctor_id"),
    )
    db.add(department)
    commit(db, NAME_TAKEN)
    db.refresh(department)

    revalidate_path(PAGE)
    logger.info("department_created", department_id=department.id, by=principal.user_id)

    return success(department=_serialize(department))


@action
def get_departments(
    db: Session,
    user_id: Optional[str],
    page: int = 1,
    limit: int = 10,
    search: Optional[str] = None,
):
    principal = resolve_principal(db, user_id)
    policy.require(principal, "department", "read")

    counts = _doctor_counts(db)
    query = (
        db.query(Department, counts.c.doctor_count)
        .outerjoin(counts, counts.c.department_id == Department.id)
    )
    if search:
        query = query.filter(or_(
            Department.name.ilike(like(search)),
            Department.description.ilike(like(search)),
        ))

    rows, pagination = paginate(query.order_by(Department.name), page, limit)

    return success(
        departments=[_serialize(department, doctor_count) for department, doctor_count in rows],
        pagination=pagination,
    )


@action
def get_department_details(db: Session, user_id: Optional[str], department_id: int):
    principal = resolve_principal(db, user_id)
    policy.require(principal, "department", "read")

    department = _get_department(db, department_id)
    doctor_count = db.query(func.count(Doctor.id)).filter(
        Doctor.department_id == department.id
    ).scalar()

    return success(department=_serialize(department, doctor_count))


@action
def update_department(db: Session, user_id: Optional[str], department_id: int, data):
    principal = resolve_principal(db, user_id)
    policy.require(principal, "department", "manage")
    fields = load(DepartmentUpdate, data, exclude_unset=True)

    department = _get_department(db, department_id)
    if fields.get("name"):
        _ensure_name_free(db, fields["name"], exclude_id=department.id)
        fields["name"] = fields["name"].strip()
    if "head_doctor_id" in fields:
        _ensure_head_doctor(db, fields["head_doctor_id"])

    for field, value in fields.items():
        if value is not None or field in ("description", "head_doctor_id"):
            setattr(department, field, value)

    commit(db, NAME_TAKEN)
    db.refresh(department)

    revalidate_path(PAGE)
    logger.info("department_updated", department_id=department.id, fields=sorted(fields), by=principal.user_id)

    return success(department=_serialize(department))


@action
def delete_department(db: Session, user_id: Optional[str], department_id: int):
    principal = resolve_principal(db, user_id)
    policy.require(principal, "department", "manage")

    department = _get_department(db, department_id)
    if db.query(Doctor.id).filter(Doctor.department_id == department.id).first():
        raise Conflict("Cannot delete department with assigned doctors. Please reassign doctors first.")

    db.delete(department)
    commit(db, "Department has related records and cannot be deleted")

    revalidate_path(PAGE)
    logger.info("department_deleted", department_id=department_id, by=principal.user_id)

    return success()
