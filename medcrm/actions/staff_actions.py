# medcrm/actions/staff_actions.py
from typing import Optional

import structlog
from sqlalchemy import or_
from sqlalchemy.orm import Session

from medcrm.actions.base import action, commit, dump, like, load, paginate, success
from medcrm.actions.user_actions import (
    STAFF_FIELDS, create_account, ensure_unique_employee_id, update_account,
)
from medcrm.cache import revalidate_path
from medcrm.errors import NotFound
from medcrm.models.all_models import Department, Staff, User, UserRole
from medcrm.policy import policy, resolve_principal
from medcrm.schemas.staff import StaffCreate, StaffResponse, StaffUpdate

logger = structlog.get_logger(__name__)

PAGE = "/admin/staffs"


def _serialize(member: Staff):
    return dump(
        StaffResponse,
        member,
        name=member.user.name,
        email=member.user.email,
        banned=bool(member.user.banned),
        department_name=member.department.name if member.department else None,
        supervisor_name=member.supervisor.name if member.supervisor else None,
    )


def _get_staff(db: Session, staff_id: int) -> Staff:
    member = db.query(Staff).filter(Staff.id == staff_id).first()
    if not member:
        raise NotFound("Staff member not found")
    return member


def _check_references(db: Session, fields: dict) -> None:
    if fields.get("department_id") is not None:
        if not db.query(Department.id).filter(Department.id == fields["department_id"]).first():
            raise NotFound("Department not found")
    if fields.get("supervisor_id") is not None:
        if not db.query(User.id).filter(User.id == fields["supervisor_id"]).first():
            raise NotFound("Supervisor not found")


@action
def create_staff(db: Session, user_id: Optional[str], data):
    principal = resolve_principal(db, user_id)
    policy.require(principal, "staff", "manage")
    fields = load(StaffCreate, data)

    ensure_unique_employee_id(db, fields["employee_id"])
    _check_references(db, fields)

    account = create_account(db, fields["name"], fields["email"], fields["password"], UserRole.STAFF)
    member = Staff(
        user_id=account.id,
        **{name: fields[name] for name in STAFF_FIELDS if fields.get(name) is not None},
    )
    db.add(member)
    commit(db, "Employee ID already exists")
    db.refresh(member)

    revalidate_path(PAGE)
    logger.info("staff_created", staff_id=member.id, by=principal.user_id)

    return success(staff=_serialize(member))


@action
def get_staff_members(
    db: Session,
    user_id: Optional[str],
    page: int = 1,
    limit: int = 10,
    search: Optional[str] = None,
):
    principal = resolve_principal(db, user_id)
    policy.require(principal, "staff", "manage")

    query = db.query(Staff).join(User, Staff.user_id == User.id)
    if search:
        query = query.filter(or_(
            User.name.ilike(like(search)),
            User.email.ilike(like(search)),
            Staff.employee_id.ilike(like(search)),
            Staff.position.ilike(like(search)),
        ))

    members, pagination = paginate(query.order_by(Staff.created_at.desc()), page, limit)

    return success(
        staff=[_serialize(member) for member in members],
        pagination=pagination,
    )


@action
def get_staff_details(db: Session, user_id: Optional[str], staff_id: int):
    principal = resolve_principal(db, user_id)
    policy.require(principal, "staff", "manage")

    return success(staff=_serialize(_get_staff(db, staff_id)))


@action
def update_staff(db: Session, user_id: Optional[str], staff_id: int, data):
    principal = resolve_principal(db, user_id)
    policy.require(principal, "staff", "manage")
    fields = load(StaffUpdate, data, exclude_unset=True)

    member = _get_staff(db, staff_id)
    if fields.get("employee_id") and fields["employee_id"] != member.employee_id:
        ensure_unique_employee_id(db, fields["employee_id"], exclude_id=member.id)
    _check_references(db, fields)

    update_account(db, member.user, fields)
    for field, value in fields.items():
        if field in STAFF_FIELDS and value is not None:
            setattr(member, field, value)

    commit(db, "Employee ID already exists")
    db.refresh(member)

    revalidate_path(PAGE)
    logger.info("staff_updated", staff_id=member.id, fields=sorted(fields), by=principal.user_id)

    return success(staff=_serialize(member))


@action
def delete_staff(db: Session, user_id: Optional[str], staff_id: int):
    principal = resolve_principal(db, user_id)
    policy.require(principal, "staff", "manage")

    member = _get_staff(db, staff_id)
    db.delete(member.user)
    commit(db, "Staff member has related records and cannot be deleted")

    revalidate_path(PAGE)
    logger.info("staff_deleted", staff_id=staff_id, by=principal.user_id)

    return success()
