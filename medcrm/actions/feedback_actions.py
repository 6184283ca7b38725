# medcrm/actions/feedback_actions.py
from typing import Optional

import structlog
from sqlalchemy import case, false, func, or_
from sqlalchemy.orm import Session

from medcrm.actions.base import action, commit, dump, load, paginate, success
from medcrm.cache import revalidate_path
from medcrm.errors import NotFound, ValidationFailed
from medcrm.lifecycle import FEEDBACK_TRANSITIONS, ensure_transition
from medcrm.models.all_models import (
    Department, Feedback, FeedbackStatus, FeedbackType, Priority, User, UserRole, local_now,
)
from medcrm.policy import Ownership, Principal, Scope, policy, resolve_principal
from medcrm.schemas.communication import (
    FeedbackAssign, FeedbackCreate, FeedbackResponse, FeedbackUpdate,
)

logger = structlog.get_logger(__name__)

PAGES = ("/feedback", "/dashboard")


def _serialize(item: Feedback, db: Session):
    assignee = db.query(User.name).filter(User.id == item.assigned_to).scalar() if item.assigned_to else None
    return dump(
        FeedbackResponse,
        item,
        patient_name=item.patient.user.name if item.patient else None,
        assigned_to_name=assignee,
    )


def _ownership(item: Feedback) -> Ownership:
    return Ownership(
        patient_id=item.patient_id,
        department_id=item.department_id,
        user_ids=(item.assigned_to,) if item.assigned_to else (),
    )


def _restrict_to_own(query, principal: Principal):
    if principal.patient_id is not None:
        return query.filter(Feedback.patient_id == principal.patient_id)
    if principal.role == UserRole.STAFF:
        visible = [Feedback.assigned_to == principal.user_id]
        if principal.department_id is not None:
            visible.append(Feedback.department_id == principal.department_id)
        return query.filter(or_(*visible))
    return query.filter(false())


def _get_feedback(db: Session, feedback_id: int) -> Feedback:
    item = db.query(Feedback).filter(Feedback.id == feedback_id).first()
    if not item:
        raise NotFound("Feedback not found")
    return item


def _enum_filter(query, column, enum_cls, value, label):
    if not value or value == "all":
        return query
    try:
        return query.filter(column == enum_cls(value))
    except ValueError:
        raise ValidationFailed(f"Invalid {label}: {value}")


@action
def submit_feedback(db: Session, user_id: Optional[str], data):
    principal = resolve_principal(db, user_id)
    policy.require(principal, "feedback", "submit")
    if principal.patient_id is None:
        raise NotFound("Patient profile not found")
    fields = load(FeedbackCreate, data)

    if fields.get("department_id") is not None:
        if not db.query(Department.id).filter(Department.id == fields["department_id"]).first():
            raise NotFound("Department not found")

    item = Feedback(
        patient_id=principal.patient_id,
        type=fields["type"],
        subject=fields["subject"],
        message=fields["message"],
        priority=fields.get("priority") or Priority.NORMAL,
        status=FeedbackStatus.OPEN,
        department_id=fields.get("department_id"),
    )
    db.add(item)
    commit(db)
    db.refresh(item)

    revalidate_path(*PAGES)
    logger.info("feedback_submitted", feedback_id=item.id, patient_id=principal.patient_id, type=item.type.value)

    return success(feedback=_serialize(item, db))


@action
def get_feedback(
    db: Session,
    user_id: Optional[str],
    page: int = 1,
    limit: int = 20,
    status: Optional[str] = None,
    type: Optional[str] = None,
    priority: Optional[str] = None,
):
    principal = resolve_principal(db, user_id)
    scope = policy.scope(principal, "feedback", "read")

    query = db.query(Feedback)
    if scope == Scope.OWN:
        query = _restrict_to_own(query, principal)

    query = _enum_filter(query, Feedback.status, FeedbackStatus, status, "status")
    query = _enum_filter(query, Feedback.type, FeedbackType, type, "type")
    query = _enum_filter(query, Feedback.priority, Priority, priority, "priority")

    items, pagination = paginate(query.order_by(Feedback.created_at.desc(), Feedback.id.desc()), page, limit)

    return success(
        feedback=[_serialize(item, db) for item in items],
        pagination=pagination,
    )


@action
def get_feedback_details(db: Session, user_id: Optional[str], feedback_id: int):
    principal = resolve_principal(db, user_id)

    item = _get_feedback(db, feedback_id)
    policy.require(principal, "feedback", "read", _ownership(item))

    return success(feedback=_serialize(item, db))


@action
def update_feedback(db: Session, user_id: Optional[str], feedback_id: int, data):
    principal = resolve_principal(db, user_id)
    policy.require(principal, "feedback", "update")
    fields = load(FeedbackUpdate, data, exclude_unset=True)

    item = _get_feedback(db, feedback_id)
    # status is required on the row; response and rating may be cleared
    changes = {field: value for field, value in fields.items() if value is not None or field != "status"}

    if "status" in changes:
        ensure_transition(FEEDBACK_TRANSITIONS, item.status, changes["status"])

    for field, value in changes.items():
        setattr(item, field, value)

    if changes.get("response"):
        item.responded_by = principal.user_id
        item.responded_at = local_now()

    commit(db)
    db.refresh(item)

    revalidate_path(*PAGES)
    logger.info("feedback_updated", feedback_id=item.id, fields=sorted(changes), by=principal.user_id)

    return success(feedback=_serialize(item, db))


@action
def assign_feedback(db: Session, user_id: Optional[str], feedback_id: int, assigned_to: str):
    principal = resolve_principal(db, user_id)
    policy.require(principal, "feedback", "assign")
    fields = load(FeedbackAssign, {"assigned_to": assigned_to})

    assignee = db.query(User).filter(User.id == fields["assigned_to"]).first()
    if not assignee or assignee.role != UserRole.STAFF:
        raise ValidationFailed("Assigned user must be a staff member")

    item = _get_feedback(db, feedback_id)
    ensure_transition(FEEDBACK_TRANSITIONS, item.status, FeedbackStatus.IN_PROGRESS)

    item.assigned_to = assignee.id
    item.status = FeedbackStatus.IN_PROGRESS
    commit(db)
    db.refresh(item)

    revalidate_path("/feedback")
    logger.info("feedback_assigned", feedback_id=item.id, assigned_to=assignee.id, by=principal.user_id)

    return success(feedback=_serialize(item, db))


@action
def get_feedback_statistics(db: Session, user_id: Optional[str]):
    principal = resolve_principal(db, user_id)
    scope = policy.scope(principal, "feedback", "read")

    def count_where(condition):
        return func.count(case((condition, 1)))

    query = db.query(
        func.count(Feedback.id).label("total"),
        count_where(Feedback.status == FeedbackStatus.OPEN).label("open"),
        count_where(Feedback.status == FeedbackStatus.IN_PROGRESS).label("in_progress"),
        count_where(Feedback.status == FeedbackStatus.RESOLVED).label("resolved"),
        count_where(Feedback.status == FeedbackStatus.CLOSED).label("closed"),
        count_where(Feedback.priority == Priority.URGENT).label("urgent"),
        func.avg(Feedback.rating).label("avg_rating"),
    )
    if scope == Scope.OWN:
        query = _restrict_to_own(query, principal)

    row = query.one()
    statistics = {
        "total": row.total or 0,
        "open": row.open or 0,
        "in_progress": row.in_progress or 0,
        "resolved": row.resolved or 0,
        "closed": row.closed or 0,
        "urgent": row.urgent or 0,
        "avg_rating": round(float(row.avg_rating), 2) if row.avg_rating is not None else None,
    }

    return success(statistics=statistics)
