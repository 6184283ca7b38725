# medcrm/actions/notification_actions.py
from typing import Optional

import structlog
from sqlalchemy import false, func, or_
from sqlalchemy.orm import Session

from medcrm.actions.base import action, commit, dump, load, paginate, success
from medcrm.cache import revalidate_path
from medcrm.errors import NotFound
from medcrm.models.all_models import Notification, User, local_now
from medcrm.policy import Ownership, policy, resolve_principal
from medcrm.schemas.communication import NotificationCreate, NotificationResponse

logger = structlog.get_logger(__name__)

PAGE = "/notifications"


def _unread(query):
    return query.filter(or_(Notification.is_read.is_(None), Notification.is_read == false()))


def _live(query):
    now = local_now()
    return query.filter(or_(Notification.expires_at.is_(None), Notification.expires_at > now))


@action
def create_notification(db: Session, user_id: Optional[str], data):
    principal = resolve_principal(db, user_id)
    policy.require(principal, "notification", "send")
    fields = load(NotificationCreate, data)

    if not db.query(User.id).filter(User.id == fields["user_id"]).first():
        raise NotFound("Recipient not found")

    notification = Notification(**fields, is_read=False)
    db.add(notification)
    commit(db)
    db.refresh(notification)

    revalidate_path(PAGE)
    logger.info(
        "notification_created",
        notification_id=notification.id,
        recipient=notification.user_id,
        kind=notification.type,
        by=principal.user_id,
    )

    return success(notification=dump(NotificationResponse, notification))


@action
def get_notifications(
    db: Session,
    user_id: Optional[str],
    page: int = 1,
    limit: int = 20,
    unread_only: bool = False,
):
    """The caller's own notifications, newest first; expired ones are left out."""
    principal = resolve_principal(db, user_id)
    policy.scope(principal, "notification", "read")

    query = _live(db.query(Notification).filter(Notification.user_id == principal.user_id))
    if unread_only:
        query = _unread(query)

    rows, pagination = paginate(
        query.order_by(Notification.created_at.desc(), Notification.id.desc()), page, limit,
    )

    return success(
        notifications=[dump(NotificationResponse, row) for row in rows],
        pagination=pagination,
    )


@action
def mark_notification_as_read(db: Session, user_id: Optional[str], notification_id: int):
    principal = resolve_principal(db, user_id)

    notification = db.query(Notification).filter(Notification.id == notification_id).first()
    if not notification:
        raise NotFound("Notification not found or access denied")
    policy.require(principal, "notification", "read", Ownership(user_ids=(notification.user_id,)))

    if not notification.is_read:
        notification.is_read = True
        notification.read_at = local_now()
        commit(db)

    revalidate_path(PAGE)
    return success()


@action
def get_unread_notifications_count(db: Session, user_id: Optional[str]):
    principal = resolve_principal(db, user_id)
    policy.scope(principal, "notification", "read")

    count = _live(_unread(
        db.query(func.count(Notification.id)).filter(Notification.user_id == principal.user_id)
    )).scalar()
    return success(count=count or 0)
