# medcrm/actions/message_actions.py
from typing import Optional

import structlog
from sqlalchemy import false, func, or_
from sqlalchemy.orm import Session, aliased

from medcrm.actions.base import action, commit, dump, load, paginate, success
from medcrm.cache import revalidate_path
from medcrm.errors import NotFound, ValidationFailed
from medcrm.models.all_models import (
    Appointment, Feedback, Message, MessageType, User, local_now,
)
from medcrm.policy import Ownership, policy, resolve_principal
from medcrm.schemas.communication import MessageCreate, MessageResponse

logger = structlog.get_logger(__name__)

PAGE = "/messages"
FOLDERS = ("all", "inbox", "sent")


def messages_with_parties(db: Session):
    """Message rows with sender and recipient names, the users table joined once per party."""
    sender = aliased(User, name="sender")
    recipient = aliased(User, name="recipient")
    return (
        db.query(
            Message,
            sender.name.label("sender_name"),
            recipient.name.label("recipient_name"),
        )
        .outerjoin(sender, Message.sender_id == sender.id)
        .outerjoin(recipient, Message.recipient_id == recipient.id)
    )


def _serialize(row):
    return dump(
        MessageResponse,
        row.Message,
        sender_name=row.sender_name,
        recipient_name=row.recipient_name,
    )


def unread_for(query, user_id: str):
    return query.filter(
        Message.recipient_id == user_id,
        or_(Message.is_read.is_(None), Message.is_read == false()),
    )


@action
def send_message(db: Session, user_id: Optional[str], data):
    principal = resolve_principal(db, user_id)
    policy.require(principal, "message", "send")
    fields = load(MessageCreate, data)

    if not db.query(User.id).filter(User.id == fields["recipient_id"]).first():
        raise NotFound("Recipient not found")
    if fields.get("related_feedback_id") is not None:
        if not db.query(Feedback.id).filter(Feedback.id == fields["related_feedback_id"]).first():
            raise NotFound("Related feedback not found")
    if fields.get("related_appointment_id") is not None:
        if not db.query(Appointment.id).filter(Appointment.id == fields["related_appointment_id"]).first():
            raise NotFound("Related appointment not found")

    message = Message(
        sender_id=principal.user_id,
        recipient_id=fields["recipient_id"],
        subject=fields.get("subject"),
        message=fields["message"],
        type=fields.get("type") or MessageType.GENERAL,
        priority=fields.get("priority"),
        is_read=False,
        related_appointment_id=fields.get("related_appointment_id"),
        related_feedback_id=fields.get("related_feedback_id"),
    )
    db.add(message)
    commit(db)
    db.refresh(message)

    revalidate_path(PAGE, "/dashboard")
    logger.info("message_sent", message_id=message.id, sender=principal.user_id, recipient=message.recipient_id)

    row = messages_with_parties(db).filter(Message.id == message.id).first()
    return success(message=_serialize(row))


@action
def get_messages(
    db: Session,
    user_id: Optional[str],
    page: int = 1,
    limit: int = 20,
    folder: str = "all",
    type: Optional[str] = None,
    unread_only: bool = False,
):
    principal = resolve_principal(db, user_id)
    policy.scope(principal, "message", "read")

    if folder not in FOLDERS:
        raise ValidationFailed(f"Folder must be one of: {', '.join(FOLDERS)}")

    query = messages_with_parties(db)
    if folder == "inbox":
        query = query.filter(Message.recipient_id == principal.user_id)
    elif folder == "sent":
        query = query.filter(Message.sender_id == principal.user_id)
    else:
        query = query.filter(or_(
            Message.sender_id == principal.user_id,
            Message.recipient_id == principal.user_id,
        ))

    if type and type != "all":
        try:
            query = query.filter(Message.type == MessageType(type))
        except ValueError:
            raise ValidationFailed(f"Invalid message type: {type}")
    if unread_only:
        query = unread_for(query, principal.user_id)

    rows, pagination = paginate(query.order_by(Message.created_at.desc(), Message.id.desc()), page, limit)

    return success(
        messages=[_serialize(row) for row in rows],
        pagination=pagination,
    )


@action
def mark_message_as_read(db: Session, user_id: Optional[str], message_id: int):
    principal = resolve_principal(db, user_id)

    message = db.query(Message).filter(Message.id == message_id).first()
    if not message:
        raise NotFound("Message not found or access denied")
    policy.require(principal, "message", "mark_read", Ownership(user_ids=(message.recipient_id,)))

    if not message.is_read:
        message.is_read = True
        message.read_at = local_now()
        commit(db)

    revalidate_path(PAGE)
    return success()


@action
def mark_all_messages_as_read(db: Session, user_id: Optional[str]):
    principal = resolve_principal(db, user_id)
    policy.scope(principal, "message", "read")

    updated = unread_for(db.query(Message), principal.user_id).update(
        {Message.is_read: True, Message.read_at: local_now()},
        synchronize_session=False,
    )
    commit(db)

    revalidate_path(PAGE)
    logger.info("messages_marked_read", user=principal.user_id, count=updated)

    return success(updated=updated)


@action
def get_unread_messages_count(db: Session, user_id: Optional[str]):
    principal = resolve_principal(db, user_id)
    policy.scope(principal, "message", "read")

    count = unread_for(db.query(func.count(Message.id)), principal.user_id).scalar()
    return success(count=count or 0)


@action
def delete_message(db: Session, user_id: Optional[str], message_id: int):
    principal = resolve_principal(db, user_id)

    message = db.query(Message).filter(Message.id == message_id).first()
    if not message:
        raise NotFound("Message not found or access denied")
    policy.require(principal, "message", "delete", Ownership(user_ids=(message.sender_id,)))

    db.delete(message)
    commit(db)

    revalidate_path(PAGE)
    logger.info("message_deleted", message_id=message_id, by=principal.user_id)

    return success()
