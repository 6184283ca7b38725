from datetime import timedelta

from medcrm.actions import notification_actions
from medcrm.models.all_models import Notification, Priority, local_now


def notify(db, sender, recipient, title="Appointment tomorrow", **extra):
    return notification_actions.create_notification(db, sender.id, {
        "user_id": recipient.id, "type": "appointment", "title": title,
        "message": "See you at 09:00", **extra,
    })


def test_staff_sends_notification(db, make, revalidated):
    staff, patient = make.staff().user, make.patient().user

    result = notify(db, staff, patient, priority="high", action_url="/appointments/1")

    notification = result["notification"]
    assert notification["user_id"] == patient.id
    assert notification["priority"] == Priority.HIGH
    assert notification["is_read"] is False
    assert notification["action_url"] == "/appointments/1"
    assert revalidated == ["/notifications"]


def test_patients_cannot_send_notifications(db, make):
    patient, other = make.patient().user, make.patient().user

    assert notify(db, patient, other) == {"success": False, "error": "Admin or staff access required"}


def test_unknown_recipient(db, make):
    admin = make.admin()

    result = notification_actions.create_notification(db, admin.id, {
        "user_id": "missing", "type": "system", "title": "Hi", "message": "Hello",
    })

    assert result == {"success": False, "error": "Recipient not found"}


def test_list_own_notifications_skipping_expired(db, make):
    admin, patient, other = make.admin(), make.patient().user, make.patient().user
    notify(db, admin, patient, title="First")
    notify(db, admin, patient, title="Old", expires_at=local_now() - timedelta(days=1))
    notify(db, admin, other, title="Not mine")

    result = notification_actions.get_notifications(db, patient.id)

    assert [n["title"] for n in result["notifications"]] == ["First"]
    assert result["pagination"]["total"] == 1


def test_mark_read_and_unread_count(db, make):
    admin, patient = make.admin(), make.patient().user
    first = notify(db, admin, patient, title="First")["notification"]["id"]
    notify(db, admin, patient, title="Second")

    marked = notification_actions.mark_notification_as_read(db, patient.id, first)
    count = notification_actions.get_unread_notifications_count(db, patient.id)
    unread = notification_actions.get_notifications(db, patient.id, unread_only=True)

    assert marked == {"success": True}
    assert db.query(Notification).filter(Notification.id == first).one().read_at is not None
    assert count == {"success": True, "count": 1}
    assert [n["title"] for n in unread["notifications"]] == ["Second"]


def test_only_recipient_marks_read(db, make):
    admin, patient = make.admin(), make.patient().user
    notification_id = notify(db, admin, patient)["notification"]["id"]

    assert notification_actions.mark_notification_as_read(db, admin.id, notification_id) == {
        "success": False, "error": "Notification not found or access denied",
    }
    assert notification_actions.mark_notification_as_read(db, patient.id, 999) == {
        "success": False, "error": "Notification not found or access denied",
    }
