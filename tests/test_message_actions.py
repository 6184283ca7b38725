import pytest

from medcrm.actions import message_actions
from medcrm.models.all_models import Message, MessageType


@pytest.fixture
def pair(make):
    return make.doctor(name="Dr. Sender").user, make.patient(name="Reader").user


def send(db, sender, recipient, text="Your results are in", **extra):
    return message_actions.send_message(db, sender.id, {"recipient_id": recipient.id, "message": text, **extra})


def test_send_message_with_party_names(db, pair, revalidated):
    sender, recipient = pair

    result = send(db, sender, recipient, type="result", subject="Lab")

    message = result["message"]
    assert message["sender_name"] == "Dr. Sender"
    assert message["recipient_name"] == "Reader"
    assert message["type"] == MessageType.RESULT
    assert message["is_read"] is False
    assert revalidated == ["/messages", "/dashboard"]


def test_send_to_unknown_recipient(db, pair):
    sender, _recipient = pair

    result = message_actions.send_message(db, sender.id, {"recipient_id": "nobody", "message": "hi"})

    assert result == {"success": False, "error": "Recipient not found"}


def test_send_with_missing_related_rows(db, pair):
    sender, recipient = pair

    assert send(db, sender, recipient, related_appointment_id=5) == {
        "success": False, "error": "Related appointment not found",
    }
    assert send(db, sender, recipient, related_feedback_id=5) == {
        "success": False, "error": "Related feedback not found",
    }


def test_folders(db, make, pair):
    sender, recipient = pair
    send(db, sender, recipient, "to reader")
    send(db, recipient, sender, "to doctor")
    send(db, make.admin(), make.staff().user, "unrelated")

    inbox = message_actions.get_messages(db, recipient.id, folder="inbox")
    sent = message_actions.get_messages(db, recipient.id, folder="sent")
    everything = message_actions.get_messages(db, recipient.id)
    bad = message_actions.get_messages(db, recipient.id, folder="trash")

    assert [m["message"] for m in inbox["messages"]] == ["to reader"]
    assert [m["message"] for m in sent["messages"]] == ["to doctor"]
    assert everything["pagination"]["total"] == 2
    assert bad == {"success": False, "error": "Folder must be one of: all, inbox, sent"}


def test_type_and_unread_filters(db, pair):
    sender, recipient = pair
    send(db, sender, recipient, "general")
    urgent_id = send(db, sender, recipient, "urgent", type="urgent")["message"]["id"]
    message_actions.mark_message_as_read(db, recipient.id, urgent_id)

    urgent = message_actions.get_messages(db, recipient.id, type="urgent")
    unread = message_actions.get_messages(db, recipient.id, unread_only=True)
    invalid = message_actions.get_messages(db, recipient.id, type="spam")

    assert urgent["pagination"]["total"] == 1
    assert [m["message"] for m in unread["messages"]] == ["general"]
    assert invalid == {"success": False, "error": "Invalid message type: spam"}


def test_only_recipient_marks_read(db, pair):
    sender, recipient = pair
    message_id = send(db, sender, recipient)["message"]["id"]

    by_sender = message_actions.mark_message_as_read(db, sender.id, message_id)
    by_recipient = message_actions.mark_message_as_read(db, recipient.id, message_id)

    assert by_sender == {"success": False, "error": "Message not found or access denied"}
    assert by_recipient == {"success": True}
    message = db.get(Message, message_id)
    assert message.is_read is True
    assert message.read_at is not None


def test_unread_count_and_mark_all(db, pair):
    sender, recipient = pair
    for _ in range(3):
        send(db, sender, recipient)

    before = message_actions.get_unread_messages_count(db, recipient.id)
    marked = message_actions.mark_all_messages_as_read(db, recipient.id)
    after = message_actions.get_unread_messages_count(db, recipient.id)

    assert before == {"success": True, "count": 3}
    assert marked == {"success": True, "updated": 3}
    assert after == {"success": True, "count": 0}


def test_only_sender_deletes(db, pair):
    sender, recipient = pair
    message_id = send(db, sender, recipient)["message"]["id"]

    assert message_actions.delete_message(db, recipient.id, message_id) == {
        "success": False, "error": "Message not found or access denied",
    }
    assert message_actions.delete_message(db, sender.id, message_id) == {"success": True}
    assert db.query(Message).count() == 0


def test_missing_message(db, pair):
    _sender, recipient = pair
    assert message_actions.mark_message_as_read(db, recipient.id, 999) == {
        "success": False, "error": "Message not found or access denied",
    }
