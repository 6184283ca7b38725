import pytest

from medcrm.errors import InvalidTransition
from medcrm.lifecycle import (
    APPOINTMENT_TRANSITIONS, FEEDBACK_TRANSITIONS, LAB_RESULT_TRANSITIONS, MEDICATION_TRANSITIONS,
    can_transition, ensure_transition,
)
from medcrm.models.all_models import AppointmentStatus


@pytest.mark.parametrize("current, new, allowed", [
    ("scheduled", "confirmed", True),
    ("scheduled", "no_show", True),
    ("confirmed", "scheduled", False),
    ("confirmed", "completed", True),
    ("completed", "confirmed", False),
    ("no_show", "completed", False),
])
def test_appointment_transitions(current, new, allowed):
    assert can_transition(APPOINTMENT_TRANSITIONS, current, new) is allowed


def test_same_status_is_always_allowed():
    assert can_transition(APPOINTMENT_TRANSITIONS, "completed", "completed")
    assert can_transition(MEDICATION_TRANSITIONS, "discontinued", "discontinued")


def test_enum_members_and_strings_match():
    assert can_transition(APPOINTMENT_TRANSITIONS, AppointmentStatus.SCHEDULED, "confirmed")
    assert can_transition(APPOINTMENT_TRANSITIONS, "scheduled", AppointmentStatus.CONFIRMED)


def test_terminal_medication_and_lab_states():
    assert not can_transition(MEDICATION_TRANSITIONS, "completed", "active")
    assert can_transition(LAB_RESULT_TRANSITIONS, "pending", "reviewed")
    assert not can_transition(LAB_RESULT_TRANSITIONS, "reviewed", "pending")


def test_feedback_can_be_reopened_until_closed():
    assert can_transition(FEEDBACK_TRANSITIONS, "resolved", "open")
    assert not can_transition(FEEDBACK_TRANSITIONS, "closed", "open")


def test_ensure_transition_message():
    with pytest.raises(InvalidTransition) as exc:
        ensure_transition(APPOINTMENT_TRANSITIONS, AppointmentStatus.CANCELLED, AppointmentStatus.CONFIRMED)
    assert exc.value.message == "Cannot change status from cancelled to confirmed"
