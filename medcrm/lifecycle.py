# medcrm/lifecycle.py
from typing import Dict, FrozenSet

from medcrm.errors import InvalidTransition
from medcrm.models.all_models import (
    AppointmentStatus, FeedbackStatus, LabResultStatus, MedicationStatus,
)

TransitionTable = Dict[str, FrozenSet[str]]


def _value(status) -> str:
    return getattr(status, "value", status)


def _table(transitions) -> TransitionTable:
    # Keyed by plain values so raw strings and enum members look up alike
    return {
        _value(status): frozenset(_value(target) for target in targets)
        for status, targets in transitions.items()
    }


APPOINTMENT_TRANSITIONS: TransitionTable = _table({
    AppointmentStatus.SCHEDULED: frozenset({
        AppointmentStatus.CONFIRMED,
        AppointmentStatus.COMPLETED,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.NO_SHOW,
    }),
    AppointmentStatus.CONFIRMED: frozenset({
        AppointmentStatus.COMPLETED,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.NO_SHOW,
    }),
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.CANCELLED: frozenset(),
    AppointmentStatus.NO_SHOW: frozenset(),
})

MEDICATION_TRANSITIONS: TransitionTable = _table({
    MedicationStatus.ACTIVE: frozenset({MedicationStatus.COMPLETED, MedicationStatus.DISCONTINUED}),
    MedicationStatus.COMPLETED: frozenset(),
    MedicationStatus.DISCONTINUED: frozenset(),
})

LAB_RESULT_TRANSITIONS: TransitionTable = _table({
    LabResultStatus.PENDING: frozenset({LabResultStatus.COMPLETED, LabResultStatus.REVIEWED}),
    LabResultStatus.COMPLETED: frozenset({LabResultStatus.REVIEWED}),
    LabResultStatus.REVIEWED: frozenset(),
})

FEEDBACK_TRANSITIONS: TransitionTable = _table({
    FeedbackStatus.OPEN: frozenset({FeedbackStatus.IN_PROGRESS, FeedbackStatus.RESOLVED, FeedbackStatus.CLOSED}),
    FeedbackStatus.IN_PROGRESS: frozenset({FeedbackStatus.OPEN, FeedbackStatus.RESOLVED, FeedbackStatus.CLOSED}),
    FeedbackStatus.RESOLVED: frozenset({FeedbackStatus.OPEN, FeedbackStatus.CLOSED}),
    FeedbackStatus.CLOSED: frozenset(),
})


def can_transition(table: TransitionTable, current: str, new: str) -> bool:
    current, new = _value(current), _value(new)
    if current == new:
        return True
    return new in table.get(current, frozenset())


def ensure_transition(table: TransitionTable, current: str, new: str) -> None:
    """Raise InvalidTransition unless ``current -> new`` is listed in ``table``."""
    if not can_transition(table, current, new):
        raise InvalidTransition(
            f"Cannot change status from {_value(current)} to {_value(new)}"
        )
