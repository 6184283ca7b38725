# medcrm/scheduling.py
"""
Slot generation and conflict detection for doctor appointments.

Every doctor works the same fixed day: 09:00 to 17:00, split into 30-minute
slots. A slot is offered when no ``scheduled`` or ``confirmed`` appointment
for that doctor starts at exactly that time. Booking conflicts are likewise
exact (doctor, date, time) matches; appointment durations are stored but not
used for overlap detection.
"""
import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, Iterator, List, Optional, Union

from sqlalchemy.orm import Session

from medcrm.models.all_models import Appointment, AppointmentStatus

TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")

# Appointments in these states hide their slot from the booking list
BLOCKING_STATUSES = (AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED)


@dataclass(frozen=True)
class WorkingHours:
    start: str = "09:00"
    end: str = "17:00"
    slot_minutes: int = 30


WORKING_HOURS = WorkingHours()


def is_valid_time(value: str) -> bool:
    """True for zero-padded 24h ``HH:MM`` strings."""
    return isinstance(value, str) and bool(TIME_PATTERN.match(value))


def _as_date(day: Union[date, datetime]) -> date:
    return day.date() if isinstance(day, datetime) else day


def slot_times(hours: WorkingHours = WORKING_HOURS) -> Iterator[str]:
    """Yield every slot start from ``hours.start`` up to, not including, ``hours.end``."""
    current = datetime.strptime(hours.start, "%H:%M")
    end = datetime.strptime(hours.end, "%H:%M")
    step = timedelta(minutes=hours.slot_minutes)

    while current < end:
        yield current.strftime("%H:%M")
        current += step


def build_slots(booked_times: Iterable[str], hours: WorkingHours = WORKING_HOURS) -> List[Dict]:
    """Return the free slots of one day given the start times already taken."""
    booked = set(booked_times)
    return [
        {"time": slot, "available": True}
        for slot in slot_times(hours)
        if slot not in booked
    ]


def booked_times(db: Session, doctor_id: int, day: date) -> List[str]:
    rows = db.query(Appointment.appointment_time).filter(
        Appointment.doctor_id == doctor_id,
        Appointment.appointment_date == _as_date(day),
        Appointment.status.in_(BLOCKING_STATUSES),
    ).all()
    return [row.appointment_time for row in rows]


def generate_slots(db: Session, doctor_id: int, day: date) -> List[Dict]:
    """Free slots for a doctor on a date, in increasing time order."""
    return build_slots(booked_times(db, doctor_id, day))


def find_conflict(
    db: Session,
    doctor_id: int,
    day: date,
    time: str,
    exclude_id: Optional[int] = None,
) -> Optional[Appointment]:
    """Return the live appointment occupying (doctor, date, time), if any."""
    query = db.query(Appointment).filter(
        Appointment.doctor_id == doctor_id,
        Appointment.appointment_date == _as_date(day),
        Appointment.appointment_time == time,
        Appointment.status != AppointmentStatus.CANCELLED,
    )
    if exclude_id is not None:
        query = query.filter(Appointment.id != exclude_id)
    return query.first()


def check_conflict(
    db: Session,
    doctor_id: int,
    day: date,
    time: str,
    exclude_id: Optional[int] = None,
) -> bool:
    return find_conflict(db, doctor_id, day, time, exclude_id) is not None
