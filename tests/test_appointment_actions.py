from datetime import date

import pytest

from medcrm.actions import appointment_actions as actions
from medcrm.actions.base import commit
from medcrm.errors import Conflict
from medcrm.models.all_models import Appointment, AppointmentStatus

DAY = date(2024, 6, 1)


@pytest.fixture
def booking(make):
    patient, doctor = make.patient(name="Alice Patient"), make.doctor(name="Dr. Bob")
    return patient, doctor


def payload(patient, doctor, time="10:00", **extra):
    return {
        "patient_id": patient.id,
        "doctor_id": doctor.id,
        "appointment_date": DAY,
        "appointment_time": time,
        "type": "consultation",
        **extra,
    }


def test_patient_books_own_appointment(db, booking, revalidated):
    patient, doctor = booking

    result = actions.create_appointment(db, patient.user_id, payload(patient, doctor, reason="Headache"))

    assert result["success"] is True
    appointment = result["appointment"]
    assert appointment["status"] == AppointmentStatus.SCHEDULED
    assert appointment["duration"] == 30
    assert appointment["patient_name"] == "Alice Patient"
    assert appointment["doctor_name"] == "Dr. Bob"
    assert "/appointments" in revalidated and "/dashboard" in revalidated


def test_booking_taken_slot_conflicts(db, make, booking):
    patient, doctor = booking
    make.appointment(make.patient(), doctor, DAY, "10:00", status=AppointmentStatus.CONFIRMED)

    result = actions.create_appointment(db, patient.user_id, payload(patient, doctor))

    assert result == {"success": False, "error": "Doctor has a scheduling conflict at this time"}
    assert db.query(Appointment).count() == 1


def test_booking_slot_freed_by_cancellation(db, make, booking):
    patient, doctor = booking
    make.appointment(patient, doctor, DAY, "10:00", status=AppointmentStatus.CANCELLED)

    result = actions.create_appointment(db, patient.user_id, payload(patient, doctor))

    assert result["success"] is True


def test_unique_index_rejects_race(db, booking):
    # Simulates a booking that slipped past the pre-check
    patient, doctor = booking
    db.add(Appointment(patient_id=patient.id, doctor_id=doctor.id, appointment_date=DAY,
                       appointment_time="10:00", type="consultation", status=AppointmentStatus.SCHEDULED))
    db.flush()

    db.add(Appointment(patient_id=patient.id, doctor_id=doctor.id, appointment_date=DAY,
                       appointment_time="10:00", type="follow-up", status=AppointmentStatus.SCHEDULED))
    with pytest.raises(Conflict):
        commit(db, actions.CONFLICT_MESSAGE)


def test_patient_cannot_book_for_someone_else(db, make, booking):
    patient, doctor = booking
    other = make.patient()

    result = actions.create_appointment(db, patient.user_id, payload(other, doctor))

    assert result == {"success": False, "error": "You can only book appointments for yourself"}


def test_doctor_books_only_for_self(db, make, booking):
    patient, doctor = booking
    other_doctor = make.doctor()

    own = actions.create_appointment(db, doctor.user_id, payload(patient, doctor))
    foreign = actions.create_appointment(db, doctor.user_id, payload(patient, other_doctor, time="11:00"))

    assert own["success"] is True
    assert foreign == {"success": False, "error": "You can only create appointments for yourself"}


def test_staff_books_for_anyone(db, make, booking):
    patient, doctor = booking
    staff = make.staff()

    assert actions.create_appointment(db, staff.user_id, payload(patient, doctor))["success"] is True


def test_create_requires_session(db, booking):
    patient, doctor = booking
    assert actions.create_appointment(db, None, payload(patient, doctor)) == {
        "success": False, "error": "Unauthorized",
    }


def test_banned_user_is_refused(db, make, booking):
    patient, doctor = booking
    patient.user.banned = True
    db.commit()

    result = actions.create_appointment(db, patient.user_id, payload(patient, doctor))

    assert result == {"success": False, "error": "User is banned"}


def test_invalid_time_is_rejected(db, booking):
    patient, doctor = booking

    result = actions.create_appointment(db, patient.user_id, payload(patient, doctor, time="9am"))

    assert result["success"] is False
    assert result["error"].startswith("appointment_time")


def test_missing_doctor(db, booking):
    patient, _doctor = booking
    data = payload(patient, _doctor)
    data["doctor_id"] = 999

    assert actions.create_appointment(db, patient.user_id, data) == {"success": False, "error": "Doctor not found"}


def test_listing_is_scoped_to_caller(db, make, booking):
    patient, doctor = booking
    other_patient = make.patient()
    make.appointment(patient, doctor, DAY, "09:00")
    make.appointment(other_patient, doctor, DAY, "09:30")
    make.appointment(other_patient, make.doctor(), DAY, "10:00")
    admin = make.admin()

    mine = actions.get_appointments(db, patient.user_id)
    doctors = actions.get_appointments(db, doctor.user_id)
    everything = actions.get_appointments(db, admin.id)

    assert [a["appointment_time"] for a in mine["appointments"]] == ["09:00"]
    assert mine["pagination"]["total"] == 1
    assert doctors["pagination"]["total"] == 2
    assert everything["pagination"]["total"] == 3


def test_listing_filters_and_paginates(db, make, booking):
    patient, doctor = booking
    make.appointment(patient, doctor, DAY, "09:00", status=AppointmentStatus.CONFIRMED)
    make.appointment(patient, doctor, DAY, "09:30")
    make.appointment(patient, doctor, date(2024, 7, 1), "09:00")

    confirmed = actions.get_appointments(db, patient.user_id, status="confirmed")
    june = actions.get_appointments(db, patient.user_id, start_date=DAY, end_date=date(2024, 6, 30))
    page = actions.get_appointments(db, patient.user_id, page=2, limit=2)

    assert confirmed["pagination"]["total"] == 1
    assert june["pagination"]["total"] == 2
    assert len(page["appointments"]) == 1
    assert page["pagination"] == {
        "page": 2, "limit": 2, "total": 3, "total_pages": 2, "has_next": False, "has_prev": True,
    }


def test_details_denied_to_other_patient(db, make, booking):
    patient, doctor = booking
    appointment = make.appointment(patient, doctor, DAY, "09:00")
    stranger = make.patient()

    assert actions.get_appointment_details(db, patient.user_id, appointment.id)["success"] is True
    assert actions.get_appointment_details(db, stranger.user_id, appointment.id) == {
        "success": False, "error": "You can only view your own appointments",
    }


def test_patient_updates_reason_and_symptoms_only(db, make, booking):
    patient, doctor = booking
    appointment = make.appointment(patient, doctor, DAY, "09:00")

    allowed = actions.update_appointment(db, patient.user_id, appointment.id, {"reason": "Cough", "symptoms": "Fever"})
    refused = actions.update_appointment(db, patient.user_id, appointment.id, {"reason": "x", "notes": "sneaky"})
    unknown = actions.update_appointment(db, patient.user_id, appointment.id, {"bogus": 1})

    assert allowed["success"] is True
    assert allowed["appointment"]["symptoms"] == "Fever"
    assert refused == {"success": False, "error": "You can only update reason and symptoms"}
    assert unknown == {"success": False, "error": "You can only update reason and symptoms"}


def test_patient_field_check_runs_before_validation(db, make, booking):
    patient, doctor = booking
    appointment = make.appointment(patient, doctor, DAY, "09:00")
    stranger = make.patient()

    malformed_time = actions.update_appointment(db, patient.user_id, appointment.id, {"appointment_time": "25:00"})
    foreign_status = actions.update_appointment(db, stranger.user_id, appointment.id, {"status": "bogus"})

    assert malformed_time == {"success": False, "error": "You can only update reason and symptoms"}
    assert foreign_status == {"success": False, "error": "You can only update your own appointments"}


def test_staff_clears_clinical_notes_with_null(db, make, booking):
    patient, doctor = booking
    appointment = make.appointment(patient, doctor, DAY, "09:00", notes="Bring scans", diagnosis="Flu",
                                   follow_up_date=date(2024, 6, 8))

    result = actions.update_appointment(db, make.staff().user_id, appointment.id, {
        "notes": None, "diagnosis": None, "follow_up_date": None, "status": None,
    })

    assert result["success"] is True
    assert result["appointment"]["notes"] is None
    assert result["appointment"]["diagnosis"] is None
    assert result["appointment"]["follow_up_date"] is None
    assert result["appointment"]["status"] == AppointmentStatus.SCHEDULED


def test_doctor_completes_appointment(db, make, booking):
    patient, doctor = booking
    appointment = make.appointment(patient, doctor, DAY, "09:00")

    result = actions.update_appointment(db, doctor.user_id, appointment.id, {
        "status": "completed", "diagnosis": "Flu",
    })

    assert result["success"] is True
    assert result["appointment"]["status"] == AppointmentStatus.COMPLETED
    assert result["appointment"]["diagnosis"] == "Flu"


def test_update_rejects_invalid_transition(db, make, booking):
    patient, doctor = booking
    appointment = make.appointment(patient, doctor, DAY, "09:00", status=AppointmentStatus.COMPLETED)

    result = actions.update_appointment(db, doctor.user_id, appointment.id, {"status": "scheduled"})

    assert result == {"success": False, "error": "Cannot change status from completed to scheduled"}


def test_confirmed_appointment_cannot_go_back_to_scheduled(db, make, booking):
    patient, doctor = booking
    appointment = make.appointment(patient, doctor, DAY, "09:00", status=AppointmentStatus.CONFIRMED)

    result = actions.update_appointment(db, make.staff().user_id, appointment.id, {"status": "scheduled"})

    assert result == {"success": False, "error": "Cannot change status from confirmed to scheduled"}
    db.refresh(appointment)
    assert appointment.status == AppointmentStatus.CONFIRMED


def test_reschedule_checks_conflicts_excluding_self(db, make, booking):
    patient, doctor = booking
    appointment = make.appointment(patient, doctor, DAY, "09:00")
    make.appointment(make.patient(), doctor, DAY, "11:00")
    staff = make.staff()

    same_slot = actions.update_appointment(db, staff.user_id, appointment.id, {"appointment_time": "09:00"})
    taken = actions.update_appointment(db, staff.user_id, appointment.id, {"appointment_time": "11:00"})
    moved = actions.update_appointment(db, staff.user_id, appointment.id, {"appointment_time": "12:00"})

    assert same_slot["success"] is True
    assert taken == {"success": False, "error": "Doctor has a scheduling conflict at this time"}
    assert moved["appointment"]["appointment_time"] == "12:00"


def test_cancel_from_any_status_stamps_canceller(db, make, booking):
    patient, doctor = booking
    appointment = make.appointment(patient, doctor, DAY, "09:00", status=AppointmentStatus.COMPLETED)

    result = actions.cancel_appointment(db, patient.user_id, appointment.id, "Moved away")

    assert result == {"success": True}
    db.refresh(appointment)
    assert appointment.status == AppointmentStatus.CANCELLED
    assert appointment.cancelled_by == patient.user_id
    assert appointment.cancel_reason == "Moved away"


def test_cancel_again_restamps(db, make, booking):
    patient, doctor = booking
    appointment = make.appointment(patient, doctor, DAY, "09:00")
    admin = make.admin()

    actions.cancel_appointment(db, patient.user_id, appointment.id)
    second = actions.cancel_appointment(db, admin.id, appointment.id, "Clinic closed")

    assert second["success"] is True
    db.refresh(appointment)
    assert appointment.cancelled_by == admin.id
    assert appointment.cancel_reason == "Clinic closed"


def test_cancel_foreign_appointment_denied(db, make, booking):
    patient, doctor = booking
    appointment = make.appointment(patient, doctor, DAY, "09:00")

    result = actions.cancel_appointment(db, make.patient().user_id, appointment.id)

    assert result == {"success": False, "error": "You can only cancel your own appointments"}


def test_available_slots_without_session(db, make, booking):
    patient, doctor = booking
    make.appointment(patient, doctor, DAY, "09:00")

    result = actions.get_available_slots(db, None, doctor.id, "2024-06-01")

    assert result["success"] is True
    assert len(result["slots"]) == 15
    assert result["slots"][0] == {"time": "09:30", "available": True}


def test_available_slots_unknown_doctor(db):
    assert actions.get_available_slots(db, None, 42, DAY) == {"success": False, "error": "Doctor not found"}


def test_available_slots_bad_date(db, booking):
    _patient, doctor = booking
    assert actions.get_available_slots(db, None, doctor.id, "01/06/2024") == {
        "success": False, "error": "Date must be in YYYY-MM-DD format",
    }


def test_plain_conflict_check(db, make, booking):
    patient, doctor = booking
    make.appointment(patient, doctor, DAY, "09:00")

    assert actions.check_conflict(db, doctor.id, "2024-06-01", "09:00") is True
    assert actions.check_conflict(db, doctor.id, DAY, "09:30") is False
