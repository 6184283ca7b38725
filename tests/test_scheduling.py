from datetime import date

from medcrm import scheduling
from medcrm.models.all_models import AppointmentStatus

DAY = date(2024, 6, 1)


def test_slot_times_cover_working_day():
    times = list(scheduling.slot_times())

    assert len(times) == 16
    assert times[0] == "09:00"
    assert times[-1] == "16:30"
    assert "17:00" not in times


def test_custom_working_hours():
    hours = scheduling.WorkingHours(start="08:00", end="10:00", slot_minutes=60)
    assert list(scheduling.slot_times(hours)) == ["08:00", "09:00"]


def test_build_slots_filters_booked_times():
    slots = scheduling.build_slots(["09:30", "16:30"])

    times = [slot["time"] for slot in slots]
    assert "09:30" not in times
    assert "16:30" not in times
    assert len(slots) == 14
    assert all(slot["available"] is True for slot in slots)


def test_empty_day_has_sixteen_slots(db, make):
    doctor = make.doctor()
    assert len(scheduling.generate_slots(db, doctor.id, DAY)) == 16


def test_confirmed_blocks_and_cancelled_frees(db, make):
    doctor, patient = make.doctor(), make.patient()
    make.appointment(patient, doctor, DAY, "10:00", status=AppointmentStatus.CONFIRMED)
    make.appointment(patient, doctor, DAY, "10:30", status=AppointmentStatus.CANCELLED)

    times = [slot["time"] for slot in scheduling.generate_slots(db, doctor.id, DAY)]

    assert len(times) == 15
    assert "10:00" not in times
    assert "10:30" in times
    assert times[:4] == ["09:00", "09:30", "10:30", "11:00"]


def test_other_doctor_and_other_day_do_not_block(db, make):
    doctor, other, patient = make.doctor(), make.doctor(), make.patient()
    make.appointment(patient, other, DAY, "09:00")
    make.appointment(patient, doctor, date(2024, 6, 2), "09:00")

    assert len(scheduling.generate_slots(db, doctor.id, DAY)) == 16


def test_fully_booked_day_is_empty(db, make):
    doctor, patient = make.doctor(), make.patient()
    for time in scheduling.slot_times():
        make.appointment(patient, doctor, DAY, time)

    assert scheduling.generate_slots(db, doctor.id, DAY) == []


def test_completed_appointment_frees_slot_but_still_conflicts(db, make):
    doctor, patient = make.doctor(), make.patient()
    make.appointment(patient, doctor, DAY, "11:00", status=AppointmentStatus.COMPLETED)

    times = [slot["time"] for slot in scheduling.generate_slots(db, doctor.id, DAY)]

    assert "11:00" in times
    assert scheduling.check_conflict(db, doctor.id, DAY, "11:00") is True


def test_conflict_is_exact_match_only(db, make):
    doctor, patient = make.doctor(), make.patient()
    make.appointment(patient, doctor, DAY, "10:00", duration=60)

    assert scheduling.check_conflict(db, doctor.id, DAY, "10:00") is True
    # durations are not used for overlap detection
    assert scheduling.check_conflict(db, doctor.id, DAY, "10:30") is False


def test_cancelled_appointment_does_not_conflict(db, make):
    doctor, patient = make.doctor(), make.patient()
    make.appointment(patient, doctor, DAY, "10:00", status=AppointmentStatus.CANCELLED)

    assert scheduling.check_conflict(db, doctor.id, DAY, "10:00") is False


def test_conflict_excludes_given_appointment(db, make):
    doctor, patient = make.doctor(), make.patient()
    booked = make.appointment(patient, doctor, DAY, "10:00")

    assert scheduling.check_conflict(db, doctor.id, DAY, "10:00", exclude_id=booked.id) is False


def test_is_valid_time():
    assert scheduling.is_valid_time("09:00")
    assert scheduling.is_valid_time("23:59")
    assert not scheduling.is_valid_time("9:00")
    assert not scheduling.is_valid_time("24:00")
    assert not scheduling.is_valid_time("10:60")
    assert not scheduling.is_valid_time(None)
