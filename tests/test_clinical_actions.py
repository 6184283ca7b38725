from datetime import date, datetime, timedelta

import pytest

from medcrm.actions import lab_actions, medical_actions, medication_actions
from medcrm.models.all_models import (
    LabResult, LabResultStatus, MedicalRecord, Medication, MedicationStatus, local_now,
)

DAY = date(2024, 6, 1)


@pytest.fixture
def care(make):
    """A patient who has seen one doctor, plus a doctor they never met."""
    patient, doctor, stranger = make.patient(name="Pat"), make.doctor(name="Dr. Care"), make.doctor()
    visit = make.appointment(patient, doctor, DAY, "09:00")
    return patient, doctor, stranger, visit


def record(patient, **extra):
    return {"patient_id": patient.id, "record_type": "diagnosis", "title": "Check-up", **extra}


def prescription(patient, **extra):
    return {
        "patient_id": patient.id, "name": "Amoxicillin", "dosage": "500mg",
        "frequency": "3x daily", "start_date": DAY, **extra,
    }


# ================================
# MEDICAL RECORDS
# ================================

def test_doctor_creates_record_linked_to_visit(db, care, revalidated):
    patient, doctor, _stranger, visit = care

    result = medical_actions.create_medical_record(db, doctor.user_id, record(patient, appointment_id=visit.id))

    assert result["success"] is True
    assert result["record"]["doctor_name"] == "Dr. Care"
    assert result["record"]["patient_name"] == "Pat"
    assert revalidated == ["/medical-records", "/dashboard"]


def test_only_doctors_create_records(db, make, care):
    patient = care[0]

    assert medical_actions.create_medical_record(db, make.staff().user_id, record(patient)) == {
        "success": False, "error": "Only doctors can create medical records",
    }


def test_record_appointment_must_match_patient_and_doctor(db, care):
    patient, _doctor, stranger, visit = care

    result = medical_actions.create_medical_record(db, stranger.user_id, record(patient, appointment_id=visit.id))

    assert result == {"success": False, "error": "Appointment not found or access denied"}


def test_patient_lists_only_own_records(db, make, care):
    patient, doctor, _stranger, _visit = care
    other = make.patient()
    db.add_all([
        MedicalRecord(patient_id=patient.id, doctor_id=doctor.id, record_type="note", title="Mine"),
        MedicalRecord(patient_id=other.id, doctor_id=doctor.id, record_type="note", title="Theirs"),
    ])
    db.commit()

    result = medical_actions.get_medical_records(db, patient.user_id, patient_id=other.id)

    assert [r["title"] for r in result["records"]] == ["Mine"]


def test_doctor_needs_prior_visit_to_browse_patient(db, care):
    patient, doctor, stranger, _visit = care

    assert medical_actions.get_medical_records(db, doctor.user_id, patient_id=patient.id)["success"] is True
    assert medical_actions.get_medical_records(db, stranger.user_id, patient_id=patient.id) == {
        "success": False, "error": "Access denied to patient records",
    }


def test_confidential_records_hidden_from_staff(db, make, care):
    patient, doctor, _stranger, _visit = care
    secret = MedicalRecord(patient_id=patient.id, doctor_id=doctor.id, record_type="note",
                           title="Secret", is_confidential=True)
    db.add_all([secret, MedicalRecord(patient_id=patient.id, doctor_id=doctor.id, record_type="note", title="Open")])
    db.commit()
    staff = make.staff()

    listed = medical_actions.get_medical_records(db, staff.user_id)
    details = medical_actions.get_medical_record_details(db, staff.user_id, secret.id)

    assert [r["title"] for r in listed["records"]] == ["Open"]
    assert details == {"success": False, "error": "This record is confidential"}


def test_only_author_updates_or_deletes_record(db, care):
    patient, doctor, stranger, _visit = care
    created = medical_actions.create_medical_record(db, doctor.user_id, record(patient))
    record_id = created["record"]["id"]

    denied = medical_actions.update_medical_record(db, stranger.user_id, record_id, {"title": "Hijack"})
    updated = medical_actions.update_medical_record(db, doctor.user_id, record_id, {"diagnosis": "Healthy"})
    deleted = medical_actions.delete_medical_record(db, doctor.user_id, record_id)

    assert denied == {"success": False, "error": "Medical record not found or access denied"}
    assert updated["record"]["diagnosis"] == "Healthy"
    assert deleted == {"success": True}
    assert db.query(MedicalRecord).count() == 0


def test_medical_summary(db, make, care):
    patient, doctor, _stranger, _visit = care
    db.add_all([
        MedicalRecord(patient_id=patient.id, doctor_id=doctor.id, record_type="diagnosis", title="Flu",
                      diagnosis="Influenza", created_at=datetime(2024, 6, 1, 9, 0)),
        MedicalRecord(patient_id=patient.id, doctor_id=doctor.id, record_type="note", title="Follow-up",
                      created_at=datetime(2024, 6, 8, 9, 0)),
        MedicalRecord(patient_id=patient.id, doctor_id=doctor.id, record_type="diagnosis", title="Rash",
                      diagnosis="Eczema", is_confidential=True, created_at=datetime(2024, 6, 4, 9, 0)),
    ])
    db.commit()

    summary = medical_actions.get_patient_medical_summary(db, doctor.user_id, patient.id)["summary"]
    staff_view = medical_actions.get_patient_medical_summary(db, make.staff().user_id, patient.id)["summary"]

    assert summary["total_records"] == 3
    assert summary["latest_visit"] == datetime(2024, 6, 8, 9, 0)
    assert summary["record_types"] == ["diagnosis", "note"]
    assert [d["diagnosis"] for d in summary["recent_diagnoses"]] == ["Eczema", "Influenza"]
    assert staff_view["total_records"] == 2
    assert [d["diagnosis"] for d in staff_view["recent_diagnoses"]] == ["Influenza"]


def test_medical_summary_access(db, make, care):
    patient, _doctor, stranger, _visit = care

    own = medical_actions.get_patient_medical_summary(db, patient.user_id, patient.id)
    other_patient = medical_actions.get_patient_medical_summary(db, make.patient().user_id, patient.id)
    unseen = medical_actions.get_patient_medical_summary(db, stranger.user_id, patient.id)
    missing = medical_actions.get_patient_medical_summary(db, make.admin().id, 999)

    assert own["summary"] == {"total_records": 0, "latest_visit": None, "record_types": [], "recent_diagnoses": []}
    assert other_patient == {"success": False, "error": "Access denied"}
    assert unseen == {"success": False, "error": "Access denied to patient records"}
    assert missing == {"success": False, "error": "Patient not found"}


# ================================
# MEDICATIONS
# ================================

def test_prescribe_medication(db, care):
    patient, doctor, _stranger, _visit = care

    result = medication_actions.prescribe_medication(db, doctor.user_id, prescription(patient, refills=2))

    assert result["medication"]["status"] == MedicationStatus.ACTIVE
    assert result["medication"]["doctor_name"] == "Dr. Care"
    assert result["medication"]["refills"] == 2


def test_prescription_dates_must_be_ordered(db, care):
    patient, doctor, _stranger, _visit = care

    result = medication_actions.prescribe_medication(
        db, doctor.user_id, prescription(patient, end_date=date(2024, 5, 1)),
    )

    assert result == {"success": False, "error": "End date must not be before start date"}


def test_patient_refills_until_none_left(db, care):
    patient, doctor, _stranger, _visit = care
    med_id = medication_actions.prescribe_medication(
        db, doctor.user_id, prescription(patient, refills=1),
    )["medication"]["id"]

    first = medication_actions.refill_medication(db, patient.user_id, med_id)
    second = medication_actions.refill_medication(db, patient.user_id, med_id)

    assert first == {"success": True, "remaining_refills": 0}
    assert second == {"success": False, "error": "No refills available for this medication"}


def test_refill_requires_active_medication(db, care):
    patient, doctor, _stranger, _visit = care
    med_id = medication_actions.prescribe_medication(
        db, doctor.user_id, prescription(patient, refills=3),
    )["medication"]["id"]
    medication_actions.discontinue_medication(db, doctor.user_id, med_id)

    result = medication_actions.refill_medication(db, patient.user_id, med_id)

    assert result == {"success": False, "error": "Only active medications can be refilled"}


def test_discontinue_appends_reason_and_ends_today(db, care):
    patient, doctor, _stranger, _visit = care
    med_id = medication_actions.prescribe_medication(
        db, doctor.user_id, prescription(patient, instructions="With food"),
    )["medication"]["id"]

    result = medication_actions.discontinue_medication(db, doctor.user_id, med_id, "Rash")

    medication = result["medication"]
    assert medication["status"] == MedicationStatus.DISCONTINUED
    assert medication["end_date"] == local_now().date()
    assert medication["instructions"] == "With food\n\nDiscontinued: Rash"


def test_discontinued_medication_cannot_be_reactivated(db, care):
    patient, doctor, _stranger, _visit = care
    med_id = medication_actions.prescribe_medication(db, doctor.user_id, prescription(patient))["medication"]["id"]
    medication_actions.discontinue_medication(db, doctor.user_id, med_id)

    result = medication_actions.update_medication(db, doctor.user_id, med_id, {"status": "active"})

    assert result == {"success": False, "error": "Cannot change status from discontinued to active"}


def test_other_doctor_cannot_update_prescription(db, care):
    patient, doctor, stranger, _visit = care
    med_id = medication_actions.prescribe_medication(db, doctor.user_id, prescription(patient))["medication"]["id"]

    result = medication_actions.update_medication(db, stranger.user_id, med_id, {"dosage": "1g"})

    assert result == {"success": False, "error": "Medication not found or access denied"}


def test_medication_status_filter(db, care):
    patient, doctor, _stranger, _visit = care
    medication_actions.prescribe_medication(db, doctor.user_id, prescription(patient))

    active = medication_actions.get_medications(db, patient.user_id, status="active")
    bogus = medication_actions.get_medications(db, patient.user_id, status="paused")

    assert active["pagination"]["total"] == 1
    assert bogus == {"success": False, "error": "Invalid medication status: paused"}


def test_medications_requiring_attention(db, make, care):
    patient, doctor, _stranger, _visit = care
    today = local_now().date()

    def medication(name, **fields):
        fields.setdefault("refills", 3)
        return Medication(patient_id=patient.id, prescribed_by=doctor.id, name=name, dosage="1 tab",
                          frequency="daily", start_date=DAY, **fields)

    db.add_all([
        medication("Ending", end_date=today + timedelta(days=3)),
        medication("Last refill", refills=1),
        medication("Plenty", end_date=today + timedelta(days=30)),
        medication("Stopped", end_date=today, status=MedicationStatus.DISCONTINUED),
    ])
    db.commit()
    other = make.patient()
    db.add(Medication(patient_id=other.id, prescribed_by=doctor.id, name="Not mine", dosage="1 tab",
                      frequency="daily", start_date=DAY, refills=0))
    db.commit()

    result = medication_actions.get_medications_requiring_attention(db, patient.user_id)

    assert result["count"] == 2
    assert sorted(m["name"] for m in result["medications"]) == ["Ending", "Last refill"]
    assert medication_actions.get_medications_requiring_attention(db, doctor.user_id)["count"] == 3


# ================================
# LAB RESULTS
# ================================

def order(db, doctor, patient):
    return lab_actions.order_lab_test(db, doctor.user_id, {
        "patient_id": patient.id, "test_name": "CBC", "test_category": "Hematology", "test_date": DAY,
    })["lab_result"]["id"]


def test_ordered_test_starts_pending(db, care):
    patient, doctor, _stranger, _visit = care

    result_id = order(db, doctor, patient)

    assert db.get(LabResult, result_id).status == LabResultStatus.PENDING


def test_completing_stamps_result_date(db, care):
    patient, doctor, _stranger, _visit = care
    result_id = order(db, doctor, patient)

    result = lab_actions.update_lab_result(db, doctor.user_id, result_id, {
        "status": "completed", "results": "Normal",
    })

    assert result["lab_result"]["status"] == LabResultStatus.COMPLETED
    assert result["lab_result"]["result_date"] == local_now().date()


def test_doctor_review_records_reviewer(db, care):
    patient, doctor, _stranger, _visit = care
    result_id = order(db, doctor, patient)

    result = lab_actions.update_lab_result(db, doctor.user_id, result_id, {"status": "reviewed"})

    assert result["lab_result"]["reviewed_by"] == doctor.id
    assert result["lab_result"]["reviewed_at"] is not None


def test_staff_review_leaves_reviewer_empty(db, make, care):
    patient, doctor, _stranger, _visit = care
    result_id = order(db, doctor, patient)

    result = lab_actions.update_lab_result(db, make.staff().user_id, result_id, {"status": "reviewed"})

    assert result["lab_result"]["status"] == LabResultStatus.REVIEWED
    assert result["lab_result"]["reviewed_by"] is None


def test_reviewed_result_is_final(db, care):
    patient, doctor, _stranger, _visit = care
    result_id = order(db, doctor, patient)
    lab_actions.update_lab_result(db, doctor.user_id, result_id, {"status": "reviewed"})

    result = lab_actions.update_lab_result(db, doctor.user_id, result_id, {"status": "pending"})

    assert result == {"success": False, "error": "Cannot change status from reviewed to pending"}


def test_patients_cannot_update_lab_results(db, care):
    patient, doctor, _stranger, _visit = care
    result_id = order(db, doctor, patient)

    assert lab_actions.update_lab_result(db, patient.user_id, result_id, {"notes": "fine"}) == {
        "success": False, "error": "Access denied to lab results",
    }


def test_pending_count_covers_open_results(db, make, care):
    patient, doctor, _stranger, _visit = care
    order(db, doctor, patient)
    completed = order(db, doctor, patient)
    reviewed = order(db, doctor, patient)
    lab_actions.update_lab_result(db, doctor.user_id, completed, {"status": "completed"})
    lab_actions.update_lab_result(db, doctor.user_id, reviewed, {"status": "reviewed"})

    assert lab_actions.get_pending_lab_results_count(db, doctor.user_id) == {"success": True, "count": 2}
    assert lab_actions.get_pending_lab_results_count(db, make.admin().id) == {
        "success": False, "error": "Doctor access required",
    }


def test_lab_details_denied_to_other_patient(db, make, care):
    patient, doctor, _stranger, _visit = care
    result_id = order(db, doctor, patient)

    result = lab_actions.get_lab_result_details(db, make.patient().user_id, result_id)

    assert result == {"success": False, "error": "Access denied to patient lab results"}
