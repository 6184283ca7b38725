import pytest

from medcrm.actions import feedback_actions
from medcrm.models.all_models import Feedback, FeedbackStatus, FeedbackType, Priority


@pytest.fixture
def ward(make):
    return make.department(name="Outpatients")


def submit(db, patient, **extra):
    data = {"subject": "Long wait", "message": "Waited two hours", "type": "complaint", **extra}
    return feedback_actions.submit_feedback(db, patient.user_id, data)


def test_patient_submits_open_feedback(db, make, revalidated):
    patient = make.patient(name="Ruth")

    result = submit(db, patient)

    feedback = result["feedback"]
    assert feedback["status"] == FeedbackStatus.OPEN
    assert feedback["priority"] == Priority.NORMAL
    assert feedback["patient_name"] == "Ruth"
    assert revalidated == ["/feedback", "/dashboard"]


def test_only_patients_submit(db, make):
    result = feedback_actions.submit_feedback(db, make.staff().user_id, {
        "subject": "x", "message": "y", "type": "praise",
    })

    assert result == {"success": False, "error": "Only patients can submit feedback"}


def test_submit_rejects_unknown_department(db, make):
    assert submit(db, make.patient(), department_id=77) == {"success": False, "error": "Department not found"}


def test_submit_rejects_unknown_type(db, make):
    result = submit(db, make.patient(), type="rant")

    assert result["success"] is False
    assert result["error"].startswith("type")


def test_patient_sees_only_own_feedback(db, make):
    mine, theirs = make.patient(), make.patient()
    submit(db, mine, subject="Mine")
    submit(db, theirs, subject="Theirs")

    result = feedback_actions.get_feedback(db, mine.user_id)

    assert [f["subject"] for f in result["feedback"]] == ["Mine"]


def test_staff_sees_department_and_assigned_feedback(db, make, ward):
    patient = make.patient()
    nurse = make.staff(department=ward)
    admin = make.admin()
    submit(db, patient, subject="Ward issue", department_id=ward.id)
    elsewhere = submit(db, patient, subject="Assigned elsewhere")["feedback"]["id"]
    submit(db, patient, subject="Not mine")
    feedback_actions.assign_feedback(db, admin.id, elsewhere, nurse.user_id)

    result = feedback_actions.get_feedback(db, nurse.user_id)

    assert sorted(f["subject"] for f in result["feedback"]) == ["Assigned elsewhere", "Ward issue"]


def test_doctors_have_no_feedback_access(db, make):
    assert feedback_actions.get_feedback(db, make.doctor().user_id) == {
        "success": False, "error": "Access denied to feedback",
    }


def test_feedback_filters(db, make):
    patient, admin = make.patient(), make.admin()
    submit(db, patient, type="praise", priority="high")
    submit(db, patient, type="complaint", priority="urgent")

    praise = feedback_actions.get_feedback(db, admin.id, type="praise")
    urgent = feedback_actions.get_feedback(db, admin.id, priority="urgent", status="all")
    invalid = feedback_actions.get_feedback(db, admin.id, status="pending")

    assert [f["type"] for f in praise["feedback"]] == [FeedbackType.PRAISE]
    assert urgent["pagination"]["total"] == 1
    assert invalid == {"success": False, "error": "Invalid status: pending"}


def test_response_stamps_responder(db, make):
    patient, staff = make.patient(), make.staff()
    feedback_id = submit(db, patient)["feedback"]["id"]

    result = feedback_actions.update_feedback(db, staff.user_id, feedback_id, {
        "status": "resolved", "response": "Sorry, fixed now",
    })

    assert result["feedback"]["status"] == FeedbackStatus.RESOLVED
    assert result["feedback"]["responded_by"] == staff.user_id
    assert result["feedback"]["responded_at"] is not None


def test_admin_clears_response_and_rating(db, make):
    patient, admin = make.patient(), make.admin()
    feedback_id = submit(db, patient)["feedback"]["id"]
    feedback_actions.update_feedback(db, admin.id, feedback_id, {"response": "Looking into it", "rating": 4})

    result = feedback_actions.update_feedback(db, admin.id, feedback_id, {
        "response": None, "rating": None, "status": None,
    })

    assert result["feedback"]["response"] is None
    assert result["feedback"]["rating"] is None
    assert result["feedback"]["status"] == FeedbackStatus.OPEN


def test_closed_feedback_cannot_reopen(db, make):
    patient, admin = make.patient(), make.admin()
    feedback_id = submit(db, patient)["feedback"]["id"]
    feedback_actions.update_feedback(db, admin.id, feedback_id, {"status": "closed"})

    result = feedback_actions.update_feedback(db, admin.id, feedback_id, {"status": "open"})

    assert result == {"success": False, "error": "Cannot change status from closed to open"}


def test_assign_moves_to_in_progress(db, make):
    patient, admin, nurse = make.patient(), make.admin(), make.staff(name="Nurse Joy")
    feedback_id = submit(db, patient)["feedback"]["id"]

    result = feedback_actions.assign_feedback(db, admin.id, feedback_id, nurse.user_id)

    assert result["feedback"]["status"] == FeedbackStatus.IN_PROGRESS
    assert result["feedback"]["assigned_to_name"] == "Nurse Joy"


def test_assign_requires_staff_assignee(db, make):
    patient, admin = make.patient(), make.admin()
    feedback_id = submit(db, patient)["feedback"]["id"]

    result = feedback_actions.assign_feedback(db, admin.id, feedback_id, make.doctor().user_id)

    assert result == {"success": False, "error": "Assigned user must be a staff member"}


def test_feedback_statistics(db, make):
    patient, admin = make.patient(), make.admin()
    db.add_all([
        Feedback(patient_id=patient.id, type=FeedbackType.PRAISE, subject="a", message="a",
                 status=FeedbackStatus.OPEN, priority=Priority.URGENT, rating=5),
        Feedback(patient_id=patient.id, type=FeedbackType.COMPLAINT, subject="b", message="b",
                 status=FeedbackStatus.RESOLVED, rating=2),
        Feedback(patient_id=patient.id, type=FeedbackType.INQUIRY, subject="c", message="c",
                 status=FeedbackStatus.CLOSED),
    ])
    db.commit()

    result = feedback_actions.get_feedback_statistics(db, admin.id)

    assert result["statistics"] == {
        "total": 3, "open": 1, "in_progress": 0, "resolved": 1, "closed": 1, "urgent": 1, "avg_rating": 3.5,
    }
