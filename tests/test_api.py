from datetime import date

from medcrm.models.all_models import User, UserRole
from medcrm.utils.auth import create_refresh_token

API = "/api/v1"

SIGNUP = {
    "name": "Mphatso Patient",
    "email": "Mphatso@Example.com",
    "password": "Secret123",
    "phone": "+265 888-123-456",
    "gender": "female",
}


# ================================
# AUTH
# ================================

def test_signup_creates_patient_and_returns_tokens(client, db):
    response = client.post(f"{API}/auth/signup", json=SIGNUP)

    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "Account created successfully"
    assert body["token_type"] == "bearer"
    assert body["user"]["email"] == "mphatso@example.com"
    assert body["user"]["role"] == "patient"
    assert body["user"]["patient_id"] is not None
    account = db.query(User).filter(User.email == "mphatso@example.com").one()
    assert account.patient_profile.phone == "+265888123456"


def test_signup_duplicate_email_conflicts(client):
    client.post(f"{API}/auth/signup", json=SIGNUP)

    response = client.post(f"{API}/auth/signup", json=SIGNUP)

    assert response.status_code == 409
    assert response.json()["detail"] == "Email already registered"


def test_signup_rejects_weak_password(client):
    response = client.post(f"{API}/auth/signup", json={**SIGNUP, "password": "alllowercase1"})

    assert response.status_code == 422


def test_login_and_me(client):
    client.post(f"{API}/auth/signup", json=SIGNUP)

    login = client.post(f"{API}/auth/login", json={"email": "mphatso@example.com", "password": "Secret123"})
    token = login.json()["access_token"]
    me = client.get(f"{API}/auth/me", headers={"Authorization": f"Bearer {token}"})

    assert login.status_code == 200
    assert login.json()["message"] == "Login successful"
    assert login.json()["user"]["last_login_at"] is not None
    assert me.status_code == 200
    assert me.json()["name"] == "Mphatso Patient"


def test_login_failures(client, make):
    make.user(UserRole.PATIENT, password="Secret123", banned=True)
    banned_email = "patient1@example.com"

    wrong = client.post(f"{API}/auth/login", json={"email": banned_email, "password": "Wrong1234"})
    banned = client.post(f"{API}/auth/login", json={"email": banned_email, "password": "Secret123"})

    assert wrong.status_code == 401
    assert wrong.json()["detail"] == "Invalid credentials"
    assert banned.status_code == 403
    assert banned.json()["detail"] == "Account is banned. Please contact support."


def test_me_without_session(client):
    assert client.get(f"{API}/auth/me").status_code == 401
    assert client.get(f"{API}/auth/me", headers={"Authorization": "Bearer garbage"}).status_code == 401


def test_refresh_issues_new_access_token(client, make, auth):
    admin = make.admin()

    refreshed = client.post(f"{API}/auth/refresh", json={"refresh_token": create_refresh_token({"sub": admin.id})})
    access_as_refresh = client.post(f"{API}/auth/refresh", json={
        "refresh_token": auth(admin.id)["Authorization"].split()[1],
    })

    assert refreshed.status_code == 200
    assert refreshed.json()["access_token"]
    assert access_as_refresh.status_code == 401


# ================================
# APPOINTMENTS
# ================================

def test_slots_are_public(client, make):
    doctor = make.doctor()

    response = client.get(f"{API}/appointments/slots", params={"doctor_id": doctor.id, "date": "2024-06-01"})

    assert response.status_code == 200
    assert len(response.json()["slots"]) == 16


def test_booking_flow(client, make, auth):
    patient, doctor = make.patient(), make.doctor()
    booking = {
        "patient_id": patient.id,
        "doctor_id": doctor.id,
        "appointment_date": "2024-06-01",
        "appointment_time": "10:00",
        "type": "consultation",
    }

    created = client.post(f"{API}/appointments", json=booking, headers=auth(patient.user_id))
    clash = client.post(f"{API}/appointments", json=booking, headers=auth(patient.user_id))
    appointment_id = created.json()["appointment"]["id"]
    slots = client.get(f"{API}/appointments/slots", params={"doctor_id": doctor.id, "date": "2024-06-01"})
    cancelled = client.post(f"{API}/appointments/{appointment_id}/cancel", json={"reason": "Better now"},
                            headers=auth(patient.user_id))

    assert created.status_code == 201
    assert created.json()["appointment"]["status"] == "scheduled"
    assert clash.status_code == 400
    assert clash.json() == {"success": False, "error": "Doctor has a scheduling conflict at this time"}
    assert "10:00" not in [slot["time"] for slot in slots.json()["slots"]]
    assert cancelled.json() == {"success": True}


def test_booking_without_session_is_400(client, make):
    patient, doctor = make.patient(), make.doctor()

    response = client.post(f"{API}/appointments", json={
        "patient_id": patient.id, "doctor_id": doctor.id, "appointment_date": "2024-06-01",
        "appointment_time": "10:00", "type": "consultation",
    })

    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Unauthorized"}


def test_malformed_booking_is_422(client, make, auth):
    patient = make.patient()

    response = client.post(f"{API}/appointments", json={"patient_id": patient.id}, headers=auth(patient.user_id))

    assert response.status_code == 422


def test_patient_update_restricted_over_http(client, make, auth):
    patient, doctor = make.patient(), make.doctor()
    appointment = make.appointment(patient, doctor, date(2024, 6, 1), "09:00")

    refused = client.put(f"{API}/appointments/{appointment.id}", json={"status": "confirmed"},
                         headers=auth(patient.user_id))
    allowed = client.put(f"{API}/appointments/{appointment.id}", json={"reason": "Back pain"},
                         headers=auth(patient.user_id))

    assert refused.status_code == 400
    assert refused.json()["error"] == "You can only update reason and symptoms"
    assert allowed.status_code == 200
    assert allowed.json()["appointment"]["reason"] == "Back pain"


# ================================
# OTHER RESOURCES
# ================================

def test_admin_endpoints_require_admin(client, make, auth):
    patient, admin = make.patient(), make.admin()

    denied = client.get(f"{API}/users", headers=auth(patient.user_id))
    listed = client.get(f"{API}/users", headers=auth(admin.id))

    assert denied.status_code == 400
    assert denied.json()["error"] == "Admin access required"
    assert listed.status_code == 200
    assert listed.json()["pagination"]["total"] == 2


def test_department_create_and_list(client, make, auth):
    admin = make.admin()

    created = client.post(f"{API}/departments", json={"name": "Oncology"}, headers=auth(admin.id))
    listed = client.get(f"{API}/departments", headers=auth(admin.id))

    assert created.status_code == 201
    assert [d["name"] for d in listed.json()["departments"]] == ["Oncology"]


def test_messages_over_http(client, make, auth):
    sender, recipient = make.admin(), make.patient()

    sent = client.post(f"{API}/messages", json={"recipient_id": recipient.user_id, "message": "Hello"},
                       headers=auth(sender.id))
    unread = client.get(f"{API}/messages/unread-count", headers=auth(recipient.user_id))
    read_all = client.post(f"{API}/messages/read-all", headers=auth(recipient.user_id))

    assert sent.status_code == 201
    assert unread.json() == {"success": True, "count": 1}
    assert read_all.json() == {"success": True, "updated": 1}


def test_dashboard_report(client, make, auth):
    admin = make.admin()

    response = client.get(f"{API}/reports/dashboard", headers=auth(admin.id))

    assert response.status_code == 200
    assert response.json()["statistics"]["users"]["total_users"] == 1


def test_patient_profile_over_http(client, make, auth):
    patient = make.patient(name="Mphatso")

    profile = client.get(f"{API}/profile", headers=auth(patient.user_id))
    updated = client.put(f"{API}/profile", json={"blood_type": "O+"}, headers=auth(patient.user_id))
    dashboard = client.get(f"{API}/profile/dashboard", headers=auth(patient.user_id))

    assert profile.json()["profile"]["name"] == "Mphatso"
    assert updated.json()["profile"]["blood_type"] == "O+"
    assert dashboard.json()["upcoming_appointments"] == []


def test_bed_allocation_over_http(client, make, auth):
    staff, patient = make.staff(), make.patient()

    bed = client.post(f"{API}/beds", json={"room_number": "7", "bed_number": "B"}, headers=auth(staff.user_id))
    admitted = client.post(f"{API}/beds/occupancy", json={
        "bed_id": bed.json()["bed"]["id"], "patient_id": patient.id, "admission_reason": "Fever",
    }, headers=auth(staff.user_id))
    stats = client.get(f"{API}/beds/stats", headers=auth(staff.user_id))

    assert bed.status_code == 201
    assert admitted.status_code == 201
    assert stats.json()["stats"]["occupied_beds"] == 1


def test_report_widgets_and_assignments_over_http(client, make, auth):
    admin, patient, doctor = make.admin(), make.patient(), make.doctor()

    assigned = client.post(f"{API}/assignments", json={"patient_id": patient.id, "doctor_id": doctor.id},
                           headers=auth(admin.id))
    removed = client.delete(f"{API}/assignments/patients/{patient.id}/doctors/{doctor.id}", headers=auth(admin.id))
    activities = client.get(f"{API}/reports/activities", headers=auth(admin.id))
    revenue = client.post(f"{API}/reports/revenue", json={"start": "2024-06-01", "end": "2024-06-30"},
                          headers=auth(admin.id))

    assert assigned.status_code == 201
    assert removed.json() == {"success": True}
    assert activities.status_code == 200
    assert revenue.status_code == 201
    assert revenue.json()["report"]["type"] == "revenue"


def test_root_redirects_to_docs(client):
    response = client.get("/", follow_redirects=False)

    assert response.status_code in (302, 307)
    assert response.headers["location"] == "/docs"
