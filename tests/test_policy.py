import pytest

from medcrm.errors import Forbidden, NotFound, Unauthenticated
from medcrm.models.all_models import UserRole
from medcrm.policy import AccessPolicy, Ownership, Principal, Rule, Scope, owns, policy, resolve_principal


def principal(role, **fields):
    return Principal(user_id="u-1", role=role, **fields)


def test_roles_missing_from_rule_are_denied():
    with pytest.raises(Forbidden) as exc:
        policy.require(principal(UserRole.PATIENT), "report", "generate")
    assert exc.value.message == "Admin or staff access required"


def test_own_scope_checks_ownership():
    patient = principal(UserRole.PATIENT, patient_id=7)

    assert policy.require(patient, "appointment", "read", Ownership(patient_id=7)) == Scope.OWN
    with pytest.raises(Forbidden) as exc:
        policy.require(patient, "appointment", "read", Ownership(patient_id=8))
    assert exc.value.message == "You can only view your own appointments"


def test_role_specific_owner_message():
    doctor = principal(UserRole.DOCTOR, doctor_id=3)

    with pytest.raises(Forbidden) as exc:
        policy.require(doctor, "appointment", "create", Ownership(doctor_id=4))
    assert exc.value.message == "You can only create appointments for yourself"


def test_any_scope_ignores_ownership():
    staff = principal(UserRole.STAFF)
    assert policy.require(staff, "appointment", "cancel", Ownership(patient_id=1)) == Scope.ANY


def test_owns_matches_user_ids_and_department():
    staff = principal(UserRole.STAFF, department_id=2)

    assert owns(staff, Ownership(department_id=2))
    assert owns(staff, Ownership(user_ids=("u-1",)))
    assert not owns(staff, Ownership(department_id=5, user_ids=("u-2",)))


def test_unknown_operation_is_forbidden():
    assert not policy.allowed(principal(UserRole.ADMIN), "appointment", "teleport")


def test_patient_field_restriction():
    patient = principal(UserRole.PATIENT, patient_id=1)

    policy.require_fields(patient, "appointment", ["reason", "symptoms"])
    with pytest.raises(Forbidden) as exc:
        policy.require_fields(patient, "appointment", ["reason", "status"])
    assert exc.value.message == "You can only update reason and symptoms"
    # other roles are unrestricted
    policy.require_fields(principal(UserRole.DOCTOR), "appointment", ["status", "notes"])


def test_custom_rule_table():
    custom = AccessPolicy(rules={("thing", "poke"): Rule({UserRole.STAFF: Scope.ANY}, role_message="No poking")})

    assert custom.allowed(principal(UserRole.STAFF), "thing", "poke")
    with pytest.raises(Forbidden) as exc:
        custom.require(principal(UserRole.ADMIN), "thing", "poke")
    assert exc.value.message == "No poking"


def test_resolve_principal_loads_profile_links(db, make):
    department = make.department()
    member = make.staff(department=department)
    patient = make.patient()

    staff_principal = resolve_principal(db, member.user_id)
    patient_principal = resolve_principal(db, patient.user_id)

    assert staff_principal.staff_id == member.id
    assert staff_principal.department_id == department.id
    assert patient_principal.patient_id == patient.id
    assert patient_principal.doctor_id is None


def test_resolve_principal_failures(db, make):
    banned = make.admin(banned=True)

    with pytest.raises(Unauthenticated):
        resolve_principal(db, None)
    with pytest.raises(NotFound):
        resolve_principal(db, "no-such-user")
    with pytest.raises(Forbidden) as exc:
        resolve_principal(db, banned.id)
    assert exc.value.message == "User is banned"
