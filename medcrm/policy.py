# medcrm/policy.py
"""
Role and ownership rules for every action.

Each (resource, operation) pair maps every permitted role to a ``Scope``:
``ANY`` lets the role act on every row, ``OWN`` only on rows the caller is
linked to (their patient row, their doctor row, or their user id). Roles
missing from a rule are denied outright. The caller is resolved once into a
``Principal`` and handed to the policy by each action.
"""
import enum
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, Optional, Tuple

from sqlalchemy.orm import Session

from medcrm.errors import Forbidden, NotFound, Unauthenticated
from medcrm.models.all_models import Doctor, Patient, Staff, User, UserRole


class Scope(str, enum.Enum):
    ANY = "any"
    OWN = "own"


@dataclass(frozen=True)
class Principal:
    user_id: str
    role: UserRole
    patient_id: Optional[int] = None
    doctor_id: Optional[int] = None
    staff_id: Optional[int] = None
    department_id: Optional[int] = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


@dataclass(frozen=True)
class Ownership:
    """Who a row belongs to, in terms a Principal can be matched against."""
    patient_id: Optional[int] = None
    doctor_id: Optional[int] = None
    department_id: Optional[int] = None
    user_ids: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Rule:
    scopes: Dict[UserRole, Scope]
    role_message: str = "Access denied"
    owner_message: str = "Access denied"
    # per-role override of owner_message
    owner_messages: Dict[UserRole, str] = field(default_factory=dict)


ADMIN, DOCTOR, PATIENT, STAFF = UserRole.ADMIN, UserRole.DOCTOR, UserRole.PATIENT, UserRole.STAFF
ANY, OWN = Scope.ANY, Scope.OWN

ADMIN_ONLY = Rule({ADMIN: ANY}, role_message="Admin access required")
ADMIN_OR_STAFF = Rule({ADMIN: ANY, STAFF: ANY}, role_message="Admin or staff access required")
SIGNED_IN = Rule({ADMIN: ANY, DOCTOR: ANY, PATIENT: ANY, STAFF: ANY})


def _own_appointment(verb: str) -> Rule:
    return Rule(
        {PATIENT: OWN, DOCTOR: OWN, STAFF: ANY, ADMIN: ANY},
        owner_message=f"You can only {verb} your own appointments",
    )


DEFAULT_RULES: Dict[Tuple[str, str], Rule] = {
    ("appointment", "create"): Rule(
        {PATIENT: OWN, DOCTOR: OWN, STAFF: ANY, ADMIN: ANY},
        owner_messages={
            PATIENT: "You can only book appointments for yourself",
            DOCTOR: "You can only create appointments for yourself",
        },
    ),
    ("appointment", "read"): _own_appointment("view"),
    ("appointment", "update"): _own_appointment("update"),
    ("appointment", "cancel"): _own_appointment("cancel"),

    ("medical_record", "summary"): Rule(
        {PATIENT: OWN, DOCTOR: OWN, STAFF: ANY, ADMIN: ANY},
        owner_messages={
            PATIENT: "Access denied",
            DOCTOR: "Access denied to patient records",
        },
    ),
    ("medical_record", "create"): Rule({DOCTOR: ANY}, role_message="Only doctors can create medical records"),
    ("medical_record", "read"): Rule(
        {PATIENT: OWN, DOCTOR: OWN, STAFF: ANY, ADMIN: ANY},
        owner_messages={
            PATIENT: "You can only view your own medical records",
            DOCTOR: "You can only view records you created",
        },
    ),
    ("medical_record", "update"): Rule(
        {DOCTOR: OWN},
        role_message="Only doctors can update medical records",
        owner_message="Medical record not found or access denied",
    ),
    ("medical_record", "delete"): Rule(
        {DOCTOR: OWN},
        role_message="Only doctors can delete medical records",
        owner_message="Medical record not found or access denied",
    ),

    ("medication", "prescribe"): Rule({DOCTOR: ANY}, role_message="Only doctors can prescribe medications"),
    ("medication", "read"): Rule(
        {PATIENT: OWN, DOCTOR: OWN, STAFF: ANY, ADMIN: ANY},
        owner_messages={
            PATIENT: "You can only view your own medications",
            DOCTOR: "You can only view medications you prescribed",
        },
    ),
    ("medication", "update"): Rule(
        {DOCTOR: OWN},
        role_message="Only doctors can update medications",
        owner_message="Medication not found or access denied",
    ),
    ("medication", "refill"): Rule(
        {PATIENT: OWN, DOCTOR: OWN, STAFF: ANY, ADMIN: ANY},
        owner_messages={
            PATIENT: "You can only refill your own medications",
            DOCTOR: "You can only refill medications you prescribed",
        },
    ),
    ("medication", "discontinue"): Rule(
        {DOCTOR: OWN},
        role_message="Only doctors can discontinue medications",
        owner_message="Medication not found or access denied",
    ),

    ("lab_result", "order"): Rule({DOCTOR: ANY}, role_message="Only doctors can order lab tests"),
    ("lab_result", "read"): Rule(
        {PATIENT: OWN, DOCTOR: OWN, STAFF: ANY, ADMIN: ANY},
        owner_message="Access denied to patient lab results",
    ),
    ("lab_result", "update"): Rule(
        {DOCTOR: OWN, STAFF: ANY, ADMIN: ANY},
        role_message="Access denied to lab results",
        owner_message="You can only update lab results for tests you ordered",
    ),
    ("lab_result", "pending_count"): Rule({DOCTOR: OWN}, role_message="Doctor access required"),

    ("feedback", "submit"): Rule({PATIENT: ANY}, role_message="Only patients can submit feedback"),
    ("feedback", "read"): Rule(
        {PATIENT: OWN, STAFF: OWN, ADMIN: ANY},
        role_message="Access denied to feedback",
        owner_message="You can only view your own feedback",
    ),
    ("feedback", "update"): ADMIN_OR_STAFF,
    ("feedback", "assign"): ADMIN_ONLY,

    ("message", "send"): SIGNED_IN,
    ("message", "read"): Rule(
        {ADMIN: OWN, DOCTOR: OWN, PATIENT: OWN, STAFF: OWN},
        owner_message="Message not found or access denied",
    ),
    ("message", "mark_read"): Rule(
        {ADMIN: OWN, DOCTOR: OWN, PATIENT: OWN, STAFF: OWN},
        owner_message="Message not found or access denied",
    ),
    ("message", "delete"): Rule(
        {ADMIN: OWN, DOCTOR: OWN, PATIENT: OWN, STAFF: OWN},
        owner_message="Message not found or access denied",
    ),

    ("report", "generate"): ADMIN_OR_STAFF,
    ("report", "read"): ADMIN_OR_STAFF,
    ("report", "delete"): ADMIN_ONLY,
    ("report", "dashboard"): ADMIN_ONLY,
    ("report", "revenue"): ADMIN_ONLY,

    ("user", "manage"): ADMIN_ONLY,
    ("patient", "manage"): ADMIN_ONLY,
    ("patient", "read"): ADMIN_OR_STAFF,
    ("doctor", "manage"): ADMIN_ONLY,
    ("doctor", "browse"): SIGNED_IN,
    ("staff", "manage"): ADMIN_ONLY,
    ("department", "manage"): ADMIN_ONLY,
    ("department", "read"): SIGNED_IN,

    ("assignment", "manage"): ADMIN_ONLY,
    ("assignment", "read"): ADMIN_ONLY,
    ("profile", "self"): Rule({PATIENT: ANY}, role_message="Patient access required"),
    ("doctor", "dashboard"): Rule({DOCTOR: ANY}, role_message="Doctor access required"),
    ("bed", "manage"): Rule(
        {ADMIN: ANY, DOCTOR: ANY, STAFF: ANY},
        role_message="Access denied. Admin, doctor, or staff role required",
    ),
    ("notification", "send"): ADMIN_OR_STAFF,
    ("notification", "read"): Rule(
        {ADMIN: OWN, DOCTOR: OWN, PATIENT: OWN, STAFF: OWN},
        owner_message="Notification not found or access denied",
    ),
}

# Fields a role may send when updating a resource; roles not listed may send any field
DEFAULT_UPDATE_FIELDS: Dict[Tuple[str, UserRole], FrozenSet[str]] = {
    ("appointment", PATIENT): frozenset({"reason", "symptoms"}),
}

UPDATE_FIELD_MESSAGES: Dict[Tuple[str, UserRole], str] = {
    ("appointment", PATIENT): "You can only update reason and symptoms",
}


def owns(principal: Principal, owner: Ownership) -> bool:
    if principal.patient_id is not None and owner.patient_id == principal.patient_id:
        return True
    if principal.doctor_id is not None and owner.doctor_id == principal.doctor_id:
        return True
    if principal.department_id is not None and owner.department_id == principal.department_id:
        return True
    return principal.user_id in owner.user_ids


class AccessPolicy:
    def __init__(self, rules=None, update_fields=None):
        self.rules = dict(DEFAULT_RULES if rules is None else rules)
        self.update_fields = dict(DEFAULT_UPDATE_FIELDS if update_fields is None else update_fields)

    def _rule(self, resource: str, operation: str) -> Rule:
        try:
            return self.rules[(resource, operation)]
        except KeyError:
            raise Forbidden(f"No access rule for {resource}.{operation}")

    def scope(self, principal: Principal, resource: str, operation: str) -> Scope:
        """Scope the principal holds for the operation; Forbidden when the role has none."""
        rule = self._rule(resource, operation)
        scope = rule.scopes.get(principal.role)
        if scope is None:
            raise Forbidden(rule.role_message)
        return scope

    def require(self, principal: Principal, resource: str, operation: str, owner: Ownership = None) -> Scope:
        scope = self.scope(principal, resource, operation)
        if scope == Scope.OWN and owner is not None and not owns(principal, owner):
            rule = self._rule(resource, operation)
            raise Forbidden(rule.owner_messages.get(principal.role, rule.owner_message))
        return scope

    def allowed(self, principal: Principal, resource: str, operation: str, owner: Ownership = None) -> bool:
        try:
            self.require(principal, resource, operation, owner)
        except Forbidden:
            return False
        return True

    def require_fields(self, principal: Principal, resource: str, fields: Iterable[str]) -> None:
        allowed = self.update_fields.get((resource, principal.role))
        if allowed is None:
            return
        if any(name not in allowed for name in fields):
            raise Forbidden(UPDATE_FIELD_MESSAGES.get((resource, principal.role), "Field update not allowed"))


policy = AccessPolicy()


def resolve_principal(db: Session, user_id: Optional[str]) -> Principal:
    """Load the caller's role and linked profile rows."""
    if not user_id:
        raise Unauthenticated()

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFound("User not found")
    if user.banned:
        raise Forbidden("User is banned")
    if user.role is None:
        raise Forbidden("User has no role assigned")

    patient_id = doctor_id = staff_id = department_id = None
    if user.role == UserRole.PATIENT:
        patient_id = db.query(Patient.id).filter(Patient.user_id == user.id).scalar()
    elif user.role == UserRole.DOCTOR:
        doctor_id = db.query(Doctor.id).filter(Doctor.user_id == user.id).scalar()
    elif user.role == UserRole.STAFF:
        staff = db.query(Staff.id, Staff.department_id).filter(Staff.user_id == user.id).first()
        if staff:
            staff_id, department_id = staff.id, staff.department_id

    return Principal(
        user_id=user.id,
        role=UserRole(user.role),
        patient_id=patient_id,
        doctor_id=doctor_id,
        staff_id=staff_id,
        department_id=department_id,
    )
