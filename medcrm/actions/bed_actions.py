# medcrm/actions/bed_actions.py
"""
Ward bed spaces and the admissions that occupy them.

A bed's status mirrors its occupancy: allocating marks it occupied, and a
discharge or transfer frees it again. Occupancy rows are never deleted; a
transfer closes the old row as ``transferred`` and links it to the new one.
"""
import json
from typing import Optional

import structlog
from sqlalchemy import case, distinct, func, or_
from sqlalchemy.orm import Session

from medcrm.actions.base import action, commit, dump, like, load, paginate, success
from medcrm.actions.medical_actions import get_patient
from medcrm.cache import revalidate_path
from medcrm.errors import Conflict, InvalidTransition, NotFound, ValidationFailed
from medcrm.models.all_models import (
    BedOccupancy, BedSpace, BedStatus, BedType, Department, Doctor, OccupancyStatus, local_now,
)
from medcrm.policy import policy, resolve_principal
from medcrm.schemas.ward import (
    BedAllocation, BedDischarge, BedSpaceCreate, BedSpaceResponse, BedSpaceUpdate,
    BedTransfer, OccupancyResponse, OccupancyUpdate,
)

logger = structlog.get_logger(__name__)

BEDS_PAGE = "/admin/beds"
OCCUPANCY_PAGE = "/admin/occupancy"
BED_TAKEN = "Bed with this room and bed number already exists"
ALREADY_ADMITTED = "Patient is already allocated to another bed"


def _require_ward_access(db: Session, user_id: Optional[str]):
    principal = resolve_principal(db, user_id)
    policy.require(principal, "bed", "manage")
    return principal


def _serialize_bed(bed: BedSpace, **extra):
    return dump(
        BedSpaceResponse,
        bed,
        department_name=bed.department.name if bed.department else None,
        **extra,
    )


def _serialize_occupancy(occupancy: BedOccupancy):
    return dump(
        OccupancyResponse,
        occupancy,
        room_number=occupancy.bed.room_number,
        bed_number=occupancy.bed.bed_number,
        patient_name=occupancy.patient.user.name,
        doctor_name=occupancy.doctor.user.name if occupancy.doctor else None,
    )


def _get_bed(db: Session, bed_id: int, message: str = "Bed space not found") -> BedSpace:
    bed = db.query(BedSpace).filter(BedSpace.id == bed_id).first()
    if not bed:
        raise NotFound(message)
    return bed


def _get_occupancy(db: Session, occupancy_id: int) -> BedOccupancy:
    occupancy = db.query(BedOccupancy).filter(BedOccupancy.id == occupancy_id).first()
    if not occupancy:
        raise NotFound("Bed occupancy record not found")
    return occupancy


def _active_occupancy(db: Session, **criteria) -> Optional[BedOccupancy]:
    return db.query(BedOccupancy).filter_by(status=OccupancyStatus.ACTIVE, **criteria).first()


def _ensure_bed_free(db: Session, room_number: str, bed_number: str, exclude_id: Optional[int] = None) -> None:
    query = db.query(BedSpace.id).filter(
        BedSpace.room_number == room_number,
        BedSpace.bed_number == bed_number,
    )
    if exclude_id is not None:
        query = query.filter(BedSpace.id != exclude_id)
    if query.first():
        raise Conflict(BED_TAKEN)


def _ensure_department(db: Session, department_id: Optional[int]) -> None:
    if department_id is not None and not db.query(Department.id).filter(Department.id == department_id).first():
        raise NotFound("Department not found")


def _ensure_doctor(db: Session, doctor_id: Optional[int]) -> None:
    if doctor_id is not None and not db.query(Doctor.id).filter(Doctor.id == doctor_id).first():
        raise NotFound("Doctor not found")


def _append_note(notes: Optional[str], label: str, text: Optional[str]) -> Optional[str]:
    if not text:
        return notes
    return f"{notes or ''}\n\n{label}: {text}"


def _parse_enum(enum_cls, value, label):
    try:
        return enum_cls(value)
    except ValueError:
        raise ValidationFailed(f"Invalid {label}: {value}")


# ================================
# BED SPACES
# ================================

@action
def create_bed_space(db: Session, user_id: Optional[str], data):
    principal = _require_ward_access(db, user_id)
    fields = load(BedSpaceCreate, data)

    _ensure_bed_free(db, fields["room_number"], fields["bed_number"])
    _ensure_department(db, fields["department_id"])

    equipment = fields.pop("equipment")
    bed = BedSpace(
        **fields,
        equipment=json.dumps(equipment) if equipment else None,
        status=BedStatus.AVAILABLE,
        is_active=True,
    )
    db.add(bed)
    commit(db, BED_TAKEN)
    db.refresh(bed)

    revalidate_path(BEDS_PAGE)
    logger.info("bed_space_created", bed_id=bed.id, room=bed.room_number, bed=bed.bed_number, by=principal.user_id)

    return success(bed=_serialize_bed(bed))


@action
def get_bed_spaces(
    db: Session,
    user_id: Optional[str],
    page: int = 1,
    limit: int = 10,
    search: Optional[str] = None,
    department_id: Optional[int] = None,
    type: Optional[str] = None,
    status: Optional[str] = None,
    ward: Optional[str] = None,
):
    _require_ward_access(db, user_id)

    query = db.query(BedSpace).filter(BedSpace.is_active.is_(True))
    if search:
        query = query.filter(or_(
            BedSpace.room_number.ilike(like(search)),
            BedSpace.bed_number.ilike(like(search)),
            BedSpace.ward.ilike(like(search)),
        ))
    if department_id:
        query = query.filter(BedSpace.department_id == department_id)
    if type:
        query = query.filter(BedSpace.type == _parse_enum(BedType, type, "bed type"))
    if status:
        query = query.filter(BedSpace.status == _parse_enum(BedStatus, status, "bed status"))
    if ward:
        query = query.filter(BedSpace.ward == ward)

    rows, pagination = paginate(query.order_by(BedSpace.created_at, BedSpace.id), page, limit)

    return success(beds=[_serialize_bed(bed) for bed in rows], pagination=pagination)


@action
def get_bed_space_details(db: Session, user_id: Optional[str], bed_id: int):
    _require_ward_access(db, user_id)

    bed = _get_bed(db, bed_id)
    current = _active_occupancy(db, bed_id=bed.id)

    return success(bed=_serialize_bed(
        bed,
        current_occupancy=_serialize_occupancy(current) if current else None,
    ))


@action
def update_bed_space(db: Session, user_id: Optional[str], bed_id: int, data):
    principal = _require_ward_access(db, user_id)
    fields = load(BedSpaceUpdate, data, exclude_unset=True)

    bed = _get_bed(db, bed_id)
    room_number = fields.get("room_number") or bed.room_number
    bed_number = fields.get("bed_number") or bed.bed_number
    if (room_number, bed_number) != (bed.room_number, bed.bed_number):
        _ensure_bed_free(db, room_number, bed_number, exclude_id=bed.id)
    if fields.get("department_id") is not None:
        _ensure_department(db, fields["department_id"])
    if "equipment" in fields:
        fields["equipment"] = json.dumps(fields["equipment"]) if fields["equipment"] else None

    for field, value in fields.items():
        if value is not None or field in ("department_id", "ward", "floor", "description", "equipment"):
            setattr(bed, field, value)

    commit(db, BED_TAKEN)
    db.refresh(bed)

    revalidate_path(BEDS_PAGE)
    logger.info("bed_space_updated", bed_id=bed.id, fields=sorted(fields), by=principal.user_id)

    return success(bed=_serialize_bed(bed))


@action
def delete_bed_space(db: Session, user_id: Optional[str], bed_id: int):
    """Retire a bed; the row stays for occupancy history."""
    principal = _require_ward_access(db, user_id)

    bed = _get_bed(db, bed_id)
    if _active_occupancy(db, bed_id=bed.id):
        raise Conflict("Cannot delete occupied bed space. Please discharge the patient first.")

    bed.is_active = False
    commit(db)

    revalidate_path(BEDS_PAGE)
    logger.info("bed_space_deleted", bed_id=bed.id, by=principal.user_id)

    return success()


# ================================
# OCCUPANCY
# ================================

@action
def allocate_bed(db: Session, user_id: Optional[str], data):
    principal = _require_ward_access(db, user_id)
    fields = load(BedAllocation, data)

    bed = _get_bed(db, fields["bed_id"])
    if bed.status != BedStatus.AVAILABLE or not bed.is_active:
        raise Conflict("Bed space is not available for allocation")
    get_patient(db, fields["patient_id"])
    if _active_occupancy(db, patient_id=fields["patient_id"]):
        raise Conflict(ALREADY_ADMITTED)
    _ensure_doctor(db, fields["doctor_id"])

    occupancy = BedOccupancy(
        **fields,
        admission_date=local_now(),
        status=OccupancyStatus.ACTIVE,
    )
    db.add(occupancy)
    bed.status = BedStatus.OCCUPIED
    commit(db, ALREADY_ADMITTED)
    db.refresh(occupancy)

    revalidate_path(BEDS_PAGE, OCCUPANCY_PAGE)
    logger.info(
        "bed_allocated",
        occupancy_id=occupancy.id,
        bed_id=bed.id,
        patient_id=occupancy.patient_id,
        by=principal.user_id,
    )

    return success(occupancy=_serialize_occupancy(occupancy))


def _get_active_occupancy(db: Session, occupancy_id: int) -> BedOccupancy:
    occupancy = _get_occupancy(db, occupancy_id)
    if occupancy.status != OccupancyStatus.ACTIVE:
        raise InvalidTransition("Patient is not currently admitted to this bed")
    return occupancy


@action
def discharge_patient(db: Session, user_id: Optional[str], occupancy_id: int, notes: Optional[str] = None):
    principal = _require_ward_access(db, user_id)
    fields = load(BedDischarge, {"notes": notes})

    occupancy = _get_active_occupancy(db, occupancy_id)
    occupancy.status = OccupancyStatus.DISCHARGED
    occupancy.actual_discharge_date = local_now()
    occupancy.notes = _append_note(occupancy.notes, "Discharge Notes", fields["notes"])
    occupancy.bed.status = BedStatus.AVAILABLE
    commit(db)

    revalidate_path(BEDS_PAGE, OCCUPANCY_PAGE)
    logger.info("patient_discharged", occupancy_id=occupancy.id, bed_id=occupancy.bed_id, by=principal.user_id)

    return success()


@action
def transfer_patient(
    db: Session,
    user_id: Optional[str],
    occupancy_id: int,
    new_bed_id: int,
    reason: Optional[str] = None,
):
    principal = _require_ward_access(db, user_id)
    fields = load(BedTransfer, {"new_bed_id": new_bed_id, "reason": reason})

    current = _get_active_occupancy(db, occupancy_id)
    new_bed = _get_bed(db, fields["new_bed_id"], "New bed space not found")
    if new_bed.status != BedStatus.AVAILABLE or not new_bed.is_active:
        raise Conflict("New bed space is not available")

    current.status = OccupancyStatus.TRANSFERRED
    current.actual_discharge_date = local_now()
    current.notes = _append_note(current.notes, "Transfer Reason", fields["reason"])
    current.bed.status = BedStatus.AVAILABLE
    # the old row must leave the active set before the new one joins it
    db.flush()

    moved = BedOccupancy(
        bed_id=new_bed.id,
        patient_id=current.patient_id,
        doctor_id=current.doctor_id,
        admission_date=local_now(),
        expected_discharge_date=current.expected_discharge_date,
        admission_reason=f"Transferred from Bed {current.bed_id}",
        diagnosis=current.diagnosis,
        notes=fields["reason"],
        priority=current.priority,
        status=OccupancyStatus.ACTIVE,
        transferred_from=current.id,
    )
    db.add(moved)
    new_bed.status = BedStatus.OCCUPIED
    db.flush()
    current.transferred_to = moved.id
    commit(db)
    db.refresh(moved)

    revalidate_path(BEDS_PAGE, OCCUPANCY_PAGE)
    logger.info(
        "patient_transferred",
        from_occupancy=current.id,
        to_occupancy=moved.id,
        bed_id=new_bed.id,
        by=principal.user_id,
    )

    return success(occupancy=_serialize_occupancy(moved))


@action
def update_bed_occupancy(db: Session, user_id: Optional[str], occupancy_id: int, data):
    principal = _require_ward_access(db, user_id)
    fields = load(OccupancyUpdate, data, exclude_unset=True)

    occupancy = _get_occupancy(db, occupancy_id)
    if occupancy.status != OccupancyStatus.ACTIVE:
        raise InvalidTransition("Cannot update discharged or transferred occupancy records")
    if fields.get("doctor_id") is not None:
        _ensure_doctor(db, fields["doctor_id"])

    for field, value in fields.items():
        if value is not None or field in ("doctor_id", "diagnosis", "expected_discharge_date", "notes"):
            setattr(occupancy, field, value)

    commit(db)
    db.refresh(occupancy)

    revalidate_path(OCCUPANCY_PAGE)
    logger.info("bed_occupancy_updated", occupancy_id=occupancy.id, fields=sorted(fields), by=principal.user_id)

    return success(occupancy=_serialize_occupancy(occupancy))


# ================================
# LOOKUPS
# ================================

@action
def get_available_beds(
    db: Session,
    user_id: Optional[str],
    department_id: Optional[int] = None,
    type: Optional[str] = None,
    ward: Optional[str] = None,
):
    _require_ward_access(db, user_id)

    query = db.query(BedSpace).filter(
        BedSpace.status == BedStatus.AVAILABLE,
        BedSpace.is_active.is_(True),
    )
    if department_id:
        query = query.filter(BedSpace.department_id == department_id)
    if type:
        query = query.filter(BedSpace.type == _parse_enum(BedType, type, "bed type"))
    if ward:
        query = query.filter(BedSpace.ward == ward)

    beds = query.order_by(BedSpace.room_number, BedSpace.bed_number).all()

    return success(beds=[_serialize_bed(bed) for bed in beds])


@action
def get_bed_occupancy_history(
    db: Session,
    user_id: Optional[str],
    patient_id: Optional[int] = None,
    bed_id: Optional[int] = None,
    page: int = 1,
    limit: int = 10,
):
    _require_ward_access(db, user_id)

    query = db.query(BedOccupancy)
    if patient_id:
        query = query.filter(BedOccupancy.patient_id == patient_id)
    if bed_id:
        query = query.filter(BedOccupancy.bed_id == bed_id)

    rows, pagination = paginate(
        query.order_by(BedOccupancy.admission_date.desc(), BedOccupancy.id.desc()), page, limit,
    )

    return success(occupancy=[_serialize_occupancy(row) for row in rows], pagination=pagination)


@action
def get_bed_occupancy_stats(db: Session, user_id: Optional[str]):
    _require_ward_access(db, user_id)

    def count_where(condition):
        return func.count(case((condition, 1)))

    row = (
        db.query(
            func.count(BedSpace.id).label("total_beds"),
            count_where(BedSpace.status == BedStatus.OCCUPIED).label("occupied_beds"),
            count_where(BedSpace.status == BedStatus.AVAILABLE).label("available_beds"),
            count_where(BedSpace.status == BedStatus.MAINTENANCE).label("maintenance_beds"),
            count_where(BedSpace.status == BedStatus.RESERVED).label("reserved_beds"),
            func.count(distinct(BedOccupancy.patient_id)).label("total_patients"),
            func.count(BedOccupancy.id).label("current_admissions"),
        )
        .select_from(BedSpace)
        .outerjoin(BedOccupancy, (BedOccupancy.bed_id == BedSpace.id) & (BedOccupancy.status == OccupancyStatus.ACTIVE))
        .filter(BedSpace.is_active.is_(True))
        .one()
    )

    return success(stats={
        "total_beds": row.total_beds or 0,
        "occupied_beds": row.occupied_beds or 0,
        "available_beds": row.available_beds or 0,
        "maintenance_beds": row.maintenance_beds or 0,
        "reserved_beds": row.reserved_beds or 0,
        "total_patients": row.total_patients or 0,
        "current_admissions": row.current_admissions or 0,
    })


@action
def get_wards(db: Session, user_id: Optional[str]):
    _require_ward_access(db, user_id)

    rows = (
        db.query(BedSpace.ward)
        .filter(BedSpace.ward.isnot(None), BedSpace.ward != "")
        .group_by(BedSpace.ward)
        .order_by(BedSpace.ward)
        .all()
    )

    return success(wards=[ward for ward, in rows])
