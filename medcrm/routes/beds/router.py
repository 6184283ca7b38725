# medcrm/routes/beds/router.py

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional

from medcrm.database import get_db
from medcrm.actions import bed_actions
from medcrm.schemas.ward import (
    BedAllocation, BedDischarge, BedSpaceCreate, BedSpaceUpdate, BedTransfer, OccupancyUpdate,
)
from medcrm.routes.utils.responses import action_response
from medcrm.utils.auth import get_session_user_id

router = APIRouter(prefix="/beds", tags=["beds"])


@router.post("", status_code=status.HTTP_201_CREATED)
def create_bed_space(
    bed: BedSpaceCreate,
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(bed_actions.create_bed_space(db, user_id, bed), status.HTTP_201_CREATED)

@router.get("")
def get_bed_spaces(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = Query(None),
    department_id: Optional[int] = Query(None),
    type: Optional[str] = Query(None),
    status_filter: Optional[str] = Query(None, alias="status"),
    ward: Optional[str] = Query(None),
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(bed_actions.get_bed_spaces(
        db, user_id, page=page, limit=limit, search=search,
        department_id=department_id, type=type, status=status_filter, ward=ward,
    ))

@router.get("/available")
def get_available_beds(
    department_id: Optional[int] = Query(None),
    type: Optional[str] = Query(None),
    ward: Optional[str] = Query(None),
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(bed_actions.get_available_beds(
        db, user_id, department_id=department_id, type=type, ward=ward,
    ))

@router.get("/stats")
def get_bed_occupancy_stats(
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(bed_actions.get_bed_occupancy_stats(db, user_id))

@router.get("/wards")
def get_wards(
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(bed_actions.get_wards(db, user_id))

@router.post("/occupancy", status_code=status.HTTP_201_CREATED)
def allocate_bed(
    allocation: BedAllocation,
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(bed_actions.allocate_bed(db, user_id, allocation), status.HTTP_201_CREATED)

@router.get("/occupancy")
def get_bed_occupancy_history(
    patient_id: Optional[int] = Query(None),
    bed_id: Optional[int] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(bed_actions.get_bed_occupancy_history(
        db, user_id, patient_id=patient_id, bed_id=bed_id, page=page, limit=limit,
    ))

@router.put("/occupancy/{occupancy_id}")
def update_bed_occupancy(
    occupancy_id: int,
    occupancy: OccupancyUpdate,
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(bed_actions.update_bed_occupancy(db, user_id, occupancy_id, occupancy))

@router.post("/occupancy/{occupancy_id}/discharge")
def discharge_patient(
    occupancy_id: int,
    discharge: BedDischarge,
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(bed_actions.discharge_patient(db, user_id, occupancy_id, discharge.notes))

@router.post("/occupancy/{occupancy_id}/transfer")
def transfer_patient(
    occupancy_id: int,
    transfer: BedTransfer,
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(bed_actions.transfer_patient(
        db, user_id, occupancy_id, transfer.new_bed_id, transfer.reason,
    ))

@router.get("/{bed_id}")
def get_bed_space_details(
    bed_id: int,
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(bed_actions.get_bed_space_details(db, user_id, bed_id))

@router.put("/{bed_id}")
def update_bed_space(
    bed_id: int,
    bed: BedSpaceUpdate,
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(bed_actions.update_bed_space(db, user_id, bed_id, bed))

@router.delete("/{bed_id}")
def delete_bed_space(
    bed_id: int,
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    return action_response(bed_actions.delete_bed_space(db, user_id, bed_id))
