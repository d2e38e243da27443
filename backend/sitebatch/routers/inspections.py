"""Inspection endpoints."""
from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..auth import PermissionChecker, get_current_user
from ..database import get_db
from ..models import Inspection, UserProfile
from ..schemas import (
    InspectionCompleteRequest,
    InspectionLogResponse,
    InspectionResponse,
    InspectionScheduleRequest,
    InspectionUpdate,
)
from ..services.inspection_status import classify_inspection, completion_blockers, CompletionFields, due_label
from ..use_cases.inspections import (
    complete_inspection_use_case,
    delete_inspection_use_case,
    list_inspection_logs,
    schedule_inspections_use_case,
    send_inspection_alert_use_case,
    update_inspection_use_case,
)

router = APIRouter(prefix="/inspections", tags=["inspections"])


def inspection_to_response(inspection: Inspection, today: date) -> InspectionResponse:
    response = InspectionResponse.model_validate(inspection)
    response.status_class = classify_inspection(inspection.status, inspection.due_date, today)
    response.due_label = due_label(inspection.status, inspection.due_date, today)
    return response


@router.get("", response_model=list[InspectionResponse])
def get_inspections(
    status: Optional[str] = Query(None),
    asset_id: Optional[UUID] = Query(None),
    inspection_type_id: Optional[UUID] = Query(None),
    due_before: Optional[date] = Query(None),
    current_user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    query = db.query(Inspection)
    if status and status != "all":
        query = query.filter(Inspection.status == status)
    if asset_id:
        query = query.filter(Inspection.asset_id == asset_id)
    if inspection_type_id:
        query = query.filter(Inspection.inspection_type_id == inspection_type_id)
    if due_before:
        query = query.filter(Inspection.due_date <= due_before)
    today = date.today()
    inspections = query.order_by(Inspection.due_date.asc().nullslast()).all()
    return [inspection_to_response(i, today) for i in inspections]


@router.post("", response_model=list[InspectionResponse], status_code=201)
def schedule_inspections(
    data: InspectionScheduleRequest,
    current_user: UserProfile = Depends(PermissionChecker("canManageInspections")),
    db: Session = Depends(get_db)
):
    """Schedule inspections for one or many assets."""
    inspections = schedule_inspections_use_case(
        db=db,
        asset_ids=data.asset_ids,
        inspection_type_id=data.inspection_type_id,
        inspection_type_name=data.inspection_type_name,
        due_date=data.due_date,
        assigned_to=data.assigned_to,
        notes=data.notes,
        link_assets=data.link_assets,
        current_user=current_user,
    )
    today = date.today()
    return [inspection_to_response(i, today) for i in inspections]


@router.get("/{inspection_id}", response_model=InspectionResponse)
def get_inspection(
    inspection_id: UUID,
    current_user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    inspection = db.query(Inspection).filter(Inspection.id == inspection_id).first()
    if not inspection:
        raise HTTPException(status_code=404, detail="Inspection not found")
    return inspection_to_response(inspection, date.today())


@router.get("/{inspection_id}/completion-check")
def get_completion_check(
    inspection_id: UUID,
    current_user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Current gate state, so the form can show what is still missing."""
    inspection = db.query(Inspection).filter(Inspection.id == inspection_id).first()
    if not inspection:
        raise HTTPException(status_code=404, detail="Inspection not found")
    reasons = completion_blockers(CompletionFields.from_inspection(inspection))
    return {"can_complete": not reasons, "reasons": reasons}


@router.put("/{inspection_id}", response_model=InspectionResponse)
def update_inspection(
    inspection_id: UUID,
    data: InspectionUpdate,
    current_user: UserProfile = Depends(PermissionChecker("canManageInspections")),
    db: Session = Depends(get_db)
):
    inspection = update_inspection_use_case(
        db=db,
        inspection_id=inspection_id,
        changes=data.model_dump(exclude_unset=True),
        current_user=current_user,
    )
    return inspection_to_response(inspection, date.today())


@router.post("/{inspection_id}/complete", response_model=InspectionResponse)
def complete_inspection(
    inspection_id: UUID,
    data: InspectionCompleteRequest,
    current_user: UserProfile = Depends(PermissionChecker("canCompleteInspections")),
    db: Session = Depends(get_db)
):
    """Complete an inspection; 422 lists every unmet gating clause."""
    changes = data.model_dump(exclude_unset=True)
    repeat_frequency = changes.pop("repeat_frequency", None)
    today = date.today()
    inspection = complete_inspection_use_case(
        db=db,
        inspection_id=inspection_id,
        changes=changes,
        repeat_frequency=repeat_frequency,
        today=today,
        current_user=current_user,
    )
    return inspection_to_response(inspection, today)


@router.delete("/{inspection_id}", status_code=204)
def delete_inspection(
    inspection_id: UUID,
    current_user: UserProfile = Depends(PermissionChecker("canManageInspections")),
    db: Session = Depends(get_db)
):
    delete_inspection_use_case(db=db, inspection_id=inspection_id, current_user=current_user)


@router.post("/{inspection_id}/alert")
def send_inspection_alert(
    inspection_id: UUID,
    current_user: UserProfile = Depends(PermissionChecker("canManageInspections")),
    db: Session = Depends(get_db)
):
    """Email the inspection's status now."""
    queued = send_inspection_alert_use_case(
        db=db,
        inspection_id=inspection_id,
        today=date.today(),
        current_user=current_user,
    )
    return {"queued": queued}


@router.get("/{inspection_id}/logs", response_model=list[InspectionLogResponse])
def get_inspection_logs(
    inspection_id: UUID,
    current_user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return [InspectionLogResponse(**row) for row in list_inspection_logs(db=db, inspection_id=inspection_id)]
