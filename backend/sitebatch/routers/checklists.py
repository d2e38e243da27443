"""Inspection checklist endpoints."""
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..auth import PermissionChecker, get_current_user
from ..database import get_db
from ..models import Inspection, UserProfile
from ..schemas import (
    ChecklistCompleteRequest,
    ChecklistCreate,
    ChecklistProgressRequest,
    ChecklistResponse,
)
from ..use_cases.checklists import (
    complete_checklist_use_case,
    create_checklist_use_case,
    find_checklist_for_inspection,
    get_checklist_use_case,
    list_user_checklists,
    resend_checklist_email_use_case,
    save_checklist_progress_use_case,
)

router = APIRouter(prefix="/checklists", tags=["checklists"])


@router.post("", response_model=ChecklistResponse, status_code=201)
def create_checklist(
    data: ChecklistCreate,
    current_user: UserProfile = Depends(PermissionChecker("canCreateChecklists")),
    db: Session = Depends(get_db)
):
    """Create a checklist from selected templates and email the assignee."""
    checklist = create_checklist_use_case(
        db=db,
        inspection_id=data.inspection_id,
        assigned_user_id=data.assigned_user_id,
        template_ids=data.template_ids,
        current_user=current_user,
    )
    return ChecklistResponse.model_validate(checklist)


@router.get("/mine", response_model=list[ChecklistResponse])
def get_my_checklists(
    current_user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Checklists assigned to the current user, open first."""
    return [ChecklistResponse.model_validate(c) for c in list_user_checklists(db=db, user_id=current_user.id)]


@router.get("/by-inspection/{inspection_id}", response_model=ChecklistResponse)
def get_checklist_for_inspection(
    inspection_id: UUID,
    current_user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Checklist for an inspection; linked inspections resolve to their shared checklist."""
    inspection = db.query(Inspection).filter(Inspection.id == inspection_id).first()
    if not inspection:
        raise HTTPException(status_code=404, detail="Inspection not found")
    checklist = find_checklist_for_inspection(db, inspection)
    if not checklist:
        raise HTTPException(status_code=404, detail="No checklist for this inspection")
    checklist = get_checklist_use_case(db=db, checklist_id=checklist.id, current_user=current_user)
    return ChecklistResponse.model_validate(checklist)


@router.get("/{checklist_id}", response_model=ChecklistResponse)
def get_checklist(
    checklist_id: UUID,
    current_user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    checklist = get_checklist_use_case(db=db, checklist_id=checklist_id, current_user=current_user)
    return ChecklistResponse.model_validate(checklist)


@router.put("/{checklist_id}/items", response_model=ChecklistResponse)
def save_checklist_progress(
    checklist_id: UUID,
    data: ChecklistProgressRequest,
    current_user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    checklist = save_checklist_progress_use_case(
        db=db,
        checklist_id=checklist_id,
        item_updates=[item.model_dump(exclude_unset=True) for item in data.items],
        current_user=current_user,
    )
    return ChecklistResponse.model_validate(checklist)


@router.post("/{checklist_id}/complete", response_model=ChecklistResponse)
def complete_checklist(
    checklist_id: UUID,
    data: ChecklistCompleteRequest,
    current_user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Save and complete; 422 lists every unmet condition."""
    checklist = complete_checklist_use_case(
        db=db,
        checklist_id=checklist_id,
        item_updates=[item.model_dump(exclude_unset=True) for item in data.items],
        admin_ids=data.admin_ids,
        current_user=current_user,
    )
    return ChecklistResponse.model_validate(checklist)


@router.post("/{checklist_id}/resend", response_model=ChecklistResponse)
def resend_checklist_email(
    checklist_id: UUID,
    current_user: UserProfile = Depends(PermissionChecker("canCreateChecklists")),
    db: Session = Depends(get_db)
):
    checklist = resend_checklist_email_use_case(db=db, checklist_id=checklist_id, current_user=current_user)
    return ChecklistResponse.model_validate(checklist)
