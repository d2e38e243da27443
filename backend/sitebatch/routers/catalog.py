"""Inspection type and inspection item template endpoints."""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..auth import PermissionChecker, get_current_user
from ..database import get_db
from ..models import InspectionItemTemplate, InspectionType, ItemReminder, TemplateAsset, UserProfile
from ..schemas import (
    InspectionTypeCreate,
    InspectionTypeResponse,
    InspectionTypeUpdate,
    TemplateCreate,
    TemplateResponse,
    TemplateUpdate,
)
from ..security import require_entity
from ..use_cases.checklists import list_templates_for

router = APIRouter(tags=["catalog"])


def _ensure_unique_type_name(db: Session, name: str, exclude_id: Optional[UUID] = None) -> str:
    name = (name or "").strip()
    if not name:
        raise HTTPException(status_code=400, detail="Inspection type name is required")
    query = db.query(InspectionType).filter(func.lower(InspectionType.name) == name.lower())
    if exclude_id:
        query = query.filter(InspectionType.id != exclude_id)
    if query.first():
        raise HTTPException(status_code=409, detail="Inspection type already exists")
    return name


@router.get("/inspection-types", response_model=list[InspectionTypeResponse])
def get_inspection_types(
    current_user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    types = db.query(InspectionType).order_by(InspectionType.name.asc()).all()
    return [InspectionTypeResponse.model_validate(t) for t in types]


@router.post("/inspection-types", response_model=InspectionTypeResponse, status_code=201)
def create_inspection_type(
    data: InspectionTypeCreate,
    current_user: UserProfile = Depends(PermissionChecker("canManageTemplates")),
    db: Session = Depends(get_db)
):
    values = data.model_dump()
    values["name"] = _ensure_unique_type_name(db, data.name)
    inspection_type = InspectionType(**values)
    db.add(inspection_type)
    db.commit()
    db.refresh(inspection_type)
    return InspectionTypeResponse.model_validate(inspection_type)


@router.put("/inspection-types/{type_id}", response_model=InspectionTypeResponse)
def update_inspection_type(
    type_id: UUID,
    data: InspectionTypeUpdate,
    current_user: UserProfile = Depends(PermissionChecker("canManageTemplates")),
    db: Session = Depends(get_db)
):
    """Edit a type, including its Drive folder link for certificates."""
    inspection_type = require_entity(db, InspectionType, entity_id=type_id, not_found="Inspection type not found")
    changes = data.model_dump(exclude_unset=True)
    if "name" in changes:
        changes["name"] = _ensure_unique_type_name(db, changes["name"], exclude_id=type_id)
    if "google_drive_url" in changes:
        changes["google_drive_url"] = (changes["google_drive_url"] or "").strip() or None
    for key, value in changes.items():
        setattr(inspection_type, key, value)
    db.commit()
    return InspectionTypeResponse.model_validate(inspection_type)


def _template_to_response(template: InspectionItemTemplate) -> TemplateResponse:
    return TemplateResponse.model_validate(template)


def _set_template_assets(template: InspectionItemTemplate, asset_ids: list[UUID]) -> None:
    template.asset_links = [TemplateAsset(asset_id=asset_id) for asset_id in dict.fromkeys(asset_ids)]


def _filter_uuid(value: Optional[str]) -> Optional[UUID]:
    if value in (None, "", "all"):
        return None
    try:
        return UUID(value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid id filter: {value}")


@router.get("/templates", response_model=list[TemplateResponse])
def get_templates(
    asset_id: Optional[str] = Query(None),
    inspection_type_id: Optional[str] = Query(None),
    current_user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Active templates for the checklist picker ("all" disables a filter)."""
    asset_filter = _filter_uuid(asset_id)
    type_filter = _filter_uuid(inspection_type_id)
    templates = list_templates_for(db=db, asset_id=asset_filter, inspection_type_id=type_filter)
    return [_template_to_response(t) for t in templates]


@router.get("/templates/all", response_model=list[TemplateResponse])
def get_all_templates(
    current_user: UserProfile = Depends(PermissionChecker("canManageTemplates")),
    db: Session = Depends(get_db)
):
    """Every template, including inactive ones (admin tools)."""
    templates = db.query(InspectionItemTemplate).order_by(InspectionItemTemplate.sort_order.asc()).all()
    return [_template_to_response(t) for t in templates]


@router.post("/templates", response_model=TemplateResponse, status_code=201)
def create_template(
    data: TemplateCreate,
    current_user: UserProfile = Depends(PermissionChecker("canManageTemplates")),
    db: Session = Depends(get_db)
):
    values = data.model_dump(exclude={"asset_ids"})
    if not (values.get("unique_id") or "").strip() and not (values.get("description") or "").strip():
        raise HTTPException(status_code=400, detail="Unique ID or description is required")
    template = InspectionItemTemplate(**values)
    _set_template_assets(template, data.asset_ids)
    db.add(template)
    db.commit()
    db.refresh(template)
    return _template_to_response(template)


@router.put("/templates/{template_id}", response_model=TemplateResponse)
def update_template(
    template_id: UUID,
    data: TemplateUpdate,
    current_user: UserProfile = Depends(PermissionChecker("canManageTemplates")),
    db: Session = Depends(get_db)
):
    template = require_entity(db, InspectionItemTemplate, entity_id=template_id, not_found="Template not found")
    changes = data.model_dump(exclude_unset=True)
    asset_ids = changes.pop("asset_ids", None)

    expiry_changed = any(
        key in changes and changes[key] != getattr(template, key) for key in ("expiry_date", "expiry_na")
    )
    for key, value in changes.items():
        setattr(template, key, value)
    if asset_ids is not None:
        _set_template_assets(template, asset_ids)
    if expiry_changed:
        # New expiry date starts a fresh reminder cadence.
        db.query(ItemReminder).filter(ItemReminder.template_id == template.id).delete(synchronize_session=False)

    db.commit()
    return _template_to_response(template)


@router.delete("/templates/{template_id}", status_code=204)
def delete_template(
    template_id: UUID,
    current_user: UserProfile = Depends(PermissionChecker("canManageTemplates")),
    db: Session = Depends(get_db)
):
    template = require_entity(db, InspectionItemTemplate, entity_id=template_id, not_found="Template not found")
    db.delete(template)
    db.commit()
