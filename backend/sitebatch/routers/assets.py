"""Asset register endpoints."""
from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth import PermissionChecker, get_current_user
from ..database import get_db
from ..models import Asset, AssetEvent, UserProfile
from ..schemas import (
    AssetCreate,
    AssetEventCreate,
    AssetEventResponse,
    AssetResponse,
    AssetReorderRequest,
    AssetUpdate,
    InspectionResponse,
)
from ..domain_errors import validation_error
from ..use_cases.assets import (
    asset_overview_use_case,
    create_asset_use_case,
    delete_asset_event_use_case,
    delete_asset_use_case,
    list_assets,
    move_asset_use_case,
    record_asset_event_use_case,
    reorder_assets_use_case,
    update_asset_use_case,
)

router = APIRouter(prefix="/assets", tags=["assets"])


@router.get("", response_model=list[AssetResponse])
def get_assets(
    status: Optional[str] = Query(None),
    asset_type: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    current_user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """List assets in manual order."""
    assets = list_assets(db=db, status_filter=status, type_filter=asset_type, search=search)
    return [AssetResponse.model_validate(a) for a in assets]


@router.post("", response_model=AssetResponse, status_code=201)
def create_asset(
    data: AssetCreate,
    current_user: UserProfile = Depends(PermissionChecker("canManageAssets")),
    db: Session = Depends(get_db)
):
    asset = create_asset_use_case(db=db, values=data.model_dump(), current_user=current_user)
    return AssetResponse.model_validate(asset)


@router.put("/order", response_model=list[AssetResponse])
def reorder_assets(
    data: AssetReorderRequest,
    current_user: UserProfile = Depends(PermissionChecker("canReorderAssets")),
    db: Session = Depends(get_db)
):
    """Persist manual ordering (full list, or a single drag-and-drop move)."""
    if data.ordered_ids is not None:
        assets = reorder_assets_use_case(
            db=db,
            ordered_ids=data.ordered_ids,
            status_filter=data.status_filter,
            type_filter=data.type_filter,
            current_user=current_user,
        )
    elif data.source_index is not None and data.destination_index is not None:
        assets = move_asset_use_case(
            db=db,
            source_index=data.source_index,
            destination_index=data.destination_index,
            status_filter=data.status_filter,
            type_filter=data.type_filter,
            current_user=current_user,
        )
    else:
        raise validation_error("ASSET_REORDER_INVALID", ["Provide ordered_ids or source_index and destination_index"])
    return [AssetResponse.model_validate(a) for a in assets]


@router.get("/events", response_model=list[AssetEventResponse])
def get_all_events(
    current_user: UserProfile = Depends(PermissionChecker("canManageAssets")),
    db: Session = Depends(get_db)
):
    """All asset events, newest first (admin events page)."""
    events = db.query(AssetEvent).order_by(AssetEvent.start_date.desc(), AssetEvent.created_at.desc()).all()
    return [AssetEventResponse.model_validate(e) for e in events]


@router.delete("/events/{event_id}", status_code=204)
def delete_event(
    event_id: UUID,
    current_user: UserProfile = Depends(PermissionChecker("canManageAssets")),
    db: Session = Depends(get_db)
):
    delete_asset_event_use_case(db=db, event_id=event_id, current_user=current_user)


@router.get("/{asset_id}", response_model=AssetResponse)
def get_asset(
    asset_id: UUID,
    current_user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    asset = db.query(Asset).filter(Asset.id == asset_id).first()
    if not asset:
        from fastapi import HTTPException
        raise HTTPException(status_code=404, detail="Asset not found")
    return AssetResponse.model_validate(asset)


@router.put("/{asset_id}", response_model=AssetResponse)
def update_asset(
    asset_id: UUID,
    data: AssetUpdate,
    current_user: UserProfile = Depends(PermissionChecker("canManageAssets")),
    db: Session = Depends(get_db)
):
    asset = update_asset_use_case(
        db=db,
        asset_id=asset_id,
        changes=data.model_dump(exclude_unset=True),
        current_user=current_user,
    )
    return AssetResponse.model_validate(asset)


@router.delete("/{asset_id}", status_code=204)
def delete_asset(
    asset_id: UUID,
    current_user: UserProfile = Depends(PermissionChecker("canManageAssets")),
    db: Session = Depends(get_db)
):
    delete_asset_use_case(db=db, asset_id=asset_id, current_user=current_user)


@router.get("/{asset_id}/overview")
def get_asset_overview(
    asset_id: UUID,
    mode: str = Query("full"),
    current_user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Asset page: inspections with derived status, events and timeline."""
    overview = asset_overview_use_case(db=db, asset_id=asset_id, mode=mode, today=date.today())
    inspections = []
    for row in overview["inspections"]:
        payload = InspectionResponse.model_validate(row["inspection"]).model_dump(mode="json")
        payload.update(
            status_class=row["status_class"],
            due_label=row["due_label"],
            checklist_status=row["checklist_status"],
            inspection_type_name=row["inspection"].inspection_type.name if row["inspection"].inspection_type else None,
        )
        inspections.append(payload)
    return {
        "asset": AssetResponse.model_validate(overview["asset"]).model_dump(mode="json"),
        "mode": overview["mode"],
        "inspections": inspections,
        "events": [AssetEventResponse.model_validate(e).model_dump(mode="json") for e in overview["events"]],
        "timeline": overview["timeline"],
    }


@router.get("/{asset_id}/events", response_model=list[AssetEventResponse])
def get_asset_events(
    asset_id: UUID,
    current_user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    events = (
        db.query(AssetEvent)
        .filter(AssetEvent.asset_id == asset_id)
        .order_by(AssetEvent.start_date.desc())
        .all()
    )
    return [AssetEventResponse.model_validate(e) for e in events]


@router.post("/{asset_id}/events", response_model=AssetEventResponse, status_code=201)
def create_asset_event(
    asset_id: UUID,
    data: AssetEventCreate,
    current_user: UserProfile = Depends(PermissionChecker("canManageAssets")),
    db: Session = Depends(get_db)
):
    """Record a history event; the asset takes the event's end status."""
    event = record_asset_event_use_case(
        db=db,
        asset_id=asset_id,
        start_date=data.start_date,
        end_date=data.end_date,
        description=data.description,
        end_status=data.end_status,
        location=data.location,
        current_user=current_user,
    )
    return AssetEventResponse.model_validate(event)
