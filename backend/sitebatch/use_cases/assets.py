"""Asset register use-cases: CRUD, history events, manual ordering and overview."""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Optional
from uuid import UUID, uuid4

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..domain_errors import DomainError, validation_error
from ..models import ASSET_STATUSES, Asset, AssetEvent, Inspection, InspectionChecklist, UserProfile
from ..services.asset_order import can_reorder, dense_sort_orders, move_item
from ..services.inspection_status import classify_inspection, due_label
from ..services.timeline import build_asset_timeline

logger = logging.getLogger(__name__)

ASSET_EDITABLE_FIELDS = ("asset_id", "name", "location", "status", "asset_type", "install_date", "notes")
OVERVIEW_MODES = ("full", "due", "complete")


def _get_asset_or_404(*, db: Session, asset_id: UUID) -> Asset:
    asset = db.query(Asset).filter(Asset.id == asset_id).first()
    if not asset:
        raise DomainError(
            code="ASSET_NOT_FOUND",
            http_status=404,
            message="Asset not found",
        )
    return asset


def _validate_asset_fields(values: dict[str, Any]) -> None:
    reasons = []
    if "asset_id" in values and not (values["asset_id"] or "").strip():
        reasons.append("Asset ID is required")
    if "name" in values and not (values["name"] or "").strip():
        reasons.append("Asset name is required")
    if "status" in values and values["status"] not in ASSET_STATUSES:
        reasons.append(f"Status must be one of: {', '.join(ASSET_STATUSES)}")
    if reasons:
        raise validation_error("ASSET_INVALID", reasons)


def create_asset_use_case(*, db: Session, values: dict[str, Any], current_user: UserProfile) -> Asset:
    """Create an asset and append it to the end of the manual ordering."""
    values = {key: values.get(key) for key in ASSET_EDITABLE_FIELDS if key in values}
    values.setdefault("status", "active")
    values.setdefault("asset_id", None)
    values.setdefault("name", None)
    _validate_asset_fields(values)

    max_order = db.query(func.max(Asset.sort_order)).scalar() or 0
    asset = Asset(id=uuid4(), sort_order=max_order + 1, **values)
    asset.asset_id = asset.asset_id.strip()
    asset.name = asset.name.strip()
    db.add(asset)
    db.commit()
    logger.info("Asset %s created by %s", asset.asset_id, current_user.email)
    return asset


def update_asset_use_case(
    *,
    db: Session,
    asset_id: UUID,
    changes: dict[str, Any],
    current_user: UserProfile,
) -> Asset:
    asset = _get_asset_or_404(db=db, asset_id=asset_id)
    changes = {key: value for key, value in changes.items() if key in ASSET_EDITABLE_FIELDS}
    _validate_asset_fields(changes)
    for key, value in changes.items():
        setattr(asset, key, value.strip() if key in ("asset_id", "name") else value)
    db.commit()
    return asset


def delete_asset_use_case(*, db: Session, asset_id: UUID, current_user: UserProfile) -> None:
    """Delete an asset; inspections, events and checklists go with it."""
    asset = _get_asset_or_404(db=db, asset_id=asset_id)
    db.delete(asset)
    db.commit()
    logger.info("Asset %s deleted by %s", asset.asset_id, current_user.email)


def record_asset_event_use_case(
    *,
    db: Session,
    asset_id: UUID,
    start_date: date,
    end_date: date,
    description: str,
    end_status: str,
    location: Optional[str] = None,
    current_user: UserProfile,
) -> AssetEvent:
    """Append a history event and move the asset to the event's end status."""
    asset = _get_asset_or_404(db=db, asset_id=asset_id)

    reasons = []
    if not (description or "").strip():
        reasons.append("Event description is required")
    if end_date < start_date:
        reasons.append("End date cannot be before start date")
    if end_status not in ASSET_STATUSES:
        reasons.append(f"End status must be one of: {', '.join(ASSET_STATUSES)}")
    if reasons:
        raise validation_error("ASSET_EVENT_INVALID", reasons)

    location = (location or "").strip() or None
    event = AssetEvent(
        id=uuid4(),
        asset_id=asset.id,
        start_date=start_date,
        end_date=end_date,
        description=description.strip(),
        end_status=end_status,
        location=location,
        created_by=current_user.id,
    )
    db.add(event)

    asset.status = end_status
    if location:
        asset.location = location

    db.commit()
    return event


def delete_asset_event_use_case(*, db: Session, event_id: UUID, current_user: UserProfile) -> None:
    event = db.query(AssetEvent).filter(AssetEvent.id == event_id).first()
    if not event:
        raise DomainError(
            code="ASSET_EVENT_NOT_FOUND",
            http_status=404,
            message="Event not found",
        )
    db.delete(event)
    db.commit()


def _ensure_can_reorder(current_user: UserProfile, status_filter: Optional[str], type_filter: Optional[str]) -> None:
    if current_user.role != "admin":
        raise DomainError(
            code="ASSET_REORDER_FORBIDDEN",
            http_status=403,
            message="Only admins can reorder assets",
        )
    if not can_reorder(current_user.role, status_filter=status_filter, type_filter=type_filter):
        raise DomainError(
            code="ASSET_REORDER_FILTERED",
            http_status=409,
            message="Clear the status and type filters before reordering assets",
        )


def _ordered_assets(db: Session) -> list[Asset]:
    return (
        db.query(Asset)
        .order_by(Asset.sort_order.asc().nullslast(), Asset.asset_id.asc())
        .all()
    )


def _apply_order(db: Session, assets: list[Asset], ordered_ids: list[UUID]) -> list[Asset]:
    try:
        positions = dense_sort_orders(ordered_ids)
    except ValueError as e:
        raise validation_error("ASSET_REORDER_INVALID", [str(e)])

    by_id = {asset.id: asset for asset in assets}
    if set(by_id) != set(positions):
        raise DomainError(
            code="ASSET_REORDER_STALE",
            http_status=409,
            message="Asset list has changed; reload and try again",
        )

    for asset_id, position in positions.items():
        by_id[asset_id].sort_order = position
    # One commit renumbers every row together.
    db.commit()
    return [by_id[asset_id] for asset_id in ordered_ids]


def reorder_assets_use_case(
    *,
    db: Session,
    ordered_ids: list[UUID],
    status_filter: Optional[str] = None,
    type_filter: Optional[str] = None,
    current_user: UserProfile,
) -> list[Asset]:
    """Persist a full ordering of every asset as a dense 1..N sequence."""
    _ensure_can_reorder(current_user, status_filter, type_filter)
    return _apply_order(db, _ordered_assets(db), list(ordered_ids))


def move_asset_use_case(
    *,
    db: Session,
    source_index: int,
    destination_index: int,
    status_filter: Optional[str] = None,
    type_filter: Optional[str] = None,
    current_user: UserProfile,
) -> list[Asset]:
    """Drag-and-drop move of one row within the current ordering."""
    _ensure_can_reorder(current_user, status_filter, type_filter)
    assets = _ordered_assets(db)
    try:
        ordered_ids = move_item([asset.id for asset in assets], source_index, destination_index)
    except IndexError as e:
        raise validation_error("ASSET_REORDER_INVALID", [str(e)])
    return _apply_order(db, assets, ordered_ids)


def list_assets(
    *,
    db: Session,
    status_filter: Optional[str] = None,
    type_filter: Optional[str] = None,
    search: Optional[str] = None,
) -> list[Asset]:
    query = db.query(Asset)
    if status_filter and status_filter != "all":
        query = query.filter(Asset.status == status_filter)
    if type_filter and type_filter != "all":
        query = query.filter(Asset.asset_type == type_filter)
    if search and search.strip():
        term = f"%{search.strip()}%"
        query = query.filter(
            (Asset.asset_id.ilike(term)) | (Asset.name.ilike(term)) | (Asset.location.ilike(term))
        )
    return query.order_by(Asset.sort_order.asc().nullslast(), Asset.asset_id.asc()).all()


def _checklist_status_for(db: Session, inspection: Inspection) -> Optional[str]:
    query = db.query(InspectionChecklist)
    if inspection.linked_group_id:
        query = query.filter(InspectionChecklist.linked_group_id == inspection.linked_group_id)
    else:
        query = query.filter(InspectionChecklist.inspection_id == inspection.id)
    checklist = query.first()
    return checklist.status if checklist else None


def _matches_mode(inspection: Inspection, mode: str) -> bool:
    if mode == "due":
        return inspection.status != "completed"
    if mode == "complete":
        return inspection.status == "completed"
    return True


def asset_overview_use_case(*, db: Session, asset_id: UUID, mode: str = "full", today: date | None = None) -> dict:
    """Everything the asset page shows: inspections, events and the timeline."""
    if mode not in OVERVIEW_MODES:
        raise validation_error("ASSET_OVERVIEW_MODE_INVALID", [f"Mode must be one of: {', '.join(OVERVIEW_MODES)}"])
    today = today or date.today()
    asset = _get_asset_or_404(db=db, asset_id=asset_id)

    inspections = (
        db.query(Inspection)
        .filter(Inspection.asset_id == asset.id)
        .order_by(Inspection.due_date.asc().nullslast())
        .all()
    )
    events = (
        db.query(AssetEvent)
        .filter(AssetEvent.asset_id == asset.id)
        .order_by(AssetEvent.start_date.desc())
        .all()
    )

    rows = []
    for inspection in inspections:
        if not _matches_mode(inspection, mode):
            continue
        rows.append(
            {
                "inspection": inspection,
                "status_class": classify_inspection(inspection.status, inspection.due_date, today),
                "due_label": due_label(inspection.status, inspection.due_date, today),
                "checklist_status": _checklist_status_for(db, inspection),
            }
        )

    return {
        "asset": asset,
        "mode": mode,
        "inspections": rows,
        "events": events,
        "timeline": build_asset_timeline(
            install_date=asset.install_date,
            inspections=inspections,
            events=events,
            today=today,
        ),
    }
