"""Dashboard read model."""

from __future__ import annotations

from datetime import date, timedelta

from sqlalchemy.orm import Session

from ..config import settings
from ..models import Asset, Inspection, InspectionItemTemplate
from ..services.inspection_status import STATUS_DUE_SOON, STATUS_OVERDUE, classify_inspection, due_label

UPCOMING_LIMIT = 10


def dashboard_stats_use_case(*, db: Session, today: date | None = None) -> dict:
    today = today or date.today()
    window_end = today + timedelta(days=settings.DUE_SOON_WINDOW_DAYS)

    assets = db.query(Asset).all()
    open_inspections = (
        db.query(Inspection)
        .filter(Inspection.status.in_(("pending", "overdue", "on_hold")))
        .order_by(Inspection.due_date.asc().nullslast())
        .all()
    )
    classes = [classify_inspection(i.status, i.due_date, today) for i in open_inspections]

    templates = (
        db.query(InspectionItemTemplate)
        .filter(
            InspectionItemTemplate.is_active.is_(True),
            InspectionItemTemplate.expiry_na.is_(False),
            InspectionItemTemplate.expiry_date.isnot(None),
        )
        .all()
    )
    expired_items = [t for t in templates if t.expiry_date < today]
    expiring_items = [t for t in templates if today <= t.expiry_date <= window_end]

    upcoming = [
        {
            "inspection": inspection,
            "status_class": status_class,
            "due_label": due_label(inspection.status, inspection.due_date, today),
        }
        for inspection, status_class in zip(open_inspections, classes)
        if inspection.due_date is not None and inspection.due_date >= today
    ][:UPCOMING_LIMIT]

    return {
        "total_assets": len(assets),
        "active_assets": sum(1 for asset in assets if asset.status == "active"),
        "overdue_inspections": classes.count(STATUS_OVERDUE),
        "due_soon_inspections": classes.count(STATUS_DUE_SOON),
        "on_hold_inspections": sum(1 for i in open_inspections if i.status == "on_hold"),
        "expired_items": len(expired_items),
        "expiring_items": len(expiring_items),
        "upcoming": upcoming,
    }
