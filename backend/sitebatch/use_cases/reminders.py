"""Daily compliance sweeps: overdue flip, inspection reminders and item expiry reminders."""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Iterable, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from ..config import settings
from ..models import (
    Inspection,
    InspectionItemTemplate,
    InspectionReminder,
    ItemReminder,
    ReportRecipient,
)
from ..services.email_outbox import enqueue_email, normalize_recipients
from ..services.email_templates import (
    inspection_reminder_email,
    item_expired_email,
    item_reminder_email,
)
from ..services.inspection_status import days_until
from ..services.reminder_cadence import entered_thresholds

logger = logging.getLogger(__name__)

OVERDUE_DAYS_BEFORE = 0


def resolve_reminder_recipients(db: Session) -> list[str]:
    """Operations mailbox list, falling back to active report recipients."""
    configured = normalize_recipients(settings.reminder_recipients)
    if configured:
        return configured
    rows = db.query(ReportRecipient).filter(ReportRecipient.is_active.is_(True)).all()
    return normalize_recipients(row.email for row in rows)


def run_overdue_sweep(*, db: Session, today: date | None = None) -> int:
    """Flip pending inspections past their due date to overdue."""
    today = today or date.today()
    stale = db.query(Inspection).filter(
        Inspection.status == "pending",
        Inspection.due_date.isnot(None),
        Inspection.due_date < today,
    ).all()
    for inspection in stale:
        inspection.status = "overdue"
    db.commit()
    logger.info("Overdue sweep flipped %d inspections", len(stale))
    return len(stale)


def run_inspection_reminders(
    *,
    db: Session,
    today: date | None = None,
    thresholds: Optional[Iterable[int]] = None,
) -> dict:
    """
    Create missing reminder rows for pending inspections and send the ones due today.

    Safe to run more than once a day: rows are unique per (inspection, threshold)
    and `sent` only ever goes from false to true.
    """
    today = today or date.today()
    thresholds = tuple(thresholds or settings.reminder_thresholds)
    recipients = resolve_reminder_recipients(db)
    if not recipients:
        logger.warning("No reminder recipients configured; reminders will be recorded but not sent")

    inspections = db.query(Inspection).filter(
        Inspection.status == "pending",
        Inspection.due_date.isnot(None),
        Inspection.due_date >= today,
    ).all()

    created = sent = 0
    for inspection in inspections:
        decisions = entered_thresholds(inspection.due_date, today, thresholds)
        if not decisions:
            continue
        existing = {
            row.days_before: row
            for row in db.query(InspectionReminder).filter(
                InspectionReminder.inspection_id == inspection.id,
            ).all()
        }
        for decision in decisions:
            row = existing.get(decision.days_before)
            if row is None:
                row = InspectionReminder(
                    inspection_id=inspection.id,
                    days_before=decision.days_before,
                    reminder_date=decision.reminder_date,
                    sent=False,
                )
                db.add(row)
                existing[decision.days_before] = row
                created += 1
            if not decision.send_today or row.sent or not recipients:
                continue

            subject, html = inspection_reminder_email(
                asset=inspection.asset,
                inspection_type_name=inspection.inspection_type.name if inspection.inspection_type else None,
                due_date=inspection.due_date,
                days_remaining=days_until(inspection.due_date, today),
                days_before=decision.days_before,
            )
            enqueue_email(
                db,
                email_type="inspection_reminder",
                recipients=recipients,
                subject=subject,
                html=html,
                entity_id=inspection.id,
                idempotency_key=(
                    f"inspection_reminder:{inspection.id}:{inspection.due_date.isoformat()}:{decision.days_before}"
                ),
            )
            row.sent = True
            row.sent_at = datetime.now(timezone.utc)
            sent += 1

    db.commit()
    logger.info("Inspection reminders: %d rows created, %d sent", created, sent)
    return {"checked": len(inspections), "created": created, "sent": sent}


def _template_asset_text(template: InspectionItemTemplate) -> str:
    codes = [link.asset.asset_id for link in template.asset_links if link.asset is not None]
    return ", ".join(codes) if codes else "All assets"


def _item_reminder_row(
    db: Session,
    existing: dict,
    *,
    template_id: UUID,
    reminder_type: str,
    days_before: int,
    reminder_date: date,
) -> tuple[ItemReminder, bool]:
    key = (reminder_type, days_before)
    row = existing.get(key)
    if row is not None:
        return row, False
    row = ItemReminder(
        template_id=template_id,
        reminder_type=reminder_type,
        days_before=days_before,
        reminder_date=reminder_date,
        sent=False,
    )
    db.add(row)
    existing[key] = row
    return row, True


def run_item_reminders(
    *,
    db: Session,
    today: date | None = None,
    template_id: UUID | None = None,
    thresholds: Optional[Iterable[int]] = None,
) -> dict:
    """Expiry reminders for template items, plus a single notice once an item has expired."""
    today = today or date.today()
    thresholds = tuple(thresholds or settings.reminder_thresholds)
    recipients = resolve_reminder_recipients(db)
    if not recipients:
        logger.warning("No reminder recipients configured; item reminders will be recorded but not sent")

    query = db.query(InspectionItemTemplate).filter(
        InspectionItemTemplate.is_active.is_(True),
        InspectionItemTemplate.expiry_na.is_(False),
        InspectionItemTemplate.expiry_date.isnot(None),
    )
    if template_id is not None:
        query = query.filter(InspectionItemTemplate.id == template_id)
    templates = query.all()

    created = sent = 0
    now = datetime.now(timezone.utc)
    for template in templates:
        existing = {
            (row.reminder_type, row.days_before): row
            for row in db.query(ItemReminder).filter(ItemReminder.template_id == template.id).all()
        }
        asset_text = _template_asset_text(template)
        remaining = days_until(template.expiry_date, today)

        if remaining < 0:
            row, is_new = _item_reminder_row(
                db,
                existing,
                template_id=template.id,
                reminder_type="overdue",
                days_before=OVERDUE_DAYS_BEFORE,
                reminder_date=today,
            )
            created += int(is_new)
            if not row.sent and recipients:
                subject, html = item_expired_email(template=template, asset_text=asset_text)
                enqueue_email(
                    db,
                    email_type="item_expired",
                    recipients=recipients,
                    subject=subject,
                    html=html,
                    entity_id=template.id,
                    idempotency_key=f"item_expired:{template.id}:{template.expiry_date.isoformat()}",
                )
                row.sent = True
                row.sent_at = now
                sent += 1
            continue

        for decision in entered_thresholds(template.expiry_date, today, thresholds):
            row, is_new = _item_reminder_row(
                db,
                existing,
                template_id=template.id,
                reminder_type="due",
                days_before=decision.days_before,
                reminder_date=decision.reminder_date,
            )
            created += int(is_new)
            if not decision.send_today or row.sent or not recipients:
                continue
            subject, html = item_reminder_email(
                template=template,
                asset_text=asset_text,
                days_remaining=remaining,
                days_before=decision.days_before,
            )
            enqueue_email(
                db,
                email_type="item_reminder",
                recipients=recipients,
                subject=subject,
                html=html,
                entity_id=template.id,
                idempotency_key=(
                    f"item_reminder:{template.id}:{template.expiry_date.isoformat()}:{decision.days_before}"
                ),
            )
            row.sent = True
            row.sent_at = now
            sent += 1

    db.commit()
    logger.info("Item reminders: %d rows created, %d sent", created, sent)
    return {"checked": len(templates), "created": created, "sent": sent}
