"""Weekly compliance digest and its recipient list."""

from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..config import settings
from ..domain_errors import DomainError, validation_error
from ..models import Inspection, InspectionLog, ReportRecipient, UserProfile
from ..services.email_outbox import enqueue_email, normalize_recipients
from ..services.email_templates import format_date, weekly_report_email

logger = logging.getLogger(__name__)

UNKNOWN_USER = "Unknown user"
NO_COMMENT = "No comment provided"


def _type_name(inspection: Inspection) -> Optional[str]:
    return inspection.inspection_type.name if inspection.inspection_type else None


def _asset_cells(inspection: Inspection) -> list:
    asset = inspection.asset
    return [getattr(asset, "asset_id", None), getattr(asset, "name", None)]


def _latest_hold_authors(db: Session, inspection_ids: list[UUID]) -> dict[UUID, Optional[str]]:
    if not inspection_ids:
        return {}
    rows = (
        db.query(InspectionLog, UserProfile.email)
        .outerjoin(UserProfile, UserProfile.id == InspectionLog.created_by)
        .filter(
            InspectionLog.inspection_id.in_(inspection_ids),
            InspectionLog.action == "on_hold",
        )
        .order_by(InspectionLog.created_at.desc())
        .all()
    )
    authors: dict[UUID, Optional[str]] = {}
    for log, email in rows:
        authors.setdefault(log.inspection_id, email)
    return authors


def awaiting_certs(inspection: Inspection) -> bool:
    """Work is done but certificates are still outstanding."""
    if inspection.waiting_on_certs:
        return True
    return inspection.status == "completed" and not inspection.certs_received


def build_weekly_report(*, db: Session, today: date | None = None) -> dict:
    """Collect the three digest sections and render the email once."""
    today = today or date.today()
    window_days = settings.WEEKLY_REPORT_WINDOW_DAYS
    window_end = today + timedelta(days=window_days)

    due = (
        db.query(Inspection)
        .filter(
            Inspection.status.in_(("pending", "overdue")),
            Inspection.due_date >= today,
            Inspection.due_date <= window_end,
        )
        .order_by(Inspection.due_date.asc())
        .all()
    )
    on_hold = (
        db.query(Inspection)
        .filter(Inspection.status == "on_hold")
        .order_by(Inspection.due_date.asc().nullslast())
        .all()
    )
    candidates = (
        db.query(Inspection)
        .filter(or_(Inspection.status == "completed", Inspection.waiting_on_certs.is_(True)))
        .order_by(Inspection.date_completed.asc().nullslast())
        .all()
    )
    waiting = [inspection for inspection in candidates if awaiting_certs(inspection)]

    due_rows = [
        _asset_cells(i) + [_type_name(i), format_date(i.due_date), i.status.replace("_", " ").title()]
        for i in due
    ]

    authors = _latest_hold_authors(db, [i.id for i in on_hold])
    on_hold_rows = [
        _asset_cells(i)
        + [
            _type_name(i),
            format_date(i.due_date),
            (i.hold_reason or "").strip() or NO_COMMENT,
            authors.get(i.id) or UNKNOWN_USER,
        ]
        for i in on_hold
    ]

    waiting_rows = []
    for i in waiting:
        completed_on = i.date_completed or i.completed_date
        days_since = (today - completed_on).days if completed_on else None
        waiting_rows.append(_asset_cells(i) + [_type_name(i), format_date(completed_on), days_since])

    subject, html = weekly_report_email(
        report_date=today,
        due_rows=due_rows,
        on_hold_rows=on_hold_rows,
        waiting_rows=waiting_rows,
        window_days=window_days,
    )
    return {
        "subject": subject,
        "html": html,
        "counts": {"due": len(due_rows), "on_hold": len(on_hold_rows), "waiting_on_certs": len(waiting_rows)},
    }


def send_weekly_report_use_case(*, db: Session, today: date | None = None, scheduled: bool = True) -> dict:
    """
    Queue the digest to every active recipient.

    Scheduled runs are deduplicated per report date; "send now" always sends.
    """
    today = today or date.today()
    rows = db.query(ReportRecipient).filter(ReportRecipient.is_active.is_(True)).all()
    recipients = normalize_recipients(row.email for row in rows)
    if not recipients:
        logger.warning("Weekly report skipped: no active report recipients")
        return {"queued": 0, "recipients": [], "counts": None}

    report = build_weekly_report(db=db, today=today)
    queued = enqueue_email(
        db,
        email_type="weekly_report",
        recipients=recipients,
        subject=report["subject"],
        html=report["html"],
        idempotency_key=f"weekly_report:{today.isoformat()}" if scheduled else None,
    )
    db.commit()
    logger.info("Weekly report queued for %d recipients", len(queued))
    return {"queued": len(queued), "recipients": recipients, "counts": report["counts"]}


def add_report_recipient_use_case(*, db: Session, email: str) -> ReportRecipient:
    normalized = normalize_recipients([email])
    if not normalized or "@" not in normalized[0]:
        raise validation_error("REPORT_RECIPIENT_INVALID", ["Enter a valid email address"])
    address = normalized[0]

    existing = db.query(ReportRecipient).filter(ReportRecipient.email == address).first()
    if existing:
        if existing.is_active:
            raise DomainError(
                code="REPORT_RECIPIENT_EXISTS",
                http_status=409,
                message="Recipient already on the weekly report list",
            )
        existing.is_active = True
        db.commit()
        return existing

    recipient = ReportRecipient(id=uuid4(), email=address, is_active=True)
    db.add(recipient)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise DomainError(
            code="REPORT_RECIPIENT_EXISTS",
            http_status=409,
            message="Recipient already on the weekly report list",
        )
    return recipient


def remove_report_recipient_use_case(*, db: Session, recipient_id: UUID) -> None:
    recipient = db.query(ReportRecipient).filter(ReportRecipient.id == recipient_id).first()
    if not recipient:
        raise DomainError(
            code="REPORT_RECIPIENT_NOT_FOUND",
            http_status=404,
            message="Recipient not found",
        )
    db.delete(recipient)
    db.commit()
