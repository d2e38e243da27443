"""Inspection lifecycle use-cases: scheduling, edits, hold, completion and alerts."""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Optional
from uuid import UUID, uuid4

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..domain_errors import DomainError, validation_error
from ..models import (
    Asset,
    Inspection,
    InspectionLog,
    InspectionReminder,
    InspectionType,
    UserProfile,
)
from ..services.email_outbox import enqueue_email
from ..services.email_templates import inspection_alert_email
from ..services.inspection_status import (
    REPEAT_FREQUENCIES,
    CompletionFields,
    add_months,
    classify_inspection,
    completion_blockers,
    due_label,
    recurrence_due_dates,
)
from .reminders import resolve_reminder_recipients

logger = logging.getLogger(__name__)

INSPECTION_EDITABLE_FIELDS = (
    "due_date",
    "status",
    "hold_reason",
    "assigned_to",
    "notes",
    "date_completed",
    "next_inspection_date",
    "next_inspection_na",
    "certs_received",
    "certs_link",
    "waiting_on_certs",
    "defect_portal_actions",
    "defect_portal_na",
)
GATING_FIELDS = (
    "next_inspection_date",
    "next_inspection_na",
    "certs_received",
    "certs_link",
    "waiting_on_certs",
    "defect_portal_actions",
    "defect_portal_na",
    "date_completed",
)
OPEN_STATUSES = ("pending", "overdue", "on_hold")

MSG_HOLD_REASON_REQUIRED = "On hold comment is required before saving."
MSG_DEFECT_PORTAL_EXCLUSIVE = "Actions created in Defect Portal and N/A cannot both be selected"


def _get_inspection_or_404(*, db: Session, inspection_id: UUID) -> Inspection:
    inspection = db.query(Inspection).filter(Inspection.id == inspection_id).first()
    if not inspection:
        raise DomainError(
            code="INSPECTION_NOT_FOUND",
            http_status=404,
            message="Inspection not found",
        )
    return inspection


def _log(db: Session, *, inspection_id: UUID, action: str, current_user: UserProfile, details: str | None = None) -> None:
    db.add(
        InspectionLog(
            inspection_id=inspection_id,
            action=action,
            details=details,
            created_by=current_user.id,
        )
    )


def _resolve_inspection_type(
    *,
    db: Session,
    inspection_type_id: Optional[UUID],
    inspection_type_name: Optional[str],
) -> InspectionType:
    if inspection_type_id is not None:
        inspection_type = db.query(InspectionType).filter(InspectionType.id == inspection_type_id).first()
        if not inspection_type:
            raise DomainError(
                code="INSPECTION_TYPE_NOT_FOUND",
                http_status=404,
                message="Inspection type not found",
            )
        return inspection_type

    name = (inspection_type_name or "").strip()
    if not name:
        raise validation_error("INSPECTION_TYPE_REQUIRED", ["Select an inspection type or enter a new one"])
    inspection_type = db.query(InspectionType).filter(func.lower(InspectionType.name) == name.lower()).first()
    if inspection_type:
        return inspection_type
    inspection_type = InspectionType(id=uuid4(), name=name)
    db.add(inspection_type)
    logger.info("Created inspection type %r while scheduling", name)
    return inspection_type


def schedule_inspections_use_case(
    *,
    db: Session,
    asset_ids: list[UUID],
    due_date: Optional[date],
    inspection_type_id: Optional[UUID] = None,
    inspection_type_name: Optional[str] = None,
    assigned_to: Optional[str] = None,
    notes: Optional[str] = None,
    link_assets: bool = False,
    current_user: UserProfile,
) -> list[Inspection]:
    """Create one pending inspection per asset; optionally link them as one group."""
    unique_ids = list(dict.fromkeys(asset_ids))
    if not unique_ids:
        raise validation_error("INSPECTION_ASSETS_REQUIRED", ["Select at least one asset"])

    assets = db.query(Asset).filter(Asset.id.in_(unique_ids)).all()
    found = {asset.id for asset in assets}
    missing = [str(asset_id) for asset_id in unique_ids if asset_id not in found]
    if missing:
        raise DomainError(
            code="ASSET_NOT_FOUND",
            http_status=404,
            message="Asset not found",
            details={"asset_ids": missing},
        )

    inspection_type = _resolve_inspection_type(
        db=db,
        inspection_type_id=inspection_type_id,
        inspection_type_name=inspection_type_name,
    )
    linked_group_id = uuid4() if link_assets and len(unique_ids) > 1 else None

    inspections = []
    for asset_id in unique_ids:
        inspection = Inspection(
            id=uuid4(),
            asset_id=asset_id,
            inspection_type_id=inspection_type.id,
            due_date=due_date,
            status="pending",
            assigned_to=(assigned_to or "").strip() or None,
            notes=notes,
            linked_group_id=linked_group_id,
        )
        db.add(inspection)
        _log(db, inspection_id=inspection.id, action="created", current_user=current_user)
        inspections.append(inspection)

    db.commit()
    logger.info("Scheduled %d inspections (linked=%s)", len(inspections), bool(linked_group_id))
    return inspections


def _check_defect_portal(inspection: Inspection) -> None:
    if inspection.defect_portal_actions and inspection.defect_portal_na:
        raise validation_error("INSPECTION_DEFECT_PORTAL_CONFLICT", [MSG_DEFECT_PORTAL_EXCLUSIVE])


def update_inspection_use_case(
    *,
    db: Session,
    inspection_id: UUID,
    changes: dict[str, Any],
    current_user: UserProfile,
) -> Inspection:
    """Edit an inspection. Completion goes through `complete_inspection_use_case`."""
    inspection = _get_inspection_or_404(db=db, inspection_id=inspection_id)
    changes = {key: value for key, value in changes.items() if key in INSPECTION_EDITABLE_FIELDS}

    old_status = inspection.status
    new_status = changes.get("status", old_status)
    if new_status != old_status and new_status == "completed":
        raise DomainError(
            code="INSPECTION_COMPLETE_VIA_ENDPOINT",
            http_status=422,
            message="Use the completion action to mark an inspection as completed",
        )
    if new_status not in ("pending", "overdue", "on_hold", "completed"):
        raise validation_error("INSPECTION_STATUS_INVALID", [f"Unknown status: {new_status}"])

    hold_reason = changes.get("hold_reason", inspection.hold_reason)
    if new_status == "on_hold" and not (hold_reason or "").strip():
        raise validation_error("INSPECTION_HOLD_REASON_REQUIRED", [MSG_HOLD_REASON_REQUIRED])

    old_due = inspection.due_date
    for key, value in changes.items():
        setattr(inspection, key, value)
    _check_defect_portal(inspection)

    if new_status == "on_hold" and old_status != "on_hold":
        _log(db, inspection_id=inspection.id, action="on_hold", current_user=current_user, details=hold_reason.strip())
    elif old_status == "on_hold" and new_status != "on_hold":
        _log(db, inspection_id=inspection.id, action="resumed", current_user=current_user)
    else:
        _log(db, inspection_id=inspection.id, action="updated", current_user=current_user)

    if inspection.due_date != old_due:
        # Reminder cadence restarts for the new due date.
        db.query(InspectionReminder).filter(InspectionReminder.inspection_id == inspection.id).delete(
            synchronize_session=False
        )

    db.commit()
    return inspection


def _sync_recurrences(
    *,
    db: Session,
    inspection: Inspection,
    frequency: str,
    current_user: UserProfile,
) -> list[Inspection]:
    """Create (or re-anchor) the repeats that follow a completed inspection."""
    months, _ = REPEAT_FREQUENCIES[frequency]
    due_dates = recurrence_due_dates(inspection.next_inspection_date, frequency)

    had_group = inspection.recurrence_group_id is not None
    group_id = inspection.recurrence_group_id or uuid4()
    sequence = inspection.recurrence_sequence or 0
    inspection.recurrence_group_id = group_id
    inspection.recurrence_frequency_months = months
    inspection.recurrence_sequence = sequence

    later = []
    if had_group:
        later = (
            db.query(Inspection)
            .filter(
                Inspection.recurrence_group_id == group_id,
                Inspection.recurrence_sequence > sequence,
                Inspection.status.in_(OPEN_STATUSES),
            )
            .order_by(Inspection.recurrence_sequence.asc())
            .all()
        )

    if later:
        # Later repeats follow the actual completion, not the original plan.
        for offset, follower in enumerate(later):
            follower.due_date = add_months(inspection.next_inspection_date, months * offset)
            follower.recurrence_frequency_months = months
        return later

    created = []
    for offset, due in enumerate(due_dates, start=1):
        follower = Inspection(
            id=uuid4(),
            asset_id=inspection.asset_id,
            inspection_type_id=inspection.inspection_type_id,
            due_date=due,
            status="pending",
            assigned_to=inspection.assigned_to,
            recurrence_group_id=group_id,
            recurrence_frequency_months=months,
            recurrence_sequence=sequence + offset,
        )
        db.add(follower)
        _log(
            db,
            inspection_id=follower.id,
            action="created",
            current_user=current_user,
            details=f"Repeat of completed inspection ({frequency})",
        )
        created.append(follower)
    return created


def complete_inspection_use_case(
    *,
    db: Session,
    inspection_id: UUID,
    changes: Optional[dict[str, Any]] = None,
    repeat_frequency: Optional[str] = None,
    today: date | None = None,
    current_user: UserProfile,
) -> Inspection:
    """Mark an inspection completed once every gating clause holds."""
    today = today or date.today()
    inspection = _get_inspection_or_404(db=db, inspection_id=inspection_id)

    if inspection.status == "completed":
        raise DomainError(
            code="INSPECTION_ALREADY_COMPLETED",
            http_status=409,
            message="Inspection is already completed",
        )
    if repeat_frequency and repeat_frequency not in REPEAT_FREQUENCIES:
        raise validation_error(
            "INSPECTION_REPEAT_INVALID",
            [f"Repeat frequency must be one of: {', '.join(REPEAT_FREQUENCIES)}"],
        )

    for key, value in (changes or {}).items():
        if key in GATING_FIELDS:
            setattr(inspection, key, value)

    reasons = completion_blockers(CompletionFields.from_inspection(inspection))
    if repeat_frequency and (inspection.next_inspection_na or inspection.next_inspection_date is None):
        reasons.append("A Date Next Inspection is required to repeat this inspection")
    if reasons:
        raise validation_error(
            "INSPECTION_COMPLETION_BLOCKED",
            reasons,
            headline="Cannot mark as Completed. Please complete the following:",
        )

    inspection.status = "completed"
    inspection.completed_date = today
    if inspection.date_completed is None:
        inspection.date_completed = today
    inspection.hold_reason = None
    # Certs are in by now, so the inspection leaves the digest's waiting list.
    inspection.waiting_on_certs = False

    _log(db, inspection_id=inspection.id, action="completed", current_user=current_user)

    if repeat_frequency:
        repeats = _sync_recurrences(db=db, inspection=inspection, frequency=repeat_frequency, current_user=current_user)
        logger.info("Inspection %s completed with %d repeats (%s)", inspection.id, len(repeats), repeat_frequency)

    db.commit()
    return inspection


def delete_inspection_use_case(*, db: Session, inspection_id: UUID, current_user: UserProfile) -> None:
    inspection = _get_inspection_or_404(db=db, inspection_id=inspection_id)
    db.delete(inspection)
    db.commit()
    logger.info("Inspection %s deleted by %s", inspection_id, current_user.email)


def send_inspection_alert_use_case(
    *,
    db: Session,
    inspection_id: UUID,
    today: date | None = None,
    current_user: UserProfile,
) -> int:
    """Queue an ad hoc status email now, outside the reminder cadence."""
    today = today or date.today()
    inspection = _get_inspection_or_404(db=db, inspection_id=inspection_id)

    recipients = resolve_reminder_recipients(db)
    if not recipients:
        raise DomainError(
            code="REMINDER_RECIPIENTS_MISSING",
            http_status=422,
            message="No reminder recipients are configured",
        )

    subject, html = inspection_alert_email(
        asset=inspection.asset,
        inspection_type_name=inspection.inspection_type.name if inspection.inspection_type else None,
        status=inspection.status,
        status_class=classify_inspection(inspection.status, inspection.due_date, today),
        due_date=inspection.due_date,
        due_text=due_label(inspection.status, inspection.due_date, today),
        assigned_to=inspection.assigned_to,
    )
    # No idempotency key: each click is a deliberate resend.
    rows = enqueue_email(
        db,
        email_type="inspection_alert",
        recipients=recipients,
        subject=subject,
        html=html,
        entity_id=inspection.id,
    )
    _log(
        db,
        inspection_id=inspection.id,
        action="alert_sent",
        current_user=current_user,
        details=f"Alert sent to {', '.join(recipients)}",
    )
    db.commit()
    return len(rows)


def list_inspection_logs(*, db: Session, inspection_id: UUID) -> list[dict]:
    """Audit trail, newest first, with the author's email."""
    _get_inspection_or_404(db=db, inspection_id=inspection_id)
    rows = (
        db.query(InspectionLog, UserProfile.email)
        .outerjoin(UserProfile, UserProfile.id == InspectionLog.created_by)
        .filter(InspectionLog.inspection_id == inspection_id)
        .order_by(InspectionLog.created_at.desc())
        .all()
    )
    return [
        {
            "id": log.id,
            "action": log.action,
            "details": log.details,
            "created_at": log.created_at,
            "author_email": email,
        }
        for log, email in rows
    ]
