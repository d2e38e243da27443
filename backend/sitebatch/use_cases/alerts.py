"""Checklist issue alerts: fan-out to admins and per-item resolution."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Iterable
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from ..domain_errors import DomainError, validation_error
from ..models import (
    ChecklistAlert,
    ChecklistAlertResolution,
    Inspection,
    InspectionChecklist,
    InspectionLog,
    UserProfile,
)
from ..security import can_resolve_alert
from ..services.checklist_rules import MSG_NO_ADMIN, issue_items, issue_summary
from ..services.email_outbox import enqueue_email
from ..services.email_templates import asset_line, checklist_issue_email
from ..services.notification_bus import ChecklistAlertResolved, notification_bus

logger = logging.getLogger(__name__)

MSG_RESOLUTION_REQUIRED = "Please enter a resolution for each defective or not available item."


def _linked_asset_lines(db: Session, checklist: InspectionChecklist) -> list[str]:
    if not checklist.linked_group_id:
        return []
    inspections = db.query(Inspection).filter(Inspection.linked_group_id == checklist.linked_group_id).all()
    lines = []
    for inspection in inspections:
        line = asset_line(inspection.asset) if inspection.asset is not None else None
        if line and line not in lines:
            lines.append(line)
    return lines


def notify_checklist_issues(
    *,
    db: Session,
    checklist: InspectionChecklist,
    admin_ids: Iterable[UUID],
    current_user: UserProfile,
) -> list[ChecklistAlert]:
    """
    Raise an alert per selected admin and queue their emails.

    Does not commit; the caller completes the checklist in the same transaction.
    An admin who already has an open alert for this checklist gets no second one.
    """
    admin_ids = list(dict.fromkeys(admin_ids))
    admins = []
    if admin_ids:
        admins = db.query(UserProfile).filter(
            UserProfile.id.in_(admin_ids),
            UserProfile.role == "admin",
        ).all()
    if not admins:
        raise validation_error("CHECKLIST_ALERT_NO_ADMIN", [MSG_NO_ADMIN])

    summary = issue_summary(checklist.items)
    inspection = checklist.inspection
    subject, html = checklist_issue_email(
        asset=checklist.asset,
        inspection_type_name=inspection.inspection_type.name if inspection and inspection.inspection_type else None,
        due_date=checklist.due_date,
        assigned_to=inspection.assigned_to if inspection else None,
        linked_asset_lines=_linked_asset_lines(db, checklist),
        summary=summary,
        items=checklist.items,
    )

    created = []
    for admin in admins:
        open_alert = db.query(ChecklistAlert).filter(
            ChecklistAlert.checklist_id == checklist.id,
            ChecklistAlert.admin_id == admin.id,
            ChecklistAlert.is_resolved.is_(False),
        ).first()
        if open_alert:
            logger.info("Admin %s already has an open alert for checklist %s", admin.id, checklist.id)
            continue
        alert = ChecklistAlert(
            id=uuid4(),
            checklist_id=checklist.id,
            inspection_id=checklist.inspection_id,
            admin_id=admin.id,
            created_by=current_user.id,
            issue_summary=summary,
            is_resolved=False,
        )
        db.add(alert)
        created.append(alert)
        enqueue_email(
            db,
            email_type="checklist_issue_alert",
            recipients=[admin.email],
            subject=subject,
            html=html,
            entity_id=checklist.id,
            idempotency_key=f"checklist_issue_alert:{alert.id}",
        )
    return created


def _get_alert_or_404(*, db: Session, alert_id: UUID) -> ChecklistAlert:
    alert = db.query(ChecklistAlert).filter(ChecklistAlert.id == alert_id).first()
    if not alert:
        raise DomainError(
            code="CHECKLIST_ALERT_NOT_FOUND",
            http_status=404,
            message="Alert not found",
        )
    return alert


def resolve_alert_use_case(
    *,
    db: Session,
    alert_id: UUID,
    resolutions: dict[UUID, str],
    current_user: UserProfile,
) -> ChecklistAlert:
    """Record a resolution for every flagged item and close the alert."""
    alert = _get_alert_or_404(db=db, alert_id=alert_id)
    if not can_resolve_alert(alert, current_user):
        raise DomainError(
            code="CHECKLIST_ALERT_FORBIDDEN",
            http_status=403,
            message="Only the admin this alert was sent to can resolve it",
        )
    if alert.is_resolved:
        raise DomainError(
            code="CHECKLIST_ALERT_ALREADY_RESOLVED",
            http_status=409,
            message="Alert is already resolved",
        )

    flagged = issue_items(alert.checklist.items)
    texts = {item.id: (resolutions.get(item.id) or "").strip() for item in flagged}
    if any(not text for text in texts.values()):
        raise validation_error("CHECKLIST_ALERT_RESOLUTION_INCOMPLETE", [MSG_RESOLUTION_REQUIRED])

    for item in flagged:
        db.add(
            ChecklistAlertResolution(
                alert_id=alert.id,
                checklist_item_id=item.id,
                resolution_text=texts[item.id],
                created_by=current_user.id,
            )
        )

    alert.is_resolved = True
    alert.resolved_at = datetime.now(timezone.utc)
    alert.resolved_by = current_user.id

    details = "; ".join(f"{item.label}: {texts[item.id]}" for item in flagged)
    db.add(
        InspectionLog(
            inspection_id=alert.inspection_id,
            action="checklist_issue_resolved",
            details=details or "Checklist issues resolved",
            created_by=current_user.id,
        )
    )
    db.commit()

    notification_bus.publish(ChecklistAlertResolved(user_ids=(alert.admin_id,), alert_id=alert.id))
    return alert


def list_alerts_for_admin(*, db: Session, admin_id: UUID, include_resolved: bool = False) -> list[ChecklistAlert]:
    query = db.query(ChecklistAlert).filter(ChecklistAlert.admin_id == admin_id)
    if not include_resolved:
        query = query.filter(ChecklistAlert.is_resolved.is_(False))
    return query.order_by(ChecklistAlert.is_resolved.asc(), ChecklistAlert.created_at.desc()).all()
