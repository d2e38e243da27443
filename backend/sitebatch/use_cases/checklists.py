"""Checklist use-cases: template selection, creation, progress and completion."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Iterable, Optional
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from ..domain_errors import DomainError, validation_error
from ..models import (
    CHECKLIST_ITEM_STATUSES,
    ChecklistItem,
    Inspection,
    InspectionChecklist,
    InspectionItemTemplate,
    InspectionLog,
    UserProfile,
)
from ..security import can_work_on_checklist
from ..services.checklist_rules import (
    build_item_label,
    completion_errors,
    issue_items,
    template_applies_to_asset,
)
from ..services.email_outbox import enqueue_email
from ..services.email_templates import checklist_assignment_email
from ..services.notification_bus import (
    ChecklistAlertRaised,
    ChecklistAssigned,
    ChecklistCompleted,
    notification_bus,
)
from .alerts import notify_checklist_issues

logger = logging.getLogger(__name__)


def _is_wildcard(value: Any) -> bool:
    return value is None or value == "" or value == "all"


def list_templates_for(
    *,
    db: Session,
    asset_id: Optional[UUID | str] = None,
    inspection_type_id: Optional[UUID | str] = None,
) -> list[InspectionItemTemplate]:
    """Active templates matching the asset and type filters ("all" matches everything)."""
    templates = (
        db.query(InspectionItemTemplate)
        .filter(InspectionItemTemplate.is_active.is_(True))
        .order_by(InspectionItemTemplate.sort_order.asc(), InspectionItemTemplate.unique_id.asc())
        .all()
    )
    result = []
    for template in templates:
        if not _is_wildcard(inspection_type_id) and template.inspection_type_id not in (None, inspection_type_id):
            continue
        if not _is_wildcard(asset_id) and not template_applies_to_asset(template.asset_ids, asset_id):
            continue
        result.append(template)
    return result


def find_checklist_for_inspection(db: Session, inspection: Inspection) -> Optional[InspectionChecklist]:
    """Linked inspections share one checklist."""
    query = db.query(InspectionChecklist)
    if inspection.linked_group_id:
        query = query.filter(InspectionChecklist.linked_group_id == inspection.linked_group_id)
    else:
        query = query.filter(InspectionChecklist.inspection_id == inspection.id)
    return query.first()


def _group_inspection_ids(db: Session, inspection: Inspection) -> list[UUID]:
    if not inspection.linked_group_id:
        return [inspection.id]
    members = db.query(Inspection).filter(Inspection.linked_group_id == inspection.linked_group_id).all()
    return [member.id for member in members] or [inspection.id]


def _queue_assignment_email(
    db: Session,
    *,
    checklist: InspectionChecklist,
    inspection: Inspection,
    assignee: UserProfile,
    idempotency_key: Optional[str],
) -> None:
    subject, html = checklist_assignment_email(
        asset=inspection.asset,
        inspection_type_name=inspection.inspection_type.name if inspection.inspection_type else None,
        due_date=checklist.due_date,
        assigned_to=inspection.assigned_to,
    )
    enqueue_email(
        db,
        email_type="checklist_assigned",
        recipients=[assignee.email],
        subject=subject,
        html=html,
        entity_id=checklist.id,
        idempotency_key=idempotency_key,
    )


def create_checklist_use_case(
    *,
    db: Session,
    inspection_id: UUID,
    assigned_user_id: UUID,
    template_ids: list[UUID],
    current_user: UserProfile,
) -> InspectionChecklist:
    """Create the checklist for an inspection (or its linked group) from selected templates."""
    inspection = db.query(Inspection).filter(Inspection.id == inspection_id).first()
    if not inspection:
        raise DomainError(
            code="INSPECTION_NOT_FOUND",
            http_status=404,
            message="Inspection not found",
        )
    if not inspection.asset_id or not inspection.inspection_type_id:
        raise validation_error(
            "CHECKLIST_INSPECTION_INCOMPLETE",
            ["Inspection must have an asset and an inspection type before a checklist can be created"],
        )

    assignee = db.query(UserProfile).filter(UserProfile.id == assigned_user_id).first()
    if not assignee:
        raise DomainError(
            code="USER_NOT_FOUND",
            http_status=404,
            message="Assigned user not found",
        )

    selected = list(dict.fromkeys(template_ids))
    if not selected:
        raise validation_error("CHECKLIST_ITEMS_REQUIRED", ["Select at least one inspection item"])

    if find_checklist_for_inspection(db, inspection):
        raise DomainError(
            code="CHECKLIST_ALREADY_EXISTS",
            http_status=409,
            message="A checklist already exists for this inspection",
        )

    templates = db.query(InspectionItemTemplate).filter(
        InspectionItemTemplate.id.in_(selected),
        InspectionItemTemplate.is_active.is_(True),
    ).all()
    by_id = {template.id: template for template in templates}
    missing = [str(template_id) for template_id in selected if template_id not in by_id]
    if missing:
        raise DomainError(
            code="CHECKLIST_TEMPLATE_NOT_FOUND",
            http_status=404,
            message="Inspection item template not found",
            details={"template_ids": missing},
        )

    checklist = InspectionChecklist(
        id=uuid4(),
        inspection_id=inspection.id,
        asset_id=inspection.asset_id,
        inspection_type_id=inspection.inspection_type_id,
        linked_group_id=inspection.linked_group_id,
        assigned_user_id=assignee.id,
        status="sent",
        due_date=inspection.due_date,
        created_by=current_user.id,
    )
    db.add(checklist)

    for position, template_id in enumerate(selected, start=1):
        template = by_id[template_id]
        checklist.items.append(
            ChecklistItem(
                id=uuid4(),
                template_id=template.id,
                label=build_item_label(template.unique_id, template.description, position),
                sort_order=position,
                status="not_checked",
                created_by=current_user.id,
            )
        )

    for member_id in _group_inspection_ids(db, inspection):
        db.add(
            InspectionLog(
                inspection_id=member_id,
                action="checklist_created",
                details=f"Checklist assigned to {assignee.email}",
                created_by=current_user.id,
            )
        )

    _queue_assignment_email(
        db,
        checklist=checklist,
        inspection=inspection,
        assignee=assignee,
        idempotency_key=f"checklist_assigned:{checklist.id}",
    )
    db.commit()

    notification_bus.publish(ChecklistAssigned(user_ids=(assignee.id,), checklist_id=checklist.id))
    logger.info("Checklist %s created for inspection %s", checklist.id, inspection.id)
    return checklist


def _get_checklist_or_404(*, db: Session, checklist_id: UUID) -> InspectionChecklist:
    checklist = db.query(InspectionChecklist).filter(InspectionChecklist.id == checklist_id).first()
    if not checklist:
        raise DomainError(
            code="CHECKLIST_NOT_FOUND",
            http_status=404,
            message="Checklist not found",
        )
    return checklist


def get_checklist_use_case(*, db: Session, checklist_id: UUID, current_user: UserProfile) -> InspectionChecklist:
    checklist = _get_checklist_or_404(db=db, checklist_id=checklist_id)
    if not can_work_on_checklist(checklist, current_user):
        raise DomainError(
            code="CHECKLIST_FORBIDDEN",
            http_status=403,
            message="Checklist is not assigned to you",
        )
    return checklist


def resend_checklist_email_use_case(*, db: Session, checklist_id: UUID, current_user: UserProfile) -> InspectionChecklist:
    """Queue the assignment email again (every resend is delivered)."""
    checklist = _get_checklist_or_404(db=db, checklist_id=checklist_id)
    assignee = checklist.assigned_user
    if assignee is None:
        raise DomainError(
            code="USER_NOT_FOUND",
            http_status=404,
            message="Assigned user not found",
        )
    _queue_assignment_email(
        db,
        checklist=checklist,
        inspection=checklist.inspection,
        assignee=assignee,
        idempotency_key=None,
    )
    db.commit()
    return checklist


def _apply_item_updates(checklist: InspectionChecklist, item_updates: Iterable[dict]) -> None:
    items = {item.id: item for item in checklist.items}
    unknown = []
    invalid = []
    for update in item_updates:
        item = items.get(update["id"])
        if item is None:
            unknown.append(str(update["id"]))
            continue
        if "status" in update and update["status"] is not None:
            if update["status"] not in CHECKLIST_ITEM_STATUSES:
                invalid.append(f"{item.label}: unknown status {update['status']}")
                continue
            item.status = update["status"]
        if "comments" in update:
            item.comments = update["comments"]
    if unknown:
        raise DomainError(
            code="CHECKLIST_ITEM_NOT_FOUND",
            http_status=404,
            message="Checklist item not found",
            details={"item_ids": unknown},
        )
    if invalid:
        raise validation_error("CHECKLIST_ITEM_STATUS_INVALID", invalid)


def _editable_checklist(*, db: Session, checklist_id: UUID, current_user: UserProfile) -> InspectionChecklist:
    checklist = get_checklist_use_case(db=db, checklist_id=checklist_id, current_user=current_user)
    if checklist.status == "completed":
        raise DomainError(
            code="CHECKLIST_ALREADY_COMPLETED",
            http_status=409,
            message="Checklist is already completed",
        )
    return checklist


def save_checklist_progress_use_case(
    *,
    db: Session,
    checklist_id: UUID,
    item_updates: list[dict],
    current_user: UserProfile,
) -> InspectionChecklist:
    """Save item statuses/comments without completing."""
    checklist = _editable_checklist(db=db, checklist_id=checklist_id, current_user=current_user)
    _apply_item_updates(checklist, item_updates)
    db.commit()
    return checklist


def complete_checklist_use_case(
    *,
    db: Session,
    checklist_id: UUID,
    item_updates: list[dict],
    admin_ids: list[UUID],
    current_user: UserProfile,
) -> InspectionChecklist:
    """
    Save items, raise issue alerts and complete the checklist in one transaction.

    Every unmet condition is reported together; nothing is written unless all hold.
    """
    checklist = _editable_checklist(db=db, checklist_id=checklist_id, current_user=current_user)
    _apply_item_updates(checklist, item_updates)

    errors = completion_errors(checklist.items, admin_ids)
    if errors:
        raise validation_error("CHECKLIST_INCOMPLETE", errors)

    alerts = []
    if issue_items(checklist.items):
        alerts = notify_checklist_issues(
            db=db,
            checklist=checklist,
            admin_ids=admin_ids,
            current_user=current_user,
        )

    checklist.status = "completed"
    checklist.completed_at = datetime.now(timezone.utc)
    db.add(
        InspectionLog(
            inspection_id=checklist.inspection_id,
            action="checklist_completed",
            details=f"{len(alerts)} admin alert(s) raised" if alerts else None,
            created_by=current_user.id,
        )
    )
    db.commit()

    notification_bus.publish(ChecklistCompleted(user_ids=(checklist.assigned_user_id,), checklist_id=checklist.id))
    if alerts:
        notification_bus.publish(
            ChecklistAlertRaised(user_ids=tuple(alert.admin_id for alert in alerts), checklist_id=checklist.id)
        )
    return checklist


def list_user_checklists(*, db: Session, user_id: UUID) -> list[InspectionChecklist]:
    """Checklists assigned to a user, open ones first."""
    checklists = (
        db.query(InspectionChecklist)
        .filter(InspectionChecklist.assigned_user_id == user_id)
        .order_by(InspectionChecklist.due_date.asc().nullslast(), InspectionChecklist.created_at.desc())
        .all()
    )
    return sorted(checklists, key=lambda checklist: checklist.status == "completed")
