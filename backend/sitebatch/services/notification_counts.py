"""Badge counts shown next to the inbox links."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from uuid import UUID

from sqlalchemy.orm import Session

from ..database import SessionLocal
from ..models import ChecklistAlert, InspectionChecklist, UserRequest


@dataclass(frozen=True)
class NotificationCounts:
    open_checklists: int
    unresolved_requests: int
    unresolved_alerts: int

    @property
    def total(self) -> int:
        return self.open_checklists + self.unresolved_requests + self.unresolved_alerts

    def as_dict(self) -> dict:
        payload = asdict(self)
        payload["total"] = self.total
        return payload


def count_notifications(db: Session, user_id: UUID) -> NotificationCounts:
    """Open checklists assigned to the user plus unresolved requests/alerts addressed to them."""
    open_checklists = db.query(InspectionChecklist).filter(
        InspectionChecklist.assigned_user_id == user_id,
        InspectionChecklist.status != "completed",
    ).count()
    unresolved_requests = db.query(UserRequest).filter(
        UserRequest.admin_id == user_id,
        UserRequest.is_resolved.is_(False),
    ).count()
    unresolved_alerts = db.query(ChecklistAlert).filter(
        ChecklistAlert.admin_id == user_id,
        ChecklistAlert.is_resolved.is_(False),
    ).count()
    return NotificationCounts(
        open_checklists=open_checklists,
        unresolved_requests=unresolved_requests,
        unresolved_alerts=unresolved_alerts,
    )


def load_notification_counts(user_id: str) -> dict:
    """Counts for one user in a short-lived session (used off the request path)."""
    db = SessionLocal()
    try:
        return count_notifications(db, UUID(user_id)).as_dict()
    finally:
        db.close()
