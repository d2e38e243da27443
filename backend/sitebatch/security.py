"""Security helpers (RBAC and object-level access checks)."""

from __future__ import annotations

from typing import TypeVar
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from .auth import check_permission
from .models import ChecklistAlert, InspectionChecklist, UserProfile

T = TypeVar("T")


def require_permission(user: UserProfile, permission: str) -> None:
    """Enforce a role permission server-side."""
    if not check_permission(user, permission):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Permission denied: {permission} required",
        )


def require_entity(db: Session, model: type[T], *, entity_id: UUID, not_found: str) -> T:
    """Load an entity by id or raise 404."""
    entity = db.query(model).filter(getattr(model, "id") == entity_id).first()  # noqa: B009
    if not entity:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=not_found)
    return entity


def is_admin(user: UserProfile) -> bool:
    return user.role == "admin"


def can_work_on_checklist(checklist: InspectionChecklist, user: UserProfile) -> bool:
    """Assignees work their own checklists; admins may act on any."""
    return is_admin(user) or checklist.assigned_user_id == user.id


def can_resolve_alert(alert: ChecklistAlert, user: UserProfile) -> bool:
    """Only the admin an alert was sent to may resolve it."""
    return is_admin(user) and alert.admin_id == user.id
