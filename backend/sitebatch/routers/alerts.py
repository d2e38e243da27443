"""Checklist issue alert endpoints (admin inbox)."""
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth import PermissionChecker
from ..database import get_db
from ..models import UserProfile
from ..schemas import AlertResolveRequest, AlertResponse
from ..use_cases.alerts import list_alerts_for_admin, resolve_alert_use_case

router = APIRouter(prefix="/alerts", tags=["alerts"])


@router.get("", response_model=list[AlertResponse])
def get_my_alerts(
    include_resolved: bool = Query(False),
    current_user: UserProfile = Depends(PermissionChecker("canResolveAlerts")),
    db: Session = Depends(get_db)
):
    alerts = list_alerts_for_admin(db=db, admin_id=current_user.id, include_resolved=include_resolved)
    return [AlertResponse.model_validate(a) for a in alerts]


@router.post("/{alert_id}/resolve", response_model=AlertResponse)
def resolve_alert(
    alert_id: UUID,
    data: AlertResolveRequest,
    current_user: UserProfile = Depends(PermissionChecker("canResolveAlerts")),
    db: Session = Depends(get_db)
):
    """Resolve an alert with one resolution per flagged item."""
    alert = resolve_alert_use_case(
        db=db,
        alert_id=alert_id,
        resolutions={r.checklist_item_id: r.resolution_text for r in data.resolutions},
        current_user=current_user,
    )
    return AlertResponse.model_validate(alert)
