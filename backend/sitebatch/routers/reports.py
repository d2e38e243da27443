"""Reporting endpoints: dashboard, weekly digest, recipients and manual sweeps."""
from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import PermissionChecker, get_current_user
from ..database import get_db
from ..models import ReportRecipient, UserProfile
from ..schemas import (
    InspectionResponse,
    ItemReminderRunRequest,
    ReportRecipientCreate,
    ReportRecipientResponse,
)
from ..use_cases.dashboard import dashboard_stats_use_case
from ..use_cases.reminders import run_inspection_reminders, run_item_reminders, run_overdue_sweep
from ..use_cases.weekly_report import (
    add_report_recipient_use_case,
    build_weekly_report,
    remove_report_recipient_use_case,
    send_weekly_report_use_case,
)

router = APIRouter(prefix="/reports", tags=["reports"])


@router.get("/dashboard")
def get_dashboard(
    current_user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    stats = dashboard_stats_use_case(db=db, today=date.today())
    upcoming = []
    for row in stats.pop("upcoming"):
        payload = InspectionResponse.model_validate(row["inspection"]).model_dump(mode="json")
        payload.update(status_class=row["status_class"], due_label=row["due_label"])
        upcoming.append(payload)
    stats["upcoming"] = upcoming
    return stats


@router.get("/weekly/preview")
def preview_weekly_report(
    current_user: UserProfile = Depends(PermissionChecker("canManageReports")),
    db: Session = Depends(get_db)
):
    return build_weekly_report(db=db, today=date.today())


@router.post("/weekly/send")
def send_weekly_report_now(
    current_user: UserProfile = Depends(PermissionChecker("canManageReports")),
    db: Session = Depends(get_db)
):
    """Send the weekly digest now (same job as the schedule)."""
    return send_weekly_report_use_case(db=db, today=date.today(), scheduled=False)


@router.get("/recipients", response_model=list[ReportRecipientResponse])
def get_report_recipients(
    current_user: UserProfile = Depends(PermissionChecker("canManageReports")),
    db: Session = Depends(get_db)
):
    recipients = db.query(ReportRecipient).order_by(ReportRecipient.email.asc()).all()
    return [ReportRecipientResponse.model_validate(r) for r in recipients]


@router.post("/recipients", response_model=ReportRecipientResponse, status_code=201)
def add_report_recipient(
    data: ReportRecipientCreate,
    current_user: UserProfile = Depends(PermissionChecker("canManageReports")),
    db: Session = Depends(get_db)
):
    recipient = add_report_recipient_use_case(db=db, email=data.email)
    return ReportRecipientResponse.model_validate(recipient)


@router.delete("/recipients/{recipient_id}", status_code=204)
def remove_report_recipient(
    recipient_id: UUID,
    current_user: UserProfile = Depends(PermissionChecker("canManageReports")),
    db: Session = Depends(get_db)
):
    remove_report_recipient_use_case(db=db, recipient_id=recipient_id)


@router.post("/sweeps/overdue")
def run_overdue_now(
    current_user: UserProfile = Depends(PermissionChecker("canManageReports")),
    db: Session = Depends(get_db)
):
    return {"updated": run_overdue_sweep(db=db, today=date.today())}


@router.post("/sweeps/inspection-reminders")
def run_inspection_reminders_now(
    current_user: UserProfile = Depends(PermissionChecker("canManageReports")),
    db: Session = Depends(get_db)
):
    return run_inspection_reminders(db=db, today=date.today())


@router.post("/sweeps/item-reminders")
def run_item_reminders_now(
    data: ItemReminderRunRequest,
    current_user: UserProfile = Depends(PermissionChecker("canManageReports")),
    db: Session = Depends(get_db)
):
    """Run the item expiry sweep, optionally for a single template."""
    return run_item_reminders(db=db, today=date.today(), template_id=data.template_id)
