"""Inspection status derivation and completion gating."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Optional

from ..config import settings


STATUS_COMPLIANT = "compliant"
STATUS_OVERDUE = "overdue"
STATUS_DUE_SOON = "due-soon"

# Repeat frequencies offered on completion: months between recurrences and how
# many future inspections to pre-create.
REPEAT_FREQUENCIES: dict[str, tuple[int, int]] = {
    "monthly": (1, 6),
    "quarterly": (3, 3),
    "six_monthly": (6, 2),
    "yearly": (12, 1),
    "two_yearly": (24, 1),
}


def days_until(due_date: date, today: date) -> int:
    """Whole days from `today` to `due_date` (negative once past)."""
    return (due_date - today).days


def classify_inspection(
    status: str,
    due_date: Optional[date],
    today: date,
    *,
    window_days: int | None = None,
) -> str:
    """Display class for an inspection: compliant, overdue or due-soon."""
    if status == "completed":
        return STATUS_COMPLIANT
    if due_date is None:
        return STATUS_COMPLIANT
    window = settings.DUE_SOON_WINDOW_DAYS if window_days is None else window_days
    if due_date < today:
        return STATUS_OVERDUE
    if due_date <= today + timedelta(days=window):
        return STATUS_DUE_SOON
    return STATUS_COMPLIANT


def _plural_days(count: int) -> str:
    return f"{count} day{'' if count == 1 else 's'}"


def due_label(status: str, due_date: Optional[date], today: date) -> str:
    """Human due label; only pending inspections with a due date get one."""
    if due_date is None or status != "pending":
        return ""
    diff = days_until(due_date, today)
    if diff == 0:
        return "Due today"
    if diff > 0:
        return f"{_plural_days(diff)} until due"
    return f"{_plural_days(abs(diff))} overdue"


@dataclass(frozen=True)
class CompletionFields:
    """Snapshot of the gating fields of an inspection."""

    next_inspection_date: Optional[date] = None
    next_inspection_na: bool = False
    certs_received: bool = False
    certs_link: Optional[str] = None
    defect_portal_actions: bool = False
    defect_portal_na: bool = False

    @classmethod
    def from_inspection(cls, inspection: Any) -> "CompletionFields":
        return cls(
            next_inspection_date=inspection.next_inspection_date,
            next_inspection_na=bool(inspection.next_inspection_na),
            certs_received=bool(inspection.certs_received),
            certs_link=inspection.certs_link,
            defect_portal_actions=bool(inspection.defect_portal_actions),
            defect_portal_na=bool(inspection.defect_portal_na),
        )


def completion_blockers(fields: CompletionFields) -> list[str]:
    """One reason per failing gate clause, in display order."""
    reasons: list[str] = []

    if not fields.next_inspection_na and fields.next_inspection_date is None:
        reasons.append("Date Next Inspection is required (enter date or mark N/A)")

    certs_link = (fields.certs_link or "").strip()
    if not fields.certs_received and not certs_link:
        reasons.append("Certs Received must be ticked and a Google Drive Link for Certs provided")
    elif not fields.certs_received:
        reasons.append("Certs Received must be ticked")
    elif not certs_link:
        reasons.append("Google Drive Link for Certs must be provided")

    if fields.defect_portal_actions and fields.defect_portal_na:
        reasons.append("Actions created in Defect Portal and N/A cannot both be selected")
    elif not fields.defect_portal_actions and not fields.defect_portal_na:
        reasons.append("Actions created in Defect Portal OR N/A must be selected")

    return reasons


def can_complete(fields: CompletionFields) -> bool:
    return not completion_blockers(fields)


def add_months(start: date, months: int) -> date:
    """Calendar month arithmetic, clamping to the last day of the month."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    if month == 12:
        last_day = 31
    else:
        last_day = (date(year, month + 1, 1) - timedelta(days=1)).day
    return date(year, month, min(start.day, last_day))


def recurrence_due_dates(first_due: date, frequency: str) -> list[date]:
    """Due dates for the next inspection plus its pre-created repeats."""
    months, future_count = REPEAT_FREQUENCIES[frequency]
    return [add_months(first_due, months * index) for index in range(future_count + 1)]
