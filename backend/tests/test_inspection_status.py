from __future__ import annotations

from datetime import date, timedelta
from types import SimpleNamespace

import pytest

from sitebatch.services.inspection_status import (
    STATUS_COMPLIANT,
    STATUS_DUE_SOON,
    STATUS_OVERDUE,
    CompletionFields,
    add_months,
    can_complete,
    classify_inspection,
    completion_blockers,
    due_label,
    recurrence_due_dates,
)

TODAY = date(2026, 3, 10)


@pytest.mark.parametrize(
    ("status", "due_date", "expected"),
    [
        ("completed", TODAY - timedelta(days=100), STATUS_COMPLIANT),
        ("pending", None, STATUS_COMPLIANT),
        ("pending", TODAY - timedelta(days=1), STATUS_OVERDUE),
        ("on_hold", TODAY - timedelta(days=1), STATUS_OVERDUE),
        ("pending", TODAY, STATUS_DUE_SOON),
        ("pending", TODAY + timedelta(days=30), STATUS_DUE_SOON),
        ("pending", TODAY + timedelta(days=31), STATUS_COMPLIANT),
    ],
)
def test_classify_inspection_uses_thirty_day_window(status, due_date, expected) -> None:
    assert classify_inspection(status, due_date, TODAY, window_days=30) == expected


@pytest.mark.parametrize(
    ("status", "due_date", "expected"),
    [
        ("pending", TODAY, "Due today"),
        ("pending", TODAY + timedelta(days=1), "1 day until due"),
        ("pending", TODAY + timedelta(days=12), "12 days until due"),
        ("pending", TODAY - timedelta(days=1), "1 day overdue"),
        ("pending", TODAY - timedelta(days=3), "3 days overdue"),
        ("on_hold", TODAY - timedelta(days=3), ""),
        ("completed", TODAY, ""),
        ("pending", None, ""),
    ],
)
def test_due_label_only_for_pending_with_due_date(status, due_date, expected) -> None:
    assert due_label(status, due_date, TODAY) == expected


def test_completion_blockers_lists_every_failing_clause_in_order() -> None:
    reasons = completion_blockers(CompletionFields())

    assert reasons == [
        "Date Next Inspection is required (enter date or mark N/A)",
        "Certs Received must be ticked and a Google Drive Link for Certs provided",
        "Actions created in Defect Portal OR N/A must be selected",
    ]


def test_completion_allowed_when_all_clauses_satisfied() -> None:
    fields = CompletionFields(
        next_inspection_na=True,
        certs_received=True,
        certs_link="https://drive.google.com/drive/folders/abc",
        defect_portal_na=True,
    )

    assert completion_blockers(fields) == []
    assert can_complete(fields) is True


def test_certs_link_must_not_be_blank() -> None:
    fields = CompletionFields(
        next_inspection_date=TODAY,
        certs_received=True,
        certs_link="   ",
        defect_portal_actions=True,
    )

    assert completion_blockers(fields) == ["Google Drive Link for Certs must be provided"]


def test_certs_received_required_when_link_present() -> None:
    fields = CompletionFields(
        next_inspection_date=TODAY,
        certs_link="https://drive.google.com/x",
        defect_portal_actions=True,
    )

    assert completion_blockers(fields) == ["Certs Received must be ticked"]


def test_waiting_on_certs_still_needs_certificates() -> None:
    row = SimpleNamespace(
        next_inspection_date=None,
        next_inspection_na=True,
        certs_received=False,
        certs_link=None,
        waiting_on_certs=True,
        defect_portal_actions=False,
        defect_portal_na=True,
    )

    fields = CompletionFields.from_inspection(row)

    assert can_complete(fields) is False
    assert completion_blockers(fields) == [
        "Certs Received must be ticked and a Google Drive Link for Certs provided"
    ]


def test_defect_portal_actions_and_na_are_exclusive() -> None:
    fields = CompletionFields(
        next_inspection_na=True,
        certs_received=True,
        certs_link="link",
        defect_portal_actions=True,
        defect_portal_na=True,
    )

    assert completion_blockers(fields) == ["Actions created in Defect Portal and N/A cannot both be selected"]


def test_completion_fields_read_from_inspection_row() -> None:
    row = SimpleNamespace(
        next_inspection_date=None,
        next_inspection_na=None,
        certs_received=1,
        certs_link="link",
        waiting_on_certs=False,
        defect_portal_actions=0,
        defect_portal_na=1,
    )

    fields = CompletionFields.from_inspection(row)

    assert fields.next_inspection_na is False
    assert fields.certs_received is True
    assert fields.defect_portal_na is True


@pytest.mark.parametrize(
    ("start", "months", "expected"),
    [
        (date(2026, 1, 31), 1, date(2026, 2, 28)),
        (date(2024, 1, 31), 1, date(2024, 2, 29)),
        (date(2026, 11, 30), 1, date(2026, 12, 30)),
        (date(2026, 11, 15), 3, date(2027, 2, 15)),
        (date(2026, 8, 31), 24, date(2028, 8, 31)),
    ],
)
def test_add_months_clamps_to_month_end(start, months, expected) -> None:
    assert add_months(start, months) == expected


def test_recurrence_due_dates_include_first_and_future_repeats() -> None:
    assert recurrence_due_dates(date(2026, 1, 15), "quarterly") == [
        date(2026, 1, 15),
        date(2026, 4, 15),
        date(2026, 7, 15),
        date(2026, 10, 15),
    ]
    assert recurrence_due_dates(date(2026, 1, 15), "yearly") == [date(2026, 1, 15), date(2027, 1, 15)]
    assert len(recurrence_due_dates(date(2026, 1, 15), "monthly")) == 7
