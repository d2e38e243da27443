from __future__ import annotations

from datetime import date
from types import SimpleNamespace
from uuid import uuid4

import pytest
from sqlalchemy.sql import operators

from sitebatch.domain_errors import DomainError
from sitebatch.models import EmailOutbox, Inspection, InspectionLog, ReportRecipient, UserProfile, UserRequest
from sitebatch.use_cases.user_requests import create_user_request_use_case, resolve_user_request_use_case
from sitebatch.use_cases.weekly_report import (
    NO_COMMENT,
    UNKNOWN_USER,
    awaiting_certs,
    build_weekly_report,
    send_weekly_report_use_case,
)

TODAY = date(2026, 3, 9)


_COMPARISONS = (operators.eq, operators.ge, operators.le, operators.lt, operators.gt)


def _matches(row, criterion) -> bool:
    # Plain column comparisons are evaluated; anything else passes through.
    if getattr(criterion, "operator", None) not in _COMPARISONS:
        return True
    return criterion.operator(getattr(row, criterion.left.key), criterion.right.value)


class _QueryStub:
    def __init__(self, rows: list[object], evaluate: bool = False) -> None:
        self._rows = rows
        self._evaluate = evaluate

    def filter(self, *criteria, **_kwargs):
        if self._evaluate:
            self._rows = [row for row in self._rows if all(_matches(row, c) for c in criteria)]
        return self

    def outerjoin(self, *_args, **_kwargs):
        return self

    def order_by(self, *_args, **_kwargs):
        return self

    def first(self):
        return self._rows[0] if self._rows else None

    def all(self):
        return list(self._rows)


class _SessionStub:
    def __init__(self, rows: dict | None = None, inspection_batches: list[list[object]] | None = None) -> None:
        self._rows = rows or {}
        # Inspection queries are answered in call order: due, on hold, completed.
        self._inspection_batches = list(inspection_batches or [])
        self.added: list[object] = []
        self.commit_calls = 0

    def query(self, *entities):
        if entities == (Inspection,):
            return _QueryStub(self._inspection_batches.pop(0), evaluate=True)
        return _QueryStub(self._rows.get(entities[0], []))

    def add(self, obj: object) -> None:
        self.added.append(obj)

    def commit(self) -> None:
        self.commit_calls += 1


def _inspection(**overrides):
    values = dict(
        id=uuid4(),
        asset=SimpleNamespace(asset_id="CR-004", name="Crawler crane"),
        inspection_type=SimpleNamespace(name="LOLER"),
        status="pending",
        due_date=TODAY,
        completed_date=None,
        date_completed=None,
        hold_reason=None,
        waiting_on_certs=False,
        certs_received=True,
    )
    values.update(overrides)
    return SimpleNamespace(**values)


def test_awaiting_certs_rules() -> None:
    assert awaiting_certs(_inspection(waiting_on_certs=True)) is True
    assert awaiting_certs(_inspection(status="completed", certs_received=False)) is True
    assert awaiting_certs(_inspection(status="completed")) is False
    assert awaiting_certs(_inspection(certs_received=False)) is False


def test_weekly_report_sections_and_fallback_text() -> None:
    held_with_author = _inspection(status="on_hold", hold_reason="Site closed")
    held_silent = _inspection(status="on_hold", hold_reason="  ")
    log = SimpleNamespace(inspection_id=held_with_author.id)
    db = _SessionStub(
        rows={InspectionLog: [(log, "fitter@example.com")]},
        inspection_batches=[
            [_inspection(status="overdue")],
            [held_with_author, held_silent],
            [_inspection(status="completed", completed_date=date(2026, 3, 1), certs_received=False), _inspection(status="completed")],
        ],
    )

    report = build_weekly_report(db=db, today=TODAY)

    assert report["counts"] == {"due": 1, "on_hold": 2, "waiting_on_certs": 1}
    assert "fitter@example.com" in report["html"]
    assert UNKNOWN_USER in report["html"]
    assert NO_COMMENT in report["html"]


def test_weekly_report_without_recipients_queues_nothing() -> None:
    db = _SessionStub()

    result = send_weekly_report_use_case(db=db, today=TODAY)

    assert result == {"queued": 0, "recipients": [], "counts": None}
    assert db.commit_calls == 0


def test_scheduled_weekly_report_is_keyed_by_date() -> None:
    db = _SessionStub(
        rows={ReportRecipient: [SimpleNamespace(email="ops@example.com", is_active=True)]},
        inspection_batches=[[], [], []],
    )

    result = send_weekly_report_use_case(db=db, today=TODAY)

    assert result["queued"] == 1
    email = [obj for obj in db.added if isinstance(obj, EmailOutbox)][0]
    assert email.idempotency_key == "weekly_report:2026-03-09:ops@example.com"


def test_send_now_weekly_report_has_no_key() -> None:
    db = _SessionStub(
        rows={ReportRecipient: [SimpleNamespace(email="ops@example.com", is_active=True)]},
        inspection_batches=[[], [], []],
    )

    send_weekly_report_use_case(db=db, today=TODAY, scheduled=False)

    email = [obj for obj in db.added if isinstance(obj, EmailOutbox)][0]
    assert email.idempotency_key is None


def test_user_request_needs_description() -> None:
    db = _SessionStub()

    with pytest.raises(DomainError) as exc:
        create_user_request_use_case(
            db=db,
            admin_id=uuid4(),
            description="   ",
            current_user=SimpleNamespace(id=uuid4(), email="fitter@example.com", role="user"),
        )

    assert exc.value.message == "Please enter a description for your request."


def test_user_request_emails_selected_admin() -> None:
    admin = SimpleNamespace(id=uuid4(), email="boss@example.com", role="admin")
    db = _SessionStub(rows={UserProfile: [admin]})

    request = create_user_request_use_case(
        db=db,
        admin_id=admin.id,
        description="Need a new harness",
        current_user=SimpleNamespace(id=uuid4(), email="fitter@example.com", role="user"),
    )

    assert request.admin_id == admin.id
    emails = [obj for obj in db.added if isinstance(obj, EmailOutbox)]
    assert [email.recipient_email for email in emails] == ["boss@example.com"]
    assert emails[0].idempotency_key == f"user_request:{request.id}:boss@example.com"


def test_user_request_to_non_admin_rejected() -> None:
    db = _SessionStub(rows={UserProfile: [SimpleNamespace(id=uuid4(), email="x@example.com", role="user")]})

    with pytest.raises(DomainError) as exc:
        create_user_request_use_case(
            db=db,
            admin_id=uuid4(),
            description="Help",
            current_user=SimpleNamespace(id=uuid4(), email="fitter@example.com", role="user"),
        )

    assert exc.value.code == "USER_REQUEST_ADMIN_NOT_FOUND"


def test_only_addressed_admin_resolves_request() -> None:
    request = SimpleNamespace(id=uuid4(), admin_id=uuid4(), requester_id=uuid4(), is_resolved=False)
    db = _SessionStub(rows={UserRequest: [request]})

    with pytest.raises(DomainError) as exc:
        resolve_user_request_use_case(
            db=db,
            request_id=request.id,
            current_user=SimpleNamespace(id=uuid4(), email="other@example.com", role="admin"),
        )

    assert exc.value.code == "USER_REQUEST_FORBIDDEN"
    assert request.is_resolved is False


def test_due_section_skips_long_overdue_and_far_future() -> None:
    db = _SessionStub(
        inspection_batches=[
            [
                _inspection(status="overdue", due_date=date(2025, 2, 2)),
                _inspection(due_date=date(2026, 3, 20)),
                _inspection(due_date=date(2026, 5, 1)),
            ],
            [],
            [],
        ],
    )

    report = build_weekly_report(db=db, today=TODAY)

    assert report["counts"]["due"] == 1
    assert "20/03/2026" in report["html"]


def test_open_inspection_waiting_on_certs_is_listed() -> None:
    waiting = _inspection(
        status="pending",
        due_date=date(2026, 6, 1),
        waiting_on_certs=True,
        date_completed=date(2026, 3, 2),
    )
    db = _SessionStub(inspection_batches=[[], [], [waiting]])

    report = build_weekly_report(db=db, today=TODAY)

    assert report["counts"]["waiting_on_certs"] == 1
