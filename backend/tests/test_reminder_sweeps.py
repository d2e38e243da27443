from __future__ import annotations

from datetime import date, timedelta
from types import SimpleNamespace
from uuid import uuid4

from sitebatch.models import (
    EmailOutbox,
    Inspection,
    InspectionItemTemplate,
    InspectionReminder,
    ItemReminder,
    ReportRecipient,
)
from sitebatch.use_cases.reminders import run_inspection_reminders, run_item_reminders, run_overdue_sweep

TODAY = date(2026, 3, 10)
THRESHOLDS = (30, 14, 7, 1)


class _QueryStub:
    def __init__(self, rows: list[object]) -> None:
        self._rows = rows

    def filter(self, *_args, **_kwargs):
        return self

    def first(self):
        return self._rows[0] if self._rows else None

    def all(self):
        return list(self._rows)


class _SessionStub:
    """Keeps added rows so a second sweep sees what the first one wrote."""

    def __init__(self, rows: dict) -> None:
        self._rows = {model: list(values) for model, values in rows.items()}
        self.commit_calls = 0

    def query(self, model):
        return _QueryStub(self._rows.get(model, []))

    def add(self, obj: object) -> None:
        self._rows.setdefault(type(obj), []).append(obj)

    def commit(self) -> None:
        self.commit_calls += 1

    def rows(self, model) -> list[object]:
        return self._rows.get(model, [])


def _recipients():
    return [SimpleNamespace(email="Compliance@Example.com", is_active=True)]


def _inspection(due_date: date):
    return SimpleNamespace(
        id=uuid4(),
        status="pending",
        due_date=due_date,
        asset=SimpleNamespace(asset_id="CR-004", name="Crawler crane", location="Yard A"),
        inspection_type=SimpleNamespace(name="LOLER"),
    )


def test_overdue_sweep_flips_stale_pending() -> None:
    stale = [_inspection(TODAY - timedelta(days=2)), _inspection(TODAY - timedelta(days=9))]
    db = _SessionStub({Inspection: stale})

    assert run_overdue_sweep(db=db, today=TODAY) == 2
    assert {inspection.status for inspection in stale} == {"overdue"}
    assert db.commit_calls == 1


def test_inspection_reminder_sent_once_per_threshold() -> None:
    inspection = _inspection(TODAY + timedelta(days=7))
    db = _SessionStub({Inspection: [inspection], ReportRecipient: _recipients()})

    first = run_inspection_reminders(db=db, today=TODAY, thresholds=THRESHOLDS)
    second = run_inspection_reminders(db=db, today=TODAY, thresholds=THRESHOLDS)

    assert first == {"checked": 1, "created": 3, "sent": 1}
    assert second == {"checked": 1, "created": 0, "sent": 0}
    reminders = db.rows(InspectionReminder)
    assert sorted(row.days_before for row in reminders) == [7, 14, 30]
    assert [row.days_before for row in reminders if row.sent] == [7]
    emails = db.rows(EmailOutbox)
    assert len(emails) == 1
    assert emails[0].recipient_email == "compliance@example.com"
    assert emails[0].subject == "Inspection Due in 7 days: CR-004"
    assert emails[0].idempotency_key == (
        f"inspection_reminder:{inspection.id}:{inspection.due_date.isoformat()}:7:compliance@example.com"
    )


def test_reminders_recorded_but_not_latched_without_recipients() -> None:
    inspection = _inspection(TODAY + timedelta(days=1))
    db = _SessionStub({Inspection: [inspection]})

    result = run_inspection_reminders(db=db, today=TODAY, thresholds=THRESHOLDS)

    assert result["sent"] == 0
    assert result["created"] == 4
    assert not any(row.sent for row in db.rows(InspectionReminder))
    assert db.rows(EmailOutbox) == []


def _template(expiry_date: date):
    return SimpleNamespace(
        id=uuid4(),
        unique_id="SL-001",
        description="Lifting sling",
        capacity="2t",
        expiry_date=expiry_date,
        expiry_na=False,
        asset_links=[SimpleNamespace(asset=SimpleNamespace(asset_id="CR-004"))],
    )


def test_expired_item_gets_single_notice() -> None:
    template = _template(TODAY - timedelta(days=3))
    db = _SessionStub({InspectionItemTemplate: [template], ReportRecipient: _recipients()})

    first = run_item_reminders(db=db, today=TODAY, thresholds=THRESHOLDS)
    second = run_item_reminders(db=db, today=TODAY + timedelta(days=1), thresholds=THRESHOLDS)

    assert first["sent"] == 1
    assert second["sent"] == 0
    rows = db.rows(ItemReminder)
    assert [(row.reminder_type, row.days_before) for row in rows] == [("overdue", 0)]
    emails = db.rows(EmailOutbox)
    assert [email.type for email in emails] == ["item_expired"]


def test_item_due_reminder_on_threshold_day() -> None:
    template = _template(TODAY + timedelta(days=14))
    db = _SessionStub({InspectionItemTemplate: [template], ReportRecipient: _recipients()})

    result = run_item_reminders(db=db, today=TODAY, thresholds=THRESHOLDS)

    assert result == {"checked": 1, "created": 2, "sent": 1}
    emails = db.rows(EmailOutbox)
    assert [email.type for email in emails] == ["item_reminder"]
    assert emails[0].idempotency_key.startswith(f"item_reminder:{template.id}:{template.expiry_date.isoformat()}:14")
