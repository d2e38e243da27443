from __future__ import annotations

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

from sitebatch.celery_app import apply_delivery_result
from sitebatch.config import settings
from sitebatch.models import EmailOutbox
from sitebatch.services.email_outbox import enqueue_email, normalize_recipients
from sitebatch.services.mailer import SMTP_NOT_CONFIGURED


class _QueryStub:
    def __init__(self, existing_keys: set[str]) -> None:
        self._existing_keys = existing_keys
        self._key: str | None = None

    def filter(self, criterion, *_args, **_kwargs):
        self._key = criterion.right.value
        return self

    def first(self):
        if self._key in self._existing_keys:
            return SimpleNamespace(idempotency_key=self._key)
        return None


class _SessionStub:
    def __init__(self, existing_keys: set[str] | None = None) -> None:
        self.added: list[object] = []
        self._existing_keys = existing_keys or set()

    def query(self, model):
        if model is EmailOutbox:
            return _QueryStub(self._existing_keys)
        raise AssertionError(f"Unexpected model queried: {model}")

    def add(self, obj: object) -> None:
        self.added.append(obj)


def test_normalize_recipients_trims_and_dedupes() -> None:
    recipients = [" Ops@Example.com ", "ops@example.com.", None, "", "qa@example.com;"]

    assert normalize_recipients(recipients) == ["ops@example.com", "qa@example.com"]


def test_enqueue_adds_one_row_per_recipient_with_suffixed_key() -> None:
    db = _SessionStub()

    rows = enqueue_email(
        db,
        email_type="weekly_report",
        recipients=["a@example.com", "b@example.com"],
        subject="Weekly",
        html="<p>hi</p>",
        idempotency_key="weekly_report:2026-03-09",
    )

    assert len(rows) == 2
    assert db.added == rows
    assert [row.idempotency_key for row in rows] == [
        "weekly_report:2026-03-09:a@example.com",
        "weekly_report:2026-03-09:b@example.com",
    ]
    assert all(row.status == "pending" and row.attempts == 0 for row in rows)


def test_enqueue_skips_recipients_already_queued() -> None:
    db = _SessionStub(existing_keys={"item_reminder:t1:2026-03-20:7:a@example.com"})

    rows = enqueue_email(
        db,
        email_type="item_reminder",
        recipients=["a@example.com", "b@example.com"],
        subject="Reminder",
        html="<p>hi</p>",
        idempotency_key="item_reminder:t1:2026-03-20:7",
    )

    assert [row.recipient_email for row in rows] == ["b@example.com"]


def test_enqueue_without_key_never_dedupes() -> None:
    db = _SessionStub()

    rows = enqueue_email(
        db,
        email_type="inspection_alert",
        recipients=["a@example.com"],
        subject="Alert",
        html="<p>hi</p>",
    )

    assert rows[0].idempotency_key is None


def _row(attempts: int = 0):
    return SimpleNamespace(
        status="pending",
        attempts=attempts,
        sent_at=None,
        failed_at=None,
        last_error=None,
        next_retry_at=None,
    )


NOW = datetime(2026, 3, 10, 8, 0, tzinfo=timezone.utc)


def test_successful_delivery_marks_sent() -> None:
    row = _row()

    apply_delivery_result(row, True, None, now=NOW)

    assert row.status == "sent"
    assert row.sent_at == NOW


def test_failed_delivery_backs_off_exponentially() -> None:
    row = _row()

    apply_delivery_result(row, False, "SMTP_ERROR: timeout", now=NOW)

    assert row.status == "pending"
    assert row.attempts == 1
    assert row.next_retry_at == NOW + timedelta(minutes=2)
    assert row.last_error == "SMTP_ERROR: timeout"


def test_delivery_fails_permanently_after_max_attempts() -> None:
    row = _row(attempts=settings.OUTBOX_MAX_ATTEMPTS - 1)

    apply_delivery_result(row, False, "SMTP_ERROR: refused", now=NOW)

    assert row.status == "failed"
    assert row.failed_at == NOW


def test_missing_smtp_configuration_skips_row() -> None:
    row = _row()

    apply_delivery_result(row, False, SMTP_NOT_CONFIGURED, now=NOW)

    assert row.status == "skipped"
