"""
Celery worker: email outbox delivery (SELECT FOR UPDATE SKIP LOCKED) and the
scheduled compliance jobs.
"""
from celery import Celery
from celery.schedules import crontab
from sqlalchemy import text
from datetime import date, datetime, timedelta, timezone
import logging
from uuid import UUID
from .config import settings
from .database import SessionLocal
from .models import EmailOutbox
from .services.mailer import SMTP_NOT_CONFIGURED, send_email
from .use_cases.reminders import run_inspection_reminders, run_item_reminders, run_overdue_sweep
from .use_cases.weekly_report import send_weekly_report_use_case

logger = logging.getLogger(__name__)

celery_app = Celery(
    "sitebatch",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND
)

celery_app.conf.update(
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',
    timezone='UTC',
    enable_utc=True,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def apply_delivery_result(row: EmailOutbox, success: bool, error: str | None, *, now: datetime) -> None:
    """Move an outbox row to its next state after one delivery attempt."""
    if success:
        row.status = 'sent'
        row.sent_at = now
        row.last_error = None
        return

    row.attempts += 1
    row.last_error = error

    if error == SMTP_NOT_CONFIGURED:
        # Nothing to retry against; the email was logged instead.
        row.status = 'skipped'
    elif row.attempts >= settings.OUTBOX_MAX_ATTEMPTS:
        row.status = 'failed'
        row.failed_at = now
    else:
        backoff_seconds = 2 ** row.attempts * 60  # 2min, 4min, 8min
        row.next_retry_at = now + timedelta(seconds=backoff_seconds)


@celery_app.task(name="process_email_outbox")
def process_email_outbox(batch_size: int | None = None):
    """
    Deliver pending outbox rows.

    SKIP LOCKED keeps concurrent workers off each other's rows.
    """
    db = SessionLocal()
    processed_count = 0
    email_ids = []

    try:
        query = text("""
            SELECT id
            FROM email_outbox
            WHERE status = 'pending'
              AND (next_retry_at IS NULL OR next_retry_at <= NOW())
            ORDER BY created_at
            LIMIT :batch_size
            FOR UPDATE SKIP LOCKED
        """)
        result = db.execute(query, {"batch_size": batch_size or settings.OUTBOX_BATCH_SIZE})
        email_ids = [row[0] for row in result.fetchall()]

        logger.info("Locked %d outbox emails for delivery", len(email_ids))

        for email_id in email_ids:
            row = db.query(EmailOutbox).filter(EmailOutbox.id == email_id).first()
            if not row:
                continue
            success, error = send_email(row.recipient_email, row.subject, row.html)
            apply_delivery_result(row, success, error, now=_utcnow())
            if success:
                processed_count += 1
            elif row.status == 'failed':
                logger.error("Email %s failed after %d attempts: %s", email_id, row.attempts, error)
            elif row.status == 'pending':
                logger.warning("Email %s retry %d/%d at %s", email_id, row.attempts,
                               settings.OUTBOX_MAX_ATTEMPTS, row.next_retry_at)

        db.commit()
        logger.info("Delivered %d/%d outbox emails", processed_count, len(email_ids))

    except Exception as e:
        db.rollback()
        logger.error("Error processing email outbox: %s", e, exc_info=True)
        raise

    finally:
        db.close()

    return {"processed": processed_count, "total_locked": len(email_ids)}


@celery_app.task(name="run_overdue_sweep")
def overdue_sweep_task():
    db = SessionLocal()
    try:
        return {"updated": run_overdue_sweep(db=db, today=date.today())}
    finally:
        db.close()


@celery_app.task(name="run_inspection_reminders")
def inspection_reminders_task():
    db = SessionLocal()
    try:
        return run_inspection_reminders(db=db, today=date.today())
    finally:
        db.close()


@celery_app.task(name="run_item_reminders")
def item_reminders_task(template_id: str | None = None):
    db = SessionLocal()
    try:
        return run_item_reminders(
            db=db,
            today=date.today(),
            template_id=UUID(template_id) if template_id else None,
        )
    finally:
        db.close()


@celery_app.task(name="send_weekly_report")
def weekly_report_task():
    db = SessionLocal()
    try:
        return send_weekly_report_use_case(db=db, today=date.today(), scheduled=True)
    finally:
        db.close()


# Schedule periodic processing (UTC). The overdue flip runs before reminders.
celery_app.conf.beat_schedule = {
    'process-email-outbox-every-30s': {
        'task': 'process_email_outbox',
        'schedule': 30.0,
    },
    'overdue-sweep-daily': {
        'task': 'run_overdue_sweep',
        'schedule': crontab(hour=settings.DAILY_SWEEP_HOUR, minute=0),
    },
    'inspection-reminders-daily': {
        'task': 'run_inspection_reminders',
        'schedule': crontab(hour=settings.DAILY_SWEEP_HOUR, minute=5),
    },
    'item-reminders-daily': {
        'task': 'run_item_reminders',
        'schedule': crontab(hour=settings.DAILY_SWEEP_HOUR, minute=10),
    },
    'weekly-report': {
        'task': 'send_weekly_report',
        'schedule': crontab(
            hour=settings.WEEKLY_REPORT_HOUR,
            minute=0,
            day_of_week=settings.WEEKLY_REPORT_DAY_OF_WEEK,
        ),
    },
}
