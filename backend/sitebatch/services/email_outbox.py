"""Queue email intents in the outbox inside the caller's transaction."""

from __future__ import annotations

import logging
from typing import Iterable, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from ..models import EmailOutbox

logger = logging.getLogger(__name__)


def normalize_recipients(recipients: Iterable[Optional[str]]) -> list[str]:
    """Trim, lower-case and dedupe addresses, keeping first-seen order."""
    seen: set[str] = set()
    result = []
    for raw in recipients:
        email = (raw or "").strip().rstrip(".;,").lower()
        if email and email not in seen:
            seen.add(email)
            result.append(email)
    return result


def enqueue_email(
    db: Session,
    *,
    email_type: str,
    recipients: Iterable[Optional[str]],
    subject: str,
    html: str,
    entity_id: UUID | None = None,
    idempotency_key: str | None = None,
) -> list[EmailOutbox]:
    """Add one pending outbox row per recipient. The caller commits."""
    rows = []
    for recipient in normalize_recipients(recipients):
        key = f"{idempotency_key}:{recipient}" if idempotency_key else None
        if key:
            existing = db.query(EmailOutbox).filter(EmailOutbox.idempotency_key == key).first()
            if existing:
                logger.info("Skipping duplicate email: %s", key)
                continue
        row = EmailOutbox(
            type=email_type,
            recipient_email=recipient,
            subject=subject,
            html=html,
            entity_id=entity_id,
            idempotency_key=key,
            status="pending",
            attempts=0,
        )
        db.add(row)
        rows.append(row)
    return rows
