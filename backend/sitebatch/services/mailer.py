"""SMTP email delivery used by the outbox worker."""

from __future__ import annotations

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from ..config import settings

logger = logging.getLogger(__name__)

SMTP_NOT_CONFIGURED = "SMTP_NOT_CONFIGURED"


def build_message(*, sender: str, recipient: str, subject: str, html: str) -> MIMEMultipart:
    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = sender
    msg["To"] = recipient
    msg.attach(MIMEText(html, "html", "utf-8"))
    return msg


def send_email(recipient: str, subject: str, html: str) -> tuple[bool, str | None]:
    """Send one HTML email. Returns (success, error)."""
    if not settings.smtp_configured:
        logger.warning(
            "SMTP env vars missing; logging email instead of sending. to=%s subject=%r",
            recipient,
            subject,
        )
        logger.info("Email to send (html): %s", html)
        return False, SMTP_NOT_CONFIGURED

    sender = settings.SMTP_FROM or settings.SMTP_USERNAME
    msg = build_message(sender=sender, recipient=recipient, subject=subject, html=html)

    try:
        if settings.SMTP_USE_SSL:
            server = smtplib.SMTP_SSL(settings.SMTP_HOST, settings.SMTP_PORT, timeout=settings.SMTP_TIMEOUT_SECONDS)
        else:
            server = smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=settings.SMTP_TIMEOUT_SECONDS)
            server.starttls()
        try:
            server.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
            server.sendmail(sender, [recipient], msg.as_string())
        finally:
            server.quit()
    except (smtplib.SMTPException, OSError) as e:
        logger.error("SMTP email error for %s: %s", recipient, e)
        return False, f"SMTP_ERROR: {e}"

    logger.info("Email sent to %s", recipient)
    return True, None
