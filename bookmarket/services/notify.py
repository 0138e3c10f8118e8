from __future__ import annotations

import smtplib
from email.message import EmailMessage

from ..config import settings
from ..logs import get_logger

log = get_logger(__name__)


def send_email(to: str, subject: str, body: str) -> bool:
    """
    Send a plain-text email over SMTP. Returns False when SMTP is not configured.
    Delivery errors propagate to the caller.
    """
    if not settings.SMTP_HOST or not to:
        log.warning("email skipped (no SMTP_HOST or recipient) to=%s subject=%s", to, subject)
        return False

    msg = EmailMessage()
    msg["From"] = settings.MAIL_FROM or settings.SMTP_USER or "no-reply@localhost"
    msg["To"] = to
    msg["Subject"] = subject
    msg.set_content(body)

    with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=10) as server:
        server.ehlo()
        if server.has_extn("starttls"):
            server.starttls()
            server.ehlo()
        if settings.SMTP_USER and settings.SMTP_PASSWORD:
            server.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
        server.send_message(msg)
    log.info("email sent to=%s subject=%s", to, subject)
    return True
