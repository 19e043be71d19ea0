"""Celery app and background tasks: transactional email and milestone payouts."""

import logging
import smtplib
from email.message import EmailMessage

from celery import Celery
from taskhub.core.config import settings

logger = logging.getLogger("taskhub.worker")

celery_app = Celery(
    "taskhub",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_soft_time_limit=60,
    task_time_limit=120,
)


def build_email(to: str, subject: str, body: str) -> EmailMessage:
    msg = EmailMessage()
    msg["From"] = f"{settings.SMTP_FROM_NAME} <{settings.SMTP_FROM_EMAIL}>"
    msg["To"] = to
    msg["Subject"] = subject
    msg.set_content(body)
    return msg


@celery_app.task(bind=True, name="send_email", max_retries=3, default_retry_delay=30)
def send_email(self, to: str, subject: str, body: str) -> dict:
    """Deliver one email over SMTP, retrying transient failures."""
    msg = build_email(to, subject, body)
    try:
        with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=30) as smtp:
            if settings.SMTP_USE_TLS:
                smtp.starttls()
            if settings.SMTP_USERNAME:
                smtp.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
            smtp.send_message(msg)
    except (smtplib.SMTPException, OSError) as e:
        logger.warning("Email to %s failed (attempt %s): %s", to, self.request.retries + 1, e)
        raise self.retry(exc=e)
    logger.info("Email '%s' sent to %s", subject, to)
    return {"to": to, "status": "sent"}


@celery_app.task(bind=True, name="process_payout")
def process_payout(self, transaction_id: int) -> dict:
    """Transfer a PENDING payout transaction to the freelancer."""
    from taskhub.db.session import SessionLocal
    from taskhub.services.payment_service import PaymentService

    db = SessionLocal()
    try:
        payout = PaymentService.execute_payout(db, transaction_id)
        return {"transaction_id": payout.id, "status": payout.status.value}
    finally:
        db.close()
