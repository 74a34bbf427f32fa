"""Common tasks."""

import structlog
from celery import shared_task
from django.conf import settings
from django.core.mail import EmailMultiAlternatives

logger = structlog.get_logger(__name__)


@shared_task
def send_email(*, to: str | list[str], subject: str, body: str, html_body: str | None = None) -> None:
    """Send a plain email, optionally with an HTML alternative.

    Args:
        to (str | list[str]): The email address(es).
        subject (str): The email subject.
        body (str): The email body.
        html_body (str | None): The HTML email body.
    """
    recipients = [to] if isinstance(to, str) else to
    email_msg = EmailMultiAlternatives(
        subject=subject,
        body=body,
        from_email=settings.DEFAULT_FROM_EMAIL,
        to=recipients,
    )
    if html_body:
        email_msg.attach_alternative(html_body, "text/html")
    email_msg.send(fail_silently=False)
    logger.info("email_sent", subject=subject, recipients=len(recipients))
