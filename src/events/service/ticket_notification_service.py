"""Ticket e-mail delivery.

One e-mail per ticket, sent to the ticket's own address with its QR code inline.
"""

from email.mime.image import MIMEImage

import structlog
from django.conf import settings
from django.core.mail import EmailMultiAlternatives
from django.template.loader import render_to_string
from django.utils import timezone
from django.utils.translation import gettext as _

from events.exceptions import NotificationError
from events.models import Ticket
from events.utils import make_qr_png, ticket_context

logger = structlog.get_logger(__name__)

QR_CONTENT_ID = "ticket-qr"


def build_ticket_email(ticket: Ticket) -> EmailMultiAlternatives:
    """Render the ticket e-mail. The ticket must have a validation code."""
    if not ticket.validation_code:
        raise NotificationError("ticket has no validation code")
    context = ticket_context(ticket)
    context["qr_content_id"] = QR_CONTENT_ID
    subject = _("Your ticket for %(event)s") % {"event": ticket.event.name}
    body = render_to_string("events/emails/ticket_body.txt", context)
    html_body = render_to_string("events/emails/ticket_body.html", context)

    message = EmailMultiAlternatives(
        subject=subject,
        body=body,
        from_email=settings.DEFAULT_FROM_EMAIL,
        to=[ticket.ticket_email],
    )
    message.attach_alternative(html_body, "text/html")
    message.mixed_subtype = "related"
    qr_image = MIMEImage(make_qr_png(ticket.validation_code), "png")
    qr_image.add_header("Content-ID", f"<{QR_CONTENT_ID}>")
    qr_image.add_header("Content-Disposition", "inline", filename=f"{ticket.validation_code}.png")
    message.attach(qr_image)
    return message


def send_ticket_email(ticket: Ticket) -> None:
    """Deliver one ticket e-mail.

    Rendering and backend failures of any kind surface as ``NotificationError``, so a batch
    can record the failure and move on to the next ticket.

    Raises:
        NotificationError: the message could not be rendered or handed to the mail backend.
    """
    try:
        message = build_ticket_email(ticket)
        message.send(fail_silently=False)
    except NotificationError:
        raise
    except Exception as e:
        logger.exception("ticket_email_delivery_failed", ticket_id=str(ticket.pk), error=str(e))
        raise NotificationError(str(e) or e.__class__.__name__) from e
    logger.info("ticket_email_sent", ticket_id=str(ticket.pk), sent_at=timezone.now().isoformat())
