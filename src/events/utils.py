import base64
import typing as t
from io import BytesIO

import qrcode
from django.template.loader import render_to_string

from .models import Ticket


def make_qr_png(data: str) -> bytes:
    """Render data as a QR code PNG."""
    qr = qrcode.QRCode(
        version=1,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=10,
        border=4,
    )
    qr.add_data(data)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")
    buffered = BytesIO()
    img.save(buffered, "PNG")
    return buffered.getvalue()


def ticket_context(ticket: Ticket) -> dict[str, t.Any]:
    """Template context shared by the ticket e-mail and the ticket PDF.

    Expects event, table and buses to be prefetched.
    """
    event = ticket.event
    return {
        "ticket": ticket,
        "ticket_id": str(ticket.id),
        "validation_code": ticket.validation_code,
        "event_name": event.name,
        "event_location": event.location,
        "event_start": event.start,
        "table_name": ticket.table.name if ticket.table else "",
        "bus_outbound": ticket.bus_outbound,
        "bus_return": ticket.bus_return,
        "restrictions": ticket.restrictions,
        "ticket_email": ticket.ticket_email,
    }


def _html_to_pdf(html_string: str) -> bytes:
    from weasyprint import HTML

    return t.cast(bytes, HTML(string=html_string).write_pdf())


def create_ticket_pdf(ticket: Ticket) -> bytes:
    """Generates a PDF version of a ticket using weasyprint.

    Args:
        ticket: A released ticket with a validation code, with event, table and buses prefetched.

    Returns:
        The PDF content as bytes.
    """
    if not ticket.validation_code:
        raise ValueError("Tickets without a validation code cannot be rendered.")
    context = ticket_context(ticket)
    context["qr_code_base64"] = base64.b64encode(make_qr_png(ticket.validation_code)).decode("utf-8")
    html_string = render_to_string("events/ticket.html", context=context)
    return _html_to_pdf(html_string)
