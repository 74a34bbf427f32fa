import typing as t
from uuid import UUID

import structlog
from django.db.models import QuerySet
from django.http import HttpResponse
from django.utils.translation import gettext_lazy as _
from ninja import File
from ninja.errors import HttpError
from ninja.files import UploadedFile
from ninja_extra import api_controller, route

from common.authentication import I18nJWTAuth
from common.controllers import UserAwareController
from common.schema import ErrorResponse
from common.throttling import WriteThrottle
from events import models, schema
from events.service import order_service
from events.utils import create_ticket_pdf

logger = structlog.get_logger(__name__)


@api_controller("/orders", auth=I18nJWTAuth(), tags=["Orders"])
class OrderController(UserAwareController):
    """The buyer's own orders."""

    def get_queryset(self) -> QuerySet[models.Order]:
        """Orders placed by the current user, newest first."""
        return (
            models.Order.objects.filter(buyer=self.user())
            .select_related("event")
            .prefetch_related("tickets__table", "tickets__bus_outbound", "tickets__bus_return", "tickets__event")
            .order_by("-created_at")
        )

    def get_one(self, order_id: UUID) -> models.Order:
        """Wrapper helper."""
        return t.cast(models.Order, self.get_object_or_exception(self.get_queryset(), pk=order_id))

    @route.get("/", url_name="list_my_orders", response=list[schema.OrderSchema])
    def list_orders(self) -> QuerySet[models.Order]:
        """All orders of the current user with their tickets."""
        return self.get_queryset()

    @route.get("/{uuid:order_id}", url_name="get_my_order", response=schema.OrderSchema)
    def get_order(self, order_id: UUID) -> models.Order:
        return self.get_one(order_id)

    @route.post(
        "/{uuid:order_id}/cancel",
        url_name="cancel_order",
        response={200: schema.OrderSchema, 409: ErrorResponse},
        throttle=WriteThrottle(),
    )
    def cancel_order(self, order_id: UUID) -> models.Order:
        """Cancel a pending order. Its tickets go back on sale immediately."""
        order_service.cancel_order(self.get_one(order_id), self.user())
        return self.get_one(order_id)

    @route.post(
        "/{uuid:order_id}/payment-proof",
        url_name="upload_payment_proof",
        response={200: schema.PaymentProofResponse, 409: ErrorResponse},
        throttle=WriteThrottle(),
    )
    def upload_payment_proof(self, order_id: UUID, proof: File[UploadedFile]) -> models.Order:
        """Attach the bank transfer or MB WAY receipt to a pending order.

        Uploading again replaces the previous proof. Orders with a proof are listed for the
        event managers to review and no longer expire on their own.
        """
        return order_service.submit_payment_proof(self.get_one(order_id), proof)


@api_controller("/tickets", auth=I18nJWTAuth(), tags=["Orders"])
class TicketController(UserAwareController):
    def get_queryset(self) -> QuerySet[models.Ticket]:
        """Tickets bought by the current user."""
        return (
            models.Ticket.objects.filter(buyer=self.user())
            .with_assignments()
            .select_related("event")
            .order_by("-created_at")
        )

    @route.get("/mine", url_name="list_my_tickets", response=list[schema.TicketSchema])
    def list_tickets(self) -> QuerySet[models.Ticket]:
        """Every ticket the current user bought, across orders."""
        return self.get_queryset()

    @route.get(
        "/{uuid:ticket_id}/pdf",
        url_name="download_ticket_pdf",
        response={200: None, 403: ErrorResponse, 404: ErrorResponse},
    )
    def download_pdf(self, ticket_id: UUID) -> HttpResponse:
        """Download the printable ticket with its QR code.

        Available once the organisers have released the tickets of a confirmed order.
        """
        ticket = t.cast(models.Ticket, self.get_object_or_exception(self.get_queryset(), pk=ticket_id))
        if not ticket.is_downloadable:
            raise HttpError(403, str(_("This ticket is not available for download yet.")))

        response = HttpResponse(create_ticket_pdf(ticket), content_type="application/pdf")
        safe_event_name = ticket.event.name.replace(" ", "_")[:30]
        response["Content-Disposition"] = f'attachment; filename="{safe_event_name}-{ticket.validation_code}.pdf"'
        logger.info("ticket_pdf_downloaded", ticket_id=str(ticket.pk))
        return response
