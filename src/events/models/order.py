import typing as t
from datetime import datetime
from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import Count, Q

from common.models import TimeStampedModel

from .event import Bus, Event, Table

if t.TYPE_CHECKING:
    from accounts.models import User


class OrderQuerySet(models.QuerySet["Order"]):
    def holding_capacity(self) -> t.Self:
        """Orders whose tickets count against capacity and the per-buyer cap."""
        return self.filter(status__in=Order.ACTIVE_STATUSES)

    def for_event_managers(self, user: "User") -> t.Self:
        """Orders on events the user administers."""
        if user.is_admin:
            return self.all()
        return self.filter(event__owner=user)

    def with_ticket_count(self) -> t.Self:
        """Annotate the number of tickets on each order."""
        return self.annotate(ticket_count=Count("tickets"))

    def expirable(self, cutoff: datetime) -> t.Self:
        """Pending orders created before cutoff that never received a payment proof."""
        return self.filter(
            status=Order.Status.PENDING,
            created_at__lt=cutoff,
            payment_submitted_at__isnull=True,
        )

    def awaiting_review(self) -> t.Self:
        """Pending orders with a payment proof, oldest submission first."""
        return self.filter(status=Order.Status.PENDING, payment_submitted_at__isnull=False).order_by(
            "payment_submitted_at"
        )


class Order(TimeStampedModel):
    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        CONFIRMED = "confirmed", "Confirmed"
        REJECTED = "rejected", "Rejected"
        CANCELLED = "cancelled", "Cancelled"
        EXPIRED = "expired", "Expired"

    ACTIVE_STATUSES = (Status.PENDING, Status.CONFIRMED)
    RELEASED_STATUSES = (Status.REJECTED, Status.CANCELLED, Status.EXPIRED)

    buyer = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="orders")
    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name="orders")
    total_amount = models.DecimalField(
        max_digits=10, decimal_places=2, default=Decimal("0"), validators=[MinValueValidator(0)]
    )
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING, db_index=True)
    payment_proof_url = models.CharField(max_length=500, blank=True, default="")
    payment_submitted_at = models.DateTimeField(null=True, blank=True)
    tickets_sent = models.BooleanField(default=False)
    tickets_sent_at = models.DateTimeField(null=True, blank=True)
    tickets_sent_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="released_orders",
    )

    objects = OrderQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at"]
        indexes = [models.Index(fields=["event", "status"], name="idx_order_event_status")]

    def __str__(self) -> str:  # pragma: no cover
        return f"Order {self.pk} ({self.status}) for {self.event.name}"


class TicketQuerySet(models.QuerySet["Ticket"]):
    def holding_capacity(self) -> t.Self:
        """Tickets that occupy a seat: pending or confirmed."""
        return self.filter(status__in=Order.ACTIVE_STATUSES)

    def confirmed(self) -> t.Self:
        """Tickets on confirmed orders."""
        return self.filter(status=Order.Status.CONFIRMED)

    def with_assignments(self) -> t.Self:
        """Select event, table and buses for serialization."""
        return self.select_related("event", "table", "bus_outbound", "bus_return", "order")

    def awaiting_email(self) -> t.Self:
        """Confirmed tickets that have a code but were never e-mailed."""
        return self.confirmed().filter(validation_code__isnull=False, emailed_at__isnull=True)

    def check_counts(self) -> dict[str, int]:
        """Aggregate door counters over confirmed tickets."""
        return self.confirmed().aggregate(
            total=Count("id"),
            checked_in=Count("id", filter=Q(checked_in_at__isnull=False)),
            checked_out=Count("id", filter=Q(checked_out_at__isnull=False)),
        )


class Ticket(TimeStampedModel):
    """One seat on an order. Its status follows the order's status."""

    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="tickets")
    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name="tickets")
    buyer = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="tickets")
    table = models.ForeignKey(Table, on_delete=models.PROTECT, null=True, blank=True, related_name="tickets")
    bus_outbound = models.ForeignKey(
        Bus, on_delete=models.SET_NULL, null=True, blank=True, related_name="outbound_tickets"
    )
    bus_return = models.ForeignKey(Bus, on_delete=models.SET_NULL, null=True, blank=True, related_name="return_tickets")
    ticket_email = models.EmailField(help_text="Where the ticket is delivered")
    restrictions = models.CharField(max_length=500, blank=True, default="", help_text="Dietary restrictions")
    status = models.CharField(
        max_length=20, choices=Order.Status.choices, default=Order.Status.PENDING, db_index=True, editable=False
    )
    validation_code = models.CharField(max_length=32, unique=True, null=True, blank=True, editable=False)
    available_for_download = models.BooleanField(default=False)
    sent_at = models.DateTimeField(null=True, blank=True)
    emailed_at = models.DateTimeField(null=True, blank=True)
    checked_in_at = models.DateTimeField(null=True, blank=True, editable=False)
    checked_out_at = models.DateTimeField(null=True, blank=True, editable=False)

    objects = TicketQuerySet.as_manager()

    class Meta:
        ordering = ["created_at"]
        constraints = [
            models.CheckConstraint(
                condition=Q(checked_out_at__isnull=True) | Q(checked_in_at__isnull=False),
                name="ticket_checkout_requires_checkin",
            ),
        ]
        indexes = [models.Index(fields=["event", "buyer", "status"], name="idx_ticket_event_buyer_status")]

    def __str__(self) -> str:  # pragma: no cover
        return f"Ticket {self.pk} for {self.ticket_email}"

    @property
    def is_downloadable(self) -> bool:
        """PDFs are only rendered for released tickets with a validation code."""
        return self.available_for_download and bool(self.validation_code)
