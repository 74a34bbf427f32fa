import typing as t
from datetime import datetime, timedelta

from django.conf import settings
from django.contrib.auth.models import AnonymousUser
from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import F, Q
from django.utils import timezone

from common.models import TimeStampedModel

if t.TYPE_CHECKING:
    from accounts.models import User


class EventQuerySet(models.QuerySet["Event"]):
    def approved(self) -> t.Self:
        """Events accepted by a platform admin."""
        return self.filter(status=Event.Status.APPROVED)

    def upcoming(self) -> t.Self:
        """Events that have not started yet."""
        return self.filter(start__gt=timezone.now())

    def for_user(self, user: "User | AnonymousUser") -> t.Self:
        """Events a user may see.

        Everyone sees approved events. Owners also see their own events in any status, admins see everything.
        """
        if user.is_anonymous:
            return self.approved()
        if user.is_admin:
            return self.all()
        return self.filter(Q(status=Event.Status.APPROVED) | Q(owner=user))

    def managed_by(self, user: "User") -> t.Self:
        """Events a user may administer."""
        if user.is_admin:
            return self.all()
        return self.filter(owner=user)


class Event(TimeStampedModel):
    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        APPROVED = "approved", "Approved"
        REJECTED = "rejected", "Rejected"

    owner = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="owned_events")
    name = models.CharField(max_length=255, db_index=True)
    description = models.TextField(blank=True, default="")
    location = models.CharField(max_length=255)
    start = models.DateTimeField(db_index=True, help_text="Scheduled date and time of the event")
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING, db_index=True)
    tickets_number = models.PositiveIntegerField(help_text="Total number of tickets")
    available_tickets = models.PositiveIntegerField(
        blank=True, help_text="Remaining tickets. Maintained by reservations and releases, never edited directly."
    )
    price_bus = models.DecimalField(
        max_digits=8, decimal_places=2, default=0, validators=[MinValueValidator(0)], help_text="Price with bus"
    )
    price_no_bus = models.DecimalField(
        max_digits=8, decimal_places=2, default=0, validators=[MinValueValidator(0)], help_text="Price without bus"
    )
    image_url = models.CharField(max_length=500, blank=True, default="")
    payment_iban = models.CharField(max_length=34, blank=True, default="")
    payment_mbway = models.CharField(max_length=20, blank=True, default="")
    payment_name = models.CharField(max_length=255, blank=True, default="")

    objects = EventQuerySet.as_manager()

    class Meta:
        ordering = ["start"]
        constraints = [
            models.CheckConstraint(
                condition=Q(available_tickets__lte=F("tickets_number")),
                name="event_available_tickets_within_capacity",
            ),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return self.name

    def clean(self) -> None:
        """Keep the remaining counter inside [0, tickets_number]."""
        super().clean()
        if self.available_tickets is not None and self.available_tickets > self.tickets_number:
            raise DjangoValidationError(
                {"available_tickets": "Available tickets cannot exceed the total number of tickets."}
            )

    def save(self, *args: t.Any, **kwargs: t.Any) -> None:
        """A new event starts with every ticket available."""
        if self._state.adding and self.available_tickets is None:
            self.available_tickets = self.tickets_number
        super().save(*args, **kwargs)

    @property
    def is_on_sale(self) -> bool:
        """Approved and not started yet."""
        return self.status == self.Status.APPROVED and self.start > timezone.now()

    @property
    def sold_tickets(self) -> int:
        """Tickets held by pending or confirmed orders."""
        return self.tickets_number - self.available_tickets

    @property
    def staff_window(self) -> tuple[datetime, datetime]:
        """The interval in which staff access codes for this event are accepted."""
        return (
            self.start - timedelta(hours=settings.STAFF_CODE_VALID_BEFORE_HOURS),
            self.start + timedelta(hours=settings.STAFF_CODE_VALID_AFTER_HOURS),
        )


class Table(TimeStampedModel):
    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name="tables")
    name = models.CharField(max_length=100)
    capacity = models.PositiveIntegerField(validators=[MinValueValidator(1)])

    class Meta:
        ordering = ["name"]
        constraints = [models.UniqueConstraint(fields=["event", "name"], name="unique_table_name_per_event")]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.name} ({self.event.name})"


class Bus(TimeStampedModel):
    class Direction(models.TextChoices):
        OUTBOUND = "outbound", "Outbound"
        RETURN = "return", "Return"

    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name="buses")
    direction = models.CharField(max_length=10, choices=Direction.choices, db_index=True)
    location = models.CharField(max_length=255, help_text="Pick-up point")
    departs_at = models.DateTimeField()
    capacity = models.PositiveIntegerField(validators=[MinValueValidator(1)])

    class Meta:
        ordering = ["direction", "departs_at"]
        verbose_name_plural = "buses"

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.get_direction_display()} {self.location} @ {self.departs_at:%Y-%m-%d %H:%M}"
