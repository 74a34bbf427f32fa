import typing as t
from datetime import datetime

from django.db import models

from common.models import TimeStampedModel

from .event import Event
from .order import Ticket


class StaffAccessCode(TimeStampedModel):
    """A short code granting scanning rights for one event during a bounded window around its start."""

    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name="staff_codes")
    code = models.CharField(max_length=6, unique=True, editable=False)
    name = models.CharField(max_length=100, help_text="Who holds the code")
    is_active = models.BooleanField(default=True)
    last_used_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.code} ({self.name})"

    def validate_unique(self, exclude: t.Collection[str] | None = None) -> None:
        """Code uniqueness is left to the insert so collisions surface as IntegrityError."""
        super().validate_unique(exclude={*(exclude or ()), "code"})

    @property
    def valid_from(self) -> datetime:
        """First moment the code is accepted."""
        return self.event.staff_window[0]

    @property
    def valid_until(self) -> datetime:
        """Last moment the code is accepted."""
        return self.event.staff_window[1]


class StaffActionLog(TimeStampedModel):
    class Action(models.TextChoices):
        CHECK_IN = "check_in", "Check-in"
        CHECK_OUT = "check_out", "Check-out"

    access_code = models.ForeignKey(
        StaffAccessCode, on_delete=models.SET_NULL, null=True, blank=True, related_name="actions"
    )
    ticket = models.ForeignKey(Ticket, on_delete=models.SET_NULL, null=True, blank=True, related_name="staff_actions")
    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name="staff_actions")
    action = models.CharField(max_length=20, choices=Action.choices)
    staff_name = models.CharField(max_length=100)
    ticket_email = models.EmailField(blank=True, default="")

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.staff_name} {self.action} {self.ticket_email}"

    @classmethod
    def record(cls, credential: StaffAccessCode, ticket: Ticket, action: "StaffActionLog.Action | str") -> t.Self:
        """Append a check-in/out entry for the acting credential."""
        return cls.objects.create(
            access_code=credential,
            ticket=ticket,
            event_id=credential.event_id,
            action=action,
            staff_name=credential.name,
            ticket_email=ticket.ticket_email,
        )
