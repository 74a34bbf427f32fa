from django.contrib import admin

from events import models
from events.admin.base import EventLinkMixin, UserLinkMixin


class TicketInline(admin.TabularInline):  # type: ignore[type-arg]
    model = models.Ticket
    extra = 0
    can_delete = False
    fields = ["ticket_email", "table", "bus_outbound", "bus_return", "status", "validation_code", "checked_in_at"]
    readonly_fields = fields


@admin.register(models.Order)
class OrderAdmin(admin.ModelAdmin, UserLinkMixin, EventLinkMixin):  # type: ignore[type-arg]
    """Read-mostly view of orders.

    Status changes go through the API so that capacity is released exactly once.
    """

    list_display = ["id", "event_link", "user_link", "status", "total_amount", "payment_submitted_at", "created_at"]
    list_filter = ["status", "tickets_sent"]
    search_fields = ["id", "buyer__username", "buyer__email", "event__name"]
    readonly_fields = [
        "id",
        "buyer",
        "event",
        "status",
        "total_amount",
        "payment_proof_url",
        "payment_submitted_at",
        "tickets_sent",
        "tickets_sent_at",
        "tickets_sent_by",
        "created_at",
    ]
    date_hierarchy = "created_at"
    inlines = [TicketInline]


@admin.register(models.Ticket)
class TicketAdmin(admin.ModelAdmin, UserLinkMixin, EventLinkMixin):  # type: ignore[type-arg]
    list_display = ["ticket_email", "event_link", "user_link", "status", "validation_code", "checked_in_at"]
    list_filter = ["status", "available_for_download"]
    search_fields = ["ticket_email", "validation_code", "buyer__username", "event__name"]
    readonly_fields = [
        "id",
        "order",
        "status",
        "validation_code",
        "sent_at",
        "emailed_at",
        "checked_in_at",
        "checked_out_at",
    ]
