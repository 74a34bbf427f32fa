from django.contrib import admin

from events import models
from events.admin.base import EventLinkMixin, UserLinkMixin


class TableInline(admin.TabularInline):  # type: ignore[type-arg]
    model = models.Table
    extra = 0


class BusInline(admin.TabularInline):  # type: ignore[type-arg]
    model = models.Bus
    extra = 0


@admin.register(models.Event)
class EventAdmin(admin.ModelAdmin, UserLinkMixin):  # type: ignore[type-arg]
    list_display = ["name", "user_link", "start", "status", "tickets_number", "available_tickets"]
    list_filter = ["status"]
    search_fields = ["name", "location", "owner__username"]
    # The counter only moves through reservations and releases.
    readonly_fields = ["id", "available_tickets", "created_at", "updated_at"]
    date_hierarchy = "start"
    inlines = [TableInline, BusInline]


@admin.register(models.Table)
class TableAdmin(admin.ModelAdmin, EventLinkMixin):  # type: ignore[type-arg]
    list_display = ["name", "event_link", "capacity"]
    search_fields = ["name", "event__name"]


@admin.register(models.Bus)
class BusAdmin(admin.ModelAdmin, EventLinkMixin):  # type: ignore[type-arg]
    list_display = ["__str__", "event_link", "direction", "capacity"]
    list_filter = ["direction"]
    search_fields = ["location", "event__name"]
