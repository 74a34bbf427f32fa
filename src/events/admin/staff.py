import typing as t

from django.contrib import admin
from django.http import HttpRequest

from events import models
from events.admin.base import EventLinkMixin
from events.service import staff_access_service


@admin.register(models.StaffAccessCode)
class StaffAccessCodeAdmin(admin.ModelAdmin, EventLinkMixin):  # type: ignore[type-arg]
    list_display = ["code", "name", "event_link", "is_active", "last_used_at"]
    list_filter = ["is_active"]
    search_fields = ["code", "name", "event__name"]
    readonly_fields = ["code", "last_used_at"]

    def save_model(self, request: HttpRequest, obj: models.StaffAccessCode, form: t.Any, change: bool) -> None:
        if not change and not obj.code:
            obj.code = staff_access_service.generate_code()
        super().save_model(request, obj, form, change)


@admin.register(models.StaffActionLog)
class StaffActionLogAdmin(admin.ModelAdmin, EventLinkMixin):  # type: ignore[type-arg]
    list_display = ["created_at", "action", "staff_name", "ticket_email", "event_link"]
    list_filter = ["action"]
    search_fields = ["staff_name", "ticket_email", "event__name"]

    def has_change_permission(self, request: HttpRequest, obj: t.Any = None) -> bool:
        return False
