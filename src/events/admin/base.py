import typing as t

from django.urls import reverse
from django.utils.html import format_html


class UserLinkMixin:
    """Mixin to add a link to the buyer or owner."""

    def user_link(self, obj: t.Any) -> str:
        user = getattr(obj, "buyer", getattr(obj, "owner", None))
        url = reverse("admin:accounts_user_change", args=[user.id])  # type: ignore[union-attr]
        return format_html('<a href="{}">{}</a>', url, user.username)  # type: ignore[union-attr]

    user_link.short_description = "User"  # type: ignore[attr-defined]


class EventLinkMixin:
    def event_link(self, obj: t.Any) -> str:
        url = reverse("admin:events_event_change", args=[obj.event_id])
        return format_html('<a href="{}">{}</a>', url, obj.event.name)

    event_link.short_description = "Event"  # type: ignore[attr-defined]
