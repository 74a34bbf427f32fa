from django.http import HttpRequest
from ninja_extra import ControllerBase
from ninja_extra.permissions import BasePermission

from events import models


class RootPermission(BasePermission):
    def has_permission(self, request: HttpRequest, controller: ControllerBase) -> bool:
        """Must implement abstract method. This is due to an error in Ninja Extra.

        This Method will be ignored, only has_object_permission will be called.
        """
        return True


class EventManagerPermission(RootPermission):
    """The event's owner or a platform admin."""

    message = "You do not manage this event."

    def has_object_permission(
        self,
        request: HttpRequest,
        controller: ControllerBase,
        obj: models.Event,
    ) -> bool:
        """Can manage the event."""
        user = request.user
        return bool(user.is_authenticated and (obj.owner_id == user.id or user.is_admin))  # type: ignore[union-attr]


class IsOwner(BasePermission):
    """Users allowed to create events."""

    message = "Only event owners can do this."

    def has_permission(self, request: HttpRequest, controller: ControllerBase) -> bool:
        """Owners and admins."""
        user = request.user
        return bool(user.is_authenticated and user.is_owner)  # type: ignore[union-attr]


class IsPlatformAdmin(BasePermission):
    message = "Only platform admins can do this."

    def has_permission(self, request: HttpRequest, controller: ControllerBase) -> bool:
        """Admin role or superuser."""
        user = request.user
        return bool(user.is_authenticated and user.is_admin)  # type: ignore[union-attr]
