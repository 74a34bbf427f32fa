from uuid import UUID

from django.db.models import QuerySet
from django.shortcuts import get_object_or_404
from ninja_extra import api_controller, route
from ninja_extra.pagination import PageNumberPaginationExtra, PaginatedResponseSchema, paginate
from ninja_extra.searching import Searching, searching

from accounts.models import User
from accounts.schema import RoleUpdateSchema, UserSchema
from accounts.service import account as account_service
from common.authentication import I18nJWTAuth
from common.controllers import UserAwareController
from common.schema import ErrorResponse
from common.throttling import WriteThrottle
from events import models, schema
from events.service import event_service, order_service

from .permissions import IsPlatformAdmin


@api_controller(
    "/platform-admin",
    auth=I18nJWTAuth(),
    permissions=[IsPlatformAdmin()],
    tags=["Platform Admin"],
    throttle=WriteThrottle(),
)
class PlatformAdminController(UserAwareController):
    """Moderation and ticket release across all events."""

    @route.get("/events/pending", url_name="list_pending_events", response=list[schema.EventSchema])
    def list_pending_events(self) -> QuerySet[models.Event]:
        """Events waiting for approval, oldest first."""
        return event_service.pending_events()

    @route.post("/events/{uuid:event_id}/moderate", url_name="moderate_event", response=schema.EventSchema)
    def moderate_event(self, event_id: UUID, payload: schema.EventModerationSchema) -> models.Event:
        """Approve an event to put it on sale, or reject it."""
        event = get_object_or_404(models.Event, pk=event_id)
        return event_service.moderate_event(event, payload.status)

    @route.get(
        "/orders/confirmed",
        url_name="list_confirmed_orders",
        response=PaginatedResponseSchema[schema.AdminOrderSchema],
    )
    @paginate(PageNumberPaginationExtra, page_size=50)
    def list_confirmed_orders(self) -> QuerySet[models.Order]:
        """Confirmed orders on every event, with their release state."""
        return order_service.confirmed_orders()

    @route.post(
        "/orders/{uuid:order_id}/send-tickets",
        url_name="send_order_tickets",
        response={200: schema.AdminOrderSchema, 409: ErrorResponse},
    )
    def send_tickets(self, order_id: UUID) -> models.Order:
        """Release the tickets of a confirmed order so the buyer can download them."""
        order = get_object_or_404(models.Order, pk=order_id)
        return order_service.send_order_tickets(order, self.user())

    @route.get("/users", url_name="list_users", response=PaginatedResponseSchema[UserSchema])
    @paginate(PageNumberPaginationExtra, page_size=50)
    @searching(Searching, search_fields=["name", "email", "username"])
    def list_users(self) -> QuerySet[User]:
        """All accounts, newest first. Search matches name or e-mail."""
        return account_service.users_for_admin()

    @route.post(
        "/users/{uuid:user_id}/role",
        url_name="update_user_role",
        response=UserSchema,
    )
    def update_user_role(self, user_id: UUID, payload: RoleUpdateSchema) -> User:
        """Grant or revoke the owner and admin roles."""
        user = get_object_or_404(User, pk=user_id)
        return account_service.set_role(user, payload.role, changed_by=self.user())
