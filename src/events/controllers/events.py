import typing as t
from uuid import UUID

from django.db.models import QuerySet
from django.utils.translation import gettext_lazy as _
from ninja import Query
from ninja.errors import HttpError
from ninja_extra import api_controller, route, status
from ninja_extra.pagination import PageNumberPaginationExtra, PaginatedResponseSchema, paginate
from ninja_extra.searching import Searching, searching

from common.authentication import I18nJWTAuth, OptionalAuth
from common.controllers import UserAwareController
from common.schema import ErrorResponse, ValidationErrorResponse
from common.throttling import WriteThrottle
from events import models, schema
from events.service import capacity_ledger, event_service
from events.service.order_service import OrderService

from .permissions import IsOwner


@api_controller("/events", auth=OptionalAuth(), tags=["Events"])
class EventController(UserAwareController):
    """Public catalogue and ticket purchase."""

    def get_queryset(self) -> QuerySet[models.Event]:
        """Get the queryset based on the user."""
        return models.Event.objects.for_user(self.maybe_user())

    def get_one(self, event_id: UUID) -> models.Event:
        """Wrapper helper."""
        return t.cast(models.Event, self.get_object_or_exception(self.get_queryset(), pk=event_id))

    @route.get("/", url_name="list_events", response=PaginatedResponseSchema[schema.EventSchema])
    @paginate(PageNumberPaginationExtra, page_size=20)
    @searching(Searching, search_fields=["name", "location", "description"])
    def list_events(self) -> QuerySet[models.Event]:
        """Browse upcoming events, soonest first.

        Anonymous users and buyers see approved events only. Owners also see their own events
        while they wait for moderation.
        """
        return event_service.visible_events(self.maybe_user())

    @route.post(
        "/",
        url_name="create_event",
        auth=I18nJWTAuth(),
        permissions=[IsOwner()],
        response={201: schema.EventSchema, 400: ValidationErrorResponse},
        throttle=WriteThrottle(),
    )
    def create_event(self, payload: schema.EventCreateSchema) -> tuple[int, models.Event]:
        """Create an event. It stays in moderation until a platform admin approves it."""
        return status.HTTP_201_CREATED, event_service.create_event(self.user(), payload)

    @route.get("/{uuid:event_id}", url_name="get_event", response=schema.EventSchema)
    def get_event(self, event_id: UUID) -> models.Event:
        """Event details, including payment instructions and remaining tickets."""
        return self.get_one(event_id)

    @route.get("/{uuid:event_id}/tables", url_name="list_event_tables", response=list[schema.TableSchema])
    def list_tables(self, event_id: UUID) -> QuerySet[models.Table]:
        """Tables with live ``occupied`` and ``available`` seat counts."""
        return capacity_ledger.tables_with_availability(self.get_one(event_id))

    @route.get("/{uuid:event_id}/buses", url_name="list_event_buses", response=list[schema.BusSchema])
    def list_buses(self, event_id: UUID, direction: models.Bus.Direction | None = None) -> QuerySet[models.Bus]:
        """Buses with live seat counts, optionally for one direction."""
        return capacity_ledger.buses_with_availability(self.get_one(event_id), direction)

    @route.get(
        "/{uuid:event_id}/availability",
        url_name="event_availability",
        response={200: schema.AvailabilitySchema, 404: ErrorResponse},
    )
    def availability(
        self,
        event_id: UUID,
        params: schema.AvailabilityQuerySchema = Query(...),  # type: ignore[type-arg]
    ) -> schema.AvailabilitySchema:
        """Can ``quantity`` units of the event, a table or a bus still be reserved?

        The answer is a snapshot: a purchase may still be refused if someone else gets there first.
        """
        event = self.get_one(event_id)
        if params.kind == "event":
            return capacity_ledger.check_availability("event", event.pk, params.quantity)
        if params.resource_id is None:
            raise HttpError(400, str(_("A resource id is required for tables and buses.")))
        owned = event.tables if params.kind == "table" else event.buses
        if not owned.filter(pk=params.resource_id).exists():
            raise HttpError(404, str(_("Resource not found for this event.")))
        return capacity_ledger.check_availability(params.kind, params.resource_id, params.quantity)

    @route.get(
        "/{uuid:event_id}/my-allowance",
        url_name="my_ticket_allowance",
        auth=I18nJWTAuth(),
        response=schema.TicketAllowanceSchema,
    )
    def my_ticket_allowance(self, event_id: UUID) -> schema.TicketAllowanceSchema:
        """How many more tickets the signed-in buyer may order for this event."""
        service = OrderService(self.get_one(event_id), self.user())
        return schema.TicketAllowanceSchema(
            purchased=service.get_user_ticket_count(),
            remaining=service.get_remaining_tickets(),
            limit=service.max_tickets_per_user,
        )

    @route.post(
        "/{uuid:event_id}/orders",
        url_name="create_order",
        auth=I18nJWTAuth(),
        response={201: schema.OrderSchema, 400: ErrorResponse, 404: ErrorResponse, 409: ErrorResponse},
        throttle=WriteThrottle(),
    )
    def create_order(self, event_id: UUID, payload: schema.OrderCreateSchema) -> tuple[int, models.Order]:
        """Buy tickets: one ticket per item, each with its own attendee e-mail, table and bus legs.

        The order is created as pending and holds its tickets until a manager confirms the payment,
        rejects it, the buyer cancels it, or it expires. The whole request is refused if any table,
        bus or the event itself is short of spots, or if the buyer would go over the per-account cap.
        """
        event = self.get_one(event_id)
        order = OrderService(event, self.user()).create_order(payload.items)
        return status.HTTP_201_CREATED, order
