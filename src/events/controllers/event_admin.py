import typing as t
from uuid import UUID

from django.db.models import QuerySet
from django.shortcuts import get_object_or_404
from ninja import File
from ninja.files import UploadedFile
from ninja_extra import api_controller, route, status
from ninja_extra.pagination import PageNumberPaginationExtra, PaginatedResponseSchema, paginate

from common.authentication import I18nJWTAuth
from common.controllers import UserAwareController
from common.schema import ErrorResponse, ValidationErrorResponse
from common.throttling import UserDefaultThrottle, WriteThrottle
from events import models, schema
from events.service import checkin_service, event_service, order_service, staff_access_service

from .permissions import EventManagerPermission


@api_controller(
    "/event-admin/{event_id}",
    auth=I18nJWTAuth(),
    permissions=[EventManagerPermission()],
    tags=["Event Admin"],
    throttle=WriteThrottle(),
)
class EventAdminController(UserAwareController):
    """Everything the owner of an event (or a platform admin) does with it.

    Covers event details, tables and buses, payment review, staff access codes and the
    door statistics.
    """

    def get_queryset(self) -> QuerySet[models.Event]:
        """Get the queryset based on the user."""
        return models.Event.objects.for_user(self.user())

    def get_one(self, event_id: UUID) -> models.Event:
        """Wrapper helper."""
        return t.cast(models.Event, self.get_object_or_exception(self.get_queryset(), pk=event_id))

    def get_order(self, event: models.Event, order_id: UUID) -> models.Order:
        return get_object_or_404(models.Order.objects.select_related("event", "buyer"), pk=order_id, event=event)

    def get_staff_code(self, event: models.Event, code_id: UUID) -> models.StaffAccessCode:
        return get_object_or_404(models.StaffAccessCode.objects.select_related("event"), pk=code_id, event=event)

    # Event

    @route.get("", url_name="admin_get_event", response=schema.EventSchema, throttle=UserDefaultThrottle())
    def get_event(self, event_id: UUID) -> models.Event:
        return self.get_one(event_id)

    @route.put("", url_name="edit_event", response={200: schema.EventSchema, 400: ValidationErrorResponse})
    def update_event(self, event_id: UUID, payload: schema.EventUpdateSchema) -> models.Event:
        """Update event details.

        Changing ``tickets_number`` shifts the remaining tickets by the same amount and is refused
        when it would go below the tickets already sold.
        """
        return event_service.update_event(self.get_one(event_id), payload)

    @route.post("/image", url_name="upload_event_image", response=schema.EventSchema)
    def upload_image(self, event_id: UUID, image: File[UploadedFile]) -> models.Event:
        """Upload the event poster, replacing the previous one."""
        return event_service.upload_event_image(self.get_one(event_id), image)

    # Tables and buses

    @route.post("/tables", url_name="add_table", response={201: schema.TableSchema, 400: ValidationErrorResponse})
    def add_table(self, event_id: UUID, payload: schema.TableCreateSchema) -> tuple[int, models.Table]:
        return status.HTTP_201_CREATED, event_service.add_table(self.get_one(event_id), payload)

    @route.delete("/tables/{uuid:table_id}", url_name="delete_table", response={204: None})
    def delete_table(self, event_id: UUID, table_id: UUID) -> tuple[int, None]:
        """Delete a table. Tables somebody was ever seated at cannot be deleted."""
        event = self.get_one(event_id)
        event_service.delete_table(get_object_or_404(models.Table, pk=table_id, event=event))
        return 204, None

    @route.post("/buses", url_name="add_bus", response={201: schema.BusSchema, 400: ValidationErrorResponse})
    def add_bus(self, event_id: UUID, payload: schema.BusCreateSchema) -> tuple[int, models.Bus]:
        return status.HTTP_201_CREATED, event_service.add_bus(self.get_one(event_id), payload)

    @route.delete("/buses/{uuid:bus_id}", url_name="delete_bus", response={204: None})
    def delete_bus(self, event_id: UUID, bus_id: UUID) -> tuple[int, None]:
        """Delete a bus no pending or confirmed ticket rides on."""
        event = self.get_one(event_id)
        event_service.delete_bus(get_object_or_404(models.Bus, pk=bus_id, event=event))
        return 204, None

    # Orders

    @route.get(
        "/orders",
        url_name="list_event_orders",
        response=PaginatedResponseSchema[schema.AdminOrderSchema],
        throttle=UserDefaultThrottle(),
    )
    @paginate(PageNumberPaginationExtra, page_size=50)
    def list_orders(self, event_id: UUID, order_status: models.Order.Status | None = None) -> QuerySet[models.Order]:
        """All orders of the event, newest first, optionally filtered by status."""
        qs = order_service.orders_for_event(self.get_one(event_id))
        if order_status:
            qs = qs.filter(status=order_status)
        return qs

    @route.get(
        "/orders/pending",
        url_name="list_orders_awaiting_review",
        response=list[schema.AdminOrderSchema],
        throttle=UserDefaultThrottle(),
    )
    def list_orders_awaiting_review(self, event_id: UUID) -> QuerySet[models.Order]:
        """Pending orders with a payment proof, oldest submission first."""
        return order_service.orders_awaiting_review(self.user(), self.get_one(event_id))

    @route.post(
        "/orders/{uuid:order_id}/confirm",
        url_name="confirm_order",
        response={200: schema.DispatchReport, 409: ErrorResponse, 503: ErrorResponse},
    )
    def confirm_order(self, event_id: UUID, order_id: UUID) -> schema.DispatchReport:
        """Confirm the payment, issue validation codes and e-mail every ticket.

        E-mail failures do not undo the confirmation: they are listed in ``errors`` and calling
        this again retries only the tickets that were not delivered.
        """
        event = self.get_one(event_id)
        return checkin_service.confirm_order_and_send_tickets(self.get_order(event, order_id))

    @route.post(
        "/orders/{uuid:order_id}/reject",
        url_name="reject_order",
        response={200: schema.AdminOrderSchema, 409: ErrorResponse},
    )
    def reject_order(self, event_id: UUID, order_id: UUID) -> models.Order:
        """Reject the payment. The tickets go back on sale and the buyer is notified."""
        event = self.get_one(event_id)
        return order_service.reject_order(self.get_order(event, order_id))

    @route.get(
        "/stats", url_name="event_ticket_stats", response=schema.EventTicketStats, throttle=UserDefaultThrottle()
    )
    def ticket_stats(self, event_id: UUID) -> schema.EventTicketStats:
        return order_service.get_event_ticket_stats(self.get_one(event_id))

    # Staff access codes

    @route.get(
        "/staff-codes",
        url_name="list_staff_codes",
        response=list[schema.StaffAccessCodeSchema],
        throttle=UserDefaultThrottle(),
    )
    def list_staff_codes(self, event_id: UUID) -> QuerySet[models.StaffAccessCode]:
        return staff_access_service.codes_for_event(self.get_one(event_id))

    @route.post(
        "/staff-codes",
        url_name="create_staff_code",
        response={201: schema.StaffAccessCodeSchema, 503: ErrorResponse},
    )
    def create_staff_code(
        self, event_id: UUID, payload: schema.StaffAccessCodeCreateSchema
    ) -> tuple[int, models.StaffAccessCode]:
        """Issue a 6-character code for a door staff member.

        The code works from 2 hours before the event starts until 24 hours after.
        """
        return status.HTTP_201_CREATED, staff_access_service.issue(self.get_one(event_id), payload.name)

    @route.post(
        "/staff-codes/{uuid:code_id}/deactivate",
        url_name="deactivate_staff_code",
        response=schema.StaffAccessCodeSchema,
    )
    def deactivate_staff_code(self, event_id: UUID, code_id: UUID) -> models.StaffAccessCode:
        """Suspend a code. Staff already logged in with it are locked out on their next scan."""
        event = self.get_one(event_id)
        return staff_access_service.deactivate(self.get_staff_code(event, code_id))

    @route.post(
        "/staff-codes/{uuid:code_id}/reactivate",
        url_name="reactivate_staff_code",
        response=schema.StaffAccessCodeSchema,
    )
    def reactivate_staff_code(self, event_id: UUID, code_id: UUID) -> models.StaffAccessCode:
        event = self.get_one(event_id)
        return staff_access_service.reactivate(self.get_staff_code(event, code_id))

    @route.delete("/staff-codes/{uuid:code_id}", url_name="delete_staff_code", response={204: None})
    def delete_staff_code(self, event_id: UUID, code_id: UUID) -> tuple[int, None]:
        event = self.get_one(event_id)
        staff_access_service.delete(self.get_staff_code(event, code_id))
        return 204, None

    # Door

    @route.get(
        "/check-stats", url_name="event_check_stats", response=schema.CheckStats, throttle=UserDefaultThrottle()
    )
    def check_stats(self, event_id: UUID) -> schema.CheckStats:
        """How many confirmed tickets have checked in and out."""
        return checkin_service.get_event_check_stats(self.get_one(event_id))

    @route.get(
        "/attendees",
        url_name="event_attendees",
        response=list[schema.AdminTicketSchema],
        throttle=UserDefaultThrottle(),
    )
    def attendees(self, event_id: UUID) -> QuerySet[models.Ticket]:
        return checkin_service.get_event_attendees(self.get_one(event_id))

    @route.get(
        "/actions",
        url_name="event_staff_actions",
        response=list[schema.StaffActionSchema],
        throttle=UserDefaultThrottle(),
    )
    def staff_actions(
        self, event_id: UUID, limit: int = checkin_service.DEFAULT_ACTIONS_LIMIT
    ) -> list[models.StaffActionLog]:
        """Most recent check-ins and check-outs, newest first."""
        return checkin_service.get_event_actions_log(self.get_one(event_id), limit=min(max(limit, 1), 500))
