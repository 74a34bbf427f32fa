import typing as t
from datetime import timedelta

import pytest
from django.test.client import Client
from django.utils import timezone

from accounts.models import User
from events.models import Event, Order, StaffAccessCode
from events.schema import TicketPurchaseItem
from events.service import checkin_service, order_service, staff_access_service
from events.service.order_service import OrderService

PlaceOrder = t.Callable[..., Order]


@pytest.fixture
def place_order() -> PlaceOrder:
    """Create a pending order of ``quantity`` tickets for ``buyer``; keyword arguments go to every item."""

    def _place(event: Event, buyer: User, quantity: int = 1, **item_kwargs: t.Any) -> Order:
        items = [
            TicketPurchaseItem(ticket_email=f"guest{i}@example.com", **item_kwargs) for i in range(quantity)
        ]
        return OrderService(event, buyer).create_order(items)

    return _place


@pytest.fixture
def pending_order(event: Event, user: User, place_order: PlaceOrder) -> Order:
    return place_order(event, user, 2)


@pytest.fixture
def confirmed_order(pending_order: Order) -> Order:
    """A confirmed order whose tickets have validation codes (not e-mailed)."""
    order = order_service.confirm_order(pending_order)
    checkin_service.issue_codes(order)
    return order


@pytest.fixture
def event_in_staff_window(event: Event) -> Event:
    """The event moved so that it starts in one hour: staff codes are active."""
    Event.objects.filter(pk=event.pk).update(start=timezone.now() + timedelta(hours=1))
    event.refresh_from_db()
    return event


@pytest.fixture
def staff_code(event: Event) -> StaffAccessCode:
    return staff_access_service.issue(event, "Door A")


@pytest.fixture
def staff_client(event_in_staff_window: Event, staff_code: StaffAccessCode) -> Client:
    """A client carrying a valid staff token for the event."""
    staff_code.refresh_from_db()
    token = staff_access_service.issue_staff_token(staff_code)
    return Client(HTTP_X_STAFF_TOKEN=token)
