from datetime import timedelta
from unittest.mock import patch

import pytest
from django.utils import timezone
from freezegun import freeze_time

from accounts.models import User
from events import tasks
from events.models import Event, Order

from .conftest import PlaceOrder

pytestmark = pytest.mark.django_db


def test_expire_pending_orders_task(event: Event, user: User, place_order: PlaceOrder) -> None:
    with freeze_time(timezone.now() - timedelta(days=3)):
        stale = place_order(event, user, 3)

    with patch("events.service.order_service.send_email"):
        result = tasks.expire_pending_orders.apply()

    assert result.get() == 1
    stale.refresh_from_db()
    assert stale.status == Order.Status.EXPIRED
    assert set(stale.tickets.values_list("status", flat=True)) == {Order.Status.EXPIRED}
    event.refresh_from_db()
    assert event.available_tickets == 100


def test_expire_pending_orders_task_with_nothing_to_do(pending_order: Order) -> None:
    assert tasks.expire_pending_orders() == 0

    pending_order.refresh_from_db()
    assert pending_order.status == Order.Status.PENDING
