import typing as t
from datetime import timedelta
from unittest.mock import MagicMock, patch

import orjson
import pytest
from django.core import mail
from django.core.files.uploadedfile import SimpleUploadedFile
from django.shortcuts import reverse  # type: ignore[attr-defined]
from django.test.client import Client
from ninja_jwt.tokens import RefreshToken

from accounts.models import User
from events.models import Bus, Event, Order, StaffAccessCode, Table
from events.service import checkin_service, order_service, staff_access_service

from ..conftest import PlaceOrder

pytestmark = pytest.mark.django_db


# --- Access ---


@pytest.mark.parametrize(
    "client_fixture,expected_status_code",
    [("owner_client", 200), ("admin_client_jwt", 200), ("user_client", 403), ("client", 401)],
)
def test_admin_get_event_access(
    request: pytest.FixtureRequest, client_fixture: str, expected_status_code: int, event: Event
) -> None:
    """Only the owner and platform admins manage an event."""
    client: Client = request.getfixturevalue(client_fixture)

    response = client.get(reverse("api:admin_get_event", kwargs={"event_id": event.pk}))

    assert response.status_code == expected_status_code


def test_other_owner_is_forbidden(event: Event, user_factory: t.Any) -> None:
    rival = user_factory(username="rival@example.com", role=User.Role.OWNER)
    access = RefreshToken.for_user(rival).access_token  # type: ignore[attr-defined]
    rival_client = Client(HTTP_AUTHORIZATION=f"Bearer {access}")

    response = rival_client.get(reverse("api:admin_get_event", kwargs={"event_id": event.pk}))

    assert response.status_code == 403


# --- Tests for PUT /event-admin/{event_id} ---


def test_update_event(owner_client: Client, event: Event) -> None:
    url = reverse("api:edit_event", kwargs={"event_id": event.pk})
    payload = {"name": "Gala Dinner 2026", "tickets_number": 150}

    response = owner_client.put(url, data=orjson.dumps(payload), content_type="application/json")

    assert response.status_code == 200
    data = response.json()
    assert data["name"] == "Gala Dinner 2026"
    assert data["tickets_number"] == 150
    assert data["available_tickets"] == 150


def test_update_event_below_sold(owner_client: Client, event: Event, user: User, place_order: PlaceOrder) -> None:
    place_order(event, user, 5)
    url = reverse("api:edit_event", kwargs={"event_id": event.pk})

    response = owner_client.put(url, data=orjson.dumps({"tickets_number": 4}), content_type="application/json")

    assert response.status_code == 400
    assert response.json()["detail"] == "Cannot set tickets below the 5 already sold."


def test_upload_event_image(owner_client: Client, event: Event) -> None:
    url = reverse("api:upload_event_image", kwargs={"event_id": event.pk})

    response = owner_client.post(url, data={"image": SimpleUploadedFile("poster.jpg", b"jpeg")})

    assert response.status_code == 200
    assert response.json()["image_url"].endswith(".jpg")


# --- Tables and buses ---


def test_add_and_delete_table(owner_client: Client, event: Event) -> None:
    url = reverse("api:add_table", kwargs={"event_id": event.pk})

    response = owner_client.post(url, data=orjson.dumps({"name": "VIP", "capacity": 8}), content_type="application/json")

    assert response.status_code == 201
    table_id = response.json()["id"]
    response = owner_client.delete(reverse("api:delete_table", kwargs={"event_id": event.pk, "table_id": table_id}))
    assert response.status_code == 204
    assert not Table.objects.filter(pk=table_id).exists()


def test_delete_table_with_tickets(
    owner_client: Client, event: Event, table: Table, user: User, place_order: PlaceOrder
) -> None:
    place_order(event, user, 1, table_id=table.pk)

    response = owner_client.delete(reverse("api:delete_table", kwargs={"event_id": event.pk, "table_id": table.pk}))

    assert response.status_code == 400


def test_add_bus(owner_client: Client, event: Event) -> None:
    url = reverse("api:add_bus", kwargs={"event_id": event.pk})
    payload = {
        "direction": "outbound",
        "location": "Braga",
        "departs_at": (event.start - timedelta(hours=3)).isoformat(),
        "capacity": 30,
    }

    response = owner_client.post(url, data=orjson.dumps(payload), content_type="application/json")

    assert response.status_code == 201
    assert response.json()["capacity"] == 30
    assert Bus.objects.get().location == "Braga"


def test_delete_bus(owner_client: Client, event: Event, bus_return: Bus) -> None:
    response = owner_client.delete(reverse("api:delete_bus", kwargs={"event_id": event.pk, "bus_id": bus_return.pk}))

    assert response.status_code == 204
    assert not Bus.objects.exists()


# --- Orders ---


def test_list_event_orders(owner_client: Client, event: Event, user: User, place_order: PlaceOrder) -> None:
    order_service.confirm_order(place_order(event, user, 1))
    place_order(event, user, 2)
    url = reverse("api:list_event_orders", kwargs={"event_id": event.pk})

    response = owner_client.get(url, {"order_status": "pending"})

    assert response.status_code == 200
    data = response.json()
    assert data["count"] == 1
    assert data["results"][0]["buyer"]["email"] == "buyer@example.com"
    assert len(data["results"][0]["tickets"]) == 2


def test_list_orders_awaiting_review(owner_client: Client, event: Event, pending_order: Order) -> None:
    Order.objects.filter(pk=pending_order.pk).update(payment_proof_url="/media/p.pdf")
    url = reverse("api:list_orders_awaiting_review", kwargs={"event_id": event.pk})
    assert owner_client.get(url).json() == []

    order_service.submit_payment_proof(pending_order, SimpleUploadedFile("p.pdf", b"%PDF"))
    response = owner_client.get(url)

    assert [o["id"] for o in response.json()] == [str(pending_order.pk)]


def test_confirm_order_sends_tickets(owner_client: Client, event: Event, pending_order: Order) -> None:
    url = reverse("api:confirm_order", kwargs={"event_id": event.pk, "order_id": pending_order.pk})

    response = owner_client.post(url)

    assert response.status_code == 200
    assert response.json() == {
        "order_id": str(pending_order.pk),
        "status": "confirmed",
        "codes_issued": 2,
        "emails_sent": 2,
        "errors": [],
    }
    assert len(mail.outbox) == 2


def test_confirm_order_of_another_event(
    owner_client: Client, event: Event, owner: User, user: User, next_week: t.Any, place_order: PlaceOrder
) -> None:
    other = Event.objects.create(
        owner=owner, name="Other", location="Faro", start=next_week, tickets_number=5, status=Event.Status.APPROVED
    )
    order = place_order(other, user, 1)
    url = reverse("api:confirm_order", kwargs={"event_id": event.pk, "order_id": order.pk})

    response = owner_client.post(url)

    assert response.status_code == 404


@patch("events.service.order_service.send_email")
def test_reject_order(
    mock_send_email: MagicMock,
    owner_client: Client,
    event: Event,
    pending_order: Order,
    django_capture_on_commit_callbacks: t.Any,
) -> None:
    url = reverse("api:reject_order", kwargs={"event_id": event.pk, "order_id": pending_order.pk})

    with django_capture_on_commit_callbacks(execute=True):
        response = owner_client.post(url)

    assert response.status_code == 200
    assert response.json()["status"] == "rejected"
    event.refresh_from_db()
    assert event.available_tickets == 100
    mock_send_email.delay.assert_called_once()


def test_reject_confirmed_order(owner_client: Client, event: Event, confirmed_order: Order) -> None:
    url = reverse("api:reject_order", kwargs={"event_id": event.pk, "order_id": confirmed_order.pk})

    response = owner_client.post(url)

    assert response.status_code == 409
    assert response.json()["code"] == "invalid_transition"


def test_ticket_stats(owner_client: Client, event: Event, confirmed_order: Order) -> None:
    response = owner_client.get(reverse("api:event_ticket_stats", kwargs={"event_id": event.pk}))

    assert response.status_code == 200
    data = response.json()
    assert data["confirmed"] == 2
    assert data["available_tickets"] == 98


# --- Staff access codes ---


def test_staff_code_lifecycle(owner_client: Client, event: Event) -> None:
    create_url = reverse("api:create_staff_code", kwargs={"event_id": event.pk})

    response = owner_client.post(create_url, data=orjson.dumps({"name": "Door A"}), content_type="application/json")

    assert response.status_code == 201
    created = response.json()
    assert len(created["code"]) == 6
    assert created["is_active"] is True
    kwargs = {"event_id": event.pk, "code_id": created["id"]}

    response = owner_client.post(reverse("api:deactivate_staff_code", kwargs=kwargs))
    assert response.json()["is_active"] is False

    response = owner_client.post(reverse("api:reactivate_staff_code", kwargs=kwargs))
    assert response.json()["is_active"] is True

    listed = owner_client.get(reverse("api:list_staff_codes", kwargs={"event_id": event.pk})).json()
    assert [c["id"] for c in listed] == [created["id"]]

    response = owner_client.delete(reverse("api:delete_staff_code", kwargs=kwargs))
    assert response.status_code == 204
    assert not StaffAccessCode.objects.exists()


def test_staff_code_window_is_exposed(owner_client: Client, event: Event, staff_code: StaffAccessCode) -> None:
    listed = owner_client.get(reverse("api:list_staff_codes", kwargs={"event_id": event.pk})).json()

    assert listed[0]["valid_from"] is not None
    assert listed[0]["valid_until"] is not None


def test_staff_code_of_another_event(
    owner_client: Client, event: Event, owner: User, next_week: t.Any
) -> None:
    other = Event.objects.create(owner=owner, name="Other", location="Faro", start=next_week, tickets_number=5)
    foreign = staff_access_service.issue(other, "Door B")

    response = owner_client.post(
        reverse("api:deactivate_staff_code", kwargs={"event_id": event.pk, "code_id": foreign.pk})
    )

    assert response.status_code == 404


# --- Door ---


def test_door_views(owner_client: Client, event: Event, confirmed_order: Order, staff_code: StaffAccessCode) -> None:
    for code in confirmed_order.tickets.values_list("validation_code", flat=True):
        checkin_service.scan(code, staff_code, "check_in")

    stats = owner_client.get(reverse("api:event_check_stats", kwargs={"event_id": event.pk})).json()
    attendees = owner_client.get(reverse("api:event_attendees", kwargs={"event_id": event.pk})).json()
    actions = owner_client.get(reverse("api:event_staff_actions", kwargs={"event_id": event.pk}), {"limit": 1}).json()

    assert stats == {"total": 2, "checked_in": 2, "checked_out": 0, "pending": 0}
    assert [a["ticket_email"] for a in attendees] == ["guest0@example.com", "guest1@example.com"]
    assert all(a["checked_in_at"] for a in attendees)
    assert len(actions) == 1
    assert actions[0]["action"] == "check_in"
    assert actions[0]["staff_name"] == "Door A"
