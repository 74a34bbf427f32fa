"""Tests for the capacity ledger."""

import uuid
from datetime import datetime

import pytest

from accounts.models import User
from events.exceptions import CapacityExceededError, NotFoundError
from events.models import Bus, Event, Table
from events.service import capacity_ledger, order_service

from ..conftest import PlaceOrder

pytestmark = pytest.mark.django_db


class TestCheckAvailability:
    def test_event_with_room(self, event: Event) -> None:
        result = capacity_ledger.check_availability("event", event.pk, 5)

        assert result.available is True
        assert result.spots_left == 100
        assert result.capacity == 100

    def test_event_counts_pending_and_confirmed(self, event: Event, user: User, place_order: PlaceOrder) -> None:
        order_service.confirm_order(place_order(event, user, 3))
        place_order(event, user, 2)

        result = capacity_ledger.check_availability("event", event.pk, 96)

        assert result.available is False
        assert result.spots_left == 95

    def test_table_occupancy_is_live(self, event: Event, table: Table, user: User, place_order: PlaceOrder) -> None:
        place_order(event, user, 4, table_id=table.pk)

        result = capacity_ledger.check_availability("table", table.pk, 6)

        assert result.available is True
        assert result.spots_left == 6
        assert capacity_ledger.check_availability("table", table.pk, 7).available is False

    def test_released_tickets_free_the_table(
        self, event: Event, table: Table, user: User, place_order: PlaceOrder
    ) -> None:
        order = place_order(event, user, 4, table_id=table.pk)
        order_service.reject_order(order)

        assert capacity_ledger.check_availability("table", table.pk, 10).available is True

    def test_bus_counts_its_own_direction(
        self, event: Event, bus_outbound: Bus, bus_return: Bus, user: User, place_order: PlaceOrder
    ) -> None:
        place_order(event, user, 3, bus_outbound_id=bus_outbound.pk)

        assert capacity_ledger.check_availability("bus_outbound", bus_outbound.pk, 1).spots_left == 47
        assert capacity_ledger.check_availability("bus_return", bus_return.pk, 1).spots_left == 50

    def test_bus_of_the_wrong_direction_is_not_found(self, bus_outbound: Bus) -> None:
        with pytest.raises(NotFoundError):
            capacity_ledger.check_availability("bus_return", bus_outbound.pk, 1)

    def test_missing_resource(self) -> None:
        with pytest.raises(NotFoundError):
            capacity_ledger.check_availability("table", uuid.uuid4(), 1)

    @pytest.mark.parametrize("quantity", [0, -1])
    def test_quantity_must_be_positive(self, event: Event, quantity: int) -> None:
        with pytest.raises(ValueError):
            capacity_ledger.check_availability("event", event.pk, quantity)


class TestEventCounter:
    def test_commit_takes_units(self, event: Event) -> None:
        assert capacity_ledger.commit_reservation(event.pk, 30) is True

        event.refresh_from_db()
        assert event.available_tickets == 70

    def test_commit_refuses_when_short(self, event: Event) -> None:
        assert capacity_ledger.commit_reservation(event.pk, 101) is False

        event.refresh_from_db()
        assert event.available_tickets == 100

    def test_last_unit_goes_to_exactly_one_caller(self, event: Event) -> None:
        assert capacity_ledger.commit_reservation(event.pk, 99) is True

        results = [capacity_ledger.commit_reservation(event.pk, 1) for _attempt in range(2)]

        assert results == [True, False]
        event.refresh_from_db()
        assert event.available_tickets == 0

    def test_release_never_exceeds_total(self, event: Event) -> None:
        capacity_ledger.commit_reservation(event.pk, 5)

        capacity_ledger.release_reservation(event.pk, 50)

        event.refresh_from_db()
        assert event.available_tickets == event.tickets_number

    def test_spots_left(self, event: Event) -> None:
        capacity_ledger.commit_reservation(event.pk, 12)

        assert capacity_ledger.event_spots_left(event.pk) == 88


class TestResourceCapacity:
    def test_within_capacity_returns_spots_left(self, event: Event, table: Table) -> None:
        assert capacity_ledger.assert_resource_capacity("table", table.pk, 10, event=event) == 10

    def test_over_capacity_raises(self, event: Event, table: Table, user: User, place_order: PlaceOrder) -> None:
        place_order(event, user, 8, table_id=table.pk)

        with pytest.raises(CapacityExceededError) as exc_info:
            capacity_ledger.assert_resource_capacity("table", table.pk, 3, event=event)

        assert exc_info.value.resource == "table"
        assert exc_info.value.spots_left == 2

    def test_resource_of_another_event(self, owner: User, next_week: datetime, table: Table) -> None:
        other = Event.objects.create(
            owner=owner, name="Other", location="Faro", start=next_week, tickets_number=10
        )

        with pytest.raises(NotFoundError):
            capacity_ledger.assert_resource_capacity("table", table.pk, 1, event=other)


class TestAnnotatedListings:
    def test_tables_with_availability(self, event: Event, table: Table, user: User, place_order: PlaceOrder) -> None:
        Table.objects.create(event=event, name="Table 2", capacity=6)
        place_order(event, user, 3, table_id=table.pk)

        tables = {t.name: t for t in capacity_ledger.tables_with_availability(event)}

        assert tables["Table 1"].occupied == 3
        assert tables["Table 1"].available == 7
        assert tables["Table 2"].occupied == 0
        assert tables["Table 2"].available == 6

    def test_buses_with_availability(
        self, event: Event, bus_outbound: Bus, bus_return: Bus, user: User, place_order: PlaceOrder
    ) -> None:
        place_order(event, user, 2, bus_outbound_id=bus_outbound.pk, bus_return_id=bus_return.pk)
        place_order(event, user, 1, bus_return_id=bus_return.pk)

        buses = {b.direction: b for b in capacity_ledger.buses_with_availability(event)}

        assert buses[Bus.Direction.OUTBOUND].occupied == 2
        assert buses[Bus.Direction.RETURN].occupied == 3
        assert buses[Bus.Direction.RETURN].available == 47

    def test_buses_filtered_by_direction(self, event: Event, bus_outbound: Bus, bus_return: Bus) -> None:
        buses = list(capacity_ledger.buses_with_availability(event, Bus.Direction.RETURN))

        assert buses == [bus_return]
