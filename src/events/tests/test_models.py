import pytest
from django.core.exceptions import ValidationError
from django.db import IntegrityError
from django.utils import timezone

from accounts.models import User
from events.models import Event, Order, Table, Ticket

pytestmark = pytest.mark.django_db


class TestEvent:
    def test_new_event_starts_fully_available(self, event: Event) -> None:
        assert event.available_tickets == event.tickets_number
        assert event.sold_tickets == 0

    def test_clean_refuses_counter_above_total(self, event: Event) -> None:
        event.available_tickets = event.tickets_number + 1

        with pytest.raises(ValidationError):
            event.clean()

    def test_counter_above_total_violates_constraint(self, event: Event) -> None:
        with pytest.raises(IntegrityError):
            Event.objects.filter(pk=event.pk).update(available_tickets=101)

    def test_staff_window(self, event: Event) -> None:
        valid_from, valid_until = event.staff_window

        assert (event.start - valid_from).total_seconds() == 2 * 3600
        assert (valid_until - event.start).total_seconds() == 24 * 3600

    def test_visibility(self, event: Event, user: User, owner: User, admin_user: User) -> None:
        event.status = Event.Status.PENDING
        event.save()

        assert not Event.objects.for_user(user).exists()
        assert Event.objects.for_user(owner).get() == event
        assert Event.objects.for_user(admin_user).get() == event


class TestTable:
    def test_name_is_unique_per_event(self, table: Table) -> None:
        with pytest.raises(ValidationError):
            Table.objects.create(event=table.event, name=table.name, capacity=4)


class TestTicket:
    def test_check_out_requires_check_in(self, confirmed_order: Order) -> None:
        ticket = confirmed_order.tickets.first()
        assert ticket is not None

        with pytest.raises(IntegrityError):
            Ticket.objects.filter(pk=ticket.pk).update(checked_out_at=timezone.now())

    def test_downloadable_needs_release_and_code(self, confirmed_order: Order) -> None:
        ticket = confirmed_order.tickets.first()
        assert ticket is not None
        assert ticket.is_downloadable is False

        ticket.available_for_download = True
        assert ticket.is_downloadable is True

        ticket.validation_code = None
        assert ticket.is_downloadable is False

    def test_validation_code_is_unique(self, confirmed_order: Order) -> None:
        first, second = confirmed_order.tickets.all()

        with pytest.raises(IntegrityError):
            Ticket.objects.filter(pk=second.pk).update(validation_code=first.validation_code)
