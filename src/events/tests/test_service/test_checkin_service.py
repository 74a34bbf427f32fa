import re
import typing as t
from unittest.mock import MagicMock, patch

import pytest
from django.core import mail

from accounts.models import User
from events.exceptions import InvalidTransitionError, NotificationError
from events.models import Bus, Event, Order, StaffAccessCode, StaffActionLog, Table, Ticket
from events.service import checkin_service, order_service, staff_access_service

from ..conftest import PlaceOrder

pytestmark = pytest.mark.django_db

CODE_PATTERN = re.compile(r"^TKT-[0-9A-F]{8}-[A-Z2-7]{8}$")


def _first_code(order: Order) -> str:
    return t.cast(str, order.tickets.order_by("ticket_email").values_list("validation_code", flat=True).first())


class TestIssueCodes:
    def test_every_ticket_gets_a_unique_code(self, pending_order: Order) -> None:
        order = order_service.confirm_order(pending_order)

        issued = checkin_service.issue_codes(order)

        codes = set(order.tickets.values_list("validation_code", flat=True))
        assert len(issued) == 2
        assert len(codes) == 2
        for ticket in order.tickets.all():
            assert CODE_PATTERN.match(ticket.validation_code)
            assert ticket.validation_code.split("-")[1] == ticket.pk.hex[:8].upper()

    def test_existing_codes_are_kept(self, confirmed_order: Order) -> None:
        before = set(confirmed_order.tickets.values_list("validation_code", flat=True))

        assert checkin_service.issue_codes(confirmed_order) == []
        assert set(confirmed_order.tickets.values_list("validation_code", flat=True)) == before

    def test_pending_order_gets_no_codes(self, pending_order: Order) -> None:
        with pytest.raises(InvalidTransitionError):
            checkin_service.issue_codes(pending_order)

        assert not pending_order.tickets.filter(validation_code__isnull=False).exists()


class TestDispatch:
    def test_confirm_and_send(self, pending_order: Order) -> None:
        report = checkin_service.confirm_order_and_send_tickets(pending_order)

        assert report.status == Order.Status.CONFIRMED
        assert report.codes_issued == 2
        assert report.emails_sent == 2
        assert report.errors == []
        assert sorted(m.to[0] for m in mail.outbox) == ["guest0@example.com", "guest1@example.com"]
        assert not pending_order.tickets.filter(emailed_at__isnull=True).exists()

    def test_second_dispatch_sends_nothing(self, pending_order: Order) -> None:
        checkin_service.confirm_order_and_send_tickets(pending_order)
        mail.outbox.clear()

        report = checkin_service.confirm_order_and_send_tickets(pending_order)

        assert report.codes_issued == 0
        assert report.emails_sent == 0
        assert mail.outbox == []

    def test_failures_are_reported_and_do_not_stop_the_batch(self, pending_order: Order) -> None:
        def fail_for_guest0(ticket: Ticket) -> None:
            if ticket.ticket_email == "guest0@example.com":
                raise NotificationError("mailbox unavailable")

        with patch("events.service.checkin_service.send_ticket_email", side_effect=fail_for_guest0):
            report = checkin_service.confirm_order_and_send_tickets(pending_order)

        assert report.emails_sent == 1
        assert report.errors == ["guest0@example.com: mailbox unavailable"]
        failed = pending_order.tickets.get(ticket_email="guest0@example.com")
        assert failed.emailed_at is None
        assert failed.validation_code

    def test_failed_ticket_is_retried_on_next_dispatch(self, pending_order: Order) -> None:
        with patch(
            "events.service.checkin_service.send_ticket_email", side_effect=NotificationError("down")
        ) as mock_send:
            report = checkin_service.confirm_order_and_send_tickets(pending_order)
        assert report.emails_sent == 0
        assert mock_send.call_count == 2

        report = checkin_service.confirm_order_and_send_tickets(pending_order)

        assert report.emails_sent == 2
        assert len(mail.outbox) == 2

    def test_unexpected_backend_error_is_collected_and_retried(self, pending_order: Order) -> None:
        with patch(
            "django.core.mail.EmailMultiAlternatives.send", side_effect=[ValueError("provider rejected payload"), 1]
        ):
            report = checkin_service.confirm_order_and_send_tickets(pending_order)

        assert report.emails_sent == 1
        assert len(report.errors) == 1
        assert report.errors[0].endswith(": provider rejected payload")
        assert pending_order.tickets.filter(emailed_at__isnull=True).count() == 1

        retry = checkin_service.confirm_order_and_send_tickets(pending_order)

        assert retry.emails_sent == 1
        assert retry.errors == []
        assert len(mail.outbox) == 1
        assert not pending_order.tickets.filter(emailed_at__isnull=True).exists()

    def test_rendering_error_does_not_stop_the_batch(self, pending_order: Order) -> None:
        with patch("events.service.ticket_notification_service.make_qr_png", side_effect=TypeError("bad image")):
            report = checkin_service.confirm_order_and_send_tickets(pending_order)

        assert report.emails_sent == 0
        assert sorted(report.errors) == ["guest0@example.com: bad image", "guest1@example.com: bad image"]
        assert pending_order.tickets.filter(emailed_at__isnull=True).count() == 2

    def test_rejected_order_cannot_be_dispatched(self, pending_order: Order) -> None:
        order_service.reject_order(pending_order)

        with pytest.raises(InvalidTransitionError):
            checkin_service.confirm_order_and_send_tickets(pending_order)


class TestScan:
    def test_check_in_then_out(self, confirmed_order: Order, staff_code: StaffAccessCode) -> None:
        code = _first_code(confirmed_order)

        check_in = checkin_service.scan(code, staff_code, "check_in")
        again = checkin_service.scan(code, staff_code, "check_in")
        check_out = checkin_service.scan(code, staff_code, "check_out")
        out_again = checkin_service.scan(code, staff_code, "check_out")

        assert check_in.success is True
        assert check_in.ticket is not None
        assert check_in.ticket.checked_in_at is not None
        assert again.success is False
        assert again.reason == "already_checked_in"
        assert check_out.success is True
        assert out_again.success is False
        assert out_again.reason == "already_checked_out"
        ticket = Ticket.objects.get(validation_code=code)
        assert ticket.checked_out_at is not None
        assert ticket.checked_out_at >= ticket.checked_in_at
        assert list(
            StaffActionLog.objects.filter(ticket=ticket).order_by("created_at").values_list("action", flat=True)
        ) == [StaffActionLog.Action.CHECK_IN, StaffActionLog.Action.CHECK_OUT]

    def test_code_is_case_insensitive(self, confirmed_order: Order, staff_code: StaffAccessCode) -> None:
        code = _first_code(confirmed_order)

        result = checkin_service.scan(f"  {code.lower()} ", staff_code, "check_in")

        assert result.success is True

    def test_check_out_before_check_in(self, confirmed_order: Order, staff_code: StaffAccessCode) -> None:
        result = checkin_service.scan(_first_code(confirmed_order), staff_code, "check_out")

        assert result.success is False
        assert result.reason == "not_checked_in"
        assert result.message == "Ticket hasn't checked in."

    def test_unknown_code(self, staff_code: StaffAccessCode) -> None:
        result = checkin_service.scan("TKT-00000000-AAAAAAAA", staff_code, "check_in")

        assert result.success is False
        assert result.reason == "not_found"
        assert result.ticket is None
        assert not StaffActionLog.objects.exists()

    def test_code_of_another_event_is_not_found(
        self, confirmed_order: Order, owner: User, next_week: t.Any
    ) -> None:
        other = Event.objects.create(owner=owner, name="Other", location="Faro", start=next_week, tickets_number=5)

        foreign_code = staff_access_service.issue(other, "Door B")

        result = checkin_service.scan(_first_code(confirmed_order), foreign_code, "check_in")

        assert result.reason == "not_found"

    def test_ticket_of_cancelled_order_is_not_confirmed(
        self, confirmed_order: Order, staff_code: StaffAccessCode
    ) -> None:
        code = _first_code(confirmed_order)
        Order.objects.filter(pk=confirmed_order.pk).update(status=Order.Status.CANCELLED)
        Ticket.objects.filter(order=confirmed_order).update(status=Order.Status.CANCELLED)

        result = checkin_service.scan(code, staff_code, "check_in")

        assert result.success is False
        assert result.reason == "not_confirmed"
        assert result.message == "Ticket is not confirmed (status: cancelled)."

    def test_bus_info(
        self,
        event: Event,
        user: User,
        table: Table,
        bus_outbound: Bus,
        bus_return: Bus,
        staff_code: StaffAccessCode,
        place_order: PlaceOrder,
    ) -> None:
        order = place_order(event, user, 1, table_id=table.pk, bus_outbound_id=bus_outbound.pk)
        order_service.confirm_order(order)
        checkin_service.issue_codes(order)

        result = checkin_service.scan(_first_code(order), staff_code, "bus_info")

        assert result.success is True
        assert result.bus is not None
        assert result.bus.outbound is not None
        assert result.bus.outbound.location == "Porto"
        assert result.bus.return_trip is None
        assert result.bus.table_name == "Table 1"
        assert not StaffActionLog.objects.exists()


class TestDoorViews:
    def test_check_stats(self, event: Event, user: User, staff_code: StaffAccessCode, place_order: PlaceOrder) -> None:
        order = order_service.confirm_order(place_order(event, user, 3))
        checkin_service.issue_codes(order)
        place_order(event, user, 2)
        codes = list(order.tickets.values_list("validation_code", flat=True))
        checkin_service.scan(codes[0], staff_code, "check_in")
        checkin_service.scan(codes[1], staff_code, "check_in")
        checkin_service.scan(codes[1], staff_code, "check_out")

        stats = checkin_service.get_event_check_stats(event)

        assert stats.total == 3
        assert stats.checked_in == 2
        assert stats.checked_out == 1
        assert stats.pending == 1

    def test_attendees_are_confirmed_only(self, event: Event, user: User, place_order: PlaceOrder) -> None:
        order_service.confirm_order(place_order(event, user, 2))
        place_order(event, user, 1)

        attendees = list(checkin_service.get_event_attendees(event))

        assert [a.ticket_email for a in attendees] == ["guest0@example.com", "guest1@example.com"]

    def test_actions_log_is_newest_first_and_limited(
        self, confirmed_order: Order, staff_code: StaffAccessCode
    ) -> None:
        for code in confirmed_order.tickets.values_list("validation_code", flat=True):
            checkin_service.scan(code, staff_code, "check_in")

        actions = checkin_service.get_event_actions_log(confirmed_order.event, limit=1)

        assert len(actions) == 1
        assert actions[0].action == StaffActionLog.Action.CHECK_IN
        assert actions[0].staff_name == "Door A"
        assert StaffActionLog.objects.filter(event=confirmed_order.event).count() == 2


@patch("events.service.checkin_service.send_ticket_email")
def test_dispatch_only_touches_coded_tickets(mock_send: MagicMock, pending_order: Order) -> None:
    order = order_service.confirm_order(pending_order)

    assert checkin_service.dispatch_ticket_emails(order) == (0, [])
    mock_send.assert_not_called()
