"""Order and ticket lifecycle.

An order and its tickets are created together in one transaction with the event counter
decrement. Every later transition leaves ``pending`` through a conditional UPDATE guarded on
the current status, and tickets always follow their order inside the same transaction.
"""

import typing as t
from collections import Counter
from datetime import datetime, timedelta
from decimal import Decimal
from pathlib import PurePosixPath
from uuid import UUID

import structlog
from django.conf import settings
from django.core.files.uploadedfile import UploadedFile
from django.db import transaction
from django.db.models import Count, Q, QuerySet
from django.template.loader import render_to_string
from django.utils import timezone
from django.utils.translation import gettext_lazy as _
from ninja.errors import HttpError
from ninja_extra.exceptions import PermissionDenied

from accounts.models import User
from common import storage
from common.tasks import send_email
from events.exceptions import (
    CapacityExceededError,
    EventNotOnSaleError,
    InvalidTransitionError,
    PerBuyerLimitExceededError,
)
from events.models import Event, Order, Ticket
from events.schema import EventTicketStats, TicketPurchaseItem
from events.service import capacity_ledger

logger = structlog.get_logger(__name__)

ALLOWED_PROOF_EXTENSIONS = {"pdf", "png", "jpg", "jpeg", "webp", "heic"}

_TRANSITION_VERBS: dict[str, str] = {
    Order.Status.CONFIRMED: "confirmed",
    Order.Status.REJECTED: "rejected",
    Order.Status.CANCELLED: "cancelled",
    Order.Status.EXPIRED: "expired",
}


class OrderService:
    """Creates orders for one buyer on one event.

    Handles:
    - The per-buyer ticket cap
    - Pricing (with or without bus)
    - Atomic reservation on the event counter plus table and bus capacity checks
    """

    def __init__(self, event: Event, buyer: User) -> None:
        """Initialize the order service.

        Args:
            event: The event tickets are bought for.
            buyer: The account placing the order.
        """
        self.event = event
        self.buyer = buyer

    @property
    def max_tickets_per_user(self) -> int:
        return t.cast(int, settings.MAX_TICKETS_PER_USER)

    def get_user_ticket_count(self) -> int:
        """Count the buyer's tickets for this event on pending or confirmed orders."""
        return Ticket.objects.holding_capacity().filter(event=self.event, buyer=self.buyer).count()

    def get_remaining_tickets(self) -> int:
        """How many more tickets the buyer may order for this event."""
        return max(0, self.max_tickets_per_user - self.get_user_ticket_count())

    def validate_per_buyer_cap(self, requested: int) -> None:
        """Refuse the whole request if it would take the buyer over the cap.

        Raises:
            PerBuyerLimitExceededError: never truncates the request to what is left.
        """
        existing = self.get_user_ticket_count()
        if existing + requested > self.max_tickets_per_user:
            logger.info(
                "per_buyer_limit_exceeded",
                user_id=str(self.buyer.id),
                event_id=str(self.event.id),
                existing=existing,
                requested=requested,
            )
            raise PerBuyerLimitExceededError(existing=existing, requested=requested, limit=self.max_tickets_per_user)

    def price_for(self, item: TicketPurchaseItem) -> Decimal:
        """The bus price applies when the ticket has any bus leg and the event charges for it."""
        has_bus = bool(item.bus_outbound_id or item.bus_return_id)
        if has_bus and self.event.price_bus > 0:
            return self.event.price_bus
        return self.event.price_no_bus

    def _assert_assignments(self, items: list[TicketPurchaseItem]) -> None:
        """Check table and bus capacity for every resource the order touches.

        Resources are locked in a stable order so that concurrent orders touching the same
        resources cannot deadlock.
        """
        if any(item.table_id is None for item in items) and self.event.tables.exists():
            raise HttpError(400, str(_("Please choose a table for every ticket.")))

        requested: Counter[tuple[str, UUID]] = Counter()
        for item in items:
            if item.table_id:
                requested[("table", item.table_id)] += 1
            if item.bus_outbound_id:
                requested[("bus_outbound", item.bus_outbound_id)] += 1
            if item.bus_return_id:
                requested[("bus_return", item.bus_return_id)] += 1

        for (kind, resource_id), quantity in sorted(requested.items(), key=lambda entry: str(entry[0][1])):
            capacity_ledger.assert_resource_capacity(
                t.cast(t.Literal["table", "bus_outbound", "bus_return"], kind),
                resource_id,
                quantity,
                event=self.event,
            )

    @transaction.atomic
    def create_order(self, items: list[TicketPurchaseItem]) -> Order:
        """Create a pending order with one ticket per item.

        The per-buyer cap, the event counter decrement, the table and bus checks and the inserts
        all happen in one transaction: any failure rolls back the decrement too.

        Raises:
            EventNotOnSaleError: the event is not approved or already started.
            PerBuyerLimitExceededError: the buyer would exceed the cap.
            CapacityExceededError: the event, a table or a bus is short of spots.
            NotFoundError: a table or bus does not belong to the event.
        """
        if not self.event.is_on_sale:
            raise EventNotOnSaleError(str(_("This event is not on sale.")))

        # Serialise concurrent orders of the same buyer so the cap cannot be raced.
        User.objects.select_for_update().only("pk").get(pk=self.buyer.pk)
        quantity = len(items)
        self.validate_per_buyer_cap(quantity)

        logger.info(
            "order_creation_started",
            user_id=str(self.buyer.id),
            event_id=str(self.event.id),
            ticket_count=quantity,
        )

        if not capacity_ledger.commit_reservation(self.event.pk, quantity):
            raise CapacityExceededError(resource="event", spots_left=capacity_ledger.event_spots_left(self.event.pk))

        self._assert_assignments(items)

        order = Order.objects.create(
            buyer=self.buyer,
            event=self.event,
            total_amount=sum((self.price_for(item) for item in items), Decimal("0")),
        )
        Ticket.objects.bulk_create(
            [
                Ticket(
                    order=order,
                    event=self.event,
                    buyer=self.buyer,
                    table_id=item.table_id,
                    bus_outbound_id=item.bus_outbound_id,
                    bus_return_id=item.bus_return_id,
                    ticket_email=item.ticket_email,
                    restrictions=item.restrictions,
                    status=Order.Status.PENDING,
                )
                for item in items
            ]
        )
        logger.info(
            "order_created",
            order_id=str(order.id),
            user_id=str(self.buyer.id),
            event_id=str(self.event.id),
            ticket_count=quantity,
            total_amount=str(order.total_amount),
        )
        return order


def _refusal_reason(current: str, target: str) -> str:
    if target == Order.Status.CANCELLED:
        return str(_("Only pending orders can be cancelled."))
    return str(_("Only pending orders can be {verb}. This order is {current}.")).format(
        verb=_TRANSITION_VERBS[target], current=current
    )


def _transition(order: Order, target: Order.Status, *, release: bool) -> Order:
    """Move a pending order and its tickets to ``target``.

    The status guard lives in the UPDATE itself, so two concurrent transitions of the same
    order cannot both apply and capacity is released at most once.
    """
    now = timezone.now()
    with transaction.atomic():
        updated = Order.objects.filter(pk=order.pk, status=Order.Status.PENDING).update(status=target, updated_at=now)
        if not updated:
            current = Order.objects.filter(pk=order.pk).values_list("status", flat=True).first()
            logger.info(
                "order_transition_refused", order_id=str(order.pk), current_status=current, target_status=target
            )
            raise InvalidTransitionError(_refusal_reason(current or "missing", target))
        ticket_count = Ticket.objects.filter(order_id=order.pk).update(status=target, updated_at=now)
        if release:
            capacity_ledger.release_reservation(order.event_id, ticket_count)

    order.refresh_from_db()
    logger.info(
        "order_transition",
        order_id=str(order.pk),
        event_id=str(order.event_id),
        from_status=Order.Status.PENDING,
        to_status=target,
        ticket_count=ticket_count,
        released=release,
    )
    return order


def _notify_buyer(order: Order, template: str) -> None:
    """E-mail the buyer about a status change once the transaction has committed."""
    context = {"order": order, "event": order.event, "buyer": order.buyer}
    subject = render_to_string(f"events/emails/{template}_subject.txt", context).strip()
    body = render_to_string(f"events/emails/{template}_body.txt", context)
    transaction.on_commit(lambda: send_email.delay(to=order.buyer.email, subject=subject, body=body))


def confirm_order(order: Order) -> Order:
    """Confirm payment: pending -> confirmed. Capacity was already taken at creation."""
    return _transition(order, Order.Status.CONFIRMED, release=False)


def reject_order(order: Order) -> Order:
    """Reject payment: pending -> rejected, giving the tickets back to the event."""
    order = _transition(order, Order.Status.REJECTED, release=True)
    _notify_buyer(order, "order_rejected")
    return order


def cancel_order(order: Order, user: User) -> Order:
    """Buyer cancellation: pending -> cancelled, giving the tickets back to the event."""
    if order.buyer_id != user.pk:
        raise PermissionDenied(str(_("Only the buyer can cancel this order.")))
    return _transition(order, Order.Status.CANCELLED, release=True)


def expire_order(order: Order) -> Order:
    """Timeout: pending -> expired, giving the tickets back to the event."""
    order = _transition(order, Order.Status.EXPIRED, release=True)
    _notify_buyer(order, "order_expired")
    return order


def find_expirable_orders(now: datetime | None = None) -> QuerySet[Order]:
    """Pending orders older than the expiry window that never received a payment proof."""
    cutoff = (now or timezone.now()) - timedelta(hours=settings.ORDER_PENDING_EXPIRY_HOURS)
    return Order.objects.expirable(cutoff).select_related("event", "buyer").order_by("created_at")


def expire_pending_orders(now: datetime | None = None) -> int:
    """Expire every expirable order. Orders that changed state meanwhile are skipped."""
    expired = 0
    for order in find_expirable_orders(now):
        try:
            expire_order(order)
        except InvalidTransitionError:
            logger.info("order_expiry_skipped", order_id=str(order.pk))
            continue
        expired += 1
    logger.info("pending_orders_expired", count=expired)
    return expired


def submit_payment_proof(order: Order, file: UploadedFile) -> Order:
    """Attach a payment proof to a pending order, replacing any earlier one."""
    if order.status != Order.Status.PENDING:
        raise InvalidTransitionError(str(_("Payment proofs can only be sent for pending orders.")))
    extension = PurePosixPath(file.name or "").suffix.lstrip(".").lower()
    if extension not in ALLOWED_PROOF_EXTENSIONS:
        raise HttpError(400, str(_("Unsupported file type.")))

    now = timezone.now()
    path = f"{settings.PAYMENT_PROOF_PREFIX}/order-{order.pk}/{int(now.timestamp() * 1000)}.{extension}"
    previous = storage.path_from_url(order.payment_proof_url)
    url = storage.upload_file(file, path)

    updated = Order.objects.filter(pk=order.pk, status=Order.Status.PENDING).update(
        payment_proof_url=url, payment_submitted_at=now, updated_at=now
    )
    if not updated:
        storage.delete_file(storage.path_from_url(url) or path)
        raise InvalidTransitionError(str(_("Payment proofs can only be sent for pending orders.")))
    if previous:
        storage.delete_file(previous)

    order.refresh_from_db()
    logger.info("payment_proof_submitted", order_id=str(order.pk), replaced=bool(previous))
    return order


def send_order_tickets(order: Order, admin: User) -> Order:
    """Release the tickets of a confirmed order for download."""
    from events.service.checkin_service import issue_codes

    if order.status != Order.Status.CONFIRMED:
        raise InvalidTransitionError(str(_("Only confirmed orders can have their tickets sent.")))
    issue_codes(order)

    now = timezone.now()
    with transaction.atomic():
        Order.objects.filter(pk=order.pk).update(
            tickets_sent=True, tickets_sent_at=now, tickets_sent_by=admin, updated_at=now
        )
        Ticket.objects.filter(order_id=order.pk).update(available_for_download=True, sent_at=now, updated_at=now)

    order.refresh_from_db()
    logger.info("order_tickets_sent", order_id=str(order.pk), sent_by=str(admin.pk))
    return order


def orders_for_event(event: Event) -> QuerySet[Order]:
    """All orders of an event, newest first."""
    return Order.objects.filter(event=event).select_related("buyer", "event").prefetch_related(
        "tickets__table", "tickets__bus_outbound", "tickets__bus_return"
    )


def orders_awaiting_review(user: User, event: Event | None = None) -> QuerySet[Order]:
    """Pending orders with a payment proof on events the user manages, oldest submission first."""
    qs = Order.objects.for_event_managers(user).awaiting_review()
    if event is not None:
        qs = qs.filter(event=event)
    return qs.select_related("buyer", "event").prefetch_related("tickets__table")


def confirmed_orders() -> QuerySet[Order]:
    """Every confirmed order on the platform."""
    return (
        Order.objects.filter(status=Order.Status.CONFIRMED)
        .select_related("buyer", "event")
        .prefetch_related("tickets__table", "tickets__bus_outbound", "tickets__bus_return")
    )


def get_event_ticket_stats(event: Event) -> EventTicketStats:
    """Ticket counts per status for one event."""
    counts = Ticket.objects.filter(event=event).aggregate(
        total=Count("id"),
        **{status: Count("id", filter=Q(status=status)) for status in Order.Status.values},
    )
    return EventTicketStats(
        **counts,
        available_tickets=event.available_tickets,
        tickets_number=event.tickets_number,
    )

