"""Capacity ledger for events, tables and buses.

Event capacity is a stored counter (``Event.available_tickets``) that only moves through
``commit_reservation`` and ``release_reservation``, both single conditional UPDATE statements.
Table and bus capacity is never stored: occupancy is counted live from the tickets that
reference the resource with status pending or confirmed.
"""

import typing as t
from uuid import UUID

import structlog
from django.db.models import Case, Count, F, IntegerField, OuterRef, QuerySet, Subquery, Value, When
from django.db.models.functions import Coalesce, Least
from django.utils import timezone

from events.exceptions import CapacityExceededError, NotFoundError
from events.models import Bus, Event, Order, Table, Ticket
from events.schema import AvailabilitySchema, ResourceKind

logger = structlog.get_logger(__name__)

Availability = AvailabilitySchema

_BUS_DIRECTION: dict[str, tuple[Bus.Direction, str]] = {
    "bus_outbound": (Bus.Direction.OUTBOUND, "bus_outbound"),
    "bus_return": (Bus.Direction.RETURN, "bus_return"),
}


def _live_occupancy(ticket_field: str) -> Coalesce:
    """Subquery counting pending/confirmed tickets pointing at the outer row through ticket_field."""
    counts = (
        Ticket.objects.filter(**{ticket_field: OuterRef("pk"), "status__in": Order.ACTIVE_STATUSES})
        .order_by()
        .values(ticket_field)
        .annotate(c=Count("pk"))
        .values("c")
    )
    return Coalesce(Subquery(counts, output_field=IntegerField()), Value(0))


def count_occupied(resource_kind: ResourceKind, resource_id: UUID) -> int:
    """Count the tickets currently holding a table or bus seat."""
    field = "table" if resource_kind == "table" else _BUS_DIRECTION[resource_kind][1]
    return Ticket.objects.holding_capacity().filter(**{f"{field}_id": resource_id}).count()


def tables_with_availability(event: Event) -> QuerySet[Table]:
    """Tables of an event annotated with live ``occupied`` and ``available`` counts."""
    return (
        Table.objects.filter(event=event)
        .annotate(occupied=_live_occupancy("table"))
        .annotate(available=F("capacity") - F("occupied"))
    )


def buses_with_availability(event: Event, direction: Bus.Direction | None = None) -> QuerySet[Bus]:
    """Buses of an event annotated with live ``occupied`` and ``available`` counts.

    Outbound buses count outbound legs, return buses count return legs.
    """
    qs = Bus.objects.filter(event=event)
    if direction:
        qs = qs.filter(direction=direction)
    return qs.annotate(
        occupied=Case(
            When(direction=Bus.Direction.OUTBOUND, then=_live_occupancy("bus_outbound")),
            default=_live_occupancy("bus_return"),
            output_field=IntegerField(),
        )
    ).annotate(available=F("capacity") - F("occupied"))


def check_availability(resource_kind: ResourceKind, resource_id: UUID, requested_quantity: int) -> Availability:
    """Answer whether ``requested_quantity`` units of a resource can be reserved.

    Insufficient capacity is reported in the result, never raised.

    Raises:
        NotFoundError: if the resource does not exist.
        ValueError: if the quantity is not positive.
    """
    if requested_quantity < 1:
        raise ValueError("Requested quantity must be at least 1.")

    if resource_kind == "event":
        row = Event.objects.filter(pk=resource_id).values("tickets_number", "available_tickets").first()
        if row is None:
            raise NotFoundError("Event not found.")
        capacity, spots_left = row["tickets_number"], row["available_tickets"]
    elif resource_kind == "table":
        table = _table_with_availability(resource_id)
        capacity, spots_left = table.capacity, table.available
    elif resource_kind in _BUS_DIRECTION:
        direction, _ = _BUS_DIRECTION[resource_kind]
        bus = Bus.objects.filter(pk=resource_id, direction=direction).first()
        if bus is None:
            raise NotFoundError("Bus not found.")
        capacity = bus.capacity
        spots_left = capacity - count_occupied(resource_kind, bus.pk)
    else:
        raise ValueError(f"Unknown resource kind: {resource_kind}")

    spots_left = max(spots_left, 0)
    return Availability(available=requested_quantity <= spots_left, spots_left=spots_left, capacity=capacity)


def _table_with_availability(table_id: UUID) -> Table:
    """A single table with live availability."""
    table = (
        Table.objects.filter(pk=table_id)
        .annotate(occupied=_live_occupancy("table"))
        .annotate(available=F("capacity") - F("occupied"))
        .first()
    )
    if table is None:
        raise NotFoundError("Table not found.")
    return table


def commit_reservation(event_id: UUID, quantity: int) -> bool:
    """Atomically take ``quantity`` tickets from the event counter.

    A single conditional UPDATE: it only matches while enough tickets remain, so two callers racing
    for the last unit cannot both succeed. Returns False when nothing was taken.
    """
    updated = Event.objects.filter(pk=event_id, available_tickets__gte=quantity).update(
        available_tickets=F("available_tickets") - quantity,
        updated_at=timezone.now(),
    )
    logger.info(
        "capacity_committed" if updated else "capacity_commit_refused", event_id=str(event_id), quantity=quantity
    )
    return bool(updated)


def release_reservation(event_id: UUID, quantity: int) -> None:
    """Atomically give ``quantity`` tickets back to the event counter, never above ``tickets_number``."""
    Event.objects.filter(pk=event_id).update(
        available_tickets=Least(F("available_tickets") + quantity, F("tickets_number")),
        updated_at=timezone.now(),
    )
    logger.info("capacity_released", event_id=str(event_id), quantity=quantity)


def event_spots_left(event_id: UUID) -> int:
    """Current value of the event counter."""
    return t.cast(int, Event.objects.filter(pk=event_id).values_list("available_tickets", flat=True).first() or 0)


def assert_resource_capacity(
    resource_kind: t.Literal["table", "bus_outbound", "bus_return"],
    resource_id: UUID,
    quantity: int,
    *,
    event: Event,
) -> int:
    """Lock a table or bus row and make sure it can take ``quantity`` more tickets.

    Must run inside ``transaction.atomic``. The row lock serialises concurrent buyers of the
    same resource until the surrounding transaction has inserted its tickets.

    Returns:
        The spots left before this reservation.

    Raises:
        NotFoundError: if the resource does not exist or belongs to another event.
        CapacityExceededError: if fewer than ``quantity`` spots are left.
    """
    resource: Table | Bus | None
    if resource_kind == "table":
        resource = Table.objects.select_for_update().filter(pk=resource_id, event=event).first()
        label = "Table"
    else:
        direction, _ = _BUS_DIRECTION[resource_kind]
        resource = Bus.objects.select_for_update().filter(pk=resource_id, event=event, direction=direction).first()
        label = "Outbound bus" if direction == Bus.Direction.OUTBOUND else "Return bus"
    if resource is None:
        raise NotFoundError(f"{label} not found for this event.")

    spots_left = resource.capacity - count_occupied(resource_kind, resource.pk)
    if quantity > spots_left:
        name = resource.name if isinstance(resource, Table) else resource.location
        logger.info(
            "resource_capacity_exceeded",
            resource_kind=resource_kind,
            resource_id=str(resource_id),
            requested=quantity,
            spots_left=spots_left,
        )
        raise CapacityExceededError(
            resource=resource_kind,
            spots_left=spots_left,
            detail=f"{label} {name!r} has only {max(spots_left, 0)} spot(s) left.",
        )
    return spots_left
