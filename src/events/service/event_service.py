import typing as t
from pathlib import PurePosixPath

import structlog
from django.db import transaction
from django.db.models import F, QuerySet
from django.utils import timezone
from django.utils.translation import gettext_lazy as _
from ninja.errors import HttpError
from ninja.files import UploadedFile

from accounts.models import User
from common import storage
from events.models import Bus, Event, Order, Table, Ticket
from events.schema import BusCreateSchema, EventCreateSchema, EventUpdateSchema, TableCreateSchema
from events.service import update_db_instance

logger = structlog.get_logger(__name__)

EVENT_IMAGE_PREFIX = "event-images"
ALLOWED_IMAGE_EXTENSIONS = {"png", "jpg", "jpeg", "webp"}


def visible_events(user: t.Any) -> QuerySet[Event]:
    """Upcoming events the user may see, soonest first."""
    return Event.objects.for_user(user).upcoming().order_by("start")


def pending_events() -> QuerySet[Event]:
    """Events waiting for a platform admin's decision."""
    return Event.objects.filter(status=Event.Status.PENDING).select_related("owner").order_by("created_at")


def create_event(owner: User, payload: EventCreateSchema) -> Event:
    """Create an event in ``pending`` status with every ticket available.

    Events created by a platform admin skip moderation.
    """
    status = Event.Status.APPROVED if owner.is_admin else Event.Status.PENDING
    event = Event.objects.create(owner=owner, status=status, **payload.model_dump())
    logger.info("event_created", event_id=str(event.pk), owner_id=str(owner.pk), status=status)
    return event


@transaction.atomic
def update_event(event: Event, payload: EventUpdateSchema) -> Event:
    """Update event details.

    A new ``tickets_number`` moves ``available_tickets`` by the same delta in one conditional
    UPDATE, and is refused when it would drop below the tickets already sold.
    """
    data = payload.model_dump(exclude_unset=True)
    new_total = data.pop("tickets_number", None)
    if new_total is not None and new_total != event.tickets_number:
        resized = Event.objects.filter(pk=event.pk, tickets_number__lte=F("available_tickets") + new_total).update(
            available_tickets=F("available_tickets") + new_total - F("tickets_number"),
            tickets_number=new_total,
            updated_at=timezone.now(),
        )
        if not resized:
            event.refresh_from_db(fields=["tickets_number", "available_tickets"])
            raise HttpError(
                400,
                str(_("Cannot set tickets below the {sold} already sold.")).format(sold=event.sold_tickets),
            )
        logger.info("event_capacity_changed", event_id=str(event.pk), tickets_number=new_total)

    event = update_db_instance(event, None, **data)
    event.refresh_from_db()
    return event


def moderate_event(event: Event, status: str) -> Event:
    """Approve or reject an event. Only approved events are on sale."""
    event = update_db_instance(event, None, status=status)
    logger.info("event_moderated", event_id=str(event.pk), status=status)
    return event


def add_table(event: Event, payload: TableCreateSchema) -> Table:
    table = Table.objects.create(event=event, **payload.model_dump())
    logger.info("table_added", event_id=str(event.pk), table_id=str(table.pk), capacity=table.capacity)
    return table


def add_bus(event: Event, payload: BusCreateSchema) -> Bus:
    bus = Bus.objects.create(event=event, **payload.model_dump())
    logger.info("bus_added", event_id=str(event.pk), bus_id=str(bus.pk), direction=bus.direction)
    return bus


def delete_table(table: Table) -> None:
    """Delete a table nobody has ever been seated at."""
    if Ticket.objects.filter(table=table).exists():
        raise HttpError(400, str(_("This table already has tickets and cannot be deleted.")))
    table.delete()
    logger.info("table_deleted", table_id=str(table.pk))


def delete_bus(bus: Bus) -> None:
    """Delete a bus no pending or confirmed ticket rides on."""
    holding = Ticket.objects.filter(status__in=Order.ACTIVE_STATUSES)
    if holding.filter(bus_outbound=bus).exists() or holding.filter(bus_return=bus).exists():
        raise HttpError(400, str(_("This bus already has passengers and cannot be deleted.")))
    bus.delete()
    logger.info("bus_deleted", bus_id=str(bus.pk))


def upload_event_image(event: Event, file: UploadedFile) -> Event:
    """Store a new event image and drop the previous one."""
    extension = PurePosixPath(file.name or "").suffix.lstrip(".").lower()
    if extension not in ALLOWED_IMAGE_EXTENSIONS:
        raise HttpError(400, str(_("Unsupported image type.")))

    path = f"{EVENT_IMAGE_PREFIX}/{event.pk}/{int(timezone.now().timestamp() * 1000)}.{extension}"
    previous = storage.path_from_url(event.image_url)
    url = storage.upload_file(file, path)
    event = update_db_instance(event, None, image_url=url)
    if previous:
        storage.delete_file(previous)
    logger.info("event_image_uploaded", event_id=str(event.pk), replaced=bool(previous))
    return event
