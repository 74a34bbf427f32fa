"""Event, table and bus schemas."""

import typing as t
from decimal import Decimal
from uuid import UUID

from ninja import ModelSchema, Schema
from pydantic import AwareDatetime, Field

from common.schema import OneToOneFiftyString, OneToTwoFiftyFiveString, StrippedString
from events.models import Bus, Event, Table

ResourceKind = t.Literal["event", "table", "bus_outbound", "bus_return"]


class MinimalEventSchema(ModelSchema):
    id: UUID

    class Meta:
        model = Event
        fields = ["id", "name", "location", "start", "status"]


class EventSchema(ModelSchema):
    id: UUID
    owner_id: UUID
    status: Event.Status
    price_bus: Decimal
    price_no_bus: Decimal

    class Meta:
        model = Event
        fields = [
            "id",
            "name",
            "description",
            "location",
            "start",
            "status",
            "tickets_number",
            "available_tickets",
            "price_bus",
            "price_no_bus",
            "image_url",
            "payment_iban",
            "payment_mbway",
            "payment_name",
        ]


class EventCreateSchema(Schema):
    name: OneToTwoFiftyFiveString
    description: StrippedString = ""
    location: OneToTwoFiftyFiveString
    start: AwareDatetime
    tickets_number: int = Field(..., ge=1)
    price_bus: Decimal = Field(Decimal("0"), ge=0, max_digits=8, decimal_places=2)
    price_no_bus: Decimal = Field(Decimal("0"), ge=0, max_digits=8, decimal_places=2)
    payment_iban: StrippedString = ""
    payment_mbway: StrippedString = ""
    payment_name: StrippedString = ""


class EventUpdateSchema(Schema):
    name: OneToTwoFiftyFiveString | None = None
    description: StrippedString | None = None
    location: OneToTwoFiftyFiveString | None = None
    start: AwareDatetime | None = None
    tickets_number: int | None = Field(None, ge=1)
    price_bus: Decimal | None = Field(None, ge=0, max_digits=8, decimal_places=2)
    price_no_bus: Decimal | None = Field(None, ge=0, max_digits=8, decimal_places=2)
    payment_iban: StrippedString | None = None
    payment_mbway: StrippedString | None = None
    payment_name: StrippedString | None = None


class EventModerationSchema(Schema):
    status: t.Literal["approved", "rejected"]


class TableSchema(ModelSchema):
    id: UUID
    occupied: int = 0
    available: int = 0

    class Meta:
        model = Table
        fields = ["id", "name", "capacity"]


class TableCreateSchema(Schema):
    name: OneToOneFiftyString
    capacity: int = Field(..., ge=1)


class BusSchema(ModelSchema):
    id: UUID
    direction: Bus.Direction
    occupied: int = 0
    available: int = 0

    class Meta:
        model = Bus
        fields = ["id", "direction", "location", "departs_at", "capacity"]


class BusCreateSchema(Schema):
    direction: Bus.Direction
    location: OneToTwoFiftyFiveString
    departs_at: AwareDatetime
    capacity: int = Field(..., ge=1)


class AvailabilitySchema(Schema):
    """Answer to "can N units of this resource be reserved"."""

    available: bool
    spots_left: int
    capacity: int


class TicketAllowanceSchema(Schema):
    """How many tickets the signed-in buyer already holds for an event and may still order."""

    purchased: int
    remaining: int
    limit: int


class AvailabilityQuerySchema(Schema):
    kind: ResourceKind = "event"
    resource_id: UUID | None = None
    quantity: int = Field(1, ge=1)


class EventTicketStats(Schema):
    total: int
    pending: int
    confirmed: int
    rejected: int
    cancelled: int
    expired: int
    available_tickets: int
    tickets_number: int
