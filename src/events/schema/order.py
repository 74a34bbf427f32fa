"""Order and ticket schemas."""

import typing as t
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from ninja import ModelSchema, Schema
from pydantic import EmailStr, Field, StringConstraints

from accounts.schema import MinimalUserSchema
from events.models import Bus, Order, Table, Ticket

from .event import MinimalEventSchema

RestrictionsString = t.Annotated[str, StringConstraints(strip_whitespace=True, max_length=500)]


class TicketPurchaseItem(Schema):
    ticket_email: EmailStr
    table_id: UUID | None = None
    bus_outbound_id: UUID | None = None
    bus_return_id: UUID | None = None
    restrictions: RestrictionsString = ""


class OrderCreateSchema(Schema):
    items: list[TicketPurchaseItem] = Field(..., min_length=1)


class MinimalTableSchema(ModelSchema):
    id: UUID

    class Meta:
        model = Table
        fields = ["id", "name"]


class MinimalBusSchema(ModelSchema):
    id: UUID

    class Meta:
        model = Bus
        fields = ["id", "direction", "location", "departs_at"]


class TicketSchema(ModelSchema):
    """A buyer's view of a ticket. The validation code is only exposed once the ticket is released."""

    id: UUID
    status: Order.Status
    table: MinimalTableSchema | None = None
    bus_outbound: MinimalBusSchema | None = None
    bus_return: MinimalBusSchema | None = None
    validation_code: str | None = None
    event: MinimalEventSchema

    class Meta:
        model = Ticket
        fields = [
            "id",
            "ticket_email",
            "restrictions",
            "status",
            "available_for_download",
            "sent_at",
            "checked_in_at",
            "checked_out_at",
        ]

    @staticmethod
    def resolve_validation_code(obj: Ticket) -> str | None:
        return obj.validation_code if obj.available_for_download else None


class AdminTicketSchema(ModelSchema):
    id: UUID
    status: Order.Status
    table: MinimalTableSchema | None = None
    bus_outbound: MinimalBusSchema | None = None
    bus_return: MinimalBusSchema | None = None

    class Meta:
        model = Ticket
        fields = [
            "id",
            "ticket_email",
            "restrictions",
            "status",
            "validation_code",
            "available_for_download",
            "sent_at",
            "emailed_at",
            "checked_in_at",
            "checked_out_at",
        ]


class OrderSchema(ModelSchema):
    id: UUID
    status: Order.Status
    total_amount: Decimal
    event: MinimalEventSchema
    tickets: list[TicketSchema]

    class Meta:
        model = Order
        fields = [
            "id",
            "status",
            "total_amount",
            "payment_proof_url",
            "payment_submitted_at",
            "tickets_sent",
            "tickets_sent_at",
            "created_at",
        ]

    @staticmethod
    def resolve_tickets(obj: Order) -> list[Ticket]:
        return list(obj.tickets.all())


class AdminOrderSchema(ModelSchema):
    id: UUID
    status: Order.Status
    total_amount: Decimal
    buyer: MinimalUserSchema
    event: MinimalEventSchema
    tickets: list[AdminTicketSchema]

    class Meta:
        model = Order
        fields = [
            "id",
            "status",
            "total_amount",
            "payment_proof_url",
            "payment_submitted_at",
            "tickets_sent",
            "tickets_sent_at",
            "created_at",
        ]

    @staticmethod
    def resolve_tickets(obj: Order) -> list[Ticket]:
        return list(obj.tickets.all())


class DispatchReport(Schema):
    """Outcome of confirming an order and e-mailing its tickets.

    Delivery failures never abort the batch; each is reported as ``"<email>: <reason>"``.
    """

    order_id: UUID
    status: Order.Status
    codes_issued: int = 0
    emails_sent: int = 0
    errors: list[str] = Field(default_factory=list)


class PaymentProofResponse(Schema):
    payment_proof_url: str
    payment_submitted_at: datetime
