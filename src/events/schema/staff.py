"""Staff access code and check-in schemas."""

import typing as t
from datetime import datetime
from uuid import UUID

from ninja import ModelSchema, Schema

from common.schema import OneToOneFiftyString, StrippedString
from events.models import StaffAccessCode, StaffActionLog

from .event import MinimalEventSchema

ScanDirection = t.Literal["check_in", "check_out", "bus_info"]
ScanFailureReason = t.Literal[
    "not_found",
    "not_confirmed",
    "already_checked_in",
    "not_checked_in",
    "already_checked_out",
]


class StaffAccessCodeSchema(ModelSchema):
    id: UUID
    valid_from: datetime
    valid_until: datetime

    class Meta:
        model = StaffAccessCode
        fields = ["id", "code", "name", "is_active", "last_used_at", "created_at"]


class StaffAccessCodeCreateSchema(Schema):
    name: OneToOneFiftyString


class StaffLoginSchema(Schema):
    code: StrippedString


class StaffSessionSchema(Schema):
    token: str
    name: str
    event: MinimalEventSchema
    valid_until: datetime


class ScanRequestSchema(Schema):
    code: StrippedString
    direction: ScanDirection = "check_in"


class TicketSummary(Schema):
    ticket_id: UUID
    ticket_email: str
    table_name: str | None = None
    restrictions: str = ""
    checked_in_at: datetime | None = None
    checked_out_at: datetime | None = None


class BusLeg(Schema):
    location: str
    departs_at: datetime


class BusInfo(Schema):
    outbound: BusLeg | None = None
    return_trip: BusLeg | None = None
    table_name: str | None = None


class ScanResult(Schema):
    """Outcome of a single scan. Failures are reported here, never raised."""

    success: bool
    action: ScanDirection
    reason: ScanFailureReason | None = None
    message: str
    ticket: TicketSummary | None = None
    bus: BusInfo | None = None


class CheckStats(Schema):
    total: int
    checked_in: int
    checked_out: int
    pending: int


class StaffActionSchema(ModelSchema):
    action: StaffActionLog.Action

    class Meta:
        model = StaffActionLog
        fields = ["id", "action", "staff_name", "ticket_email", "created_at"]
