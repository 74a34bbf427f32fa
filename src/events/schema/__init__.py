"""Events schema package.

Schemas are grouped by the models they describe and re-exported here.
"""

from .event import (
    AvailabilityQuerySchema,
    AvailabilitySchema,
    BusCreateSchema,
    BusSchema,
    EventCreateSchema,
    EventModerationSchema,
    EventSchema,
    EventTicketStats,
    EventUpdateSchema,
    MinimalEventSchema,
    ResourceKind,
    TableCreateSchema,
    TableSchema,
    TicketAllowanceSchema,
)
from .order import (
    AdminOrderSchema,
    AdminTicketSchema,
    DispatchReport,
    MinimalBusSchema,
    MinimalTableSchema,
    OrderCreateSchema,
    OrderSchema,
    PaymentProofResponse,
    TicketPurchaseItem,
    TicketSchema,
)
from .staff import (
    BusInfo,
    BusLeg,
    CheckStats,
    ScanDirection,
    ScanFailureReason,
    ScanRequestSchema,
    ScanResult,
    StaffAccessCodeCreateSchema,
    StaffAccessCodeSchema,
    StaffActionSchema,
    StaffLoginSchema,
    StaffSessionSchema,
    TicketSummary,
)

__all__ = [
    "AdminOrderSchema",
    "AdminTicketSchema",
    "AvailabilityQuerySchema",
    "AvailabilitySchema",
    "BusCreateSchema",
    "BusInfo",
    "BusLeg",
    "BusSchema",
    "CheckStats",
    "DispatchReport",
    "EventCreateSchema",
    "EventModerationSchema",
    "EventSchema",
    "EventTicketStats",
    "EventUpdateSchema",
    "MinimalBusSchema",
    "MinimalEventSchema",
    "MinimalTableSchema",
    "OrderCreateSchema",
    "OrderSchema",
    "PaymentProofResponse",
    "ResourceKind",
    "ScanDirection",
    "ScanFailureReason",
    "ScanRequestSchema",
    "ScanResult",
    "StaffAccessCodeCreateSchema",
    "StaffAccessCodeSchema",
    "StaffActionSchema",
    "StaffLoginSchema",
    "StaffSessionSchema",
    "TableCreateSchema",
    "TableSchema",
    "TicketAllowanceSchema",
    "TicketPurchaseItem",
    "TicketSchema",
    "TicketSummary",
]
