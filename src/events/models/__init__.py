from .event import Bus, Event, Table
from .order import Order, Ticket
from .staff import StaffAccessCode, StaffActionLog

__all__ = [
    "Bus",
    "Event",
    "Order",
    "StaffAccessCode",
    "StaffActionLog",
    "Table",
    "Ticket",
]
