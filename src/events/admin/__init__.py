"""Events admin module.

Django autodiscover imports this module, which registers the admin classes of the submodules.
"""

from events.admin.event import BusAdmin, EventAdmin, TableAdmin
from events.admin.order import OrderAdmin, TicketAdmin
from events.admin.staff import StaffAccessCodeAdmin, StaffActionLogAdmin

__all__ = [
    "BusAdmin",
    "EventAdmin",
    "OrderAdmin",
    "StaffAccessCodeAdmin",
    "StaffActionLogAdmin",
    "TableAdmin",
    "TicketAdmin",
]
