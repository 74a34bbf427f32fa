from ninja_extra import ControllerBase, api_controller, route

from common.schema import ErrorResponse
from common.throttling import StaffLoginThrottle, StaffScanThrottle
from events import schema
from events.authentication import StaffTokenAuth, staff_credential
from events.service import checkin_service, staff_access_service


@api_controller("/staff", tags=["Staff"])
class StaffController(ControllerBase):
    """Door staff endpoints. Staff log in with an access code, not with an account."""

    @route.post(
        "/login",
        url_name="staff_login",
        response={200: schema.StaffSessionSchema, 403: ErrorResponse},
        throttle=StaffLoginThrottle(),
    )
    def login(self, payload: schema.StaffLoginSchema) -> schema.StaffSessionSchema:
        """Exchange an access code for a staff token.

        Send the token in the ``X-Staff-Token`` header of every scan. Codes are case-insensitive
        and only work from 2 hours before the event starts until 24 hours after.
        """
        credential = staff_access_service.validate(payload.code).raise_for_failure()
        return schema.StaffSessionSchema(
            token=staff_access_service.issue_staff_token(credential),
            name=credential.name,
            event=schema.MinimalEventSchema.from_orm(credential.event),
            valid_until=credential.valid_until,
        )

    @route.post(
        "/scan",
        url_name="staff_scan",
        auth=StaffTokenAuth(),
        response={200: schema.ScanResult, 403: ErrorResponse},
        throttle=StaffScanThrottle(),
    )
    def scan(self, payload: schema.ScanRequestSchema) -> schema.ScanResult:
        """Check a ticket in or out, or look up its bus and table.

        Refusals (unknown code, unconfirmed ticket, already checked in...) come back with
        ``success: false`` and a ``reason``.
        """
        return checkin_service.scan(payload.code, staff_credential(self.context.request), payload.direction)

    @route.get(
        "/stats",
        url_name="staff_check_stats",
        auth=StaffTokenAuth(),
        response={200: schema.CheckStats, 403: ErrorResponse},
    )
    def stats(self) -> schema.CheckStats:
        """Door counters for the event the staff member is working."""
        return checkin_service.get_event_check_stats(staff_credential(self.context.request).event)
