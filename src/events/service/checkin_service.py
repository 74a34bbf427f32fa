"""Validation codes and door scanning.

Codes are issued once per ticket of a confirmed order. Scans move a ticket through
check-in and check-out with conditional UPDATEs on the expected prior state, so a code
scanned twice at the same moment succeeds exactly once.
"""

import secrets

import structlog
from django.db import IntegrityError, transaction
from django.db.models import QuerySet
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from events.exceptions import CodeGenerationError, InvalidTransitionError, NotificationError
from events.models import Event, Order, StaffAccessCode, StaffActionLog, Ticket
from events.schema import (
    BusInfo,
    BusLeg,
    CheckStats,
    DispatchReport,
    ScanDirection,
    ScanFailureReason,
    ScanResult,
    TicketSummary,
)
from events.service import order_service
from events.service.ticket_notification_service import send_ticket_email

logger = structlog.get_logger(__name__)

CODE_PREFIX = "TKT"
CODE_RANDOM_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ234567"
CODE_RANDOM_LENGTH = 8
MAX_CODE_ATTEMPTS = 5
DEFAULT_ACTIONS_LIMIT = 50


def generate_validation_code(ticket: Ticket) -> str:
    """Build ``TKT-<first 8 hex of the ticket id>-<8 random base32 chars>``."""
    random_part = "".join(secrets.choice(CODE_RANDOM_ALPHABET) for _position in range(CODE_RANDOM_LENGTH))
    return f"{CODE_PREFIX}-{ticket.pk.hex[:8].upper()}-{random_part}"


def normalize_code(code: str) -> str:
    """Scanners and manual entry may differ in case and surrounding whitespace."""
    return code.strip().upper()


def issue_codes(order: Order) -> list[Ticket]:
    """Give every ticket of a confirmed order a validation code.

    Tickets that already have a code keep it, so calling this again is harmless.

    Returns:
        Only the tickets that received a code in this call.

    Raises:
        InvalidTransitionError: the order is not confirmed.
        CodeGenerationError: no unique code could be drawn for a ticket.
    """
    if order.status != Order.Status.CONFIRMED:
        raise InvalidTransitionError(str(_("Validation codes are only issued for confirmed orders.")))

    issued: list[Ticket] = []
    for ticket in Ticket.objects.filter(order_id=order.pk, validation_code__isnull=True):
        for attempt in range(1, MAX_CODE_ATTEMPTS + 1):
            code = generate_validation_code(ticket)
            try:
                with transaction.atomic():
                    updated = Ticket.objects.filter(
                        pk=ticket.pk, status=Order.Status.CONFIRMED, validation_code__isnull=True
                    ).update(validation_code=code, updated_at=timezone.now())
            except IntegrityError:
                logger.warning("validation_code_collision", ticket_id=str(ticket.pk), attempt=attempt)
                continue
            if updated:
                ticket.validation_code = code
                issued.append(ticket)
            break
        else:
            raise CodeGenerationError(str(_("Could not generate a unique validation code.")))

    logger.info("validation_codes_issued", order_id=str(order.pk), count=len(issued))
    return issued


def dispatch_ticket_emails(order: Order) -> tuple[int, list[str]]:
    """E-mail every coded, not yet e-mailed ticket of a confirmed order.

    Each ticket is claimed by setting ``emailed_at`` before sending, so concurrent or repeated
    dispatches never e-mail a ticket twice. A failed delivery releases the claim and is reported
    as ``"<email>: <reason>"`` without stopping the others.
    """
    sent = 0
    errors: list[str] = []
    for ticket in Ticket.objects.awaiting_email().filter(order_id=order.pk).with_assignments():
        claimed_at = timezone.now()
        if not Ticket.objects.filter(pk=ticket.pk, emailed_at__isnull=True).update(emailed_at=claimed_at):
            continue
        try:
            send_ticket_email(ticket)
        except NotificationError as e:
            Ticket.objects.filter(pk=ticket.pk, emailed_at=claimed_at).update(emailed_at=None)
            logger.warning("ticket_email_failed", ticket_id=str(ticket.pk), order_id=str(order.pk), error=str(e))
            errors.append(f"{ticket.ticket_email}: {e}")
            continue
        sent += 1
    logger.info("ticket_emails_dispatched", order_id=str(order.pk), sent=sent, failed=len(errors))
    return sent, errors


def confirm_order_and_send_tickets(order: Order) -> DispatchReport:
    """Confirm a pending order, issue its codes and e-mail its tickets.

    An already confirmed order skips straight to issuing and dispatching, which only touches
    tickets still missing a code or an e-mail.
    """
    if order.status != Order.Status.CONFIRMED:
        order = order_service.confirm_order(order)
    issued = issue_codes(order)
    emails_sent, errors = dispatch_ticket_emails(order)
    return DispatchReport(
        order_id=order.pk,
        status=order.status,
        codes_issued=len(issued),
        emails_sent=emails_sent,
        errors=errors,
    )


def _summary(ticket: Ticket) -> TicketSummary:
    return TicketSummary(
        ticket_id=ticket.pk,
        ticket_email=ticket.ticket_email,
        table_name=ticket.table.name if ticket.table else None,
        restrictions=ticket.restrictions,
        checked_in_at=ticket.checked_in_at,
        checked_out_at=ticket.checked_out_at,
    )


def _failure(direction: ScanDirection, reason: ScanFailureReason, message: str, ticket: Ticket | None) -> ScanResult:
    logger.info(
        "ticket_scan_refused",
        direction=direction,
        reason=reason,
        ticket_id=str(ticket.pk) if ticket else None,
    )
    return ScanResult(
        success=False,
        action=direction,
        reason=reason,
        message=message,
        ticket=_summary(ticket) if ticket else None,
    )


def _refresh_door_state(ticket: Ticket) -> None:
    ticket.refresh_from_db(fields=["status", "checked_in_at", "checked_out_at"])


def _check_in(ticket: Ticket, credential: StaffAccessCode) -> ScanResult:
    now = timezone.now()
    with transaction.atomic():
        updated = Ticket.objects.filter(
            pk=ticket.pk, status=Order.Status.CONFIRMED, checked_in_at__isnull=True
        ).update(checked_in_at=now, updated_at=now)
        if updated:
            StaffActionLog.record(credential, ticket, StaffActionLog.Action.CHECK_IN)

    if not updated:
        _refresh_door_state(ticket)
        if ticket.status != Order.Status.CONFIRMED:
            return _failure(
                "check_in",
                "not_confirmed",
                str(_("Ticket is not confirmed (status: {status}).")).format(status=ticket.status),
                ticket,
            )
        return _failure("check_in", "already_checked_in", str(_("Ticket already checked in.")), ticket)

    ticket.checked_in_at = now
    logger.info("ticket_scanned", direction="check_in", ticket_id=str(ticket.pk), staff=credential.name)
    return ScanResult(success=True, action="check_in", message=str(_("Checked in.")), ticket=_summary(ticket))


def _check_out(ticket: Ticket, credential: StaffAccessCode) -> ScanResult:
    now = timezone.now()
    with transaction.atomic():
        updated = Ticket.objects.filter(
            pk=ticket.pk,
            status=Order.Status.CONFIRMED,
            checked_in_at__isnull=False,
            checked_out_at__isnull=True,
        ).update(checked_out_at=now, updated_at=now)
        if updated:
            StaffActionLog.record(credential, ticket, StaffActionLog.Action.CHECK_OUT)

    if not updated:
        _refresh_door_state(ticket)
        if ticket.status != Order.Status.CONFIRMED:
            return _failure(
                "check_out",
                "not_confirmed",
                str(_("Ticket is not confirmed (status: {status}).")).format(status=ticket.status),
                ticket,
            )
        if ticket.checked_in_at is None:
            return _failure("check_out", "not_checked_in", str(_("Ticket hasn't checked in.")), ticket)
        return _failure("check_out", "already_checked_out", str(_("Ticket already checked out.")), ticket)

    ticket.checked_out_at = now
    logger.info("ticket_scanned", direction="check_out", ticket_id=str(ticket.pk), staff=credential.name)
    return ScanResult(success=True, action="check_out", message=str(_("Checked out.")), ticket=_summary(ticket))


def _bus_info(ticket: Ticket) -> ScanResult:
    if ticket.status != Order.Status.CONFIRMED:
        return _failure(
            "bus_info",
            "not_confirmed",
            str(_("Ticket is not confirmed (status: {status}).")).format(status=ticket.status),
            ticket,
        )
    outbound, inbound = ticket.bus_outbound, ticket.bus_return
    bus = BusInfo(
        outbound=BusLeg(location=outbound.location, departs_at=outbound.departs_at) if outbound else None,
        return_trip=BusLeg(location=inbound.location, departs_at=inbound.departs_at) if inbound else None,
        table_name=ticket.table.name if ticket.table else None,
    )
    return ScanResult(
        success=True, action="bus_info", message=str(_("Bus details.")), ticket=_summary(ticket), bus=bus
    )


def scan(code: str, credential: StaffAccessCode, direction: ScanDirection) -> ScanResult:
    """Resolve a validation code within the credential's event and apply the scan.

    Expected failures come back as ``ScanResult(success=False, reason=...)``.
    """
    ticket = (
        Ticket.objects.with_assignments()
        .filter(validation_code=normalize_code(code), event_id=credential.event_id)
        .first()
    )
    if ticket is None:
        return _failure(direction, "not_found", str(_("Ticket not found for this event.")), None)

    match direction:
        case "check_in":
            return _check_in(ticket, credential)
        case "check_out":
            return _check_out(ticket, credential)
        case "bus_info":
            return _bus_info(ticket)
    raise ValueError(f"Unknown scan direction: {direction}")


def get_event_check_stats(event: Event) -> CheckStats:
    """Door counters over the confirmed tickets of an event."""
    counts = Ticket.objects.filter(event=event).check_counts()
    return CheckStats(
        total=counts["total"],
        checked_in=counts["checked_in"],
        checked_out=counts["checked_out"],
        pending=counts["total"] - counts["checked_in"],
    )


def get_event_attendees(event: Event) -> QuerySet[Ticket]:
    """Confirmed tickets of an event, ordered by e-mail."""
    return Ticket.objects.confirmed().filter(event=event).with_assignments().order_by("ticket_email")


def get_event_actions_log(event: Event, limit: int = DEFAULT_ACTIONS_LIMIT) -> list[StaffActionLog]:
    """Most recent staff actions on an event."""
    return list(StaffActionLog.objects.filter(event=event).order_by("-created_at")[:limit])
