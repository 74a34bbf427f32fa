"""Staff access codes.

A code grants scanning rights for one event between ``start - 2h`` and ``start + 24h``.
A successful validation hands out a signed staff token that scan requests present instead
of the code.
"""

import math
import secrets
import typing as t
from dataclasses import dataclass
from datetime import datetime, timedelta
from uuid import UUID

import structlog
from django.conf import settings
from django.core import signing
from django.db import IntegrityError, transaction
from django.db.models import QuerySet
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from events.exceptions import CredentialError, StaffCodeGenerationError
from events.models import Event, StaffAccessCode

logger = structlog.get_logger(__name__)

STAFF_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
STAFF_CODE_LENGTH = 6
MAX_GENERATION_ATTEMPTS = 10
STAFF_TOKEN_SALT = "staff-access"

CredentialFailureReason = t.Literal["invalid", "deactivated", "not_yet_active", "expired"]


@dataclass(frozen=True)
class StaffCodeValidation:
    valid: bool
    message: str
    reason: CredentialFailureReason | None = None
    credential: StaffAccessCode | None = None

    def raise_for_failure(self) -> StaffAccessCode:
        """Return the credential, or raise CredentialError carrying the failure reason."""
        if not self.valid or self.credential is None:
            raise CredentialError(reason=self.reason or "invalid", detail=self.message)
        return self.credential


def generate_code() -> str:
    """Draw a code from the alphabet without look-alike characters (no I, O, 0, 1)."""
    return "".join(secrets.choice(STAFF_CODE_ALPHABET) for _position in range(STAFF_CODE_LENGTH))


def normalize_code(code: str) -> str:
    return code.strip().upper()


def issue(event: Event, holder_name: str) -> StaffAccessCode:
    """Create a staff code for an event.

    Each attempt inserts inside a savepoint and relies on the unique constraint to detect a
    collision with any existing code, active or not.

    Raises:
        StaffCodeGenerationError: every attempt collided.
    """
    for attempt in range(1, MAX_GENERATION_ATTEMPTS + 1):
        try:
            with transaction.atomic():
                credential = StaffAccessCode.objects.create(event=event, name=holder_name, code=generate_code())
        except IntegrityError:
            logger.warning("staff_code_collision", event_id=str(event.pk), attempt=attempt)
            continue
        logger.info("staff_code_issued", event_id=str(event.pk), credential_id=str(credential.pk), name=holder_name)
        return credential
    raise StaffCodeGenerationError(str(_("Could not generate a unique access code. Please try again.")))


def validate(code: str, now: datetime | None = None) -> StaffCodeValidation:
    """Check a staff code against its state and its event's time window.

    On success ``last_used_at`` is updated and the credential is returned.
    """
    now = now or timezone.now()
    credential = StaffAccessCode.objects.select_related("event").filter(code=normalize_code(code)).first()
    if credential is None:
        logger.info("staff_code_rejected", reason="invalid")
        return StaffCodeValidation(valid=False, reason="invalid", message=str(_("Invalid access code.")))

    if not credential.is_active:
        logger.info("staff_code_rejected", reason="deactivated", credential_id=str(credential.pk))
        return StaffCodeValidation(
            valid=False, reason="deactivated", message=str(_("This access code has been deactivated."))
        )

    valid_from, valid_until = credential.event.staff_window
    if now < valid_from:
        hours = math.ceil((valid_from - now).total_seconds() / 3600)
        logger.info("staff_code_rejected", reason="not_yet_active", credential_id=str(credential.pk))
        return StaffCodeValidation(
            valid=False,
            reason="not_yet_active",
            message=str(_("Access code not yet active, opens in {hours}h.")).format(hours=hours),
        )
    if now > valid_until:
        logger.info("staff_code_rejected", reason="expired", credential_id=str(credential.pk))
        return StaffCodeValidation(
            valid=False, reason="expired", message=str(_("Access code expired, the event has ended."))
        )

    StaffAccessCode.objects.filter(pk=credential.pk).update(last_used_at=now)
    credential.last_used_at = now
    logger.info("staff_code_validated", credential_id=str(credential.pk), event_id=str(credential.event_id))
    return StaffCodeValidation(valid=True, message=str(_("Access granted.")), credential=credential)


def _signer() -> signing.TimestampSigner:
    return signing.TimestampSigner(salt=STAFF_TOKEN_SALT)


def issue_staff_token(credential: StaffAccessCode) -> str:
    """Sign the credential id for the scanning session."""
    return _signer().sign(str(credential.pk))


def resolve_staff_token(token: str) -> StaffAccessCode:
    """Turn a staff token back into its credential.

    The time window was checked when the token was issued and is not re-checked here;
    a credential deactivated since then is refused.

    Raises:
        CredentialError: bad signature, expired token, deleted or deactivated credential.
    """
    try:
        credential_id = _signer().unsign(token, max_age=timedelta(hours=settings.STAFF_TOKEN_MAX_AGE_HOURS))
    except signing.SignatureExpired as e:
        raise CredentialError(reason="expired", detail=str(_("Staff session expired. Enter the code again."))) from e
    except signing.BadSignature as e:
        raise CredentialError(reason="invalid", detail=str(_("Invalid staff session."))) from e

    try:
        credential_uuid = UUID(credential_id)
    except ValueError as e:
        raise CredentialError(reason="invalid", detail=str(_("Invalid staff session."))) from e

    credential = StaffAccessCode.objects.select_related("event").filter(pk=credential_uuid).first()
    if credential is None:
        raise CredentialError(reason="invalid", detail=str(_("Invalid staff session.")))
    if not credential.is_active:
        raise CredentialError(reason="deactivated", detail=str(_("This access code has been deactivated.")))
    return credential


def codes_for_event(event: Event) -> QuerySet[StaffAccessCode]:
    return StaffAccessCode.objects.filter(event=event).select_related("event")


def deactivate(credential: StaffAccessCode) -> StaffAccessCode:
    """Suspend a code. Reversible with ``reactivate``."""
    StaffAccessCode.objects.filter(pk=credential.pk).update(is_active=False, updated_at=timezone.now())
    credential.refresh_from_db()
    logger.info("staff_code_deactivated", credential_id=str(credential.pk))
    return credential


def reactivate(credential: StaffAccessCode) -> StaffAccessCode:
    StaffAccessCode.objects.filter(pk=credential.pk).update(is_active=True, updated_at=timezone.now())
    credential.refresh_from_db()
    logger.info("staff_code_reactivated", credential_id=str(credential.pk))
    return credential


def delete(credential: StaffAccessCode) -> None:
    """Remove a code for good. Its past actions stay in the log without the link."""
    credential_id = str(credential.pk)
    credential.delete()
    logger.info("staff_code_deleted", credential_id=credential_id)
