import typing as t

from django.http import HttpRequest
from ninja.security import APIKeyHeader

from events.models import StaffAccessCode
from events.service import staff_access_service


class StaffTokenAuth(APIKeyHeader):
    """Authenticates door staff by the token handed out at staff login.

    Staff have no user account: ``request.auth`` is the StaffAccessCode the token was issued for.
    An invalid, expired or deactivated token raises CredentialError, rendered as 403 with its reason.
    """

    param_name = "X-Staff-Token"

    def authenticate(self, request: HttpRequest, key: str | None) -> StaffAccessCode | None:
        """Resolve the token to its credential."""
        if not key:
            return None
        return staff_access_service.resolve_staff_token(key)


def staff_credential(request: HttpRequest) -> StaffAccessCode:
    """The credential authenticated for this request."""
    return t.cast(StaffAccessCode, request.auth)  # type: ignore[attr-defined]
