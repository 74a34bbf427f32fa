"""Domain errors for ticket allocation, order lifecycle and staff access.

Each error carries a stable ``code`` that the API layer returns to clients next to the human-readable detail.
"""

import typing as t


class BoxofficeError(Exception):
    """Base class for expected, recoverable domain errors."""

    code: str = "error"
    status_code: int = 400

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail

    def extra(self) -> dict[str, t.Any]:
        """Additional structured fields for the response body."""
        return {}


class CapacityExceededError(BoxofficeError):
    """Raised when a resource cannot hold the requested quantity."""

    code = "capacity_exceeded"
    status_code = 409

    def __init__(self, resource: str, spots_left: int, detail: str | None = None) -> None:
        self.resource = resource
        self.spots_left = max(spots_left, 0)
        super().__init__(detail or f"Not enough capacity for {resource}: {self.spots_left} spot(s) left.")

    def extra(self) -> dict[str, t.Any]:
        """Include the resource and the remaining spots."""
        return {"resource": self.resource, "spots_left": self.spots_left}


class InvalidTransitionError(BoxofficeError):
    """Raised when an order or ticket is not in the state the transition requires."""

    code = "invalid_transition"
    status_code = 409


class PerBuyerLimitExceededError(BoxofficeError):
    code = "per_buyer_limit_exceeded"

    def __init__(self, existing: int, requested: int, limit: int) -> None:
        self.existing = existing
        self.requested = requested
        self.limit = limit
        super().__init__(
            f"You already have {existing} ticket(s) for this event. "
            f"Buying {requested} more would exceed the limit of {limit} per account."
        )

    def extra(self) -> dict[str, t.Any]:
        """Include the buyer's counts."""
        return {"existing": self.existing, "requested": self.requested, "limit": self.limit}


class CredentialError(BoxofficeError):
    """Raised when a staff access code or token cannot be used."""

    code = "credential_error"
    status_code = 403

    def __init__(self, reason: str, detail: str) -> None:
        self.reason = reason
        super().__init__(detail)

    def extra(self) -> dict[str, t.Any]:
        """Include the machine-readable reason."""
        return {"reason": self.reason}


class NotFoundError(BoxofficeError):
    code = "not_found"
    status_code = 404


class CodeGenerationError(BoxofficeError):
    """Raised when no unused code could be drawn within the attempt budget."""

    code = "code_generation_failed"
    status_code = 503


class StaffCodeGenerationError(CodeGenerationError):
    code = "staff_code_generation_failed"


class EventNotOnSaleError(BoxofficeError):
    code = "event_not_on_sale"


class NotificationError(Exception):
    """Raised by the notification collaborator when a ticket e-mail cannot be delivered."""
