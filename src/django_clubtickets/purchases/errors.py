"""Error codes and exception types for cart and checkout operations.

Every exception exposes a stable ``code`` (an :class:`ErrorCode`) next to
its user-safe message. The classes extend Django's own exceptions so
callers that already handle ``ValidationError``, ``PermissionDenied`` or
``ObjectDoesNotExist`` keep working.
"""

from enum import StrEnum

from django.core.exceptions import ObjectDoesNotExist, PermissionDenied, ValidationError


class ErrorCode(StrEnum):
    """Cart and checkout error codes."""

    INVALID_INPUT = "invalid_input"
    INVALID_PRICE = "invalid_price"
    MISSING_IDENTITY = "missing_identity"
    MISSING_EMAIL = "missing_email"

    PAST_DATE = "past_date"
    NO_DATE_ASSIGNED = "no_date_assigned"
    DATE_MISMATCH = "date_mismatch"
    EVENT_CONFLICT = "event_conflict"
    DATE_OUT_OF_RANGE = "date_out_of_range"
    CLUB_CLOSED = "club_closed"
    MIXED_CLUB = "mixed_club"
    MIXED_DATE = "mixed_date"
    MAX_PER_PERSON_EXCEEDED = "max_per_person_exceeded"
    INSUFFICIENT_STOCK = "insufficient_stock"
    EMPTY_CART = "empty_cart"
    CART_EXPIRED = "cart_expired"
    DISPOSABLE_EMAIL = "disposable_email"

    FORBIDDEN = "forbidden"

    TICKET_NOT_FOUND = "ticket_not_found"
    TICKET_INACTIVE = "ticket_inactive"
    NOT_FOUND = "not_found"

    TICKET_UNAVAILABLE = "ticket_unavailable"

    SETTLEMENT_FAILED = "settlement_failed"


class InputError(ValidationError):
    """Malformed or missing request data."""

    def __init__(self, code: ErrorCode, message: str) -> None:
        super().__init__(message, code=code)


class PolicyViolation(ValidationError):
    """A date, club, stock or per-person rule was broken.

    ``remaining`` carries the capacity still available when the rule is a
    numeric ceiling, otherwise ``None``.
    """

    def __init__(self, code: ErrorCode, message: str, *, remaining: int | None = None) -> None:
        super().__init__(message, code=code)
        self.remaining = remaining


class StateConflict(ValidationError):
    """Catalog state changed between adding to the cart and checking out."""

    def __init__(self, code: ErrorCode, message: str) -> None:
        super().__init__(message, code=code)


class AuthorizationError(PermissionDenied):
    """The cart line belongs to a different owner."""

    code = ErrorCode.FORBIDDEN

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(ObjectDoesNotExist):
    """An unknown (or inactive) ticket or an unknown cart line."""

    def __init__(self, code: ErrorCode, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


class InternalError(Exception):
    """Storage or atomicity failure. The message never exposes internals."""

    code = ErrorCode.SETTLEMENT_FAILED

    def __init__(self, message: str = "Checkout could not be completed. Please try again.") -> None:
        super().__init__(message)
        self.message = message
