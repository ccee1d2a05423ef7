"""Cart management service for club tickets.

Decides whether a cart mutation is legal and applies it. A cart holds
tickets for one club on one date; free tickets and dated tickets are only
valid on their own date, standing covers on any open day inside the booking
window. Per-person and stock ceilings are checked against the owner's own
cart only, so stock acts as a soft reservation.
"""

import datetime
import logging
from datetime import timedelta

from django_clubtickets.clock import Clock
from django_clubtickets.clubs.models import Ticket, weekday_name
from django_clubtickets.purchases.errors import (
    AuthorizationError,
    ErrorCode,
    InputError,
    NotFoundError,
    PolicyViolation,
)
from django_clubtickets.purchases.models import CartLine
from django_clubtickets.purchases.owners import Owner
from django_clubtickets.purchases.stores.django_store import DjangoCartStore, DjangoTicketCatalog
from django_clubtickets.purchases.stores.interfaces import CartStore, TicketCatalog
from django_clubtickets.settings import get_config

logger = logging.getLogger(__name__)


class CartService:
    """Service for cart operations.

    Enforces date windows, club opening days, the single-club/single-date
    cart invariant, and per-person and stock ceilings. Every operation is
    scoped to an explicit owner.
    """

    def __init__(
        self,
        catalog: TicketCatalog | None = None,
        carts: CartStore | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.catalog = catalog or DjangoTicketCatalog()
        self.carts = carts or DjangoCartStore()
        self.clock = clock or Clock()

    def add_line(self, owner: Owner, ticket_id: int, date: datetime.date | str, quantity: int) -> CartLine:
        """Add a ticket to the owner's cart or increase its quantity.

        Args:
            owner: The cart owner.
            ticket_id: The ticket to add.
            date: The night the ticket is for, as a date or ``YYYY-MM-DD``.
            quantity: Number of tickets to add (must be >= 1).

        Returns:
            The created or updated CartLine.

        Raises:
            InputError: If a field is missing or malformed.
            NotFoundError: If the ticket does not exist or is inactive.
            PolicyViolation: If a date, club, per-person or stock rule is
                broken.
        """
        _require_owner(owner)
        if not ticket_id:
            raise InputError(ErrorCode.INVALID_INPUT, "A ticket is required.")
        day = _parse_date(date)
        qty = _validate_quantity(quantity)

        today = self.clock.today()
        if day < today:
            raise PolicyViolation(ErrorCode.PAST_DATE, "Cannot select a past date.")

        ticket = self.catalog.get_ticket(ticket_id)
        if ticket is None:
            raise NotFoundError(ErrorCode.TICKET_NOT_FOUND, "Ticket not found.")
        if not ticket.is_active:
            raise NotFoundError(ErrorCode.TICKET_INACTIVE, f"Ticket '{ticket.name}' is not active.")

        self._validate_ticket_date(ticket, day, today)

        with self.carts.atomic():
            lines = self.carts.list_lines(owner, for_update=True)
            _validate_single_club_and_date(lines, ticket, day)
            existing = next((line for line in lines if line.ticket_id == ticket.pk and line.date == day), None)
            _validate_ceilings(ticket, in_cart=existing.quantity if existing else 0, qty=qty)
            line = self._upsert_line(owner, ticket, day, qty, existing)

        logger.info("Added %d x ticket %s for %s to cart of %s", qty, ticket.pk, day, owner)
        return line

    def update_line(self, owner: Owner, line_id: int, quantity: int) -> CartLine:
        """Overwrite the quantity of one of the owner's lines.

        Re-checks the per-person and stock ceilings, counting every other
        line for the same ticket and date but not this line's previous
        quantity. Date and club rules are not re-validated.

        Raises:
            InputError: If the quantity is not a positive integer.
            NotFoundError: If the line or its ticket no longer exists.
            AuthorizationError: If the line belongs to another owner.
            PolicyViolation: If a ceiling would be exceeded.
        """
        _require_owner(owner)
        qty = _validate_quantity(quantity)

        with self.carts.atomic():
            line = self._get_owned_line(owner, line_id)
            ticket = self.catalog.get_ticket(line.ticket_id)
            if ticket is None:
                raise NotFoundError(ErrorCode.TICKET_NOT_FOUND, "Associated ticket not found.")
            others = sum(
                other.quantity
                for other in self.carts.list_lines(owner, for_update=True)
                if other.pk != line.pk and other.ticket_id == line.ticket_id and other.date == line.date
            )
            _validate_ceilings(ticket, in_cart=others, qty=qty)
            line = self.carts.set_quantity(line, qty)

        logger.info("Set cart line %s of %s to quantity %d", line.pk, owner, qty)
        return line

    def remove_line(self, owner: Owner, line_id: int) -> None:
        """Remove one of the owner's lines.

        Raises:
            NotFoundError: If the line does not exist (including a repeat delete).
            AuthorizationError: If the line belongs to another owner.
        """
        _require_owner(owner)
        with self.carts.atomic():
            line = self._get_owned_line(owner, line_id)
            self.carts.delete_line(line)
        logger.info("Removed cart line %s of %s", line_id, owner)

    def list_lines(self, owner: Owner) -> list[CartLine]:
        """Return the owner's lines, most recently created first."""
        _require_owner(owner)
        return self.carts.list_lines(owner)

    def clear(self, owner: Owner) -> int:
        """Empty the owner's cart and return the number of lines removed."""
        _require_owner(owner)
        removed = self.carts.clear(owner)
        logger.info("Cleared %d cart lines of %s", removed, owner)
        return removed

    def purge_expired(self, owner: Owner) -> int:
        """Empty the owner's cart if it outlived ``cart_expiry_minutes``.

        Returns:
            The number of lines removed, 0 when the cart is still fresh.
        """
        _require_owner(owner)
        with self.carts.atomic():
            lines = self.carts.list_lines(owner, for_update=True)
            if not cart_is_expired(lines, self.clock.now()):
                return 0
            removed = self.carts.clear(owner)
        logger.warning("Purged expired cart of %s (%d lines)", owner, removed)
        return removed

    def _validate_ticket_date(self, ticket: Ticket, day: datetime.date, today: datetime.date) -> None:
        """Check *day* against the ticket's own date or the standing-cover rules."""
        if ticket.is_free:
            if ticket.available_date is None:
                raise PolicyViolation(ErrorCode.NO_DATE_ASSIGNED, "This free ticket has no date assigned.")
            if day != ticket.available_date:
                raise PolicyViolation(
                    ErrorCode.DATE_MISMATCH,
                    "This free ticket is only valid on its available date.",
                )
            return

        if ticket.available_date is not None:
            if day != ticket.available_date:
                raise PolicyViolation(ErrorCode.DATE_MISMATCH, "This ticket is not available on that date.")
            return

        if self.catalog.find_conflicting_event(ticket.club_id, day) is not None:
            raise PolicyViolation(
                ErrorCode.EVENT_CONFLICT,
                f"You cannot buy a general cover for {day.isoformat()} because a special event already exists.",
            )

        window_days = get_config().booking_window_days
        if day > today + timedelta(days=window_days):
            raise PolicyViolation(
                ErrorCode.DATE_OUT_OF_RANGE,
                f"You can only select dates within {window_days} days.",
            )

        if not ticket.club.is_open_on(day):
            raise PolicyViolation(ErrorCode.CLUB_CLOSED, f"This club is not open on {weekday_name(day)}.")

    def _upsert_line(
        self,
        owner: Owner,
        ticket: Ticket,
        day: datetime.date,
        qty: int,
        existing: CartLine | None,
    ) -> CartLine:
        """Increment/create the owner's line safely under concurrent inserts."""
        if existing is not None:
            return self.carts.add_quantity(existing, qty)

        line = self.carts.create_line(owner, ticket.pk, day, qty)
        if line is not None:
            return line

        # Lost the insert race: re-check the ceilings against the winner's row.
        existing = self.carts.find_line(owner, ticket.pk, day, for_update=True)
        _validate_ceilings(ticket, in_cart=existing.quantity, qty=qty)
        return self.carts.add_quantity(existing, qty)

    def _get_owned_line(self, owner: Owner, line_id: int) -> CartLine:
        """Fetch and lock a line, checking it belongs to *owner*."""
        line = self.carts.get_line(line_id, for_update=True)
        if line is None:
            raise NotFoundError(ErrorCode.NOT_FOUND, "Cart item not found.")
        if line.owner != owner:
            raise AuthorizationError("You cannot modify another visitor's cart item.")
        return line


def cart_is_expired(lines: list[CartLine], now: datetime.datetime) -> bool:
    """Return True when the oldest line is older than the configured cart lifetime."""
    if not lines:
        return False
    oldest = min(line.created_at for line in lines)
    return now - oldest > timedelta(minutes=get_config().cart_expiry_minutes)


def _require_owner(owner: Owner | None) -> None:
    if owner is None:
        raise InputError(ErrorCode.MISSING_IDENTITY, "Missing session or user.")


def _parse_date(value: object) -> datetime.date:
    """Accept a calendar date or an ISO ``YYYY-MM-DD`` string."""
    if isinstance(value, datetime.datetime):
        raise InputError(ErrorCode.INVALID_INPUT, "Date must be a calendar date without a time.")
    if isinstance(value, datetime.date):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return datetime.date.fromisoformat(value.strip())
        except ValueError:
            raise InputError(ErrorCode.INVALID_INPUT, f"Invalid date: {value!r}.") from None
    raise InputError(ErrorCode.INVALID_INPUT, "A date is required.")


def _validate_quantity(quantity: object) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise InputError(ErrorCode.INVALID_INPUT, "Quantity must be a positive integer.")
    return quantity


def _validate_single_club_and_date(lines: list[CartLine], ticket: Ticket, day: datetime.date) -> None:
    """Raise PolicyViolation if *ticket* on *day* would mix clubs or dates in the cart."""
    for line in lines:
        if line.ticket.club_id != ticket.club_id:
            raise PolicyViolation(ErrorCode.MIXED_CLUB, "All tickets in cart must be from the same nightclub.")
        if line.date != day:
            raise PolicyViolation(ErrorCode.MIXED_DATE, "All tickets in cart must be for the same date.")


def _validate_ceilings(ticket: Ticket, *, in_cart: int, qty: int) -> None:
    """Validate per-person and stock ceilings for the desired cart quantity."""
    desired = in_cart + qty
    if desired > ticket.max_per_person:
        raise PolicyViolation(
            ErrorCode.MAX_PER_PERSON_EXCEEDED,
            f"You can only buy up to {ticket.max_per_person} tickets of '{ticket.name}'.",
            remaining=max(ticket.max_per_person - in_cart, 0),
        )

    if ticket.quantity is not None and desired > ticket.quantity:
        remaining = max(ticket.quantity - in_cart, 0)
        raise PolicyViolation(
            ErrorCode.INSUFFICIENT_STOCK,
            f"Only {remaining} tickets of '{ticket.name}' remaining.",
            remaining=remaining,
        )
