"""Store interfaces (repository pattern).

Services depend on these abstractions and receive concrete stores at
construction time. The Django ORM implementations live in
``django_clubtickets.purchases.stores.django_store``.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from django_clubtickets.clubs.models import Ticket
from django_clubtickets.purchases.models import CartLine, PurchaseTransaction
from django_clubtickets.purchases.owners import Owner


@dataclass(frozen=True)
class TransactionDraft:
    """Header of a transaction about to be recorded."""

    owner: Owner
    club_id: int
    email: str
    date: date
    total_paid: int
    club_receives: int
    platform_receives: int
    gateway_fee: int
    gateway_vat: int
    payment_provider: str
    payment_reference: str | None = None


@dataclass(frozen=True)
class PurchaseDraft:
    """One ticket unit about to be recorded under a transaction."""

    ticket_id: int
    club_id: int
    date: date
    email: str
    qr_token: str
    user_paid: int
    club_receives: int
    platform_receives: int
    gateway_fee: int
    gateway_vat: int
    platform_fee_rate: Decimal


class TicketCatalog(ABC):
    """Read-only access to the ticket catalog."""

    @abstractmethod
    def get_ticket(self, ticket_id: int) -> Ticket | None:
        """Return a fresh copy of the ticket with its club, or None if not found."""
        ...

    @abstractmethod
    def find_conflicting_event(self, club_id: int, day: date) -> Ticket | None:
        """Return an active, non-recurring ticket of the club dated *day*, if any."""
        ...


class CartStore(ABC):
    """Per-owner cart line persistence."""

    @abstractmethod
    def atomic(self) -> AbstractContextManager:
        """Return a context manager wrapping a single all-or-nothing unit of work."""
        ...

    @abstractmethod
    def list_lines(self, owner: Owner, *, for_update: bool = False) -> list[CartLine]:
        """Return the owner's lines, most recently created first.

        With ``for_update`` the rows stay locked until the surrounding
        ``atomic()`` block ends.
        """
        ...

    @abstractmethod
    def get_line(self, line_id: int, *, for_update: bool = False) -> CartLine | None:
        """Return a line by ID regardless of owner, or None if not found."""
        ...

    @abstractmethod
    def find_line(self, owner: Owner, ticket_id: int, day: date, *, for_update: bool = False) -> CartLine | None:
        """Return the owner's line for ``(ticket, day)``, or None."""
        ...

    @abstractmethod
    def create_line(self, owner: Owner, ticket_id: int, day: date, quantity: int) -> CartLine | None:
        """Insert a new line for the owner.

        Returns None instead of raising when a concurrent request inserted
        the same ``(owner, ticket, day)`` line first.
        """
        ...

    @abstractmethod
    def add_quantity(self, line: CartLine, quantity: int) -> CartLine:
        """Add *quantity* to an existing line in a single atomic update."""
        ...

    @abstractmethod
    def set_quantity(self, line: CartLine, quantity: int) -> CartLine:
        """Overwrite a line's quantity."""
        ...

    @abstractmethod
    def delete_line(self, line: CartLine) -> None:
        """Delete one line."""
        ...

    @abstractmethod
    def clear(self, owner: Owner) -> int:
        """Delete every line of the owner and return how many were removed."""
        ...


class LedgerStore(ABC):
    """Append-only storage for settled transactions."""

    @abstractmethod
    def record(self, draft: TransactionDraft, purchases: list[PurchaseDraft]) -> PurchaseTransaction:
        """Persist the transaction, then its purchases stamped with its ID.

        Callers run this inside ``CartStore.atomic()`` so the ledger write and
        the cart deletion commit together.
        """
        ...


class TokenProvider(ABC):
    """Source of opaque QR tokens."""

    @abstractmethod
    def issue_token(self) -> str:
        """Return a new globally unique, unguessable token."""
        ...
