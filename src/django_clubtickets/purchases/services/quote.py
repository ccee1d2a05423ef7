"""Pre-checkout price preview.

The quote adds the platform fee, gateway fee and VAT on top of the ticket
price to estimate what the customer will be charged. Settlement instead
splits the price the customer already paid, so the two figures are not
expected to agree.
"""

import datetime
from dataclasses import dataclass

from django_clubtickets.clock import Clock
from django_clubtickets.purchases.errors import ErrorCode, InputError
from django_clubtickets.purchases.owners import Owner
from django_clubtickets.purchases.services.checkout import collect_checkout_lines
from django_clubtickets.purchases.services.fees import compute_split
from django_clubtickets.purchases.stores.django_store import DjangoCartStore, DjangoTicketCatalog
from django_clubtickets.purchases.stores.interfaces import CartStore, TicketCatalog
from django_clubtickets.settings import FeeConfig, get_config


@dataclass(frozen=True)
class QuoteLine:
    """Customer-facing price of one ticket unit."""

    unit_price: int
    platform_fee: int
    gateway_fee: int
    gateway_vat: int
    final_per_unit: int

    @property
    def fees(self) -> int:
        return self.platform_fee + self.gateway_fee + self.gateway_vat


@dataclass(frozen=True)
class CartQuoteLine:
    """Quote for one cart line."""

    line_id: int
    ticket_id: int
    ticket_name: str
    date: datetime.date
    quantity: int
    unit: QuoteLine

    @property
    def total(self) -> int:
        return self.unit.final_per_unit * self.quantity


@dataclass(frozen=True)
class CartQuote:
    """Quote for a whole cart."""

    lines: list[CartQuoteLine]
    subtotal: int
    fees: int
    total: int
    currency: str


def compute_quote(unit_price: int, rates: FeeConfig | None = None) -> QuoteLine:
    """Return the customer-facing price of one unit with every fee added on top.

    Raises:
        InputError: If ``unit_price`` is negative or not an integer.
    """
    split = compute_split(unit_price, rates)
    return QuoteLine(
        unit_price=unit_price,
        platform_fee=split.platform_fee,
        gateway_fee=split.gateway_fee,
        gateway_vat=split.gateway_vat,
        final_per_unit=unit_price + split.platform_fee + split.gateway_fee + split.gateway_vat,
    )


class QuoteService:
    """Read-only preview of what checking out the cart will cost."""

    def __init__(
        self,
        catalog: TicketCatalog | None = None,
        carts: CartStore | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.catalog = catalog or DjangoTicketCatalog()
        self.carts = carts or DjangoCartStore()
        self.clock = clock or Clock()

    def quote(self, owner: Owner) -> CartQuote:
        """Price the owner's cart using the current catalog prices.

        Raises:
            InputError: If no owner is given.
            PolicyViolation: If the cart is empty, expired, or dated in the past.
            StateConflict: If a ticket is no longer available.
        """
        if owner is None:
            raise InputError(ErrorCode.MISSING_IDENTITY, "Missing session or user.")
        config = get_config()
        lines = self.carts.list_lines(owner)
        paired = collect_checkout_lines(lines, self.catalog, self.clock)

        quoted = [
            CartQuoteLine(
                line_id=line.pk,
                ticket_id=ticket.pk,
                ticket_name=ticket.name,
                date=line.date,
                quantity=line.quantity,
                unit=compute_quote(ticket.price, config.fees),
            )
            for line, ticket in paired
        ]
        subtotal = sum(item.unit.unit_price * item.quantity for item in quoted)
        fees = sum(item.unit.fees * item.quantity for item in quoted)
        return CartQuote(
            lines=quoted,
            subtotal=subtotal,
            fees=fees,
            total=subtotal + fees,
            currency=config.currency,
        )
