"""Checkout settlement service for converting carts into purchase records.

Handles the atomic settlement flow: re-validating the cart against the
live catalog, expanding each line into one priced ``TicketPurchase`` per
ticket, recording the aggregate ``PurchaseTransaction`` and emptying the
cart. The payment itself is assumed to be approved already.
"""

import datetime
import logging
from dataclasses import dataclass, field

from django.core.exceptions import ValidationError
from django.core.validators import validate_email
from django.db import DatabaseError, transaction

from django_clubtickets.clock import Clock
from django_clubtickets.clubs.models import Ticket
from django_clubtickets.purchases.errors import (
    ErrorCode,
    InputError,
    InternalError,
    PolicyViolation,
    StateConflict,
)
from django_clubtickets.purchases.models import CartLine, PurchaseTransaction
from django_clubtickets.purchases.owners import Anonymous, Owner
from django_clubtickets.purchases.services.cart import cart_is_expired
from django_clubtickets.purchases.services.fees import compute_split
from django_clubtickets.purchases.signals import transaction_settled
from django_clubtickets.purchases.stores.django_store import (
    DjangoCartStore,
    DjangoLedgerStore,
    DjangoTicketCatalog,
    SecretTokenProvider,
)
from django_clubtickets.purchases.stores.interfaces import (
    CartStore,
    LedgerStore,
    PurchaseDraft,
    TicketCatalog,
    TokenProvider,
    TransactionDraft,
)
from django_clubtickets.settings import get_config

logger = logging.getLogger(__name__)


@dataclass
class SettledLine:
    """Tickets issued for one ``(ticket, date)`` pair."""

    ticket_id: int
    ticket_name: str
    date: datetime.date
    quantity: int = 0
    qr_tokens: list[str] = field(default_factory=list)


@dataclass
class Settlement:
    """Result of a successful settlement."""

    transaction_id: int
    total_paid: int
    summary: list[SettledLine]


def is_disposable_email(email: str) -> bool:
    """Check whether *email* uses one of the configured throwaway domains."""
    domain = email.rsplit("@", 1)[-1].strip().lower()
    return domain in get_config().disposable_email_domains


def collect_checkout_lines(
    lines: list[CartLine],
    catalog: TicketCatalog,
    clock: Clock,
) -> list[tuple[CartLine, Ticket]]:
    """Pair each cart line with a freshly fetched ticket, validating the cart.

    Raises:
        PolicyViolation: If the cart is empty, expired, or dated in the past.
        StateConflict: If a ticket was deleted or deactivated since it was
            added to the cart.
    """
    if not lines:
        raise PolicyViolation(ErrorCode.EMPTY_CART, "Cart is empty.")

    if cart_is_expired(lines, clock.now()):
        raise PolicyViolation(ErrorCode.CART_EXPIRED, "Cart expired. Please start over.")

    paired: list[tuple[CartLine, Ticket]] = []
    for line in lines:
        ticket = catalog.get_ticket(line.ticket_id)
        if ticket is None or not ticket.is_active:
            name = ticket.name if ticket is not None else line.ticket.name
            raise StateConflict(
                ErrorCode.TICKET_UNAVAILABLE,
                f'The ticket "{name}" is no longer available for purchase.',
            )
        paired.append((line, ticket))

    if lines[0].date < clock.today():
        raise PolicyViolation(ErrorCode.PAST_DATE, "Cannot check out tickets for a past date.")
    return paired


class SettlementService:
    """Service for settling carts into the purchase ledger."""

    def __init__(
        self,
        catalog: TicketCatalog | None = None,
        carts: CartStore | None = None,
        ledger: LedgerStore | None = None,
        tokens: TokenProvider | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.catalog = catalog or DjangoTicketCatalog()
        self.carts = carts or DjangoCartStore()
        self.ledger = ledger or DjangoLedgerStore()
        self.tokens = tokens or SecretTokenProvider()
        self.clock = clock or Clock()

    def settle(self, owner: Owner | None, email: str | None, *, payment_reference: str | None = None) -> Settlement:
        """Convert the owner's cart into a transaction and ticket purchases atomically.

        Re-fetches every ticket so a ticket deactivated after being carted
        cannot be sold, prices each unit with :func:`compute_split`, records
        the transaction before its purchases, and clears the cart. Either
        all of that commits or none of it does.

        Args:
            owner: The cart owner.
            email: Where the tickets are delivered.
            payment_reference: Identifier of the approved gateway payment.
                Must be omitted for all-free carts.

        Returns:
            A :class:`Settlement` with the transaction ID and the QR tokens
            issued, grouped by ticket and date.

        Raises:
            InputError: If the identity or e-mail is missing or malformed, if
                a payment reference accompanies a free cart, or if a paid
                cart has none.
            PolicyViolation: If the cart is empty, expired, past, or the
                e-mail is disposable for an anonymous owner.
            StateConflict: If a ticket is no longer available.
            InternalError: If the ledger could not be written.
        """
        if owner is None:
            raise InputError(ErrorCode.MISSING_IDENTITY, "Missing session or user.")
        email = (email or "").strip()
        if not email:
            raise InputError(ErrorCode.MISSING_EMAIL, "Email is required for checkout.")
        try:
            validate_email(email)
        except ValidationError:
            raise InputError(ErrorCode.INVALID_INPUT, "Enter a valid email address.") from None
        if isinstance(owner, Anonymous) and is_disposable_email(email):
            raise PolicyViolation(ErrorCode.DISPOSABLE_EMAIL, "Disposable email domains are not allowed.")

        try:
            with self.carts.atomic():
                lines = self.carts.list_lines(owner, for_update=True)
                paired = collect_checkout_lines(lines, self.catalog, self.clock)
                txn, settlement = self._record(owner, email, paired, payment_reference)
                self.carts.clear(owner)
                transaction.on_commit(
                    lambda: transaction_settled.send(
                        sender=PurchaseTransaction,
                        transaction=txn,
                        settlement=settlement,
                    )
                )
        except StateConflict as exc:
            logger.warning("Settlement rejected for %s: %s", owner, exc.message)
            raise
        except DatabaseError:
            logger.exception("Settlement failed for %s", owner)
            raise InternalError from None

        logger.info(
            "Settled transaction %s for %s (%d tickets, total %d)",
            settlement.transaction_id,
            owner,
            sum(line.quantity for line in settlement.summary),
            settlement.total_paid,
        )
        return settlement

    def _record(
        self,
        owner: Owner,
        email: str,
        paired: list[tuple[CartLine, Ticket]],
        payment_reference: str | None,
    ) -> tuple[PurchaseTransaction, Settlement]:
        """Price every unit, write the ledger and build the settlement summary."""
        rates = get_config().fees
        is_free_cart = all(ticket.is_free for _, ticket in paired)
        if is_free_cart and payment_reference:
            raise InputError(ErrorCode.INVALID_INPUT, "Free checkouts must not include a payment reference.")
        if not is_free_cart and not payment_reference:
            raise InputError(ErrorCode.INVALID_INPUT, "Paid checkouts require a payment reference.")

        club_id = paired[0][1].club_id
        sale_date = paired[0][0].date

        totals = dict.fromkeys(
            ("total_paid", "club_receives", "platform_receives", "gateway_fee", "gateway_vat"),
            0,
        )
        purchases: list[PurchaseDraft] = []
        grouped: dict[tuple[int, datetime.date], SettledLine] = {}

        for line, ticket in paired:
            split = compute_split(ticket.price, rates)
            settled = grouped.setdefault(
                (ticket.pk, line.date),
                SettledLine(ticket_id=ticket.pk, ticket_name=ticket.name, date=line.date),
            )
            for _ in range(line.quantity):
                token = self.tokens.issue_token()
                purchases.append(
                    PurchaseDraft(
                        ticket_id=ticket.pk,
                        club_id=club_id,
                        date=line.date,
                        email=email,
                        qr_token=token,
                        user_paid=ticket.price,
                        club_receives=split.club_net,
                        platform_receives=split.platform_fee,
                        gateway_fee=split.gateway_fee,
                        gateway_vat=split.gateway_vat,
                        platform_fee_rate=rates.platform_rate,
                    )
                )
                totals["total_paid"] += ticket.price
                totals["club_receives"] += split.club_net
                totals["platform_receives"] += split.platform_fee
                totals["gateway_fee"] += split.gateway_fee
                totals["gateway_vat"] += split.gateway_vat
                settled.quantity += 1
                settled.qr_tokens.append(token)

        provider = PurchaseTransaction.PaymentProvider.FREE if is_free_cart else PurchaseTransaction.PaymentProvider.GATEWAY
        txn = self.ledger.record(
            TransactionDraft(
                owner=owner,
                club_id=club_id,
                email=email,
                date=sale_date,
                payment_provider=provider,
                payment_reference=payment_reference or None,
                **totals,
            ),
            purchases,
        )
        settlement = Settlement(
            transaction_id=txn.pk,
            total_paid=totals["total_paid"],
            summary=list(grouped.values()),
        )
        return txn, settlement
