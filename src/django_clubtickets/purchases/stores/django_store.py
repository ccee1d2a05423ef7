"""Django ORM implementations of the purchase stores."""

import secrets
from contextlib import AbstractContextManager
from datetime import date

from django.db import IntegrityError, models, transaction
from django.utils import timezone

from django_clubtickets.clubs.models import Ticket
from django_clubtickets.purchases.models import CartLine, PurchaseTransaction, TicketPurchase
from django_clubtickets.purchases.owners import Anonymous, Authenticated, Owner, owner_filter
from django_clubtickets.purchases.stores.interfaces import (
    CartStore,
    LedgerStore,
    PurchaseDraft,
    TicketCatalog,
    TokenProvider,
    TransactionDraft,
)


def _owner_columns(owner: Owner) -> dict[str, object]:
    """Return model kwargs recording *owner* on a new row."""
    match owner:
        case Authenticated(user_id=user_id):
            return {"user_id": user_id, "session_key": None}
        case Anonymous(session_key=session_key):
            return {"user_id": None, "session_key": session_key}
    raise TypeError(f"Unsupported owner: {owner!r}")


class DjangoTicketCatalog(TicketCatalog):
    """Catalog lookups against the ``clubs`` app."""

    def get_ticket(self, ticket_id: int) -> Ticket | None:
        return Ticket.objects.select_related("club").filter(pk=ticket_id).first()

    def find_conflicting_event(self, club_id: int, day: date) -> Ticket | None:
        return (
            Ticket.objects.filter(
                club_id=club_id,
                available_date=day,
                is_active=True,
                is_recurrent_event=False,
            )
            .order_by("pk")
            .first()
        )


class DjangoCartStore(CartStore):
    """PostgreSQL/SQLite-backed cart store using Django ORM."""

    def atomic(self) -> AbstractContextManager:
        return transaction.atomic()

    def list_lines(self, owner: Owner, *, for_update: bool = False) -> list[CartLine]:
        qs = CartLine.objects.filter(**owner_filter(owner))
        if for_update:
            qs = qs.select_for_update()
        return list(qs.select_related("ticket", "ticket__club").order_by("-created_at", "-id"))

    def get_line(self, line_id: int, *, for_update: bool = False) -> CartLine | None:
        qs = CartLine.objects.filter(pk=line_id)
        if for_update:
            qs = qs.select_for_update()
        return qs.select_related("ticket", "ticket__club").first()

    def find_line(self, owner: Owner, ticket_id: int, day: date, *, for_update: bool = False) -> CartLine | None:
        qs = CartLine.objects.filter(**owner_filter(owner), ticket_id=ticket_id, date=day)
        if for_update:
            qs = qs.select_for_update()
        return qs.select_related("ticket", "ticket__club").first()

    def create_line(self, owner: Owner, ticket_id: int, day: date, quantity: int) -> CartLine | None:
        try:
            with transaction.atomic():
                return CartLine.objects.create(
                    **_owner_columns(owner),
                    ticket_id=ticket_id,
                    date=day,
                    quantity=quantity,
                )
        except IntegrityError:
            return None

    def add_quantity(self, line: CartLine, quantity: int) -> CartLine:
        CartLine.objects.filter(pk=line.pk).update(
            quantity=models.F("quantity") + quantity,
            updated_at=timezone.now(),
        )
        line.refresh_from_db(fields=["quantity", "updated_at"])
        return line

    def set_quantity(self, line: CartLine, quantity: int) -> CartLine:
        line.quantity = quantity
        line.save(update_fields=["quantity", "updated_at"])
        return line

    def delete_line(self, line: CartLine) -> None:
        line.delete()

    def clear(self, owner: Owner) -> int:
        deleted, _ = CartLine.objects.filter(**owner_filter(owner)).delete()
        return deleted


class DjangoLedgerStore(LedgerStore):
    """Ledger writes for settled transactions."""

    def record(self, draft: TransactionDraft, purchases: list[PurchaseDraft]) -> PurchaseTransaction:
        owner_columns = _owner_columns(draft.owner)
        session_key = owner_columns["session_key"] or ""
        txn = PurchaseTransaction.objects.create(
            user_id=owner_columns["user_id"],
            session_key=session_key,
            club_id=draft.club_id,
            email=draft.email,
            date=draft.date,
            total_paid=draft.total_paid,
            club_receives=draft.club_receives,
            platform_receives=draft.platform_receives,
            gateway_fee=draft.gateway_fee,
            gateway_vat=draft.gateway_vat,
            payment_provider=draft.payment_provider,
            payment_reference=draft.payment_reference,
        )
        TicketPurchase.objects.bulk_create(
            [
                TicketPurchase(
                    transaction=txn,
                    ticket_id=unit.ticket_id,
                    club_id=unit.club_id,
                    user_id=owner_columns["user_id"],
                    session_key=session_key,
                    date=unit.date,
                    email=unit.email,
                    qr_token=unit.qr_token,
                    user_paid=unit.user_paid,
                    club_receives=unit.club_receives,
                    platform_receives=unit.platform_receives,
                    gateway_fee=unit.gateway_fee,
                    gateway_vat=unit.gateway_vat,
                    platform_fee_rate=unit.platform_fee_rate,
                )
                for unit in purchases
            ]
        )
        return txn


class SecretTokenProvider(TokenProvider):
    """Issues URL-safe random tokens from the ``secrets`` module."""

    def __init__(self, nbytes: int = 32) -> None:
        self.nbytes = nbytes

    def issue_token(self) -> str:
        return secrets.token_urlsafe(self.nbytes)
