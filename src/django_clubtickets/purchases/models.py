"""Cart line and purchase ledger models for django-clubtickets."""

from django.conf import settings
from django.db import models
from encrypted_fields import EncryptedCharField

from django_clubtickets.purchases.owners import Anonymous, Authenticated, Owner

LEDGER_AMOUNT_FIELDS: tuple[str, ...] = (
    "club_receives",
    "platform_receives",
    "gateway_fee",
    "gateway_vat",
)


class CartLine(models.Model):
    """A ticket selection waiting in a visitor's cart.

    Each line belongs to exactly one of ``user`` or ``session_key``, enforced
    by a check constraint. A given owner holds at most one line per
    ``(ticket, date)``; repeated adds increment ``quantity`` instead.
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="ticket_cart_lines",
    )
    session_key = models.CharField(max_length=64, null=True, blank=True, db_index=True)
    ticket = models.ForeignKey(
        "clubtickets_clubs.Ticket",
        on_delete=models.CASCADE,
        related_name="cart_lines",
    )
    date = models.DateField()
    quantity = models.PositiveIntegerField(default=1)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        constraints = [
            models.CheckConstraint(
                condition=(
                    models.Q(user__isnull=False, session_key__isnull=True)
                    | models.Q(user__isnull=True, session_key__isnull=False)
                ),
                name="purchases_cartline_exactly_one_owner",
            ),
            models.CheckConstraint(
                condition=models.Q(quantity__gte=1),
                name="purchases_cartline_quantity_positive",
            ),
            models.UniqueConstraint(
                fields=["user", "ticket", "date"],
                condition=models.Q(user__isnull=False),
                name="purchases_cartline_unique_user_ticket_date",
            ),
            models.UniqueConstraint(
                fields=["session_key", "ticket", "date"],
                condition=models.Q(session_key__isnull=False),
                name="purchases_cartline_unique_session_ticket_date",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.quantity}x {self.ticket} on {self.date}"

    @property
    def owner(self) -> Owner:
        """Return the tagged identity this line belongs to."""
        if self.user_id is not None:
            return Authenticated(user_id=self.user_id)
        return Anonymous(session_key=self.session_key)


class LedgerRecord(models.Model):
    """Base for append-only ledger rows.

    Rows can be inserted once. Saving an already-persisted row raises
    ``ValueError``.
    """

    class Meta:
        abstract = True

    def save(self, *args: object, **kwargs: object) -> None:
        if not self._state.adding:
            msg = f"{type(self).__name__} rows are append-only and cannot be modified."
            raise ValueError(msg)
        super().save(*args, **kwargs)


class PurchaseTransaction(LedgerRecord):
    """A settled checkout.

    Totals are the exact sum of the matching fields across all of the
    transaction's :class:`TicketPurchase` rows. Amounts are integers in minor
    currency units.
    """

    class PaymentProvider(models.TextChoices):
        """How the order was paid before settlement."""

        FREE = "free", "Free"
        GATEWAY = "gateway", "Payment gateway"

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="ticket_transactions",
    )
    session_key = models.CharField(max_length=64, blank=True, default="")
    club = models.ForeignKey(
        "clubtickets_clubs.Club",
        on_delete=models.PROTECT,
        related_name="transactions",
    )
    email = models.EmailField()
    date = models.DateField()
    total_paid = models.PositiveBigIntegerField(default=0)
    club_receives = models.PositiveBigIntegerField(default=0)
    platform_receives = models.PositiveBigIntegerField(default=0)
    gateway_fee = models.PositiveBigIntegerField(default=0)
    gateway_vat = models.PositiveBigIntegerField(default=0)
    payment_provider = models.CharField(
        max_length=20,
        choices=PaymentProvider.choices,
        default=PaymentProvider.GATEWAY,
    )
    payment_reference = models.CharField(
        max_length=200,
        null=True,
        blank=True,
        unique=True,
        help_text="Identifier of the already-approved gateway payment, if any.",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"Transaction {self.pk} ({self.email}, {self.date})"

    def unit_totals(self) -> dict[str, int]:
        """Sum the per-unit amounts of this transaction's purchases."""
        sums = self.purchases.aggregate(
            total_paid=models.Sum("user_paid"),
            **{name: models.Sum(name) for name in LEDGER_AMOUNT_FIELDS},
        )
        return {name: value or 0 for name, value in sums.items()}


class TicketPurchase(LedgerRecord):
    """One physical ticket sold at settlement.

    Carries the fee split for its unit price and the opaque QR token the
    door staff scan. The token is encrypted at rest.
    """

    transaction = models.ForeignKey(
        PurchaseTransaction,
        on_delete=models.CASCADE,
        related_name="purchases",
    )
    ticket = models.ForeignKey(
        "clubtickets_clubs.Ticket",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="purchases",
    )
    club = models.ForeignKey(
        "clubtickets_clubs.Club",
        on_delete=models.PROTECT,
        related_name="ticket_purchases",
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="ticket_purchases",
    )
    session_key = models.CharField(max_length=64, blank=True, default="")
    date = models.DateField()
    email = models.EmailField()
    qr_token = EncryptedCharField(max_length=200)
    user_paid = models.PositiveBigIntegerField(default=0)
    club_receives = models.PositiveBigIntegerField(default=0)
    platform_receives = models.PositiveBigIntegerField(default=0)
    gateway_fee = models.PositiveBigIntegerField(default=0)
    gateway_vat = models.PositiveBigIntegerField(default=0)
    platform_fee_rate = models.DecimalField(
        max_digits=5,
        decimal_places=4,
        help_text="Platform commission rate applied at settlement.",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["id"]

    def __str__(self) -> str:
        return f"Ticket purchase {self.pk} for {self.date}"
