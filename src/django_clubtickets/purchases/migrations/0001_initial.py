import django.db.models.deletion
import encrypted_fields.fields
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("clubtickets_clubs", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="CartLine",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("session_key", models.CharField(blank=True, db_index=True, max_length=64, null=True)),
                ("date", models.DateField()),
                ("quantity", models.PositiveIntegerField(default=1)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "ticket",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="cart_lines",
                        to="clubtickets_clubs.ticket",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="ticket_cart_lines",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at", "-id"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(
                            models.Q(("session_key__isnull", True), ("user__isnull", False)),
                            models.Q(("session_key__isnull", False), ("user__isnull", True)),
                            _connector="OR",
                        ),
                        name="purchases_cartline_exactly_one_owner",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("quantity__gte", 1)),
                        name="purchases_cartline_quantity_positive",
                    ),
                    models.UniqueConstraint(
                        condition=models.Q(("user__isnull", False)),
                        fields=("user", "ticket", "date"),
                        name="purchases_cartline_unique_user_ticket_date",
                    ),
                    models.UniqueConstraint(
                        condition=models.Q(("session_key__isnull", False)),
                        fields=("session_key", "ticket", "date"),
                        name="purchases_cartline_unique_session_ticket_date",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="PurchaseTransaction",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("session_key", models.CharField(blank=True, default="", max_length=64)),
                ("email", models.EmailField(max_length=254)),
                ("date", models.DateField()),
                ("total_paid", models.PositiveBigIntegerField(default=0)),
                ("club_receives", models.PositiveBigIntegerField(default=0)),
                ("platform_receives", models.PositiveBigIntegerField(default=0)),
                ("gateway_fee", models.PositiveBigIntegerField(default=0)),
                ("gateway_vat", models.PositiveBigIntegerField(default=0)),
                (
                    "payment_provider",
                    models.CharField(
                        choices=[("free", "Free"), ("gateway", "Payment gateway")],
                        default="gateway",
                        max_length=20,
                    ),
                ),
                (
                    "payment_reference",
                    models.CharField(
                        blank=True,
                        help_text="Identifier of the already-approved gateway payment, if any.",
                        max_length=200,
                        null=True,
                        unique=True,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "club",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="transactions",
                        to="clubtickets_clubs.club",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="ticket_transactions",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="TicketPurchase",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("session_key", models.CharField(blank=True, default="", max_length=64)),
                ("date", models.DateField()),
                ("email", models.EmailField(max_length=254)),
                ("qr_token", encrypted_fields.fields.EncryptedCharField(max_length=200)),
                ("user_paid", models.PositiveBigIntegerField(default=0)),
                ("club_receives", models.PositiveBigIntegerField(default=0)),
                ("platform_receives", models.PositiveBigIntegerField(default=0)),
                ("gateway_fee", models.PositiveBigIntegerField(default=0)),
                ("gateway_vat", models.PositiveBigIntegerField(default=0)),
                (
                    "platform_fee_rate",
                    models.DecimalField(
                        decimal_places=4,
                        help_text="Platform commission rate applied at settlement.",
                        max_digits=5,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "club",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="ticket_purchases",
                        to="clubtickets_clubs.club",
                    ),
                ),
                (
                    "ticket",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="purchases",
                        to="clubtickets_clubs.ticket",
                    ),
                ),
                (
                    "transaction",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="purchases",
                        to="clubtickets_purchases.purchasetransaction",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="ticket_purchases",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["id"],
            },
        ),
    ]
