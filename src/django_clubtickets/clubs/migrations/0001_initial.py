import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Club",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=200)),
                ("slug", models.SlugField(max_length=200, unique=True)),
                (
                    "open_days",
                    models.JSONField(
                        blank=True,
                        default=list,
                        help_text='Weekday names the club opens, e.g. ["Friday", "Saturday"].',
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["name"],
            },
        ),
        migrations.CreateModel(
            name="Ticket",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=200)),
                ("description", models.TextField(blank=True, default="")),
                ("price", models.PositiveIntegerField(help_text="Price in minor currency units. 0 means free.")),
                (
                    "available_date",
                    models.DateField(
                        blank=True,
                        help_text="The only date this ticket is valid for. Empty for standing covers.",
                        null=True,
                    ),
                ),
                ("is_recurrent_event", models.BooleanField(default=False)),
                ("is_active", models.BooleanField(default=True)),
                ("max_per_person", models.PositiveIntegerField(default=10)),
                (
                    "quantity",
                    models.PositiveIntegerField(blank=True, help_text="Total stock. Empty means unlimited.", null=True),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "club",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="tickets",
                        to="clubtickets_clubs.club",
                    ),
                ),
            ],
            options={
                "ordering": ["club", "name"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("max_per_person__gte", 1)),
                        name="clubs_ticket_max_per_person_positive",
                    )
                ],
            },
        ),
    ]
