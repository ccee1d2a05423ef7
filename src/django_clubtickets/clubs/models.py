"""Club and Ticket catalog models for django-clubtickets."""

from datetime import date

from django.db import models

WEEKDAY_NAMES: tuple[str, ...] = (
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
)


def weekday_name(day: date) -> str:
    """Return the English weekday name for *day*, independent of the active locale."""
    return WEEKDAY_NAMES[day.weekday()]


class Club(models.Model):
    """A nightclub selling covers and event tickets.

    ``open_days`` lists English weekday names (``["Friday", "Saturday"]``).
    Standing covers can only be bought for dates falling on one of them.
    """

    name = models.CharField(max_length=200)
    slug = models.SlugField(max_length=200, unique=True)
    open_days = models.JSONField(
        default=list,
        blank=True,
        help_text='Weekday names the club opens, e.g. ["Friday", "Saturday"].',
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]

    def __str__(self) -> str:
        return self.name

    def is_open_on(self, day: date) -> bool:
        """Check whether the club opens on the weekday of *day*."""
        open_days = {str(name).strip().casefold() for name in self.open_days or []}
        return weekday_name(day).casefold() in open_days


class Ticket(models.Model):
    """A purchasable ticket for a club.

    Three shapes are supported:

    * **Standing cover**: ``price > 0`` and no ``available_date``. Valid on any
      open day inside the booking window.
    * **Dated ticket**: ``available_date`` set. Special events are dated tickets
      with ``is_recurrent_event=False``; they block standing covers that day.
    * **Free ticket**: ``price == 0``. Must carry an ``available_date``.

    Prices are integers in minor currency units.
    """

    club = models.ForeignKey(
        Club,
        on_delete=models.CASCADE,
        related_name="tickets",
    )
    name = models.CharField(max_length=200)
    description = models.TextField(blank=True, default="")
    price = models.PositiveIntegerField(help_text="Price in minor currency units. 0 means free.")
    available_date = models.DateField(
        null=True,
        blank=True,
        help_text="The only date this ticket is valid for. Empty for standing covers.",
    )
    is_recurrent_event = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True)
    max_per_person = models.PositiveIntegerField(default=10)
    quantity = models.PositiveIntegerField(
        null=True,
        blank=True,
        help_text="Total stock. Empty means unlimited.",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["club", "name"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(max_per_person__gte=1),
                name="clubs_ticket_max_per_person_positive",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.name} ({self.club.slug})"

    @property
    def is_free(self) -> bool:
        return self.price == 0

    @property
    def is_standing_cover(self) -> bool:
        """Return True for paid tickets with no fixed date."""
        return not self.is_free and self.available_date is None
