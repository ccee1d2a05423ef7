"""Django app configuration for the clubs app."""

from django.apps import AppConfig


class DjangoClubticketsClubsConfig(AppConfig):
    """Configuration for the clubs app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "django_clubtickets.clubs"
    label = "clubtickets_clubs"
    verbose_name = "Clubs"
