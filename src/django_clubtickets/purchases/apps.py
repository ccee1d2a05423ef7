"""Django app configuration for the purchases app."""

from django.apps import AppConfig


class DjangoClubticketsPurchasesConfig(AppConfig):
    """Configuration for the purchases app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "django_clubtickets.purchases"
    label = "clubtickets_purchases"
    verbose_name = "Purchases"
