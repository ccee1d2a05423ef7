"""Typed configuration for django-clubtickets.

Reads a single ``CLUBTICKETS`` dict from Django settings and exposes it as
composed, frozen dataclasses with sensible defaults.

Usage::

    from django_clubtickets.settings import get_config

    config = get_config()
    config.fees.platform_rate
    config.timezone
    config.booking_window_days
"""

import functools
import zoneinfo
from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation

from django.conf import settings
from django.test.signals import setting_changed

DEFAULT_DISPOSABLE_EMAIL_DOMAINS: tuple[str, ...] = (
    "10minutemail.com",
    "discard.email",
    "guerrillamail.com",
    "mailinator.com",
    "sharklasers.com",
    "temp-mail.org",
    "throwawaymail.com",
    "trashmail.com",
    "yopmail.com",
)


@dataclass(frozen=True, slots=True)
class FeeConfig:
    """Platform commission and payment gateway cost rates.

    ``gateway_fixed`` is expressed in minor currency units.
    """

    platform_rate: Decimal = Decimal("0.05")
    gateway_rate: Decimal = Decimal("0.0299")
    gateway_fixed: int = 900
    gateway_vat_rate: Decimal = Decimal("0.19")


@dataclass(frozen=True, slots=True)
class TicketingConfig:
    """Top-level django-clubtickets configuration."""

    fees: FeeConfig = field(default_factory=FeeConfig)
    timezone: str = "America/Bogota"
    booking_window_days: int = 21
    cart_expiry_minutes: int = 30
    currency: str = "COP"
    disposable_email_domains: tuple[str, ...] = DEFAULT_DISPOSABLE_EMAIL_DOMAINS


@functools.lru_cache(maxsize=1)
def get_config() -> TicketingConfig:
    """Build and return the ticketing configuration.

    Reads ``settings.CLUBTICKETS`` (a plain dict) and returns a frozen
    :class:`TicketingConfig`.  The result is cached; the cache is cleared
    automatically when Django's ``setting_changed`` signal fires (e.g. inside
    ``override_settings``).
    """
    raw = getattr(settings, "CLUBTICKETS", {})
    if not isinstance(raw, Mapping):
        msg = "CLUBTICKETS must be a mapping (dict-like object)"
        raise TypeError(msg)
    raw_data = dict(raw)

    fees_data = raw_data.pop("fees", {})
    if not isinstance(fees_data, Mapping):
        msg = "CLUBTICKETS['fees'] must be a mapping (dict-like object)"
        raise TypeError(msg)

    domains = raw_data.pop("disposable_email_domains", DEFAULT_DISPOSABLE_EMAIL_DOMAINS)
    if isinstance(domains, str) or not all(isinstance(d, str) for d in domains):
        msg = "CLUBTICKETS['disposable_email_domains'] must be a list of domain strings"
        raise TypeError(msg)

    config = TicketingConfig(
        fees=_build_fee_config(fees_data),
        disposable_email_domains=tuple(d.strip().lower() for d in domains if d.strip()),
        **raw_data,
    )
    _validate_ticketing_config(config)
    return config


def _build_fee_config(fees_data: Mapping) -> FeeConfig:
    """Coerce configured rates to ``Decimal`` so fee arithmetic never touches floats."""
    fees = dict(fees_data)
    for key in ("platform_rate", "gateway_rate", "gateway_vat_rate"):
        if key not in fees:
            continue
        try:
            fees[key] = Decimal(str(fees[key]))
        except InvalidOperation:
            msg = f"CLUBTICKETS['fees']['{key}'] must be a decimal number"
            raise ValueError(msg) from None
    return FeeConfig(**fees)


def _validate_ticketing_config(config: TicketingConfig) -> None:
    """Validate high-impact configuration values with clear error messages."""
    try:
        zoneinfo.ZoneInfo(config.timezone)
    except (zoneinfo.ZoneInfoNotFoundError, ValueError, TypeError):
        msg = f"CLUBTICKETS['timezone'] is not a known time zone: {config.timezone!r}"
        raise ValueError(msg) from None
    if not isinstance(config.booking_window_days, int) or config.booking_window_days <= 0:
        msg = "CLUBTICKETS['booking_window_days'] must be a positive integer"
        raise ValueError(msg)
    if not isinstance(config.cart_expiry_minutes, int) or config.cart_expiry_minutes <= 0:
        msg = "CLUBTICKETS['cart_expiry_minutes'] must be a positive integer"
        raise ValueError(msg)
    if not isinstance(config.currency, str) or not config.currency.strip():
        msg = "CLUBTICKETS['currency'] must be a non-empty string"
        raise ValueError(msg)
    for key in ("platform_rate", "gateway_rate", "gateway_vat_rate"):
        rate = getattr(config.fees, key)
        if not 0 <= rate < 1:
            msg = f"CLUBTICKETS['fees']['{key}'] must be between 0 and 1"
            raise ValueError(msg)
    if not isinstance(config.fees.gateway_fixed, int) or config.fees.gateway_fixed < 0:
        msg = "CLUBTICKETS['fees']['gateway_fixed'] must be a non-negative integer"
        raise ValueError(msg)


def _clear_config_cache(*, setting: str, **kwargs: object) -> None:  # noqa: ARG001
    """Clear the cached config when Django settings change during tests."""
    if setting == "CLUBTICKETS":
        get_config.cache_clear()


setting_changed.connect(_clear_config_cache, dispatch_uid="django_clubtickets.settings.clear_config_cache")
