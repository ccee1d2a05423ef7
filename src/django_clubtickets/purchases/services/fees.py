"""Settlement fee split for a single ticket unit.

Splits an already-paid unit price into what the club keeps, what the
platform earns, and what the payment gateway costs (fee plus VAT on that
fee). Amounts are integers in minor currency units; every quantity is
rounded half-up on its own, so N units always sum to N times the per-unit
values.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from django_clubtickets.purchases.errors import ErrorCode, InputError
from django_clubtickets.settings import FeeConfig, get_config


@dataclass(frozen=True)
class FeeSplit:
    """Per-unit settlement split."""

    platform_fee: int
    gateway_fee: int
    gateway_vat: int
    club_net: int

    @property
    def unit_price(self) -> int:
        return self.platform_fee + self.club_net


def round_half_up(value: Decimal) -> int:
    """Round a decimal amount to the nearest whole minor unit, halves away from zero."""
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def validate_unit_price(unit_price: object) -> int:
    """Return *unit_price* if it is a non-negative integer, else raise ``InputError``."""
    if isinstance(unit_price, bool) or not isinstance(unit_price, int) or unit_price < 0:
        raise InputError(ErrorCode.INVALID_PRICE, f"Invalid unit price: {unit_price!r}.")
    return unit_price


def compute_split(unit_price: int, rates: FeeConfig | None = None) -> FeeSplit:
    """Split one unit's price into platform fee, gateway costs and club net.

    Args:
        unit_price: Price paid for the unit, in minor currency units.
        rates: Fee rates to apply. Defaults to the configured ``fees``.

    Returns:
        The :class:`FeeSplit` for the unit. Free units split to all zeros.

    Raises:
        InputError: If ``unit_price`` is negative or not an integer.
    """
    validate_unit_price(unit_price)
    if unit_price == 0:
        return FeeSplit(platform_fee=0, gateway_fee=0, gateway_vat=0, club_net=0)

    rates = rates or get_config().fees
    price = Decimal(unit_price)
    platform_fee = round_half_up(price * rates.platform_rate)
    gateway_fee = round_half_up(price * rates.gateway_rate + rates.gateway_fixed)
    gateway_vat = round_half_up(gateway_fee * rates.gateway_vat_rate)
    return FeeSplit(
        platform_fee=platform_fee,
        gateway_fee=gateway_fee,
        gateway_vat=gateway_vat,
        club_net=unit_price - platform_fee,
    )
