from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, NamedTuple, Optional

from django.utils import timezone
from rest_framework.exceptions import ValidationError

from api.models import PromoCode, VipSettings

ZERO = Decimal("0.00")
CENT = Decimal("0.01")


class PriceBreakdown(NamedTuple):
    base_price: Decimal
    addons_total: Decimal
    subtotal: Decimal
    vip_savings: Decimal


def _unit_price(item, is_vip: bool) -> Decimal:
    # A VIP price of zero/empty falls back to the regular price
    if is_vip and item.vip_price:
        return Decimal(item.vip_price)
    return Decimal(item.regular_price)


def calculate_price(service, addons: Iterable = (), is_vip: bool = False) -> PriceBreakdown:
    """
    Price a service plus add-ons.

    No lookups happen here: VIP eligibility and promo codes are validated
    before this is called.
    """
    addons = list(addons)

    base_price = _unit_price(service, is_vip)
    addons_total = sum((_unit_price(a, is_vip) for a in addons), ZERO)
    subtotal = base_price + addons_total

    vip_savings = ZERO
    if is_vip:
        regular_total = Decimal(service.regular_price) + sum((Decimal(a.regular_price) for a in addons), ZERO)
        vip_savings = max(ZERO, regular_total - subtotal)

    return PriceBreakdown(
        base_price=base_price.quantize(CENT),
        addons_total=addons_total.quantize(CENT),
        subtotal=subtotal.quantize(CENT),
        vip_savings=vip_savings.quantize(CENT),
    )


def validate_vip_code(code: Optional[str]) -> bool:
    """
    False when no code was given; True when it matches the enabled VIP code.
    Raises ValidationError for a wrong code.
    """
    if not code or not code.strip():
        return False

    vip_settings = VipSettings.get_settings()
    if not vip_settings.enabled or not vip_settings.vip_code:
        raise ValidationError({"vip_code": "VIP pricing is not available."})
    if vip_settings.vip_code != code.strip():
        raise ValidationError({"vip_code": "Invalid VIP code."})
    return True


def validate_promo_code(code: Optional[str]) -> Optional[PromoCode]:
    """Return the active PromoCode for `code`, None when no code was given."""
    if not code or not code.strip():
        return None

    promo = PromoCode.objects.filter(code=code.strip().upper(), is_active=True).first()
    if promo is None:
        raise ValidationError({"promo_code": "Invalid promo code."})
    if promo.expires_at and promo.expires_at < timezone.now():
        raise ValidationError({"promo_code": "This promo code has expired."})
    return promo


def apply_promo_discount(subtotal: Decimal, promo: Optional[PromoCode]) -> Decimal:
    if promo is None:
        return Decimal(subtotal).quantize(CENT)
    discount = (Decimal(subtotal) * Decimal(promo.discount_percent) / 100).quantize(CENT, rounding=ROUND_HALF_UP)
    return max(ZERO, Decimal(subtotal) - discount).quantize(CENT)
