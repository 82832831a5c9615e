"""Coupon validation — a standalone predicate reused by carts and checkout.

``check`` returns the typed failure (or None); ``validate`` raises it. Both
take ``now`` explicitly so the same rules apply at cart time and again at
order placement.
"""

import re
from datetime import UTC, datetime

from protean.utils.globals import current_domain

from ordering.coupon.coupon import Coupon, normalize_code
from ordering.errors import (
    CouponExpired,
    CouponLimitReached,
    InvalidCoupon,
    InvalidInput,
    MinimumPurchaseNotMet,
)
from ordering.pricing.engine import quantize, to_decimal

_CODE_PATTERN = re.compile(r"^[A-Z0-9][A-Z0-9_-]{0,49}$")


def check(coupon, now, subtotal=None):
    """Return the reason ``coupon`` cannot be used, or None when it can.

    The validity window is inclusive at both ends. The minimum-purchase
    rule is skipped when ``subtotal`` is None.
    """
    if coupon is None or not coupon.is_active:
        return InvalidCoupon()
    if not coupon.is_within_window(now):
        return CouponExpired()
    if coupon.has_reached_limit():
        return CouponLimitReached()
    if subtotal is not None and to_decimal(subtotal) < to_decimal(coupon.min_purchase_amount):
        return MinimumPurchaseNotMet(quantize(coupon.min_purchase_amount))
    return None


def validate(coupon, now, subtotal=None):
    failure = check(coupon, now, subtotal)
    if failure is not None:
        raise failure
    return coupon


def parse_code(code):
    """Normalize a user-supplied code, rejecting structurally invalid ones."""
    normalized = normalize_code(code)
    if not _CODE_PATTERN.match(normalized):
        raise InvalidInput("Malformed coupon code", field="coupon_code")
    return normalized


def find_coupon(code):
    return current_domain.repository_for(Coupon).find_by_code(code)


def active_terms(code):
    """Coupon lookup for the pricing engine: terms of an active coupon, else None."""
    coupon = find_coupon(code)
    if coupon is None or not coupon.is_active:
        return None
    return coupon.terms()


def validate_coupon_code(code, subtotal=None, now=None):
    """Resolve and validate a code outside any cart, e.g. for a preview."""
    coupon = find_coupon(parse_code(code))
    return validate(coupon, now or datetime.now(UTC), subtotal)
