"""Pricing engine — derives cart totals from line items and an optional coupon.

Pure computation over ``Decimal``: no persistence, no clock, no side effects.
Calling ``recalculate`` twice on the same input returns equal ``Totals``.

    subtotal  = sum((discount_price or price) * quantity)
    discount  = coupon percentage or fixed value, capped, never above subtotal
    taxable   = subtotal - discount
    shipping  = 0 if taxable >= free_shipping_threshold else shipping_cost
    tax       = taxable * tax_rate
    total     = taxable + tax + shipping

Every component is rounded half-up to cents before it is summed, so the
stored total always equals the sum of the stored components.
"""

import os
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


class DiscountType(Enum):
    PERCENTAGE = "Percentage"
    FIXED_AMOUNT = "FixedAmount"


def to_decimal(value) -> Decimal:
    """Convert a stored amount (float, int, str) to an exact Decimal.

    Floats go through ``str`` so ``29.99`` stays ``Decimal("29.99")``.
    """
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def quantize(value) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class PricingPolicy:
    tax_rate: Decimal = Decimal("0.20")
    free_shipping_threshold: Decimal = Decimal("500.00")
    shipping_cost: Decimal = Decimal("29.99")

    @classmethod
    def from_env(cls) -> "PricingPolicy":
        return cls(
            tax_rate=Decimal(os.environ.get("ORDERING_TAX_RATE", "0.20")),
            free_shipping_threshold=Decimal(os.environ.get("ORDERING_FREE_SHIPPING_THRESHOLD", "500.00")),
            shipping_cost=Decimal(os.environ.get("ORDERING_SHIPPING_COST", "29.99")),
        )


_policy: PricingPolicy | None = None


def get_policy() -> PricingPolicy:
    """Return the process-wide pricing policy, read from the environment once."""
    global _policy
    if _policy is None:
        _policy = PricingPolicy.from_env()
    return _policy


def reset_policy() -> None:
    global _policy
    _policy = None


@dataclass(frozen=True)
class CouponTerms:
    """The discount-relevant part of a coupon, as seen by the engine."""

    discount_type: DiscountType
    value: Decimal
    max_discount: Decimal | None = None


@dataclass(frozen=True)
class PricedLine:
    unit_price: Decimal
    quantity: int
    discount_price: Decimal | None = None


@dataclass(frozen=True)
class Totals:
    subtotal: Decimal = ZERO
    discount: Decimal = ZERO
    tax: Decimal = ZERO
    shipping_cost: Decimal = ZERO
    total: Decimal = ZERO

    @property
    def taxable(self) -> Decimal:
        return self.subtotal - self.discount


def line_subtotal(unit_price, quantity, discount_price=None) -> Decimal:
    """``(discount_price or unit_price) * quantity``, rounded to cents."""
    effective = to_decimal(unit_price) if discount_price is None else to_decimal(discount_price)
    return quantize(effective * quantity)


def compute_discount(subtotal: Decimal, terms: CouponTerms | None) -> Decimal:
    if terms is None:
        return ZERO

    if terms.discount_type == DiscountType.PERCENTAGE:
        discount = subtotal * to_decimal(terms.value) / Decimal(100)
    else:
        discount = to_decimal(terms.value)

    if terms.max_discount is not None:
        discount = min(discount, to_decimal(terms.max_discount))

    # A fixed coupon worth more than the cart never drives the total negative
    return quantize(max(ZERO, min(discount, subtotal)))


def recalculate(
    lines: Iterable,
    coupon_code: str | None = None,
    coupon_lookup: Callable[[str], CouponTerms | None] | None = None,
    policy: PricingPolicy | None = None,
) -> Totals:
    """Compute totals for ``lines``.

    ``lines`` are any objects exposing ``unit_price``, ``discount_price`` and
    ``quantity``. ``coupon_lookup`` resolves a code to ``CouponTerms`` and
    returns ``None`` for unknown or inactive coupons, which prices the cart
    without a discount instead of failing.
    """
    policy = policy or get_policy()
    lines = list(lines)

    if not lines:
        return Totals()

    subtotal = sum(
        (line_subtotal(line.unit_price, line.quantity, line.discount_price) for line in lines),
        ZERO,
    )

    terms = None
    if coupon_code and coupon_lookup is not None:
        terms = coupon_lookup(coupon_code)

    discount = compute_discount(subtotal, terms)
    taxable = subtotal - discount
    shipping_cost = ZERO if taxable >= policy.free_shipping_threshold else quantize(policy.shipping_cost)
    tax = quantize(taxable * policy.tax_rate)

    return Totals(
        subtotal=quantize(subtotal),
        discount=discount,
        tax=tax,
        shipping_cost=shipping_cost,
        total=quantize(taxable + tax + shipping_cost),
    )
