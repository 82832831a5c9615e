"""Coupon aggregate — discount codes administered by staff and applied to carts.

Codes are stored upper-cased and looked up case-insensitively. The usage
counter only moves forward and only when an order is placed with the
coupon; cart operations never touch it.
"""

from datetime import UTC, datetime

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, Integer, String

from ordering.coupon.events import (
    CouponActivationToggled,
    CouponCreated,
    CouponRedeemed,
    CouponUpdated,
)
from ordering.domain import ordering
from ordering.errors import CouponLimitReached
from ordering.pricing.engine import CouponTerms, DiscountType, to_decimal


def normalize_code(code):
    return (code or "").strip().upper()


def as_utc(value):
    """Treat naive datetimes read back from storage as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


_EDITABLE_FIELDS = (
    "description",
    "discount_type",
    "discount_value",
    "max_discount_amount",
    "min_purchase_amount",
    "usage_limit",
    "valid_from",
    "valid_until",
    "is_active",
)


@ordering.aggregate
class Coupon:
    code = String(required=True, max_length=50)
    description = String(max_length=255)
    discount_type = String(required=True, choices=DiscountType)
    discount_value = Float(required=True, min_value=0.0)
    max_discount_amount = Float(min_value=0.0)
    min_purchase_amount = Float(default=0.0, min_value=0.0)
    usage_limit = Integer(min_value=0)
    usage_count = Integer(default=0, min_value=0)
    valid_from = DateTime(required=True)
    valid_until = DateTime(required=True)
    is_active = Boolean(default=True)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def usage_must_not_exceed_limit(self):
        if self.usage_limit is not None and (self.usage_count or 0) > self.usage_limit:
            raise ValidationError({"usage_count": ["Coupon usage cannot exceed its usage limit"]})

    @invariant.post
    def validity_window_must_be_ordered(self):
        if self.valid_from and self.valid_until and as_utc(self.valid_until) < as_utc(self.valid_from):
            raise ValidationError({"valid_until": ["Coupon must not expire before it becomes valid"]})

    @invariant.post
    def percentage_must_not_exceed_hundred(self):
        if self.discount_type == DiscountType.PERCENTAGE.value and (self.discount_value or 0) > 100:
            raise ValidationError({"discount_value": ["Percentage discount cannot exceed 100"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        code,
        discount_type,
        discount_value,
        valid_from,
        valid_until,
        description=None,
        max_discount_amount=None,
        min_purchase_amount=0.0,
        usage_limit=None,
        is_active=True,
    ):
        now = datetime.now(UTC)
        coupon = cls(
            code=normalize_code(code),
            description=description,
            discount_type=DiscountType(discount_type).value,
            discount_value=discount_value,
            max_discount_amount=max_discount_amount,
            min_purchase_amount=min_purchase_amount or 0.0,
            usage_limit=usage_limit,
            usage_count=0,
            valid_from=valid_from,
            valid_until=valid_until,
            is_active=is_active,
            created_at=now,
            updated_at=now,
        )
        coupon.raise_(
            CouponCreated(
                coupon_id=str(coupon.id),
                code=coupon.code,
                discount_type=coupon.discount_type,
                discount_value=coupon.discount_value,
            )
        )
        return coupon

    # -------------------------------------------------------------------
    # Administration
    # -------------------------------------------------------------------
    def update_terms(self, **changes):
        """Overwrite the given terms. ``None`` values leave a field unchanged."""
        with atomic_change(self):
            for field_name in _EDITABLE_FIELDS:
                value = changes.get(field_name)
                if value is None:
                    continue
                if field_name == "discount_type":
                    value = DiscountType(value).value
                setattr(self, field_name, value)

        self.updated_at = datetime.now(UTC)
        self.raise_(CouponUpdated(coupon_id=str(self.id), code=self.code))

    def toggle(self):
        self.is_active = not self.is_active
        self.updated_at = datetime.now(UTC)
        self.raise_(
            CouponActivationToggled(
                coupon_id=str(self.id),
                code=self.code,
                is_active=self.is_active,
            )
        )

    # -------------------------------------------------------------------
    # Usage
    # -------------------------------------------------------------------
    def has_reached_limit(self):
        return self.usage_limit is not None and (self.usage_count or 0) >= self.usage_limit

    def record_usage(self, order_id):
        """Consume one use of the coupon for a placed order."""
        if self.has_reached_limit():
            raise CouponLimitReached()

        self.usage_count = (self.usage_count or 0) + 1
        self.updated_at = datetime.now(UTC)
        self.raise_(
            CouponRedeemed(
                coupon_id=str(self.id),
                code=self.code,
                order_id=str(order_id),
                usage_count=self.usage_count,
            )
        )

    def is_within_window(self, now):
        return as_utc(self.valid_from) <= as_utc(now) <= as_utc(self.valid_until)

    def terms(self) -> CouponTerms:
        return CouponTerms(
            discount_type=DiscountType(self.discount_type),
            value=to_decimal(self.discount_value),
            max_discount=(to_decimal(self.max_discount_amount) if self.max_discount_amount is not None else None),
        )


@ordering.repository(part_of=Coupon)
class CouponRepository:
    def find_by_code(self, code) -> Coupon | None:
        """Case-insensitive lookup by coupon code."""
        normalized = normalize_code(code)
        if not normalized:
            return None
        return self._dao.query.filter(code=normalized).all().first

    def list_all(self) -> list[Coupon]:
        return self._dao.query.all().items
