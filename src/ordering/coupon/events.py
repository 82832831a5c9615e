"""Domain events for the Coupon aggregate."""

from protean.fields import Boolean, Float, Identifier, Integer, String

from ordering.domain import ordering


@ordering.event(part_of="Coupon")
class CouponCreated:
    """A coupon code was created by an administrator."""

    __version__ = 1

    coupon_id = Identifier(required=True)
    code = String(required=True)
    discount_type = String(required=True)
    discount_value = Float(required=True)


@ordering.event(part_of="Coupon")
class CouponUpdated:
    """A coupon's terms were changed."""

    __version__ = 1

    coupon_id = Identifier(required=True)
    code = String(required=True)


@ordering.event(part_of="Coupon")
class CouponActivationToggled:
    """A coupon was switched on or off."""

    __version__ = 1

    coupon_id = Identifier(required=True)
    code = String(required=True)
    is_active = Boolean(required=True)


@ordering.event(part_of="Coupon")
class CouponRedeemed:
    """A completed order consumed one use of the coupon."""

    __version__ = 1

    coupon_id = Identifier(required=True)
    code = String(required=True)
    order_id = Identifier(required=True)
    usage_count = Integer(required=True)
