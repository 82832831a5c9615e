"""Domain events for the Cart aggregate."""

from protean.fields import Float, Identifier, Integer, String

from ordering.domain import ordering


@ordering.event(part_of="Cart")
class CartLineAdded:
    """A product was added to the cart, or its quantity grew by re-adding it."""

    __version__ = 1

    cart_id = Identifier(required=True)
    product_id = Identifier(required=True)
    variant = String()
    quantity = Integer(required=True)
    line_quantity = Integer(required=True)


@ordering.event(part_of="Cart")
class CartLineQuantityChanged:
    """The quantity of a cart line was set to a new absolute value."""

    __version__ = 1

    cart_id = Identifier(required=True)
    product_id = Identifier(required=True)
    variant = String()
    previous_quantity = Integer(required=True)
    new_quantity = Integer(required=True)


@ordering.event(part_of="Cart")
class CartLineRemoved:
    """A line was removed from the cart."""

    __version__ = 1

    cart_id = Identifier(required=True)
    product_id = Identifier(required=True)
    variant = String()


@ordering.event(part_of="Cart")
class CartCleared:
    """All lines and the coupon were removed, usually after checkout."""

    __version__ = 1

    cart_id = Identifier(required=True)


@ordering.event(part_of="Cart")
class CartCouponApplied:
    """A coupon code was attached to the cart."""

    __version__ = 1

    cart_id = Identifier(required=True)
    coupon_code = String(required=True)
    discount = Float()


@ordering.event(part_of="Cart")
class CartCouponRemoved:
    """The coupon code was detached from the cart."""

    __version__ = 1

    cart_id = Identifier(required=True)
    coupon_code = String(required=True)


@ordering.event(part_of="Cart")
class CartClaimedByUser:
    """A session cart was handed over to the user who just signed in."""

    __version__ = 1

    cart_id = Identifier(required=True)
    user_id = Identifier(required=True)
    session_id = String()


@ordering.event(part_of="Cart")
class CartsMerged:
    """A session cart's lines were folded into the user's existing cart."""

    __version__ = 1

    cart_id = Identifier(required=True)
    source_cart_id = Identifier(required=True)
    lines_merged_count = Integer(required=True)
