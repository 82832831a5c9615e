"""Cart aggregate (CQRS) — a customer's or guest's basket, priced on every change.

A cart belongs either to a signed-in user or to an anonymous session, never
both. Lines carry a snapshot of the product (name, SKU, image, prices) taken
when the product was added. The monetary totals are never set directly:
every mutation ends with ``recalculate``, which derives them from the lines
and the applied coupon code.
"""

from datetime import UTC, datetime

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String, ValueObject

from ordering.cart.events import (
    CartClaimedByUser,
    CartCleared,
    CartCouponApplied,
    CartCouponRemoved,
    CartLineAdded,
    CartLineQuantityChanged,
    CartLineRemoved,
    CartsMerged,
)
from ordering.domain import ordering
from ordering.errors import InsufficientStock, InvalidInput, NotFound
from ordering.pricing.engine import line_subtotal, recalculate
from ordering.pricing.summary import PricingSummary


def _same_variant(left, right):
    return (left or None) == (right or None)


@ordering.entity(part_of="Cart")
class CartLine:
    product_id = Identifier(required=True)
    variant = String(max_length=100)
    name = String(required=True, max_length=255)
    sku = String(max_length=50)
    image_url = String(max_length=500)
    unit_price = Float(required=True, min_value=0.0)
    discount_price = Float(min_value=0.0)
    quantity = Integer(required=True, min_value=1)
    added_at = DateTime()

    def matches(self, product_id, variant=None):
        return str(self.product_id) == str(product_id) and _same_variant(self.variant, variant)

    @property
    def subtotal(self):
        return line_subtotal(self.unit_price, self.quantity, self.discount_price)


@ordering.aggregate
class Cart:
    user_id = Identifier()
    session_id = String(max_length=255)
    lines = HasMany(CartLine)
    coupon_code = String(max_length=50)
    totals = ValueObject(PricingSummary)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def cart_must_have_exactly_one_owner(self):
        if bool(self.user_id) == bool(self.session_id):
            raise ValidationError({"owner": ["A cart belongs to either a user or a session, not both"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, user_id=None, session_id=None):
        now = datetime.now(UTC)
        return cls(
            user_id=user_id,
            session_id=None if user_id else session_id,
            totals=PricingSummary(),
            created_at=now,
            updated_at=now,
        )

    # -------------------------------------------------------------------
    # Pricing
    # -------------------------------------------------------------------
    def recalculate(self, coupon_lookup):
        """Re-derive totals from the current lines and coupon code."""
        totals = recalculate(self.lines, self.coupon_code, coupon_lookup)
        self.totals = PricingSummary.from_totals(totals)
        return totals

    # -------------------------------------------------------------------
    # Line management
    # -------------------------------------------------------------------
    def find_line(self, product_id, variant=None):
        return next((line for line in self.lines if line.matches(product_id, variant)), None)

    def add_line(self, product, quantity, variant=None):
        """Add ``quantity`` of ``product`` (a catalogue snapshot), merging with an existing line.

        The stock check is advisory here; placement re-checks it.
        """
        if quantity is None or quantity < 1:
            raise InvalidInput("Quantity must be at least 1", field="quantity")

        existing = self.find_line(product.product_id, variant)
        requested = quantity + (existing.quantity if existing else 0)
        if requested > product.stock:
            raise InsufficientStock(product.product_id, requested, product.stock, product.name)

        now = datetime.now(UTC)
        if existing:
            existing.quantity = requested
        else:
            self.add_lines(
                CartLine(
                    product_id=product.product_id,
                    variant=variant or None,
                    name=product.name,
                    sku=product.sku,
                    image_url=product.image_url,
                    unit_price=float(product.price),
                    discount_price=float(product.discount_price) if product.discount_price is not None else None,
                    quantity=quantity,
                    added_at=now,
                )
            )
        self.updated_at = now

        self.raise_(
            CartLineAdded(
                cart_id=str(self.id),
                product_id=str(product.product_id),
                variant=variant,
                quantity=quantity,
                line_quantity=requested,
            )
        )

    def set_quantity(self, product_id, quantity, available_stock, variant=None):
        """Replace a line's quantity. Zero removes the line."""
        if quantity is None or quantity < 0:
            raise InvalidInput("Quantity cannot be negative", field="quantity")

        line = self.find_line(product_id, variant)
        if line is None:
            raise NotFound("CartLine", product_id, "Item not found in cart")

        if quantity == 0:
            self.remove_line(product_id, variant)
            return

        if quantity > available_stock:
            raise InsufficientStock(product_id, quantity, available_stock, line.name)

        previous_quantity = line.quantity
        line.quantity = quantity
        self.updated_at = datetime.now(UTC)

        self.raise_(
            CartLineQuantityChanged(
                cart_id=str(self.id),
                product_id=str(product_id),
                variant=variant,
                previous_quantity=previous_quantity,
                new_quantity=quantity,
            )
        )

    def remove_line(self, product_id, variant=None):
        line = self.find_line(product_id, variant)
        if line is None:
            raise NotFound("CartLine", product_id, "Item not found in cart")

        self.remove_lines(line)
        self.updated_at = datetime.now(UTC)

        self.raise_(
            CartLineRemoved(
                cart_id=str(self.id),
                product_id=str(product_id),
                variant=variant,
            )
        )

    def clear(self):
        """Empty the cart: no lines, no coupon, zero totals."""
        for line in list(self.lines):
            self.remove_lines(line)
        self.coupon_code = None
        self.totals = PricingSummary()
        self.updated_at = datetime.now(UTC)

        self.raise_(CartCleared(cart_id=str(self.id)))

    # -------------------------------------------------------------------
    # Coupon management
    # -------------------------------------------------------------------
    def apply_coupon(self, coupon_code, coupon_lookup):
        """Attach an already validated coupon code and reprice."""
        self.coupon_code = coupon_code
        self.updated_at = datetime.now(UTC)
        totals = self.recalculate(coupon_lookup)

        self.raise_(
            CartCouponApplied(
                cart_id=str(self.id),
                coupon_code=coupon_code,
                discount=float(totals.discount),
            )
        )

    def remove_coupon(self):
        previous = self.coupon_code
        self.coupon_code = None
        self.updated_at = datetime.now(UTC)

        if previous:
            self.raise_(CartCouponRemoved(cart_id=str(self.id), coupon_code=previous))

    # -------------------------------------------------------------------
    # Ownership
    # -------------------------------------------------------------------
    def claim_for_user(self, user_id):
        """Hand a session cart over to a signed-in user."""
        session_id = self.session_id
        with atomic_change(self):
            self.user_id = user_id
            self.session_id = None
        self.updated_at = datetime.now(UTC)

        self.raise_(
            CartClaimedByUser(
                cart_id=str(self.id),
                user_id=str(user_id),
                session_id=session_id,
            )
        )

    def absorb(self, other, product_lookup):
        """Fold another cart's lines into this one.

        Quantities of matching (product, variant) lines are added and capped
        at the product's current stock; lines for products that are gone or
        out of stock are dropped. The other cart's coupon is adopted only
        when this cart has none.
        """
        merged = 0
        now = datetime.now(UTC)

        for line in other.lines:
            product = product_lookup(line.product_id)
            if product is None or not product.is_active or product.stock < 1:
                continue

            existing = self.find_line(line.product_id, line.variant)
            if existing:
                existing.quantity = min(existing.quantity + line.quantity, product.stock)
            else:
                self.add_lines(
                    CartLine(
                        product_id=line.product_id,
                        variant=line.variant,
                        name=line.name,
                        sku=line.sku,
                        image_url=line.image_url,
                        unit_price=line.unit_price,
                        discount_price=line.discount_price,
                        quantity=min(line.quantity, product.stock),
                        added_at=line.added_at or now,
                    )
                )
            merged += 1

        if not self.coupon_code and other.coupon_code:
            self.coupon_code = other.coupon_code
        self.updated_at = now

        self.raise_(
            CartsMerged(
                cart_id=str(self.id),
                source_cart_id=str(other.id),
                lines_merged_count=merged,
            )
        )

    @property
    def item_count(self):
        return sum(line.quantity for line in self.lines)


@ordering.repository(part_of=Cart)
class CartRepository:
    def for_user(self, user_id) -> Cart | None:
        return self._dao.query.filter(user_id=str(user_id)).all().first

    def for_session(self, session_id) -> Cart | None:
        return self._dao.query.filter(session_id=session_id).all().first
