"""Tests for the Cart aggregate — line merging, quantities, coupons, ownership and merge."""

from decimal import Decimal

import pytest
from ordering.cart.cart import Cart
from ordering.cart.events import CartLineAdded, CartsMerged
from ordering.catalogue.port import ProductSnapshot
from ordering.errors import InsufficientStock, InvalidInput, NotFound
from ordering.pricing.engine import CouponTerms, DiscountType
from protean.exceptions import ValidationError

PHONE = ProductSnapshot(product_id="prod-phone", name="Phone", price=Decimal("100.00"), stock=10, sku="PHN")
CASE = ProductSnapshot(
    product_id="prod-case",
    name="Case",
    price=Decimal("25.00"),
    stock=5,
    discount_price=Decimal("20.00"),
)
PRODUCTS = {PHONE.product_id: PHONE, CASE.product_id: CASE}


def _no_coupons(code):
    return None


def _save10(code):
    if code == "SAVE10":
        return CouponTerms(DiscountType.FIXED_AMOUNT, Decimal("10"))
    return None


class TestCartOwnership:
    def test_user_cart(self):
        cart = Cart.create(user_id="user-001")
        assert cart.user_id == "user-001"
        assert cart.session_id is None

    def test_session_cart(self):
        cart = Cart.create(session_id="sess-001")
        assert cart.session_id == "sess-001"

    def test_user_wins_over_session(self):
        cart = Cart.create(user_id="user-001", session_id="sess-001")
        assert cart.session_id is None

    def test_cart_needs_an_owner(self):
        with pytest.raises(ValidationError) as exc:
            Cart.create()
        assert "owner" in exc.value.messages

    def test_claim_for_user_moves_ownership(self):
        cart = Cart.create(session_id="sess-001")
        cart.claim_for_user("user-001")
        assert cart.user_id == "user-001"
        assert cart.session_id is None


class TestCartLines:
    def test_add_line_snapshots_product(self):
        cart = Cart.create(user_id="user-001")
        cart.add_line(PHONE, 2)

        line = cart.find_line("prod-phone")
        assert line.name == "Phone"
        assert line.sku == "PHN"
        assert line.unit_price == 100.0
        assert line.quantity == 2

    def test_same_product_and_variant_merges(self):
        cart = Cart.create(user_id="user-001")
        cart.add_line(CASE, 2, variant="Black")
        cart.add_line(CASE, 3, variant="Black")

        assert len(cart.lines) == 1
        line = cart.find_line("prod-case", "Black")
        assert line.quantity == 5
        assert line.subtotal == Decimal("100.00")

    def test_different_variants_are_separate_lines(self):
        cart = Cart.create(user_id="user-001")
        cart.add_line(CASE, 1, variant="Black")
        cart.add_line(CASE, 1, variant="Red")
        assert len(cart.lines) == 2

    def test_merged_quantity_checked_against_stock(self):
        cart = Cart.create(user_id="user-001")
        cart.add_line(CASE, 4)
        with pytest.raises(InsufficientStock) as exc:
            cart.add_line(CASE, 2)
        assert exc.value.requested == 6
        assert exc.value.available == 5
        assert cart.find_line("prod-case").quantity == 4

    def test_quantity_must_be_positive(self):
        cart = Cart.create(user_id="user-001")
        with pytest.raises(InvalidInput):
            cart.add_line(PHONE, 0)

    def test_add_line_raises_event(self):
        cart = Cart.create(user_id="user-001")
        cart.add_line(PHONE, 1)
        assert any(isinstance(event, CartLineAdded) for event in cart._events)

    def test_set_quantity(self):
        cart = Cart.create(user_id="user-001")
        cart.add_line(PHONE, 1)
        cart.set_quantity("prod-phone", 4, available_stock=10)
        assert cart.find_line("prod-phone").quantity == 4

    def test_set_quantity_zero_removes_line(self):
        cart = Cart.create(user_id="user-001")
        cart.add_line(PHONE, 1)
        cart.set_quantity("prod-phone", 0, available_stock=10)
        assert cart.find_line("prod-phone") is None

    def test_set_quantity_above_stock(self):
        cart = Cart.create(user_id="user-001")
        cart.add_line(PHONE, 1)
        with pytest.raises(InsufficientStock):
            cart.set_quantity("prod-phone", 11, available_stock=10)

    def test_set_quantity_of_missing_line(self):
        cart = Cart.create(user_id="user-001")
        with pytest.raises(NotFound):
            cart.set_quantity("prod-phone", 1, available_stock=10)

    def test_remove_line(self):
        cart = Cart.create(user_id="user-001")
        cart.add_line(PHONE, 1)
        cart.remove_line("prod-phone")
        assert len(cart.lines) == 0

    def test_clear_drops_lines_and_coupon(self):
        cart = Cart.create(user_id="user-001")
        cart.add_line(PHONE, 1)
        cart.apply_coupon("SAVE10", _save10)
        cart.clear()

        assert len(cart.lines) == 0
        assert cart.coupon_code is None
        assert cart.totals.total == 0.0
        assert cart.item_count == 0


class TestCartPricing:
    def test_recalculate_prices_lines(self):
        cart = Cart.create(user_id="user-001")
        cart.add_line(PHONE, 3)
        cart.recalculate(_no_coupons)

        assert cart.totals.subtotal == 300.0
        assert cart.totals.tax == 60.0
        assert cart.totals.shipping_cost == 29.99
        assert cart.totals.total == 389.99

    def test_apply_coupon_reprices(self):
        cart = Cart.create(user_id="user-001")
        cart.add_line(PHONE, 3)
        cart.apply_coupon("SAVE10", _save10)

        assert cart.coupon_code == "SAVE10"
        assert cart.totals.discount == 10.0
        assert cart.totals.total == 377.99

    def test_vanished_coupon_degrades_to_no_discount(self):
        cart = Cart.create(user_id="user-001")
        cart.add_line(PHONE, 3)
        cart.apply_coupon("SAVE10", _save10)
        cart.recalculate(_no_coupons)

        assert cart.coupon_code == "SAVE10"
        assert cart.totals.discount == 0.0

    def test_remove_coupon(self):
        cart = Cart.create(user_id="user-001")
        cart.add_line(PHONE, 1)
        cart.apply_coupon("SAVE10", _save10)
        cart.remove_coupon()
        cart.recalculate(_save10)
        assert cart.totals.discount == 0.0

    def test_recalculate_twice_is_stable(self):
        cart = Cart.create(user_id="user-001")
        cart.add_line(CASE, 3)
        first = cart.recalculate(_save10)
        second = cart.recalculate(_save10)
        assert first == second


class TestCartAbsorb:
    def test_lines_are_merged_and_capped_at_stock(self):
        user_cart = Cart.create(user_id="user-001")
        user_cart.add_line(CASE, 3)
        session_cart = Cart.create(session_id="sess-001")
        session_cart.add_line(CASE, 4)
        session_cart.add_line(PHONE, 2)

        user_cart.absorb(session_cart, PRODUCTS.get)

        assert user_cart.find_line("prod-case").quantity == 5
        assert user_cart.find_line("prod-phone").quantity == 2
        assert any(isinstance(event, CartsMerged) for event in user_cart._events)

    def test_unavailable_products_are_dropped(self):
        user_cart = Cart.create(user_id="user-001")
        session_cart = Cart.create(session_id="sess-001")
        session_cart.add_line(PHONE, 1)

        user_cart.absorb(session_cart, lambda product_id: None)

        assert len(user_cart.lines) == 0

    def test_session_coupon_adopted_when_user_has_none(self):
        user_cart = Cart.create(user_id="user-001")
        session_cart = Cart.create(session_id="sess-001")
        session_cart.coupon_code = "SAVE10"

        user_cart.absorb(session_cart, PRODUCTS.get)

        assert user_cart.coupon_code == "SAVE10"

    def test_user_coupon_kept(self):
        user_cart = Cart.create(user_id="user-001")
        user_cart.coupon_code = "MINE"
        session_cart = Cart.create(session_id="sess-001")
        session_cart.coupon_code = "SAVE10"

        user_cart.absorb(session_cart, PRODUCTS.get)

        assert user_cart.coupon_code == "MINE"
