"""Application tests for checkout — snapshot, stock, coupon usage, cart clearing, rollback and races."""

import json

import pytest
from ordering.cart.cart import Cart
from ordering.cart.management import ApplyCartCoupon
from ordering.catalogue import set_catalogue
from ordering.catalogue.memory_adapter import InMemoryCatalogue
from ordering.coupon.coupon import Coupon
from ordering.errors import CouponLimitReached, EmptyCart, Forbidden, InsufficientStock, InvalidInput
from ordering.order.order import Order, OrderStatus, PaymentStatus
from ordering.order.placement import PlaceOrder, generate_order_number
from protean import current_domain
from protean.exceptions import ExpectedVersionError


def _order(order_id):
    return current_domain.repository_for(Order).get(order_id)


class TestOrderNumber:
    def test_format(self):
        number = generate_order_number()
        prefix, stamp, token = number.split("-")
        assert prefix == "ORD"
        assert len(stamp) == 14 and stamp.isdigit()
        assert len(token) == 6 and token == token.upper()


class TestPlaceOrder:
    def test_order_snapshots_cart(self, add_to_cart, place_order):
        add_to_cart(product_id="prod-phone", quantity=1)
        add_to_cart(product_id="prod-case", quantity=2)

        order = _order(place_order())

        assert order.status == OrderStatus.PENDING.value
        assert order.payment_status == PaymentStatus.PENDING.value
        assert order.user_id == "user-001"
        assert {(item.product_id, item.quantity) for item in order.items} == {("prod-phone", 1), ("prod-case", 2)}
        assert order.pricing.subtotal == 340.0
        assert order.pricing.tax == 68.0
        assert order.pricing.shipping_cost == 29.99
        assert order.pricing.total == 437.99
        assert order.shipping_address.city == "Ankara"
        assert order.billing_address.city == "Ankara"
        assert order.order_number.startswith("ORD-")

    def test_stock_is_decremented(self, add_to_cart, place_order, catalogue):
        add_to_cart(product_id="prod-phone", quantity=3)
        place_order()
        assert catalogue.stock_of("prod-phone") == 7

    def test_cart_is_cleared(self, add_to_cart, place_order):
        cart_id = add_to_cart(quantity=1)
        place_order()

        cart = current_domain.repository_for(Cart).get(cart_id)
        assert len(cart.lines) == 0
        assert cart.totals.total == 0.0

    def test_coupon_usage_recorded(self, add_to_cart, place_order, make_coupon):
        coupon = make_coupon(usage_limit=5)
        add_to_cart(quantity=1)
        current_domain.process(ApplyCartCoupon(user_id="user-001", coupon_code="SAVE10"), asynchronous=False)

        order = _order(place_order())

        assert order.coupon_code == "SAVE10"
        assert order.pricing.discount == 10.0
        assert current_domain.repository_for(Coupon).get(coupon.id).usage_count == 1

    def test_coupon_exhausted_before_checkout(self, add_to_cart, place_order, make_coupon, catalogue):
        coupon = make_coupon(usage_limit=1)
        add_to_cart(quantity=1)
        current_domain.process(ApplyCartCoupon(user_id="user-001", coupon_code="SAVE10"), asynchronous=False)

        coupon = current_domain.repository_for(Coupon).get(coupon.id)
        coupon.record_usage("someone-else")
        current_domain.repository_for(Coupon).add(coupon)

        with pytest.raises(CouponLimitReached):
            place_order()
        assert catalogue.stock_of("prod-phone") == 10

    def test_deactivated_coupon_is_dropped(self, add_to_cart, place_order, make_coupon):
        coupon = make_coupon()
        add_to_cart(quantity=1)
        current_domain.process(ApplyCartCoupon(user_id="user-001", coupon_code="SAVE10"), asynchronous=False)

        coupon = current_domain.repository_for(Coupon).get(coupon.id)
        coupon.toggle()
        current_domain.repository_for(Coupon).add(coupon)

        order = _order(place_order())

        assert order.coupon_code is None
        assert order.pricing.discount == 0.0

    def test_empty_cart(self, place_order):
        with pytest.raises(EmptyCart):
            place_order()

    def test_anonymous_checkout_forbidden(self, place_order):
        with pytest.raises(Forbidden):
            place_order(user_id=None)

    def test_stock_changed_since_add(self, add_to_cart, place_order, catalogue):
        add_to_cart(product_id="prod-cable", quantity=2)
        catalogue.decrement_stock("prod-cable", 1)

        with pytest.raises(InsufficientStock) as exc:
            place_order()
        assert exc.value.available == 1
        assert current_domain.repository_for(Order).for_user("user-001") == []

    def test_invalid_payment_method(self, add_to_cart, place_order):
        add_to_cart()
        with pytest.raises(InvalidInput):
            place_order(payment_method="Barter")

    def test_invalid_address(self, add_to_cart, address):
        add_to_cart()
        del address["city"]
        with pytest.raises(InvalidInput):
            current_domain.process(
                PlaceOrder(user_id="user-001", shipping_address=json.dumps(address), payment_method="CreditCard"),
                asynchronous=False,
            )


class _FlakyCatalogue(InMemoryCatalogue):
    """Refuses to decrement one product, as if another checkout won the race."""

    def __init__(self, contested):
        super().__init__()
        self.contested = contested

    def decrement_stock(self, product_id, quantity):
        if product_id == self.contested:
            return False
        return super().decrement_stock(product_id, quantity)


class TestPlacementRollback:
    def test_taken_stock_is_restored(self, add_to_cart, place_order):
        catalogue = _FlakyCatalogue(contested="prod-case")
        catalogue.add_product("prod-phone", "Phone", "300.00", stock=10)
        catalogue.add_product("prod-case", "Case", "25.00", stock=10)
        set_catalogue(catalogue)

        add_to_cart(product_id="prod-phone", quantity=2)
        add_to_cart(product_id="prod-case", quantity=1)

        with pytest.raises(InsufficientStock):
            place_order()

        assert catalogue.stock_of("prod-phone") == 10
        assert catalogue.stock_of("prod-case") == 10

    def test_stock_is_restored_when_commit_fails(self, add_to_cart, place_order, catalogue, fail_next_commit):
        add_to_cart(product_id="prod-phone", quantity=2)
        state = fail_next_commit()

        # Protean may retry a version conflict; either way the stock must match what was persisted
        try:
            place_order()
        except ExpectedVersionError:
            pass

        assert state["failures"] == 1
        assert 10 - catalogue.stock_of("prod-phone") == _ordered_quantity("user-001", "prod-phone")


def _ordered_quantity(user_id, product_id):
    orders = current_domain.repository_for(Order).for_user(user_id)
    return sum(item.quantity for order in orders for item in order.items if item.product_id == product_id)


class TestConcurrentCheckout:
    def test_racing_checkouts_of_one_cart_take_stock_once(self, add_to_cart, place_order, catalogue, race):
        add_to_cart(product_id="prod-phone", quantity=2)

        outcomes = race(place_order, place_order)

        placed = [outcome for outcome in outcomes if isinstance(outcome, str)]
        refused = [outcome for outcome in outcomes if not isinstance(outcome, str)]
        assert len(placed) == 1
        assert all(isinstance(outcome, (EmptyCart, ExpectedVersionError)) for outcome in refused)
        assert len(current_domain.repository_for(Order).for_user("user-001")) == 1
        assert 10 - catalogue.stock_of("prod-phone") == _ordered_quantity("user-001", "prod-phone") == 2

    def test_racing_checkouts_of_different_users_both_succeed(self, add_to_cart, place_order, catalogue, race):
        add_to_cart(user_id="user-001", product_id="prod-phone", quantity=3)
        add_to_cart(user_id="user-002", product_id="prod-phone", quantity=4)

        outcomes = race(lambda: place_order(user_id="user-001"), lambda: place_order(user_id="user-002"))

        assert all(isinstance(outcome, str) for outcome in outcomes)
        taken = _ordered_quantity("user-001", "prod-phone") + _ordered_quantity("user-002", "prod-phone")
        assert 10 - catalogue.stock_of("prod-phone") == taken == 7
