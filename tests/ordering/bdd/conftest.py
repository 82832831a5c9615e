"""Shared BDD fixtures and step definitions for the Ordering domain."""

import json
from datetime import UTC, datetime, timedelta

import pytest
from ordering.cart.management import AddCartItem, ApplyCartCoupon
from ordering.catalogue import get_catalogue
from ordering.coupon.coupon import Coupon
from ordering.order.order import Order
from ordering.order.placement import PlaceOrder
from protean import current_domain
from protean.exceptions import ObjectNotFoundError, ValidationError
from pytest_bdd import given, parsers, then, when

SHIPPING_ADDRESS = {
    "full_name": "Ayse Yilmaz",
    "phone": "+90 555 111 22 33",
    "address_line1": "Bagdat Caddesi No:10",
    "city": "Ankara",
    "state": "Cankaya",
    "postal_code": "06000",
    "country": "TR",
}


# ---------------------------------------------------------------------------
# Scalar fixtures
# ---------------------------------------------------------------------------
@pytest.fixture()
def shopper():
    return "user-001"


@pytest.fixture()
def outcome():
    """Container for the order under test and any captured rejection."""
    return {"order_id": None, "exc": None}


@pytest.fixture()
def attempt(outcome):
    """Run an operation, keeping a domain rejection in ``outcome`` instead of raising it."""

    def _attempt(operation):
        outcome["exc"] = None
        try:
            return operation()
        except (ValidationError, ObjectNotFoundError) as exc:
            outcome["exc"] = exc
            return None

    return _attempt


def _order(outcome):
    return current_domain.repository_for(Order).get(outcome["order_id"])


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('the catalogue has "{product_id}" priced {price} with {stock:d} in stock'))
def _(product_id, price, stock):
    get_catalogue().add_product(product_id, product_id.title(), price, stock=stock)


@given(parsers.cfparse('a fixed coupon "{code}" worth {value:g}'))
def _(code, value):
    now = datetime.now(UTC)
    coupon = Coupon.create(
        code=code,
        discount_type="FixedAmount",
        discount_value=value,
        valid_from=now - timedelta(days=1),
        valid_until=now + timedelta(days=30),
    )
    current_domain.repository_for(Coupon).add(coupon)


@given(parsers.cfparse('a percentage coupon "{code}" of {value:g} percent capped at {cap:g}'))
def _(code, value, cap):
    now = datetime.now(UTC)
    coupon = Coupon.create(
        code=code,
        discount_type="Percentage",
        discount_value=value,
        max_discount_amount=cap,
        valid_from=now - timedelta(days=1),
        valid_until=now + timedelta(days=30),
    )
    current_domain.repository_for(Coupon).add(coupon)


@given(parsers.cfparse('the shopper has {quantity:d} of "{product_id}" in the cart'))
def _(shopper, quantity, product_id):
    current_domain.process(
        AddCartItem(user_id=shopper, product_id=product_id, quantity=quantity),
        asynchronous=False,
    )


@given(parsers.cfparse('the shopper applied coupon "{code}"'))
def _(shopper, code):
    current_domain.process(ApplyCartCoupon(user_id=shopper, coupon_code=code), asynchronous=False)


# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------
@given(parsers.cfparse('the shopper checked out paying by "{method}"'))
@when(parsers.cfparse('the shopper checks out paying by "{method}"'))
def _(shopper, outcome, attempt, method):
    command = PlaceOrder(
        user_id=shopper,
        shipping_address=json.dumps(SHIPPING_ADDRESS),
        payment_method=method,
    )
    order_id = attempt(lambda: current_domain.process(command, asynchronous=False))
    if order_id is not None:
        outcome["order_id"] = order_id


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the order is "{status}"'))
def _(outcome, status):
    assert outcome["exc"] is None
    assert _order(outcome).status == status


@then(parsers.cfparse("the order total is {total:g}"))
def _(outcome, total):
    assert _order(outcome).pricing.total == pytest.approx(total)


@then(parsers.cfparse("the order discount is {discount:g}"))
def _(outcome, discount):
    assert _order(outcome).pricing.discount == pytest.approx(discount)


@then(parsers.cfparse("the order shipping cost is {cost:g}"))
def _(outcome, cost):
    assert _order(outcome).pricing.shipping_cost == pytest.approx(cost)


@then(parsers.cfparse('it is rejected with "{kind}"'))
def _(outcome, kind):
    assert outcome["exc"] is not None
    assert outcome["exc"].kind == kind


@then(parsers.cfparse('"{product_id}" has {stock:d} in stock'))
def _(product_id, stock):
    assert get_catalogue().stock_of(product_id) == stock
