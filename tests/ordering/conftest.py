"""Shared fixtures for Ordering tests."""

import json
import threading
from datetime import UTC, datetime, timedelta

import pytest
from ordering.cart.management import AddCartItem
from ordering.catalogue import get_catalogue
from ordering.coupon.coupon import Coupon
from ordering.domain import ordering
from ordering.order.placement import PlaceOrder
from protean import current_domain
from protean.core.unit_of_work import UnitOfWork
from protean.exceptions import ExpectedVersionError


@pytest.fixture()
def address():
    return {
        "full_name": "Ayse Yilmaz",
        "phone": "+90 555 111 22 33",
        "email": "ayse@example.com",
        "address_line1": "Bagdat Caddesi No:10",
        "city": "Ankara",
        "state": "Cankaya",
        "postal_code": "06000",
        "country": "TR",
    }


@pytest.fixture()
def catalogue():
    """In-memory catalogue seeded with a few products."""
    catalogue = get_catalogue()
    catalogue.add_product("prod-phone", "Phone", "300.00", stock=10, sku="PHN-001")
    catalogue.add_product("prod-case", "Phone Case", "25.00", stock=50, sku="CSE-001", discount_price="20.00")
    catalogue.add_product("prod-cable", "USB Cable", "9.99", stock=2, sku="CBL-001")
    return catalogue


@pytest.fixture()
def make_coupon():
    """Persist a coupon that became valid yesterday and runs for thirty days."""

    def _make(code="SAVE10", discount_type="FixedAmount", discount_value=10.0, **overrides):
        now = datetime.now(UTC)
        values = {
            "code": code,
            "discount_type": discount_type,
            "discount_value": discount_value,
            "valid_from": now - timedelta(days=1),
            "valid_until": now + timedelta(days=30),
        }
        values.update(overrides)
        coupon = Coupon.create(**values)
        current_domain.repository_for(Coupon).add(coupon)
        return coupon

    return _make


@pytest.fixture()
def add_to_cart(catalogue):
    def _add(user_id="user-001", product_id="prod-phone", quantity=1, session_id=None, variant=None):
        return current_domain.process(
            AddCartItem(
                user_id=user_id,
                session_id=session_id,
                product_id=product_id,
                variant=variant,
                quantity=quantity,
            ),
            asynchronous=False,
        )

    return _add


@pytest.fixture()
def place_order(catalogue, address):
    def _place(user_id="user-001", payment_method="CreditCard", shipping_address=None):
        return current_domain.process(
            PlaceOrder(
                user_id=user_id,
                shipping_address=json.dumps(shipping_address or address),
                payment_method=payment_method,
            ),
            asynchronous=False,
        )

    return _place


@pytest.fixture()
def order_for(add_to_cart, place_order):
    """Fill a user's cart and check it out; returns the order id."""

    def _order(user_id="user-001", product_id="prod-phone", quantity=1, payment_method="CreditCard"):
        add_to_cart(user_id=user_id, product_id=product_id, quantity=quantity)
        return place_order(user_id=user_id, payment_method=payment_method)

    return _order


@pytest.fixture()
def race():
    """Run callables at the same moment, one thread and domain context each.

    Returns each callable's result, or the exception it raised, in call order.
    """

    def _race(*operations):
        barrier = threading.Barrier(len(operations))
        outcomes = [None] * len(operations)

        def _run(index, operation):
            with ordering.domain_context():
                barrier.wait()
                try:
                    outcomes[index] = operation()
                except Exception as exc:
                    outcomes[index] = exc

        threads = [threading.Thread(target=_run, args=(index, op)) for index, op in enumerate(operations)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=30)
        return outcomes

    return _race


@pytest.fixture()
def fail_next_commit(monkeypatch):
    """Arm the next unit of work to fail its commit with a version conflict, as a losing concurrent writer would."""
    original_commit = UnitOfWork.commit
    state = {"armed": False, "failures": 0}

    def _commit(self):
        if state["armed"]:
            state["armed"] = False
            state["failures"] += 1
            raise ExpectedVersionError("Concurrent modification")
        return original_commit(self)

    monkeypatch.setattr(UnitOfWork, "commit", _commit)

    def _arm():
        state["armed"] = True
        return state

    return _arm
