"""Application tests for coupon administration commands and code validation."""

from datetime import UTC, datetime, timedelta

import pytest
from ordering.coupon.coupon import Coupon
from ordering.coupon.management import CreateCoupon, DeleteCoupon, ToggleCoupon, UpdateCoupon, list_coupons
from ordering.coupon.validation import validate_coupon_code
from ordering.errors import CouponLimitReached, Forbidden, InvalidCoupon, InvalidInput, NotFound
from protean import current_domain
from protean.exceptions import ValidationError


def _create(**overrides):
    now = datetime.now(UTC)
    values = {
        "code": "welcome15",
        "discount_type": "Percentage",
        "discount_value": 15.0,
        "max_discount_amount": 50.0,
        "valid_from": now - timedelta(days=1),
        "valid_until": now + timedelta(days=7),
        "is_admin": True,
    }
    values.update(overrides)
    return current_domain.process(CreateCoupon(**values), asynchronous=False)


def _coupon(coupon_id):
    return current_domain.repository_for(Coupon).get(coupon_id)


class TestCreateCoupon:
    def test_create_persists_normalized_code(self):
        coupon = _coupon(_create())
        assert coupon.code == "WELCOME15"
        assert coupon.usage_count == 0
        assert coupon.is_active is True

    def test_requires_admin(self):
        with pytest.raises(Forbidden):
            _create(is_admin=False)

    def test_duplicate_code_rejected(self):
        _create()
        with pytest.raises(InvalidInput) as exc:
            _create(code="WELCOME15")
        assert "code" in exc.value.messages

    def test_invalid_percentage_rejected(self):
        with pytest.raises(ValidationError):
            _create(discount_value=150.0)


class TestUpdateCoupon:
    def test_update_terms(self):
        coupon_id = _create()
        current_domain.process(
            UpdateCoupon(coupon_id=coupon_id, discount_value=20.0, usage_limit=10, is_admin=True),
            asynchronous=False,
        )
        coupon = _coupon(coupon_id)
        assert coupon.discount_value == 20.0
        assert coupon.usage_limit == 10
        assert coupon.max_discount_amount == 50.0

    def test_unknown_coupon(self):
        with pytest.raises(NotFound):
            current_domain.process(UpdateCoupon(coupon_id="missing", is_admin=True), asynchronous=False)

    def test_requires_admin(self):
        coupon_id = _create()
        with pytest.raises(Forbidden):
            current_domain.process(UpdateCoupon(coupon_id=coupon_id, discount_value=1.0), asynchronous=False)


class TestToggleAndDelete:
    def test_toggle_returns_new_state(self):
        coupon_id = _create()
        assert current_domain.process(ToggleCoupon(coupon_id=coupon_id, is_admin=True), asynchronous=False) is False
        assert _coupon(coupon_id).is_active is False

    def test_delete(self):
        coupon_id = _create()
        current_domain.process(DeleteCoupon(coupon_id=coupon_id, is_admin=True), asynchronous=False)
        assert list_coupons(is_admin=True) == []

    def test_list_requires_admin(self):
        with pytest.raises(Forbidden):
            list_coupons(is_admin=False)


class TestValidateCouponCode:
    def test_valid_code(self):
        _create()
        assert validate_coupon_code("welcome15", subtotal=100).code == "WELCOME15"

    def test_inactive_code(self):
        coupon_id = _create()
        current_domain.process(ToggleCoupon(coupon_id=coupon_id, is_admin=True), asynchronous=False)
        with pytest.raises(InvalidCoupon):
            validate_coupon_code("WELCOME15")

    def test_exhausted_code(self):
        coupon_id = _create(usage_limit=1)
        coupon = _coupon(coupon_id)
        coupon.record_usage("ord-1")
        current_domain.repository_for(Coupon).add(coupon)

        with pytest.raises(CouponLimitReached):
            validate_coupon_code("WELCOME15")
