"""Coupon administration — commands and handler.

Every command here is administrator-only; the caller passes the already
resolved ``is_admin`` flag.
"""

import structlog
from protean import handle
from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String
from protean.utils.globals import current_domain

from ordering.access import require_admin
from ordering.coupon.coupon import Coupon
from ordering.coupon.validation import find_coupon, parse_code
from ordering.domain import ordering
from ordering.errors import InvalidInput, load
from ordering.pricing.engine import DiscountType

logger = structlog.get_logger(__name__)


@ordering.command(part_of="Coupon")
class CreateCoupon:
    code = String(required=True, max_length=50)
    description = String(max_length=255)
    discount_type = String(required=True, choices=DiscountType)
    discount_value = Float(required=True, min_value=0.0)
    max_discount_amount = Float(min_value=0.0)
    min_purchase_amount = Float(default=0.0, min_value=0.0)
    usage_limit = Integer(min_value=0)
    valid_from = DateTime(required=True)
    valid_until = DateTime(required=True)
    is_active = Boolean(default=True)
    is_admin = Boolean(default=False)


@ordering.command(part_of="Coupon")
class UpdateCoupon:
    coupon_id = Identifier(required=True)
    description = String(max_length=255)
    discount_type = String(choices=DiscountType)
    discount_value = Float(min_value=0.0)
    max_discount_amount = Float(min_value=0.0)
    min_purchase_amount = Float(min_value=0.0)
    usage_limit = Integer(min_value=0)
    valid_from = DateTime()
    valid_until = DateTime()
    is_active = Boolean()
    is_admin = Boolean(default=False)


@ordering.command(part_of="Coupon")
class ToggleCoupon:
    coupon_id = Identifier(required=True)
    is_admin = Boolean(default=False)


@ordering.command(part_of="Coupon")
class DeleteCoupon:
    coupon_id = Identifier(required=True)
    is_admin = Boolean(default=False)


@ordering.command_handler(part_of=Coupon)
class CouponAdministrationHandler:
    @handle(CreateCoupon)
    def create_coupon(self, command):
        require_admin(command.is_admin)
        code = parse_code(command.code)
        if find_coupon(code) is not None:
            raise InvalidInput(f"Coupon code {code} already exists", field="code")

        coupon = Coupon.create(
            code=code,
            description=command.description,
            discount_type=command.discount_type,
            discount_value=command.discount_value,
            max_discount_amount=command.max_discount_amount,
            min_purchase_amount=command.min_purchase_amount,
            usage_limit=command.usage_limit,
            valid_from=command.valid_from,
            valid_until=command.valid_until,
            is_active=command.is_active if command.is_active is not None else True,
        )
        current_domain.repository_for(Coupon).add(coupon)
        logger.info("Coupon created", coupon_id=str(coupon.id), code=coupon.code)
        return str(coupon.id)

    @handle(UpdateCoupon)
    def update_coupon(self, command):
        require_admin(command.is_admin)
        coupon = load(Coupon, command.coupon_id)
        coupon.update_terms(
            description=command.description,
            discount_type=command.discount_type,
            discount_value=command.discount_value,
            max_discount_amount=command.max_discount_amount,
            min_purchase_amount=command.min_purchase_amount,
            usage_limit=command.usage_limit,
            valid_from=command.valid_from,
            valid_until=command.valid_until,
            is_active=command.is_active,
        )
        current_domain.repository_for(Coupon).add(coupon)
        logger.info("Coupon updated", coupon_id=str(coupon.id), code=coupon.code)

    @handle(ToggleCoupon)
    def toggle_coupon(self, command):
        require_admin(command.is_admin)
        coupon = load(Coupon, command.coupon_id)
        coupon.toggle()
        current_domain.repository_for(Coupon).add(coupon)
        logger.info("Coupon toggled", coupon_id=str(coupon.id), is_active=coupon.is_active)
        return coupon.is_active

    @handle(DeleteCoupon)
    def delete_coupon(self, command):
        require_admin(command.is_admin)
        coupon = load(Coupon, command.coupon_id)
        current_domain.repository_for(Coupon)._dao.delete(coupon)
        logger.info("Coupon deleted", coupon_id=str(coupon.id), code=coupon.code)


def list_coupons(is_admin):
    require_admin(is_admin)
    return current_domain.repository_for(Coupon).list_all()
