"""Cart operations — commands and handler.

Every command identifies its cart by owner (``user_id`` and/or
``session_id``), resolved upstream. The handler finds or creates the cart,
applies the change, reprices, and persists the whole cart.
"""

from datetime import UTC, datetime

import structlog
from protean import handle
from protean.fields import Identifier, Integer, String
from protean.utils.globals import current_domain

from ordering.cart.cart import Cart
from ordering.catalogue import get_catalogue
from ordering.coupon.validation import active_terms, find_coupon, parse_code, validate
from ordering.domain import ordering
from ordering.errors import InvalidInput, NotFound

logger = structlog.get_logger(__name__)


def get_or_create_cart(user_id=None, session_id=None):
    """Resolve the owner's cart, claiming or creating one when needed.

    A signed-in user's own cart wins. Failing that, a cart held by the
    session is handed over to the user. Otherwise an empty cart is created.
    Must run inside a unit of work; the resolved cart is persisted.
    """
    if not user_id and not session_id:
        raise InvalidInput("A signed-in user or a session is required", field="owner")

    repo = current_domain.repository_for(Cart)

    if user_id:
        cart = repo.for_user(user_id)
        if cart is not None:
            return cart

    if session_id:
        cart = repo.for_session(session_id)
        if cart is not None:
            if user_id:
                cart.claim_for_user(user_id)
                repo.add(cart)
                logger.info("Session cart claimed by user", cart_id=str(cart.id), user_id=str(user_id))
            return cart

    cart = Cart.create(user_id=user_id, session_id=session_id)
    repo.add(cart)
    logger.info("Cart created", cart_id=str(cart.id), user_id=user_id, session_id=session_id)
    return cart


def _active_product(product_id):
    product = get_catalogue().get_product(product_id)
    if product is None or not product.is_active:
        raise NotFound("Product", product_id)
    return product


def _save(cart):
    cart.recalculate(active_terms)
    current_domain.repository_for(Cart).add(cart)
    return str(cart.id)


@ordering.command(part_of="Cart")
class GetOrCreateCart:
    user_id = Identifier()
    session_id = String(max_length=255)


@ordering.command(part_of="Cart")
class AddCartItem:
    user_id = Identifier()
    session_id = String(max_length=255)
    product_id = Identifier(required=True)
    variant = String(max_length=100)
    quantity = Integer(default=1)


@ordering.command(part_of="Cart")
class UpdateCartItem:
    user_id = Identifier()
    session_id = String(max_length=255)
    product_id = Identifier(required=True)
    variant = String(max_length=100)
    quantity = Integer(required=True)


@ordering.command(part_of="Cart")
class RemoveCartItem:
    user_id = Identifier()
    session_id = String(max_length=255)
    product_id = Identifier(required=True)
    variant = String(max_length=100)


@ordering.command(part_of="Cart")
class ClearCart:
    user_id = Identifier()
    session_id = String(max_length=255)


@ordering.command(part_of="Cart")
class ApplyCartCoupon:
    user_id = Identifier()
    session_id = String(max_length=255)
    coupon_code = String(required=True, max_length=100)


@ordering.command(part_of="Cart")
class RemoveCartCoupon:
    user_id = Identifier()
    session_id = String(max_length=255)


@ordering.command(part_of="Cart")
class MergeSessionCart:
    """Fold a guest session's cart into the user's cart after sign-in."""

    user_id = Identifier(required=True)
    session_id = String(required=True, max_length=255)


@ordering.command_handler(part_of=Cart)
class ManageCartHandler:
    @handle(GetOrCreateCart)
    def get_or_create(self, command):
        cart = get_or_create_cart(command.user_id, command.session_id)
        return _save(cart)

    @handle(AddCartItem)
    def add_item(self, command):
        cart = get_or_create_cart(command.user_id, command.session_id)
        product = _active_product(command.product_id)
        cart.add_line(product, command.quantity, variant=command.variant)
        return _save(cart)

    @handle(UpdateCartItem)
    def update_item(self, command):
        cart = get_or_create_cart(command.user_id, command.session_id)
        available = 0
        if command.quantity:
            available = _active_product(command.product_id).stock
        cart.set_quantity(command.product_id, command.quantity, available, variant=command.variant)
        return _save(cart)

    @handle(RemoveCartItem)
    def remove_item(self, command):
        cart = get_or_create_cart(command.user_id, command.session_id)
        cart.remove_line(command.product_id, variant=command.variant)
        return _save(cart)

    @handle(ClearCart)
    def clear(self, command):
        cart = get_or_create_cart(command.user_id, command.session_id)
        cart.clear()
        return _save(cart)

    @handle(ApplyCartCoupon)
    def apply_coupon(self, command):
        cart = get_or_create_cart(command.user_id, command.session_id)
        code = parse_code(command.coupon_code)
        cart.recalculate(active_terms)
        coupon = validate(find_coupon(code), datetime.now(UTC), subtotal=cart.totals.subtotal)
        cart.apply_coupon(coupon.code, active_terms)
        logger.info("Coupon applied to cart", cart_id=str(cart.id), coupon_code=coupon.code)
        return _save(cart)

    @handle(RemoveCartCoupon)
    def remove_coupon(self, command):
        cart = get_or_create_cart(command.user_id, command.session_id)
        cart.remove_coupon()
        return _save(cart)

    @handle(MergeSessionCart)
    def merge_session_cart(self, command):
        repo = current_domain.repository_for(Cart)
        session_cart = repo.for_session(command.session_id)
        user_cart = repo.for_user(command.user_id)

        if session_cart is None or user_cart is None:
            # Nothing to merge: get_or_create_cart claims or creates as needed
            return _save(get_or_create_cart(command.user_id, command.session_id))

        user_cart.absorb(session_cart, get_catalogue().get_product)
        repo._dao.delete(session_cart)
        logger.info(
            "Merged session cart into user cart",
            cart_id=str(user_cart.id),
            source_cart_id=str(session_cart.id),
            user_id=str(command.user_id),
        )
        return _save(user_cart)
