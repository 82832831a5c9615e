"""Order placement — converts the user's cart into an order.

Checkout re-validates everything the cart only checked advisorily (stock,
coupon), snapshots the cart into an Order, then applies the side effects:
stock decrement, coupon usage, cart clearing.

Stock lives outside the unit of work. Every unit a checkout takes goes into
a per-call ledger, and the ledger is given back unless the unit of work
commits. That covers failed commits too, including the version conflicts
that make Protean run the handler a second time.
"""

import functools
import json
import secrets
from contextvars import ContextVar
from datetime import UTC, datetime

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from ordering.cart.cart import Cart
from ordering.catalogue import get_catalogue
from ordering.coupon.coupon import Coupon
from ordering.coupon.validation import active_terms, find_coupon, validate
from ordering.domain import ordering
from ordering.errors import EmptyCart, Forbidden, InsufficientStock, InvalidInput
from ordering.order.order import Address, Order, PaymentMethod

logger = structlog.get_logger(__name__)

_ORDER_NUMBER_ATTEMPTS = 5

# (product_id, quantity) pairs taken by the checkout running in this context
_taken_stock: ContextVar[list | None] = ContextVar("checkout_taken_stock", default=None)


def generate_order_number(now=None):
    """``ORD-{YYYYmmddHHMMSS}-{6 hex}``; unique with overwhelming probability."""
    now = now or datetime.now(UTC)
    return f"ORD-{now:%Y%m%d%H%M%S}-{secrets.token_hex(3).upper()}"


def allocate_order_number():
    repo = current_domain.repository_for(Order)
    for _ in range(_ORDER_NUMBER_ATTEMPTS):
        candidate = generate_order_number()
        if repo.find_by_number(candidate) is None:
            return candidate
    raise RuntimeError("Could not allocate a unique order number")


def give_back_stock(user_id, reason):
    """Return everything in the current checkout's ledger to the catalogue."""
    taken = _taken_stock.get()
    if not taken:
        return 0

    catalogue = get_catalogue()
    for product_id, quantity in taken:
        catalogue.increment_stock(product_id, quantity)
    restored = len(taken)
    taken.clear()

    logger.warning(
        "Order placement rolled back",
        user_id=str(user_id),
        reason=reason,
        restored_lines=restored,
    )
    return restored


def returns_stock_unless_committed(handler):
    """Wrap a ``@handle`` method so its stock ledger is settled after the unit of work.

    Must sit above ``@handle``: only from there are commit failures visible.
    """

    @functools.wraps(handler)
    def wrapper(instance, command):
        token = _taken_stock.set([])
        try:
            return handler(instance, command)
        except Exception:
            give_back_stock(command.user_id, "checkout failed")
            raise
        finally:
            _taken_stock.reset(token)

    return wrapper


def _address(value, field):
    if value is None:
        return None
    data = json.loads(value) if isinstance(value, str) else value
    try:
        return Address(**data)
    except ValidationError as exc:
        raise InvalidInput(f"Invalid {field.replace('_', ' ')}: {exc.messages}", field=field) from exc


def _payment_method(value):
    try:
        return PaymentMethod(value).value
    except ValueError as exc:
        raise InvalidInput(f"Unknown payment method: {value}", field="payment_method") from exc


@ordering.command(part_of="Order")
class PlaceOrder:
    user_id = Identifier()
    shipping_address = Text(required=True)  # JSON: address dict
    billing_address = Text()  # JSON: address dict, defaults to shipping
    payment_method = String(required=True, max_length=50)
    notes = Text()


@ordering.command_handler(part_of=Order)
class PlaceOrderHandler:
    @returns_stock_unless_committed
    @handle(PlaceOrder)
    def place_order(self, command):
        # Anything still in the ledger belongs to an attempt whose commit failed
        give_back_stock(command.user_id, "previous attempt did not commit")

        if not command.user_id:
            raise Forbidden("Sign in to place an order")

        shipping_address = _address(command.shipping_address, "shipping_address")
        billing_address = _address(command.billing_address, "billing_address")
        payment_method = _payment_method(command.payment_method)

        cart_repo = current_domain.repository_for(Cart)
        cart = cart_repo.for_user(command.user_id)
        if cart is None or not cart.lines:
            raise EmptyCart()

        catalogue = get_catalogue()
        for line in cart.lines:
            product = catalogue.get_product(line.product_id)
            if product is None or not product.is_active or product.stock < line.quantity:
                raise InsufficientStock(
                    line.product_id,
                    line.quantity,
                    product.stock if product else 0,
                    line.name,
                )

        # Reprice so retroactive coupon changes are reflected, then re-validate the coupon
        now = datetime.now(UTC)
        cart.recalculate(active_terms)
        coupon = None
        if cart.coupon_code:
            coupon = find_coupon(cart.coupon_code)
            if coupon is not None and coupon.is_active:
                validate(coupon, now, subtotal=cart.totals.subtotal)
            else:
                coupon = None

        order = Order.place(
            order_number=allocate_order_number(),
            user_id=command.user_id,
            lines=cart.lines,
            pricing=cart.totals,
            shipping_address=shipping_address,
            billing_address=billing_address,
            payment_method=payment_method,
            coupon_code=coupon.code if coupon else None,
            notes=command.notes,
        )

        taken = _taken_stock.get()
        for item in order.sorted_items:
            if not catalogue.decrement_stock(item.product_id, item.quantity):
                product = catalogue.get_product(item.product_id)
                raise InsufficientStock(
                    item.product_id,
                    item.quantity,
                    product.stock if product else 0,
                    item.name,
                )
            taken.append((item.product_id, item.quantity))

        if coupon is not None:
            coupon.record_usage(order.id)
            current_domain.repository_for(Coupon).add(coupon)

        current_domain.repository_for(Order).add(order)

        cart.clear()
        cart_repo.add(cart)

        logger.info(
            "Order placed",
            order_id=str(order.id),
            order_number=order.order_number,
            user_id=str(command.user_id),
            total=order.pricing.total,
            coupon_code=order.coupon_code,
        )
        return str(order.id)
