"""Order reads with ownership checks, plus the admin dashboard statistics."""

import math
from collections import Counter
from dataclasses import dataclass
from datetime import UTC, datetime

from protean.utils.globals import current_domain

from ordering.access import ensure_can_access, require_admin
from ordering.errors import Forbidden, InvalidInput, NotFound, load
from ordering.order.order import Order, OrderStatus
from ordering.pricing.engine import ZERO, quantize, to_decimal


def get_order(order_id, actor_id, is_admin=False):
    return ensure_can_access(load(Order, order_id), actor_id, is_admin)


def get_order_by_number(order_number, actor_id, is_admin=False):
    order = current_domain.repository_for(Order).find_by_number(order_number)
    if order is None:
        raise NotFound("Order", order_number)
    return ensure_can_access(order, actor_id, is_admin)


def list_orders_for_user(user_id):
    orders = current_domain.repository_for(Order).for_user(user_id)
    return sorted(orders, key=lambda o: o.created_at, reverse=True)


def list_orders(is_admin, status=None):
    require_admin(is_admin)
    orders = current_domain.repository_for(Order).list_all(status=status)
    return sorted(orders, key=lambda o: o.created_at, reverse=True)


DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


@dataclass(frozen=True)
class OrderPage:
    orders: list
    total_count: int
    page: int
    page_size: int

    @property
    def total_pages(self):
        return math.ceil(self.total_count / self.page_size)


def _as_utc(moment):
    if moment is not None and moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment


def _matches_search(order, term):
    term = term.lower()
    recipient = order.shipping_address.full_name if order.shipping_address else ""
    return term in order.order_number.lower() or term in (recipient or "").lower()


def search_orders(
    actor_id,
    is_admin=False,
    status=None,
    payment_status=None,
    placed_from=None,
    placed_until=None,
    search=None,
    user_id=None,
    page=1,
    page_size=DEFAULT_PAGE_SIZE,
):
    """Filtered, paginated order listing, newest first.

    Customers only ever see their own orders; administrators see everyone's
    and may narrow the list to one ``user_id``. ``search`` matches the order
    number or the recipient's name, case-insensitively.
    """
    if not is_admin:
        if not actor_id:
            raise Forbidden("Sign in to list orders")
        user_id = actor_id
    if page < 1:
        raise InvalidInput("Page must be 1 or greater", field="page")
    if not 1 <= page_size <= MAX_PAGE_SIZE:
        raise InvalidInput(f"Page size must be between 1 and {MAX_PAGE_SIZE}", field="page_size")

    orders = current_domain.repository_for(Order).matching(
        user_id=user_id,
        status=status,
        payment_status=payment_status,
        placed_from=_as_utc(placed_from),
        placed_until=_as_utc(placed_until),
    )
    if search:
        orders = [order for order in orders if _matches_search(order, search)]
    orders = sorted(orders, key=lambda o: o.created_at, reverse=True)

    start = (page - 1) * page_size
    return OrderPage(
        orders=orders[start : start + page_size],
        total_count=len(orders),
        page=page,
        page_size=page_size,
    )


def order_stats(is_admin, today=None):
    """Counts per status, revenue of orders that were not cancelled, and today's orders."""
    require_admin(is_admin)
    today = today or datetime.now(UTC).date()
    orders = current_domain.repository_for(Order).list_all()

    by_status = Counter(order.status for order in orders)
    revenue = sum(
        (
            to_decimal(order.pricing.total)
            for order in orders
            if order.status not in (OrderStatus.CANCELLED.value, OrderStatus.REFUNDED.value)
        ),
        ZERO,
    )
    placed_today = sum(1 for order in orders if order.created_at and order.created_at.date() == today)

    return {
        "total_orders": len(orders),
        "by_status": {status.value: by_status.get(status.value, 0) for status in OrderStatus},
        "total_revenue": quantize(revenue),
        "orders_today": placed_today,
    }
