"""Ordering domain API package."""

from ordering.api.errors import register_ordering_exception_handlers
from ordering.api.routes import cart_router, coupon_router, order_router, shipment_router

__all__ = [
    "cart_router",
    "coupon_router",
    "order_router",
    "shipment_router",
    "register_ordering_exception_handlers",
]
