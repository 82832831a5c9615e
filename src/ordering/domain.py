"""Ordering bounded context — carts, coupons, orders and shipments.

Handles cart pricing, coupon administration, order placement and its
status lifecycle, and shipment dispatch through pluggable carriers.
"""

import structlog
from protean.domain import Domain

from ordering.utils.logging import configure_logging

configure_logging()

ordering = Domain(name="ordering")

logger = structlog.get_logger(__name__)
