"""Compensating actions run when an order is cancelled.

They react to ``OrderCancelled``, so they only run once the cancellation has
committed. A cancel that loses a race with another one never commits, never
raises the event and never restocks.

Stock goes back first and unconditionally. Cancelling an existing shipment
with its carrier is attempted afterwards; a carrier failure is logged and
does not undo the restock or the cancellation.
"""

import structlog
from protean import handle
from protean.utils.globals import current_domain

from ordering.catalogue import get_catalogue
from ordering.domain import ordering
from ordering.errors import OrderingError
from ordering.order.events import OrderCancelled
from ordering.order.order import Order
from ordering.shipment.dispatch import cancel_shipment_for_order

logger = structlog.get_logger(__name__)


def restore_stock(order):
    catalogue = get_catalogue()
    restored = 0
    for item in order.sorted_items:
        try:
            catalogue.increment_stock(item.product_id, item.quantity)
            restored += 1
        except KeyError:
            logger.warning(
                "Could not restore stock for missing product",
                order_id=str(order.id),
                product_id=str(item.product_id),
                quantity=item.quantity,
            )
    logger.info("Stock restored for cancelled order", order_id=str(order.id), lines=restored)
    return restored


def release_order(order, actor=None):
    """Undo the side effects of a placed order after it was cancelled."""
    restore_stock(order)

    try:
        cancel_shipment_for_order(order, actor=actor)
    except OrderingError as exc:
        logger.warning(
            "Failed to cancel shipment for cancelled order",
            order_id=str(order.id),
            error=str(exc),
        )


@ordering.event_handler(part_of=Order)
class OrderCompensationHandler:
    """Releases what a cancelled order was holding."""

    @handle(OrderCancelled)
    def on_order_cancelled(self, event: OrderCancelled) -> None:
        order = current_domain.repository_for(Order).get(event.order_id)
        logger.info(
            "Releasing cancelled order",
            order_id=str(order.id),
            order_number=event.order_number,
            cancelled_by=event.cancelled_by,
        )
        release_order(order, actor=event.cancelled_by)
