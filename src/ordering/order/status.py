"""Administrative status updates — command and handler.

Moving a paid order to Refunded also refunds the charge through the payment
gateway; a refused refund leaves the order untouched.
"""

import structlog
from protean import handle
from protean.fields import Boolean, Identifier, String
from protean.utils.globals import current_domain

from ordering.access import require_admin
from ordering.domain import ordering
from ordering.errors import InvalidInput, PaymentError, load
from ordering.order.order import Order, OrderStatus, PaymentStatus
from ordering.payment import get_gateway
from ordering.pricing.engine import to_decimal

logger = structlog.get_logger(__name__)


@ordering.command(part_of="Order")
class UpdateOrderStatus:
    order_id = Identifier(required=True)
    status = String(required=True, max_length=50)
    note = String(max_length=500)
    tracking_number = String(max_length=100)
    carrier_name = String(max_length=100)
    actor_id = Identifier()
    is_admin = Boolean(default=False)


def refund_order(order):
    """Refund the order's charge with the gateway and record the refund on the order."""
    result = get_gateway().refund(
        order.order_number,
        to_decimal(order.pricing.total),
        order.transaction_id,
    )
    if not result.success:
        logger.warning("Order refund rejected", order_id=str(order.id), reason=result.failure_reason)
        raise PaymentError(result.failure_reason or "Refund failed")

    order.record_refund(result.transaction_id)
    logger.info(
        "Order refunded",
        order_id=str(order.id),
        refund_transaction_id=result.transaction_id,
        amount=to_decimal(order.pricing.total),
    )
    return result


@ordering.command_handler(part_of=Order)
class UpdateOrderStatusHandler:
    @handle(UpdateOrderStatus)
    def update_order_status(self, command):
        require_admin(command.is_admin)
        try:
            target = OrderStatus(command.status)
        except ValueError as exc:
            raise InvalidInput(f"Unknown order status: {command.status}", field="status") from exc

        order = load(Order, command.order_id)
        was_paid = order.payment_status == PaymentStatus.PAID.value
        previous = order.update_status(
            target,
            note=command.note,
            actor=str(command.actor_id) if command.actor_id else None,
            tracking_number=command.tracking_number,
            carrier_name=command.carrier_name,
        )
        if target == OrderStatus.REFUNDED and was_paid:
            refund_order(order)
        current_domain.repository_for(Order).add(order)

        logger.info(
            "Order status updated",
            order_id=str(order.id),
            previous_status=previous.value,
            new_status=target.value,
        )
        return order.status
