"""Order payment — charges the order total through the payment stand-in."""

import structlog
from protean import handle
from protean.fields import Boolean, Identifier
from protean.utils.globals import current_domain

from ordering.access import ensure_can_access
from ordering.domain import ordering
from ordering.errors import InvalidInput, load
from ordering.order.order import Order, OrderStatus, PaymentStatus
from ordering.payment import get_gateway
from ordering.pricing.engine import to_decimal

logger = structlog.get_logger(__name__)

_UNPAYABLE_STATES = {OrderStatus.CANCELLED, OrderStatus.REFUNDED, OrderStatus.RETURNED}


@ordering.command(part_of="Order")
class PayOrder:
    order_id = Identifier(required=True)
    actor_id = Identifier()
    is_admin = Boolean(default=False)


@ordering.command_handler(part_of=Order)
class PayOrderHandler:
    @handle(PayOrder)
    def pay_order(self, command):
        order = load(Order, command.order_id)
        ensure_can_access(order, command.actor_id, command.is_admin)

        if OrderStatus(order.status) in _UNPAYABLE_STATES:
            raise InvalidInput(f"Cannot pay for an order in {order.status} status", field="status")
        if order.payment_status == PaymentStatus.PAID.value:
            raise InvalidInput("Order is already paid", field="payment_status")

        result = get_gateway().charge(
            order.order_number,
            to_decimal(order.pricing.total),
            order.payment_method,
        )
        order.record_payment(
            success=result.success,
            transaction_id=result.transaction_id,
            awaiting_confirmation=result.awaiting_confirmation,
        )
        current_domain.repository_for(Order).add(order)

        if result.success:
            logger.info(
                "Order payment recorded",
                order_id=str(order.id),
                transaction_id=result.transaction_id,
                payment_status=order.payment_status,
            )
        else:
            logger.warning(
                "Order payment declined",
                order_id=str(order.id),
                reason=result.failure_reason,
            )
        return result
