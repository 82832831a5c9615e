"""Customer cancellation — command and handler."""

import structlog
from protean import handle
from protean.fields import Boolean, Identifier, String
from protean.utils.globals import current_domain

from ordering.access import ensure_can_access
from ordering.domain import ordering
from ordering.errors import load
from ordering.order.order import Order

logger = structlog.get_logger(__name__)


@ordering.command(part_of="Order")
class CancelOrder:
    order_id = Identifier(required=True)
    reason = String(required=True, max_length=500)
    actor_id = Identifier()
    is_admin = Boolean(default=False)


@ordering.command_handler(part_of=Order)
class CancelOrderHandler:
    @handle(CancelOrder)
    def cancel_order(self, command):
        order = load(Order, command.order_id)
        ensure_can_access(order, command.actor_id, command.is_admin)

        order.cancel(reason=command.reason, actor=str(command.actor_id) if command.actor_id else None)
        current_domain.repository_for(Order).add(order)

        logger.info(
            "Order cancelled",
            order_id=str(order.id),
            order_number=order.order_number,
            reason=command.reason,
        )
