"""Order aggregate (CQRS) — an immutable snapshot of a cart plus its lifecycle.

Line items and monetary totals are copied from the cart when the order is
placed and never recomputed. Afterwards only the status, payment and
shipping fields change, and every status change is appended to the
order's history.

Status changes come from two paths:

    Administrators may move an order to any status, except that a
    Cancelled order can only go on to Refunded and a Refunded order is
    final.

    Customers may cancel only while the order is Pending or Confirmed.

Entering Cancelled on either path is the one transition with an inventory
consequence: once the cancellation commits, stock is restored for every
item. Moving a paid order to Refunded refunds the charge through the
payment gateway.
"""

from datetime import UTC, datetime
from enum import Enum

from protean.fields import (
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
    ValueObject,
)

from ordering.domain import ordering
from ordering.errors import InvalidStatusTransition, OrderNotCancellable
from ordering.order.events import (
    OrderCancelled,
    OrderPaymentRecorded,
    OrderPlaced,
    OrderStatusChanged,
)
from ordering.pricing.summary import PricingSummary


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "Pending"
    CONFIRMED = "Confirmed"
    PROCESSING = "Processing"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"
    RETURNED = "Returned"
    REFUNDED = "Refunded"


class PaymentMethod(Enum):
    CREDIT_CARD = "CreditCard"
    BANK_TRANSFER = "BankTransfer"
    CASH_ON_DELIVERY = "CashOnDelivery"


class PaymentStatus(Enum):
    PENDING = "Pending"
    PAID = "Paid"
    FAILED = "Failed"
    REFUNDED = "Refunded"


# Customer-initiated cancellation is allowed only from these
_CANCELLABLE_STATES = {OrderStatus.PENDING, OrderStatus.CONFIRMED}

# Administrative transitions are unrestricted except out of these states
_RESTRICTED_TRANSITIONS = {
    OrderStatus.CANCELLED: {OrderStatus.REFUNDED},
    OrderStatus.REFUNDED: set(),
}


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@ordering.value_object(part_of="Order")
class Address:
    """A delivery or billing address captured at checkout time."""

    full_name = String(required=True, max_length=150)
    phone = String(max_length=30)
    email = String(max_length=254)
    address_line1 = String(required=True, max_length=255)
    address_line2 = String(max_length=255)
    city = String(required=True, max_length=100)
    state = String(max_length=100)
    postal_code = String(max_length=20)
    country = String(max_length=100)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@ordering.entity(part_of="Order")
class OrderItem:
    """A product line frozen at the moment the order was placed."""

    position = Integer(required=True, min_value=0)
    product_id = Identifier(required=True)
    variant = String(max_length=100)
    name = String(required=True, max_length=255)
    sku = String(max_length=50)
    image_url = String(max_length=500)
    unit_price = Float(required=True, min_value=0.0)
    discount_price = Float(min_value=0.0)
    quantity = Integer(required=True, min_value=1)
    subtotal = Float(required=True, min_value=0.0)


@ordering.entity(part_of="Order")
class StatusChange:
    """One entry of the order's append-only status history."""

    sequence = Integer(required=True, min_value=0)
    status = String(required=True, choices=OrderStatus)
    note = String(max_length=500)
    changed_by = String(max_length=100)
    changed_at = DateTime(required=True)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@ordering.aggregate
class Order:
    order_number = String(required=True, max_length=40)
    user_id = Identifier(required=True)
    items = HasMany(OrderItem)
    shipping_address = ValueObject(Address)
    billing_address = ValueObject(Address)
    payment_method = String(required=True, choices=PaymentMethod)
    payment_status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    transaction_id = String(max_length=100)
    refund_transaction_id = String(max_length=100)
    pricing = ValueObject(PricingSummary)
    coupon_code = String(max_length=50)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    history = HasMany(StatusChange)
    notes = Text()
    tracking_number = String(max_length=100)
    carrier_name = String(max_length=100)
    cancellation_reason = String(max_length=500)
    created_at = DateTime()
    updated_at = DateTime()
    paid_at = DateTime()
    shipped_at = DateTime()
    delivered_at = DateTime()
    cancelled_at = DateTime()
    refunded_at = DateTime()

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        order_number,
        user_id,
        lines,
        pricing,
        shipping_address,
        billing_address,
        payment_method,
        coupon_code=None,
        notes=None,
    ):
        """Create a Pending order from cart lines and the cart's totals.

        ``pricing`` is copied verbatim; nothing is recomputed here.
        """
        now = datetime.now(UTC)
        order = cls(
            order_number=order_number,
            user_id=user_id,
            shipping_address=shipping_address,
            billing_address=billing_address or shipping_address,
            payment_method=PaymentMethod(payment_method).value,
            payment_status=PaymentStatus.PENDING.value,
            pricing=PricingSummary(
                subtotal=pricing.subtotal,
                discount=pricing.discount,
                tax=pricing.tax,
                shipping_cost=pricing.shipping_cost,
                total=pricing.total,
            ),
            coupon_code=coupon_code,
            status=OrderStatus.PENDING.value,
            notes=notes,
            created_at=now,
            updated_at=now,
        )

        for position, line in enumerate(lines):
            order.add_items(
                OrderItem(
                    position=position,
                    product_id=line.product_id,
                    variant=line.variant,
                    name=line.name,
                    sku=line.sku,
                    image_url=line.image_url,
                    unit_price=line.unit_price,
                    discount_price=line.discount_price,
                    quantity=line.quantity,
                    subtotal=float(line.subtotal),
                )
            )

        order._append_history(OrderStatus.PENDING, "Order placed", str(user_id), now)

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                order_number=order_number,
                user_id=str(user_id),
                item_count=sum(item.quantity for item in order.items),
                total=order.pricing.total,
                coupon_code=coupon_code,
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # History
    # -------------------------------------------------------------------
    def _append_history(self, status, note, actor, at):
        self.add_history(
            StatusChange(
                sequence=len(self.history),
                status=status.value,
                note=note,
                changed_by=actor,
                changed_at=at,
            )
        )

    @property
    def status_history(self):
        """History entries oldest first."""
        return sorted(self.history, key=lambda entry: entry.sequence)

    @property
    def sorted_items(self):
        return sorted(self.items, key=lambda item: item.position)

    def is_owned_by(self, user_id):
        return user_id is not None and str(self.user_id) == str(user_id)

    # -------------------------------------------------------------------
    # Status transitions
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target):
        current = OrderStatus(self.status)
        allowed = _RESTRICTED_TRANSITIONS.get(current)
        if allowed is not None and target not in allowed:
            raise InvalidStatusTransition(f"Cannot change status from {current.value} to {target.value}")

    def update_status(self, new_status, note=None, actor=None, tracking_number=None, carrier_name=None):
        """Administrative status change. Returns the previous status."""
        target = OrderStatus(new_status)
        self._assert_can_transition(target)

        previous = OrderStatus(self.status)
        now = datetime.now(UTC)
        self.status = target.value
        self.updated_at = now

        if target == OrderStatus.CONFIRMED:
            self.payment_status = PaymentStatus.PAID.value
            self.paid_at = now
        elif target == OrderStatus.SHIPPED:
            self.shipped_at = now
            if tracking_number:
                self.tracking_number = tracking_number
            if carrier_name:
                self.carrier_name = carrier_name
        elif target == OrderStatus.DELIVERED:
            self.delivered_at = now
        elif target == OrderStatus.CANCELLED:
            self.cancelled_at = now
        elif target == OrderStatus.REFUNDED and self.payment_status == PaymentStatus.PAID.value:
            self.payment_status = PaymentStatus.REFUNDED.value

        self._append_history(target, note, actor, now)
        self.raise_(
            OrderStatusChanged(
                order_id=str(self.id),
                order_number=self.order_number,
                previous_status=previous.value,
                new_status=target.value,
                note=note,
                changed_by=actor,
                changed_at=now,
            )
        )
        if target == OrderStatus.CANCELLED:
            self.raise_(
                OrderCancelled(
                    order_id=str(self.id),
                    order_number=self.order_number,
                    reason=note,
                    cancelled_by=actor,
                    cancelled_at=now,
                )
            )
        return previous

    def cancel(self, reason, actor):
        """Customer-initiated cancellation, allowed only before processing starts."""
        current = OrderStatus(self.status)
        if current not in _CANCELLABLE_STATES:
            raise OrderNotCancellable(f"Order cannot be cancelled in {current.value} status")

        now = datetime.now(UTC)
        self.status = OrderStatus.CANCELLED.value
        self.cancellation_reason = reason
        self.cancelled_at = now
        self.updated_at = now
        self._append_history(OrderStatus.CANCELLED, f"Cancel reason: {reason}", actor, now)

        self.raise_(
            OrderStatusChanged(
                order_id=str(self.id),
                order_number=self.order_number,
                previous_status=current.value,
                new_status=OrderStatus.CANCELLED.value,
                note=reason,
                changed_by=actor,
                changed_at=now,
            )
        )
        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                order_number=self.order_number,
                reason=reason,
                cancelled_by=actor,
                cancelled_at=now,
            )
        )

    def mark_shipped(self, tracking_number, carrier_name, actor=None):
        return self.update_status(
            OrderStatus.SHIPPED,
            note=f"Handed to {carrier_name} - {tracking_number}",
            actor=actor,
            tracking_number=tracking_number,
            carrier_name=carrier_name,
        )

    def mark_delivered(self, actor=None):
        return self.update_status(OrderStatus.DELIVERED, note="Delivered to recipient", actor=actor)

    def _status_before_shipping(self):
        for entry in reversed(self.status_history):
            if entry.status != OrderStatus.SHIPPED.value:
                return OrderStatus(entry.status)
        return OrderStatus.PROCESSING

    def withdraw_shipment(self, tracking_number, actor=None):
        """Forget a shipment whose carrier booking was cancelled.

        Clears the cached tracking fields when they belong to that shipment,
        and a Shipped order goes back to the status it had before it was
        shipped, so it can be shipped again. Returns True when the order changed.
        """
        if self.tracking_number != tracking_number:
            return False

        self.tracking_number = None
        self.carrier_name = None
        self.shipped_at = None
        self.updated_at = datetime.now(UTC)
        if OrderStatus(self.status) == OrderStatus.SHIPPED:
            self.update_status(
                self._status_before_shipping(),
                note=f"Shipment {tracking_number} cancelled",
                actor=actor,
            )
        return True

    # -------------------------------------------------------------------
    # Payment
    # -------------------------------------------------------------------
    def record_payment(self, success, transaction_id=None, awaiting_confirmation=False):
        """Record the outcome of a charge attempt.

        A settled charge marks the order Paid. Charges that settle later
        (cash on delivery, bank transfer) keep payment Pending.
        """
        now = datetime.now(UTC)
        if not success:
            self.payment_status = PaymentStatus.FAILED.value
        elif awaiting_confirmation:
            self.payment_status = PaymentStatus.PENDING.value
        else:
            self.payment_status = PaymentStatus.PAID.value
            self.paid_at = now
        self.transaction_id = transaction_id or self.transaction_id
        self.updated_at = now

        self.raise_(
            OrderPaymentRecorded(
                order_id=str(self.id),
                payment_status=self.payment_status,
                transaction_id=transaction_id,
                amount=self.pricing.total,
            )
        )

    def record_refund(self, transaction_id):
        now = datetime.now(UTC)
        self.payment_status = PaymentStatus.REFUNDED.value
        self.refund_transaction_id = transaction_id
        self.refunded_at = now
        self.updated_at = now

        self.raise_(
            OrderPaymentRecorded(
                order_id=str(self.id),
                payment_status=self.payment_status,
                transaction_id=transaction_id,
                amount=self.pricing.total,
            )
        )


@ordering.repository(part_of=Order)
class OrderRepository:
    def find_by_number(self, order_number) -> Order | None:
        return self._dao.query.filter(order_number=order_number).all().first

    def for_user(self, user_id) -> list[Order]:
        return self._dao.query.filter(user_id=str(user_id)).limit(None).all().items

    def list_all(self, status=None) -> list[Order]:
        query = self._dao.query
        if status:
            query = query.filter(status=status)
        return query.limit(None).all().items

    def matching(self, user_id=None, status=None, payment_status=None, placed_from=None, placed_until=None):
        """Orders matching every given criterion; ``None`` leaves a criterion out."""
        criteria = {
            "user_id": str(user_id) if user_id else None,
            "status": status,
            "payment_status": payment_status,
            "created_at__gte": placed_from,
            "created_at__lte": placed_until,
        }
        query = self._dao.query.filter(**{key: value for key, value in criteria.items() if value is not None})
        return query.limit(None).all().items
