"""Error taxonomy for the Ordering domain.

Every rejection the domain produces is one of these exceptions. Each carries
a stable ``kind`` (used by the HTTP adapter as the error code), a suggested
``status_code``, and Protean-style ``messages`` (``{field: [reason, ...]}``).

Validation-style rejections subclass Protean's ``ValidationError`` so the
unit of work rolls back on them like on any other aggregate validation
failure. Missing entities subclass ``ObjectNotFoundError``.
"""

from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain


class OrderingError(ValidationError):
    kind = "InvalidInput"
    status_code = 400
    field = "_entity"

    def __init__(self, message, field=None):
        self.message = message
        messages = {field or self.field: [message]}
        super().__init__(messages)
        self.messages = messages

    def __str__(self):
        return self.message


class InvalidInput(OrderingError):
    pass


class Forbidden(OrderingError):
    kind = "Forbidden"
    status_code = 403
    field = "actor"


class InsufficientStock(OrderingError):
    kind = "InsufficientStock"
    status_code = 409
    field = "quantity"

    def __init__(self, product_id, requested, available=None, product_name=None):
        self.product_id = product_id
        self.requested = requested
        self.available = available
        label = product_name or product_id
        if available is None:
            message = f"Insufficient stock for product {label}"
        else:
            message = f"Insufficient stock for product {label}: requested {requested}, available {available}"
        super().__init__(message)


class InvalidCoupon(OrderingError):
    kind = "CouponInvalid"
    field = "coupon_code"

    def __init__(self, message="Invalid coupon code"):
        super().__init__(message)


class CouponExpired(OrderingError):
    kind = "CouponExpired"
    field = "coupon_code"

    def __init__(self, message="Coupon has expired or is not yet valid"):
        super().__init__(message)


class CouponLimitReached(OrderingError):
    kind = "CouponLimitReached"
    field = "coupon_code"

    def __init__(self, message="Coupon usage limit reached"):
        super().__init__(message)


class MinimumPurchaseNotMet(OrderingError):
    kind = "MinimumPurchaseNotMet"
    field = "coupon_code"

    def __init__(self, minimum):
        self.minimum = minimum
        super().__init__(f"Minimum purchase amount of {minimum} not met")


class EmptyCart(OrderingError):
    kind = "EmptyCart"
    field = "cart"

    def __init__(self, message="Cart is empty"):
        super().__init__(message)


class OrderNotCancellable(OrderingError):
    kind = "OrderNotCancellable"
    status_code = 409
    field = "status"


class OrderNotShippable(OrderingError):
    kind = "OrderNotShippable"
    status_code = 409
    field = "status"


class InvalidStatusTransition(OrderingError):
    kind = "InvalidStatusTransition"
    status_code = 409
    field = "status"


class ShipmentAlreadyExists(OrderingError):
    kind = "ShipmentAlreadyExists"
    status_code = 409
    field = "order_id"


class ShipmentNotCancellable(OrderingError):
    kind = "ShipmentNotCancellable"
    status_code = 409
    field = "status"


class UnsupportedCarrier(OrderingError):
    kind = "UnsupportedCarrier"
    field = "carrier"

    def __init__(self, carrier):
        self.carrier = carrier
        super().__init__(f"Unsupported carrier: {carrier}")


class CarrierError(OrderingError):
    """A call to an external carrier failed or timed out."""

    kind = "CarrierError"
    status_code = 502
    field = "carrier"

    def __init__(self, carrier, detail):
        self.carrier = carrier
        self.detail = detail
        super().__init__(f"Carrier {carrier} failed: {detail}")


class PaymentError(OrderingError):
    """The payment gateway refused or failed an operation."""

    kind = "PaymentError"
    status_code = 502
    field = "payment"


class NotFound(ObjectNotFoundError):
    kind = "NotFound"
    status_code = 404

    def __init__(self, entity, identifier=None, message=None):
        self.entity = entity
        self.identifier = identifier
        self.message = message or (
            f"{entity} {identifier} not found" if identifier is not None else f"{entity} not found"
        )
        messages = {"_entity": [self.message]}
        super().__init__(messages)
        self.messages = messages

    def __str__(self):
        return self.message


def load(aggregate_cls, identifier, entity=None):
    """Fetch an aggregate by id, raising ``NotFound`` when it does not exist."""
    try:
        return current_domain.repository_for(aggregate_cls).get(identifier)
    except ObjectNotFoundError as exc:
        raise NotFound(entity or aggregate_cls.__name__, identifier) from exc
