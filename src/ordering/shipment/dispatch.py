"""Shipment dispatch — commands and handler that drive carriers.

The dispatcher resolves a carrier adapter by code, guards the
one-shipment-per-order rule, books the shipment, and mirrors the outcome
onto the order (tracking number, carrier name, Shipped / Delivered status).
Cancelling a booking withdraws it from the order again, after which the
order may be shipped anew.
Every carrier call runs with a time limit and any failure, including a
timeout, surfaces as ``CarrierError``.
"""

import json
import os
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from decimal import Decimal

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Boolean, Float, Identifier, String, Text
from protean.utils.globals import current_domain

from ordering.access import ensure_can_access, require_admin
from ordering.carrier import get_carrier
from ordering.carrier.port import Contact, PackageInfo, ShipmentStatus
from ordering.domain import ordering
from ordering.errors import (
    CarrierError,
    NotFound,
    OrderNotShippable,
    ShipmentAlreadyExists,
    UnsupportedCarrier,
    load,
)
from ordering.order.order import Order, OrderStatus
from ordering.shipment.shipment import CargoShipment

logger = structlog.get_logger(__name__)

_executor = ThreadPoolExecutor(max_workers=8, thread_name_prefix="carrier")

_UNSHIPPABLE_ORDER_STATES = {OrderStatus.CANCELLED, OrderStatus.REFUNDED}
_NO_DELIVERY_CASCADE = {OrderStatus.DELIVERED, OrderStatus.CANCELLED, OrderStatus.REFUNDED}

# Used for bulk dispatch, where no per-order package is supplied
DEFAULT_PACKAGE = {"weight": 2.5, "width": 30.0, "height": 20.0, "length": 40.0}


def carrier_timeout():
    return float(os.environ.get("CARRIER_TIMEOUT_SECONDS", "10"))


def shipper_contact():
    """The company's own contact, used as sender on every shipment."""
    return Contact(
        full_name=os.environ.get("SHIPPER_NAME", "Storefront Ltd."),
        phone=os.environ.get("SHIPPER_PHONE", "+90 212 123 45 67"),
        email=os.environ.get("SHIPPER_EMAIL", "shipping@storefront.example"),
        address=os.environ.get("SHIPPER_ADDRESS", "Ornek Mahallesi, Test Sokak No:1"),
        city=os.environ.get("SHIPPER_CITY", "Istanbul"),
        district=os.environ.get("SHIPPER_DISTRICT", "Kadikoy"),
        postal_code=os.environ.get("SHIPPER_POSTAL_CODE", "34000"),
    )


def receiver_contact(address):
    return Contact(
        full_name=address.full_name,
        phone=address.phone or "",
        email=address.email,
        address=address.address_line1,
        city=address.city,
        district=address.state,
        postal_code=address.postal_code,
    )


def resolve_carrier(code):
    carrier = get_carrier(code)
    if carrier is None:
        raise UnsupportedCarrier(code)
    return carrier


def call_carrier(carrier, operation, *args):
    """Run ``carrier.<operation>(*args)`` with a time limit.

    Any exception raised by the adapter, and running out of time, become
    ``CarrierError`` carrying the carrier code and the original detail.
    """
    code = carrier.code.value
    future = _executor.submit(getattr(carrier, operation), *args)
    try:
        return future.result(timeout=carrier_timeout())
    except FutureTimeoutError as exc:
        future.cancel()
        logger.warning("Carrier call timed out", carrier=code, operation=operation)
        raise CarrierError(code, f"{operation} timed out") from exc
    except Exception as exc:
        logger.warning("Carrier call failed", carrier=code, operation=operation, error=str(exc))
        raise CarrierError(code, str(exc)) from exc


def cancel_shipment_for_order(order, actor=None):
    """Cancel the order's shipment with its carrier, if there is one still in flight.

    Returns True when a shipment was cancelled.
    """
    repo = current_domain.repository_for(CargoShipment)
    shipment = repo.for_order(order.id)
    if shipment is None or ShipmentStatus(shipment.status) in (
        ShipmentStatus.DELIVERED,
        ShipmentStatus.CANCELLED,
        ShipmentStatus.RETURNED,
    ):
        return False

    carrier = resolve_carrier(shipment.carrier)
    if not call_carrier(carrier, "cancel_shipment", shipment.tracking_number):
        raise CarrierError(carrier.code.value, "Cancellation rejected by carrier")

    shipment.cancel()
    repo.add(shipment)
    if order.withdraw_shipment(shipment.tracking_number, actor=str(actor) if actor else None):
        current_domain.repository_for(Order).add(order)
    logger.info(
        "Shipment cancelled with order",
        shipment_id=str(shipment.id),
        order_id=str(order.id),
        actor=str(actor) if actor else None,
    )
    return True


@ordering.command(part_of="CargoShipment")
class CreateShipment:
    order_id = Identifier(required=True)
    carrier = String(required=True, max_length=50)
    weight = Float(required=True, min_value=0.0)
    width = Float(required=True, min_value=0.0)
    height = Float(required=True, min_value=0.0)
    length = Float(required=True, min_value=0.0)
    declared_value = Float(min_value=0.0)  # Optional, defaults to the order total
    description = String(max_length=255)
    actor_id = Identifier()
    is_admin = Boolean(default=False)


@ordering.command(part_of="CargoShipment")
class TrackShipment:
    tracking_number = String(required=True, max_length=100)
    carrier = String(max_length=50)  # Optional, defaults to the shipment carrier
    actor_id = Identifier()
    is_admin = Boolean(default=False)


@ordering.command(part_of="CargoShipment")
class CancelShipment:
    tracking_number = String(required=True, max_length=100)
    carrier = String(max_length=50)
    actor_id = Identifier()
    is_admin = Boolean(default=False)


@ordering.command(part_of="CargoShipment")
class CreateBulkShipments:
    """Ship several orders with one carrier, each with the default package."""

    order_ids = Text(required=True)  # JSON: list of order ids
    carrier = String(required=True, max_length=50)
    actor_id = Identifier()
    is_admin = Boolean(default=False)


def dispatch_order(order_id, carrier, package, declared_value=None, description=None, actor=None):
    """Book a shipment for one order and mirror it onto the order.

    ``package`` holds weight and dimensions as plain numbers. All checks and
    carrier calls happen before anything is written, so a rejected order
    leaves no partial state behind. Returns the new shipment.
    """
    order = load(Order, order_id)

    if OrderStatus(order.status) in _UNSHIPPABLE_ORDER_STATES:
        raise OrderNotShippable(f"Order in {order.status} status cannot be shipped")

    repo = current_domain.repository_for(CargoShipment)
    if repo.for_order(order.id) is not None:
        raise ShipmentAlreadyExists(f"Order {order.order_number} already has a shipment")

    if declared_value is None:
        declared_value = order.pricing.total
    parcel = PackageInfo(
        weight=Decimal(str(package["weight"])),
        width=Decimal(str(package["width"])),
        height=Decimal(str(package["height"])),
        length=Decimal(str(package["length"])),
        declared_value=Decimal(str(declared_value)),
        description=description,
    )
    sender = shipper_contact()
    receiver = receiver_contact(order.shipping_address)

    cost = call_carrier(carrier, "quote_rate", sender.city, receiver.city, parcel.weight, parcel.billable_weight)
    booking = call_carrier(carrier, "create_shipment", order.order_number, sender, receiver, parcel)

    shipment = CargoShipment.create(
        order_id=order.id,
        order_number=order.order_number,
        carrier=carrier.code,
        booking=booking,
        sender=sender,
        receiver=receiver,
        package=parcel,
        cost=cost,
    )
    repo.add(shipment)

    order.mark_shipped(booking.tracking_number, carrier.code.value, actor=str(actor) if actor else None)
    current_domain.repository_for(Order).add(order)

    logger.info(
        "Shipment created",
        shipment_id=str(shipment.id),
        order_id=str(order.id),
        carrier=carrier.code.value,
        tracking_number=booking.tracking_number,
        cost=str(cost),
    )
    return shipment


@ordering.command_handler(part_of=CargoShipment)
class ShipmentDispatchHandler:
    @handle(CreateShipment)
    def create_shipment(self, command):
        require_admin(command.is_admin)
        shipment = dispatch_order(
            command.order_id,
            resolve_carrier(command.carrier),
            {
                "weight": command.weight,
                "width": command.width,
                "height": command.height,
                "length": command.length,
            },
            declared_value=command.declared_value,
            description=command.description,
            actor=command.actor_id,
        )
        return str(shipment.id)

    @handle(TrackShipment)
    def track_shipment(self, command):
        repo = current_domain.repository_for(CargoShipment)
        shipment = repo.by_tracking_number(command.tracking_number)
        if shipment is None:
            raise NotFound("Shipment", command.tracking_number)

        order = load(Order, shipment.order_id)
        ensure_can_access(order, command.actor_id, command.is_admin)

        carrier = resolve_carrier(command.carrier or shipment.carrier)
        snapshot = call_carrier(carrier, "track_shipment", shipment.tracking_number)

        shipment.apply_tracking(snapshot)
        repo.add(shipment)

        if shipment.is_delivered and OrderStatus(order.status) not in _NO_DELIVERY_CASCADE:
            order.mark_delivered(actor=carrier.code.value)
            current_domain.repository_for(Order).add(order)
            logger.info("Order delivered", order_id=str(order.id), tracking_number=shipment.tracking_number)

        return shipment.status

    @handle(CancelShipment)
    def cancel_shipment(self, command):
        require_admin(command.is_admin)
        repo = current_domain.repository_for(CargoShipment)
        shipment = repo.by_tracking_number(command.tracking_number)
        if shipment is None:
            raise NotFound("Shipment", command.tracking_number)

        shipment.assert_cancellable()
        carrier = resolve_carrier(command.carrier or shipment.carrier)
        if not call_carrier(carrier, "cancel_shipment", shipment.tracking_number):
            raise CarrierError(carrier.code.value, "Cancellation rejected by carrier")

        shipment.cancel()
        repo.add(shipment)

        order = load(Order, shipment.order_id)
        actor = str(command.actor_id) if command.actor_id else None
        if order.withdraw_shipment(shipment.tracking_number, actor=actor):
            current_domain.repository_for(Order).add(order)

        logger.info(
            "Shipment cancelled",
            shipment_id=str(shipment.id),
            tracking_number=shipment.tracking_number,
            order_status=order.status,
        )
        return True

    @handle(CreateBulkShipments)
    def create_bulk_shipments(self, command):
        require_admin(command.is_admin)
        carrier = resolve_carrier(command.carrier)
        order_ids = json.loads(command.order_ids) if isinstance(command.order_ids, str) else command.order_ids
        order_ids = list(dict.fromkeys(str(order_id) for order_id in order_ids))

        results = []
        for order_id in order_ids:
            try:
                shipment = dispatch_order(order_id, carrier, DEFAULT_PACKAGE, actor=command.actor_id)
                results.append(
                    {
                        "order_id": order_id,
                        "success": True,
                        "shipment_id": str(shipment.id),
                        "tracking_number": shipment.tracking_number,
                        "error": None,
                    }
                )
            except (ValidationError, ObjectNotFoundError) as exc:
                logger.warning("Failed to create shipment", order_id=order_id, error=str(exc))
                results.append(
                    {
                        "order_id": order_id,
                        "success": False,
                        "shipment_id": None,
                        "tracking_number": None,
                        "error": str(exc),
                    }
                )

        logger.info(
            "Bulk shipment creation complete",
            requested=len(order_ids),
            succeeded=sum(1 for result in results if result["success"]),
        )
        return results


def get_shipment_for_order(order_id, actor_id, is_admin=False):
    order = load(Order, order_id)
    ensure_can_access(order, actor_id, is_admin)
    shipment = current_domain.repository_for(CargoShipment).latest_for_order(order.id)
    if shipment is None:
        raise NotFound("Shipment", message=f"No shipment for order {order.order_number}")
    return shipment


def list_shipments_for_user(user_id):
    """Shipments of every order the user placed, newest first."""
    orders = current_domain.repository_for(Order).for_user(user_id)
    shipments = current_domain.repository_for(CargoShipment).for_orders([order.id for order in orders])
    return sorted(shipments, key=lambda s: s.created_at, reverse=True)


def list_shipments(is_admin, status=None, carrier=None):
    require_admin(is_admin)
    if carrier:
        carrier = resolve_carrier(carrier).code.value
    shipments = current_domain.repository_for(CargoShipment).list_all(status=status, carrier=carrier)
    return sorted(shipments, key=lambda s: s.created_at, reverse=True)
