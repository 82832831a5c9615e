"""CargoShipment aggregate (CQRS) — the carrier-side record of an order's delivery.

One shipment per order. The shipment refers to its order by id only; the
order keeps its own copy of the tracking number and carrier name. Status
and tracking history are overwritten from carrier tracking polls, except
``Cancelled``, which is set when a cancellation is accepted. Shipments are
never deleted.
"""

from datetime import UTC, datetime

from protean.fields import Boolean, DateTime, Float, HasMany, Identifier, Integer, String, ValueObject

from ordering.carrier.port import CarrierCode, ShipmentStatus
from ordering.domain import ordering
from ordering.errors import ShipmentNotCancellable
from ordering.shipment.events import ShipmentCancelled, ShipmentCreated, ShipmentStatusUpdated

_UNCANCELLABLE_STATUSES = {ShipmentStatus.DELIVERED, ShipmentStatus.CANCELLED, ShipmentStatus.RETURNED}


@ordering.value_object(part_of="CargoShipment")
class ShipmentContact:
    full_name = String(required=True, max_length=150)
    phone = String(max_length=30)
    email = String(max_length=254)
    address = String(max_length=500)
    city = String(required=True, max_length=100)
    district = String(max_length=100)
    postal_code = String(max_length=20)

    @classmethod
    def from_contact(cls, contact):
        return cls(
            full_name=contact.full_name,
            phone=contact.phone,
            email=contact.email,
            address=contact.address,
            city=contact.city,
            district=contact.district,
            postal_code=contact.postal_code,
        )


@ordering.value_object(part_of="CargoShipment")
class PackageDetails:
    weight = Float(required=True, min_value=0.0)
    width = Float(required=True, min_value=0.0)
    height = Float(required=True, min_value=0.0)
    length = Float(required=True, min_value=0.0)
    dimensional_weight = Float(min_value=0.0)
    billable_weight = Float(min_value=0.0)
    declared_value = Float(default=0.0, min_value=0.0)
    description = String(max_length=255)
    package_count = Integer(default=1, min_value=1)

    @classmethod
    def from_package(cls, package):
        return cls(
            weight=float(package.weight),
            width=float(package.width),
            height=float(package.height),
            length=float(package.length),
            dimensional_weight=float(package.dimensional_weight),
            billable_weight=float(package.billable_weight),
            declared_value=float(package.declared_value),
            description=package.description,
            package_count=package.package_count,
        )


@ordering.entity(part_of="CargoShipment")
class TrackingEvent:
    sequence = Integer(required=True, min_value=0)
    status = String(required=True, max_length=50)
    description = String(max_length=255)
    location = String(max_length=255)
    occurred_at = DateTime(required=True)
    is_delivered = Boolean(default=False)


@ordering.aggregate
class CargoShipment:
    order_id = Identifier(required=True)
    order_number = String(max_length=40)
    carrier = String(required=True, choices=CarrierCode)
    tracking_number = String(required=True, max_length=100)
    status = String(choices=ShipmentStatus, default=ShipmentStatus.CREATED.value)
    sender = ValueObject(ShipmentContact)
    receiver = ValueObject(ShipmentContact)
    package = ValueObject(PackageDetails)
    tracking_events = HasMany(TrackingEvent)
    cost = Float(default=0.0, min_value=0.0)
    estimated_delivery = DateTime()
    actual_delivery = DateTime()
    created_at = DateTime()
    updated_at = DateTime()
    cancelled_at = DateTime()

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, order_id, order_number, carrier, booking, sender, receiver, package, cost):
        now = datetime.now(UTC)
        shipment = cls(
            order_id=order_id,
            order_number=order_number,
            carrier=CarrierCode(carrier).value,
            tracking_number=booking.tracking_number,
            status=ShipmentStatus.CREATED.value,
            sender=ShipmentContact.from_contact(sender),
            receiver=ShipmentContact.from_contact(receiver),
            package=PackageDetails.from_package(package),
            cost=float(cost),
            estimated_delivery=booking.estimated_delivery,
            created_at=now,
            updated_at=now,
        )
        shipment.add_tracking_events(
            TrackingEvent(
                sequence=0,
                status=ShipmentStatus.CREATED.value,
                description="Shipment created",
                location=sender.city,
                occurred_at=now,
            )
        )
        shipment.raise_(
            ShipmentCreated(
                shipment_id=str(shipment.id),
                order_id=str(order_id),
                carrier=shipment.carrier,
                tracking_number=shipment.tracking_number,
                cost=shipment.cost,
                created_at=now,
            )
        )
        return shipment

    @property
    def tracking_history(self):
        return sorted(self.tracking_events, key=lambda event: event.sequence)

    # -------------------------------------------------------------------
    # Tracking
    # -------------------------------------------------------------------
    def apply_tracking(self, snapshot):
        """Replace status and history with what the carrier reports."""
        previous = self.status
        now = datetime.now(UTC)

        for event in list(self.tracking_events):
            self.remove_tracking_events(event)
        for sequence, update in enumerate(snapshot.events):
            self.add_tracking_events(
                TrackingEvent(
                    sequence=sequence,
                    status=update.status,
                    description=update.description,
                    location=update.location,
                    occurred_at=update.occurred_at,
                    is_delivered=update.is_delivered,
                )
            )

        self.status = ShipmentStatus(snapshot.status).value
        if snapshot.estimated_delivery is not None:
            self.estimated_delivery = snapshot.estimated_delivery
        if snapshot.actual_delivery is not None:
            self.actual_delivery = snapshot.actual_delivery
        self.updated_at = now

        if previous != self.status:
            self.raise_(
                ShipmentStatusUpdated(
                    shipment_id=str(self.id),
                    tracking_number=self.tracking_number,
                    previous_status=previous,
                    new_status=self.status,
                    updated_at=now,
                )
            )

    @property
    def is_delivered(self):
        return self.status == ShipmentStatus.DELIVERED.value

    # -------------------------------------------------------------------
    # Cancellation
    # -------------------------------------------------------------------
    def assert_cancellable(self):
        current = ShipmentStatus(self.status)
        if current in _UNCANCELLABLE_STATUSES:
            raise ShipmentNotCancellable(f"Shipment cannot be cancelled in {current.value} status")

    def cancel(self):
        self.assert_cancellable()
        now = datetime.now(UTC)
        self.status = ShipmentStatus.CANCELLED.value
        self.cancelled_at = now
        self.updated_at = now
        self.add_tracking_events(
            TrackingEvent(
                sequence=len(self.tracking_events),
                status=ShipmentStatus.CANCELLED.value,
                description="Shipment cancelled",
                occurred_at=now,
            )
        )
        self.raise_(
            ShipmentCancelled(
                shipment_id=str(self.id),
                order_id=str(self.order_id),
                tracking_number=self.tracking_number,
                cancelled_at=now,
            )
        )


@ordering.repository(part_of=CargoShipment)
class CargoShipmentRepository:
    def for_order(self, order_id) -> CargoShipment | None:
        """The order's shipment, ignoring cancelled bookings."""
        return (
            self._dao.query.filter(order_id=str(order_id))
            .exclude(status=ShipmentStatus.CANCELLED.value)
            .all()
            .first
        )

    def latest_for_order(self, order_id) -> CargoShipment | None:
        return self._dao.query.filter(order_id=str(order_id)).order_by("-created_at").all().first

    def for_orders(self, order_ids) -> list[CargoShipment]:
        if not order_ids:
            return []
        return self._dao.query.filter(order_id__in=[str(order_id) for order_id in order_ids]).limit(None).all().items

    def by_tracking_number(self, tracking_number) -> CargoShipment | None:
        return self._dao.query.filter(tracking_number=tracking_number).all().first

    def list_all(self, status=None, carrier=None) -> list[CargoShipment]:
        query = self._dao.query
        if status:
            query = query.filter(status=status)
        if carrier:
            query = query.filter(carrier=carrier)
        return query.limit(None).all().items
