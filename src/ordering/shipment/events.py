"""Domain events for the CargoShipment aggregate."""

from protean.fields import DateTime, Float, Identifier, String

from ordering.domain import ordering


@ordering.event(part_of="CargoShipment")
class ShipmentCreated:
    """A shipment was booked with a carrier for an order."""

    __version__ = 1

    shipment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    carrier = String(required=True)
    tracking_number = String(required=True)
    cost = Float(required=True)
    created_at = DateTime(required=True)


@ordering.event(part_of="CargoShipment")
class ShipmentStatusUpdated:
    """A tracking poll reported a new status for the shipment."""

    __version__ = 1

    shipment_id = Identifier(required=True)
    tracking_number = String(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)
    updated_at = DateTime(required=True)


@ordering.event(part_of="CargoShipment")
class ShipmentCancelled:
    """The carrier accepted cancellation of the shipment."""

    __version__ = 1

    shipment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    tracking_number = String(required=True)
    cancelled_at = DateTime(required=True)
