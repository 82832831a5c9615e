"""Simulated carrier adapters — deterministic carriers for development and testing.

Each simulated carrier is driven by a ``Tariff``: its pricing coefficients,
tracking-number prefix, delivery estimate, and the scripted tracking
progress it reports. Behaviour can be switched to failure (or slowed down)
at runtime to exercise error handling and timeouts.
"""

import secrets
import time
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal

from ordering.carrier.port import (
    Booking,
    CarrierCode,
    CarrierFailure,
    CarrierPort,
    Contact,
    PackageInfo,
    ShipmentStatus,
    TrackingSnapshot,
    TrackingUpdate,
)

ESTIMATED_DELIVERY_DAYS = {
    CarrierCode.ARAS: 2,
    CarrierCode.MNG: 2,
    CarrierCode.YURTICI: 3,
    CarrierCode.PTT: 4,
    CarrierCode.SURAT: 2,
    CarrierCode.UPS: 1,
}


@dataclass(frozen=True)
class Tariff:
    code: CarrierCode
    tracking_prefix: str
    base_rate: Decimal
    per_kg: Decimal
    per_desi: Decimal
    intercity_factor: Decimal
    # (status, description, location, hours ago), oldest first
    progress: tuple = ()


ARAS_TARIFF = Tariff(
    code=CarrierCode.ARAS,
    tracking_prefix="ARAS",
    base_rate=Decimal("15"),
    per_kg=Decimal("2.0"),
    per_desi=Decimal("1.5"),
    intercity_factor=Decimal("1.5"),
    progress=(
        (ShipmentStatus.PICKED_UP, "Package received at origin branch", "Istanbul - Kadikoy Branch", 24),
        (ShipmentStatus.IN_TRANSIT, "Package reached the transfer center", "Istanbul Transfer Center", 12),
        (ShipmentStatus.IN_TRANSIT, "Package on its way to the destination branch", "Ankara Transfer Center", 6),
    ),
)

MNG_TARIFF = Tariff(
    code=CarrierCode.MNG,
    tracking_prefix="MNG",
    base_rate=Decimal("12"),
    per_kg=Decimal("1.8"),
    per_desi=Decimal("1.3"),
    intercity_factor=Decimal("1.4"),
    progress=(
        (ShipmentStatus.PICKED_UP, "Package handed over to the carrier", "Istanbul Hub", 24),
        (ShipmentStatus.IN_BRANCH, "Package reached the delivery branch", "Ankara - Cankaya Branch", 8),
        (ShipmentStatus.OUT_FOR_DELIVERY, "Courier is on the way", "Ankara - Cankaya", 2),
    ),
)

YURTICI_TARIFF = Tariff(
    code=CarrierCode.YURTICI,
    tracking_prefix="YK",
    base_rate=Decimal("14"),
    per_kg=Decimal("2.2"),
    per_desi=Decimal("1.6"),
    intercity_factor=Decimal("1.6"),
    progress=(
        (ShipmentStatus.PICKED_UP, "Package received", "Istanbul - Besiktas Branch", 48),
        (ShipmentStatus.IN_TRANSIT, "Package in transit", "Istanbul Transfer Center", 30),
        (ShipmentStatus.OUT_FOR_DELIVERY, "Package out for delivery", "Izmir - Konak", 5),
        (ShipmentStatus.DELIVERED, "Package delivered to the recipient", "Izmir - Konak", 1),
    ),
)

DEFAULT_TARIFFS = (ARAS_TARIFF, MNG_TARIFF, YURTICI_TARIFF)


class SimulatedCarrier(CarrierPort):
    """Carrier that prices with its tariff and reports scripted tracking."""

    def __init__(self, tariff: Tariff):
        self.tariff = tariff
        self.code = tariff.code
        self.should_succeed = True
        self.failure_reason = "Carrier unavailable"
        self.delay_seconds = 0.0
        self.cancelled: set[str] = set()

    def configure(
        self,
        should_succeed: bool = True,
        failure_reason: str = "Carrier unavailable",
        delay_seconds: float = 0.0,
    ):
        """Configure the simulated carrier behavior for testing."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason
        self.delay_seconds = delay_seconds

    def _call(self):
        if self.delay_seconds:
            time.sleep(self.delay_seconds)
        if not self.should_succeed:
            raise CarrierFailure(self.failure_reason)

    def quote_rate(self, sender_city, receiver_city, weight, dimensional_weight) -> Decimal:
        self._call()
        tariff = self.tariff
        weight_rate = Decimal(weight) * tariff.per_kg
        desi_rate = Decimal(dimensional_weight) * tariff.per_desi
        same_city = (sender_city or "").casefold() == (receiver_city or "").casefold()
        factor = Decimal(1) if same_city else tariff.intercity_factor
        cost = (tariff.base_rate + max(weight_rate, desi_rate)) * factor
        return cost.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)

    def create_shipment(self, order_number: str, sender: Contact, receiver: Contact, package: PackageInfo) -> Booking:
        self._call()
        now = datetime.now(UTC)
        tracking_number = f"{self.tariff.tracking_prefix}{now:%Y%m%d%H%M%S}{secrets.randbelow(9000) + 1000}"
        return Booking(
            tracking_number=tracking_number,
            estimated_delivery=now + timedelta(days=ESTIMATED_DELIVERY_DAYS[self.code]),
        )

    def track_shipment(self, tracking_number: str) -> TrackingSnapshot:
        self._call()
        now = datetime.now(UTC)

        if tracking_number in self.cancelled:
            return TrackingSnapshot(
                status=ShipmentStatus.CANCELLED,
                events=[TrackingUpdate(status=ShipmentStatus.CANCELLED.value, description="Shipment cancelled", occurred_at=now)],
            )

        events = [
            TrackingUpdate(
                status=status.value,
                description=description,
                location=location,
                occurred_at=now - timedelta(hours=hours_ago),
                is_delivered=status == ShipmentStatus.DELIVERED,
            )
            for status, description, location, hours_ago in self.tariff.progress
        ]
        current = self.tariff.progress[-1][0] if self.tariff.progress else ShipmentStatus.CREATED
        delivered = current == ShipmentStatus.DELIVERED

        return TrackingSnapshot(
            status=current,
            events=events,
            estimated_delivery=None if delivered else now + timedelta(days=1),
            actual_delivery=events[-1].occurred_at if delivered else None,
        )

    def cancel_shipment(self, tracking_number: str) -> bool:
        self._call()
        self.cancelled.add(tracking_number)
        return True
