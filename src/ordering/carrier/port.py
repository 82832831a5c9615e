"""Carrier port — abstract interface for shipping carrier integrations.

Every carrier adapter implements the same four capabilities. The dispatch
code programs against this port and selects an adapter by carrier code
only; it never inspects adapter types.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

VOLUMETRIC_DIVISOR = Decimal(3000)


class CarrierCode(Enum):
    ARAS = "ArasKargo"
    MNG = "MNGKargo"
    YURTICI = "YurticiKargo"
    PTT = "PTT"
    SURAT = "SuratKargo"
    UPS = "UPS"


class ShipmentStatus(Enum):
    CREATED = "Created"
    PICKED_UP = "PickedUp"
    IN_TRANSIT = "InTransit"
    IN_BRANCH = "InBranch"
    OUT_FOR_DELIVERY = "OutForDelivery"
    DELIVERED = "Delivered"
    FAILED_DELIVERY = "FailedDelivery"
    RETURNED = "Returned"
    CANCELLED = "Cancelled"


@dataclass(frozen=True)
class Contact:
    full_name: str
    phone: str
    address: str
    city: str
    district: str | None = None
    postal_code: str | None = None
    email: str | None = None


@dataclass(frozen=True)
class PackageInfo:
    """Physical package attributes. Weight in kg, dimensions in cm."""

    weight: Decimal
    width: Decimal
    height: Decimal
    length: Decimal
    declared_value: Decimal = Decimal("0")
    description: str | None = None
    package_count: int = 1

    @property
    def dimensional_weight(self) -> Decimal:
        """Volumetric weight, ``width * height * length / 3000``."""
        volume = Decimal(self.width) * Decimal(self.height) * Decimal(self.length)
        return (volume / VOLUMETRIC_DIVISOR).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)

    @property
    def billable_weight(self) -> Decimal:
        return max(Decimal(self.weight), self.dimensional_weight)


@dataclass(frozen=True)
class Booking:
    """What a carrier returns when it accepts a shipment."""

    tracking_number: str
    estimated_delivery: datetime | None = None


@dataclass(frozen=True)
class TrackingUpdate:
    status: str
    description: str
    occurred_at: datetime
    location: str | None = None
    is_delivered: bool = False


@dataclass(frozen=True)
class TrackingSnapshot:
    """The carrier's current view of a shipment."""

    status: ShipmentStatus
    events: list[TrackingUpdate] = field(default_factory=list)
    estimated_delivery: datetime | None = None
    actual_delivery: datetime | None = None


class CarrierFailure(Exception):
    """Raised by adapters when the carrier rejects or cannot serve a request."""


class CarrierPort(ABC):
    """Abstract interface for carrier adapters."""

    code: CarrierCode

    @abstractmethod
    def quote_rate(self, sender_city: str, receiver_city: str, weight: Decimal, dimensional_weight: Decimal) -> Decimal:
        """Return the shipping cost for a package between two cities."""
        ...

    @abstractmethod
    def create_shipment(self, order_number: str, sender: Contact, receiver: Contact, package: PackageInfo) -> Booking:
        """Register a shipment with the carrier and return its tracking number."""
        ...

    @abstractmethod
    def track_shipment(self, tracking_number: str) -> TrackingSnapshot:
        """Return the carrier's current status and full event history."""
        ...

    @abstractmethod
    def cancel_shipment(self, tracking_number: str) -> bool:
        """Ask the carrier to cancel. Returns True when it accepted."""
        ...
