"""Payment gateway port (abstract interface).

A stand-in for the real payment provider: a charge or a refund either
succeeds, with a transaction identifier, or fails with a reason. Charges that settle outside
the gateway (cash on delivery, bank transfer) succeed immediately and are
flagged as awaiting confirmation.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class ChargeResult:
    """Result of a payment charge attempt."""

    success: bool
    transaction_id: str | None = None
    awaiting_confirmation: bool = False
    message: str | None = None
    failure_reason: str | None = None


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    @abstractmethod
    def charge(self, order_number: str, amount: Decimal, payment_method: str) -> ChargeResult:
        """Charge ``amount`` for the order using ``payment_method``."""
        ...

    @abstractmethod
    def refund(self, order_number: str, amount: Decimal, transaction_id: str | None) -> ChargeResult:
        """Return ``amount`` previously charged under ``transaction_id``."""
        ...
