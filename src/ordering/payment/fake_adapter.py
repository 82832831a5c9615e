"""Configurable fake payment gateway for development and testing.

Simulates a gateway without external calls and records every charge and
refund it receives so tests can assert on them.
"""

import secrets
from datetime import UTC, datetime
from decimal import Decimal

from ordering.payment.port import ChargeResult, PaymentGateway


class FakeGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    def __init__(self) -> None:
        self.should_succeed: bool = True
        self.failure_reason: str = "Card declined"
        self.calls: list[dict] = []
        self.refunds_succeed: bool = True
        self.refunds: list[dict] = []

    def configure(self, should_succeed: bool, failure_reason: str = "Card declined") -> None:
        """Configure gateway behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def charge(self, order_number: str, amount: Decimal, payment_method: str) -> ChargeResult:
        self.calls.append(
            {
                "order_number": order_number,
                "amount": amount,
                "payment_method": payment_method,
            }
        )

        stamp = datetime.now(UTC).strftime("%Y%m%d%H%M%S")

        if payment_method == "CashOnDelivery":
            return ChargeResult(
                success=True,
                transaction_id=f"COD-{stamp}",
                awaiting_confirmation=True,
                message="Payment will be collected on delivery",
            )

        if payment_method == "BankTransfer":
            return ChargeResult(
                success=True,
                transaction_id=f"BT-{stamp}-{secrets.token_hex(3).upper()}",
                awaiting_confirmation=True,
                message="Awaiting bank transfer confirmation",
            )

        if not self.should_succeed:
            return ChargeResult(success=False, failure_reason=self.failure_reason)

        return ChargeResult(
            success=True,
            transaction_id=f"TXN-{stamp}-{secrets.token_hex(4).upper()}",
            message="Charge successful",
        )

    def refund(self, order_number: str, amount: Decimal, transaction_id: str | None) -> ChargeResult:
        self.refunds.append(
            {
                "order_number": order_number,
                "amount": amount,
                "transaction_id": transaction_id,
            }
        )

        if not self.refunds_succeed:
            return ChargeResult(success=False, failure_reason="Refund rejected by gateway")

        return ChargeResult(
            success=True,
            transaction_id=f"REFUND-{datetime.now(UTC):%Y%m%d%H%M%S}-{secrets.token_hex(4).upper()}",
            message="Refund initiated; funds arrive in 5-10 business days",
        )
