"""Payment gateway factory.

Provides get_gateway() / set_gateway() / reset_gateway() to swap the
payment stand-in. PAYMENT_GATEWAY selects the adapter; only "fake" ships.
"""

import os

from ordering.payment.port import PaymentGateway

_current_gateway: PaymentGateway | None = None


def get_gateway() -> PaymentGateway:
    """Return the process-wide gateway, creating it from PAYMENT_GATEWAY on first use."""
    global _current_gateway
    if _current_gateway is None:
        adapter = os.environ.get("PAYMENT_GATEWAY", "fake")
        if adapter == "fake":
            from ordering.payment.fake_adapter import FakeGateway

            _current_gateway = FakeGateway()
        else:
            raise ValueError(f"Unknown payment gateway: {adapter}")
    return _current_gateway


def set_gateway(gateway: PaymentGateway) -> None:
    """Install ``gateway`` in place of the configured one."""
    global _current_gateway
    _current_gateway = gateway


def reset_gateway() -> None:
    """Forget the active gateway; the next get_gateway() builds a fresh one."""
    global _current_gateway
    _current_gateway = None
