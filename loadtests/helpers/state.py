"""Per-user state tracking for Locust load test scenarios.

Each Locust user instance maintains its own state; nothing is shared across
users. State tracks ids returned by the API so follow-up requests can
reference them.
"""

from dataclasses import dataclass, field


@dataclass
class ShopperState:
    """Tracks a single simulated shopper from browsing to checkout."""

    user_id: str | None = None
    session_id: str | None = None
    line_count: int = 0
    order_id: str | None = None
    order_number: str | None = None
    current_status: str | None = None


@dataclass
class FulfilmentState:
    """Tracks the orders an administrator is working through."""

    order_ids: list[str] = field(default_factory=list)
    tracking_numbers: list[str] = field(default_factory=list)
    coupon_id: str | None = None
