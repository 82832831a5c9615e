"""PricingSummary value object — the persisted form of engine ``Totals``.

Amounts are stored as floats (like the rest of the domain's monetary
fields) and converted back to ``Decimal`` through ``str`` whenever they
take part in arithmetic.
"""

from protean.fields import Float

from ordering.domain import ordering
from ordering.pricing.engine import Totals, to_decimal


@ordering.value_object
class PricingSummary:
    """Subtotal, discount, tax, shipping and grand total of a cart or order."""

    subtotal = Float(default=0.0)
    discount = Float(default=0.0)
    tax = Float(default=0.0)
    shipping_cost = Float(default=0.0)
    total = Float(default=0.0)

    @classmethod
    def from_totals(cls, totals: Totals):
        return cls(
            subtotal=float(totals.subtotal),
            discount=float(totals.discount),
            tax=float(totals.tax),
            shipping_cost=float(totals.shipping_cost),
            total=float(totals.total),
        )

    def to_totals(self) -> Totals:
        return Totals(
            subtotal=to_decimal(self.subtotal),
            discount=to_decimal(self.discount),
            tax=to_decimal(self.tax),
            shipping_cost=to_decimal(self.shipping_cost),
            total=to_decimal(self.total),
        )

