"""Rate shopping — quotes a package across one carrier or all registered carriers."""

from dataclasses import dataclass
from decimal import Decimal

import structlog

from ordering.carrier import get_carriers
from ordering.carrier.port import PackageInfo
from ordering.carrier.simulated import ESTIMATED_DELIVERY_DAYS
from ordering.errors import CarrierError
from ordering.shipment.dispatch import call_carrier, resolve_carrier

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class RateQuote:
    carrier: str
    cost: Decimal
    estimated_days: int | None = None


def _quote(carrier, sender_city, receiver_city, package):
    cost = call_carrier(
        carrier,
        "quote_rate",
        sender_city,
        receiver_city,
        package.weight,
        package.billable_weight,
    )
    return RateQuote(
        carrier=carrier.code.value,
        cost=cost,
        estimated_days=ESTIMATED_DELIVERY_DAYS.get(carrier.code),
    )


def get_rates(sender_city, receiver_city, package: PackageInfo, carrier=None) -> list[RateQuote]:
    """Quotes sorted from cheapest to most expensive.

    With ``carrier`` set, only that carrier is asked and its failure is
    raised. Otherwise every registered carrier is asked and carriers that
    fail are left out of the result.
    """
    if carrier:
        return [_quote(resolve_carrier(carrier), sender_city, receiver_city, package)]

    quotes = []
    for adapter in get_carriers().values():
        try:
            quotes.append(_quote(adapter, sender_city, receiver_city, package))
        except CarrierError as exc:
            logger.warning("Skipping carrier in rate comparison", carrier=exc.carrier, error=exc.detail)

    return sorted(quotes, key=lambda quote: quote.cost)
