"""Carrier registry — carrier adapters keyed by carrier code.

Uses simulated carriers by default. In production, configure via the
CARRIER_ADAPTER environment variable. Only the carriers present in the
registry can be dispatched to; asking for any other code is an error.
"""

import os

from ordering.carrier.port import CarrierCode, CarrierPort

_carriers: dict[CarrierCode, CarrierPort] | None = None


def _load_default_carriers():
    adapter = os.environ.get("CARRIER_ADAPTER", "simulated")
    if adapter == "simulated":
        from ordering.carrier.simulated import DEFAULT_TARIFFS, SimulatedCarrier

        return {tariff.code: SimulatedCarrier(tariff) for tariff in DEFAULT_TARIFFS}
    raise ValueError(f"Unknown carrier adapter: {adapter}")


def get_carriers() -> dict[CarrierCode, CarrierPort]:
    """Return the registered carrier adapters (singleton)."""
    global _carriers
    if _carriers is None:
        _carriers = _load_default_carriers()
    return _carriers


def get_carrier(code) -> CarrierPort | None:
    """Return the adapter for ``code`` (a CarrierCode or its value), or None."""
    try:
        code = CarrierCode(code)
    except ValueError:
        return None
    return get_carriers().get(code)


def register_carrier(carrier: CarrierPort) -> None:
    get_carriers()[carrier.code] = carrier


def reset_carriers() -> None:
    """Reset the carrier registry (useful for testing)."""
    global _carriers
    _carriers = None
