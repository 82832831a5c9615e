"""BDD tests for shipment dispatch and tracking."""

from ordering.carrier import get_carrier
from ordering.order.cancellation import CancelOrder
from ordering.order.order import Order
from ordering.shipment.dispatch import CreateShipment, TrackShipment
from ordering.shipment.shipment import CargoShipment
from protean import current_domain
from pytest_bdd import given, parsers, scenarios, then, when

scenarios("features/shipment_dispatch.feature")


def _shipment(outcome):
    return current_domain.repository_for(CargoShipment).for_order(outcome["order_id"])


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('carrier "{carrier}" is down'))
def _(carrier):
    get_carrier(carrier).configure(should_succeed=False, failure_reason="Service unavailable")


@given("the shopper cancelled the order")
def _(shopper, outcome):
    current_domain.process(
        CancelOrder(order_id=outcome["order_id"], reason="Changed my mind", actor_id=shopper),
        asynchronous=False,
    )


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('an administrator shipped the order with "{carrier}"'))
@when(parsers.cfparse('an administrator ships the order with "{carrier}"'))
def _(outcome, attempt, carrier):
    command = CreateShipment(
        order_id=outcome["order_id"],
        carrier=carrier,
        weight=1.2,
        width=20.0,
        height=10.0,
        length=30.0,
        actor_id="admin-001",
        is_admin=True,
    )
    attempt(lambda: current_domain.process(command, asynchronous=False))


@when("the shipment is tracked")
def _(shopper, outcome, attempt):
    command = TrackShipment(tracking_number=_shipment(outcome).tracking_number, actor_id=shopper)
    attempt(lambda: current_domain.process(command, asynchronous=False))


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the shipment tracking number starts with "{prefix}"'))
def _(outcome, prefix):
    assert _shipment(outcome).tracking_number.startswith(prefix)


@then(parsers.cfparse('the shipment is "{status}"'))
def _(outcome, status):
    assert _shipment(outcome).status == status


@then(parsers.cfparse('the order is still "{status}"'))
def _(outcome, status):
    assert current_domain.repository_for(Order).get(outcome["order_id"]).status == status
