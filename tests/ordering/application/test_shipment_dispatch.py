"""Application tests for shipment dispatch — booking, tracking, cancellation, bulk and rate shopping."""

import json
from decimal import Decimal

import pytest
from ordering.carrier import get_carrier
from ordering.carrier.port import CarrierCode, PackageInfo, ShipmentStatus
from ordering.errors import (
    CarrierError,
    Forbidden,
    NotFound,
    OrderNotShippable,
    ShipmentAlreadyExists,
    ShipmentNotCancellable,
    UnsupportedCarrier,
)
from ordering.order.cancellation import CancelOrder
from ordering.order.order import Order, OrderStatus
from ordering.order.status import UpdateOrderStatus
from ordering.shipment.dispatch import (
    CancelShipment,
    CreateBulkShipments,
    CreateShipment,
    TrackShipment,
    get_shipment_for_order,
    list_shipments,
    list_shipments_for_user,
)
from ordering.shipment.rates import get_rates
from ordering.shipment.shipment import CargoShipment
from protean import current_domain

PACKAGE = {"weight": 2.5, "width": 30.0, "height": 20.0, "length": 40.0}


def _ship(order_id, carrier="ArasKargo", **package):
    return current_domain.process(
        CreateShipment(order_id=order_id, carrier=carrier, is_admin=True, actor_id="admin-001", **(package or PACKAGE)),
        asynchronous=False,
    )


def _shipment(shipment_id):
    return current_domain.repository_for(CargoShipment).get(shipment_id)


def _order(order_id):
    return current_domain.repository_for(Order).get(order_id)


def _cancel_shipment(tracking_number):
    current_domain.process(
        CancelShipment(tracking_number=tracking_number, actor_id="admin-001", is_admin=True),
        asynchronous=False,
    )


def _set_confirmed(order_id):
    current_domain.process(
        UpdateOrderStatus(order_id=order_id, status="Confirmed", actor_id="admin-001", is_admin=True),
        asynchronous=False,
    )


def _track(tracking_number, actor_id="user-001", is_admin=False):
    return current_domain.process(
        TrackShipment(tracking_number=tracking_number, actor_id=actor_id, is_admin=is_admin),
        asynchronous=False,
    )


class TestCreateShipment:
    def test_books_and_marks_order_shipped(self, order_for):
        order_id = order_for()
        shipment = _shipment(_ship(order_id))

        assert shipment.carrier == "ArasKargo"
        assert shipment.tracking_number.startswith("ARAS")
        assert shipment.status == ShipmentStatus.CREATED.value
        assert shipment.cost == 40.5
        assert shipment.package.billable_weight == 8.0
        assert shipment.receiver.city == "Ankara"
        assert len(shipment.tracking_history) == 1

        order = _order(order_id)
        assert order.status == OrderStatus.SHIPPED.value
        assert order.tracking_number == shipment.tracking_number
        assert order.carrier_name == "ArasKargo"
        assert order.shipped_at is not None

    def test_declared_value_defaults_to_order_total(self, order_for):
        order_id = order_for()
        shipment = _shipment(_ship(order_id))
        assert shipment.package.declared_value == _order(order_id).pricing.total

    def test_one_shipment_per_order(self, order_for):
        order_id = order_for()
        _ship(order_id)

        with pytest.raises(ShipmentAlreadyExists):
            _ship(order_id, carrier="MNGKargo")
        assert len(list_shipments(is_admin=True)) == 1

    def test_cancelled_order_not_shippable(self, order_for):
        order_id = order_for()
        current_domain.process(CancelOrder(order_id=order_id, reason="No", actor_id="user-001"), asynchronous=False)
        with pytest.raises(OrderNotShippable):
            _ship(order_id)

    def test_unsupported_carrier(self, order_for):
        order_id = order_for()
        with pytest.raises(UnsupportedCarrier):
            _ship(order_id, carrier="DHL")

    def test_registered_code_without_adapter(self, order_for):
        order_id = order_for()
        with pytest.raises(UnsupportedCarrier):
            _ship(order_id, carrier="UPS")

    def test_requires_admin(self, order_for):
        order_id = order_for()
        with pytest.raises(Forbidden):
            current_domain.process(CreateShipment(order_id=order_id, carrier="ArasKargo", **PACKAGE), asynchronous=False)

    def test_carrier_failure_surfaces_as_carrier_error(self, order_for):
        order_id = order_for()
        get_carrier("ArasKargo").configure(should_succeed=False, failure_reason="Service down")

        with pytest.raises(CarrierError) as exc:
            _ship(order_id)
        assert exc.value.carrier == "ArasKargo"
        assert "Service down" in exc.value.detail
        assert _order(order_id).status == OrderStatus.PENDING.value

    def test_slow_carrier_times_out(self, order_for, monkeypatch):
        monkeypatch.setenv("CARRIER_TIMEOUT_SECONDS", "0.05")
        order_id = order_for()
        get_carrier("ArasKargo").configure(delay_seconds=0.5)

        with pytest.raises(CarrierError) as exc:
            _ship(order_id)
        assert "timed out" in exc.value.detail


class TestTrackShipment:
    def test_progress_is_stored(self, order_for):
        order_id = order_for()
        shipment = _shipment(_ship(order_id, carrier="MNGKargo"))

        assert _track(shipment.tracking_number) == ShipmentStatus.OUT_FOR_DELIVERY.value

        shipment = _shipment(shipment.id)
        assert shipment.status == ShipmentStatus.OUT_FOR_DELIVERY.value
        assert len(shipment.tracking_history) == 3
        assert _order(order_id).status == OrderStatus.SHIPPED.value

    def test_delivery_cascades_to_order(self, order_for):
        order_id = order_for()
        shipment = _shipment(_ship(order_id, carrier="YurticiKargo"))

        _track(shipment.tracking_number)

        shipment = _shipment(shipment.id)
        assert shipment.actual_delivery is not None
        order = _order(order_id)
        assert order.status == OrderStatus.DELIVERED.value
        assert order.delivered_at is not None

    def test_unknown_tracking_number(self):
        with pytest.raises(NotFound):
            _track("NOPE", is_admin=True)

    def test_strangers_cannot_track(self, order_for):
        shipment = _shipment(_ship(order_for()))
        with pytest.raises(Forbidden):
            _track(shipment.tracking_number, actor_id="user-999")


class TestCancelShipment:
    def test_cancel(self, order_for):
        shipment = _shipment(_ship(order_for()))

        current_domain.process(
            CancelShipment(tracking_number=shipment.tracking_number, is_admin=True),
            asynchronous=False,
        )

        assert _shipment(shipment.id).status == ShipmentStatus.CANCELLED.value
        assert shipment.tracking_number in get_carrier("ArasKargo").cancelled

    def test_delivered_shipment_cannot_be_cancelled(self, order_for):
        shipment = _shipment(_ship(order_for(), carrier="YurticiKargo"))
        _track(shipment.tracking_number)

        with pytest.raises(ShipmentNotCancellable):
            current_domain.process(
                CancelShipment(tracking_number=shipment.tracking_number, is_admin=True),
                asynchronous=False,
            )

    def test_order_cancellation_cancels_shipment(self, order_for, catalogue):
        order_id = order_for(quantity=2)
        shipment_id = _ship(order_id)

        current_domain.process(
            UpdateOrderStatus(order_id=order_id, status="Cancelled", is_admin=True),
            asynchronous=False,
        )

        assert _shipment(shipment_id).status == ShipmentStatus.CANCELLED.value
        assert catalogue.stock_of("prod-phone") == 10

    def test_carrier_refusal_does_not_block_restock(self, order_for, catalogue):
        order_id = order_for(quantity=2)
        shipment_id = _ship(order_id)
        get_carrier("ArasKargo").configure(should_succeed=False)

        current_domain.process(
            UpdateOrderStatus(order_id=order_id, status="Cancelled", is_admin=True),
            asynchronous=False,
        )

        assert _order(order_id).status == OrderStatus.CANCELLED.value
        assert catalogue.stock_of("prod-phone") == 10
        assert _shipment(shipment_id).status == ShipmentStatus.CREATED.value

    def test_cancelled_booking_is_withdrawn_from_order(self, order_for):
        order_id = order_for()
        _set_confirmed(order_id)
        shipment = _shipment(_ship(order_id))

        _cancel_shipment(shipment.tracking_number)

        order = _order(order_id)
        assert order.status == OrderStatus.CONFIRMED.value
        assert order.tracking_number is None
        assert order.carrier_name is None
        assert order.shipped_at is None
        assert shipment.tracking_number in order.status_history[-1].note

    def test_order_can_be_shipped_again_after_cancellation(self, order_for):
        order_id = order_for()
        first = _shipment(_ship(order_id))
        _cancel_shipment(first.tracking_number)

        second = _shipment(_ship(order_id, carrier="MNGKargo"))

        order = _order(order_id)
        assert order.status == OrderStatus.SHIPPED.value
        assert order.tracking_number == second.tracking_number
        assert order.carrier_name == "MNGKargo"
        assert str(get_shipment_for_order(order_id, "user-001").id) == str(second.id)


class TestBulkShipments:
    def test_partial_failure_report(self, order_for):
        first = order_for(user_id="user-001")
        second = order_for(user_id="user-002")
        _ship(second)

        results = current_domain.process(
            CreateBulkShipments(order_ids=json.dumps([first, second, "missing"]), carrier="MNGKargo", is_admin=True),
            asynchronous=False,
        )

        assert [result["success"] for result in results] == [True, False, False]
        assert results[0]["tracking_number"].startswith("MNG")
        assert "already has a shipment" in results[1]["error"]
        assert results[2]["shipment_id"] is None
        assert _order(first).carrier_name == "MNGKargo"

    def test_uses_default_package(self, order_for):
        order_id = order_for()
        results = current_domain.process(
            CreateBulkShipments(order_ids=json.dumps([order_id]), carrier="ArasKargo", is_admin=True),
            asynchronous=False,
        )
        shipment = _shipment(results[0]["shipment_id"])
        assert shipment.package.weight == 2.5
        assert shipment.package.dimensional_weight == 8.0

    def test_carrier_outage_reported_per_order(self, order_for):
        order_id = order_for()
        get_carrier("ArasKargo").configure(should_succeed=False, failure_reason="Down")

        results = current_domain.process(
            CreateBulkShipments(order_ids=json.dumps([order_id]), carrier="ArasKargo", is_admin=True),
            asynchronous=False,
        )

        assert results[0]["success"] is False
        assert "Down" in results[0]["error"]


class TestShipmentReads:
    def test_for_order(self, order_for):
        order_id = order_for()
        shipment_id = _ship(order_id)
        assert str(get_shipment_for_order(order_id, "user-001").id) == shipment_id

    def test_for_order_without_shipment(self, order_for):
        with pytest.raises(NotFound):
            get_shipment_for_order(order_for(), "user-001")

    def test_for_order_shows_cancelled_booking(self, order_for):
        order_id = order_for()
        shipment = _shipment(_ship(order_id))
        _cancel_shipment(shipment.tracking_number)

        assert get_shipment_for_order(order_id, "user-001").status == ShipmentStatus.CANCELLED.value

    def test_my_shipments(self, order_for):
        older = _ship(order_for(user_id="user-001"))
        newer = _ship(order_for(user_id="user-001"))
        _ship(order_for(user_id="user-002"))

        assert [str(s.id) for s in list_shipments_for_user("user-001")] == [newer, older]
        assert list_shipments_for_user("user-003") == []

    def test_list_filters(self, order_for):
        _ship(order_for(user_id="user-001"), carrier="ArasKargo")
        _ship(order_for(user_id="user-002"), carrier="MNGKargo")

        assert len(list_shipments(is_admin=True)) == 2
        assert [s.carrier for s in list_shipments(is_admin=True, carrier="MNGKargo")] == ["MNGKargo"]

    def test_list_unknown_carrier(self):
        with pytest.raises(UnsupportedCarrier):
            list_shipments(is_admin=True, carrier="DHL")


class TestRates:
    package = PackageInfo(weight=Decimal("2.5"), width=Decimal("30"), height=Decimal("20"), length=Decimal("40"))

    def test_all_carriers_cheapest_first(self):
        quotes = get_rates("Istanbul", "Ankara", self.package)
        assert [quote.carrier for quote in quotes] == ["MNGKargo", "ArasKargo", "YurticiKargo"]
        assert quotes[0].cost == Decimal("31.36")
        assert quotes[0].estimated_days == 2

    def test_failing_carrier_is_skipped(self):
        get_carrier(CarrierCode.MNG).configure(should_succeed=False)
        quotes = get_rates("Istanbul", "Ankara", self.package)
        assert [quote.carrier for quote in quotes] == ["ArasKargo", "YurticiKargo"]

    def test_single_carrier_failure_raises(self):
        get_carrier(CarrierCode.MNG).configure(should_succeed=False)
        with pytest.raises(CarrierError):
            get_rates("Istanbul", "Ankara", self.package, carrier="MNGKargo")

    def test_single_carrier(self):
        quotes = get_rates("Istanbul", "Istanbul", self.package, carrier="ArasKargo")
        assert len(quotes) == 1
        assert quotes[0].cost == Decimal("27.00")
