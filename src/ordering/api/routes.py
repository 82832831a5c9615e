"""FastAPI routes for the Ordering domain — cart, coupons, orders and shipments.

Authentication happens upstream. The caller's identity arrives as headers:
``X-User-Id`` for a signed-in user, ``X-Session-Id`` for an anonymous
session, and ``X-Admin: true`` for administrators.
"""

import json
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from fastapi import APIRouter, Depends, Header
from fastapi.responses import HTMLResponse
from protean.utils.globals import current_domain

from ordering.api.schemas import (
    AddCartItemRequest,
    AddressSchema,
    ApplyCouponRequest,
    BulkShipmentRequest,
    BulkShipmentResult,
    CancelOrderRequest,
    CartLineSchema,
    CartResponse,
    CouponRequest,
    CouponResponse,
    CouponUpdateRequest,
    CouponValidationRequest,
    CouponValidationResponse,
    CreateShipmentRequest,
    MergeCartRequest,
    OrderItemResponse,
    OrderPageResponse,
    OrderResponse,
    PaymentResponse,
    PlaceOrderRequest,
    RateQuoteSchema,
    RateRequest,
    ShipmentResponse,
    StatusEntrySchema,
    StatusResponse,
    TotalsSchema,
    TrackingEventSchema,
    UpdateCartItemRequest,
    UpdateOrderStatusRequest,
)
from ordering.carrier.port import PackageInfo
from ordering.cart.cart import Cart
from ordering.cart.management import (
    AddCartItem,
    ApplyCartCoupon,
    ClearCart,
    GetOrCreateCart,
    MergeSessionCart,
    RemoveCartCoupon,
    RemoveCartItem,
    UpdateCartItem,
)
from ordering.coupon.coupon import Coupon
from ordering.coupon.management import CreateCoupon, DeleteCoupon, ToggleCoupon, UpdateCoupon, list_coupons
from ordering.coupon.validation import validate_coupon_code
from ordering.errors import Forbidden
from ordering.invoice.templates import render_invoice, render_shipping_label
from ordering.order.cancellation import CancelOrder
from ordering.order.payment import PayOrder
from ordering.order.placement import PlaceOrder
from ordering.order.queries import (
    get_order,
    get_order_by_number,
    list_orders,
    list_orders_for_user,
    order_stats,
    search_orders,
)
from ordering.order.status import UpdateOrderStatus
from ordering.pricing.engine import compute_discount, to_decimal
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


# ---------------------------------------------------------------------------
# Caller identity
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class Actor:
    user_id: str | None = None
    session_id: str | None = None
    is_admin: bool = False


def current_actor(
    x_user_id: str | None = Header(default=None),
    x_session_id: str | None = Header(default=None),
    x_admin: bool = Header(default=False),
) -> Actor:
    return Actor(user_id=x_user_id or None, session_id=x_session_id or None, is_admin=x_admin)


def signed_in(actor: Actor = Depends(current_actor)) -> Actor:
    if not actor.user_id:
        raise Forbidden("Sign in required")
    return actor


# ---------------------------------------------------------------------------
# Serializers
# ---------------------------------------------------------------------------
def _totals(summary) -> TotalsSchema:
    if summary is None:
        return TotalsSchema()
    return TotalsSchema(
        subtotal=summary.subtotal,
        discount=summary.discount,
        tax=summary.tax,
        shipping_cost=summary.shipping_cost,
        total=summary.total,
    )


def _address(address) -> AddressSchema | None:
    if address is None:
        return None
    return AddressSchema(
        full_name=address.full_name,
        phone=address.phone,
        email=address.email,
        address_line1=address.address_line1,
        address_line2=address.address_line2,
        city=address.city,
        state=address.state,
        postal_code=address.postal_code,
        country=address.country,
    )


def cart_response(cart) -> CartResponse:
    return CartResponse(
        id=str(cart.id),
        user_id=cart.user_id,
        session_id=cart.session_id,
        lines=[
            CartLineSchema(
                product_id=str(line.product_id),
                variant=line.variant,
                name=line.name,
                sku=line.sku,
                image_url=line.image_url,
                unit_price=line.unit_price,
                discount_price=line.discount_price,
                quantity=line.quantity,
                subtotal=float(line.subtotal),
            )
            for line in cart.lines
        ],
        coupon_code=cart.coupon_code,
        totals=_totals(cart.totals),
        item_count=cart.item_count,
    )


def coupon_response(coupon) -> CouponResponse:
    return CouponResponse(
        id=str(coupon.id),
        code=coupon.code,
        description=coupon.description,
        discount_type=coupon.discount_type,
        discount_value=coupon.discount_value,
        max_discount_amount=coupon.max_discount_amount,
        min_purchase_amount=coupon.min_purchase_amount or 0.0,
        usage_limit=coupon.usage_limit,
        usage_count=coupon.usage_count or 0,
        valid_from=coupon.valid_from,
        valid_until=coupon.valid_until,
        is_active=coupon.is_active,
    )


def order_response(order) -> OrderResponse:
    return OrderResponse(
        id=str(order.id),
        order_number=order.order_number,
        user_id=str(order.user_id),
        status=order.status,
        payment_method=order.payment_method,
        payment_status=order.payment_status,
        transaction_id=order.transaction_id,
        refund_transaction_id=order.refund_transaction_id,
        items=[
            OrderItemResponse(
                product_id=str(item.product_id),
                variant=item.variant,
                name=item.name,
                sku=item.sku,
                image_url=item.image_url,
                unit_price=item.unit_price,
                discount_price=item.discount_price,
                quantity=item.quantity,
                subtotal=item.subtotal,
            )
            for item in order.sorted_items
        ],
        pricing=_totals(order.pricing),
        coupon_code=order.coupon_code,
        shipping_address=_address(order.shipping_address),
        billing_address=_address(order.billing_address),
        tracking_number=order.tracking_number,
        carrier_name=order.carrier_name,
        cancellation_reason=order.cancellation_reason,
        notes=order.notes,
        history=[
            StatusEntrySchema(
                status=entry.status,
                note=entry.note,
                changed_by=entry.changed_by,
                changed_at=entry.changed_at,
            )
            for entry in order.status_history
        ],
        created_at=order.created_at,
        paid_at=order.paid_at,
        shipped_at=order.shipped_at,
        delivered_at=order.delivered_at,
        cancelled_at=order.cancelled_at,
        refunded_at=order.refunded_at,
    )


def shipment_response(shipment) -> ShipmentResponse:
    package = shipment.package
    return ShipmentResponse(
        id=str(shipment.id),
        order_id=str(shipment.order_id),
        order_number=shipment.order_number,
        carrier=shipment.carrier,
        tracking_number=shipment.tracking_number,
        status=shipment.status,
        cost=shipment.cost,
        weight=package.weight,
        dimensional_weight=package.dimensional_weight,
        billable_weight=package.billable_weight,
        declared_value=package.declared_value,
        receiver_name=shipment.receiver.full_name,
        receiver_city=shipment.receiver.city,
        tracking_history=[
            TrackingEventSchema(
                status=event.status,
                description=event.description,
                location=event.location,
                occurred_at=event.occurred_at,
            )
            for event in shipment.tracking_history
        ],
        estimated_delivery=shipment.estimated_delivery,
        actual_delivery=shipment.actual_delivery,
        created_at=shipment.created_at,
    )


def _document(document) -> HTMLResponse:
    return HTMLResponse(
        content=document["body"],
        media_type=document["content_type"],
        headers={"Content-Disposition": f'inline; filename="{document["filename"]}"'},
    )


def _package(schema) -> PackageInfo:
    return PackageInfo(
        weight=Decimal(str(schema.weight)),
        width=Decimal(str(schema.width)),
        height=Decimal(str(schema.height)),
        length=Decimal(str(schema.length)),
        declared_value=Decimal(str(schema.declared_value or 0)),
        description=schema.description,
    )


# ---------------------------------------------------------------------------
# Cart Router
# ---------------------------------------------------------------------------
cart_router = APIRouter(prefix="/cart", tags=["cart"])


def _cart(cart_id) -> CartResponse:
    return cart_response(current_domain.repository_for(Cart).get(cart_id))


@cart_router.get("", response_model=CartResponse)
async def get_cart(actor: Actor = Depends(current_actor)) -> CartResponse:
    command = GetOrCreateCart(user_id=actor.user_id, session_id=actor.session_id)
    return _cart(current_domain.process(command, asynchronous=False))


@cart_router.post("/items", response_model=CartResponse)
async def add_cart_item(body: AddCartItemRequest, actor: Actor = Depends(current_actor)) -> CartResponse:
    command = AddCartItem(
        user_id=actor.user_id,
        session_id=actor.session_id,
        product_id=body.product_id,
        variant=body.variant,
        quantity=body.quantity,
    )
    return _cart(current_domain.process(command, asynchronous=False))


@cart_router.put("/items", response_model=CartResponse)
async def update_cart_item(body: UpdateCartItemRequest, actor: Actor = Depends(current_actor)) -> CartResponse:
    command = UpdateCartItem(
        user_id=actor.user_id,
        session_id=actor.session_id,
        product_id=body.product_id,
        variant=body.variant,
        quantity=body.quantity,
    )
    return _cart(current_domain.process(command, asynchronous=False))


@cart_router.delete("/items/{product_id}", response_model=CartResponse)
async def remove_cart_item(
    product_id: str,
    variant: str | None = None,
    actor: Actor = Depends(current_actor),
) -> CartResponse:
    command = RemoveCartItem(
        user_id=actor.user_id,
        session_id=actor.session_id,
        product_id=product_id,
        variant=variant,
    )
    return _cart(current_domain.process(command, asynchronous=False))


@cart_router.delete("", response_model=CartResponse)
async def clear_cart(actor: Actor = Depends(current_actor)) -> CartResponse:
    command = ClearCart(user_id=actor.user_id, session_id=actor.session_id)
    return _cart(current_domain.process(command, asynchronous=False))


@cart_router.post("/coupon", response_model=CartResponse)
async def apply_cart_coupon(body: ApplyCouponRequest, actor: Actor = Depends(current_actor)) -> CartResponse:
    command = ApplyCartCoupon(
        user_id=actor.user_id,
        session_id=actor.session_id,
        coupon_code=body.coupon_code,
    )
    return _cart(current_domain.process(command, asynchronous=False))


@cart_router.delete("/coupon", response_model=CartResponse)
async def remove_cart_coupon(actor: Actor = Depends(current_actor)) -> CartResponse:
    command = RemoveCartCoupon(user_id=actor.user_id, session_id=actor.session_id)
    return _cart(current_domain.process(command, asynchronous=False))


@cart_router.post("/merge", response_model=CartResponse)
async def merge_session_cart(body: MergeCartRequest, actor: Actor = Depends(signed_in)) -> CartResponse:
    """Fold an anonymous session's cart into the signed-in user's cart."""
    command = MergeSessionCart(user_id=actor.user_id, session_id=body.session_id)
    return _cart(current_domain.process(command, asynchronous=False))


# ---------------------------------------------------------------------------
# Coupon Router
# ---------------------------------------------------------------------------
coupon_router = APIRouter(prefix="/coupons", tags=["coupons"])


@coupon_router.post("/validate", response_model=CouponValidationResponse)
async def validate_coupon(body: CouponValidationRequest) -> CouponValidationResponse:
    """Preview a code: raises the validation failure, or describes the discount."""
    coupon = validate_coupon_code(body.code, subtotal=body.subtotal)
    discount = None
    if body.subtotal is not None:
        discount = float(compute_discount(to_decimal(body.subtotal), coupon.terms()))
    return CouponValidationResponse(
        code=coupon.code,
        discount_type=coupon.discount_type,
        discount_value=coupon.discount_value,
        max_discount_amount=coupon.max_discount_amount,
        min_purchase_amount=coupon.min_purchase_amount or 0.0,
        discount=discount,
    )


@coupon_router.get("", response_model=list[CouponResponse])
async def get_coupons(actor: Actor = Depends(current_actor)) -> list[CouponResponse]:
    return [coupon_response(coupon) for coupon in list_coupons(actor.is_admin)]


@coupon_router.post("", status_code=201, response_model=CouponResponse)
async def create_coupon(body: CouponRequest, actor: Actor = Depends(current_actor)) -> CouponResponse:
    command = CreateCoupon(**body.model_dump(), is_admin=actor.is_admin)
    coupon_id = current_domain.process(command, asynchronous=False)
    return coupon_response(current_domain.repository_for(Coupon).get(coupon_id))


@coupon_router.put("/{coupon_id}", response_model=CouponResponse)
async def update_coupon(
    coupon_id: str,
    body: CouponUpdateRequest,
    actor: Actor = Depends(current_actor),
) -> CouponResponse:
    command = UpdateCoupon(
        coupon_id=coupon_id,
        is_admin=actor.is_admin,
        **body.model_dump(exclude_none=True),
    )
    current_domain.process(command, asynchronous=False)
    return coupon_response(current_domain.repository_for(Coupon).get(coupon_id))


@coupon_router.patch("/{coupon_id}/toggle", response_model=CouponResponse)
async def toggle_coupon(coupon_id: str, actor: Actor = Depends(current_actor)) -> CouponResponse:
    command = ToggleCoupon(coupon_id=coupon_id, is_admin=actor.is_admin)
    current_domain.process(command, asynchronous=False)
    return coupon_response(current_domain.repository_for(Coupon).get(coupon_id))


@coupon_router.delete("/{coupon_id}", response_model=StatusResponse)
async def delete_coupon(coupon_id: str, actor: Actor = Depends(current_actor)) -> StatusResponse:
    command = DeleteCoupon(coupon_id=coupon_id, is_admin=actor.is_admin)
    current_domain.process(command, asynchronous=False)
    return StatusResponse(status="coupon_deleted")


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("", status_code=201, response_model=OrderResponse)
async def place_order(body: PlaceOrderRequest, actor: Actor = Depends(signed_in)) -> OrderResponse:
    """Check out the signed-in user's cart."""
    command = PlaceOrder(
        user_id=actor.user_id,
        shipping_address=body.shipping_address.model_dump_json(),
        billing_address=body.billing_address.model_dump_json() if body.billing_address else None,
        payment_method=body.payment_method,
        notes=body.notes,
    )
    order_id = current_domain.process(command, asynchronous=False)
    return order_response(get_order(order_id, actor.user_id))


@order_router.get("", response_model=list[OrderResponse])
async def my_orders(actor: Actor = Depends(signed_in)) -> list[OrderResponse]:
    return [order_response(order) for order in list_orders_for_user(actor.user_id)]


@order_router.get("/admin/all", response_model=list[OrderResponse])
async def all_orders(status: str | None = None, actor: Actor = Depends(current_actor)) -> list[OrderResponse]:
    return [order_response(order) for order in list_orders(actor.is_admin, status=status)]


@order_router.get("/admin/stats")
async def stats(actor: Actor = Depends(current_actor)) -> dict:
    result = order_stats(actor.is_admin)
    return {**result, "total_revenue": float(result["total_revenue"])}


@order_router.get("/search", response_model=OrderPageResponse)
async def find_orders(
    status: str | None = None,
    payment_status: str | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    search: str | None = None,
    user_id: str | None = None,
    page: int = 1,
    page_size: int = 20,
    actor: Actor = Depends(current_actor),
) -> OrderPageResponse:
    """Filter and page through orders: the caller's own, or everyone's for administrators."""
    result = search_orders(
        actor.user_id,
        actor.is_admin,
        status=status,
        payment_status=payment_status,
        placed_from=start_date,
        placed_until=end_date,
        search=search,
        user_id=user_id,
        page=page,
        page_size=page_size,
    )
    return OrderPageResponse(
        orders=[order_response(order) for order in result.orders],
        total_count=result.total_count,
        page=result.page,
        page_size=result.page_size,
        total_pages=result.total_pages,
    )


@order_router.get("/number/{order_number}", response_model=OrderResponse)
async def get_order_by_number_route(order_number: str, actor: Actor = Depends(current_actor)) -> OrderResponse:
    return order_response(get_order_by_number(order_number, actor.user_id, actor.is_admin))


@order_router.get("/{order_id}", response_model=OrderResponse)
async def get_order_route(order_id: str, actor: Actor = Depends(current_actor)) -> OrderResponse:
    return order_response(get_order(order_id, actor.user_id, actor.is_admin))


@order_router.get("/{order_id}/invoice", response_class=HTMLResponse)
async def order_invoice(order_id: str, actor: Actor = Depends(current_actor)) -> HTMLResponse:
    return _document(render_invoice(get_order(order_id, actor.user_id, actor.is_admin)))


@order_router.post("/{order_id}/cancel", response_model=OrderResponse)
async def cancel_order(
    order_id: str,
    body: CancelOrderRequest,
    actor: Actor = Depends(current_actor),
) -> OrderResponse:
    command = CancelOrder(
        order_id=order_id,
        reason=body.reason,
        actor_id=actor.user_id,
        is_admin=actor.is_admin,
    )
    current_domain.process(command, asynchronous=False)
    return order_response(get_order(order_id, actor.user_id, actor.is_admin))


@order_router.put("/{order_id}/status", response_model=OrderResponse)
async def update_order_status(
    order_id: str,
    body: UpdateOrderStatusRequest,
    actor: Actor = Depends(current_actor),
) -> OrderResponse:
    command = UpdateOrderStatus(
        order_id=order_id,
        status=body.status,
        note=body.note,
        tracking_number=body.tracking_number,
        carrier_name=body.carrier_name,
        actor_id=actor.user_id,
        is_admin=actor.is_admin,
    )
    current_domain.process(command, asynchronous=False)
    return order_response(get_order(order_id, actor.user_id, actor.is_admin))


@order_router.post("/{order_id}/pay", response_model=PaymentResponse)
async def pay_order(order_id: str, actor: Actor = Depends(current_actor)) -> PaymentResponse:
    command = PayOrder(order_id=order_id, actor_id=actor.user_id, is_admin=actor.is_admin)
    result = current_domain.process(command, asynchronous=False)
    order = get_order(order_id, actor.user_id, actor.is_admin)
    return PaymentResponse(
        success=result.success,
        transaction_id=result.transaction_id,
        awaiting_confirmation=result.awaiting_confirmation,
        message=result.message,
        failure_reason=result.failure_reason,
        payment_status=order.payment_status,
    )


# ---------------------------------------------------------------------------
# Shipment Router
# ---------------------------------------------------------------------------
shipment_router = APIRouter(prefix="/shipments", tags=["shipments"])


@shipment_router.post("", status_code=201, response_model=ShipmentResponse)
async def create_shipment(body: CreateShipmentRequest, actor: Actor = Depends(current_actor)) -> ShipmentResponse:
    command = CreateShipment(
        order_id=body.order_id,
        carrier=body.carrier,
        weight=body.package.weight,
        width=body.package.width,
        height=body.package.height,
        length=body.package.length,
        declared_value=body.package.declared_value,
        description=body.package.description,
        actor_id=actor.user_id,
        is_admin=actor.is_admin,
    )
    shipment_id = current_domain.process(command, asynchronous=False)
    return shipment_response(current_domain.repository_for(CargoShipment).get(shipment_id))


@shipment_router.post("/bulk", response_model=list[BulkShipmentResult])
async def create_bulk_shipments(
    body: BulkShipmentRequest,
    actor: Actor = Depends(current_actor),
) -> list[BulkShipmentResult]:
    command = CreateBulkShipments(
        order_ids=json.dumps(body.order_ids),
        carrier=body.carrier,
        actor_id=actor.user_id,
        is_admin=actor.is_admin,
    )
    results = current_domain.process(command, asynchronous=False)
    return [BulkShipmentResult(**result) for result in results]


@shipment_router.post("/rates", response_model=list[RateQuoteSchema])
async def compare_rates(body: RateRequest) -> list[RateQuoteSchema]:
    quotes = get_rates(body.sender_city, body.receiver_city, _package(body.package), carrier=body.carrier)
    return [
        RateQuoteSchema(carrier=quote.carrier, cost=float(quote.cost), estimated_days=quote.estimated_days)
        for quote in quotes
    ]


@shipment_router.get("", response_model=list[ShipmentResponse])
async def all_shipments(
    status: str | None = None,
    carrier: str | None = None,
    actor: Actor = Depends(current_actor),
) -> list[ShipmentResponse]:
    return [shipment_response(s) for s in list_shipments(actor.is_admin, status=status, carrier=carrier)]


@shipment_router.get("/mine", response_model=list[ShipmentResponse])
async def my_shipments(actor: Actor = Depends(signed_in)) -> list[ShipmentResponse]:
    return [shipment_response(s) for s in list_shipments_for_user(actor.user_id)]


@shipment_router.get("/order/{order_id}", response_model=ShipmentResponse)
async def order_shipment(order_id: str, actor: Actor = Depends(current_actor)) -> ShipmentResponse:
    return shipment_response(get_shipment_for_order(order_id, actor.user_id, actor.is_admin))


@shipment_router.get("/order/{order_id}/label", response_class=HTMLResponse)
async def shipping_label(order_id: str, actor: Actor = Depends(current_actor)) -> HTMLResponse:
    return _document(render_shipping_label(get_shipment_for_order(order_id, actor.user_id, actor.is_admin)))


@shipment_router.post("/{tracking_number}/track", response_model=ShipmentResponse)
async def track_shipment(
    tracking_number: str,
    carrier: str | None = None,
    actor: Actor = Depends(current_actor),
) -> ShipmentResponse:
    """Poll the carrier and refresh the stored tracking history."""
    command = TrackShipment(
        tracking_number=tracking_number,
        carrier=carrier,
        actor_id=actor.user_id,
        is_admin=actor.is_admin,
    )
    current_domain.process(command, asynchronous=False)
    shipment = current_domain.repository_for(CargoShipment).by_tracking_number(tracking_number)
    return shipment_response(shipment)


@shipment_router.post("/{tracking_number}/cancel", response_model=ShipmentResponse)
async def cancel_shipment(tracking_number: str, actor: Actor = Depends(current_actor)) -> ShipmentResponse:
    command = CancelShipment(
        tracking_number=tracking_number,
        actor_id=actor.user_id,
        is_admin=actor.is_admin,
    )
    current_domain.process(command, asynchronous=False)
    shipment = current_domain.repository_for(CargoShipment).by_tracking_number(tracking_number)
    return shipment_response(shipment)
