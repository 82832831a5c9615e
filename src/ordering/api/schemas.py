"""Pydantic request/response schemas for the Ordering API.

These are external contracts (anti-corruption layer), separate from
internal Protean commands.
"""

from datetime import datetime

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class AddressSchema(BaseModel):
    full_name: str
    phone: str | None = None
    email: str | None = None
    address_line1: str
    address_line2: str | None = None
    city: str
    state: str | None = None
    postal_code: str | None = None
    country: str | None = None


class TotalsSchema(BaseModel):
    subtotal: float = 0.0
    discount: float = 0.0
    tax: float = 0.0
    shipping_cost: float = 0.0
    total: float = 0.0


class StatusResponse(BaseModel):
    status: str = "ok"


# ---------------------------------------------------------------------------
# Cart
# ---------------------------------------------------------------------------
class AddCartItemRequest(BaseModel):
    product_id: str
    variant: str | None = None
    quantity: int = 1


class UpdateCartItemRequest(BaseModel):
    product_id: str
    variant: str | None = None
    quantity: int


class ApplyCouponRequest(BaseModel):
    coupon_code: str


class MergeCartRequest(BaseModel):
    session_id: str


class CartLineSchema(BaseModel):
    product_id: str
    variant: str | None = None
    name: str
    sku: str | None = None
    image_url: str | None = None
    unit_price: float
    discount_price: float | None = None
    quantity: int
    subtotal: float


class CartResponse(BaseModel):
    id: str
    user_id: str | None = None
    session_id: str | None = None
    lines: list[CartLineSchema]
    coupon_code: str | None = None
    totals: TotalsSchema
    item_count: int


# ---------------------------------------------------------------------------
# Coupons
# ---------------------------------------------------------------------------
class CouponRequest(BaseModel):
    code: str
    description: str | None = None
    discount_type: str = Field(pattern="^(Percentage|FixedAmount)$")
    discount_value: float = Field(ge=0)
    max_discount_amount: float | None = Field(default=None, ge=0)
    min_purchase_amount: float = Field(default=0.0, ge=0)
    usage_limit: int | None = Field(default=None, ge=0)
    valid_from: datetime
    valid_until: datetime
    is_active: bool = True

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "code": "SAVE10",
                    "discount_type": "FixedAmount",
                    "discount_value": 10,
                    "valid_from": "2026-01-01T00:00:00Z",
                    "valid_until": "2026-12-31T23:59:59Z",
                }
            ]
        }
    }


class CouponUpdateRequest(BaseModel):
    description: str | None = None
    discount_type: str | None = Field(default=None, pattern="^(Percentage|FixedAmount)$")
    discount_value: float | None = Field(default=None, ge=0)
    max_discount_amount: float | None = Field(default=None, ge=0)
    min_purchase_amount: float | None = Field(default=None, ge=0)
    usage_limit: int | None = Field(default=None, ge=0)
    valid_from: datetime | None = None
    valid_until: datetime | None = None
    is_active: bool | None = None


class CouponValidationRequest(BaseModel):
    code: str
    subtotal: float | None = None


class CouponValidationResponse(BaseModel):
    valid: bool = True
    code: str
    discount_type: str
    discount_value: float
    max_discount_amount: float | None = None
    min_purchase_amount: float = 0.0
    discount: float | None = None


class CouponResponse(BaseModel):
    id: str
    code: str
    description: str | None = None
    discount_type: str
    discount_value: float
    max_discount_amount: float | None = None
    min_purchase_amount: float = 0.0
    usage_limit: int | None = None
    usage_count: int = 0
    valid_from: datetime
    valid_until: datetime
    is_active: bool


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------
class PlaceOrderRequest(BaseModel):
    shipping_address: AddressSchema
    billing_address: AddressSchema | None = None
    payment_method: str = Field(pattern="^(CreditCard|BankTransfer|CashOnDelivery)$")
    notes: str | None = None


class CancelOrderRequest(BaseModel):
    reason: str = Field(min_length=1, max_length=500)


class UpdateOrderStatusRequest(BaseModel):
    status: str
    note: str | None = None
    tracking_number: str | None = None
    carrier_name: str | None = None


class OrderItemResponse(BaseModel):
    product_id: str
    variant: str | None = None
    name: str
    sku: str | None = None
    image_url: str | None = None
    unit_price: float
    discount_price: float | None = None
    quantity: int
    subtotal: float


class StatusEntrySchema(BaseModel):
    status: str
    note: str | None = None
    changed_by: str | None = None
    changed_at: datetime


class OrderResponse(BaseModel):
    id: str
    order_number: str
    user_id: str
    status: str
    payment_method: str
    payment_status: str
    transaction_id: str | None = None
    refund_transaction_id: str | None = None
    items: list[OrderItemResponse]
    pricing: TotalsSchema
    coupon_code: str | None = None
    shipping_address: AddressSchema
    billing_address: AddressSchema | None = None
    tracking_number: str | None = None
    carrier_name: str | None = None
    cancellation_reason: str | None = None
    notes: str | None = None
    history: list[StatusEntrySchema]
    created_at: datetime | None = None
    paid_at: datetime | None = None
    shipped_at: datetime | None = None
    delivered_at: datetime | None = None
    cancelled_at: datetime | None = None
    refunded_at: datetime | None = None


class OrderPageResponse(BaseModel):
    orders: list[OrderResponse]
    total_count: int
    page: int
    page_size: int
    total_pages: int


class PaymentResponse(BaseModel):
    success: bool
    transaction_id: str | None = None
    awaiting_confirmation: bool = False
    message: str | None = None
    failure_reason: str | None = None
    payment_status: str


# ---------------------------------------------------------------------------
# Shipments
# ---------------------------------------------------------------------------
class PackageSchema(BaseModel):
    weight: float = Field(gt=0)
    width: float = Field(gt=0)
    height: float = Field(gt=0)
    length: float = Field(gt=0)
    declared_value: float | None = Field(default=None, ge=0)
    description: str | None = None


class CreateShipmentRequest(BaseModel):
    order_id: str
    carrier: str
    package: PackageSchema

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "order_id": "ord-001",
                    "carrier": "ArasKargo",
                    "package": {"weight": 2.5, "width": 30, "height": 20, "length": 40},
                }
            ]
        }
    }


class BulkShipmentRequest(BaseModel):
    order_ids: list[str] = Field(min_length=1)
    carrier: str


class BulkShipmentResult(BaseModel):
    order_id: str
    success: bool
    shipment_id: str | None = None
    tracking_number: str | None = None
    error: str | None = None


class RateRequest(BaseModel):
    sender_city: str
    receiver_city: str
    package: PackageSchema
    carrier: str | None = None


class RateQuoteSchema(BaseModel):
    carrier: str
    cost: float
    estimated_days: int | None = None


class TrackingEventSchema(BaseModel):
    status: str
    description: str | None = None
    location: str | None = None
    occurred_at: datetime


class ShipmentResponse(BaseModel):
    id: str
    order_id: str
    order_number: str | None = None
    carrier: str
    tracking_number: str
    status: str
    cost: float
    weight: float
    dimensional_weight: float
    billable_weight: float
    declared_value: float
    receiver_name: str
    receiver_city: str
    tracking_history: list[TrackingEventSchema]
    estimated_delivery: datetime | None = None
    actual_delivery: datetime | None = None
    created_at: datetime | None = None
