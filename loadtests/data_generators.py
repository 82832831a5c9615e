"""Faker-based data generators for Locust load test scenarios.

Each generator produces payloads that pass the API's Pydantic request
schemas and the domain's validation rules. Product ids match the seed file
``loadtests/products.json``, which the server must be started with:

    CATALOGUE_SEED_FILE=loadtests/products.json uvicorn app:app --app-dir src
"""

import json
import random
import uuid
from datetime import UTC, datetime, timedelta
from pathlib import Path

from faker import Faker

fake = Faker("tr_TR")

SEED_FILE = Path(__file__).parent / "products.json"
PRODUCT_IDS = [product["product_id"] for product in json.loads(SEED_FILE.read_text(encoding="utf-8"))]

CARRIERS = ["ArasKargo", "MNGKargo", "YurticiKargo"]
PAYMENT_METHODS = ["CreditCard", "BankTransfer", "CashOnDelivery"]
CITIES = ["Istanbul", "Ankara", "Izmir", "Bursa", "Antalya"]


# ---------- Identity ----------


def user_id() -> str:
    return f"lt-user-{uuid.uuid4().hex[:10]}"


def session_id() -> str:
    return f"lt-sess-{uuid.uuid4().hex[:12]}"


def customer_headers(uid: str) -> dict:
    return {"X-User-Id": uid}


def admin_headers() -> dict:
    return {"X-User-Id": "lt-admin", "X-Admin": "true"}


# ---------- Cart ----------


def cart_item_data() -> dict:
    """Generate an AddCartItemRequest payload for a seeded product."""
    return {
        "product_id": random.choice(PRODUCT_IDS),
        "quantity": random.randint(1, 3),
    }


# ---------- Checkout ----------


def address_data() -> dict:
    """Generate an AddressSchema payload."""
    return {
        "full_name": fake.name()[:100],
        "phone": fake.phone_number()[:20],
        "email": fake.free_email(),
        "address_line1": fake.street_address()[:200],
        "city": random.choice(CITIES),
        "state": fake.city()[:100],
        "postal_code": fake.postcode()[:10],
        "country": "TR",
    }


def checkout_data(payment_method: str | None = None) -> dict:
    """Generate a PlaceOrderRequest payload."""
    return {
        "shipping_address": address_data(),
        "payment_method": payment_method or random.choice(PAYMENT_METHODS),
        "notes": fake.sentence() if random.random() < 0.2 else None,
    }


def cancellation_data() -> dict:
    return {"reason": random.choice(["Ordered by mistake", "Found a better price", "Delivery too slow"])}


# ---------- Coupons ----------


def coupon_data() -> dict:
    """Generate a CouponRequest payload with a unique code."""
    now = datetime.now(UTC)
    percentage = random.random() < 0.5
    return {
        "code": f"LT{uuid.uuid4().hex[:8].upper()}",
        "description": fake.sentence()[:200],
        "discount_type": "Percentage" if percentage else "FixedAmount",
        "discount_value": float(random.choice([5, 10, 15, 20])),
        "max_discount_amount": 100.0 if percentage else None,
        "min_purchase_amount": float(random.choice([0, 0, 50, 200])),
        "usage_limit": random.choice([None, 1000, 5000]),
        "valid_from": (now - timedelta(days=1)).isoformat(),
        "valid_until": (now + timedelta(days=30)).isoformat(),
    }


# ---------- Shipments ----------


def package_data() -> dict:
    """Generate a PackageSchema payload."""
    return {
        "weight": round(random.uniform(0.2, 15.0), 2),
        "width": float(random.randint(10, 60)),
        "height": float(random.randint(5, 40)),
        "length": float(random.randint(10, 80)),
    }


def shipment_data(order_id: str) -> dict:
    """Generate a CreateShipmentRequest payload."""
    return {
        "order_id": order_id,
        "carrier": random.choice(CARRIERS),
        "package": package_data(),
    }


def rate_request_data() -> dict:
    """Generate a RateRequest payload."""
    return {
        "sender_city": "Istanbul",
        "receiver_city": random.choice(CITIES),
        "package": package_data(),
    }
