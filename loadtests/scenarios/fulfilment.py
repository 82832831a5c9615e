"""Administrator load test scenarios.

A fulfilment journey that confirms pending orders, books shipments with the
simulated carriers, and polls tracking, plus a coupon administration
journey. Carrier calls go through the dispatcher's time limit, so this
scenario is the one that exercises the carrier thread pool.
"""

import random

from locust import HttpUser, SequentialTaskSet, between, task

from loadtests.data_generators import (
    CARRIERS,
    admin_headers,
    cart_item_data,
    checkout_data,
    coupon_data,
    customer_headers,
    rate_request_data,
    shipment_data,
    user_id,
)
from loadtests.helpers.response import extract_error_detail
from loadtests.helpers.state import FulfilmentState


class FulfilmentJourney(SequentialTaskSet):
    """Seed Orders -> Confirm -> Compare Rates -> Ship One -> Bulk Ship Rest -> Track.

    Generates the full Pending -> Confirmed -> Shipped (-> Delivered) path.
    """

    def on_start(self):
        self.state = FulfilmentState()

    @task
    def seed_orders(self):
        for _ in range(3):
            headers = customer_headers(user_id())
            self.client.post("/cart/items", json=cart_item_data(), headers=headers, name="POST /cart/items")
            with self.client.post(
                "/orders",
                json=checkout_data(),
                headers=headers,
                catch_response=True,
                name="POST /orders",
            ) as resp:
                if resp.status_code == 201:
                    self.state.order_ids.append(resp.json()["id"])
                else:
                    resp.failure(f"Seed order failed: {resp.status_code} - {extract_error_detail(resp)}")
        if not self.state.order_ids:
            self.interrupt()

    @task
    def confirm(self):
        for order_id in self.state.order_ids:
            with self.client.put(
                f"/orders/{order_id}/status",
                json={"status": "Confirmed", "note": "Load test confirmation"},
                headers=admin_headers(),
                catch_response=True,
                name="PUT /orders/{id}/status",
            ) as resp:
                if resp.status_code != 200:
                    resp.failure(f"Confirm failed: {resp.status_code} - {extract_error_detail(resp)}")

    @task
    def compare_rates(self):
        with self.client.post(
            "/shipments/rates",
            json=rate_request_data(),
            catch_response=True,
            name="POST /shipments/rates",
        ) as resp:
            if resp.status_code != 200 or not resp.json():
                resp.failure(f"Rates failed: {resp.status_code} - {extract_error_detail(resp)}")

    @task
    def ship_first(self):
        with self.client.post(
            "/shipments",
            json=shipment_data(self.state.order_ids[0]),
            headers=admin_headers(),
            catch_response=True,
            name="POST /shipments",
        ) as resp:
            if resp.status_code == 201:
                self.state.tracking_numbers.append(resp.json()["tracking_number"])
            else:
                resp.failure(f"Create shipment failed: {resp.status_code} - {extract_error_detail(resp)}")

    @task
    def bulk_ship_rest(self):
        remaining = self.state.order_ids[1:]
        if not remaining:
            return
        with self.client.post(
            "/shipments/bulk",
            json={"order_ids": remaining, "carrier": random.choice(CARRIERS)},
            headers=admin_headers(),
            catch_response=True,
            name="POST /shipments/bulk",
        ) as resp:
            if resp.status_code != 200:
                resp.failure(f"Bulk shipment failed: {resp.status_code} - {extract_error_detail(resp)}")
                return
            for result in resp.json():
                if result["success"]:
                    self.state.tracking_numbers.append(result["tracking_number"])

    @task
    def track(self):
        for tracking_number in self.state.tracking_numbers:
            with self.client.post(
                f"/shipments/{tracking_number}/track",
                headers=admin_headers(),
                catch_response=True,
                name="POST /shipments/{tracking}/track",
            ) as resp:
                if resp.status_code != 200:
                    resp.failure(f"Track failed: {resp.status_code} - {extract_error_detail(resp)}")

    @task
    def done(self):
        self.interrupt()


class CouponAdminJourney(SequentialTaskSet):
    """Create Coupon -> Validate -> Toggle Off -> Delete."""

    def on_start(self):
        self.state = FulfilmentState()
        self.payload = coupon_data()

    @task
    def create(self):
        with self.client.post(
            "/coupons",
            json=self.payload,
            headers=admin_headers(),
            catch_response=True,
            name="POST /coupons",
        ) as resp:
            if resp.status_code == 201:
                self.state.coupon_id = resp.json()["id"]
            else:
                resp.failure(f"Create coupon failed: {resp.status_code} - {extract_error_detail(resp)}")
                self.interrupt()

    @task
    def validate(self):
        with self.client.post(
            "/coupons/validate",
            json={"code": self.payload["code"], "subtotal": 500.0},
            catch_response=True,
            name="POST /coupons/validate",
        ) as resp:
            if resp.status_code != 200:
                resp.failure(f"Validate coupon failed: {resp.status_code} - {extract_error_detail(resp)}")

    @task
    def toggle(self):
        with self.client.patch(
            f"/coupons/{self.state.coupon_id}/toggle",
            headers=admin_headers(),
            catch_response=True,
            name="PATCH /coupons/{id}/toggle",
        ) as resp:
            if resp.status_code != 200:
                resp.failure(f"Toggle coupon failed: {resp.status_code} - {extract_error_detail(resp)}")

    @task
    def delete(self):
        with self.client.delete(
            f"/coupons/{self.state.coupon_id}",
            headers=admin_headers(),
            catch_response=True,
            name="DELETE /coupons/{id}",
        ) as resp:
            if resp.status_code != 200:
                resp.failure(f"Delete coupon failed: {resp.status_code} - {extract_error_detail(resp)}")

    @task
    def done(self):
        self.interrupt()


class AdminUser(HttpUser):
    """Back-office traffic: fulfilment and coupon upkeep."""

    wait_time = between(1.0, 3.0)
    tasks = {
        FulfilmentJourney: 4,
        CouponAdminJourney: 1,
    }
