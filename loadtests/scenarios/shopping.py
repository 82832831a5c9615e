"""Shopper load test scenarios.

Three stateful SequentialTaskSet journeys: an anonymous visitor who browses
and signs in, a customer who checks out and pays, and a customer who
checks out and then cancels.
"""

from locust import HttpUser, SequentialTaskSet, between, task

from loadtests.data_generators import (
    cancellation_data,
    cart_item_data,
    checkout_data,
    customer_headers,
    session_id,
    user_id,
)
from loadtests.helpers.response import extract_error_detail
from loadtests.helpers.state import ShopperState


class _ShopperJourney(SequentialTaskSet):
    def on_start(self):
        self.state = ShopperState(user_id=user_id())

    @property
    def headers(self):
        return customer_headers(self.state.user_id)

    def add_item(self, headers=None, label="Add cart item"):
        with self.client.post(
            "/cart/items",
            json=cart_item_data(),
            headers=headers or self.headers,
            catch_response=True,
            name="POST /cart/items",
        ) as resp:
            if resp.status_code == 200:
                self.state.line_count = len(resp.json()["lines"])
            else:
                resp.failure(f"{label} failed: {resp.status_code} - {extract_error_detail(resp)}")

    def checkout(self, payment_method=None):
        with self.client.post(
            "/orders",
            json=checkout_data(payment_method),
            headers=self.headers,
            catch_response=True,
            name="POST /orders",
        ) as resp:
            if resp.status_code == 201:
                body = resp.json()
                self.state.order_id = body["id"]
                self.state.order_number = body["order_number"]
                self.state.current_status = body["status"]
            else:
                resp.failure(f"Checkout failed: {resp.status_code} - {extract_error_detail(resp)}")
                self.interrupt()


class CartBrowsingJourney(_ShopperJourney):
    """Anonymous Cart -> Add Items -> Sign In -> Merge -> Update -> Clear.

    Models a visitor who fills a session cart, signs in, and then
    empties the cart without buying.
    """

    def on_start(self):
        super().on_start()
        self.state.session_id = session_id()

    @task
    def add_anonymous_item_1(self):
        self.add_item(headers={"X-Session-Id": self.state.session_id}, label="Anonymous add 1")

    @task
    def add_anonymous_item_2(self):
        self.add_item(headers={"X-Session-Id": self.state.session_id}, label="Anonymous add 2")

    @task
    def merge_on_sign_in(self):
        with self.client.post(
            "/cart/merge",
            json={"session_id": self.state.session_id},
            headers=self.headers,
            catch_response=True,
            name="POST /cart/merge",
        ) as resp:
            if resp.status_code == 200:
                lines = resp.json()["lines"]
                self.state.line_count = len(lines)
                self.merged_product = lines[0]["product_id"] if lines else None
            else:
                resp.failure(f"Merge cart failed: {resp.status_code} - {extract_error_detail(resp)}")
                self.interrupt()

    @task
    def update_quantity(self):
        if not getattr(self, "merged_product", None):
            return
        with self.client.put(
            "/cart/items",
            json={"product_id": self.merged_product, "quantity": 1},
            headers=self.headers,
            catch_response=True,
            name="PUT /cart/items",
        ) as resp:
            if resp.status_code != 200:
                resp.failure(f"Update quantity failed: {resp.status_code} - {extract_error_detail(resp)}")

    @task
    def clear(self):
        with self.client.delete("/cart", headers=self.headers, catch_response=True, name="DELETE /cart") as resp:
            if resp.status_code != 200:
                resp.failure(f"Clear cart failed: {resp.status_code} - {extract_error_detail(resp)}")

    @task
    def done(self):
        self.interrupt()


class CheckoutJourney(_ShopperJourney):
    """Add Items -> View Cart -> Checkout -> Pay -> View Order.

    The happy path from an empty cart to a paid order.
    """

    @task
    def add_item_1(self):
        self.add_item(label="Add cart item 1")

    @task
    def add_item_2(self):
        self.add_item(label="Add cart item 2")

    @task
    def view_cart(self):
        with self.client.get("/cart", headers=self.headers, catch_response=True, name="GET /cart") as resp:
            if resp.status_code != 200:
                resp.failure(f"View cart failed: {resp.status_code} - {extract_error_detail(resp)}")

    @task
    def place_order(self):
        self.checkout(payment_method="CreditCard")

    @task
    def pay(self):
        with self.client.post(
            f"/orders/{self.state.order_id}/pay",
            headers=self.headers,
            catch_response=True,
            name="POST /orders/{id}/pay",
        ) as resp:
            if resp.status_code != 200:
                resp.failure(f"Payment failed: {resp.status_code} - {extract_error_detail(resp)}")

    @task
    def view_order(self):
        with self.client.get(
            f"/orders/{self.state.order_id}",
            headers=self.headers,
            catch_response=True,
            name="GET /orders/{id}",
        ) as resp:
            if resp.status_code != 200:
                resp.failure(f"View order failed: {resp.status_code} - {extract_error_detail(resp)}")

    @task
    def done(self):
        self.interrupt()


class CancellationJourney(_ShopperJourney):
    """Add Item -> Checkout -> Cancel -> List Orders.

    The unhappy path: the order is cancelled while still pending and its
    stock goes back to the catalogue.
    """

    @task
    def add_item_1(self):
        self.add_item()

    @task
    def place_order(self):
        self.checkout(payment_method="CashOnDelivery")

    @task
    def cancel(self):
        with self.client.post(
            f"/orders/{self.state.order_id}/cancel",
            json=cancellation_data(),
            headers=self.headers,
            catch_response=True,
            name="POST /orders/{id}/cancel",
        ) as resp:
            if resp.status_code == 200:
                self.state.current_status = resp.json()["status"]
            else:
                resp.failure(f"Cancel order failed: {resp.status_code} - {extract_error_detail(resp)}")

    @task
    def list_orders(self):
        with self.client.get("/orders", headers=self.headers, catch_response=True, name="GET /orders") as resp:
            if resp.status_code != 200:
                resp.failure(f"List orders failed: {resp.status_code} - {extract_error_detail(resp)}")

    @task
    def done(self):
        self.interrupt()


class ShopperUser(HttpUser):
    """Customer-only traffic: browsing, buying and cancelling."""

    wait_time = between(0.5, 2.0)
    tasks = {
        CartBrowsingJourney: 4,
        CheckoutJourney: 5,
        CancellationJourney: 1,
    }
