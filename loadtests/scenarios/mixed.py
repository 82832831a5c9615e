"""Mixed storefront workload scenario.

Combines the shopper and back-office journeys with weights that model a
typical storefront day. This is the recommended scenario for baseline
load testing.
"""

from locust import HttpUser, between

from loadtests.scenarios.fulfilment import CouponAdminJourney, FulfilmentJourney
from loadtests.scenarios.shopping import CancellationJourney, CartBrowsingJourney, CheckoutJourney


class MixedWorkloadUser(HttpUser):
    """Realistic mixed workload simulating concurrent storefront activity.

    Shoppers (85%):
    - Cart browsing and abandonment: most common
    - Checkout and payment: the conversion path
    - Cancellation: the unhappy path

    Back office (15%):
    - Fulfilment: confirm, ship and track
    - Coupon administration: occasional

    Checkouts and cancellations race on the same seeded products, which
    exercises the catalogue's conditional stock decrement under load.
    """

    wait_time = between(0.5, 3.0)
    tasks = {
        CartBrowsingJourney: 8,
        CheckoutJourney: 7,
        CancellationJourney: 2,
        FulfilmentJourney: 2,
        CouponAdminJourney: 1,
    }
