"""In-memory catalogue adapter for development and testing.

Stock changes happen under a single lock, so a conditional decrement can
never oversell even when several checkouts race for the last units.
"""

import json
import threading
from dataclasses import replace
from decimal import Decimal

from ordering.catalogue.port import CataloguePort, ProductSnapshot


class InMemoryCatalogue(CataloguePort):
    def __init__(self):
        self._products: dict[str, ProductSnapshot] = {}
        self._lock = threading.RLock()

    def add_product(
        self,
        product_id: str,
        name: str,
        price,
        stock: int = 0,
        sku: str | None = None,
        discount_price=None,
        image_url: str | None = None,
        is_active: bool = True,
    ) -> ProductSnapshot:
        """Register (or replace) a product."""
        product = ProductSnapshot(
            product_id=str(product_id),
            name=name,
            price=Decimal(str(price)),
            stock=stock,
            sku=sku,
            discount_price=Decimal(str(discount_price)) if discount_price is not None else None,
            image_url=image_url,
            is_active=is_active,
        )
        with self._lock:
            self._products[product.product_id] = product
        return product

    def get_product(self, product_id: str) -> ProductSnapshot | None:
        with self._lock:
            return self._products.get(str(product_id))

    def check_availability(self, product_id: str, quantity: int) -> bool:
        product = self.get_product(product_id)
        return product is not None and product.is_active and product.stock >= quantity

    def decrement_stock(self, product_id: str, quantity: int) -> bool:
        with self._lock:
            product = self._products.get(str(product_id))
            if product is None or product.stock < quantity:
                return False
            self._products[product.product_id] = replace(product, stock=product.stock - quantity)
            return True

    def increment_stock(self, product_id: str, quantity: int) -> None:
        with self._lock:
            product = self._products.get(str(product_id))
            if product is None:
                raise KeyError(f"Unknown product: {product_id}")
            self._products[product.product_id] = replace(product, stock=product.stock + quantity)

    def stock_of(self, product_id: str) -> int:
        product = self.get_product(product_id)
        return product.stock if product else 0

    def load_seed(self, path) -> int:
        """Add every product listed in a JSON file; returns how many were loaded.

        The file holds a list of objects with the same keys as ``add_product``.
        """
        with open(path, encoding="utf-8") as handle:
            products = json.load(handle)
        for product in products:
            self.add_product(**product)
        return len(products)
