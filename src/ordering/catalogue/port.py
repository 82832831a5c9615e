"""Catalogue port — the product and stock collaborator used by carts and orders.

The ordering domain never owns product data. It reads a snapshot of a
product when a line is added to a cart and mutates stock only through the
atomic operations below.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class ProductSnapshot:
    """Product fields copied onto cart and order lines at the time of action."""

    product_id: str
    name: str
    price: Decimal
    stock: int
    sku: str | None = None
    discount_price: Decimal | None = None
    image_url: str | None = None
    is_active: bool = True


class CataloguePort(ABC):
    """Abstract interface for catalogue adapters."""

    @abstractmethod
    def get_product(self, product_id: str) -> ProductSnapshot | None:
        """Return the current product state, or None when it does not exist."""
        ...

    @abstractmethod
    def check_availability(self, product_id: str, quantity: int) -> bool:
        """True when the product is active and has at least ``quantity`` in stock."""
        ...

    @abstractmethod
    def decrement_stock(self, product_id: str, quantity: int) -> bool:
        """Atomically take ``quantity`` units out of stock.

        Returns False, leaving stock untouched, when fewer than ``quantity``
        units remain.
        """
        ...

    @abstractmethod
    def increment_stock(self, product_id: str, quantity: int) -> None:
        """Atomically put ``quantity`` units back into stock."""
        ...
