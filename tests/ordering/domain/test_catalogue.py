"""Tests for the in-memory catalogue adapter and its factory."""

import json
import threading
from decimal import Decimal

from ordering.catalogue import get_catalogue, reset_catalogue
from ordering.catalogue.memory_adapter import InMemoryCatalogue


class TestInMemoryCatalogue:
    def test_decrement_is_conditional(self):
        catalogue = InMemoryCatalogue()
        catalogue.add_product("prod-1", "Lamp", "49.90", stock=2)

        assert catalogue.decrement_stock("prod-1", 3) is False
        assert catalogue.decrement_stock("prod-1", 2) is True
        assert catalogue.stock_of("prod-1") == 0

    def test_inactive_product_is_unavailable(self):
        catalogue = InMemoryCatalogue()
        catalogue.add_product("prod-1", "Lamp", "49.90", stock=5, is_active=False)
        assert catalogue.check_availability("prod-1", 1) is False

    def test_concurrent_decrements_never_oversell(self):
        catalogue = InMemoryCatalogue()
        catalogue.add_product("prod-1", "Lamp", "49.90", stock=5)
        outcomes = []

        def buy():
            outcomes.append(catalogue.decrement_stock("prod-1", 1))

        threads = [threading.Thread(target=buy) for _ in range(20)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert outcomes.count(True) == 5
        assert catalogue.stock_of("prod-1") == 0


class TestSeedFile:
    def test_load_seed(self, tmp_path):
        seed = tmp_path / "products.json"
        seed.write_text(
            json.dumps(
                [
                    {"product_id": "prod-1", "name": "Lamp", "price": "49.90", "stock": 3},
                    {"product_id": "prod-2", "name": "Desk", "price": "250", "stock": 1, "discount_price": "199.90"},
                ]
            )
        )
        catalogue = InMemoryCatalogue()

        assert catalogue.load_seed(seed) == 2
        assert catalogue.get_product("prod-2").discount_price == Decimal("199.90")

    def test_factory_reads_seed_from_environment(self, tmp_path, monkeypatch):
        seed = tmp_path / "products.json"
        seed.write_text(json.dumps([{"product_id": "prod-1", "name": "Lamp", "price": "49.90", "stock": 3}]))
        monkeypatch.setenv("CATALOGUE_SEED_FILE", str(seed))
        reset_catalogue()

        assert get_catalogue().stock_of("prod-1") == 3
