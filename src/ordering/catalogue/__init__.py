"""Catalogue adapter factory.

Provides get_catalogue() / set_catalogue() / reset_catalogue() to swap the
product collaborator. The adapter is chosen by the CATALOGUE_ADAPTER
environment variable and defaults to the in-memory catalogue. When
CATALOGUE_SEED_FILE points at a JSON product list, the in-memory catalogue
starts out holding those products.
"""

import os

from ordering.catalogue.port import CataloguePort

_catalogue_instance: CataloguePort | None = None


def get_catalogue() -> CataloguePort:
    """Return the configured catalogue adapter (singleton)."""
    global _catalogue_instance
    if _catalogue_instance is None:
        adapter = os.environ.get("CATALOGUE_ADAPTER", "memory")
        if adapter == "memory":
            from ordering.catalogue.memory_adapter import InMemoryCatalogue

            _catalogue_instance = InMemoryCatalogue()
            seed_file = os.environ.get("CATALOGUE_SEED_FILE")
            if seed_file:
                _catalogue_instance.load_seed(seed_file)
        else:
            raise ValueError(f"Unknown catalogue adapter: {adapter}")
    return _catalogue_instance


def set_catalogue(catalogue: CataloguePort) -> None:
    """Override the active catalogue adapter (useful for tests)."""
    global _catalogue_instance
    _catalogue_instance = catalogue


def reset_catalogue() -> None:
    """Reset the catalogue singleton (useful for testing)."""
    global _catalogue_instance
    _catalogue_instance = None
