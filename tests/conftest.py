"""Shared fixtures for catalog tests."""

from typing import Any

import pytest
import pytest_asyncio

from catalog_core.application import MigrationService
from catalog_core.domain import CompositionItem, Product, ProductVariationItem, Variation
from catalog_core.infrastructure import InMemoryKeyValueStore, Settings
from catalog_core.repositories import (
    CompositionItemRepository,
    ProductRepository,
    ProductVariationItemRepository,
    VariationRepository,
    VariationTypeRepository,
)


class FailingStore(InMemoryKeyValueStore):
    """In-memory store whose writes can be made to fail on demand."""

    def __init__(self) -> None:
        super().__init__()
        self.fail_after: int | None = None
        self.writes = 0

    async def set(self, key: str, value: str) -> None:
        if self.fail_after is not None and self.writes >= self.fail_after:
            raise OSError("disk full")
        self.writes += 1
        await super().set(key, value)

    def fail_from_now(self, allowed_writes: int = 0) -> None:
        """Fail every write after the next `allowed_writes` writes."""
        self.fail_after = self.writes + allowed_writes


@pytest.fixture
def settings() -> Settings:
    """Create settings with a test storage prefix."""
    return Settings(storage_prefix="test:")


@pytest.fixture
def store() -> FailingStore:
    """Create an empty store."""
    return FailingStore()


@pytest.fixture
def products(store: FailingStore, settings: Settings) -> ProductRepository:
    return ProductRepository(store, settings)


@pytest.fixture
def variation_types(store: FailingStore, settings: Settings) -> VariationTypeRepository:
    return VariationTypeRepository(store, settings)


@pytest.fixture
def variations(store: FailingStore, settings: Settings) -> VariationRepository:
    return VariationRepository(store, settings)


@pytest.fixture
def variation_items(store: FailingStore, settings: Settings) -> ProductVariationItemRepository:
    return ProductVariationItemRepository(store, settings)


@pytest.fixture
def compositions(store: FailingStore, settings: Settings) -> CompositionItemRepository:
    return CompositionItemRepository(store, settings)


@pytest.fixture
def migration_service(store: FailingStore, settings: Settings) -> MigrationService:
    return MigrationService.for_store(store, settings)


# ============================================================================
# Builders
# ============================================================================


async def add_product(
    products: ProductRepository,
    sku: str,
    *,
    weight: float | None = None,
    **flags: Any,
) -> Product:
    """Create a product named after its SKU."""
    data: dict[str, Any] = {"sku": sku, "name": f"Product {sku}", **flags}
    if weight is not None:
        data["weight"] = weight
    return await products.create(data)


async def add_item(
    compositions: CompositionItemRepository,
    parent_sku: str,
    child_sku: str,
    quantity: int = 1,
) -> CompositionItem:
    return await compositions.create(
        {"parent_sku": parent_sku, "child_sku": child_sku, "quantity": quantity}
    )


async def add_variation(
    variation_types: VariationTypeRepository,
    variations: VariationRepository,
    type_name: str,
    name: str,
) -> Variation:
    """Create a variation, creating its type when missing."""
    variation_type = await variation_types.find_by_name(type_name)
    if variation_type is None:
        variation_type = await variation_types.create({"name": type_name})
    return await variations.create({"variation_type_id": variation_type.id, "name": name})


async def add_variation_item(
    variation_items: ProductVariationItemRepository,
    product_sku: str,
    variation: Variation,
    name: str | None = None,
) -> ProductVariationItem:
    return await variation_items.create(
        {
            "product_sku": product_sku,
            "selections": {variation.variation_type_id: variation.id},
            "name": name,
        }
    )


@pytest_asyncio.fixture
async def composite_parent(
    products: ProductRepository,
    compositions: CompositionItemRepository,
) -> Product:
    """Create PARENT-001 composed of 2 x CHILD-001 and 3 x CHILD-002."""
    await add_product(products, "CHILD-001", weight=100)
    await add_product(products, "CHILD-002", weight=250)
    parent = await add_product(products, "PARENT-001", is_composite=True)
    await add_item(compositions, "PARENT-001", "CHILD-001", 2)
    await add_item(compositions, "PARENT-001", "CHILD-002", 3)
    return parent
