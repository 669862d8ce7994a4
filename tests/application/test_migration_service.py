"""Tests for the migration service."""

import pytest

from catalog_core.application import MigrationProgress, MigrationService
from catalog_core.repositories import (
    CompositionItemRepository,
    ProductRepository,
    ProductVariationItemRepository,
    VariationRepository,
    VariationTypeRepository,
)
from tests.conftest import (
    FailingStore,
    add_item,
    add_product,
    add_variation,
    add_variation_item,
)


async def make_variable_kit(
    products: ProductRepository,
    variation_types: VariationTypeRepository,
    variations: VariationRepository,
    variation_items: ProductVariationItemRepository,
    compositions: CompositionItemRepository,
) -> tuple[str, str]:
    """Create KIT-1 with two variations: 2 items and 1 item.

    Returns:
        Composition keys of the first and second variation.
    """
    await add_product(products, "PART-A")
    await add_product(products, "PART-B")
    await add_product(products, "KIT-1", is_composite=True, has_variation=True)
    small = await add_variation(variation_types, variations, "Size", "Small")
    large = await add_variation(variation_types, variations, "Size", "Large")
    first = await add_variation_item(variation_items, "KIT-1", small)
    second = await add_variation_item(variation_items, "KIT-1", large)
    await add_item(compositions, first.composition_key(), "PART-A", 1)
    await add_item(compositions, first.composition_key(), "PART-B", 2)
    await add_item(compositions, second.composition_key(), "PART-A", 4)
    return first.composition_key(), second.composition_key()


class TestMigrateCompositeToVariations:
    """Tests for turning a composition into the first variation."""

    @pytest.mark.asyncio
    async def test_items_move_to_first_variation(
        self,
        composite_parent,
        migration_service: MigrationService,
        variation_items: ProductVariationItemRepository,
        compositions: CompositionItemRepository,
    ) -> None:
        """Existing items move under the new variation, keeping identity."""
        before = {item.id: item for item in await compositions.find_by_parent("PARENT-001")}

        result = await migration_service.migrate_composite_to_variations("PARENT-001")

        assert result.success
        assert result.migrated_items_count == 2
        assert result.errors == []
        assert result.operation_id.startswith("mig_")
        created = await variation_items.find_by_product("PARENT-001")
        assert [item.id for item in created] == [result.created_variation_id]
        assert created[0].name == "Variation 1"

        key = f"PARENT-001#{result.created_variation_id}"
        moved = await compositions.find_by_parent(key)
        assert {item.id for item in moved} == set(before)
        assert {item.id: item.quantity for item in moved} == {
            item_id: item.quantity for item_id, item in before.items()
        }
        assert await compositions.find_by_parent("PARENT-001") == []

    @pytest.mark.asyncio
    async def test_sentinel_variation_created_once(
        self,
        composite_parent,
        products: ProductRepository,
        migration_service: MigrationService,
        variation_types: VariationTypeRepository,
        variations: VariationRepository,
    ) -> None:
        """The sentinel type and variation are reused across products."""
        await add_product(products, "OTHER-KIT", is_composite=True)

        await migration_service.migrate_composite_to_variations("PARENT-001")
        await migration_service.migrate_composite_to_variations("OTHER-KIT")

        sentinel = await variation_types.find_by_name("Composite Variation")
        assert sentinel is not None
        assert await variation_types.count() == 1
        assert [v.name for v in await variations.find_by_variation_type(sentinel.id)] == [
            "Variation 1"
        ]

    @pytest.mark.asyncio
    async def test_empty_composition(
        self,
        products: ProductRepository,
        migration_service: MigrationService,
    ) -> None:
        """A composite without items still gets its first variation."""
        await add_product(products, "KIT-1", is_composite=True)
        result = await migration_service.migrate_composite_to_variations("KIT-1")
        assert result.success
        assert result.migrated_items_count == 0
        assert result.created_variation_id is not None

    @pytest.mark.asyncio
    async def test_requires_composite_without_variations(
        self,
        products: ProductRepository,
        migration_service: MigrationService,
        variation_items: ProductVariationItemRepository,
    ) -> None:
        """Wrong starting state fails fast without doing any work."""
        await add_product(products, "PLAIN-1")
        result = await migration_service.migrate_composite_to_variations("PLAIN-1")
        assert not result.success
        assert result.error_code == "INVALID_STATE"
        assert await variation_items.count() == 0

    @pytest.mark.asyncio
    async def test_composition_child_fails_before_any_work(
        self,
        composite_parent,
        products: ProductRepository,
        variation_types: VariationTypeRepository,
        variation_items: ProductVariationItemRepository,
        compositions: CompositionItemRepository,
        migration_service: MigrationService,
    ) -> None:
        """A composite used inside another composite cannot gain variations."""
        await add_product(products, "PALLET-1", is_composite=True)
        await add_item(compositions, "PALLET-1", "PARENT-001", 4)

        result = await migration_service.migrate_composite_to_variations("PARENT-001")

        assert not result.success
        assert result.error_code == "FLAG_CHANGE_BLOCKED"
        assert result.errors[0].startswith("Cannot enable variations on product 'PARENT-001'")
        assert await variation_types.count() == 0
        assert await variation_items.count() == 0
        assert await compositions.count_by_parent("PARENT-001") == 2

    @pytest.mark.asyncio
    async def test_missing_product(self, migration_service: MigrationService) -> None:
        """Unknown products are reported, not raised."""
        result = await migration_service.migrate_composite_to_variations("NOPE")
        assert not result.success
        assert result.error_code == "PRODUCT_NOT_FOUND"
        assert result.errors == ["Product 'NOPE' not found"]

    @pytest.mark.asyncio
    async def test_reports_progress(
        self,
        composite_parent,
        migration_service: MigrationService,
    ) -> None:
        """Progress is reported for each step."""
        updates: list[MigrationProgress] = []
        await migration_service.migrate_composite_to_variations("PARENT-001", updates.append)
        assert [u.current_step for u in updates] == [1, 2, 3, 4]
        assert updates[-1].progress == 100
        assert len({u.operation_id for u in updates}) == 1

    @pytest.mark.asyncio
    async def test_partial_failure_keeps_moved_items(
        self,
        composite_parent,
        store: FailingStore,
        migration_service: MigrationService,
        compositions: CompositionItemRepository,
    ) -> None:
        """A failing move is reported and earlier moves are not undone."""
        # type, variation and variation item writes, then one item move
        store.fail_from_now(allowed_writes=4)

        result = await migration_service.migrate_composite_to_variations("PARENT-001")

        assert not result.success
        assert result.migrated_items_count == 1
        assert len(result.errors) == 1
        store.fail_after = None
        key = f"PARENT-001#{result.created_variation_id}"
        assert await compositions.count_by_parent(key) == 1
        assert await compositions.count_by_parent("PARENT-001") == 1


class TestMigrateVariationsToComposite:
    """Tests for collapsing variations into one composition."""

    @pytest.mark.asyncio
    async def test_first_variation_strategy(
        self,
        products: ProductRepository,
        variation_types: VariationTypeRepository,
        variations: VariationRepository,
        variation_items: ProductVariationItemRepository,
        compositions: CompositionItemRepository,
        migration_service: MigrationService,
    ) -> None:
        """The oldest variation's items become the product composition."""
        first_key, second_key = await make_variable_kit(
            products, variation_types, variations, variation_items, compositions
        )
        first_ids = {item.id for item in await compositions.find_by_parent(first_key)}

        result = await migration_service.migrate_variations_to_composite("KIT-1")

        assert result.success
        assert result.migrated_items_count == 2
        bare = await compositions.find_by_parent("KIT-1")
        assert {item.id for item in bare} == first_ids
        assert {item.child_sku: item.quantity for item in bare} == {"PART-A": 1, "PART-B": 2}
        assert await compositions.find_by_parent(second_key) == []
        assert await variation_items.count_by_product("KIT-1") == 0

    @pytest.mark.asyncio
    async def test_merge_all_sums_quantities(
        self,
        products: ProductRepository,
        variation_types: VariationTypeRepository,
        variations: VariationRepository,
        variation_items: ProductVariationItemRepository,
        compositions: CompositionItemRepository,
        migration_service: MigrationService,
    ) -> None:
        """Quantities of the same child are summed across variations."""
        await make_variable_kit(
            products, variation_types, variations, variation_items, compositions
        )

        result = await migration_service.migrate_variations_to_composite("KIT-1", "merge-all")

        assert result.success
        assert result.migrated_items_count == 2
        bare = await compositions.find_by_parent("KIT-1")
        assert {item.child_sku: item.quantity for item in bare} == {"PART-A": 5, "PART-B": 2}
        assert len(await compositions.find_by_parent_prefix("KIT-1")) == 2
        assert await variation_items.count_by_product("KIT-1") == 0

    @pytest.mark.asyncio
    async def test_unknown_strategy_raises_before_work(
        self,
        products: ProductRepository,
        variation_types: VariationTypeRepository,
        variations: VariationRepository,
        variation_items: ProductVariationItemRepository,
        compositions: CompositionItemRepository,
        migration_service: MigrationService,
    ) -> None:
        """Unknown strategies are caller errors."""
        await make_variable_kit(
            products, variation_types, variations, variation_items, compositions
        )
        with pytest.raises(ValueError):
            await migration_service.migrate_variations_to_composite("KIT-1", "newest")
        assert await variation_items.count_by_product("KIT-1") == 2

    @pytest.mark.asyncio
    async def test_requires_variations(
        self,
        products: ProductRepository,
        migration_service: MigrationService,
    ) -> None:
        """A product without variation items fails fast."""
        await add_product(products, "KIT-1", is_composite=True, has_variation=True)
        result = await migration_service.migrate_variations_to_composite("KIT-1")
        assert not result.success
        assert result.error_code == "NO_VARIATIONS"

    @pytest.mark.asyncio
    async def test_round_trip_restores_composition(
        self,
        composite_parent,
        products: ProductRepository,
        compositions: CompositionItemRepository,
        migration_service: MigrationService,
    ) -> None:
        """Enabling then disabling variations restores the original items."""
        before = {(item.id, item.child_sku, item.quantity) for item in await compositions.find_all()}

        await migration_service.migrate_composite_to_variations("PARENT-001")
        await products.update("PARENT-001", {"has_variation": True})
        result = await migration_service.migrate_variations_to_composite("PARENT-001")

        assert result.success
        after = {
            (item.id, item.child_sku, item.quantity)
            for item in await compositions.find_by_parent("PARENT-001")
        }
        assert after == before


class TestDiscardComposition:
    """Tests for discarding composition data."""

    @pytest.mark.asyncio
    async def test_discard_variable_composition(
        self,
        products: ProductRepository,
        variation_types: VariationTypeRepository,
        variations: VariationRepository,
        variation_items: ProductVariationItemRepository,
        compositions: CompositionItemRepository,
        migration_service: MigrationService,
    ) -> None:
        """All items and variation items are removed."""
        await make_variable_kit(
            products, variation_types, variations, variation_items, compositions
        )

        result = await migration_service.discard_composition("KIT-1")

        assert result.success
        assert result.migrated_items_count == 3
        assert await compositions.find_by_parent_prefix("KIT-1") == []
        assert await variation_items.count_by_product("KIT-1") == 0
        assert await products.sku_exists("PART-A")

    @pytest.mark.asyncio
    async def test_count_dependent_items(
        self,
        products: ProductRepository,
        variation_types: VariationTypeRepository,
        variations: VariationRepository,
        variation_items: ProductVariationItemRepository,
        compositions: CompositionItemRepository,
        migration_service: MigrationService,
    ) -> None:
        """Counts include every variation's items."""
        await make_variable_kit(
            products, variation_types, variations, variation_items, compositions
        )
        assert await migration_service.count_dependent_items("KIT-1") == 3
