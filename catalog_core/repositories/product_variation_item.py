"""Product variation item repository."""

from collections.abc import Mapping, Sequence
from itertools import product as cartesian_product
from typing import Any

from catalog_core.domain.entities import ProductVariationItem
from catalog_core.domain.exceptions import IntegrityViolationError
from catalog_core.domain.value_objects import Dimensions, Weight
from catalog_core.repositories.base import BaseRepository


class ProductVariationItemRepository(BaseRepository[ProductVariationItem]):
    """Repository for product variation items.

    Each item selects one variation per variation type. A product cannot
    hold two items with the same combination of selections.
    """

    collection = "product-variations"
    entity_name = "ProductVariationItem"
    entity_class = ProductVariationItem

    async def find_by_product(self, product_sku: str) -> list[ProductVariationItem]:
        """Get a product's variation items, oldest first."""
        items = await self.find_where(lambda item: item.product_sku == product_sku)
        return sorted(items, key=lambda item: item.created_at)

    async def find_by_selections(
        self,
        product_sku: str,
        selections: Mapping[str, str],
    ) -> ProductVariationItem | None:
        """Find a product's item with exactly these selections.

        Args:
            product_sku: Product SKU.
            selections: Variation type ID -> variation ID.

        Returns:
            Matching item, or None.
        """
        wanted = dict(selections)
        return await self.find_first(
            lambda item: item.product_sku == product_sku and item.selections == wanted
        )

    async def count_by_product(self, product_sku: str) -> int:
        return len(await self.find_by_product(product_sku))

    async def find_by_variation(self, variation_id: str) -> list[ProductVariationItem]:
        return await self.find_where(lambda item: variation_id in item.selections.values())

    async def find_by_variation_type(self, variation_type_id: str) -> list[ProductVariationItem]:
        return await self.find_where(lambda item: variation_type_id in item.selections)

    async def delete_by_product(self, product_sku: str) -> int:
        """Delete every variation item of a product with its compositions.

        Composition items scoped to those variation items are deleted
        first, then the variation items, each collection in one write.

        Returns:
            Number of deleted variation items.
        """
        from catalog_core.repositories.composition_item import CompositionItemRepository

        items = await self.find_by_product(product_sku)
        if not items:
            return 0

        compositions = self._sibling(CompositionItemRepository)
        keys = {item.composition_key() for item in items}
        scoped = await compositions.find_where(lambda composition: composition.parent_sku in keys)
        if scoped:
            await compositions.delete_many(composition.id for composition in scoped)
        await self.delete_many(item.id for item in items)
        return len(items)

    @staticmethod
    def generate_combinations(
        variation_type_ids: Sequence[str],
        variations_by_type: Mapping[str, Sequence[str]],
    ) -> list[dict[str, str]]:
        """Build every selection combination across variation types.

        Args:
            variation_type_ids: Variation types to combine, in order.
            variations_by_type: Variation IDs available per type.

        Returns:
            Cartesian product of selections; empty when no types are given
            or any type has no variations.
        """
        if not variation_type_ids:
            return []
        choices = [variations_by_type.get(type_id, []) for type_id in variation_type_ids]
        return [
            dict(zip(variation_type_ids, combination))
            for combination in cartesian_product(*choices)
        ]

    async def create_from_combinations(
        self,
        product_sku: str,
        combinations: Sequence[Mapping[str, str]],
        *,
        weight_override: Weight | float | None = None,
        dimensions_override: Dimensions | dict[str, Any] | None = None,
    ) -> list[ProductVariationItem]:
        """Create one variation item per combination.

        Args:
            product_sku: Product SKU.
            combinations: Selections for each item.
            weight_override: Weight applied to every created item.
            dimensions_override: Dimensions applied to every created item.

        Returns:
            Created items.
        """
        return await self.create_many(
            {
                "product_sku": product_sku,
                "selections": dict(selections),
                "weight_override": weight_override,
                "dimensions_override": dimensions_override,
            }
            for selections in combinations
        )

    async def search(self, query: str) -> list[ProductVariationItem]:
        """Search items by product SKU or item name."""
        needle = query.strip().lower()
        if not needle:
            return await self.find_all()
        return await self.find_where(
            lambda item: needle in item.product_sku.lower()
            or (item.name is not None and needle in item.name.lower())
        )

    # ========================================================================
    # Validation Hooks
    # ========================================================================

    async def _check_product(self, product_sku: str) -> None:
        from catalog_core.repositories.product import ProductRepository

        product = await self._sibling(ProductRepository).find_by_sku(product_sku)
        if product is None:
            raise IntegrityViolationError(
                [f"Product '{product_sku}' does not exist"], self.entity_name
            )
        # composite products get their first variation while being migrated
        if not (product.has_variation or product.is_composite):
            raise IntegrityViolationError(
                [f"Product '{product_sku}' does not support variations"], self.entity_name
            )

    async def _check_selections(self, selections: Mapping[str, str]) -> None:
        from catalog_core.repositories.variation import VariationRepository
        from catalog_core.repositories.variation_type import VariationTypeRepository

        types = {vt.id for vt in await self._sibling(VariationTypeRepository).find_all()}
        variations = {
            v.id: v for v in await self._sibling(VariationRepository).find_by_ids(selections.values())
        }
        reasons = []
        for type_id, variation_id in selections.items():
            if type_id not in types:
                reasons.append(f"Variation type '{type_id}' does not exist")
            elif variation_id not in variations:
                reasons.append(f"Variation '{variation_id}' does not exist")
            elif variations[variation_id].variation_type_id != type_id:
                reasons.append(
                    f"Variation '{variations[variation_id].name}' does not belong to "
                    f"variation type '{type_id}'"
                )
        if reasons:
            raise IntegrityViolationError(reasons, self.entity_name)

    async def _check_unique(self, item: ProductVariationItem) -> None:
        existing = await self.find_by_selections(item.product_sku, item.selections)
        if existing is not None and existing.id != item.id:
            raise IntegrityViolationError(
                ["A variation with this combination already exists for this product"],
                self.entity_name,
            )

    async def validate_for_creation(self, entity: ProductVariationItem) -> None:
        await self._check_product(entity.product_sku)
        await self._check_selections(entity.selections)
        await self._check_unique(entity)

    async def validate_for_update(
        self,
        existing: ProductVariationItem,
        updated: ProductVariationItem,
    ) -> None:
        if updated.selections != existing.selections:
            await self._check_selections(updated.selections)
            await self._check_unique(updated)

    async def validate_for_deletion(self, entity_id: str) -> list[str]:
        from catalog_core.repositories.composition_item import CompositionItemRepository

        item = await self.get(entity_id)
        count = await self._sibling(CompositionItemRepository).count_by_parent(
            item.composition_key()
        )
        if count:
            return [
                f"Cannot delete product variation '{item.name or item.id}' because it has "
                f"{count} composition item(s). Please remove them first."
            ]
        return []
