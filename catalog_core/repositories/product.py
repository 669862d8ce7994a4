"""Product repository.

Products are keyed by SKU. Deleting a product cascades through its
composition items (bare and variation-scoped) and its variation items
using an explicit deletion plan. A product used as a composition child
is never deleted, and its structural flags only change once the data
they govern is gone.
"""

from typing import Any

import structlog

from catalog_core.domain.entities import PARENT_KEY_SEPARATOR, Product
from catalog_core.domain.exceptions import IntegrityViolationError
from catalog_core.domain.value_objects import StructureFlags
from catalog_core.repositories.base import BaseRepository
from catalog_core.repositories.cascade import (
    CascadeResult,
    DeletionPlan,
    DeletionStep,
    execute_plan,
)

logger = structlog.get_logger()


class ProductRepository(BaseRepository[Product]):
    """Repository for catalog products."""

    collection = "products"
    entity_name = "Product"
    entity_class = Product

    # ========================================================================
    # Queries
    # ========================================================================

    async def find_by_sku(self, sku: str) -> Product | None:
        return await self.find_by_id(sku)

    async def sku_exists(self, sku: str) -> bool:
        return await self.exists(sku)

    async def find_by_type(
        self,
        *,
        is_composite: bool | None = None,
        has_variation: bool | None = None,
    ) -> list[Product]:
        """Find products by structural flags.

        Args:
            is_composite: Required composite flag, or None for any.
            has_variation: Required variation flag, or None for any.

        Returns:
            Matching products.
        """
        return await self.find_where(
            lambda product: (is_composite is None or product.is_composite == is_composite)
            and (has_variation is None or product.has_variation == has_variation)
        )

    async def find_composition_eligible(self) -> list[Product]:
        """Find products that can be used as composition children."""
        return await self.find_where(lambda product: product.can_be_used_in_composition())

    async def find_with_variations(self) -> list[Product]:
        return await self.find_by_type(has_variation=True)

    async def find_composite(self) -> list[Product]:
        return await self.find_by_type(is_composite=True)

    async def find_simple(self) -> list[Product]:
        return await self.find_where(lambda product: product.is_simple())

    async def search(self, query: str) -> list[Product]:
        """Search products by SKU or name (case-insensitive substring)."""
        needle = query.strip().lower()
        if not needle:
            return await self.find_all()
        return await self.find_where(
            lambda product: needle in product.sku.lower() or needle in product.name.lower()
        )

    # ========================================================================
    # Validation Hooks
    # ========================================================================

    async def validate_for_creation(self, entity: Product) -> None:
        if await self.sku_exists(entity.sku):
            raise IntegrityViolationError(
                [f"Product with SKU '{entity.sku}' already exists"], self.entity_name
            )

    async def flag_change_blockers(self, product: Product, target: StructureFlags) -> list[str]:
        """Get the reasons a product cannot switch to target flags.

        Enabling variations is blocked while the product is a composition
        child. Disabling variations is blocked while variation items exist,
        and disabling composition while any of its composition items exist;
        transitions clear that data before they persist the new flags.

        Args:
            product: Product as currently stored.
            target: Requested flags.

        Returns:
            Blocking reasons, empty when the change is allowed.
        """
        from catalog_core.repositories.composition_item import CompositionItemRepository
        from catalog_core.repositories.product_variation_item import (
            ProductVariationItemRepository,
        )

        compositions = self._sibling(CompositionItemRepository)
        sku = product.sku
        reasons: list[str] = []

        if target.has_variation and not product.has_variation:
            usages = await compositions.count_by_child(sku)
            if usages:
                reasons.append(
                    f"Cannot enable variations on product '{sku}' because it is used in "
                    f"{usages} composition(s). Please remove it from all compositions first."
                )
        if product.has_variation and not target.has_variation:
            variations = await self._sibling(ProductVariationItemRepository).count_by_product(sku)
            if variations:
                reasons.append(
                    f"Cannot disable variations for product '{sku}': {variations} variation "
                    "combinations exist. Delete them first."
                )
        if product.is_composite and not target.is_composite:
            owned = len(await compositions.find_by_parent_prefix(sku))
            if owned:
                reasons.append(
                    f"Cannot disable composite for product '{sku}': {owned} composition "
                    "items exist. Delete them first."
                )
        return reasons

    async def validate_for_update(self, existing: Product, updated: Product) -> None:
        reasons = await self.flag_change_blockers(existing, updated.structure)
        if reasons:
            raise IntegrityViolationError(reasons, self.entity_name)

    async def validate_for_deletion(self, sku: str) -> list[str]:
        """Get the reasons a product cannot be deleted.

        Products owned as composition children are never cascaded; they
        must be removed from every composition first.
        """
        from catalog_core.repositories.composition_item import CompositionItemRepository

        await self.get(sku)
        usages = await self._sibling(CompositionItemRepository).count_by_child(sku)
        if usages:
            return [
                f"Cannot delete product '{sku}': it is used in {usages} composition(s). "
                "Remove it from compositions first."
            ]
        return []

    # ========================================================================
    # Cascade Deletion
    # ========================================================================

    async def delete_plan(self, sku: str) -> DeletionPlan:
        """Compute the ordered deletions needed to remove a product.

        Composition items owned by the product come first (bare parent
        key, then variation-scoped keys), then its variation items, then
        the product itself.

        Args:
            sku: Product SKU.

        Returns:
            Deletion plan.

        Raises:
            EntityNotFoundError: If the product does not exist.
        """
        from catalog_core.repositories.composition_item import CompositionItemRepository
        from catalog_core.repositories.product_variation_item import (
            ProductVariationItemRepository,
        )

        await self.get(sku)
        compositions = self._sibling(CompositionItemRepository)
        variation_items = self._sibling(ProductVariationItemRepository)

        owned = await compositions.find_where(
            lambda item: item.parent_sku == sku
            or item.parent_sku.startswith(f"{sku}{PARENT_KEY_SEPARATOR}")
        )
        steps = [DeletionStep(compositions.entity_name, item.id) for item in owned]
        steps.extend(
            DeletionStep(variation_items.entity_name, item.id)
            for item in await variation_items.find_by_product(sku)
        )
        steps.append(DeletionStep(self.entity_name, sku))
        return DeletionPlan(root_type=self.entity_name, root_id=sku, steps=steps)

    async def delete(self, sku: str) -> CascadeResult:  # type: ignore[override]
        """Delete a product with its compositions and variation items.

        Unlike the base `delete`, this returns the cascade outcome: the
        blocking checks still raise, but a failing step is reported in the
        result together with the steps that completed before it.

        Args:
            sku: Product SKU.

        Returns:
            Cascade result; on failure it lists the completed steps.

        Raises:
            EntityNotFoundError: If the product does not exist.
            IntegrityViolationError: If the product is a composition child.
        """
        from catalog_core.repositories.composition_item import CompositionItemRepository
        from catalog_core.repositories.product_variation_item import (
            ProductVariationItemRepository,
        )

        reasons = await self.validate_for_deletion(sku)
        if reasons:
            logger.warning(
                "Deletion blocked", entity_type=self.entity_name, sku=sku, reasons=reasons
            )
            raise IntegrityViolationError(reasons, self.entity_name)

        plan = await self.delete_plan(sku)
        compositions = self._sibling(CompositionItemRepository)
        variation_items = self._sibling(ProductVariationItemRepository)

        logger.info(
            "Deleting product",
            sku=sku,
            composition_items=plan.count(compositions.entity_name),
            variation_items=plan.count(variation_items.entity_name),
        )
        return await execute_plan(
            plan,
            {
                compositions.entity_name: compositions.remove,
                variation_items.entity_name: variation_items.remove,
                self.entity_name: self.remove,
            },
        )

    async def update_flags(self, sku: str, flags: dict[str, Any]) -> Product:
        """Update structural flags only.

        Args:
            sku: Product SKU.
            flags: Subset of is_composite / has_variation.

        Returns:
            Updated product.

        Raises:
            ValueError: If a key is not a structural flag.
            IntegrityViolationError: If dependent data blocks the change.
        """
        unknown = set(flags) - {"is_composite", "has_variation"}
        if unknown:
            raise ValueError(f"Unknown structural flags: {', '.join(sorted(unknown))}")
        return await self.update(sku, flags)
