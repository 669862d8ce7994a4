"""Composition item repository.

Composition items form a directed graph from parent products to child
products. Parents are referenced by bare SKU or by a variation-scoped
key "SKU#variation_item_id"; children are always bare SKUs of
non-variable products. The graph is kept acyclic on creation.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

import structlog

from catalog_core.domain.entities import (
    PARENT_KEY_SEPARATOR,
    CompositionItem,
    split_parent_key,
)
from catalog_core.domain.exceptions import IntegrityViolationError
from catalog_core.repositories.base import BaseRepository

logger = structlog.get_logger()


@dataclass(frozen=True)
class IntegrityReport:
    """Referential integrity check of all composition items.

    Attributes:
        orphaned_items: Items whose parent product no longer exists.
        missing_children: Items whose child product no longer exists.
    """

    orphaned_items: list[CompositionItem] = field(default_factory=list)
    missing_children: list[CompositionItem] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.orphaned_items and not self.missing_children


class CompositionItemRepository(BaseRepository[CompositionItem]):
    """Repository for composition items."""

    collection = "compositions"
    entity_name = "CompositionItem"
    entity_class = CompositionItem

    # ========================================================================
    # Queries
    # ========================================================================

    async def find_by_parent(self, parent_sku: str) -> list[CompositionItem]:
        """Get items under an exact parent key (bare or variation-scoped)."""
        return await self.find_where(lambda item: item.parent_sku == parent_sku)

    async def find_by_child(self, child_sku: str) -> list[CompositionItem]:
        return await self.find_where(lambda item: item.child_sku == child_sku)

    async def find_by_parent_prefix(self, sku: str) -> list[CompositionItem]:
        """Get every item owned by a product, bare and variation-scoped."""
        prefix = f"{sku}{PARENT_KEY_SEPARATOR}"
        return await self.find_where(
            lambda item: item.parent_sku == sku or item.parent_sku.startswith(prefix)
        )

    async def find_grouped_by_parent(self) -> dict[str, list[CompositionItem]]:
        grouped: dict[str, list[CompositionItem]] = {}
        for item in await self.find_all():
            grouped.setdefault(item.parent_sku, []).append(item)
        return grouped

    async def count_by_parent(self, parent_sku: str) -> int:
        return len(await self.find_by_parent(parent_sku))

    async def count_by_child(self, child_sku: str) -> int:
        return len(await self.find_by_child(child_sku))

    async def find_by_parent_and_child(
        self,
        parent_sku: str,
        child_sku: str,
    ) -> CompositionItem | None:
        return await self.find_first(
            lambda item: item.parent_sku == parent_sku and item.child_sku == child_sku
        )

    async def search(self, query: str) -> list[CompositionItem]:
        """Search items by parent key or child SKU."""
        needle = query.strip().lower()
        if not needle:
            return await self.find_all()
        return await self.find_where(
            lambda item: needle in item.parent_sku.lower() or needle in item.child_sku.lower()
        )

    # ========================================================================
    # Mutations
    # ========================================================================

    async def delete_by_parent(self, parent_sku: str) -> int:
        """Delete every item under an exact parent key in a single write.

        Returns:
            Number of deleted items.
        """
        items = await self.find_by_parent(parent_sku)
        if items:
            await self.delete_many(item.id for item in items)
        return len(items)

    async def reparent(self, item_id: str, new_parent_sku: str) -> CompositionItem:
        """Move an item to another parent key of the same product.

        The item keeps its identity, child and quantity.

        Args:
            item_id: Composition item ID.
            new_parent_sku: Bare SKU or variation-scoped key.

        Returns:
            The moved item.

        Raises:
            EntityNotFoundError: If the item does not exist.
            ValidationError: If the new key belongs to another product.
        """
        item = await self.get(item_id)
        moved = await self.replace(item.reparent(new_parent_sku))
        logger.debug(
            "Composition item reparented",
            item_id=item_id,
            from_parent=item.parent_sku,
            to_parent=new_parent_sku,
        )
        return moved

    # ========================================================================
    # Calculations
    # ========================================================================

    async def calculate_weight(
        self,
        parent_sku: str,
        child_weights: Mapping[str, float],
    ) -> float:
        """Sum child weights times quantities under a parent key.

        Args:
            parent_sku: Parent key.
            child_weights: Weight per child SKU; missing children weigh 0.

        Returns:
            Total weight.
        """
        return sum(
            child_weights.get(item.child_sku, 0.0) * item.quantity
            for item in await self.find_by_parent(parent_sku)
        )

    async def calculate_composite_weight(self, parent_sku: str) -> float:
        """Compute a parent key's weight from stored child products.

        Composite children contribute the weight of their own (bare)
        composition; other children contribute their own weight or 0.
        """
        from catalog_core.repositories.product import ProductRepository

        products = {p.sku: p for p in await self._sibling(ProductRepository).find_all()}
        grouped = await self.find_grouped_by_parent()

        def weigh(key: str) -> float:
            total = 0.0
            for item in grouped.get(key, []):
                child = products.get(item.child_sku)
                if child is None:
                    continue
                if child.should_ignore_weight():
                    total += weigh(child.sku) * item.quantity
                elif child.weight is not None:
                    total += child.weight.value * item.quantity
            return total

        return weigh(parent_sku)

    async def validate_integrity(self, available_skus: Iterable[str]) -> IntegrityReport:
        """Find items referencing products that do not exist.

        Args:
            available_skus: SKUs of existing products.

        Returns:
            Integrity report.
        """
        skus = set(available_skus)
        items = await self.find_all()
        report = IntegrityReport(
            orphaned_items=[item for item in items if item.parent_base_sku() not in skus],
            missing_children=[item for item in items if item.child_sku not in skus],
        )
        if not report.valid:
            logger.warning(
                "Composition integrity issues found",
                orphaned_items=len(report.orphaned_items),
                missing_children=len(report.missing_children),
            )
        return report

    # ========================================================================
    # Validation Hooks
    # ========================================================================

    async def _contains(self, root_sku: str, target_sku: str) -> bool:
        """Check if root_sku transitively contains target_sku."""
        edges: dict[str, set[str]] = {}
        for item in await self.find_all():
            edges.setdefault(item.parent_base_sku(), set()).add(item.child_sku)

        seen: set[str] = set()
        stack = [root_sku]
        while stack:
            sku = stack.pop()
            if sku == target_sku:
                return True
            if sku in seen:
                continue
            seen.add(sku)
            stack.extend(edges.get(sku, ()))
        return False

    async def _check_child(self, item: CompositionItem) -> None:
        from catalog_core.repositories.product import ProductRepository

        child = await self._sibling(ProductRepository).find_by_sku(item.child_sku)
        if child is None:
            raise IntegrityViolationError(
                [f"Child product '{item.child_sku}' does not exist"], self.entity_name
            )
        if not child.can_be_used_in_composition():
            raise IntegrityViolationError(
                [
                    f"Product '{item.child_sku}' has variations and cannot be used "
                    "directly in a composition"
                ],
                self.entity_name,
            )

        duplicate = await self.find_by_parent_and_child(item.parent_sku, item.child_sku)
        if duplicate is not None and duplicate.id != item.id:
            raise IntegrityViolationError(
                [f"Product '{item.child_sku}' is already part of this composition"],
                self.entity_name,
            )

        if await self._contains(item.child_sku, item.parent_base_sku()):
            raise IntegrityViolationError(
                [
                    f"Adding '{item.child_sku}' to '{item.parent_sku}' would create "
                    "a circular composition"
                ],
                self.entity_name,
            )

    async def validate_for_creation(self, entity: CompositionItem) -> None:
        from catalog_core.repositories.product import ProductRepository
        from catalog_core.repositories.product_variation_item import (
            ProductVariationItemRepository,
        )

        base_sku, variation_item_id = split_parent_key(entity.parent_sku)
        parent = await self._sibling(ProductRepository).find_by_sku(base_sku)
        if parent is None:
            raise IntegrityViolationError(
                [f"Parent product '{base_sku}' does not exist"], self.entity_name
            )
        if not parent.is_composite:
            raise IntegrityViolationError(
                [f"Product '{base_sku}' is not a composite product"], self.entity_name
            )
        if variation_item_id is not None:
            variation_item = await self._sibling(ProductVariationItemRepository).find_by_id(
                variation_item_id
            )
            if variation_item is None or variation_item.product_sku != base_sku:
                raise IntegrityViolationError(
                    [f"Variation '{variation_item_id}' of product '{base_sku}' does not exist"],
                    self.entity_name,
                )
        await self._check_child(entity)

    async def validate_for_update(self, existing: CompositionItem, updated: CompositionItem) -> None:
        if updated.child_sku != existing.child_sku:
            await self._check_child(updated)
