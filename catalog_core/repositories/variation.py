"""Variation repository."""

from collections.abc import Iterable

from catalog_core.domain.entities import Variation, normalize_name
from catalog_core.domain.exceptions import DuplicateNameError, IntegrityViolationError
from catalog_core.repositories.base import BaseRepository


class VariationRepository(BaseRepository[Variation]):
    """Repository for variations.

    A variation belongs to exactly one variation type; names are unique
    within a type after normalization.
    """

    collection = "variations"
    entity_name = "Variation"
    entity_class = Variation

    async def find_by_variation_type(self, variation_type_id: str) -> list[Variation]:
        return await self.find_where(lambda v: v.variation_type_id == variation_type_id)

    async def find_by_name_in_type(self, variation_type_id: str, name: str) -> Variation | None:
        normalized = normalize_name(name)
        return await self.find_first(
            lambda v: v.variation_type_id == variation_type_id
            and v.normalized_name() == normalized
        )

    async def name_exists_in_type(
        self,
        variation_type_id: str,
        name: str,
        exclude_id: str | None = None,
    ) -> bool:
        """Check if a name is taken within a variation type.

        Args:
            variation_type_id: Variation type to look in.
            name: Name to check.
            exclude_id: ID ignored by the check (the record being renamed).

        Returns:
            True if another variation of the type has the same normalized name.
        """
        normalized = normalize_name(name)
        match = await self.find_first(
            lambda v: v.variation_type_id == variation_type_id
            and v.normalized_name() == normalized
            and v.id != exclude_id
        )
        return match is not None

    async def find_grouped_by_type(self) -> dict[str, list[Variation]]:
        """Group all variations by variation type ID, in storage order."""
        grouped: dict[str, list[Variation]] = {}
        for variation in await self.find_all():
            grouped.setdefault(variation.variation_type_id, []).append(variation)
        return grouped

    async def find_by_ids(self, ids: Iterable[str]) -> list[Variation]:
        wanted = set(ids)
        return await self.find_where(lambda v: v.id in wanted)

    async def count_by_variation_type(self, variation_type_id: str) -> int:
        return len(await self.find_by_variation_type(variation_type_id))

    async def count_product_usages(self, variation_id: str) -> int:
        """Count product variation items selecting this variation."""
        from catalog_core.repositories.product_variation_item import (
            ProductVariationItemRepository,
        )

        items = await self._sibling(ProductVariationItemRepository).find_by_variation(variation_id)
        return len(items)

    async def search(self, query: str, variation_type_id: str | None = None) -> list[Variation]:
        """Search variations by name, optionally within one type.

        Args:
            query: Case-insensitive substring; empty matches all.
            variation_type_id: Optional variation type filter.

        Returns:
            Matching variations.
        """
        needle = query.strip().lower()
        return await self.find_where(
            lambda v: (variation_type_id is None or v.variation_type_id == variation_type_id)
            and needle in v.name.lower()
        )

    # ========================================================================
    # Validation Hooks
    # ========================================================================

    async def _check_type_exists(self, variation_type_id: str) -> None:
        from catalog_core.repositories.variation_type import VariationTypeRepository

        if not await self._sibling(VariationTypeRepository).exists(variation_type_id):
            raise IntegrityViolationError(
                [f"Variation type '{variation_type_id}' does not exist"], self.entity_name
            )

    async def validate_for_creation(self, entity: Variation) -> None:
        await self._check_type_exists(entity.variation_type_id)
        if await self.name_exists_in_type(entity.variation_type_id, entity.name):
            raise DuplicateNameError(
                [f"A variation with name '{entity.name}' already exists in this variation type"],
                self.entity_name,
            )

    async def validate_for_update(self, existing: Variation, updated: Variation) -> None:
        if updated.variation_type_id != existing.variation_type_id:
            await self._check_type_exists(updated.variation_type_id)
            usages = await self.count_product_usages(existing.id)
            if usages:
                raise IntegrityViolationError(
                    [
                        f"Cannot move variation '{existing.name}' to another variation type "
                        f"because it is being used in {usages} product variation(s)."
                    ],
                    self.entity_name,
                )
        if await self.name_exists_in_type(
            updated.variation_type_id, updated.name, exclude_id=updated.id
        ):
            raise DuplicateNameError(
                [f"A variation with name '{updated.name}' already exists in this variation type"],
                self.entity_name,
            )

    async def validate_for_deletion(self, entity_id: str) -> list[str]:
        variation = await self.get(entity_id)
        usages = await self.count_product_usages(entity_id)
        if usages:
            return [
                f"Cannot delete variation '{variation.name}' because it is being used in "
                f"{usages} product variation(s). Please remove it from all products first."
            ]
        return []
