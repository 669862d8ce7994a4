"""Variation type repository."""

from collections.abc import Iterable

from catalog_core.domain.entities import VariationType, normalize_name
from catalog_core.domain.exceptions import DuplicateNameError
from catalog_core.repositories.base import BaseRepository


class VariationTypeRepository(BaseRepository[VariationType]):
    """Repository for variation types.

    Names are unique across all variation types, compared after
    normalization (case and surrounding whitespace are ignored).
    """

    collection = "variation-types"
    entity_name = "VariationType"
    entity_class = VariationType

    async def find_by_name(self, name: str) -> VariationType | None:
        normalized = normalize_name(name)
        return await self.find_first(lambda vt: vt.normalized_name() == normalized)

    async def name_exists(self, name: str, exclude_id: str | None = None) -> bool:
        """Check if a variation type name is taken.

        Args:
            name: Name to check.
            exclude_id: ID ignored by the check (the record being renamed).

        Returns:
            True if another variation type has the same normalized name.
        """
        normalized = normalize_name(name)
        match = await self.find_first(
            lambda vt: vt.normalized_name() == normalized and vt.id != exclude_id
        )
        return match is not None

    async def find_weight_modifying(self) -> list[VariationType]:
        return await self.find_where(lambda vt: vt.modifies_weight)

    async def find_dimension_modifying(self) -> list[VariationType]:
        return await self.find_where(lambda vt: vt.modifies_dimensions)

    async def find_by_ids(self, ids: Iterable[str]) -> list[VariationType]:
        wanted = set(ids)
        return await self.find_where(lambda vt: vt.id in wanted)

    async def any_modify_weight(self, ids: Iterable[str]) -> bool:
        return any(vt.modifies_weight for vt in await self.find_by_ids(ids))

    async def any_modify_dimensions(self, ids: Iterable[str]) -> bool:
        return any(vt.modifies_dimensions for vt in await self.find_by_ids(ids))

    async def search(self, query: str) -> list[VariationType]:
        needle = query.strip().lower()
        if not needle:
            return await self.find_all()
        return await self.find_where(lambda vt: needle in vt.name.lower())

    async def validate_for_creation(self, entity: VariationType) -> None:
        if await self.name_exists(entity.name):
            raise DuplicateNameError(
                [f"A variation type with name '{entity.name}' already exists"],
                self.entity_name,
            )

    async def validate_for_update(self, existing: VariationType, updated: VariationType) -> None:
        if await self.name_exists(updated.name, exclude_id=updated.id):
            raise DuplicateNameError(
                [f"A variation type with name '{updated.name}' already exists"],
                self.entity_name,
            )

    async def validate_for_deletion(self, entity_id: str) -> list[str]:
        from catalog_core.repositories.variation import VariationRepository

        variation_type = await self.get(entity_id)
        count = await self._sibling(VariationRepository).count_by_variation_type(entity_id)
        if count:
            return [
                f"Cannot delete variation type '{variation_type.name}' because it has "
                f"{count} variation(s) associated with it. Please delete all variations first."
            ]
        return []
