"""Repositories over the key-value store.

Each repository persists one entity collection and enforces the
integrity rules that span records (uniqueness, references, cycles).
"""

from catalog_core.repositories.base import BaseRepository
from catalog_core.repositories.cascade import (
    CascadeResult,
    DeletionPlan,
    DeletionStep,
    execute_plan,
)
from catalog_core.repositories.composition_item import (
    CompositionItemRepository,
    IntegrityReport,
)
from catalog_core.repositories.product import ProductRepository
from catalog_core.repositories.product_variation_item import ProductVariationItemRepository
from catalog_core.repositories.variation import VariationRepository
from catalog_core.repositories.variation_type import VariationTypeRepository

__all__ = [
    "BaseRepository",
    "CascadeResult",
    "CompositionItemRepository",
    "DeletionPlan",
    "DeletionStep",
    "IntegrityReport",
    "ProductRepository",
    "ProductVariationItemRepository",
    "VariationRepository",
    "VariationTypeRepository",
    "execute_plan",
]
