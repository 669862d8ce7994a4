"""Structural migration service.

Moves composition data when a composite product gains or loses
variations, or stops being composite:
- Composite -> composite+variable: the existing composition becomes
  "Variation 1"
- Composite+variable -> composite: one variation's composition (or the
  merge of all of them) becomes the product composition
- Composite -> simple: all composition data is discarded

Migrations never raise for failures once started: they report them in
a MigrationResult. Steps run in order and are not rolled back; items
already moved stay moved, and the errors say which ones did not.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from uuid import uuid4

import structlog

from catalog_core.domain.base import utc_now
from catalog_core.domain.entities import Product, Variation
from catalog_core.domain.exceptions import CatalogError, MigrationError
from catalog_core.domain.value_objects import StructureFlags
from catalog_core.infrastructure.config import Settings
from catalog_core.infrastructure.config import settings as default_settings
from catalog_core.infrastructure.storage import KeyValueStore
from catalog_core.repositories import (
    CompositionItemRepository,
    ProductRepository,
    ProductVariationItemRepository,
    VariationRepository,
    VariationTypeRepository,
)

logger = structlog.get_logger()


class MergeStrategy(str, Enum):
    """How variation compositions collapse back into one composition."""

    FIRST_VARIATION = "first-variation"
    MERGE_ALL = "merge-all"


# ============================================================================
# Result Types
# ============================================================================


@dataclass(frozen=True)
class MigrationProgress:
    """Progress of a running migration, reported once per step."""

    operation_id: str
    current_step: int
    total_steps: int
    step_name: str
    progress: int
    message: str
    start_time: datetime


ProgressCallback = Callable[[MigrationProgress], None]


@dataclass
class MigrationResult:
    """Result of a migration.

    Attributes:
        success: True when every step completed.
        migrated_items_count: Composition items in their final place.
        errors: Failure messages, one per failed step or item.
        created_variation_id: Variation item created by the migration.
        operation_id: Identifier correlating log lines and progress.
        timestamp: Completion time.
        error_code: Code of the failure that aborted the migration.
    """

    success: bool = True
    migrated_items_count: int = 0
    errors: list[str] = field(default_factory=list)
    created_variation_id: str | None = None
    operation_id: str = ""
    timestamp: datetime = field(default_factory=utc_now)
    error_code: str | None = None


class _ProgressReporter:
    def __init__(
        self,
        operation_id: str,
        total_steps: int,
        callback: ProgressCallback | None,
    ) -> None:
        self.operation_id = operation_id
        self.total_steps = total_steps
        self.callback = callback
        self.start_time = utc_now()

    def report(self, step: int, step_name: str, message: str) -> None:
        logger.debug(
            "Migration step",
            operation_id=self.operation_id,
            step=step,
            total_steps=self.total_steps,
            step_name=step_name,
        )
        if self.callback is not None:
            self.callback(
                MigrationProgress(
                    operation_id=self.operation_id,
                    current_step=step,
                    total_steps=self.total_steps,
                    step_name=step_name,
                    progress=round(step * 100 / self.total_steps),
                    message=message,
                    start_time=self.start_time,
                )
            )


def _operation_id() -> str:
    return f"mig_{uuid4().hex[:12]}"


# ============================================================================
# Migration Service
# ============================================================================


class MigrationService:
    """Application service for structural migrations of composite products.

    All repositories must share one store: a migration reads and writes
    products, variation labels, variation items and composition items.
    """

    def __init__(
        self,
        products: ProductRepository,
        variation_types: VariationTypeRepository,
        variations: VariationRepository,
        variation_items: ProductVariationItemRepository,
        compositions: CompositionItemRepository,
        settings: Settings | None = None,
    ) -> None:
        """Initialize service.

        Args:
            products: Product repository.
            variation_types: Variation type repository.
            variations: Variation repository.
            variation_items: Product variation item repository.
            compositions: Composition item repository.
            settings: Settings with sentinel names and merge strategy.
        """
        self.products = products
        self.variation_types = variation_types
        self.variations = variations
        self.variation_items = variation_items
        self.compositions = compositions
        self.settings = settings or default_settings

    @classmethod
    def for_store(cls, store: KeyValueStore, settings: Settings | None = None) -> "MigrationService":
        """Build a service with repositories over one store."""
        settings = settings or default_settings
        return cls(
            products=ProductRepository(store, settings),
            variation_types=VariationTypeRepository(store, settings),
            variations=VariationRepository(store, settings),
            variation_items=ProductVariationItemRepository(store, settings),
            compositions=CompositionItemRepository(store, settings),
            settings=settings,
        )

    # ========================================================================
    # Helpers
    # ========================================================================

    async def _load_product(self, sku: str) -> Product:
        product = await self.products.find_by_sku(sku)
        if product is None:
            raise MigrationError(
                f"Product '{sku}' not found", "PRODUCT_NOT_FOUND", "load-data", recoverable=False
            )
        return product

    async def _ensure_sentinel_variation(self) -> Variation:
        """Get the variation labelling migrated compositions, creating it if needed."""
        type_name = self.settings.default_variation_type_name
        variation_name = self.settings.default_variation_name

        variation_type = await self.variation_types.find_by_name(type_name)
        if variation_type is None:
            variation_type = await self.variation_types.create({"name": type_name})
            logger.info("Created sentinel variation type", variation_type_id=variation_type.id)

        variation = await self.variations.find_by_name_in_type(variation_type.id, variation_name)
        if variation is None:
            variation = await self.variations.create(
                {"variation_type_id": variation_type.id, "name": variation_name}
            )
        return variation

    def _failed(self, operation_id: str, exc: Exception, **context: object) -> MigrationResult:
        if isinstance(exc, MigrationError):
            error = exc
        else:
            error = MigrationError(f"Migration failed: {exc}", "MIGRATION_FAILED", "unknown")
        logger.error(
            "Migration failed",
            operation_id=operation_id,
            error=error.message,
            error_code=error.code,
            step=error.step,
            **context,
        )
        return MigrationResult(
            success=False,
            errors=[error.message],
            operation_id=operation_id,
            error_code=error.code,
        )

    # ========================================================================
    # Migrations
    # ========================================================================

    async def migrate_composite_to_variations(
        self,
        sku: str,
        on_progress: ProgressCallback | None = None,
    ) -> MigrationResult:
        """Turn a composite product's composition into its first variation.

        Creates one variation item labelled by the sentinel variation and
        moves every bare composition item under it, keeping item IDs.

        Args:
            sku: Composite product without variations.
            on_progress: Optional progress callback.

        Returns:
            MigrationResult with the created variation item ID.
        """
        operation_id = _operation_id()
        progress = _ProgressReporter(operation_id, 4, on_progress)

        try:
            progress.report(1, "Loading current data", "Loading product and composition data...")
            product = await self._load_product(sku)
            if not product.is_composite or product.has_variation:
                raise MigrationError(
                    f"Product '{sku}' must be composite without variations, "
                    f"but is {product.structure}",
                    "INVALID_STATE",
                    "load-data",
                    recoverable=False,
                )
            if await self.variation_items.count_by_product(sku):
                raise MigrationError(
                    f"Product '{sku}' already has variations",
                    "VARIATIONS_EXIST",
                    "load-data",
                    recoverable=False,
                )
            blockers = await self.products.flag_change_blockers(
                product, StructureFlags(is_composite=True, has_variation=True)
            )
            if blockers:
                raise MigrationError(
                    blockers[0], "FLAG_CHANGE_BLOCKED", "load-data", recoverable=False
                )
            items = await self.compositions.find_by_parent(sku)

            progress.report(2, "Preparing variation", "Preparing variation labels...")
            variation = await self._ensure_sentinel_variation()

            progress.report(
                3,
                "Creating first variation",
                f'Creating "{variation.name}" from existing composition...',
            )
            variation_item = await self.variation_items.create(
                {
                    "product_sku": sku,
                    "selections": {variation.variation_type_id: variation.id},
                    "name": variation.name,
                }
            )
        except Exception as exc:
            return self._failed(operation_id, exc, sku=sku)

        progress.report(4, "Migrating composition items", f"Migrating {len(items)} composition items...")
        parent_key = variation_item.composition_key()
        errors: list[str] = []
        moved = 0
        for item in items:
            try:
                await self.compositions.reparent(item.id, parent_key)
                moved += 1
            except CatalogError as exc:
                errors.append(f"Failed to move composition item '{item.id}': {exc.message}")

        result = MigrationResult(
            success=not errors,
            migrated_items_count=moved,
            errors=errors,
            created_variation_id=variation_item.id,
            operation_id=operation_id,
        )
        logger.info(
            "Migrated composition to variations",
            operation_id=operation_id,
            sku=sku,
            variation_item_id=variation_item.id,
            migrated_items=moved,
            failed_items=len(errors),
        )
        return result

    async def migrate_variations_to_composite(
        self,
        sku: str,
        strategy: MergeStrategy | str | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> MigrationResult:
        """Collapse per-variation compositions into one product composition.

        Args:
            sku: Composite product with variations.
            strategy: "first-variation" keeps the oldest variation's items;
                "merge-all" sums quantities per child across variations.
                Defaults to the configured strategy.
            on_progress: Optional progress callback.

        Returns:
            MigrationResult; migrated_items_count is the number of items
            under the bare SKU afterwards.

        Raises:
            ValueError: If the strategy is unknown.
        """
        merge_strategy = MergeStrategy(strategy or self.settings.default_merge_strategy)
        operation_id = _operation_id()
        progress = _ProgressReporter(operation_id, 4, on_progress)

        try:
            progress.report(1, "Loading variation data", "Loading variations and composition data...")
            product = await self._load_product(sku)
            if not (product.is_composite and product.has_variation):
                raise MigrationError(
                    f"Product '{sku}' must be composite with variations, "
                    f"but is {product.structure}",
                    "INVALID_STATE",
                    "load-data",
                    recoverable=False,
                )
            variation_items = await self.variation_items.find_by_product(sku)
            if not variation_items:
                raise MigrationError(
                    f"Product '{sku}' has no variations",
                    "NO_VARIATIONS",
                    "load-data",
                    recoverable=False,
                )
            items_by_variation = {
                vi.id: await self.compositions.find_by_parent(vi.composition_key())
                for vi in variation_items
            }
        except Exception as exc:
            return self._failed(operation_id, exc, sku=sku, strategy=merge_strategy.value)

        errors: list[str] = []
        first = variation_items[0]
        kept_ids: set[str] = set()

        progress.report(2, "Merging compositions", "Merging variation compositions...")
        if merge_strategy is MergeStrategy.FIRST_VARIATION:
            for item in items_by_variation[first.id]:
                try:
                    await self.compositions.reparent(item.id, sku)
                    kept_ids.add(item.id)
                except CatalogError as exc:
                    errors.append(f"Failed to move composition item '{item.id}': {exc.message}")
        else:
            merged: dict[str, int] = {}
            for items in items_by_variation.values():
                for item in items:
                    merged[item.child_sku] = merged.get(item.child_sku, 0) + item.quantity
            for child_sku, quantity in merged.items():
                try:
                    await self.compositions.create(
                        {"parent_sku": sku, "child_sku": child_sku, "quantity": quantity}
                    )
                except CatalogError as exc:
                    errors.append(f"Failed to merge child '{child_sku}': {exc.message}")

        progress.report(3, "Removing variation compositions", "Removing variation compositions...")
        for items in items_by_variation.values():
            for item in items:
                if item.id in kept_ids:
                    continue
                try:
                    await self.compositions.remove(item.id)
                except CatalogError as exc:
                    errors.append(f"Failed to delete composition item '{item.id}': {exc.message}")

        progress.report(4, "Removing variations", "Removing variations and finalizing...")
        for variation_item in variation_items:
            try:
                await self.variation_items.delete(variation_item.id)
            except CatalogError as exc:
                errors.append(f"Failed to delete variation '{variation_item.id}': {exc.message}")

        try:
            migrated = await self.compositions.count_by_parent(sku)
        except CatalogError as exc:
            errors.append(exc.message)
            migrated = len(kept_ids)

        logger.info(
            "Migrated variations to composition",
            operation_id=operation_id,
            sku=sku,
            strategy=merge_strategy.value,
            variations=len(variation_items),
            migrated_items=migrated,
            failed_steps=len(errors),
        )
        return MigrationResult(
            success=not errors,
            migrated_items_count=migrated,
            errors=errors,
            operation_id=operation_id,
        )

    async def discard_composition(
        self,
        sku: str,
        on_progress: ProgressCallback | None = None,
    ) -> MigrationResult:
        """Delete all composition data of a composite product.

        Variation-scoped items go first, then variation items, then the
        bare composition items.

        Args:
            sku: Composite product.
            on_progress: Optional progress callback.

        Returns:
            MigrationResult; migrated_items_count is the number of
            composition items removed.
        """
        operation_id = _operation_id()
        progress = _ProgressReporter(operation_id, 3, on_progress)

        try:
            progress.report(1, "Loading composition data", "Loading composition data...")
            product = await self._load_product(sku)
            if not product.is_composite:
                raise MigrationError(
                    f"Product '{sku}' is not composite",
                    "INVALID_STATE",
                    "load-data",
                    recoverable=False,
                )
            owned = await self.compositions.find_by_parent_prefix(sku)
            variation_items = await self.variation_items.find_by_product(sku)
        except Exception as exc:
            return self._failed(operation_id, exc, sku=sku)

        errors: list[str] = []
        removed = 0
        scoped = [item for item in owned if item.is_variation_scoped()]
        bare = [item for item in owned if not item.is_variation_scoped()]

        progress.report(2, "Removing variations", "Removing variation compositions...")
        for item in scoped:
            try:
                await self.compositions.remove(item.id)
                removed += 1
            except CatalogError as exc:
                errors.append(f"Failed to delete composition item '{item.id}': {exc.message}")
        for variation_item in variation_items:
            try:
                await self.variation_items.delete(variation_item.id)
            except CatalogError as exc:
                errors.append(f"Failed to delete variation '{variation_item.id}': {exc.message}")

        progress.report(3, "Removing composition", "Removing composition items...")
        for item in bare:
            try:
                await self.compositions.remove(item.id)
                removed += 1
            except CatalogError as exc:
                errors.append(f"Failed to delete composition item '{item.id}': {exc.message}")

        logger.info(
            "Discarded composition",
            operation_id=operation_id,
            sku=sku,
            removed_items=removed,
            removed_variations=len(variation_items),
            failed_steps=len(errors),
        )
        return MigrationResult(
            success=not errors,
            migrated_items_count=removed,
            errors=errors,
            operation_id=operation_id,
        )

    async def count_dependent_items(self, sku: str) -> int:
        """Count composition items a transition of this product would touch.

        Args:
            sku: Product SKU.

        Returns:
            Bare composition items plus the items of every variation.
        """
        count = await self.compositions.count_by_parent(sku)
        for variation_item in await self.variation_items.find_by_product(sku):
            count += await self.compositions.count_by_parent(variation_item.composition_key())
        return count
