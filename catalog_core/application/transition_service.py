"""Product transition orchestration.

Drives a structural flag change of one product in two phases:
1. `check_transition_required` classifies the change and, when a
   transition is needed, opens a pending context with the data at stake
   so the caller can ask for confirmation
2. `execute_transition` runs the migration for the pending transition and
   only then persists the new flags through the update callback
"""

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Any

import structlog

from catalog_core.application.migration_service import (
    MergeStrategy,
    MigrationResult,
    MigrationService,
)
from catalog_core.domain.entities import Product
from catalog_core.domain.exceptions import IntegrityViolationError, NoPendingTransitionError
from catalog_core.domain.transitions import (
    TransitionConfig,
    TransitionType,
    classify_transition,
    get_transition_config,
)
from catalog_core.domain.value_objects import StructureFlags

logger = structlog.get_logger()

ProductUpdateCallback = Callable[[dict[str, bool]], Awaitable[Any]]


@dataclass(frozen=True)
class TransitionContext:
    """A transition awaiting confirmation.

    Attributes:
        product_sku: Product being transitioned.
        product_name: Product name, for display.
        existing_data_count: Composition items the transition touches.
        current: Flags before the transition.
        target: Requested flags.
        transition: Classified transition.
        config: Presentation settings for the confirmation.
    """

    product_sku: str
    product_name: str
    existing_data_count: int
    current: StructureFlags
    target: StructureFlags
    transition: TransitionType
    config: TransitionConfig


@dataclass(frozen=True)
class TransitionResult:
    """Result of executing a transition."""

    success: bool
    message: str
    error: str | None = None


class ProductTransitionService:
    """Orchestrates structural transitions of a single product.

    The update callback receives the target flags as a dict
    (is_composite, has_variation) and must persist them; it is called
    only after the migration succeeded.
    """

    def __init__(
        self,
        product: Product,
        migration_service: MigrationService,
        on_product_update: ProductUpdateCallback,
        merge_strategy: MergeStrategy | str | None = None,
    ) -> None:
        """Initialize service.

        Args:
            product: Product as currently stored.
            migration_service: Service running the data migrations.
            on_product_update: Async callback persisting the new flags.
            merge_strategy: Strategy used when disabling variations.
        """
        self.product = product
        self.migration_service = migration_service
        self.on_product_update = on_product_update
        self.merge_strategy = merge_strategy
        self._pending: TransitionContext | None = None

    @property
    def pending(self) -> TransitionContext | None:
        """Get the transition awaiting execution, if any."""
        return self._pending

    async def check_transition_required(
        self,
        target: StructureFlags | Mapping[str, bool],
    ) -> bool:
        """Check whether changing to target flags needs a transition.

        Opens a pending transition when one is needed.

        Args:
            target: Requested flags.

        Returns:
            True if a transition is now pending, False if nothing changes.

        Raises:
            UnsupportedTransitionError: If the change is not supported.
            IntegrityViolationError: If existing data blocks enabling variations.
        """
        if not isinstance(target, StructureFlags):
            target = StructureFlags.from_json(dict(target))
        current = self.product.structure

        transition = classify_transition(current, target)
        if transition is None:
            self._pending = None
            return False

        # rejected before any data moves
        if transition is TransitionType.ENABLE_VARIATIONS:
            blockers = await self.migration_service.products.flag_change_blockers(
                self.product, target
            )
            if blockers:
                self._pending = None
                raise IntegrityViolationError(blockers, "Product")

        count = await self.migration_service.count_dependent_items(self.product.sku)
        self._pending = TransitionContext(
            product_sku=self.product.sku,
            product_name=self.product.name,
            existing_data_count=count,
            current=current,
            target=target,
            transition=transition,
            config=get_transition_config(transition, count),
        )
        logger.info(
            "Transition pending",
            sku=self.product.sku,
            transition=transition.value,
            existing_data_count=count,
        )
        return True

    async def _migrate(self, context: TransitionContext) -> MigrationResult | None:
        service = self.migration_service
        sku = context.product_sku

        if context.transition is TransitionType.ENABLE_VARIATIONS:
            return await service.migrate_composite_to_variations(sku)
        if context.transition is TransitionType.DISABLE_VARIATIONS:
            # nothing to collapse when no variation was ever created
            if not await service.variation_items.count_by_product(sku):
                return None
            return await service.migrate_variations_to_composite(sku, self.merge_strategy)
        if context.transition is TransitionType.DISABLE_COMPOSITE:
            return await service.discard_composition(sku)
        return None

    async def execute_transition(self) -> TransitionResult:
        """Run the pending transition.

        Returns:
            TransitionResult; failures are reported, not raised.

        Raises:
            NoPendingTransitionError: If no transition is pending.
        """
        context = self._pending
        if context is None:
            raise NoPendingTransitionError()

        try:
            migration = await self._migrate(context)
            if migration is not None and not migration.success:
                logger.warning(
                    "Transition migration failed",
                    sku=context.product_sku,
                    transition=context.transition.value,
                    operation_id=migration.operation_id,
                    errors=migration.errors,
                )
                return TransitionResult(
                    success=False,
                    message=f"Could not complete {context.transition.value} for '{context.product_sku}'",
                    error="; ".join(migration.errors),
                )

            flags = context.target.to_json()
            await self.on_product_update(flags)
            self.product = self.product.update(**flags)
        except Exception as exc:
            logger.error(
                "Transition failed",
                sku=context.product_sku,
                transition=context.transition.value,
                error=str(exc),
            )
            return TransitionResult(
                success=False,
                message=f"Could not complete {context.transition.value} for '{context.product_sku}'",
                error=str(exc),
            )

        self._pending = None
        migrated = migration.migrated_items_count if migration is not None else 0
        logger.info(
            "Transition completed",
            sku=context.product_sku,
            transition=context.transition.value,
            migrated_items=migrated,
        )
        return TransitionResult(
            success=True,
            message=f"Product '{context.product_sku}' is now {context.target}",
        )

    def cancel_transition(self) -> None:
        """Drop the pending transition without changing anything."""
        if self._pending is not None:
            logger.info(
                "Transition cancelled",
                sku=self._pending.product_sku,
                transition=self._pending.transition.value,
            )
        self._pending = None
