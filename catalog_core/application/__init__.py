"""Application layer module.

Contains application services that orchestrate repositories and
domain rules for structural changes of products.
"""

from catalog_core.application.migration_service import (
    MergeStrategy,
    MigrationProgress,
    MigrationResult,
    MigrationService,
)
from catalog_core.application.transition_service import (
    ProductTransitionService,
    TransitionContext,
    TransitionResult,
)

__all__ = [
    "MergeStrategy",
    "MigrationProgress",
    "MigrationResult",
    "MigrationService",
    "ProductTransitionService",
    "TransitionContext",
    "TransitionResult",
]
