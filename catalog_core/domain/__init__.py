"""Domain layer for the product catalog.

This package contains the core business logic:
- Value objects (Dimensions, Weight, StructureFlags)
- Entities (Product, VariationType, Variation, ProductVariationItem, CompositionItem)
- Structural transitions (classifier and transition configs)
- Validation schemas and domain exceptions
"""

from catalog_core.domain.base import Entity, ValueObject
from catalog_core.domain.entities import (
    CompositionItem,
    Product,
    ProductVariationItem,
    Variation,
    VariationType,
    normalize_name,
    split_parent_key,
    variation_parent_key,
)
from catalog_core.domain.exceptions import (
    CatalogError,
    DuplicateNameError,
    EntityNotFoundError,
    FieldError,
    IntegrityViolationError,
    InvalidValueError,
    MigrationError,
    NoPendingTransitionError,
    StorageError,
    UnsupportedTransitionError,
    ValidationError,
)
from catalog_core.domain.transitions import (
    TransitionConfig,
    TransitionType,
    allowed_targets,
    classify_transition,
    get_transition_config,
)
from catalog_core.domain.validation import Validated
from catalog_core.domain.value_objects import Dimensions, StructureFlags, Weight

__all__ = [
    # Base classes
    "Entity",
    "ValueObject",
    # Value objects
    "Dimensions",
    "StructureFlags",
    "Weight",
    # Entities
    "CompositionItem",
    "Product",
    "ProductVariationItem",
    "Variation",
    "VariationType",
    "normalize_name",
    "split_parent_key",
    "variation_parent_key",
    # Transitions
    "TransitionConfig",
    "TransitionType",
    "allowed_targets",
    "classify_transition",
    "get_transition_config",
    # Validation
    "Validated",
    # Exceptions
    "CatalogError",
    "DuplicateNameError",
    "EntityNotFoundError",
    "FieldError",
    "IntegrityViolationError",
    "InvalidValueError",
    "MigrationError",
    "NoPendingTransitionError",
    "StorageError",
    "UnsupportedTransitionError",
    "ValidationError",
]
