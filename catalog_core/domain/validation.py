"""Schema validation for catalog entities.

Each entity has a pydantic schema describing its persisted shape. Schemas
are never exposed as entities themselves: they are run against raw data
and their failures are translated into `FieldError` lists so callers can
report every problem at once before anything is constructed.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Generic, TypeVar
from uuid import UUID

import pydantic
from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictInt

from catalog_core.domain.exceptions import FieldError, ValidationError

T = TypeVar("T")

SKU_PATTERN = r"^[A-Z0-9-]+$"
NAME_PATTERN = r"^[\w\s&/().'-]+$"


# ============================================================================
# Schemas
# ============================================================================


class _Schema(BaseModel):
    model_config = ConfigDict(extra="forbid")


class DimensionsSchema(_Schema):
    """Height × width × depth, all positive."""

    height: float = Field(gt=0)
    width: float = Field(gt=0)
    depth: float = Field(gt=0)


class ProductSchema(_Schema):
    """Persisted shape of a product."""

    sku: str = Field(min_length=1, max_length=50, pattern=SKU_PATTERN)
    name: str = Field(min_length=1, max_length=100)
    dimensions: DimensionsSchema | None = None
    weight: float | None = Field(default=None, gt=0)
    is_composite: StrictBool
    has_variation: StrictBool
    created_at: datetime
    updated_at: datetime


class VariationTypeSchema(_Schema):
    """Persisted shape of a variation type."""

    id: UUID
    name: str = Field(min_length=1, max_length=50, pattern=NAME_PATTERN)
    modifies_weight: StrictBool
    modifies_dimensions: StrictBool
    created_at: datetime
    updated_at: datetime


class VariationSchema(_Schema):
    """Persisted shape of a variation."""

    id: UUID
    variation_type_id: UUID
    name: str = Field(min_length=1, max_length=50, pattern=NAME_PATTERN)
    created_at: datetime
    updated_at: datetime


class ProductVariationItemSchema(_Schema):
    """Persisted shape of a product variation item."""

    id: UUID
    product_sku: str = Field(min_length=1, max_length=50, pattern=SKU_PATTERN)
    selections: dict[UUID, UUID]
    name: str | None = Field(default=None, max_length=100)
    weight_override: float | None = Field(default=None, gt=0)
    dimensions_override: DimensionsSchema | None = None
    created_at: datetime
    updated_at: datetime


class CompositionItemSchema(_Schema):
    """Persisted shape of a composition item."""

    id: UUID
    parent_sku: str = Field(min_length=1)
    child_sku: str = Field(min_length=1)
    quantity: StrictInt = Field(ge=1)
    created_at: datetime
    updated_at: datetime


# ============================================================================
# Error Collection
# ============================================================================


def schema_errors(schema: type[BaseModel], data: Mapping[str, Any]) -> list[FieldError]:
    """Run a schema against raw data and collect field errors.

    Args:
        schema: Pydantic schema to validate with.
        data: Raw data.

    Returns:
        Field errors, empty when the data is valid.
    """
    try:
        schema.model_validate(dict(data))
    except pydantic.ValidationError as exc:
        return [
            FieldError(
                field=".".join(str(part) for part in error["loc"]) or "__root__",
                message=error["msg"],
            )
            for error in exc.errors()
        ]
    return []


def ensure_valid(entity_type: str, errors: list[FieldError]) -> None:
    """Raise a ValidationError if any errors were collected.

    Args:
        entity_type: Entity name for the error message.
        errors: Collected field errors.

    Raises:
        ValidationError: If errors is not empty.
    """
    if errors:
        raise ValidationError(entity_type, errors)


# ============================================================================
# Validation Result
# ============================================================================


@dataclass(frozen=True)
class Validated(Generic[T]):
    """Outcome of validated construction.

    Holds either a constructed value or the field errors that prevented
    construction, never both.

    Attributes:
        entity_type: Name of the entity that was validated.
        value: Constructed value when validation passed.
        errors: Field errors when validation failed.
    """

    entity_type: str
    value: T | None = None
    errors: list[FieldError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        """Check whether construction succeeded."""
        return not self.errors

    def unwrap(self) -> T:
        """Get the value or raise the collected errors.

        Returns:
            The constructed value.

        Raises:
            ValidationError: If validation failed.
            ValueError: If the result was built without a value or errors.
        """
        ensure_valid(self.entity_type, self.errors)
        if self.value is None:
            raise ValueError(f"Validated {self.entity_type} holds neither a value nor errors")
        return self.value
