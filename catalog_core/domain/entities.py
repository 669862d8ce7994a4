"""Domain entities for the product catalog.

Entities are immutable records validated at construction: no instance
can exist unless its data passed the entity schema and business rules.
`update` returns a new instance with the same identity and a bumped
`updated_at`.

Composition items reference their parent either by a bare product SKU
or by a variation-scoped key `"{sku}#{variation_item_id}"`.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Self
from uuid import uuid4

from catalog_core.domain.base import Entity, parse_timestamp, utc_now
from catalog_core.domain.exceptions import FieldError, ValidationError
from catalog_core.domain.validation import (
    CompositionItemSchema,
    ProductSchema,
    ProductVariationItemSchema,
    Validated,
    VariationSchema,
    VariationTypeSchema,
    ensure_valid,
    schema_errors,
)
from catalog_core.domain.value_objects import Dimensions, StructureFlags, Weight

PARENT_KEY_SEPARATOR = "#"


def variation_parent_key(product_sku: str, variation_item_id: str) -> str:
    """Build the composition parent key for a product variation.

    Args:
        product_sku: SKU of the composite+variable product.
        variation_item_id: ID of the product variation item.

    Returns:
        Key of the form "SKU#id".
    """
    return f"{product_sku}{PARENT_KEY_SEPARATOR}{variation_item_id}"


def split_parent_key(parent_key: str) -> tuple[str, str | None]:
    """Split a composition parent key into SKU and variation item ID.

    Args:
        parent_key: Bare SKU or "SKU#id".

    Returns:
        Tuple of (base SKU, variation item ID or None).
    """
    base, sep, variation_id = parent_key.partition(PARENT_KEY_SEPARATOR)
    return base, (variation_id if sep else None)


def normalize_name(name: str) -> str:
    """Normalize a name for case- and whitespace-insensitive comparison."""
    return name.lower().strip()


def _payload(data: Mapping[str, Any]) -> dict[str, Any]:
    # value objects are validated by the schema in their JSON form
    return {
        key: value.to_json() if isinstance(value, (Dimensions, Weight)) else value
        for key, value in data.items()
    }


def _add_unexpected_keys(
    errors: list[FieldError],
    data: Mapping[str, Any],
    accepted: frozenset[str],
) -> None:
    # timestamps are generated, so the schema never sees caller-supplied ones
    reported = {error.field for error in errors}
    errors.extend(
        FieldError(field=key, message=f"{key} cannot be set on creation")
        for key in data
        if key not in accepted and key not in reported
    )


def _check_update_keys(entity_type: str, changes: Mapping[str, Any], allowed: set[str]) -> None:
    errors = [
        FieldError(field=key, message=f"{key} cannot be modified")
        for key in changes
        if key not in allowed
    ]
    ensure_valid(entity_type, errors)


# ============================================================================
# Product
# ============================================================================


@dataclass(frozen=True)
class Product(Entity):
    """A catalog product.

    Composite products compute weight and dimensions from their children,
    so their own values are ignored. Variable products are never used
    directly in a composition; only their variations are.

    Attributes:
        sku: Immutable identifier (uppercase letters, digits, hyphens).
        name: Display name.
        is_composite: Product is assembled from other products.
        has_variation: Product is offered in variations.
        dimensions: Optional physical dimensions.
        weight: Optional weight.
        created_at: Creation timestamp.
        updated_at: Last modification timestamp.
    """

    CREATABLE = frozenset({"sku", "name", "is_composite", "has_variation", "dimensions", "weight"})
    UPDATABLE = frozenset({"name", "dimensions", "weight", "is_composite", "has_variation"})

    sku: str
    name: str
    is_composite: bool = False
    has_variation: bool = False
    dimensions: Dimensions | None = None
    weight: Weight | None = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    def __post_init__(self) -> None:
        """Coerce raw value objects and validate."""
        object.__setattr__(self, "dimensions", Dimensions.coerce(self.dimensions))
        object.__setattr__(self, "weight", Weight.coerce(self.weight))
        ensure_valid("Product", schema_errors(ProductSchema, self.to_json()))

    @property
    def identity(self) -> str:
        return self.sku

    @property
    def structure(self) -> StructureFlags:
        """Get the structural flags of this product."""
        return StructureFlags(is_composite=self.is_composite, has_variation=self.has_variation)

    @classmethod
    def validate(cls, data: Mapping[str, Any]) -> list[FieldError]:
        """Validate raw creation data without constructing a product.

        Args:
            data: Creation data (sku, name, flags, optional measures).

        Returns:
            Field errors, empty when the data is valid.
        """
        now = utc_now().isoformat()
        payload = {
            "is_composite": False,
            "has_variation": False,
            **_payload(data),
            "created_at": now,
            "updated_at": now,
        }
        errors = schema_errors(ProductSchema, payload)
        _add_unexpected_keys(errors, data, cls.CREATABLE)
        return errors

    @classmethod
    def create(
        cls,
        sku: str,
        name: str,
        *,
        is_composite: bool = False,
        has_variation: bool = False,
        dimensions: Dimensions | dict[str, Any] | None = None,
        weight: Weight | float | None = None,
    ) -> "Product":
        """Create a new product.

        Args:
            sku: Product SKU.
            name: Product name.
            is_composite: Composite flag.
            has_variation: Variation flag.
            dimensions: Optional dimensions.
            weight: Optional weight.

        Returns:
            New Product instance.

        Raises:
            ValidationError: If any field is invalid.
        """
        now = utc_now()
        return cls(
            sku=sku,
            name=name,
            is_composite=is_composite,
            has_variation=has_variation,
            dimensions=Dimensions.coerce(dimensions),
            weight=Weight.coerce(weight),
            created_at=now,
            updated_at=now,
        )

    @classmethod
    def try_create(cls, data: Mapping[str, Any]) -> Validated["Product"]:
        """Validate and construct a product without raising.

        Args:
            data: Creation data.

        Returns:
            Validated result holding the product or its field errors.
        """
        errors = cls.validate(data)
        if errors:
            return Validated("Product", errors=errors)
        return Validated("Product", value=cls.create(**data))

    def update(self, **changes: Any) -> "Product":
        """Return an updated copy of this product.

        Only the given fields change; passing None clears an optional
        field. The SKU can never change.

        Args:
            **changes: Fields to change.

        Returns:
            Updated Product with a bumped updated_at.

        Raises:
            ValidationError: If a field cannot be modified or is invalid.
        """
        _check_update_keys("Product", changes, self.UPDATABLE)
        return replace(self, **changes, updated_at=self._next_updated_at())

    def should_ignore_weight(self) -> bool:
        """Check if own weight/dimensions are ignored (composite products)."""
        return self.is_composite

    def can_be_used_in_composition(self) -> bool:
        """Check if this product can be a composition child.

        Variable products cannot; only their specific variations can.
        """
        return not self.has_variation

    def is_simple(self) -> bool:
        """Check if product is neither composite nor variable."""
        return not self.is_composite and not self.has_variation

    def to_json(self) -> dict[str, Any]:
        return {
            "sku": self.sku,
            "name": self.name,
            "dimensions": self.dimensions.to_json() if self.dimensions else None,
            "weight": self.weight.to_json() if self.weight else None,
            "is_composite": self.is_composite,
            "has_variation": self.has_variation,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> Self:
        ensure_valid("Product", schema_errors(ProductSchema, data))
        return cls(
            sku=data["sku"],
            name=data["name"],
            is_composite=data["is_composite"],
            has_variation=data["has_variation"],
            dimensions=Dimensions.coerce(data.get("dimensions")),
            weight=Weight.coerce(data.get("weight")),
            created_at=parse_timestamp(data["created_at"]),
            updated_at=parse_timestamp(data["updated_at"]),
        )


# ============================================================================
# Variation Type
# ============================================================================


@dataclass(frozen=True)
class VariationType(Entity):
    """A dimension along which products vary (e.g., "Color", "Size").

    Attributes:
        id: UUID string.
        name: Unique name (case/whitespace-insensitive).
        modifies_weight: Variations of this type change product weight.
        modifies_dimensions: Variations of this type change dimensions.
        created_at: Creation timestamp.
        updated_at: Last modification timestamp.
    """

    CREATABLE = frozenset({"id", "name", "modifies_weight", "modifies_dimensions"})
    UPDATABLE = frozenset({"name", "modifies_weight", "modifies_dimensions"})

    id: str
    name: str
    modifies_weight: bool = False
    modifies_dimensions: bool = False
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    def __post_init__(self) -> None:
        ensure_valid("VariationType", schema_errors(VariationTypeSchema, self.to_json()))

    @property
    def identity(self) -> str:
        return self.id

    @classmethod
    def validate(cls, data: Mapping[str, Any]) -> list[FieldError]:
        """Validate raw creation data without constructing a variation type."""
        now = utc_now().isoformat()
        payload = {
            "id": str(uuid4()),
            "modifies_weight": False,
            "modifies_dimensions": False,
            **data,
            "created_at": now,
            "updated_at": now,
        }
        errors = schema_errors(VariationTypeSchema, payload)
        _add_unexpected_keys(errors, data, cls.CREATABLE)
        return errors

    @classmethod
    def create(
        cls,
        name: str,
        *,
        modifies_weight: bool = False,
        modifies_dimensions: bool = False,
        id: str | None = None,
    ) -> "VariationType":
        """Create a new variation type with a generated ID."""
        now = utc_now()
        return cls(
            id=id or str(uuid4()),
            name=name,
            modifies_weight=modifies_weight,
            modifies_dimensions=modifies_dimensions,
            created_at=now,
            updated_at=now,
        )

    @classmethod
    def try_create(cls, data: Mapping[str, Any]) -> Validated["VariationType"]:
        errors = cls.validate(data)
        if errors:
            return Validated("VariationType", errors=errors)
        return Validated("VariationType", value=cls.create(**data))

    def update(self, **changes: Any) -> "VariationType":
        _check_update_keys("VariationType", changes, self.UPDATABLE)
        return replace(self, **changes, updated_at=self._next_updated_at())

    def normalized_name(self) -> str:
        return normalize_name(self.name)

    def affects_calculations(self) -> bool:
        """Check if variations of this type change weight or dimensions."""
        return self.modifies_weight or self.modifies_dimensions

    def to_json(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "modifies_weight": self.modifies_weight,
            "modifies_dimensions": self.modifies_dimensions,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> Self:
        ensure_valid("VariationType", schema_errors(VariationTypeSchema, data))
        return cls(
            id=data["id"],
            name=data["name"],
            modifies_weight=data["modifies_weight"],
            modifies_dimensions=data["modifies_dimensions"],
            created_at=parse_timestamp(data["created_at"]),
            updated_at=parse_timestamp(data["updated_at"]),
        )


# ============================================================================
# Variation
# ============================================================================


@dataclass(frozen=True)
class Variation(Entity):
    """A named value of a variation type (e.g., "Red" of "Color").

    Attributes:
        id: UUID string.
        variation_type_id: Owning variation type.
        name: Name, unique within the variation type.
        created_at: Creation timestamp.
        updated_at: Last modification timestamp.
    """

    CREATABLE = frozenset({"id", "variation_type_id", "name"})
    UPDATABLE = frozenset({"name", "variation_type_id"})

    id: str
    variation_type_id: str
    name: str
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    def __post_init__(self) -> None:
        ensure_valid("Variation", schema_errors(VariationSchema, self.to_json()))

    @property
    def identity(self) -> str:
        return self.id

    @classmethod
    def validate(cls, data: Mapping[str, Any]) -> list[FieldError]:
        """Validate raw creation data without constructing a variation."""
        now = utc_now().isoformat()
        payload = {"id": str(uuid4()), **data, "created_at": now, "updated_at": now}
        errors = schema_errors(VariationSchema, payload)
        _add_unexpected_keys(errors, data, cls.CREATABLE)
        return errors

    @classmethod
    def create(cls, variation_type_id: str, name: str, *, id: str | None = None) -> "Variation":
        """Create a new variation with a generated ID."""
        now = utc_now()
        return cls(
            id=id or str(uuid4()),
            variation_type_id=variation_type_id,
            name=name,
            created_at=now,
            updated_at=now,
        )

    @classmethod
    def try_create(cls, data: Mapping[str, Any]) -> Validated["Variation"]:
        errors = cls.validate(data)
        if errors:
            return Validated("Variation", errors=errors)
        return Validated("Variation", value=cls.create(**data))

    def update(self, **changes: Any) -> "Variation":
        _check_update_keys("Variation", changes, self.UPDATABLE)
        return replace(self, **changes, updated_at=self._next_updated_at())

    def normalized_name(self) -> str:
        return normalize_name(self.name)

    def type_unique_key(self) -> str:
        """Key identifying this variation's name within its type."""
        return f"{self.variation_type_id}:{self.normalized_name()}"

    def to_json(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "variation_type_id": self.variation_type_id,
            "name": self.name,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> Self:
        ensure_valid("Variation", schema_errors(VariationSchema, data))
        return cls(
            id=data["id"],
            variation_type_id=data["variation_type_id"],
            name=data["name"],
            created_at=parse_timestamp(data["created_at"]),
            updated_at=parse_timestamp(data["updated_at"]),
        )


# ============================================================================
# Product Variation Item
# ============================================================================


@dataclass(frozen=True)
class ProductVariationItem(Entity):
    """One concrete variant of a variable product.

    Attributes:
        id: UUID string.
        product_sku: Owning product.
        selections: Variation type ID -> selected variation ID.
        name: Optional display name.
        weight_override: Weight replacing the product's own weight.
        dimensions_override: Dimensions replacing the product's own.
        created_at: Creation timestamp.
        updated_at: Last modification timestamp.
    """

    CREATABLE = frozenset(
        {"id", "product_sku", "selections", "name", "weight_override", "dimensions_override"}
    )
    UPDATABLE = frozenset({"selections", "name", "weight_override", "dimensions_override"})

    id: str
    product_sku: str
    selections: dict[str, str] = field(default_factory=dict)
    name: str | None = None
    weight_override: Weight | None = None
    dimensions_override: Dimensions | None = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    def __post_init__(self) -> None:
        object.__setattr__(self, "selections", dict(self.selections))
        object.__setattr__(self, "weight_override", Weight.coerce(self.weight_override))
        object.__setattr__(
            self, "dimensions_override", Dimensions.coerce(self.dimensions_override)
        )
        ensure_valid(
            "ProductVariationItem",
            schema_errors(ProductVariationItemSchema, self.to_json()),
        )

    @property
    def identity(self) -> str:
        return self.id

    @classmethod
    def validate(cls, data: Mapping[str, Any]) -> list[FieldError]:
        """Validate raw creation data without constructing an item."""
        now = utc_now().isoformat()
        payload = {
            "id": str(uuid4()),
            "selections": {},
            **_payload(data),
            "created_at": now,
            "updated_at": now,
        }
        errors = schema_errors(ProductVariationItemSchema, payload)
        _add_unexpected_keys(errors, data, cls.CREATABLE)
        return errors

    @classmethod
    def create(
        cls,
        product_sku: str,
        selections: Mapping[str, str],
        *,
        name: str | None = None,
        weight_override: Weight | float | None = None,
        dimensions_override: Dimensions | dict[str, Any] | None = None,
        id: str | None = None,
    ) -> "ProductVariationItem":
        """Create a new product variation item with a generated ID."""
        now = utc_now()
        return cls(
            id=id or str(uuid4()),
            product_sku=product_sku,
            selections=dict(selections),
            name=name,
            weight_override=Weight.coerce(weight_override),
            dimensions_override=Dimensions.coerce(dimensions_override),
            created_at=now,
            updated_at=now,
        )

    @classmethod
    def try_create(cls, data: Mapping[str, Any]) -> Validated["ProductVariationItem"]:
        errors = cls.validate(data)
        if errors:
            return Validated("ProductVariationItem", errors=errors)
        return Validated("ProductVariationItem", value=cls.create(**data))

    def update(self, **changes: Any) -> "ProductVariationItem":
        _check_update_keys("ProductVariationItem", changes, self.UPDATABLE)
        return replace(self, **changes, updated_at=self._next_updated_at())

    def selection_hash(self) -> str:
        """Canonical representation of the selections, independent of order."""
        return "|".join(
            f"{type_id}:{variation_id}"
            for type_id, variation_id in sorted(self.selections.items())
        )

    def has_same_selections(self, other: "ProductVariationItem") -> bool:
        return self.selection_hash() == other.selection_hash()

    def variation_type_ids(self) -> list[str]:
        return list(self.selections)

    def variation_id_for(self, variation_type_id: str) -> str | None:
        return self.selections.get(variation_type_id)

    def composition_key(self) -> str:
        """Parent key used by composition items of this variation."""
        return variation_parent_key(self.product_sku, self.id)

    def effective_weight(self, base: Weight | None) -> Weight | None:
        """Get the override weight, falling back to the product weight."""
        return self.weight_override if self.weight_override is not None else base

    def effective_dimensions(self, base: Dimensions | None) -> Dimensions | None:
        """Get the override dimensions, falling back to the product's."""
        return self.dimensions_override if self.dimensions_override is not None else base

    def to_json(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "product_sku": self.product_sku,
            "selections": dict(self.selections),
            "name": self.name,
            "weight_override": self.weight_override.to_json() if self.weight_override else None,
            "dimensions_override": (
                self.dimensions_override.to_json() if self.dimensions_override else None
            ),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> Self:
        ensure_valid("ProductVariationItem", schema_errors(ProductVariationItemSchema, data))
        return cls(
            id=data["id"],
            product_sku=data["product_sku"],
            selections=data.get("selections") or {},
            name=data.get("name"),
            weight_override=Weight.coerce(data.get("weight_override")),
            dimensions_override=Dimensions.coerce(data.get("dimensions_override")),
            created_at=parse_timestamp(data["created_at"]),
            updated_at=parse_timestamp(data["updated_at"]),
        )


# ============================================================================
# Composition Item
# ============================================================================


@dataclass(frozen=True)
class CompositionItem(Entity):
    """A parent → child quantity edge of a composite product.

    Attributes:
        id: UUID string.
        parent_sku: Bare parent SKU, or "SKU#variation_item_id".
        child_sku: SKU of a non-variable product.
        quantity: Number of child units, at least 1.
        created_at: Creation timestamp.
        updated_at: Last modification timestamp.
    """

    CREATABLE = frozenset({"id", "parent_sku", "child_sku", "quantity"})
    UPDATABLE = frozenset({"child_sku", "quantity"})

    id: str
    parent_sku: str
    child_sku: str
    quantity: int = 1
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    def __post_init__(self) -> None:
        errors = schema_errors(CompositionItemSchema, self.to_json())
        errors.extend(self._rule_errors(self.parent_sku, self.child_sku))
        ensure_valid("CompositionItem", errors)

    @staticmethod
    def _rule_errors(parent_sku: Any, child_sku: Any) -> list[FieldError]:
        if isinstance(parent_sku, str) and split_parent_key(parent_sku)[0] == child_sku:
            return [FieldError(field="child_sku", message="A product cannot be composed of itself")]
        return []

    @property
    def identity(self) -> str:
        return self.id

    @classmethod
    def validate(cls, data: Mapping[str, Any]) -> list[FieldError]:
        """Validate raw creation data without constructing an item."""
        now = utc_now().isoformat()
        payload = {"id": str(uuid4()), "quantity": 1, **data, "created_at": now, "updated_at": now}
        errors = schema_errors(CompositionItemSchema, payload)
        errors.extend(cls._rule_errors(data.get("parent_sku"), data.get("child_sku")))
        _add_unexpected_keys(errors, data, cls.CREATABLE)
        return errors

    @classmethod
    def create(
        cls,
        parent_sku: str,
        child_sku: str,
        quantity: int = 1,
        *,
        id: str | None = None,
    ) -> "CompositionItem":
        """Create a new composition item with a generated ID."""
        now = utc_now()
        return cls(
            id=id or str(uuid4()),
            parent_sku=parent_sku,
            child_sku=child_sku,
            quantity=quantity,
            created_at=now,
            updated_at=now,
        )

    @classmethod
    def try_create(cls, data: Mapping[str, Any]) -> Validated["CompositionItem"]:
        errors = cls.validate(data)
        if errors:
            return Validated("CompositionItem", errors=errors)
        return Validated("CompositionItem", value=cls.create(**data))

    def update(self, **changes: Any) -> "CompositionItem":
        _check_update_keys("CompositionItem", changes, self.UPDATABLE)
        return replace(self, **changes, updated_at=self._next_updated_at())

    def reparent(self, parent_sku: str) -> "CompositionItem":
        """Return a copy attached to another parent key, keeping identity.

        Only used by structural migrations, which move items between the
        bare SKU and its variation-scoped keys.
        """
        if split_parent_key(parent_sku)[0] != self.parent_base_sku():
            raise ValidationError(
                "CompositionItem",
                [FieldError(field="parent_sku", message="Items can only move within one product")],
            )
        return replace(self, parent_sku=parent_sku, updated_at=self._next_updated_at())

    def parent_base_sku(self) -> str:
        return split_parent_key(self.parent_sku)[0]

    def parent_variation_id(self) -> str | None:
        return split_parent_key(self.parent_sku)[1]

    def is_variation_scoped(self) -> bool:
        return self.parent_variation_id() is not None

    def composition_key(self) -> str:
        return f"{self.parent_sku}:{self.child_sku}"

    def to_json(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "parent_sku": self.parent_sku,
            "child_sku": self.child_sku,
            "quantity": self.quantity,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> Self:
        ensure_valid("CompositionItem", schema_errors(CompositionItemSchema, data))
        return cls(
            id=data["id"],
            parent_sku=data["parent_sku"],
            child_sku=data["child_sku"],
            quantity=data["quantity"],
            created_at=parse_timestamp(data["created_at"]),
            updated_at=parse_timestamp(data["updated_at"]),
        )
