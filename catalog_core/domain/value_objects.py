"""Value Objects for the domain layer.

Value objects are immutable objects that are defined by their attributes
rather than identity. They are interchangeable when their values are equal.
"""

from dataclasses import dataclass
from typing import Any, Self

from catalog_core.domain.base import ValueObject
from catalog_core.domain.exceptions import InvalidValueError


def _require_positive(value_type: str, field: str, value: Any) -> None:
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidValueError(value_type, field, f"{field.capitalize()} must be a number")
    if value <= 0:
        raise InvalidValueError(
            value_type, field, f"{field.capitalize()} must be a positive number"
        )


# ============================================================================
# Dimensions Value Object
# ============================================================================


@dataclass(frozen=True)
class Dimensions(ValueObject):
    """Physical dimensions of a product (Height × Width × Depth).

    Attributes:
        height: Height in centimetres.
        width: Width in centimetres.
        depth: Depth in centimetres.
    """

    height: float
    width: float
    depth: float

    def __post_init__(self) -> None:
        """Validate all measures are positive."""
        _require_positive("Dimensions", "height", self.height)
        _require_positive("Dimensions", "width", self.width)
        _require_positive("Dimensions", "depth", self.depth)

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> Self:
        """Create dimensions from a JSON dictionary.

        Args:
            data: Dictionary with height, width and depth.

        Returns:
            Dimensions instance.
        """
        return cls(height=data["height"], width=data["width"], depth=data["depth"])

    @classmethod
    def coerce(cls, value: "Dimensions | dict[str, Any] | None") -> "Dimensions | None":
        """Accept either a Dimensions instance or its JSON form."""
        if value is None or isinstance(value, Dimensions):
            return value
        return cls.from_json(value)

    def volume(self) -> float:
        """Calculate volume.

        Returns:
            Height × width × depth.
        """
        return self.height * self.width * self.depth

    def to_json(self) -> dict[str, float]:
        return {"height": self.height, "width": self.width, "depth": self.depth}

    def __str__(self) -> str:
        return f"{self.height}×{self.width}×{self.depth}cm"


# ============================================================================
# Weight Value Object
# ============================================================================


@dataclass(frozen=True)
class Weight(ValueObject):
    """Product weight.

    Attributes:
        value: Weight in grams, strictly positive.
    """

    value: float

    def __post_init__(self) -> None:
        """Validate weight is positive."""
        _require_positive("Weight", "weight", self.value)

    @classmethod
    def coerce(cls, value: "Weight | float | None") -> "Weight | None":
        """Accept either a Weight instance or a raw number."""
        if value is None or isinstance(value, Weight):
            return value
        return cls(value=value)

    def __mul__(self, quantity: int) -> "Weight":
        """Multiply weight by quantity.

        Args:
            quantity: Positive multiplier.

        Returns:
            New Weight with product.
        """
        return Weight(value=self.value * quantity)

    def __rmul__(self, quantity: int) -> "Weight":
        return self.__mul__(quantity)

    def to_json(self) -> float:
        return self.value

    def __str__(self) -> str:
        return f"{self.value}g"


# ============================================================================
# Structural Flags
# ============================================================================


@dataclass(frozen=True)
class StructureFlags(ValueObject):
    """The structural state of a product.

    The four combinations are simple, composite, variable and
    composite+variable.

    Attributes:
        is_composite: Product is assembled from other products.
        has_variation: Product is offered in variations.
    """

    is_composite: bool
    has_variation: bool

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> Self:
        return cls(
            is_composite=bool(data["is_composite"]),
            has_variation=bool(data["has_variation"]),
        )

    def to_json(self) -> dict[str, bool]:
        return {"is_composite": self.is_composite, "has_variation": self.has_variation}

    def __str__(self) -> str:
        if self.is_composite and self.has_variation:
            return "composite+variable"
        if self.is_composite:
            return "composite"
        if self.has_variation:
            return "variable"
        return "simple"
