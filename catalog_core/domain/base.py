"""Base classes for domain layer.

Provides foundational abstractions for value objects and entities.
Entities here are immutable records: every change produces a new value,
and the repositories are the only place where state is replaced.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Self


def utc_now() -> datetime:
    """Get the current timezone-aware UTC timestamp."""
    return datetime.now(timezone.utc)


def parse_timestamp(value: datetime | str) -> datetime:
    """Parse an ISO-8601 timestamp, assuming UTC when no offset is given.

    Args:
        value: ISO string or datetime.

    Returns:
        Timezone-aware datetime.
    """
    parsed = value if isinstance(value, datetime) else datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# ============================================================================
# Value Object Base
# ============================================================================


@dataclass(frozen=True)
class ValueObject(ABC):
    """Base class for value objects.

    Value objects are immutable and compared by their attributes,
    not by identity. They have no lifecycle and are interchangeable
    when their values are equal.

    Example:
        @dataclass(frozen=True)
        class Weight(ValueObject):
            value: float
    """

    pass


# ============================================================================
# Entity Base
# ============================================================================


@dataclass(frozen=True)
class Entity(ABC):
    """Base class for catalog entities.

    Entities have an identity that persists across updates. Because
    entities are immutable, an update returns a new instance with the
    same identity; field-wise equality therefore distinguishes versions
    while `same_identity` compares identities only.

    Attributes:
        created_at: Timestamp when the entity was created.
        updated_at: Timestamp of last modification.
    """

    @property
    @abstractmethod
    def identity(self) -> str:
        """Get the identity key used by repositories."""

    def same_identity(self, other: object) -> bool:
        """Compare entities by identity.

        Args:
            other: Object to compare with.

        Returns:
            True if other is same type with same identity.
        """
        if not isinstance(other, self.__class__):
            return False
        return self.identity == other.identity

    @abstractmethod
    def to_json(self) -> dict[str, Any]:
        """Convert entity to a JSON-compatible dictionary."""

    @classmethod
    @abstractmethod
    def from_json(cls, data: dict[str, Any]) -> Self:
        """Rebuild an entity from its JSON representation."""

    def _next_updated_at(self) -> datetime:
        """Get an updated_at value that never moves backwards."""
        now = utc_now()
        current: datetime = getattr(self, "updated_at")
        return now if now >= current else current
