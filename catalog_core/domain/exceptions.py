"""Domain exceptions.

All catalog-level errors. Validation errors are raised at the point of
invalid input, integrity violations by repository hooks before any
mutation, and migration errors are captured into migration results by
the migration service rather than propagated.
"""

from dataclasses import dataclass
from typing import Any


class CatalogError(Exception):
    """Base class for all catalog exceptions.

    All catalog errors inherit from this class to allow catching
    domain-specific errors at the application layer.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize catalog error.

        Args:
            message: Human-readable error message.
            details: Optional dictionary with additional error context.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


# ============================================================================
# Validation Errors
# ============================================================================


@dataclass(frozen=True)
class FieldError:
    """A single field-level validation failure.

    Attributes:
        field: Dotted path of the offending field (e.g. "dimensions.height").
        message: Human-readable description of the problem.
    """

    field: str
    message: str

    def __str__(self) -> str:
        return f"{self.field}: {self.message}"


class ValidationError(CatalogError):
    """Raised when entity data fails schema or business-rule validation."""

    def __init__(self, entity_type: str, errors: list[FieldError]) -> None:
        """Initialize validation error.

        Args:
            entity_type: Entity being validated (e.g., "Product").
            errors: Field errors that were found.
        """
        summary = "; ".join(str(e) for e in errors)
        super().__init__(
            f"Invalid {entity_type} data: {summary}",
            details={
                "entity_type": entity_type,
                "errors": [{"field": e.field, "message": e.message} for e in errors],
            },
        )
        self.entity_type = entity_type
        self.errors = errors


class InvalidValueError(ValidationError):
    """Raised when a value object is constructed with an invalid value."""

    def __init__(self, value_type: str, field: str, message: str) -> None:
        """Initialize invalid value error.

        Args:
            value_type: Value object type (e.g., "Dimensions").
            field: Offending field.
            message: Reason the value is invalid.
        """
        super().__init__(value_type, [FieldError(field=field, message=message)])


# ============================================================================
# Repository Errors
# ============================================================================


class EntityNotFoundError(CatalogError):
    """Raised when a referenced record does not exist."""

    def __init__(self, entity_type: str, entity_id: str) -> None:
        """Initialize not found error.

        Args:
            entity_type: Type of entity (e.g., "Product").
            entity_id: Identity that was looked up.
        """
        super().__init__(
            f"{entity_type} with ID '{entity_id}' not found",
            details={"entity_type": entity_type, "entity_id": entity_id},
        )


class IntegrityViolationError(CatalogError):
    """Raised when an operation would break referential integrity.

    The message is the first blocking reason; all reasons are kept in
    `reasons` and in `details`.
    """

    def __init__(self, reasons: list[str], entity_type: str | None = None) -> None:
        """Initialize integrity violation error.

        Args:
            reasons: Blocking reasons, in the order they were found.
            entity_type: Optional entity type involved.
        """
        super().__init__(
            reasons[0] if reasons else "Integrity violation",
            details={"entity_type": entity_type, "reasons": reasons},
        )
        self.reasons = reasons


class DuplicateNameError(IntegrityViolationError):
    """Raised when a name collides with an existing record."""

    pass


class StorageError(CatalogError):
    """Raised when the key-value store fails to read or write."""

    def __init__(
        self,
        message: str,
        operation: str,
        cause: BaseException | None = None,
    ) -> None:
        """Initialize storage error.

        Args:
            message: Human-readable error message.
            operation: Repository or store operation that failed.
            cause: Underlying exception, if any.
        """
        super().__init__(
            message,
            details={"operation": operation, "cause": str(cause) if cause else None},
        )
        self.operation = operation
        self.cause = cause


# ============================================================================
# Transition Errors
# ============================================================================


class UnsupportedTransitionError(CatalogError):
    """Raised when a structural flag change has no supported transition.

    This signals a programming error in the caller: the edit should not
    have been offered.
    """

    def __init__(self, current: dict[str, bool], target: dict[str, bool]) -> None:
        """Initialize unsupported transition error.

        Args:
            current: Current structural flags.
            target: Requested structural flags.
        """
        super().__init__(
            f"Unsupported product transition from {current} to {target}",
            details={"current": current, "target": target},
        )


class NoPendingTransitionError(CatalogError):
    """Raised when executing a transition that was never opened."""

    def __init__(self) -> None:
        super().__init__("No transition in progress")


# ============================================================================
# Migration Errors
# ============================================================================


class MigrationError(CatalogError):
    """A migration step failure.

    Migration errors are captured into `MigrationResult.errors` by the
    migration service; they are only raised internally to abort a run.
    """

    def __init__(
        self,
        message: str,
        code: str,
        step: str | None = None,
        recoverable: bool = True,
    ) -> None:
        """Initialize migration error.

        Args:
            message: Human-readable error message.
            code: Machine-readable code (e.g., "PRODUCT_NOT_FOUND").
            step: Migration step where the failure happened.
            recoverable: Whether retrying may succeed.
        """
        super().__init__(
            message,
            details={"code": code, "step": step, "recoverable": recoverable},
        )
        self.code = code
        self.step = step
        self.recoverable = recoverable
