"""Ordered cascade deletion plans.

The store has no multi-key transactions, so a cascade is computed up
front as an explicit list of delete steps and then executed in order.
When a step fails, execution stops and the completed subset is reported
so the caller can reconcile; nothing is rolled back.
"""

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field

import structlog

logger = structlog.get_logger()

Deleter = Callable[[str], Awaitable[None]]


@dataclass(frozen=True)
class DeletionStep:
    """A single delete operation of a cascade.

    Attributes:
        entity_type: Type of record to delete (e.g., "CompositionItem").
        entity_id: Identity of the record.
    """

    entity_type: str
    entity_id: str

    def __str__(self) -> str:
        return f"{self.entity_type}({self.entity_id})"


@dataclass(frozen=True)
class DeletionPlan:
    """Delete steps for a root record, innermost dependents first.

    Attributes:
        root_type: Type of the record being deleted.
        root_id: Identity of the record being deleted.
        steps: Steps in execution order; the root is always last.
    """

    root_type: str
    root_id: str
    steps: list[DeletionStep] = field(default_factory=list)

    def count(self, entity_type: str) -> int:
        """Count planned deletions of a given type."""
        return sum(1 for step in self.steps if step.entity_type == entity_type)


@dataclass(frozen=True)
class CascadeResult:
    """Outcome of executing a deletion plan.

    Attributes:
        root_id: Identity of the record being deleted.
        success: Whether every step completed.
        completed_steps: Steps that completed, in execution order.
        failed_step: The step that failed, if any.
        error: Error message of the failed step.
    """

    root_id: str
    success: bool
    completed_steps: list[DeletionStep] = field(default_factory=list)
    failed_step: DeletionStep | None = None
    error: str | None = None

    @classmethod
    def successful(cls, root_id: str, completed: list[DeletionStep]) -> "CascadeResult":
        """Create a successful result.

        Args:
            root_id: Deleted root identity.
            completed: All executed steps.

        Returns:
            Successful CascadeResult.
        """
        return cls(root_id=root_id, success=True, completed_steps=completed)

    @classmethod
    def failed(
        cls,
        root_id: str,
        completed: list[DeletionStep],
        failed_step: DeletionStep,
        error: str,
    ) -> "CascadeResult":
        """Create a failed result.

        Args:
            root_id: Root identity.
            completed: Steps executed before the failure.
            failed_step: Step that failed.
            error: Error message.

        Returns:
            Failed CascadeResult.
        """
        return cls(
            root_id=root_id,
            success=False,
            completed_steps=completed,
            failed_step=failed_step,
            error=error,
        )


async def execute_plan(plan: DeletionPlan, deleters: Mapping[str, Deleter]) -> CascadeResult:
    """Execute a deletion plan step by step.

    Args:
        plan: Plan to execute.
        deleters: Delete coroutine per entity type.

    Returns:
        Cascade result with the completed subset.
    """
    completed: list[DeletionStep] = []
    for step in plan.steps:
        try:
            await deleters[step.entity_type](step.entity_id)
        except Exception as exc:
            logger.error(
                "Cascade deletion stopped",
                root_type=plan.root_type,
                root_id=plan.root_id,
                failed_step=str(step),
                completed_steps=len(completed),
                error=str(exc),
            )
            return CascadeResult.failed(plan.root_id, completed, step, str(exc))
        completed.append(step)

    logger.info(
        "Cascade deletion completed",
        root_type=plan.root_type,
        root_id=plan.root_id,
        deleted=len(completed),
    )
    return CascadeResult.successful(plan.root_id, completed)
