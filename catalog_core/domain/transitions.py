"""Structural transitions for products.

A product's structure is the pair (is_composite, has_variation). Changing
it may require migrating dependent composition and variation records.
The classifier below is a pure decision table; anything it does not
recognize is a caller bug and raises.

State diagram:
    SIMPLE ──────── enable-composite ────────► COMPOSITE
       ▲                                        │     ▲
       │                                        │     │
       │ disable-composite     enable-variations│     │disable-variations
       │                                        ▼     │
       └──────── disable-composite ──── COMPOSITE+VARIABLE
"""

from dataclasses import dataclass, replace
from enum import Enum

from catalog_core.domain.exceptions import UnsupportedTransitionError
from catalog_core.domain.value_objects import StructureFlags


class TransitionType(str, Enum):
    """Supported structural transitions."""

    ENABLE_COMPOSITE = "enable-composite"
    ENABLE_VARIATIONS = "enable-variations"
    DISABLE_VARIATIONS = "disable-variations"
    DISABLE_COMPOSITE = "disable-composite"

    def is_destructive(self) -> bool:
        """Check if this transition permanently deletes data.

        Returns:
            True if composition or variation records are discarded.
        """
        return _TRANSITION_CONFIGS[self].destructive

    def requires_migration(self) -> bool:
        """Check if dependent records must be moved or removed.

        Returns:
            True for every transition except enabling composition.
        """
        return self != TransitionType.ENABLE_COMPOSITE


# (current.is_composite, current.has_variation, target.is_composite, target.has_variation)
_DECISION_TABLE: dict[tuple[bool, bool, bool, bool], TransitionType] = {
    (False, False, True, False): TransitionType.ENABLE_COMPOSITE,
    (True, False, True, True): TransitionType.ENABLE_VARIATIONS,
    (True, True, True, False): TransitionType.DISABLE_VARIATIONS,
    (True, False, False, False): TransitionType.DISABLE_COMPOSITE,
    (True, True, False, False): TransitionType.DISABLE_COMPOSITE,
}


def classify_transition(
    current: StructureFlags,
    target: StructureFlags,
) -> TransitionType | None:
    """Determine which transition a flag change requires.

    Args:
        current: Current structural flags.
        target: Requested structural flags.

    Returns:
        The required transition, or None when target equals current.

    Raises:
        UnsupportedTransitionError: If the change is not a supported transition.
    """
    if current == target:
        return None

    key = (current.is_composite, current.has_variation, target.is_composite, target.has_variation)
    transition = _DECISION_TABLE.get(key)
    if transition is None:
        raise UnsupportedTransitionError(current.to_json(), target.to_json())
    return transition


def allowed_targets(current: StructureFlags) -> list[StructureFlags]:
    """Get the structures reachable from the current one in one transition.

    Args:
        current: Current structural flags.

    Returns:
        List of reachable target flags.
    """
    return [
        StructureFlags(is_composite=key[2], has_variation=key[3])
        for key in _DECISION_TABLE
        if key[:2] == (current.is_composite, current.has_variation)
    ]


# ============================================================================
# Transition Configuration
# ============================================================================


@dataclass(frozen=True)
class TransitionConfig:
    """Presentation and confirmation settings for a transition.

    Attributes:
        title: Dialog title.
        description: What the transition does.
        warning: Optional warning about data impact.
        confirm_text: Confirm button label.
        cancel_text: Cancel button label.
        destructive: Whether data is permanently deleted.
        requires_confirmation: Whether the user must explicitly confirm.
        warning_type: Severity ("info", "warning", "error").
    """

    title: str
    description: str
    confirm_text: str
    cancel_text: str
    destructive: bool
    requires_confirmation: bool
    warning_type: str
    warning: str | None = None


_TRANSITION_CONFIGS: dict[TransitionType, TransitionConfig] = {
    TransitionType.ENABLE_VARIATIONS: TransitionConfig(
        title="Enable Product Variations?",
        description=(
            'This will convert your existing composition into "Variation 1". '
            "You can then create additional variations with different compositions."
        ),
        warning="Your current composition will become the first variation. This action cannot be undone.",
        confirm_text="Enable Variations",
        cancel_text="Cancel",
        destructive=False,
        requires_confirmation=False,
        warning_type="info",
    ),
    TransitionType.DISABLE_COMPOSITE: TransitionConfig(
        title="Disable Composite Product?",
        description="This will permanently delete all composition data for this product.",
        warning=(
            "All composition items and variation data will be lost forever. "
            "This action cannot be undone."
        ),
        confirm_text="Delete Composition Data",
        cancel_text="Keep Composition",
        destructive=True,
        requires_confirmation=True,
        warning_type="error",
    ),
    TransitionType.DISABLE_VARIATIONS: TransitionConfig(
        title="Disable Product Variations?",
        description="This will permanently delete all variation-specific composition data.",
        warning=(
            "All variation compositions will be merged into a single composition "
            "or lost forever. This action cannot be undone."
        ),
        confirm_text="Delete Variation Data",
        cancel_text="Keep Variations",
        destructive=True,
        requires_confirmation=True,
        warning_type="error",
    ),
    TransitionType.ENABLE_COMPOSITE: TransitionConfig(
        title="Enable Composite Product?",
        description="This will allow you to add composition items to this product.",
        confirm_text="Enable Composition",
        cancel_text="Cancel",
        destructive=False,
        requires_confirmation=False,
        warning_type="info",
    ),
}


def get_transition_config(
    transition: TransitionType,
    existing_data_count: int = 0,
) -> TransitionConfig:
    """Get the configuration for a transition, tailored to the data at stake.

    Args:
        transition: Transition type.
        existing_data_count: Number of dependent composition items.

    Returns:
        A configuration copy; the registry itself is never modified.
    """
    config = _TRANSITION_CONFIGS[transition]
    if config.warning is None or existing_data_count <= 0:
        return config

    item_text = "item" if existing_data_count == 1 else "items"
    if transition == TransitionType.ENABLE_VARIATIONS:
        warning = f"{existing_data_count} composition {item_text} will be moved to the first variation."
    elif transition == TransitionType.DISABLE_COMPOSITE:
        warning = f"{existing_data_count} composition {item_text} will be permanently deleted."
    else:
        warning = "All variation compositions will be permanently deleted."
    return replace(config, warning=warning)
