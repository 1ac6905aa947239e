"""Candidate command type and the completeness/confidence rules."""

from dataclasses import dataclass, replace
from typing import Any

ACTIONS_NEEDING_UNIT = frozenset({"set"})
ACTIONS_NEEDING_QUANTITY = frozenset({"add", "remove", "set"})

UNDO_ACTION = "undo"
UNKNOWN_ACTION = "unknown"

# Confidence for commands finished by merging several fragments
MERGED_CONFIDENCE = 0.95
UNDO_CONFIDENCE = 0.95
# Floor for commands whose gaps were filled from session context
CONTEXT_RESOLVED_CONFIDENCE = 0.9
PLACEHOLDER_CONFIDENCE = 0.3


def is_command_complete(
    action: str, item: str, quantity: float | None, unit: str
) -> bool:
    """Decide whether a command carries everything its action needs.

    ``set`` needs item, quantity and unit; ``add``/``remove`` need item and
    quantity; ``undo`` is always complete; any other action never is.
    """
    if action == UNDO_ACTION:
        return True

    if action not in ACTIONS_NEEDING_QUANTITY:
        return False

    if not item or quantity is None:
        return False

    if action in ACTIONS_NEEDING_UNIT and not unit:
        return False

    return True


def score_confidence(action: str, item: str, quantity: float | None) -> float:
    """Score how much of a command's meaning has been pinned down."""
    if action == UNDO_ACTION:
        return UNDO_CONFIDENCE
    if action and item and quantity is not None:
        return 0.8
    if action and item:
        return 0.6
    if action:
        return 0.45
    return PLACEHOLDER_CONFIDENCE


@dataclass(frozen=True)
class CandidateCommand:
    """One extraction attempt's structured guess at an inventory command."""

    action: str = ""
    item: str = ""
    quantity: float | None = None
    unit: str = ""
    confidence: float = PLACEHOLDER_CONFIDENCE
    is_complete: bool = False

    @classmethod
    def build(
        cls,
        action: str = "",
        item: str = "",
        quantity: float | None = None,
        unit: str = "",
        confidence: float | None = None,
    ) -> "CandidateCommand":
        """Create a candidate with completeness derived from its fields.

        When ``confidence`` is None the field-based score is used.
        """
        if confidence is None:
            confidence = score_confidence(action, item, quantity)
        return cls(
            action=action,
            item=item,
            quantity=quantity,
            unit=unit,
            confidence=confidence,
            is_complete=is_command_complete(action, item, quantity, unit),
        )

    @classmethod
    def undo(cls) -> "CandidateCommand":
        """Standalone undo command; complete with no item/quantity/unit."""
        return cls(action=UNDO_ACTION, confidence=UNDO_CONFIDENCE, is_complete=True)

    @classmethod
    def placeholder(cls) -> "CandidateCommand":
        """Low-confidence result used when interpretation is impossible."""
        return cls(
            action=UNKNOWN_ACTION,
            item="unknown",
            confidence=PLACEHOLDER_CONFIDENCE,
            is_complete=False,
        )

    @property
    def is_undo(self) -> bool:
        return self.action == UNDO_ACTION

    def with_fields(self, **changes: Any) -> "CandidateCommand":
        """Return a copy with changed fields and completeness recomputed."""
        updated = replace(self, **changes)
        return replace(
            updated,
            is_complete=is_command_complete(
                updated.action, updated.item, updated.quantity, updated.unit
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for API responses."""
        return {
            "action": self.action,
            "item": self.item,
            "quantity": self.quantity,
            "unit": self.unit,
            "confidence": self.confidence,
            "is_complete": self.is_complete,
        }
