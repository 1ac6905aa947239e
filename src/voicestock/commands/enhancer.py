"""Fill gaps in incomplete candidates from session context."""

import logging
import re

from voicestock.commands.candidate import CONTEXT_RESOLVED_CONFIDENCE, CandidateCommand
from voicestock.commands.session_context import ContextEntry, RecentCommand

logger = logging.getLogger(__name__)

# "add 5 gallons of whole milk" -> unit, item
_HISTORY_COMMAND_PATTERN = re.compile(
    r"(?:add|remove|set)\s+\d+(?:\.\d+)?\s+(\w+)\s+of\s+([^,.]+)", re.IGNORECASE
)


class ContextEnhancer:
    """Resolve ellipsis such as "5 more" against recent commands and turns.

    Only fragments that state a quantity but lack an item or unit are
    enhanced, and fields the candidate already has are never overwritten.
    """

    def enhance(
        self,
        candidate: CandidateCommand,
        conversation_history: list[ContextEntry],
        recent_commands: list[RecentCommand],
    ) -> CandidateCommand:
        """Return the candidate with missing fields filled where context allows.

        Args:
            candidate: An incomplete candidate
            conversation_history: Recent turns, oldest first
            recent_commands: Recently completed commands, oldest first

        Returns:
            A new candidate; confidence is raised to at least 0.9 when the
            gaps are fully resolved.
        """
        if candidate.quantity is None or (candidate.item and candidate.unit):
            return candidate

        action, item, unit = candidate.action, candidate.item, candidate.unit

        if recent_commands:
            latest = recent_commands[-1]
            if not action or action == latest.action:
                item = item or latest.item
                unit = unit or latest.unit
                action = action or latest.action

        if not item or not unit:
            for entry in reversed(conversation_history):
                match = _HISTORY_COMMAND_PATTERN.search(entry.content)
                if match:
                    unit = unit or match.group(1)
                    item = item or match.group(2).strip()
                    break

        enhanced = candidate.with_fields(action=action, item=item, unit=unit)
        if enhanced.is_complete:
            logger.debug("Context resolved candidate to item=%s unit=%s", item, unit)
            enhanced = enhanced.with_fields(
                confidence=max(enhanced.confidence, CONTEXT_RESOLVED_CONFIDENCE)
            )
        return enhanced
