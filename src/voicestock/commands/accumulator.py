"""Time-windowed accumulation of partial commands.

A session holds at most one pending partial command. Incomplete candidates
that arrive within the context window are merged into it until the merged
record is complete; stale state is discarded lazily on the next arrival.
"""

import logging
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

from voicestock.commands.candidate import (
    MERGED_CONFIDENCE,
    UNKNOWN_ACTION,
    CandidateCommand,
    is_command_complete,
    score_confidence,
)

logger = logging.getLogger(__name__)


@dataclass
class PendingCommand:
    """The single in-flight partial command of a session."""

    action: str
    item: str
    quantity: float | None
    unit: str
    timestamp: float

    @property
    def is_complete(self) -> bool:
        return is_command_complete(self.action, self.item, self.quantity, self.unit)

    def to_candidate(self, confidence: float, is_complete: bool) -> CandidateCommand:
        return CandidateCommand(
            action=self.action,
            item=self.item,
            quantity=self.quantity,
            unit=self.unit,
            confidence=confidence,
            is_complete=is_complete,
        )


@dataclass
class AccumulatorOutcome:
    """Result of feeding one batch of candidates.

    ``completed`` holds actionable commands. ``partial`` is live feedback
    about the pending command and must never be acted upon.
    """

    completed: list[CandidateCommand] = field(default_factory=list)
    partial: CandidateCommand | None = None


class CommandAccumulator:
    """Per-session state machine with states Empty and Pending."""

    def __init__(
        self,
        window_ms: int = 5000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the accumulator.

        Args:
            window_ms: Span during which a partial command may still be extended
            clock: Monotonic clock in seconds
        """
        self.window_ms = window_ms
        self._clock = clock
        self._pending: PendingCommand | None = None

    @property
    def pending(self) -> PendingCommand | None:
        return self._pending

    def _is_live(self, now: float) -> bool:
        return (
            self._pending is not None
            and (now - self._pending.timestamp) * 1000 <= self.window_ms
        )

    def expire_if_stale(self) -> bool:
        """Drop the pending command if its window has passed.

        Returns:
            True if a stale command was discarded.
        """
        if self._pending is not None and not self._is_live(self._clock()):
            logger.debug("Discarding stale pending command for item=%s", self._pending.item)
            self._pending = None
            return True
        return False

    def reset(self) -> None:
        self._pending = None

    def _merge(self, candidate: CandidateCommand, now: float) -> PendingCommand:
        pending = self._pending
        if candidate.action and pending.action and candidate.action != pending.action:
            logger.warning(
                "Conflicting action while merging: pending=%s incoming=%s; incoming wins",
                pending.action,
                candidate.action,
            )
        return PendingCommand(
            action=candidate.action or pending.action,
            item=candidate.item or pending.item,
            quantity=candidate.quantity if candidate.quantity is not None else pending.quantity,
            unit=candidate.unit or pending.unit,
            timestamp=now,
        )

    def process(self, candidates: Iterable[CandidateCommand]) -> AccumulatorOutcome:
        """Feed candidates in arrival order.

        Complete candidates bypass the pending command entirely. Incomplete
        candidates merge into a live pending command, or start a new one.
        """
        outcome = AccumulatorOutcome()
        unresolved: CandidateCommand | None = None

        for candidate in candidates:
            if candidate.is_complete:
                outcome.completed.append(candidate)
                continue

            # Placeholders from failed interpretation never touch pending state
            if candidate.action == UNKNOWN_ACTION:
                unresolved = candidate
                continue

            now = self._clock()
            if self._is_live(now):
                merged = self._merge(candidate, now)
                if merged.is_complete:
                    outcome.completed.append(merged.to_candidate(MERGED_CONFIDENCE, True))
                    self._pending = None
                else:
                    self._pending = merged
            else:
                if self._pending is not None:
                    logger.debug("Pending command expired; starting a new one")
                self._pending = PendingCommand(
                    action=candidate.action,
                    item=candidate.item,
                    quantity=candidate.quantity,
                    unit=candidate.unit,
                    timestamp=now,
                )

        if self._pending is not None:
            pending = self._pending
            outcome.partial = pending.to_candidate(
                score_confidence(pending.action, pending.item, pending.quantity),
                False,
            )
        else:
            outcome.partial = unresolved

        return outcome
