"""Wrap the language-understanding provider and normalize its output."""

import asyncio
import json
import logging
import math
import re
import time
from typing import Any

from voicestock.commands.candidate import UNDO_ACTION, CandidateCommand
from voicestock.commands.session_context import ContextEntry, RecentCommand
from voicestock.logging_utils import log_warning
from voicestock.metrics import get_metrics_collector
from voicestock.nlu import LanguageUnderstandingProvider

logger = logging.getLogger(__name__)

_LITERAL_UNDO_PATTERN = re.compile(r"^(?:undo|revert last)[\s.!?]*$", re.IGNORECASE)


def normalize_response(raw: Any) -> list[dict[str, Any]]:
    """Turn an untrusted provider response into a list of command objects.

    JSON text is decoded, a ``{"commands": [...]}`` envelope is unwrapped and a
    single object is wrapped. Anything else yields an empty list.
    """
    if isinstance(raw, str | bytes):
        try:
            raw = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError):
            logger.warning("Language-understanding response is not valid JSON")
            return []

    if isinstance(raw, dict):
        if isinstance(raw.get("commands"), list):
            raw = raw["commands"]
        elif "commands" in raw:
            return []
        else:
            raw = [raw]

    if not isinstance(raw, list):
        return []

    return [entry for entry in raw if isinstance(entry, dict)]


def _finite_number(value: Any) -> float | None:
    """Return value as a finite number, or None for NaN, infinities and overflow."""
    if isinstance(value, bool) or not isinstance(value, int | float):
        return None
    try:
        finite = math.isfinite(value)
    except OverflowError:
        return None
    return value if finite else None


def _coerce_quantity(value: Any) -> float | None:
    if isinstance(value, str):
        try:
            parsed = float(value.strip())
        except ValueError:
            return None
        if not math.isfinite(parsed):
            return None
        return int(parsed) if parsed.is_integer() else parsed
    return _finite_number(value)


def _coerce_confidence(value: Any) -> float | None:
    value = _finite_number(value)
    if value is None:
        return None
    return min(max(float(value), 0.0), 1.0)


def to_candidate(entry: dict[str, Any]) -> CandidateCommand:
    """Build a candidate from one raw command object.

    Completeness is always recomputed; a provider's ``isComplete`` claim is
    ignored.
    """
    action = str(entry.get("action") or "").strip().lower()
    item = str(entry.get("item") or "").strip()
    unit = str(entry.get("unit") or "").strip()
    return CandidateCommand.build(
        action=action,
        item=item,
        quantity=_coerce_quantity(entry.get("quantity")),
        unit=unit,
        confidence=_coerce_confidence(entry.get("confidence")),
    )


class CommandInterpreter:
    """Turn one final fragment into zero or more candidate commands.

    The interpreter is stateless and may be shared across sessions. It never
    raises: provider failures become a low-confidence placeholder.
    """

    def __init__(self, provider: LanguageUnderstandingProvider, timeout_seconds: float = 10.0):
        self.provider = provider
        self.timeout_seconds = timeout_seconds

    async def interpret(
        self,
        fragment: str,
        conversation_history: list[ContextEntry] | None = None,
        recent_commands: list[RecentCommand] | None = None,
    ) -> list[CandidateCommand]:
        """Interpret a fragment with read-only conversation and command history.

        Returns:
            Candidates in the order the provider listed them. An undo intent
            yields a single complete undo candidate.
        """
        if not fragment or not fragment.strip():
            return [CandidateCommand.placeholder()]

        if _LITERAL_UNDO_PATTERN.match(fragment.strip()):
            logger.info("Literal undo intent detected")
            return [CandidateCommand.undo()]

        metrics = get_metrics_collector()
        start = time.perf_counter()
        try:
            raw = await asyncio.wait_for(
                self.provider.extract(
                    fragment, list(conversation_history or []), list(recent_commands or [])
                ),
                timeout=self.timeout_seconds,
            )
        except TimeoutError:
            metrics.record_interpretation((time.perf_counter() - start) * 1000, failed=True)
            log_warning(logger, "Language-understanding call timed out",
                        timeout_seconds=self.timeout_seconds)
            return [CandidateCommand.placeholder()]
        except Exception as e:
            metrics.record_interpretation((time.perf_counter() - start) * 1000, failed=True)
            log_warning(logger, "Language-understanding call failed", error=e)
            return [CandidateCommand.placeholder()]

        metrics.record_interpretation((time.perf_counter() - start) * 1000)

        entries = normalize_response(raw)
        if any(str(entry.get("action") or "").lower() == UNDO_ACTION for entry in entries):
            return [CandidateCommand.undo()]

        candidates = [to_candidate(entry) for entry in entries]
        logger.debug("Interpreted %d candidate(s)", len(candidates))
        return candidates
