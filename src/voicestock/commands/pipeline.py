"""Per-session interpretation pipeline.

Ties together the fragment buffer, interpreter, context enhancer and command
accumulator for one voice session. Fragments of a session are processed
strictly in arrival order; different sessions run concurrently and share only
the stateless interpreter and read-only configuration.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from voicestock.commands.accumulator import CommandAccumulator
from voicestock.commands.candidate import UNDO_ACTION, CandidateCommand
from voicestock.commands.enhancer import ContextEnhancer
from voicestock.commands.fragment_buffer import FragmentBuffer
from voicestock.commands.interpreter import CommandInterpreter
from voicestock.commands.relative_terms import RelativeTermDetector
from voicestock.commands.session_context import ContextSource, RecentCommand, SessionContext
from voicestock.config import InterpreterConfig, get_interpreter_config
from voicestock.logging_utils import log_info, set_session_id
from voicestock.metrics import get_metrics_collector

logger = logging.getLogger(__name__)

_PAST_TENSE = {"add": "Added", "remove": "Removed", "set": "Set"}


@dataclass(frozen=True)
class TextFragment:
    """One chunk of transcribed speech."""

    text: str
    is_final: bool = True
    confidence: float = 1.0


@dataclass
class PipelineResult:
    """Commands emitted for one fragment.

    ``commands`` are finished and actionable. ``partial`` is live feedback
    about a command still being assembled and is never actionable.
    """

    commands: list[CandidateCommand] = field(default_factory=list)
    partial: CandidateCommand | None = None
    relative_terms: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "commands": [command.to_dict() for command in self.commands],
            "partial": self.partial.to_dict() if self.partial else None,
            "relative_terms": list(self.relative_terms),
        }


def describe_command(command: CandidateCommand) -> str:
    """Short confirmation sentence recorded as the assistant's turn."""
    if command.action == UNDO_ACTION:
        return "Undid the last update."

    verb = _PAST_TENSE.get(command.action, command.action.capitalize())
    quantity = f"{command.quantity:g}" if command.quantity is not None else ""
    amount = " ".join(part for part in (quantity, command.unit) if part)
    if command.action == "set":
        return f"{verb} {command.item} to {amount}."
    return f"{verb} {amount} of {command.item}." if amount else f"{verb} {command.item}."


class InterpretationPipeline:
    """Owns the mutable interpretation state of a single session."""

    def __init__(
        self,
        session_id: str,
        interpreter: CommandInterpreter,
        context: ContextSource | None = None,
        config: InterpreterConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the pipeline.

        Args:
            session_id: Session identifier, used for logging
            interpreter: Shared stateless interpreter
            context: Conversation/command context (default: in-memory SessionContext)
            config: Configuration (default: the cached interpreter config)
            clock: Monotonic clock in seconds, injectable for tests
        """
        self.session_id = session_id
        self.config = config or get_interpreter_config()
        self.interpreter = interpreter
        self.context = context or SessionContext(
            self.config.max_history_entries, self.config.max_recent_commands
        )
        self.buffer = FragmentBuffer()
        self.accumulator = CommandAccumulator(self.config.context_window_ms, clock=clock)
        self.enhancer = ContextEnhancer()
        self.detector = RelativeTermDetector(self.config.relative_terms)
        self._lock = asyncio.Lock()

    async def process_fragment(self, fragment: TextFragment) -> PipelineResult:
        """Interpret one transcript fragment.

        Interim fragments are ignored. Final fragments are serialized per
        session so merging sees them in arrival order.
        """
        metrics = get_metrics_collector()
        if not fragment.is_final:
            metrics.record_fragment(is_final=False)
            return PipelineResult()

        async with self._lock:
            set_session_id(self.session_id)
            return await self._process_final(fragment.text)

    async def _process_final(self, text: str) -> PipelineResult:
        metrics = get_metrics_collector()
        retry_set = False
        if self.accumulator.expire_if_stale():
            # A "set the X" whose pending state expired is retried as one phrase
            retry_set = FragmentBuffer.looks_like_set_start(
                self.buffer.current()
            ) and FragmentBuffer.looks_like_set_continuation(text)
            if not retry_set:
                self.buffer.clear()

        self.buffer.add(text)
        query = self.buffer.current() if retry_set else text
        if retry_set:
            logger.debug("Re-interpreting buffered set command")

        relative_terms = self.detector.matches(text)
        metrics.record_fragment(is_final=True, relative=bool(relative_terms))
        if relative_terms:
            logger.debug("Fragment relies on earlier context: %s", relative_terms)

        history = self.context.get_conversation_history()
        recent = self.context.get_recent_commands()

        candidates = await self.interpreter.interpret(query, history, recent)
        if history or recent:
            candidates = [
                candidate
                if candidate.is_complete
                else self.enhancer.enhance(candidate, history, recent)
                for candidate in candidates
            ]

        outcome = self.accumulator.process(candidates)

        if text.strip():
            self.context.add_to_history("user", text)
        for command in outcome.completed:
            self._record_completed(command)

        if outcome.partial is not None:
            metrics.record_partial()

        if outcome.completed or self.accumulator.pending is None:
            self.buffer.clear()

        return PipelineResult(
            commands=outcome.completed,
            partial=outcome.partial,
            relative_terms=relative_terms,
        )

    def _record_completed(self, command: CandidateCommand) -> None:
        get_metrics_collector().record_completed(command.action)
        log_info(
            logger,
            "Command completed",
            action=command.action,
            item=command.item,
            quantity=command.quantity,
            unit=command.unit,
            confidence=command.confidence,
        )

        if command.action != UNDO_ACTION:
            self.context.add_command(
                RecentCommand(
                    action=command.action,
                    item=command.item,
                    unit=command.unit,
                    quantity=command.quantity,
                    timestamp=time.time(),
                )
            )
        self.context.add_to_history("assistant", describe_command(command))


class SessionRegistry:
    """Session-keyed map of pipelines.

    Each session gets its own pipeline; dropping a session discards its
    pending command and buffer.
    """

    def __init__(
        self,
        interpreter: CommandInterpreter,
        config: InterpreterConfig | None = None,
        context_factory: Callable[[str], ContextSource] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.interpreter = interpreter
        self.config = config
        self.context_factory = context_factory
        self.clock = clock
        self._pipelines: dict[str, InterpretationPipeline] = {}

    def get(self, session_id: str) -> InterpretationPipeline:
        """Get the session's pipeline, creating it on first use."""
        pipeline = self._pipelines.get(session_id)
        if pipeline is None:
            context = self.context_factory(session_id) if self.context_factory else None
            pipeline = InterpretationPipeline(
                session_id,
                self.interpreter,
                context=context,
                config=self.config,
                clock=self.clock,
            )
            self._pipelines[session_id] = pipeline
            logger.debug("Created pipeline for session %s", session_id[:8])
        return pipeline

    def drop(self, session_id: str) -> bool:
        """Forget a session. Returns True if it existed."""
        return self._pipelines.pop(session_id, None) is not None

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._pipelines

    def __len__(self) -> int:
        return len(self._pipelines)
