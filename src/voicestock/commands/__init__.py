"""Command interpretation for voice-driven inventory updates.

This module implements:
- Fragment buffering and relative-term detection
- Candidate extraction through a pluggable language-understanding provider
- Context-based ellipsis resolution
- Time-windowed accumulation of partial commands
- Per-session pipelines
"""

from .accumulator import AccumulatorOutcome, CommandAccumulator, PendingCommand
from .candidate import CandidateCommand, is_command_complete, score_confidence
from .enhancer import ContextEnhancer
from .fragment_buffer import FragmentBuffer
from .interpreter import CommandInterpreter
from .pipeline import InterpretationPipeline, PipelineResult, SessionRegistry, TextFragment
from .relative_terms import RelativeTermDetector
from .session_context import (
    ContextEntry,
    ContextSource,
    RecentCommand,
    RedisSessionContext,
    SessionContext,
    StaticContextSource,
)

__all__ = [
    "AccumulatorOutcome",
    "CandidateCommand",
    "CommandAccumulator",
    "CommandInterpreter",
    "ContextEnhancer",
    "ContextEntry",
    "ContextSource",
    "FragmentBuffer",
    "InterpretationPipeline",
    "PendingCommand",
    "PipelineResult",
    "RecentCommand",
    "RedisSessionContext",
    "RelativeTermDetector",
    "SessionContext",
    "SessionRegistry",
    "StaticContextSource",
    "TextFragment",
    "is_command_complete",
    "score_confidence",
]
