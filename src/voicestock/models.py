"""Pydantic models for the voicestock API."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from voicestock.commands.candidate import CandidateCommand
from voicestock.commands.pipeline import PipelineResult


class TranscriptEvent(BaseModel):
    """A speech-to-text event forwarded by the client."""

    text: str = Field(..., max_length=2000)
    is_final: bool = True
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)


class InventoryCommand(BaseModel):
    """A candidate or finished inventory command."""

    action: str = Field(..., examples=["add"])
    item: str = ""
    quantity: float | None = None
    unit: str = ""
    confidence: float = Field(..., ge=0.0, le=1.0)
    is_complete: bool

    @classmethod
    def from_candidate(cls, candidate: CandidateCommand) -> "InventoryCommand":
        return cls(**candidate.to_dict())


class FragmentResponse(BaseModel):
    """Commands emitted for one transcript event.

    Only ``commands`` are actionable; ``partial`` is live feedback.
    """

    session_id: str
    commands: list[InventoryCommand] = Field(default_factory=list)
    partial: InventoryCommand | None = None
    relative_terms: list[str] = Field(default_factory=list)

    @classmethod
    def from_result(cls, session_id: str, result: PipelineResult) -> "FragmentResponse":
        return cls(
            session_id=session_id,
            commands=[InventoryCommand.from_candidate(c) for c in result.commands],
            partial=InventoryCommand.from_candidate(result.partial) if result.partial else None,
            relative_terms=result.relative_terms,
        )


class DependencyStatus(BaseModel):
    """Dependency status."""

    name: str
    status: Literal["ok", "degraded", "unavailable"]
    message: str | None = None


class StatusResponse(BaseModel):
    """Service status."""

    status: Literal["ok", "degraded", "unavailable"]
    version: str | None = None
    timestamp: datetime
    nlu_provider: str
    active_sessions: int = 0
    dependencies: list[DependencyStatus] = Field(default_factory=list)
