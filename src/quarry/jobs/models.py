"""
Data models for research jobs.

This module defines the structures the scheduler accumulates while a job runs:
- Query: a search query tagged with the cycle that issued it
- Finding: the sanitized content of one successfully scraped page
- Source: a finding selected for the final report
- Report: the synthesized report and the sources it cites
- ResearchJob: the job record and its lifecycle state machine
"""

from datetime import datetime
from typing import Literal
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator

from ..config import BudgetConfig
from ..exceptions import InvalidTransitionError

# Persisted lifecycle, monotonic left to right. Terminal: completed, failed, cancelled.
JobStatus = Literal["questions", "pending", "processing", "completed", "failed", "cancelled"]

# Scheduler phase while a job is processing.
ResearchPhase = Literal[
    "created",
    "planning",
    "searching",
    "evaluating",
    "finalizing",
    "synthesizing",
    "completed",
    "failed",
    "cancelled",
]

TERMINAL_PHASES: frozenset[str] = frozenset({"completed", "failed", "cancelled"})

_STATUS_ORDER: dict[str, int] = {
    "questions": 0,
    "pending": 1,
    "processing": 2,
    "completed": 3,
    "failed": 3,
    "cancelled": 3,
}

_PHASE_TRANSITIONS: dict[str, frozenset[str]] = {
    "created": frozenset({"planning", "cancelled"}),
    "planning": frozenset({"searching", "failed", "cancelled"}),
    "searching": frozenset({"evaluating", "finalizing", "cancelled"}),
    "evaluating": frozenset({"searching", "finalizing", "cancelled"}),
    # finalizing -> failed only when nothing was ever found
    "finalizing": frozenset({"synthesizing", "failed", "cancelled"}),
    "synthesizing": frozenset({"completed", "failed", "cancelled"}),
    "completed": frozenset(),
    "failed": frozenset(),
    "cancelled": frozenset(),
}


class Query(BaseModel):
    """A search query and the cycle that produced it."""

    text: str = Field(..., min_length=1)
    cycle: int = Field(default=0, ge=0)

    model_config = {"frozen": True}

    @field_validator("text", mode="before")
    @classmethod
    def strip_text(cls, v: object) -> object:
        return v.strip() if isinstance(v, str) else v


class Finding(BaseModel):
    """Accepted result of one successful scrape."""

    url: str = Field(..., min_length=1)
    title: str = ""
    content: str = Field(..., min_length=1, description="Sanitized page text")
    query: str = Field(default="", description="Query whose search returned this page")
    cycle: int = Field(default=0, ge=0)
    favicon: str | None = None
    summary: str | None = Field(default=None, description="Topic-focused summary, when available")

    def digest(self, max_chars: int = 2_000) -> str:
        """Summary if present, otherwise the head of the content."""
        if self.summary:
            return self.summary
        if len(self.content) <= max_chars:
            return self.content
        return self.content[:max_chars] + "..."


class Source(BaseModel):
    """A finding selected for the final report."""

    url: str
    title: str = ""
    favicon: str | None = None

    @classmethod
    def from_finding(cls, finding: Finding) -> "Source":
        return cls(url=finding.url, title=finding.title, favicon=finding.favicon)


class EvaluationResult(BaseModel):
    """Gap analysis plus follow-up queries (empty means nothing left to search)."""

    summary: str
    queries: list[Query] = Field(default_factory=list)


class Report(BaseModel):
    """Final report text and the ordered sources it was written from."""

    markdown: str
    sources: list[Source]


class CycleRecord(BaseModel):
    """What one search cycle did, kept on the job for inspection."""

    index: int
    queries: list[str]
    hits: int = 0
    findings_added: int = 0
    failures: int = 0


class ResearchJob(BaseModel):
    """
    A research job and everything accumulated for it.

    Mutated only by the scheduler running it. Phase changes go through
    transition(), which rejects out-of-order moves and keeps the persisted
    status monotonic.
    """

    id: str = Field(default_factory=lambda: uuid4().hex)
    topic: str = Field(..., min_length=1, frozen=True)
    budget: BudgetConfig = Field(default_factory=BudgetConfig)

    status: JobStatus = "pending"
    phase: ResearchPhase = "created"

    plan_summary: str | None = None
    findings: list[Finding] = Field(default_factory=list)
    sources: list[Source] = Field(default_factory=list)
    report: Report | None = None
    cycles: list[CycleRecord] = Field(default_factory=list)

    error: str | None = None
    error_code: str | None = None

    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)
    research_started_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.phase in TERMINAL_PHASES

    @property
    def finding_urls(self) -> set[str]:
        return {f.url for f in self.findings}

    def _set_status(self, status: str) -> None:
        if _STATUS_ORDER[status] < _STATUS_ORDER[self.status] or (
            self.status in ("completed", "failed", "cancelled") and status != self.status
        ):
            raise InvalidTransitionError(self.status, status)
        self.status = status  # type: ignore[assignment]

    def mark_pending(self) -> None:
        """Move from clarifying questions to ready-to-research."""
        if self.status != "questions":
            raise InvalidTransitionError(self.status, "pending")
        self._set_status("pending")
        self.updated_at = datetime.now()

    def transition(self, phase: ResearchPhase) -> None:
        """
        Move the job to a new phase.

        Raises:
            InvalidTransitionError: If the phase is not reachable from the current one
        """
        if phase not in _PHASE_TRANSITIONS[self.phase]:
            raise InvalidTransitionError(self.phase, phase)

        if phase in TERMINAL_PHASES:
            self._set_status(phase)
            self.completed_at = datetime.now()
        elif self.status != "processing":
            if self.status == "questions":
                raise InvalidTransitionError(self.status, "processing")
            self._set_status("processing")
            self.research_started_at = datetime.now()

        self.phase = phase
        self.updated_at = datetime.now()

    def fail(self, error: Exception) -> None:
        """Terminate the job with a human-readable cause."""
        self.transition("failed")
        self.error = str(error)
        self.error_code = type(error).__name__

    def abort(self, error: Exception) -> None:
        """
        Fail the job from any non-terminal phase after an unexpected error.

        fail() only accepts the phases where research can legitimately end
        in failure; a crash can happen anywhere.

        Raises:
            InvalidTransitionError: If the job is already terminal
        """
        if self.is_terminal:
            raise InvalidTransitionError(self.phase, "failed")
        self._set_status("failed")
        self.phase = "failed"
        self.completed_at = datetime.now()
        self.updated_at = self.completed_at
        self.error = str(error)
        self.error_code = type(error).__name__

    def cancel(self) -> None:
        self.transition("cancelled")
        self.error = "Research was cancelled"
        self.error_code = "Cancelled"

    def merge_findings(self, findings: list[Finding]) -> int:
        """
        Append findings whose URL has not been seen on this job.

        Returns:
            Number of findings added
        """
        seen = self.finding_urls
        added = 0
        for finding in findings:
            if finding.url in seen:
                continue
            seen.add(finding.url)
            self.findings.append(finding)
            added += 1
        return added
