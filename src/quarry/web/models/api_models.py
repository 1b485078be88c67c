"""
Pydantic models for API requests and responses.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from ...config import BudgetConfig
from ...jobs.models import CycleRecord, JobStatus, ResearchJob, ResearchPhase, Source


class BudgetOverrides(BaseModel):
    """Per-job overrides of the configured budget (unset fields keep the default)."""

    cycle_budget: int | None = Field(default=None, ge=0)
    max_queries_per_cycle: int | None = Field(default=None, ge=1)
    max_sources: int | None = Field(default=None, ge=1)
    max_report_tokens: int | None = Field(default=None, ge=1)

    def apply(self, base: BudgetConfig) -> BudgetConfig:
        return base.model_copy(update=self.model_dump(exclude_none=True))


class CreateJobRequest(BaseModel):
    """Request to start a research job."""

    topic: str = Field(..., min_length=1, max_length=2_000)
    budget: BudgetOverrides | None = None


class JobSummaryResponse(BaseModel):
    """One row of the jobs list."""

    id: str
    topic: str
    status: JobStatus
    phase: ResearchPhase
    findings_count: int = Field(ge=0)
    sources_count: int = Field(ge=0)
    error: str | None = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_job(cls, job: ResearchJob) -> "JobSummaryResponse":
        return cls(
            id=job.id,
            topic=job.topic,
            status=job.status,
            phase=job.phase,
            findings_count=len(job.findings),
            sources_count=len(job.sources),
            error=job.error,
            created_at=job.created_at,
            updated_at=job.updated_at,
        )


class JobDetailResponse(JobSummaryResponse):
    """Everything known about a job."""

    budget: BudgetConfig
    plan_summary: str | None = None
    cycles: list[CycleRecord] = Field(default_factory=list)
    sources: list[Source] = Field(default_factory=list)
    report: str | None = None
    error_code: str | None = None
    research_started_at: datetime | None = None
    completed_at: datetime | None = None

    @classmethod
    def from_job(cls, job: ResearchJob) -> "JobDetailResponse":
        return cls(
            **JobSummaryResponse.from_job(job).model_dump(),
            budget=job.budget,
            plan_summary=job.plan_summary,
            cycles=job.cycles,
            sources=job.sources,
            report=job.report.markdown if job.report else None,
            error_code=job.error_code,
            research_started_at=job.research_started_at,
            completed_at=job.completed_at,
        )


class JobsListResponse(BaseModel):
    """List of jobs, newest first."""

    jobs: list[JobSummaryResponse]
    total: int = Field(ge=0)
    limit: int = Field(ge=1)
