"""
Jobs REST API endpoints.

Provides:
- POST /api/jobs - Start a research job
- GET /api/jobs - List recent jobs
- GET /api/jobs/{job_id} - Job details and report
- POST /api/jobs/{job_id}/cancel - Cancel a running job
"""

import logging
from pathlib import Path
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query

from ..models.api_models import (
    CreateJobRequest,
    JobDetailResponse,
    JobsListResponse,
    JobSummaryResponse,
)
from ..services.job_runner import JobNotRunningError, JobRunner, OrchestratorFactory

logger = logging.getLogger(__name__)

router = APIRouter(tags=["jobs"])

_job_runner: JobRunner | None = None


async def init_job_runner(
    config_path: Path | None,
    db_path: str | Path | None = None,
    orchestrator_factory: OrchestratorFactory | None = None,
) -> None:
    """Initialize job runner (called by server.py on startup)."""
    global _job_runner
    _job_runner = JobRunner.from_paths(config_path, db_path, orchestrator_factory)
    await _job_runner.initialize()


async def shutdown_job_runner() -> None:
    """Shutdown job runner (called by server.py on shutdown)."""
    global _job_runner
    if _job_runner:
        await _job_runner.close()
        _job_runner = None


def get_job_runner() -> JobRunner:
    """Get initialized job runner dependency."""
    if _job_runner is None:
        raise HTTPException(status_code=500, detail="Job runner not initialized")
    return _job_runner


@router.post("", response_model=JobSummaryResponse, status_code=202)
async def create_job(
    request: CreateJobRequest,
    runner: Annotated[JobRunner, Depends(get_job_runner)],
) -> JobSummaryResponse:
    """
    Start a research job asynchronously.

    Request Body:
        - topic: Research topic
        - budget: Optional overrides of the configured budget
    """
    try:
        job = await runner.start_job(request)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except Exception as e:
        logger.error(f"Failed to start job: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e)) from e

    return JobSummaryResponse.from_job(job)


@router.get("", response_model=JobsListResponse)
async def list_jobs(
    runner: Annotated[JobRunner, Depends(get_job_runner)],
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
) -> JobsListResponse:
    """
    Get recent jobs, newest first.

    Query Parameters:
        - limit: Max jobs to return (1-100, default: 20)
    """
    try:
        jobs = await runner.list_jobs(limit=limit)
    except Exception as e:
        logger.error(f"Failed to list jobs: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e)) from e

    return JobsListResponse(
        jobs=[JobSummaryResponse.from_job(j) for j in jobs],
        total=len(jobs),
        limit=limit,
    )


@router.get("/{job_id}", response_model=JobDetailResponse)
async def get_job(
    job_id: str,
    runner: Annotated[JobRunner, Depends(get_job_runner)],
) -> JobDetailResponse:
    """
    Get a job with its sources and report.

    Raises:
        404: Job not found
    """
    job = await runner.get_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail=f"Job not found: {job_id}")
    return JobDetailResponse.from_job(job)


@router.post("/{job_id}/cancel", response_model=JobDetailResponse)
async def cancel_job(
    job_id: str,
    runner: Annotated[JobRunner, Depends(get_job_runner)],
) -> JobDetailResponse:
    """
    Cancel a running job.

    Raises:
        404: Job not found
        409: Job is not running
    """
    try:
        job = await runner.cancel_job(job_id)
    except JobNotRunningError as e:
        raise HTTPException(
            status_code=409,
            detail={"message": "Job is not running", "status": e.status},
        ) from e

    if job is None:
        raise HTTPException(status_code=404, detail=f"Job not found: {job_id}")
    return JobDetailResponse.from_job(job)
