"""
Job runner service for API-initiated research.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from pathlib import Path

from ...config import ResearchConfig, load_config
from ...jobs import JobStore, ResearchJob
from ...orchestrator import ResearchOrchestrator
from ..models.api_models import CreateJobRequest

logger = logging.getLogger(__name__)

OrchestratorFactory = Callable[[ResearchConfig, JobStore], ResearchOrchestrator]


class JobNotRunningError(RuntimeError):
    """Raised when cancelling a job that has no running task."""

    def __init__(self, job_id: str, status: str | None = None):
        self.job_id = job_id
        self.status = status
        super().__init__(f"Job {job_id} is not running")


def _default_factory(config: ResearchConfig, store: JobStore) -> ResearchOrchestrator:
    from ...runtime import create_orchestrator

    return create_orchestrator(config, store=store)


class JobRunner:
    """Runs research jobs as background tasks in the server's event loop."""

    def __init__(
        self,
        config: ResearchConfig,
        store: JobStore,
        orchestrator_factory: OrchestratorFactory | None = None,
    ):
        self.config = config
        self.store = store
        self._factory = orchestrator_factory or _default_factory
        self._tasks: dict[str, asyncio.Task[None]] = {}

    @classmethod
    def from_paths(
        cls,
        config_path: Path | None,
        db_path: str | Path | None = None,
        orchestrator_factory: OrchestratorFactory | None = None,
    ) -> JobRunner:
        """Build a runner from a config file (defaults when None)."""
        config = load_config(config_path) if config_path else ResearchConfig()
        store = JobStore(db_path if db_path is not None else config.storage.db_path)
        return cls(config, store, orchestrator_factory)

    async def initialize(self) -> None:
        await self.store.initialize()

    async def close(self) -> None:
        """Cancel running jobs (they persist as cancelled) and close the store."""
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
        await self.store.close()

    def is_running(self, job_id: str) -> bool:
        task = self._tasks.get(job_id)
        return task is not None and not task.done()

    async def start_job(self, request: CreateJobRequest) -> ResearchJob:
        """
        Create a job and start researching it in the background.

        Raises:
            ValueError: If the runtime cannot be built (e.g. missing API keys)
        """
        budget = self.config.budget
        if request.budget:
            budget = request.budget.apply(budget)

        # Build first so a misconfiguration fails the request, not the task
        orchestrator = self._factory(self.config, self.store)

        job = await self.store.create_job(request.topic, budget=budget)
        self._tasks[job.id] = asyncio.create_task(self._run_job(orchestrator, job))
        logger.info(f"Started job {job.id}: {job.topic[:60]}")
        return job

    async def _run_job(self, orchestrator: ResearchOrchestrator, job: ResearchJob) -> None:
        try:
            await orchestrator.run(job)
            logger.info(f"Job {job.id} finished: {job.status}")
        except asyncio.CancelledError:
            logger.info(f"Job {job.id} cancelled")
            raise
        except Exception as e:
            logger.error(f"Job {job.id} crashed: {e}", exc_info=True)
            if not job.is_terminal:
                job.abort(e)
                await self.store.save_job_state(job)
        finally:
            self._tasks.pop(job.id, None)

    async def cancel_job(self, job_id: str) -> ResearchJob | None:
        """
        Cancel a running job and wait for it to settle.

        Returns:
            The persisted job after cancellation, or None if it does not exist

        Raises:
            JobNotRunningError: If the job exists but is not running
        """
        task = self._tasks.get(job_id)
        if task is None or task.done():
            job = await self.store.load_job(job_id)
            if job is None:
                return None
            raise JobNotRunningError(job_id, job.status)

        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        self._tasks.pop(job_id, None)

        job = await self.store.load_job(job_id)
        if job is not None and not job.is_terminal:
            # Cancelled before the task ever ran
            job.cancel()
            await self.store.save_job_state(job)
        return job

    async def get_job(self, job_id: str) -> ResearchJob | None:
        return await self.store.load_job(job_id)

    async def list_jobs(self, limit: int = 20) -> list[ResearchJob]:
        return await self.store.list_jobs(limit=limit)
